"""Service layer: filesystem, model adapters, serialization and the run orchestrator."""

from .config import ConfigurationService, ValidationResult, build_run_config
from .errors import (
    AppError,
    ConfigurationError,
    ErrorCategory,
    ErrorSeverity,
    FileSystemError,
    GenerationError,
    ImageGenerationError,
    ModelLoadError,
    ParseError,
    SerializationError,
    describe_error,
)
from .filesystem import FileSystemService
from .gamelist_writer import GamelistWriter
from .image_generator import DiffusionImageGenerator, ImageGenerator, pixels_to_image
from .metadata_generator import LlamaMetadataGenerator, MetadataGenerator, parse_game_response
from .orchestrator import RunOrchestrator, RunState

__all__ = [
    "AppError",
    "ConfigurationError",
    "ConfigurationService",
    "DiffusionImageGenerator",
    "ErrorCategory",
    "ErrorSeverity",
    "FileSystemError",
    "FileSystemService",
    "GamelistWriter",
    "GenerationError",
    "ImageGenerationError",
    "ImageGenerator",
    "LlamaMetadataGenerator",
    "MetadataGenerator",
    "ModelLoadError",
    "ParseError",
    "RunOrchestrator",
    "RunState",
    "SerializationError",
    "ValidationResult",
    "build_run_config",
    "describe_error",
    "parse_game_response",
    "pixels_to_image",
]
