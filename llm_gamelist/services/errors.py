"""Error types for the gamelist generator.

This module provides:
- Custom exception classes for each stage of a run (filesystem, model
  loading, generation, image rendering, serialization)
- User-friendly error messages with suggested actions
- A helper for rendering fatal errors on the command line

Only GenerationError and ParseError are recovered from at item level.
Everything else aborts the run.
"""

from enum import Enum


class ErrorCategory(Enum):
    """Categories of errors for classification and handling."""
    FILE_SYSTEM = "file_system"
    CONFIGURATION = "configuration"
    MODEL = "model"
    GENERATION = "generation"
    IMAGE = "image"
    SERIALIZATION = "serialization"
    UNEXPECTED = "unexpected"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AppError(Exception):
    """Base exception class for application errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNEXPECTED,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        suggested_actions: list[str] | None = None,
        technical_details: str | None = None,
        recoverable: bool = True,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.suggested_actions = suggested_actions or []
        self.technical_details = technical_details
        self.recoverable = recoverable


def _describe_original(original_error: BaseException | None) -> str | None:
    if original_error is None:
        return None
    return f"{type(original_error).__name__}: {original_error}"


class FileSystemError(AppError):
    """Exception for file system-related errors."""

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        path: str | None = None,
        operation: str | None = None,
    ) -> None:
        technical_details = _describe_original(original_error)
        if path:
            technical_details = f"Path: {path}" + (f"\n{technical_details}" if technical_details else "")

        super().__init__(
            message=message,
            category=ErrorCategory.FILE_SYSTEM,
            severity=ErrorSeverity.CRITICAL,
            suggested_actions=self._get_suggested_actions(original_error),
            technical_details=technical_details,
            recoverable=False,
        )
        self.original_error = original_error
        self.path = path
        self.operation = operation

    @staticmethod
    def _get_suggested_actions(original_error: Exception | None) -> list[str]:
        """Get suggested actions based on error type."""
        if isinstance(original_error, PermissionError):
            return [
                "Check file/directory permissions",
                "Choose a different output directory",
            ]
        elif isinstance(original_error, FileNotFoundError):
            return [
                "Verify the directory path is correct",
                "Check if the directory was moved or deleted",
            ]
        elif isinstance(original_error, FileExistsError):
            return [
                "A file with that name is in the way",
                "Remove it or choose a different output directory",
            ]

        return [
            "Check the path and permissions",
            "Ensure sufficient disk space",
        ]


class ConfigurationError(AppError):
    """Exception for configuration-related errors."""

    def __init__(
        self,
        message: str,
        setting: str | None = None,
        current_value: object = None,
        expected: str | None = None,
    ) -> None:
        suggested_actions = ["Check the configuration file"]
        if expected:
            suggested_actions.append(f"Expected: {expected}")

        technical_details = None
        if setting:
            technical_details = f"Setting: {setting}"
        if current_value is not None:
            technical_details = (technical_details or "") + f"\nCurrent: {current_value}"

        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            suggested_actions=suggested_actions,
            technical_details=technical_details,
            recoverable=False,
        )
        self.setting = setting
        self.current_value = current_value
        self.expected = expected


class ModelLoadError(AppError):
    """A language or diffusion model could not be loaded."""

    def __init__(
        self,
        message: str,
        model: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        technical_details = _describe_original(original_error)
        if model:
            technical_details = f"Model: {model}" + (f"\n{technical_details}" if technical_details else "")

        super().__init__(
            message=message,
            category=ErrorCategory.MODEL,
            severity=ErrorSeverity.CRITICAL,
            suggested_actions=[
                "Verify the model path or identifier",
                "Lower the number of GPU layers if memory is tight",
            ],
            technical_details=technical_details,
            recoverable=False,
        )
        self.model = model
        self.original_error = original_error


class GenerationError(AppError):
    """The language model failed to produce a response for one ROM file."""

    def __init__(
        self,
        message: str,
        file_label: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        technical_details = None
        if file_label:
            technical_details = f"Label: {file_label}"
        if original_error:
            technical_details = (technical_details or "") + f"\nError: {_describe_original(original_error)}"

        super().__init__(
            message=message,
            category=ErrorCategory.GENERATION,
            severity=ErrorSeverity.WARNING,
            suggested_actions=["The file is skipped; rerun to try again"],
            technical_details=technical_details,
            recoverable=True,
        )
        self.file_label = file_label
        self.original_error = original_error


class ParseError(GenerationError):
    """The model response did not match the game record structure."""

    def __init__(
        self,
        message: str,
        file_label: str | None = None,
        response_text: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, file_label=file_label, original_error=original_error)
        if response_text is not None:
            self.technical_details = (self.technical_details or "") + f"\nResponse: {response_text[:200]}"
        self.response_text = response_text


class ImageGenerationError(AppError):
    """The diffusion pipeline failed to render a cover image."""

    def __init__(
        self,
        message: str,
        game_name: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        technical_details = None
        if game_name:
            technical_details = f"Game: {game_name}"
        if original_error:
            technical_details = (technical_details or "") + f"\nError: {_describe_original(original_error)}"

        super().__init__(
            message=message,
            category=ErrorCategory.IMAGE,
            severity=ErrorSeverity.ERROR,
            suggested_actions=[
                "Rerun with --isolateImageFailures to skip failed covers",
                "Check available GPU memory",
            ],
            technical_details=technical_details,
            recoverable=False,
        )
        self.game_name = game_name
        self.original_error = original_error


class SerializationError(AppError):
    """The gamelist document could not be written."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        technical_details = _describe_original(original_error)
        if path:
            technical_details = f"Path: {path}" + (f"\n{technical_details}" if technical_details else "")

        super().__init__(
            message=message,
            category=ErrorCategory.SERIALIZATION,
            severity=ErrorSeverity.CRITICAL,
            suggested_actions=["Check that the output directory is writable"],
            technical_details=technical_details,
            recoverable=False,
        )
        self.path = path
        self.original_error = original_error


def describe_error(error: BaseException, include_suggestions: bool = True) -> str:
    """Create a formatted user message for an error.

    Args:
        error: Any exception; non-AppError exceptions get a generic message
        include_suggestions: Whether to include suggested actions

    Returns:
        Formatted message string
    """
    if not isinstance(error, AppError):
        return f"An unexpected error occurred: {type(error).__name__}: {error}"

    parts = [error.message]
    if include_suggestions and error.suggested_actions:
        parts.append("\nSuggested actions:")
        for action in error.suggested_actions[:3]:  # Limit to 3 suggestions
            parts.append(f"  • {action}")

    return "\n".join(parts)
