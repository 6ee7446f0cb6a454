"""Data models for the gamelist generator."""

from .config import GeneratorConfig, ImageConfig, RunConfig
from .game import GameRecord
from .report import ItemFailure, ItemResult, RunReport

__all__ = [
    "GameRecord",
    "GeneratorConfig",
    "ImageConfig",
    "ItemFailure",
    "ItemResult",
    "RunConfig",
    "RunReport",
]
