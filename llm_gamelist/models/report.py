"""Per-item results and run summary models."""

from dataclasses import dataclass, field
from typing import Any

from .game import GameRecord


@dataclass(frozen=True)
class ItemFailure:
    """A ROM file that failed in one of the passes."""
    file_name: str
    stage: str  # "text" or "image"
    error_type: str
    message: str

    @classmethod
    def from_exception(cls, file_name: str, stage: str, error: BaseException) -> "ItemFailure":
        return cls(
            file_name=file_name,
            stage=stage,
            error_type=type(error).__name__,
            message=str(error),
        )


@dataclass(frozen=True)
class ItemResult:
    """Outcome of the text pass for one ROM file."""
    file_name: str
    record: GameRecord | None = None
    failure: ItemFailure | None = None

    @property
    def ok(self) -> bool:
        return self.record is not None and self.failure is None


@dataclass
class RunReport:
    """Everything a finished run produced."""
    games: list[GameRecord] = field(default_factory=list)
    results: list[ItemResult] = field(default_factory=list)
    image_failures: list[ItemFailure] = field(default_factory=list)
    final_state: str = "idle"

    @property
    def succeeded(self) -> int:
        return sum(1 for result in self.results if result.ok)

    @property
    def skipped(self) -> int:
        return len(self.results) - self.succeeded

    @property
    def failures(self) -> list[ItemFailure]:
        """Text and image failures in the order they happened."""
        text_failures = [r.failure for r in self.results if r.failure is not None]
        return text_failures + self.image_failures

    def summary(self) -> dict[str, Any]:
        return {
            "candidates": len(self.results),
            "games": len(self.games),
            "skipped": self.skipped,
            "image_failures": len(self.image_failures),
            "final_state": self.final_state,
        }
