"""Configuration data models."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


DEFAULT_PLATFORM = "North American Sega Genesis"

DEFAULT_SYSTEM_PROMPT = """\
Create a JSON document with the following fields and values for a {platform} game rom file.

name: string, the displayed name for the game
desc: string, a description of the game including any media description released, characters, plot points, goals, etc
rating: float, the rating for the game, expressed as a floating point number between 0 and 1. Arbitrary values are fine (ES can display half-stars, quarter-stars, etc).
releasedate: datetime, the date the game was released. Displayed as date only, time is ignored.
developer: string, the development studio that created the game.
publisher: string, the company that published the game.
genre: string, the (primary) genre for the game.
players: integer, the number of players the game supports.
"""

GAME_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "desc": {"type": "string"},
        "rating": {"type": "number"},
        "releasedate": {"type": "string"},
        "developer": {"type": "string"},
        "publisher": {"type": "string"},
        "genre": {"type": "string"},
        "players": {"type": "number"},
    },
    "required": [
        "name",
        "desc",
        "rating",
        "releasedate",
        "developer",
        "publisher",
        "genre",
        "players",
    ],
}

DEFAULT_IMAGE_PROMPT = (
    "Box art for the retro video game \"{name}\". {description} "
    "Detailed cover illustration, vibrant colors, no text."
)


def default_system_prompt(platform: str = DEFAULT_PLATFORM) -> str:
    """Render the built-in system prompt for a platform."""
    return DEFAULT_SYSTEM_PROMPT.format(platform=platform)


@dataclass(frozen=True)
class GeneratorConfig:
    """Language model settings for metadata generation."""
    model_path: Path
    system_prompt: str = field(default_factory=default_system_prompt)
    output_schema: dict[str, Any] = field(default_factory=lambda: dict(GAME_RESPONSE_SCHEMA))
    context_size: int = 4096
    gpu_layers: int = 1
    max_tokens: int | None = None
    temperature: float = 0.8
    clamp_rating: bool = False  # Rating is advisory by default


@dataclass(frozen=True)
class ImageConfig:
    """Diffusion pipeline settings for cover art generation."""
    model_id: str = "stabilityai/stable-diffusion-2-1"
    revision: str = "fp16"
    inference_steps: int = 30
    generation_size: int = 768
    output_size: int = 512
    guidance_scale: float = 7.5
    prompt_template: str = DEFAULT_IMAGE_PROMPT
    device: str | None = None  # None = pick cuda, mps or cpu


@dataclass(frozen=True)
class RunConfig:
    """Settings for a single gamelist run."""
    input_dir: Path
    output_dir: Path
    generator: GeneratorConfig
    image: ImageConfig | None = None  # None = text pass only
    isolate_image_failures: bool = False
