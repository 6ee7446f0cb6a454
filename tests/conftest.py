"""Shared fixtures and stub generators for gamelist tests."""

import json
from pathlib import Path

import numpy as np
import pytest

from llm_gamelist.models import GeneratorConfig, ImageConfig, RunConfig
from llm_gamelist.models.game import GameRecord
from llm_gamelist.services.image_generator import ImageGenerator
from llm_gamelist.services.metadata_generator import MetadataGenerator, parse_game_response


SONIC_RESPONSE = {
    "name": "Sonic the Hedgehog",
    "desc": "A blue hedgehog races through Green Hill Zone to stop Dr. Robotnik.",
    "rating": 0.9,
    "releasedate": "1991-06-23",
    "developer": "Sega",
    "publisher": "Sega",
    "genre": "Platformer",
    "players": 1,
}


def response_for(file_name: str) -> dict[str, object]:
    """Build a plausible model response whose name is derived from the file."""
    stem = file_name.rsplit(".", 1)[0]
    return {
        **SONIC_RESPONSE,
        "name": stem.replace("_", " ").title(),
        "desc": f"Description of {stem}",
    }


class StubMetadataGenerator(MetadataGenerator):
    """Returns canned responses per file label and records lifecycle calls."""

    def __init__(
        self,
        responses: dict[str, dict[str, object] | str] | None = None,
        fail_for: set[str] | None = None,
        events: list[str] | None = None,
    ) -> None:
        self.responses = responses or {}
        self.fail_for = fail_for or set()
        self.events = events if events is not None else []
        self.labels: list[str] = []
        self.opened = False
        self.close_count = 0

    async def open(self) -> None:
        self.opened = True
        self.events.append("metadata.open")

    async def generate(self, file_label: str) -> GameRecord:
        self.labels.append(file_label)
        file_name = file_label.split('"')[1]
        if file_name in self.fail_for:
            raise RuntimeError(f"inference exploded for {file_name}")
        response = self.responses.get(file_name, response_for(file_name))
        text = response if isinstance(response, str) else json.dumps(response)
        return parse_game_response(text, file_label=file_label)

    async def close(self) -> None:
        self.close_count += 1
        self.events.append("metadata.close")


class StubImageGenerator(ImageGenerator):
    """Returns flat gray pixels at the generation resolution."""

    def __init__(
        self,
        size: int = 768,
        fail_for: set[str] | None = None,
        events: list[str] | None = None,
    ) -> None:
        self.size = size
        self.fail_for = fail_for or set()
        self.events = events if events is not None else []
        self.prompts: list[str] = []
        self.close_count = 0

    async def open(self) -> None:
        self.events.append("image.open")

    async def generate(self, prompt: str) -> np.ndarray:
        self.prompts.append(prompt)
        if any(name in prompt for name in self.fail_for):
            raise RuntimeError("diffusion ran out of memory")
        return np.full((3, self.size, self.size), 0.5, dtype=np.float32)

    async def close(self) -> None:
        self.close_count += 1
        self.events.append("image.close")


@pytest.fixture
def rom_dir(tmp_path: Path) -> Path:
    """An input directory with a mix of ROM archives and other files."""
    directory = tmp_path / "roms"
    directory.mkdir()
    for name in ("sonic.zip", "streets_of_rage.zip", "altered_beast.zip", "readme.txt", "golden_axe.ZIP"):
        (directory / name).write_bytes(b"PK\x03\x04")
    (directory / "subdir.zip").mkdir()
    return directory


@pytest.fixture
def out_dir(tmp_path: Path) -> Path:
    return tmp_path / "out"


@pytest.fixture
def text_config(rom_dir: Path, out_dir: Path, tmp_path: Path) -> RunConfig:
    return RunConfig(
        input_dir=rom_dir,
        output_dir=out_dir,
        generator=GeneratorConfig(model_path=tmp_path / "model.gguf"),
    )


@pytest.fixture
def image_config(rom_dir: Path, out_dir: Path, tmp_path: Path) -> RunConfig:
    return RunConfig(
        input_dir=rom_dir,
        output_dir=out_dir,
        generator=GeneratorConfig(model_path=tmp_path / "model.gguf"),
        image=ImageConfig(),
    )
