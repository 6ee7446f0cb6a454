"""Language model adapter that invents game metadata from a ROM filename."""

import asyncio
import json
import math
from abc import ABC, abstractmethod
from collections.abc import Callable
from types import TracebackType
from typing import Any

import structlog

from ..models.config import GeneratorConfig
from ..models.game import GameRecord
from .errors import GenerationError, ModelLoadError, ParseError

log = structlog.stdlib.get_logger()

# Response keys that must be strings; rating and players are numeric
STRING_FIELDS: dict[str, str] = {
    "name": "name",
    "desc": "description",
    "releasedate": "release_date",
    "developer": "developer",
    "publisher": "publisher",
    "genre": "genre",
}


def _is_xml_char(char: str) -> bool:
    # XML 1.0 Char production; JSON escapes such as \b or \u0001 fall outside it
    code = ord(char)
    return (
        code in (0x9, 0xA, 0xD)
        or 0x20 <= code <= 0xD7FF
        or 0xE000 <= code <= 0xFFFD
        or 0x10000 <= code <= 0x10FFFF
    )


def build_file_label(file_name: str) -> str:
    """Build the user prompt for one ROM file."""
    return f'rom file "{file_name}"'


def _number(data: dict[str, Any], key: str, file_label: str | None, text: str) -> float:
    value = data.get(key)
    # bool is an int subclass but never a valid rating or player count
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ParseError(
            f"Field '{key}' must be a number",
            file_label=file_label,
            response_text=text,
        )
    # json.loads accepts NaN, Infinity and overflowing literals such as 1e400
    if not math.isfinite(value):
        raise ParseError(
            f"Field '{key}' must be a finite number",
            file_label=file_label,
            response_text=text,
        )
    return value


def parse_game_response(
    text: str,
    file_label: str | None = None,
    clamp_rating: bool = False,
) -> GameRecord:
    """Parse a schema-constrained model response into a GameRecord.

    Args:
        text: JSON text returned by the model
        file_label: Label the response was generated for (used in errors)
        clamp_rating: Clamp the rating into [0, 1] instead of keeping it as is

    Returns:
        A fully populated GameRecord without source or image paths

    Raises:
        ParseError: If the text is not a JSON object with every field present
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(
            "Model response is not valid JSON",
            file_label=file_label,
            response_text=text,
            original_error=e,
        ) from e

    if not isinstance(data, dict):
        raise ParseError(
            f"Expected a JSON object, got {type(data).__name__}",
            file_label=file_label,
            response_text=text,
        )

    values: dict[str, Any] = {}
    for key, attribute in STRING_FIELDS.items():
        value = data.get(key)
        if not isinstance(value, str):
            raise ParseError(
                f"Field '{key}' must be a string",
                file_label=file_label,
                response_text=text,
            )
        if not all(_is_xml_char(char) for char in value):
            raise ParseError(
                f"Field '{key}' contains characters not allowed in XML",
                file_label=file_label,
                response_text=text,
            )
        values[attribute] = value

    if not values["name"].strip():
        raise ParseError("Field 'name' is empty", file_label=file_label, response_text=text)

    rating = float(_number(data, "rating", file_label, text))
    if clamp_rating:
        rating = min(max(rating, 0.0), 1.0)

    player_count = _number(data, "players", file_label, text)
    if player_count != int(player_count):
        raise ParseError(
            "Field 'players' must be a whole number",
            file_label=file_label,
            response_text=text,
        )
    players = int(player_count)
    if players < 0:
        raise ParseError(
            "Field 'players' must not be negative",
            file_label=file_label,
            response_text=text,
        )

    return GameRecord(
        source_path=None,
        image_path=None,
        rating=rating,
        players=players,
        **values,
    )


class MetadataGenerator(ABC):
    """Produces one GameRecord per ROM file label.

    Implementations hold heavyweight model state between ``open`` and
    ``close``. ``close`` must release it so another model can be loaded.
    """

    @abstractmethod
    async def open(self) -> None:
        """Load the model."""

    @abstractmethod
    async def generate(self, file_label: str) -> GameRecord:
        """Generate a record for a label built by build_file_label."""

    @abstractmethod
    async def close(self) -> None:
        """Release model resources. Safe to call more than once."""

    async def __aenter__(self) -> "MetadataGenerator":
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


def _load_llama(config: GeneratorConfig) -> Any:
    from llama_cpp import Llama

    return Llama(
        model_path=str(config.model_path),
        n_ctx=config.context_size,
        n_gpu_layers=config.gpu_layers,
        verbose=False,
    )


class LlamaMetadataGenerator(MetadataGenerator):
    """MetadataGenerator backed by llama.cpp with JSON-schema constrained decoding."""

    def __init__(
        self,
        config: GeneratorConfig,
        llama_factory: Callable[[GeneratorConfig], Any] | None = None,
    ) -> None:
        """Initialize the generator without loading the model.

        Args:
            config: Model path, prompt, schema and sampling settings
            llama_factory: Builds the llama.cpp model (defaults to llama_cpp.Llama)
        """
        self.config = config
        self._llama_factory = llama_factory or _load_llama
        self._llama: Any = None

    @property
    def is_open(self) -> bool:
        return self._llama is not None

    async def open(self) -> None:
        if self._llama is not None:
            return

        log.info(
            "Loading model",
            model_path=str(self.config.model_path),
            context_size=self.config.context_size,
            gpu_layers=self.config.gpu_layers,
        )
        try:
            self._llama = await asyncio.to_thread(self._llama_factory, self.config)
        except Exception as e:
            log.error("Failed to load model", model_path=str(self.config.model_path), error=str(e))
            raise ModelLoadError(
                "Could not load the language model",
                model=str(self.config.model_path),
                original_error=e,
            ) from e
        log.info("Loaded model", model_path=str(self.config.model_path))

    async def generate(self, file_label: str) -> GameRecord:
        if self._llama is None:
            raise GenerationError("Language model is not loaded", file_label=file_label)

        try:
            text = await asyncio.to_thread(self._complete, file_label)
        except Exception as e:
            raise GenerationError(
                "Language model inference failed",
                file_label=file_label,
                original_error=e,
            ) from e

        log.debug("Model response received", file_label=file_label, length=len(text))
        return parse_game_response(text, file_label=file_label, clamp_rating=self.config.clamp_rating)

    def _complete(self, file_label: str) -> str:
        # Fresh messages per call so earlier answers never fill the context
        response = self._llama.create_chat_completion(
            messages=[
                {"role": "system", "content": self.config.system_prompt},
                {"role": "user", "content": file_label},
            ],
            response_format={"type": "json_object", "schema": self.config.output_schema},
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        content = response["choices"][0]["message"]["content"]
        return content or ""

    async def close(self) -> None:
        if self._llama is None:
            return

        llama, self._llama = self._llama, None
        llama.close()
        log.info("Released model", model_path=str(self.config.model_path))
