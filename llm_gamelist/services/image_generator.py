"""Diffusion pipeline adapter for cover art, plus raster helpers."""

import asyncio
import gc
import re
import sys
from abc import ABC, abstractmethod
from collections.abc import Callable
from types import TracebackType
from typing import Any

import numpy as np
import structlog
from PIL import Image

from ..models.config import ImageConfig
from ..models.game import GameRecord
from .errors import ImageGenerationError, ModelLoadError

log = structlog.stdlib.get_logger()

# Windows: \ / : * ? " < > |  macOS/Linux: /
INVALID_FILENAME_CHARS = r'[\\/:*?"<>|]'


def build_cover_prompt(record: GameRecord, template: str) -> str:
    """Fill the cover art prompt template with a record's name and description."""
    return template.format(name=record.name, description=record.description)


def cover_file_name(name: str) -> str:
    """Turn a game name into a lowercase, filesystem-safe PNG file name.

    The gamelist ``<image>`` entry is built from this same value, so the
    document always points at the file actually written, on case-sensitive
    and case-insensitive filesystems alike.
    """
    sanitized = re.sub(INVALID_FILENAME_CHARS, "_", name)
    sanitized = re.sub(r"[_\s]+", " ", sanitized).strip(" .")
    if not sanitized:
        sanitized = "unknown game"
    return f"{sanitized[:200].rstrip(' .').lower()}.png"


def pixels_to_image(pixels: np.ndarray, size: int = 512) -> Image.Image:
    """Convert float pixels to an RGB raster of ``size`` x ``size``.

    Args:
        pixels: Array shaped (channels, height, width) with values in [0, 1]
        size: Edge length of the square output

    Returns:
        RGB PIL image
    """
    if pixels.ndim != 3 or pixels.shape[0] not in (1, 3, 4):
        raise ValueError(f"Expected (channels, height, width) pixels, got shape {pixels.shape}")

    scaled = np.clip(np.rint(pixels.astype(np.float32) * 255.0), 0, 255).astype(np.uint8)
    # Planar CHW -> interleaved HWC rows
    interleaved = np.ascontiguousarray(np.transpose(scaled, (1, 2, 0)))

    channels = interleaved.shape[2]
    if channels == 1:
        image = Image.fromarray(interleaved[:, :, 0]).convert("RGB")
    elif channels == 4:
        image = Image.fromarray(interleaved).convert("RGB")
    else:
        image = Image.fromarray(interleaved)

    if image.size != (size, size):
        image = image.resize((size, size), Image.Resampling.LANCZOS)
    return image


class ImageGenerator(ABC):
    """Renders one image per prompt.

    Only one ImageGenerator or MetadataGenerator is open at a time; both
    hold large models.
    """

    @abstractmethod
    async def open(self) -> None:
        """Load the pipeline."""

    @abstractmethod
    async def generate(self, prompt: str) -> np.ndarray:
        """Return float pixels shaped (channels, height, width)."""

    @abstractmethod
    async def close(self) -> None:
        """Release pipeline resources. Safe to call more than once."""

    async def __aenter__(self) -> "ImageGenerator":
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


def _resolve_device(preference: str | None) -> str:
    import torch

    if preference:
        return preference
    if torch.cuda.is_available():
        return "cuda"
    if hasattr(torch.backends, "mps") and torch.backends.mps.is_available():
        return "mps"
    return "cpu"


def _load_pipeline(config: ImageConfig) -> Any:
    import torch
    from diffusers import DiffusionPipeline

    device = _resolve_device(config.device)
    dtype = torch.float16 if device.startswith("cuda") else torch.float32
    log.debug("Resolved diffusion device", device=device, dtype=str(dtype))

    pipeline = DiffusionPipeline.from_pretrained(
        config.model_id,
        revision=config.revision,
        torch_dtype=dtype,
    )
    return pipeline.to(device)


def _release_accelerator_memory() -> None:
    # Nothing to release if torch was never loaded
    torch = sys.modules.get("torch")
    if torch is not None and torch.cuda.is_available():
        torch.cuda.empty_cache()


class DiffusionImageGenerator(ImageGenerator):
    """ImageGenerator backed by a Hugging Face diffusers text-to-image pipeline."""

    def __init__(
        self,
        config: ImageConfig,
        pipeline_factory: Callable[[ImageConfig], Any] | None = None,
    ) -> None:
        self.config = config
        self._pipeline_factory = pipeline_factory or _load_pipeline
        self._pipeline: Any = None

    @property
    def is_open(self) -> bool:
        return self._pipeline is not None

    async def open(self) -> None:
        if self._pipeline is not None:
            return

        log.info("Loading diffusion pipeline", model_id=self.config.model_id, revision=self.config.revision)
        try:
            self._pipeline = await asyncio.to_thread(self._pipeline_factory, self.config)
        except Exception as e:
            log.error("Failed to load diffusion pipeline", model_id=self.config.model_id, error=str(e))
            raise ModelLoadError(
                "Could not load the diffusion pipeline",
                model=f"{self.config.model_id}@{self.config.revision}",
                original_error=e,
            ) from e
        log.info("Loaded diffusion pipeline", model_id=self.config.model_id)

    async def generate(self, prompt: str) -> np.ndarray:
        if self._pipeline is None:
            raise ImageGenerationError("Diffusion pipeline is not loaded")

        try:
            return await asyncio.to_thread(self._render, prompt)
        except Exception as e:
            raise ImageGenerationError("Diffusion inference failed", original_error=e) from e

    def _render(self, prompt: str) -> np.ndarray:
        result = self._pipeline(
            prompt=prompt,
            negative_prompt=None,
            num_inference_steps=self.config.inference_steps,
            height=self.config.generation_size,
            width=self.config.generation_size,
            guidance_scale=self.config.guidance_scale,
            output_type="pt",
        )
        # Batch of (channels, height, width) float tensors in [0, 1]
        first = result.images[0]
        return first.detach().float().cpu().numpy()

    async def close(self) -> None:
        if self._pipeline is None:
            return

        self._pipeline = None
        gc.collect()
        _release_accelerator_memory()
        log.info("Released diffusion pipeline", model_id=self.config.model_id)
