"""Configuration service: JSON override files merged with CLI arguments."""

import json
from dataclasses import replace
from pathlib import Path
from typing import Any

import structlog

from ..models.config import (
    DEFAULT_PLATFORM,
    GeneratorConfig,
    ImageConfig,
    RunConfig,
    default_system_prompt,
)
from .errors import ConfigurationError

log = structlog.stdlib.get_logger()

# Recognized keys in a config file and the Python types they accept
CONFIG_KEYS: dict[str, tuple[type, ...]] = {
    "platform": (str,),
    "system_prompt": (str,),
    "context_size": (int,),
    "max_tokens": (int, type(None)),
    "temperature": (int, float),
    "clamp_rating": (bool,),
    "image_model_id": (str,),
    "image_revision": (str,),
    "inference_steps": (int,),
    "guidance_scale": (int, float),
    "generation_size": (int,),
    "output_size": (int,),
    "image_prompt_template": (str,),
    "isolate_image_failures": (bool,),
}


class ValidationResult:
    """Result of configuration validation."""

    def __init__(self, is_valid: bool, errors: list[str] | None = None) -> None:
        self.is_valid: bool = is_valid
        self.errors: list[str] = errors or []


class ConfigurationService:
    """Loads and validates optional run overrides from a JSON file."""

    def __init__(self, config_path: Path | None = None) -> None:
        self.config_path: Path | None = config_path

    def load_overrides(self) -> dict[str, Any]:
        """Load overrides from the config file.

        Returns:
            Recognized keys and their values; empty when no file was given

        Raises:
            ConfigurationError: If the file is missing, unreadable or invalid
        """
        if self.config_path is None:
            return {}

        if not self.config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {self.config_path}",
                setting="config",
                current_value=str(self.config_path),
            )

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            log.error("Failed to read configuration", config_path=str(self.config_path), error=str(e))
            raise ConfigurationError(
                f"Could not read configuration file: {e}",
                setting="config",
                current_value=str(self.config_path),
            ) from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                "Configuration file must contain a JSON object",
                setting="config",
                expected="an object such as {\"context_size\": 4096}",
            )

        unknown = sorted(set(data) - set(CONFIG_KEYS))
        if unknown:
            log.warning("Ignoring unknown configuration keys", keys=unknown)
        overrides = {key: value for key, value in data.items() if key in CONFIG_KEYS}

        validation_result = self.validate_overrides(overrides)
        if not validation_result.is_valid:
            raise ConfigurationError(
                f"Invalid configuration: {', '.join(validation_result.errors)}",
                setting="config",
                current_value=str(self.config_path),
            )

        log.info("Configuration loaded", config_path=str(self.config_path), keys=sorted(overrides))
        return overrides

    def validate_overrides(self, overrides: dict[str, Any]) -> ValidationResult:
        """Validate override types and ranges."""
        errors = []

        for key, value in overrides.items():
            expected = CONFIG_KEYS.get(key)
            if expected is None:
                errors.append(f"{key} is not a recognized setting")
                continue
            # bool passes isinstance(int) checks; only bool settings accept it
            if isinstance(value, bool) and bool not in expected:
                errors.append(f"{key} must not be a boolean")
            elif not isinstance(value, expected):
                names = " or ".join("null" if t is type(None) else t.__name__ for t in expected)
                errors.append(f"{key} must be {names}")

        for key in ("context_size", "inference_steps", "generation_size", "output_size"):
            value = overrides.get(key)
            if isinstance(value, int) and not isinstance(value, bool) and value < 1:
                errors.append(f"{key} must be a positive integer")

        max_tokens = overrides.get("max_tokens")
        if isinstance(max_tokens, int) and not isinstance(max_tokens, bool) and max_tokens < 1:
            errors.append("max_tokens must be a positive integer or null")

        temperature = overrides.get("temperature")
        if isinstance(temperature, (int, float)) and not isinstance(temperature, bool) and temperature < 0:
            errors.append("temperature must be a non-negative number")

        guidance_scale = overrides.get("guidance_scale")
        if isinstance(guidance_scale, (int, float)) and not isinstance(guidance_scale, bool) and guidance_scale < 0:
            errors.append("guidance_scale must be a non-negative number")

        template = overrides.get("image_prompt_template")
        if isinstance(template, str):
            try:
                template.format(name="", description="")
            except (KeyError, IndexError, ValueError):
                errors.append("image_prompt_template may only use {name} and {description}")

        return ValidationResult(len(errors) == 0, errors)


def build_run_config(
    model_path: Path,
    input_dir: Path,
    output_dir: Path,
    gpu_layers: int = 1,
    images: bool = False,
    image_model: str | None = None,
    image_revision: str | None = None,
    isolate_image_failures: bool | None = None,
    platform: str | None = None,
    overrides: dict[str, Any] | None = None,
) -> RunConfig:
    """Merge CLI values, config file overrides and defaults into a RunConfig.

    CLI values win over the config file, which wins over the defaults.
    An explicit ``system_prompt`` in the file wins over ``platform``.
    """
    # -1 offloads every layer in llama.cpp
    if gpu_layers < -1:
        raise ConfigurationError(
            "gpuLayers must be -1 (all layers) or more",
            setting="gpuLayers",
            current_value=gpu_layers,
            expected="-1 or more",
        )

    overrides = overrides or {}

    system_prompt = overrides.get("system_prompt")
    if system_prompt is None:
        system_prompt = default_system_prompt(platform or overrides.get("platform", DEFAULT_PLATFORM))

    generator = GeneratorConfig(model_path=model_path, system_prompt=system_prompt, gpu_layers=gpu_layers)
    generator = replace(
        generator,
        **{key: overrides[key] for key in ("context_size", "max_tokens", "temperature", "clamp_rating") if key in overrides},
    )

    image: ImageConfig | None = None
    if images:
        image_values: dict[str, Any] = {
            "model_id": overrides.get("image_model_id"),
            "revision": overrides.get("image_revision"),
            "inference_steps": overrides.get("inference_steps"),
            "guidance_scale": overrides.get("guidance_scale"),
            "generation_size": overrides.get("generation_size"),
            "output_size": overrides.get("output_size"),
            "prompt_template": overrides.get("image_prompt_template"),
        }
        if image_model:
            image_values["model_id"] = image_model
        if image_revision:
            image_values["revision"] = image_revision
        image = ImageConfig(**{key: value for key, value in image_values.items() if value is not None})

    if isolate_image_failures is None:
        isolate_image_failures = bool(overrides.get("isolate_image_failures", False))

    return RunConfig(
        input_dir=input_dir,
        output_dir=output_dir,
        generator=generator,
        image=image,
        isolate_image_failures=isolate_image_failures,
    )
