"""Main entry point for the gamelist generator.

This module provides the command-line entry point with:
- Command-line argument parsing
- Service construction from the merged configuration
- Exit codes for completed, failed and interrupted runs
"""

import argparse
import asyncio
import sys
from collections.abc import Sequence
from pathlib import Path

import structlog

from llm_gamelist import __version__
from llm_gamelist.models import RunConfig
from llm_gamelist.services.config import ConfigurationService, build_run_config
from llm_gamelist.services.errors import describe_error
from llm_gamelist.services.filesystem import FileSystemService
from llm_gamelist.services.image_generator import DiffusionImageGenerator
from llm_gamelist.services.logging import setup_logging
from llm_gamelist.services.metadata_generator import LlamaMetadataGenerator
from llm_gamelist.services.orchestrator import RunOrchestrator


log = structlog.stdlib.get_logger()


class ParsedArgs:
    """Type-safe container for parsed command-line arguments."""

    def __init__(
        self,
        model_path: Path,
        input_dir: Path,
        out_dir: Path,
        gpu_layers: int,
        images: bool,
        image_model: str | None,
        image_revision: str | None,
        isolate_image_failures: bool | None,
        platform: str | None,
        config: Path | None,
        log_level: str,
        log_dir: Path | None,
    ) -> None:
        self.model_path: Path = model_path
        self.input_dir: Path = input_dir
        self.out_dir: Path = out_dir
        self.gpu_layers: int = gpu_layers
        self.images: bool = images
        self.image_model: str | None = image_model
        self.image_revision: str | None = image_revision
        self.isolate_image_failures: bool | None = isolate_image_failures
        self.platform: str | None = platform
        self.config: Path | None = config
        self.log_level: str = log_level
        self.log_dir: Path | None = log_dir


def parse_arguments(argv: Sequence[str] | None = None) -> ParsedArgs:
    """Parse command-line arguments.

    Args:
        argv: Arguments without the program name (defaults to sys.argv)

    Returns:
        Parsed arguments container
    """
    parser = argparse.ArgumentParser(
        prog="llm-gamelist",
        description="Invent EmulationStation gamelist metadata for a folder of ROM archives with a local LLM",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  llm-gamelist -m llama-2-7b.Q4_K_M.gguf -i ./roms -o ./out
  llm-gamelist -m model.gguf -i ./roms -o ./out -g 35 --images
  llm-gamelist -m model.gguf -i ./roms -o ./out --config ./gamelist.json
        """
    )

    _ = parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    _ = parser.add_argument(
        "-m", "--modelPath",
        dest="model_path",
        type=Path,
        required=True,
        help="Path to the GGUF language model file"
    )

    _ = parser.add_argument(
        "-i", "--inputDir",
        dest="input_dir",
        type=Path,
        required=True,
        help="Directory containing .zip ROM files"
    )

    _ = parser.add_argument(
        "-o", "--outDir",
        dest="out_dir",
        type=Path,
        required=True,
        help="Output directory; deleted and recreated on every run"
    )

    _ = parser.add_argument(
        "-g", "--gpuLayers",
        dest="gpu_layers",
        type=int,
        default=1,
        help="Number of model layers to offload to the GPU (default: 1)"
    )

    _ = parser.add_argument(
        "--images",
        action="store_true",
        help="Also generate cover art with a diffusion model"
    )

    _ = parser.add_argument(
        "--imageModel",
        dest="image_model",
        default=None,
        help="Diffusion model identifier (default: stabilityai/stable-diffusion-2-1)"
    )

    _ = parser.add_argument(
        "--imageRevision",
        dest="image_revision",
        default=None,
        help="Diffusion model revision (default: fp16)"
    )

    _ = parser.add_argument(
        "--isolateImageFailures",
        dest="isolate_image_failures",
        action="store_true",
        default=None,
        help="Skip games whose cover art fails instead of aborting the run"
    )

    _ = parser.add_argument(
        "--platform",
        default=None,
        help="Platform named in the system prompt (default: North American Sega Genesis)"
    )

    _ = parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON file with generator and image overrides"
    )

    _ = parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set the logging level (default: INFO)"
    )

    _ = parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for log files (default: console only)"
    )

    ns = parser.parse_args(argv)

    return ParsedArgs(
        model_path=ns.model_path,
        input_dir=ns.input_dir,
        out_dir=ns.out_dir,
        gpu_layers=ns.gpu_layers,
        images=bool(ns.images),
        image_model=ns.image_model,
        image_revision=ns.image_revision,
        isolate_image_failures=ns.isolate_image_failures,
        platform=ns.platform,
        config=ns.config,
        log_level=ns.log_level,
        log_dir=ns.log_dir,
    )


def load_run_config(args: ParsedArgs) -> RunConfig:
    """Merge the optional config file with command-line arguments."""
    overrides = ConfigurationService(args.config).load_overrides()
    return build_run_config(
        model_path=args.model_path,
        input_dir=args.input_dir,
        output_dir=args.out_dir,
        gpu_layers=args.gpu_layers,
        images=args.images,
        image_model=args.image_model,
        image_revision=args.image_revision,
        isolate_image_failures=args.isolate_image_failures,
        platform=args.platform,
        overrides=overrides,
    )


def create_orchestrator(config: RunConfig) -> RunOrchestrator:
    """Wire the production services for a run."""
    filesystem = FileSystemService()
    image_generator = DiffusionImageGenerator(config.image) if config.image is not None else None
    return RunOrchestrator(
        config=config,
        filesystem=filesystem,
        metadata_generator=LlamaMetadataGenerator(config.generator),
        image_generator=image_generator,
    )


def run(args: ParsedArgs) -> int:
    """Run the generator and map the outcome to an exit code.

    Returns:
        0 when the gamelist was written, 1 on a fatal error, 130 on interrupt
    """
    try:
        config = load_run_config(args)
        orchestrator = create_orchestrator(config)
        report = asyncio.run(orchestrator.run())

        for failure in report.failures:
            log.warning(
                "Skipped item",
                file=failure.file_name,
                stage=failure.stage,
                error_type=failure.error_type,
                error=failure.message,
            )
        exit_code = 0

    except KeyboardInterrupt:
        log.info("Run interrupted by user")
        exit_code = 130  # Standard exit code for SIGINT

    except Exception as e:
        log.error("Fatal error", error=str(e), error_type=type(e).__name__, exc_info=True)
        print(f"Fatal error: {describe_error(e)}", file=sys.stderr)
        exit_code = 1

    return exit_code


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point for the command line."""
    args = parse_arguments(argv)

    _ = setup_logging(
        log_level=args.log_level,
        log_dir=args.log_dir
    )

    log.info(
        "Starting gamelist generator",
        version=__version__,
        model_path=str(args.model_path),
        input_dir=str(args.input_dir),
        out_dir=str(args.out_dir),
        gpu_layers=args.gpu_layers,
        images=args.images,
    )

    exit_code = run(args)

    log.info("Finished", exit_code=exit_code)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
