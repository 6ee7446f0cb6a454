"""Run orchestrator: text pass, optional image pass, then one gamelist write.

A run moves through these states, strictly in order:

    IDLE -> DIRECTORY_PREPARED -> GENERATOR_READY -> TEXT_PASS_RUNNING
         -> TEXT_PASS_COMPLETE [-> IMAGE_PASS_RUNNING -> IMAGE_PASS_COMPLETE]
         -> SERIALIZED -> DONE

Only the text pass isolates failures per ROM file. The image pass does so
only when ``isolate_image_failures`` is set; otherwise the first failed
cover aborts the run before anything is serialized.
"""

from enum import Enum
from pathlib import Path

import structlog

from ..models.config import ImageConfig, RunConfig
from ..models.game import GameRecord
from ..models.report import ItemFailure, ItemResult, RunReport
from .errors import ImageGenerationError
from .filesystem import IMAGES_DIRECTORY, FileSystemService
from .gamelist_writer import GamelistWriter
from .image_generator import ImageGenerator, build_cover_prompt, cover_file_name, pixels_to_image
from .metadata_generator import MetadataGenerator, build_file_label

log = structlog.stdlib.get_logger()


class RunState(Enum):
    """Lifecycle states of a gamelist run."""
    IDLE = "idle"
    DIRECTORY_PREPARED = "directory_prepared"
    GENERATOR_READY = "generator_ready"
    TEXT_PASS_RUNNING = "text_pass_running"
    TEXT_PASS_COMPLETE = "text_pass_complete"
    IMAGE_PASS_RUNNING = "image_pass_running"
    IMAGE_PASS_COMPLETE = "image_pass_complete"
    SERIALIZED = "serialized"
    DONE = "done"


class RunOrchestrator:
    """Drives one run from an input ROM folder to ``gamelist.xml``."""

    def __init__(
        self,
        config: RunConfig,
        filesystem: FileSystemService,
        metadata_generator: MetadataGenerator,
        image_generator: ImageGenerator | None = None,
        writer: GamelistWriter | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Run settings
            filesystem: File system service for directories and writes
            metadata_generator: Unopened metadata generator; opened and closed by the run
            image_generator: Unopened image generator, or None to skip the image pass
            writer: Gamelist serializer (defaults to one sharing ``filesystem``)
        """
        if image_generator is not None and config.image is None:
            raise ValueError("image_generator given but the run has no image settings")

        self.config = config
        self.filesystem = filesystem
        self.metadata_generator = metadata_generator
        self.image_generator = image_generator
        self.writer = writer or GamelistWriter(filesystem)
        self._state = RunState.IDLE

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def images_enabled(self) -> bool:
        return self.image_generator is not None

    def _transition(self, state: RunState) -> None:
        log.debug("Run state changed", previous=self._state.value, state=state.value)
        self._state = state

    async def run(self) -> RunReport:
        """Execute the run.

        Returns:
            Report with the final game list and every per-item failure

        Raises:
            AppError: On any failure outside per-item text generation
        """
        report = RunReport()
        output_dir = self.config.output_dir

        self.filesystem.prepare_output_directory(output_dir, with_media=self.images_enabled)
        self._transition(RunState.DIRECTORY_PREPARED)

        report.games = await self._run_text_pass(report)

        if self.image_generator is not None and self.config.image is not None:
            await self._run_image_pass(self.image_generator, self.config.image, report)

        self.writer.write(report.games, output_dir)
        self._transition(RunState.SERIALIZED)

        self._transition(RunState.DONE)
        report.final_state = self._state.value
        log.info("Run complete", **report.summary())
        return report

    async def _run_text_pass(self, report: RunReport) -> list[GameRecord]:
        games: list[GameRecord] = []

        await self.metadata_generator.open()
        self._transition(RunState.GENERATOR_READY)
        try:
            rom_files = self.filesystem.list_rom_files(self.config.input_dir)
            self._transition(RunState.TEXT_PASS_RUNNING)

            for rom_file in rom_files:
                result = await self._generate_record(rom_file)
                report.results.append(result)
                if result.record is not None:
                    games.append(result.record)
        finally:
            # Must happen before any image pipeline is loaded
            await self.metadata_generator.close()

        self._transition(RunState.TEXT_PASS_COMPLETE)
        log.info("Text pass complete", games=len(games), skipped=report.skipped)
        return games

    async def _generate_record(self, rom_file: Path) -> ItemResult:
        file_name = rom_file.name
        log.info("Starting rom file", file=file_name)
        try:
            record = await self.metadata_generator.generate(build_file_label(file_name))
            if self.images_enabled:
                record.source_path = str(rom_file)
            return ItemResult(file_name=file_name, record=record)
        except Exception as e:
            log.error(
                "Failed to generate game metadata",
                file=file_name,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return ItemResult(
                file_name=file_name,
                failure=ItemFailure.from_exception(file_name, "text", e),
            )
        finally:
            log.info("Finished rom file", file=file_name)

    async def _run_image_pass(
        self,
        image_generator: ImageGenerator,
        image_config: ImageConfig,
        report: RunReport,
    ) -> None:
        async with image_generator:
            self._transition(RunState.IMAGE_PASS_RUNNING)
            for record in report.games:
                if not self.config.isolate_image_failures:
                    await self._render_cover(image_generator, image_config, record)
                    continue

                try:
                    await self._render_cover(image_generator, image_config, record)
                except Exception as e:
                    log.error(
                        "Failed to generate cover image",
                        game=record.name,
                        error=str(e),
                        error_type=type(e).__name__,
                        exc_info=True,
                    )
                    report.image_failures.append(
                        ItemFailure.from_exception(self._file_name_for(record), "image", e)
                    )

        self._transition(RunState.IMAGE_PASS_COMPLETE)
        log.info("Image pass complete", images=len(report.games) - len(report.image_failures))

    async def _render_cover(
        self,
        image_generator: ImageGenerator,
        image_config: ImageConfig,
        record: GameRecord,
    ) -> None:
        log.info("Generating cover image", game=record.name)
        prompt = build_cover_prompt(record, image_config.prompt_template)
        try:
            pixels = await image_generator.generate(prompt)
        except ImageGenerationError as e:
            raise ImageGenerationError(
                f"Cover generation failed for {record.name}: {e.message}",
                game_name=record.name,
                original_error=e.original_error or e,
            ) from e
        image = pixels_to_image(pixels, image_config.output_size)

        file_name = cover_file_name(record.name)
        self.filesystem.write_image(image, self.config.output_dir / IMAGES_DIRECTORY / file_name)
        record.image_path = f"./{IMAGES_DIRECTORY.as_posix()}/{file_name}"

    @staticmethod
    def _file_name_for(record: GameRecord) -> str:
        if record.source_path:
            return Path(record.source_path).name
        return record.name
