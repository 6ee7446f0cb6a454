"""File system service for output preparation, ROM discovery and atomic writes."""

import shutil
from pathlib import Path

import structlog
from PIL import Image

from .errors import FileSystemError

log = structlog.stdlib.get_logger()

ROM_EXTENSION = ".zip"
MEDIA_DIRECTORY = Path("media")
IMAGES_DIRECTORY = MEDIA_DIRECTORY / "images"


class FileSystemService:
    """Service for file system operations used by a gamelist run."""

    def prepare_output_directory(self, path: Path, with_media: bool = False) -> None:
        """Recreate the output directory from scratch.

        Any existing directory at ``path`` is removed together with its
        contents. With ``with_media`` the ``media/images`` tree is created too.

        Args:
            path: Output directory
            with_media: Also create the media and image subdirectories

        Raises:
            FileSystemError: If the path is taken by a non-directory or cannot be created
        """
        if path.exists() and not path.is_dir():
            log.error("Output path exists but is not a directory", path=str(path))
            raise FileSystemError(
                f"Output path exists but is not a directory: {path}",
                original_error=FileExistsError(str(path)),
                path=str(path),
                operation="prepare_output_directory",
            )

        try:
            if path.is_dir():
                log.info("Deleting existing output", path=str(path))
                shutil.rmtree(path)
                log.info("Deleted existing output", path=str(path))

            path.mkdir(parents=True)
            if with_media:
                (path / IMAGES_DIRECTORY).mkdir(parents=True)
        except OSError as e:
            log.error("Failed to prepare output directory", path=str(path), error=str(e))
            raise FileSystemError(
                f"Could not prepare output directory: {path}",
                original_error=e,
                path=str(path),
                operation="prepare_output_directory",
            ) from e

        log.info("Created output directory", path=str(path), with_media=with_media)

    def list_rom_files(self, directory: Path, extension: str = ROM_EXTENSION) -> list[Path]:
        """List ROM archives in a directory.

        Only regular files whose name ends with ``extension`` are returned.
        The comparison is case-sensitive. Results are sorted by name.

        Raises:
            FileSystemError: If the directory does not exist or cannot be read
        """
        if not directory.exists():
            log.error("Input directory not found", directory=str(directory))
            raise FileSystemError(
                f"Input directory not found: {directory}",
                original_error=FileNotFoundError(str(directory)),
                path=str(directory),
                operation="list_rom_files",
            )
        if not directory.is_dir():
            log.error("Input path is not a directory", directory=str(directory))
            raise FileSystemError(
                f"Input path is not a directory: {directory}",
                path=str(directory),
                operation="list_rom_files",
            )

        log.info("Reading rom files", directory=str(directory))
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
            roms = [p for p in entries if p.name.endswith(extension) and p.is_file()]
        except OSError as e:
            log.error("Failed to list rom files", directory=str(directory), error=str(e))
            raise FileSystemError(
                f"Could not read input directory: {directory}",
                original_error=e,
                path=str(directory),
                operation="list_rom_files",
            ) from e

        log.info("Read rom files", directory=str(directory), count=len(roms))
        return roms

    def write_bytes(self, data: bytes, path: Path) -> None:
        """Write bytes atomically by way of a temporary sibling file.

        Raises:
            OSError: If the file cannot be written
        """
        temp_path = path.with_suffix(path.suffix + ".tmp")
        log.debug("Writing file", path=str(path), temp_path=str(temp_path), size=len(data))
        try:
            temp_path.write_bytes(data)
            temp_path.replace(path)
        except OSError as e:
            log.error("Failed to write file", path=str(path), error=str(e))
            temp_path.unlink(missing_ok=True)
            raise

    def write_image(self, image: Image.Image, path: Path) -> None:
        """Encode an image as PNG and write it atomically."""
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            image.save(temp_path, format="PNG")
            temp_path.replace(path)
        except OSError as e:
            log.error("Failed to write image", path=str(path), error=str(e))
            temp_path.unlink(missing_ok=True)
            raise

        log.info("Image written", path=str(path), width=image.width, height=image.height)
