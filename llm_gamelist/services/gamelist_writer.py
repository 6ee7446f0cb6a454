"""Serialize generated games to an EmulationStation gamelist.xml."""

from pathlib import Path

import structlog
from lxml import etree

from ..models.game import GameRecord, iter_xml_fields
from .errors import SerializationError
from .filesystem import FileSystemService

log = structlog.stdlib.get_logger()

GAMELIST_FILE_NAME = "gamelist.xml"
ROOT_TAG = "gameList"
GAME_TAG = "game"


def format_value(value: str | float | int) -> str:
    """Render a field value as element text."""
    if isinstance(value, float):
        return repr(value)
    return str(value)


class GamelistWriter:
    """Builds and writes the gamelist document. Write-only; nothing reads it back."""

    def __init__(self, filesystem: FileSystemService | None = None) -> None:
        self.filesystem = filesystem or FileSystemService()

    def build(self, games: list[GameRecord]) -> etree._Element:
        """Build the ``gameList`` element tree for a list of games."""
        root = etree.Element(ROOT_TAG)
        for record in games:
            game = etree.SubElement(root, GAME_TAG)
            for tag, value in iter_xml_fields(record):
                etree.SubElement(game, tag).text = format_value(value)
        return root

    def to_bytes(self, games: list[GameRecord]) -> bytes:
        return etree.tostring(
            self.build(games),
            xml_declaration=True,
            encoding="UTF-8",
            standalone=True,
            pretty_print=True,
        )

    def write(self, games: list[GameRecord], output_dir: Path) -> Path:
        """Write ``gamelist.xml`` into ``output_dir``.

        Returns:
            Path of the written document

        Raises:
            SerializationError: If the document cannot be built or written
        """
        path = output_dir / GAMELIST_FILE_NAME
        try:
            data = self.to_bytes(games)
            self.filesystem.write_bytes(data, path)
        except (OSError, ValueError) as e:
            log.error("Failed to write gamelist", path=str(path), error=str(e))
            raise SerializationError(
                "Could not write the gamelist document",
                path=str(path),
                original_error=e,
            ) from e

        log.info("Wrote gamelist", path=str(path), games=len(games), size=len(data))
        return path
