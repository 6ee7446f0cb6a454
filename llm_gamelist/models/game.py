"""Game-related data models."""

from dataclasses import dataclass, fields


@dataclass
class GameRecord:
    """Generated metadata for one ROM file.

    Field order is the order children are written to gamelist.xml.
    """
    source_path: str | None
    name: str
    description: str
    image_path: str | None
    rating: float
    release_date: str
    developer: str
    publisher: str
    genre: str
    players: int


# GameRecord attribute -> gamelist.xml element name
XML_TAGS: dict[str, str] = {
    "source_path": "path",
    "name": "name",
    "description": "desc",
    "image_path": "image",
    "rating": "rating",
    "release_date": "releasedate",
    "developer": "developer",
    "publisher": "publisher",
    "genre": "genre",
    "players": "players",
}


def iter_xml_fields(record: GameRecord) -> list[tuple[str, str | float | int]]:
    """Return (tag, value) pairs in declaration order, skipping unset fields."""
    pairs: list[tuple[str, str | float | int]] = []
    for f in fields(record):
        value = getattr(record, f.name)
        if value is None:
            continue
        pairs.append((XML_TAGS[f.name], value))
    return pairs
