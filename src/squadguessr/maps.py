"""Read-only map reference data."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator
import logging

from .errors import InvalidMapMetadata, UnknownMap
from .utils import MINIMAP_PIXELS, Point, load_json

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MapMetadata:
    """World and display extents of one playable map."""

    id: str
    name: str
    world_size: Point
    display_size: float = MINIMAP_PIXELS
    image_ref: str | None = None

    def __post_init__(self) -> None:
        width, height = self.world_size
        if width <= 0 or height <= 0:
            raise InvalidMapMetadata(f"{self.id}: world size must be positive, got {self.world_size}")
        if self.display_size <= 0:
            raise InvalidMapMetadata(f"{self.id}: display size must be positive, got {self.display_size}")

    @property
    def size(self) -> float:
        """Horizontal world extent, the reference for score scaling."""
        return self.world_size[0]


# (id, display name, world width, world height)
BUILTIN_MAPS: tuple[tuple[str, str, float, float], ...] = (
    ("albasrah", "Al Basrah", 3200, 3200),
    ("anvil", "Anvil", 2000, 2000),
    ("belaya", "Belaya", 3904, 3904),
    ("blackcoast", "Black Coast", 3048, 3048),
    ("chora", "Chora", 4064, 4064),
    ("fallujah", "Fallujah", 3048, 3048),
    ("foolsroad", "Fool's Road", 1800, 1800),
    ("goosebay", "Goose Bay", 3200, 3200),
    ("gorodok", "Gorodok", 4340, 4340),
    ("harju", "Harju", 3200, 3200),
    ("kamdesh", "Kamdesh", 4032, 4032),
    ("kohat", "Kohat", 4017, 4017),
    ("kokan", "Kokan", 2496, 2496),
    ("lashkar", "Lashkar", 4000, 4000),
    ("logar", "Logar", 1800, 1800),
    ("manicouagan", "Manicouagan", 4250, 4250),
    ("mestia", "Mestia", 2400, 2400),
    ("mutaha", "Mutaha", 4032, 4032),
    ("narva", "Narva", 2800, 2800),
    ("sanxian", "Sanxian", 4100, 4100),
    ("skorpo", "Skorpo", 7600, 7600),
    ("sumari", "Sumari", 1300, 1300),
    ("tallil", "Tallil", 4680, 4680),
    ("yehorivka", "Yehorivka", 5000, 5000),
)


class MapRegistry:
    """Case-insensitive lookup of map metadata by id."""

    def __init__(self, maps: Iterable[MapMetadata]) -> None:
        self._maps: dict[str, MapMetadata] = {}
        for meta in maps:
            self._maps[meta.id.lower()] = meta

    @classmethod
    def builtin(cls, display_size: float = MINIMAP_PIXELS) -> "MapRegistry":
        return cls(
            MapMetadata(id=map_id, name=name, world_size=(width, height), display_size=display_size)
            for map_id, name, width, height in BUILTIN_MAPS
        )

    @classmethod
    def from_json(cls, path: Path, display_size: float = MINIMAP_PIXELS) -> "MapRegistry":
        """Load maps from a JSON list of ``{id, name, size, sizeY?, image?}`` rows.

        Rows that fail validation are skipped with a warning so one bad entry
        does not hide the rest of the catalogue.
        """
        rows = load_json(path, [])
        maps: list[MapMetadata] = []
        for row in rows:
            try:
                width = float(row["size"])
                height = float(row.get("sizeY", width))
                maps.append(
                    MapMetadata(
                        id=str(row["id"]),
                        name=str(row.get("name", row["id"])),
                        world_size=(width, height),
                        display_size=display_size,
                        image_ref=row.get("image"),
                    )
                )
            except (KeyError, TypeError, ValueError, InvalidMapMetadata) as exc:
                logger.warning("Skipping map entry %r: %s", row, exc)
        logger.info("Loaded %d maps from %s", len(maps), path)
        return cls(maps)

    def get(self, map_id: str) -> MapMetadata:
        """Return metadata for ``map_id`` or raise :class:`UnknownMap`."""
        try:
            return self._maps[map_id.lower()]
        except (KeyError, AttributeError):
            raise UnknownMap(map_id) from None

    def __contains__(self, map_id: object) -> bool:
        return isinstance(map_id, str) and map_id.lower() in self._maps

    def __iter__(self) -> Iterator[MapMetadata]:
        return iter(self._maps.values())

    def __len__(self) -> int:
        return len(self._maps)
