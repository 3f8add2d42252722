"""Conversion between world coordinates and minimap display coordinates.

Display space follows the minimap convention: X grows right from 0 to the
display extent, Y is non-positive and grows *down* from 0 to ``-extent``.
World coordinates use the same orientation, so conversions are plain
per-axis multiplications. Nothing is rounded here.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidMapMetadata
from .maps import MapMetadata
from .utils import Point, clamp


@dataclass(frozen=True, slots=True)
class CoordinateTransform:
    """Scale factors between one map's world space and display space."""

    game_to_display: float
    game_to_display_y: float
    display_to_game: float
    display_to_game_y: float
    extent: float

    @classmethod
    def for_map(cls, meta: MapMetadata) -> "CoordinateTransform":
        width, height = meta.world_size
        extent = meta.display_size
        if width <= 0 or height <= 0 or extent <= 0:
            raise InvalidMapMetadata(f"{meta.id}: sizes must be positive")
        return cls(
            game_to_display=extent / width,
            game_to_display_y=extent / height,
            display_to_game=width / extent,
            display_to_game_y=height / extent,
            extent=extent,
        )

    def clamp_display(self, point: Point) -> Point:
        """Force a display point inside ``[0, extent] x [-extent, 0]``."""
        x, y = point
        return (clamp(x, 0.0, self.extent), clamp(y, -self.extent, 0.0))

    def to_display(self, world: Point) -> Point:
        return (world[0] * self.game_to_display, world[1] * self.game_to_display_y)

    def to_world(self, display: Point) -> Point:
        return (display[0] * self.display_to_game, display[1] * self.display_to_game_y)

    def guess_to_world(self, display: Point) -> Point:
        """Clamp a player's display-space guess and convert it to world space."""
        return self.to_world(self.clamp_display(display))
