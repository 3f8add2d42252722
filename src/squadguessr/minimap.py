"""Minimap widget: basemap drawing and screen <-> display coordinate mapping."""

from __future__ import annotations

from pathlib import Path
import logging

import pygame

from .maps import MapMetadata
from .utils import ACCENT, BLUE, GRID_COLOR, MUTED_COLOR, PANEL_COLOR, RED, Point

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = (".webp", ".png", ".jpg")
GRID_DIVISIONS = 10


class Minimap:
    """Square minimap occupying ``rect`` on screen.

    Display coordinates span ``[0, extent]`` horizontally and
    ``[-extent, 0]`` vertically, with the top-left corner at ``(0, 0)``.
    """

    def __init__(self, rect: pygame.Rect, extent: float, maps_dir: Path) -> None:
        self.rect = rect
        self.extent = extent
        self.maps_dir = maps_dir
        self.meta: MapMetadata | None = None
        self._images: dict[str, pygame.Surface | None] = {}

    def set_map(self, meta: MapMetadata) -> None:
        self.meta = meta
        self.extent = meta.display_size
        if meta.id not in self._images:
            self._images[meta.id] = self._load_basemap(meta)

    def _load_basemap(self, meta: MapMetadata) -> pygame.Surface | None:
        stem = meta.image_ref or meta.id
        for suffix in IMAGE_SUFFIXES:
            path = self.maps_dir / f"{stem}{suffix}"
            if not path.exists():
                continue
            try:
                image = pygame.image.load(str(path))
            except pygame.error as exc:
                logger.warning("Could not load basemap %s: %s", path, exc)
                return None
            return pygame.transform.smoothscale(image, self.rect.size)
        logger.debug("No basemap image for %s", meta.id)
        return None

    def contains(self, screen_pos: tuple[int, int]) -> bool:
        return self.rect.collidepoint(screen_pos)

    def to_display(self, screen_pos: tuple[int, int]) -> Point:
        x = (screen_pos[0] - self.rect.x) / self.rect.width * self.extent
        y = -(screen_pos[1] - self.rect.y) / self.rect.height * self.extent
        return (x, y)

    def to_screen(self, display: Point) -> tuple[int, int]:
        x = self.rect.x + display[0] / self.extent * self.rect.width
        y = self.rect.y - display[1] / self.extent * self.rect.height
        return (round(x), round(y))

    def render(
        self,
        surface: pygame.Surface,
        show_grid: bool,
        guess: Point | None = None,
        solution: Point | None = None,
        label_font: pygame.font.Font | None = None,
        label: str = "",
        meta: MapMetadata | None = None,
    ) -> None:
        """Draw the basemap and markers; ``meta`` overrides the current map."""
        meta = meta or self.meta
        image = self._images.get(meta.id) if meta else None
        if image is not None:
            surface.blit(image, self.rect.topleft)
        else:
            pygame.draw.rect(surface, PANEL_COLOR, self.rect)
        if show_grid:
            self._draw_grid(surface)
        pygame.draw.rect(surface, MUTED_COLOR, self.rect, width=2)

        if guess is not None and solution is not None:
            pygame.draw.line(surface, RED, self.to_screen(guess), self.to_screen(solution), 3)
        if guess is not None:
            self._draw_marker(surface, self.to_screen(guess), BLUE)
        if solution is not None:
            self._draw_marker(surface, self.to_screen(solution), ACCENT)
            if label and label_font is not None:
                text = label_font.render(label, True, ACCENT)
                x, y = self.to_screen(solution)
                surface.blit(text, (x - text.get_width() // 2, y - 44))

    def _draw_grid(self, surface: pygame.Surface) -> None:
        step_x = self.rect.width / GRID_DIVISIONS
        step_y = self.rect.height / GRID_DIVISIONS
        for i in range(1, GRID_DIVISIONS):
            x = round(self.rect.x + i * step_x)
            y = round(self.rect.y + i * step_y)
            pygame.draw.line(surface, GRID_COLOR, (x, self.rect.top), (x, self.rect.bottom))
            pygame.draw.line(surface, GRID_COLOR, (self.rect.left, y), (self.rect.right, y))

    @staticmethod
    def _draw_marker(surface: pygame.Surface, pos: tuple[int, int], color: tuple[int, int, int]) -> None:
        x, y = pos
        pygame.draw.polygon(surface, color, [(x, y), (x - 9, y - 22), (x + 9, y - 22)])
        pygame.draw.circle(surface, color, (x, y - 24), 10)
        pygame.draw.circle(surface, (20, 20, 20), (x, y - 24), 4)
