"""Main menu: mode cards with their countdown and best score."""

from __future__ import annotations

from dataclasses import dataclass
import pygame

from .settings import GameMode
from .utils import ACCENT, BG_COLOR, MUTED_COLOR, PANEL_COLOR, SHADOW_COLOR, TEXT_COLOR


@dataclass(slots=True)
class MenuItem:
    """Single selectable menu row."""

    label: str
    action: str
    mode: GameMode | None = None


class Menu:
    """Simple vertical keyboard-driven menu."""

    def __init__(self, title: str, items: list[MenuItem]) -> None:
        self.title = title
        self.items = items
        self.selected_index = 0

    def move(self, delta: int) -> None:
        """Move menu selection by delta."""
        self.selected_index = (self.selected_index + delta) % len(self.items)

    def current(self) -> MenuItem:
        return self.items[self.selected_index]

    def render(
        self,
        surface: pygame.Surface,
        title_font: pygame.font.Font,
        body_font: pygame.font.Font,
        small_font: pygame.font.Font,
        details: dict[str, str] | None = None,
    ) -> None:
        """Draw the menu; ``details`` adds a right-aligned note per action."""
        details = details or {}
        surface.fill(BG_COLOR)
        title_shadow = title_font.render(self.title, True, SHADOW_COLOR)
        title = title_font.render(self.title, True, ACCENT)
        surface.blit(title_shadow, (surface.get_width() // 2 - title.get_width() // 2 + 3, 85))
        surface.blit(title, (surface.get_width() // 2 - title.get_width() // 2, 82))

        width = 560
        left = surface.get_width() // 2 - width // 2
        start_y = 220
        for idx, item in enumerate(self.items):
            selected = idx == self.selected_index
            row = pygame.Rect(left, start_y + idx * 64, width, 52)
            pygame.draw.rect(surface, PANEL_COLOR, row, border_radius=8)
            if selected:
                pygame.draw.rect(surface, ACCENT, row, width=2, border_radius=8)
            label = body_font.render(item.label, True, ACCENT if selected else TEXT_COLOR)
            surface.blit(label, (row.x + 18, row.centery - label.get_height() // 2))
            note = details.get(item.action)
            if note:
                text = small_font.render(note, True, MUTED_COLOR)
                surface.blit(text, (row.right - text.get_width() - 18, row.centery - text.get_height() // 2))
