"""Shared constants and utility helpers for SquadGuessr."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Tuple
import json
import logging

logger = logging.getLogger(__name__)

SCREEN_WIDTH = 1280
SCREEN_HEIGHT = 800
FPS = 60

MINIMAP_PIXELS = 256
MINIMAP_RECT = (620, 110, 620, 620)
HINT_RECT = (40, 110, 540, 540)

BG_COLOR = (18, 20, 24)
PANEL_COLOR = (32, 36, 44)
GRID_COLOR = (52, 60, 72)
TEXT_COLOR = (232, 236, 240)
MUTED_COLOR = (140, 148, 160)
SHADOW_COLOR = (8, 9, 12)

ACCENT = (255, 196, 64)
GREEN = (98, 226, 128)
RED = (255, 77, 77)
BLUE = (90, 170, 255)

Point = Tuple[float, float]

DATA_DIR = Path(".squadguessr")
SETTINGS_FILE = DATA_DIR / "settings.json"
SCORES_FILE = DATA_DIR / "scores.json"


def ensure_data_dirs() -> None:
    """Create the data directory for save files."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)


def clamp(value: float, minimum: float, maximum: float) -> float:
    """Clamp a value into a closed interval."""
    return max(minimum, min(maximum, value))


def load_json(path: Path, default: Any) -> Any:
    """Load JSON data, returning default when missing or malformed."""
    if not path.exists():
        return default
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Ignoring unreadable file %s: %s", path, exc)
        return default


def save_json(path: Path, payload: Any) -> None:
    """Save JSON data with deterministic formatting."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, sort_keys=True)
