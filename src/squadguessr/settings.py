"""Settings persistence and runtime configuration."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
import logging

from .utils import MINIMAP_PIXELS, SETTINGS_FILE, ensure_data_dirs, load_json, save_json

logger = logging.getLogger(__name__)


class GameMode(str, Enum):
    """Available game modes."""

    CLASSIC = "classic"
    TIME_ATTACK = "time_attack"
    MAP_FINDER = "map_finder"

    @property
    def guesses_by_name(self) -> bool:
        """Return whether rounds are answered by typing the map name."""
        return self is GameMode.MAP_FINDER

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


DEFAULT_MODE_TIMERS: dict[GameMode, int] = {
    GameMode.CLASSIC: 0,
    GameMode.TIME_ATTACK: 30,
    GameMode.MAP_FINDER: 0,
}


@dataclass(slots=True)
class DisplaySettings:
    """Display-related options."""

    fullscreen: bool = False
    show_grid: bool = True
    minimap_pixels: int = MINIMAP_PIXELS


@dataclass(slots=True)
class NetworkSettings:
    """Where round batches and hint images come from."""

    api_base_url: str = "http://127.0.0.1:8080"
    request_timeout: float = 10.0


@dataclass(slots=True)
class GameSettings:
    """Persistent settings for the game."""

    master_volume: float = 0.8
    sfx_volume: float = 0.8
    disable_sounds: bool = False
    game_mode: GameMode = GameMode.CLASSIC
    round_count: int = 5
    mode_timers: dict[GameMode, int] = field(default_factory=lambda: dict(DEFAULT_MODE_TIMERS))
    display: DisplaySettings = field(default_factory=DisplaySettings)
    network: NetworkSettings = field(default_factory=NetworkSettings)

    def timer_for(self, mode: GameMode) -> int:
        """Return the per-round countdown in seconds for a mode (0 disables it)."""
        return max(0, int(self.mode_timers.get(mode, 0)))


class SettingsManager:
    """Load, save, and mutate game settings."""

    def __init__(self) -> None:
        ensure_data_dirs()
        self.settings = self.load()

    def load(self) -> GameSettings:
        """Load game settings from disk with safe defaults."""
        raw = load_json(SETTINGS_FILE, {})
        settings = GameSettings()

        settings.master_volume = float(raw.get("master_volume", settings.master_volume))
        settings.sfx_volume = float(raw.get("sfx_volume", settings.sfx_volume))
        settings.disable_sounds = bool(raw.get("disable_sounds", settings.disable_sounds))
        settings.round_count = max(1, int(raw.get("round_count", settings.round_count)))

        if raw.get("game_mode") in {e.value for e in GameMode}:
            settings.game_mode = GameMode(raw["game_mode"])

        timers = raw.get("mode_timers", {})
        for mode in GameMode:
            if mode.value in timers:
                settings.mode_timers[mode] = max(0, int(timers[mode.value]))

        display = raw.get("display", {})
        settings.display.fullscreen = bool(display.get("fullscreen", settings.display.fullscreen))
        settings.display.show_grid = bool(display.get("show_grid", settings.display.show_grid))
        settings.display.minimap_pixels = int(display.get("minimap_pixels", settings.display.minimap_pixels))

        network = raw.get("network", {})
        settings.network.api_base_url = str(network.get("api_base_url", settings.network.api_base_url))
        settings.network.request_timeout = float(
            network.get("request_timeout", settings.network.request_timeout)
        )
        logger.debug("Loaded settings from %s", SETTINGS_FILE)
        return settings

    def save(self) -> None:
        """Persist settings to disk."""
        payload = asdict(self.settings)
        payload["game_mode"] = self.settings.game_mode.value
        payload["mode_timers"] = {mode.value: seconds for mode, seconds in self.settings.mode_timers.items()}
        save_json(SETTINGS_FILE, payload)

    def set_mode(self, mode: GameMode) -> None:
        """Update game mode and persist settings."""
        self.settings.game_mode = mode
        self.save()

    def toggle_sounds(self) -> bool:
        """Flip the disable-sounds flag and persist settings."""
        self.settings.disable_sounds = not self.settings.disable_sounds
        self.save()
        return self.settings.disable_sounds

    def adjust_timer(self, mode: GameMode, delta: int) -> int:
        """Change a mode's countdown by delta seconds, never below zero."""
        seconds = max(0, self.settings.timer_for(mode) + delta)
        self.settings.mode_timers[mode] = seconds
        self.save()
        return seconds

    def adjust_volume(self, field_name: str, delta: float) -> None:
        """Adjust a volume setting and save."""
        value = float(getattr(self.settings, field_name))
        setattr(self.settings, field_name, max(0.0, min(1.0, value + delta)))
        self.save()
