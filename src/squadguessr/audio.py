"""Sound effect loading and playback."""

from __future__ import annotations

from pathlib import Path
import logging

import pygame

logger = logging.getLogger(__name__)

SOUND_FILES = {
    "menu": "menu.wav",
    "guess": "guess.wav",
    "miss": "miss.wav",
    "tick": "tick.wav",
    "record": "record.wav",
}


class AudioManager:
    """Round feedback cues. Missing files or a missing mixer make playback a no-op."""

    def __init__(self, sounds_dir: Path) -> None:
        self.sounds_dir = sounds_dir
        self.sound_enabled = False
        self.muted = False
        self.sounds: dict[str, pygame.mixer.Sound] = {}
        try:
            pygame.mixer.init()
            self.sound_enabled = True
        except pygame.error as exc:
            logger.info("Audio disabled: %s", exc)
            self.sound_enabled = False

    def load_assets(self) -> None:
        """Load available sound files from the assets folder."""
        if not self.sound_enabled:
            return
        for key, filename in SOUND_FILES.items():
            path = self.sounds_dir / filename
            if not path.exists():
                continue
            try:
                self.sounds[key] = pygame.mixer.Sound(str(path))
            except pygame.error as exc:
                logger.warning("Could not load %s: %s", path, exc)

    def set_volume(self, master: float, sfx: float) -> None:
        level = max(0.0, min(1.0, master * sfx))
        for sound in self.sounds.values():
            sound.set_volume(level)

    def play(self, key: str) -> None:
        if not self.sound_enabled or self.muted:
            return
        sound = self.sounds.get(key)
        if sound:
            sound.play()
