"""Best score per game mode, persisted as JSON."""

from __future__ import annotations

from pathlib import Path
import logging

from .utils import load_json, save_json

logger = logging.getLogger(__name__)


def score_key(mode: str) -> str:
    return f"top_score_{mode}"


class HighScoreStore:
    """Key-value record of the best score per mode.

    Values only ever grow: :meth:`write_if_greater` is the single mutation
    path, apart from the zero default persisted on the first read.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def _load(self) -> dict[str, int]:
        raw = load_json(self.path, {})
        if not isinstance(raw, dict):
            return {}
        scores: dict[str, int] = {}
        for key, value in raw.items():
            try:
                scores[str(key)] = int(value)
            except (TypeError, ValueError):
                continue
        return scores

    def read(self, mode: str) -> int:
        """Return the best score for ``mode``, persisting 0 for unseen modes."""
        scores = self._load()
        key = score_key(mode)
        if key not in scores:
            scores[key] = 0
            save_json(self.path, scores)
        return scores[key]

    def read_all(self, modes: list[str]) -> dict[str, int]:
        return {mode: self.read(mode) for mode in modes}

    def write_if_greater(self, mode: str, candidate: int) -> bool:
        """Store ``candidate`` if it beats the current record; return whether it did."""
        scores = self._load()
        key = score_key(mode)
        current = scores.get(key, 0)
        if candidate <= current:
            return False
        scores[key] = int(candidate)
        save_json(self.path, scores)
        logger.info("New %s record: %d (was %d)", mode, candidate, current)
        return True
