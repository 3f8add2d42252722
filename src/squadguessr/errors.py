"""Exception hierarchy for the game core."""

from __future__ import annotations


class SquadGuessrError(Exception):
    """Base class for all game errors."""


class InvalidMapMetadata(SquadGuessrError):
    """Map metadata has a zero or negative size."""


class UnknownMap(SquadGuessrError):
    """A map id is not present in the registry."""

    def __init__(self, map_id: str) -> None:
        super().__init__(f"Unknown map: {map_id!r}")
        self.map_id = map_id


class RoundFetchFailed(SquadGuessrError):
    """The round batch could not be retrieved or decoded.

    Recoverable: the player may retry by starting a new game.
    """


class OrderingError(SquadGuessrError):
    """A session operation was invoked out of turn."""


class MalformedRound(SquadGuessrError):
    """A round record is missing its map or solution coordinates."""


class InvalidGuess(SquadGuessrError):
    """A guess of the wrong kind was submitted for the active mode."""
