"""Game session state machine: round sequencing, scoring and results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Protocol, Union
import asyncio
import logging

from .errors import InvalidGuess, OrderingError, RoundFetchFailed, SquadGuessrError
from .highscores import HighScoreStore
from .maps import MapMetadata, MapRegistry
from .rounds import Round, RoundSource, parse_rounds
from .scoring import (
    MISS_LABEL,
    format_distance,
    label_for_distance,
    scaled_steps,
    score_location,
    score_name,
)
from .settings import DEFAULT_MODE_TIMERS, GameMode
from .timer import RoundTimer
from .transform import CoordinateTransform
from .utils import Point

logger = logging.getLogger(__name__)


class Phase(Enum):
    """Lifecycle of a session."""

    IDLE = auto()
    PLAYING = auto()
    ROUND_RESOLVED = auto()
    FINISHED = auto()


@dataclass(frozen=True, slots=True)
class LocationGuess:
    """A marker placed on the minimap, in display coordinates."""

    display: Point


@dataclass(frozen=True, slots=True)
class NameGuess:
    """A typed map name."""

    text: str


Guess = Union[LocationGuess, NameGuess]


@dataclass(frozen=True, slots=True)
class RoundResult:
    """Everything the UI needs to reveal a resolved round."""

    index: int
    map_id: str
    map_name: str
    points: int
    guessed: bool
    timed_out: bool
    true_display: Point
    guess_display: Point | None
    distance: float | None
    distance_text: str
    label: str


@dataclass(frozen=True, slots=True)
class SessionSummary:
    """Final outcome of a finished session."""

    mode: GameMode
    total_score: int
    rounds: tuple[Round, ...]
    results: tuple[RoundResult, ...]
    previous_best: int
    new_record: bool


class SessionObserver(Protocol):
    """Rendering adapter notified of session transitions."""

    def round_loaded(self, index: int, total: int, round_: Round, meta: MapMetadata) -> None:
        ...

    def round_resolved(self, result: RoundResult) -> None:
        ...

    def timer_ticked(self, remaining: int) -> None:
        ...

    def session_finished(self, summary: SessionSummary) -> None:
        ...

    def session_failed(self, error: SquadGuessrError) -> None:
        ...


class NullObserver:
    """Observer that ignores every notification."""

    def round_loaded(self, index: int, total: int, round_: Round, meta: MapMetadata) -> None:
        pass

    def round_resolved(self, result: RoundResult) -> None:
        pass

    def timer_ticked(self, remaining: int) -> None:
        pass

    def session_finished(self, summary: SessionSummary) -> None:
        pass

    def session_failed(self, error: SquadGuessrError) -> None:
        pass


class GameSession:
    """One played game, from mode selection to results.

    Every mutation goes through ``start_new_game``, ``submit_guess``,
    ``advance_round`` and ``reset``. An operation that raises leaves the
    session exactly as it was before the call.
    """

    def __init__(
        self,
        round_source: RoundSource,
        maps: MapRegistry,
        high_scores: HighScoreStore,
        observer: SessionObserver | None = None,
        tick_interval: float = 1.0,
    ) -> None:
        self.round_source = round_source
        self.maps = maps
        self.high_scores = high_scores
        self.observer: SessionObserver = observer or NullObserver()

        self.mode: GameMode | None = None
        self.rounds: list[Round] = []
        self.results: list[RoundResult] = []
        self.current_index = 0
        self.total_score = 0
        self.phase = Phase.IDLE
        self.timer_seconds = 0
        self.best_scores: dict[str, int] = {}
        self.summary: SessionSummary | None = None

        self._meta: MapMetadata | None = None
        self._transform: CoordinateTransform | None = None
        self._timer = RoundTimer(self._on_timer_tick, self._on_timer_expired, tick_interval=tick_interval)
        self._fetch_task: asyncio.Future | None = None
        self._fetch_generation = 0

    # ----- read-only views -------------------------------------------------

    @property
    def is_loading(self) -> bool:
        return self._fetch_task is not None and not self._fetch_task.done()

    @property
    def current_round(self) -> Round | None:
        if self.phase in (Phase.PLAYING, Phase.ROUND_RESOLVED):
            return self.rounds[self.current_index]
        return None

    @property
    def current_map(self) -> MapMetadata | None:
        return self._meta if self.current_round is not None else None

    @property
    def transform(self) -> CoordinateTransform | None:
        return self._transform if self.current_round is not None else None

    @property
    def timer_remaining(self) -> int | None:
        return self._timer.remaining if self._timer.running else None

    @property
    def history(self) -> tuple[Round, ...]:
        return tuple(self.rounds)

    # ----- transitions -----------------------------------------------------

    async def start_new_game(
        self,
        mode: GameMode | str,
        round_count: int,
        timer_seconds: int | None = None,
    ) -> None:
        """Fetch a batch and start playing its first round.

        A call made while another fetch is outstanding cancels that fetch;
        the superseded call raises :class:`RoundFetchFailed` and its batch,
        if it still arrives, is discarded. On any failure the session stays
        idle with no rounds.
        """
        mode = GameMode(mode)
        if round_count < 1:
            raise ValueError(f"round_count must be at least 1, got {round_count}")
        if timer_seconds is None:
            timer_seconds = DEFAULT_MODE_TIMERS[mode]

        self.reset()
        generation = self._fetch_generation
        self.best_scores = self.high_scores.read_all([m.value for m in GameMode])

        logger.info("Starting %s game with %d rounds", mode.value, round_count)
        task = asyncio.ensure_future(self.round_source.fetch_rounds(round_count))
        self._fetch_task = task
        try:
            records = await task
        except asyncio.CancelledError:
            if generation != self._fetch_generation:
                raise RoundFetchFailed("round request was cancelled") from None
            raise
        except RoundFetchFailed as exc:
            logger.warning("Round fetch failed: %s", exc)
            raise
        except Exception as exc:
            logger.warning("Round fetch failed: %s", exc)
            raise RoundFetchFailed(str(exc)) from exc
        finally:
            if self._fetch_task is task:
                self._fetch_task = None

        if generation != self._fetch_generation:
            logger.info("Discarding stale round batch")
            raise RoundFetchFailed("round request was superseded")

        rounds = parse_rounds(records)[:round_count]
        if not rounds:
            raise RoundFetchFailed("round batch is empty")
        if len(rounds) < round_count:
            logger.warning("Requested %d rounds but the batch only has %d", round_count, len(rounds))
        meta, transform = self._prepare_map(rounds[0])

        self.mode = mode
        self.rounds = rounds
        self.timer_seconds = max(0, int(timer_seconds))
        self._enter_round(0, meta, transform)

    def submit_guess(self, guess: Guess | None) -> RoundResult:
        """Score the current round. ``None`` means no guess was placed."""
        return self._resolve(guess, timed_out=False)

    def advance_round(self) -> None:
        """Move past a resolved round, finishing the session after the last one."""
        if self.phase is not Phase.ROUND_RESOLVED:
            raise OrderingError(f"cannot advance while {self.phase.name.lower()}")
        next_index = self.current_index + 1
        if next_index == len(self.rounds):
            self.current_index = next_index
            self._finish()
            return
        meta, transform = self._prepare_map(self.rounds[next_index])
        self._enter_round(next_index, meta, transform)

    def reset(self) -> None:
        """Abandon everything and return to idle."""
        self._timer.cancel()
        self._fetch_generation += 1
        if self._fetch_task is not None and not self._fetch_task.done():
            logger.debug("Cancelling outstanding round fetch")
            self._fetch_task.cancel()
        self._fetch_task = None
        self.mode = None
        self.rounds = []
        self.results = []
        self.current_index = 0
        self.total_score = 0
        self.timer_seconds = 0
        self.summary = None
        self._meta = None
        self._transform = None
        self.phase = Phase.IDLE

    # ----- internals -------------------------------------------------------

    def _prepare_map(self, round_: Round) -> tuple[MapMetadata, CoordinateTransform]:
        meta = self.maps.get(round_.map_id)
        return meta, CoordinateTransform.for_map(meta)

    def _enter_round(self, index: int, meta: MapMetadata, transform: CoordinateTransform) -> None:
        self.current_index = index
        self._meta = meta
        self._transform = transform
        self.phase = Phase.PLAYING
        logger.debug("Round %d/%d on %s", index + 1, len(self.rounds), meta.id)
        self.observer.round_loaded(index, len(self.rounds), self.rounds[index], meta)
        if self.timer_seconds > 0 and self.phase is Phase.PLAYING and self.current_index == index:
            self._timer.arm(self.timer_seconds)

    def _resolve(self, guess: Guess | None, timed_out: bool) -> RoundResult:
        if self.phase is not Phase.PLAYING:
            raise OrderingError(f"cannot submit a guess while {self.phase.name.lower()}")
        round_ = self.rounds[self.current_index]
        if round_.resolved:
            raise OrderingError("round already resolved")
        result = self._score(round_, guess, timed_out)

        self._timer.cancel()
        round_.award(result.points)
        self.total_score += result.points
        self.results.append(result)
        self.phase = Phase.ROUND_RESOLVED
        logger.info(
            "Round %d resolved: %d points (total %d)", self.current_index + 1, result.points, self.total_score
        )
        self.observer.round_resolved(result)
        return result

    def _score(self, round_: Round, guess: Guess | None, timed_out: bool) -> RoundResult:
        if self.mode is None or self._meta is None or self._transform is None:
            raise OrderingError("no round is loaded")
        meta, transform = self._meta, self._transform
        true_display = transform.to_display(round_.true_position)

        if self.mode.guesses_by_name:
            if isinstance(guess, LocationGuess):
                raise InvalidGuess(f"{self.mode.label} expects a map name")
            points = 0
            guessed = guess is not None and guess.text.strip() != ""
            if guessed:
                points, _ = score_name(guess.text, round_.map_id)
            return RoundResult(
                index=self.current_index,
                map_id=round_.map_id,
                map_name=meta.name,
                points=points,
                guessed=guessed,
                timed_out=timed_out,
                true_display=true_display,
                guess_display=None,
                distance=None,
                distance_text="",
                label=meta.name if points else MISS_LABEL,
            )

        if isinstance(guess, NameGuess):
            raise InvalidGuess(f"{self.mode.label} expects a minimap location")
        if guess is None:
            points, d, guess_display = 0, None, None
        else:
            guess_display = transform.clamp_display(guess.display)
            points, d = score_location(transform.to_world(guess_display), round_.true_position, meta.size)
        return RoundResult(
            index=self.current_index,
            map_id=round_.map_id,
            map_name=meta.name,
            points=points,
            guessed=guess is not None,
            timed_out=timed_out,
            true_display=true_display,
            guess_display=guess_display,
            distance=d,
            distance_text=format_distance(d) if d is not None else "",
            label=label_for_distance(d, scaled_steps(meta.size)),
        )

    def _finish(self) -> None:
        if self.mode is None:
            raise OrderingError("no game in progress")
        self._timer.cancel()
        self.phase = Phase.FINISHED
        previous_best = self.best_scores.get(self.mode.value, 0)
        new_record = self.high_scores.write_if_greater(self.mode.value, self.total_score)
        if new_record:
            self.best_scores[self.mode.value] = self.total_score
        self.summary = SessionSummary(
            mode=self.mode,
            total_score=self.total_score,
            rounds=tuple(self.rounds),
            results=tuple(self.results),
            previous_best=previous_best,
            new_record=new_record,
        )
        logger.info("Session finished with %d points (record=%s)", self.total_score, new_record)
        self.observer.session_finished(self.summary)

    def _on_timer_tick(self, remaining: int) -> None:
        self.observer.timer_ticked(remaining)

    def _on_timer_expired(self) -> None:
        if self.phase is not Phase.PLAYING:
            return
        logger.info("Round %d timed out", self.current_index + 1)
        try:
            self._resolve(None, timed_out=True)
            self.advance_round()
        except SquadGuessrError as exc:
            logger.exception("Could not continue after timeout")
            self.observer.session_failed(exc)
