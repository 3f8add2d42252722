from __future__ import annotations

import asyncio
import logging

import pytest

from squadguessr.errors import InvalidGuess, MalformedRound, OrderingError, RoundFetchFailed, UnknownMap
from squadguessr.highscores import HighScoreStore
from squadguessr.maps import MapMetadata, MapRegistry
from squadguessr.rounds import Round
from squadguessr.session import GameSession, LocationGuess, NameGuess, Phase
from squadguessr.settings import GameMode

TICK = 0.01


def _record(map_id: str = "ref", x: float = 1000, y: float = -1000, hint: str = "/h.png") -> dict:
    return {"map": map_id, "lng": x, "lat": y, "url": hint}


class FakeSource:
    def __init__(self, records: list[dict] | None = None, error: Exception | None = None) -> None:
        self.records = records if records is not None else [_record() for _ in range(5)]
        self.error = error
        self.gate: asyncio.Event | None = None
        self.calls = 0

    async def fetch_rounds(self, count: int) -> list[dict]:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.records[:count])


class RecordingObserver:
    def __init__(self) -> None:
        self.events: list[tuple] = []

    def round_loaded(self, index, total, round_, meta) -> None:
        self.events.append(("loaded", index, total, meta.id))

    def round_resolved(self, result) -> None:
        self.events.append(("resolved", result.index, result.points))

    def timer_ticked(self, remaining) -> None:
        self.events.append(("tick", remaining))

    def session_finished(self, summary) -> None:
        self.events.append(("finished", summary.total_score, summary.new_record))

    def session_failed(self, error) -> None:
        self.events.append(("failed", type(error).__name__))


def _maps() -> MapRegistry:
    return MapRegistry(
        [
            MapMetadata(id="ref", name="Reference", world_size=(3000, 3000), display_size=300),
            MapMetadata(id="narva", name="Narva", world_size=(2800, 2800), display_size=256),
        ]
    )


def _session(tmp_path, source: FakeSource | None = None, observer=None) -> GameSession:
    return GameSession(
        source or FakeSource(),
        _maps(),
        HighScoreStore(tmp_path / "scores.json"),
        observer=observer,
        tick_interval=TICK,
    )


def test_classic_session_runs_to_finish(tmp_path) -> None:
    observer = RecordingObserver()
    session = _session(tmp_path, observer=observer)
    offsets = [0, 15, 2, 60, 5]

    async def scenario() -> None:
        await session.start_new_game("classic", 5)
        assert session.phase is Phase.PLAYING
        assert session.current_index == 0
        assert len(session.rounds) == 5
        for offset in offsets:
            session.submit_guess(LocationGuess((100 + offset, -100)))
            assert session.phase is Phase.ROUND_RESOLVED
            session.advance_round()

    asyncio.run(scenario())
    assert session.phase is Phase.FINISHED
    assert [r.points_awarded for r in session.history] == [100, 50, 100, 0, 80]
    assert session.total_score == 330
    assert session.current_index == 5
    assert session.summary is not None and session.summary.new_record
    assert HighScoreStore(tmp_path / "scores.json").read("classic") == 330
    assert observer.events[0] == ("loaded", 0, 5, "ref")
    assert observer.events[-1] == ("finished", 330, True)


def test_result_reveals_solution_and_distance(tmp_path) -> None:
    session = _session(tmp_path)

    async def scenario():
        await session.start_new_game(GameMode.CLASSIC, 1)
        return session.submit_guess(LocationGuess((115, -100)))

    result = asyncio.run(scenario())
    assert result.points == 50
    assert result.distance == pytest.approx(150)
    assert result.distance_text == "150m"
    assert result.true_display == pytest.approx((100, -100))
    assert result.guess_display == (115, -100)
    assert result.label == "Good"


def test_guess_outside_minimap_is_clamped(tmp_path) -> None:
    source = FakeSource([_record(x=3000, y=0)])
    session = _session(tmp_path, source)

    async def scenario():
        await session.start_new_game(GameMode.CLASSIC, 1)
        return session.submit_guess(LocationGuess((999, 50)))

    result = asyncio.run(scenario())
    assert result.guess_display == (300, 0)
    assert result.points == 100


def test_no_guess_scores_zero_and_still_reveals(tmp_path) -> None:
    session = _session(tmp_path)

    async def scenario():
        await session.start_new_game(GameMode.CLASSIC, 2)
        return session.submit_guess(None)

    result = asyncio.run(scenario())
    assert result.points == 0
    assert not result.guessed
    assert result.true_display == pytest.approx((100, -100))
    assert session.rounds[0].points_awarded == 0


def test_out_of_turn_calls_leave_session_untouched(tmp_path) -> None:
    session = _session(tmp_path)
    with pytest.raises(OrderingError):
        session.submit_guess(None)
    with pytest.raises(OrderingError):
        session.advance_round()

    async def scenario() -> None:
        await session.start_new_game(GameMode.CLASSIC, 5)
        with pytest.raises(OrderingError):
            session.advance_round()
        session.submit_guess(LocationGuess((100, -100)))
        with pytest.raises(OrderingError):
            session.submit_guess(LocationGuess((0, 0)))

    asyncio.run(scenario())
    assert session.total_score == 100
    assert session.rounds[0].points_awarded == 100
    assert session.phase is Phase.ROUND_RESOLVED


def test_map_finder_scores_names(tmp_path) -> None:
    source = FakeSource([_record("narva"), _record("narva"), _record("narva")])
    session = _session(tmp_path, source)
    points = []

    async def scenario() -> None:
        await session.start_new_game(GameMode.MAP_FINDER, 3)
        with pytest.raises(InvalidGuess):
            session.submit_guess(LocationGuess((10, -10)))
        assert session.phase is Phase.PLAYING
        for text in ["the narva map", "manic", "   "]:
            points.append(session.submit_guess(NameGuess(text)).points)
            session.advance_round()

    asyncio.run(scenario())
    assert points == [100, 0, 0]
    assert session.total_score == 100
    assert session.phase is Phase.FINISHED


def test_location_modes_reject_name_guesses(tmp_path) -> None:
    session = _session(tmp_path)

    async def scenario() -> None:
        await session.start_new_game(GameMode.CLASSIC, 1)
        with pytest.raises(InvalidGuess):
            session.submit_guess(NameGuess("ref"))

    asyncio.run(scenario())
    assert session.rounds[0].points_awarded is None


def test_fetch_failure_leaves_session_idle(tmp_path) -> None:
    session = _session(tmp_path, FakeSource(error=ConnectionError("offline")))
    with pytest.raises(RoundFetchFailed, match="offline"):
        asyncio.run(session.start_new_game(GameMode.CLASSIC, 5))
    assert session.phase is Phase.IDLE
    assert session.rounds == []
    assert not session.is_loading


def test_retry_after_failure_succeeds(tmp_path) -> None:
    source = FakeSource(error=RoundFetchFailed("boom"))
    session = _session(tmp_path, source)
    with pytest.raises(RoundFetchFailed):
        asyncio.run(session.start_new_game(GameMode.CLASSIC, 5))
    source.error = None
    asyncio.run(session.start_new_game(GameMode.CLASSIC, 5))
    assert session.phase is Phase.PLAYING
    assert source.calls == 2


def test_malformed_round_rejected_at_load(tmp_path) -> None:
    source = FakeSource([_record(), {"map": "ref", "lng": 4}])
    session = _session(tmp_path, source)
    with pytest.raises(MalformedRound):
        asyncio.run(session.start_new_game(GameMode.CLASSIC, 2))
    assert session.phase is Phase.IDLE
    assert session.rounds == []


def test_unknown_first_map_keeps_session_idle(tmp_path) -> None:
    session = _session(tmp_path, FakeSource([_record("atlantis")]))
    with pytest.raises(UnknownMap):
        asyncio.run(session.start_new_game(GameMode.CLASSIC, 1))
    assert session.phase is Phase.IDLE


def test_unknown_later_map_blocks_only_that_round(tmp_path) -> None:
    session = _session(tmp_path, FakeSource([_record(), _record("atlantis")]))

    async def scenario() -> None:
        await session.start_new_game(GameMode.CLASSIC, 2)
        session.submit_guess(LocationGuess((100, -100)))
        with pytest.raises(UnknownMap):
            session.advance_round()

    asyncio.run(scenario())
    assert session.phase is Phase.ROUND_RESOLVED
    assert session.current_index == 0
    assert session.total_score == 100


def test_new_request_supersedes_pending_fetch(tmp_path) -> None:
    slow = FakeSource([_record("narva")])
    slow.gate = asyncio.Event()
    session = _session(tmp_path, slow)

    async def scenario() -> None:
        first = asyncio.ensure_future(session.start_new_game(GameMode.MAP_FINDER, 1))
        await asyncio.sleep(0)
        assert session.is_loading

        session.round_source = FakeSource([_record("ref")] * 3)
        await session.start_new_game(GameMode.CLASSIC, 3)
        slow.gate.set()
        with pytest.raises(RoundFetchFailed):
            await first

    asyncio.run(scenario())
    assert session.mode is GameMode.CLASSIC
    assert len(session.rounds) == 3
    assert session.current_round.map_id == "ref"


def test_reset_discards_late_batch(tmp_path) -> None:
    slow = FakeSource()
    slow.gate = asyncio.Event()
    session = _session(tmp_path, slow)

    async def scenario() -> None:
        pending = asyncio.ensure_future(session.start_new_game(GameMode.CLASSIC, 5))
        await asyncio.sleep(0)
        session.reset()
        slow.gate.set()
        with pytest.raises(RoundFetchFailed):
            await pending

    asyncio.run(scenario())
    assert session.phase is Phase.IDLE
    assert session.rounds == []


def test_timer_expiry_resolves_and_advances_once(tmp_path) -> None:
    observer = RecordingObserver()
    session = _session(tmp_path, observer=observer)

    async def scenario() -> None:
        await session.start_new_game(GameMode.TIME_ATTACK, 3, timer_seconds=2)
        assert session.timer_remaining == 2
        while session.current_index == 0:
            await asyncio.sleep(TICK)
        with pytest.raises(OrderingError):
            session.advance_round()
        session.submit_guess(LocationGuess((100, -100)))
        await asyncio.sleep(TICK * 5)

    asyncio.run(scenario())
    assert session.current_index == 1
    assert session.phase is Phase.ROUND_RESOLVED
    assert session.results[0].timed_out
    assert [r.points_awarded for r in session.rounds] == [0, 100, None]
    assert session.total_score == 100
    assert ("resolved", 0, 0) in observer.events
    assert [e for e in observer.events if e[0] == "tick"][:3] == [("tick", 2), ("tick", 1), ("tick", 0)]


def test_timer_expiry_on_last_round_finishes(tmp_path) -> None:
    session = _session(tmp_path, FakeSource([_record()]))

    async def scenario() -> None:
        await session.start_new_game(GameMode.TIME_ATTACK, 1, timer_seconds=1)
        while session.phase is not Phase.FINISHED:
            await asyncio.sleep(TICK)

    asyncio.run(scenario())
    assert session.total_score == 0
    assert session.summary is not None and not session.summary.new_record


def test_high_score_snapshot_and_no_record(tmp_path) -> None:
    HighScoreStore(tmp_path / "scores.json").write_if_greater("classic", 1000)
    session = _session(tmp_path, FakeSource([_record()]))

    async def scenario() -> None:
        await session.start_new_game(GameMode.CLASSIC, 1)
        session.submit_guess(LocationGuess((100, -100)))
        session.advance_round()

    asyncio.run(scenario())
    assert session.best_scores["classic"] == 1000
    assert session.summary.previous_best == 1000
    assert not session.summary.new_record
    assert HighScoreStore(tmp_path / "scores.json").read("classic") == 1000


def test_short_batch_is_played_and_logged(tmp_path, caplog) -> None:
    session = _session(tmp_path, FakeSource([_record(), _record()]))
    with caplog.at_level(logging.WARNING, logger="squadguessr.session"):
        asyncio.run(session.start_new_game(GameMode.CLASSIC, 5))
    assert len(session.rounds) == 2
    assert "Requested 5 rounds but the batch only has 2" in caplog.text


def test_full_batch_logs_no_warning(tmp_path, caplog) -> None:
    session = _session(tmp_path)
    with caplog.at_level(logging.WARNING, logger="squadguessr.session"):
        asyncio.run(session.start_new_game(GameMode.CLASSIC, 5))
    assert "only has" not in caplog.text


def test_scoring_without_loaded_round_is_rejected(tmp_path) -> None:
    session = _session(tmp_path)
    session.rounds = [Round(map_id="ref", true_position=(1000, -1000), hint_ref="")]
    session.phase = Phase.PLAYING
    with pytest.raises(OrderingError):
        session.submit_guess(None)
    assert session.rounds[0].points_awarded is None
    assert session.total_score == 0
