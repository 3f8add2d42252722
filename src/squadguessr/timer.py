"""Per-round countdown driven by the asyncio event loop."""

from __future__ import annotations

from typing import Callable
import asyncio
import logging

logger = logging.getLogger(__name__)


class RoundTimer:
    """Countdown that reports every tick and signals expiry exactly once.

    Every ``arm`` or ``cancel`` bumps a generation counter. A scheduled tick
    carries the generation it was armed with and does nothing if that is no
    longer current, so a cancelled timer can never tick or expire.
    """

    def __init__(
        self,
        on_tick: Callable[[int], None],
        on_expire: Callable[[], None],
        tick_interval: float = 1.0,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.on_tick = on_tick
        self.on_expire = on_expire
        self.tick_interval = tick_interval
        self.remaining = 0
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._generation = 0

    @property
    def running(self) -> bool:
        return self._handle is not None

    def arm(self, seconds: int) -> None:
        """Start a fresh countdown, replacing any running one."""
        if seconds <= 0:
            raise ValueError(f"timer duration must be positive, got {seconds}")
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self.remaining = int(seconds)
        generation = self._generation
        logger.debug("Timer armed for %ss", seconds)
        self.on_tick(self.remaining)
        if generation == self._generation:
            self._handle = loop.call_later(self.tick_interval, self._tick, generation)

    def cancel(self) -> None:
        """Stop the countdown; no tick or expiry fires afterwards."""
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _tick(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._handle = None
        self.remaining -= 1
        self.on_tick(self.remaining)
        if generation != self._generation:
            return
        if self.remaining <= 0:
            self._generation += 1
            logger.debug("Timer expired")
            self.on_expire()
            return
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self.tick_interval, self._tick, generation)
