"""Pausable countdown timer that enforces the maximum recording duration."""

import asyncio
import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


def format_time_label(seconds: int) -> str:
    """Format a number of seconds as 'MM:SS'."""
    seconds = max(0, int(seconds))
    mins, secs = divmod(seconds, 60)
    return f"{mins:02d}:{secs:02d}"


class CountdownTimer:
    """Countdown clock with a periodic tick.

    The remaining time, not the deadline, is what survives a pause, so
    pausing and resuming never drifts.
    """

    def __init__(self,
                 period_ms: int = 100,
                 clock: Callable[[], int] = monotonic_ms,
                 auto_tick: bool = True):
        """Initialize countdown timer.

        Args:
            period_ms: Interval between ticks in milliseconds
            clock: Function returning the current time in milliseconds
            auto_tick: Schedule ticks on the running event loop. When False
                the owner drives the timer by calling tick() itself.
        """
        self.period_ms = period_ms
        self.clock = clock
        self.auto_tick = auto_tick

        self.on_tick: Optional[Callable[[int, int], None]] = None
        self.on_expire: Optional[Callable[[], None]] = None

        self.duration_ms = 0
        self.deadline_ms = 0
        self._remaining_ms = 0
        self._running = False
        self._expired = False
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def expired(self) -> bool:
        return self._expired

    @property
    def remaining_ms(self) -> int:
        if self._running:
            return self.deadline_ms - self.clock()
        return self._remaining_ms

    @property
    def elapsed_ms(self) -> int:
        return self.duration_ms - max(0, self.remaining_ms)

    def start(self, duration_ms: int) -> None:
        """Arm the timer for a fresh countdown of duration_ms."""
        self.stop()
        self.duration_ms = duration_ms
        self._remaining_ms = duration_ms
        self._expired = False
        self.resume()
        logger.debug(f"Countdown started: {duration_ms}ms")

    def pause(self) -> None:
        """Freeze the remaining time and stop ticking."""
        if not self._running:
            return
        self._remaining_ms = self.deadline_ms - self.clock()
        self._running = False
        self._cancel_handle()
        logger.debug(f"Countdown paused with {self._remaining_ms}ms remaining")

    def resume(self) -> None:
        """Re-arm the deadline from the preserved remaining time."""
        if self._running or self._expired:
            return
        self.deadline_ms = self.clock() + self._remaining_ms
        self._running = True
        self._schedule()

    def stop(self) -> None:
        """Cancel ticking; no further callbacks are made."""
        if self._running:
            self._remaining_ms = self.deadline_ms - self.clock()
        self._running = False
        self._cancel_handle()

    def tick(self) -> None:
        """Report progress and signal expiry once the deadline has passed."""
        if not self._running:
            return
        remaining = self.deadline_ms - self.clock()
        if self.on_tick:
            self.on_tick(self.duration_ms - max(0, remaining), max(0, remaining))
        if remaining <= 0:
            self._remaining_ms = 0
            self._running = False
            self._expired = True
            self._cancel_handle()
            logger.info("Countdown expired")
            if self.on_expire:
                self.on_expire()

    def _schedule(self) -> None:
        if not self.auto_tick or not self._running:
            return
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.period_ms / 1000, self._on_interval)

    def _on_interval(self) -> None:
        self._handle = None
        self.tick()
        self._schedule()

    def _cancel_handle(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
