"""Availability monitor: process-wide circuit breaker for the generative service.

Transition table:

    state         event                          next
    -----------   ----------------------------   ------------
    HEALTHY       report_error()                 COOLING_DOWN
    COOLING_DOWN  report_error()                 COOLING_DOWN (window restarts)
    COOLING_DOWN  cooldown reaches 0             HEALTHY
    COOLING_DOWN  report_success() / probe ok    HEALTHY

The cooldown counts down once per second; it is derived from a monotonic
deadline so no ticking thread is needed to keep it accurate.
"""

import asyncio
import math
import threading
import time
from enum import Enum
from typing import Awaitable, Callable, Optional

from loguru import logger

from models import AvailabilityState, ResolutionResult


class MonitorState(str, Enum):
    HEALTHY = "HEALTHY"
    COOLING_DOWN = "COOLING_DOWN"


class AvailabilityMonitor:
    def __init__(self, cooldown_seconds: int = 60, clock: Callable[[], float] = time.monotonic) -> None:
        self.cooldown_window = cooldown_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._deadline: Optional[float] = None
        self._cooling_since: Optional[float] = None

    # ---------- queries ----------
    def cooldown_seconds_remaining(self) -> int:
        with self._lock:
            return self._remaining_locked()

    def is_ready(self) -> bool:
        return self.cooldown_seconds_remaining() == 0

    @property
    def status(self) -> MonitorState:
        return MonitorState.HEALTHY if self.is_ready() else MonitorState.COOLING_DOWN

    def state(self) -> AvailabilityState:
        remaining = self.cooldown_seconds_remaining()
        return AvailabilityState(healthy=remaining == 0, cooldown_seconds_remaining=remaining)

    def _remaining_locked(self) -> int:
        if self._deadline is None:
            return 0
        remaining = math.ceil(self._deadline - self._clock())
        if remaining <= 0:
            self._deadline = None
            logger.info("[Monitor] ✅ Cooldown elapsed, generative service considered healthy")
            return 0
        return remaining

    # ---------- transitions ----------
    def report_error(self) -> None:
        with self._lock:
            self._cooling_since = self._clock()
            self._deadline = self._cooling_since + self.cooldown_window
        logger.warning(f"[Monitor] ⚠️ Generative service unavailable, cooling down for {self.cooldown_window}s")

    def report_success(self) -> None:
        with self._lock:
            was_cooling = self._deadline is not None
            self._deadline = None
        if was_cooling:
            logger.info("[Monitor] ✅ Generative service recovered, leaving offline mode")

    # ---------- background probing ----------
    async def probe_once(self, probe: Callable[[], Awaitable[ResolutionResult]]) -> bool:
        """Run one probe if cooling down. Returns True when the service answered."""
        if self.is_ready():
            return False
        try:
            result = await probe()
        except Exception as e:
            logger.warning(f"[Monitor] Probe failed: {e}")
            return False
        if not result.is_offline:
            self.report_success()
            return True
        return False

    def cooling_since(self) -> Optional[float]:
        """Clock reading at which the current cooldown began, None when healthy."""
        with self._lock:
            if self._remaining_locked() == 0:
                return None
            return self._cooling_since

    async def run_probe_loop(
        self,
        probe: Callable[[], Awaitable[ResolutionResult]],
        interval_seconds: float = 600.0,
        poll_seconds: float = 5.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """While cooling down, probe once `interval_seconds` have passed since the
        cooldown began (or since the previous probe). Health is checked every
        `poll_seconds`, so a probe fires on time rather than up to a full interval late.

        With the default 60 s cooldown and 600 s interval the cooldown lapses on
        its own first; the probe only shortens outages when COOLDOWN_SECONDS is
        configured longer than PROBE_INTERVAL_SECONDS. Runs until cancelled.
        """
        logger.info(f"[Monitor] Probe loop started (every {interval_seconds:.0f}s while offline)")
        last_probe: Optional[float] = None
        while True:
            await sleep(poll_seconds)
            since = self.cooling_since()
            if since is None:
                last_probe = None
                continue
            if last_probe is not None and last_probe > since:
                since = last_probe
            if self._clock() - since >= interval_seconds:
                last_probe = self._clock()
                await self.probe_once(probe)
