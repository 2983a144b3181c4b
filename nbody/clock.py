"""
Scaled simulation time for frame loops.

The clock runs ``scale`` times faster than wall time (scale may be negative or
zero) and can be paused. Named timers report how much clock time elapsed since
they were last read, which is the timestep a driver hands to an integrator.
"""

from __future__ import annotations

import time
from typing import Callable, Dict, Optional


def _wall_time_ms() -> float:
    return time.time() * 1000.0


class Timer:
    def __init__(self, clock: Clock, timer_id: str) -> None:
        self.clock = clock
        self.timer_id = timer_id
        self.last_ms: Optional[float] = None

    def start(self) -> Timer:
        self.last_ms = self.clock.get_time()
        return self

    def get_delta(self) -> float:
        """Clock milliseconds since the previous call (or since ``start``)."""
        now = self.clock.get_time()
        delta = 0.0 if self.last_ms is None else now - self.last_ms
        self.last_ms = now
        return delta


class Clock:
    """
    ``clock_time_ms`` is the scaled time at the wall instant ``real_timestamp_ms``;
    the current clock time is always
    ``clock_time_ms + (now - real_timestamp_ms) * scale``.
    """

    def __init__(
        self,
        clock_time_ms: Optional[float] = None,
        scale: float = 1.0,
        now: Callable[[], float] = _wall_time_ms,
    ) -> None:
        self._now = now
        self._paused = False
        self.scale = 1.0
        self.saved_scale = 1.0
        self.timers: Dict[str, Timer] = {}
        self.set_time(self._now() if clock_time_ms is None else clock_time_ms)
        self.set_scale(scale)

    def set_time(self, time_ms: float) -> None:
        self.real_timestamp_ms = self._now()
        self.clock_time_ms = time_ms

    def get_time(self) -> float:
        real_delta = self._now() - self.real_timestamp_ms
        return self.clock_time_ms + real_delta * self.scale

    def is_paused(self) -> bool:
        return self._paused

    def set_paused(self, value: bool) -> bool:
        if value and not self._paused:
            self.saved_scale = self.scale
            self.set_scale(0.0)
            self._paused = True
        elif not value and self._paused:
            self._paused = False
            self.set_scale(self.saved_scale)
        return self._paused

    def get_scale(self) -> float:
        return self.saved_scale if self._paused else self.scale

    def set_scale(self, scale: float) -> None:
        if self._paused:
            # applied when the clock resumes
            self.saved_scale = scale
            return
        # re-anchor so time already elapsed keeps the old scale
        self.set_time(self.get_time())
        self.scale = scale

    def create_timer(self, timer_id: str) -> Timer:
        timer = Timer(self, timer_id)
        self.timers[timer_id] = timer
        return timer

    def start_timer(self, timer_id: str) -> Timer:
        timer = self.timers.get(timer_id) or self.create_timer(timer_id)
        return timer.start()

    def get_delta(self, timer_id: str = "") -> Optional[float]:
        timer = self.timers.get(timer_id)
        return None if timer is None else timer.get_delta()
