from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from time import time


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: int
    reset_after_seconds: int


@dataclass
class _RateWindow:
    window_start: float
    count: int


class FixedWindowRateLimiter:
    """
    Per-key request counter over fixed windows.

    A window opens on the first request for a key and admits `max_requests`
    calls until it expires, so up to twice the limit can pass around a
    window boundary.
    """

    def __init__(
        self,
        *,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time,
    ) -> None:
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._clock = clock
        self._lock = Lock()
        self._windows: dict[str, _RateWindow] = {}

    @property
    def max_requests(self) -> int:
        return self._max_requests

    def check(self, key: str) -> RateLimitDecision:
        now = self._clock()

        with self._lock:
            window = self._windows.get(key)
            if window is None or now - window.window_start >= self._window_seconds:
                self._windows[key] = _RateWindow(window_start=now, count=1)
                return RateLimitDecision(
                    allowed=True,
                    limit=self._max_requests,
                    remaining=self._max_requests - 1,
                    retry_after_seconds=0,
                    reset_after_seconds=math.ceil(self._window_seconds),
                )

            seconds_left = math.ceil(self._window_seconds - (now - window.window_start))
            if window.count >= self._max_requests:
                return RateLimitDecision(
                    allowed=False,
                    limit=self._max_requests,
                    remaining=0,
                    retry_after_seconds=seconds_left,
                    reset_after_seconds=seconds_left,
                )

            window.count += 1
            return RateLimitDecision(
                allowed=True,
                limit=self._max_requests,
                remaining=self._max_requests - window.count,
                retry_after_seconds=0,
                reset_after_seconds=seconds_left,
            )
