"""
Progress and transfer rate estimation.

Speed is measured over a trailing window of samples so it reacts to changing
network conditions; when the window holds too few samples the lifetime average
of the current session is reported instead.
"""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from .constants import SPEED_WINDOW_SECONDS


@dataclass(frozen=True)
class ProgressSnapshot:
    filename: str
    bytes_uploaded: int
    total_bytes: int
    completed_parts: int
    total_parts: int
    speed: float
    """Bytes per second."""
    percent: float


ProgressCallback = Callable[[ProgressSnapshot], None]


class ProgressEstimator:
    """
    Tracks bytes and parts of one upload.

    Bytes credited for parts finished in an earlier session count towards the
    percentage but not towards the speed.
    """

    def __init__(
        self,
        filename: str,
        total_bytes: int,
        total_parts: int,
        window: float = SPEED_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.filename = filename
        self.total_bytes = total_bytes
        self.total_parts = total_parts
        self.window = window
        self._clock = clock

        self.start_time = clock()
        self.bytes_uploaded = 0
        self.completed_parts = 0
        # bytes transferred since start_time
        self._session_bytes = 0
        self._samples: deque[tuple[float, int]] = deque([(self.start_time, 0)])

    def credit(self, parts: int, num_bytes: int) -> None:
        """Account for parts that were already uploaded before this session."""
        self.completed_parts = min(self.completed_parts + parts, self.total_parts)
        self.bytes_uploaded = min(self.bytes_uploaded + num_bytes, self.total_bytes)

    def record(self, num_bytes: int, parts: int = 1) -> None:
        """Record bytes transferred in this session, usually one finished part."""
        now = self._clock()
        self.completed_parts = min(self.completed_parts + parts, self.total_parts)
        self.bytes_uploaded = min(self.bytes_uploaded + num_bytes, self.total_bytes)
        self._session_bytes += num_bytes
        self._samples.append((now, self._session_bytes))
        self._prune(now)

    def _prune(self, now: float) -> None:
        cutoff = now - self.window
        while self._samples and self._samples[0][0] < cutoff:
            self._samples.popleft()

    @property
    def speed(self) -> float:
        """Current transfer rate in bytes per second."""
        now = self._clock()
        self._prune(now)
        if len(self._samples) >= 2:
            (oldest_time, oldest_bytes), (newest_time, newest_bytes) = self._samples[0], self._samples[-1]
            span = newest_time - oldest_time
            if span > 0:
                return (newest_bytes - oldest_bytes) / span

        elapsed = now - self.start_time
        if elapsed <= 0:
            return 0.0
        return self._session_bytes / elapsed

    @property
    def percent(self) -> float:
        if self.total_bytes <= 0:
            return 0.0
        return max(0.0, min(100.0, self.bytes_uploaded / self.total_bytes * 100))

    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            filename=self.filename,
            bytes_uploaded=self.bytes_uploaded,
            total_bytes=self.total_bytes,
            completed_parts=self.completed_parts,
            total_parts=self.total_parts,
            speed=self.speed,
            percent=self.percent,
        )
