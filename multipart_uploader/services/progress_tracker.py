# services/progress_tracker.py
import math
import time
from typing import Callable, NamedTuple, Optional

CALCULATING = "Calculating..."

SPEED_UNITS = ["B", "KB", "MB", "GB"]


class ProgressSnapshot(NamedTuple):
    bytes_per_second: float
    speed: str
    time_remaining: str


def format_speed(bytes_per_second: float) -> str:
    size = bytes_per_second
    unit_index = 0
    while size >= 1024 and unit_index < len(SPEED_UNITS) - 1:
        size /= 1024
        unit_index += 1
    return f"{size:.1f} {SPEED_UNITS[unit_index]}"


def format_time_remaining(seconds: float) -> str:
    if not math.isfinite(seconds) or seconds < 0:
        return CALCULATING

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def percent_complete(uploaded_size: int, file_size: int) -> float:
    if file_size <= 0:
        return 100.0
    return max(0.0, min(100.0, uploaded_size / file_size * 100))


class ProgressTracker:
    """Instantaneous throughput and ETA from successive byte counts.

    Speed is the rate between the last accepted observation and the current
    one; there is no smoothing. An observation whose timestamp is not after
    the previous one is ignored.
    """

    def __init__(self, file_size: int, clock: Callable[[], float] = time.monotonic):
        self.file_size = file_size
        self._clock = clock
        self._last_time = clock()
        self._last_size = 0

    def reset(self, uploaded_size: int = 0, timestamp: Optional[float] = None):
        self._last_size = uploaded_size
        self._last_time = self._clock() if timestamp is None else timestamp

    def observe(self, uploaded_size: int, timestamp: Optional[float] = None) -> Optional[ProgressSnapshot]:
        now = self._clock() if timestamp is None else timestamp
        elapsed = now - self._last_time
        if elapsed <= 0:
            return None

        bytes_per_second = (uploaded_size - self._last_size) / elapsed
        remaining = self.file_size - uploaded_size
        if bytes_per_second == 0:
            seconds_remaining = math.inf
        else:
            seconds_remaining = remaining / bytes_per_second

        self._last_time = now
        self._last_size = uploaded_size

        return ProgressSnapshot(
            bytes_per_second=bytes_per_second,
            speed=format_speed(bytes_per_second),
            time_remaining=format_time_remaining(seconds_remaining),
        )
