"""High-precision time source and duration arithmetic"""
import logging
import time
import warnings
from typing import Callable, Optional

from focus_voyage.services.errors import ClockAnomaly

logger = logging.getLogger(__name__)


def _monotonic_ms() -> float:
    return time.perf_counter_ns() / 1_000_000


def _wall_ms() -> float:
    return time.time() * 1000


class PrecisionClock:
    """Monotonic millisecond clock.

    Timestamps are floats in milliseconds with sub-millisecond precision. They
    are only comparable with other timestamps from the same clock.

    If the monotonic counter is unavailable the clock falls back to wall time.
    That is reduced precision, not an error: ``precise`` is False and
    durations may be affected by system clock adjustments.
    """

    def __init__(self, source: Optional[Callable[[], float]] = None):
        self.precise = True
        if source is not None:
            self._source = source
        else:
            self._source = self._select_source()

    def _select_source(self) -> Callable[[], float]:
        try:
            _monotonic_ms()
            return _monotonic_ms
        except (AttributeError, OSError) as e:
            self.precise = False
            logger.warning(f"Monotonic clock unavailable, using wall time with reduced precision: {e}")
            return _wall_ms

    def now(self) -> float:
        """Current timestamp in milliseconds"""
        return self._source()

    def duration(self, start: float, end: Optional[float] = None) -> float:
        """Elapsed milliseconds between two timestamps, never negative"""
        if end is None:
            end = self.now()
        elapsed = end - start
        if elapsed < 0:
            warnings.warn(
                f"Negative duration {elapsed:.3f}ms (start={start:.3f}, end={end:.3f}), clamped to 0",
                ClockAnomaly,
                stacklevel=2,
            )
            return 0.0
        return elapsed

    @staticmethod
    def to_seconds(milliseconds: float) -> float:
        return round(milliseconds / 1000, 2)

    @staticmethod
    def to_minutes(milliseconds: float) -> float:
        return round(milliseconds / 60000, 2)

    @staticmethod
    def format(milliseconds: float) -> str:
        """Format as MM:SS.ss for display"""
        total_seconds = max(0.0, milliseconds) / 1000
        minutes = int(total_seconds // 60)
        seconds = total_seconds - minutes * 60
        return f"{minutes:02d}:{seconds:05.2f}"

    @staticmethod
    def format_text(milliseconds: float) -> str:
        """Format as human-readable text, e.g. '1m 5.25s'"""
        milliseconds = max(0, int(milliseconds))
        minutes = milliseconds // 60000
        seconds = (milliseconds % 60000) // 1000
        centiseconds = (milliseconds % 1000) // 10
        if minutes > 0:
            return f"{minutes}m {seconds}.{centiseconds:02d}s"
        return f"{seconds}.{centiseconds:02d}s"
