"""Pure functions over a finished session's distraction events"""
import math
from collections import Counter
from typing import Iterable, List, Optional

from focus_voyage.models.events import DistractionEvent, SignalType, UserResponse
from focus_voyage.models.session import SessionStatistics


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class StatisticsEngine:
    """Session metrics; durations in milliseconds"""

    @staticmethod
    def total_distraction_time(events: Iterable[DistractionEvent]) -> float:
        """Sum of resolved durations, ongoing episodes count as zero"""
        return sum(event.duration_ms for event in events if event.resolved and event.duration_ms)

    @classmethod
    def focus_quality(cls, total_ms: float, events: Iterable[DistractionEvent]) -> int:
        """Percent of the session not spent distracted, 0..100"""
        if total_ms <= 0:
            return 0
        distracted = cls.total_distraction_time(events)
        quality = round_half_up(100 * (total_ms - distracted) / total_ms)
        return min(100, max(0, quality))

    @staticmethod
    def most_common_type(events: Iterable[DistractionEvent]) -> Optional[SignalType]:
        """Most frequent signal type; ties go to the type seen first"""
        counts = Counter(event.signal_type for event in events)
        if not counts:
            return None
        # Counter preserves insertion order, and max keeps the first maximum
        return max(counts, key=counts.get)

    @staticmethod
    def average_duration(events: Iterable[DistractionEvent]) -> float:
        durations = [
            event.duration_ms for event in events
            if event.resolved and event.duration_ms is not None
        ]
        if not durations:
            return 0.0
        return sum(durations) / len(durations)

    @staticmethod
    def return_rate(events: Iterable[DistractionEvent]) -> float:
        """Fraction of events where the user chose to return"""
        events = list(events)
        if not events:
            return 0.0
        returned = sum(1 for event in events if event.user_response == UserResponse.RETURNED)
        return returned / len(events)

    @staticmethod
    def completion_percentage(planned_ms: Optional[float], actual_ms: float) -> int:
        if not planned_ms or planned_ms <= 0:
            return 100
        return max(0, round_half_up(100 * actual_ms / planned_ms))

    @classmethod
    def summarize(
        cls,
        total_ms: float,
        events: Iterable[DistractionEvent],
        planned_ms: Optional[float] = None,
    ) -> SessionStatistics:
        events: List[DistractionEvent] = list(events)
        return SessionStatistics(
            focus_quality=cls.focus_quality(total_ms, events),
            most_common_type=cls.most_common_type(events),
            average_duration_ms=cls.average_duration(events),
            total_distraction_ms=cls.total_distraction_time(events),
            return_rate=cls.return_rate(events),
            completion_percentage=cls.completion_percentage(planned_ms, total_ms),
            event_count=len(events),
        )
