"""Suppress repeated distraction starts inside a time window"""
import logging
from enum import Enum
from typing import Dict, Hashable

from focus_voyage.models.events import SignalType

logger = logging.getLogger(__name__)

SESSION_KEY = "session"


class DebounceScope(str, Enum):
    SIGNAL = "signal"    # one window per signal type
    SESSION = "session"  # one window shared by every signal


class DebounceGate:
    """Decides whether a proposed distraction start is far enough from the last one"""

    def __init__(self, scope: DebounceScope = DebounceScope.SIGNAL):
        self.scope = DebounceScope(scope)
        self._last_accepted: Dict[Hashable, float] = {}

    def key_for(self, signal_type: SignalType) -> Hashable:
        if self.scope == DebounceScope.SESSION:
            return SESSION_KEY
        return SignalType(signal_type)

    def accept(self, key: Hashable, timestamp: float, window_ms: float) -> bool:
        """Accept and record ``timestamp`` if it is at least ``window_ms`` after the last accepted one"""
        last = self._last_accepted.get(key)
        if last is not None and timestamp - last < window_ms:
            logger.debug(
                f"Debounced {key}: {timestamp - last:.0f}ms since last accepted, window {window_ms:.0f}ms"
            )
            return False
        self._last_accepted[key] = timestamp
        return True

    def last_accepted(self, key: Hashable):
        return self._last_accepted.get(key)

    def reset(self) -> None:
        self._last_accepted.clear()
