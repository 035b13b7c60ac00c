"""
Focus Voyage - focus sessions with multi-signal distraction detection
"""

__version__ = "0.1.0"

from .services.clock import PrecisionClock
from .services.database import SQLiteStore
from .services.monitor import SignalMonitor
from .services.session import SessionManager
from .services.statistics import StatisticsEngine

__all__ = [
    'PrecisionClock',
    'SQLiteStore',
    'SignalMonitor',
    'SessionManager',
    'StatisticsEngine',
]
