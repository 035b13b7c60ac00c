"""Fan-in of every detector, with debounce applied to distraction starts"""
import logging
from typing import Callable, Dict, List, Optional

from focus_voyage.config.config import DetectorConfig
from focus_voyage.models.events import DistractionStarted, SignalType, Transition
from focus_voyage.services.analyzer import Classifier
from focus_voyage.services.clock import PrecisionClock
from focus_voyage.services.debounce import DebounceGate, DebounceScope
from focus_voyage.services.detectors import (
    AttentionDetector,
    BlacklistDetector,
    ContentRelevanceDetector,
    Detector,
    IdleDetector,
    PresenceDetector,
    SnapshotProvider,
)
from focus_voyage.services.errors import DetectorConflictError
from focus_voyage.services.timers import Scheduler

logger = logging.getLogger(__name__)


class SignalMonitor:
    """Owns the detectors of a session and forwards their transitions.

    Starts pass through the ``DebounceGate``; ends are always forwarded so an
    accepted episode can be resolved. Each signal type has at most one detector.
    """

    def __init__(
        self,
        clock: PrecisionClock,
        debounce_window: float = 10.0,
        debounce_scope: DebounceScope = DebounceScope.SIGNAL,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.clock = clock
        self.debounce_window_ms = debounce_window * 1000
        self.gate = DebounceGate(debounce_scope)
        self.detectors: Dict[SignalType, Detector] = {}
        self.on_change = on_change
        self.active = False
        self.paused = False
        self._sink: Optional[Callable[[Transition], None]] = None

    def register(self, detector: Detector) -> Detector:
        signal_type = detector.signal_type
        if signal_type in self.detectors:
            raise DetectorConflictError(f"A {signal_type.value} detector is already registered")
        self.detectors[signal_type] = detector
        if self.active and not self.paused:
            detector.bind(self._forward)
            detector.activate()
        return detector

    def get(self, signal_type: SignalType) -> Optional[Detector]:
        return self.detectors.get(SignalType(signal_type))

    @property
    def signal_types(self) -> List[SignalType]:
        return list(self.detectors)

    def activate(self, sink: Callable[[Transition], None]) -> None:
        """Start every detector for a new session"""
        self.gate.reset()
        self._sink = sink
        self.active = True
        self.paused = False
        self._start_detectors()
        logger.info(f"Monitoring {', '.join(t.value for t in self.detectors) or 'no signals'}")

    def deactivate(self) -> None:
        """Stop every detector; no transition is forwarded after this returns"""
        self.active = False
        self.paused = False
        self._stop_detectors()
        self._sink = None

    def pause(self) -> None:
        """Stop detection without ending the session"""
        if not self.active or self.paused:
            return
        for detector in self.detectors.values():
            detector.close_episode()
        self.paused = True
        self._stop_detectors()
        logger.info("Detection paused")
        self._notify()

    def resume(self) -> None:
        if not self.active or not self.paused:
            return
        self.paused = False
        self._start_detectors()
        logger.info("Detection resumed")
        self._notify()

    def _start_detectors(self) -> None:
        for detector in self.detectors.values():
            detector.bind(self._forward)
            detector.activate()

    def _stop_detectors(self) -> None:
        for detector in self.detectors.values():
            detector.deactivate()
            detector.bind(None)

    def _forward(self, transition: Transition) -> None:
        if not self.active or self.paused or self._sink is None:
            return
        if isinstance(transition, DistractionStarted):
            key = self.gate.key_for(transition.signal_type)
            if not self.gate.accept(key, transition.timestamp, self.debounce_window_ms):
                self._notify()
                return
        self._sink(transition)
        self._notify()

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change()

    @property
    def is_currently_distracted(self) -> bool:
        return any(detector.distracted for detector in self.detectors.values())

    # Observation entry points

    def set_attention(self, has_attention: bool) -> None:
        detector = self.detectors.get(SignalType.TAB_SWITCH)
        if detector is not None:
            detector.set_attention(has_attention)

    def record_activity(self) -> None:
        detector = self.detectors.get(SignalType.IDLE)
        if detector is not None:
            detector.record_activity()

    def observe_location(self, location: str) -> None:
        detector = self.detectors.get(SignalType.BLACKLISTED_CONTENT)
        if detector is not None:
            detector.observe_location(location)

    @classmethod
    def from_config(
        cls,
        config: DetectorConfig,
        clock: PrecisionClock,
        scheduler: Scheduler,
        content_classifier: Optional[Classifier] = None,
        screen_snapshot: Optional[SnapshotProvider] = None,
        presence_classifier: Optional[Classifier] = None,
        camera_snapshot: Optional[SnapshotProvider] = None,
        on_change: Optional[Callable[[], None]] = None,
    ) -> "SignalMonitor":
        """Build a monitor with every detector the configuration allows.

        Classifier-backed detectors are only added when both the classifier
        and its snapshot provider are given.
        """
        monitor = cls(clock, config.debounce_window, config.debounce_scope, on_change)
        monitor.register(AttentionDetector(clock, scheduler, config.attention_grace))
        monitor.register(IdleDetector(clock, scheduler, config.idle_threshold))
        if config.blacklist:
            monitor.register(BlacklistDetector(
                clock, scheduler, config.blacklist, config.whitelist, config.blacklist_threshold
            ))
        if content_classifier is not None and screen_snapshot is not None:
            monitor.register(ContentRelevanceDetector(
                clock,
                scheduler,
                content_classifier,
                screen_snapshot,
                poll_interval=config.content_poll_interval,
                threshold=config.content_threshold,
                timeout=config.classifier_timeout,
                min_confidence=config.min_confidence,
            ))
        if presence_classifier is not None and camera_snapshot is not None:
            monitor.register(PresenceDetector(
                clock,
                scheduler,
                presence_classifier,
                camera_snapshot,
                poll_interval=config.presence_poll_interval,
                threshold=config.presence_threshold,
                timeout=config.classifier_timeout,
                min_confidence=config.min_confidence,
            ))
        return monitor
