"""Per-signal distraction detectors.

Each detector is a small state machine that turns raw observations
(attention changes, input activity, classifier verdicts, visited locations)
into ``DistractionStarted`` / ``DistractionEnded`` transitions. Detectors never
count anything themselves: transitions go to the sink installed by
``SignalMonitor``.

Every timer a detector arms lives in its own ``TimerGroup`` and every polling
task is tracked, so ``deactivate()`` leaves nothing behind that could fire
after the session has ended.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Optional

from focus_voyage.models.events import (
    DistractionEnded,
    DistractionStarted,
    SignalState,
    SignalType,
    Transition,
)
from focus_voyage.models.verdict import Verdict
from focus_voyage.services.analyzer import Classifier
from focus_voyage.services.clock import PrecisionClock
from focus_voyage.services.timers import Scheduler, TimerGroup, TimerHandle

logger = logging.getLogger(__name__)

SnapshotProvider = Callable[[], Awaitable[bytes]]
TransitionSink = Callable[[Transition], None]


class Detector:
    """Base class holding the shared start/end bookkeeping"""

    signal_type: SignalType

    def __init__(self, clock: PrecisionClock, scheduler: Scheduler, threshold: float):
        self.clock = clock
        self.timers = TimerGroup(scheduler)
        self.threshold = threshold
        self.state = SignalState(threshold_ms=threshold * 1000)
        self._sink: Optional[TransitionSink] = None

    def bind(self, sink: Optional[TransitionSink]) -> None:
        self._sink = sink

    @property
    def active(self) -> bool:
        return self.state.active

    @property
    def distracted(self) -> bool:
        return self.state.distracted

    def activate(self) -> None:
        if self.state.active:
            return
        self.timers.reopen()
        self.state.active = True
        self.state.armed_at = self.clock.now()
        self._on_activate()
        logger.debug(f"{self.signal_type.value} detector activated")

    def deactivate(self) -> None:
        """Cancel every timer and task synchronously and forget live state"""
        self.timers.close()
        self._on_deactivate()
        self.state.reset()
        logger.debug(f"{self.signal_type.value} detector deactivated")

    def close_episode(self) -> None:
        """Resolve an open episode now, while the sink is still bound"""
        self._end()

    def _on_activate(self) -> None:
        pass

    def _on_deactivate(self) -> None:
        pass

    def _start(self, since: float) -> None:
        if self.state.distracted:
            return
        self.state.distracted_since = since
        self._emit(DistractionStarted(self.signal_type, since))

    def _end(self, now: Optional[float] = None) -> None:
        since = self.state.distracted_since
        if since is None:
            return
        now = self.clock.now() if now is None else now
        self.state.distracted_since = None
        self._emit(DistractionEnded(self.signal_type, now, self.clock.duration(since, now)))

    def _emit(self, transition: Transition) -> None:
        if not self.state.active or self._sink is None:
            return
        self._sink(transition)


class AttentionDetector(Detector):
    """Tab/window attention: losing attention for longer than the grace period is a distraction"""

    signal_type = SignalType.TAB_SWITCH

    def __init__(self, clock: PrecisionClock, scheduler: Scheduler, grace_period: float = 15.0):
        super().__init__(clock, scheduler, grace_period)
        self._lost_at: Optional[float] = None
        self._grace_timer: Optional[TimerHandle] = None

    def _on_deactivate(self) -> None:
        self._lost_at = None
        self._grace_timer = None

    def set_attention(self, has_attention: bool) -> None:
        if not self.active:
            return
        now = self.clock.now()
        if not has_attention:
            if self._lost_at is not None:
                return
            self._lost_at = now
            if self.threshold <= 0:
                self._start(now)
            else:
                self._grace_timer = self.timers.call_later(self.threshold, self._grace_expired)
            return

        if self._lost_at is None:
            return
        if self._grace_timer is not None:
            self._grace_timer.cancel()
            self._grace_timer = None
        self._end(now)
        self._lost_at = None

    def _grace_expired(self) -> None:
        self._grace_timer = None
        if self._lost_at is not None:
            self._start(self._lost_at)


class IdleDetector(Detector):
    """No input activity for the idle threshold is a distraction"""

    signal_type = SignalType.IDLE

    def __init__(self, clock: PrecisionClock, scheduler: Scheduler, idle_threshold: float = 120.0):
        super().__init__(clock, scheduler, idle_threshold)
        self._idle_timer: Optional[TimerHandle] = None

    def _on_activate(self) -> None:
        self.state.last_activity = self.clock.now()
        self._arm()

    def _on_deactivate(self) -> None:
        self._idle_timer = None

    def _arm(self) -> None:
        if self._idle_timer is not None:
            self._idle_timer.cancel()
        self._idle_timer = self.timers.call_later(self.threshold, self._idle_expired)

    def record_activity(self) -> None:
        if not self.active:
            return
        now = self.clock.now()
        # Duration runs from the last activity, not from when the timer fired
        self._end(now)
        self.state.last_activity = now
        self._arm()

    def _idle_expired(self) -> None:
        self._idle_timer = None
        self._start(self.state.last_activity)


class ClassifierDetector(Detector):
    """Polls a classifier and treats sustained negative verdicts as a distraction.

    Failures, timeouts and low-confidence answers are "no verdict" and never
    change state, so an unreliable classifier cannot raise false alarms.
    """

    def __init__(
        self,
        clock: PrecisionClock,
        scheduler: Scheduler,
        classifier: Classifier,
        snapshot_provider: SnapshotProvider,
        poll_interval: float = 60.0,
        threshold: float = 15.0,
        timeout: float = 20.0,
        min_confidence: float = 0.0,
    ):
        super().__init__(clock, scheduler, threshold)
        self.classifier = classifier
        self.snapshot_provider = snapshot_provider
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.min_confidence = min_confidence
        self.last_verdict: Optional[Verdict] = None
        self._pending_since: Optional[float] = None
        self._poll_task: Optional[asyncio.Task] = None

    def _on_activate(self) -> None:
        self._pending_since = None
        self._schedule_poll()

    def _on_deactivate(self) -> None:
        if self._poll_task is not None and not self._poll_task.done():
            self._poll_task.cancel()
        self._poll_task = None
        self._pending_since = None

    def _schedule_poll(self) -> None:
        self.timers.call_later(self.poll_interval, self._on_poll_timer)

    def _on_poll_timer(self) -> None:
        if not self.active:
            return
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.ensure_future(self.check())
        else:
            logger.debug(f"{self.signal_type.value} check still running, skipping poll")
        self._schedule_poll()

    async def check(self) -> Optional[Verdict]:
        """Run one snapshot/classify round and apply the verdict"""
        if not self.active:
            return None
        verdict = await self._evaluate()
        if verdict is None or not self.active:
            return verdict
        self.apply_verdict(verdict)
        return verdict

    async def _evaluate(self) -> Optional[Verdict]:
        try:
            snapshot = await self.snapshot_provider()
            verdict = await asyncio.wait_for(self.classifier.evaluate(snapshot), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{self.signal_type.value} classifier timed out after {self.timeout}s")
            return None
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"{self.signal_type.value} check inconclusive: {e}")
            return None

        if verdict.confidence < self.min_confidence:
            logger.debug(
                f"{self.signal_type.value} verdict ignored, confidence {verdict.confidence:.2f} "
                f"< {self.min_confidence:.2f}"
            )
            return None
        return verdict

    def apply_verdict(self, verdict: Verdict) -> None:
        if not self.active:
            return
        now = self.clock.now()
        self.last_verdict = verdict
        self.state.last_activity = now

        if verdict.relevant:
            self._pending_since = None
            self._end(now)
            return

        if self._pending_since is None:
            self._pending_since = now
        if not self.distracted and self.clock.duration(self._pending_since, now) >= self.state.threshold_ms:
            self._start(self._pending_since)


class ContentRelevanceDetector(ClassifierDetector):
    """Screen content unrelated to the session goal"""

    signal_type = SignalType.CONTENT_IRRELEVANT


class PresenceDetector(ClassifierDetector):
    """Nobody present and facing the work surface"""

    signal_type = SignalType.PRESENCE_ABSENCE


class BlacklistDetector(Detector):
    """Staying on a blacklisted site or app for longer than the threshold"""

    signal_type = SignalType.BLACKLISTED_CONTENT

    def __init__(
        self,
        clock: PrecisionClock,
        scheduler: Scheduler,
        blacklist: Iterable[str],
        whitelist: Iterable[str] = (),
        threshold: float = 15.0,
    ):
        super().__init__(clock, scheduler, threshold)
        self.blacklist: List[str] = [item.lower() for item in blacklist]
        self.whitelist: List[str] = [item.lower() for item in whitelist]
        self.current_location: Optional[str] = None
        self._entered_at: Optional[float] = None
        self._threshold_timer: Optional[TimerHandle] = None

    def _on_deactivate(self) -> None:
        self.current_location = None
        self._entered_at = None
        self._threshold_timer = None

    def is_whitelisted(self, location: str) -> bool:
        location = location.lower()
        return any(item in location for item in self.whitelist)

    def is_blacklisted(self, location: str) -> bool:
        location = location.lower()
        return any(item in location for item in self.blacklist)

    def observe_location(self, location: str) -> None:
        if not self.active:
            return
        if self.is_whitelisted(location) or not self.is_blacklisted(location):
            self._leave()
            return

        self.current_location = location
        if self._entered_at is not None:
            return
        now = self.clock.now()
        self._entered_at = now
        if self.threshold <= 0:
            self._start(now)
        else:
            self._threshold_timer = self.timers.call_later(self.threshold, self._threshold_expired)

    def _leave(self) -> None:
        if self._entered_at is None:
            return
        if self._threshold_timer is not None:
            self._threshold_timer.cancel()
            self._threshold_timer = None
        self._end()
        self._entered_at = None
        self.current_location = None

    def _threshold_expired(self) -> None:
        self._threshold_timer = None
        if self._entered_at is not None:
            self._start(self._entered_at)
