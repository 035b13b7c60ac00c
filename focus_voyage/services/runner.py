import sys
import asyncio
import logging
import signal
from typing import Optional

from rich.live import Live

from focus_voyage.config.config import DetectorConfig
from focus_voyage.models.events import UserResponse
from focus_voyage.models.session import Session, SessionSnapshot
from focus_voyage.services.analyzer import GeminiClassifier
from focus_voyage.services.clock import PrecisionClock
from focus_voyage.services.display import StatusLine, TerminalDisplay
from focus_voyage.services.errors import ClassifierError, ServiceError
from focus_voyage.services.image import ImageManager
from focus_voyage.services.monitor import SignalMonitor
from focus_voyage.services.persistence import PersistenceAdapter
from focus_voyage.services.session import SessionManager
from focus_voyage.services.timers import LoopScheduler

logger = logging.getLogger(__name__)

RESPONSES = {response.value: response for response in UserResponse}


class FocusRunner:
    """Runs one focus session in the terminal with graceful shutdown handling.

    Every line typed on stdin counts as activity for the idle detector. The
    words ``returned``, ``exploring`` and ``ignored`` answer the latest
    distraction, ``quit`` ends the session and ``abandon`` gives it up.
    ``away`` and ``back`` report losing and regaining attention, and
    ``visit LOCATION`` reports the page or app currently in front of the user.
    """

    def __init__(
        self,
        destination_id: str,
        owner_id: str,
        store: PersistenceAdapter,
        planned_minutes: Optional[int] = None,
        goal: Optional[str] = None,
        use_screen: bool = True,
        config: Optional[DetectorConfig] = None,
        display: Optional[TerminalDisplay] = None,
    ):
        self.destination_id = destination_id
        self.owner_id = owner_id
        self.planned_minutes = planned_minutes
        self.goal = goal or destination_id
        self.use_screen = use_screen
        self.config = config or DetectorConfig.from_settings()
        self.display = display or TerminalDisplay()
        self.store = store
        self.clock = PrecisionClock()
        self.image_manager: Optional[ImageManager] = None

        self.shutdown_event = asyncio.Event()
        self.abandon_requested = False
        self._last_count = 0
        self._live: Optional[Live] = None

        self.manager = SessionManager(
            self._build_monitor(),
            store=self.store,
            clock=self.clock,
            flush_timeout=self.config.flush_timeout,
        )

    def _build_monitor(self) -> SignalMonitor:
        classifier = None
        snapshot = None
        if self.use_screen:
            if GeminiClassifier.is_configured():
                try:
                    classifier = GeminiClassifier(mode="content", goal=self.goal, task=self.destination_id)
                    self.image_manager = ImageManager()
                    snapshot = self.image_manager.capture_snapshot
                except ClassifierError as e:
                    logger.error(f"Content relevance detection disabled: {e}")
            else:
                logger.warning("GEMINI_API_KEY not set, content relevance detection disabled")

        return SignalMonitor.from_config(
            self.config,
            self.clock,
            LoopScheduler(),
            content_classifier=classifier,
            screen_snapshot=snapshot,
        )

    def _setup_signal_handlers(self):
        """Set up handlers for system signals"""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, lambda s=sig: self.shutdown(s))
            except NotImplementedError:
                logger.debug(f"Signal handlers unsupported, {sig.name} not handled")

    def _setup_input(self) -> bool:
        try:
            asyncio.get_running_loop().add_reader(sys.stdin.fileno(), self._on_input)
            return True
        except (NotImplementedError, ValueError, OSError) as e:
            logger.warning(f"Terminal input unavailable, idle detection gets no activity: {e}")
            return False

    def _teardown_input(self):
        try:
            asyncio.get_running_loop().remove_reader(sys.stdin.fileno())
        except (NotImplementedError, ValueError, OSError):
            pass

    def _on_input(self):
        line = sys.stdin.readline()
        if not line:
            # EOF
            self._teardown_input()
            return
        self.handle_command(line)

    def handle_command(self, line: str):
        """Apply one line of terminal input to the running session"""
        self.manager.monitor.record_activity()
        command = line.strip().lower()
        if not command:
            return
        word, _, argument = command.partition(" ")
        if word == "away":
            self.manager.monitor.set_attention(False)
        elif word == "back":
            self.manager.monitor.set_attention(True)
        elif word == "visit" and argument.strip():
            self.manager.monitor.observe_location(argument.strip())
        elif command in RESPONSES:
            try:
                self.manager.record_response(RESPONSES[command])
            except ServiceError as e:
                logger.warning(f"Could not record response: {e}")
        elif command in ("quit", "end", "q"):
            self.shutdown()
        elif command == "abandon":
            self.abandon_requested = True
            self.shutdown()
        else:
            logger.debug(f"Unknown command: {command}")

    def shutdown(self, sig: Optional[signal.Signals] = None):
        """Request a graceful end of the session"""
        if sig:
            logger.info(f"Received exit signal {sig.name}...")
        self.shutdown_event.set()

    def _on_change(self, snapshot: SessionSnapshot):
        if snapshot.distraction_count > self._last_count:
            self._last_count = snapshot.distraction_count
            self.display.alert(snapshot, self._live.console if self._live else None)

    async def run(self) -> Optional[Session]:
        """Run the session until shutdown or until the planned duration elapses"""
        self._setup_signal_handlers()
        session = await self.manager.start(self.destination_id, self.owner_id, self.planned_minutes)
        unsubscribe = self.manager.subscribe(self._on_change)
        reading = self._setup_input()
        timeout = self.planned_minutes * 60 if self.planned_minutes else None

        status = StatusLine(self.manager.snapshot, self.destination_id)
        try:
            with Live(status, console=self.display.console, refresh_per_second=4) as live:
                self._live = live
                try:
                    await asyncio.wait_for(self.shutdown_event.wait(), timeout=timeout)
                except asyncio.TimeoutError:
                    logger.info(f"Planned duration of {self.planned_minutes} minutes reached")
        finally:
            self._live = None
            unsubscribe()
            if reading:
                self._teardown_input()
            if self.abandon_requested:
                session = await self.manager.abandon()
            else:
                session = await self.manager.end()
            await self.cleanup()
        return session

    async def cleanup(self):
        """Ensure all resources are properly cleaned up"""
        if self.image_manager is not None:
            self.image_manager.cleanup()


def run_session(**kwargs) -> Optional[Session]:
    """Entry point for running a session"""
    runner = FocusRunner(**kwargs)
    return asyncio.run(runner.run())
