from typing import List
from pydantic import BaseModel, Field
import logging

from focus_voyage.config.settings import Settings, settings as default_settings
from focus_voyage.services.debounce import DebounceScope

logger = logging.getLogger(__name__)

class DetectorConfig(BaseModel):
    """Thresholds for the distraction detectors, all in seconds"""
    debounce_window: float = Field(
        default=10.0,
        ge=0.0,
        description="Minimum gap between two accepted distraction starts"
    )
    debounce_scope: DebounceScope = Field(
        default=DebounceScope.SIGNAL,
        description="Debounce per signal type or across the whole session"
    )
    attention_grace: float = Field(
        default=15.0,
        ge=0.0,
        description="How long attention may be lost before it counts"
    )
    idle_threshold: float = Field(
        default=120.0,
        gt=0.0,
        description="Seconds without input before the user is idle"
    )
    content_poll_interval: float = Field(
        default=60.0,
        gt=0.0,
        description="Seconds between content relevance checks"
    )
    content_threshold: float = Field(
        default=15.0,
        ge=0.0,
        description="How long irrelevant content must persist before it counts"
    )
    presence_poll_interval: float = Field(
        default=60.0,
        gt=0.0,
        description="Seconds between presence checks"
    )
    presence_threshold: float = Field(
        default=15.0,
        ge=0.0,
        description="How long absence must persist before it counts"
    )
    blacklist_threshold: float = Field(
        default=15.0,
        ge=0.0,
        description="How long a blacklisted location must stay open before it counts"
    )
    classifier_timeout: float = Field(
        default=20.0,
        gt=0.0,
        description="Seconds to wait for a classifier verdict"
    )
    min_confidence: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Verdicts below this confidence are treated as no verdict"
    )
    flush_timeout: float = Field(
        default=5.0,
        ge=0.0,
        description="Seconds end() waits for pending event writes"
    )
    blacklist: List[str] = Field(default_factory=list)
    whitelist: List[str] = Field(default_factory=list)

    @property
    def debounce_window_ms(self) -> float:
        return self.debounce_window * 1000

    @classmethod
    def from_settings(cls, source: Settings = None) -> "DetectorConfig":
        """Build detector thresholds from environment-backed settings"""
        source = source or default_settings
        config = cls(
            debounce_window=source.DEBOUNCE_WINDOW_SECONDS,
            debounce_scope=DebounceScope(source.DEBOUNCE_SCOPE),
            attention_grace=source.ATTENTION_GRACE_SECONDS,
            idle_threshold=source.IDLE_THRESHOLD_SECONDS,
            content_poll_interval=source.CONTENT_POLL_INTERVAL_SECONDS,
            content_threshold=source.CONTENT_IRRELEVANT_THRESHOLD_SECONDS,
            presence_poll_interval=source.PRESENCE_POLL_INTERVAL_SECONDS,
            presence_threshold=source.PRESENCE_ABSENCE_THRESHOLD_SECONDS,
            blacklist_threshold=source.BLACKLIST_THRESHOLD_SECONDS,
            classifier_timeout=source.CLASSIFIER_TIMEOUT_SECONDS,
            min_confidence=source.CLASSIFIER_MIN_CONFIDENCE,
            flush_timeout=source.PERSISTENCE_FLUSH_TIMEOUT_SECONDS,
            blacklist=list(source.DISTRACTION_BLACKLIST),
            whitelist=list(source.PRODUCTIVITY_WHITELIST),
        )
        logger.debug(f"Detector configuration: {config.model_dump()}")
        return config
