import pytest
from pydantic import ValidationError

from focus_voyage.config.config import DetectorConfig
from focus_voyage.config.settings import Settings
from focus_voyage.services.debounce import DebounceScope


def test_defaults_match_production_values():
    config = DetectorConfig()
    assert config.debounce_window == 10.0
    assert config.debounce_window_ms == 10000.0
    assert config.idle_threshold == 120.0
    assert config.attention_grace == 15.0
    assert config.content_poll_interval == 60.0
    assert config.debounce_scope == DebounceScope.SIGNAL

def test_from_settings_reads_environment(monkeypatch):
    monkeypatch.setenv("IDLE_THRESHOLD_SECONDS", "15")
    monkeypatch.setenv("DEBOUNCE_WINDOW_SECONDS", "0")
    monkeypatch.setenv("DEBOUNCE_SCOPE", "session")
    monkeypatch.setenv("DISTRACTION_BLACKLIST", '["example.com"]')

    config = DetectorConfig.from_settings(Settings())

    assert config.idle_threshold == 15.0
    assert config.debounce_window == 0.0
    assert config.debounce_scope == DebounceScope.SESSION
    assert config.blacklist == ["example.com"]

def test_invalid_thresholds_are_rejected():
    with pytest.raises(ValidationError):
        DetectorConfig(idle_threshold=0)
    with pytest.raises(ValidationError):
        DetectorConfig(debounce_window=-1)
    with pytest.raises(ValidationError):
        DetectorConfig(min_confidence=2)
