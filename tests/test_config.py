"""Environment config, locale fallback and in-memory metrics."""

from __future__ import annotations

import pytest

from landmark_guide import metrics as metrics_module
from landmark_guide.config import GuideConfig
from landmark_guide.exceptions import ErrorKind
from landmark_guide.locales import LANGUAGES, MESSAGES, error_message, message, resolve


def test_from_env_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    """No env vars -> documented defaults."""
    for name in ("OPENAI_API_KEY", "GUIDE_NEARBY_MAX", "GUIDE_AUTO_NEARBY", "TTS_VOICE", "GUIDE_DEFAULT_LOCALE"):
        monkeypatch.delenv(name, raising=False)
    cfg = GuideConfig.from_env()
    assert cfg.openai_api_key == ""
    assert cfg.nearby_max == 10
    assert cfg.auto_nearby is True
    assert cfg.tts_voice == "alloy"
    assert cfg.default_locale == "ar"
    assert cfg.reverify_temperature < cfg.identify_temperature


def test_from_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    """Env vars are parsed into typed fields."""
    monkeypatch.setenv("OPENAI_API_KEY", " sk-test ")
    monkeypatch.setenv("GUIDE_NEARBY_MAX", "5")
    monkeypatch.setenv("GUIDE_NEARBY_RADIUS_M", "500")
    monkeypatch.setenv("GUIDE_AUTO_NEARBY", "0")
    monkeypatch.setenv("GUIDE_REQUEST_TIMEOUT_S", "12.5")
    monkeypatch.setenv("GUIDE_REVERIFY_TEMPERATURE", "0.2")
    monkeypatch.setenv("TTS_VOICE", " Shimmer ")
    monkeypatch.setenv("CAMERA_INDEX", "2")
    cfg = GuideConfig.from_env()
    assert cfg.openai_api_key == "sk-test"
    assert cfg.nearby_max == 5
    assert cfg.nearby_radius_m == 500
    assert cfg.auto_nearby is False
    assert cfg.request_timeout_s == 12.5
    assert cfg.reverify_temperature == 0.2
    assert cfg.tts_voice == "shimmer"
    assert cfg.camera_index == 2


def test_resolve_falls_back() -> None:
    """Unknown or empty locale codes use the default language."""
    assert resolve("FR").code == "fr"
    assert resolve("xx").code == "ar"
    assert resolve(None, "en").code == "en"
    assert resolve("xx", "zz").code == "ar"
    assert resolve("de").speech_tag == "de-DE"


def test_every_language_has_every_message() -> None:
    """All six languages carry the same message ids."""
    ids = set(MESSAGES["en"])
    assert set(LANGUAGES) == set(MESSAGES)
    for table in MESSAGES.values():
        assert set(table) == ids


def test_error_messages_are_localized() -> None:
    """Malformed and timeout read like connection errors; camera has its own text."""
    assert error_message(ErrorKind.MALFORMED, "en") == message("connection", "en")
    assert error_message(ErrorKind.TIMEOUT, "en") == message("connection", "en")
    assert error_message(ErrorKind.DEVICE_UNAVAILABLE, "fr") == MESSAGES["fr"]["camera"]
    assert error_message(ErrorKind.CANCELLED, "xx") == MESSAGES["ar"]["cancelled"]


def test_metrics_counters() -> None:
    """Requests, errors by kind, stale drops and average latency."""
    metrics_module.reset_metrics()
    metrics_module.record_request(latency_ms=100.0, intent="identify")
    metrics_module.record_request(latency_ms=300.0, error=True, error_kind="malformed", intent="identify")
    metrics_module.record_request(latency_ms=200.0, error=True, error_kind="timeout", intent="nearby")
    metrics_module.record_stale()
    m = metrics_module.get_metrics()
    assert m["request_count"] == 3
    assert m["error_count"] == 2
    assert m["malformed_count"] == 1
    assert m["timeout_count"] == 1
    assert m["transport_count"] == 0
    assert m["stale_dropped"] == 1
    assert m["latency_ms_avg"] == 200.0
    assert m["by_intent"] == {"identify": 2, "nearby": 1}
    metrics_module.reset_metrics()
    assert metrics_module.get_metrics()["request_count"] == 0
    assert metrics_module.get_metrics()["latency_ms_avg"] == 0.0
