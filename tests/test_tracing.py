"""Tracing tests (no LangSmith network calls)."""

from __future__ import annotations

import pytest

from landmark_guide.tracing import NoopTracer, call_tags, get_tracer, set_tracer, subject_hash


def test_subject_hash() -> None:
    """subject_hash returns consistent short hash, not raw text."""
    h = subject_hash("Hagia Sophia")
    assert len(h) == 16
    assert h == subject_hash("Hagia Sophia")
    assert h != subject_hash("Colosseum")
    assert "Hagia" not in h


def test_call_tags() -> None:
    """Tags are strings; the subject only appears hashed."""
    tags = call_tags("identify", 4, "Hagia Sophia", True)
    assert tags == {
        "intent": "identify",
        "generation": "4",
        "subject_hash": subject_hash("Hagia Sophia"),
        "has_image": "1",
    }
    assert call_tags("nearby", 0, None, False)["subject_hash"] == subject_hash("")


def test_noop_tracer_span() -> None:
    """NoopTracer span yields a writable outputs dict and re-raises errors."""
    tracer = NoopTracer()
    with tracer.span("test", {"k": "v"}) as outputs:
        outputs["x"] = 1
    with pytest.raises(ValueError):
        with tracer.span("test", {}):
            raise ValueError("boom")


def test_default_tracer_is_noop_when_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    """Without LANGSMITH_ENABLED=1 the default tracer is a no-op."""
    monkeypatch.delenv("LANGSMITH_ENABLED", raising=False)
    set_tracer(None)
    try:
        assert isinstance(get_tracer(), NoopTracer)
    finally:
        set_tracer(None)


def test_set_tracer_overrides_default() -> None:
    """set_tracer injects a tracer until reset."""
    custom = NoopTracer()
    set_tracer(custom)
    try:
        assert get_tracer() is custom
    finally:
        set_tracer(None)
