"""Narration controller: one live utterance, toggle per section, stale completions ignored."""

from __future__ import annotations

from typing import Callable, Optional

from landmark_guide.narration import NarrationController


class FakeEngine:
    """Tracks which utterances are still playing."""

    def __init__(self) -> None:
        self.started: list[tuple[str, str]] = []
        self.ends: list[Callable[[], None]] = []
        self.live = 0
        self.cancel_calls = 0

    def speak(self, text: str, lang: str, on_start: Callable[[], None], on_end: Callable[[], None]) -> None:
        self.started.append((text, lang))
        self.ends.append(on_end)
        self.live += 1
        on_start()

    def cancel_all(self) -> None:
        self.cancel_calls += 1
        self.live = 0


def _controller() -> tuple[NarrationController, FakeEngine, list[Optional[str]]]:
    engine = FakeEngine()
    changes: list[Optional[str]] = []
    return NarrationController(engine, on_change=changes.append), engine, changes


def test_read_starts_and_second_read_stops() -> None:
    """Same section twice: speak, then silence."""
    ctrl, engine, changes = _controller()
    assert ctrl.read("Long history text", "history", "ar-SA") == "history"
    assert ctrl.speaking
    assert engine.started == [("Long history text", "ar-SA")]
    assert ctrl.read("Long history text", "history", "ar-SA") is None
    assert not ctrl.speaking
    assert engine.live == 0
    assert changes == ["history", None]


def test_switching_section_cancels_first() -> None:
    """Another section never overlaps the current utterance."""
    ctrl, engine, _ = _controller()
    ctrl.read("History", "history")
    ctrl.read("Architecture", "arch")
    assert ctrl.section == "arch"
    assert engine.cancel_calls == 1
    assert engine.live == 1


def test_late_end_of_cancelled_utterance_is_ignored() -> None:
    """on_end of a replaced utterance does not silence the new one."""
    ctrl, engine, _ = _controller()
    ctrl.read("History", "history")
    ctrl.read("Architecture", "arch")
    engine.ends[0]()
    assert ctrl.section == "arch"
    engine.ends[1]()
    assert ctrl.section is None


def test_end_of_same_section_from_earlier_read_is_ignored() -> None:
    """Re-reading a section: the first run's on_end does not stop the second."""
    ctrl, engine, _ = _controller()
    ctrl.read("History", "history")
    ctrl.read("History", "history")
    ctrl.read("History", "history")
    engine.ends[0]()
    assert ctrl.section == "history"


def test_blank_text_is_not_spoken() -> None:
    """Empty section text leaves the controller silent."""
    ctrl, engine, changes = _controller()
    assert ctrl.read("   ", "podcast") is None
    assert engine.started == []
    assert changes == []


def test_reset_always_cancels() -> None:
    """reset() silences and cancels the engine even when already silent."""
    ctrl, engine, changes = _controller()
    ctrl.reset()
    assert engine.cancel_calls == 1
    ctrl.read("Facts", "facts")
    ctrl.reset()
    assert ctrl.section is None
    assert engine.cancel_calls == 2
    assert changes == ["facts", None]
