"""Narration controller: at most one utterance alive, toggle semantics per section."""

from __future__ import annotations

import itertools
from typing import Any, Callable, Optional, Protocol


class SpeechEngine(Protocol):
    """Speech boundary: start one utterance, cancel everything."""

    def speak(
        self,
        text: str,
        lang: str,
        on_start: Callable[[], None],
        on_end: Callable[[], None],
    ) -> Any:
        ...

    def cancel_all(self) -> None:
        ...


class NarrationController:
    """
    Silent / Speaking(section) state machine.

    read() on the active section stops it; read() on another section cancels the
    current utterance before starting the new one. Completion events only clear
    the state when they belong to the utterance that is still active.
    """

    def __init__(
        self,
        engine: SpeechEngine,
        on_change: Optional[Callable[[Optional[str]], None]] = None,
    ) -> None:
        self._engine = engine
        self._on_change = on_change
        self._section: Optional[str] = None
        self._utterance: Optional[int] = None
        self._ids = itertools.count(1)

    @property
    def section(self) -> Optional[str]:
        return self._section

    @property
    def speaking(self) -> bool:
        return self._section is not None

    def _set(self, section: Optional[str], utterance: Optional[int]) -> None:
        changed = section != self._section
        self._section = section
        self._utterance = utterance
        if changed and self._on_change is not None:
            self._on_change(section)

    def read(self, text: str, section_id: str, lang: str = "en-US") -> Optional[str]:
        """Toggle narration for a section; returns the section now speaking (or None)."""
        if self._section is not None:
            same = self._section == section_id
            self._set(None, None)
            self._engine.cancel_all()
            if same:
                return None
        if not text or not text.strip():
            return None
        utterance = next(self._ids)
        self._set(section_id, utterance)
        self._engine.speak(
            text,
            lang,
            on_start=lambda: None,
            on_end=lambda: self._ended(section_id, utterance),
        )
        return section_id

    def _ended(self, section_id: str, utterance: int) -> None:
        if self._section == section_id and self._utterance == utterance:
            self._set(None, None)

    def reset(self) -> None:
        """Force Silent and cancel the engine unconditionally."""
        self._set(None, None)
        self._engine.cancel_all()
