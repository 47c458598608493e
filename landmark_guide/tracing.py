"""Injectable tracing for backend calls (NoopTracer / LangSmith RunTree tracer)."""

from __future__ import annotations

import hashlib
import os
from contextlib import contextmanager
from typing import Any, Iterator, Protocol


def subject_hash(subject: str) -> str:
    """Hash subject text for tags; raw queries and titles are never sent to the tracer."""
    return hashlib.sha256(subject.encode()).hexdigest()[:16]


def call_tags(intent: str, generation: int, subject: str | None, has_image: bool) -> dict[str, str]:
    return {
        "intent": intent,
        "generation": str(generation),
        "subject_hash": subject_hash(subject or ""),
        "has_image": "1" if has_image else "0",
    }


class Tracer(Protocol):
    """span(name, tags) yields a dict the caller may fill with outputs."""

    @contextmanager
    def span(self, name: str, tags: dict[str, str]) -> Iterator[dict[str, Any]]:
        ...


class NoopTracer:
    """Default tracer: spans collect outputs and discard them."""

    @contextmanager
    def span(self, name: str, tags: dict[str, str]) -> Iterator[dict[str, Any]]:
        yield {}


class _LangSmithTracer:
    """One RunTree per gateway call; errors are recorded then re-raised."""

    def __init__(self, project: str | None = None) -> None:
        from langsmith import Client

        self._client = Client()
        self._project = project

    @contextmanager
    def span(self, name: str, tags: dict[str, str]) -> Iterator[dict[str, Any]]:
        from langsmith.run_trees import RunTree

        kwargs: dict[str, Any] = {"name": name, "run_type": "llm", "inputs": dict(tags)}
        if self._project:
            kwargs["project_name"] = self._project
        run = RunTree(**kwargs)
        outputs: dict[str, Any] = {}
        try:
            yield outputs
        except BaseException as e:
            run.end(error=f"{type(e).__name__}: {e}")
            self._post(run)
            raise
        run.end(outputs=outputs)
        self._post(run)

    @staticmethod
    def _post(run: Any) -> None:
        # Tracing must never break a discovery.
        try:
            run.post()
        except Exception:
            pass


def _make_tracer() -> Tracer:
    if os.environ.get("LANGSMITH_ENABLED") != "1":
        return NoopTracer()
    if not os.environ.get("LANGSMITH_API_KEY"):
        return NoopTracer()
    try:
        return _LangSmithTracer(os.environ.get("LANGSMITH_PROJECT") or None)
    except Exception:
        return NoopTracer()


_tracer: Tracer | None = None


def get_tracer() -> Tracer:
    global _tracer
    if _tracer is None:
        _tracer = _make_tracer()
    return _tracer


def set_tracer(t: Tracer | None) -> None:
    """Set tracer (for tests); None resets to default."""
    global _tracer
    _tracer = t
