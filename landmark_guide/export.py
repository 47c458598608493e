"""Plain-text report of a result, for clipboard / share / download sinks."""

from __future__ import annotations

import re
from typing import Protocol

from landmark_guide.models import AnalysisResult


class ReportSink(Protocol):
    async def write_text(self, text: str) -> None:
        ...

    async def share_file(self, data: bytes, filename: str, mime_type: str) -> bool:
        """Return False when native sharing is unavailable."""
        ...

    async def trigger_download(self, data: bytes, filename: str) -> None:
        ...


def report_filename(result: AnalysisResult) -> str:
    slug = re.sub(r"[^\w]+", "-", result.title.strip().lower(), flags=re.UNICODE).strip("-")
    return f"{slug or 'landmark'}.md"


def render_report(result: AnalysisResult) -> str:
    lines = [f"# {result.title}", ""]
    if result.history:
        lines += ["## History", "", result.history.strip(), ""]
    if result.architecture:
        lines += ["## Architecture", "", result.architecture.strip(), ""]
    if result.fun_facts:
        lines += ["## Fun facts", ""]
        lines += [f"- {fact}" for fact in result.fun_facts]
        lines.append("")
    if result.nearby_landmarks:
        lines += ["## Nearby", ""]
        for entry in result.nearby_landmarks:
            where = ", ".join(p for p in (entry.distance, entry.direction) if p)
            suffix = f" ({where})" if where else ""
            brief = f": {entry.brief}" if entry.brief else ""
            lines.append(f"- {entry.name}{suffix}{brief}")
        lines.append("")
    if result.derivative_script is not None:
        lines += ["## Podcast", "", result.derivative_script.text.strip(), ""]
    return "\n".join(lines).rstrip() + "\n"
