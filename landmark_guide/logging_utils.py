"""Structured logging (one JSON line per backend call or orchestrator event)."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any


SERVICE_NAME = "landmark-guide"
RAW_PREVIEW_CHARS = 200


def log_request(
    intent: str,
    latency_ms: float,
    generation: int | None = None,
    request_id: str | None = None,
    error: bool = False,
    error_kind: str | None = None,
    raw_preview: str | None = None,
) -> None:
    """Emit one JSON line with required fields."""
    payload: dict[str, Any] = {
        "ts": datetime.now(tz=timezone.utc).isoformat(),
        "service": SERVICE_NAME,
        "route": f"gateway/{intent}",
        "latency_ms": round(latency_ms, 2),
        "generation": generation,
        "request_id": request_id,
        "error": error,
        "error_kind": error_kind,
    }
    if raw_preview is not None:
        payload["raw_preview"] = raw_preview[:RAW_PREVIEW_CHARS]
    print(json.dumps(payload, ensure_ascii=False))


def log_event(event: str, generation: int | None = None, **fields: Any) -> None:
    """Emit one JSON line for an orchestrator event (stale drop, rejected input, phase change)."""
    payload: dict[str, Any] = {
        "ts": datetime.now(tz=timezone.utc).isoformat(),
        "service": SERVICE_NAME,
        "event": event,
        "generation": generation,
    }
    payload.update(fields)
    print(json.dumps(payload, ensure_ascii=False, default=str))
