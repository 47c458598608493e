"""In-memory metrics since process start (backend calls per intent, errors by kind, stale drops, latency)."""

from __future__ import annotations

from collections import Counter

_counts: Counter[str] = Counter()
_by_intent: Counter[str] = Counter()
_latency = {"sum_ms": 0.0}

# Error kinds that get their own counter in get_metrics().
TRACKED_ERROR_KINDS = ("malformed", "timeout", "transport")


def record_request(
    latency_ms: float,
    error: bool = False,
    error_kind: str | None = None,
    intent: str | None = None,
) -> None:
    """Record one backend call for metrics."""
    _counts["request_count"] += 1
    _latency["sum_ms"] += latency_ms
    if intent:
        _by_intent[intent] += 1
    if error:
        _counts["error_count"] += 1
        if error_kind in TRACKED_ERROR_KINDS:
            _counts[f"{error_kind}_count"] += 1


def record_stale() -> None:
    """Count a completion dropped because its session generation moved on."""
    _counts["stale_dropped"] += 1


def get_metrics() -> dict[str, int | float | dict[str, int]]:
    """Return current metrics as dict (for /metrics endpoint)."""
    total = _counts["request_count"]
    avg = _latency["sum_ms"] / total if total else 0.0
    out: dict[str, int | float | dict[str, int]] = {
        "request_count": total,
        "error_count": _counts["error_count"],
    }
    for kind in TRACKED_ERROR_KINDS:
        out[f"{kind}_count"] = _counts[f"{kind}_count"]
    out["stale_dropped"] = _counts["stale_dropped"]
    out["latency_ms_avg"] = round(avg, 2)
    out["by_intent"] = dict(_by_intent)
    return out


def reset_metrics() -> None:
    """Reset in-memory counters (for tests only)."""
    _counts.clear()
    _by_intent.clear()
    _latency["sum_ms"] = 0.0
