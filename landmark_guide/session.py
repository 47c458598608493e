"""Session value: phase, subject, current result and per-kind enrichment slots."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from landmark_guide.exceptions import ErrorKind
from landmark_guide.models import AnalysisResult, EncodedImage, NearbyLandmark, normalize_name


class Phase(str, Enum):
    IDLE = "idle"
    ACQUIRING = "acquiring"
    SUBMITTING = "submitting"
    PRESENTING = "presenting"
    UNCERTAIN = "uncertain"
    FAILED = "failed"


class EnrichmentKind(str, Enum):
    EXPAND = "expand"
    NEARBY = "nearby"
    PODCAST = "podcast"


@dataclass(frozen=True)
class RequestToken:
    """Correlates a backend completion with the request that produced it."""

    kind: str
    generation: int
    serial: int


@dataclass(frozen=True)
class EnrichmentSlot:
    loading: bool = False
    token: Optional[RequestToken] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ErrorInfo:
    kind: ErrorKind
    message: str
    detail: Optional[str] = None


def _empty_slots() -> dict[EnrichmentKind, EnrichmentSlot]:
    return {kind: EnrichmentSlot() for kind in EnrichmentKind}


@dataclass(frozen=True)
class Session:
    """
    Immutable orchestration state. Transitions build a new Session with
    dataclasses.replace; nothing in here is mutated in place.
    """

    phase: Phase = Phase.IDLE
    generation: int = 0
    serial: int = 0
    locale: str = "ar"
    subject_image: Optional[EncodedImage] = None
    subject_query: Optional[str] = None
    current_result: Optional[AnalysisResult] = None
    uncertain_message: Optional[str] = None
    error: Optional[ErrorInfo] = None
    identify_token: Optional[RequestToken] = None
    enrichment: dict[EnrichmentKind, EnrichmentSlot] = field(default_factory=_empty_slots)
    candidate_pool: tuple[NearbyLandmark, ...] = ()
    narration: Optional[str] = None
    camera_live: bool = False

    def slot(self, kind: EnrichmentKind) -> EnrichmentSlot:
        return self.enrichment.get(kind, EnrichmentSlot())

    @property
    def expanded_narrative(self) -> Optional[str]:
        if self.current_result is not None and self.current_result.expanded:
            return self.current_result.history
        return None

    @property
    def nearby_list(self) -> list[NearbyLandmark]:
        if self.current_result is None:
            return []
        return list(self.current_result.nearby_landmarks)

    @property
    def derivative_script(self) -> Optional[str]:
        if self.current_result is None or self.current_result.derivative_script is None:
            return None
        return self.current_result.derivative_script.text

    @property
    def has_subject(self) -> bool:
        return self.subject_image is not None or bool((self.subject_query or "").strip())


def without_self(entries: Iterable[NearbyLandmark], title: str) -> list[NearbyLandmark]:
    """Drop entries naming the subject itself (case-insensitive, whitespace-trimmed)."""
    own = normalize_name(title)
    return [e for e in entries if e.key != own]


def merge_nearby(
    existing: Iterable[NearbyLandmark],
    incoming: Iterable[NearbyLandmark],
    title: str,
) -> list[NearbyLandmark]:
    """Existing entries first, then new ones; duplicates by name and the subject are removed."""
    seen = {normalize_name(title)}
    out: list[NearbyLandmark] = []
    for entry in [*existing, *incoming]:
        if entry.key in seen:
            continue
        seen.add(entry.key)
        out.append(entry)
    return out


def invariant_violations(session: Session) -> list[str]:
    """Return human-readable violations; an empty list means the session is consistent."""
    problems: list[str] = []
    result = session.current_result
    if result is not None and session.phase is not Phase.PRESENTING:
        problems.append(f"result present in phase {session.phase.value}")
    if result is not None and result.derivative_script is not None:
        if result.derivative_script.title != result.title:
            problems.append("podcast script belongs to another title")
    if result is not None:
        own = normalize_name(result.title)
        if any(e.key == own for e in result.nearby_landmarks):
            problems.append("nearby list contains the subject itself")
    if session.phase is not Phase.PRESENTING:
        loading = [k.value for k, s in session.enrichment.items() if s.loading]
        if loading:
            problems.append(f"enrichment loading outside presenting: {loading}")
    if session.phase is Phase.SUBMITTING and session.identify_token is None:
        problems.append("submitting without an identify token")
    return problems
