"""
Pure transitions for the discovery session.

transition(session, event, config) -> (session, effects). No I/O happens here:
backend calls, camera work and narration are described as effects and run by
the orchestrator, which feeds their completions back in as events.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Optional, Union

from landmark_guide.config import GuideConfig
from landmark_guide.exceptions import ErrorKind
from landmark_guide.locales import error_message, message
from landmark_guide.models import (
    TITLE_PLACEHOLDER,
    AnalysisResult,
    DerivativeScript,
    EncodedImage,
    ExpandPayload,
    IdentifyPayload,
    NearbyLandmark,
    NearbyPayload,
    PodcastPayload,
    normalize_name,
)
from landmark_guide.prompts import Intent
from landmark_guide.session import (
    EnrichmentKind,
    EnrichmentSlot,
    ErrorInfo,
    Phase,
    RequestToken,
    Session,
    merge_nearby,
    without_self,
)

ENRICHMENT_INTENTS: dict[EnrichmentKind, Intent] = {
    EnrichmentKind.EXPAND: Intent.EXPAND,
    EnrichmentKind.NEARBY: Intent.NEARBY,
    EnrichmentKind.PODCAST: Intent.PODCAST,
}


# Events


@dataclass(frozen=True)
class StartAcquisition:
    pass


@dataclass(frozen=True)
class CameraReady:
    generation: int


@dataclass(frozen=True)
class CameraFailed:
    generation: int
    detail: str = ""


@dataclass(frozen=True)
class SubmitImage:
    image: EncodedImage
    hint: Optional[str] = None


@dataclass(frozen=True)
class SubmitSearch:
    query: str


@dataclass(frozen=True)
class SelectLandmark:
    name: str


@dataclass(frozen=True)
class Reverify:
    pass


@dataclass(frozen=True)
class RequestEnrichment:
    kind: EnrichmentKind


@dataclass(frozen=True)
class IdentifyResolved:
    token: RequestToken
    payload: IdentifyPayload


@dataclass(frozen=True)
class EnrichmentResolved:
    token: RequestToken
    payload: Union[ExpandPayload, NearbyPayload, PodcastPayload]


@dataclass(frozen=True)
class RequestFailed:
    token: RequestToken
    kind: ErrorKind
    detail: str = ""


@dataclass(frozen=True)
class CancelRequest:
    pass


@dataclass(frozen=True)
class SetLocale:
    locale: str


@dataclass(frozen=True)
class NarrationChanged:
    section: Optional[str]


Event = Union[
    StartAcquisition,
    CameraReady,
    CameraFailed,
    SubmitImage,
    SubmitSearch,
    SelectLandmark,
    Reverify,
    RequestEnrichment,
    IdentifyResolved,
    EnrichmentResolved,
    RequestFailed,
    CancelRequest,
    SetLocale,
    NarrationChanged,
]


# Effects


@dataclass(frozen=True)
class AcquireCamera:
    generation: int


@dataclass(frozen=True)
class ReleaseCamera:
    pass


@dataclass(frozen=True)
class StopNarration:
    pass


@dataclass(frozen=True)
class CallBackend:
    token: RequestToken
    intent: Intent
    locale: str
    subject: Optional[str] = None
    image: Optional[EncodedImage] = None
    prior: Optional[AnalysisResult] = None


@dataclass(frozen=True)
class Notice:
    """Something worth a log line (rejected input, dropped stale completion)."""

    event: str
    fields: dict[str, Any] = field(default_factory=dict)


Effect = Union[AcquireCamera, ReleaseCamera, StopNarration, CallBackend, Notice]

Outcome = tuple[Session, list[Effect]]


def _next_token(session: Session, kind: str) -> tuple[Session, RequestToken]:
    serial = session.serial + 1
    return replace(session, serial=serial), RequestToken(kind, session.generation, serial)


def _stale(session: Session, token: RequestToken) -> Outcome:
    return session, [
        Notice(
            "stale_dropped",
            {"kind": token.kind, "token_generation": token.generation, "serial": token.serial},
        )
    ]


def _empty_input(intent: str) -> Notice:
    return Notice("empty_input", {"intent": intent, "error_kind": ErrorKind.EMPTY_INPUT.value})


def _teardown(session: Session) -> list[Effect]:
    effects: list[Effect] = []
    if session.narration is not None:
        effects.append(StopNarration())
    if session.camera_live:
        effects.append(ReleaseCamera())
    return effects


def _fresh_subject(session: Session) -> Session:
    """New generation: every result, enrichment and narration of the old subject is gone."""
    return replace(
        session,
        generation=session.generation + 1,
        subject_image=None,
        subject_query=None,
        current_result=None,
        uncertain_message=None,
        error=None,
        identify_token=None,
        enrichment={kind: EnrichmentSlot() for kind in EnrichmentKind},
        candidate_pool=(),
        narration=None,
        camera_live=False,
    )


def _start_acquisition(session: Session) -> Outcome:
    # Narration is stopped unconditionally; a stray utterance may still be alive in the engine.
    effects: list[Effect] = [StopNarration()]
    if session.camera_live:
        effects.append(ReleaseCamera())
    nxt = replace(_fresh_subject(session), phase=Phase.ACQUIRING)
    effects.append(AcquireCamera(nxt.generation))
    return nxt, effects


def _submit_identify(
    session: Session,
    image: Optional[EncodedImage],
    query: Optional[str],
    pool: tuple[NearbyLandmark, ...] = (),
) -> Outcome:
    effects = _teardown(session)
    nxt = replace(
        _fresh_subject(session),
        phase=Phase.SUBMITTING,
        subject_image=image,
        subject_query=query,
        candidate_pool=pool,
    )
    nxt, token = _next_token(nxt, Intent.IDENTIFY.value)
    nxt = replace(nxt, identify_token=token)
    effects.append(
        CallBackend(token=token, intent=Intent.IDENTIFY, locale=nxt.locale, subject=query, image=image)
    )
    return nxt, effects


def _reverify(session: Session) -> Outcome:
    if session.phase is not Phase.PRESENTING or session.current_result is None or not session.has_subject:
        return session, [Notice("intent_ignored", {"intent": "reverify", "phase": session.phase.value})]
    prior = session.current_result
    effects: list[Effect] = [StopNarration()] if session.narration is not None else []
    nxt = replace(
        session,
        phase=Phase.SUBMITTING,
        current_result=None,
        enrichment={kind: EnrichmentSlot() for kind in EnrichmentKind},
        narration=None,
        error=None,
    )
    nxt, token = _next_token(nxt, Intent.REVERIFY.value)
    nxt = replace(nxt, identify_token=token)
    effects.append(
        CallBackend(
            token=token,
            intent=Intent.REVERIFY,
            locale=nxt.locale,
            subject=session.subject_query,
            image=session.subject_image,
            prior=prior,
        )
    )
    return nxt, effects


def enrichment_allowed(session: Session, kind: EnrichmentKind) -> bool:
    """Confidence gating plus one in-flight request per kind."""
    if session.phase is not Phase.PRESENTING or session.current_result is None:
        return False
    return not session.slot(kind).loading


def _request_enrichment(session: Session, kind: EnrichmentKind) -> Outcome:
    if not enrichment_allowed(session, kind):
        return session, [Notice("intent_ignored", {"intent": kind.value, "phase": session.phase.value})]
    result = session.current_result
    nxt, token = _next_token(session, kind.value)
    slots = dict(nxt.enrichment)
    slots[kind] = EnrichmentSlot(loading=True, token=token)
    nxt = replace(nxt, enrichment=slots)
    return nxt, [
        CallBackend(
            token=token,
            intent=ENRICHMENT_INTENTS[kind],
            locale=nxt.locale,
            subject=result.title,
            prior=result,
        )
    ]


def _identify_resolved(session: Session, event: IdentifyResolved, config: GuideConfig) -> Outcome:
    if session.phase is not Phase.SUBMITTING or event.token != session.identify_token:
        return _stale(session, event.token)
    payload = event.payload
    if payload.uncertain:
        nxt = replace(
            session,
            phase=Phase.UNCERTAIN,
            current_result=None,
            identify_token=None,
            uncertain_message=(payload.message or "").strip() or message("unrecognized", session.locale),
        )
        return nxt, []
    title = (payload.title or "").strip() or TITLE_PLACEHOLDER
    result = AnalysisResult(
        title=title,
        history=payload.history,
        architecture=payload.architecture,
        fun_facts=[f.strip() for f in payload.fun_facts if f and f.strip()],
        nearby_landmarks=without_self(session.candidate_pool, title),
        locale=session.locale,
    )
    nxt = replace(
        session,
        phase=Phase.PRESENTING,
        current_result=result,
        identify_token=None,
        uncertain_message=None,
        candidate_pool=(),
    )
    if config.auto_nearby:
        return _request_enrichment(nxt, EnrichmentKind.NEARBY)
    return nxt, []


def _slot_kind(session: Session, token: RequestToken) -> Optional[EnrichmentKind]:
    for kind, slot in session.enrichment.items():
        if slot.loading and slot.token == token:
            return kind
    return None


def _merge(result: AnalysisResult, kind: EnrichmentKind, payload: Any, config: GuideConfig) -> AnalysisResult:
    if kind is EnrichmentKind.EXPAND:
        return result.model_copy(update={"history": payload.history, "expanded": True})
    if kind is EnrichmentKind.NEARBY:
        incoming = list(payload.landmarks)[: config.nearby_max]
        merged = merge_nearby(result.nearby_landmarks, incoming, result.title)
        return result.model_copy(update={"nearby_landmarks": merged})
    script = DerivativeScript(title=result.title, text=payload.script)
    return result.model_copy(update={"derivative_script": script})


def _enrichment_resolved(session: Session, event: EnrichmentResolved, config: GuideConfig) -> Outcome:
    kind = _slot_kind(session, event.token)
    if kind is None or session.phase is not Phase.PRESENTING or session.current_result is None:
        return _stale(session, event.token)
    slots = dict(session.enrichment)
    slots[kind] = EnrichmentSlot()
    result = _merge(session.current_result, kind, event.payload, config)
    return replace(session, current_result=result, enrichment=slots), []


def _request_failed(session: Session, event: RequestFailed) -> Outcome:
    text = error_message(event.kind, session.locale)
    if session.phase is Phase.SUBMITTING and event.token == session.identify_token:
        nxt = replace(
            session,
            phase=Phase.FAILED,
            current_result=None,
            identify_token=None,
            error=ErrorInfo(kind=event.kind, message=text, detail=event.detail or None),
        )
        return nxt, []
    kind = _slot_kind(session, event.token)
    if kind is None:
        return _stale(session, event.token)
    slots = dict(session.enrichment)
    slots[kind] = EnrichmentSlot(error=text)
    return replace(session, enrichment=slots), []


def _camera_failed(session: Session, event: CameraFailed) -> Outcome:
    if session.phase is not Phase.ACQUIRING or event.generation != session.generation:
        return session, [Notice("stale_dropped", {"kind": "camera", "token_generation": event.generation})]
    text = error_message(ErrorKind.DEVICE_UNAVAILABLE, session.locale)
    nxt = replace(
        session,
        phase=Phase.FAILED,
        camera_live=False,
        error=ErrorInfo(kind=ErrorKind.DEVICE_UNAVAILABLE, message=text, detail=event.detail or None),
    )
    return nxt, []


def _camera_ready(session: Session, event: CameraReady) -> Outcome:
    if session.phase is not Phase.ACQUIRING or event.generation != session.generation:
        return session, [Notice("stale_dropped", {"kind": "camera", "token_generation": event.generation})]
    return replace(session, camera_live=True), []


def _cancel(session: Session) -> Outcome:
    if session.phase is not Phase.SUBMITTING:
        return session, []
    text = error_message(ErrorKind.CANCELLED, session.locale)
    nxt = replace(
        session,
        phase=Phase.FAILED,
        identify_token=None,
        error=ErrorInfo(kind=ErrorKind.CANCELLED, message=text),
    )
    return nxt, [Notice("request_cancelled", {"generation": session.generation})]


def _select_landmark(session: Session, name: str) -> Outcome:
    result = session.current_result
    if session.phase is not Phase.PRESENTING or result is None:
        return session, [Notice("intent_ignored", {"intent": "select_landmark", "phase": session.phase.value})]
    key = normalize_name(name)
    if not key:
        return session, [_empty_input("select_landmark")]
    pool = tuple(e for e in result.nearby_landmarks if e.key != key)
    return _submit_identify(session, image=None, query=name.strip(), pool=pool)


def transition(session: Session, event: Event, config: Optional[GuideConfig] = None) -> Outcome:
    """Apply one event; returns the next session and the effects to run."""
    cfg = config or GuideConfig()
    if isinstance(event, StartAcquisition):
        return _start_acquisition(session)
    if isinstance(event, CameraReady):
        return _camera_ready(session, event)
    if isinstance(event, CameraFailed):
        return _camera_failed(session, event)
    if isinstance(event, SubmitImage):
        return _submit_identify(session, image=event.image, query=(event.hint or None))
    if isinstance(event, SubmitSearch):
        query = (event.query or "").strip()
        if not query:
            return session, [_empty_input("search")]
        return _submit_identify(session, image=None, query=query)
    if isinstance(event, SelectLandmark):
        return _select_landmark(session, event.name)
    if isinstance(event, Reverify):
        return _reverify(session)
    if isinstance(event, RequestEnrichment):
        return _request_enrichment(session, event.kind)
    if isinstance(event, IdentifyResolved):
        return _identify_resolved(session, event, cfg)
    if isinstance(event, EnrichmentResolved):
        return _enrichment_resolved(session, event, cfg)
    if isinstance(event, RequestFailed):
        return _request_failed(session, event)
    if isinstance(event, CancelRequest):
        return _cancel(session)
    if isinstance(event, SetLocale):
        return replace(session, locale=(event.locale or session.locale).strip().lower()), []
    if isinstance(event, NarrationChanged):
        return replace(session, narration=event.section), []
    raise TypeError(f"Unknown event: {type(event).__name__}")


def available_actions(session: Session) -> list[str]:
    """Actions the presentation may offer for this session."""
    actions = ["new_discovery", "upload", "search"]
    if session.phase is Phase.ACQUIRING and session.camera_live:
        actions.append("capture")
    if session.phase is Phase.SUBMITTING:
        actions.append("cancel")
    if session.phase in (Phase.UNCERTAIN, Phase.FAILED):
        actions.append("try_again")
    if session.phase is Phase.PRESENTING and session.current_result is not None:
        actions.extend(["reverify", "read"])
        for kind in EnrichmentKind:
            if enrichment_allowed(session, kind):
                actions.append(kind.value)
        if session.current_result.nearby_landmarks:
            actions.append("select_landmark")
    return actions
