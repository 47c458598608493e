"""
Discovery orchestrator: owns the live Session, runs the effects produced by the
pure state machine (camera, backend calls, narration) on the asyncio loop and
feeds their completions back as events.
"""

from __future__ import annotations

import asyncio
from collections import deque
from contextlib import AsyncExitStack
from typing import Any, Callable, Optional

from landmark_guide import logging_utils as logging_utils_module
from landmark_guide import metrics as metrics_module
from landmark_guide.config import GuideConfig
from landmark_guide.exceptions import ErrorKind, GuideError, InvalidImage
from landmark_guide.export import ReportSink, render_report, report_filename
from landmark_guide.gateway import (
    BackendGateway,
    parse_expand,
    parse_identify,
    parse_nearby,
    parse_podcast,
)
from landmark_guide.image_source import ImageSource, StreamHandle, camera_stream, decode_uploaded_file
from landmark_guide.locales import resolve
from landmark_guide.narration import NarrationController, SpeechEngine
from landmark_guide.prompts import Intent, build_prompt
from landmark_guide.session import EnrichmentKind, Phase, Session, invariant_violations
from landmark_guide.state_machine import (
    AcquireCamera,
    CallBackend,
    CameraFailed,
    CameraReady,
    CancelRequest,
    Effect,
    EnrichmentResolved,
    Event,
    IdentifyResolved,
    NarrationChanged,
    Notice,
    ReleaseCamera,
    RequestEnrichment,
    RequestFailed,
    Reverify,
    SelectLandmark,
    SetLocale,
    StartAcquisition,
    StopNarration,
    SubmitImage,
    SubmitSearch,
    available_actions,
    transition,
)

PARSERS: dict[Intent, Callable[[dict[str, Any]], Any]] = {
    Intent.IDENTIFY: parse_identify,
    Intent.REVERIFY: parse_identify,
    Intent.EXPAND: parse_expand,
    Intent.NEARBY: parse_nearby,
    Intent.PODCAST: parse_podcast,
}

# Section ids accepted by read_section.
SECTIONS = ("history", "arch", "facts", "podcast")

Listener = Callable[[dict[str, Any]], None]


class DiscoveryOrchestrator:
    """
    Single-session controller for the presentation layer.

    Intents are plain methods; every state change goes through dispatch(), which
    applies the pure transition and then runs its effects. Backend completions
    carry the request token they were issued with, so answers for a superseded
    subject are dropped instead of applied.
    """

    def __init__(
        self,
        gateway: BackendGateway,
        image_source: Optional[ImageSource] = None,
        speech_engine: Optional[SpeechEngine] = None,
        config: Optional[GuideConfig] = None,
    ) -> None:
        self._config = config or GuideConfig.from_env()
        self._gateway = gateway
        self._image_source = image_source
        self._narration: Optional[NarrationController] = None
        if speech_engine is not None:
            self._narration = NarrationController(speech_engine, on_change=self._narration_changed)
        self._session = Session(locale=resolve(self._config.default_locale).code)
        self._stream: Optional[StreamHandle] = None
        self._camera: Optional[AsyncExitStack] = None
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[Listener] = []
        self._queue: deque[Event] = deque()
        self._dispatching = False

    @property
    def session(self) -> Session:
        return self._session

    @property
    def stream(self) -> Optional[StreamHandle]:
        return self._stream

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Core loop

    def dispatch(self, event: Event) -> Session:
        """Apply an event (and any events its effects raise synchronously)."""
        self._queue.append(event)
        if self._dispatching:
            return self._session
        self._dispatching = True
        try:
            while self._queue:
                ev = self._queue.popleft()
                before = self._session
                self._session, effects = transition(before, ev, self._config)
                if before.phase is not self._session.phase:
                    logging_utils_module.log_event(
                        "phase_changed",
                        generation=self._session.generation,
                        source=before.phase.value,
                        target=self._session.phase.value,
                        trigger=type(ev).__name__,
                    )
                for problem in invariant_violations(self._session):
                    logging_utils_module.log_event(
                        "invariant_violation", generation=self._session.generation, problem=problem
                    )
                for effect in effects:
                    self._run_effect(effect)
        finally:
            self._dispatching = False
        self._notify()
        return self._session

    def _run_effect(self, effect: Effect) -> None:
        if isinstance(effect, StopNarration):
            if self._narration is not None:
                self._narration.reset()
        elif isinstance(effect, ReleaseCamera):
            self._spawn(self._release_stream())
        elif isinstance(effect, AcquireCamera):
            self._spawn(self._acquire(effect.generation))
        elif isinstance(effect, CallBackend):
            self._spawn(self._call_backend(effect))
        elif isinstance(effect, Notice):
            if effect.event == "stale_dropped":
                metrics_module.record_stale()
            logging_utils_module.log_event(effect.event, generation=self._session.generation, **effect.fields)

    def _spawn(self, coro: Any) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.view()
        for listener in list(self._listeners):
            listener(snapshot)

    def _narration_changed(self, section: Optional[str]) -> None:
        self.dispatch(NarrationChanged(section))

    # Effect runners

    async def _acquire(self, generation: int) -> None:
        if self._image_source is None:
            self.dispatch(CameraFailed(generation, "No camera source configured"))
            return
        camera = AsyncExitStack()
        try:
            handle = await camera.enter_async_context(camera_stream(self._image_source))
        except Exception as e:
            self.dispatch(CameraFailed(generation, str(e)))
            return
        if self._session.generation != generation or self._session.phase is not Phase.ACQUIRING:
            await camera.aclose()
            self.dispatch(CameraReady(generation))
            return
        previous, self._camera, self._stream = self._camera, camera, handle
        if previous is not None:
            await previous.aclose()
        self.dispatch(CameraReady(generation))

    async def _release_stream(self) -> None:
        camera, self._camera, self._stream = self._camera, None, None
        if camera is not None:
            await camera.aclose()

    async def _call_backend(self, effect: CallBackend) -> None:
        token = effect.token
        prompt = build_prompt(
            effect.intent,
            effect.subject,
            effect.locale,
            prior=effect.prior,
            has_image=effect.image is not None,
            config=self._config,
        )
        try:
            parsed = await self._gateway.submit(
                prompt,
                effect.image,
                effect.locale,
                temperature=prompt.temperature,
                generation=token.generation,
                request_id=f"{token.kind}-{token.serial}",
                parser=PARSERS[effect.intent],
            )
        except GuideError as e:
            self.dispatch(RequestFailed(token, e.kind, str(e)))
            return
        except Exception as e:
            logging_utils_module.log_event(
                "backend_unexpected_error", generation=token.generation, error=f"{type(e).__name__}: {e}"
            )
            self.dispatch(RequestFailed(token, ErrorKind.TRANSPORT, str(e)))
            return
        if effect.intent in (Intent.IDENTIFY, Intent.REVERIFY):
            self.dispatch(IdentifyResolved(token, parsed))
        else:
            self.dispatch(EnrichmentResolved(token, parsed))

    # Intents

    def start_camera(self) -> Session:
        return self.dispatch(StartAcquisition())

    def new_discovery(self) -> Session:
        return self.dispatch(StartAcquisition())

    def try_again(self) -> Session:
        return self.dispatch(StartAcquisition())

    async def capture(self) -> bool:
        """Grab a still from the live stream and submit it; False when nothing was sent."""
        s = self._session
        handle = self._stream
        if s.phase is not Phase.ACQUIRING or not s.camera_live or handle is None or self._image_source is None:
            logging_utils_module.log_event("intent_ignored", generation=s.generation, intent="capture")
            return False
        generation = s.generation
        try:
            image = await self._image_source.capture_still(handle)
        except Exception as e:
            if self._session.generation == generation:
                await self._release_stream()
                self.dispatch(CameraFailed(generation, str(e)))
            return False
        if self._session.generation != generation:
            return False
        self.dispatch(SubmitImage(image))
        return True

    def upload(self, data: bytes | str, hint: Optional[str] = None) -> Session:
        """Decode an uploaded file and submit it. InvalidImage propagates before any network call."""
        try:
            image = decode_uploaded_file(data)
        except InvalidImage as e:
            logging_utils_module.log_event(
                "upload_rejected", generation=self._session.generation, error=str(e)
            )
            raise
        return self.dispatch(SubmitImage(image, hint))

    def search(self, query: str) -> Session:
        return self.dispatch(SubmitSearch(query))

    def select_landmark(self, name: str) -> Session:
        return self.dispatch(SelectLandmark(name))

    def reverify(self) -> Session:
        return self.dispatch(Reverify())

    def expand(self) -> Session:
        return self.dispatch(RequestEnrichment(EnrichmentKind.EXPAND))

    def find_nearby(self) -> Session:
        return self.dispatch(RequestEnrichment(EnrichmentKind.NEARBY))

    def generate_podcast(self) -> Session:
        return self.dispatch(RequestEnrichment(EnrichmentKind.PODCAST))

    def cancel(self) -> Session:
        return self.dispatch(CancelRequest())

    def set_locale(self, locale: str) -> Session:
        return self.dispatch(SetLocale(resolve(locale, self._session.locale).code))

    def section_text(self, section_id: str) -> str:
        result = self._session.current_result
        if result is None:
            return ""
        if section_id == "history":
            return result.history
        if section_id == "arch":
            return result.architecture
        if section_id == "facts":
            return "\n".join(result.fun_facts)
        if section_id == "podcast":
            return result.derivative_script.text if result.derivative_script else ""
        return ""

    def read_section(self, section_id: str) -> Optional[str]:
        """Toggle narration of one section of the current result."""
        if self._narration is None or self._session.current_result is None:
            return None
        lang = resolve(self._session.locale).speech_tag
        return self._narration.read(self.section_text(section_id), section_id, lang)

    async def copy_report(self, sink: ReportSink) -> bool:
        result = self._session.current_result
        if result is None:
            return False
        await sink.write_text(render_report(result))
        return True

    async def download_report(self, sink: ReportSink) -> bool:
        """Share the report file when possible, fall back to a plain download."""
        result = self._session.current_result
        if result is None:
            return False
        data = render_report(result).encode("utf-8")
        filename = report_filename(result)
        if not await sink.share_file(data, filename, "text/markdown"):
            await sink.trigger_download(data, filename)
        return True

    # Lifecycle

    async def wait_idle(self) -> None:
        """Wait until every spawned task (including ones spawned meanwhile) has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        if self._narration is not None:
            self._narration.reset()
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self._release_stream()

    def view(self) -> dict[str, Any]:
        """Serializable snapshot for the presentation layer."""
        s = self._session
        result = s.current_result
        return {
            "phase": s.phase.value,
            "generation": s.generation,
            "locale": s.locale,
            "camera_live": s.camera_live,
            "result": result.model_dump(mode="json") if result is not None else None,
            "uncertain_message": s.uncertain_message,
            "error": (
                {"kind": s.error.kind.value, "message": s.error.message} if s.error is not None else None
            ),
            "enrichment": {
                kind.value: {"loading": slot.loading, "error": slot.error}
                for kind, slot in s.enrichment.items()
            },
            "narration": s.narration,
            "actions": available_actions(s),
        }
