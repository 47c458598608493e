"""Presentation bridge: one discovery session per WebSocket, plus health and metrics."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from landmark_guide import metrics as metrics_module
from landmark_guide.config import GuideConfig
from landmark_guide.exceptions import InvalidImage
from landmark_guide.gateway import BackendGateway
from landmark_guide.image_source import OpenCVCameraSource
from landmark_guide.locales import LANGUAGES, error_message
from landmark_guide.orchestrator import DiscoveryOrchestrator
from landmark_guide.speech import DataUrlAudioSink, OpenAISpeechEngine

app = FastAPI(title="landmark-guide", version="0.1.0")
config = GuideConfig.from_env()


def create_orchestrator(push_audio: Callable[[str], Awaitable[None]]) -> DiscoveryOrchestrator:
    """Wire the real adapters for one client session."""
    return DiscoveryOrchestrator(
        gateway=BackendGateway(config),
        image_source=OpenCVCameraSource(config.camera_index),
        speech_engine=OpenAISpeechEngine(DataUrlAudioSink(push_audio), config),
        config=config,
    )


@app.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/metrics")
def metrics() -> dict:
    """Lightweight JSON metrics (in-memory since process start)."""
    return metrics_module.get_metrics()


@app.get("/languages")
def languages() -> list[dict]:
    return [
        {"code": lang.code, "name": lang.name, "native": lang.native}
        for lang in LANGUAGES.values()
    ]


async def _handle_intent(orch: DiscoveryOrchestrator, msg: Any) -> dict[str, Any] | None:
    """Route one client message; returns an error reply or None."""
    if not isinstance(msg, dict):
        return {"type": "error", "kind": "unknown_intent", "message": "Expected a JSON object"}
    intent = msg.get("intent")
    if intent in ("start_camera", "new_discovery", "try_again"):
        orch.new_discovery()
    elif intent == "capture":
        await orch.capture()
    elif intent == "upload":
        try:
            orch.upload(msg.get("image_ref") or "", hint=msg.get("hint"))
        except InvalidImage as e:
            return {"type": "error", "kind": e.kind.value, "message": error_message(e.kind, orch.session.locale)}
    elif intent == "search":
        orch.search(msg.get("query") or "")
    elif intent == "select_landmark":
        orch.select_landmark(msg.get("name") or "")
    elif intent == "reverify":
        orch.reverify()
    elif intent == "expand":
        orch.expand()
    elif intent == "nearby":
        orch.find_nearby()
    elif intent == "podcast":
        orch.generate_podcast()
    elif intent == "cancel":
        orch.cancel()
    elif intent == "set_locale":
        orch.set_locale(msg.get("locale") or "")
    elif intent == "read":
        orch.read_section(msg.get("section") or "")
    else:
        return {"type": "error", "kind": "unknown_intent", "message": f"Unknown intent: {intent}"}
    return None


@app.websocket("/ws")
async def ws_endpoint(ws: WebSocket) -> None:
    await ws.accept()
    outbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    async def push_audio(audio_ref: str) -> None:
        await outbox.put({"type": "audio", "audio_ref": audio_ref})

    orch = create_orchestrator(push_audio)
    unsubscribe = orch.subscribe(lambda view: outbox.put_nowait({"type": "view", "view": view}))

    async def sender() -> None:
        while True:
            await ws.send_json(await outbox.get())

    send_task = asyncio.create_task(sender())
    await outbox.put({"type": "view", "view": orch.view()})
    try:
        while True:
            msg = await ws.receive_json()
            reply = await _handle_intent(orch, msg)
            if reply is not None:
                await outbox.put(reply)
    except WebSocketDisconnect:
        return
    finally:
        unsubscribe()
        await orch.close()
        send_task.cancel()


def main() -> None:
    import uvicorn

    uvicorn.run("landmark_guide.main:app", host="0.0.0.0", port=8040, reload=True)


if __name__ == "__main__":
    main()
