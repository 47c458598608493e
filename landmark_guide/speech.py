"""Speech engine: OpenAI TTS synthesis played through an injected audio sink."""

from __future__ import annotations

import asyncio
import base64
from typing import Awaitable, Callable, Optional, Protocol

from openai import AsyncOpenAI

from landmark_guide import logging_utils as logging_utils_module
from landmark_guide.config import GuideConfig

# OpenAI TTS voices
TTS_VOICES = frozenset({"alloy", "echo", "fable", "onyx", "nova", "shimmer"})

AUDIO_FORMAT = "mp3"
WORDS_PER_SECOND = 2.5


class AudioSink(Protocol):
    async def play(self, audio: bytes, fmt: str, text: str) -> None:
        ...


def estimate_duration_s(text: str) -> float:
    """Rough spoken duration, used when the sink cannot observe playback end."""
    return max(1.0, len(text.split()) / WORDS_PER_SECOND)


def audio_data_url(audio: bytes, fmt: str = AUDIO_FORMAT) -> str:
    b64 = base64.b64encode(audio).decode("ascii")
    return f"data:audio/{fmt};base64,{b64}"


class DataUrlAudioSink:
    """Hands audio to a callback as a data URL, then waits for the estimated duration."""

    def __init__(self, push: Callable[[str], Awaitable[None]]) -> None:
        self._push = push

    async def play(self, audio: bytes, fmt: str, text: str) -> None:
        await self._push(audio_data_url(audio, fmt))
        await asyncio.sleep(estimate_duration_s(text))


def _voice(config: GuideConfig) -> str:
    v = (config.tts_voice or "alloy").strip().lower()
    return v if v in TTS_VOICES else "alloy"


class OpenAISpeechEngine:
    """
    SpeechEngine backed by OpenAI TTS. Each speak() runs as one asyncio task:
    synthesize, on_start, play, on_end. cancel_all() cancels every running task.
    """

    def __init__(
        self,
        sink: AudioSink,
        config: Optional[GuideConfig] = None,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self._config = config or GuideConfig.from_env()
        self._client = client
        if self._client is None and self._config.openai_api_key:
            self._client = AsyncOpenAI(api_key=self._config.openai_api_key)
        self._sink = sink
        self._tasks: set[asyncio.Task] = set()

    async def synthesize(self, text: str, lang: str) -> bytes:
        if self._client is None:
            raise RuntimeError("OPENAI_API_KEY is not set")
        resp = await self._client.audio.speech.create(
            model=self._config.tts_model,
            voice=_voice(self._config),
            input=text,
            response_format=AUDIO_FORMAT,
            instructions=f"Speak in the language and accent of {lang}.",
        )
        audio = getattr(resp, "content", b"")
        if not isinstance(audio, bytes) or not audio:
            raise RuntimeError("Empty audio response")
        return audio

    async def _run(
        self,
        text: str,
        lang: str,
        on_start: Callable[[], None],
        on_end: Callable[[], None],
    ) -> None:
        try:
            audio = await self.synthesize(text, lang)
            on_start()
            await self._sink.play(audio, AUDIO_FORMAT, text)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logging_utils_module.log_event("speech_failed", error=str(e))
        finally:
            on_end()

    def speak(
        self,
        text: str,
        lang: str,
        on_start: Callable[[], None],
        on_end: Callable[[], None],
    ) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._run(text, lang, on_start, on_end))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()

    @property
    def active(self) -> int:
        return sum(1 for t in self._tasks if not t.done())
