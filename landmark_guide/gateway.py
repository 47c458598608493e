"""Call the OpenAI chat API with instruction + optional still image; parse strict JSON per contract."""

from __future__ import annotations

import asyncio
import json
import re
import time
from typing import Any, Callable, TypeVar

import httpx
import jsonschema
import openai
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from landmark_guide import logging_utils as logging_utils_module
from landmark_guide import metrics as metrics_module
from landmark_guide.config import GuideConfig
from landmark_guide.contracts import validate_or_raise
from landmark_guide.exceptions import BackendTimeout, GuideError, MalformedResponse, TransportError
from landmark_guide.models import (
    EncodedImage,
    ExpandPayload,
    IdentifyPayload,
    NearbyPayload,
    PodcastPayload,
)
from landmark_guide.prompts import BuiltPrompt, contract_hint
from landmark_guide.tracing import Tracer, call_tags, get_tracer

PayloadT = TypeVar("PayloadT", bound=BaseModel)

_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.I)


def _make_client(config: GuideConfig) -> AsyncOpenAI | None:
    """Return an async OpenAI client or None if no API key. Retries are owned by the user."""
    if not config.openai_api_key:
        return None
    return AsyncOpenAI(api_key=config.openai_api_key, max_retries=0)


def _image_content(image: EncodedImage) -> dict[str, Any]:
    return {"type": "image_url", "image_url": {"url": image.to_data_url()}}


def strip_fences(text: str) -> str:
    """Remove markdown code fences the model may wrap around JSON."""
    text = (text or "").strip()
    match = _FENCE.search(text)
    if match:
        return match.group(1).strip()
    return text.replace("```json", "").replace("```", "").strip()


def extract_json(text: str) -> Any:
    """
    Parse model output as JSON after stripping fences.
    Falls back to the outermost {...} block; raises MalformedResponse when nothing parses.
    """
    cleaned = strip_fences(text)
    if not cleaned:
        raise MalformedResponse("Empty response body", raw_text=text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass
    match = re.search(r"\{[\s\S]*\}", cleaned)
    if match:
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError:
            pass
    raise MalformedResponse("Response is not valid JSON", raw_text=text)


def _coerce_payload(parsed: Any, contract_name: str) -> dict[str, Any]:
    # Some models answer the nearby prompt with a bare array.
    if isinstance(parsed, list) and contract_name == "nearby.schema.json":
        return {"landmarks": parsed}
    if not isinstance(parsed, dict):
        raise MalformedResponse(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


def parse_payload(text: str, contract_name: str) -> dict[str, Any]:
    """Text -> validated dict; any shape violation is a MalformedResponse."""
    payload = _coerce_payload(extract_json(text), contract_name)
    try:
        validate_or_raise(payload, contract_name)
    except jsonschema.ValidationError as e:
        raise MalformedResponse(f"Contract violation: {e.message}", raw_text=text) from e
    return payload


def _to_model(model: type[PayloadT], payload: dict[str, Any]) -> PayloadT:
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponse(f"Invalid {model.__name__}: {e.errors()[0].get('msg')}") from e


def parse_identify(payload: dict[str, Any]) -> IdentifyPayload:
    return _to_model(IdentifyPayload, payload)


def parse_expand(payload: dict[str, Any]) -> ExpandPayload:
    return _to_model(ExpandPayload, payload)


def parse_nearby(payload: dict[str, Any]) -> NearbyPayload:
    return _to_model(NearbyPayload, payload)


def parse_podcast(payload: dict[str, Any]) -> PodcastPayload:
    return _to_model(PodcastPayload, payload)


class BackendGateway:
    """One backend call per submit: no cache, no retries."""

    def __init__(
        self,
        config: GuideConfig | None = None,
        client: AsyncOpenAI | None = None,
        tracer: Tracer | None = None,
    ) -> None:
        self._config = config or GuideConfig.from_env()
        self._client = client if client is not None else _make_client(self._config)
        self._tracer = tracer

    async def _complete(
        self, prompt: BuiltPrompt, image: EncodedImage | None, temperature: float
    ) -> str:
        if self._client is None:
            raise TransportError("OPENAI_API_KEY is not set")
        content: list[Any] = [
            {"type": "text", "text": f"{prompt.instruction}\n\n{contract_hint(prompt)}"}
        ]
        if image is not None:
            content.append(_image_content(image))
        resp = await self._client.chat.completions.create(
            model=prompt.model,
            messages=[
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": content},
            ],
            temperature=temperature,
            response_format={"type": "json_object"},
        )
        if not resp.choices:
            return ""
        return (resp.choices[0].message.content or "").strip()

    async def submit(
        self,
        prompt: BuiltPrompt,
        image: EncodedImage | None = None,
        locale: str | None = None,
        temperature: float | None = None,
        generation: int | None = None,
        request_id: str | None = None,
        parser: Callable[[dict[str, Any]], Any] | None = None,
    ) -> Any:
        """
        Send one request and return the contract-validated JSON payload, or parser(payload) when given.
        A parser raising MalformedResponse is accounted like any other malformed answer.
        Raises TransportError (BackendTimeout on the bounded wait) or MalformedResponse.
        """
        temp = prompt.temperature if temperature is None else temperature
        tracer = self._tracer or get_tracer()
        tags = call_tags(prompt.intent.value, generation or 0, prompt.instruction, image is not None)
        tags["locale"] = locale or ""
        t0 = time.perf_counter()
        text: str | None = None
        try:
            with tracer.span("gateway_submit", tags) as outputs:
                try:
                    text = await asyncio.wait_for(
                        self._complete(prompt, image, temp),
                        timeout=self._config.request_timeout_s,
                    )
                except asyncio.TimeoutError as e:
                    raise BackendTimeout(
                        f"No answer within {self._config.request_timeout_s:.0f}s"
                    ) from e
                except openai.APITimeoutError as e:
                    raise BackendTimeout(str(e)) from e
                except (openai.OpenAIError, httpx.HTTPError) as e:
                    raise TransportError(str(e)) from e
                payload = parse_payload(text, prompt.contract_name)
                outputs["keys"] = sorted(payload)
                result = parser(payload) if parser is not None else payload
        except GuideError as e:
            latency_ms = (time.perf_counter() - t0) * 1000
            metrics_module.record_request(
                latency_ms=latency_ms, error=True, error_kind=e.kind.value, intent=prompt.intent.value
            )
            logging_utils_module.log_request(
                intent=prompt.intent.value,
                latency_ms=latency_ms,
                generation=generation,
                request_id=request_id,
                error=True,
                error_kind=e.kind.value,
                raw_preview=text if isinstance(e, MalformedResponse) else None,
            )
            raise
        latency_ms = (time.perf_counter() - t0) * 1000
        metrics_module.record_request(latency_ms=latency_ms, error=False, intent=prompt.intent.value)
        logging_utils_module.log_request(
            intent=prompt.intent.value,
            latency_ms=latency_ms,
            generation=generation,
            request_id=request_id,
        )
        return result
