"""Prompt templates per intent (identify, reverify, expand, nearby, podcast) returning strict JSON."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from landmark_guide.config import GuideConfig
from landmark_guide.contracts import load_schema
from landmark_guide.locales import resolve
from landmark_guide.models import AnalysisResult


class Intent(str, Enum):
    IDENTIFY = "identify"
    REVERIFY = "reverify"
    EXPAND = "expand"
    NEARBY = "nearby"
    PODCAST = "podcast"


CONTRACTS: dict[Intent, str] = {
    Intent.IDENTIFY: "identify.schema.json",
    Intent.REVERIFY: "identify.schema.json",
    Intent.EXPAND: "expand.schema.json",
    Intent.NEARBY: "nearby.schema.json",
    Intent.PODCAST: "podcast.schema.json",
}

JSON_ONLY = "Output valid JSON only. Do not write any text outside the JSON object."

IDENTIFY_SHAPE = """{
  "uncertain": false,
  "message": null,
  "title": "Name of Landmark",
  "history": "Epic long historical narrative (600+ words)",
  "architecture": "Deep architectural and artistic analysis",
  "funFacts": ["6 amazing facts"]
}"""

UNCERTAIN_RULE = (
    'If you cannot identify the landmark with confidence, return {"uncertain": true, '
    '"message": "<short reason>"} and nothing else.'
)


@dataclass(frozen=True)
class BuiltPrompt:
    """Everything the gateway needs for one backend call."""

    intent: Intent
    system: str
    instruction: str
    contract_name: str
    temperature: float
    model: str
    response_contract: dict[str, Any] = field(default_factory=dict, repr=False)


def _identify_system(lang_name: str) -> str:
    return f"""You are a world-class historian and architecture expert.
Analyze the landmark and answer in {lang_name}. {UNCERTAIN_RULE}
Otherwise return an epic report as JSON:
{IDENTIFY_SHAPE}
{JSON_ONLY}"""


def _reverify_system(lang_name: str, prior: AnalysisResult | None) -> str:
    previous = ""
    if prior is not None:
        previous = (
            f'A previous analysis identified this landmark as "{prior.title}". '
            "Do not trust it: compare the visible features (silhouette, materials, "
            "surroundings, inscriptions) against that landmark and its closest "
            "look-alikes, and keep the previous name only if every detail matches. "
        )
    return f"""You are a meticulous historian double-checking an identification.
{previous}Answer in {lang_name}. {UNCERTAIN_RULE}
Otherwise return the verified report as JSON:
{IDENTIFY_SHAPE}
{JSON_ONLY}"""


def _identify_instruction(subject: str | None, has_image: bool) -> str:
    if has_image:
        if subject and subject.strip():
            return f"Identify this landmark. Hint from the user: {subject.strip()}"
        return "Identify this landmark."
    return f"Analyze this landmark: {(subject or '').strip()}"


def build_prompt(
    intent: Intent,
    subject: str | None,
    locale: str | None,
    prior: AnalysisResult | None = None,
    has_image: bool = False,
    config: GuideConfig | None = None,
) -> BuiltPrompt:
    """
    Build system + user text and the response contract for one intent.
    Enrichment intents are scoped to the already-known title (prior.title, else subject).
    """
    cfg = config or GuideConfig()
    lang = resolve(locale, cfg.default_locale)
    contract_name = CONTRACTS[intent]
    contract = load_schema(contract_name)
    title = (prior.title if prior is not None else subject or "").strip()

    if intent is Intent.IDENTIFY:
        system = _identify_system(lang.name)
        instruction = _identify_instruction(subject, has_image)
        temperature = cfg.identify_temperature
        model = cfg.identify_model
    elif intent is Intent.REVERIFY:
        system = _reverify_system(lang.name, prior)
        instruction = _identify_instruction(subject, has_image)
        temperature = cfg.reverify_temperature
        model = cfg.identify_model
    elif intent is Intent.EXPAND:
        system = f"""You are a world-class historian writing for curious travellers.
Answer in {lang.name}. Return JSON: {{"history": "..."}}
{JSON_ONLY}"""
        instruction = (
            f'Write an expanded, chronological historical narrative of "{title}" of at least '
            f"{cfg.expand_words} words. Cover its origins, key periods, people involved and its "
            "role today. Only write about this landmark."
        )
        temperature = cfg.enrich_temperature
        model = cfg.enrich_model
    elif intent is Intent.NEARBY:
        system = f"""You are a local guide. Answer in {lang.name}.
Return JSON:
{{"landmarks": [
  {{"name": "Landmark name", "distance": "e.g. 300m", "direction": "e.g. north-east",
    "brief": "Very brief summary", "icon": "fa-monument"}}
]}}
{JSON_ONLY}"""
        instruction = (
            f'Find landmarks/attractions strictly within {cfg.nearby_radius_m}m of "{title}". '
            f"Max {cfg.nearby_max} landmarks, closest first. "
            f'Do not include "{title}" itself.'
        )
        temperature = cfg.enrich_temperature
        model = cfg.enrich_model
    elif intent is Intent.PODCAST:
        system = f"""You write short audio-guide podcasts. Answer in {lang.name}.
Return JSON: {{"script": "..."}}
{JSON_ONLY}"""
        instruction = (
            f'Write a podcast script about "{title}" as a lively dialogue between two hosts. '
            'Prefix every line with "Host A:" or "Host B:". Put the whole dialogue in the '
            '"script" field.'
        )
        temperature = cfg.enrich_temperature
        model = cfg.enrich_model
    else:  # pragma: no cover
        raise ValueError(f"Unknown intent: {intent}")

    return BuiltPrompt(
        intent=intent,
        system=system,
        instruction=instruction,
        contract_name=contract_name,
        temperature=temperature,
        model=model,
        response_contract=contract,
    )


def contract_hint(prompt: BuiltPrompt) -> str:
    """Compact JSON-schema text appended to the user message."""
    return "JSON schema of the answer: " + json.dumps(prompt.response_contract, separators=(",", ":"))
