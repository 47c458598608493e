"""Runtime configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class GuideConfig:
    openai_api_key: str = ""
    identify_model: str = "gpt-4.1"
    enrich_model: str = "gpt-4.1-mini"
    identify_temperature: float = 0.4
    # Re-verification asks again with less variability.
    reverify_temperature: float = 0.1
    enrich_temperature: float = 0.7
    nearby_max: int = 10
    nearby_radius_m: int = 1000
    expand_words: int = 1200
    default_locale: str = "ar"
    auto_nearby: bool = True
    request_timeout_s: float = 60.0
    tts_model: str = "gpt-4o-mini-tts"
    tts_voice: str = "alloy"
    camera_index: int = 0

    @classmethod
    def from_env(cls) -> "GuideConfig":
        return cls(
            openai_api_key=(os.environ.get("OPENAI_API_KEY") or "").strip(),
            identify_model=os.environ.get("GUIDE_IDENTIFY_MODEL", cls.identify_model),
            enrich_model=os.environ.get("GUIDE_ENRICH_MODEL", cls.enrich_model),
            identify_temperature=float(
                os.environ.get("GUIDE_IDENTIFY_TEMPERATURE", str(cls.identify_temperature))
            ),
            reverify_temperature=float(
                os.environ.get("GUIDE_REVERIFY_TEMPERATURE", str(cls.reverify_temperature))
            ),
            enrich_temperature=float(
                os.environ.get("GUIDE_ENRICH_TEMPERATURE", str(cls.enrich_temperature))
            ),
            nearby_max=int(os.environ.get("GUIDE_NEARBY_MAX", str(cls.nearby_max))),
            nearby_radius_m=int(os.environ.get("GUIDE_NEARBY_RADIUS_M", str(cls.nearby_radius_m))),
            expand_words=int(os.environ.get("GUIDE_EXPAND_WORDS", str(cls.expand_words))),
            default_locale=os.environ.get("GUIDE_DEFAULT_LOCALE", cls.default_locale),
            auto_nearby=_env_flag("GUIDE_AUTO_NEARBY", cls.auto_nearby),
            request_timeout_s=float(
                os.environ.get("GUIDE_REQUEST_TIMEOUT_S", str(cls.request_timeout_s))
            ),
            tts_model=os.environ.get("TTS_MODEL", cls.tts_model).strip() or cls.tts_model,
            tts_voice=(os.environ.get("TTS_VOICE") or cls.tts_voice).strip().lower(),
            camera_index=int(os.environ.get("CAMERA_INDEX", str(cls.camera_index))),
        )
