"""Data models for subjects, backend payloads and analysis results."""

from __future__ import annotations

import base64
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

TITLE_PLACEHOLDER = "Unknown landmark"

ImageMime = Literal["image/jpeg", "image/png"]


class EncodedImage(BaseModel):
    """Still image ready to be sent to the backend."""

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(min_length=1)
    mime_type: ImageMime = "image/jpeg"
    source: Literal["camera", "upload"] = "upload"

    def to_data_url(self) -> str:
        b64 = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{b64}"


class NearbyLandmark(BaseModel):
    """One point of interest around the current subject."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    distance: str = ""
    direction: str = ""
    brief: str = ""
    icon: Optional[str] = None

    @property
    def key(self) -> str:
        return normalize_name(self.name)


class DerivativeScript(BaseModel):
    """Podcast script generated for exactly one title."""

    model_config = ConfigDict(frozen=True)

    title: str
    text: str = Field(min_length=1)


class AnalysisResult(BaseModel):
    """Confident backend answer for one subject, plus merged enrichments."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(min_length=1)
    history: str = ""
    architecture: str = ""
    fun_facts: list[str] = Field(default_factory=list)
    nearby_landmarks: list[NearbyLandmark] = Field(default_factory=list)
    derivative_script: Optional[DerivativeScript] = None
    expanded: bool = False
    locale: str = "en"


# Backend payloads, validated after the JSON-schema contract check.


class IdentifyPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    history: str = ""
    architecture: str = ""
    fun_facts: list[str] = Field(default_factory=list, alias="funFacts")
    uncertain: bool = False
    message: Optional[str] = None


class ExpandPayload(BaseModel):
    history: str = Field(min_length=1)


class NearbyPayload(BaseModel):
    landmarks: list[NearbyLandmark] = Field(default_factory=list)


class PodcastPayload(BaseModel):
    script: str = Field(min_length=1)


def normalize_name(name: str) -> str:
    return " ".join(name.split()).casefold()
