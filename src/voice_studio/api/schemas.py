"""
API Request/Response Schemas.

Example Requests:
    POST /v1/session      {"text": "Xin chào. Hôm nay trời đẹp.", "max_words": 100}
    POST /v1/batch        {"voice": {"voice_name": "Kore", "style": "Read slowly", "temperature": 1.0, "language": "vi"}}
    PUT  /v1/credentials  {"keys": ["AIza...", "AIza..."]}
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from voice_studio.core.config import Defaults
from voice_studio.tts.segments import Segment


class VoiceParams(BaseModel):
    """
    Generation parameters.

    Attributes:
        voice_name: Prebuilt voice (see GET /v1/voices).
        style: Free-text delivery instruction, e.g. "Whisper".
        temperature: 0.0-2.0.
        language: Target language code; empty string disables translation.
    """
    voice_name: str = Field(default=Defaults.VOICE_NAME)
    style: str = Field(default="", max_length=500)
    temperature: float = Field(default=Defaults.VOICE_TEMPERATURE, ge=0.0, le=2.0)
    language: str = Field(default=Defaults.VOICE_LANGUAGE)


class LoadTextRequest(BaseModel):
    text: str = Field(..., min_length=1, description="Full input text")
    max_words: Optional[int] = Field(default=None, ge=1, le=1000)


class EditSegmentRequest(BaseModel):
    text: str = Field(..., min_length=1)


class GenerateRequest(BaseModel):
    voice: Optional[VoiceParams] = None


class PreviewRequest(BaseModel):
    voice: Optional[VoiceParams] = None
    text: Optional[str] = Field(default=None, max_length=1000)


class CredentialsRequest(BaseModel):
    keys: List[str] = Field(..., min_length=1)


class SegmentOut(BaseModel):
    id: str
    text: str
    status: str
    has_audio: bool
    error: Optional[str] = None
    selected: bool

    @classmethod
    def from_segment(cls, segment: Segment) -> "SegmentOut":
        return cls(
            id=segment.id,
            text=segment.text,
            status=segment.status.value,
            has_audio=segment.has_audio,
            error=segment.error,
            selected=segment.selected,
        )


class SessionOut(BaseModel):
    segments: List[SegmentOut]
    full_text: str
    batch_state: str


class CredentialSummaryOut(BaseModel):
    mode: str
    workers: int
    keys: List[str]


class QuotaOut(BaseModel):
    count: int
    max_usage: int
    remaining: int
    window_start: float
    resets_at: Optional[float] = None
    applies: bool


class VoiceOut(BaseModel):
    name: str
    gender: str
    character: str


class LanguageOut(BaseModel):
    code: str
    name: str


class VoicesOut(BaseModel):
    voices: List[VoiceOut]
    languages: List[LanguageOut]
