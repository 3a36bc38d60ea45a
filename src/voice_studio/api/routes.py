"""
voice-studio API Routes.

Endpoints:
    POST  /v1/session                  - Load text (segments it)
    GET   /v1/segments                 - Current segments
    PATCH /v1/segments/{id}            - Edit one segment's text
    POST  /v1/segments/{id}/generate   - Regenerate one segment
    GET   /v1/segments/{id}/audio      - One segment as WAV
    POST  /v1/segments/{id}/select     - Toggle selection (completed only)
    POST  /v1/segments/select-all      - Toggle select-all
    POST  /v1/batch                    - Generate everything not completed, return merged WAV
    POST  /v1/export                   - Merge selected segments into one WAV
    POST  /v1/preview                  - Voice preview WAV
    PUT   /v1/credentials              - Use user API keys
    POST  /v1/credentials/shared       - Use the shared key
    GET   /v1/credentials              - Active credential summary (masked)
    GET   /v1/quota                    - Shared quota status
    GET   /v1/voices                   - Voice and language catalogue
    GET   /health                      - Health check
    GET   /metrics                     - Prometheus metrics

Error Handling:
    StudioError subclasses are returned as
    {"ok": false, "error": "<CODE>", "message": "...", "details": {...}}
    with the HTTP status from STATUS_MAP.
"""
from __future__ import annotations

import uuid
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from voice_studio import __version__
from voice_studio.api.dependencies import get_studio_service
from voice_studio.api.schemas import (
    CredentialsRequest,
    CredentialSummaryOut,
    EditSegmentRequest,
    GenerateRequest,
    LanguageOut,
    LoadTextRequest,
    PreviewRequest,
    QuotaOut,
    SegmentOut,
    SessionOut,
    VoiceOut,
    VoiceParams,
    VoicesOut,
)
from voice_studio.core.errors import ErrorCode, StudioError
from voice_studio.core.logging import get_logger, info, set_request_id, warn
from voice_studio.core.metrics import metrics
from voice_studio.services.studio_service import StudioService
from voice_studio.services.validators import validate_voice_config
from voice_studio.tts.provider import VoiceConfig
from voice_studio.tts.voices import PREBUILT_VOICES, PREVIEW_TEXT, SUPPORTED_LANGUAGES

router = APIRouter()

_LOG = get_logger("voice-studio.api")

STATUS_MAP: Dict[str, int] = {
    ErrorCode.QUOTA_EXCEEDED: 429,
    ErrorCode.BATCH_RUNNING: 409,
    ErrorCode.NO_AUDIO: 422,
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.INVALID_CREDENTIAL: 400,
    ErrorCode.SEGMENT_NOT_FOUND: 404,
    ErrorCode.SEGMENT_FAILED: 502,
    ErrorCode.PROVIDER_ERROR: 502,
}


def _error_response(error: StudioError) -> JSONResponse:
    status_code = STATUS_MAP.get(error.code, 500)
    return JSONResponse(status_code=status_code, content=error.to_dict())


async def studio_error_handler(request: Request, exc: StudioError) -> JSONResponse:
    """Registered on the app for every StudioError raised by a route."""
    warn(_LOG, "request_failed", path=request.url.path, error=exc.code)
    return _error_response(exc)


def _new_request_id() -> str:
    rid = str(uuid.uuid4())[:12]
    set_request_id(rid)
    return rid


def _voice(params: Optional[VoiceParams], service: StudioService) -> VoiceConfig:
    if params is None:
        return service.default_voice()
    return validate_voice_config(params.voice_name, params.style, params.temperature, params.language)


def _wav_response(wav_bytes: bytes, filename: str, headers: Optional[Dict[str, str]] = None) -> Response:
    all_headers = {
        "Content-Disposition": f'attachment; filename="{filename}"',
        "X-Bytes": str(len(wav_bytes)),
    }
    all_headers.update(headers or {})
    return Response(content=wav_bytes, media_type="audio/wav", headers=all_headers)


def _session(service: StudioService) -> SessionOut:
    return SessionOut(
        segments=[SegmentOut.from_segment(s) for s in service.segments()],
        full_text=service.full_text(),
        batch_state=service.batch_state(),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Session and segments
# ─────────────────────────────────────────────────────────────────────────────

@router.post("/v1/session", response_model=SessionOut)
def load_session(req: LoadTextRequest, service: StudioService = Depends(get_studio_service)):
    _new_request_id()
    service.load_text(req.text, req.max_words)
    return _session(service)


@router.get("/v1/segments", response_model=SessionOut)
def list_segments(service: StudioService = Depends(get_studio_service)):
    return _session(service)


@router.patch("/v1/segments/{segment_id}", response_model=SegmentOut)
def edit_segment(segment_id: str, req: EditSegmentRequest, service: StudioService = Depends(get_studio_service)):
    return SegmentOut.from_segment(service.edit_segment(segment_id, req.text))


@router.post("/v1/segments/select-all", response_model=SessionOut)
def select_all(service: StudioService = Depends(get_studio_service)):
    service.toggle_select_all()
    return _session(service)


@router.post("/v1/segments/{segment_id}/select", response_model=SegmentOut)
def toggle_select(segment_id: str, service: StudioService = Depends(get_studio_service)):
    return SegmentOut.from_segment(service.toggle_selection(segment_id))


@router.post("/v1/segments/{segment_id}/generate", response_model=SegmentOut)
async def generate_segment(
    segment_id: str,
    req: Optional[GenerateRequest] = None,
    service: StudioService = Depends(get_studio_service),
):
    _new_request_id()
    voice = _voice(req.voice if req else None, service)
    segment = await service.generate_segment(segment_id, voice)
    return SegmentOut.from_segment(segment)


@router.get("/v1/segments/{segment_id}/audio", response_class=Response)
def segment_audio(segment_id: str, service: StudioService = Depends(get_studio_service)):
    result = service.segment_wav(segment_id)
    return _wav_response(result.wav_bytes, result.filename)


# ─────────────────────────────────────────────────────────────────────────────
# Batch, export, preview
# ─────────────────────────────────────────────────────────────────────────────

@router.post("/v1/batch", response_class=Response)
async def run_batch(req: Optional[GenerateRequest] = None, service: StudioService = Depends(get_studio_service)):
    """
    Generate all non-completed segments and return the merged WAV.

    Headers: X-Batch-Id, X-Completed, X-Failed, X-Failed-Segments.
    """
    voice = _voice(req.voice if req else None, service)
    result = await service.generate_all(voice)
    info(_LOG, "batch_response", batch=result.batch_id, completed=len(result.completed), failed=len(result.failed))
    return _wav_response(
        result.wav_bytes,
        result.filename,
        {
            "X-Batch-Id": result.batch_id,
            "X-Completed": str(len(result.completed)),
            "X-Failed": str(len(result.failed)),
            "X-Failed-Segments": ",".join(result.failed),
        },
    )


@router.post("/v1/export", response_class=Response)
def export_selected(service: StudioService = Depends(get_studio_service)):
    result = service.export_selected()
    return _wav_response(result.wav_bytes, result.filename, {"X-Segments": str(len(result.segment_ids))})


@router.post("/v1/preview", response_class=Response)
async def preview(req: Optional[PreviewRequest] = None, service: StudioService = Depends(get_studio_service)):
    _new_request_id()
    voice = _voice(req.voice if req else None, service)
    text = (req.text if req and req.text else None) or PREVIEW_TEXT
    wav = await service.preview_voice(voice, text)
    return _wav_response(wav, f"voice-studio-preview-{voice.voice_name}.wav")


# ─────────────────────────────────────────────────────────────────────────────
# Credentials, quota, catalogue
# ─────────────────────────────────────────────────────────────────────────────

@router.put("/v1/credentials", response_model=CredentialSummaryOut)
def set_credentials(req: CredentialsRequest, service: StudioService = Depends(get_studio_service)):
    return service.set_user_credentials(req.keys)


@router.post("/v1/credentials/shared", response_model=CredentialSummaryOut)
def use_shared(service: StudioService = Depends(get_studio_service)):
    return service.use_shared_credential()


@router.get("/v1/credentials", response_model=CredentialSummaryOut)
def credential_summary(service: StudioService = Depends(get_studio_service)):
    return service.credential_summary()


@router.get("/v1/quota", response_model=QuotaOut)
def quota(service: StudioService = Depends(get_studio_service)):
    status = service.quota_status()
    return QuotaOut(
        count=status.count,
        max_usage=status.max_usage,
        remaining=status.remaining,
        window_start=status.window_start,
        resets_at=status.resets_at,
        applies=service.credential_mode == "shared",
    )


@router.get("/v1/voices", response_model=VoicesOut)
def voices():
    return VoicesOut(
        voices=[VoiceOut(name=v.name, gender=v.gender, character=v.character) for v in PREBUILT_VOICES],
        languages=[LanguageOut(code=lang.code, name=lang.name) for lang in SUPPORTED_LANGUAGES],
    )


@router.get("/health")
def health(service: StudioService = Depends(get_studio_service)):
    return {
        "status": "healthy" if service.credential_mode != "none" else "degraded",
        "version": __version__,
        "provider": service.provider.name,
        "credentials": service.credential_mode,
        "batch_state": service.batch_state(),
        "segments": len(service.store),
    }


@router.get("/metrics")
def prometheus_metrics():
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
