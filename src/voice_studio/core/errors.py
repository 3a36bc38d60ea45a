"""
Error Codes and Exceptions.

Every user-facing failure is a StudioError carrying a stable code from
ErrorCode, so the API layer can map it to an HTTP status and the CLI can
print it without knowing the concrete class.

Hierarchy:
    StudioError
    ├── QuotaExceeded            pre-flight quota rejection (no mutation)
    ├── SegmentGenerationFailed  one segment failed; recorded, batch continues
    ├── ProviderError            provider call failed (kind = failure class)
    ├── NoAudioProduced          nothing to reassemble
    ├── InvalidCredential        missing/blank credential
    ├── BatchAlreadyRunning      second concurrent batch start
    ├── InvalidInputError        request validation failure
    └── SegmentNotFound          unknown segment id

Codec-level malformed input (bad base64, truncated WAV) raises plain
ValueError: it is a programming error, not a user-facing condition.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """Standardized error codes for API responses."""
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"           # Shared credential exhausted
    SEGMENT_FAILED = "SEGMENT_FAILED"           # One segment's generation failed
    PROVIDER_ERROR = "PROVIDER_ERROR"           # Remote provider rejected/failed
    NO_AUDIO = "NO_AUDIO"                       # Nothing to reassemble
    INVALID_CREDENTIAL = "INVALID_CREDENTIAL"   # Missing/blank API key
    BATCH_RUNNING = "BATCH_RUNNING"             # A batch is already in flight
    INVALID_INPUT = "INVALID_INPUT"             # Bad request data
    SEGMENT_NOT_FOUND = "SEGMENT_NOT_FOUND"     # Unknown segment id
    INTERNAL_ERROR = "INTERNAL_ERROR"           # Unexpected error


class ProviderErrorKind:
    """Failure classes reported by a synthesis provider."""
    SAFETY_BLOCKED = "safety-blocked"
    RECITATION_BLOCKED = "recitation-blocked"
    MALFORMED_CONFIG = "malformed-config"
    NO_AUDIO_RETURNED = "no-audio-returned"
    TRANSPORT_ERROR = "transport-error"
    TRANSLATION_FAILED = "translation-failed"

    ALL = (
        SAFETY_BLOCKED,
        RECITATION_BLOCKED,
        MALFORMED_CONFIG,
        NO_AUDIO_RETURNED,
        TRANSPORT_ERROR,
        TRANSLATION_FAILED,
    )


class StudioError(Exception):
    """
    Base exception for voice-studio errors.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode.
        details: Optional dictionary with additional context.
    """
    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to standardized error response dict for API."""
        result = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class QuotaExceeded(StudioError):
    """Raised before any work starts when the shared quota cannot cover it."""
    def __init__(self, remaining: int, requested: int, max_usage: int):
        super().__init__(
            f"Shared quota exhausted: {requested} requested, {remaining} of {max_usage} remaining",
            ErrorCode.QUOTA_EXCEEDED,
            {"remaining": remaining, "requested": requested, "max_usage": max_usage},
        )
        self.remaining = remaining
        self.requested = requested


class ProviderError(StudioError):
    """Raised by a provider when a synthesis or translation call fails."""
    def __init__(self, kind: str, message: str, details: Optional[Dict] = None):
        merged = {"kind": kind}
        merged.update(details or {})
        super().__init__(message, ErrorCode.PROVIDER_ERROR, merged)
        self.kind = kind


class SegmentGenerationFailed(StudioError):
    """Raised by single-shot generation when the provider call fails."""
    def __init__(self, segment_id: str, kind: str, message: str):
        super().__init__(
            message,
            ErrorCode.SEGMENT_FAILED,
            {"segment_id": segment_id, "kind": kind},
        )
        self.segment_id = segment_id
        self.kind = kind


class NoAudioProduced(StudioError):
    def __init__(self, message: str = "No audio available to assemble", details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.NO_AUDIO, details)


class InvalidCredential(StudioError):
    def __init__(self, message: str = "A non-empty API key is required", details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.INVALID_CREDENTIAL, details)


class BatchAlreadyRunning(StudioError):
    def __init__(self, batch_id: str, message: str = "A batch is already running", details: Optional[Dict] = None):
        merged = {"batch_id": batch_id}
        merged.update(details or {})
        super().__init__(message, ErrorCode.BATCH_RUNNING, merged)


class InvalidInputError(StudioError):
    """Raised when request data fails validation."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.INVALID_INPUT, details)


class SegmentNotFound(StudioError):
    def __init__(self, segment_id: str):
        super().__init__(
            f"Unknown segment: {segment_id}",
            ErrorCode.SEGMENT_NOT_FOUND,
            {"segment_id": segment_id},
        )
        self.segment_id = segment_id
