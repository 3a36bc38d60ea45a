"""
Prometheus Metrics for voice-studio.

Metrics Exposed:
    voice_studio_segments_total                  - Segment generations by outcome
    voice_studio_provider_errors_total           - Provider failures by kind
    voice_studio_provider_call_duration_seconds  - Provider call latency
    voice_studio_batches_total                   - Batches by final state
    voice_studio_quota_rejections_total          - Pre-flight quota rejections
    voice_studio_quota_remaining                 - Remaining shared quota
    voice_studio_audio_bytes_total               - PCM bytes produced

Usage:
    from voice_studio.core.metrics import metrics

    metrics.record_segment("completed", duration=1.4, audio_bytes=96000)
    metrics.record_segment("failed", duration=0.3, error_kind="safety-blocked")
    metrics.set_quota_remaining(7)

    content, content_type = metrics.get_metrics_response()
"""
from __future__ import annotations

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class StudioMetrics:
    """
    Metrics collection for the generation pipeline.

    Uses a private CollectorRegistry so several instances (tests, multiple
    apps in one process) never collide on metric names.
    """

    def __init__(self):
        self._registry = CollectorRegistry()

        self._segments_total = Counter(
            "voice_studio_segments_total",
            "Segment generations by outcome",
            ["status"],
            registry=self._registry,
        )
        self._provider_errors = Counter(
            "voice_studio_provider_errors_total",
            "Provider failures by kind",
            ["kind"],
            registry=self._registry,
        )
        self._provider_duration = Histogram(
            "voice_studio_provider_call_duration_seconds",
            "Provider call duration in seconds",
            buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 40.0, 60.0),
            registry=self._registry,
        )
        self._batches_total = Counter(
            "voice_studio_batches_total",
            "Batches by final state",
            ["state"],
            registry=self._registry,
        )
        self._quota_rejections = Counter(
            "voice_studio_quota_rejections_total",
            "Requests rejected by the shared quota",
            registry=self._registry,
        )
        self._quota_remaining = Gauge(
            "voice_studio_quota_remaining",
            "Remaining generations on the shared credential",
            registry=self._registry,
        )
        self._audio_bytes_total = Counter(
            "voice_studio_audio_bytes_total",
            "Total PCM bytes produced",
            registry=self._registry,
        )

    def record_segment(
        self,
        status: str,
        duration: float,
        error_kind: Optional[str] = None,
        audio_bytes: int = 0,
    ) -> None:
        """
        Record one provider call for a segment.

        Args:
            status: "completed" or "failed"
            duration: Provider call duration in seconds
            error_kind: Provider failure kind when status is "failed"
            audio_bytes: Size of decoded PCM
        """
        self._segments_total.labels(status=status).inc()
        self._provider_duration.observe(duration)
        if error_kind:
            self._provider_errors.labels(kind=error_kind).inc()
        if audio_bytes > 0:
            self._audio_bytes_total.inc(audio_bytes)

    def record_batch(self, state: str) -> None:
        self._batches_total.labels(state=state).inc()

    def record_quota_rejection(self) -> None:
        self._quota_rejections.inc()

    def set_quota_remaining(self, remaining: int) -> None:
        self._quota_remaining.set(remaining)

    def get_metrics_response(self) -> tuple[bytes, str]:
        """
        Get metrics in Prometheus format.

        Returns:
            Tuple of (content_bytes, content_type)
        """
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Global singleton metrics instance
metrics = StudioMetrics()
