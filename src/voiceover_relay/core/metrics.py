"""
Prometheus Metrics for the Relay.

Metrics Exposed:
    relay_requests_total               - Relay responses by HTTP status
    relay_upstream_errors_total        - Non-success upstream responses by status
    relay_upstream_duration_seconds    - Latency of the single upstream call
    relay_audio_bytes_total            - Decoded audio bytes returned to callers

Usage:
    from voiceover_relay.core.metrics import metrics

    metrics.record_response(200, audio_bytes=18432)
    metrics.observe_upstream(0.41)
    content, content_type = metrics.get_metrics_response()
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)


class RelayMetrics:
    """
    Relay metrics on a private CollectorRegistry.

    A private registry keeps repeated app creation (tests, reloads) from
    tripping duplicate-registration errors in the default registry.
    """

    def __init__(self) -> None:
        self._registry = CollectorRegistry()

        self._requests_total = Counter(
            "relay_requests_total",
            "Relay responses by HTTP status code",
            ["status"],
            registry=self._registry,
        )
        self._upstream_errors = Counter(
            "relay_upstream_errors_total",
            "Upstream responses that were not successful, by status code",
            ["status"],
            registry=self._registry,
        )
        self._upstream_duration = Histogram(
            "relay_upstream_duration_seconds",
            "Duration of the upstream synthesis call in seconds",
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self._registry,
        )
        self._audio_bytes_total = Counter(
            "relay_audio_bytes_total",
            "Total decoded audio bytes returned",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_response(self, status: int, audio_bytes: int = 0) -> None:
        """Count one relay response; add audio bytes for successful ones."""
        self._requests_total.labels(status=str(status)).inc()
        if audio_bytes > 0:
            self._audio_bytes_total.inc(audio_bytes)

    def record_upstream_error(self, status: int) -> None:
        self._upstream_errors.labels(status=str(status)).inc()

    def observe_upstream(self, seconds: float) -> None:
        self._upstream_duration.observe(seconds)

    def get_metrics_response(self) -> tuple[bytes, str]:
        """Prometheus exposition (content, content_type) for /metrics."""
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


metrics = RelayMetrics()
