"""Observability layer: structured logging and in-process metrics."""

from .collector import MetricsCollector, MetricsConfig
from .logging import (
    RageLogger,
    configure_logging,
    correlation_scope,
    current_correlation_id,
    generate_correlation_id,
)
from .models import CacheEvent, EnrichmentMetrics, ErrorMetrics, MetricType

__all__ = [
    "MetricsCollector",
    "MetricsConfig",
    "RageLogger",
    "configure_logging",
    "correlation_scope",
    "current_correlation_id",
    "generate_correlation_id",
    "CacheEvent",
    "EnrichmentMetrics",
    "ErrorMetrics",
    "MetricType",
]
