"""
In-process metrics collector for the enrichment core.

Aggregates operation timings, retrieval API calls, enrichment outcomes,
errors and cache events. All state lives in memory for the life of the
collector.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Deque, Dict, Optional

from ..reliability.errors import ErrorKind, RageError
from .models import (
    ApiCallStats,
    CacheEvent,
    CacheStats,
    EnrichmentMetrics,
    ErrorMetrics,
    OperationStats,
)

logger = logging.getLogger(__name__)


@dataclass
class MetricsConfig:
    """Configuration for metrics collection."""
    enabled: bool = True
    max_recent_errors: int = 50
    max_recent_enrichments: int = 100


class MetricsCollector:
    """
    Central metrics collector.

    Every ``record_*`` method is a no-op while collection is disabled.
    """

    def __init__(self, config: Optional[MetricsConfig] = None):
        self.config = config or MetricsConfig()
        self.reset()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def reset(self):
        """Drop all collected metrics."""
        self.started_at = time.time()
        self.operations: Dict[str, OperationStats] = {}
        self.api_calls: Dict[str, ApiCallStats] = {}
        self.cache = CacheStats()
        self.errors_by_type: Dict[str, int] = {}
        self.recent_errors: Deque[ErrorMetrics] = deque(maxlen=self.config.max_recent_errors)
        self.enrichments: Deque[EnrichmentMetrics] = deque(
            maxlen=self.config.max_recent_enrichments
        )
        self.total_enrichments = 0

    def record_operation(self, name: str, duration_ms: float, status: str = "success"):
        if not self.enabled:
            return
        self.operations.setdefault(name, OperationStats()).record(duration_ms, status)

    def record_api_call(
        self,
        endpoint: str,
        duration_ms: float,
        status_code: int,
        response_bytes: int = 0,
    ):
        if not self.enabled:
            return
        self.api_calls.setdefault(endpoint, ApiCallStats()).record(
            duration_ms, status_code, response_bytes
        )

    def record_context_enrichment(self, metrics: EnrichmentMetrics):
        if not self.enabled:
            return
        self.total_enrichments += 1
        self.enrichments.append(metrics)

    def record_error(
        self,
        error_type: str,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **details: Any,
    ):
        if not self.enabled:
            return
        self.errors_by_type[error_type] = self.errors_by_type.get(error_type, 0) + 1
        self.recent_errors.append(ErrorMetrics(
            error_type=error_type,
            operation=operation,
            correlation_id=correlation_id,
            details=details,
        ))

    def record_cache_metric(self, event: CacheEvent):
        if not self.enabled:
            return
        event = CacheEvent(event)
        setattr(self.cache, event.value, getattr(self.cache, event.value) + 1)

    @asynccontextmanager
    async def track_operation(
        self,
        name: str,
        correlation_id: Optional[str] = None,
    ) -> AsyncIterator[None]:
        """Time the wrapped block and record it under ``name``."""
        start = time.perf_counter()
        try:
            yield
        except Exception as error:
            duration_ms = (time.perf_counter() - start) * 1000
            status = (
                "timeout"
                if isinstance(error, RageError) and error.kind == ErrorKind.TIMEOUT
                else "error"
            )
            self.record_operation(name, duration_ms, status)
            error_type = error.kind.value if isinstance(error, RageError) else type(error).__name__
            self.record_error(error_type, operation=name, correlation_id=correlation_id)
            raise
        self.record_operation(name, (time.perf_counter() - start) * 1000, "success")

    def get_metrics(self) -> Dict[str, Any]:
        """Full metrics snapshot."""
        return {
            "enabled": self.enabled,
            "uptime_seconds": time.time() - self.started_at,
            "operations": {name: s.to_dict() for name, s in self.operations.items()},
            "api_calls": {name: s.to_dict() for name, s in self.api_calls.items()},
            "enrichment": self._enrichment_summary(),
            "errors": {
                "by_type": dict(self.errors_by_type),
                "recent": [e.to_dict() for e in self.recent_errors],
            },
            "cache": self.cache.to_dict(),
        }

    def get_performance_summary(self) -> Dict[str, Any]:
        """Headline numbers for dashboards."""
        total_ops = sum(s.count for s in self.operations.values())
        total_failed = sum(s.error + s.timeout for s in self.operations.values())
        total_duration = sum(s.total_duration_ms for s in self.operations.values())
        hour_ago = time.time() - 3600
        return {
            "uptime_seconds": time.time() - self.started_at,
            "total_operations": total_ops,
            "total_errors": sum(self.errors_by_type.values()),
            "error_rate": total_failed / total_ops if total_ops else 0.0,
            "avg_response_time_ms": total_duration / total_ops if total_ops else 0.0,
            "cache_hit_rate": self.cache.hit_rate,
            "total_enrichments": self.total_enrichments,
            "recent_errors_last_hour": sum(
                1 for e in self.recent_errors if e.timestamp >= hour_ago
            ),
        }

    def _enrichment_summary(self) -> Dict[str, Any]:
        recent = list(self.enrichments)
        if not recent:
            return {"total": self.total_enrichments}
        count = len(recent)
        return {
            "total": self.total_enrichments,
            "avg_documents": sum(m.documents_retrieved for m in recent) / count,
            "avg_context_size": sum(m.context_size for m in recent) / count,
            "avg_relevance": sum(m.relevance_score for m in recent) / count,
            "avg_processing_time_ms": sum(m.processing_time_ms for m in recent) / count,
            "avg_token_count": sum(m.token_count for m in recent) / count,
            "truncated": sum(1 for m in recent if m.truncated),
        }
