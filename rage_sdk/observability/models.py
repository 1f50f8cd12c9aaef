"""
Metrics models for the enrichment core.

Each record type is a plain dataclass; the collector keeps the aggregates.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, Optional
import math
import time


class MetricType(str, Enum):
    """Types of metrics that can be collected."""
    OPERATION = "operation"
    API_CALL = "api_call"
    ENRICHMENT = "enrichment"
    ERROR = "error"
    CACHE = "cache"


class CacheEvent(str, Enum):
    HIT = "hit"
    MISS = "miss"
    SET = "set"
    EVICT = "evict"


def percentile(values, pct: float) -> float:
    """Nearest-rank percentile; 0.0 for an empty sample."""
    ordered = sorted(values)
    if not ordered:
        return 0.0
    index = max(0, math.ceil(pct / 100 * len(ordered)) - 1)
    return ordered[index]


@dataclass
class BaseMetrics:
    """Base class for all metric records."""
    timestamp: float = field(default_factory=time.time)
    metric_type: MetricType = MetricType.OPERATION
    correlation_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary format."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


@dataclass
class ErrorMetrics(BaseMetrics):
    """A single recorded error."""
    metric_type: MetricType = field(default=MetricType.ERROR, init=False)
    error_type: str = "unknown"
    operation: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class EnrichmentMetrics(BaseMetrics):
    """One completed context enrichment."""
    metric_type: MetricType = field(default=MetricType.ENRICHMENT, init=False)
    documents_retrieved: int = 0
    context_size: int = 0
    relevance_score: float = 0.0
    processing_time_ms: float = 0.0
    token_count: int = 0
    compression_ratio: float = 1.0
    truncated: bool = False
    strategy: str = "none"


@dataclass
class OperationStats:
    """Aggregate timings for one named operation."""
    count: int = 0
    success: int = 0
    error: int = 0
    timeout: int = 0
    total_duration_ms: float = 0.0
    min_duration_ms: Optional[float] = None
    max_duration_ms: float = 0.0
    last_timestamp: Optional[float] = None
    recent: Deque[float] = field(default_factory=lambda: deque(maxlen=100))

    def record(self, duration_ms: float, status: str):
        self.count += 1
        if status == "success":
            self.success += 1
        elif status == "timeout":
            self.timeout += 1
        else:
            self.error += 1
        self.total_duration_ms += duration_ms
        self.min_duration_ms = (
            duration_ms if self.min_duration_ms is None
            else min(self.min_duration_ms, duration_ms)
        )
        self.max_duration_ms = max(self.max_duration_ms, duration_ms)
        self.last_timestamp = time.time()
        self.recent.append(duration_ms)

    @property
    def avg_duration_ms(self) -> float:
        return self.total_duration_ms / self.count if self.count else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "success": self.success,
            "error": self.error,
            "timeout": self.timeout,
            "avg_duration_ms": self.avg_duration_ms,
            "min_duration_ms": self.min_duration_ms or 0.0,
            "max_duration_ms": self.max_duration_ms,
            "p95_duration_ms": percentile(self.recent, 95),
            "p99_duration_ms": percentile(self.recent, 99),
            "last_timestamp": self.last_timestamp,
        }


@dataclass
class ApiCallStats:
    """Aggregates for calls to one endpoint."""
    count: int = 0
    total_duration_ms: float = 0.0
    total_response_bytes: int = 0
    status_codes: Dict[int, int] = field(default_factory=dict)

    def record(self, duration_ms: float, status_code: int, response_bytes: int):
        self.count += 1
        self.total_duration_ms += duration_ms
        self.total_response_bytes += response_bytes
        self.status_codes[status_code] = self.status_codes.get(status_code, 0) + 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "avg_duration_ms": self.total_duration_ms / self.count if self.count else 0.0,
            "avg_response_bytes": self.total_response_bytes / self.count if self.count else 0.0,
            "status_codes": dict(self.status_codes),
        }


@dataclass
class CacheStats:
    hit: int = 0
    miss: int = 0
    set: int = 0
    evict: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hit + self.miss
        return self.hit / lookups if lookups else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hit": self.hit,
            "miss": self.miss,
            "set": self.set,
            "evict": self.evict,
            "hit_rate": self.hit_rate,
        }
