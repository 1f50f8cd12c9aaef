"""Request-scoped data carried through the enrichment pipeline."""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class SourceMetadata(BaseModel):
    """Metadata attached to a retrieved document."""
    model_config = ConfigDict(extra="allow")

    source: Optional[str] = None
    page: Optional[Union[int, str]] = None
    section: Optional[str] = None
    date: Optional[str] = None
    url: Optional[str] = None


class RetrievedDocument(BaseModel):
    """A document returned by the retrieval service."""

    text: str
    raw_score: float = Field(default=0.0, ge=0.0, le=1.0)
    enhanced_score: Optional[float] = None
    metadata: SourceMetadata = Field(default_factory=SourceMetadata)
    boosts: Dict[str, float] = Field(default_factory=dict)

    @property
    def score(self) -> float:
        """Enhanced score when one was computed, raw score otherwise."""
        return self.enhanced_score if self.enhanced_score is not None else self.raw_score

    @property
    def source(self) -> str:
        return self.metadata.source or "Unknown Source"

    @classmethod
    def from_result(cls, result: Dict[str, Any]) -> "RetrievedDocument":
        """Build from one ``results`` entry of the retrieval response."""
        score = result.get("score")
        if score is None:
            score = result.get("similarity", result.get("relevancy", 0.0))
        score = min(max(float(score or 0.0), 0.0), 1.0)
        return cls(
            text=str(result.get("text") or ""),
            raw_score=score,
            metadata=SourceMetadata(**(result.get("metadata") or {})),
        )


class EnrichmentRequest(BaseModel):
    """One enrichment attempt."""
    model_config = ConfigDict(frozen=True)

    sanitized_query: str
    correlation_id: str
    user_id: Optional[str] = None
    conversation_id: Optional[str] = None
    language: str = "english"


class FormattedContext(BaseModel):
    """Context block produced by the formatter."""

    context_text: str
    token_count: int
    sources: List[str] = Field(default_factory=list)
    relevance_score: float = 0.0
    document_count: int = 0
    template: str = "standard"


class OptimizedContext(BaseModel):
    """Final token-budgeted context."""

    optimized_text: str
    token_count: int
    original_token_count: int
    compression_ratio: float = 1.0
    truncated: bool = False
    strategy: str = "none"
    documents_included: int = 0
