"""
Relevance scoring and filtering of retrieved documents.

The raw similarity from the retrieval service is combined with secondary
signals (recency, query match, source quality, completeness) through a
pluggable blend function. Documents below the threshold are dropped and the
survivors are ranked with a per-source diversity cap.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ..models.documents import RetrievedDocument

logger = logging.getLogger(__name__)

BlendFunction = Callable[[float, float], float]

QUALITY_INDICATORS = ("documentation", "official", "manual", "specification", "guide")
DOCUMENT_EXTENSIONS = (".pdf", ".doc", ".docx", ".md", ".txt")


@dataclass(frozen=True)
class BoostWeights:
    """Maximum contribution of each secondary signal."""
    recency: float = 0.1
    exact_match: float = 0.15
    source_quality: float = 0.1
    completeness: float = 0.05

    @property
    def total(self) -> float:
        return self.recency + self.exact_match + self.source_quality + self.completeness


def additive_blend(raw_score: float, boost: float) -> float:
    """Raw score plus boosts, capped at 1.0."""
    return min(1.0, raw_score + boost)


def weighted_blend(raw_weight: float, max_boost: Optional[float] = None) -> BlendFunction:
    """
    Convex combination of raw score and normalized boost.

    Args:
        raw_weight: Weight of the raw score in [0, 1]
        max_boost: Boost value mapped to 1.0; defaults to the sum of the
            default ``BoostWeights``
    """
    if not 0.0 <= raw_weight <= 1.0:
        raise ValueError("raw_weight must be in [0, 1]")
    ceiling = max_boost or BoostWeights().total

    def blend(raw_score: float, boost: float) -> float:
        return min(1.0, raw_weight * raw_score + (1 - raw_weight) * min(1.0, boost / ceiling))

    return blend


def _parse_date(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class RelevanceScorer:
    """Scores, filters and ranks retrieved documents."""

    MAX_PER_SOURCE = 2
    DIVERSITY_MIN_DOCUMENTS = 3

    def __init__(
        self,
        min_score: float = 0.7,
        rerank: bool = True,
        blend: BlendFunction = additive_blend,
        weights: Optional[BoostWeights] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.min_score = min_score
        self.rerank = rerank
        self.blend = blend
        self.weights = weights or BoostWeights()
        self._now = now

    def score(self, document: RetrievedDocument, query: str) -> RetrievedDocument:
        """Return a copy with ``enhanced_score`` and ``boosts`` set."""
        if not self.rerank:
            return document.model_copy(update={"enhanced_score": document.raw_score, "boosts": {}})

        boosts = {
            "recency": self._recency_boost(document),
            "exact_match": self._exact_match_boost(document, query),
            "source_quality": self._source_quality_boost(document),
            "completeness": self._completeness_boost(document),
        }
        enhanced = self.blend(document.raw_score, sum(boosts.values()))
        return document.model_copy(update={
            "enhanced_score": max(0.0, min(1.0, enhanced)),
            "boosts": boosts,
        })

    def filter_and_rank(
        self,
        documents: List[RetrievedDocument],
        query: str,
        limit: Optional[int] = None,
    ) -> List[RetrievedDocument]:
        """
        Score documents, drop those below ``min_score`` and rank the rest.

        Args:
            documents: Documents from the retrieval service
            query: Sanitized query
            limit: Maximum documents to keep

        Returns:
            Surviving documents, best first
        """
        scored = [self.score(doc, query) for doc in documents]
        kept = [doc for doc in scored if doc.score >= self.min_score]
        kept.sort(key=lambda d: d.score, reverse=True)

        if limit is not None and len(kept) > self.DIVERSITY_MIN_DOCUMENTS:
            kept = self.apply_diversity(kept, limit)
        elif limit is not None:
            kept = kept[:limit]

        logger.debug(
            "Relevance filtering complete",
            extra={"input_documents": len(documents), "kept_documents": len(kept)}
        )
        return kept

    def apply_diversity(self, documents: List[RetrievedDocument], limit: int) -> List[RetrievedDocument]:
        """Cap documents per source, back-filling by score up to ``limit``."""
        per_source: Counter = Counter()
        diverse: List[RetrievedDocument] = []
        overflow: List[RetrievedDocument] = []

        for doc in documents:
            if per_source[doc.source] < self.MAX_PER_SOURCE and len(diverse) < limit:
                per_source[doc.source] += 1
                diverse.append(doc)
            else:
                overflow.append(doc)

        for doc in overflow:
            if len(diverse) >= limit:
                break
            diverse.append(doc)

        diverse.sort(key=lambda d: d.score, reverse=True)
        return diverse

    def _recency_boost(self, document: RetrievedDocument) -> float:
        date = _parse_date(document.metadata.date)
        if date is None:
            return 0.0
        age_days = (self._now() - date).days
        if age_days <= 30:
            return self.weights.recency
        if age_days <= 90:
            return self.weights.recency * 0.5
        if age_days <= 180:
            return self.weights.recency * 0.2
        return 0.0

    def _exact_match_boost(self, document: RetrievedDocument, query: str) -> float:
        text = document.text.lower()
        query = query.lower().strip()
        if not query:
            return 0.0
        if query in text:
            return self.weights.exact_match

        words = [w for w in re.findall(r"\w+", query) if len(w) > 2]
        if not words:
            return 0.0
        ratio = sum(1 for w in words if w in text) / len(words)
        return self.weights.exact_match * ratio * 0.7

    def _source_quality_boost(self, document: RetrievedDocument) -> float:
        source = (document.metadata.source or "").lower()
        if not source:
            return 0.0
        if any(indicator in source for indicator in QUALITY_INDICATORS):
            return self.weights.source_quality
        if source.endswith(DOCUMENT_EXTENSIONS):
            return self.weights.source_quality * 0.5
        return 0.0

    def _completeness_boost(self, document: RetrievedDocument) -> float:
        length = len(document.text)
        if 200 <= length <= 2000:
            return self.weights.completeness
        if length >= 100:
            return self.weights.completeness * 0.5
        return 0.0

    def analyze_scoring(self, documents: List[RetrievedDocument]) -> Dict[str, Any]:
        """Summary statistics for scored documents."""
        if not documents:
            return {"count": 0}
        raw = [d.raw_score for d in documents]
        enhanced = [d.score for d in documents]
        boost_totals: Dict[str, float] = {}
        for doc in documents:
            for name, value in doc.boosts.items():
                boost_totals[name] = boost_totals.get(name, 0.0) + value
        count = len(documents)
        return {
            "count": count,
            "avg_raw_score": sum(raw) / count,
            "avg_enhanced_score": sum(enhanced) / count,
            "max_score": max(enhanced),
            "min_score": min(enhanced),
            "above_threshold": sum(1 for s in enhanced if s >= self.min_score),
            "avg_boosts": {name: total / count for name, total in boost_totals.items()},
        }
