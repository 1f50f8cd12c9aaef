"""Enrichment stages: sanitize, score, format, optimize, inject."""

from .cache import ContextCache
from .formatter import ContextFormatter, format_source, sanitize_text
from .injection import inject_context
from .relevance import BoostWeights, RelevanceScorer, additive_blend, weighted_blend
from .sanitizer import is_valid_query, sanitize_query
from .token_optimizer import TokenOptimizer, truncate_to_token_limit
from .tokens import estimate_tokens

__all__ = [
    "ContextCache",
    "ContextFormatter",
    "format_source",
    "sanitize_text",
    "inject_context",
    "BoostWeights",
    "RelevanceScorer",
    "additive_blend",
    "weighted_blend",
    "is_valid_query",
    "sanitize_query",
    "TokenOptimizer",
    "truncate_to_token_limit",
    "estimate_tokens",
]
