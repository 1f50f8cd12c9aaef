"""Data models for the enrichment core."""

from .conversation_types import ConversationMessage, MessageBase, TurnRole
from .documents import (
    EnrichmentRequest,
    FormattedContext,
    OptimizedContext,
    RetrievedDocument,
    SourceMetadata,
)

__all__ = [
    "ConversationMessage",
    "MessageBase",
    "TurnRole",
    "EnrichmentRequest",
    "FormattedContext",
    "OptimizedContext",
    "RetrievedDocument",
    "SourceMetadata",
]
