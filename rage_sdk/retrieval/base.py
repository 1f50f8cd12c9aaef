"""
Retrieval client interface.

The enrichment pipeline depends only on this narrow contract; the HTTP
client is the production implementation and the in-memory client backs
tests and offline runs.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..models.documents import RetrievedDocument


class RetrievalClient(ABC):
    """Abstract base class for retrieval backends."""

    @abstractmethod
    async def retrieve(
        self,
        query: str,
        k: int,
        correlation_id: Optional[str] = None,
    ) -> List[RetrievedDocument]:
        """
        Retrieve documents for a query.

        Args:
            query: Sanitized query text
            k: Maximum number of results requested
            correlation_id: Correlation ID forwarded to the service

        Returns:
            Documents ordered as returned by the service; may be empty

        Raises:
            RageError: Classified failure (network, timeout, auth, ...)
        """

    async def health_check(self, correlation_id: Optional[str] = None) -> Dict[str, Any]:
        """Minimal liveness probe; backends may override."""
        return {"status": "healthy"}

    async def aclose(self) -> None:
        """Release resources held by the client."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
