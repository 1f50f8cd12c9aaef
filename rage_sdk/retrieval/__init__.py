"""Retrieval backends."""

from .base import RetrievalClient
from .http_client import HTTPRetrievalClient
from .in_memory import InMemoryRetrievalClient

__all__ = ["RetrievalClient", "HTTPRetrievalClient", "InMemoryRetrievalClient"]
