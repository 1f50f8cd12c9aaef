"""HTTP API layer for the enrichment core.

Provides a FastAPI router exposing enrichment, health, metrics and
configuration endpoints.
"""

from .api import create_router

__all__ = ["create_router"]
