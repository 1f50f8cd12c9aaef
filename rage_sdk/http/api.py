"""FastAPI HTTP endpoints for the enrichment core.

Mount the router in a host application to expose enrichment and
operational introspection over REST.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ..interceptor import RageInterceptor


class EnrichRequest(BaseModel):
    """Body of ``POST /enrich``."""
    message: str
    user_id: Optional[str] = None
    conversation_id: Optional[str] = None
    correlation_id: Optional[str] = None
    language: str = "english"
    messages: Optional[List[Dict[str, Any]]] = Field(
        None, description="Conversation to inject the context into"
    )


class EnrichResponse(BaseModel):
    context: Optional[str] = None
    enriched: bool = False
    messages: Optional[List[Dict[str, Any]]] = None


def create_router(interceptor: RageInterceptor) -> APIRouter:
    """Build a router bound to ``interceptor``."""
    router = APIRouter()

    @router.post("/enrich", response_model=EnrichResponse)
    async def enrich(request: EnrichRequest):
        """Enrich a message; a missing context is a normal outcome."""
        context = await interceptor.enrich_message(
            request.message,
            user_id=request.user_id,
            conversation_id=request.conversation_id,
            correlation_id=request.correlation_id,
            language=request.language,
        )
        messages = None
        if request.messages is not None:
            messages = interceptor.inject_context(request.messages, context)
        return EnrichResponse(context=context, enriched=context is not None, messages=messages)

    @router.get("/health")
    async def health():
        """Health of the retrieval service and resilience layers."""
        result = await interceptor.health_check()
        if result["status"] == "unhealthy":
            raise HTTPException(status_code=503, detail=result)
        return result

    @router.get("/metrics")
    async def metrics():
        return interceptor.get_metrics()

    @router.get("/metrics/summary")
    async def metrics_summary():
        return interceptor.get_performance_summary()

    @router.get("/config")
    async def config():
        """Configuration with secrets masked."""
        return interceptor.get_config()

    return router
