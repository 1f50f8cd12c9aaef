"""
HTTP retrieval client built on ``httpx.AsyncClient``.

Request body: ``{query, k, options: {include_metadata, include_scores}}``.
Response body: ``{results: [{text, score, metadata: {source}}]}``.
"""

import re
import time
from typing import Any, Dict, List, Optional

import httpx

from ..config.constants import HEALTH_CHECK_QUERY
from ..models.documents import RetrievedDocument
from ..observability.logging import RageLogger
from ..reliability.error_classifier import ErrorClassifier
from ..reliability.errors import ValidationError
from .base import RetrievalClient


def sanitize_url(url: str) -> str:
    """Hide organisation and pipeline identifiers for logging."""
    url = re.sub(r"/org/[^/]+", "/org/***", url)
    return re.sub(r"/pipelines/[^/]+", "/pipelines/***", url)


class HTTPRetrievalClient(RetrievalClient):
    """Production retrieval client."""

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        user_agent: str = "rage-sdk/0.1",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics=None,
        audit_enabled: bool = False,
    ):
        """
        Args:
            endpoint: Full retrieval URL
            api_key: Bearer token
            user_agent: User-Agent header value
            timeout: Transport-level timeout in seconds; per-attempt deadlines
                are enforced separately by the timeout manager
            transport: Optional httpx transport (tests use ``httpx.MockTransport``)
            metrics: Optional ``MetricsCollector`` for API call metrics
            audit_enabled: Emit audit log entries for each call
        """
        self.endpoint = endpoint
        self._api_key = api_key
        self.user_agent = user_agent
        self.timeout = timeout
        self.metrics = metrics
        self.logger = RageLogger("http_client", audit_enabled=audit_enabled)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._closed = False

    @property
    def client(self) -> httpx.AsyncClient:
        if self._closed:
            raise RuntimeError("HTTPRetrievalClient is closed")
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                    "User-Agent": self.user_agent,
                },
            )
        return self._client

    async def retrieve(
        self,
        query: str,
        k: int,
        correlation_id: Optional[str] = None,
    ) -> List[RetrievedDocument]:
        payload = {
            "query": query,
            "k": k,
            "options": {"include_metadata": True, "include_scores": True},
        }
        headers = {"X-Correlation-ID": correlation_id} if correlation_id else {}
        endpoint_label = sanitize_url(self.endpoint)
        start = time.perf_counter()

        self.logger.debug(
            "Retrieval request",
            endpoint=endpoint_label,
            k=k,
            query_length=len(query),
            correlation_id=correlation_id,
        )

        try:
            response = await self.client.post(self.endpoint, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            duration_ms = (time.perf_counter() - start) * 1000
            status_code = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else 0
            self._record_call(endpoint_label, duration_ms, status_code, 0)
            error = ErrorClassifier.classify(e, correlation_id)
            self.logger.warning(
                "Retrieval request failed",
                endpoint=endpoint_label,
                status_code=status_code or None,
                error_kind=error.kind.value,
                duration_ms=int(duration_ms),
                correlation_id=correlation_id,
            )
            raise error from e

        duration_ms = (time.perf_counter() - start) * 1000
        self._record_call(endpoint_label, duration_ms, response.status_code, len(response.content))
        documents = self._parse_response(response, correlation_id)

        self.logger.audit(
            "retrieval",
            endpoint=endpoint_label,
            results=len(documents),
            correlation_id=correlation_id,
        )
        self.logger.debug(
            "Retrieval response",
            results=len(documents),
            duration_ms=int(duration_ms),
            correlation_id=correlation_id,
        )
        return documents

    def _parse_response(
        self,
        response: httpx.Response,
        correlation_id: Optional[str],
    ) -> List[RetrievedDocument]:
        try:
            body = response.json()
        except ValueError as e:
            raise ValidationError(
                "Retrieval response is not valid JSON",
                status_code=response.status_code,
                correlation_id=correlation_id,
                cause=e,
            ) from e

        results = body.get("results") if isinstance(body, dict) else None
        if not isinstance(results, list):
            raise ValidationError(
                "Retrieval response has no results list",
                status_code=response.status_code,
                correlation_id=correlation_id,
            )

        documents = []
        for result in results:
            if not isinstance(result, dict) or not result.get("text"):
                continue
            try:
                documents.append(RetrievedDocument.from_result(result))
            except (TypeError, ValueError) as e:
                self.logger.debug(
                    "Skipping malformed result",
                    error_msg=str(e),
                    correlation_id=correlation_id,
                )
        return documents

    def _record_call(self, endpoint: str, duration_ms: float, status_code: int, size: int):
        if self.metrics is not None:
            self.metrics.record_api_call(endpoint, duration_ms, status_code, size)

    async def health_check(self, correlation_id: Optional[str] = None) -> Dict[str, Any]:
        start = time.perf_counter()
        documents = await self.retrieve(HEALTH_CHECK_QUERY, 1, correlation_id)
        return {
            "status": "healthy",
            "duration_ms": int((time.perf_counter() - start) * 1000),
            "results": len(documents),
        }

    async def aclose(self) -> None:
        self._closed = True
        if self._client is not None:
            await self._client.aclose()
            self._client = None
