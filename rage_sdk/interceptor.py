"""
Context enrichment interceptor.

``RageInterceptor.enrich_message`` runs the staged pipeline for one
message: enablement check, sanitize, retrieve (through the error handler),
score and filter, format, optimize. Any stage that comes up empty ends the
pipeline with ``None``; no exception ever reaches the caller.
"""

import time
from typing import Any, Dict, List, Optional

from .config.settings import RageConfig, get_recommendations
from .enrichment.cache import ContextCache
from .enrichment.formatter import ContextFormatter
from .enrichment.injection import inject_context
from .enrichment.relevance import RelevanceScorer
from .enrichment.sanitizer import is_valid_query, sanitize_query
from .enrichment.token_optimizer import TokenOptimizer
from .models.documents import EnrichmentRequest, RetrievedDocument
from .observability.collector import MetricsCollector, MetricsConfig
from .observability.logging import (
    RageLogger,
    configure_logging,
    correlation_scope,
    generate_correlation_id,
)
from .observability.models import EnrichmentMetrics
from .reliability.error_handler import ErrorHandler, ExecutionContext
from .retrieval.base import RetrievalClient
from .retrieval.http_client import HTTPRetrievalClient

RETRIEVE_OPERATION = "enrichMessage.retrieveDocuments"
ENRICH_OPERATION = "enrichMessage"


class RageInterceptor:
    """
    Entry point for host applications.

    All collaborators can be injected; anything omitted is built from the
    configuration.
    """

    def __init__(
        self,
        config: RageConfig,
        retrieval_client: Optional[RetrievalClient] = None,
        error_handler: Optional[ErrorHandler] = None,
        metrics: Optional[MetricsCollector] = None,
        scorer: Optional[RelevanceScorer] = None,
        formatter: Optional[ContextFormatter] = None,
        optimizer: Optional[TokenOptimizer] = None,
        cache: Optional[ContextCache] = None,
    ):
        self.config = config
        configure_logging(config.log_level, config.debug)
        self.logger = RageLogger("interceptor", audit_enabled=config.enable_audit_log)

        self.metrics = metrics or MetricsCollector(MetricsConfig(enabled=config.enable_metrics))
        self.error_handler = error_handler or ErrorHandler(
            config.error_handler_config(), metrics=self.metrics
        )
        if self.error_handler.metrics is None:
            self.error_handler.metrics = self.metrics

        if retrieval_client is None and config.enabled:
            retrieval_client = HTTPRetrievalClient(
                endpoint=config.endpoint,
                api_key=config.api_key,
                user_agent=config.user_agent,
                timeout=config.max_timeout_ms / 1000,
                metrics=self.metrics,
                audit_enabled=config.enable_audit_log,
            )
        self.retrieval_client = retrieval_client

        self.scorer = scorer or RelevanceScorer(
            min_score=config.min_relevance_score,
            rerank=config.rerank,
        )
        self.formatter = formatter or ContextFormatter(config.format_style)
        self.optimizer = optimizer or TokenOptimizer(
            max_tokens=config.max_tokens,
            buffer_tokens=config.token_buffer,
            strategy=config.optimization_strategy,
            formatter=self.formatter,
        )
        if cache is None:
            cache = ContextCache(
                ttl_seconds=config.cache_ttl if config.enable_caching else 0,
                on_event=self.metrics.record_cache_metric,
            )
        self.cache = cache

        self.logger.info(
            "Interceptor initialized",
            enabled=config.enabled,
            environment=config.environment,
        )
        for recommendation in get_recommendations(config):
            self.logger.warning(recommendation["message"], category=recommendation["category"])

    @property
    def enabled(self) -> bool:
        return self.config.enabled and self.retrieval_client is not None

    async def enrich_message(
        self,
        message: Any,
        user_id: Optional[str] = None,
        conversation_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
        language: str = "english",
    ) -> Optional[str]:
        """
        Build an enrichment context for ``message``.

        Args:
            message: User message text
            user_id: Host user identifier, for logging only
            conversation_id: Host conversation identifier, for logging only
            correlation_id: Correlation ID; generated when omitted
            language: Language used for token estimation

        Returns:
            Context text, or None when enrichment is disabled, the query is
            too short, nothing relevant was found or retrieval failed
        """
        if not self.enabled:
            return None

        correlation_id = correlation_id or generate_correlation_id(self.config.correlation_id_prefix)
        with correlation_scope(correlation_id, user_id=user_id, conversation_id=conversation_id):
            start = time.perf_counter()
            try:
                async with self.metrics.track_operation(ENRICH_OPERATION, correlation_id):
                    return await self._run_pipeline(
                        message, user_id, conversation_id, correlation_id, language, start
                    )
            except Exception as e:
                self.logger.error(
                    "Enrichment failed, continuing without context",
                    error=e,
                    correlation_id=correlation_id,
                )
                return None

    async def _run_pipeline(
        self,
        message: Any,
        user_id: Optional[str],
        conversation_id: Optional[str],
        correlation_id: str,
        language: str,
        start: float,
    ) -> Optional[str]:
        query = sanitize_query(message)
        if not is_valid_query(query):
            self.logger.enrichment("skipped", reason="query_too_short", query_length=len(query))
            return None

        request = EnrichmentRequest(
            sanitized_query=query,
            correlation_id=correlation_id,
            user_id=user_id,
            conversation_id=conversation_id,
            language=language,
        )
        self.logger.audit("enrichment_requested", user_id=user_id, conversation_id=conversation_id)

        cache_key = self.cache.make_key(query, self.config.num_results, language)
        cached = self.cache.get(cache_key)
        if cached is not None:
            self.logger.enrichment("cache_hit")
            return cached

        documents = await self._retrieve(request)
        if not documents:
            self.logger.enrichment("no_results")
            return None

        relevant = self.scorer.filter_and_rank(documents, query, limit=self.config.num_results)
        if not relevant:
            self.logger.enrichment("no_relevant_documents", retrieved=len(documents))
            return None

        formatted = self.formatter.format(relevant, language)
        optimized = self.optimizer.optimize(formatted, relevant, language)
        if not optimized.optimized_text:
            return None

        processing_ms = (time.perf_counter() - start) * 1000
        self.metrics.record_context_enrichment(EnrichmentMetrics(
            correlation_id=correlation_id,
            documents_retrieved=len(documents),
            context_size=len(optimized.optimized_text),
            relevance_score=formatted.relevance_score,
            processing_time_ms=processing_ms,
            token_count=optimized.token_count,
            compression_ratio=optimized.compression_ratio,
            truncated=optimized.truncated,
            strategy=optimized.strategy,
        ))
        self.logger.info(
            "Context enrichment complete",
            documents=optimized.documents_included,
            tokens=optimized.token_count,
            strategy=optimized.strategy,
            duration_ms=int(processing_ms),
        )

        self.cache.set(cache_key, optimized.optimized_text)
        return optimized.optimized_text

    async def _retrieve(self, request: EnrichmentRequest) -> List[RetrievedDocument]:
        client = self.retrieval_client

        async def call() -> List[RetrievedDocument]:
            return await client.retrieve(
                request.sanitized_query,
                self.config.num_results,
                request.correlation_id,
            )

        self.logger.enrichment("retrieving", k=self.config.num_results)
        documents = await self.error_handler.execute_with_resilience(
            call,
            ExecutionContext(
                operation=RETRIEVE_OPERATION,
                correlation_id=request.correlation_id,
            ),
        )
        return documents or []

    def inject_context(self, messages: Any, context: Optional[str]) -> Any:
        return inject_context(messages, context)

    async def health_check(self) -> Dict[str, Any]:
        """Probe the retrieval service and report resilience health."""
        if not self.enabled:
            return {"status": "disabled", "config": self.config.summary()}

        correlation_id = generate_correlation_id(self.config.correlation_id_prefix)
        start = time.perf_counter()
        result: Dict[str, Any] = {"correlation_id": correlation_id}
        try:
            result["retrieval"] = await self.retrieval_client.health_check(correlation_id)
            status = "healthy"
        except Exception as e:
            self.logger.warning("Health check failed", error_msg=str(e), correlation_id=correlation_id)
            result["error"] = str(e)
            status = "unhealthy"

        resilience = self.error_handler.get_health_status()
        if resilience["status"] == "unhealthy":
            status = "unhealthy"

        result.update({
            "status": status,
            "duration_ms": int((time.perf_counter() - start) * 1000),
            "resilience": resilience,
            "config": self.config.summary(),
            "metrics": self.metrics.get_performance_summary(),
        })
        return result

    def get_config(self) -> Dict[str, Any]:
        return self.config.masked()

    def get_metrics(self) -> Dict[str, Any]:
        return {
            **self.metrics.get_metrics(),
            "resilience": self.error_handler.get_health_status(),
        }

    def get_performance_summary(self) -> Dict[str, Any]:
        return self.metrics.get_performance_summary()

    async def aclose(self) -> None:
        """Release timers and network resources."""
        self.error_handler.close()
        if self.retrieval_client is not None:
            await self.retrieval_client.aclose()
