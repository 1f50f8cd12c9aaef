"""In-memory retrieval backend for tests, demos and ``--mock`` runs."""

import asyncio
import re
from typing import Any, Dict, Iterable, List, Optional, Union

from ..models.documents import RetrievedDocument
from .base import RetrievalClient

_WORD = re.compile(r"\w+")


class InMemoryRetrievalClient(RetrievalClient):
    """
    Serves a fixed corpus.

    Documents sharing at least one word (longer than two characters) with the
    query are returned, best raw score first. ``match_all`` returns the whole
    corpus regardless of the query.
    """

    def __init__(
        self,
        documents: Iterable[Union[RetrievedDocument, Dict[str, Any]]] = (),
        latency: float = 0.0,
        match_all: bool = False,
    ):
        self.documents = [
            doc if isinstance(doc, RetrievedDocument) else RetrievedDocument.from_result(doc)
            for doc in documents
        ]
        self.latency = latency
        self.match_all = match_all
        self.calls: List[Dict[str, Any]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def retrieve(
        self,
        query: str,
        k: int,
        correlation_id: Optional[str] = None,
    ) -> List[RetrievedDocument]:
        self.calls.append({"query": query, "k": k, "correlation_id": correlation_id})
        if self.latency:
            await asyncio.sleep(self.latency)

        if self.match_all:
            matches = list(self.documents)
        else:
            terms = {w for w in _WORD.findall(query.lower()) if len(w) > 2}
            matches = [
                doc for doc in self.documents
                if terms & set(_WORD.findall(doc.text.lower()))
            ]

        matches.sort(key=lambda d: d.raw_score, reverse=True)
        # Copies so callers cannot mutate the corpus
        return [doc.model_copy(deep=True) for doc in matches[:k]]

    async def health_check(self, correlation_id: Optional[str] = None) -> Dict[str, Any]:
        return {"status": "healthy", "documents": len(self.documents)}
