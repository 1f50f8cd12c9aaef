"""
Token budgeting for formatted context.

The budget target is ``max_tokens - buffer_tokens``. Content within the
target passes through untouched; otherwise documents are selected by
relevance (``document_selection``) or the text is cut at a sentence
boundary (``text_truncation``). The returned text never exceeds the target.
"""

import logging
import re
from typing import List, Optional

from ..models.documents import FormattedContext, OptimizedContext, RetrievedDocument
from .formatter import ContextFormatter
from .tokens import estimate_tokens, max_chars_for_tokens

logger = logging.getLogger(__name__)

STRATEGIES = ("document_selection", "text_truncation")

TRUNCATION_MARKER = "*(Content truncated for space)*"
ELLIPSIS = "..."
_SENTENCE_END = re.compile(r"[.!?](?=\s)|\n")
_DOCUMENT_HEADER = re.compile(r"^(## \d+\.|\[\d+\])", re.MULTILINE)


def truncate_to_token_limit(text: str, max_tokens: int, language: str = "english") -> str:
    """
    Cut ``text`` so its estimate fits ``max_tokens``, ending with ``...``.

    The cut moves back to the last sentence or line boundary when one lies
    past 80% of the allowed length.
    """
    if estimate_tokens(text, language) <= max_tokens:
        return text
    max_chars = max_chars_for_tokens(max_tokens, language) - len(ELLIPSIS)
    if max_chars <= 0:
        return ""

    cut = text[:max_chars]
    boundary = -1
    for match in _SENTENCE_END.finditer(cut):
        boundary = match.end()
    if boundary > max_chars * 0.8:
        cut = cut[:boundary]
    return cut.rstrip() + ELLIPSIS


def count_documents(text: str) -> int:
    return len(_DOCUMENT_HEADER.findall(text))


class TokenOptimizer:
    """Fits formatted context into a token budget."""

    MIN_PARTIAL_TOKENS = 100
    MIN_PARTIAL_CHARS = 50
    SECTION_OVERHEAD_TOKENS = 40
    FRAME_OVERHEAD_TOKENS = 100

    def __init__(
        self,
        max_tokens: int = 3000,
        buffer_tokens: int = 200,
        strategy: str = "document_selection",
        formatter: Optional[ContextFormatter] = None,
    ):
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown optimization strategy: {strategy}")
        if buffer_tokens >= max_tokens:
            raise ValueError("buffer_tokens must be smaller than max_tokens")
        self.max_tokens = max_tokens
        self.buffer_tokens = buffer_tokens
        self.strategy = strategy
        self.formatter = formatter or ContextFormatter()

    @property
    def target_tokens(self) -> int:
        return self.max_tokens - self.buffer_tokens

    def optimize(
        self,
        formatted: FormattedContext,
        documents: Optional[List[RetrievedDocument]] = None,
        language: str = "english",
    ) -> OptimizedContext:
        """
        Bring ``formatted`` within the token target.

        Args:
            formatted: Output of the formatter
            documents: The documents behind ``formatted``; required for
                document selection
            language: Language used for token estimation

        Returns:
            OptimizedContext with the strategy used and truncation flag
        """
        target = self.target_tokens
        original = formatted.token_count

        if original <= target:
            return OptimizedContext(
                optimized_text=formatted.context_text,
                token_count=original,
                original_token_count=original,
                compression_ratio=1.0,
                truncated=False,
                strategy="none",
                documents_included=formatted.document_count,
            )

        if self.strategy == "document_selection" and documents:
            selected = self._select_documents(documents, target, language, formatted.template)
            if selected is not None:
                return self._result(selected, original, "document_selection", language)
            strategy = "fallback_truncation"
        else:
            strategy = "text_truncation"

        text = truncate_to_token_limit(formatted.context_text, target, language)
        logger.debug(
            "Context truncated",
            extra={"strategy": strategy, "original_tokens": original, "target_tokens": target}
        )
        return self._result(text, original, strategy, language)

    def _result(self, text: str, original: int, strategy: str, language: str) -> OptimizedContext:
        tokens = estimate_tokens(text, language)
        return OptimizedContext(
            optimized_text=text,
            token_count=tokens,
            original_token_count=original,
            compression_ratio=tokens / original if original else 1.0,
            truncated=True,
            strategy=strategy,
            documents_included=count_documents(text),
        )

    def _select_documents(
        self,
        documents: List[RetrievedDocument],
        target: int,
        language: str,
        style: str,
    ) -> Optional[str]:
        """Greedy selection by score; the first document that does not fit
        may be included partially."""
        ranked = sorted(documents, key=lambda d: d.score, reverse=True)
        selected: List[RetrievedDocument] = []
        text = ""
        tokens = 0

        for doc in ranked:
            candidate = self.formatter.format(selected + [doc], language, style)
            if candidate.token_count <= target:
                selected.append(doc)
                text, tokens = candidate.context_text, candidate.token_count
                continue

            used = tokens if selected else self.FRAME_OVERHEAD_TOKENS
            partial = self._partial_document(doc, target - used, language)
            if partial is not None:
                candidate = self.formatter.format(selected + [partial], language, style)
                if candidate.token_count <= target:
                    selected.append(partial)
                    text = candidate.context_text
            break

        return text or None

    def _partial_document(
        self,
        doc: RetrievedDocument,
        remaining_tokens: int,
        language: str,
    ) -> Optional[RetrievedDocument]:
        if remaining_tokens <= self.MIN_PARTIAL_TOKENS:
            return None
        budget = remaining_tokens - self.SECTION_OVERHEAD_TOKENS - estimate_tokens(
            TRUNCATION_MARKER, language
        )
        truncated = truncate_to_token_limit(doc.text, budget, language)
        if len(truncated) <= self.MIN_PARTIAL_CHARS:
            return None
        return doc.model_copy(update={"text": f"{truncated}\n\n{TRUNCATION_MARKER}"})
