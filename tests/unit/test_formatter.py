"""Unit tests for context formatting."""

import pytest

from rage_sdk.enrichment.formatter import ContextFormatter, format_source, sanitize_text
from rage_sdk.enrichment.tokens import estimate_tokens


class TestFormatHelpers:

    def test_sanitize_text(self):
        assert sanitize_text("a\r\nb\n\n\n\nc   \t d") == "a\nb\n\nc d"

    def test_format_source_with_all_parts(self, make_document):
        doc = make_document(source="manual.pdf", page=4, section="Setup", date="2024-01-02")
        assert format_source(doc) == "manual.pdf | p. 4 | § Setup | 2024-01-02"

    def test_format_source_without_metadata(self, make_document):
        assert format_source(make_document(source=None)) == "Unknown Source"


class TestContextFormatter:

    def test_empty_documents(self):
        formatted = ContextFormatter().format([])
        assert formatted.context_text == ""
        assert formatted.token_count == 0
        assert formatted.document_count == 0

    def test_standard_layout(self, sample_documents):
        formatted = ContextFormatter().format(sample_documents[:2])
        text = formatted.context_text

        assert text.startswith("# Relevant Context")
        assert "## 1. security-guide.md | § Credentials\n**Relevance:** 91%\n\nRotate API" in text
        assert "## 2. official-documentation.pdf | p. 12\n**Relevance:** 84%" in text
        assert text.rstrip().endswith("Cite sources where appropriate.*")
        assert formatted.token_count == estimate_tokens(text)
        assert formatted.document_count == 2
        assert formatted.sources == ["security-guide.md", "official-documentation.pdf"]
        assert formatted.relevance_score == pytest.approx((0.91 + 0.84) / 2)

    def test_orders_best_first(self, make_document):
        docs = [make_document(text="low", score=0.5, source="low.md"),
                make_document(text="high", score=0.9, source="high.md")]
        text = ContextFormatter().format(docs).context_text
        assert text.index("high.md") < text.index("low.md")

    def test_sources_are_deduplicated(self, make_document):
        docs = [make_document(score=0.9, source="a.md"), make_document(score=0.8, source="a.md")]
        assert ContextFormatter().format(docs).sources == ["a.md"]

    def test_compact_layout(self, sample_documents):
        formatted = ContextFormatter("compact").format(sample_documents[:1])
        assert formatted.context_text.startswith(
            "Context:\n[1] security-guide.md | § Credentials (91%): Rotate API credentials"
        )
        assert formatted.template == "compact"

    def test_detailed_layout(self, sample_documents):
        formatted = ContextFormatter().format(sample_documents, style="detailed")
        text = formatted.context_text

        assert "The following 3 documents were retrieved" in text
        assert "**Source:** official-documentation.pdf" in text
        assert "**Page:** 12" in text
        assert "*Sources: security-guide.md, official-documentation.pdf, billing-faq.txt." in text

    def test_detailed_shows_raw_score_when_boosted(self, make_document):
        doc = make_document(score=0.6, source="a.md").model_copy(update={"enhanced_score": 0.8})
        text = ContextFormatter("detailed").format([doc]).context_text
        assert "**Relevance:** 80% (raw 60%)" in text

    def test_unknown_style_rejected(self):
        with pytest.raises(ValueError):
            ContextFormatter("fancy")
