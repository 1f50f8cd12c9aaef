"""
Context block formatting.

Documents are rendered with Jinja2 templates in one of three styles. Each
block is a header, one section per document (best score first) and a
footer, joined by blank lines.
"""

import re
from typing import Any, Dict, List, Optional

from jinja2 import DictLoader, Environment, StrictUndefined

from ..models.documents import FormattedContext, RetrievedDocument
from .tokens import estimate_tokens

TEMPLATES = {
    "standard/header": (
        "# Relevant Context\n\n"
        "The following information was retrieved from the knowledge base "
        "to help answer your question:"
    ),
    "standard/document": (
        "## {{ index }}. {{ label }}\n"
        "**Relevance:** {{ percent }}%\n\n"
        "{{ text }}"
    ),
    "standard/footer": (
        "---\n"
        "*Use the context above when it is relevant to the question. "
        "Cite sources where appropriate.*"
    ),
    "detailed/header": (
        "# Relevant Context\n\n"
        "The following {{ count }} document{{ 's' if count != 1 else '' }} "
        "were retrieved from the knowledge base "
        "(average relevance {{ average_percent }}%):"
    ),
    "detailed/document": (
        "## {{ index }}. {{ label }}\n"
        "**Relevance:** {{ percent }}%"
        "{% if raw_percent != percent %} (raw {{ raw_percent }}%){% endif %}\n"
        "{% for key, value in details %}**{{ key }}:** {{ value }}\n{% endfor %}"
        "\n{{ text }}"
    ),
    "detailed/footer": (
        "---\n"
        "*Sources: {{ sources | join(', ') }}. Prefer higher-relevance "
        "documents when they disagree.*"
    ),
    "compact/header": "Context:",
    "compact/document": "[{{ index }}] {{ label }} ({{ percent }}%): {{ text }}",
    "compact/footer": "",
}

STYLES = ("standard", "detailed", "compact")

_CRLF = re.compile(r"\r\n?")
_NEWLINE_RUNS = re.compile(r"\n{3,}")
_SPACES = re.compile(r"[ \t]+")


def sanitize_text(text: str) -> str:
    """Normalize line endings and whitespace inside document text."""
    text = _CRLF.sub("\n", text or "")
    text = _NEWLINE_RUNS.sub("\n\n", text)
    text = _SPACES.sub(" ", text)
    return text.strip()


def format_source(document: RetrievedDocument) -> str:
    """``source | p. N | § section | date`` with missing parts omitted."""
    meta = document.metadata
    parts = []
    if meta.source:
        parts.append(str(meta.source))
    if meta.page is not None:
        parts.append(f"p. {meta.page}")
    if meta.section:
        parts.append(f"§ {meta.section}")
    if meta.date:
        parts.append(str(meta.date))
    return " | ".join(parts) if parts else "Unknown Source"


class ContextFormatter:
    """Renders documents into a context block."""

    def __init__(self, style: str = "standard"):
        if style not in STYLES:
            raise ValueError(f"Unknown format style: {style}")
        self.style = style
        self.env = Environment(
            loader=DictLoader(TEMPLATES),
            autoescape=False,
            undefined=StrictUndefined,
            keep_trailing_newline=False,
        )

    def format(
        self,
        documents: List[RetrievedDocument],
        language: str = "english",
        style: Optional[str] = None,
    ) -> FormattedContext:
        """
        Format documents, best score first.

        Args:
            documents: Filtered documents
            language: Language used for token estimation
            style: Override the formatter's default style

        Returns:
            FormattedContext; empty text when there are no documents
        """
        style = style or self.style
        ordered = sorted(documents, key=lambda d: d.score, reverse=True)
        if not ordered:
            return FormattedContext(context_text="", token_count=0, template=style)

        sources = list(dict.fromkeys(d.source for d in ordered))
        average = sum(d.score for d in ordered) / len(ordered)
        shared = {
            "count": len(ordered),
            "average_percent": round(average * 100),
            "sources": sources,
        }

        sections = [self._render(f"{style}/header", shared)]
        for index, doc in enumerate(ordered, start=1):
            sections.append(self._render(f"{style}/document", self._document_vars(index, doc)))
        sections.append(self._render(f"{style}/footer", shared))

        separator = "\n" if style == "compact" else "\n\n"
        text = separator.join(s for s in sections if s)
        return FormattedContext(
            context_text=text,
            token_count=estimate_tokens(text, language),
            sources=sources,
            relevance_score=average,
            document_count=len(ordered),
            template=style,
        )

    def _render(self, name: str, variables: Dict[str, Any]) -> str:
        return self.env.get_template(name).render(**variables).strip()

    @staticmethod
    def _document_vars(index: int, document: RetrievedDocument) -> Dict[str, Any]:
        meta = document.metadata
        details = []
        if meta.source:
            details.append(("Source", meta.source))
        if meta.page is not None:
            details.append(("Page", meta.page))
        if meta.section:
            details.append(("Section", meta.section))
        if meta.date:
            details.append(("Date", meta.date))
        if meta.url:
            details.append(("URL", meta.url))
        return {
            "index": index,
            "label": format_source(document),
            "percent": round(document.score * 100),
            "raw_percent": round(document.raw_score * 100),
            "details": details,
            "text": sanitize_text(document.text),
        }
