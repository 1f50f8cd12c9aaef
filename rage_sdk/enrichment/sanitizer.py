"""Query sanitization applied before anything leaves the process."""

import re
from typing import Any

MAX_QUERY_LENGTH = 500
MIN_QUERY_LENGTH = 3

_UNSAFE_CHARS = re.compile(r"[<>\"'`]")
_WHITESPACE = re.compile(r"\s+")


def sanitize_query(text: Any, max_length: int = MAX_QUERY_LENGTH) -> str:
    """
    Strip markup-significant characters, collapse whitespace and truncate.

    Idempotent: ``sanitize_query(sanitize_query(x)) == sanitize_query(x)``.
    Non-string input yields an empty string.
    """
    if not isinstance(text, str):
        return ""
    text = _UNSAFE_CHARS.sub("", text)
    text = _WHITESPACE.sub(" ", text).strip()
    return text[:max_length].strip()


def is_valid_query(text: str, min_length: int = MIN_QUERY_LENGTH) -> bool:
    return len(text) >= min_length
