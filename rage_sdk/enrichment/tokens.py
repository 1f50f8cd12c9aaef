"""Character-ratio token estimation."""

import math

CHARS_PER_TOKEN = {
    "english": 4.0,
    "spanish": 4.2,
    "portuguese": 4.3,
    "french": 4.1,
}
DEFAULT_CHARS_PER_TOKEN = 4.2


def chars_per_token(language: str = "english") -> float:
    return CHARS_PER_TOKEN.get((language or "").lower(), DEFAULT_CHARS_PER_TOKEN)


def estimate_tokens(text: str, language: str = "english") -> int:
    if not text:
        return 0
    return math.ceil(len(text) / chars_per_token(language))


def max_chars_for_tokens(tokens: int, language: str = "english") -> int:
    """Largest character count whose estimate stays within ``tokens``."""
    return max(0, math.floor(tokens * chars_per_token(language)))
