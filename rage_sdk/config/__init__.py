"""Configuration for the enrichment core."""

from .settings import RageConfig, get_recommendations, mask_secret, read_env

__all__ = [
    "RageConfig",
    "get_recommendations",
    "mask_secret",
    "read_env",
]
