"""
Settings for django-site-rag.

All settings are read from the Django settings module with a ``SITE_RAG_``
prefix, falling back to the defaults below, e.g. ``SITE_RAG_CHUNK_SIZE = 800``.
"""

from typing import Any

from django.conf import settings

DEFAULTS: dict[str, Any] = {
    # Maximum characters per knowledge record
    "CHUNK_SIZE": 1200,
    # Must match the vector store's configured dimensions
    "EMBEDDING_DIMENSIONS": 768,
    "EMBEDDING_BATCH_SIZE": 100,
    "TOP_K": 5,
    # Seconds to wait after each provider-backed cleansing call
    "PAGE_DELAY": 1.0,
    "MAX_TOKENS": 150,
    "TEMPERATURE": 0.7,
    # Deadline in seconds applied to outbound provider clients
    "PROVIDER_TIMEOUT": 30.0,
}


def get_setting(name: str) -> Any:
    if name not in DEFAULTS:
        raise KeyError(f"Unknown setting '{name}'")
    return getattr(settings, f"SITE_RAG_{name}", DEFAULTS[name])
