from .base import BaseStorageQuerySet, StorageProvider
from .inmemory import InMemoryProvider

__all__ = [
    "StorageProvider",
    "BaseStorageQuerySet",
    "InMemoryProvider",
]
