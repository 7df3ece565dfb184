"""Object-storage adapters."""

from docrag.providers.storage.local_storage import LocalObjectStorage

__all__ = ["LocalObjectStorage"]
