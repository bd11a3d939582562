"""Content store backends."""

from .base import DEFAULT_DIGESTS, SUPPORTED_DIGESTS, ContentStore, StoredFile
from .disk import DiskContentStore
from .memory import MemoryContentStore

__all__ = [
    "DEFAULT_DIGESTS",
    "SUPPORTED_DIGESTS",
    "ContentStore",
    "StoredFile",
    "DiskContentStore",
    "MemoryContentStore",
]
