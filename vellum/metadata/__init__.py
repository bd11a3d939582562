"""Metadata store backends."""

from .base import MetadataStore, RecordRef
from .index import InverseIndex
from .journal import JournalMetadataStore
from .memory import MemoryMetadataStore

__all__ = [
    "MetadataStore",
    "RecordRef",
    "InverseIndex",
    "MemoryMetadataStore",
    "JournalMetadataStore",
]
