"""
vellum - record and file persistence behind opaque identifiers.

Two cooperating stores:

- Metadata store: structured records of declared kinds, with forward and
  inverse reference queries standing in for relational joins
- Content store: binary payloads owned by records, with size and checksum
  verification
"""

__version__ = "0.1.0"

from .config import Adapters, Settings, load_settings
from .content import ContentStore, DiskContentStore, MemoryContentStore, StoredFile
from .errors import (
    MalformedIdentifier,
    RecordNotPersisted,
    SchemaError,
    StorageFailure,
    ValidationFailure,
    VellumError,
)
from .ids import Identifier, new_ulid
from .metadata import JournalMetadataStore, MemoryMetadataStore, MetadataStore
from .record import Record
from .references import ReferenceResolver
from .schema import AttributeDef, KindSchema, SchemaRegistry, load_schema

__all__ = [
    # Identity
    "Identifier",
    "new_ulid",
    # Model
    "Record",
    "AttributeDef",
    "KindSchema",
    "SchemaRegistry",
    "load_schema",
    # Stores
    "MetadataStore",
    "MemoryMetadataStore",
    "JournalMetadataStore",
    "ContentStore",
    "MemoryContentStore",
    "DiskContentStore",
    "StoredFile",
    "ReferenceResolver",
    # Configuration
    "Settings",
    "Adapters",
    "load_settings",
    # Errors
    "VellumError",
    "ValidationFailure",
    "StorageFailure",
    "RecordNotPersisted",
    "MalformedIdentifier",
    "SchemaError",
]
