"""
Settings and the adapter container.

Store instances are never global: `Adapters.open(settings)` builds a
metadata store, a content store and a reference resolver, and the caller
passes that object to whatever needs storage. `close()` ends the lifecycle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

from .content import DEFAULT_DIGESTS, ContentStore, DiskContentStore, MemoryContentStore
from .content.base import resolve_algorithms
from .errors import SchemaError
from .metadata import JournalMetadataStore, MemoryMetadataStore, MetadataStore
from .references import ReferenceResolver
from .schema import SchemaRegistry, load_schema

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "vellum.toml"

MetadataBackend = Literal["journal", "memory"]
ContentBackend = Literal["disk", "memory"]


@dataclass(frozen=True)
class Settings:
    root: Path = Path(".vellum")
    metadata: MetadataBackend = "journal"
    content: ContentBackend = "disk"
    inverse_index: bool = True
    digests: tuple[str, ...] = DEFAULT_DIGESTS
    schema_path: Path | None = None

    @property
    def journal_path(self) -> Path:
        return self.root / "records.jsonl"

    @property
    def files_path(self) -> Path:
        return self.root / "files"


def parse_settings(data: dict[str, Any], base_dir: Path) -> Settings:
    """Build settings from a parsed TOML document; paths resolve against base_dir."""
    store = data.get("store", {})
    if not isinstance(store, dict):
        raise SchemaError("[store] must be a table")

    metadata = str(store.get("metadata", "journal")).strip()
    if metadata not in ("journal", "memory"):
        raise SchemaError(f"store.metadata must be 'journal' or 'memory', got {metadata!r}")

    content = str(store.get("content", "disk")).strip()
    if content not in ("disk", "memory"):
        raise SchemaError(f"store.content must be 'disk' or 'memory', got {content!r}")

    inverse_index = store.get("inverse_index", True)
    if not isinstance(inverse_index, bool):
        raise SchemaError("store.inverse_index must be a boolean")

    raw_digests = store.get("digests", list(DEFAULT_DIGESTS))
    if not isinstance(raw_digests, list) or not raw_digests:
        raise SchemaError("store.digests must be a non-empty list")
    try:
        digests = resolve_algorithms(str(d) for d in raw_digests)
    except ValueError as e:
        raise SchemaError(str(e)) from e

    schema = store.get("schema")
    schema_path = (base_dir / str(schema)) if schema else None

    return Settings(
        root=base_dir / str(store.get("root", ".vellum")),
        metadata=metadata,  # type: ignore[arg-type]
        content=content,  # type: ignore[arg-type]
        inverse_index=inverse_index,
        digests=digests,
        schema_path=schema_path,
    )


def load_settings(path: Path) -> Settings:
    """
    Load settings from a vellum.toml file.

    Raises:
        FileNotFoundError: If the file is missing
        SchemaError: If the TOML or its values are malformed
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "rb") as f:
        try:
            data = tomllib.load(f)
        except Exception as e:
            raise SchemaError(f"Failed to parse config TOML: {e}") from e

    return parse_settings(data, path.resolve().parent)


def find_config(start: Path) -> Path | None:
    """Find vellum.toml by walking up from `start`."""
    cur = start.resolve()
    for p in (cur, *cur.parents):
        candidate = p / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


@dataclass
class Adapters:
    """The active stores for one application lifecycle."""

    settings: Settings
    registry: SchemaRegistry
    metadata: MetadataStore
    content: ContentStore
    references: ReferenceResolver = field(init=False)

    def __post_init__(self) -> None:
        self.references = ReferenceResolver(self.metadata)

    @classmethod
    def open(cls, settings: Settings, registry: SchemaRegistry | None = None) -> Adapters:
        if registry is None:
            registry = load_schema(settings.schema_path) if settings.schema_path else SchemaRegistry()

        metadata: MetadataStore
        if settings.metadata == "journal":
            metadata = JournalMetadataStore(
                settings.journal_path, registry, use_index=settings.inverse_index
            )
        else:
            metadata = MemoryMetadataStore(registry, use_index=settings.inverse_index)

        content: ContentStore
        if settings.content == "disk":
            content = DiskContentStore(settings.files_path, digests=settings.digests)
        else:
            content = MemoryContentStore(digests=settings.digests)

        logger.debug(
            "opened adapters (metadata=%s, content=%s, root=%s)",
            settings.metadata,
            settings.content,
            settings.root,
        )
        return cls(settings=settings, registry=registry, metadata=metadata, content=content)

    def close(self) -> None:
        self.metadata.close()
        self.content.close()

    def __enter__(self) -> Adapters:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
