"""Pytest configuration and fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from vellum.content import ContentStore, DiskContentStore, MemoryContentStore
from vellum.metadata import JournalMetadataStore, MemoryMetadataStore, MetadataStore
from vellum.schema import AttributeDef, KindSchema, SchemaRegistry


def make_registry() -> SchemaRegistry:
    return SchemaRegistry(
        [
            KindSchema(
                name="Book",
                attributes=(
                    AttributeDef("title", required=True),
                    AttributeDef("author", cardinality="multi"),
                    AttributeDef("published", type="boolean"),
                    AttributeDef("member_ids", type="id", cardinality="multi"),
                ),
            ),
            KindSchema(
                name="Page",
                attributes=(
                    AttributeDef("page_number", type="integer", required=True),
                    AttributeDef("book_id", type="id"),
                    AttributeDef("image_ids", type="id", cardinality="multi"),
                    AttributeDef("caption"),
                ),
            ),
            KindSchema(
                name="Note",
                attributes=(
                    AttributeDef("title"),
                    AttributeDef("body"),
                    AttributeDef("properties", type="any", cardinality="multi"),
                ),
                unknown="ignore",
            ),
        ]
    )


@pytest.fixture
def registry() -> SchemaRegistry:
    return make_registry()


@pytest.fixture(params=["memory", "memory-scan", "journal"])
def metadata(request: pytest.FixtureRequest, tmp_path: Path, registry: SchemaRegistry) -> MetadataStore:
    """Every metadata backend, with and without the inverse index."""
    if request.param == "memory":
        return MemoryMetadataStore(registry)
    if request.param == "memory-scan":
        return MemoryMetadataStore(registry, use_index=False)
    return JournalMetadataStore(tmp_path / ".vellum" / "records.jsonl", registry)


@pytest.fixture(params=["memory", "disk"])
def content(request: pytest.FixtureRequest, tmp_path: Path) -> ContentStore:
    if request.param == "memory":
        return MemoryContentStore()
    return DiskContentStore(tmp_path / ".vellum" / "files")


@pytest.fixture
def wide_console(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep rich tables from truncating identifiers in captured output."""
    monkeypatch.setenv("COLUMNS", "240")
