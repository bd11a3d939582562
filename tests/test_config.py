from __future__ import annotations

from pathlib import Path

import pytest

from vellum.config import Adapters, Settings, find_config, load_settings
from vellum.content import DiskContentStore, MemoryContentStore
from vellum.errors import SchemaError, StorageFailure
from vellum.metadata import JournalMetadataStore, MemoryMetadataStore

SCHEMA = """
[kinds.Book.attributes]
title = { type = "string", required = true }

[kinds.Page.attributes]
page_number = { type = "integer", required = true }
book_id = { type = "id" }
"""


def _write_project(root: Path, store_table: str) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "schema.toml").write_text(SCHEMA, encoding="utf-8")
    config = root / "vellum.toml"
    config.write_text(store_table, encoding="utf-8")
    return config


def test_load_settings_resolves_paths_against_config_dir(tmp_path: Path) -> None:
    config = _write_project(
        tmp_path / "project",
        '[store]\nroot = "data"\nschema = "schema.toml"\ndigests = ["sha256"]\ninverse_index = false\n',
    )

    settings = load_settings(config)

    assert settings.root == (tmp_path / "project" / "data").resolve()
    assert settings.schema_path == (tmp_path / "project" / "schema.toml").resolve()
    assert settings.digests == ("sha256",)
    assert settings.inverse_index is False
    assert settings.metadata == "journal"
    assert settings.content == "disk"
    assert settings.journal_path.name == "records.jsonl"


@pytest.mark.parametrize(
    "body",
    [
        '[store]\nmetadata = "sql"\n',
        '[store]\ncontent = "s3"\n',
        '[store]\ninverse_index = "yes"\n',
        '[store]\ndigests = []\n',
        '[store]\ndigests = ["crc32"]\n',
        "store = 3\n",
        "[store\n",
    ],
)
def test_load_settings_rejects_bad_values(tmp_path: Path, body: str) -> None:
    config = tmp_path / "vellum.toml"
    config.write_text(body, encoding="utf-8")
    with pytest.raises(SchemaError):
        load_settings(config)


def test_load_settings_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "vellum.toml")


def test_find_config_walks_up(tmp_path: Path) -> None:
    config = _write_project(tmp_path / "project", "[store]\n")
    nested = tmp_path / "project" / "a" / "b"
    nested.mkdir(parents=True)

    assert find_config(nested) == config.resolve()


def test_adapters_open_persistent_backends(tmp_path: Path) -> None:
    config = _write_project(tmp_path / "project", '[store]\nschema = "schema.toml"\n')
    settings = load_settings(config)

    with Adapters.open(settings) as adapters:
        assert isinstance(adapters.metadata, JournalMetadataStore)
        assert isinstance(adapters.content, DiskContentStore)
        book = adapters.metadata.save(adapters.registry["Book"].build(title="Moby Dick"))
        page = adapters.metadata.save(adapters.registry["Page"].build(page_number=1, book_id=book.id))
        adapters.content.upload(b"scan", "scan.tif", page)

    with Adapters.open(settings) as adapters:
        assert adapters.references.referenced_by(book, "book_id") == [page]
        assert [f.owner_id for f in adapters.content.find_by_owner(page)] == [page.id]


def test_adapters_close_ends_lifecycle(tmp_path: Path) -> None:
    adapters = Adapters.open(Settings(root=tmp_path, metadata="memory", content="memory"))
    assert isinstance(adapters.metadata, MemoryMetadataStore)
    assert isinstance(adapters.content, MemoryContentStore)
    assert len(adapters.registry) == 0

    adapters.close()
    with pytest.raises(StorageFailure):
        list(adapters.metadata.find_all())


def test_adapters_are_independent(tmp_path: Path) -> None:
    first = Adapters.open(Settings(root=tmp_path, metadata="memory", content="memory"))
    second = Adapters.open(Settings(root=tmp_path, metadata="memory", content="memory"))
    assert first.metadata is not second.metadata
    assert first.content is not second.content
