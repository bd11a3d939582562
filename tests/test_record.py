from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from vellum.ids import Identifier
from vellum.record import Record
from vellum.schema import SchemaRegistry


def test_json_roundtrip_keeps_identifiers_distinct_from_strings(registry: SchemaRegistry) -> None:
    book_id = Identifier("01J9ZABCDEFGHJKMNPQRSTVWXY")
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    page = registry["Page"].build(page_number=3, book_id=book_id, caption="01J9ZABCDEFGHJKMNPQRSTVWXY")
    page = page.with_identity(Identifier("01J9ZPAGE00000000000000000"), created_at=now, updated_at=now)

    data = json.loads(json.dumps(page.to_dict()))
    restored = Record.from_dict(data)

    assert restored == page
    assert restored.first("book_id") == book_id
    assert isinstance(restored.first("caption"), str)


def test_evolve_returns_a_copy(registry: SchemaRegistry) -> None:
    book = registry["Book"].build(title="Dune")
    renamed = book.evolve(title="Dune Messiah", author=["Frank Herbert"])

    assert book.get("title") == ("Dune",)
    assert renamed.get("title") == ("Dune Messiah",)
    assert renamed.get("author") == ("Frank Herbert",)
    assert renamed.evolve(author=None).get("author") == ()


def test_identifiers_filters_reference_values() -> None:
    a = Identifier("A1")
    b = Identifier("B2")
    record = Record(kind="Book", attributes={"member_ids": (a, b, a)})
    assert record.identifiers("member_ids") == [a, b, a]
    assert record.identifiers("missing") == []
    assert record.first("missing") is None


def test_new_and_persisted_flags() -> None:
    record = Record(kind="Book")
    assert record.new_record and not record.persisted
    now = datetime.now(timezone.utc)
    saved = record.with_identity(Identifier("X1"), created_at=now, updated_at=now)
    assert saved.persisted and not saved.new_record


def test_attributes_are_frozen_at_construction() -> None:
    source = {"title": ["Dune"]}
    record = Record(kind="Book", attributes=source)
    source["title"].append("Dune Messiah")
    source["author"] = ["Frank Herbert"]

    assert record.get("title") == ("Dune",)
    assert "author" not in record.attributes
    with pytest.raises(TypeError):
        record.attributes["title"] = ("Changed",)  # type: ignore[index]
    assert record.evolve(title="Changed").get("title") == ("Changed",)


def test_plain_dicts_are_not_mistaken_for_tags() -> None:
    record = Record(kind="Note", attributes={"properties": ({"id": "has space"}, {"datetime": "soon"}, (1, 2))})

    restored = Record.from_dict(json.loads(json.dumps(record.to_dict())))

    assert restored == record
    assert restored.get("properties")[2] == (1, 2)


def test_untagged_values_are_rejected_on_decode() -> None:
    with pytest.raises(ValueError):
        Record.from_dict({"kind": "Note", "attributes": {"properties": [{"id": "A1", "extra": 1}]}})
