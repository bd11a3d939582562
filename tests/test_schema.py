from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from vellum.errors import SchemaError, ValidationFailure
from vellum.ids import Identifier
from vellum.record import Record
from vellum.schema import AttributeDef, KindSchema, SchemaRegistry, load_schema


def test_build_wraps_values_in_tuples(registry: SchemaRegistry) -> None:
    book = registry["Book"].build(title="Moby Dick", author=["Herman Melville"])

    assert book.kind == "Book"
    assert book.new_record
    assert book.get("title") == ("Moby Dick",)
    assert book.get("author") == ("Herman Melville",)
    # every declared attribute is present, empty when not given
    assert book.get("published") == ()
    assert list(book.attributes) == ["title", "author", "published", "member_ids"]


def test_build_preserves_multi_value_order(registry: SchemaRegistry) -> None:
    book = registry["Book"].build(title="Good Omens", author=["Terry Pratchett", "Neil Gaiman"])
    assert book.get("author") == ("Terry Pratchett", "Neil Gaiman")


def test_build_coerces_identifier_strings(registry: SchemaRegistry) -> None:
    page = registry["Page"].build(page_number=1, book_id="01J9ZABCDEFGHJKMNPQRSTVWXY")
    assert page.get("book_id") == (Identifier("01J9ZABCDEFGHJKMNPQRSTVWXY"),)


def test_build_rejects_wrong_types(registry: SchemaRegistry) -> None:
    with pytest.raises(ValidationFailure) as exc:
        registry["Page"].build(page_number="one", book_id="not an id")

    assert set(exc.value.errors) == {"page_number", "book_id"}
    assert "expected integer" in exc.value.errors["page_number"][0]


def test_free_form_values_must_be_storable() -> None:
    attr = AttributeDef("properties", type="any", cardinality="multi")
    value = {"nested": [1, 2.5, None, Identifier("A1")]}
    assert attr.check(value) == (value, None)
    assert attr.check(b"raw")[1] == "cannot store a value of type bytes"
    assert attr.check({"tags": {"a", "b"}})[1] == "cannot store a value of type set"
    assert attr.check({3: "x"})[1] == "map keys must be strings, got int"


def test_booleans_are_not_integers(registry: SchemaRegistry) -> None:
    with pytest.raises(ValidationFailure) as exc:
        registry["Page"].build(page_number=True)
    assert "page_number" in exc.value.errors


def test_single_cardinality_rejects_many_values(registry: SchemaRegistry) -> None:
    with pytest.raises(ValidationFailure) as exc:
        registry["Book"].build(title=["One", "Two"])
    assert exc.value.errors == {"title": ["accepts a single value"]}


def test_unknown_attributes_rejected_by_default(registry: SchemaRegistry) -> None:
    with pytest.raises(ValidationFailure) as exc:
        registry["Book"].build(title="Dune", isbn="978-0441013593")
    assert exc.value.errors == {"isbn": ["is not an attribute of Book"]}


def test_unknown_attributes_ignored_when_configured(registry: SchemaRegistry) -> None:
    note = registry["Note"].build(title="Draft", mood="cheerful")
    assert "mood" not in note.attributes
    assert note.get("title") == ("Draft",)


def test_prepare_reports_required_attributes(registry: SchemaRegistry) -> None:
    with pytest.raises(ValidationFailure) as exc:
        registry.prepare(registry["Book"].build(author="Anonymous"))
    assert exc.value.errors == {"title": ["can't be blank"]}


def test_prepare_rejects_unknown_kind(registry: SchemaRegistry) -> None:
    with pytest.raises(ValidationFailure) as exc:
        registry.prepare(Record(kind="Magazine"))
    assert "kind" in exc.value.errors


def test_prepare_drops_undeclared_attributes_for_ignoring_kinds(registry: SchemaRegistry) -> None:
    raw = Record(kind="Note", attributes={"title": ("a",), "extra": ("b",)})
    prepared = registry.prepare(raw)
    assert "extra" not in prepared.attributes
    assert prepared.get("body") == ()


def test_parse_text_by_type() -> None:
    assert AttributeDef("n", type="integer").parse_text("12") == 12
    assert AttributeDef("f", type="float").parse_text("1.5") == 1.5
    assert AttributeDef("b", type="boolean").parse_text("Yes") is True
    assert AttributeDef("b", type="boolean").parse_text("off") is False
    assert AttributeDef("d", type="datetime").parse_text("2024-05-01T10:00:00") == datetime(2024, 5, 1, 10)
    assert AttributeDef("r", type="id").parse_text("abc") == Identifier("abc")
    with pytest.raises(ValueError):
        AttributeDef("b", type="boolean").parse_text("maybe")


def test_invalid_definitions_raise_schema_error() -> None:
    with pytest.raises(SchemaError):
        AttributeDef("x", type="blob")  # type: ignore[arg-type]
    with pytest.raises(SchemaError):
        AttributeDef("x", cardinality="many")  # type: ignore[arg-type]
    with pytest.raises(SchemaError, match="duplicate"):
        KindSchema("K", attributes=(AttributeDef("a"), AttributeDef("a")))
    with pytest.raises(SchemaError):
        SchemaRegistry([KindSchema("K"), KindSchema("K")])


def test_load_schema_from_toml(tmp_path: Path) -> None:
    path = tmp_path / "schema.toml"
    path.write_text(
        """
[kinds.Book.attributes]
title = { type = "string", required = true }
author = { cardinality = "multi" }

[kinds.Page]
unknown = "ignore"

[kinds.Page.attributes]
page_number = "integer"
book_id = { type = "id" }
""",
        encoding="utf-8",
    )

    registry = load_schema(path)

    assert [k.name for k in registry] == ["Book", "Page"]
    author = registry["Book"].attribute("author")
    assert author is not None and author.multi and author.type == "string"
    assert registry["Book"].attribute("title").required  # type: ignore[union-attr]
    assert registry["Page"].unknown == "ignore"
    assert registry["Page"].reference_attributes == ["book_id"]


def test_load_schema_errors(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_schema(tmp_path / "missing.toml")

    broken = tmp_path / "broken.toml"
    broken.write_text("[kinds.Book\n", encoding="utf-8")
    with pytest.raises(SchemaError, match="parse"):
        load_schema(broken)

    bad_type = tmp_path / "bad_type.toml"
    bad_type.write_text('[kinds.Book.attributes]\ntitle = { type = "blob" }\n', encoding="utf-8")
    with pytest.raises(SchemaError):
        load_schema(bad_type)
