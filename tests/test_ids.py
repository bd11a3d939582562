from __future__ import annotations

import pytest

from vellum.errors import MalformedIdentifier
from vellum.ids import Identifier, new_ulid


def test_new_ulid_shape() -> None:
    ulid = new_ulid(timestamp_ms=0)
    assert len(ulid) == 26
    assert ulid.startswith("0000000000")
    assert new_ulid() != new_ulid()


def test_new_ulid_rejects_out_of_range_timestamp() -> None:
    with pytest.raises(ValueError, match="out of range"):
        new_ulid(timestamp_ms=1 << 48)


def test_identifier_equality_and_string_form() -> None:
    a = Identifier("01J9ZABCDEFGHJKMNPQRSTVWXY")
    b = Identifier.coerce("01J9ZABCDEFGHJKMNPQRSTVWXY")
    assert a == b
    assert hash(a) == hash(b)
    assert str(a) == "01J9ZABCDEFGHJKMNPQRSTVWXY"
    assert a.scheme is None


def test_minted_identifiers_carry_scheme() -> None:
    identifier = Identifier.mint("disk")
    assert identifier.scheme == "disk"
    assert identifier.value.startswith("disk://")
    assert len(identifier.value) == len("disk://") + 26


@pytest.mark.parametrize("bad", ["", "   ", "has space", "semi;colon", "x" * 600, "quote\"d"])
def test_malformed_identifiers_raise(bad: str) -> None:
    with pytest.raises(MalformedIdentifier):
        Identifier.coerce(bad)


def test_malformed_identifier_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        Identifier.coerce(42)
