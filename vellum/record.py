"""
Record model.

A record is an immutable value: a kind tag, an ordered mapping of attribute
name -> tuple of values, and (once saved) an identifier. Stores hand out the
same immutable objects they hold, so a reader can never see a half-written
record.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping

from .ids import Identifier


def _as_tuple(value: Any) -> tuple[Any, ...]:
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return (value,)


def _encode_value(value: Any) -> Any:
    """
    Encode one attribute value for JSON.

    JSON scalars pass through. Everything else becomes a single-key tagged
    object, so a stored dict can never be mistaken for a tag.
    """
    if isinstance(value, Identifier):
        return {"id": value.value}
    if isinstance(value, datetime):
        return {"datetime": value.isoformat()}
    if isinstance(value, tuple):
        return {"tuple": [_encode_value(v) for v in value]}
    if isinstance(value, list):
        return {"list": [_encode_value(v) for v in value]}
    if isinstance(value, dict):
        return {"map": {k: _encode_value(v) for k, v in value.items()}}
    return value


def _decode_value(value: Any) -> Any:
    if not isinstance(value, dict):
        return value
    if len(value) != 1:
        raise ValueError(f"untagged attribute value: {value!r}")
    ((tag, payload),) = value.items()
    if tag == "id":
        return Identifier(payload)
    if tag == "datetime":
        return datetime.fromisoformat(payload)
    if tag == "tuple":
        return tuple(_decode_value(v) for v in payload)
    if tag == "list":
        return [_decode_value(v) for v in payload]
    if tag == "map":
        return {k: _decode_value(v) for k, v in payload.items()}
    raise ValueError(f"unknown value tag {tag!r}")


@dataclass(frozen=True)
class Record:
    """A persisted or not-yet-persisted resource."""

    kind: str
    attributes: Mapping[str, tuple[Any, ...]] = field(default_factory=dict)
    id: Identifier | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        frozen = {name: _as_tuple(values) for name, values in self.attributes.items()}
        object.__setattr__(self, "attributes", MappingProxyType(frozen))

    @property
    def new_record(self) -> bool:
        return self.id is None

    @property
    def persisted(self) -> bool:
        return self.id is not None

    def get(self, name: str) -> tuple[Any, ...]:
        """All values of an attribute (empty tuple when unset or undeclared)."""
        return self.attributes.get(name, ())

    def first(self, name: str) -> Any | None:
        values = self.attributes.get(name, ())
        return values[0] if values else None

    def __getitem__(self, name: str) -> tuple[Any, ...]:
        return self.attributes[name]

    def identifiers(self, name: str) -> list[Identifier]:
        """Identifier values held by an attribute, in stored order."""
        return [v for v in self.get(name) if isinstance(v, Identifier)]

    def evolve(self, **changes: Any) -> Record:
        """Copy with some attribute values replaced (not validated until save)."""
        attributes = dict(self.attributes)
        for name, value in changes.items():
            attributes[name] = _as_tuple(value)
        return replace(self, attributes=attributes)

    def evolve_attributes(self, attributes: Mapping[str, tuple[Any, ...]]) -> Record:
        return replace(self, attributes=attributes)

    def with_identity(
        self,
        identifier: Identifier,
        *,
        created_at: datetime,
        updated_at: datetime,
    ) -> Record:
        return replace(self, id=identifier, created_at=created_at, updated_at=updated_at)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: dict[str, Any] = {
            "kind": self.kind,
            "attributes": {
                name: [_encode_value(v) for v in values]
                for name, values in self.attributes.items()
            },
        }
        if self.id is not None:
            result["id"] = self.id.value
        if self.created_at is not None:
            result["created_at"] = self.created_at.isoformat()
        if self.updated_at is not None:
            result["updated_at"] = self.updated_at.isoformat()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Record:
        """Reconstruct from JSON dict."""
        created_at = data.get("created_at")
        updated_at = data.get("updated_at")
        return cls(
            kind=data["kind"],
            attributes={
                name: tuple(_decode_value(v) for v in values)
                for name, values in data.get("attributes", {}).items()
            },
            id=Identifier(data["id"]) if data.get("id") else None,
            created_at=datetime.fromisoformat(created_at) if created_at else None,
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )
