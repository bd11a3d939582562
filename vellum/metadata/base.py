"""
Metadata store contract.

Backends implement the primitive operations (save, find_by, find_all,
delete, wipe, find_inverse_references). Derived queries that only need
those primitives live here so every backend answers them the same way.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Iterator

from ..ids import Identifier
from ..record import Record
from ..schema import SchemaRegistry


RecordRef = Record | Identifier | str


def target_identifier(target: RecordRef) -> Identifier | None:
    """Identifier of a record reference; None for an unsaved record."""
    if isinstance(target, Record):
        return target.id
    return Identifier.coerce(target)


class MetadataStore(ABC):
    """Persists structured records addressed by opaque identifiers."""

    def __init__(self, registry: SchemaRegistry):
        self.registry = registry

    # -------------------------------------------------------------------------
    # Primitives
    # -------------------------------------------------------------------------

    @abstractmethod
    def save(self, record: Record) -> Record:
        """
        Insert a new record or fully replace an existing one.

        Returns the stored record with its identifier populated.

        Raises:
            ValidationFailure: The record does not satisfy its kind schema
            RecordNotPersisted: The record's identifier is not held here
            StorageFailure: The backing medium failed
        """
        ...

    @abstractmethod
    def save_all(self, records: Iterable[Record]) -> list[Record]:
        """Save several records; either all are stored or none are."""
        ...

    @abstractmethod
    def find_by(self, identifier: Identifier | str) -> Record | None:
        """Exact lookup. None means not found; malformed input raises."""
        ...

    @abstractmethod
    def find_all(self) -> Iterator[Record]:
        """Every record, all kinds, from a snapshot taken at call time."""
        ...

    @abstractmethod
    def find_inverse_references(self, target: RecordRef, attribute: str) -> list[Record]:
        """Records whose `attribute` contains the target's identifier."""
        ...

    @abstractmethod
    def delete(self, target: RecordRef) -> Record | None:
        """Remove a record. Returns what was removed, or None."""
        ...

    @abstractmethod
    def wipe(self) -> None:
        """Remove every record. Issued identifiers stay retired."""
        ...

    def close(self) -> None:
        """End the store's lifecycle."""

    # -------------------------------------------------------------------------
    # Derived queries
    # -------------------------------------------------------------------------

    def find_all_of_kind(self, kind: str) -> Iterator[Record]:
        return (r for r in self.find_all() if r.kind == kind)

    def count_all_of_kind(self, kind: str) -> int:
        return sum(1 for _ in self.find_all_of_kind(kind))

    def find_many_by_ids(self, identifiers: Iterable[Identifier | str]) -> list[Record]:
        """Records for the given identifiers, in input order; missing ones skipped."""
        found: list[Record] = []
        for identifier in identifiers:
            record = self.find_by(identifier)
            if record is not None:
                found.append(record)
        return found

    def find_members(self, record: Record, attribute: str) -> list[Record]:
        """
        Resolve an ordered reference attribute.

        Order and duplicates follow the stored attribute; identifiers that
        no longer resolve are skipped.
        """
        return self.find_many_by_ids(record.identifiers(attribute))

    def find_references(self, record: Record, attribute: str) -> list[Record]:
        """Forward lookup with duplicates removed (first occurrence wins)."""
        seen: set[Identifier] = set()
        unique: list[Identifier] = []
        for identifier in record.identifiers(attribute):
            if identifier not in seen:
                seen.add(identifier)
                unique.append(identifier)
        return self.find_many_by_ids(unique)
