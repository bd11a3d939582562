"""
In-memory metadata store.

All state sits behind one re-entrant lock. Stored records are immutable, so
a reader holding a record can never observe a later save half-applied.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Iterable, Iterator

from ..errors import RecordNotPersisted, StorageFailure
from ..ids import Identifier
from ..record import Record
from ..schema import SchemaRegistry
from .base import MetadataStore, RecordRef, target_identifier
from .index import InverseIndex

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemoryMetadataStore(MetadataStore):
    """
    Dictionary-backed metadata store.

    Subclasses add durability by overriding the ``_write_*`` hooks, which
    run under the store lock before in-memory state changes. A hook that
    raises leaves the store untouched.
    """

    def __init__(self, registry: SchemaRegistry, *, use_index: bool = True):
        super().__init__(registry)
        self.use_index = use_index
        self._lock = threading.RLock()
        self._records: dict[Identifier, Record] = {}
        self._sequence: dict[Identifier, int] = {}
        self._next_sequence = 0
        self._issued: set[Identifier] = set()
        self._index: InverseIndex | None = InverseIndex() if use_index else None
        self._closed = False

    # -------------------------------------------------------------------------
    # Durability hooks
    # -------------------------------------------------------------------------

    def _write_save(self, records: list[Record]) -> None:
        pass

    def _write_delete(self, identifier: Identifier) -> None:
        pass

    def _write_wipe(self) -> None:
        pass

    # -------------------------------------------------------------------------
    # State helpers (caller holds the lock)
    # -------------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise StorageFailure("metadata store is closed")

    def _mint(self) -> Identifier:
        while True:
            identifier = Identifier.mint()
            if identifier not in self._issued:
                self._issued.add(identifier)
                return identifier

    def _apply_save(self, record: Record) -> None:
        assert record.id is not None
        previous = self._records.get(record.id)
        self._records[record.id] = record
        self._issued.add(record.id)
        if record.id not in self._sequence:
            self._sequence[record.id] = self._next_sequence
            self._next_sequence += 1
        if self._index is not None:
            self._index.replace(previous, record)

    def _apply_delete(self, identifier: Identifier) -> Record | None:
        record = self._records.pop(identifier, None)
        if record is None:
            return None
        self._sequence.pop(identifier, None)
        if self._index is not None:
            self._index.remove(record)
        return record

    def _apply_wipe(self) -> None:
        self._records.clear()
        self._sequence.clear()
        if self._index is not None:
            self._index.clear()

    def _stamp(self, records: list[Record]) -> list[Record]:
        """Assign identifiers and timestamps to prepared records."""
        now = _utcnow()
        stamped: list[Record] = []
        batch: dict[Identifier, Record] = {}
        for record in records:
            if record.id is None:
                identifier = self._mint()
                result = record.with_identity(identifier, created_at=now, updated_at=now)
            else:
                previous = batch.get(record.id) or self._records.get(record.id)
                if previous is None:
                    raise RecordNotPersisted(f"no stored record with id {record.id}")
                result = record.with_identity(
                    record.id,
                    created_at=previous.created_at or now,
                    updated_at=now,
                )
            batch[result.id] = result  # type: ignore[index]
            stamped.append(result)
        return stamped

    # -------------------------------------------------------------------------
    # Primitives
    # -------------------------------------------------------------------------

    def save(self, record: Record) -> Record:
        return self.save_all([record])[0]

    def save_all(self, records: Iterable[Record]) -> list[Record]:
        prepared = [self.registry.prepare(r) for r in records]
        if not prepared:
            return []

        with self._lock:
            self._ensure_open()
            stamped = self._stamp(prepared)
            self._write_save(stamped)
            for record in stamped:
                self._apply_save(record)

        for record in stamped:
            logger.debug("saved %s %s", record.kind, record.id)
        return stamped

    def find_by(self, identifier: Identifier | str) -> Record | None:
        key = Identifier.coerce(identifier)
        with self._lock:
            self._ensure_open()
            return self._records.get(key)

    def find_all(self) -> Iterator[Record]:
        with self._lock:
            self._ensure_open()
            snapshot = list(self._records.values())
        return iter(snapshot)

    def find_inverse_references(self, target: RecordRef, attribute: str) -> list[Record]:
        identifier = target_identifier(target)
        if identifier is None:
            return []

        with self._lock:
            self._ensure_open()
            # References to a deleted record dangle; they do not resolve back to it.
            if identifier not in self._records:
                return []
            if self._index is None:
                return [r for r in self._records.values() if identifier in r.get(attribute)]

            referrers = self._index.referrers(attribute, identifier)
            ordered = sorted(referrers, key=lambda i: self._sequence.get(i, 0))
            return [self._records[i] for i in ordered if i in self._records]

    def delete(self, target: RecordRef) -> Record | None:
        identifier = target_identifier(target)
        if identifier is None:
            return None

        with self._lock:
            self._ensure_open()
            if identifier not in self._records:
                return None
            self._write_delete(identifier)
            record = self._apply_delete(identifier)

        logger.debug("deleted %s", identifier)
        return record

    def wipe(self) -> None:
        with self._lock:
            self._ensure_open()
            self._write_wipe()
            self._apply_wipe()
        logger.debug("wiped metadata store")

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def issued(self, identifier: Identifier | str) -> bool:
        """Whether this store has ever handed out the identifier."""
        key = Identifier.coerce(identifier)
        with self._lock:
            return key in self._issued
