"""
Journal-backed metadata store.

The journal is a JSON-lines file of save/delete/wipe entries. It is the
source of truth: on open the entries are replayed into memory, and every
write is appended before the in-memory state changes.

    {"op":"save","records":[{...}, ...]}     # one entry per save_all batch
    {"op":"delete","id":"01J..."}
    {"op":"wipe"}
    {"op":"retired","ids":["01H...", ...]}   # written by compact()
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from ..errors import StorageFailure, ValidationFailure
from ..ids import Identifier
from ..record import Record
from ..schema import SchemaRegistry
from .memory import MemoryMetadataStore

logger = logging.getLogger(__name__)


def _entry_line(entry: dict[str, Any]) -> str:
    return json.dumps(entry, separators=(",", ":"), sort_keys=True) + "\n"


class JournalMetadataStore(MemoryMetadataStore):
    """Metadata store persisted as an append-only journal."""

    def __init__(self, path: Path, registry: SchemaRegistry, *, use_index: bool = True):
        super().__init__(registry, use_index=use_index)
        self.path = path
        self._replay()

    # -------------------------------------------------------------------------
    # Replay
    # -------------------------------------------------------------------------

    def _replay(self) -> None:
        if not self.path.exists():
            return

        try:
            data = self.path.read_bytes()
            # A final line without a newline is an interrupted append; cut it
            # off so later appends start on a fresh line.
            end = data.rfind(b"\n") + 1
            if end < len(data):
                logger.warning("dropping truncated final journal entry in %s", self.path)
                os.truncate(self.path, end)
                data = data[:end]
            text = data.decode("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageFailure(f"cannot read journal {self.path}: {e}") from e

        lines = text.split("\n")[:-1]

        with self._lock:
            for lineno, line in enumerate(lines, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    self._apply_entry(json.loads(line))
                except (ValueError, KeyError, TypeError) as e:
                    raise StorageFailure(f"corrupt journal entry at {self.path}:{lineno}: {e}") from e

        logger.debug("replayed %d records from %s", len(self._records), self.path)

    def _apply_entry(self, entry: dict[str, Any]) -> None:
        op = entry["op"]
        if op == "save":
            records = [Record.from_dict(data) for data in entry["records"]]
            if any(r.id is None for r in records):
                raise ValueError("saved record has no id")
            for record in records:
                self._apply_save(record)
        elif op == "delete":
            self._apply_delete(Identifier(entry["id"]))
        elif op == "wipe":
            self._apply_wipe()
        elif op == "retired":
            self._issued.update(Identifier(i) for i in entry["ids"])
        else:
            raise ValueError(f"unknown journal op {op!r}")

    # -------------------------------------------------------------------------
    # Durability hooks
    # -------------------------------------------------------------------------

    def _append(self, entry: dict[str, Any]) -> None:
        """
        Append one entry as a single line and fsync it.

        A failed write is cut back to the previous end of the journal, so a
        torn line never sits in front of a later entry.
        """
        try:
            payload = _entry_line(entry).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise ValidationFailure.single("attributes", f"cannot be written to the journal: {e}") from e

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            start = self.path.stat().st_size if self.path.exists() else 0
        except OSError as e:
            raise StorageFailure(f"cannot append to journal {self.path}: {e}") from e

        try:
            with self.path.open("ab") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            logger.warning("journal append failed for %s: %s", self.path, e)
            try:
                if self.path.is_file():
                    os.truncate(self.path, start)
            except OSError as truncate_error:
                logger.warning("could not cut back %s: %s", self.path, truncate_error)
            raise StorageFailure(f"cannot append to journal {self.path}: {e}") from e

    def _write_save(self, records: list[Record]) -> None:
        self._append({"op": "save", "records": [r.to_dict() for r in records]})

    def _write_delete(self, identifier: Identifier) -> None:
        self._append({"op": "delete", "id": identifier.value})

    def _write_wipe(self) -> None:
        self._append({"op": "wipe"})

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def compact(self) -> int:
        """
        Rewrite the journal as the current snapshot.

        Deleted identifiers are kept in a single ``retired`` entry so they
        are still never re-issued. Returns the number of records written.
        """
        with self._lock:
            self._ensure_open()
            retired = sorted(i.value for i in self._issued if i not in self._records)
            entries: list[dict[str, Any]] = []
            if retired:
                entries.append({"op": "retired", "ids": retired})
            entries.extend({"op": "save", "records": [r.to_dict()]} for r in self._records.values())

            temp_path = self.path.with_suffix(".tmp")
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                temp_path.write_text("".join(_entry_line(e) for e in entries), encoding="utf-8")
                os.replace(temp_path, self.path)
            except OSError as e:
                temp_path.unlink(missing_ok=True)
                raise StorageFailure(f"cannot compact journal {self.path}: {e}") from e

            count = len(self._records)

        logger.debug("compacted %s to %d records", self.path, count)
        return count
