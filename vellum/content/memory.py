"""In-memory content store."""

from __future__ import annotations

import io
import threading
from datetime import datetime
from typing import BinaryIO, Iterable, Iterator

from ..errors import MalformedIdentifier, StorageFailure
from ..ids import Identifier
from .base import DEFAULT_DIGESTS, ContentStore, StoredFile, copy_digesting


class _ViewReader(io.RawIOBase):
    """Read-only stream over a stored payload view."""

    def __init__(self, view: memoryview):
        self._view = view
        self._pos = 0

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:  # type: ignore[override]
        n = min(len(b), len(self._view) - self._pos)
        b[:n] = self._view[self._pos : self._pos + n]
        self._pos += n
        return n


class MemoryContentStore(ContentStore):
    """
    Holds payloads in memory. Useful for tests and scratch work.

    Each payload is kept as a read-only view of its upload buffer, and
    readers stream from that view.
    """

    scheme = "memory"

    def __init__(self, digests: Iterable[str] = DEFAULT_DIGESTS):
        super().__init__(digests)
        self._lock = threading.RLock()
        self._files: dict[Identifier, StoredFile] = {}
        self._blobs: dict[Identifier, memoryview] = {}

    def _key(self, identifier: Identifier | str) -> Identifier | None:
        try:
            key = Identifier.coerce(identifier)
        except MalformedIdentifier:
            return None
        return key if key.scheme == self.scheme else None

    def _store_stream(
        self,
        identifier: Identifier,
        stream: BinaryIO,
        filename: str,
        owner_id: Identifier,
        created_at: datetime,
    ) -> StoredFile:
        buffer = io.BytesIO()
        size, digests = copy_digesting(stream, buffer.write, self.digests)
        stored = StoredFile(
            id=identifier,
            original_filename=filename,
            size=size,
            digests=digests,
            owner_id=owner_id,
            created_at=created_at,
            store=self,
        )
        with self._lock:
            self._blobs[identifier] = buffer.getbuffer().toreadonly()
            self._files[identifier] = stored
        return stored

    def find_by(self, identifier: Identifier | str) -> StoredFile | None:
        key = self._key(identifier)
        if key is None:
            return None
        with self._lock:
            return self._files.get(key)

    def find_all(self) -> Iterator[StoredFile]:
        with self._lock:
            snapshot = list(self._files.values())
        return iter(snapshot)

    def open(self, identifier: Identifier | str) -> BinaryIO:
        key = self._key(identifier)
        with self._lock:
            blob = self._blobs.get(key) if key is not None else None
        if blob is None:
            raise StorageFailure(f"no stored content for {identifier}")
        return _ViewReader(blob)  # type: ignore[return-value]

    def delete(self, identifier: Identifier | str) -> bool:
        key = self._key(identifier)
        if key is None:
            return False
        with self._lock:
            self._blobs.pop(key, None)
            return self._files.pop(key, None) is not None
