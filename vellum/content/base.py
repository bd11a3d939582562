"""
Content store contract and stored-file descriptors.

Binary payloads are streamed once: size and every configured digest are
computed while the bytes are being written, never by re-reading the
payload. Verification later re-reads the stored bytes.
"""

from __future__ import annotations

import hashlib
import io
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, BinaryIO, Callable, Iterable, Iterator, Mapping

from ..errors import MalformedIdentifier, StorageFailure, ValidationFailure
from ..ids import Identifier
from ..record import Record

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
DEFAULT_DIGESTS = ("md5", "sha1", "sha256")

# Fixed-length digests only; shake_* need an explicit length.
SUPPORTED_DIGESTS = frozenset(
    name for name in hashlib.algorithms_guaranteed if not name.startswith("shake_")
)


def normalize_algorithm(name: str) -> str | None:
    """Canonical hashlib name for an algorithm label, or None if unsupported."""
    if not isinstance(name, str):
        return None
    key = name.strip().lower().replace("-", "")
    return key if key in SUPPORTED_DIGESTS else None


def resolve_algorithms(names: Iterable[str]) -> tuple[str, ...]:
    """Canonical names for configured digests; raises ValueError on unknown ones."""
    resolved: list[str] = []
    for name in names:
        algorithm = normalize_algorithm(name)
        if algorithm is None:
            raise ValueError(f"unsupported digest algorithm: {name!r}")
        if algorithm not in resolved:
            resolved.append(algorithm)
    return tuple(resolved)


def read_chunks(stream: BinaryIO, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            return
        yield chunk


def copy_digesting(
    stream: BinaryIO,
    write: Callable[[bytes], Any],
    algorithms: Iterable[str],
) -> tuple[int, dict[str, str]]:
    """
    Copy a stream into `write`, hashing as it goes.

    Returns (byte count, {algorithm: hex digest}).
    """
    hashers = {name: hashlib.new(name) for name in algorithms}
    size = 0
    for chunk in read_chunks(stream):
        size += len(chunk)
        for hasher in hashers.values():
            hasher.update(chunk)
        write(chunk)
    return size, {name: h.hexdigest() for name, h in hashers.items()}


def owner_identifier(owner: Record | Identifier | str) -> Identifier:
    if isinstance(owner, Record):
        if owner.id is None:
            raise ValidationFailure.single("owner", "must be saved before files can be attached")
        return owner.id
    return Identifier.coerce(owner)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StoredFile:
    """Descriptor of an uploaded payload. Immutable once stored."""

    id: Identifier
    original_filename: str
    size: int
    digests: dict[str, str]
    owner_id: Identifier
    created_at: datetime
    store: ContentStore | None = field(default=None, compare=False, repr=False)

    def open(self) -> BinaryIO:
        if self.store is None:
            raise StorageFailure(f"file {self.id} is not attached to a store")
        return self.store.open(self.id)

    def read(self) -> bytes:
        with self.open() as f:
            return f.read()

    def _scan(self, algorithms: Iterable[str]) -> tuple[int, dict[str, str]]:
        with self.open() as f:
            return copy_digesting(f, lambda _chunk: None, algorithms)

    def checksum(self, digests: Iterable[str] = ("sha256",)) -> dict[str, str]:
        """
        Recompute digests from the stored bytes.

        Args:
            digests: Algorithm names (md5, sha1, sha256, ...)

        Returns:
            Dict mapping each requested name to its hex digest

        Raises:
            ValueError: If an algorithm is not supported
        """
        requested = list(digests)
        algorithms = resolve_algorithms(requested)
        _, computed = self._scan(algorithms)
        return {name: computed[normalize_algorithm(name)] for name in requested}  # type: ignore[index]

    def valid(self, size: int | None = None, digests: Mapping[str, str] | None = None) -> bool:
        """
        Check the stored bytes against caller-supplied expectations.

        Every given expectation must match. A wrong size, a wrong digest or
        an unsupported algorithm name yields False; this never raises for
        bad expectations.
        """
        expected: dict[str, str] = {}
        for name, value in (digests or {}).items():
            algorithm = normalize_algorithm(name)
            if algorithm is None or not isinstance(value, str):
                return False
            expected[algorithm] = value.strip().lower()

        try:
            actual_size, actual = self._scan(expected.keys())
        except (StorageFailure, OSError) as e:
            logger.warning("cannot verify %s: %s", self.id, e)
            return False

        if size is not None and size != actual_size:
            return False
        return all(actual[name] == value for name, value in expected.items())

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "id": self.id.value,
            "original_filename": self.original_filename,
            "size": self.size,
            "digests": dict(self.digests),
            "owner_id": self.owner_id.value,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], store: ContentStore | None = None) -> StoredFile:
        """Reconstruct from JSON dict."""
        return cls(
            id=Identifier(data["id"]),
            original_filename=data["original_filename"],
            size=int(data["size"]),
            digests=dict(data.get("digests", {})),
            owner_id=Identifier(data["owner_id"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            store=store,
        )


class ContentStore(ABC):
    """Persists binary payloads attached to records."""

    scheme: str = ""

    def __init__(self, digests: Iterable[str] = DEFAULT_DIGESTS):
        self.digests = resolve_algorithms(digests)
        if not self.digests:
            raise ValueError("at least one digest algorithm is required")

    def handles(self, identifier: Identifier | str) -> bool:
        """Whether an identifier belongs to this backend."""
        try:
            return Identifier.coerce(identifier).scheme == self.scheme
        except MalformedIdentifier:
            return False

    def upload(
        self,
        stream: BinaryIO | bytes,
        filename: str,
        owner: Record | Identifier | str,
    ) -> StoredFile:
        """
        Store a payload for a saved record.

        The stream is consumed once. Either the file is fully stored and
        returned, or nothing is retrievable and StorageFailure is raised.
        """
        owner_id = owner_identifier(owner)
        if isinstance(stream, (bytes, bytearray)):
            stream = io.BytesIO(stream)

        identifier = Identifier.mint(self.scheme)
        try:
            stored = self._store_stream(identifier, stream, filename, owner_id, _utcnow())
        except StorageFailure:
            raise
        except (OSError, ValueError) as e:
            logger.warning("upload of %s failed: %s", filename, e)
            raise StorageFailure(f"upload of {filename!r} failed: {e}") from e

        logger.debug("uploaded %s (%d bytes) as %s", filename, stored.size, stored.id)
        return stored

    @abstractmethod
    def _store_stream(
        self,
        identifier: Identifier,
        stream: BinaryIO,
        filename: str,
        owner_id: Identifier,
        created_at: datetime,
    ) -> StoredFile:
        ...

    @abstractmethod
    def find_by(self, identifier: Identifier | str) -> StoredFile | None:
        """Descriptor for a stored file; None when absent or not ours."""
        ...

    @abstractmethod
    def find_all(self) -> Iterator[StoredFile]:
        ...

    @abstractmethod
    def open(self, identifier: Identifier | str) -> BinaryIO:
        """Open the stored bytes for reading; StorageFailure if absent."""
        ...

    @abstractmethod
    def delete(self, identifier: Identifier | str) -> bool:
        """Remove bytes and descriptor. Returns False if nothing was stored."""
        ...

    def read(self, identifier: Identifier | str) -> bytes:
        with self.open(identifier) as f:
            return f.read()

    def find_by_owner(self, owner: Record | Identifier | str) -> list[StoredFile]:
        owner_id = owner_identifier(owner)
        return [f for f in self.find_all() if f.owner_id == owner_id]

    def close(self) -> None:
        """End the store's lifecycle."""
