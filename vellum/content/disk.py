"""
Disk-backed content store.

Payloads live in a two-level directory structure keyed by the last two
characters of the file's ULID (the random end, so prefixes spread evenly):

    <root>/7q/01J9Z...7Q.bin     payload bytes
    <root>/7q/01J9Z...7Q.json    descriptor (size, digests, owner)

The descriptor is renamed into place last, so a file exists exactly when
its descriptor does.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator

from ..errors import MalformedIdentifier, StorageFailure
from ..ids import Identifier
from .base import DEFAULT_DIGESTS, ContentStore, StoredFile, copy_digesting

logger = logging.getLogger(__name__)

_ULID = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$")


class DiskContentStore(ContentStore):
    """Content store writing payloads under a root directory."""

    scheme = "disk"

    def __init__(self, root: Path, digests: Iterable[str] = DEFAULT_DIGESTS):
        super().__init__(digests)
        self.root = root

    def _ulid(self, identifier: Identifier | str) -> str | None:
        try:
            key = Identifier.coerce(identifier)
        except MalformedIdentifier:
            return None
        if key.scheme != self.scheme:
            return None
        ulid = key.value.split("://", 1)[1]
        return ulid if _ULID.match(ulid) else None

    def _paths(self, ulid: str) -> tuple[Path, Path]:
        prefix_dir = self.root / ulid[-2:].lower()
        return prefix_dir / f"{ulid}.bin", prefix_dir / f"{ulid}.json"

    def _ensure_dir(self, ulid: str) -> Path:
        """Ensure content root and prefix subdirectory exist."""
        dir_path = self.root / ulid[-2:].lower()
        dir_path.mkdir(parents=True, exist_ok=True)
        return dir_path

    def _store_stream(
        self,
        identifier: Identifier,
        stream: BinaryIO,
        filename: str,
        owner_id: Identifier,
        created_at: datetime,
    ) -> StoredFile:
        ulid = self._ulid(identifier)
        assert ulid is not None
        dir_path = self._ensure_dir(ulid)
        blob_path, meta_path = self._paths(ulid)

        temp_blob: Path | None = None
        temp_meta: Path | None = None
        try:
            with tempfile.NamedTemporaryFile("wb", dir=dir_path, suffix=".tmp", delete=False) as f:
                temp_blob = Path(f.name)
                size, digests = copy_digesting(stream, f.write, self.digests)
                f.flush()
                os.fsync(f.fileno())

            stored = StoredFile(
                id=identifier,
                original_filename=filename,
                size=size,
                digests=digests,
                owner_id=owner_id,
                created_at=created_at,
                store=self,
            )

            with tempfile.NamedTemporaryFile(
                "w", dir=dir_path, suffix=".tmp", delete=False, encoding="utf-8"
            ) as f:
                temp_meta = Path(f.name)
                json.dump(stored.to_dict(), f, indent=2, sort_keys=True)

            os.replace(temp_blob, blob_path)
            temp_blob = None
            os.replace(temp_meta, meta_path)
            temp_meta = None
        except BaseException:
            for leftover in (temp_blob, temp_meta):
                if leftover is not None:
                    leftover.unlink(missing_ok=True)
            if not meta_path.exists():
                blob_path.unlink(missing_ok=True)
            raise

        return stored

    def _load_descriptor(self, meta_path: Path) -> StoredFile:
        try:
            data = json.loads(meta_path.read_text(encoding="utf-8"))
            return StoredFile.from_dict(data, store=self)
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise StorageFailure(f"unreadable file descriptor {meta_path}: {e}") from e

    def find_by(self, identifier: Identifier | str) -> StoredFile | None:
        ulid = self._ulid(identifier)
        if ulid is None:
            return None
        _, meta_path = self._paths(ulid)
        if not meta_path.exists():
            return None
        return self._load_descriptor(meta_path)

    def find_all(self) -> Iterator[StoredFile]:
        if not self.root.exists():
            return
        for prefix_dir in sorted(self.root.iterdir()):
            if prefix_dir.is_dir() and len(prefix_dir.name) == 2:
                for meta_path in sorted(prefix_dir.glob("*.json")):
                    yield self._load_descriptor(meta_path)

    def open(self, identifier: Identifier | str) -> BinaryIO:
        ulid = self._ulid(identifier)
        if ulid is None:
            raise StorageFailure(f"not a {self.scheme} identifier: {identifier}")
        blob_path, meta_path = self._paths(ulid)
        if not meta_path.exists():
            raise StorageFailure(f"no stored content for {identifier}")
        try:
            return blob_path.open("rb")
        except OSError as e:
            raise StorageFailure(f"cannot open {blob_path}: {e}") from e

    def delete(self, identifier: Identifier | str) -> bool:
        ulid = self._ulid(identifier)
        if ulid is None:
            return False
        blob_path, meta_path = self._paths(ulid)
        if not meta_path.exists():
            return False
        try:
            meta_path.unlink()
            blob_path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageFailure(f"cannot delete {identifier}: {e}") from e
        logger.debug("deleted file %s", identifier)
        return True

    def size(self) -> int:
        """Total payload bytes on disk."""
        return sum(f.size for f in self.find_all())
