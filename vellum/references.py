"""
Reference resolution between records.

References are plain identifier-valued attributes. Nothing enforces them
at write time, so a reference may dangle; resolvers skip those and
`dangling()` reports them.
"""

from __future__ import annotations

from .content import ContentStore, StoredFile
from .ids import Identifier
from .metadata import MetadataStore
from .record import Record


class ReferenceResolver:
    """Forward and inverse lookups on top of a metadata store."""

    def __init__(self, metadata: MetadataStore):
        self.metadata = metadata

    def members(self, record: Record, attribute: str) -> list[Record]:
        """Ordered targets of a forward reference (duplicates kept)."""
        return self.metadata.find_members(record, attribute)

    def references(self, record: Record, attribute: str) -> list[Record]:
        """Distinct targets of a forward reference."""
        return self.metadata.find_references(record, attribute)

    def referenced_by(self, record: Record, attribute: str, *, kind: str | None = None) -> list[Record]:
        """
        Records pointing at `record` through their `attribute`.

        This is the inverse of a one-to-many: for a book, the pages whose
        `book_id` holds the book's identifier.
        """
        found = self.metadata.find_inverse_references(record, attribute)
        if kind is not None:
            found = [r for r in found if r.kind == kind]
        return found

    def parents(self, record: Record, attribute: str = "member_ids") -> list[Record]:
        """Records listing `record` among their ordered members."""
        return self.metadata.find_inverse_references(record, attribute)

    def dangling(self, record: Record, attribute: str) -> list[Identifier]:
        """Identifiers in `attribute` that no longer resolve to a record."""
        return [i for i in record.identifiers(attribute) if self.metadata.find_by(i) is None]

    def files(self, record: Record, attribute: str, content: ContentStore) -> list[StoredFile]:
        """Resolve an attribute of file identifiers; missing files are skipped."""
        found: list[StoredFile] = []
        for identifier in record.identifiers(attribute):
            stored = content.find_by(identifier)
            if stored is not None:
                found.append(stored)
        return found
