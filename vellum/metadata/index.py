"""Secondary index for inverse-reference queries."""

from __future__ import annotations

from ..ids import Identifier
from ..record import Record


class InverseIndex:
    """
    (attribute, target identifier) -> set of referring record identifiers.

    Not thread-safe on its own: the owning store mutates it under the same
    lock as the primary write.
    """

    def __init__(self) -> None:
        self._by_target: dict[tuple[str, Identifier], set[Identifier]] = {}

    def _keys(self, record: Record) -> set[tuple[str, Identifier]]:
        keys: set[tuple[str, Identifier]] = set()
        for name, values in record.attributes.items():
            for value in values:
                if isinstance(value, Identifier):
                    keys.add((name, value))
        return keys

    def add(self, record: Record) -> None:
        assert record.id is not None
        for key in self._keys(record):
            self._by_target.setdefault(key, set()).add(record.id)

    def remove(self, record: Record) -> None:
        assert record.id is not None
        for key in self._keys(record):
            referrers = self._by_target.get(key)
            if referrers is None:
                continue
            referrers.discard(record.id)
            if not referrers:
                del self._by_target[key]

    def replace(self, old: Record | None, new: Record) -> None:
        if old is not None:
            self.remove(old)
        self.add(new)

    def referrers(self, attribute: str, target: Identifier) -> set[Identifier]:
        return set(self._by_target.get((attribute, target), ()))

    def clear(self) -> None:
        self._by_target.clear()

    def __len__(self) -> int:
        return len(self._by_target)
