"""
Error taxonomy for vellum stores.

"Not found" is deliberately absent: lookups return None. Integrity
mismatches are reported by StoredFile.valid() as False.
"""

from __future__ import annotations


class VellumError(Exception):
    """Base class for all vellum errors."""


class ValidationFailure(VellumError):
    """
    A record failed its kind's attribute constraints.

    Carries a mapping of attribute name -> list of messages so callers can
    report per-field problems.
    """

    def __init__(self, errors: dict[str, list[str]]):
        self.errors = {name: list(msgs) for name, msgs in errors.items()}
        parts = [f"{name}: {'; '.join(msgs)}" for name, msgs in sorted(self.errors.items())]
        super().__init__("validation failed (" + ", ".join(parts) + ")")

    @classmethod
    def single(cls, attribute: str, message: str) -> ValidationFailure:
        return cls({attribute: [message]})


class StorageFailure(VellumError):
    """The backing medium could not complete an operation."""


class RecordNotPersisted(StorageFailure):
    """A record carries an identifier this store does not hold."""


class MalformedIdentifier(VellumError, ValueError):
    """Identifier input could not be parsed."""


class SchemaError(VellumError, ValueError):
    """A schema or settings file is malformed."""
