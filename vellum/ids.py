"""
Opaque identifiers for records and stored files.

Identifiers are ULIDs (26 chars, Crockford base32), optionally prefixed with
a backend scheme such as ``disk://``. The string form is what gets embedded
in URLs, form fields and journals.
"""

from __future__ import annotations

import os
import re
import time
from dataclasses import dataclass
from typing import Any

from .errors import MalformedIdentifier


_CROCKFORD32 = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_VALID = re.compile(r"^[A-Za-z0-9._:/~-]+$")
_MAX_LENGTH = 512


def _encode_crockford_base32(value: int, length: int) -> str:
    chars: list[str] = []
    for _ in range(length):
        chars.append(_CROCKFORD32[value & 31])
        value >>= 5
    return "".join(reversed(chars))


def new_ulid(*, timestamp_ms: int | None = None) -> str:
    """
    Generate a ULID (26 chars, Crockford base32).

    ULID = 48-bit millisecond timestamp + 80-bit randomness.
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)

    if not (0 <= timestamp_ms < (1 << 48)):
        raise ValueError("timestamp_ms out of range for ULID")

    randomness = int.from_bytes(os.urandom(10), "big")
    value = (timestamp_ms << 80) | randomness
    return _encode_crockford_base32(value, 26)


@dataclass(frozen=True)
class Identifier:
    """An opaque token naming exactly one record or stored file."""

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise MalformedIdentifier(f"identifier must be a string, got {type(self.value).__name__}")
        if not self.value or len(self.value) > _MAX_LENGTH or not _VALID.match(self.value):
            raise MalformedIdentifier(f"malformed identifier: {self.value!r}")

    def __str__(self) -> str:
        return self.value

    @property
    def scheme(self) -> str | None:
        """Backend scheme (``disk``, ``memory``) or None for bare ids."""
        head, sep, _ = self.value.partition("://")
        return head if sep else None

    @classmethod
    def coerce(cls, value: Any) -> Identifier:
        """Accept an Identifier or its string form."""
        if isinstance(value, Identifier):
            return value
        if isinstance(value, str):
            return cls(value.strip())
        raise MalformedIdentifier(f"cannot use {type(value).__name__} as an identifier")

    @classmethod
    def mint(cls, scheme: str | None = None) -> Identifier:
        ulid = new_ulid()
        return cls(f"{scheme}://{ulid}" if scheme else ulid)
