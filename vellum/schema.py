"""
Per-kind attribute schemas.

Every attribute is declared with a scalar type and a cardinality. Values are
checked when a record is built, not coerced silently when it is saved.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Literal

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

from .errors import MalformedIdentifier, SchemaError, ValidationFailure
from .ids import Identifier

if TYPE_CHECKING:
    from .record import Record


AttributeType = Literal["string", "integer", "float", "boolean", "datetime", "id", "any"]
Cardinality = Literal["single", "multi"]
UnknownPolicy = Literal["reject", "ignore"]

ATTRIBUTE_TYPES = frozenset({"string", "integer", "float", "boolean", "datetime", "id", "any"})
CARDINALITIES = frozenset({"single", "multi"})
UNKNOWN_POLICIES = frozenset({"reject", "ignore"})

_TRUE_TEXT = {"true", "yes", "1", "on"}
_FALSE_TEXT = {"false", "no", "0", "off"}


def _storable_problem(value: Any) -> str | None:
    """Why a free-form value cannot be stored, or None when it can."""
    if value is None or isinstance(value, (str, int, float, bool, Identifier, datetime)):
        return None
    if isinstance(value, (list, tuple)):
        for item in value:
            problem = _storable_problem(item)
            if problem:
                return problem
        return None
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                return f"map keys must be strings, got {type(key).__name__}"
            problem = _storable_problem(item)
            if problem:
                return problem
        return None
    return f"cannot store a value of type {type(value).__name__}"


@dataclass(frozen=True)
class AttributeDef:
    name: str
    type: AttributeType = "string"
    cardinality: Cardinality = "single"
    required: bool = False

    def __post_init__(self) -> None:
        if self.type not in ATTRIBUTE_TYPES:
            raise SchemaError(f"attribute {self.name!r}: unknown type {self.type!r}")
        if self.cardinality not in CARDINALITIES:
            raise SchemaError(f"attribute {self.name!r}: unknown cardinality {self.cardinality!r}")

    @property
    def multi(self) -> bool:
        return self.cardinality == "multi"

    def check(self, value: Any) -> tuple[Any, str | None]:
        """
        Check a single scalar against the declared type.

        Returns the (possibly coerced) value and an error message, if any.
        Only identifiers are coerced (from their string form); every other
        type must already match.
        """
        if self.type == "any":
            return value, _storable_problem(value)
        if self.type == "id":
            try:
                return Identifier.coerce(value), None
            except MalformedIdentifier as e:
                return value, str(e)
        if self.type == "string":
            ok = isinstance(value, str)
        elif self.type == "integer":
            ok = isinstance(value, int) and not isinstance(value, bool)
        elif self.type == "float":
            ok = isinstance(value, (int, float)) and not isinstance(value, bool)
            if ok:
                value = float(value)
        elif self.type == "boolean":
            ok = isinstance(value, bool)
        else:
            ok = isinstance(value, datetime)
        if ok:
            return value, None
        return value, f"expected {self.type}, got {type(value).__name__}"

    def parse_text(self, text: str) -> Any:
        """Parse a command-line string into this attribute's type."""
        if self.type == "integer":
            return int(text)
        if self.type == "float":
            return float(text)
        if self.type == "boolean":
            lowered = text.strip().lower()
            if lowered in _TRUE_TEXT:
                return True
            if lowered in _FALSE_TEXT:
                return False
            raise ValueError(f"not a boolean: {text!r}")
        if self.type == "datetime":
            return datetime.fromisoformat(text)
        if self.type == "id":
            return Identifier.coerce(text)
        return text


@dataclass(frozen=True)
class KindSchema:
    """The fixed attribute set of one record kind."""

    name: str
    attributes: tuple[AttributeDef, ...] = ()
    unknown: UnknownPolicy = "reject"
    _by_name: dict[str, AttributeDef] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise SchemaError("kind name is required")
        if self.unknown not in UNKNOWN_POLICIES:
            raise SchemaError(f"kind {self.name!r}: unknown policy must be 'reject' or 'ignore'")
        by_name: dict[str, AttributeDef] = {}
        for attr in self.attributes:
            if attr.name in by_name:
                raise SchemaError(f"kind {self.name!r}: duplicate attribute {attr.name!r}")
            by_name[attr.name] = attr
        object.__setattr__(self, "_by_name", by_name)

    def attribute(self, name: str) -> AttributeDef | None:
        return self._by_name.get(name)

    @property
    def attribute_names(self) -> list[str]:
        return [a.name for a in self.attributes]

    @property
    def reference_attributes(self) -> list[str]:
        return [a.name for a in self.attributes if a.type == "id"]

    def normalize(self, values: dict[str, Any]) -> tuple[dict[str, tuple[Any, ...]], dict[str, list[str]]]:
        """
        Turn raw keyword values into declared tuples.

        Returns the normalized attribute mapping (every declared attribute
        present, in declaration order) and the per-attribute error map.
        """
        errors: dict[str, list[str]] = {}
        normalized: dict[str, tuple[Any, ...]] = {}

        for name in values:
            if name not in self._by_name and self.unknown == "reject":
                errors.setdefault(name, []).append(f"is not an attribute of {self.name}")

        for attr in self.attributes:
            raw = values.get(attr.name)
            if raw is None:
                items: list[Any] = []
            elif isinstance(raw, (list, tuple)):
                items = list(raw)
            else:
                items = [raw]

            checked: list[Any] = []
            for item in items:
                value, problem = attr.check(item)
                if problem:
                    errors.setdefault(attr.name, []).append(problem)
                else:
                    checked.append(value)

            if not attr.multi and len(items) > 1:
                errors.setdefault(attr.name, []).append("accepts a single value")

            normalized[attr.name] = tuple(checked)

        return normalized, errors

    def build(self, **values: Any) -> Record:
        """Construct a new (unsaved) record of this kind."""
        from .record import Record

        attributes, errors = self.normalize(values)
        if errors:
            raise ValidationFailure(errors)
        return Record(kind=self.name, attributes=attributes)

    def prepare(self, record: Record) -> tuple[dict[str, tuple[Any, ...]], dict[str, list[str]]]:
        """
        Full pre-save validation, including required attributes.

        Returns the normalized attributes to store and the error map.
        """
        if record.kind != self.name:
            return {}, {"kind": [f"expected {self.name}, got {record.kind}"]}

        attributes, errors = self.normalize(dict(record.attributes))
        for attr in self.attributes:
            if attr.required and not attributes.get(attr.name):
                errors.setdefault(attr.name, []).append("can't be blank")
        return attributes, errors


class SchemaRegistry:
    """Kind name -> KindSchema lookup shared by stores."""

    def __init__(self, kinds: Iterable[KindSchema] = ()):
        self._kinds: dict[str, KindSchema] = {}
        for kind in kinds:
            self.register(kind)

    def register(self, kind: KindSchema) -> KindSchema:
        if kind.name in self._kinds:
            raise SchemaError(f"kind already registered: {kind.name}")
        self._kinds[kind.name] = kind
        return kind

    def get(self, name: str) -> KindSchema | None:
        return self._kinds.get(name)

    def __getitem__(self, name: str) -> KindSchema:
        kind = self._kinds.get(name)
        if kind is None:
            raise KeyError(f"unknown kind: {name}")
        return kind

    def __contains__(self, name: object) -> bool:
        return name in self._kinds

    def __iter__(self):
        return iter(self._kinds.values())

    def __len__(self) -> int:
        return len(self._kinds)

    def prepare(self, record: Record) -> Record:
        """
        Validate a record for saving and return its normalized form.

        Raises:
            ValidationFailure: With per-attribute messages
        """
        kind = self._kinds.get(record.kind)
        if kind is None:
            raise ValidationFailure.single("kind", f"unknown kind {record.kind!r}")
        attributes, errors = kind.prepare(record)
        if errors:
            raise ValidationFailure(errors)
        return record.evolve_attributes(attributes)


def _coerce_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def parse_schema(data: dict[str, Any]) -> SchemaRegistry:
    """Build a registry from an already-parsed TOML document."""
    registry = SchemaRegistry()
    for kind_name, raw_kind in _coerce_dict(data.get("kinds")).items():
        if not isinstance(raw_kind, dict):
            raise SchemaError(f"kind {kind_name!r} must be a table")

        attributes: list[AttributeDef] = []
        for attr_name, raw_attr in _coerce_dict(raw_kind.get("attributes")).items():
            if isinstance(raw_attr, str):
                raw_attr = {"type": raw_attr}
            if not isinstance(raw_attr, dict):
                raise SchemaError(f"{kind_name}.{attr_name} must be a table or a type name")
            attributes.append(
                AttributeDef(
                    name=str(attr_name),
                    type=str(raw_attr.get("type", "string")).strip(),  # type: ignore[arg-type]
                    cardinality=str(raw_attr.get("cardinality", "single")).strip(),  # type: ignore[arg-type]
                    required=bool(raw_attr.get("required", False)),
                )
            )

        registry.register(
            KindSchema(
                name=str(kind_name),
                attributes=tuple(attributes),
                unknown=str(raw_kind.get("unknown", "reject")).strip(),  # type: ignore[arg-type]
            )
        )
    return registry


def load_schema(path: Path) -> SchemaRegistry:
    """
    Load kind schemas from TOML.

    Raises:
        FileNotFoundError: If the schema file is missing
        SchemaError: If the TOML or its contents are malformed
    """
    if not path.exists():
        raise FileNotFoundError(f"Schema file not found: {path}")

    with open(path, "rb") as f:
        try:
            data = tomllib.load(f)
        except Exception as e:
            raise SchemaError(f"Failed to parse schema TOML: {e}") from e

    return parse_schema(data)
