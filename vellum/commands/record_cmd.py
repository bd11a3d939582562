"""Record CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import frontmatter
import yaml
from rich.console import Console
from rich.table import Table

from ..config import Adapters
from ..errors import ValidationFailure, VellumError
from ..ids import Identifier
from ..record import Record
from ..schema import KindSchema


def _print_error(message: str) -> None:
    Console(stderr=True).print(message, style="bold red")


def _print_validation(failure: ValidationFailure) -> None:
    err = Console(stderr=True)
    err.print("validation failed:", style="bold red")
    for name, messages in sorted(failure.errors.items()):
        for message in messages:
            err.print(f"  {name} {message}", style="red", markup=False)


def _format_value(value: Any) -> str:
    if isinstance(value, Identifier):
        return value.value
    return str(value)


def _summary(record: Record, limit: int = 3) -> str:
    parts: list[str] = []
    for name, values in record.attributes.items():
        if values:
            parts.append(f"{name}={', '.join(_format_value(v) for v in values)}")
        if len(parts) >= limit:
            break
    return "  ".join(parts)


def _records_table(title: str, records: list[Record]) -> Table:
    table = Table(title=title)
    table.add_column("id", style="cyan", no_wrap=True)
    table.add_column("kind", style="magenta")
    table.add_column("attributes")
    table.add_column("updated", style="dim")
    for r in records:
        table.add_row(
            r.id.value if r.id else "",
            r.kind,
            _summary(r),
            r.updated_at.isoformat(timespec="seconds") if r.updated_at else "",
        )
    return table


def parse_assignments(kind: KindSchema, assignments: list[str]) -> dict[str, Any]:
    """
    Parse NAME=VALUE pairs into build() keyword values.

    Repeating a name adds values in order. Values are parsed according to
    the declared attribute type; undeclared names are passed through as
    text so the kind's unknown-attribute policy decides.

    Raises:
        ValidationFailure: For malformed pairs or unparseable values
    """
    collected: dict[str, list[Any]] = {}
    errors: dict[str, list[str]] = {}
    for item in assignments:
        name, sep, text = item.partition("=")
        name = name.strip()
        if not sep or not name:
            errors.setdefault(item, []).append("must look like NAME=VALUE")
            continue
        attr = kind.attribute(name)
        try:
            value = attr.parse_text(text) if attr else text
        except ValueError as e:
            errors.setdefault(name, []).append(str(e))
            continue
        collected.setdefault(name, []).append(value)

    if errors:
        raise ValidationFailure(errors)

    values: dict[str, Any] = {}
    for name, items in collected.items():
        attr = kind.attribute(name)
        values[name] = items if (attr is None or attr.multi or len(items) > 1) else items[0]
    return values


def run_kinds(adapters: Adapters) -> int:
    console = Console()
    if not len(adapters.registry):
        console.print("No kinds declared.", style="yellow")
        return 0

    table = Table(title="Kinds")
    table.add_column("kind", style="magenta")
    table.add_column("attribute", style="cyan")
    table.add_column("type")
    table.add_column("cardinality")
    table.add_column("required")
    for kind in adapters.registry:
        for i, attr in enumerate(kind.attributes):
            table.add_row(
                kind.name if i == 0 else "",
                attr.name,
                attr.type,
                attr.cardinality,
                "yes" if attr.required else "",
            )
    console.print(table)
    return 0


def run_save(
    adapters: Adapters,
    kind_name: str,
    assignments: list[str],
    *,
    record_id: str | None = None,
    output_json: bool = False,
) -> int:
    kind = adapters.registry.get(kind_name)
    if kind is None:
        _print_error(f"Unknown kind: {kind_name}")
        return 1

    try:
        record = kind.build(**parse_assignments(kind, assignments))
        if record_id is not None:
            existing = adapters.metadata.find_by(record_id)
            if existing is None:
                _print_error(f"Record not found: {record_id}")
                return 1
            record = record.with_identity(
                existing.id,  # type: ignore[arg-type]
                created_at=existing.created_at,  # type: ignore[arg-type]
                updated_at=existing.updated_at,  # type: ignore[arg-type]
            )
        saved = adapters.metadata.save(record)
    except ValidationFailure as e:
        _print_validation(e)
        return 1
    except VellumError as e:
        _print_error(str(e))
        return 1

    if output_json:
        print(json.dumps(saved.to_dict(), indent=2, sort_keys=True))
    else:
        Console(stderr=True).print(f"saved: {saved.id}", style="green")
    return 0


def run_show(adapters: Adapters, record_id: str, *, output_json: bool = False) -> int:
    try:
        record = adapters.metadata.find_by(record_id)
    except VellumError as e:
        _print_error(str(e))
        return 1
    if record is None:
        _print_error(f"Record not found: {record_id}")
        return 1

    if output_json:
        print(json.dumps(record.to_dict(), indent=2, sort_keys=True))
        return 0

    console = Console()
    console.print(f"[cyan]{record.id}[/cyan]  [magenta]{record.kind}[/magenta]")
    for name, values in record.attributes.items():
        console.print(f"  {name}: {', '.join(_format_value(v) for v in values)}")
    if record.created_at:
        console.print(f"  created: {record.created_at.isoformat()}", style="dim")
    if record.updated_at:
        console.print(f"  updated: {record.updated_at.isoformat()}", style="dim")
    return 0


def run_list(adapters: Adapters, *, kind: str | None = None) -> int:
    records = list(adapters.metadata.find_all_of_kind(kind) if kind else adapters.metadata.find_all())
    Console().print(_records_table("Records", records))
    return 0


def run_delete(adapters: Adapters, record_id: str) -> int:
    try:
        removed = adapters.metadata.delete(record_id)
    except VellumError as e:
        _print_error(str(e))
        return 1
    if removed is None:
        _print_error(f"Record not found: {record_id}")
        return 1
    Console(stderr=True).print(f"deleted: {record_id}", style="green")
    return 0


def run_members(adapters: Adapters, record_id: str, attribute: str) -> int:
    try:
        record = adapters.metadata.find_by(record_id)
    except VellumError as e:
        _print_error(str(e))
        return 1
    if record is None:
        _print_error(f"Record not found: {record_id}")
        return 1

    members = adapters.references.members(record, attribute)
    Console().print(_records_table(f"{attribute} of {record_id}", members))
    dangling = adapters.references.dangling(record, attribute)
    if dangling:
        Console(stderr=True).print(
            f"{len(dangling)} dangling reference(s): {', '.join(i.value for i in dangling)}",
            style="yellow",
        )
    return 0


def run_referenced_by(
    adapters: Adapters,
    record_id: str,
    attribute: str,
    *,
    kind: str | None = None,
) -> int:
    try:
        target = Identifier.coerce(record_id)
    except VellumError as e:
        _print_error(str(e))
        return 1

    found = adapters.metadata.find_inverse_references(target, attribute)
    if kind is not None:
        found = [r for r in found if r.kind == kind]
    Console().print(_records_table(f"records referencing {record_id} via {attribute}", found))
    return 0


def load_frontmatter_records(kind: KindSchema, directory: Path) -> list[Record]:
    """
    Build records from the YAML frontmatter of markdown files.

    If the kind declares a ``body`` attribute, the markdown body fills it.

    Raises:
        ValidationFailure: Keys are prefixed with the file name
    """
    records: list[Record] = []
    errors: dict[str, list[str]] = {}
    for path in sorted(directory.glob("*.md")):
        try:
            post = frontmatter.load(path)
        except (yaml.YAMLError, UnicodeDecodeError) as e:
            errors.setdefault(path.name, []).append(f"has unreadable frontmatter: {e}")
            continue
        values = dict(post.metadata)
        if kind.attribute("body") is not None and "body" not in values:
            values["body"] = post.content
        try:
            record = kind.build(**values)
        except ValidationFailure as e:
            problems = e.errors
        else:
            _, problems = kind.prepare(record)
            records.append(record)
        for name, messages in problems.items():
            errors.setdefault(f"{path.name}:{name}", []).extend(messages)
    if errors:
        raise ValidationFailure(errors)
    return records


def run_import(adapters: Adapters, directory: Path, kind_name: str) -> int:
    kind = adapters.registry.get(kind_name)
    if kind is None:
        _print_error(f"Unknown kind: {kind_name}")
        return 1

    try:
        records = load_frontmatter_records(kind, directory)
        saved = adapters.metadata.save_all(records)
    except ValidationFailure as e:
        _print_validation(e)
        return 1
    except (VellumError, OSError) as e:
        _print_error(str(e))
        return 1

    Console(stderr=True).print(f"imported {len(saved)} {kind_name} record(s)", style="green")
    return 0
