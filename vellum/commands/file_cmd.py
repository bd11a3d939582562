"""Stored-file CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..config import Adapters
from ..content import StoredFile
from ..errors import ValidationFailure, VellumError


def _print_error(message: str) -> None:
    Console(stderr=True).print(message, style="bold red")


def _files_table(title: str, files: list[StoredFile]) -> Table:
    table = Table(title=title)
    table.add_column("id", style="cyan", no_wrap=True)
    table.add_column("filename")
    table.add_column("bytes", justify="right")
    table.add_column("owner", style="magenta")
    table.add_column("sha256", style="dim")
    for f in files:
        sha256 = f.digests.get("sha256", "")
        table.add_row(
            f.id.value,
            f.original_filename,
            str(f.size),
            f.owner_id.value,
            (sha256[:12] + "…") if sha256 else "",
        )
    return table


def run_file_upload(
    adapters: Adapters,
    path: Path,
    owner_id: str,
    *,
    attribute: str | None = None,
    output_json: bool = False,
) -> int:
    """
    Upload a file for a record.

    With `attribute`, the new file id is appended to that attribute of the
    owner and the owner is re-saved; otherwise the caller links it.
    """
    err = Console(stderr=True)
    try:
        owner = adapters.metadata.find_by(owner_id)
        if owner is None:
            _print_error(f"Record not found: {owner_id}")
            return 1

        with path.open("rb") as f:
            stored = adapters.content.upload(f, path.name, owner)

        if attribute is not None:
            try:
                adapters.metadata.save(owner.evolve(**{attribute: [*owner.get(attribute), stored.id]}))
            except VellumError:
                # The owner could not be linked; do not leave an orphaned upload.
                adapters.content.delete(stored.id)
                raise
    except ValidationFailure as e:
        err.print("validation failed:", style="bold red")
        for name, messages in sorted(e.errors.items()):
            for message in messages:
                err.print(f"  {name} {message}", style="red")
        return 1
    except (VellumError, OSError) as e:
        _print_error(str(e))
        return 1

    if output_json:
        print(json.dumps(stored.to_dict(), indent=2, sort_keys=True))
    else:
        err.print(f"uploaded: {stored.id} ({stored.size} bytes)", style="green")
    return 0


def run_file_show(adapters: Adapters, file_id: str, *, output_json: bool = False) -> int:
    try:
        stored = adapters.content.find_by(file_id)
    except VellumError as e:
        _print_error(str(e))
        return 1
    if stored is None:
        _print_error(f"File not found: {file_id}")
        return 1

    if output_json:
        print(json.dumps(stored.to_dict(), indent=2, sort_keys=True))
        return 0

    console = Console()
    console.print(f"[cyan]{stored.id}[/cyan]  {stored.original_filename}")
    console.print(f"  size: {stored.size}")
    console.print(f"  owner: {stored.owner_id}")
    for name, value in sorted(stored.digests.items()):
        console.print(f"  {name}: {value}")
    console.print(f"  created: {stored.created_at.isoformat()}", style="dim")
    return 0


def run_file_list(adapters: Adapters, *, owner_id: str | None = None) -> int:
    try:
        files = adapters.content.find_by_owner(owner_id) if owner_id else list(adapters.content.find_all())
    except VellumError as e:
        _print_error(str(e))
        return 1
    Console().print(_files_table("Files", files))
    return 0


def run_file_verify(
    adapters: Adapters,
    file_id: str,
    *,
    size: int | None = None,
    digests: dict[str, str] | None = None,
) -> int:
    """Exit 0 when every given expectation matches, 1 otherwise."""
    console = Console()
    stored = adapters.content.find_by(file_id)
    if stored is None:
        _print_error(f"File not found: {file_id}")
        return 1

    expected = {k: v for k, v in (digests or {}).items() if v}
    if stored.valid(size=size, digests=expected):
        console.print(f"{file_id}: valid", style="green")
        return 0
    console.print(f"{file_id}: mismatch", style="bold red")
    return 1


def run_file_delete(adapters: Adapters, file_id: str) -> int:
    try:
        removed = adapters.content.delete(file_id)
    except VellumError as e:
        _print_error(str(e))
        return 1
    if not removed:
        _print_error(f"File not found: {file_id}")
        return 1
    Console(stderr=True).print(f"deleted: {file_id}", style="green")
    return 0
