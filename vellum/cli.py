"""CLI entrypoint for vellum."""

import logging
import sys
from pathlib import Path

import click

from . import __version__


def _configure_logging(level: str) -> None:
    from rich.console import Console
    from rich.logging import RichHandler

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _open_adapters(ctx: click.Context):
    from .config import Adapters
    from .errors import VellumError

    try:
        return Adapters.open(ctx.obj["settings"])
    except (VellumError, FileNotFoundError) as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(__version__, prog_name="vellum")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, dir_okay=False, path_type=Path),
    default=None,
    help="Path to vellum.toml (defaults to the nearest one above the current directory)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, log_level: str) -> None:
    """vellum - records and files behind opaque identifiers.

    Save, find and delete records of declared kinds, follow references
    between them, and attach verified binary files.
    """
    from .config import Settings, find_config, load_settings
    from .errors import SchemaError

    _configure_logging(log_level)
    ctx.ensure_object(dict)

    if config_path is None:
        config_path = find_config(Path.cwd())

    if config_path is None:
        ctx.obj["settings"] = Settings(root=Path.cwd() / ".vellum")
        return

    try:
        ctx.obj["settings"] = load_settings(config_path)
    except FileNotFoundError as e:
        raise click.BadParameter(str(e), param_hint="--config / -c") from e
    except SchemaError as e:
        raise click.ClickException(str(e)) from e


# -----------------------------------------------------------------------------
# Record commands
# -----------------------------------------------------------------------------


@cli.command()
@click.pass_context
def kinds(ctx: click.Context) -> None:
    """List declared record kinds and their attributes."""
    from .commands.record_cmd import run_kinds

    with _open_adapters(ctx) as adapters:
        sys.exit(run_kinds(adapters))


@cli.command()
@click.argument("kind")
@click.option(
    "--attr",
    "-a",
    "assignments",
    multiple=True,
    metavar="NAME=VALUE",
    help="Attribute value; repeat a name to add more values",
)
@click.option("--id", "record_id", default=None, help="Replace the record with this id in full")
@click.option("--json", "output_json", is_flag=True, help="Print the saved record as JSON")
@click.pass_context
def save(
    ctx: click.Context,
    kind: str,
    assignments: tuple[str, ...],
    record_id: str | None,
    output_json: bool,
) -> None:
    """Create a record of KIND, or replace one with --id.

    Examples:

        vellum save Book -a title="Moby Dick" -a author="Herman Melville"

        vellum save Page -a page_number=1 -a book_id=01J9Z...
    """
    from .commands.record_cmd import run_save

    with _open_adapters(ctx) as adapters:
        sys.exit(run_save(adapters, kind, list(assignments), record_id=record_id, output_json=output_json))


@cli.command()
@click.argument("record_id")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def show(ctx: click.Context, record_id: str, output_json: bool) -> None:
    """Show one record."""
    from .commands.record_cmd import run_show

    with _open_adapters(ctx) as adapters:
        sys.exit(run_show(adapters, record_id, output_json=output_json))


@cli.command("list")
@click.option("--kind", "-k", default=None, help="Only records of this kind")
@click.pass_context
def list_records(ctx: click.Context, kind: str | None) -> None:
    """List records."""
    from .commands.record_cmd import run_list

    with _open_adapters(ctx) as adapters:
        sys.exit(run_list(adapters, kind=kind))


@cli.command()
@click.argument("record_id")
@click.pass_context
def delete(ctx: click.Context, record_id: str) -> None:
    """Delete a record. References to it are left dangling."""
    from .commands.record_cmd import run_delete

    with _open_adapters(ctx) as adapters:
        sys.exit(run_delete(adapters, record_id))


@cli.command()
@click.argument("record_id")
@click.argument("attribute")
@click.pass_context
def members(ctx: click.Context, record_id: str, attribute: str) -> None:
    """Resolve ATTRIBUTE of a record to the records it references, in order."""
    from .commands.record_cmd import run_members

    with _open_adapters(ctx) as adapters:
        sys.exit(run_members(adapters, record_id, attribute))


@cli.command("referenced-by")
@click.argument("record_id")
@click.argument("attribute")
@click.option("--kind", "-k", default=None, help="Only referring records of this kind")
@click.pass_context
def referenced_by(ctx: click.Context, record_id: str, attribute: str, kind: str | None) -> None:
    """Find records whose ATTRIBUTE references RECORD_ID.

    Example (pages of a book):

        vellum referenced-by 01J9Z... book_id --kind Page
    """
    from .commands.record_cmd import run_referenced_by

    with _open_adapters(ctx) as adapters:
        sys.exit(run_referenced_by(adapters, record_id, attribute, kind=kind))


@cli.command("import")
@click.argument("directory", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--kind", "-k", required=True, help="Kind of the imported records")
@click.pass_context
def import_records(ctx: click.Context, directory: Path, kind: str) -> None:
    """Import markdown files' frontmatter as records (all or nothing)."""
    from .commands.record_cmd import run_import

    with _open_adapters(ctx) as adapters:
        sys.exit(run_import(adapters, directory, kind))


@cli.command()
@click.pass_context
def compact(ctx: click.Context) -> None:
    """Rewrite the record journal as its current snapshot."""
    from rich.console import Console

    from .metadata import JournalMetadataStore

    with _open_adapters(ctx) as adapters:
        if not isinstance(adapters.metadata, JournalMetadataStore):
            raise click.ClickException("compact requires the journal metadata backend")
        count = adapters.metadata.compact()
        Console(stderr=True).print(f"compacted: {count} record(s)", style="green")


# -----------------------------------------------------------------------------
# File commands
# -----------------------------------------------------------------------------


@cli.group()
def file() -> None:
    """Upload, inspect and verify stored files."""


@file.command("upload")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--owner", "owner_id", required=True, help="Id of the owning record")
@click.option("--attach", "attribute", default=None, help="Append the file id to this attribute of the owner")
@click.option("--json", "output_json", is_flag=True, help="Print the stored file as JSON")
@click.pass_context
def file_upload(
    ctx: click.Context,
    path: Path,
    owner_id: str,
    attribute: str | None,
    output_json: bool,
) -> None:
    """Upload PATH for a record.

    Example:

        vellum file upload scan-001.tif --owner 01J9Z... --attach image_ids
    """
    from .commands.file_cmd import run_file_upload

    with _open_adapters(ctx) as adapters:
        sys.exit(run_file_upload(adapters, path, owner_id, attribute=attribute, output_json=output_json))


@file.command("show")
@click.argument("file_id")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def file_show(ctx: click.Context, file_id: str, output_json: bool) -> None:
    """Show a stored file's descriptor."""
    from .commands.file_cmd import run_file_show

    with _open_adapters(ctx) as adapters:
        sys.exit(run_file_show(adapters, file_id, output_json=output_json))


@file.command("list")
@click.option("--owner", "owner_id", default=None, help="Only files owned by this record")
@click.pass_context
def file_list(ctx: click.Context, owner_id: str | None) -> None:
    """List stored files."""
    from .commands.file_cmd import run_file_list

    with _open_adapters(ctx) as adapters:
        sys.exit(run_file_list(adapters, owner_id=owner_id))


@file.command("verify")
@click.argument("file_id")
@click.option("--size", type=int, default=None, help="Expected size in bytes")
@click.option("--md5", default=None, help="Expected MD5 hex digest")
@click.option("--sha1", default=None, help="Expected SHA-1 hex digest")
@click.option("--sha256", default=None, help="Expected SHA-256 hex digest")
@click.pass_context
def file_verify(
    ctx: click.Context,
    file_id: str,
    size: int | None,
    md5: str | None,
    sha1: str | None,
    sha256: str | None,
) -> None:
    """Check a stored file against expected size and digests.

    Exits 0 when every given expectation matches, 1 otherwise.

    Example:

        vellum file verify disk://01J9Z... --size 131765 --md5 512662d26090afe25bd69fdf5926c2f6
    """
    from .commands.file_cmd import run_file_verify

    digests = {"md5": md5, "sha1": sha1, "sha256": sha256}
    with _open_adapters(ctx) as adapters:
        sys.exit(run_file_verify(adapters, file_id, size=size, digests=digests))


@file.command("delete")
@click.argument("file_id")
@click.pass_context
def file_delete(ctx: click.Context, file_id: str) -> None:
    """Delete a stored file. The owner's attributes are not touched."""
    from .commands.file_cmd import run_file_delete

    with _open_adapters(ctx) as adapters:
        sys.exit(run_file_delete(adapters, file_id))


def main() -> None:
    """Main entrypoint."""
    cli()


if __name__ == "__main__":
    main()
