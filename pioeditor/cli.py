# pioeditor/cli.py
"""
pioeditor CLI -- Click commands with a rich terminal UI.

Provides the ``pioeditor`` console entry-point declared in pyproject.toml as
``pioeditor.cli:cli``:

- inspect:        import a PIO and show its resources, read errors and exclusions
- export:         import a PIO and write it back out (round-trip)
- validate-path:  check addressable paths against the schema table
- schema:         list resource types / show the paths of one type
- config:         PioEditorConfig display
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape as _esc

from . import __version__
from . import cli_theme as theme
from .config import get_config
from .document import PioDocument, PioError
from .primitives import UuidValue, is_valid_uuid
from .utils.logging import get_logger, setup_logging

console = Console()
logger = get_logger("cli")


def _print_version(
    ctx: click.Context,
    _param: click.Parameter,
    value: bool,
) -> None:
    if not value or ctx.resilient_parsing:
        return
    theme.print_version(__version__, console)
    ctx.exit()


def _open_document(path: Path) -> PioDocument:
    """Import ``path``; import failures become ``click.ClickException``."""
    logger.info(f"Opening PIO {path}")
    try:
        return PioDocument.from_file(path)
    except PioError as exc:
        logger.error(f"Import of {path} failed: {exc}")
        raise click.ClickException(str(exc)) from exc


# ---------------------------------------------------------------------------
# Main CLI group
# ---------------------------------------------------------------------------


@click.group(invoke_without_command=True)
@click.option(
    "--version",
    is_flag=True,
    callback=_print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
@click.option("--verbose", "-v", is_flag=True, help="Also log to stderr.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """pioeditor -- read, inspect and write PIO Überleitungsbogen documents."""
    if ctx.invoked_subcommand is None:
        theme.print_banner(__version__, console)
        click.echo(ctx.get_help())
        return
    cfg = get_config()
    setup_logging(level=cfg.log_level, console_output=verbose)


# ---------------------------------------------------------------------------
# inspect
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--limit", default=20, show_default=True, help="Maximum rows per issue table.")
def inspect(file: Path, limit: int) -> None:
    """Import a PIO and show its resources, read errors and exclusions.

    \b
    Examples:
      pioeditor inspect ueberleitungsbogen.xml
    """
    document = _open_document(file)
    summary = document.summary()

    theme.section("Document", console, "01")
    t = theme.make_kv_table()
    t.add_row("file", str(file))
    t.add_row("resources", str(summary["resources"]))
    t.add_row("authors", str(summary["authors"]))
    t.add_row("given devices", str(summary["given_devices"]))
    header = document.header
    t.add_row(
        "receiving institution",
        header.receiving_institution if header.has_receiving_institution else "[dim]not set[/dim]",
    )
    console.print(t)

    theme.section("Resources", console, "02")
    t = theme.make_table()
    t.add_column("UUID", no_wrap=True)
    t.add_column("Resource type", style=theme.GREIGE)
    for uuid, resource_type in document.all_uuids().items():
        t.add_row(uuid, resource_type)
    console.print(t)

    theme.section("Read errors", console, "03")
    if document.read_errors:
        t = theme.make_table()
        t.add_column("Path")
        t.add_column("Message", style=theme.MUTED)
        t.add_column("Data")
        for issue in document.read_errors[:limit]:
            t.add_row(_esc(issue.path), issue.message, _esc(str(issue.data)))
        console.print(t)
        if len(document.read_errors) > limit:
            console.print(theme.info(f"{len(document.read_errors) - limit} more not shown"))
    else:
        console.print(theme.ok("No read errors"))

    theme.section("PIO Small exclusions", console, "04")
    if document.exclusions:
        t = theme.make_table()
        t.add_column("Resource type")
        t.add_column("UUID", no_wrap=True)
        t.add_column("Excluded paths", justify="right")
        for resource_type, by_uuid in document.exclusions.items():
            for uuid, paths in by_uuid.items():
                t.add_row(resource_type, uuid, str(len(paths)))
        console.print(t)
        console.print(theme.warn(f"{document.exclusion_count} value(s) will not be exported"))
    else:
        console.print(theme.ok("No exclusions"))


# ---------------------------------------------------------------------------
# export
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="File to write the exported XML to.",
)
@click.option("--author", "authors", multiple=True, help="Author UUID to add (repeatable).")
@click.option("--receiving-institution", default=None, help="Receiving institution UUID.")
def export(file: Path, output: Path, authors: tuple[str, ...], receiving_institution: Optional[str]) -> None:
    """Import a PIO and export it again as FHIR XML.

    Summary resources, the Composition and the Bundle header are regenerated.

    \b
    Examples:
      pioeditor export in.xml -o out.xml
      pioeditor export in.xml -o out.xml --author 0b7e...
    """
    for uuid in (*authors, receiving_institution):
        if uuid is not None and not is_valid_uuid(uuid.split(":")[-1]):
            raise click.BadParameter(f"{uuid!r} is not a UUID")

    document = _open_document(file)
    for uuid in authors:
        document.header.add_author(UuidValue.parse(uuid))
    if receiving_institution:
        document.header.set_receiving_institution(UuidValue.parse(receiving_institution))

    try:
        xml_text = document.to_xml()
    except PioError as exc:
        logger.error(f"Export of {file} failed: {exc}")
        raise click.ClickException(str(exc)) from exc

    output.write_text(xml_text, encoding="utf-8")
    console.print(theme.ok(f"Exported {len(document.all_uuids())} resource(s) to {output}"))
    if document.exclusion_count:
        console.print(theme.warn(f"{document.exclusion_count} value(s) outside PIO Small were dropped"))


# ---------------------------------------------------------------------------
# validate-path
# ---------------------------------------------------------------------------


@cli.command("validate-path")
@click.argument("paths", nargs=-1, required=True)
@click.pass_context
def validate_path(ctx: click.Context, paths: tuple[str, ...]) -> None:
    """Check UUID-qualified paths against the schema table.

    Exits with status 1 if any path is invalid.

    \b
    Examples:
      pioeditor validate-path 1d6f....KBV_PR_MIO_ULB_Patient.gender
    """
    from .document.validator import PathValidator

    validator = PathValidator()
    t = theme.make_table()
    t.add_column("Path")
    t.add_column("Status", justify="center")
    invalid = 0
    for path in paths:
        valid = validator.is_valid(path)
        invalid += not valid
        t.add_row(_esc(path), theme.badge("VALID", "ok") if valid else theme.badge("INVALID", "error"))
    console.print(t)
    if invalid:
        console.print(theme.err(f"{invalid} of {len(paths)} path(s) invalid"))
        ctx.exit(1)
    console.print(theme.ok(f"All {len(paths)} path(s) valid"))


# ---------------------------------------------------------------------------
# schema
# ---------------------------------------------------------------------------


@cli.group()
def schema() -> None:
    """Inspect the resource schema tables."""


@schema.command("list")
def schema_list() -> None:
    """List the resource types of the schema table."""
    from .schemas.table import get_reduced_table, get_schema_table

    table = get_schema_table()
    reduced = get_reduced_table()

    theme.section("Resource types", console)
    t = theme.make_table()
    t.add_column("Name", style=f"bold {theme.CORAL}", no_wrap=True)
    t.add_column("FHIR type", style=theme.GREIGE)
    t.add_column("Paths", justify="right")
    t.add_column("PIO Small", justify="center")
    for name in table.names():
        resource = table.get(name)
        t.add_row(
            name,
            resource.fhir_resource_type or "-",
            str(len(resource.paths)),
            "yes" if name in reduced else "[dim]no[/dim]",
        )
    console.print(t)
    console.print(theme.info(f"{len(table)} resource type(s)"))


@schema.command("show")
@click.argument("name")
@click.option("--reduced", is_flag=True, help="Show the PIO Small paths instead.")
def schema_show(name: str, reduced: bool) -> None:
    """Show the paths of one resource type."""
    from .schemas.table import get_reduced_table, get_schema_table

    table = get_reduced_table() if reduced else get_schema_table()
    resource = table.get(name)
    if resource is None:
        raise click.ClickException(f"Unknown resource type {name!r}")

    theme.section(name, console, uppercase=False)
    t = theme.make_kv_table()
    t.add_row("fhir type", resource.fhir_resource_type or "-")
    t.add_row("profile", resource.profile or "-")
    console.print(t)

    t = theme.make_table()
    t.add_column("Path")
    t.add_column("Type", style=theme.GREIGE)
    t.add_column("Fixed value", style=theme.MUTED)
    for schema_path in resource.paths:
        t.add_row(_esc(schema_path.path), schema_path.type_name or "-", _esc(schema_path.fixed_value or ""))
    console.print(t)


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


@cli.group()
def config() -> None:
    """View configuration."""


@config.command("show")
def config_show() -> None:
    """Show current configuration."""
    cfg = get_config()

    theme.section("Paths", console, "01")
    t = theme.make_kv_table()
    t.add_row("home_dir", str(cfg.home_dir))
    t.add_row("log_dir", str(cfg.log_dir))
    t.add_row("log_level", cfg.log_level)
    console.print(t)

    theme.section("Schema tables", console, "02")
    t = theme.make_kv_table()
    for key in ("schema_table_path", "reduced_table_path", "section_table_path"):
        value = getattr(cfg, key)
        t.add_row(key, str(value) if value else "[dim]bundled[/dim]")
    console.print(t)

    theme.section("XML", console, "03")
    t = theme.make_kv_table()
    t.add_row("array_tags", ", ".join(cfg.array_tags))
    t.add_row("indent", repr(cfg.indent))
    console.print(t)
