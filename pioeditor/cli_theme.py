# pioeditor/cli_theme.py
"""Terminal theme for the pioeditor CLI.

Coral & greige palette:
  - Numbered section headers ("01 · SECTION NAME")
  - Rounded tables with greige borders
  - Status lines and badges
"""

from __future__ import annotations

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

# ── Brand ─────────────────────────────────────────────────────────

BRAND = "P I O   E D I T O R"
TAGLINE = "Pflegeinformationsobjekt Überleitungsbogen · FHIR XML"

# ── Palette ───────────────────────────────────────────────────────

CORAL = "#E87461"
GREIGE = "#B5A89A"
MUTED = "dim"


def print_banner(version: str, console: Console) -> None:
    console.print()
    console.print(f"  [bold {CORAL}]{BRAND}[/bold {CORAL}]")
    console.print(f"  [{GREIGE}]{TAGLINE}[/{GREIGE}]")
    console.print(f"  [{MUTED}]v{version}[/{MUTED}]")
    console.print()


def print_version(version: str, console: Console) -> None:
    """Print a compact branded version line."""
    t = Text()
    t.append(BRAND, style=f"bold {CORAL}")
    t.append(f"  v{version}", style=MUTED)
    console.print(t)


# ── Section headers ──────────────────────────────────────────────


def section(
    title: str,
    console: Console,
    number: str | None = None,
    uppercase: bool = True,
) -> None:
    """Print a numbered section header followed by a greige rule."""
    console.print()
    t = Text()
    if number:
        t.append(f"  {number}", style=f"bold {CORAL}")
        t.append(" · ", style=MUTED)
    else:
        t.append("  ", style="")
    t.append(title.upper() if uppercase else title, style="bold")
    console.print(t)
    console.print(f"  {'─' * len(TAGLINE)}", style=GREIGE)


# ── Tables ───────────────────────────────────────────────────────


def make_table(title: str | None = None, **kwargs: object) -> Table:
    return Table(
        title=title,
        box=box.ROUNDED,
        border_style=GREIGE,
        title_style=f"bold {CORAL}",
        header_style="bold",
        padding=(0, 1),
        **kwargs,
    )


def make_kv_table() -> Table:
    """Headerless two-column key/value table."""
    t = make_table(show_header=False)
    t.add_column("Key", style=f"bold {CORAL}", no_wrap=True)
    t.add_column("Value")
    return t


def badge(label: str, variant: str = "default") -> str:
    """Rich markup for a filled status badge."""
    colors = {"default": CORAL, "ok": "green", "warn": "yellow", "error": "red"}
    c = colors.get(variant, CORAL)
    return f"[reverse {c}] {label} [/reverse {c}]"


# ── Status lines ─────────────────────────────────────────────────


def info(msg: str) -> str:
    return f"  [{CORAL}]›[/{CORAL}] [{MUTED}]{msg}[/{MUTED}]"


def ok(msg: str) -> str:
    return f"  [bold green]✓[/bold green] {msg}"


def warn(msg: str) -> str:
    return f"  [bold yellow]![/bold yellow] [yellow]{msg}[/yellow]"


def err(msg: str) -> str:
    return f"  [bold red]✗[/bold red] {msg}"
