"""stash2d CLI — Typer + Rich terminal interface.

Commands: save, apply, show, config.
Every stash2d error is reported on one red line and exits with status 1.
"""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from stash2d import __version__
from stash2d.apply.engine import SnapshotApplier, open_stash
from stash2d.errors import Stash2dError
from stash2d.save.writer import SnapshotWriter
from stash2d.schemas.stash import (
    ApplyResult,
    ChangeKind,
    MergeOutcome,
    SaveResult,
    StashConfig,
)
from stash2d.settings import DEFAULTS_FILE, load_config
from stash2d.vcs.git import GitBackend

console = Console()
err_console = Console(stderr=True)

# ── App and sub-apps ─────────────────────────────────────────────

app = typer.Typer(
    name="stash2d",
    help="Save the change between two revisions as Baseline/Code snapshots and merge it back later.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    name="config",
    help="Show stash2d configuration.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


# ── Version callback ───────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"stash2d {__version__}")
        raise typer.Exit()


def _configure_logging(verbosity: int) -> None:
    """WARNING by default, INFO with -v, DEBUG with -vv."""
    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=err_console, show_path=False, show_time=False)],
        force=True,
    )


# ── App Callback ────────────────────────────────────────────────


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: int = typer.Option(
        0, "--verbose", "-v",
        count=True,
        help="Increase log verbosity (-v info, -vv debug).",
    ),
    config_file: Path = typer.Option(
        None, "--config",
        help="TOML file overriding the bundled defaults.",
    ),
) -> None:
    """Portable two-tree stashes applied with a real three-way merge."""
    _configure_logging(verbose)
    ctx.obj = config_file


# ── Helpers ──────────────────────────────────────────────────────


def _load_config(ctx: typer.Context) -> StashConfig:
    """Load configuration, exit on error."""
    try:
        return load_config(ctx.obj)
    except Stash2dError as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from None


_KIND_LABELS = {
    ChangeKind.ADDED: Text("+ ADD", style="bold green"),
    ChangeKind.DELETED: Text("- DEL", style="bold red"),
    ChangeKind.MODIFIED: Text("* MOD", style="bold yellow"),
}


def _display_save_result(result: SaveResult) -> None:
    changes = result.changes
    if result.swapped:
        console.print(
            "  [yellow]Note:[/yellow] revisions were given newest-first; "
            f"using {result.baseline_revision} as baseline"
        )
    console.print(Panel(
        f"[bold]Baseline:[/bold] {result.baseline_revision}\n"
        f"[bold]Code:[/bold] {result.code_revision}\n"
        f"[bold]Subtree:[/bold] {result.subtree or '(whole tree)'}\n"
        f"[bold]Changes:[/bold] {len(changes.added)} added, "
        f"{len(changes.deleted)} deleted, {len(changes.modified)} modified",
        title="stash2d save",
        border_style="blue",
    ))
    console.print(f"  [green]Stash:[/green] {result.stash_path}")


def _display_apply_result(result: ApplyResult) -> None:
    if result.outcome == MergeOutcome.CLEAN:
        console.print("  [green]Merged cleanly.[/green]")
    else:
        console.print("  [yellow]Conflicts exist, resolve them manually:[/yellow]")
        for path in result.conflicts:
            console.print(f"    [yellow]![/yellow] {path}")

    if result.cleanup_error:
        console.print(
            f"  [yellow]Warning:[/yellow] temporary repository not removed: "
            f"{result.cleanup_error}"
        )


# ── stash2d save ────────────────────────────────────────────────


@app.command()
def save(
    ctx: typer.Context,
    baseline: str = typer.Argument(..., help="Baseline revision (ancestor)"),
    code: str = typer.Argument(..., help="Code revision (descendant)"),
    destination: Path = typer.Argument(..., help="Directory the stash is created in"),
    subtree: str = typer.Argument(None, help="Restrict to this path inside the tree"),
    repo: Path = typer.Option(
        Path("."), "--repo", "-C",
        help="Working tree of the repository to read from.",
    ),
) -> None:
    """Save the change between two revisions as a stash."""
    config = _load_config(ctx)
    console.print("[dim]saving...[/dim]")

    writer = SnapshotWriter(GitBackend(repo, config), config)
    try:
        result = writer.save(baseline, code, destination, subtree)
    except Stash2dError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    _display_save_result(result)
    console.print("done.")


# ── stash2d apply ───────────────────────────────────────────────


@app.command()
def apply(
    ctx: typer.Context,
    stash: Path = typer.Argument(..., help="Stash directory created by save"),
    subtree: str = typer.Argument(None, help="Subtree path used when saving"),
    repo: Path = typer.Option(
        Path("."), "--repo", "-C",
        help="Working tree to merge the stash into.",
    ),
) -> None:
    """Merge a stash onto the working tree."""
    config = _load_config(ctx)
    console.print("[dim]applying...[/dim]")

    applier = SnapshotApplier(GitBackend(repo, config), config, repo)
    try:
        result = applier.apply(stash, subtree)
    except Stash2dError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    _display_apply_result(result)
    console.print("done.")


# ── stash2d show ────────────────────────────────────────────────


@app.command()
def show(
    ctx: typer.Context,
    stash: Path = typer.Argument(..., help="Stash directory created by save"),
) -> None:
    """List what applying a stash would add, delete or modify."""
    config = _load_config(ctx)
    try:
        layout = open_stash(stash, config)
    except Stash2dError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    entries = layout.entries()
    if not entries:
        console.print("[dim]Empty stash. Applying it changes nothing.[/dim]")
        return

    table = Table(title=str(layout.root))
    table.add_column("Action", width=8)
    table.add_column("File", style="cyan")
    for entry in entries:
        table.add_row(_KIND_LABELS[entry.kind], entry.path)
    console.print(table)


# ── stash2d config ──────────────────────────────────────────────


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration."""
    config = _load_config(ctx)

    table = Table(title="stash2d configuration")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in config.model_dump().items():
        table.add_row(key, str(value))
    console.print(table)


@config_app.command("path")
def config_path() -> None:
    """Print the path of the bundled defaults file."""
    console.print(str(DEFAULTS_FILE))


# ── Entry point ─────────────────────────────────────────────────


def run(argv: list[str] | None = None) -> int:
    """Console-script entry point.

    Usage errors exit with status 1 like every other failure, instead of
    click's status 2.
    """
    try:
        app(args=argv, prog_name="stash2d")
    except SystemExit as e:
        if e.code is None:
            return 0
        if not isinstance(e.code, int):
            return 1
        return 1 if e.code == 2 else e.code
    return 0


if __name__ == "__main__":
    raise SystemExit(run())
