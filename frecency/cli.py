"""frecency CLI: record uses and inspect rankings in a store file."""

from __future__ import annotations

import json
import logging
from typing import Any

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from frecency.config import FrecencyConfig, loadConfig
from frecency.errors import FrecencyError
from frecency.store import FrecencyStore, currentTimestamp
from frecency.suggested import suggestedItems, trackUse

_cli = typer.Typer(
    name="frecency",
    help="Rank items by frequency and recency of use.",
    no_args_is_help=True,
)

_console = Console()

_FORMAT_HELP = "Output format: human|json"


def _checkFormat(format: str) -> None:
    if format not in ("human", "json"):
        raise typer.BadParameter(f"Invalid format {format!r}; choose human or json")


def _storePath(cfg: FrecencyConfig, store: str | None) -> str:
    return store or cfg.store_path


def _fail(format: str, message: str) -> typer.Exit:
    if format == "json":
        print(json.dumps({"ok": False, "error": message}))
    else:
        _console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(1)


def _renderRanked(title: str, items: list[tuple[str, float]]) -> None:
    if not items:
        _console.print(f"[dim]{title}: nothing recorded yet[/dim]")
        return
    t = Table(title=title, box=box.SIMPLE, show_header=True)
    t.add_column("#", justify="right", style="dim")
    t.add_column("Key", style="bold")
    t.add_column("Score", justify="right")
    for i, (key, score) in enumerate(items, 1):
        t.add_row(str(i), key, f"{score:.3f}")
    _console.print(t)


def _rankedJson(items: list[tuple[str, float]]) -> list[dict[str, Any]]:
    return [{"key": k, "score": s} for k, s in items]


@_cli.callback()
def _default(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s | %(message)s",
    )


@_cli.command()
def record(
    key: str = typer.Argument(help="Item key, e.g. a script path"),
    store: str | None = typer.Option(None, "--store", help="Store file (default from config)"),
    format: str = typer.Option("human", "--format", "-f", help=_FORMAT_HELP),
) -> None:
    """Record one use of KEY and save the store."""
    _checkFormat(format)
    cfg = loadConfig()
    path = _storePath(cfg, store)
    s = FrecencyStore.load(path, cfg)
    now = currentTimestamp()
    try:
        recorded = trackUse(s, key, cfg.suggested, now)
        if recorded:
            s.save(path)
    except FrecencyError as e:
        raise _fail(format, str(e)) from e
    score = s.scoreOf(key, now)
    if format == "json":
        print(json.dumps({"ok": True, "key": key, "recorded": recorded, "score": score}))
    elif recorded:
        _console.print(f"[green]Recorded[/green] {key} (score {score:.3f})")
    else:
        _console.print(f"[yellow]Skipped[/yellow] {key} (tracking off or excluded)")


@_cli.command()
def top(
    limit: int = typer.Option(10, "--limit", "-n", min=0, help="Max items to show"),
    store: str | None = typer.Option(None, "--store", help="Store file (default from config)"),
    format: str = typer.Option("human", "--format", "-f", help=_FORMAT_HELP),
) -> None:
    """Show the highest-ranked items."""
    _checkFormat(format)
    cfg = loadConfig()
    items = FrecencyStore.load(_storePath(cfg, store), cfg).ranked(limit=limit)
    if format == "json":
        print(json.dumps(_rankedJson(items)))
    else:
        _renderRanked("Top", items)


@_cli.command()
def suggested(
    store: str | None = typer.Option(None, "--store", help="Store file (default from config)"),
    format: str = typer.Option("human", "--format", "-f", help=_FORMAT_HELP),
) -> None:
    """Show the Suggested section (min score, exclusions, max items applied)."""
    _checkFormat(format)
    cfg = loadConfig()
    items = suggestedItems(FrecencyStore.load(_storePath(cfg, store), cfg), cfg.suggested)
    if format == "json":
        print(json.dumps(_rankedJson(items)))
    else:
        _renderRanked("Suggested", items)


@_cli.command()
def score(
    key: str = typer.Argument(help="Item key"),
    store: str | None = typer.Option(None, "--store", help="Store file (default from config)"),
    format: str = typer.Option("human", "--format", "-f", help=_FORMAT_HELP),
) -> None:
    """Show the current score of KEY."""
    _checkFormat(format)
    cfg = loadConfig()
    s = FrecencyStore.load(_storePath(cfg, store), cfg)
    value = s.scoreOf(key)
    if value is None:
        raise _fail(format, f"Key not found: {key}")
    entry = s.get(key)
    if format == "json":
        print(json.dumps({"key": key, "score": value, **entry.model_dump(exclude={"key"})}))
    else:
        _console.print(f"[bold]{key}[/bold] = {value:.3f}  [dim]({entry.count} uses)[/dim]")


@_cli.command()
def forget(
    key: str = typer.Argument(help="Item key"),
    store: str | None = typer.Option(None, "--store", help="Store file (default from config)"),
    format: str = typer.Option("human", "--format", "-f", help=_FORMAT_HELP),
) -> None:
    """Remove KEY from the store."""
    _checkFormat(format)
    cfg = loadConfig()
    path = _storePath(cfg, store)
    s = FrecencyStore.load(path, cfg)
    removed = s.remove(key) is not None
    try:
        if removed:
            s.save(path)
    except FrecencyError as e:
        raise _fail(format, str(e)) from e
    if format == "json":
        print(json.dumps({"ok": True, "key": key, "forgotten": removed}))
    elif removed:
        _console.print(f"[green]Forgot[/green] {key}")
    else:
        _console.print(f"[dim]{key} was not tracked[/dim]")


@_cli.command()
def reset(
    yes: bool = typer.Option(False, "--yes", help="Skip confirmation"),
    store: str | None = typer.Option(None, "--store", help="Store file (default from config)"),
    format: str = typer.Option("human", "--format", "-f", help=_FORMAT_HELP),
) -> None:
    """Drop every entry from the store."""
    _checkFormat(format)
    if not yes and format == "human":
        typer.confirm("Delete all frecency data?", abort=True)
    cfg = loadConfig()
    path = _storePath(cfg, store)
    s = FrecencyStore.load(path, cfg)
    n = len(s)
    s.clear()
    try:
        s.save(path)
    except FrecencyError as e:
        raise _fail(format, str(e)) from e
    if format == "json":
        print(json.dumps({"ok": True, "removed": n}))
    else:
        _console.print(f"[green]Cleared[/green] {n} entries")


@_cli.command()
def stats(
    store: str | None = typer.Option(None, "--store", help="Store file (default from config)"),
    format: str = typer.Option("human", "--format", "-f", help=_FORMAT_HELP),
) -> None:
    """Summarize the store."""
    _checkFormat(format)
    cfg = loadConfig()
    path = _storePath(cfg, store)
    s = FrecencyStore.load(path, cfg)
    entries = s.entries()
    data = {
        "store_path": path,
        "entries": len(entries),
        "max_entries": cfg.max_entries,
        "total_uses": sum(e.count for e in entries),
        "half_life_days": s.halfLifeDays,
        "last_used_at": max((e.last_used_at for e in entries), default=None),
    }
    if format == "json":
        print(json.dumps(data))
        return
    t = Table(box=box.SIMPLE, show_header=False)
    t.add_column("Key", style="bold")
    t.add_column("Value")
    for k, v in data.items():
        t.add_row(k, "-" if v is None else str(v))
    _console.print(t)


@_cli.command("config")
def config_show(
    format: str = typer.Option("human", "--format", "-f", help=_FORMAT_HELP),
) -> None:
    """Print the effective config."""
    _checkFormat(format)
    cfg = loadConfig()
    if format == "json":
        print(cfg.model_dump_json())
        return
    _console.print_json(cfg.model_dump_json())


def main() -> None:
    _cli()


if __name__ == "__main__":
    main()
