"""walla CLI: append-and-compact store for JSON documents.

Commands:
    walla --data-dir DIR append [--staging-limit SIZE]   NDJSON on stdin -> staging/archives
    walla --data-dir DIR read                            merged JSON on stdout
    walla --data-dir DIR status                          staging and archive report

Logging is controlled by WALLA_LOG (e.g. ``WALLA_LOG=debug``).
"""

from __future__ import annotations

import contextlib
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click

from walla.append import run_append
from walla.archive import list_archives, verify_archive
from walla.config import WallaConfig, load_config, parse_size, resolve_staging_limit
from walla.errors import ConfigError, WallaError
from walla.jsonl import dumps
from walla.logs import setup_logging
from walla.read import read_merged
from walla.staging import staging_path

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger("walla.cli")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class ByteSize(click.ParamType):
    """A human size such as ``1MB`` or ``512KiB``, converted to bytes."""

    name = "size"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> int:
        if isinstance(value, int):
            return value
        try:
            return parse_size(value)
        except ConfigError as exc:
            self.fail(str(exc), param, ctx)


def error_chain(exc: BaseException) -> str:
    """``outer: inner: innermost`` built from the __cause__/__context__ chain."""
    parts: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        text = str(current) or type(current).__name__
        if not parts or text not in parts[-1]:
            parts.append(text)
        current = current.__cause__ or current.__context__
    return ": ".join(parts)


@contextlib.contextmanager
def _errors() -> Iterator[None]:
    """Turn walla and OS errors into a one-line message and exit status 1."""
    try:
        yield
    except (WallaError, OSError) as exc:
        logger.debug("command failed", exc_info=True)
        raise click.ClickException(error_chain(exc)) from exc


def _cfg(ctx: click.Context) -> WallaConfig:
    return ctx.ensure_object(dict)["config"]  # type: ignore[no-any-return]


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="walla")
@click.option(
    "--data-dir",
    required=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding staging.jsonl and archived/",
)
@click.pass_context
def cli(ctx: click.Context, data_dir: Path) -> None:
    """WALL·A: store JSON incrementally and compact it once it grows."""
    setup_logging()
    with _errors():
        ctx.ensure_object(dict)["config"] = load_config(data_dir)


# ---------------------------------------------------------------------------
# walla append
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--staging-limit",
    type=ByteSize(),
    default=None,
    help="Archive staging once it grows past this size  [default: 1MB]",
)
@click.pass_context
def append(ctx: click.Context, staging_limit: int | None) -> None:
    """Read NDJSON from stdin and append it to staging.

    When staging passes the limit it is merged into a new archive file.
    """
    cfg = _cfg(ctx)
    stdin = click.get_binary_stream("stdin")
    with _errors():
        limit = resolve_staging_limit(cfg, staging_limit)
        result = run_append(cfg.data_dir, stdin, staging_limit=limit, settings=cfg.merge)
    for path in result.archives:
        logger.info("archived %s", path)


# ---------------------------------------------------------------------------
# walla read
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def read(ctx: click.Context) -> None:
    """Merge all archives and staging, print one JSON document."""
    cfg = _cfg(ctx)
    with _errors():
        found, value = read_merged(cfg.data_dir, cfg.merge)
        if not found:
            logger.warning("nothing to read in %s", cfg.data_dir)
            return
        text = dumps(value)
    click.echo(text, nl=False)


# ---------------------------------------------------------------------------
# walla status
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show staging size and verify every archive."""
    from rich.console import Console
    from rich.markup import escape
    from rich.table import Table

    cfg = _cfg(ctx)
    console = Console()

    summary = Table(title=f"walla: {cfg.data_dir}", show_header=True, header_style="bold")
    summary.add_column("Metric", style="dim", no_wrap=True)
    summary.add_column("Value", justify="right")
    summary.add_row("Config", str(cfg.config_path) if cfg.config_path.exists() else "[dim]defaults[/dim]")
    summary.add_row("Staging limit", f"{cfg.append.staging_limit} B")
    staging = staging_path(cfg.data_dir)
    if staging.exists():
        summary.add_row("Staging", f"{staging.stat().st_size} B")
    else:
        summary.add_row("Staging", "[dim]absent[/dim]")
    summary.add_row(
        "Merge",
        f"arrays={cfg.merge.array_behavior.value} nulls={cfg.merge.null_behavior.value}",
    )

    with _errors():
        archives = list_archives(cfg.data_dir)
    summary.add_row("Archives", str(len(archives)))
    console.print(summary)

    if not archives:
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Archive", no_wrap=True)
    table.add_column("Size", justify="right")
    table.add_column("Checksum", justify="right")
    table.add_column("Status")
    bad = 0
    for path in archives:
        size = f"{path.stat().st_size} B"
        try:
            header = verify_archive(path)
        except (WallaError, OSError) as exc:
            bad += 1
            table.add_row(path.name, size, "-", f"[red]{escape(str(exc))}[/red]")
        else:
            table.add_row(path.name, size, f"{header.checksum:08x}", "[green]ok[/green]")
    console.print(table)
    if bad:
        console.print(f"[yellow]⚠ {bad} archive(s) failed verification; `walla read` will refuse them[/yellow]")


def main() -> None:
    cli()
