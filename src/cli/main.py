"""CocoaGPT CLI — natural-language filters over tabular files.

Usage:
    cocoagpt schema data.db metadata.csv       Show tables and column categories
    cocoagpt questions data.db                 Suggest questions for the data
    cocoagpt ask data.db -r "..." -k id        Extract filters, apply, intersect
    cocoagpt interact data.db -k id            Start the interactive REPL
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from src.cli.config import CocoaGPTConfig, load_config
from src.cli.output import (
    format_filter_table,
    format_import_reports,
    format_outcome,
    format_questions,
    format_schema,
)
from src.cli.repl import ConsoleObserver, run_repl
from src.errors.domain import DomainError
from src.llm.client import ChatClient, SimilarityClient
from src.pipeline.events import SessionEventEmitter
from src.pipeline.models.filter import MatchedFilter
from src.pipeline.session import QuerySession
from src.pipeline.state import render_rows
from src.store.tabular_store import TabularStore
from src.utils.redaction import redact_config

_log = logging.getLogger(__name__)

LOG_FORMAT = "%(levelname)s:%(name)s:%(message)s"

app = typer.Typer(
    name="cocoagpt",
    help="Query tabular files with natural-language filters",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Configuration management")
app.add_typer(config_app, name="config")

console = Console()
err_console = Console(stderr=True)

# --- Global state ---
_config_path: str | None = None
_verbose: bool = False


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to cocoagpt.yaml config file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """CocoaGPT — natural-language filters over SQLite, CSV and TSV files."""
    global _config_path, _verbose
    _config_path = config
    _verbose = verbose


def _load_config() -> CocoaGPTConfig:
    """Load config and configure logging, exiting on a missing or invalid file."""
    try:
        cfg = load_config(config_path=_config_path)
    except FileNotFoundError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1) from None
    except (yaml.YAMLError, ValidationError) as e:
        err_console.print(f"[red]Invalid config file: {escape(str(e))}[/red]")
        raise typer.Exit(1) from None
    level = "debug" if _verbose else cfg.logging.level
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )
    _log.debug("Config loaded (model=%s, level=%s)", cfg.llm.model, level)
    return cfg


def _session(
    cfg: CocoaGPTConfig,
    chat: ChatClient | None,
    similarity: SimilarityClient | None,
    quiet: bool = False,
) -> QuerySession:
    """Build a session with a console observer attached."""
    try:
        settings = cfg.session_settings()
    except FileNotFoundError as e:
        err_console.print(f"[red]Prompt file not found: {e.filename}[/red]")
        raise typer.Exit(1) from None
    emitter = SessionEventEmitter()
    emitter.add_observer(ConsoleObserver(err_console if quiet else console))
    return QuerySession(TabularStore(), chat, similarity, settings, emitter)


async def _import(session: QuerySession, files: list[Path], quiet: bool = False) -> None:
    reports = await session.import_files(files)
    if not quiet:
        console.print(format_import_reports(reports))


# --- Version ---


@app.command()
def version():
    """Show CocoaGPT version and dependency info."""
    from importlib.metadata import PackageNotFoundError
    from importlib.metadata import version as pkg_version

    try:
        v = pkg_version("cocoagpt")
    except PackageNotFoundError:
        v = "unknown"
    console.print(f"[bold]CocoaGPT[/bold] v{v}")
    import duckdb

    console.print(f"  DuckDB: {duckdb.__version__}")


# --- Config commands ---


@config_app.command("show")
def config_show():
    """Display resolved configuration (secrets masked)."""
    cfg = _load_config()
    data = redact_config(cfg.model_dump(mode="json"))
    console.print(yaml.safe_dump(data, sort_keys=False), end="", markup=False)


# --- Data commands ---


@app.command()
def schema(
    files: list[Path] = typer.Argument(..., help="SQLite, CSV or TSV files to load"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Load files and show their tables with column categories."""
    cfg = _load_config()

    async def _run():
        session = _session(cfg, None, None, quiet=as_json)
        await _import(session, files, quiet=as_json)
        output = format_schema(session.schema(), session.catalog, as_json=as_json)
        if as_json:
            typer.echo(output)
        else:
            console.print(output)

    asyncio.run(_run())


@app.command()
def questions(
    files: list[Path] = typer.Argument(..., help="SQLite, CSV or TSV files to load"),
):
    """Suggest questions that can be answered from the files."""
    cfg = _load_config()

    async def _run():
        async with ChatClient(cfg.llm) as chat:
            session = _session(cfg, chat, None)
            await _import(session, files)
            console.print(format_questions(await session.suggest_questions()))

    asyncio.run(_run())


@app.command()
def ask(
    files: list[Path] = typer.Argument(..., help="SQLite, CSV or TSV files to load"),
    requirement: str = typer.Option(..., "--requirement", "-r", help="What to find, in plain words"),
    key: Optional[str] = typer.Option(None, "--key", "-k", help="Column to intersect results on"),
    update: Optional[list[str]] = typer.Option(
        None, "--update", "-u", help="Follow-up instruction (repeatable)"
    ),
    threshold: Optional[float] = typer.Option(
        None, "--threshold", min=0.0, max=1.0, help="Similarity threshold for every matched filter"
    ),
    as_json: bool = typer.Option(False, "--json", help="Output results as JSON"),
):
    """Extract filters for a requirement, apply them and intersect on a key."""
    cfg = _load_config()

    async def _run():
        async with ChatClient(cfg.llm) as chat, SimilarityClient(cfg.similarity) as sim:
            session = _session(cfg, chat, sim, quiet=as_json)
            await _import(session, files, quiet=as_json)

            await session.submit(requirement)
            await session.wait_for_resolutions()
            for instruction in update or []:
                await session.update(instruction)
                await session.wait_for_resolutions()

            if threshold is not None:
                for i, flt in enumerate(session.filter_set.filters):
                    if isinstance(flt, MatchedFilter):
                        session.set_threshold(i, threshold)
                if not as_json:
                    console.print(format_filter_table(render_rows(session.filter_set)))

            outcome = await session.apply(key)
            output = format_outcome(outcome, preview_rows=cfg.query.preview_rows, as_json=as_json)
            if as_json:
                typer.echo(output)
            else:
                console.print(output)

    try:
        asyncio.run(_run())
    except DomainError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from None


@app.command()
def interact(
    files: list[Path] = typer.Argument(..., help="SQLite, CSV or TSV files to load"),
    key: Optional[str] = typer.Option(None, "--key", "-k", help="Default intersection key"),
):
    """Start an interactive filter session."""
    cfg = _load_config()

    async def _run():
        async with ChatClient(cfg.llm) as chat, SimilarityClient(cfg.similarity) as sim:
            session = _session(cfg, chat, sim)
            await _import(session, files)
            await run_repl(session, key=key, preview_rows=cfg.query.preview_rows)

    asyncio.run(_run())


if __name__ == "__main__":
    app()
