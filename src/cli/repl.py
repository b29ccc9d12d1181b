"""Interactive REPL for building and applying filters.

Provides a terminal-based loop over a QuerySession with Rich rendering of
the filter table, similarity matches and query results.
"""

import logging
import shlex

from rich.console import Console

from src.cli.output import (
    format_filter_table,
    format_notice,
    format_outcome,
    format_questions,
)
from src.errors.domain import DomainError
from src.pipeline.events import Notice
from src.pipeline.models.filter import ConversationStateError, FilterSet, MatchedFilter
from src.pipeline.session import QuerySession
from src.pipeline.state import render_rows

logger = logging.getLogger(__name__)

console = Console()

HELP_TEXT = """[bold]Commands[/bold]
  new <requirement>         Extract filters for a new requirement
  update <instruction>      Revise the current filters
  disable <n> / enable <n>  Turn a filter off or on
  value <n> <text>          Change a filter's value (re-matches enum columns)
  threshold <n> <0..1>      Change a filter's similarity threshold
  show                      Show the filter table
  apply [key]               Run the queries and intersect on a key column
  questions                 Suggest questions for the loaded data
  help                      Show this help
  quit                      Leave"""


class ConsoleObserver:
    """Prints session events to the terminal."""

    def __init__(self, out: Console | None = None) -> None:
        self._console = out or console
        self._shown = 0

    async def on_filters_changed(self, filter_set: FilterSet, final: bool) -> None:
        if final:
            self._shown = 0
            self._console.print(format_filter_table(render_rows(filter_set)))
        elif len(filter_set.filters) > self._shown:
            self._shown = len(filter_set.filters)
            latest = filter_set.filters[-1]
            self._console.print(
                f"[dim]… {latest.table}.{latest.column} {latest.operator.value} {latest.value}[/dim]"
            )

    async def on_filter_pending(self, index: int, flt: MatchedFilter) -> None:
        self._console.print(f"[dim]Matching #{index} '{flt.value}' in {flt.table}.{flt.column}…[/dim]")

    async def on_filter_resolved(self, index: int, flt: MatchedFilter) -> None:
        if flt.resolution_error is None:
            accepted = len(flt.accepted_matches())
            self._console.print(f"[dim]#{index}: {accepted} value(s) accepted[/dim]")

    async def on_notice(self, notice: Notice) -> None:
        self._console.print(format_notice(notice))


def _index(arg: str) -> int:
    try:
        return int(arg)
    except ValueError:
        raise DomainError(f"Expected a filter number, got '{arg}'") from None


async def run_repl(session: QuerySession, key: str | None = None, preview_rows: int = 10) -> None:
    """Run the interactive REPL until quit or Ctrl+D.

    Args:
        session: Session with data already imported.
        key: Default intersection key for ``apply``.
        preview_rows: Rows shown per table result.
    """
    console.print()
    console.print("[bold]CocoaGPT[/bold] — Interactive Mode")
    console.print("Type 'help' for commands. Ctrl+D to exit.")
    console.print()

    while True:
        try:
            line = console.input("[bold green]> [/bold green]")
        except EOFError:
            break

        try:
            parts = shlex.split(line)
        except ValueError as e:
            console.print(f"[red]{e}[/red]")
            continue
        if not parts:
            continue

        command, args = parts[0].lower(), parts[1:]
        try:
            if command in ("quit", "exit"):
                break
            elif command == "help":
                console.print(HELP_TEXT)
            elif command == "new" and args:
                await session.submit(" ".join(args))
            elif command == "update" and args:
                await session.update(" ".join(args))
            elif command in ("disable", "enable") and len(args) == 1:
                session.set_disabled(_index(args[0]), command == "disable")
                console.print(format_filter_table(render_rows(session.filter_set)))
            elif command == "value" and len(args) >= 2:
                session.edit_value(_index(args[0]), " ".join(args[1:]))
            elif command == "threshold" and len(args) == 2:
                try:
                    threshold = float(args[1])
                except ValueError:
                    raise DomainError(f"Expected a number between 0 and 1, got '{args[1]}'") from None
                session.set_threshold(_index(args[0]), threshold)
                console.print(format_filter_table(render_rows(session.filter_set)))
            elif command == "show":
                console.print(format_filter_table(render_rows(session.filter_set)))
            elif command == "apply":
                await session.wait_for_resolutions()
                outcome = await session.apply(args[0] if args else key)
                console.print(format_outcome(outcome, preview_rows=preview_rows))
            elif command == "questions":
                console.print(format_questions(await session.suggest_questions()))
            else:
                console.print(f"[yellow]Unknown or incomplete command: {line.strip()}[/yellow]")
                continue
        except (DomainError, ConversationStateError) as e:
            console.print(f"[red]{e}[/red]")
            continue
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted[/yellow]")
            continue

        if session.pending_resolutions:
            await session.wait_for_resolutions()
            console.print(format_filter_table(render_rows(session.filter_set)))

    console.print("\n[dim]Session ended.[/dim]")
