"""CLI output formatters for Rich tables and JSON.

Provides human-readable Rich table output (default) and machine-parseable
JSON output (--json flag). All formatting goes through these functions
so the CLI commands stay clean. Every formatter is a pure function of its
inputs; rendering the same filter set twice gives the same text.
"""

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from src.catalog.metadata import ColumnMetadata
from src.errors.registry import get_error
from src.pipeline.events import Notice
from src.pipeline.models.query import QueryOutcome, TableResult
from src.pipeline.questions import QuestionInfo
from src.pipeline.state import FilterRow
from src.store.models import ImportReport, TableSchema

console = Console()

STATUS_COLORS = {
    "literal": "white",
    "pending": "yellow",
    "resolved": "green",
    "failed": "red",
}

NOTICE_COLORS = {
    "info": "blue",
    "warning": "yellow",
    "error": "red",
}


def _render(renderable: Any) -> str:
    with console.capture() as capture:
        console.print(renderable)
    return capture.get()


def format_value(value: Any) -> str:
    """Format a cell value; None shows as a dash."""
    if value is None:
        return "—"
    return str(value)


def format_import_reports(reports: list[ImportReport]) -> str:
    """Format per-file import outcomes as a Rich table."""
    if not reports:
        return "No files imported."

    table = Table(title="Imports")
    table.add_column("File", style="bold")
    table.add_column("Table", style="cyan")
    table.add_column("Rows", justify="right")
    table.add_column("Status")

    for report in reports:
        for t in report.tables:
            status = f"[red]{escape(t.error)}[/red]" if t.error else "[green]ok[/green]"
            table.add_row(report.file, t.table, str(t.row_count), status)
        if not report.tables:
            table.add_row(report.file, "—", "0", f"[red]{escape('; '.join(report.errors))}[/red]")
    return _render(table)


def format_schema(
    tables: list[TableSchema],
    catalog: list[ColumnMetadata] | None = None,
    as_json: bool = False,
) -> str:
    """Format user tables with their columns and catalog categories.

    Args:
        tables: Tables to show.
        catalog: Catalog rows for category and cardinality columns.
        as_json: If True, return JSON string instead of Rich tables.

    Returns:
        Formatted string output.
    """
    index = {(m.table, m.column): m for m in catalog or []}
    if as_json:
        payload = []
        for t in tables:
            columns = []
            for col in t.columns:
                meta = index.get((t.name, col.name))
                columns.append({
                    "name": col.name,
                    "type": col.type,
                    "category": meta.category.value if meta else None,
                    "nunique": meta.nunique if meta else None,
                })
            payload.append({"table": t.name, "sql": t.sql, "columns": columns})
        return json.dumps(payload, indent=2)

    if not tables:
        return "No tables loaded."

    parts = []
    for t in tables:
        table = Table(title=t.name)
        table.add_column("Column", style="bold")
        table.add_column("Type")
        table.add_column("Category")
        table.add_column("Distinct", justify="right")
        table.add_column("Top values", style="dim")
        for col in t.columns:
            meta = index.get((t.name, col.name))
            table.add_row(
                col.name,
                col.type,
                meta.category.value if meta else "—",
                str(meta.nunique) if meta else "—",
                escape(meta.top5) if meta else "—",
            )
        parts.append(_render(table))
    return "".join(parts)


def format_filter_table(rows: list[FilterRow], as_json: bool = False) -> str:
    """Format the filter table.

    Matched filters show their accepted values with scores and the
    threshold; literal filters show operator and value.
    """
    if as_json:
        return json.dumps([r.model_dump(mode="json") for r in rows], indent=2)

    if not rows:
        return "No filters."

    table = Table(title="Filters", show_lines=True)
    table.add_column("#", justify="right")
    table.add_column("On")
    table.add_column("Requirement")
    table.add_column("Column", style="cyan")
    table.add_column("Op", justify="center")
    table.add_column("Value")
    table.add_column("Matches")

    for row in rows:
        color = STATUS_COLORS.get(row.status, "white")
        if row.status == "resolved":
            accepted = ", ".join(f"{escape(format_value(m.value))} ({m.score:.2f})" for m in row.accepted)
            matches = (
                f"[{color}]{accepted or 'none accepted'}[/{color}]"
                f"\n[dim]≥ {row.min_similarity:.2f}, {len(row.accepted)}/{row.candidates}[/dim]"
            )
        elif row.status == "pending":
            matches = f"[{color}]matching…[/{color}]"
        elif row.status == "failed":
            matches = f"[{color}]{escape(row.error or 'failed')}[/{color}]"
        else:
            matches = "—"
        table.add_row(
            str(row.index),
            "[dim]off[/dim]" if row.disabled else "[green]on[/green]",
            escape(row.requirement),
            f"{row.table}.{row.column}",
            escape(row.operator),
            escape(row.value),
            matches,
        )
    return _render(table)


def _format_result(result: TableResult, preview_rows: int) -> str:
    if result.error:
        return _render(
            Panel(
                f"[red]{escape(result.error)}[/red]\n[dim]{escape(result.sql)}[/dim]",
                title=f"[bold]{result.table}[/bold]",
                border_style="red",
            )
        )

    table = Table(
        title=f"{result.table} ({len(result.rows)} rows)",
        caption=escape(f"{result.sql}  {result.params}"),
    )
    for column in result.columns:
        table.add_column(column)
    for row in result.rows[:preview_rows]:
        table.add_row(*(escape(format_value(row[c])) for c in result.columns))
    return _render(table)


def format_outcome(outcome: QueryOutcome, preview_rows: int = 10, as_json: bool = False) -> str:
    """Format per-table results and the key intersection."""
    if as_json:
        return json.dumps(outcome.model_dump(mode="json"), indent=2, default=str)

    if not outcome.results:
        return "No enabled filters to apply."

    parts = [_format_result(r, preview_rows) for r in outcome.results]

    inter = outcome.intersection
    if inter is not None:
        lines = [
            f"[bold]{inter.total}[/bold] common value(s) of [cyan]{escape(inter.key)}[/cyan]"
            + (f" (showing {len(inter.values)})" if inter.truncated else ""),
        ]
        if inter.values:
            lines.append(escape(", ".join(format_value(v) for v in inter.values)))
        lines.append(f"[dim]Tables used: {', '.join(inter.tables_used) or 'none'}[/dim]")
        for excluded in inter.tables_excluded:
            lines.append(f"[yellow]Excluded {excluded.table}: {escape(excluded.reason)}[/yellow]")
        parts.append(_render(Panel("\n".join(lines), title="Intersection", border_style="cyan")))
    return "".join(parts)


def format_questions(info: QuestionInfo) -> str:
    """Format suggested questions as a numbered list."""
    if info.error:
        return f"[red]{escape(info.error)}[/red]"
    if not info.questions:
        return "No suggestions."
    return "\n".join(f"{i}. {escape(q)}" for i, q in enumerate(info.questions, 1))


def format_notice(notice: Notice) -> str:
    """Format a notice as Rich markup.

    Notices with a registered code get a second line carrying the
    registry's remediation text.
    """
    color = NOTICE_COLORS.get(notice.level, "white")
    prefix = f"{notice.code}: " if notice.code else ""
    line = f"[{color}]{escape(prefix + notice.message)}[/{color}]"
    error_def = get_error(notice.code) if notice.code else None
    if error_def is None:
        return line
    return f"{line}\n[dim]  Action: {escape(error_def.remediation)}[/dim]"
