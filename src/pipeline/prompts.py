"""Prompt text and response schemas for the generation endpoint.

The system prompt carries a ``$SCHEMA`` placeholder which is replaced with
the DDL of every user table followed by the column catalog, so the model
can only reference tables and columns that exist.
"""

from pathlib import Path
from typing import Any

from src.catalog.metadata import ColumnMetadata, catalog_context
from src.pipeline.models.filter import FilterOperator
from src.store.models import TableSchema

SCHEMA_PLACEHOLDER = "$SCHEMA"

DEFAULT_SYSTEM_PROMPT = """You convert a user's data requirement into column filters.

The database has these tables:

$SCHEMA

Split the requirement into individual conditions. For each condition return:
- requirement: the exact words from the user's requirement it comes from
- table: the table to filter
- column: the column in that table to filter
- operator: one of =, !=, >, >=, <, <=
- value: the value to compare with, as text

Only use tables and columns listed above. For columns marked enum or
embedding, use the user's wording as the value; it will be matched against
the actual column values. For numeric columns, give the number without
units or percent signs. If a condition applies to several tables, return
one filter per table."""

QUESTIONS_SYSTEM_PROMPT = (
    "Suggest 5 diverse, useful questions that a user can answer from this dataset"
)

FILTERS_SCHEMA_NAME = "filters"


def build_schema_text(
    tables: list[TableSchema],
    catalog: list[ColumnMetadata] | None = None,
) -> str:
    """Render table DDL and catalog context for the prompt.

    Args:
        tables: User tables (catalog and override tables excluded).
        catalog: Column catalog rows; omitted when empty.

    Returns:
        DDL statements separated by blank lines, then a column summary.
    """
    text = "\n\n".join(t.sql for t in tables)
    if catalog:
        text += "\n\nColumns:\n" + catalog_context(catalog)
    return text


def render_system_prompt(schema_text: str, template: str | None = None) -> str:
    """Substitute the schema into the system prompt template."""
    return (template or DEFAULT_SYSTEM_PROMPT).replace(SCHEMA_PLACEHOLDER, schema_text)


def load_prompt_template(path: str | None) -> str | None:
    """Read a custom system prompt from disk.

    Args:
        path: Prompt file path, or None for the default prompt.

    Returns:
        File contents, or None when no path is configured.

    Raises:
        FileNotFoundError: If the configured file does not exist.
    """
    if not path:
        return None
    return Path(path).expanduser().read_text(encoding="utf-8")


def filters_response_format(strict: bool = True) -> dict[str, Any]:
    """JSON schema response format for filter extraction."""
    return {
        "type": "json_schema",
        "json_schema": {
            "name": FILTERS_SCHEMA_NAME,
            "strict": strict,
            "schema": {
                "type": "object",
                "properties": {
                    "filters": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "requirement": {"type": "string"},
                                "table": {"type": "string"},
                                "column": {"type": "string"},
                                "operator": {
                                    "type": "string",
                                    "enum": [op.value for op in FilterOperator],
                                },
                                "value": {"type": "string"},
                            },
                            "required": ["requirement", "table", "column", "operator", "value"],
                            "additionalProperties": False,
                        },
                    }
                },
                "required": ["filters"],
                "additionalProperties": False,
            },
        },
    }


def questions_response_format() -> dict[str, Any]:
    """JSON schema response format for suggested questions."""
    return {
        "type": "json_schema",
        "json_schema": {
            "name": "questions",
            "strict": True,
            "schema": {
                "type": "object",
                "properties": {
                    "questions": {"type": "array", "items": {"type": "string"}},
                },
                "required": ["questions"],
                "additionalProperties": False,
            },
        },
    }
