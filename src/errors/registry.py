"""Error code registry with E-XXXX format codes.

This module defines the error code system for CocoaGPT, organizing errors
into categories:
- E-1xxx: Import errors (files, tables)
- E-2xxx: Filter errors (extraction, resolution, compilation, queries)
- E-3xxx: Remote endpoint errors (generation, similarity)
- E-4xxx: System/internal errors

Each error includes a code, title, message template, and remediation steps.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    IMPORT = "import"  # E-1xxx: Import errors
    FILTER = "filter"  # E-2xxx: Filter pipeline errors
    REMOTE = "remote"  # E-3xxx: Remote endpoint errors
    SYSTEM = "system"  # E-4xxx: System/internal errors


@dataclass
class ErrorCode:
    """Definition of an error code with metadata.

    Attributes:
        code: Error code in E-XXXX format.
        category: Error category for grouping.
        title: Short title for display.
        message_template: Message with {placeholders} for context.
        remediation: Action user should take to resolve.
        is_retryable: Whether the operation can be retried without user action.
    """

    code: str  # E-XXXX format
    category: ErrorCategory
    title: str  # Short title for display
    message_template: str  # Message with {placeholders}
    remediation: str  # Action user should take
    is_retryable: bool = False  # Can be retried without user action


# Error registry - all defined error codes
ERROR_REGISTRY: dict[str, ErrorCode] = {
    # Import errors (E-1xxx)
    "E-1001": ErrorCode(
        code="E-1001",
        category=ErrorCategory.IMPORT,
        title="Unknown File Type",
        message_template="Unknown file type: {file}",
        remediation="Upload a SQLite database (.sqlite3, .sqlite, .db, .s3db, .sl3) or a .csv/.tsv file.",
    ),
    "E-1002": ErrorCode(
        code="E-1002",
        category=ErrorCategory.IMPORT,
        title="Table Conflict",
        message_template="Could not create table '{table}' from {file}: {details}",
        remediation="Rename or drop the existing table before importing this file again.",
    ),
    "E-1003": ErrorCode(
        code="E-1003",
        category=ErrorCategory.IMPORT,
        title="Import Failed",
        message_template="Could not import {file}: {details}",
        remediation="Check that the file is readable and well-formed, then retry.",
    ),
    "E-1004": ErrorCode(
        code="E-1004",
        category=ErrorCategory.IMPORT,
        title="File Not Found",
        message_template="File not found: {file}",
        remediation="Check the path and retry.",
    ),
    # Filter errors (E-2xxx)
    "E-2001": ErrorCode(
        code="E-2001",
        category=ErrorCategory.FILTER,
        title="No Filters Produced",
        message_template="The model response did not contain any parseable filters.",
        remediation="Rephrase the requirement or check that the dataset is loaded.",
    ),
    "E-2002": ErrorCode(
        code="E-2002",
        category=ErrorCategory.FILTER,
        title="Similarity Resolution Failed",
        message_template="Could not match '{value}' against {table}.{column}: {details}",
        remediation="Edit the filter value to retry matching, or disable the filter.",
        is_retryable=True,
    ),
    "E-2003": ErrorCode(
        code="E-2003",
        category=ErrorCategory.FILTER,
        title="Similarity Length Mismatch",
        message_template="Similarity scores for {table}.{column} returned {scores} entries for {values} values.",
        remediation="Edit the filter value to retry matching.",
        is_retryable=True,
    ),
    "E-2004": ErrorCode(
        code="E-2004",
        category=ErrorCategory.FILTER,
        title="Invalid Filter Value",
        message_template="Filter on {table}.{column} needs a number for '{operator}', got '{value}'.",
        remediation="Edit the filter value to a number or change the filter.",
    ),
    "E-2005": ErrorCode(
        code="E-2005",
        category=ErrorCategory.FILTER,
        title="Query Failed",
        message_template="Query on table '{table}' failed: {details}",
        remediation="Check the filters on this table; disable or edit the failing one.",
    ),
    "E-2006": ErrorCode(
        code="E-2006",
        category=ErrorCategory.FILTER,
        title="No Active Conversation",
        message_template="There are no filters to update yet.",
        remediation="Submit a requirement before asking for an update.",
    ),
    # Remote endpoint errors (E-3xxx)
    "E-3001": ErrorCode(
        code="E-3001",
        category=ErrorCategory.REMOTE,
        title="Generation Endpoint Error",
        message_template="The language model request failed: {details}",
        remediation="Check the llm.chat_url and llm.api_key settings and retry.",
        is_retryable=True,
    ),
    "E-3002": ErrorCode(
        code="E-3002",
        category=ErrorCategory.REMOTE,
        title="Similarity Endpoint Error",
        message_template="The similarity request failed: {details}",
        remediation="Check the similarity.url and similarity.api_key settings and retry.",
        is_retryable=True,
    ),
    # System errors (E-4xxx)
    "E-4001": ErrorCode(
        code="E-4001",
        category=ErrorCategory.SYSTEM,
        title="Store Error",
        message_template="Store operation failed: {details}",
        remediation="This is a system error. Retry the operation.",
        is_retryable=True,
    ),
}


def get_error(code: str) -> ErrorCode | None:
    """Get error definition by code.

    Args:
        code: Error code in E-XXXX format.

    Returns:
        ErrorCode if found, None otherwise.
    """
    return ERROR_REGISTRY.get(code)
