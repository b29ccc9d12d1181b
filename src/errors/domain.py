"""Typed domain exceptions.

These exceptions give the session and the CLI stronger contracts than
string-based error message matching. Callers catch specific exception
types to decide whether to report inline or abort a command.

Usage:
    # In the pipeline
    raise NotFoundError("Filter", str(index))

    # In the CLI
    try:
        session.set_disabled(index, True)
    except NotFoundError as e:
        console.print(f"[red]{e}[/red]")
"""


class DomainError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class NotFoundError(DomainError):
    """Referenced item was not found."""

    def __init__(self, resource_type: str, identifier: str) -> None:
        super().__init__(f"{resource_type} '{identifier}' not found")
        self.resource_type = resource_type
        self.identifier = identifier


class ValidationError(DomainError):
    """User input failed validation."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
