"""Application error type built from the error code registry.

CocoaGPTError carries the code, the filled-in message and the remediation
text so front ends can show what went wrong and what to do about it.
"""

from dataclasses import dataclass, field

from src.errors.registry import get_error


@dataclass
class CocoaGPTError(Exception):
    """Application error with code, message, and context.

    Attributes:
        code: Error code in E-XXXX format.
        message: Human-readable error message.
        remediation: Action user should take to resolve.
        table: Affected table name, if applicable.
        column: Affected column name, if applicable.
        is_retryable: Whether the operation can be retried without user action.
        details: Additional context dictionary.
    """

    code: str
    message: str
    remediation: str
    table: str | None = None
    column: str | None = None
    is_retryable: bool = False
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        """Return string representation of the error."""
        return f"{self.code}: {self.message}"

    @classmethod
    def from_code(cls, code: str, **kwargs: object) -> "CocoaGPTError":
        """Create error from registry code with context substitution.

        Args:
            code: Error code in E-XXXX format.
            **kwargs: Context values for message template substitution.
                'table' and 'column' are also stored on the error; the
                special key 'details' is kept as a dict when one is given.

        Returns:
            CocoaGPTError instance with formatted message.
        """
        error_def = get_error(code)
        table = kwargs.get("table")
        if not isinstance(table, str):
            table = None
        column = kwargs.get("column")
        if not isinstance(column, str):
            column = None
        details = kwargs.get("details")
        details_dict = details if isinstance(details, dict) else {}

        if not error_def:
            return cls(
                code=code,
                message=f"Unknown error: {code}",
                remediation="Retry the operation.",
                table=table,
                column=column,
                details=details_dict,
            )

        message = error_def.message_template
        try:
            message = message.format(**kwargs)
        except KeyError:
            # Keep template if some placeholders are missing
            pass

        return cls(
            code=error_def.code,
            message=message,
            remediation=error_def.remediation,
            table=table,
            column=column,
            is_retryable=error_def.is_retryable,
            details=details_dict,
        )
