"""Error handling framework for CocoaGPT.

This package provides:
- Error code registry with E-XXXX format codes
- Typed domain exceptions
- The CocoaGPTError application error

Error categories:
- E-1xxx: Import errors
- E-2xxx: Filter pipeline errors
- E-3xxx: Remote endpoint errors
- E-4xxx: System/internal errors
"""

from src.errors.domain import (
    DomainError,
    NotFoundError,
    ValidationError,
)
from src.errors.formatter import CocoaGPTError
from src.errors.registry import (
    ERROR_REGISTRY,
    ErrorCategory,
    ErrorCode,
    get_error,
)

__all__ = [
    # Registry
    "ErrorCode",
    "ErrorCategory",
    "ERROR_REGISTRY",
    "get_error",
    # Domain
    "DomainError",
    "NotFoundError",
    "ValidationError",
    # Formatter
    "CocoaGPTError",
]
