"""Secret redaction for displayed configuration and error text.

API keys end up in two places a user can see: ``config show`` output and
error messages echoed back by the remote endpoints. Both go through here.
"""

import re

# Substring patterns matched case-insensitively against dict keys
_SENSITIVE_PATTERNS = frozenset({"api_key", "token", "secret", "password", "authorization"})

_REDACTED = "***REDACTED***"

_SENSITIVE_VALUE_PATTERN = re.compile(
    r"(?i)"
    r"(?:"
    r"Bearer\s+\S+"
    r"|"
    r"(?:api_key|token|secret|password)\s*[=:]\s*\S+"
    r")"
)


def redact_config(obj: dict) -> dict:
    """Return a copy of a nested config dict with secret values replaced.

    Empty values are left as they are so a missing key is still visible.
    """
    result = {}
    for key, value in obj.items():
        key_lower = key.lower()
        if any(pattern in key_lower for pattern in _SENSITIVE_PATTERNS) and value:
            result[key] = _REDACTED
        elif isinstance(value, dict):
            result[key] = redact_config(value)
        else:
            result[key] = value
    return result


def sanitize_message(msg: str, max_length: int = 500) -> str:
    """Redact token-looking fragments and truncate an error message."""
    sanitized = _SENSITIVE_VALUE_PATTERN.sub(_REDACTED, msg)
    if len(sanitized) > max_length:
        sanitized = sanitized[: max_length - 3] + "..."
    return sanitized
