"""Redaction helpers for log output.

Operator credentials and session tokens reach log messages through connection
errors and debug dumps; these patterns strip them before a handler writes.
"""

from __future__ import annotations

import re

_DEFAULT_PATTERNS = [
    (re.compile(r"(bearer\s+)[a-z0-9._~+/=-]+", re.IGNORECASE), r"\1[REDACTED]"),
    (
        re.compile(r'password["\']?\s*[:=]\s*["\']?[^"\'\s,}]+', re.IGNORECASE),
        "password=[REDACTED]",
    ),
    (
        re.compile(r'(?:access_)?token["\']?\s*[:=]\s*["\']?[^"\'\s,}]+', re.IGNORECASE),
        "token=[REDACTED]",
    ),
    (re.compile(r"(://[^:/\s]+:)[^@/\s]+@"), r"\1[REDACTED]@"),  # user:pass@host URLs
]


def sanitize_log_message(message: str, sensitive_patterns: list[str] | None = None) -> str:
    """Sanitize a log message to remove sensitive data.

    Args:
        message: Message to sanitize
        sensitive_patterns: Additional patterns to redact

    Returns:
        Sanitized message with sensitive data redacted
    """
    result = message

    for pattern, replacement in _DEFAULT_PATTERNS:
        result = pattern.sub(replacement, result)

    if sensitive_patterns:
        for pattern in sensitive_patterns:
            result = re.sub(pattern, "[REDACTED]", result, flags=re.IGNORECASE)

    return result
