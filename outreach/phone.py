"""Phone number formatting and log redaction."""

from __future__ import annotations

import re

_SEPARATORS = re.compile(r"[\s-]+")
_LEADING_ZEROS = re.compile(r"^0+")


def normalize_phone(raw: str, country_code: str = "+91") -> str:
    """Format a lead's phone number for international dialing.

    Whitespace and hyphens are removed.  A number without a leading ``+``
    loses its leading zeros and gets ``country_code`` prepended.  Nothing
    else is validated; the provider rejects numbers it cannot dial.

    >>> normalize_phone("98765 43210")
    '+919876543210'
    >>> normalize_phone("+1 555-123-4567")
    '+15551234567'
    """
    formatted = _SEPARATORS.sub("", raw)
    if not formatted.startswith("+"):
        formatted = country_code + _LEADING_ZEROS.sub("", formatted)
    return formatted


def redact_pii(value: str | None) -> str:
    """Mask PII for logging — show first 3 and last 2 chars only."""
    if not value or len(value) <= 5:
        return "***"
    return value[:3] + "***" + value[-2:]
