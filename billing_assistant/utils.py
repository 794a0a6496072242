"""Shared utilities used across the billing assistant."""

import re
from datetime import date, datetime
from typing import Optional

# Accepted spellings for a date of birth, tried in order.
DATE_FORMATS = (
    "%m/%d/%Y",
    "%Y-%m-%d",
    "%m-%d-%Y",
    "%m/%d/%y",
    "%Y/%m/%d",
    "%B %d, %Y",
    "%B %d %Y",
    "%b %d, %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%d %b %Y",
)


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("555 1234")
        '5551234'
        >>> normalize_phone("+1 (555) 123-4567")
        '+15551234567'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def digits_only(value: str) -> str:
    """Strip every non-digit character."""
    return re.sub(r"[^\d]", "", value)


def parse_date(value: str) -> Optional[date]:
    """Parse a free-text date in any of the common formats, or return None.

    Examples:
        >>> parse_date("03/15/1985")
        datetime.date(1985, 3, 15)
        >>> parse_date("March 15, 1985")
        datetime.date(1985, 3, 15)
    """
    cleaned = re.sub(r"\s+", " ", value.strip())
    cleaned = re.sub(r"(\d)(st|nd|rd|th)\b", r"\1", cleaned)
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
    return None
