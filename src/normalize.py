"""Text and date normalization for sheet-to-tracker matching.

This module handles:
- Display-text normalization used for duplicate detection
- Sheet cell cleanup
- D/M/YYYY due-date parsing with a fallback default
"""

import logging
import re
from datetime import date, datetime, timedelta
from typing import Any, Optional

import pandas as pd

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_SHEET_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


def normalize_display_text(text: Optional[str]) -> str:
    """Normalize a summary for equality matching.

    Lowercases, trims and collapses internal whitespace, so
    ``"  Grow  Revenue "`` and ``"grow revenue"`` compare equal.
    """
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", str(text).strip().lower())


def clean_cell(value: Any) -> Optional[str]:
    """Return a stripped string, or None for blank/NaN cells."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    text = str(value).strip()
    return text or None


def parse_due_date(value: Optional[str]) -> Optional[str]:
    """Convert a sheet date (D/M/YYYY) to ISO ``YYYY-MM-DD``.

    Day and month may be zero-padded or not. Anything else, including
    impossible dates like 31/02/2025, is treated as absent.

    Args:
        value: Raw sheet cell

    Returns:
        ISO date string, or None

    """
    if not value:
        return None
    text = str(value).strip()
    match = _SHEET_DATE_RE.match(text)
    if not match:
        logger.warning(f"Invalid date format: '{text}' (expected DD/MM/YYYY)")
        return None

    day, month, year = (int(g) for g in match.groups())
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        logger.warning(f"Invalid calendar date: '{text}'")
        return None


def default_due_date(offset_days: int = 30, today: Optional[date] = None) -> str:
    """Due date used when creating an issue whose sheet date is missing."""
    base = today or datetime.now().date()
    return (base + timedelta(days=offset_days)).isoformat()
