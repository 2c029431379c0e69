from __future__ import annotations

import math
import re
from datetime import date, datetime, time
from typing import Any

from .schema import Score

_LEADING_INT = re.compile(r"^[+-]?\d+")


def normalize_requirement(text: Any) -> str:
    """
    Identity key for requirement text: trim surrounding whitespace, then case-fold.

    Shared by the comparison view and the bulk delete so both always agree on
    which rows are "the same requirement".
    """

    if text is None:
        return ""
    return str(text).strip().casefold()


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def normalize_score(value: Any) -> Score:
    """
    Coerce a raw cell value to a score in 0..3, or None.

    Numbers are rounded half-up before the range check; strings are parsed for a
    leading integer. Anything else (including out-of-range values) is unrated.
    """

    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, str):
        trimmed = value.strip()
        match = _LEADING_INT.match(trimmed)
        if not match:
            return None
        num = int(match.group(0))
        return num if 0 <= num <= 3 else None

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        rounded = _round_half_up(float(value))
        return rounded if 0 <= rounded <= 3 else None

    return None


def number_to_text(value: float) -> str:
    """Render a numeric cell the way a spreadsheet shows it (no trailing .0)."""

    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def value_to_text(value: Any) -> str:
    """Trimmed display text for an arbitrary cell value; empty for blanks."""

    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return number_to_text(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value).strip()
