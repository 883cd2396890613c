"""Utility functions for PADS to ARES conversion.

Handles locale-independent number formatting and whitespace-delimited field parsing.
"""

import math
from decimal import Decimal, ROUND_HALF_UP

from .diagnostics import Category, PadsSyntaxError


def fmt(value: float) -> str:
    """Format a float for region file output: 6 decimal places, strip trailing zeros."""
    s = f"{value:.6f}"
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    if s == "-0":
        s = "0"
    return s


def fmt_int(value: float) -> str:
    """Format a float as an integer, rounding halves away from zero."""
    d = Decimal(repr(float(value))).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    s = f"{d:f}"
    return "0" if s == "-0" else s


def split_fields(line: str) -> list:
    """Split a record line into fields, ignoring runs of blanks and the line ending."""
    return line.split()


def parse_float(s: str, what: str = "value") -> float:
    """Parse a float field, raising PadsSyntaxError when it is not a finite number."""
    try:
        value = float(s)
    except (ValueError, TypeError):
        raise PadsSyntaxError(f"Malformed {what}: {s!r}", Category.MALFORMED_FIELD) from None
    if not math.isfinite(value):
        raise PadsSyntaxError(f"Malformed {what}: {s!r}", Category.MALFORMED_FIELD)
    return value


def parse_int(s: str, what: str = "value") -> int:
    """Parse an int field, raising PadsSyntaxError when it is not an integer."""
    try:
        return int(s)
    except (ValueError, TypeError):
        raise PadsSyntaxError(f"Malformed {what}: {s!r}", Category.MALFORMED_FIELD) from None


def field(fields: list, index: int, what: str) -> str:
    """Return fields[index] or raise PadsSyntaxError naming the missing field."""
    try:
        return fields[index]
    except IndexError:
        raise PadsSyntaxError(f"Missing {what} (field {index + 1})", Category.MALFORMED_FIELD) from None


def try_float(s: str):
    """Parse a finite float, returning None instead of raising."""
    try:
        value = float(s)
    except (ValueError, TypeError):
        return None
    return value if math.isfinite(value) else None
