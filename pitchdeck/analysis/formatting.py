"""Display formatting for slide values.

Each formatter returns either ``Formatted`` (with the display text) or
``Unavailable``. ``str()`` of either gives the text to place on a slide,
"N/A" for unavailable values. None, NaN and infinities are unavailable;
no formatter raises.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Union

NOT_AVAILABLE = "N/A"


@dataclass(frozen=True)
class Formatted:
    """A successfully formatted display value."""

    text: str

    @property
    def available(self) -> bool:
        return True

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class Unavailable:
    """Placeholder for a value that could not be formatted."""

    @property
    def available(self) -> bool:
        return False

    def __str__(self) -> str:
        return NOT_AVAILABLE


Display = Union[Formatted, Unavailable]

UNAVAILABLE = Unavailable()


def _number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def format_large_number(value: float | None, prefix: str = "$") -> Display:
    """Format a currency amount with T/B/M suffix at two decimals.

    Values under a million are shown with thousands separators.
    """
    v = _number(value)
    if v is None:
        return UNAVAILABLE

    sign = "-" if v < 0 else ""
    magnitude = abs(v)
    if magnitude >= 1e12:
        return Formatted(f"{sign}{prefix}{magnitude / 1e12:.2f}T")
    if magnitude >= 1e9:
        return Formatted(f"{sign}{prefix}{magnitude / 1e9:.2f}B")
    if magnitude >= 1e6:
        return Formatted(f"{sign}{prefix}{magnitude / 1e6:.2f}M")
    return Formatted(f"{sign}{prefix}{magnitude:,.0f}")


def format_millions(value: float | None) -> Display:
    """Format an amount in millions with separators (no currency symbol)."""
    v = _number(value)
    if v is None:
        return UNAVAILABLE
    return Formatted(f"{v / 1e6:,.0f}")


def format_percentage(value: float | None, decimals: int = 1) -> Display:
    """Format a value already expressed in percent (12.3 -> "12.3%")."""
    v = _number(value)
    if v is None:
        return UNAVAILABLE
    return Formatted(f"{v:.{decimals}f}%")


def format_fraction_percent(value: float | None, decimals: int = 1) -> Display:
    """Format a fraction as percent (0.123 -> "12.3%")."""
    v = _number(value)
    if v is None:
        return UNAVAILABLE
    return format_percentage(v * 100, decimals)


def format_signed_percentage(value: float | None, decimals: int = 1) -> Display:
    """Like format_percentage, with an explicit "+" on positive values."""
    v = _number(value)
    if v is None:
        return UNAVAILABLE
    return Formatted(f"{v:+.{decimals}f}%")


def format_ratio(value: float | None, decimals: int = 2) -> Display:
    """Format a multiple with an "x" suffix (12.5 -> "12.50x")."""
    v = _number(value)
    if v is None:
        return UNAVAILABLE
    return Formatted(f"{v:.{decimals}f}x")


def format_price(value: float | None, prefix: str = "$") -> Display:
    v = _number(value)
    if v is None:
        return UNAVAILABLE
    return Formatted(f"{prefix}{v:,.2f}")


def format_decimal(value: float | None, decimals: int = 2) -> Display:
    v = _number(value)
    if v is None:
        return UNAVAILABLE
    return Formatted(f"{v:.{decimals}f}")


def format_count(value: float | None) -> Display:
    """Format a count with thousands separators (164000 -> "164,000")."""
    v = _number(value)
    if v is None:
        return UNAVAILABLE
    return Formatted(f"{v:,.0f}")


def format_text(value: str | None) -> Display:
    """Wrap free text, treating None and blank strings as unavailable."""
    if value is None:
        return UNAVAILABLE
    text = str(value).strip()
    return Formatted(text) if text else UNAVAILABLE
