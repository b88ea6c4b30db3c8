"""Derived metrics computed from raw company data.

Pure functions: growth series, price normalization, market share, upside
and a handful of slide-time ratios. None of them raise on missing data;
an uncomputable value comes back as None.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TypeVar

import pandas as pd

from pitchdeck.data.models import (
    CompanyProfile,
    HistoricalPricePoint,
    IncomeStatement,
    PeerRecord,
)

logger = logging.getLogger(__name__)

MARKET_SHARE_MAX_ENTITIES = 6
MARKET_SHARE_NAME_LENGTH = 15

S = TypeVar("S")


@dataclass(frozen=True)
class GrowthPoint:
    """Year-over-year growth for one fiscal year (percent, 1 decimal)."""

    year: str
    growth: float | None


@dataclass(frozen=True)
class RevenueChartData:
    """Revenue series for the combo chart.

    Attributes:
        labels: Fiscal years, ascending.
        revenues: Revenue in billions, aligned with labels.
        growth: YoY growth in percent, with None for the first year and
            for any year whose prior revenue was not positive.
    """

    labels: tuple[str, ...]
    revenues: tuple[float, ...]
    growth: tuple[float | None, ...]


@dataclass(frozen=True)
class PriceChartData:
    """Sampled, normalized price series (first point is exactly 100)."""

    labels: tuple[str, ...]
    dates: tuple[str, ...]
    closes: tuple[float, ...]
    normalized: tuple[float, ...]


@dataclass(frozen=True)
class MarketShareEntry:
    """One slice of the market share chart."""

    name: str
    revenue: float
    share: float
    is_subject: bool = False


def _finite(value: float | None) -> bool:
    return value is not None and not math.isnan(value) and not math.isinf(value)


def sort_statements(statements: Sequence[S]) -> list[S]:
    """Sort statements ascending by fiscal year, then by date.

    Provider order is never trusted; every positional slice ("latest",
    "last four") must go through this first.
    """

    def key(s: object) -> tuple[int, str]:
        year = str(getattr(s, "calendar_year", "") or "")
        date = str(getattr(s, "date", "") or "")
        try:
            return (int(year), date)
        except ValueError:
            return (int(date[:4]) if date[:4].isdigit() else 0, date)

    return sorted(statements, key=key)


def latest_statement(statements: Sequence[S]) -> S | None:
    """Return the most recent statement, or None when there are none."""
    ordered = sort_statements(statements)
    return ordered[-1] if ordered else None


def _growth(prev: float | None, curr: float | None) -> float | None:
    if not _finite(prev) or not _finite(curr) or prev <= 0:
        return None
    return round((curr - prev) / prev * 100, 1)


def revenue_growth(statements: Sequence[IncomeStatement]) -> list[GrowthPoint]:
    """Compute year-over-year revenue growth.

    Args:
        statements: Income statements in any order.

    Returns:
        One GrowthPoint per consecutive pair of years (``n - 1`` entries),
        ascending. Growth is None where the prior revenue is not positive.
    """
    ordered = sort_statements(statements)
    return [
        GrowthPoint(year=curr.calendar_year, growth=_growth(prev.revenue, curr.revenue))
        for prev, curr in zip(ordered, ordered[1:])
    ]


def revenue_chart_data(statements: Sequence[IncomeStatement]) -> RevenueChartData:
    """Build the revenue/growth series for the combo chart.

    Statements without a revenue figure are skipped.
    """
    ordered = [s for s in sort_statements(statements) if _finite(s.revenue)]
    growth: list[float | None] = [None]
    growth.extend(p.growth for p in revenue_growth(ordered))
    return RevenueChartData(
        labels=tuple(s.calendar_year for s in ordered),
        revenues=tuple(s.revenue / 1e9 for s in ordered),
        growth=tuple(growth[: len(ordered)]),
    )


def normalize_prices(
    points: Sequence[HistoricalPricePoint],
    max_points: int = 250,
) -> PriceChartData:
    """Sort, de-duplicate, downsample and normalize a price history.

    Non-positive or missing closes are dropped. The series is sampled at
    a fixed stride of ``max(1, n // max_points)`` and scaled so the first
    retained close equals exactly 100.

    Args:
        points: Daily prices in any order, possibly with duplicate dates.
        max_points: Density target for the sampled series.

    Returns:
        PriceChartData; empty tuples when no usable price remains.
    """
    frame = pd.DataFrame(
        [(p.date, p.close) for p in points],
        columns=["date", "close"],
    )
    frame["date"] = pd.to_datetime(frame["date"], errors="coerce")
    frame["close"] = pd.to_numeric(frame["close"], errors="coerce")
    frame = frame.dropna()
    frame = frame[frame["close"] > 0]
    frame = frame.sort_values("date", kind="stable").drop_duplicates(subset="date", keep="last")

    if frame.empty:
        return PriceChartData(labels=(), dates=(), closes=(), normalized=())

    step = max(1, len(frame) // max(1, max_points))
    sampled = frame.iloc[::step]
    logger.debug("Sampled %d of %d prices (stride %d)", len(sampled), len(frame), step)

    closes = sampled["close"].astype(float).tolist()
    start = closes[0]
    normalized = [100.0] + [c / start * 100 for c in closes[1:]]

    dates = sampled["date"]
    return PriceChartData(
        labels=tuple(d.strftime("%b '%y") for d in dates),
        dates=tuple(d.strftime("%Y-%m-%d") for d in dates),
        closes=tuple(closes),
        normalized=tuple(normalized),
    )


def estimate_peer_revenues(
    peers: Sequence[PeerRecord],
    multiplier: float = 0.15,
) -> dict[str, float]:
    """Approximate peer revenue as market cap times a fixed multiplier.

    This is a labelled estimate, not reported revenue. Peers without a
    positive market cap are omitted.
    """
    return {
        p.symbol: p.market_cap * multiplier
        for p in peers
        if _finite(p.market_cap) and p.market_cap > 0
    }


def _short_name(name: str) -> str:
    if len(name) > MARKET_SHARE_NAME_LENGTH:
        return name[:MARKET_SHARE_NAME_LENGTH] + "..."
    return name


def market_share(
    subject_name: str,
    subject_revenue: float | None,
    peers: Sequence[PeerRecord],
    peer_revenues: dict[str, float],
) -> list[MarketShareEntry]:
    """Rank the subject and peers by revenue and compute shares.

    Only the top six entities by revenue are kept; shares are percentages
    of the top-six total and sum to 100.

    Args:
        subject_name: Display name of the subject company.
        subject_revenue: Subject's latest revenue (absolute).
        peers: Enriched peer records.
        peer_revenues: symbol -> revenue (reported or estimated).

    Returns:
        Entries in descending revenue order, or an empty list when the
        total is not positive.
    """
    entities: list[tuple[str, float, bool]] = []
    if _finite(subject_revenue) and subject_revenue > 0:
        entities.append((subject_name, float(subject_revenue), True))
    for peer in peers:
        revenue = peer_revenues.get(peer.symbol)
        if _finite(revenue) and revenue > 0:
            entities.append((peer.company_name, float(revenue), False))

    top = sorted(entities, key=lambda e: e[1], reverse=True)[:MARKET_SHARE_MAX_ENTITIES]
    total = sum(e[1] for e in top)
    if total <= 0:
        return []

    return [
        MarketShareEntry(
            name=_short_name(name),
            revenue=revenue,
            share=revenue / total * 100,
            is_subject=is_subject,
        )
        for name, revenue, is_subject in top
    ]


def upside_percent(current: float | None, target: float | None) -> float | None:
    """Upside from current price to target, in percent.

    Only defined when both prices are positive.
    """
    if not _finite(current) or not _finite(target) or current <= 0 or target <= 0:
        return None
    return (target - current) / current * 100


def safe_ratio(numerator: float | None, denominator: float | None) -> float | None:
    """``numerator / denominator``, or None when either is missing or the denominator is zero."""
    if not _finite(numerator) or not _finite(denominator) or denominator == 0:
        return None
    return numerator / denominator


def ebitda_margin(statement: IncomeStatement | None) -> float | None:
    """EBITDA margin as a fraction of revenue."""
    if statement is None:
        return None
    return safe_ratio(statement.ebitda, statement.revenue)


def shares_outstanding(profile: CompanyProfile) -> float | None:
    """Implied shares outstanding from market cap and price."""
    if not _finite(profile.price) or profile.price <= 0:
        return None
    return safe_ratio(profile.market_cap, profile.price)


def parse_employee_count(raw: str | None) -> int | None:
    """Parse a provider employee count such as "164,000" or "164000"."""
    if raw is None:
        return None
    digits = re.sub(r"[,\s]", "", str(raw))
    if not digits.isdigit():
        return None
    count = int(digits)
    return count if count > 0 else None


def condense_description(text: str | None, max_words: int = 40) -> str:
    """Truncate ``text`` to ``max_words`` words, adding "..." when cut."""
    if not text:
        return ""
    words = text.split()
    if len(words) <= max_words:
        return " ".join(words)
    return " ".join(words[:max_words]) + "..."


def parse_price_range(raw: str | None) -> tuple[float | None, float | None]:
    """Split a "low-high" range string such as "164.08-237.49"."""
    if not raw:
        return (None, None)
    match = re.match(r"^\s*\$?([\d.,]+)\s*-\s*\$?([\d.,]+)\s*$", raw)
    if match is None:
        return (None, None)
    try:
        low = float(match.group(1).replace(",", ""))
        high = float(match.group(2).replace(",", ""))
    except ValueError:
        return (None, None)
    return (low, high)
