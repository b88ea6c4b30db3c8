"""Chart specifications.

A ChartSpecification is a frozen, renderer-agnostic description of one
chart: kind, titles, labels, series and axes. Factories here turn derived
metrics into specs; the rasterizer turns specs into PNG bytes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from pitchdeck.analysis.derived_metrics import (
    MarketShareEntry,
    PriceChartData,
    RevenueChartData,
    estimate_peer_revenues,
    latest_statement,
    market_share,
    normalize_prices,
    revenue_chart_data,
)
from pitchdeck.config import ChartSize, DeckConfig, normalize_hex_color
from pitchdeck.data.models import CompanyData, FormInput

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Palette
# ---------------------------------------------------------------------------

PRIMARY = "#1a2744"
SECONDARY = "#3d4f5f"
ACCENT = "#2563eb"
GRAY = "#6b7c8a"
LIGHT_GRAY = "#9ca8b3"
GRID = "#e5e7eb"
BAR_PALETTE = (PRIMARY, ACCENT, SECONDARY, GRAY, LIGHT_GRAY, "#b8860b")


class ChartKind(Enum):
    """The three supported charts, in their fixed deck order."""

    REVENUE_GROWTH = "revenue_growth"
    PRICE_PERFORMANCE = "price_performance"
    MARKET_SHARE = "market_share"


CHART_ORDER = (ChartKind.REVENUE_GROWTH, ChartKind.PRICE_PERFORMANCE, ChartKind.MARKET_SHARE)


class ChartType(Enum):
    LINE = "line"
    COMBO = "combo"
    PIE = "pie"


class SeriesType(Enum):
    BAR = "bar"
    LINE = "line"
    PIE = "pie"


@dataclass(frozen=True)
class Axis:
    """One value axis.

    Attributes:
        title: Axis label.
        position: "left" or "right".
        tick_format: str.format pattern for tick labels, e.g. "${:.0f}B".
    """

    title: str
    position: str = "left"
    tick_format: str = "{:g}"


@dataclass(frozen=True)
class Series:
    """One plotted series. ``None`` values are gaps."""

    label: str
    values: tuple[float | None, ...]
    series_type: SeriesType
    color: str
    axis: str = "left"


@dataclass(frozen=True)
class ChartSpecification:
    """Complete description of a chart to rasterize.

    Attributes:
        kind: Which deck chart this is.
        chart_type: Line, combo (bars + line) or pie.
        title: Title drawn on the chart image.
        slide_title: Title of the slide that embeds the image.
        labels: Category labels (x-axis ticks or pie slice names).
        series: Plotted series.
        axes: Value axes (empty for pie charts).
        colors: Per-slice colors (pie charts only).
        width: Target pixel width.
        height: Target pixel height.
    """

    kind: ChartKind
    chart_type: ChartType
    title: str
    slide_title: str
    labels: tuple[str, ...]
    series: tuple[Series, ...]
    axes: tuple[Axis, ...] = ()
    colors: tuple[str, ...] = ()
    width: int = 900
    height: int = 450
    notes: str = field(default="", compare=False)


def price_performance_spec(
    data: PriceChartData,
    company_name: str,
    accent: str = ACCENT,
    size: ChartSize = ChartSize(900, 450),
) -> ChartSpecification:
    """Line chart of the normalized (start = 100) price series."""
    return ChartSpecification(
        kind=ChartKind.PRICE_PERFORMANCE,
        chart_type=ChartType.LINE,
        title="Stock Price Performance (5Y, Normalized to 100)",
        slide_title="Stock Price Performance",
        labels=data.labels,
        series=(
            Series(
                label=f"{company_name} (Normalized)",
                values=data.normalized,
                series_type=SeriesType.LINE,
                color=accent,
            ),
        ),
        axes=(Axis(title="Indexed Price"),),
        width=size.width,
        height=size.height,
        notes="Share price indexed to 100 at the start of the five-year window.",
    )


def revenue_growth_spec(
    data: RevenueChartData,
    accent: str = ACCENT,
    size: ChartSize = ChartSize(900, 450),
) -> ChartSpecification:
    """Combo chart: revenue bars (left axis) and YoY growth line (right axis)."""
    return ChartSpecification(
        kind=ChartKind.REVENUE_GROWTH,
        chart_type=ChartType.COMBO,
        title="Revenue & Year-over-Year Growth",
        slide_title="Revenue & Growth",
        labels=data.labels,
        series=(
            Series(
                label="Revenue ($B)",
                values=data.revenues,
                series_type=SeriesType.BAR,
                color=PRIMARY,
                axis="left",
            ),
            Series(
                label="YoY Growth (%)",
                values=data.growth,
                series_type=SeriesType.LINE,
                color=accent,
                axis="right",
            ),
        ),
        axes=(
            Axis(title="Revenue ($B)", position="left", tick_format="${:.0f}B"),
            Axis(title="Growth (%)", position="right", tick_format="{:.0f}%"),
        ),
        width=size.width,
        height=size.height,
        notes="Annual revenue in billions with year-over-year growth.",
    )


def market_share_spec(
    entries: list[MarketShareEntry],
    accent: str = ACCENT,
    size: ChartSize = ChartSize(800, 500),
) -> ChartSpecification:
    """Pie chart of revenue share.

    The subject's slice takes the accent color; other slices take the
    fixed palette in rank order.
    """
    others = iter(BAR_PALETTE[1:])
    colors = tuple(accent if e.is_subject else next(others, LIGHT_GRAY) for e in entries)
    return ChartSpecification(
        kind=ChartKind.MARKET_SHARE,
        chart_type=ChartType.PIE,
        title="Market Share (by Revenue)",
        slide_title="Market Share",
        labels=tuple(e.name for e in entries),
        series=(
            Series(
                label="Share (%)",
                values=tuple(e.share for e in entries),
                series_type=SeriesType.PIE,
                color=accent,
            ),
        ),
        colors=colors,
        width=size.width,
        height=size.height,
        notes=(
            "Peer revenues are estimated from market capitalization "
            "and are approximate."
        ),
    )


def build_chart_specs(
    company: CompanyData,
    form: FormInput,
    config: DeckConfig,
) -> list[ChartSpecification]:
    """Build specs for every chart that is enabled and has data.

    Market share needs at least two entities with positive revenue.

    Returns:
        Specs in fixed deck order (revenue, price, market share).

    Raises:
        ConfigurationError: The form's theme color is not a hex color.
    """
    accent = "#" + normalize_hex_color(form.theme_color)
    specs: list[ChartSpecification] = []

    if form.charts.revenue_growth:
        revenue = revenue_chart_data(company.income_statements)
        if revenue.revenues:
            specs.append(revenue_growth_spec(revenue, accent, config.line_chart_size))
        else:
            logger.info("%s: no revenue data, skipping revenue chart", company.profile.symbol)

    if form.charts.price_performance:
        prices = normalize_prices(company.historical_prices, config.price_max_points)
        if prices.normalized:
            specs.append(
                price_performance_spec(
                    prices, company.profile.company_name, accent, config.line_chart_size
                )
            )
        else:
            logger.info("%s: no price history, skipping price chart", company.profile.symbol)

    if form.charts.market_share:
        latest = latest_statement(company.income_statements)
        entries = market_share(
            company.profile.company_name,
            latest.revenue if latest else None,
            company.peers_data,
            estimate_peer_revenues(company.peers_data, config.peer_revenue_multiplier),
        )
        if len(entries) > 1:
            specs.append(market_share_spec(entries, accent, config.pie_chart_size))
        else:
            logger.info("%s: not enough entities for market share chart", company.profile.symbol)

    return specs
