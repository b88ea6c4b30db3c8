"""Data models for company data and user form input."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass
class CompanyProfile:
    """Identity and descriptive attributes of one company.

    Snapshot fetched once per run. Any attribute the provider omits is
    None; slide code formats None as "N/A" rather than computing with it.
    """

    symbol: str
    company_name: str
    price: float | None = None
    market_cap: float | None = None
    beta: float | None = None
    average_volume: float | None = None
    last_dividend: float | None = None
    range_52w: str | None = None
    currency: str | None = None
    exchange: str | None = None
    industry: str | None = None
    sector: str | None = None
    country: str | None = None
    city: str | None = None
    state: str | None = None
    website: str | None = None
    description: str | None = None
    ceo: str | None = None
    full_time_employees: str | None = None
    ipo_date: str | None = None
    image: str | None = None
    default_image: bool = False


@dataclass
class IncomeStatement:
    """One annual income statement, keyed by (symbol, calendar_year, period)."""

    symbol: str
    date: str
    calendar_year: str
    period: str = "FY"
    revenue: float | None = None
    gross_profit: float | None = None
    gross_profit_ratio: float | None = None
    ebitda: float | None = None
    operating_income: float | None = None
    net_income: float | None = None
    net_income_ratio: float | None = None
    eps_diluted: float | None = None


@dataclass
class BalanceSheet:
    """One annual balance sheet."""

    symbol: str
    date: str
    calendar_year: str
    period: str = "FY"
    cash_and_equivalents: float | None = None
    total_assets: float | None = None
    total_debt: float | None = None
    total_equity: float | None = None
    net_debt: float | None = None


@dataclass
class CashFlowStatement:
    """One annual cash flow statement."""

    symbol: str
    date: str
    calendar_year: str
    period: str = "FY"
    operating_cash_flow: float | None = None
    capital_expenditure: float | None = None
    free_cash_flow: float | None = None


@dataclass
class RatioSnapshot:
    """Trailing-twelve-month ratio bundle.

    Margins, returns and yields are fractions (0.25 == 25%), as delivered
    by the provider.
    """

    pe_ratio: float | None = None
    price_to_sales: float | None = None
    price_to_book: float | None = None
    ev_to_ebitda: float | None = None
    gross_margin: float | None = None
    operating_margin: float | None = None
    net_margin: float | None = None
    return_on_equity: float | None = None
    return_on_assets: float | None = None
    debt_to_equity: float | None = None
    current_ratio: float | None = None
    dividend_yield: float | None = None


@dataclass
class KeyMetrics:
    """Annual key metrics record."""

    symbol: str
    date: str
    calendar_year: str
    enterprise_value: float | None = None
    ev_to_ebitda: float | None = None
    free_cash_flow_yield: float | None = None
    roic: float | None = None


@dataclass
class EnterpriseValue:
    """Enterprise value bridge for one reporting date."""

    symbol: str
    date: str
    stock_price: float | None = None
    number_of_shares: float | None = None
    market_capitalization: float | None = None
    enterprise_value: float | None = None


@dataclass
class HistoricalPricePoint:
    """One end-of-day price."""

    date: str
    close: float | None
    volume: float | None = None


@dataclass
class PeerRecord:
    """Comparison row for one peer company."""

    symbol: str
    company_name: str
    market_cap: float | None = None
    pe_ratio: float | None = None
    ev_to_ebitda: float | None = None


@dataclass
class CompanyData:
    """Central data bundle consumed by charts and the deck builder.

    Statement lists keep provider order; consumers must sort them
    explicitly before any positional slicing.

    Attributes:
        profile: Company profile (always present).
        income_statements: Annual income statements, unsorted.
        balance_sheets: Annual balance sheets, unsorted.
        cash_flow_statements: Annual cash flow statements, unsorted.
        ratios_ttm: TTM ratios, or None when the tier lacks them.
        key_metrics: Annual key metrics, unsorted.
        enterprise_values: Enterprise value history, unsorted.
        historical_prices: Daily prices, unsorted and possibly duplicated.
        peers: Peer ticker symbols.
        peers_data: Enriched peer rows (at most five).
        source: "fmp" or "yahoo".
    """

    profile: CompanyProfile
    income_statements: list[IncomeStatement] = field(default_factory=list)
    balance_sheets: list[BalanceSheet] = field(default_factory=list)
    cash_flow_statements: list[CashFlowStatement] = field(default_factory=list)
    ratios_ttm: RatioSnapshot | None = None
    key_metrics: list[KeyMetrics] = field(default_factory=list)
    enterprise_values: list[EnterpriseValue] = field(default_factory=list)
    historical_prices: list[HistoricalPricePoint] = field(default_factory=list)
    peers: list[str] = field(default_factory=list)
    peers_data: list[PeerRecord] = field(default_factory=list)
    source: str = "fmp"


# ---------------------------------------------------------------------------
# User input
# ---------------------------------------------------------------------------


class Rating(Enum):
    """Analyst recommendation."""

    BUY = "Buy"
    OUTPERFORM = "Outperform"
    HOLD = "Hold"
    SELL = "Sell"


class TimeHorizon(Enum):
    """Investment horizon in months."""

    MONTHS_12 = "12"
    MONTHS_24 = "24"
    MONTHS_36 = "36"


@dataclass(frozen=True)
class ChartToggles:
    """Which charts the user asked for."""

    revenue_growth: bool = True
    price_performance: bool = True
    market_share: bool = True


@dataclass(frozen=True)
class FormInput:
    """User-entered narrative and styling data.

    Created by the caller before the pipeline starts and never mutated.
    """

    company_input: str
    rating: Rating = Rating.BUY
    time_horizon: TimeHorizon = TimeHorizon.MONTHS_12
    target_price: float | None = None
    theme_color: str = "#2563eb"
    output_filename: str = "stock-pitch"
    author_name: str | None = None
    investment_thesis: str = ""
    valuation: str = ""
    risks_and_mitigants: str = ""
    charts: ChartToggles = field(default_factory=ChartToggles)
