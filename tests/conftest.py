"""Shared fixtures: a fully populated AAPL-like company and its form input."""

from __future__ import annotations

import asyncio
from collections.abc import Generator
from datetime import date, timedelta

import pytest

from pitchdeck.charts.rasterizer import MatplotlibRasterizer, RasterizedChart, rasterize_charts
from pitchdeck.charts.specs import build_chart_specs
from pitchdeck.config import DeckConfig
from pitchdeck.data.cache import clear_shared_caches
from pitchdeck.data.models import (
    CashFlowStatement,
    CompanyData,
    CompanyProfile,
    EnterpriseValue,
    FormInput,
    HistoricalPricePoint,
    IncomeStatement,
    KeyMetrics,
    PeerRecord,
    RatioSnapshot,
)

GENERATED_ON = date(2025, 3, 14)


def make_profile(symbol: str = "AAPL") -> CompanyProfile:
    return CompanyProfile(
        symbol=symbol,
        company_name="Apple Inc.",
        price=200.0,
        market_cap=3.0e12,
        beta=1.24,
        average_volume=55_000_000,
        last_dividend=1.0,
        range_52w="164.08-237.49",
        currency="USD",
        exchange="NASDAQ",
        industry="Consumer Electronics",
        sector="Technology",
        country="US",
        city="Cupertino",
        state="CA",
        website="https://www.apple.com",
        description="Apple designs, manufactures and markets smartphones.",
        ceo="Timothy D. Cook",
        full_time_employees="164000",
        ipo_date="1980-12-12",
    )


def make_income_statements() -> list[IncomeStatement]:
    """Five fiscal years, deliberately out of order."""
    revenues = {"2020": 274.5e9, "2021": 365.8e9, "2022": 394.3e9, "2023": 383.3e9, "2024": 391.0e9}
    statements = [
        IncomeStatement(
            symbol="AAPL",
            date=f"{year}-09-28",
            calendar_year=year,
            revenue=revenue,
            gross_profit=revenue * 0.45,
            gross_profit_ratio=0.45,
            ebitda=revenue * 0.33,
            operating_income=revenue * 0.30,
            net_income=revenue * 0.25,
            net_income_ratio=0.25,
            eps_diluted=6.1,
        )
        for year, revenue in revenues.items()
    ]
    return [statements[i] for i in (3, 0, 4, 1, 2)]


def make_prices(n: int = 400) -> list[HistoricalPricePoint]:
    start = date(2020, 1, 1)
    return [
        HistoricalPricePoint(date=(start + timedelta(days=i)).isoformat(), close=100.0 + i * 0.25)
        for i in range(n)
    ]


def make_peers() -> list[PeerRecord]:
    return [
        PeerRecord("MSFT", "Microsoft Corporation", 3.1e12, 35.0, 25.0),
        PeerRecord("GOOGL", "Alphabet Inc.", 2.1e12, 24.0, 18.0),
        PeerRecord("AMZN", "Amazon.com, Inc.", 1.9e12, 40.0, 20.0),
        PeerRecord("META", "Meta Platforms, Inc.", 1.4e12, 27.0, 17.0),
        PeerRecord("DELL", "Dell Technologies Inc.", 8.0e10, None, 9.0),
    ]


def make_company(**overrides: object) -> CompanyData:
    """Full-data company; keyword overrides replace individual fields."""
    values: dict[str, object] = {
        "profile": make_profile(),
        "income_statements": make_income_statements(),
        "cash_flow_statements": [
            CashFlowStatement("AAPL", "2024-09-28", "2024", free_cash_flow=108.8e9),
            CashFlowStatement("AAPL", "2023-09-30", "2023", free_cash_flow=99.6e9),
        ],
        "ratios_ttm": RatioSnapshot(
            pe_ratio=31.5,
            price_to_sales=8.2,
            price_to_book=48.0,
            ev_to_ebitda=23.4,
            gross_margin=0.46,
            net_margin=0.24,
            return_on_equity=1.6,
            debt_to_equity=1.45,
            dividend_yield=0.0045,
        ),
        "key_metrics": [KeyMetrics("AAPL", "2024-09-28", "2024", enterprise_value=3.05e12)],
        "enterprise_values": [EnterpriseValue("AAPL", "2024-09-28", enterprise_value=3.04e12)],
        "historical_prices": make_prices(),
        "peers": ["MSFT", "GOOGL", "AMZN", "META", "DELL"],
        "peers_data": make_peers(),
        "source": "fmp",
    }
    values.update(overrides)
    return CompanyData(**values)  # type: ignore[arg-type]


@pytest.fixture
def company() -> CompanyData:
    return make_company()


@pytest.fixture
def form() -> FormInput:
    return FormInput(company_input="AAPL", target_price=230.0, author_name="Jane Analyst")


@pytest.fixture
def config() -> DeckConfig:
    return DeckConfig(api_key="test-key", settle_delay=0.0)


@pytest.fixture(autouse=True)
def _clear_caches() -> Generator[None, None, None]:
    """Keep the process-wide response cache from leaking between tests."""
    clear_shared_caches()
    yield
    clear_shared_caches()


@pytest.fixture
def charts(company: CompanyData, form: FormInput, config: DeckConfig) -> list[RasterizedChart]:
    """Real PNG renders of all three charts."""
    specs = build_chart_specs(company, form, config)
    return asyncio.run(rasterize_charts(specs, MatplotlibRasterizer(), config))
