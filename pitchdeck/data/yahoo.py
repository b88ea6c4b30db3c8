"""Fallback company data via yfinance.

Used only when the FMP aggregation fails with a rate limit or network
error. Field coverage is best-effort: the profile, annual income
statements, TTM ratios and five years of daily prices are mapped; balance
sheets, cash flows, key metrics and peers are left empty.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any

import pandas as pd
import yfinance as yf

from pitchdeck.data.models import (
    CompanyData,
    CompanyProfile,
    HistoricalPricePoint,
    IncomeStatement,
    RatioSnapshot,
)
from pitchdeck.errors import DataUnavailableError, NetworkError, NotFoundError

logger = logging.getLogger(__name__)

_HISTORY_PERIOD = "5y"
_DEFAULT_TIMEOUT = 15.0

# Row labels in Ticker.income_stmt -> IncomeStatement field
_INCOME_ROWS = {
    "Total Revenue": "revenue",
    "Gross Profit": "gross_profit",
    "EBITDA": "ebitda",
    "Operating Income": "operating_income",
    "Net Income": "net_income",
    "Diluted EPS": "eps_diluted",
}


def _num(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def profile_from_info(symbol: str, info: dict[str, Any]) -> CompanyProfile | None:
    """Map ``Ticker.info`` to a CompanyProfile.

    Returns None when info carries neither a name nor a price, which is
    how yfinance reports an unknown symbol.
    """
    name = _text(info.get("longName")) or _text(info.get("shortName"))
    price = _num(info.get("currentPrice")) or _num(info.get("regularMarketPrice"))
    if name is None and price is None:
        return None

    low = _num(info.get("fiftyTwoWeekLow"))
    high = _num(info.get("fiftyTwoWeekHigh"))
    range_52w = f"{low:.2f}-{high:.2f}" if low is not None and high is not None else None

    officers = info.get("companyOfficers") or []
    ceo = _text(officers[0].get("name")) if officers and isinstance(officers[0], dict) else None
    employees = info.get("fullTimeEmployees")

    return CompanyProfile(
        symbol=symbol,
        company_name=name or symbol,
        price=price,
        market_cap=_num(info.get("marketCap")),
        beta=_num(info.get("beta")),
        average_volume=_num(info.get("averageVolume")),
        last_dividend=_num(info.get("trailingAnnualDividendRate")),
        range_52w=range_52w,
        currency=_text(info.get("currency")),
        exchange=_text(info.get("exchange")),
        industry=_text(info.get("industry")),
        sector=_text(info.get("sector")),
        country=_text(info.get("country")),
        city=_text(info.get("city")),
        state=_text(info.get("state")),
        website=_text(info.get("website")),
        description=_text(info.get("longBusinessSummary")),
        ceo=ceo,
        full_time_employees=str(employees) if employees is not None else None,
    )


def ratios_from_info(info: dict[str, Any]) -> RatioSnapshot:
    """Map ``Ticker.info`` to TTM ratios.

    yfinance reports debt/equity as a percentage; it is converted to a
    plain ratio here.
    """
    debt_to_equity = _num(info.get("debtToEquity"))
    return RatioSnapshot(
        pe_ratio=_num(info.get("trailingPE")),
        price_to_sales=_num(info.get("priceToSalesTrailing12Months")),
        price_to_book=_num(info.get("priceToBook")),
        ev_to_ebitda=_num(info.get("enterpriseToEbitda")),
        gross_margin=_num(info.get("grossMargins")),
        operating_margin=_num(info.get("operatingMargins")),
        net_margin=_num(info.get("profitMargins")),
        return_on_equity=_num(info.get("returnOnEquity")),
        return_on_assets=_num(info.get("returnOnAssets")),
        debt_to_equity=debt_to_equity / 100 if debt_to_equity is not None else None,
        current_ratio=_num(info.get("currentRatio")),
        dividend_yield=_num(info.get("trailingAnnualDividendYield")),
    )


def income_from_frame(symbol: str, frame: pd.DataFrame | None) -> list[IncomeStatement]:
    """Map ``Ticker.income_stmt`` (rows = line items, columns = period ends)."""
    if frame is None or frame.empty:
        return []

    statements: list[IncomeStatement] = []
    for column in frame.columns:
        period_end = pd.Timestamp(column)
        values: dict[str, float | None] = {}
        for row_label, field_name in _INCOME_ROWS.items():
            values[field_name] = _num(frame.at[row_label, column]) if row_label in frame.index else None

        revenue = values["revenue"]
        if revenue is None:
            continue
        gross, net = values["gross_profit"], values["net_income"]
        statements.append(
            IncomeStatement(
                symbol=symbol,
                date=period_end.strftime("%Y-%m-%d"),
                calendar_year=str(period_end.year),
                period="FY",
                gross_profit_ratio=gross / revenue if gross is not None and revenue else None,
                net_income_ratio=net / revenue if net is not None and revenue else None,
                **values,
            )
        )
    return statements


def prices_from_frame(frame: pd.DataFrame | None) -> list[HistoricalPricePoint]:
    """Map a ``Ticker.history`` frame to price points."""
    if frame is None or frame.empty or "Close" not in frame.columns:
        return []

    points = []
    for ts, row in frame.iterrows():
        points.append(
            HistoricalPricePoint(
                date=pd.Timestamp(ts).strftime("%Y-%m-%d"),
                close=_num(row["Close"]),
                volume=_num(row["Volume"]) if "Volume" in frame.columns else None,
            )
        )
    return points


class YahooProvider:
    """Fetch a reduced CompanyData bundle from yfinance.

    Args:
        timeout: Seconds allowed for the whole fetch; also passed to the
            price history download.
    """

    def __init__(self, timeout: float = _DEFAULT_TIMEOUT) -> None:
        self._timeout = timeout

    async def fetch_company_data(self, symbol: str) -> CompanyData:
        """Fetch profile, income statements, ratios and prices.

        Args:
            symbol: Ticker symbol.

        Returns:
            CompanyData with ``source="yahoo"``.

        Raises:
            NotFoundError: yfinance knows nothing about the symbol.
            DataUnavailableError: yfinance itself failed.
            NetworkError: The fetch took longer than ``timeout``.
        """
        upper = symbol.strip().upper()
        try:
            return await asyncio.wait_for(asyncio.to_thread(self._load, upper), self._timeout)
        except asyncio.TimeoutError as e:
            raise NetworkError(f"Yahoo Finance timed out after {self._timeout:g}s for {upper}") from e

    def _load(self, symbol: str) -> CompanyData:
        logger.info("Yahoo Finance: fetching data for %s", symbol)
        ticker = yf.Ticker(symbol)

        # yfinance surfaces failures as assorted exception types
        try:
            info = ticker.info or {}
        except Exception as e:
            raise DataUnavailableError(f"Yahoo Finance request failed for {symbol}: {e}") from e

        profile = profile_from_info(symbol, info)
        if profile is None:
            raise NotFoundError(f"Company not found: {symbol}")

        try:
            income = income_from_frame(symbol, ticker.income_stmt)
        except Exception:
            logger.warning("Yahoo Finance: no income statements for %s", symbol, exc_info=True)
            income = []

        try:
            prices = prices_from_frame(ticker.history(period=_HISTORY_PERIOD, auto_adjust=True, timeout=self._timeout))
        except Exception:
            logger.warning("Yahoo Finance: no price history for %s", symbol, exc_info=True)
            prices = []

        logger.info(
            "Yahoo Finance: %s has %d income statements, %d prices",
            symbol,
            len(income),
            len(prices),
        )
        return CompanyData(
            profile=profile,
            income_statements=income,
            ratios_ttm=ratios_from_info(info),
            historical_prices=prices,
            source="yahoo",
        )
