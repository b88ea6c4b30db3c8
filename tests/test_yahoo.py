"""Tests for the yfinance fallback provider."""

from __future__ import annotations

import asyncio
import time
from unittest.mock import MagicMock, PropertyMock, patch

import pandas as pd
import pytest

from pitchdeck.data.yahoo import (
    YahooProvider,
    income_from_frame,
    prices_from_frame,
    profile_from_info,
    ratios_from_info,
)
from pitchdeck.errors import DataUnavailableError, NetworkError, NotFoundError

INFO = {
    "longName": "Apple Inc.",
    "currentPrice": 201.5,
    "marketCap": 3.0e12,
    "beta": 1.2,
    "fiftyTwoWeekLow": 164.08,
    "fiftyTwoWeekHigh": 237.49,
    "exchange": "NMS",
    "sector": "Technology",
    "industry": "Consumer Electronics",
    "fullTimeEmployees": 164000,
    "companyOfficers": [{"name": "Mr. Timothy D. Cook"}],
    "trailingPE": 31.2,
    "debtToEquity": 145.0,
    "grossMargins": 0.46,
}


def _income_frame() -> pd.DataFrame:
    columns = [pd.Timestamp("2024-09-30"), pd.Timestamp("2023-09-30")]
    return pd.DataFrame(
        {
            columns[0]: [391.0e9, 180.7e9, 123.2e9, 93.7e9, 6.08],
            columns[1]: [383.3e9, 169.1e9, 125.8e9, 97.0e9, 6.13],
        },
        index=["Total Revenue", "Gross Profit", "Operating Income", "Net Income", "Diluted EPS"],
    )


def _history_frame() -> pd.DataFrame:
    index = pd.date_range("2024-01-01", periods=3, freq="D")
    return pd.DataFrame({"Close": [180.0, 181.5, 183.0], "Volume": [1e6, 2e6, 3e6]}, index=index)


class TestMappers:
    """Pure mapping from yfinance structures to models."""

    def test_profile_from_info(self) -> None:
        profile = profile_from_info("AAPL", INFO)
        assert profile is not None
        assert profile.company_name == "Apple Inc."
        assert profile.price == 201.5
        assert profile.range_52w == "164.08-237.49"
        assert profile.ceo == "Mr. Timothy D. Cook"
        assert profile.full_time_employees == "164000"

    def test_unknown_symbol_gives_no_profile(self) -> None:
        assert profile_from_info("ZZZZ", {"trailingPegRatio": None}) is None

    def test_debt_to_equity_converted_from_percent(self) -> None:
        ratios = ratios_from_info(INFO)
        assert ratios.debt_to_equity == pytest.approx(1.45)
        assert ratios.pe_ratio == 31.2

    def test_income_from_frame(self) -> None:
        statements = income_from_frame("AAPL", _income_frame())
        assert [s.calendar_year for s in statements] == ["2024", "2023"]
        latest = statements[0]
        assert latest.revenue == 391.0e9
        assert latest.ebitda is None
        assert latest.gross_profit_ratio == pytest.approx(180.7 / 391.0)

    def test_income_from_empty_frame(self) -> None:
        assert income_from_frame("AAPL", pd.DataFrame()) == []

    def test_prices_from_frame(self) -> None:
        points = prices_from_frame(_history_frame())
        assert [p.date for p in points] == ["2024-01-01", "2024-01-02", "2024-01-03"]
        assert points[-1].close == 183.0


class TestYahooProvider:
    """YahooProvider.fetch_company_data with a mocked yf.Ticker."""

    @patch("pitchdeck.data.yahoo.yf.Ticker")
    def test_fetch_company_data(self, mock_ticker: MagicMock) -> None:
        ticker = mock_ticker.return_value
        ticker.info = INFO
        ticker.income_stmt = _income_frame()
        ticker.history.return_value = _history_frame()

        data = asyncio.run(YahooProvider().fetch_company_data("aapl"))

        mock_ticker.assert_called_once_with("AAPL")
        assert data.source == "yahoo"
        assert data.profile.symbol == "AAPL"
        assert len(data.income_statements) == 2
        assert len(data.historical_prices) == 3
        assert data.peers == []
        ticker.history.assert_called_once_with(period="5y", auto_adjust=True, timeout=15.0)

    @patch("pitchdeck.data.yahoo.yf.Ticker")
    def test_unknown_symbol_raises_not_found(self, mock_ticker: MagicMock) -> None:
        mock_ticker.return_value.info = {}
        with pytest.raises(NotFoundError):
            asyncio.run(YahooProvider().fetch_company_data("ZZZZ"))

    @patch("pitchdeck.data.yahoo.yf.Ticker")
    def test_info_failure_raises_data_unavailable(self, mock_ticker: MagicMock) -> None:
        type(mock_ticker.return_value).info = PropertyMock(side_effect=RuntimeError("blocked"))
        with pytest.raises(DataUnavailableError):
            asyncio.run(YahooProvider().fetch_company_data("AAPL"))

    @patch("pitchdeck.data.yahoo.yf.Ticker")
    def test_history_failure_degrades_to_empty(self, mock_ticker: MagicMock) -> None:
        ticker = mock_ticker.return_value
        ticker.info = INFO
        ticker.income_stmt = pd.DataFrame()
        ticker.history.side_effect = RuntimeError("no data")

        data = asyncio.run(YahooProvider().fetch_company_data("AAPL"))
        assert data.historical_prices == []
        assert data.income_statements == []

    @patch("pitchdeck.data.yahoo.yf.Ticker")
    def test_timeout_is_passed_to_history(self, mock_ticker: MagicMock) -> None:
        ticker = mock_ticker.return_value
        ticker.info = INFO
        ticker.income_stmt = pd.DataFrame()
        ticker.history.return_value = _history_frame()

        asyncio.run(YahooProvider(timeout=4.0).fetch_company_data("AAPL"))

        assert ticker.history.call_args.kwargs["timeout"] == 4.0

    @patch("pitchdeck.data.yahoo.yf.Ticker")
    def test_hung_request_raises_network_error(self, mock_ticker: MagicMock) -> None:
        type(mock_ticker.return_value).info = PropertyMock(side_effect=lambda: time.sleep(0.3))

        with pytest.raises(NetworkError, match="timed out") as exc_info:
            asyncio.run(YahooProvider(timeout=0.05).fetch_company_data("aapl"))
        assert "AAPL" in exc_info.value.message
        assert exc_info.value.retryable
