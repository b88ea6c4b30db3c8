"""Tests for pitchdeck.data.fmp: HTTP error mapping, parsing and caching."""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import requests

from pitchdeck.config import FMP_BASE_URL, DeckConfig
from pitchdeck.data.cache import InMemoryResponseCache
from pitchdeck.data.fmp import (
    FMPClient,
    parse_historical_prices,
    parse_income_statements,
    parse_peers,
    parse_profile,
    parse_ratios_ttm,
    unwrap_envelope,
)
from pitchdeck.errors import (
    AuthenticationError,
    ForbiddenError,
    NetworkError,
    ProviderError,
    RateLimitError,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _response(payload: Any = None, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = payload if payload is not None else []
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"HTTP {status}")
    return resp


def _router(routes: dict[Any, MagicMock]) -> Any:
    """Fake requests.get dispatching on (endpoint, symbol) or endpoint."""

    def fake_get(url: str, params: dict[str, Any] | None = None, timeout: float | None = None) -> MagicMock:
        endpoint = url[len(FMP_BASE_URL):]
        symbol = (params or {}).get("symbol")
        if (endpoint, symbol) in routes:
            return routes[(endpoint, symbol)]
        if endpoint in routes:
            return routes[endpoint]
        return _response([])

    return fake_get


def _client(config: DeckConfig | None = None) -> FMPClient:
    config = config or DeckConfig(api_key="test-key")
    return FMPClient(config, InMemoryResponseCache(ttl_minutes=60))


def _profile_row(symbol: str, name: str, market_cap: float) -> dict[str, Any]:
    return {"symbol": symbol, "companyName": name, "marketCap": market_cap, "price": 100.0}


# ---------------------------------------------------------------------------
# _request
# ---------------------------------------------------------------------------


class TestRequest:
    """HTTP status and transport error mapping in FMPClient._request."""

    @patch("pitchdeck.data.fmp.requests.get")
    def test_sends_api_key_and_timeout(self, mock_get: MagicMock) -> None:
        mock_get.return_value = _response([{"symbol": "AAPL"}])
        result = _client()._request("/profile", {"symbol": "AAPL"})

        assert result == [{"symbol": "AAPL"}]
        _, kwargs = mock_get.call_args
        assert kwargs["params"]["apikey"] == "test-key"
        assert kwargs["params"]["symbol"] == "AAPL"
        assert kwargs["timeout"] == 15.0
        assert mock_get.call_args[0][0] == f"{FMP_BASE_URL}/profile"

    @pytest.mark.parametrize(
        ("status", "error"),
        [
            (401, AuthenticationError),
            (403, ForbiddenError),
            (429, RateLimitError),
            (404, ProviderError),
        ],
    )
    @patch("pitchdeck.data.fmp.requests.get")
    def test_status_mapping(self, mock_get: MagicMock, status: int, error: type[Exception]) -> None:
        mock_get.return_value = _response(status=status)
        with pytest.raises(error):
            _client()._request("/profile", {"symbol": "AAPL"})

    @patch("pitchdeck.data.fmp.requests.get")
    def test_rate_limit_is_not_retried(self, mock_get: MagicMock) -> None:
        mock_get.return_value = _response(status=429)
        with pytest.raises(RateLimitError):
            _client()._request("/profile", {})
        assert mock_get.call_count == 1

    @patch("pitchdeck.data.fmp.time.sleep")
    @patch("pitchdeck.data.fmp.requests.get")
    def test_server_error_is_retried(self, mock_get: MagicMock, mock_sleep: MagicMock) -> None:
        mock_get.side_effect = [_response(status=503), _response([{"ok": True}])]
        assert _client()._request("/profile", {}) == [{"ok": True}]
        assert mock_get.call_count == 2
        mock_sleep.assert_called_once()

    @patch("pitchdeck.data.fmp.time.sleep")
    @patch("pitchdeck.data.fmp.requests.get")
    def test_server_error_gives_up(self, mock_get: MagicMock, mock_sleep: MagicMock) -> None:
        mock_get.return_value = _response(status=500)
        with pytest.raises(ProviderError):
            _client()._request("/profile", {})
        assert mock_get.call_count == 3

    @patch("pitchdeck.data.fmp.requests.get")
    def test_timeout_becomes_network_error(self, mock_get: MagicMock) -> None:
        mock_get.side_effect = requests.Timeout("slow")
        with pytest.raises(NetworkError, match="timeout"):
            _client()._request("/profile", {})

    @patch("pitchdeck.data.fmp.requests.get")
    def test_connection_error_becomes_network_error(self, mock_get: MagicMock) -> None:
        mock_get.side_effect = requests.ConnectionError("down")
        with pytest.raises(NetworkError) as exc_info:
            _client()._request("/profile", {})
        assert exc_info.value.retryable

    @patch("pitchdeck.data.fmp.requests.get")
    def test_malformed_json(self, mock_get: MagicMock) -> None:
        resp = _response()
        resp.json.side_effect = ValueError("not json")
        mock_get.return_value = resp
        with pytest.raises(ProviderError, match="Malformed"):
            _client()._request("/profile", {})

    @patch("pitchdeck.data.fmp.requests.get")
    def test_envelope_is_unwrapped(self, mock_get: MagicMock) -> None:
        mock_get.return_value = _response({"value": [{"symbol": "AAPL"}], "Count": 1})
        assert _client()._request("/profile", {}) == [{"symbol": "AAPL"}]


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


class TestParsers:
    """Payload parsing, including legacy field aliases."""

    def test_profile_stable_fields(self) -> None:
        profile = parse_profile(
            [{
                "symbol": "AAPL",
                "companyName": "Apple Inc.",
                "price": 200.5,
                "marketCap": 3.0e12,
                "averageVolume": 5.5e7,
                "range": "164.08-237.49",
                "fullTimeEmployees": "164000",
            }],
            "AAPL",
        )
        assert profile is not None
        assert profile.company_name == "Apple Inc."
        assert profile.market_cap == 3.0e12
        assert profile.average_volume == 5.5e7
        assert profile.range_52w == "164.08-237.49"
        assert profile.full_time_employees == "164000"

    def test_profile_legacy_aliases(self) -> None:
        profile = parse_profile([{"symbol": "AAPL", "mktCap": 1e12, "volAvg": 10, "lastDiv": 0.96}], "aapl")
        assert profile is not None
        assert profile.market_cap == 1e12
        assert profile.average_volume == 10
        assert profile.last_dividend == 0.96
        assert profile.company_name == "AAPL"

    def test_profile_empty_payload(self) -> None:
        assert parse_profile([], "ZZZZ") is None

    def test_income_fiscal_year_fallback_to_date(self) -> None:
        statements = parse_income_statements([{"date": "2023-09-30", "revenue": "383285000000", "epsdiluted": 6.13}])
        assert statements[0].calendar_year == "2023"
        assert statements[0].revenue == 383285000000.0
        assert statements[0].eps_diluted == 6.13

    def test_ratios_aliases(self) -> None:
        ratios = parse_ratios_ttm([{"peRatioTTM": 30.1, "dividendYielTTM": 0.005, "debtEquityRatioTTM": 1.8}])
        assert ratios is not None
        assert ratios.pe_ratio == 30.1
        assert ratios.dividend_yield == 0.005
        assert ratios.debt_to_equity == 1.8

    def test_ratios_empty(self) -> None:
        assert parse_ratios_ttm([]) is None

    def test_historical_prices_both_shapes(self) -> None:
        rows = [{"date": "2024-01-02", "close": 185.6}, {"close": 1.0}]
        assert len(parse_historical_prices(rows)) == 1
        assert parse_historical_prices({"historical": rows})[0].close == 185.6

    @pytest.mark.parametrize(
        "payload",
        [
            ["msft", "GOOGL", "MSFT"],
            [{"symbol": "MSFT"}, {"symbol": "GOOGL"}],
            [{"symbol": "AAPL", "peersList": ["MSFT", "GOOGL"]}],
        ],
    )
    def test_peers_shapes(self, payload: Any) -> None:
        assert parse_peers(payload) == ["MSFT", "GOOGL"]

    def test_unwrap_envelope_passthrough(self) -> None:
        assert unwrap_envelope([1, 2]) == [1, 2]


# ---------------------------------------------------------------------------
# Client endpoints
# ---------------------------------------------------------------------------


class TestClientEndpoints:
    """Async endpoint methods, caching and peer enrichment."""

    @patch("pitchdeck.data.fmp.requests.get")
    def test_profile_is_cached(self, mock_get: MagicMock) -> None:
        mock_get.return_value = _response([_profile_row("AAPL", "Apple Inc.", 3e12)])
        client = _client()

        async def run() -> None:
            first = await client.get_profile("aapl")
            second = await client.get_profile("AAPL")
            assert first == second

        asyncio.run(run())
        assert mock_get.call_count == 1

    @patch("pitchdeck.data.fmp.requests.get")
    def test_statement_limit_is_sent(self, mock_get: MagicMock) -> None:
        mock_get.return_value = _response([{"date": "2024-09-28", "fiscalYear": "2024", "revenue": 1.0}])
        statements = asyncio.run(_client().get_income_statements("AAPL"))
        assert statements[0].calendar_year == "2024"
        assert mock_get.call_args[1]["params"]["limit"] == 5

    @patch("pitchdeck.data.fmp.requests.get")
    def test_peers_exclude_subject(self, mock_get: MagicMock) -> None:
        mock_get.return_value = _response([{"symbol": "AAPL"}, {"symbol": "MSFT"}])
        assert asyncio.run(_client().get_peers("aapl")) == ["MSFT"]

    @patch("pitchdeck.data.fmp.requests.get")
    def test_peer_data_drops_failures_and_caps_count(self, mock_get: MagicMock) -> None:
        routes = {
            ("/profile", "P1"): _response([_profile_row("P1", "Peer One", 1e11)]),
            ("/profile", "P2"): _response(status=429),
            ("/profile", "P3"): _response([]),
            ("/profile", "P4"): _response([_profile_row("P4", "Peer Four", 4e11)]),
            ("/ratios-ttm", "P1"): _response([{"priceToEarningsRatioTTM": 20.0}]),
            ("/ratios-ttm", "P4"): _response([]),
        }
        mock_get.side_effect = _router(routes)
        config = DeckConfig(api_key="test-key", max_peers=4)

        records = asyncio.run(_client(config).get_peer_data(["P1", "P2", "P3", "P4", "P5", "P6"]))

        assert [r.symbol for r in records] == ["P1", "P4"]
        assert records[0].pe_ratio == 20.0
        assert records[1].pe_ratio is None
        requested = {call[1]["params"].get("symbol") for call in mock_get.call_args_list}
        assert "P5" not in requested

    @patch("pitchdeck.data.fmp.requests.get")
    def test_dropped_peer_logs_name_the_failure(self, mock_get: MagicMock, caplog: pytest.LogCaptureFixture) -> None:
        routes = {
            ("/profile", "P1"): _response([_profile_row("P1", "Peer One", 1e11)]),
            ("/profile", "P2"): _response(status=429),
            ("/profile", "P3"): _response(status=403),
        }
        mock_get.side_effect = _router(routes)

        with caplog.at_level(logging.WARNING, logger="pitchdeck.data.fmp"):
            records = asyncio.run(_client().get_peer_data(["P1", "P2", "P3"]))

        assert [r.symbol for r in records] == ["P1"]
        messages = [r.getMessage() for r in caplog.records]
        assert any(m.startswith("Dropping peer P2 after RateLimitError") for m in messages)
        p3 = [m for m in messages if m.startswith("Dropping peer P3")]
        assert p3 and "RateLimitError" not in p3[0] and "forbidden" in p3[0]

    @patch("pitchdeck.data.fmp.requests.get")
    def test_search_companies(self, mock_get: MagicMock) -> None:
        mock_get.return_value = _response([
            {"symbol": "AAPL", "name": "Apple Inc.", "exchange": "NASDAQ", "currency": "USD"},
            {"name": "no symbol"},
        ])
        results = asyncio.run(_client().search_companies(" apple "))
        assert len(results) == 1
        assert results[0].symbol == "AAPL"
        assert results[0].exchange == "NASDAQ"
        assert mock_get.call_args[1]["params"]["query"] == "apple"

    def test_search_blank_query(self) -> None:
        assert asyncio.run(_client().search_companies("  ")) == []
