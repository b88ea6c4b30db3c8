"""Financial Modeling Prep client (stable API).

Every endpoint goes through ``FMPClient._fetch``: a cache lookup on the
event loop thread, a blocking ``requests.get`` in a worker thread, then a
cache write back on the loop thread. HTTP failures are translated into
the pitchdeck error taxonomy in ``_request``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

import requests

from pitchdeck.config import DeckConfig
from pitchdeck.data.cache import ResponseCache, make_key, shared_cache
from pitchdeck.data.models import (
    BalanceSheet,
    CashFlowStatement,
    CompanyProfile,
    EnterpriseValue,
    HistoricalPricePoint,
    IncomeStatement,
    KeyMetrics,
    PeerRecord,
    RatioSnapshot,
)
from pitchdeck.errors import (
    AuthenticationError,
    DataSourceError,
    ForbiddenError,
    NetworkError,
    ProviderError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

_FMP_MAX_RETRIES = 3
_FMP_BACKOFF_FACTOR = 0.5
_FMP_RETRY_STATUS_CODES = {500, 502, 503, 504}
_SEARCH_LIMIT = 10

# Field mappings: model field -> FMP field names, stable API first,
# legacy v3 aliases after.
_PROFILE_FIELDS: dict[str, tuple[str, ...]] = {
    "company_name": ("companyName",),
    "price": ("price",),
    "market_cap": ("marketCap", "mktCap"),
    "beta": ("beta",),
    "average_volume": ("averageVolume", "volAvg"),
    "last_dividend": ("lastDividend", "lastDiv"),
    "range_52w": ("range",),
    "currency": ("currency",),
    "exchange": ("exchange", "exchangeShortName"),
    "industry": ("industry",),
    "sector": ("sector",),
    "country": ("country",),
    "city": ("city",),
    "state": ("state",),
    "website": ("website",),
    "description": ("description",),
    "ceo": ("ceo",),
    "full_time_employees": ("fullTimeEmployees",),
    "ipo_date": ("ipoDate",),
    "image": ("image",),
}

_PROFILE_NUMERIC = {"price", "market_cap", "beta", "average_volume", "last_dividend"}

_INCOME_FIELDS: dict[str, tuple[str, ...]] = {
    "revenue": ("revenue",),
    "gross_profit": ("grossProfit",),
    "gross_profit_ratio": ("grossProfitRatio",),
    "ebitda": ("ebitda",),
    "operating_income": ("operatingIncome",),
    "net_income": ("netIncome",),
    "net_income_ratio": ("netIncomeRatio",),
    "eps_diluted": ("epsDiluted", "epsdiluted"),
}

_BALANCE_FIELDS: dict[str, tuple[str, ...]] = {
    "cash_and_equivalents": ("cashAndCashEquivalents",),
    "total_assets": ("totalAssets",),
    "total_debt": ("totalDebt",),
    "total_equity": ("totalEquity", "totalStockholdersEquity"),
    "net_debt": ("netDebt",),
}

_CASHFLOW_FIELDS: dict[str, tuple[str, ...]] = {
    "operating_cash_flow": ("operatingCashFlow", "netCashProvidedByOperatingActivities"),
    "capital_expenditure": ("capitalExpenditure",),
    "free_cash_flow": ("freeCashFlow",),
}

_RATIO_FIELDS: dict[str, tuple[str, ...]] = {
    "pe_ratio": ("priceToEarningsRatioTTM", "peRatioTTM", "priceEarningsRatioTTM"),
    "price_to_sales": ("priceToSalesRatioTTM", "priceSalesRatioTTM"),
    "price_to_book": ("priceToBookRatioTTM", "priceBookValueRatioTTM"),
    "ev_to_ebitda": ("enterpriseValueMultipleTTM", "evToEBITDATTM"),
    "gross_margin": ("grossProfitMarginTTM",),
    "operating_margin": ("operatingProfitMarginTTM",),
    "net_margin": ("netProfitMarginTTM",),
    "return_on_equity": ("returnOnEquityTTM",),
    "return_on_assets": ("returnOnAssetsTTM",),
    "debt_to_equity": ("debtToEquityRatioTTM", "debtEquityRatioTTM"),
    "current_ratio": ("currentRatioTTM",),
    "dividend_yield": ("dividendYieldTTM", "dividendYielTTM"),
}

_KEY_METRIC_FIELDS: dict[str, tuple[str, ...]] = {
    "enterprise_value": ("enterpriseValue",),
    "ev_to_ebitda": ("evToEBITDA", "enterpriseValueOverEBITDA"),
    "free_cash_flow_yield": ("freeCashFlowYield",),
    "roic": ("returnOnInvestedCapital", "roic"),
}

_EV_FIELDS: dict[str, tuple[str, ...]] = {
    "stock_price": ("stockPrice",),
    "number_of_shares": ("numberOfShares",),
    "market_capitalization": ("marketCapitalization",),
    "enterprise_value": ("enterpriseValue",),
}


@dataclass
class SearchResult:
    """One symbol search hit."""

    symbol: str
    name: str
    exchange: str | None = None
    currency: str | None = None


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def _pick(record: dict[str, Any], aliases: tuple[str, ...]) -> Any:
    """Return the first non-null value among the given field aliases."""
    for name in aliases:
        value = record.get(name)
        if value is not None:
            return value
    return None


def _to_float(value: Any) -> float | None:
    """Coerce a provider value to float, or None when absent/garbled."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _numeric_fields(record: dict[str, Any], mapping: dict[str, tuple[str, ...]]) -> dict[str, float | None]:
    return {name: _to_float(_pick(record, aliases)) for name, aliases in mapping.items()}


def _fiscal_year(record: dict[str, Any]) -> str:
    """Fiscal year from calendarYear/fiscalYear, else the date's year."""
    year = _pick(record, ("fiscalYear", "calendarYear"))
    if year is not None:
        return str(year)
    return str(record.get("date", ""))[:4]


def _records(payload: Any) -> list[dict[str, Any]]:
    """Normalize a payload into a list of dict records."""
    if isinstance(payload, dict):
        return [payload]
    if isinstance(payload, list):
        return [row for row in payload if isinstance(row, dict)]
    return []


def parse_profile(payload: Any, symbol: str) -> CompanyProfile | None:
    """Parse a /profile payload. Returns None when it holds no company."""
    rows = _records(payload)
    if not rows:
        return None
    row = rows[0]

    values: dict[str, Any] = {}
    for name, aliases in _PROFILE_FIELDS.items():
        raw = _pick(row, aliases)
        values[name] = _to_float(raw) if name in _PROFILE_NUMERIC else _to_str(raw)

    return CompanyProfile(
        symbol=_to_str(row.get("symbol")) or symbol.upper(),
        company_name=values.pop("company_name") or symbol.upper(),
        default_image=bool(row.get("defaultImage", False)),
        **values,
    )


def parse_income_statements(payload: Any) -> list[IncomeStatement]:
    return [
        IncomeStatement(
            symbol=str(row.get("symbol", "")),
            date=str(row.get("date", "")),
            calendar_year=_fiscal_year(row),
            period=str(row.get("period") or "FY"),
            **_numeric_fields(row, _INCOME_FIELDS),
        )
        for row in _records(payload)
    ]


def parse_balance_sheets(payload: Any) -> list[BalanceSheet]:
    return [
        BalanceSheet(
            symbol=str(row.get("symbol", "")),
            date=str(row.get("date", "")),
            calendar_year=_fiscal_year(row),
            period=str(row.get("period") or "FY"),
            **_numeric_fields(row, _BALANCE_FIELDS),
        )
        for row in _records(payload)
    ]


def parse_cash_flow_statements(payload: Any) -> list[CashFlowStatement]:
    return [
        CashFlowStatement(
            symbol=str(row.get("symbol", "")),
            date=str(row.get("date", "")),
            calendar_year=_fiscal_year(row),
            period=str(row.get("period") or "FY"),
            **_numeric_fields(row, _CASHFLOW_FIELDS),
        )
        for row in _records(payload)
    ]


def parse_ratios_ttm(payload: Any) -> RatioSnapshot | None:
    rows = _records(payload)
    if not rows:
        return None
    return RatioSnapshot(**_numeric_fields(rows[0], _RATIO_FIELDS))


def parse_key_metrics(payload: Any) -> list[KeyMetrics]:
    return [
        KeyMetrics(
            symbol=str(row.get("symbol", "")),
            date=str(row.get("date", "")),
            calendar_year=_fiscal_year(row),
            **_numeric_fields(row, _KEY_METRIC_FIELDS),
        )
        for row in _records(payload)
    ]


def parse_enterprise_values(payload: Any) -> list[EnterpriseValue]:
    return [
        EnterpriseValue(
            symbol=str(row.get("symbol", "")),
            date=str(row.get("date", "")),
            **_numeric_fields(row, _EV_FIELDS),
        )
        for row in _records(payload)
    ]


def parse_historical_prices(payload: Any) -> list[HistoricalPricePoint]:
    """Parse either a bare price list or a ``{"historical": [...]}`` object."""
    if isinstance(payload, dict):
        payload = payload.get("historical", [])
    points: list[HistoricalPricePoint] = []
    for row in _records(payload):
        date = _to_str(row.get("date"))
        if date is None:
            continue
        points.append(
            HistoricalPricePoint(
                date=date,
                close=_to_float(_pick(row, ("close", "adjClose", "price"))),
                volume=_to_float(row.get("volume")),
            )
        )
    return points


def parse_peers(payload: Any) -> list[str]:
    """Parse the peers endpoint in any of its shapes.

    Accepts a list of symbols, a list of ``{"symbol": ...}`` rows, or the
    legacy ``[{"peersList": [...]}]`` form.
    """
    if not isinstance(payload, list):
        payload = _records(payload)

    symbols: list[str] = []
    for item in payload:
        if isinstance(item, str):
            symbols.append(item)
        elif isinstance(item, dict):
            if isinstance(item.get("peersList"), list):
                symbols.extend(str(s) for s in item["peersList"])
            elif item.get("symbol"):
                symbols.append(str(item["symbol"]))

    seen: set[str] = set()
    unique = []
    for s in symbols:
        s = s.strip().upper()
        if s and s not in seen:
            seen.add(s)
            unique.append(s)
    return unique


def unwrap_envelope(data: Any) -> Any:
    """Strip the ``{"value": [...], "Count": N}`` envelope when present."""
    if isinstance(data, dict) and "value" in data:
        return data["value"]
    return data


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class FMPClient:
    """Async client for the FMP stable API.

    Args:
        config: Deck configuration (API key, base URL, timeout, TTL).
        cache: Response cache. Defaults to the process-wide cache for the
            configured TTL.
    """

    def __init__(self, config: DeckConfig, cache: ResponseCache | None = None) -> None:
        self._config = config
        self._cache = cache if cache is not None else shared_cache(config.cache_ttl_minutes)

    def _request(self, endpoint: str, params: dict[str, Any]) -> Any:
        """Blocking GET with retry on transient 5xx responses.

        Args:
            endpoint: Path below the base URL (e.g. "/profile").
            params: Query parameters, without the API key.

        Returns:
            The decoded JSON body with any ``value`` envelope removed.

        Raises:
            AuthenticationError: HTTP 401.
            ForbiddenError: HTTP 403.
            RateLimitError: HTTP 429 (not retried).
            NetworkError: Timeout or connection failure.
            ProviderError: Any other HTTP error or an undecodable body.
        """
        url = f"{self._config.base_url}{endpoint}"
        query = {**params, "apikey": self._config.require_api_key()}

        for attempt in range(_FMP_MAX_RETRIES):
            try:
                response = requests.get(url, params=query, timeout=self._config.request_timeout)
            except requests.Timeout as e:
                raise NetworkError(
                    "Request timeout. The API is taking too long to respond."
                ) from e
            except requests.RequestException as e:
                raise NetworkError("Network error. Please check your connection.") from e

            status = response.status_code
            if status in _FMP_RETRY_STATUS_CODES and attempt < _FMP_MAX_RETRIES - 1:
                sleep_time = _FMP_BACKOFF_FACTOR * (2**attempt)
                logger.warning(
                    "FMP %s returned %d, retrying in %.1fs (attempt %d/%d)",
                    endpoint,
                    status,
                    sleep_time,
                    attempt + 1,
                    _FMP_MAX_RETRIES,
                )
                time.sleep(sleep_time)
                continue

            if status == 401:
                raise AuthenticationError("Invalid API key. Please check your FMP_API_KEY.")
            if status == 403:
                raise ForbiddenError(
                    f"API access forbidden for {endpoint}. Your plan may not include this endpoint."
                )
            if status == 429:
                raise RateLimitError("API rate limit exceeded. Please try again later.")

            try:
                response.raise_for_status()
            except requests.HTTPError as e:
                raise ProviderError(f"API error on {endpoint}: HTTP {status}") from e

            try:
                data = response.json()
            except ValueError as e:
                raise ProviderError(f"Malformed response from {endpoint}") from e

            return unwrap_envelope(data)

        raise ProviderError(f"API error on {endpoint}: gave up after {_FMP_MAX_RETRIES} attempts")

    async def _fetch(
        self,
        endpoint: str,
        symbol: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Cached, non-blocking GET for one symbol-scoped endpoint."""
        key = make_key(endpoint, symbol, params)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        query = dict(params or {})
        if symbol:
            query["symbol"] = symbol.strip().upper()
        data = await asyncio.to_thread(self._request, endpoint, query)
        self._cache.set(key, data)
        return data

    # -- Endpoints -----------------------------------------------------------

    async def get_profile(self, symbol: str) -> CompanyProfile | None:
        return parse_profile(await self._fetch("/profile", symbol), symbol)

    async def get_income_statements(self, symbol: str) -> list[IncomeStatement]:
        data = await self._fetch("/income-statement", symbol, {"limit": self._config.statement_limit})
        return parse_income_statements(data)

    async def get_balance_sheets(self, symbol: str) -> list[BalanceSheet]:
        data = await self._fetch("/balance-sheet-statement", symbol, {"limit": self._config.statement_limit})
        return parse_balance_sheets(data)

    async def get_cash_flow_statements(self, symbol: str) -> list[CashFlowStatement]:
        data = await self._fetch("/cash-flow-statement", symbol, {"limit": self._config.statement_limit})
        return parse_cash_flow_statements(data)

    async def get_ratios_ttm(self, symbol: str) -> RatioSnapshot | None:
        return parse_ratios_ttm(await self._fetch("/ratios-ttm", symbol))

    async def get_key_metrics(self, symbol: str) -> list[KeyMetrics]:
        data = await self._fetch("/key-metrics", symbol, {"limit": self._config.statement_limit})
        return parse_key_metrics(data)

    async def get_enterprise_values(self, symbol: str) -> list[EnterpriseValue]:
        data = await self._fetch("/enterprise-values", symbol, {"limit": self._config.statement_limit})
        return parse_enterprise_values(data)

    async def get_historical_prices(self, symbol: str) -> list[HistoricalPricePoint]:
        return parse_historical_prices(await self._fetch("/historical-price-eod/full", symbol))

    async def get_peers(self, symbol: str) -> list[str]:
        peers = parse_peers(await self._fetch("/stock-peers", symbol))
        return [p for p in peers if p != symbol.strip().upper()]

    async def get_peer_data(self, peers: list[str]) -> list[PeerRecord]:
        """Enrich up to ``max_peers`` peers with profile and TTM ratios.

        Peers are enriched concurrently. A peer whose profile is missing
        or whose enrichment raises a provider error is dropped.

        Args:
            peers: Peer ticker symbols, in provider order.

        Returns:
            PeerRecord per successfully enriched peer, in input order.
        """
        selected = peers[: self._config.max_peers]
        results = await asyncio.gather(*(self._peer_record(s) for s in selected))
        return [r for r in results if r is not None]

    async def _peer_record(self, symbol: str) -> PeerRecord | None:
        try:
            profile, ratios = await asyncio.gather(
                self.get_profile(symbol),
                self.get_ratios_ttm(symbol),
            )
        except (RateLimitError, NetworkError) as e:
            logger.warning("Dropping peer %s after %s: %s", symbol, type(e).__name__, e)
            return None
        except DataSourceError as e:
            logger.warning("Dropping peer %s: %s", symbol, e)
            return None

        if profile is None:
            logger.warning("Dropping peer %s: no profile", symbol)
            return None

        return PeerRecord(
            symbol=symbol,
            company_name=profile.company_name,
            market_cap=profile.market_cap,
            pe_ratio=ratios.pe_ratio if ratios else None,
            ev_to_ebitda=ratios.ev_to_ebitda if ratios else None,
        )

    async def search_companies(self, query: str) -> list[SearchResult]:
        """Search symbols and company names matching ``query``."""
        query = query.strip()
        if not query:
            return []

        key = make_key("/search-symbol", "", {"query": query.lower(), "limit": _SEARCH_LIMIT})
        data = self._cache.get(key)
        if data is None:
            data = await asyncio.to_thread(
                self._request, "/search-symbol", {"query": query, "limit": _SEARCH_LIMIT}
            )
            self._cache.set(key, data)

        return [
            SearchResult(
                symbol=str(row.get("symbol", "")),
                name=str(_pick(row, ("name", "companyName")) or ""),
                exchange=_to_str(_pick(row, ("exchange", "exchangeShortName", "stockExchange"))),
                currency=_to_str(row.get("currency")),
            )
            for row in _records(data)
            if row.get("symbol")
        ]
