"""Company data aggregation.

``fetch_company_data`` is the single entry point. FMP is the primary
provider; yfinance is tried only when FMP fails with a rate-limit or
network error.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from pitchdeck.config import DeckConfig
from pitchdeck.data.cache import ResponseCache
from pitchdeck.data.fmp import FMPClient
from pitchdeck.data.models import CompanyData
from pitchdeck.data.yahoo import YahooProvider
from pitchdeck.errors import (
    DataUnavailableError,
    ForbiddenError,
    NetworkError,
    NotFoundError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

__all__ = ["CompanyData", "fetch_company_data", "fetch_from_fmp"]

T = TypeVar("T")


async def _optional(label: str, call: Awaitable[T], default: T) -> T:
    """Await a non-essential call, degrading to ``default`` on HTTP 403."""
    try:
        return await call
    except ForbiddenError:
        logger.info("%s not available on this FMP plan, skipping", label)
        return default


async def fetch_from_fmp(
    symbol: str,
    config: DeckConfig,
    cache: ResponseCache | None = None,
) -> CompanyData:
    """Fetch the full CompanyData bundle from FMP.

    Loading sequence:
        1. Profile (required).
        2. Statements, ratios, key metrics, enterprise values, prices and
           the peer list, concurrently.
        3. Peer enrichment for at most ``config.max_peers`` peers.

    Args:
        symbol: Ticker symbol (case-insensitive).
        config: Deck configuration.
        cache: Response cache override.

    Returns:
        Populated CompanyData with ``source="fmp"``.

    Raises:
        NotFoundError: No profile for the symbol.
        DataSourceError: Any non-403 provider failure.
    """
    client = FMPClient(config, cache)
    upper = symbol.strip().upper()

    profile = await client.get_profile(upper)
    if profile is None:
        raise NotFoundError(f"Company not found: {upper}")

    (
        income,
        balance,
        cash_flow,
        ratios,
        key_metrics,
        enterprise_values,
        prices,
        peers,
    ) = await asyncio.gather(
        _optional("income statements", client.get_income_statements(upper), []),
        _optional("balance sheets", client.get_balance_sheets(upper), []),
        _optional("cash flow statements", client.get_cash_flow_statements(upper), []),
        _optional("TTM ratios", client.get_ratios_ttm(upper), None),
        _optional("key metrics", client.get_key_metrics(upper), []),
        _optional("enterprise values", client.get_enterprise_values(upper), []),
        _optional("historical prices", client.get_historical_prices(upper), []),
        _optional("peers", client.get_peers(upper), []),
    )

    peers_data = await client.get_peer_data(peers) if peers else []

    logger.info(
        "%s: %d income statements, %d prices, %d/%d peers enriched",
        upper,
        len(income),
        len(prices),
        len(peers_data),
        len(peers),
    )
    return CompanyData(
        profile=profile,
        income_statements=income,
        balance_sheets=balance,
        cash_flow_statements=cash_flow,
        ratios_ttm=ratios,
        key_metrics=key_metrics,
        enterprise_values=enterprise_values,
        historical_prices=prices,
        peers=peers,
        peers_data=peers_data,
        source="fmp",
    )


async def fetch_company_data(
    symbol: str,
    config: DeckConfig,
    cache: ResponseCache | None = None,
    fallback: YahooProvider | None = None,
) -> CompanyData:
    """Fetch company data from FMP, falling back to yfinance.

    The fallback runs only for rate-limit and network failures. A
    not-found, auth or forbidden error from FMP propagates unchanged.

    Args:
        symbol: Ticker symbol.
        config: Deck configuration.
        cache: Response cache override.
        fallback: Fallback provider override.

    Returns:
        CompanyData from whichever provider succeeded.

    Raises:
        NotFoundError: Neither provider has a profile for the symbol.
        DataUnavailableError: Both providers failed.
    """
    try:
        return await fetch_from_fmp(symbol, config, cache)
    except (RateLimitError, NetworkError) as primary_error:
        logger.warning(
            "FMP unavailable for %s (%s), falling back to Yahoo Finance",
            symbol.upper(),
            primary_error,
        )
        provider = fallback if fallback is not None else YahooProvider(timeout=config.request_timeout)
        try:
            return await provider.fetch_company_data(symbol)
        except (DataUnavailableError, NetworkError) as e:
            raise DataUnavailableError(
                f"Could not fetch data for {symbol.upper()}: {primary_error}; "
                f"Yahoo Finance fallback also failed: {e}"
            ) from e
