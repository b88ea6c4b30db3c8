"""Deck generation configuration dataclasses."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field

from pitchdeck.errors import ConfigurationError

FMP_BASE_URL = "https://financialmodelingprep.com/stable"

# Default TTL when CACHE_DURATION_MINUTES is unset. The free FMP tier has
# strict daily limits, so responses are kept for an hour.
DEFAULT_CACHE_MINUTES: int = 60

DEFAULT_THEME_COLOR = "#2563eb"

_HEX_DIGITS = re.compile(r"[0-9a-fA-F]{6}")


@dataclass(frozen=True)
class ChartSize:
    """Target pixel dimensions for one rasterized chart."""

    width: int
    height: int


@dataclass
class DeckConfig:
    """Main configuration for data fetching and deck assembly.

    Attributes:
        api_key: Financial Modeling Prep API key.
        base_url: FMP stable API base URL.
        request_timeout: Seconds before a provider call is abandoned.
        cache_ttl_minutes: Lifetime of cached provider responses.
        statement_limit: Number of annual statements requested.
        max_peers: Upper bound on peers enriched in the second wave.
        price_max_points: Density cap for the price chart.
        peer_revenue_multiplier: Market cap multiplier used to estimate
            peer revenue for the market share chart.
        line_chart_size: Pixel size of the price and revenue charts.
        pie_chart_size: Pixel size of the market share chart.
        settle_delay: Seconds awaited before chart capture begins.
        rasterize_timeout: Seconds allowed for a single chart rasterization.
    """

    api_key: str = ""
    base_url: str = FMP_BASE_URL
    request_timeout: float = 15.0
    cache_ttl_minutes: int = DEFAULT_CACHE_MINUTES

    statement_limit: int = 5
    max_peers: int = 5

    price_max_points: int = 250
    peer_revenue_multiplier: float = 0.15

    line_chart_size: ChartSize = field(default_factory=lambda: ChartSize(900, 450))
    pie_chart_size: ChartSize = field(default_factory=lambda: ChartSize(800, 500))
    settle_delay: float = 0.1
    rasterize_timeout: float = 30.0

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> DeckConfig:
        """Build a config from environment variables.

        Reads FMP_API_KEY (required) and CACHE_DURATION_MINUTES (optional).

        Args:
            environ: Mapping to read from (defaults to os.environ).

        Returns:
            Populated DeckConfig.

        Raises:
            ConfigurationError: If the API key is missing or the cache
                duration is not a positive integer.
        """
        env = os.environ if environ is None else environ

        api_key = env.get("FMP_API_KEY", "").strip()
        if not api_key:
            raise ConfigurationError(
                "FMP_API_KEY environment variable is not set",
                suggestion="Export FMP_API_KEY with your Financial Modeling Prep key.",
            )

        raw_ttl = env.get("CACHE_DURATION_MINUTES", "").strip()
        ttl = DEFAULT_CACHE_MINUTES
        if raw_ttl:
            try:
                ttl = int(raw_ttl)
            except ValueError:
                raise ConfigurationError(
                    f"CACHE_DURATION_MINUTES must be an integer, got {raw_ttl!r}",
                ) from None
            if ttl <= 0:
                raise ConfigurationError(
                    f"CACHE_DURATION_MINUTES must be positive, got {ttl}",
                )

        return cls(api_key=api_key, cache_ttl_minutes=ttl)

    def require_api_key(self) -> str:
        """Return the API key, raising if it was never configured."""
        if not self.api_key:
            raise ConfigurationError(
                "No FMP API key configured",
                suggestion="Export FMP_API_KEY with your Financial Modeling Prep key.",
            )
        return self.api_key


def normalize_hex_color(value: str) -> str:
    """Return a theme color as six lower-case hex digits without "#".

    Accepts "#rrggbb", "rrggbb" and the 3-digit shorthand "#rgb". A blank
    value gives the default accent.

    Raises:
        ConfigurationError: Named colors or anything that is not hex.
    """
    digits = value.strip().lstrip("#")
    if not digits:
        return DEFAULT_THEME_COLOR.lstrip("#")
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    if not _HEX_DIGITS.fullmatch(digits):
        raise ConfigurationError(
            f"Invalid theme color {value!r}",
            suggestion=f"Use a 6-digit hex color like {DEFAULT_THEME_COLOR}.",
        )
    return digits.lower()
