"""Error taxonomy for data fetching and deck generation.

Every error surfaced to a caller carries a human-readable message and,
where one exists, a suggested remediation. ``retryable`` tells the caller
whether trying again later can succeed.
"""

from __future__ import annotations


class PitchDeckError(Exception):
    """Base class for all pitchdeck errors."""

    retryable: bool = False
    default_suggestion: str | None = None

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion if suggestion is not None else self.default_suggestion

    def __str__(self) -> str:
        return self.message


class ConfigurationError(PitchDeckError):
    """Missing or invalid configuration (e.g. no API key)."""


# ---------------------------------------------------------------------------
# Data source errors
# ---------------------------------------------------------------------------


class DataSourceError(PitchDeckError):
    """Base class for errors raised while talking to a data provider."""


class AuthenticationError(DataSourceError):
    """The provider rejected the API key (HTTP 401)."""

    default_suggestion = "Check that FMP_API_KEY holds a valid key."


class NotFoundError(DataSourceError):
    """The symbol resolved to no company profile."""

    default_suggestion = "Verify the ticker symbol and try again."


class RateLimitError(DataSourceError):
    """The provider rate limit was hit (HTTP 429)."""

    retryable = True
    default_suggestion = "Wait a minute before retrying; the free tier allows few calls."


class ForbiddenError(DataSourceError):
    """The endpoint is not included in the current access tier (HTTP 403)."""


class NetworkError(DataSourceError):
    """Connection failure or timeout."""

    retryable = True
    default_suggestion = "Check your network connection and retry."


class ProviderError(DataSourceError):
    """Unexpected HTTP status or malformed response body."""


class DataUnavailableError(DataSourceError):
    """Neither the primary nor the fallback provider returned data."""

    retryable = True
    default_suggestion = "Check the symbol and try again in a few minutes."


# ---------------------------------------------------------------------------
# Rendering errors
# ---------------------------------------------------------------------------


class RasterizerUnavailableError(PitchDeckError):
    """Chart rasterization cannot run in this environment."""

    default_suggestion = "Disable charts or run where matplotlib's Agg backend is available."


class SlideBuildError(PitchDeckError):
    """A named slide failed to build; the whole deck is abandoned."""

    def __init__(self, slide_name: str, cause: BaseException) -> None:
        super().__init__(f'Failed on slide "{slide_name}": {cause}')
        self.slide_name = slide_name


class SerializationError(PitchDeckError):
    """Writing the assembled deck to a PowerPoint file failed."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"Failed generating PowerPoint file: {cause}")
