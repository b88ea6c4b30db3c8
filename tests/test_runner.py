"""Tests for pitchdeck.runner."""

from __future__ import annotations

import asyncio
from io import BytesIO
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pptx import Presentation

from pitchdeck.config import DeckConfig
from pitchdeck.data.models import ChartToggles, CompanyData, FormInput
from pitchdeck.data.yahoo import YahooProvider
from pitchdeck.errors import ConfigurationError, NotFoundError
from pitchdeck.runner import run_pipeline

from conftest import GENERATED_ON, make_company, make_profile


class TestRunPipeline:
    """Fetch, chart, rasterize and build with the data layer mocked."""

    def test_full_pipeline_produces_pptx(self, form: FormInput, config: DeckConfig) -> None:
        fetch = AsyncMock(return_value=make_company())
        with patch("pitchdeck.runner.fetch_company_data", new=fetch):
            data = asyncio.run(run_pipeline(form, config, generated_on=GENERATED_ON))

        assert data[:2] == b"PK"
        assert len(Presentation(BytesIO(data)).slides) == 16
        assert fetch.call_args.args[0] == "AAPL"

    def test_symbol_is_normalized(self, config: DeckConfig) -> None:
        form = FormInput(company_input="  aapl ", charts=ChartToggles(False, False, False))
        fetch = AsyncMock(return_value=make_company())
        with patch("pitchdeck.runner.fetch_company_data", new=fetch):
            asyncio.run(run_pipeline(form, config, generated_on=GENERATED_ON))
        assert fetch.call_args.args[0] == "AAPL"

    def test_no_charts_skips_rasterizer(self, config: DeckConfig) -> None:
        form = FormInput(company_input="AAPL", charts=ChartToggles(False, False, False))
        with patch("pitchdeck.runner.fetch_company_data", new=AsyncMock(return_value=make_company())), \
                patch("pitchdeck.runner.MatplotlibRasterizer") as mock_rasterizer:
            data = asyncio.run(run_pipeline(form, config, generated_on=GENERATED_ON))

        mock_rasterizer.assert_not_called()
        assert len(Presentation(BytesIO(data)).slides) == 13

    def test_fetch_error_propagates(self, form: FormInput, config: DeckConfig) -> None:
        fetch = AsyncMock(side_effect=NotFoundError("No company found for symbol ZZZZ"))
        with patch("pitchdeck.runner.fetch_company_data", new=fetch):
            with pytest.raises(NotFoundError, match="ZZZZ"):
                asyncio.run(run_pipeline(form, config))

    def test_bad_theme_color_fails_before_fetch(self, config: DeckConfig) -> None:
        form = FormInput(company_input="AAPL", theme_color="blue")
        fetch = AsyncMock(return_value=make_company())
        with patch("pitchdeck.runner.fetch_company_data", new=fetch):
            with pytest.raises(ConfigurationError, match="Invalid theme color"):
                asyncio.run(run_pipeline(form, config))
        fetch.assert_not_awaited()


class TestRateLimitFallback:
    """An FMP rate limit still yields a deck built from Yahoo Finance data."""

    @patch("pitchdeck.data.fmp.requests.get")
    def test_rate_limited_fmp_falls_back_to_yahoo_deck(
        self, mock_get: MagicMock, form: FormInput, config: DeckConfig
    ) -> None:
        limited = MagicMock()
        limited.status_code = 429
        mock_get.return_value = limited
        yahoo = AsyncMock(return_value=CompanyData(profile=make_profile(), source="yahoo"))

        with patch.object(YahooProvider, "fetch_company_data", new=yahoo):
            data = asyncio.run(run_pipeline(form, config, generated_on=GENERATED_ON))

        yahoo.assert_awaited_once()
        prs = Presentation(BytesIO(data))
        assert len(prs.slides) == 13
        footer = next(s for s in prs.slides[1].shapes if s.name == "Footer")
        assert "Data: Yahoo Finance" in footer.text_frame.text
