"""Pipeline orchestrator.

Runs the four stages from form input to .pptx bytes: fetch, chart specs,
rasterize, build.
"""

from __future__ import annotations

import logging
from datetime import date

from pitchdeck.charts.rasterizer import MatplotlibRasterizer, Rasterizer, rasterize_charts
from pitchdeck.charts.specs import build_chart_specs
from pitchdeck.config import DeckConfig, normalize_hex_color
from pitchdeck.data import fetch_company_data
from pitchdeck.data.cache import ResponseCache
from pitchdeck.data.models import FormInput
from pitchdeck.deck import generate_deck

logger = logging.getLogger(__name__)


async def run_pipeline(
    form: FormInput,
    config: DeckConfig,
    rasterizer: Rasterizer | None = None,
    cache: ResponseCache | None = None,
    generated_on: date | None = None,
) -> bytes:
    """Generate a pitch deck for ``form.company_input``.

    Args:
        form: User form input.
        config: Deck configuration.
        rasterizer: Chart renderer (defaults to MatplotlibRasterizer when
            any chart is needed).
        cache: Response cache override.
        generated_on: Date printed on the deck.

    Returns:
        The .pptx file contents.

    Raises:
        PitchDeckError: Any stage failure, unchanged.
    """
    # Reject a bad theme color before any provider call
    normalize_hex_color(form.theme_color)
    symbol = form.company_input.strip().upper()
    logger.info("=== Fetching data for %s ===", symbol)
    company = await fetch_company_data(symbol, config, cache=cache)

    logger.info("=== Building chart specifications ===")
    specs = build_chart_specs(company, form, config)
    logger.info("%d charts to render", len(specs))

    if specs and rasterizer is None:
        rasterizer = MatplotlibRasterizer()
    charts = await rasterize_charts(specs, rasterizer, config)

    logger.info("=== Building deck ===")
    data = generate_deck(company, form, charts, generated_on=generated_on)
    logger.info("Deck for %s complete (%d bytes)", symbol, len(data))
    return data
