"""Deck assembly.

``DeckBuilder`` maps CompanyData, FormInput and rasterized charts onto a
fixed sequence of slides. Every number goes through ``formatting`` so a
missing value shows as "N/A"; a slide that fails for any reason aborts
the whole build with ``SlideBuildError``.
"""

from __future__ import annotations

import logging
import statistics
from collections.abc import Callable
from datetime import date

from pitchdeck.analysis.derived_metrics import (
    condense_description,
    ebitda_margin,
    latest_statement,
    parse_employee_count,
    parse_price_range,
    revenue_growth,
    shares_outstanding,
    sort_statements,
    upside_percent,
)
from pitchdeck.analysis.formatting import (
    NOT_AVAILABLE,
    Display,
    Formatted,
    format_count,
    format_decimal,
    format_fraction_percent,
    format_large_number,
    format_millions,
    format_percentage,
    format_price,
    format_ratio,
    format_signed_percentage,
    format_text,
)
from pitchdeck.charts.rasterizer import RasterizedChart
from pitchdeck.charts.specs import CHART_ORDER, ChartKind
from pitchdeck.data.models import CompanyData, FormInput
from pitchdeck.deck import templates
from pitchdeck.deck.slides import (
    Align,
    ChartSlide,
    ContentSlide,
    CoverSlide,
    Deck,
    ImageElement,
    ShapeElement,
    SlideDescription,
    TableCell,
    TableElement,
    TableSlide,
    TextElement,
    UserInputSlide,
    create_theme,
)
from pitchdeck.errors import SlideBuildError

logger = logging.getLogger(__name__)

CHART_SLIDE_NAMES = {
    ChartKind.REVENUE_GROWTH: "RevenueGrowthChart",
    ChartKind.PRICE_PERFORMANCE: "PricePerformanceChart",
    ChartKind.MARKET_SHARE: "MarketShareChart",
}

_WHITE = "ffffff"
_HIGHLIGHT = "e8ecef"


def _display_date(day: date) -> str:
    return f"{day:%B} {day.day}, {day.year}"


class DeckBuilder:
    """Build a Deck from company data, form input and chart images.

    Args:
        company: Aggregated company data.
        form: User form input.
        charts: Rasterized charts; only kinds also enabled in the form
            become slides.
        generated_on: Date printed on the deck (defaults to today).
    """

    def __init__(
        self,
        company: CompanyData,
        form: FormInput,
        charts: list[RasterizedChart] | None = None,
        generated_on: date | None = None,
    ) -> None:
        self._company = company
        self._form = form
        self._charts = {c.kind: c for c in charts or []}
        self._theme = create_theme(form.theme_color)
        self._generated = _display_date(generated_on or date.today())

        self._profile = company.profile
        self._ratios = company.ratios_ttm
        self._income = sort_statements(company.income_statements)
        self._latest_income = self._income[-1] if self._income else None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build(self) -> Deck:
        """Assemble every slide in canonical order.

        Raises:
            SlideBuildError: Naming the first slide that failed.
        """
        slides: list[SlideDescription] = []
        for name, step in self._plan():
            logger.debug("Adding slide: %s", name)
            try:
                slides.append(step())
            except Exception as e:
                logger.error("Slide %s failed: %s", name, e)
                raise SlideBuildError(name, e) from e

        logger.info("Built %d slides for %s", len(slides), self._profile.symbol)
        return Deck(
            slides=slides,
            theme=self._theme,
            title=f"{self._profile.symbol} Stock Pitch",
            subject=f"{self._profile.company_name} - Buy-Side Pitch",
            author=self._form.author_name or templates.GENERATOR_NAME,
        )

    def _plan(self) -> list[tuple[str, Callable[[], SlideDescription]]]:
        steps: list[tuple[str, Callable[[], SlideDescription]]] = [
            ("Cover", self._cover),
            ("TableOfContents", self._table_of_contents),
            ("InvestmentSummary", self._investment_summary),
            ("CompanyOverview", self._company_overview),
            ("IndustryOverview", self._industry_overview),
            ("KeyMetrics", self._key_metrics),
            ("FinancialSummary", self._financial_summary),
        ]
        for kind in self._enabled_charts():
            chart = self._charts[kind]
            steps.append((CHART_SLIDE_NAMES[kind], lambda chart=chart: self._chart_slide(chart)))
        steps += [
            ("PeerComparison", self._peer_comparison),
            ("GrowthDrivers", self._growth_drivers),
            ("InvestmentThesis", self._investment_thesis),
            ("Valuation", self._valuation),
            ("RisksAndMitigants", self._risks_and_mitigants),
            ("Appendix", self._appendix),
        ]
        return steps

    def _enabled_charts(self) -> list[ChartKind]:
        toggles = self._form.charts
        enabled = {
            ChartKind.REVENUE_GROWTH: toggles.revenue_growth,
            ChartKind.PRICE_PERFORMANCE: toggles.price_performance,
            ChartKind.MARKET_SHARE: toggles.market_share,
        }
        return [k for k in CHART_ORDER if enabled[k] and k in self._charts]

    # ------------------------------------------------------------------
    # Layout helpers
    # ------------------------------------------------------------------

    def _text(self, x: float, y: float, w: float, h: float, text: str | Display, **style: object) -> TextElement:
        style.setdefault("font", self._theme.body_font)
        style.setdefault("color", self._theme.text)
        return TextElement(x, y, w, h, str(text), **style)  # type: ignore[arg-type]

    def _header_bar(self, slide: SlideDescription, title: str) -> None:
        """Full-width dark band with the slide title in white."""
        slide.add(
            ShapeElement(0, 0, 10, 0.45, self._theme.primary),
            ShapeElement(0, 0.45, 10, 0.04, self._theme.accent),
            self._text(0.3, 0.05, 7.8, 0.35, title, size=16, bold=True, color=_WHITE,
                       font=self._theme.heading_font, role="Title"),
        )

    def _plain_title(self, slide: SlideDescription, title: str) -> None:
        slide.add(
            self._text(0.5, 0.4, 9, 0.6, title, size=26, bold=True,
                       font=self._theme.heading_font, role="Title"),
        )

    def _section(self, slide: SlideDescription, x: float, y: float, label: str, w: float = 3.0) -> None:
        """Small uppercase section label with an accent underline."""
        slide.add(
            self._text(x, y, w, 0.22, label, size=8, bold=True, color=self._theme.accent),
            ShapeElement(x, y + 0.23, 0.8, 0.02, self._theme.accent),
        )

    def _rows(
        self,
        slide: SlideDescription,
        rows: list[tuple[str, str | Display]],
        x: float,
        y: float,
        label_w: float,
        value_w: float,
        step: float = 0.24,
        size: float = 7,
    ) -> None:
        """Label/value pairs stacked vertically."""
        for i, (label, value) in enumerate(rows):
            row_y = y + i * step
            slide.add(
                self._text(x, row_y, label_w, step - 0.02, label, size=size, color=self._theme.muted),
                self._text(x + label_w, row_y, value_w, step - 0.02, value, size=size, bold=True),
            )

    def _action_badge(self, slide: SlideDescription) -> None:
        slide.add(
            ShapeElement(8.2, 0.09, 1.5, 0.28, templates.ACTION_COLOR, text="ACTION REQUIRED",
                         text_size=8, bold=True, role="ActionRequired"),
        )

    def _footer(self, slide: SlideDescription) -> None:
        slide.add(
            self._text(0.5, 5.25, 9, 0.3, templates.footer_text(self._company.source, self._generated),
                       size=7, color=self._theme.light, role="Footer"),
        )

    def _header_cell(self, text: str, align: Align = Align.LEFT, fill: str | None = None) -> TableCell:
        return TableCell(text, bold=True, fill=fill or self._theme.primary, color=_WHITE, align=align)

    # ------------------------------------------------------------------
    # Shared values
    # ------------------------------------------------------------------

    def _upside(self) -> float | None:
        return upside_percent(self._profile.price, self._form.target_price)

    def _target_display(self) -> str:
        target = self._form.target_price
        return str(format_price(target)) if target is not None and target > 0 else "TBD"

    def _rating_color(self) -> str:
        return templates.RATING_COLORS[self._form.rating]

    def _enterprise_value(self) -> float | None:
        for records in (self._company.enterprise_values, self._company.key_metrics):
            latest = latest_statement(records)
            if latest is not None and latest.enterprise_value is not None:
                return latest.enterprise_value
        return None

    def _headquarters(self) -> str:
        city = self._profile.city
        region = self._profile.state or self._profile.country
        parts = [p for p in (city, region) if p]
        return ", ".join(parts) if parts else NOT_AVAILABLE

    def _employees(self) -> Display:
        return format_count(parse_employee_count(self._profile.full_time_employees))

    def _shares_outstanding(self) -> str:
        shares = shares_outstanding(self._profile)
        return f"{shares / 1e9:.2f}B" if shares is not None else NOT_AVAILABLE

    def _fiscal_year_end(self) -> str:
        if self._latest_income is None or len(self._latest_income.date) < 7:
            return NOT_AVAILABLE
        try:
            month = int(self._latest_income.date[5:7])
            return date(2000, month, 1).strftime("%B")
        except ValueError:
            return NOT_AVAILABLE

    def _latest_free_cash_flow(self) -> float | None:
        latest = latest_statement(self._company.cash_flow_statements)
        return latest.free_cash_flow if latest else None

    def _ratio(self, name: str) -> float | None:
        return getattr(self._ratios, name) if self._ratios is not None else None

    # ------------------------------------------------------------------
    # Slides
    # ------------------------------------------------------------------

    def _cover(self) -> SlideDescription:
        p = self._profile
        t = self._theme
        slide = CoverSlide(name="Cover", title=p.company_name)

        slide.add(
            ShapeElement(0, 0, 6, 5.625, t.primary),
            ShapeElement(6, 0, 4, 5.625, "1e3354"),
            ShapeElement(6.8, 1.5, 2.4, 2.4, "2a4a6a", text=p.symbol, text_color="6b8eb8",
                         text_size=24, bold=True, role="Logo"),
            self._text(6.3, 4.2, 3.2, 0.4, "[ Company HQ / Product Image ]", size=8,
                       italic=True, color="5a7a9a", align=Align.CENTER),
            ShapeElement(0, 0, 10, 0.12, t.accent),
            ShapeElement(4.3, 0.35, 1.4, 0.55, self._rating_color(),
                         text=self._form.rating.value.upper(), text_size=14, bold=True, role="Rating"),
            self._text(0.5, 0.5, 3.5, 0.3, "BUY-SIDE EQUITY RESEARCH", size=9, bold=True, color=t.light),
            self._text(0.5, 1.2, 5.3, 0.9, p.company_name, size=32, bold=True, color=_WHITE,
                       font=t.heading_font, role="Title"),
            self._text(0.5, 2.05, 5.3, 0.35, f"{p.symbol} : {p.exchange or NOT_AVAILABLE}",
                       size=16, color="e8ecef"),
            self._text(0.5, 2.4, 5.3, 0.3,
                       f"{format_text(p.sector)} | {format_text(p.industry)}", size=11, color=t.light),
            ShapeElement(0.5, 2.85, 1.5, 0.03, t.accent),
        )

        upside = self._upside()
        stats = [
            [("PRICE", format_price(p.price)), ("TARGET", self._target_display())],
            [("MARKET CAP", format_large_number(p.market_cap)),
             ("UPSIDE", format_signed_percentage(upside, 0))],
            [("HORIZON", f"{self._form.time_horizon.value} Months"), ("BETA", format_decimal(p.beta))],
        ]
        for row_idx, row in enumerate(stats):
            for col_idx, (label, value) in enumerate(row):
                x = 0.5 + col_idx * 2.6
                y = 3.05 + row_idx * 0.6
                slide.add(
                    self._text(x, y, 2.4, 0.22, label, size=7, color="7a8a9a"),
                    self._text(x, y + 0.2, 2.4, 0.35, value, size=14, bold=True, color=_WHITE),
                )

        author = self._form.author_name or "Analyst"
        slide.add(
            ShapeElement(0, 4.9, 6, 0.725, "0f1d2d"),
            self._text(0.5, 5.0, 5.3, 0.35, f"Prepared by {author} | {self._generated} | Confidential",
                       size=8, color=t.muted),
        )
        if p.city or p.country:
            slide.add(
                self._text(6.3, 4.6, 3.2, 0.3, f"HQ: {self._headquarters()}", size=9,
                           color="8aaaca", align=Align.CENTER),
            )
        return slide

    def _table_of_contents(self) -> SlideDescription:
        slide = ContentSlide(name="TableOfContents", title="Table of Contents")
        self._plain_title(slide, slide.title)
        items = "\n".join(f"{i}. {item}" for i, item in enumerate(templates.TABLE_OF_CONTENTS, start=1))
        slide.add(self._text(0.5, 1.2, 5, 3.9, items, size=11, color=self._theme.secondary))
        self._footer(slide)
        return slide

    def _investment_summary(self) -> SlideDescription:
        p = self._profile
        t = self._theme
        title = f"{p.company_name} ({p.symbol}) | Investment Summary"
        slide = ContentSlide(name="InvestmentSummary", title=title)
        self._header_bar(slide, title)
        slide.add(
            ShapeElement(8.5, 0.08, 1.2, 0.3, self._rating_color(), text=self._form.rating.value.upper(),
                         text_size=10, bold=True),
        )

        upside = self._upside()
        self._section(slide, 0.3, 0.55, "RECOMMENDATION")
        self._rows(slide, [
            ("Rating", self._form.rating.value),
            ("Target Price", self._target_display()),
            ("Current Price", format_price(p.price)),
            ("Upside/(Downside)", format_signed_percentage(upside)),
            ("Time Horizon", f"{self._form.time_horizon.value} months"),
            ("52-Week Range", format_text(p.range_52w)),
        ], x=0.3, y=0.85, label_w=1.5, value_w=1.5, step=0.27)

        self._section(slide, 3.55, 0.55, "VALUATION METRICS")
        self._rows(slide, [
            ("Market Cap", format_large_number(p.market_cap)),
            ("Enterprise Value", format_large_number(self._enterprise_value())),
            ("P/E (TTM)", format_ratio(self._ratio("pe_ratio"), 1)),
            ("EV/EBITDA", format_ratio(self._ratio("ev_to_ebitda"), 1)),
            ("P/S (TTM)", format_ratio(self._ratio("price_to_sales"), 1)),
            ("P/B (TTM)", format_ratio(self._ratio("price_to_book"), 1)),
        ], x=3.55, y=0.85, label_w=1.5, value_w=1.5, step=0.27)

        latest = self._latest_income
        self._section(slide, 6.8, 0.55, "OPERATING METRICS")
        self._rows(slide, [
            ("Revenue (LTM)", format_large_number(latest.revenue if latest else None)),
            ("Gross Margin", format_fraction_percent(self._ratio("gross_margin"))),
            ("EBITDA Margin", format_fraction_percent(ebitda_margin(latest))),
            ("Net Margin", format_fraction_percent(self._ratio("net_margin"))),
            ("ROE", format_fraction_percent(self._ratio("return_on_equity"))),
            ("Debt/Equity", format_ratio(self._ratio("debt_to_equity"))),
        ], x=6.8, y=0.85, label_w=1.5, value_w=1.4, step=0.27)

        slide.add(ShapeElement(0.3, 2.55, 9.4, 0.01, t.light))

        market_cap = format_large_number(p.market_cap)
        pe = format_ratio(self._ratio("pe_ratio"), 1)
        thesis = [
            f"{p.company_name} is a {p.sector or 'diversified'} company operating in "
            f"{p.industry or 'its industry'}",
            "Strong competitive position with "
            f"{market_cap if market_cap.available else 'significant'} market cap and established "
            "market presence",
            templates.SUMMARY_CATALYST_BULLET,
            f"Attractive valuation at {pe if pe.available else 'current'} P/E vs. historical "
            "average and peers",
        ]
        self._section(slide, 0.3, 2.62, "INVESTMENT THESIS SUMMARY", w=4)
        slide.add(self._text(0.3, 2.9, 9.4, 1.0, templates.bullets(thesis), size=8))

        self._section(slide, 0.3, 3.95, "COMPANY SNAPSHOT")
        snapshot: list[tuple[str, str | Display]] = [
            ("Sector", format_text(p.sector)),
            ("Industry", format_text(p.industry)),
            ("Headquarters", self._headquarters()),
            ("CEO", format_text(p.ceo)),
            ("Employees", self._employees()),
            ("Founded/IPO", format_text(p.ipo_date)),
        ]
        for i, (label, value) in enumerate(snapshot):
            x = 0.3 + (i % 2) * 2.3
            y = 4.25 + (i // 2) * 0.3
            slide.add(
                self._text(x, y, 0.9, 0.26, f"{label}:", size=7, color=t.muted),
                self._text(x + 0.9, y, 1.4, 0.26, value, size=7, bold=True),
            )

        self._section(slide, 5.1, 3.95, "KEY RISKS")
        slide.add(self._text(5.1, 4.25, 4.6, 0.9, templates.bullets(templates.SUMMARY_KEY_RISKS), size=7.5))
        self._footer(slide)
        return slide

    def _company_overview(self) -> SlideDescription:
        p = self._profile
        t = self._theme
        title = f"Company Overview | {p.company_name}"
        slide = ContentSlide(name="CompanyOverview", title=title)
        self._header_bar(slide, title)

        website = (p.website or "").replace("https://", "").replace("http://", "")[:25]
        low, high = parse_price_range(p.range_52w)
        average_volume = p.average_volume
        columns: list[tuple[str, list[tuple[str, str | Display]]]] = [
            ("CORPORATE PROFILE", [
                ("Ticker", f"{p.symbol} ({p.exchange or NOT_AVAILABLE})"),
                ("Sector", format_text(p.sector)),
                ("Industry", format_text(p.industry)),
                ("HQ Location", self._headquarters()),
                ("Country", format_text(p.country)),
                ("Website", format_text(website)),
                ("Fiscal Year End", self._fiscal_year_end()),
                ("Currency", format_text(p.currency)),
            ]),
            ("MANAGEMENT & KEY DATA", [
                ("CEO", format_text(p.ceo)),
                ("Employees", self._employees()),
                ("IPO Date", format_text(p.ipo_date)),
                ("Shares Out", self._shares_outstanding()),
                ("Enterprise Value", format_large_number(self._enterprise_value())),
                ("Revenue (LTM)", format_large_number(
                    self._latest_income.revenue if self._latest_income else None)),
                ("Net Income (LTM)", format_large_number(
                    self._latest_income.net_income if self._latest_income else None)),
                ("Free Cash Flow", format_large_number(self._latest_free_cash_flow())),
            ]),
            ("TRADING DATA", [
                ("Stock Price", format_price(p.price)),
                ("Market Cap", format_large_number(p.market_cap)),
                ("52-Week High", format_price(high)),
                ("52-Week Low", format_price(low)),
                ("Avg Volume", Formatted(f"{average_volume / 1e6:.1f}M")
                 if average_volume is not None else format_count(None)),
                ("Beta", format_decimal(p.beta)),
                ("Div Yield", format_fraction_percent(self._ratio("dividend_yield"), 2)),
                ("P/E (TTM)", format_ratio(self._ratio("pe_ratio"), 1)),
            ]),
        ]
        for i, (header, rows) in enumerate(columns):
            x = 0.25 + i * 3.1
            slide.add(ShapeElement(x, 0.55, 3.0, 2.25, t.panel))
            self._section(slide, x + 0.1, 0.58, header, w=2.8)
            self._rows(slide, rows, x=x + 0.1, y=0.88, label_w=1.1, value_w=1.75)

        description = (
            condense_description(p.description, templates.DESCRIPTION_MAX_WORDS)
            if p.description
            else templates.DESCRIPTION_FALLBACK
        )
        self._section(slide, 0.3, 2.9, "BUSINESS DESCRIPTION")
        slide.add(self._text(0.3, 3.18, 9.4, 1.05, description, size=7))

        self._section(slide, 0.3, 4.3, "KEY BUSINESS SEGMENTS")
        slide.add(self._text(0.3, 4.55, 3.0, 0.65, templates.bullets(templates.KEY_SEGMENTS), size=7))
        slide.add(
            ShapeElement(3.6, 4.3, 2.8, 0.85, t.panel, text="[ Add product/facility images ]",
                         text_color=t.muted, text_size=8),
        )
        self._section(slide, 6.7, 4.3, "COMPETITIVE MOATS")
        slide.add(self._text(6.7, 4.55, 3.0, 0.65, templates.bullets(templates.COMPETITIVE_MOATS), size=7))
        self._footer(slide)
        return slide

    def _industry_overview(self) -> SlideDescription:
        p = self._profile
        slide = ContentSlide(name="IndustryOverview", title="Industry Overview", action_required=True)
        self._plain_title(slide, slide.title)
        slide.add(
            self._text(0.5, 1.1, 9, 0.35, f"Sector: {format_text(p.sector)}", size=14, bold=True,
                       color=self._theme.secondary),
            self._text(0.5, 1.45, 9, 0.35, f"Industry: {format_text(p.industry)}", size=14,
                       color=self._theme.secondary),
        )
        for i, bullet in enumerate(templates.INDUSTRY_BULLETS):
            slide.add(self._text(0.5, 2.0 + i * 0.42, 9, 0.38, f"• {bullet}", size=11))
        slide.add(
            self._text(0.5, 4.4, 9, 0.4, templates.INDUSTRY_NOTE, size=9, italic=True, color=self._theme.muted),
        )
        slide.notes = "Industry data is a template; supplement it from industry reports."
        self._footer(slide)
        return slide

    def _key_metrics(self) -> SlideDescription:
        p = self._profile
        t = self._theme
        slide = TableSlide(name="KeyMetrics", title="Key Metrics at a Glance", data_available=bool(self._income))
        self._header_bar(slide, slide.title)

        kpis = [
            ("MKT CAP", format_large_number(p.market_cap), t.primary),
            ("PRICE", format_price(p.price), t.accent),
            ("P/E", format_ratio(self._ratio("pe_ratio"), 1), t.secondary),
            ("EV/EBITDA", format_ratio(self._ratio("ev_to_ebitda"), 1), t.muted),
            ("DIV YIELD", format_fraction_percent(self._ratio("dividend_yield")), templates.POSITIVE_COLOR),
            ("BETA", format_decimal(p.beta), t.light),
        ]
        for i, (label, value, color) in enumerate(kpis):
            x = 0.3 + i * 1.57
            slide.add(
                ShapeElement(x, 0.6, 1.45, 0.75, color),
                self._text(x, 0.64, 1.45, 0.22, label, size=7, bold=True, color=_WHITE, align=Align.CENTER),
                self._text(x, 0.88, 1.45, 0.4, value, size=14, bold=True, color=_WHITE, align=Align.CENTER),
            )

        if not self._income:
            self._section(slide, 0.7, 1.6, "VALUATION & TRADING METRICS", w=4)
            alt: list[tuple[str, str | Display]] = [
                ("Beta", format_decimal(p.beta)),
                ("52-Week Range", format_text(p.range_52w)),
                ("Average Volume", format_count(p.average_volume)),
                ("Dividend Yield", format_fraction_percent(self._ratio("dividend_yield"))),
                ("ROE", format_fraction_percent(self._ratio("return_on_equity"))),
                ("Debt/Equity", format_ratio(self._ratio("debt_to_equity"))),
            ]
            for i, (label, value) in enumerate(alt):
                x = 0.7 + (i % 2) * 4.5
                y = 2.05 + (i // 2) * 0.7
                slide.add(
                    self._text(x, y, 2.0, 0.25, label, size=9, color=t.muted),
                    self._text(x, y + 0.25, 3.5, 0.35, value, size=14, bold=True),
                )
            slide.add(
                self._text(0.7, 4.3, 8.6, 0.6, templates.KEY_METRICS_UNAVAILABLE_NOTE + ".\n"
                           "Please add financial data manually.", size=9, italic=True, color=t.muted,
                           role="Notice"),
            )
            slide.notes = "USER ACTION REQUIRED: Add historical financial performance manually."
            slide.action_required = True
            self._footer(slide)
            return slide

        recent = list(reversed(self._income[-4:]))
        header = [self._header_cell("Metric")]
        header += [self._header_cell(f"FY{s.calendar_year}", Align.RIGHT) for s in recent]
        has_ttm = self._ratios is not None
        if has_ttm:
            header.append(self._header_cell("TTM", Align.RIGHT, fill=t.accent))

        metric_rows = [
            ("Revenue", lambda s: format_large_number(s.revenue), None),
            ("Gross Profit", lambda s: format_large_number(s.gross_profit), None),
            ("EBITDA", lambda s: format_large_number(s.ebitda), None),
            ("Net Income", lambda s: format_large_number(s.net_income), None),
            ("Gross Margin", lambda s: format_fraction_percent(s.gross_profit_ratio),
             format_fraction_percent(self._ratio("gross_margin"))),
            ("Net Margin", lambda s: format_fraction_percent(s.net_income_ratio),
             format_fraction_percent(self._ratio("net_margin"))),
            ("EPS (Diluted)", lambda s: format_price(s.eps_diluted), None),
        ]
        rows = [tuple(header)]
        for label, value_of, ttm in metric_rows:
            row = [TableCell(label, bold=True)]
            row += [TableCell(str(value_of(s)), align=Align.RIGHT) for s in recent]
            if has_ttm:
                row.append(TableCell(str(ttm) if ttm is not None else "-", align=Align.RIGHT))
            rows.append(tuple(row))

        self._section(slide, 0.3, 1.5, "FINANCIAL PERFORMANCE")
        slide.add(TableElement(0.3, 1.85, 9.4, tuple(rows), row_height=0.36, font_size=9, role="MetricsTable"))
        self._footer(slide)
        return slide

    def _financial_summary(self) -> SlideDescription:
        slide = TableSlide(name="FinancialSummary", title="Financial Summary", data_available=bool(self._income))
        self._plain_title(slide, slide.title)

        if not self._income:
            slide.add(
                self._text(0.5, 1.5, 9, 1.5, templates.FINANCIALS_UNAVAILABLE, size=14,
                           color=self._theme.muted, role="Notice"),
            )
            slide.notes = "USER ACTION REQUIRED: Add financial statement data manually."
            slide.action_required = True
            self._footer(slide)
            return slide

        statements = self._income
        growth = {g.year: g.growth for g in revenue_growth(statements)}
        cash_flows = {c.calendar_year: c for c in self._company.cash_flow_statements}

        header = [self._header_cell("($ millions)")]
        header += [self._header_cell(f"FY{s.calendar_year}", Align.RIGHT) for s in statements]
        line_items = [
            ("Revenue", lambda s: format_millions(s.revenue)),
            ("Revenue Growth", lambda s: format_percentage(growth.get(s.calendar_year))),
            ("Gross Profit", lambda s: format_millions(s.gross_profit)),
            ("EBITDA", lambda s: format_millions(s.ebitda)),
            ("Operating Income", lambda s: format_millions(s.operating_income)),
            ("Net Income", lambda s: format_millions(s.net_income)),
            ("Free Cash Flow", lambda s: format_millions(
                cash_flows[s.calendar_year].free_cash_flow if s.calendar_year in cash_flows else None)),
        ]
        rows = [tuple(header)]
        for label, value_of in line_items:
            rows.append(
                (TableCell(label, bold=True),)
                + tuple(TableCell(str(value_of(s)), align=Align.RIGHT) for s in statements)
            )

        slide.add(TableElement(0.5, 1.2, 9, tuple(rows), row_height=0.4, font_size=10, role="FinancialTable"))
        self._footer(slide)
        return slide

    def _chart_slide(self, chart: RasterizedChart) -> SlideDescription:
        slide = ChartSlide(
            name=CHART_SLIDE_NAMES[chart.kind],
            title=chart.slide_title,
            chart_kind=chart.kind,
            notes=chart.notes,
        )
        self._plain_title(slide, chart.slide_title)

        # Fit inside 9 x 4.1 inches, preserving aspect ratio
        w = 9.0
        h = w * chart.height / chart.width
        if h > 4.1:
            h = 4.1
            w = h * chart.width / chart.height
        slide.add(ImageElement((10 - w) / 2, 1.05, w, h, chart.png, role="Chart"))
        self._footer(slide)
        return slide

    def _peer_comparison(self) -> SlideDescription:
        p = self._profile
        peers = self._company.peers_data[:5]
        slide = TableSlide(name="PeerComparison", title="Peer Comparison", data_available=bool(peers))
        self._plain_title(slide, slide.title)

        header = (
            self._header_cell("Company"),
            self._header_cell("Market Cap", Align.RIGHT),
            self._header_cell("P/E (TTM)", Align.RIGHT),
            self._header_cell("EV/EBITDA", Align.RIGHT),
        )
        rows = [header]
        rows.append((
            TableCell(f"{p.company_name} *", bold=True, fill=_HIGHLIGHT),
            TableCell(str(format_large_number(p.market_cap)), fill=_HIGHLIGHT, align=Align.RIGHT),
            TableCell(str(format_ratio(self._ratio("pe_ratio"), 1)), fill=_HIGHLIGHT, align=Align.RIGHT),
            TableCell(str(format_ratio(self._ratio("ev_to_ebitda"), 1)), fill=_HIGHLIGHT, align=Align.RIGHT),
        ))
        for peer in peers:
            rows.append((
                TableCell(peer.company_name),
                TableCell(str(format_large_number(peer.market_cap)), align=Align.RIGHT),
                TableCell(str(format_ratio(peer.pe_ratio, 1)), align=Align.RIGHT),
                TableCell(str(format_ratio(peer.ev_to_ebitda, 1)), align=Align.RIGHT),
            ))

        table = TableElement(0.5, 1.2, 9, tuple(rows), row_height=0.4, font_size=10,
                             col_widths=(3.6, 1.8, 1.8, 1.8), role="PeerTable")
        slide.add(table)
        note_y = table.y + table.h + 0.15
        slide.add(self._text(0.5, note_y, 9, 0.3, "* Subject company", size=8, italic=True,
                             color=self._theme.muted))
        if not peers:
            slide.add(self._text(0.5, note_y + 0.35, 9, 0.3, "No peer data available for this company.",
                                 size=10, color=self._theme.muted, role="Notice"))
        self._footer(slide)
        return slide

    def _growth_drivers(self) -> SlideDescription:
        p = self._profile
        t = self._theme
        slide = ContentSlide(name="GrowthDrivers", title="Growth Drivers & Business Model", action_required=True)
        self._header_bar(slide, slide.title)

        self._section(slide, 0.3, 0.6, "BUSINESS MODEL & REVENUE DRIVERS", w=4.5)
        model = [f"Industry: {format_text(p.industry)}", f"Sector: {format_text(p.sector)}"]
        model.append(templates.bullets(templates.BUSINESS_MODEL_BULLETS))
        slide.add(self._text(0.3, 0.9, 4.5, 1.3, "\n".join(model), size=8))

        self._section(slide, 5.1, 0.6, "GROWTH INITIATIVES & CATALYSTS", w=4.5)
        slide.add(self._text(5.1, 0.9, 4.6, 1.3, templates.bullets(templates.GROWTH_INITIATIVES), size=8))

        self._section(slide, 0.3, 2.25, "KEY PRODUCTS & SERVICES")
        for i in range(3):
            slide.add(
                ShapeElement(0.3 + i * 3.1, 2.55, 2.9, 0.95, t.panel, text=f"[ Product/Service {i + 1} Image ]",
                             text_color=t.muted, text_size=8),
            )

        self._section(slide, 0.3, 3.6, "COMPETITIVE ADVANTAGES & MOATS", w=4)
        for i, (name, desc) in enumerate(templates.COMPETITIVE_ADVANTAGES):
            x = 0.3 + i * 2.35
            slide.add(
                ShapeElement(x, 3.9, 2.2, 0.85, t.panel),
                self._text(x + 0.1, 3.98, 2.0, 0.3, name, size=9, bold=True, color=t.accent),
                self._text(x + 0.1, 4.3, 2.0, 0.35, desc, size=8, color=t.secondary),
            )
        slide.notes = "Growth drivers are a template; replace the bracketed items."
        self._footer(slide)
        return slide

    def _investment_thesis(self) -> SlideDescription:
        p = self._profile
        t = self._theme
        user_text = self._form.investment_thesis.strip()
        slide = UserInputSlide(
            name="InvestmentThesis",
            title="Investment Thesis",
            field_name="investment_thesis",
            placeholder_used=not user_text,
            action_required=not user_text,
        )
        self._header_bar(slide, slide.title)

        lines = [line.strip() for line in user_text.splitlines() if line.strip()]
        if lines:
            core = lines[0]
        else:
            core = templates.THESIS_PLACEHOLDER.format(
                rating=self._form.rating.value.upper(), company=p.company_name
            )

        self._section(slide, 0.5, 0.6, "CORE THESIS")
        slide.add(
            ShapeElement(0.5, 0.9, 9, 0.75, t.panel),
            self._text(0.65, 0.95, 8.7, 0.65, core, size=11, bold=True, italic=not lines, role="Body"),
        )

        if not lines:
            self._action_badge(slide)
            for i, (header, items) in enumerate(templates.THESIS_SECTIONS):
                x = 0.5 + i * 3.1
                slide.add(
                    ShapeElement(x, 1.85, 2.9, 0.35, t.primary, text=header, text_size=9, bold=True),
                    self._text(x, 2.25, 2.9, 1.6, templates.bullets(items), size=9),
                )
            slide.add(self._text(0.5, 4.3, 9, 0.4, templates.THESIS_NOTE, size=8, italic=True, color=t.muted))
            slide.notes = templates.THESIS_ACTION_NOTES
        else:
            if len(lines) > 1:
                self._section(slide, 0.5, 1.85, "SUPPORTING ANALYSIS")
                slide.add(self._text(0.5, 2.15, 9, 2.9, templates.bullets(lines[1:]), size=10))
            slide.notes = templates.USER_TEXT_NOTES

        self._footer(slide)
        return slide

    def _valuation(self) -> SlideDescription:
        p = self._profile
        t = self._theme
        user_text = self._form.valuation.strip()
        slide = UserInputSlide(
            name="Valuation",
            title="Valuation Analysis",
            field_name="valuation",
            placeholder_used=not user_text,
            action_required=not user_text,
        )
        self._header_bar(slide, slide.title)

        upside = self._upside()
        upside_text = format_signed_percentage(upside)
        boxes = [
            ("CURRENT PRICE", str(format_price(p.price)), t.text),
            ("TARGET PRICE", self._target_display(), t.text),
            ("UPSIDE/DOWNSIDE", str(upside_text) if upside_text.available else "TBD",
             t.text if upside is None else
             (templates.POSITIVE_COLOR if upside >= 0 else templates.NEGATIVE_COLOR)),
            ("TIME HORIZON", f"{self._form.time_horizon.value} Months", t.text),
        ]
        for i, (label, value, color) in enumerate(boxes):
            x = 0.7 + i * 2.25
            slide.add(
                ShapeElement(x, 0.6, 2.05, 0.7, t.panel),
                self._text(x, 0.64, 2.05, 0.22, label, size=7, color=t.muted, align=Align.CENTER),
                self._text(x, 0.86, 2.05, 0.38, value, size=14, bold=True, color=color, align=Align.CENTER),
            )

        if user_text:
            self._section(slide, 0.5, 1.5, "VALUATION METHODOLOGY")
            slide.add(self._text(0.5, 1.8, 9, 3.3, user_text, size=10, role="Body"))
            slide.notes = templates.USER_TEXT_NOTES
            self._footer(slide)
            return slide

        self._action_badge(slide)
        peer_pes = [peer.pe_ratio for peer in self._company.peers_data if peer.pe_ratio is not None]
        peer_median = format_ratio(statistics.median(peer_pes), 1) if peer_pes else None
        pe = format_ratio(self._ratio("pe_ratio"), 1)
        ev = format_ratio(self._ratio("ev_to_ebitda"), 1)
        methods = [
            ("DCF ANALYSIS", templates.VALUATION_DCF),
            ("COMPARABLE COMPANIES", (
                f"P/E: {pe if pe.available else '[X]x'}",
                f"EV/EBITDA: {ev if ev.available else '[X]x'}",
                f"Peer Median P/E: {peer_median if peer_median else '[X]x'}",
                "Implied Range: $[XX]-$[XX]",
            )),
            ("PRECEDENT TRANSACTIONS", templates.VALUATION_PRECEDENTS),
        ]
        for i, (header, items) in enumerate(methods):
            x = 0.5 + i * 3.1
            slide.add(
                ShapeElement(x, 1.5, 2.9, 0.35, t.primary, text=header, text_size=9, bold=True),
                self._text(x, 1.9, 2.9, 1.3, templates.bullets(items), size=9),
            )

        self._section(slide, 0.5, 3.35, "VALUATION SUMMARY")
        slide.add(
            ShapeElement(0.5, 3.65, 9, 1.0, t.panel, text=templates.VALUATION_SUMMARY_PLACEHOLDER,
                         text_color=t.muted, text_size=9),
        )
        slide.notes = templates.VALUATION_ACTION_NOTES
        self._footer(slide)
        return slide

    def _risks_and_mitigants(self) -> SlideDescription:
        t = self._theme
        user_text = self._form.risks_and_mitigants.strip()
        slide = UserInputSlide(
            name="RisksAndMitigants",
            title="Risks & Mitigants",
            field_name="risks_and_mitigants",
            placeholder_used=not user_text,
            action_required=not user_text,
        )
        self._header_bar(slide, slide.title)

        if user_text:
            self._section(slide, 0.5, 0.65, "KEY RISKS & MITIGANTS", w=4)
            slide.add(self._text(0.5, 0.95, 9, 4.1, user_text, size=10, role="Body"))
            slide.notes = templates.USER_TEXT_NOTES
            self._footer(slide)
            return slide

        self._action_badge(slide)
        slide.add(
            self._text(2.0, 0.6, 3.7, 0.25, "KEY RISKS", size=8, bold=True, color=templates.NEGATIVE_COLOR),
            self._text(5.9, 0.6, 3.7, 0.25, "MITIGATING FACTORS", size=8, bold=True,
                       color=templates.POSITIVE_COLOR),
        )
        for i, (category, risk, mitigant) in enumerate(templates.RISK_CATEGORIES):
            y = 0.9 + i * 0.72
            slide.add(
                ShapeElement(0.3, y, 9.4, 0.62, t.panel),
                ShapeElement(0.4, y + 0.13, 1.5, 0.36, t.primary, text=category, text_size=7, bold=True),
                self._text(2.0, y + 0.05, 3.7, 0.52, risk, size=8),
                self._text(5.9, y + 0.05, 3.7, 0.52, f"✓ {mitigant}", size=8, color=t.secondary),
            )
        slide.add(self._text(0.3, 4.6, 9.4, 0.3, templates.RISKS_NOTE, size=8, italic=True, color=t.muted))
        slide.notes = templates.RISKS_ACTION_NOTES
        self._footer(slide)
        return slide

    def _appendix(self) -> SlideDescription:
        slide = ContentSlide(name="Appendix", title="Appendix")
        self._plain_title(slide, slide.title)
        slide.add(self._text(0.5, 1.0, 9, 0.35, "Data Sources & Disclaimers", size=14, bold=True,
                             color=self._theme.secondary))

        lines = [templates.bullets(templates.data_sources(self._company.source, self._generated)), ""]
        lines.extend(templates.DISCLAIMER)
        lines += ["", "Additional resources to consider:", templates.bullets(templates.ADDITIONAL_RESOURCES)]
        slide.add(self._text(0.5, 1.4, 9, 3.75, "\n".join(lines), size=8, color=self._theme.secondary))
        self._footer(slide)
        return slide


def build_deck(
    company: CompanyData,
    form: FormInput,
    charts: list[RasterizedChart] | None = None,
    generated_on: date | None = None,
) -> Deck:
    """Build the slide descriptions without serializing them."""
    return DeckBuilder(company, form, charts, generated_on).build()


def generate_deck(
    company: CompanyData,
    form: FormInput,
    charts: list[RasterizedChart] | None = None,
    generated_on: date | None = None,
) -> bytes:
    """Build the deck and serialize it to .pptx bytes.

    Args:
        company: Aggregated company data.
        form: User form input.
        charts: Rasterized charts to embed.
        generated_on: Date printed on the deck (defaults to today).

    Returns:
        The .pptx file contents.

    Raises:
        SlideBuildError: A slide failed to build.
        SerializationError: Writing the file failed.
    """
    from pitchdeck.deck.pptx_writer import write_pptx

    return write_pptx(build_deck(company, form, charts, generated_on))
