"""Static slide copy: contents list, placeholder templates and disclaimers.

Placeholder text uses square brackets (``[Add details]``) for every spot
the analyst is expected to fill in.
"""

from __future__ import annotations

from pitchdeck.data.models import Rating

GENERATOR_NAME = "PitchDeck"

SOURCE_LABELS = {
    "fmp": "Financial Modeling Prep (FMP)",
    "yahoo": "Yahoo Finance",
}

RATING_COLORS = {
    Rating.BUY: "16a34a",
    Rating.OUTPERFORM: "22c55e",
    Rating.HOLD: "f59e0b",
    Rating.SELL: "dc2626",
}

POSITIVE_COLOR = "16a34a"
NEGATIVE_COLOR = "dc2626"
ACTION_COLOR = "dc2626"

TABLE_OF_CONTENTS = (
    "Investment Summary",
    "Company Overview",
    "Industry Overview",
    "Key Metrics",
    "Financial Summary",
    "Revenue & Growth Analysis",
    "Price Performance",
    "Market Position",
    "Peer Comparison",
    "Growth Drivers",
    "Investment Thesis",
    "Valuation",
    "Risks & Mitigants",
    "Appendix",
)

# -- Investment summary ------------------------------------------------------

SUMMARY_KEY_RISKS = (
    "Market/macro volatility and economic uncertainty",
    "Competitive pressures and pricing dynamics",
    "Execution risk on strategic initiatives",
    "Regulatory and compliance considerations",
)

SUMMARY_CATALYST_BULLET = (
    "Key catalysts include [user to add: product launches, market expansion, "
    "margin improvement initiatives]"
)

# -- Company overview --------------------------------------------------------

DESCRIPTION_FALLBACK = (
    "Company description not available. Please refer to company SEC filings "
    "(10-K, 10-Q) for detailed business overview and segment information."
)
DESCRIPTION_MAX_WORDS = 200

KEY_SEGMENTS = ("Primary segment", "Secondary segment", "Other markets")
COMPETITIVE_MOATS = ("Brand strength", "Scale advantages", "IP / Technology")

# -- Industry overview -------------------------------------------------------

INDUSTRY_BULLETS = (
    "Total Addressable Market (TAM): [User to add market size data]",
    "Key industry trends: [User to add relevant trends]",
    "Competitive landscape: See peer comparison slide for key competitors",
    "Regulatory environment: [User to add if applicable]",
    "Growth drivers: [User to add industry-specific growth catalysts]",
)
INDUSTRY_NOTE = (
    "Note: Industry data may require manual verification and supplementation "
    "from industry reports."
)

# -- Financial data notices --------------------------------------------------

FINANCIALS_UNAVAILABLE = (
    "Financial statement data requires premium API access.\n\n"
    "Please add financial data manually or upgrade your FMP subscription."
)
KEY_METRICS_UNAVAILABLE_NOTE = "Note: Detailed financial data requires premium API access"

# -- Growth drivers ----------------------------------------------------------

BUSINESS_MODEL_BULLETS = (
    "Primary revenue streams: [Add details]",
    "Key customer segments: [Add details]",
    "Geographic breakdown: [Add details]",
    "Recurring vs one-time revenue: [Add %]",
)
GROWTH_INITIATIVES = (
    "Organic growth: [Market expansion]",
    "New products/services: [Pipeline]",
    "M&A strategy: [Acquisition targets]",
    "Cost optimization: [Margin expansion]",
    "Digital transformation: [Initiatives]",
    "Geographic expansion: [New markets]",
)
COMPETITIVE_ADVANTAGES = (
    ("Brand/Scale", "Market leadership position"),
    ("Technology/IP", "Proprietary technology"),
    ("Network Effects", "Platform advantages"),
    ("Switching Costs", "Customer lock-in"),
)

# -- Investment thesis -------------------------------------------------------

THESIS_PLACEHOLDER = "We recommend {rating} on {company} based on [YOUR THESIS HERE]"
THESIS_SECTIONS = (
    (
        "KEY CATALYSTS",
        ("Product launches / expansion", "Earnings momentum", "Market share gains", "M&A opportunities"),
    ),
    (
        "SUPPORTING EVIDENCE",
        ("Financial metrics", "Competitive positioning", "Industry tailwinds", "Management track record"),
    ),
    (
        "WHY NOW?",
        ("Valuation opportunity", "Near-term catalysts", "Sentiment inflection", "Risk/reward favorable"),
    ),
)
THESIS_NOTE = (
    "Note: Replace placeholder content with your specific investment thesis, "
    "catalysts, and supporting analysis."
)
THESIS_ACTION_NOTES = (
    "USER ACTION REQUIRED: Replace the placeholder text with your investment "
    "thesis. Include your core thesis, catalysts, and supporting evidence."
)

# -- Valuation ---------------------------------------------------------------

VALUATION_DCF = (
    "Revenue Growth: [X]% CAGR",
    "Terminal Growth: [X]%",
    "WACC: [X]%",
    "Implied Value: $[XX]",
)
VALUATION_PRECEDENTS = (
    "Transaction Multiple: [X]x",
    "Premium Paid: [X]%",
    "Control Premium: [X]%",
    "Implied Value: $[XX]",
)
VALUATION_SUMMARY_PLACEHOLDER = "[Add valuation range football field chart]"
VALUATION_ACTION_NOTES = (
    "USER ACTION REQUIRED: Replace placeholder text with your valuation "
    "analysis. Include DCF assumptions, comparable multiples, and target "
    "price derivation."
)

# -- Risks -------------------------------------------------------------------

RISK_CATEGORIES = (
    (
        "MARKET / MACRO",
        "Economic downturn, interest rate changes, market volatility",
        "Diversified revenue, strong balance sheet, defensive positioning",
    ),
    (
        "COMPETITIVE",
        "New entrants, pricing pressure, technology disruption",
        "Strong moat, brand loyalty, R&D investment, scale advantages",
    ),
    (
        "EXECUTION",
        "Management changes, integration risks, operational issues",
        "Experienced team, track record, operational improvements",
    ),
    (
        "REGULATORY",
        "Policy changes, compliance costs, legal challenges",
        "Proactive compliance, regulatory expertise, diversification",
    ),
    (
        "VALUATION",
        "Multiple compression, earnings miss, sentiment shift",
        "Attractive entry point, catalyst visibility, margin of safety",
    ),
)
RISKS_NOTE = "Note: Replace placeholder risks and mitigants with company-specific analysis"
RISKS_ACTION_NOTES = (
    "USER ACTION REQUIRED: Replace placeholder text with specific risks to "
    "your investment thesis and how they can be mitigated."
)

USER_TEXT_NOTES = "Content provided by the analyst. Review before distribution."

# -- Appendix ----------------------------------------------------------------

DISCLAIMER = (
    "Disclaimer:",
    "This presentation was generated using publicly available data for informational purposes only.",
    "Users must verify all data and assumptions before making investment decisions.",
    "This is NOT investment advice. Past performance does not guarantee future results.",
)
ADDITIONAL_RESOURCES = (
    "Company SEC filings (10-K, 10-Q)",
    "Earnings call transcripts",
    "Industry reports",
    "Sell-side research",
)


def data_sources(source: str, generated: str) -> list[str]:
    """Appendix source lines for the provider that supplied the data."""
    label = SOURCE_LABELS.get(source, source)
    return [
        f"Financial data: {label}",
        f"Stock prices: {label} historical price data",
        f"Company information: {label} company profiles",
        "Peer revenues for market share are estimated from market capitalization",
        f"Generated: {generated}",
    ]


def footer_text(source: str, generated: str) -> str:
    label = SOURCE_LABELS.get(source, source)
    return f"Generated with {GENERATOR_NAME} • Data: {label} • {generated}"


def bullets(items: tuple[str, ...] | list[str], marker: str = "•") -> str:
    """Join items into one bulleted, newline-separated string."""
    return "\n".join(f"{marker} {item}" for item in items)
