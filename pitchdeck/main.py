"""CLI entry point for the pitch deck generator."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pitchdeck.config import DEFAULT_THEME_COLOR, DeckConfig, normalize_hex_color
from pitchdeck.data.fmp import FMPClient
from pitchdeck.data.models import ChartToggles, FormInput, Rating, TimeHorizon
from pitchdeck.errors import ConfigurationError, PitchDeckError
from pitchdeck.runner import run_pipeline

logger = logging.getLogger(__name__)

_RATINGS = {r.name.lower(): r for r in Rating}


def _theme_color(value: str) -> str:
    try:
        return "#" + normalize_hex_color(value)
    except ConfigurationError as e:
        raise argparse.ArgumentTypeError(f"{e.message}. {e.suggestion}") from e


def _read_text(path: Path | None) -> str:
    if path is None:
        return ""
    return path.read_text(encoding="utf-8")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list (defaults to sys.argv[1:]).

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog="pitchdeck",
        description="Buy-side stock pitch deck generator",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # generate command
    gen_parser = subparsers.add_parser(
        "generate", help="Generate a .pptx pitch deck for a ticker"
    )
    gen_parser.add_argument("symbol", help="Ticker symbol (e.g. AAPL)")
    gen_parser.add_argument(
        "--rating",
        choices=sorted(_RATINGS),
        default="buy",
        help="Recommendation (default: buy)",
    )
    gen_parser.add_argument(
        "--horizon",
        choices=[h.value for h in TimeHorizon],
        default=TimeHorizon.MONTHS_12.value,
        help="Time horizon in months (default: 12)",
    )
    gen_parser.add_argument(
        "--target-price",
        type=float,
        default=None,
        help="Target price (default: TBD)",
    )
    gen_parser.add_argument(
        "--theme-color",
        type=_theme_color,
        default=DEFAULT_THEME_COLOR,
        help=f"Accent color as hex (default: {DEFAULT_THEME_COLOR})",
    )
    gen_parser.add_argument("--author", default=None, help="Analyst name for the cover")
    gen_parser.add_argument(
        "--thesis-file", type=Path, default=None, help="Text file with the investment thesis"
    )
    gen_parser.add_argument(
        "--valuation-file", type=Path, default=None, help="Text file with the valuation analysis"
    )
    gen_parser.add_argument(
        "--risks-file", type=Path, default=None, help="Text file with risks and mitigants"
    )
    gen_parser.add_argument(
        "--no-price-chart", action="store_true", help="Skip the price performance chart"
    )
    gen_parser.add_argument(
        "--no-revenue-chart", action="store_true", help="Skip the revenue growth chart"
    )
    gen_parser.add_argument(
        "--no-market-share-chart", action="store_true", help="Skip the market share chart"
    )
    gen_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output .pptx path (default: <SYMBOL>-stock-pitch.pptx)",
    )
    gen_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    # search command
    search_parser = subparsers.add_parser(
        "search", help="Search ticker symbols by company name"
    )
    search_parser.add_argument("query", help="Company name or partial symbol")
    search_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser.parse_args(argv)


def build_form(args: argparse.Namespace) -> FormInput:
    """Translate parsed ``generate`` arguments into a FormInput."""
    symbol = args.symbol.strip().upper()
    return FormInput(
        company_input=symbol,
        rating=_RATINGS[args.rating],
        time_horizon=TimeHorizon(args.horizon),
        target_price=args.target_price,
        theme_color=args.theme_color,
        output_filename=f"{symbol}-stock-pitch",
        author_name=args.author,
        investment_thesis=_read_text(args.thesis_file),
        valuation=_read_text(args.valuation_file),
        risks_and_mitigants=_read_text(args.risks_file),
        charts=ChartToggles(
            revenue_growth=not args.no_revenue_chart,
            price_performance=not args.no_price_chart,
            market_share=not args.no_market_share_chart,
        ),
    )


def run_generate(args: argparse.Namespace) -> None:
    """Execute the generate command.

    Args:
        args: Parsed CLI arguments.
    """
    config = DeckConfig.from_env()
    form = build_form(args)

    data = asyncio.run(run_pipeline(form, config))

    output: Path = args.output or Path(f"{form.output_filename}.pptx")
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(data)
    logger.info("Deck written to %s", output)


def run_search(args: argparse.Namespace) -> None:
    """Execute the search command, printing one match per line."""
    config = DeckConfig.from_env()
    client = FMPClient(config)

    results = asyncio.run(client.search_companies(args.query))
    if not results:
        print(f"No matches for {args.query!r}")
        return
    for r in results:
        print(f"{r.symbol:<10} {r.name} ({r.exchange or 'N/A'})")


def main(argv: list[str] | None = None) -> None:
    """Main entry point.

    Args:
        argv: Argument list (defaults to sys.argv[1:]).
    """
    args = _parse_args(argv)

    # Configure logging
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        if args.command == "generate":
            run_generate(args)
        elif args.command == "search":
            run_search(args)
        else:
            logger.error("Unknown command: %s", args.command)
            sys.exit(1)
    except PitchDeckError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        if e.suggestion:
            print(f"Suggestion: {e.suggestion}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
