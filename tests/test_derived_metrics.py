"""Tests for pitchdeck.analysis.derived_metrics."""

from __future__ import annotations

import pandas as pd
import pytest

from pitchdeck.analysis.derived_metrics import (
    condense_description,
    ebitda_margin,
    estimate_peer_revenues,
    latest_statement,
    market_share,
    normalize_prices,
    parse_employee_count,
    parse_price_range,
    revenue_chart_data,
    revenue_growth,
    shares_outstanding,
    sort_statements,
    upside_percent,
)
from pitchdeck.data.models import CompanyProfile, HistoricalPricePoint, IncomeStatement, PeerRecord


def _make_statement(year: str, revenue: float | None, date: str | None = None) -> IncomeStatement:
    return IncomeStatement(symbol="AAA", date=date or f"{year}-12-31", calendar_year=year, revenue=revenue)


def _make_peer(symbol: str, market_cap: float | None, name: str | None = None) -> PeerRecord:
    return PeerRecord(symbol=symbol, company_name=name or f"{symbol} Corp", market_cap=market_cap)


class TestSortStatements:
    """Ordering of statements regardless of provider order."""

    def test_sorts_by_year(self) -> None:
        statements = [_make_statement("2023", 3), _make_statement("2021", 1), _make_statement("2022", 2)]
        assert [s.calendar_year for s in sort_statements(statements)] == ["2021", "2022", "2023"]

    def test_bad_year_falls_back_to_date(self) -> None:
        statements = [_make_statement("", 2, "2022-06-30"), _make_statement("2021", 1)]
        assert [s.revenue for s in sort_statements(statements)] == [1, 2]

    def test_latest_statement(self) -> None:
        statements = [_make_statement("2024", 4), _make_statement("2020", 1)]
        assert latest_statement(statements).calendar_year == "2024"
        assert latest_statement([]) is None


class TestRevenueGrowth:
    """Year-over-year growth."""

    def test_length_is_n_minus_one(self) -> None:
        statements = [_make_statement(str(y), 100.0 + y) for y in range(2019, 2024)]
        assert len(revenue_growth(statements)) == 4

    def test_values_rounded_to_one_decimal(self) -> None:
        growth = revenue_growth([_make_statement("2023", 110.0), _make_statement("2022", 100.0)])
        assert growth[0].year == "2023"
        assert growth[0].growth == 10.0

    def test_non_positive_prior_gives_none(self) -> None:
        growth = revenue_growth([
            _make_statement("2021", 0.0),
            _make_statement("2022", 50.0),
            _make_statement("2023", 75.0),
        ])
        assert growth[0].growth is None
        assert growth[1].growth == 50.0

    def test_single_statement(self) -> None:
        assert revenue_growth([_make_statement("2023", 1.0)]) == []

    def test_chart_data_in_billions_with_leading_none(self) -> None:
        data = revenue_chart_data([_make_statement("2023", 2.2e9), _make_statement("2022", 2.0e9)])
        assert data.labels == ("2022", "2023")
        assert data.revenues == pytest.approx((2.0, 2.2))
        assert data.growth == (None, 10.0)

    def test_chart_data_skips_missing_revenue(self) -> None:
        data = revenue_chart_data([_make_statement("2023", None), _make_statement("2022", 1e9)])
        assert data.labels == ("2022",)


class TestNormalizePrices:
    """Sorting, de-duplication, sampling and normalization."""

    def test_first_point_is_exactly_100(self) -> None:
        points = [
            HistoricalPricePoint("2024-01-03", 150.0),
            HistoricalPricePoint("2024-01-01", 120.0),
            HistoricalPricePoint("2024-01-02", 132.0),
        ]
        data = normalize_prices(points)
        assert data.normalized[0] == 100.0
        assert data.dates == ("2024-01-01", "2024-01-02", "2024-01-03")
        assert data.normalized[2] == pytest.approx(125.0)

    def test_duplicates_keep_last(self) -> None:
        points = [
            HistoricalPricePoint("2024-01-01", 100.0),
            HistoricalPricePoint("2024-01-02", 90.0),
            HistoricalPricePoint("2024-01-02", 110.0),
        ]
        data = normalize_prices(points)
        assert data.closes == (100.0, 110.0)

    def test_non_positive_closes_dropped(self) -> None:
        points = [
            HistoricalPricePoint("2024-01-01", 0.0),
            HistoricalPricePoint("2024-01-02", None),
            HistoricalPricePoint("2024-01-03", 50.0),
        ]
        data = normalize_prices(points)
        assert data.closes == (50.0,)
        assert data.normalized == (100.0,)

    def test_downsampling_stride(self) -> None:
        points = [
            HistoricalPricePoint(d.strftime("%Y-%m-%d"), 10.0 + i)
            for i, d in enumerate(pd.date_range("2020-01-01", periods=1000))
        ]
        data = normalize_prices(points, max_points=250)
        assert len(data.normalized) == 250
        assert data.normalized[0] == 100.0

    def test_labels_format(self) -> None:
        data = normalize_prices([HistoricalPricePoint("2024-03-15", 10.0)])
        assert data.labels == ("Mar '24",)

    def test_empty(self) -> None:
        data = normalize_prices([])
        assert data.normalized == ()


class TestMarketShare:
    """Peer revenue estimation and market share."""

    def test_estimate_peer_revenues(self) -> None:
        peers = [_make_peer("A", 1e12), _make_peer("B", None), _make_peer("C", 0.0)]
        assert estimate_peer_revenues(peers) == {"A": pytest.approx(1.5e11)}

    def test_shares_sum_to_100(self) -> None:
        peers = [_make_peer(s, (i + 1) * 1e11) for i, s in enumerate("ABCDEFG")]
        entries = market_share("Subject", 5e10, peers, estimate_peer_revenues(peers))
        assert len(entries) == 6
        assert sum(e.share for e in entries) == pytest.approx(100.0)
        assert [e.revenue for e in entries] == sorted((e.revenue for e in entries), reverse=True)

    def test_subject_flagged_and_names_truncated(self) -> None:
        peers = [_make_peer("A", 1e12, "A Very Long Company Name Holdings")]
        entries = market_share("Subject", 2e11, peers, estimate_peer_revenues(peers))
        subject = next(e for e in entries if e.is_subject)
        assert subject.name == "Subject"
        other = next(e for e in entries if not e.is_subject)
        assert other.name == "A Very Long Com..."

    def test_no_revenue_gives_empty(self) -> None:
        assert market_share("Subject", None, [], {}) == []


class TestSlideHelpers:
    """Small slide-time derivations with None guards."""

    def test_upside(self) -> None:
        assert upside_percent(100.0, 120.0) == pytest.approx(20.0)
        assert upside_percent(100.0, None) is None
        assert upside_percent(0.0, 120.0) is None
        assert upside_percent(100.0, 0.0) is None

    def test_ebitda_margin(self) -> None:
        statement = IncomeStatement("AAA", "2024-12-31", "2024", revenue=200.0, ebitda=50.0)
        assert ebitda_margin(statement) == 0.25
        assert ebitda_margin(None) is None
        assert ebitda_margin(IncomeStatement("AAA", "2024-12-31", "2024", revenue=0.0, ebitda=5.0)) is None

    def test_shares_outstanding(self) -> None:
        assert shares_outstanding(CompanyProfile("A", "A", price=50.0, market_cap=5e9)) == 1e8
        assert shares_outstanding(CompanyProfile("A", "A", price=None, market_cap=5e9)) is None

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("164,000", 164000), ("164000", 164000), ("", None), (None, None), ("n/a", None), ("0", None)],
    )
    def test_parse_employee_count(self, raw: str | None, expected: int | None) -> None:
        assert parse_employee_count(raw) == expected

    def test_condense_description(self) -> None:
        assert condense_description("one two three", max_words=2) == "one two..."
        assert condense_description("one two", max_words=2) == "one two"
        assert condense_description(None) == ""

    def test_parse_price_range(self) -> None:
        assert parse_price_range("164.08-237.49") == (164.08, 237.49)
        assert parse_price_range("$1,000.5 - $1,200") == (1000.5, 1200.0)
        assert parse_price_range("garbage") == (None, None)
        assert parse_price_range(None) == (None, None)
