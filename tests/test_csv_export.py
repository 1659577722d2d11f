"""Tests for the CSV export and its parser."""

import unittest
from dataclasses import replace

from conftest import history
from core.result_objects._helpers import _negate_magnitude, _round2
from portfolio_stats_engine.csv_export import (
    SECTION_MONTHLY,
    SECTION_SUMMARY,
    SECTION_TRAILING,
    build_stats_rows,
    parse_number,
    parse_stats_csv,
    stats_to_csv,
)
from portfolio_stats_engine.data_objects import AccountRef, CashFlowEvent, LatestExposure
from portfolio_stats_engine.metrics_aggregator import AccountSnapshot, aggregate_snapshots
from test_stats_result import build_stats


def quarter_stats():
    """One account over Jan-Mar 2024 with a deposit and a partial withdrawal."""
    snap = AccountSnapshot(
        account=AccountRef("QAC1", "managed_account", "zerodha"),
        strategy_name="Qode All Weather+",
        amount_deposited=374999.5,
        latest_exposure=LatestExposure(401234.567, 3.2, 108.77, "2024-03-29"),
        total_profit=26235.07,
        cash_flows=[CashFlowEvent("2024-01-15", 500000.0), CashFlowEvent("2024-03-01", -125000.5)],
        history=history(
            [100, 103.3333, 99.1, 108.77],
            dates=["2024-01-15", "2024-01-31", "2024-02-29", "2024-03-29"],
            drawdowns=[0, 0, 4.098, 0],
            pnls=[0, 12500.25, -15640.0, 29374.82],
            capital=[500000.0, 0, 0, -125000.5],
        ),
    )
    return aggregate_snapshots([snap])


class TestBuildStatsRows(unittest.TestCase):

    def setUp(self):
        self.rows = build_stats_rows(build_stats([100, 101]))

    def test_section_layout(self):
        self.assertEqual(self.rows[0], [SECTION_SUMMARY, ""])
        self.assertIn([], self.rows)
        self.assertIn([SECTION_TRAILING, ""], self.rows)
        self.assertIn(["Period", "Return (%)"], self.rows)

    def test_percent_and_missing_cells(self):
        trailing = {row[0]: row[1] for row in self.rows if len(row) == 2}
        self.assertEqual(trailing["5D"], "-")
        self.assertEqual(trailing["Since Inception"], "1.00%")
        self.assertEqual(trailing["MDD"], "0.00%")
        self.assertEqual(trailing["Amount Deposited"], "500000.00")

    def test_account_name_row(self):
        rows = build_stats_rows(build_stats([100]), account_name="Family Account")
        self.assertEqual(rows[1], ["Account Name", "Family Account"])


class TestStatsCsvRoundTrip(unittest.TestCase):

    def setUp(self):
        self.stats = quarter_stats()
        self.parsed = parse_stats_csv(stats_to_csv(self.stats))

    def test_summary_numbers(self):
        summary = self.parsed["summary"]
        self.assertEqual(summary["Strategy"], "Qode All Weather+")
        self.assertEqual(summary["Number of Accounts"], 1)
        self.assertEqual(summary["Amount Deposited"], _round2(self.stats.amount_deposited))
        self.assertEqual(summary["Current Exposure"], _round2(self.stats.current_exposure))
        self.assertEqual(summary["Total Profit"], _round2(self.stats.total_profit))
        self.assertEqual(summary["Total Return (%)"], _round2(self.stats.overall_return))
        self.assertEqual(summary["Max Drawdown (%)"], _round2(_negate_magnitude(self.stats.max_drawdown)))

    def test_trailing_returns(self):
        for key, value in self.stats.trailing_returns.items():
            display = _negate_magnitude(value) if key in ("MDD", "currentDD") else value
            with self.subTest(key=key):
                self.assertEqual(self.parsed["trailingReturns"][key], _round2(display))

    def test_cash_flows(self):
        self.assertEqual(self.parsed["cashFlows"], [
            {"date": "2024-01-15", "amount": 500000.0},
            {"date": "2024-03-01", "amount": -125000.5},
        ])
        self.assertEqual(self.parsed["cashFlowTotals"], {
            "totalIn": 500000.0,
            "totalOut": -125000.5,
            "netFlow": 374999.5,
        })

    def test_monthly_pnl(self):
        year = self.parsed["monthlyPnl"]["2024"]
        source = self.stats.monthly_pnl["2024"]
        self.assertEqual(list(year["months"]), ["January", "February", "March"])
        for name, cell in source["months"].items():
            with self.subTest(month=name):
                self.assertEqual(year["months"][name]["percent"], _round2(cell["percent"]))
                self.assertEqual(year["months"][name]["cash"], _round2(cell["cash"]))
                self.assertEqual(year["months"][name]["capitalInOut"], _round2(cell["capitalInOut"]))
        self.assertEqual(year["totalPercent"], _round2(source["totalPercent"]))
        self.assertEqual(year["totalCash"], _round2(source["totalCash"]))

    def test_quarterly_pnl(self):
        year = self.parsed["quarterlyPnl"]["2024"]
        source = self.stats.quarterly_pnl["2024"]
        self.assertEqual(year["percent"]["q1"], _round2(source["percent"]["q1"]))
        self.assertIsNone(year["percent"]["q4"])
        self.assertEqual(year["cash"]["total"], _round2(source["cash"]["total"]))

    def test_quoting_round_trips(self):
        stats = replace(self.stats, strategy_name='Alpha, "Beta"')
        text = stats_to_csv(stats, account_name="Smith, J")
        self.assertIn('"Alpha, ""Beta"""', text)
        parsed = parse_stats_csv(text)
        self.assertEqual(parsed["summary"]["Strategy"], 'Alpha, "Beta"')
        self.assertEqual(parsed["summary"]["Account Name"], "Smith, J")

    def test_monthly_section_present(self):
        self.assertIn(SECTION_MONTHLY, stats_to_csv(self.stats))


class TestParseNumber(unittest.TestCase):

    def test_values(self):
        self.assertEqual(parse_number("12.34%"), 12.34)
        self.assertEqual(parse_number("-0.50"), -0.5)
        self.assertEqual(parse_number("1,500.00"), 1500.0)
        self.assertIsNone(parse_number("-"))
        self.assertIsNone(parse_number(""))
