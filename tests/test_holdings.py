"""Unit tests for holdings grouping and the holdings summary."""

import unittest

from conftest import holding_row, holdings_frame
from portfolio_stats_engine.data_objects import Holding
from portfolio_stats_engine.holdings import holdings_from_frame, is_debt, summarize_holdings


def make_holding(symbol, buy_value, current_value, exchange="NSE", broker="zerodha",
                 debt_equity="Equity", sub_category="Large Cap"):
    return Holding(
        symbol=symbol,
        exchange=exchange,
        quantity=1.0,
        avg_price=buy_value,
        ltp=current_value,
        buy_value=buy_value,
        value_as_of_today=current_value,
        pnl_amount=current_value - buy_value,
        percent_pnl=(current_value - buy_value) / buy_value * 100,
        broker=broker,
        debt_equity=debt_equity,
        sub_category=sub_category,
    )


class TestHoldingsFromFrame(unittest.TestCase):

    def setUp(self):
        rows = [
            holding_row("Q1", "INFY", 10, 100.0, 120.0, sub_category="Large Cap"),
            holding_row("Q1", "infy", 10, 200.0, 130.0, sub_category="IT"),
            holding_row("Q1", "LIQUID FUND", 5, 100.0, 110.0, exchange="MF", isin="INF123",
                        buy_value=500.0, value_as_of_today=550.0, pnl_amount=50.0,
                        debt_equity="Debt", sub_category="Liquid"),
            holding_row("Q1", "LIQUID FUND", 5, 100.0, 112.0, exchange="MF", isin="INF123",
                        buy_value=500.0, value_as_of_today=560.0, pnl_amount=60.0,
                        debt_equity="Debt", sub_category="Liquid"),
            holding_row("Q1", "SOLD", 0, 50.0, 60.0),
        ]
        self.holdings = holdings_from_frame(holdings_frame(rows))

    def test_groups_and_sorts_by_symbol(self):
        self.assertEqual([h.symbol for h in self.holdings], ["INFY", "LIQUID FUND"])

    def test_equity_weighted_average_price(self):
        infy = self.holdings[0]
        self.assertEqual(infy.quantity, 20.0)
        self.assertAlmostEqual(infy.avg_price, 150.0)
        self.assertEqual(infy.ltp, 130.0)
        self.assertAlmostEqual(infy.buy_value, 3000.0)
        self.assertAlmostEqual(infy.value_as_of_today, 2600.0)
        self.assertAlmostEqual(infy.pnl_amount, -400.0)
        self.assertAlmostEqual(infy.percent_pnl, -400.0 / 3000.0 * 100)
        self.assertEqual(infy.sub_category, "Large Cap, IT")
        self.assertEqual(infy.debt_equity, "Equity")

    def test_mutual_funds_grouped_by_isin(self):
        fund = self.holdings[1]
        self.assertEqual(fund.exchange, "MF")
        self.assertEqual(fund.isin, "INF123")
        self.assertEqual(fund.quantity, 10.0)
        self.assertEqual(fund.buy_value, 1000.0)
        self.assertEqual(fund.value_as_of_today, 1110.0)
        self.assertEqual(fund.pnl_amount, 110.0)
        self.assertAlmostEqual(fund.avg_price, 100.0)

    def test_empty_frame(self):
        self.assertEqual(holdings_from_frame(holdings_frame([])), [])
        self.assertEqual(holdings_from_frame(None), [])


class TestSummarizeHoldings(unittest.TestCase):

    def test_buckets_and_breakdowns(self):
        holdings = [
            make_holding("INFY", 1000.0, 1200.0),
            make_holding("NCD 2027", 500.0, 510.0, debt_equity="Debt", sub_category="Corporate Bond"),
            make_holding("LIQUID", 300.0, 330.0, exchange="MF", broker="", sub_category=""),
        ]
        summary = summarize_holdings(holdings)
        self.assertEqual(summary.holdings_count, 3)
        self.assertEqual([h.symbol for h in summary.equity_holdings], ["INFY"])
        self.assertEqual([h.symbol for h in summary.debt_holdings], ["NCD 2027"])
        self.assertEqual([h.symbol for h in summary.mutual_fund_holdings], ["LIQUID"])
        self.assertEqual(summary.total_buy_value, 1800.0)
        self.assertEqual(summary.total_current_value, 2040.0)
        self.assertAlmostEqual(summary.total_pnl, 240.0)
        self.assertAlmostEqual(summary.total_pnl_percent, 240.0 / 1800.0 * 100)
        self.assertEqual(summary.category_breakdown["Others"]["count"], 1)
        self.assertEqual(summary.broker_breakdown["Unknown"]["currentValue"], 330.0)
        self.assertEqual(summary.broker_breakdown["zerodha"]["count"], 2)

    def test_to_dict_uses_camel_case(self):
        payload = summarize_holdings([make_holding("INFY", 100.0, 110.0)]).to_dict()
        self.assertEqual(payload["holdingsCount"], 1)
        self.assertEqual(payload["equityHoldings"][0]["valueAsOfToday"], 110.0)

    def test_is_debt(self):
        self.assertTrue(is_debt(make_holding("SDL", 1.0, 1.0, debt_equity="", sub_category="State SDL")))
        self.assertFalse(is_debt(make_holding("TCS", 1.0, 1.0)))

    def test_is_debt_from_symbol(self):
        self.assertTrue(is_debt(make_holding("GOIBOND2030", 1.0, 1.0)))
        self.assertTrue(is_debt(make_holding("RELIANCE-NCD", 1.0, 1.0)))
        summary = summarize_holdings([make_holding("GOIBOND2030", 100.0, 101.0), make_holding("TCS", 100.0, 90.0)])
        self.assertEqual([h.symbol for h in summary.debt_holdings], ["GOIBOND2030"])
        self.assertEqual([h.symbol for h in summary.equity_holdings], ["TCS"])

    def test_empty(self):
        summary = summarize_holdings([])
        self.assertEqual(summary.holdings_count, 0)
        self.assertEqual(summary.total_pnl_percent, 0.0)
