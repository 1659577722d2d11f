"""
End-to-end tests for ``analyze_user_stats`` and the ``run_stats`` CLI wrapper.
"""

import contextlib
import io
import json
import os
import tempfile
import unittest

from conftest import EXPOSURE_TAG, ZERODHA_TAG, account_row, build_tables, frame_store, managed_rows, pms_rows
from portfolio_stats_engine import config
from portfolio_stats_engine.exceptions import NoAccountDataError, UnsupportedAccountError
from portfolio_stats_engine.stats_analysis import analyze_user_stats
from portfolio_stats_engine.store import FrameLedgerStore, get_ledger_store
from run_stats import build_store, main, run_stats


def user_store():
    return frame_store(
        master=(
            managed_rows("QAC1", ZERODHA_TAG, [100, 104, 103, 108], capital=[100000, 0, 0, 0],
                         pnls=[0, 4000, -1000, 5000])
            + managed_rows("QAC1", EXPOSURE_TAG, [100, 102, 101, 103])
        ),
        pms=pms_rows("CUST-A", [100, 101, 99, 102], cash=[200000, 0, -50000, 0]),
        custodian_codes={"QPMS1": ["CUST-A"]},
        accounts=[
            account_row("QAC1", strategy="QAW+"),
            account_row("QPMS1", account_type="pms", broker="hdfc"),
            account_row("QEMPTY"),
        ],
        users={"IC1": ["QAC1", "QPMS1"], "IC2": ["QEMPTY"]},
    )


class TestAnalyzeUserStats(unittest.TestCase):

    def setUp(self):
        config.configure(STRATEGY_TAG_MAP={"QAW+": ZERODHA_TAG}, STRATEGY_NAME_MAP={"QAW+": "Qode All Weather+"})
        self.store = user_store()

    def test_pools_every_visible_account(self):
        stats = analyze_user_stats("IC1", store=self.store)
        self.assertEqual(stats.account_count, 2)
        self.assertEqual(stats.amount_deposited, 250000.0)
        self.assertEqual(stats.equity_curve[0].value, 100)
        meta = stats.metadata
        self.assertEqual(meta["icode"], "IC1")
        self.assertEqual(meta["accountCount"], 2)
        self.assertEqual(meta["accounts"], ["QAC1", "QPMS1"])
        self.assertEqual(meta["inceptionDate"], "2024-01-01")
        self.assertEqual(meta["dataAsOfDate"], "2024-01-04")
        self.assertNotIn("lastUpdated", meta)
        self.assertEqual(meta["strategyName"], stats.strategy_name)

    def test_account_type_filter(self):
        stats = analyze_user_stats("IC1", account_type="pms", store=self.store)
        self.assertEqual(stats.account_count, 1)
        self.assertEqual(stats.amount_deposited, 150000.0)
        self.assertEqual(stats.metadata["filtersApplied"]["accountType"], "pms")

    def test_date_range_trims_series_but_keeps_inception(self):
        stats = analyze_user_stats("IC1", start_date="2024-01-02", end_date="2024-01-03", store=self.store)
        self.assertEqual([p.date.day for p in stats.equity_curve], [2, 3])
        self.assertEqual([e.amount for e in stats.cash_flows], [-50000.0])
        self.assertEqual(stats.metadata["inceptionDate"], "2024-01-01")
        self.assertEqual(stats.metadata["filtersApplied"]["startDate"], "2024-01-02")

    def test_same_request_same_payload(self):
        first = analyze_user_stats("IC1", store=self.store).to_api_response()
        second = analyze_user_stats("IC1", store=self.store).to_api_response()
        self.assertEqual(json.dumps(first, sort_keys=True), json.dumps(second, sort_keys=True))

    def test_unknown_user(self):
        with self.assertRaises(NoAccountDataError):
            analyze_user_stats("NOBODY", store=self.store)

    def test_filter_leaves_nothing(self):
        with self.assertRaises(NoAccountDataError):
            analyze_user_stats("IC1", broker="jainam", store=self.store)

    def test_accounts_without_data(self):
        with self.assertRaises(NoAccountDataError):
            analyze_user_stats("IC2", store=self.store)

    def test_unsupported_account_logged_and_raised(self):
        store = frame_store(accounts=[account_row("QX", account_type="crypto", broker="x")], users={"IC3": ["QX"]})
        with self.assertLogs("portfolio_stats_engine", level="ERROR"):
            with self.assertRaises(UnsupportedAccountError):
                analyze_user_stats("IC3", store=store)


class TestRunStats(unittest.TestCase):

    def setUp(self):
        self.store = user_store()

    def test_return_data(self):
        stats = run_stats("IC1", store=self.store, return_data=True)
        self.assertEqual(stats.account_count, 2)

    def test_error_dict(self):
        result = run_stats("NOBODY", store=self.store, return_data=True)
        self.assertEqual(result["error_type"], "NoAccountDataError")

    def test_json_output(self):
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            run_stats("IC1", store=self.store, output="json")
        payload = json.loads(out.getvalue())
        self.assertEqual(payload["accountCount"], 2)
        self.assertEqual(payload["equityCurve"][0]["value"], 100.0)
        self.assertIn("lastUpdated", payload)

    def test_csv_output(self):
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            run_stats("IC1", store=self.store, output="csv")
        self.assertTrue(out.getvalue().startswith("Portfolio Statistics,"))

    def test_report_and_error_printing(self):
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            run_stats("IC1", store=self.store)
            run_stats("NOBODY", store=self.store)
        self.assertIn("Portfolio Statistics", out.getvalue())
        self.assertIn("Stats calculation failed", out.getvalue())

    def test_build_store(self):
        self.assertIsNone(build_store())
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "accounts.yaml")
            with open(path, "w") as f:
                f.write("accounts:\n  - qcode: QAC1\n    account_type: managed_account\n    broker: zerodha\n    users: [IC1]\n")
            store = build_store(accounts_yaml=path)
        self.assertIsInstance(store, FrameLedgerStore)
        self.assertEqual(store.fetch_user_accounts("IC1")[0]["qcode"], "QAC1")

    def test_main_with_csv_directory(self):
        with tempfile.TemporaryDirectory() as tmp:
            for name, df in build_tables(
                master=managed_rows("QAC1", ZERODHA_TAG, [100, 110], capital=[1000, 0]),
                accounts=[account_row("QAC1", strategy="QAW+")],
                users={"IC1": ["QAC1"]},
            ).items():
                df.to_csv(os.path.join(tmp, f"{name}.csv"), index=False)
            out = io.StringIO()
            with contextlib.redirect_stdout(out):
                main(["--user", "IC1", "--csv-dir", tmp, "--json", "--policy", "max_across_accounts"])
        payload = json.loads(out.getvalue())
        self.assertEqual(payload["amountDeposited"], "1000.00")
        self.assertEqual(payload["drawdownPolicy"], "max_across_accounts")
        self.assertIsInstance(get_ledger_store(), FrameLedgerStore)
