#!/usr/bin/env python3
# coding: utf-8

# File: run_stats.py

import argparse
import json
import logging
from datetime import UTC, datetime
from typing import Any, Dict, Optional, Union

from dotenv import load_dotenv

load_dotenv()

from core.result_objects import PortfolioStats
from portfolio_stats_engine import (
    FrameLedgerStore,
    PortfolioStatsError,
    SqlLedgerStore,
    analyze_user_stats,
    set_ledger_store,
)
from portfolio_stats_engine.csv_export import stats_to_csv
from portfolio_stats_engine.metrics_aggregator import DrawdownAggregationPolicy
from portfolio_stats_engine.store import LedgerStore


def build_store(sqlite_path: Optional[str] = None, csv_dir: Optional[str] = None,
                accounts_yaml: Optional[str] = None) -> Optional[LedgerStore]:
    """
    Build a ledger store from CLI options.

    ``--sqlite`` opens a SQLite ledger database; ``--csv-dir`` loads one CSV per
    table (optionally with account metadata from ``--accounts-yaml``). Returns
    ``None`` when neither is given so the registered / configured store is used.
    """
    if sqlite_path:
        return SqlLedgerStore.from_sqlite(sqlite_path)
    if csv_dir:
        store = FrameLedgerStore.from_csv_dir(csv_dir)
        if accounts_yaml:
            store.load_accounts_yaml(accounts_yaml)
        return store
    if accounts_yaml:
        return FrameLedgerStore().load_accounts_yaml(accounts_yaml)
    return None


def run_stats(
    user_id: str,
    *,
    account_type: Optional[str] = None,
    broker: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    tag: Optional[str] = None,
    drawdown_policy: Optional[str] = None,
    output: str = "report",
    store: Optional[LedgerStore] = None,
    return_data: bool = False,
) -> Union[None, PortfolioStats, Dict[str, Any]]:
    """
    Compute and display portfolio statistics for a user.

    Dual-mode wrapper around ``analyze_user_stats``:

    - ``return_data=True`` returns the ``PortfolioStats`` object, or an
      ``{"error": ...}`` dict when the request cannot be served.
    - otherwise prints the CLI report (``output="report"``), the Stats JSON
      (``"json"``, stamped with ``lastUpdated``) or the CSV export (``"csv"``).
    """
    try:
        stats = analyze_user_stats(
            user_id,
            account_type=account_type,
            broker=broker,
            start_date=start_date,
            end_date=end_date,
            tag=tag,
            drawdown_policy=drawdown_policy,
            store=store,
        )
    except PortfolioStatsError as e:
        if return_data:
            return {"error": str(e), "error_type": type(e).__name__}
        print(f"❌ Stats calculation failed: {e}")
        return None

    if return_data:
        return stats
    if output == "json":
        payload = stats.to_api_response()
        payload["lastUpdated"] = datetime.now(UTC).isoformat()
        print(json.dumps(payload, indent=2))
    elif output == "csv":
        print(stats_to_csv(stats), end="")
    else:
        print(stats.to_cli_report())
    return None


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Portfolio statistics for a user's accounts")
    parser.add_argument("--user", type=str, required=True, help="User identifier (icode)")
    parser.add_argument("--account-type", type=str, help="Only include this account type (managed_account, pms)")
    parser.add_argument("--broker", type=str, help="Only include this broker")
    parser.add_argument("--start", type=str, help="Trim curves and cash flows from this date (YYYY-MM-DD)")
    parser.add_argument("--end", type=str, help="Trim curves and cash flows to this date (YYYY-MM-DD)")
    parser.add_argument("--tag", type=str, help="System tag overriding every ledger selection")
    parser.add_argument("--policy", choices=[p.value for p in DrawdownAggregationPolicy], default=None,
                        help="Portfolio drawdown aggregation policy")
    parser.add_argument("--sqlite", type=str, help="Path to a SQLite ledger database")
    parser.add_argument("--csv-dir", type=str, help="Directory of CSV table exports")
    parser.add_argument("--accounts-yaml", type=str, help="YAML file with accounts and pooled users")
    output_group = parser.add_mutually_exclusive_group()
    output_group.add_argument("--json", action="store_true", help="Print the Stats JSON payload")
    output_group.add_argument("--csv", action="store_true", help="Print the CSV export")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    cli_store = build_store(args.sqlite, args.csv_dir, args.accounts_yaml)
    if cli_store is not None:
        set_ledger_store(cli_store)

    run_stats(
        args.user,
        account_type=args.account_type,
        broker=args.broker,
        start_date=args.start,
        end_date=args.end,
        tag=args.tag,
        drawdown_policy=args.policy,
        output="json" if args.json else "csv" if args.csv else "report",
    )


if __name__ == "__main__":
    main()
