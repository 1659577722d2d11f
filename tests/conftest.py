"""
Shared test fixtures and builders for the portfolio stats engine tests.

Ledger rows are built with the physical column names of the store schema so the
same rows can back a ``FrameLedgerStore`` or be written into an in-memory
SQLite database for ``SqlLedgerStore``.

Usage:
    from conftest import managed_rows, frame_store

    store = frame_store(master=managed_rows("QAC1", "Zerodha Total Portfolio", [100, 105]))
"""

import copy
import sqlite3

import pandas as pd
import pytest

from portfolio_stats_engine import config
from portfolio_stats_engine.data_objects import HistoricalPoint
from portfolio_stats_engine.store import FrameLedgerStore, SqlLedgerStore, set_ledger_store

ZERODHA_TAG = "Zerodha Total Portfolio"
VALUE_TAG = "Total Portfolio Value"
EXPOSURE_TAG = "Total Portfolio Exposure"

MANAGED_COLUMNS = ["qcode", "system_tag", "date", "nav", "drawdown", "pnl", "capital_in_out", "portfolio_value"]
PMS_COLUMNS = ["account_code", "report_date", "nav", "drawdown_percent", "pnl", "cash_in_out", "portfolio_value"]
HOLDING_COLUMNS = [
    "qcode", "date", "symbol", "exchange", "isin", "quantity", "avg_price", "ltp",
    "buy_value", "value_as_of_today", "pnl_amount", "broker", "debt_equity", "sub_category",
]

TABLE_COLUMNS = {
    "master_sheet": MANAGED_COLUMNS,
    "master_sheet_test": MANAGED_COLUMNS,
    "pms_master_sheet": PMS_COLUMNS,
    "account_custodian_codes": ["qcode", "custodian_code"],
    "accounts": ["qcode", "account_type", "broker", "strategy", "account_name"],
    "pooled_account_users": ["qcode", "icode"],
    "pooled_account_allocations": ["qcode", "icode"],
    "equity_holding": HOLDING_COLUMNS,
}

_CONFIG_KEYS = (
    "PORTFOLIO_STATS_ENV",
    "LEDGER_DATABASE_URL",
    "STATS_DEFAULTS",
    "TRAILING_WINDOWS",
    "LEDGER_TABLES",
    "LEDGER_TAGS",
    "STRATEGY_TAG_MAP",
    "STRATEGY_NAME_MAP",
    "DEFAULT_STRATEGY_NAMES",
    "EXPOSURE_ONLY_BROKERS",
)


@pytest.fixture(autouse=True)
def isolated_config():
    """Run every test against production tables and no registered store, then restore config."""
    saved = {key: copy.deepcopy(getattr(config, key)) for key in _CONFIG_KEYS}
    config.configure(PORTFOLIO_STATS_ENV="production", LEDGER_DATABASE_URL="")
    set_ledger_store(None)
    yield
    config.configure(**saved)
    set_ledger_store(None)


def daily_dates(start, count):
    return [d.date().isoformat() for d in pd.date_range(start=start, periods=count, freq="D")]


def managed_rows(qcode, system_tag, navs, start="2024-01-01", dates=None, drawdowns=None,
                 pnls=None, capital=None, portfolio_values=None):
    """
    Rows for the managed ledger (``master_sheet``), one per NAV.

    Args:
        qcode: Account code
        system_tag: Sub-ledger tag
        navs: NAV values; ``None`` entries become NULL NAVs
        start: First date when ``dates`` is not given (consecutive days)
        dates: Explicit ISO dates, same length as ``navs``
        drawdowns/pnls/capital/portfolio_values: Optional per-row values
            (default: 0 drawdown, 0 pnl, 0 capital, portfolio value = nav * 1000)

    Examples:
        >>> managed_rows("QAC1", ZERODHA_TAG, [100, 105], capital=[100000, 0])
    """
    n = len(navs)
    dates = dates or daily_dates(start, n)
    drawdowns = drawdowns if drawdowns is not None else [0.0] * n
    pnls = pnls if pnls is not None else [0.0] * n
    capital = capital if capital is not None else [0.0] * n
    if portfolio_values is None:
        portfolio_values = [nav * 1000 if nav is not None else None for nav in navs]
    return [
        {
            "qcode": qcode,
            "system_tag": system_tag,
            "date": dates[i],
            "nav": navs[i],
            "drawdown": drawdowns[i],
            "pnl": pnls[i],
            "capital_in_out": capital[i],
            "portfolio_value": portfolio_values[i],
        }
        for i in range(n)
    ]


def pms_rows(account_code, navs, start="2024-01-01", dates=None, drawdowns=None, pnls=None,
             cash=None, portfolio_values=None):
    """Rows for the custodian ledger (``pms_master_sheet``) using its physical column names."""
    rows = managed_rows(account_code, None, navs, start=start, dates=dates, drawdowns=drawdowns,
                        pnls=pnls, capital=cash, portfolio_values=portfolio_values)
    return [
        {
            "account_code": r["qcode"],
            "report_date": r["date"],
            "nav": r["nav"],
            "drawdown_percent": r["drawdown"],
            "pnl": r["pnl"],
            "cash_in_out": r["capital_in_out"],
            "portfolio_value": r["portfolio_value"],
        }
        for r in rows
    ]


def holding_row(qcode, symbol, quantity, avg_price, ltp, date="2024-03-31", exchange="NSE", isin=None,
                buy_value=None, value_as_of_today=None, pnl_amount=None, broker="zerodha",
                debt_equity="Equity", sub_category="Large Cap"):
    buy_value = quantity * avg_price if buy_value is None else buy_value
    value_as_of_today = quantity * ltp if value_as_of_today is None else value_as_of_today
    return {
        "qcode": qcode,
        "date": date,
        "symbol": symbol,
        "exchange": exchange,
        "isin": isin,
        "quantity": quantity,
        "avg_price": avg_price,
        "ltp": ltp,
        "buy_value": buy_value,
        "value_as_of_today": value_as_of_today,
        "pnl_amount": value_as_of_today - buy_value if pnl_amount is None else pnl_amount,
        "broker": broker,
        "debt_equity": debt_equity,
        "sub_category": sub_category,
    }


def holdings_frame(rows):
    return pd.DataFrame(rows, columns=HOLDING_COLUMNS)


def account_row(qcode, account_type="managed_account", broker="zerodha", strategy=None, account_name=None):
    return {
        "qcode": qcode,
        "account_type": account_type,
        "broker": broker,
        "strategy": strategy,
        "account_name": account_name,
    }


def build_tables(master=(), pms=(), custodian_codes=None, accounts=(), users=None, allocations=None,
                 holdings=(), master_test=()):
    """Physical tables keyed by name, every table present (possibly empty)."""
    custodian = [
        {"qcode": qcode, "custodian_code": code}
        for qcode, codes in (custodian_codes or {}).items()
        for code in codes
    ]
    members = [{"qcode": q, "icode": icode} for icode, qcodes in (users or {}).items() for q in qcodes]
    allocated = [{"qcode": q, "icode": icode} for icode, qcodes in (allocations or {}).items() for q in qcodes]
    rows_by_table = {
        "master_sheet": list(master),
        "master_sheet_test": list(master_test),
        "pms_master_sheet": list(pms),
        "account_custodian_codes": custodian,
        "accounts": list(accounts),
        "pooled_account_users": members,
        "pooled_account_allocations": allocated,
        "equity_holding": list(holdings),
    }
    return {name: pd.DataFrame(rows, columns=TABLE_COLUMNS[name]) for name, rows in rows_by_table.items()}


def frame_store(**tables):
    """``FrameLedgerStore`` over ``build_tables(**tables)``."""
    return FrameLedgerStore(build_tables(**tables))


def sqlite_store(**tables):
    """``SqlLedgerStore`` over an in-memory SQLite database holding ``build_tables(**tables)``."""
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    for name, df in build_tables(**tables).items():
        df.to_sql(name, conn, index=False)
    return SqlLedgerStore(conn)


def history(navs, start="2024-01-01", dates=None, drawdowns=None, pnls=None, capital=None):
    """``HistoricalPoint`` list, one per NAV on consecutive days (or ``dates``)."""
    n = len(navs)
    dates = dates or daily_dates(start, n)
    return [
        HistoricalPoint(
            date=dates[i],
            nav=navs[i],
            drawdown_percent=drawdowns[i] if drawdowns else 0.0,
            pnl=pnls[i] if pnls else 0.0,
            capital_in_out=capital[i] if capital else 0.0,
        )
        for i in range(n)
    ]
