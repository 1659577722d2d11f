#Ledger, tag and window settings for portfolio stats are in settings.py
import os
from pathlib import Path

from dotenv import load_dotenv

# Ensure local ".env" is loaded even for direct Python invocations
# (e.g., scripts/tools that bypass run_stats.py bootstrapping).
load_dotenv(Path(__file__).resolve().parent / ".env", override=False)

# Runtime environment. "development" reads the *_test ledger tables.
PORTFOLIO_STATS_ENV = os.getenv("PORTFOLIO_STATS_ENV", "production")

# Database URL used by store.get_ledger_store() (sqlite:///path)
LEDGER_DATABASE_URL = os.getenv("LEDGER_DATABASE_URL", "")

# settings.py
STATS_DEFAULTS = {
    "baseline_nav": 100.0,           # synthetic NAV prepended when an account does not start at 100
    "cagr_threshold_days": 365,      # since-inception spans longer than this are annualized
    "max_workers": 8,                # thread pool size for per-account ledger fan-out
    "drawdown_policy": "value_weighted_blend",  # or "max_across_accounts"
    "slow_step_seconds": 2.0,        # log_timing threshold for aggregation steps
}

# Trailing return look-back windows in calendar days.
# Order matters: it is the display order of the trailing returns table.
TRAILING_WINDOWS = {
    "fiveDays": 5,
    "tenDays": 10,
    "fifteenDays": 15,
    "oneMonth": 30,
    "threeMonths": 90,
    "sixMonths": 180,
    "oneYear": 365,
    "twoYears": 730,
    "fiveYears": 1825,
}

# Ledger tables in the time-series store
LEDGER_TABLES = {
    "managed": "master_sheet",
    "managed_test": "master_sheet_test",
    "pms": "pms_master_sheet",
    "custodian_codes": "account_custodian_codes",
    "accounts": "accounts",
    "pooled_users": "pooled_account_users",
    "pooled_allocations": "pooled_account_allocations",
    "equity_holdings": "equity_holding",
}

# System tags used by the managed-account ledgers
LEDGER_TAGS = {
    "zerodha_total": "Zerodha Total Portfolio",
    "total_value": "Total Portfolio Value",
    "total_exposure": "Total Portfolio Exposure",
}

# Strategy code → system tag holding its NAV series (Zerodha-family brokers)
STRATEGY_TAG_MAP = {
    "QAW+": "Zerodha Total Portfolio",
    "QAW++": "Zerodha Total Portfolio",
    "QTF+": "Zerodha Total Portfolio",
    "QTF++": "Zerodha Total Portfolio",
    "QYE+": "Total Portfolio Value",
    "QYE++": "Total Portfolio Value",
}

# Strategy code → display name
STRATEGY_NAME_MAP = {
    "QAW+": "Qode All Weather+",
    "QAW++": "Qode All Weather++",
    "QTF+": "Qode Tactical Fund+",
    "QTF++": "Qode Tactical Fund++",
    "QYE+": "Qode Yield Enhancer+",
    "QYE++": "Qode Yield Enhancer++",
}

# Fallback display names per adapter family
DEFAULT_STRATEGY_NAMES = {
    "jainam": "Qode Yield Enhancer (Jainam)",
    "zerodha": "Qode Yield Enhancer+",
    "pms": "PMS Strategy",
    "portfolio": "Portfolio Strategy",
}

# Brokers whose managed ledgers only carry the exposure tag
EXPOSURE_ONLY_BROKERS = ["radiance"]
