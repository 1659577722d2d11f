"""Standalone-safe configuration surface for portfolio_stats_engine."""

from __future__ import annotations

import os
from typing import Any


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


_DEFAULTS: dict[str, Any] = {
    "PORTFOLIO_STATS_ENV": os.getenv("PORTFOLIO_STATS_ENV", "production"),
    "LEDGER_DATABASE_URL": os.getenv("LEDGER_DATABASE_URL", ""),
    "STATS_DEFAULTS": {
        "baseline_nav": _env_float("STATS_BASELINE_NAV", 100.0),
        "cagr_threshold_days": _env_int("STATS_CAGR_THRESHOLD_DAYS", 365),
        "max_workers": _env_int("STATS_MAX_WORKERS", 8),
        "drawdown_policy": os.getenv("STATS_DRAWDOWN_POLICY", "value_weighted_blend"),
        "slow_step_seconds": _env_float("STATS_SLOW_STEP_SECONDS", 2.0),
    },
    "TRAILING_WINDOWS": {
        "fiveDays": 5,
        "tenDays": 10,
        "fifteenDays": 15,
        "oneMonth": 30,
        "threeMonths": 90,
        "sixMonths": 180,
        "oneYear": 365,
        "twoYears": 730,
        "fiveYears": 1825,
    },
    "LEDGER_TABLES": {
        "managed": "master_sheet",
        "managed_test": "master_sheet_test",
        "pms": "pms_master_sheet",
        "custodian_codes": "account_custodian_codes",
        "accounts": "accounts",
        "pooled_users": "pooled_account_users",
        "pooled_allocations": "pooled_account_allocations",
        "equity_holdings": "equity_holding",
    },
    "LEDGER_TAGS": {
        "zerodha_total": "Zerodha Total Portfolio",
        "total_value": "Total Portfolio Value",
        "total_exposure": "Total Portfolio Exposure",
    },
    "STRATEGY_TAG_MAP": {},
    "STRATEGY_NAME_MAP": {},
    "DEFAULT_STRATEGY_NAMES": {
        "jainam": "Managed Account (Jainam)",
        "zerodha": "Managed Account",
        "pms": "PMS Strategy",
        "portfolio": "Portfolio Strategy",
    },
    "EXPOSURE_ONLY_BROKERS": ["radiance"],
}


try:  # pragma: no cover - project-level overrides
    import settings as _settings  # type: ignore

    for key in list(_DEFAULTS.keys()):
        if hasattr(_settings, key):
            _DEFAULTS[key] = getattr(_settings, key)
except ImportError:
    pass


PORTFOLIO_STATS_ENV = str(_DEFAULTS["PORTFOLIO_STATS_ENV"])
LEDGER_DATABASE_URL = str(_DEFAULTS["LEDGER_DATABASE_URL"])
STATS_DEFAULTS = _DEFAULTS["STATS_DEFAULTS"]
TRAILING_WINDOWS = _DEFAULTS["TRAILING_WINDOWS"]
LEDGER_TABLES = _DEFAULTS["LEDGER_TABLES"]
LEDGER_TAGS = _DEFAULTS["LEDGER_TAGS"]
STRATEGY_TAG_MAP = _DEFAULTS["STRATEGY_TAG_MAP"]
STRATEGY_NAME_MAP = _DEFAULTS["STRATEGY_NAME_MAP"]
DEFAULT_STRATEGY_NAMES = _DEFAULTS["DEFAULT_STRATEGY_NAMES"]
EXPOSURE_ONLY_BROKERS = [b.lower() for b in _DEFAULTS["EXPOSURE_ONLY_BROKERS"]]


def is_development() -> bool:
    """True when ledgers should be read from the *_test tables."""
    return PORTFOLIO_STATS_ENV.lower() == "development"


def configure(**overrides: Any) -> None:
    """Programmatically override package configuration values."""
    globals_dict = globals()
    for key, value in overrides.items():
        if key not in globals_dict or key.startswith("_") or callable(globals_dict[key]):
            raise KeyError(f"Unknown config key: {key}")
        globals_dict[key] = value
