"""Public API for portfolio_stats_engine."""

from portfolio_stats_engine.account_resolver import (
    filter_accounts,
    get_user_accounts,
    plan_adapters,
    register_adapter,
    select_adapter,
)
from portfolio_stats_engine.data_objects import AccountRef
from portfolio_stats_engine.exceptions import (
    NoAccountDataError,
    PortfolioStatsError,
    UnsupportedAccountError,
)
from portfolio_stats_engine.metrics_aggregator import (
    DrawdownAggregationPolicy,
    calculate_portfolio_metrics,
)
from portfolio_stats_engine.stats_analysis import analyze_user_stats
from portfolio_stats_engine.store import (
    FrameLedgerStore,
    LedgerStore,
    SqlLedgerStore,
    get_ledger_store,
    set_ledger_store,
)

__all__ = [
    "AccountRef",
    "DrawdownAggregationPolicy",
    "FrameLedgerStore",
    "LedgerStore",
    "NoAccountDataError",
    "PortfolioStatsError",
    "SqlLedgerStore",
    "UnsupportedAccountError",
    "analyze_user_stats",
    "calculate_portfolio_metrics",
    "filter_accounts",
    "get_ledger_store",
    "get_user_accounts",
    "plan_adapters",
    "register_adapter",
    "select_adapter",
    "set_ledger_store",
]
