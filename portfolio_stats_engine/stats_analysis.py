"""
User-level stats entrypoint.

Called by:
    - ``run_stats.run_stats`` (CLI)
    - any HTTP handler serving the dashboard stats payload

Primary flow:
    1) Resolve the user's visible accounts.
    2) Apply optional account-type / broker filters.
    3) Aggregate with ``calculate_portfolio_metrics``.
    4) Capture inception / as-of dates, then apply the optional date range.
    5) Attach request metadata (no wall-clock fields) and return ``PortfolioStats``.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from core.result_objects.stats import PortfolioStats
from portfolio_stats_engine._logging import log_errors, log_operation, log_timing
from portfolio_stats_engine.account_resolver import filter_accounts, get_user_accounts
from portfolio_stats_engine.exceptions import NoAccountDataError
from portfolio_stats_engine.metrics_aggregator import DrawdownAggregationPolicy, calculate_portfolio_metrics
from portfolio_stats_engine.store import LedgerStore


def _has_any_data(stats: PortfolioStats) -> bool:
    return bool(stats.equity_curve or stats.cash_flows or stats.current_exposure or stats.amount_deposited)


@log_errors("high")
@log_operation("user_stats_analysis")
@log_timing(5.0)
def analyze_user_stats(
    user_id: str,
    *,
    account_type: Optional[str] = None,
    broker: Optional[str] = None,
    start_date: Any = None,
    end_date: Any = None,
    tag: Optional[str] = None,
    drawdown_policy: Union[str, DrawdownAggregationPolicy, None] = None,
    store: Optional[LedgerStore] = None,
    include_holdings: bool = True,
) -> PortfolioStats:
    """
    Compute stats for everything ``user_id`` may view.

    The date range only trims the returned curves and cash flows (both bounds
    optional); returns and P&L tables are computed over the full history, and
    ``inceptionDate`` / ``dataAsOfDate`` in the metadata come from the
    unfiltered curve.

    Raises
    ------
    NoAccountDataError
        The user has no accounts after filtering, or none of them has any data.
    UnsupportedAccountError
        An account has no registered adapter.
    """
    accounts = filter_accounts(get_user_accounts(user_id, store), account_type, broker)
    if not accounts:
        raise NoAccountDataError(f"No accounts found for {user_id} (account_type={account_type}, broker={broker})")

    stats = calculate_portfolio_metrics(
        accounts,
        store=store,
        tag=tag,
        drawdown_policy=drawdown_policy,
        include_holdings=include_holdings,
    )
    if stats is None or not _has_any_data(stats):
        raise NoAccountDataError(f"No ledger data found for {user_id}")

    inception, as_of = stats.inception_date, stats.data_as_of_date
    if start_date is not None or end_date is not None:
        stats = stats.filter_date_range(start_date, end_date)

    return stats.with_metadata(
        icode=user_id,
        accountCount=len(accounts),
        accounts=[a.qcode for a in accounts],
        inceptionDate=inception.isoformat() if inception else None,
        dataAsOfDate=as_of.isoformat() if as_of else None,
        filtersApplied={
            "accountType": account_type,
            "broker": broker,
            "startDate": str(start_date) if start_date is not None else None,
            "endDate": str(end_date) if end_date is not None else None,
        },
        strategyName=stats.strategy_name,
    )
