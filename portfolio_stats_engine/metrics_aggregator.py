"""
Metrics aggregator: fold N accounts into one ``PortfolioStats``.

Primary flow:
    1) Resolve an adapter for every account (unsupported pairs fail fast).
    2) Fan out the per-account ledger reads on a thread pool.
    3) Normalize each account's NAV history to the 100 baseline.
    4) Average same-date NAVs / drawdowns across accounts (equal weight).
    5) Per-account drawdowns, combined by ``DrawdownAggregationPolicy``.
    6) Trailing returns, monthly / quarterly P&L on the aggregated curve.
    7) Return ``PortfolioStats``.

Steps 3-7 are pure (``aggregate_snapshots``) so they can be tested without a
store.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from core.result_objects.stats import PortfolioStats
from portfolio_stats_engine import config
from portfolio_stats_engine._logging import (
    log_critical_alert,
    log_operation,
    log_portfolio_operation,
    log_timing,
    portfolio_logger,
)
from portfolio_stats_engine.account_resolver import plan_adapters
from portfolio_stats_engine.cash_flows import merge_cash_flows
from portfolio_stats_engine.data_objects import (
    AccountRef,
    CashFlowEvent,
    HistoricalPoint,
    Holding,
    LatestExposure,
)
from portfolio_stats_engine.holdings import summarize_holdings
from portfolio_stats_engine.pnl_aggregation import monthly_pnl, quarterly_pnl
from portfolio_stats_engine.source_adapters import SourceAdapter
from portfolio_stats_engine.store import LedgerStore
from portfolio_stats_engine.timeseries import (
    anchor_curve,
    average_curves,
    current_drawdown,
    dedupe_points,
    max_drawdown,
    normalize_to_baseline,
    trailing_returns,
)


def _slow_step() -> float:
    return config.STATS_DEFAULTS["slow_step_seconds"]


class DrawdownAggregationPolicy(str, Enum):
    """How per-account MDD / current drawdown combine into the portfolio figure."""

    MAX_ACROSS_ACCOUNTS = "max_across_accounts"
    VALUE_WEIGHTED_BLEND = "value_weighted_blend"

    @classmethod
    def coerce(cls, value: Union[str, "DrawdownAggregationPolicy", None]) -> "DrawdownAggregationPolicy":
        if value is None:
            value = config.STATS_DEFAULTS["drawdown_policy"]
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


@dataclass
class AccountSnapshot:
    """Everything read from the store for one account in one request."""

    account: AccountRef
    strategy_name: str
    amount_deposited: float = 0.0
    latest_exposure: Optional[LatestExposure] = None
    total_profit: float = 0.0
    cash_flows: List[CashFlowEvent] = field(default_factory=list)
    history: List[HistoricalPoint] = field(default_factory=list)
    holdings: List[Holding] = field(default_factory=list)
    failed: bool = False

    @property
    def portfolio_value(self) -> float:
        return self.latest_exposure.portfolio_value if self.latest_exposure else 0.0


def fetch_account_snapshot(account: AccountRef, adapter: SourceAdapter, tag: Optional[str] = None,
                           include_holdings: bool = True) -> AccountSnapshot:
    """Read one account's deposits, exposure, profit, cash flows, history and holdings."""
    qcode, strategy = account.qcode, account.strategy
    return AccountSnapshot(
        account=account,
        strategy_name=adapter.get_strategy_name(strategy),
        amount_deposited=adapter.get_amount_deposited(qcode, tag=tag),
        latest_exposure=adapter.get_latest_exposure(qcode, tag=tag),
        total_profit=adapter.get_total_profit(qcode, strategy=strategy, tag=tag),
        cash_flows=adapter.get_cash_flows(qcode, tag=tag),
        history=adapter.get_historical_data(qcode, strategy=strategy, tag=tag),
        holdings=adapter.get_holdings(qcode) if include_holdings else [],
    )


@log_operation("fetch_account_snapshots")
@log_timing(_slow_step)
def fetch_snapshots(plan: Sequence[Tuple[AccountRef, SourceAdapter]], tag: Optional[str] = None,
                    max_workers: Optional[int] = None, include_holdings: bool = True) -> List[AccountSnapshot]:
    """
    Fetch snapshots for every planned account concurrently, in input order.

    An account whose fetch raises is logged and contributes a zero/empty
    snapshot; it never aborts the other accounts.
    """
    if not plan:
        return []
    workers = max(1, min(max_workers or config.STATS_DEFAULTS["max_workers"], len(plan)))
    results: Dict[int, AccountSnapshot] = {}
    with ThreadPoolExecutor(max_workers=workers) as ex:
        futures = {
            ex.submit(fetch_account_snapshot, account, adapter, tag, include_holdings): i
            for i, (account, adapter) in enumerate(plan)
        }
        for fut in as_completed(futures):
            i = futures[fut]
            account, adapter = plan[i]
            try:
                results[i] = fut.result()
            except Exception as exc:
                log_critical_alert(
                    "account_fetch_failed",
                    "high",
                    f"Fetching {account.qcode} failed: {exc}",
                    action="contributing zero/empty data",
                    details={"qcode": account.qcode, "error_type": type(exc).__name__},
                )
                results[i] = AccountSnapshot(
                    account=account,
                    strategy_name=adapter.get_strategy_name(account.strategy),
                    failed=True,
                )
    return [results[i] for i in range(len(plan))]


def _curve_points(snapshot: AccountSnapshot) -> List[HistoricalPoint]:
    points = dedupe_points(snapshot.history)
    usable = [p for p in points if p.nav > 0]
    if len(usable) < len(points):
        portfolio_logger.warning(
            "%s: excluded %d non-positive NAV rows from the NAV curve",
            snapshot.account.qcode, len(points) - len(usable),
        )
    return usable


def combine_drawdowns(values: Sequence[float], weights: Sequence[float],
                      policy: DrawdownAggregationPolicy) -> Optional[float]:
    """
    Combine per-account drawdown magnitudes.

    ``MAX_ACROSS_ACCOUNTS`` takes the worst account. ``VALUE_WEIGHTED_BLEND``
    weights each account by its latest portfolio value and falls back to the
    equal-weight mean when the total weight is not positive.
    """
    if not values:
        return None
    if policy is DrawdownAggregationPolicy.MAX_ACROSS_ACCOUNTS:
        return max(values)
    clipped = [max(w, 0.0) for w in weights]
    total = sum(clipped)
    if total <= 0:
        return sum(values) / len(values)
    return sum(v * w for v, w in zip(values, clipped)) / total


def _strategy_name(snapshots: Iterable[AccountSnapshot]) -> str:
    names: List[str] = []
    for snap in snapshots:
        if snap.strategy_name and snap.strategy_name not in names:
            names.append(snap.strategy_name)
    return " + ".join(names) if names else config.DEFAULT_STRATEGY_NAMES["portfolio"]


@log_operation("aggregate_snapshots")
@log_timing(_slow_step)
def aggregate_snapshots(snapshots: Sequence[AccountSnapshot],
                        drawdown_policy: Union[str, DrawdownAggregationPolicy, None] = None,
                        include_holdings: bool = True) -> Optional[PortfolioStats]:
    """Pure fold of account snapshots into ``PortfolioStats``; ``None`` for no snapshots."""
    if not snapshots:
        return None
    policy = DrawdownAggregationPolicy.coerce(drawdown_policy)

    nav_maps, drawdown_maps = [], []
    account_mdds, account_cdds, weights = [], [], []
    real_points: List[HistoricalPoint] = []
    for snap in snapshots:
        real_points.extend(dedupe_points(snap.history))
        normalized = normalize_to_baseline(_curve_points(snap))
        if not normalized:
            portfolio_logger.debug("%s: no NAV history, skipped for curves", snap.account.qcode)
            continue
        navs = [p.nav for p in normalized]
        nav_maps.append({p.date: p.nav for p in normalized})
        drawdown_maps.append({p.date: p.drawdown_percent for p in normalized})
        account_mdds.append(max_drawdown(navs))
        account_cdds.append(current_drawdown(navs))
        weights.append(snap.portfolio_value)

    equity_curve = anchor_curve(average_curves(nav_maps))
    drawdown_curve = average_curves(drawdown_maps)

    trailing = trailing_returns(equity_curve)
    trailing["MDD"] = combine_drawdowns(account_mdds, weights, policy)
    trailing["currentDD"] = combine_drawdowns(account_cdds, weights, policy)

    monthly = monthly_pnl(equity_curve, real_points)
    holdings = None
    if include_holdings:
        holdings = summarize_holdings(h for snap in snapshots for h in snap.holdings)

    return PortfolioStats(
        amount_deposited=sum(s.amount_deposited for s in snapshots),
        current_exposure=sum(s.portfolio_value for s in snapshots),
        total_profit=sum(s.total_profit for s in snapshots),
        overall_return=trailing["sinceInception"],
        max_drawdown=trailing["MDD"],
        trailing_returns=trailing,
        equity_curve=equity_curve,
        drawdown_curve=drawdown_curve,
        monthly_pnl=monthly,
        quarterly_pnl=quarterly_pnl(monthly),
        cash_flows=merge_cash_flows(*(s.cash_flows for s in snapshots)),
        strategy_name=_strategy_name(snapshots),
        holdings=holdings,
        account_count=len(snapshots),
        drawdown_policy=policy.value,
    )


@log_operation("calculate_portfolio_metrics")
@log_timing(_slow_step)
def calculate_portfolio_metrics(
    accounts: Sequence[AccountRef],
    *,
    store: Optional[LedgerStore] = None,
    tag: Optional[str] = None,
    drawdown_policy: Union[str, DrawdownAggregationPolicy, None] = None,
    max_workers: Optional[int] = None,
    include_holdings: bool = True,
) -> Optional[PortfolioStats]:
    """
    Compute ``PortfolioStats`` for a set of accounts.

    Parameters
    ----------
    accounts : Sequence[AccountRef]
        Accounts to pool. An empty sequence returns ``None``.
    store : LedgerStore, optional
        Ledger store; defaults to the registered store.
    tag : str, optional
        System tag overriding every adapter's ledger selection.
    drawdown_policy : DrawdownAggregationPolicy or str, optional
        Portfolio MDD / current DD policy; defaults to
        ``STATS_DEFAULTS['drawdown_policy']`` (value-weighted blend).
    max_workers : int, optional
        Thread pool size for the per-account fan-out.
    include_holdings : bool
        Fetch and summarize latest holdings.

    Raises
    ------
    UnsupportedAccountError
        If any account has no registered adapter. Raised before any ledger query.
    """
    if not accounts:
        portfolio_logger.info("No accounts provided for portfolio metrics calculation")
        return None
    started = time.perf_counter()
    policy = DrawdownAggregationPolicy.coerce(drawdown_policy)
    plan = plan_adapters(accounts, store)
    snapshots = fetch_snapshots(plan, tag=tag, max_workers=max_workers, include_holdings=include_holdings)
    stats = aggregate_snapshots(snapshots, policy, include_holdings=include_holdings)
    log_portfolio_operation(
        "portfolio_metrics_calculated",
        {
            "accounts": [a.qcode for a in accounts],
            "failed_accounts": [s.account.qcode for s in snapshots if s.failed],
            "curve_points": len(stats.equity_curve) if stats else 0,
            "drawdown_policy": policy.value,
        },
        execution_time=time.perf_counter() - started,
    )
    return stats
