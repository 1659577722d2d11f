"""
Source adapters: one uniform read API over heterogeneous ledgers.

Every adapter answers the same questions for an account (deposits, latest
exposure, NAV history, profit, cash flows, holdings). The base class
implements them all over a canonical ledger frame; subclasses only decide
which table and system tag back each *purpose*:

    deposits, exposure, cash_flows  -> the capital ledger
    nav (history / NAV / profit)    -> the NAV ledger

An explicit ``tag`` argument overrides the system tag for every purpose.

Failure policy: store errors are logged through ``log_critical_alert`` and the
operation returns its safe default (``0.0``, ``None`` or ``[]``).
"""

from __future__ import annotations

import functools
from dataclasses import replace
from typing import Any, Callable, List, Optional

import pandas as pd

from portfolio_stats_engine import config
from portfolio_stats_engine._logging import log_critical_alert, portfolio_logger
from portfolio_stats_engine.cash_flows import cash_flows_from_ledger
from portfolio_stats_engine.constants import NAV_DIRECTIONS
from portfolio_stats_engine.data_objects import (
    CashFlowEvent,
    HistoricalPoint,
    Holding,
    LatestExposure,
    NavObservation,
    to_date,
    to_float,
)
from portfolio_stats_engine.holdings import holdings_from_frame
from portfolio_stats_engine.store import LedgerQuery, LedgerStore, get_ledger_store

PURPOSES = ("deposits", "exposure", "cash_flows", "nav")


def _safe_default(default_factory: Callable[[], Any]):
    """Log store failures and return ``default_factory()`` instead of raising."""

    def deco(fn):
        @functools.wraps(fn)
        def wrapper(self, qcode, *args, **kwargs):
            try:
                return fn(self, qcode, *args, **kwargs)
            except Exception as exc:
                log_critical_alert(
                    "ledger_query_failed",
                    "high",
                    f"{type(self).__name__}.{fn.__name__} failed for {qcode}: {exc}",
                    action="returning default",
                    details={"qcode": qcode, "error_type": type(exc).__name__},
                )
                return default_factory()

        return wrapper

    return deco


def _sum_present(values: pd.Series) -> float:
    return values.sum(min_count=1)


def _fold_same_date_rows(df: pd.DataFrame) -> pd.DataFrame:
    """One row per date: mean NAV and drawdown, summed pnl and capital."""
    folded = df.groupby("date", sort=True).agg(
        nav=("nav", "mean"),
        drawdown=("drawdown", "mean"),
        pnl=("pnl", _sum_present),
        capital_in_out=("capital_in_out", _sum_present),
    )
    return folded.reset_index()


class SourceAdapter:
    """Base adapter. Subclasses implement ``_ledger``."""

    family = "portfolio"

    def __init__(self, store: Optional[LedgerStore] = None):
        self._store = store

    @property
    def store(self) -> LedgerStore:
        return self._store if self._store is not None else get_ledger_store()

    def _ledger(self, qcode: str, purpose: str, strategy: Optional[str] = None,
                tag: Optional[str] = None) -> LedgerQuery:
        raise NotImplementedError

    def _nav_frame(self, qcode: str, strategy=None, tag=None) -> pd.DataFrame:
        df = self.store.fetch_ledger(self._ledger(qcode, "nav", strategy, tag))
        return df[df["nav"].notna()]

    # ── capital ledger ────────────────────────────────────────────────
    @_safe_default(float)
    def get_amount_deposited(self, qcode: str, tag: Optional[str] = None) -> float:
        return self.store.sum_ledger(self._ledger(qcode, "deposits", tag=tag), "capital_in_out")

    @_safe_default(lambda: None)
    def get_latest_exposure(self, qcode: str, tag: Optional[str] = None) -> Optional[LatestExposure]:
        df = self.store.fetch_ledger(self._ledger(qcode, "exposure", tag=tag))
        if df.empty:
            return None
        row = df.iloc[-1]
        return LatestExposure(
            portfolio_value=to_float(row["portfolio_value"]),
            drawdown=to_float(row["drawdown"]),
            nav=to_float(row["nav"]),
            date=row["date"],
        )

    @_safe_default(list)
    def get_cash_flows(self, qcode: str, tag: Optional[str] = None) -> List[CashFlowEvent]:
        return cash_flows_from_ledger(self.store.fetch_ledger(self._ledger(qcode, "cash_flows", tag=tag)))

    # ── NAV ledger ────────────────────────────────────────────────────
    @_safe_default(list)
    def get_historical_data(self, qcode: str, strategy: Optional[str] = None,
                            tag: Optional[str] = None) -> List[HistoricalPoint]:
        """
        Rows with both NAV and drawdown present, ascending by date.

        Each account code keeps its last row per date. When the ledger spans
        several codes (a PMS account with more than one custodian), same-date
        rows are folded: NAV and drawdown averaged, pnl and capital summed.
        """
        query = self._ledger(qcode, "nav", strategy, tag)
        frames = []
        for code in query.account_codes:
            df = self.store.fetch_ledger(replace(query, account_codes=(code,)))
            df = df[df["nav"].notna() & df["drawdown"].notna()]
            frames.append(df.drop_duplicates(subset=["date"], keep="last"))
        if not frames:
            return []
        df = frames[0] if len(frames) == 1 else _fold_same_date_rows(pd.concat(frames, ignore_index=True))
        return [
            HistoricalPoint(
                date=row.date,
                nav=float(row.nav),
                drawdown_percent=to_float(row.drawdown),
                pnl=to_float(row.pnl),
                capital_in_out=to_float(row.capital_in_out),
            )
            for row in df.itertuples(index=False)
        ]

    @_safe_default(lambda: None)
    def get_first_nav(self, qcode: str, strategy: Optional[str] = None,
                      tag: Optional[str] = None) -> Optional[NavObservation]:
        df = self._nav_frame(qcode, strategy, tag)
        if df.empty:
            return None
        row = df.iloc[0]
        return NavObservation(nav=float(row["nav"]), date=row["date"])

    def get_nav_at_date(self, qcode: str, target: Any, direction: str = "closest",
                        strategy: Optional[str] = None, tag: Optional[str] = None) -> Optional[NavObservation]:
        """
        NAV observation relative to ``target``.

        ``before`` is the latest row on or before the target, ``after`` the
        earliest row on or after it; ``closest`` picks whichever is nearer and
        prefers ``before`` on ties.
        """
        if direction not in NAV_DIRECTIONS:
            raise ValueError(f"direction must be one of {NAV_DIRECTIONS}, got {direction!r}")
        return self._nav_at_date(qcode, to_date(target), direction, strategy, tag)

    @_safe_default(lambda: None)
    def _nav_at_date(self, qcode, target, direction, strategy, tag):
        df = self._nav_frame(qcode, strategy, tag)
        before = df[df["date"] <= target]
        after = df[df["date"] >= target]
        before_obs = NavObservation(float(before["nav"].iloc[-1]), before["date"].iloc[-1]) if not before.empty else None
        after_obs = NavObservation(float(after["nav"].iloc[0]), after["date"].iloc[0]) if not after.empty else None
        if direction == "before":
            return before_obs
        if direction == "after":
            return after_obs
        if before_obs is None or after_obs is None:
            return before_obs or after_obs
        if (target - before_obs.date) <= (after_obs.date - target):
            return before_obs
        return after_obs

    @_safe_default(float)
    def get_total_profit(self, qcode: str, strategy: Optional[str] = None,
                         tag: Optional[str] = None) -> float:
        return self.store.sum_ledger(self._ledger(qcode, "nav", strategy, tag), "pnl")

    # ── metadata ──────────────────────────────────────────────────────
    def get_strategy_name(self, strategy: Optional[str] = None) -> str:
        if strategy:
            return config.STRATEGY_NAME_MAP.get(strategy, strategy)
        return config.DEFAULT_STRATEGY_NAMES.get(self.family, config.DEFAULT_STRATEGY_NAMES["portfolio"])

    @_safe_default(list)
    def get_holdings(self, qcode: str) -> List[Holding]:
        return holdings_from_frame(self.store.fetch_holdings(qcode))

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def _managed_table() -> str:
    return config.LEDGER_TABLES["managed_test" if config.is_development() else "managed"]


class JainamManagedAdapter(SourceAdapter):
    """Jainam managed accounts: capital on the Zerodha total, NAV on the portfolio value ledger."""

    family = "jainam"

    def _ledger(self, qcode, purpose, strategy=None, tag=None):
        if purpose not in PURPOSES:
            raise ValueError(f"Unknown ledger purpose: {purpose}")
        if tag is None:
            key = "total_value" if purpose == "nav" else "zerodha_total"
            tag = config.LEDGER_TAGS[key]
        return LedgerQuery("managed", _managed_table(), (qcode,), tag)


class ZerodhaManagedAdapter(SourceAdapter):
    """
    Zerodha-family managed accounts.

    The NAV ledger depends on the strategy code (``STRATEGY_TAG_MAP``, falling
    back to the exposure tag). Exposure-only brokers (Radiance) read the
    exposure tag for every purpose.
    """

    family = "zerodha"

    def __init__(self, broker: str, store: Optional[LedgerStore] = None):
        super().__init__(store)
        self.broker = (broker or "").strip().lower()

    @property
    def exposure_only(self) -> bool:
        return self.broker in config.EXPOSURE_ONLY_BROKERS

    def _system_tag(self, purpose: str, strategy: Optional[str]) -> str:
        tags = config.LEDGER_TAGS
        if self.exposure_only:
            return tags["total_exposure"]
        if purpose != "nav":
            return tags["zerodha_total"]
        if strategy and strategy in config.STRATEGY_TAG_MAP:
            return config.STRATEGY_TAG_MAP[strategy]
        return tags["total_exposure"]

    def _ledger(self, qcode, purpose, strategy=None, tag=None):
        if purpose not in PURPOSES:
            raise ValueError(f"Unknown ledger purpose: {purpose}")
        return LedgerQuery("managed", _managed_table(), (qcode,), tag or self._system_tag(purpose, strategy))

    def __repr__(self) -> str:
        return f"ZerodhaManagedAdapter(broker={self.broker!r})"


class PmsAdapter(SourceAdapter):
    """PMS accounts: custodian ledger rows for every custodian code mapped to the qcode."""

    family = "pms"

    def _ledger(self, qcode, purpose, strategy=None, tag=None):
        if purpose not in PURPOSES:
            raise ValueError(f"Unknown ledger purpose: {purpose}")
        codes = self.store.fetch_custodian_codes(qcode)
        if not codes:
            portfolio_logger.debug("No custodian codes mapped for %s", qcode)
        return LedgerQuery("pms", config.LEDGER_TABLES["pms"], tuple(codes))
