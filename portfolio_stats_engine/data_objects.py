"""
Core Data Objects Module

Data structures flowing from the ledger store through the source adapters into
the metrics aggregator. All of them are immutable and request-scoped: they are
materialized fresh from the store for every stats computation and never
written back.

Classes:
- AccountRef: An account a user may view, with the metadata used to pick an adapter
- HistoricalPoint: One dated ledger observation for one account/sub-ledger
- CashFlowEvent: A signed capital movement (positive = deposit)
- CurvePoint: One point of an equity or drawdown curve
- LatestExposure: Most recent portfolio value / drawdown / NAV for an account
- NavObservation: A NAV value and the date it was observed
- Holding: One position from the latest holdings snapshot

Usage: Foundation objects for the stats pipeline.
"""

from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pandas as pd


def to_date(value: Any) -> dt.date:
    """Coerce a date-like value (str, datetime, Timestamp) to ``datetime.date``."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    ts = pd.Timestamp(value)
    if pd.isna(ts):
        raise ValueError(f"Invalid date: {value!r}")
    return ts.date()


def to_float(value: Any, default: float = 0.0) -> float:
    """Convert ledger numerics (Decimal, str, numpy) to float; NaN/None become ``default``."""
    if value is None:
        return default
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(numeric):
        return default
    return numeric


@dataclass(frozen=True)
class AccountRef:
    """
    An account visible to a user.

    Parameters:
    - qcode: Account identifier in the ledger store
    - account_type: 'managed_account' or 'pms'
    - broker: Broker/custodian name (normalized to lowercase)
    - strategy: Optional strategy code (e.g. 'QAW+') selecting the NAV sub-ledger
    - account_name: Optional display name
    """

    qcode: str
    account_type: str
    broker: str
    strategy: Optional[str] = None
    account_name: Optional[str] = None

    def __post_init__(self):
        if not self.qcode:
            raise ValueError("qcode cannot be empty")
        object.__setattr__(self, "account_type", (self.account_type or "").strip().lower())
        object.__setattr__(self, "broker", (self.broker or "").strip().lower())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "qcode": self.qcode,
            "account_type": self.account_type,
            "broker": self.broker,
            "strategy": self.strategy,
            "account_name": self.account_name,
        }


@dataclass(frozen=True)
class HistoricalPoint:
    """One dated ledger row. ``drawdown_percent`` is a non-negative magnitude."""

    date: dt.date
    nav: float
    drawdown_percent: float = 0.0
    pnl: float = 0.0
    capital_in_out: float = 0.0
    synthetic: bool = False

    def __post_init__(self):
        object.__setattr__(self, "date", to_date(self.date))
        object.__setattr__(self, "drawdown_percent", abs(self.drawdown_percent))


@dataclass(frozen=True)
class CashFlowEvent:
    date: dt.date
    amount: float

    def __post_init__(self):
        object.__setattr__(self, "date", to_date(self.date))

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date.isoformat(), "amount": self.amount}


@dataclass(frozen=True)
class CurvePoint:
    date: dt.date
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date.isoformat(), "value": self.value}


@dataclass(frozen=True)
class LatestExposure:
    portfolio_value: float
    drawdown: float
    nav: float
    date: dt.date

    def __post_init__(self):
        object.__setattr__(self, "date", to_date(self.date))
        object.__setattr__(self, "drawdown", abs(self.drawdown))


@dataclass(frozen=True)
class NavObservation:
    nav: float
    date: dt.date

    def __post_init__(self):
        object.__setattr__(self, "date", to_date(self.date))


@dataclass(frozen=True)
class Holding:
    symbol: str
    exchange: str
    quantity: float
    avg_price: float
    ltp: float
    buy_value: float
    value_as_of_today: float
    pnl_amount: float
    percent_pnl: float
    broker: str
    debt_equity: str
    sub_category: str
    date: Optional[dt.date] = None
    isin: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "exchange": self.exchange,
            "quantity": self.quantity,
            "avgPrice": self.avg_price,
            "ltp": self.ltp,
            "buyValue": self.buy_value,
            "valueAsOfToday": self.value_as_of_today,
            "pnlAmount": self.pnl_amount,
            "percentPnl": self.percent_pnl,
            "broker": self.broker,
            "debtEquity": self.debt_equity,
            "subCategory": self.sub_category,
            "date": self.date.isoformat() if self.date else None,
            "isin": self.isin,
        }


@dataclass
class HoldingsSummary:
    """Totals and breakdowns over a set of holdings."""

    total_buy_value: float = 0.0
    total_current_value: float = 0.0
    total_pnl: float = 0.0
    total_pnl_percent: float = 0.0
    holdings_count: int = 0
    equity_holdings: List[Holding] = field(default_factory=list)
    debt_holdings: List[Holding] = field(default_factory=list)
    mutual_fund_holdings: List[Holding] = field(default_factory=list)
    category_breakdown: Dict[str, Dict[str, float]] = field(default_factory=dict)
    broker_breakdown: Dict[str, Dict[str, float]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalBuyValue": self.total_buy_value,
            "totalCurrentValue": self.total_current_value,
            "totalPnl": self.total_pnl,
            "totalPnlPercent": self.total_pnl_percent,
            "holdingsCount": self.holdings_count,
            "equityHoldings": [h.to_dict() for h in self.equity_holdings],
            "debtHoldings": [h.to_dict() for h in self.debt_holdings],
            "mutualFundHoldings": [h.to_dict() for h in self.mutual_fund_holdings],
            "categoryBreakdown": self.category_breakdown,
            "brokerBreakdown": self.broker_breakdown,
        }
