"""Cash-flow ledger helpers: extraction, merging, filtering and totals."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import pandas as pd

from portfolio_stats_engine.data_objects import CashFlowEvent, to_date


@dataclass(frozen=True)
class CashFlowSummary:
    """Inflow/outflow totals. ``total_out`` is non-positive."""

    total_in: float = 0.0
    total_out: float = 0.0
    net_flow: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"totalIn": self.total_in, "totalOut": self.total_out, "netFlow": self.net_flow}


def cash_flows_from_ledger(df: pd.DataFrame) -> List[CashFlowEvent]:
    """Non-zero ``capital_in_out`` rows of a canonical ledger frame, ascending by date."""
    if df is None or df.empty:
        return []
    moves = df[df["capital_in_out"].notna() & (df["capital_in_out"] != 0)]
    return [CashFlowEvent(date=row.date, amount=float(row.capital_in_out)) for row in moves.itertuples(index=False)]


def merge_cash_flows(*event_lists: Iterable[CashFlowEvent]) -> List[CashFlowEvent]:
    """Concatenate per-account cash flows into one ledger sorted by date (stable)."""
    merged: List[CashFlowEvent] = []
    for events in event_lists:
        merged.extend(events)
    return sorted(merged, key=lambda e: e.date)


def filter_cash_flows(events: Iterable[CashFlowEvent], start_date: Optional[dt.date] = None,
                      end_date: Optional[dt.date] = None) -> List[CashFlowEvent]:
    start = to_date(start_date) if start_date is not None else None
    end = to_date(end_date) if end_date is not None else None
    return [
        e for e in events
        if (start is None or e.date >= start) and (end is None or e.date <= end)
    ]


def summarize_cash_flows(events: Iterable[CashFlowEvent]) -> CashFlowSummary:
    total_in = 0.0
    total_out = 0.0
    for event in events:
        if event.amount > 0:
            total_in += event.amount
        elif event.amount < 0:
            total_out += event.amount
    return CashFlowSummary(total_in=total_in, total_out=total_out, net_flow=total_in + total_out)
