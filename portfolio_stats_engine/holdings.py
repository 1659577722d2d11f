"""
Holdings snapshot helpers.

``holdings_from_frame`` folds the latest-date holdings rows of one account into
one ``Holding`` per instrument: equities grouped by case-insensitive symbol with
a quantity-weighted average price, mutual funds (exchange ``MF``) grouped by
ISIN with summed values. ``summarize_holdings`` builds the totals and the
category/broker breakdowns across any number of accounts.
"""

from __future__ import annotations

from typing import Dict, Iterable, List

import pandas as pd

from portfolio_stats_engine.constants import DEBT_MARKERS, DEBT_SYMBOL_MARKERS
from portfolio_stats_engine.data_objects import Holding, HoldingsSummary, to_float

MUTUAL_FUND_EXCHANGE = "MF"


def _join_distinct(values: Iterable) -> str:
    seen: List[str] = []
    for v in values:
        if v is None or (isinstance(v, float) and pd.isna(v)):
            continue
        text = str(v).strip()
        if text and text not in seen:
            seen.append(text)
    return ", ".join(seen)


def _first_text(values: Iterable) -> str:
    for v in values:
        if v is not None and not (isinstance(v, float) and pd.isna(v)) and str(v).strip():
            return str(v)
    return ""


def _equity_holding(symbol: str, group: pd.DataFrame) -> Holding:
    quantity = float(group["quantity"].sum())
    avg_price = float((group["quantity"] * group["avg_price"]).sum() / quantity)
    ltp = to_float(group["ltp"].iloc[-1])
    buy_value = quantity * avg_price
    value_today = quantity * ltp
    pnl = value_today - buy_value
    return Holding(
        symbol=symbol,
        exchange=_first_text(group["exchange"]),
        quantity=quantity,
        avg_price=avg_price,
        ltp=ltp,
        buy_value=buy_value,
        value_as_of_today=value_today,
        pnl_amount=pnl,
        percent_pnl=(pnl / buy_value * 100) if buy_value > 0 else 0.0,
        broker=_first_text(group["broker"]),
        debt_equity=_join_distinct(group["debt_equity"]),
        sub_category=_join_distinct(group["sub_category"]),
        date=group["date"].iloc[0],
        isin=_first_text(group["isin"]) or None,
    )


def _mutual_fund_holding(isin: str, group: pd.DataFrame) -> Holding:
    quantity = float(group["quantity"].sum())
    buy_value = float(group["buy_value"].sum())
    pnl = float(group["pnl_amount"].sum())
    return Holding(
        symbol=_first_text(group["symbol"]),
        exchange=MUTUAL_FUND_EXCHANGE,
        quantity=quantity,
        avg_price=buy_value / quantity if quantity > 0 else 0.0,
        ltp=to_float(group["ltp"].iloc[0]),
        buy_value=buy_value,
        value_as_of_today=float(group["value_as_of_today"].sum()),
        pnl_amount=pnl,
        percent_pnl=(pnl / buy_value * 100) if buy_value > 0 else 0.0,
        broker=_first_text(group["broker"]),
        debt_equity=_first_text(group["debt_equity"]),
        sub_category=_first_text(group["sub_category"]),
        date=group["date"].iloc[0],
        isin=isin,
    )


def holdings_from_frame(df: pd.DataFrame) -> List[Holding]:
    """Group one account's holdings rows into positions, sorted by symbol."""
    if df is None or df.empty:
        return []
    df = df[df["quantity"] > 0]
    is_mf = df["exchange"].astype(str).str.upper() == MUTUAL_FUND_EXCHANGE
    holdings: List[Holding] = []

    equities = df[~is_mf].copy()
    equities["_key"] = equities["symbol"].astype(str).str.lower()
    for _, group in equities.groupby("_key", sort=False):
        holdings.append(_equity_holding(str(group["symbol"].iloc[0]), group))

    funds = df[is_mf & df["isin"].notna() & (df["isin"].astype(str).str.strip() != "")]
    for isin, group in funds.groupby("isin", sort=False):
        holdings.append(_mutual_fund_holding(str(isin), group))

    return sorted(holdings, key=lambda h: h.symbol.lower())


def is_debt(holding: Holding) -> bool:
    text = f"{holding.debt_equity} {holding.sub_category}".lower()
    symbol = str(holding.symbol).lower()
    return any(marker in text for marker in DEBT_MARKERS) or any(m in symbol for m in DEBT_SYMBOL_MARKERS)


def _add_to_breakdown(breakdown: Dict[str, Dict[str, float]], key: str, holding: Holding) -> None:
    bucket = breakdown.setdefault(key, {"buyValue": 0.0, "currentValue": 0.0, "pnl": 0.0, "count": 0})
    bucket["buyValue"] += holding.buy_value
    bucket["currentValue"] += holding.value_as_of_today
    bucket["pnl"] += holding.pnl_amount
    bucket["count"] += 1


def summarize_holdings(holdings: Iterable[Holding]) -> HoldingsSummary:
    summary = HoldingsSummary()
    for h in holdings:
        summary.holdings_count += 1
        summary.total_buy_value += h.buy_value
        summary.total_current_value += h.value_as_of_today
        summary.total_pnl += h.pnl_amount
        if h.exchange == MUTUAL_FUND_EXCHANGE:
            summary.mutual_fund_holdings.append(h)
        elif is_debt(h):
            summary.debt_holdings.append(h)
        else:
            summary.equity_holdings.append(h)
        _add_to_breakdown(summary.category_breakdown, h.sub_category or "Others", h)
        _add_to_breakdown(summary.broker_breakdown, h.broker or "Unknown", h)
    if summary.total_buy_value > 0:
        summary.total_pnl_percent = summary.total_pnl / summary.total_buy_value * 100
    return summary
