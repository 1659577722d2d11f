"""
Monthly / quarterly / yearly P&L from an aggregated equity curve.

Monthly percent returns are chained: a month starts at the previous data
month's closing value, and the first month starts at the curve's anchor (the
first curve value). Quarters and years compound their months
(``prod(1 + r) - 1``); cash figures are plain sums. Missing percents are
``None`` and never count as 0.
"""

from __future__ import annotations

import datetime as dt
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from portfolio_stats_engine.constants import MONTH_NAMES, QUARTER_MONTHS
from portfolio_stats_engine.data_objects import CurvePoint, HistoricalPoint
from portfolio_stats_engine.timeseries import period_return, value_at_or_before


def compound_percent(percents: Iterable[Optional[float]]) -> Optional[float]:
    """Compound percent returns, skipping ``None``; ``None`` when nothing is left."""
    growth = 1.0
    seen = False
    for pct in percents:
        if pct is None:
            continue
        growth *= 1 + pct / 100
        seen = True
    return (growth - 1) * 100 if seen else None


def _month_end(year: int, month: int) -> dt.date:
    if month == 12:
        return dt.date(year, 12, 31)
    return dt.date(year, month + 1, 1) - dt.timedelta(days=1)


def _month_activity(points: Iterable[HistoricalPoint]) -> "OrderedDict[Tuple[int, int], Dict[str, float]]":
    activity: Dict[Tuple[int, int], Dict[str, float]] = {}
    for p in points:
        if p.synthetic:
            continue
        bucket = activity.setdefault((p.date.year, p.date.month), {"cash": 0.0, "capitalInOut": 0.0})
        bucket["cash"] += p.pnl
        bucket["capitalInOut"] += p.capital_in_out
    return OrderedDict(sorted(activity.items()))


def monthly_pnl(curve: Sequence[CurvePoint], points: Iterable[HistoricalPoint]) -> Dict[str, Dict[str, Any]]:
    """
    Month-by-month returns and cash, nested by year.

    Parameters
    ----------
    curve : Sequence[CurvePoint]
        Aggregated, anchored equity curve.
    points : Iterable[HistoricalPoint]
        Ledger rows of every account; synthetic baseline rows are ignored. The
        months present here are the months reported.

    Returns
    -------
    Dict[str, Dict[str, Any]]
        ``{year: {"months": {name: {"percent", "cash", "capitalInOut"}},
        "totalPercent", "totalCash", "totalCapitalInOut"}}`` with years and
        months in calendar order. ``percent``/``totalPercent`` may be ``None``.
    """
    result: Dict[str, Dict[str, Any]] = OrderedDict()
    if not curve:
        return result
    prev_end: Optional[float] = curve[0].value
    for (year, month), sums in _month_activity(points).items():
        end_point = value_at_or_before(curve, _month_end(year, month))
        end_value = end_point.value if end_point else None
        year_entry = result.setdefault(str(year), {
            "months": OrderedDict(),
            "totalPercent": None,
            "totalCash": 0.0,
            "totalCapitalInOut": 0.0,
        })
        year_entry["months"][MONTH_NAMES[month - 1]] = {
            "percent": period_return(prev_end, end_value),
            "cash": sums["cash"],
            "capitalInOut": sums["capitalInOut"],
        }
        year_entry["totalCash"] += sums["cash"]
        year_entry["totalCapitalInOut"] += sums["capitalInOut"]
        if end_value is not None:
            prev_end = end_value
    for year_entry in result.values():
        year_entry["totalPercent"] = compound_percent(m["percent"] for m in year_entry["months"].values())
    return result


def quarterly_pnl(monthly: Dict[str, Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """
    Fold monthly P&L into calendar quarters.

    ``{year: {"percent": {q1..q4, total}, "cash": {q1..q4, total}, "yearCash"}}``.
    A quarter without any month that has a percent is ``None``.
    """
    result: Dict[str, Dict[str, Any]] = OrderedDict()
    for year, year_entry in monthly.items():
        months = year_entry["months"]
        percent: Dict[str, Optional[float]] = {}
        cash: Dict[str, float] = {}
        quarter_percents: List[Optional[float]] = []
        for quarter, names in QUARTER_MONTHS.items():
            present = [months[name] for name in names if name in months]
            percent[quarter] = compound_percent(m["percent"] for m in present)
            cash[quarter] = sum(m["cash"] for m in present)
            quarter_percents.append(percent[quarter])
        percent["total"] = compound_percent(quarter_percents)
        cash["total"] = sum(cash[q] for q in QUARTER_MONTHS)
        result[year] = {"percent": percent, "cash": cash, "yearCash": cash["total"]}
    return result
