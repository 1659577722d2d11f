"""
NAV time-series numerics.

Pure functions over ``HistoricalPoint`` lists and ``CurvePoint`` curves:
baseline normalization, peak-tracking drawdowns, cross-account curve averaging
and trailing-return look-ups. Nothing here touches the ledger store.

Conventions
-----------
- Curves are ascending by date with one point per calendar date.
- Drawdowns are non-negative magnitudes in percent; display code negates them.
- Returns are percentages (5.0 == 5%). Any start value that is missing or not
  strictly positive yields ``None`` rather than 0/NaN/inf.
"""

from __future__ import annotations

import bisect
import datetime as dt
import math
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from portfolio_stats_engine import config
from portfolio_stats_engine.data_objects import CurvePoint, HistoricalPoint, to_date


def dedupe_points(points: Iterable[HistoricalPoint]) -> List[HistoricalPoint]:
    """Sort ascending by date, keeping the last row seen for each date."""
    by_date: Dict[dt.date, HistoricalPoint] = {}
    for p in points:
        by_date[p.date] = p
    return [by_date[d] for d in sorted(by_date)]


def normalize_to_baseline(points: Sequence[HistoricalPoint],
                          baseline: Optional[float] = None) -> List[HistoricalPoint]:
    """
    Anchor a NAV series at the baseline NAV.

    Precondition: ``points`` is ascending, de-duplicated and every NAV is > 0.
    If the first NAV is not exactly ``baseline`` (default 100), a synthetic
    point dated one calendar day earlier is prepended with NAV ``baseline`` and
    zero drawdown, pnl and capital. Postcondition: ``result[0].nav == baseline``
    for any non-empty input. Empty input returns an empty list.
    """
    if baseline is None:
        baseline = config.STATS_DEFAULTS["baseline_nav"]
    points = list(points)
    if not points or points[0].nav == baseline:
        return points
    anchor = HistoricalPoint(
        date=points[0].date - dt.timedelta(days=1),
        nav=baseline,
        drawdown_percent=0.0,
        pnl=0.0,
        capital_in_out=0.0,
        synthetic=True,
    )
    return [anchor] + points


# ── drawdowns ─────────────────────────────────────────────────────────
def running_drawdowns(navs: Sequence[float]) -> pd.Series:
    """Drawdown magnitude at each point from the running peak: ``(peak - nav) / peak * 100``."""
    series = pd.Series(list(navs), dtype="float64")
    if series.empty:
        return series
    peaks = series.cummax()
    drawdowns = (peaks - series) / peaks * 100
    return drawdowns.where(peaks > 0, 0.0).clip(lower=0.0)


def max_drawdown(navs: Sequence[float]) -> Optional[float]:
    """Largest drawdown magnitude over the series; ``None`` for an empty series."""
    drawdowns = running_drawdowns(navs)
    if drawdowns.empty:
        return None
    return float(drawdowns.max())


def current_drawdown(navs: Sequence[float]) -> Optional[float]:
    """Drawdown of the last point from the series peak; ``None`` for an empty series."""
    drawdowns = running_drawdowns(navs)
    if drawdowns.empty:
        return None
    return float(drawdowns.iloc[-1])


# ── curves ────────────────────────────────────────────────────────────
def average_curves(curves: Iterable[Mapping[dt.date, float]]) -> List[CurvePoint]:
    """
    Equal-weight mean of same-date values across curves.

    Each input maps date -> value for one account. The output has one point per
    distinct date seen in any input, averaged over the accounts reporting that
    date (not weighted by portfolio value).
    """
    frames = [pd.Series(dict(c), dtype="float64") for c in curves if c]
    if not frames:
        return []
    stacked = pd.concat(frames)
    means = stacked.groupby(level=0).mean().sort_index()
    return [CurvePoint(date=d, value=float(v)) for d, v in means.items()]


def anchor_curve(curve: Sequence[CurvePoint], baseline: Optional[float] = None) -> List[CurvePoint]:
    """Prepend a ``baseline`` point one day before the first point if the curve does not start there."""
    if baseline is None:
        baseline = config.STATS_DEFAULTS["baseline_nav"]
    curve = list(curve)
    if not curve or curve[0].value == baseline:
        return curve
    return [CurvePoint(date=curve[0].date - dt.timedelta(days=1), value=baseline)] + curve


def value_at_or_before(curve: Sequence[CurvePoint], target: dt.date) -> Optional[CurvePoint]:
    """Latest curve point dated on or before ``target``."""
    dates = [p.date for p in curve]
    idx = bisect.bisect_right(dates, to_date(target))
    if idx == 0:
        return None
    return curve[idx - 1]


# ── returns ───────────────────────────────────────────────────────────
def _finite_or_none(value: float) -> Optional[float]:
    return value if math.isfinite(value) else None


def period_return(start_value: Optional[float], end_value: Optional[float]) -> Optional[float]:
    """Simple return ``((end / start) - 1) * 100``."""
    if start_value is None or end_value is None or start_value <= 0:
        return None
    return _finite_or_none((end_value / start_value - 1) * 100)


def annualized_return(start_value: Optional[float], end_value: Optional[float], days: float) -> Optional[float]:
    """CAGR ``((end / start) ** (365 / days) - 1) * 100``."""
    if start_value is None or end_value is None or start_value <= 0 or end_value < 0 or days <= 0:
        return None
    try:
        return _finite_or_none(((end_value / start_value) ** (365.0 / days) - 1) * 100)
    except OverflowError:
        return None


def since_inception_return(curve: Sequence[CurvePoint],
                           cagr_threshold_days: Optional[int] = None) -> Optional[float]:
    """First-to-last return; annualized when the span exceeds ``cagr_threshold_days``."""
    if not curve:
        return None
    if cagr_threshold_days is None:
        cagr_threshold_days = config.STATS_DEFAULTS["cagr_threshold_days"]
    first, last = curve[0], curve[-1]
    days = (last.date - first.date).days
    if days > cagr_threshold_days:
        return annualized_return(first.value, last.value, days)
    return period_return(first.value, last.value)


def trailing_returns(curve: Sequence[CurvePoint],
                     windows: Optional[Mapping[str, int]] = None,
                     cagr_threshold_days: Optional[int] = None) -> Dict[str, Optional[float]]:
    """
    Trailing returns of a curve over fixed calendar-day windows.

    For each window the start value is the latest point on or before
    ``latest_date - days``; no such point means ``None``. Returns are simple
    (not annualized) for every fixed window. ``sinceInception`` is appended
    using :func:`since_inception_return`.
    """
    if windows is None:
        windows = config.TRAILING_WINDOWS
    result: Dict[str, Optional[float]] = {key: None for key in windows}
    result["sinceInception"] = None
    if not curve:
        return result
    latest = curve[-1]
    for key, days in windows.items():
        start = value_at_or_before(curve, latest.date - dt.timedelta(days=days))
        result[key] = period_return(start.value, latest.value) if start else None
    result["sinceInception"] = since_inception_return(curve, cagr_threshold_days)
    return result
