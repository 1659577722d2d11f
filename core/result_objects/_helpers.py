"""Shared helpers for result object serialization and formatting."""

import math
from datetime import date, datetime
from typing import List, Optional

import numpy as np
import pandas as pd

MISSING = "-"


def _convert_to_json_serializable(obj):
    """Convert pandas/numpy/date objects to JSON-serializable values."""
    if isinstance(obj, pd.DataFrame):
        df_copy = obj.copy()
        # ISO dates in the index for API consistency
        if hasattr(df_copy.index, 'strftime'):
            df_copy.index = df_copy.index.map(lambda x: x.isoformat() if hasattr(x, 'isoformat') else str(x))
        return _clean_nan_values(df_copy.to_dict())

    elif isinstance(obj, pd.Series):
        series_copy = obj.copy()
        if hasattr(series_copy.index, 'strftime'):
            series_copy.index = series_copy.index.map(lambda x: x.isoformat() if hasattr(x, 'isoformat') else str(x))
        return _clean_nan_values(series_copy.to_dict())

    elif isinstance(obj, (pd.Timestamp, datetime, date)):
        return obj.isoformat()

    elif isinstance(obj, (np.integer, np.floating)):
        if np.isnan(obj):
            return None
        value = obj.item()
        if isinstance(value, float):
            return round(value, 8)
        return value

    elif isinstance(obj, (np.bool_, bool)):
        return bool(obj)

    elif isinstance(obj, dict):
        return {k: _convert_to_json_serializable(v) for k, v in obj.items()}

    elif isinstance(obj, (list, tuple)):
        return [_convert_to_json_serializable(item) for item in obj]

    elif isinstance(obj, float):
        if not math.isfinite(obj):
            return None
        return round(obj, 8)

    elif hasattr(obj, 'to_dict'):
        return _convert_to_json_serializable(obj.to_dict())

    return obj


def _clean_nan_values(obj):
    """Recursively convert NaN values to None and numpy scalars to Python values."""
    if isinstance(obj, dict):
        return {k: _clean_nan_values(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_clean_nan_values(item) for item in obj]
    elif isinstance(obj, float) and (np.isnan(obj) or obj != obj):
        return None
    elif isinstance(obj, np.bool_):
        return bool(obj)
    elif hasattr(obj, 'item'):  # numpy scalar
        val = obj.item()
        if isinstance(val, float) and (np.isnan(val) or val != val):
            return None
        return val
    else:
        return obj


def _round2(value: Optional[float]) -> Optional[float]:
    """Round to 2 dp, mapping non-finite values to None and -0.0 to 0.0."""
    if value is None:
        return None
    value = float(value)
    if not math.isfinite(value):
        return None
    rounded = round(value, 2)
    return 0.0 if rounded == 0 else rounded


def _format_fixed(value: Optional[float], missing: str = "0.00") -> str:
    """Fixed two-decimal string; ``missing`` when the value is absent or non-finite."""
    rounded = _round2(value)
    if rounded is None:
        return missing
    return f"{rounded:.2f}"


def _format_percent(value: Optional[float]) -> str:
    """Two-decimal percent string, or ``"-"`` for missing data."""
    return _format_fixed(value, missing=MISSING)


def _negate_magnitude(value: Optional[float]) -> Optional[float]:
    """Display a non-negative drawdown magnitude as a non-positive number."""
    if value is None:
        return None
    return 0.0 if value == 0 else -abs(value)


def _format_table(rows: List[List[str]], header: Optional[List[str]] = None,
                  title: Optional[str] = None, col_min: int = 8, col_max: int = 16) -> List[str]:
    """Format string rows as aligned text for CLI.

    The first column is left-aligned as a row label; the remaining cells are
    right-aligned. Column widths auto-adjust within ``col_min``/``col_max``.
    """
    lines: List[str] = []
    if title:
        lines.append(f"\n{title}")
    if not rows:
        lines.append("(empty)")
        return lines

    table = ([header] if header else []) + rows
    n_cols = max(len(r) for r in table)
    widths = []
    for i in range(n_cols):
        longest = max((len(str(r[i])) for r in table if i < len(r)), default=col_min)
        widths.append(max(col_min, min(col_max, longest)) if i else max(col_min, longest))

    for r in table:
        cells = []
        for i in range(n_cols):
            cell = str(r[i]) if i < len(r) else ""
            cell = cell[:widths[i]]
            cells.append(cell.ljust(widths[i]) if i == 0 else cell.rjust(widths[i]))
        lines.append("  ".join(cells))
    return lines
