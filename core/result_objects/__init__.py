"""Result objects for structured service layer responses.

    from core.result_objects import PortfolioStats
"""

from ._helpers import (
    _convert_to_json_serializable,
    _clean_nan_values,
    _format_fixed,
    _format_percent,
    _format_table,
)
from .stats import PortfolioStats

__all__ = [
    "PortfolioStats",
]
