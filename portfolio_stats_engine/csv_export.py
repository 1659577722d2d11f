"""
CSV export of ``PortfolioStats``.

Layout is a list of labelled sections separated by blank rows::

    Portfolio Statistics
    Strategy,<name>
    Amount Deposited,1500000.00
    Total Return (%),12.34%
    ...

    Trailing Returns
    Period,Return (%)
    5D,0.42%
    ...

Currency values carry no symbol; percentages carry a trailing ``%`` and
missing values are ``-``. Quoting is delegated to the ``csv`` module.
``parse_stats_csv`` reads the same layout back into numbers.
"""

from __future__ import annotations

import csv
import io
from typing import Any, Dict, List, Optional

from core.result_objects._helpers import _format_fixed, _format_percent, _negate_magnitude
from core.result_objects.stats import PortfolioStats
from portfolio_stats_engine.constants import MISSING, MONTH_NAMES, QUARTER_LABELS, QUARTER_MONTHS, TRAILING_LABELS

SECTION_SUMMARY = "Portfolio Statistics"
SECTION_TRAILING = "Trailing Returns"
SECTION_CASH_SUMMARY = "Cash Flow Summary"
SECTION_CASH_DETAIL = "Cash Flows Detail"
SECTION_QUARTERLY = "Quarterly P&L"
SECTION_MONTHLY = "Monthly P&L"

_CASH_TOTAL_LABELS = {
    "Total Cash In": "totalIn",
    "Total Cash Out": "totalOut",
    "Net Cash Flow": "netFlow",
}


def _pct(value: Optional[float]) -> str:
    text = _format_percent(value)
    return text if text == MISSING else f"{text}%"


def build_stats_rows(stats: PortfolioStats, account_name: Optional[str] = None) -> List[List[str]]:
    """Row pairs/tuples for every report section; ``[]`` is a blank separator row."""
    rows: List[List[str]] = [[SECTION_SUMMARY, ""]]
    if account_name:
        rows.append(["Account Name", account_name])
    rows += [
        ["Strategy", stats.strategy_name],
        ["Number of Accounts", str(stats.account_count)],
        ["Amount Deposited", _format_fixed(stats.amount_deposited)],
        ["Current Exposure", _format_fixed(stats.current_exposure)],
        ["Total Return (%)", _pct(stats.overall_return)],
        ["Total Profit", _format_fixed(stats.total_profit)],
        ["Max Drawdown (%)", _pct(_negate_magnitude(stats.max_drawdown))],
        [],
        [SECTION_TRAILING, ""],
        ["Period", "Return (%)"],
    ]
    for key, value in stats.trailing_returns.items():
        display = _negate_magnitude(value) if key in ("MDD", "currentDD") else value
        rows.append([TRAILING_LABELS.get(key, key), _pct(display)])

    totals = stats.cash_flow_summary()
    rows += [
        [],
        [SECTION_CASH_SUMMARY, ""],
        ["Total Cash In", _format_fixed(totals.total_in)],
        ["Total Cash Out", _format_fixed(totals.total_out)],
        ["Net Cash Flow", _format_fixed(totals.net_flow)],
        [],
        [SECTION_CASH_DETAIL, ""],
        ["Date", "Amount"],
    ]
    rows += [[e.date.isoformat(), _format_fixed(e.amount)] for e in stats.cash_flows]

    rows += [[], [SECTION_QUARTERLY, "", "", ""], ["Year", "Quarter", "Percent Return", "Cash Return"]]
    for year, entry in stats.quarterly_pnl.items():
        for quarter in list(QUARTER_MONTHS) + ["total"]:
            label = QUARTER_LABELS.get(quarter, "Total")
            rows.append([year, label, _pct(entry["percent"][quarter]), _format_fixed(entry["cash"][quarter])])

    rows += [
        [],
        [SECTION_MONTHLY, "", "", "", ""],
        ["Year", "Month", "Percent Return", "Cash Return", "Capital In/Out"],
    ]
    for year, entry in stats.monthly_pnl.items():
        for month, cell in entry["months"].items():
            rows.append([year, month, _pct(cell["percent"]), _format_fixed(cell["cash"]),
                         _format_fixed(cell["capitalInOut"])])
        rows.append([year, "Total", _pct(entry["totalPercent"]), _format_fixed(entry["totalCash"]),
                     _format_fixed(entry["totalCapitalInOut"])])
    return rows


def stats_to_csv(stats: PortfolioStats, account_name: Optional[str] = None) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(build_stats_rows(stats, account_name))
    return buffer.getvalue()


def parse_number(text: str) -> Optional[float]:
    """``"12.34%"`` / ``"1500.00"`` -> float; ``"-"`` or empty -> ``None``."""
    text = (text or "").strip()
    if not text or text == MISSING:
        return None
    return float(text.rstrip("%").replace(",", ""))


def parse_stats_csv(text: str) -> Dict[str, Any]:
    """
    Parse ``stats_to_csv`` output back into numbers.

    Returns ``{"summary", "trailingReturns", "cashFlowTotals", "cashFlows",
    "quarterlyPnl", "monthlyPnl"}``; percent/currency cells become floats and
    ``-`` becomes ``None``.
    """
    trailing_keys = {label: key for key, label in TRAILING_LABELS.items()}
    quarter_keys = {label: key for key, label in QUARTER_LABELS.items()}
    quarter_keys["Total"] = "total"
    parsed: Dict[str, Any] = {
        "summary": {},
        "trailingReturns": {},
        "cashFlowTotals": {},
        "cashFlows": [],
        "quarterlyPnl": {},
        "monthlyPnl": {},
    }
    section = None
    for row in csv.reader(io.StringIO(text)):
        if not row or not any(cell.strip() for cell in row):
            section = None
            continue
        head = row[0]
        if section is None:
            section = head
            continue
        if section == SECTION_SUMMARY:
            value = row[1] if len(row) > 1 else ""
            if head in ("Strategy", "Account Name"):
                parsed["summary"][head] = value
            elif head == "Number of Accounts":
                parsed["summary"][head] = int(value)
            else:
                parsed["summary"][head] = parse_number(value)
        elif section == SECTION_TRAILING and head != "Period":
            parsed["trailingReturns"][trailing_keys.get(head, head)] = parse_number(row[1])
        elif section == SECTION_CASH_SUMMARY:
            parsed["cashFlowTotals"][_CASH_TOTAL_LABELS.get(head, head)] = parse_number(row[1])
        elif section == SECTION_CASH_DETAIL and head != "Date":
            parsed["cashFlows"].append({"date": head, "amount": parse_number(row[1])})
        elif section == SECTION_QUARTERLY and head != "Year":
            year = parsed["quarterlyPnl"].setdefault(head, {"percent": {}, "cash": {}})
            quarter = quarter_keys.get(row[1], row[1])
            year["percent"][quarter] = parse_number(row[2])
            year["cash"][quarter] = parse_number(row[3])
        elif section == SECTION_MONTHLY and head != "Year":
            year = parsed["monthlyPnl"].setdefault(head, {"months": {}})
            cell = {
                "percent": parse_number(row[2]),
                "cash": parse_number(row[3]),
                "capitalInOut": parse_number(row[4]),
            }
            if row[1] == "Total":
                year["totalPercent"] = cell["percent"]
                year["totalCash"] = cell["cash"]
                year["totalCapitalInOut"] = cell["capitalInOut"]
            elif row[1] in MONTH_NAMES:
                year["months"][row[1]] = cell
    return parsed
