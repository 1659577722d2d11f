"""Portfolio statistics result object."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from portfolio_stats_engine.cash_flows import CashFlowSummary
    from portfolio_stats_engine.data_objects import CashFlowEvent, CurvePoint, HoldingsSummary

from ._helpers import (
    _convert_to_json_serializable,
    _format_fixed,
    _format_percent,
    _format_table,
    _negate_magnitude,
    _round2,
)

DRAWDOWN_KEYS = ("MDD", "currentDD")


@dataclass
class PortfolioStats:
    """
    Canonical performance statistics for one account or a pooled set of accounts.

    Holds raw numbers; every display convention is applied at the boundary:

    - ``to_api_response()``: Stats JSON. Scalars become fixed two-decimal
      strings, missing percents become ``"-"``, drawdowns are shown
      non-positive, and ``trailingReturnsRaw`` carries the floats (``null``
      when missing) for machine consumers.
    - ``get_summary()``: key scalars as floats.
    - ``to_cli_report()``: plain-text report.

    Drawdown fields (``max_drawdown``, ``trailing_returns['MDD'|'currentDD']``
    and ``drawdown_curve`` values) are stored as non-negative magnitudes.

    Architecture Role:
        Ledger store → Source Adapters → calculate_portfolio_metrics() → PortfolioStats → API/CLI/CSV
    """

    amount_deposited: float
    current_exposure: float
    total_profit: float
    overall_return: Optional[float]
    max_drawdown: Optional[float]
    trailing_returns: Dict[str, Optional[float]]
    equity_curve: List[CurvePoint]
    drawdown_curve: List[CurvePoint]
    monthly_pnl: Dict[str, Dict[str, Any]]
    quarterly_pnl: Dict[str, Dict[str, Any]]
    cash_flows: List[CashFlowEvent]
    strategy_name: str

    holdings: Optional[HoldingsSummary] = None
    account_count: int = 0
    drawdown_policy: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    # ── derived views ─────────────────────────────────────────────────
    @property
    def inception_date(self) -> Optional[date]:
        return self.equity_curve[0].date if self.equity_curve else None

    @property
    def data_as_of_date(self) -> Optional[date]:
        return self.equity_curve[-1].date if self.equity_curve else None

    def cash_flow_summary(self) -> CashFlowSummary:
        from portfolio_stats_engine.cash_flows import summarize_cash_flows

        return summarize_cash_flows(self.cash_flows)

    def filter_date_range(self, start_date: Any = None, end_date: Any = None) -> "PortfolioStats":
        """
        Copy with curves and cash flows limited to ``[start_date, end_date]``.

        Only the series are filtered; scalars, trailing returns and P&L tables
        stay as computed over the full history.
        """
        from portfolio_stats_engine.cash_flows import filter_cash_flows
        from portfolio_stats_engine.data_objects import to_date

        start = to_date(start_date) if start_date is not None else None
        end = to_date(end_date) if end_date is not None else None

        def within(d: date) -> bool:
            return (start is None or d >= start) and (end is None or d <= end)

        return replace(
            self,
            equity_curve=[p for p in self.equity_curve if within(p.date)],
            drawdown_curve=[p for p in self.drawdown_curve if within(p.date)],
            cash_flows=filter_cash_flows(self.cash_flows, start, end),
            metadata=dict(self.metadata),
        )

    def with_metadata(self, **metadata: Any) -> "PortfolioStats":
        merged = dict(self.metadata)
        merged.update(metadata)
        return replace(self, metadata=merged)

    # ── serialization ─────────────────────────────────────────────────
    def _trailing_display(self, key: str) -> Optional[float]:
        value = self.trailing_returns.get(key)
        return _negate_magnitude(value) if key in DRAWDOWN_KEYS else value

    def _format_monthly_pnl(self) -> Dict[str, Any]:
        formatted: Dict[str, Any] = {}
        for year, entry in self.monthly_pnl.items():
            formatted[year] = {
                "months": {
                    name: {
                        "percent": _format_percent(cell["percent"]),
                        "cash": _format_fixed(cell["cash"]),
                        "capitalInOut": _format_fixed(cell["capitalInOut"]),
                    }
                    for name, cell in entry["months"].items()
                },
                "totalPercent": _format_percent(entry["totalPercent"]),
                "totalCash": _format_fixed(entry["totalCash"]),
                "totalCapitalInOut": _format_fixed(entry["totalCapitalInOut"]),
            }
        return formatted

    def _format_quarterly_pnl(self) -> Dict[str, Any]:
        formatted: Dict[str, Any] = {}
        for year, entry in self.quarterly_pnl.items():
            formatted[year] = {
                "percent": {k: _format_percent(v) for k, v in entry["percent"].items()},
                "cash": {k: _format_fixed(v) for k, v in entry["cash"].items()},
                "yearCash": _format_fixed(entry["yearCash"]),
            }
        return formatted

    def to_api_response(self) -> Dict[str, Any]:
        """Stats JSON payload (camelCase keys, display conventions applied)."""
        trailing_keys = list(self.trailing_returns.keys())
        response = {
            "amountDeposited": _format_fixed(self.amount_deposited),
            "currentExposure": _format_fixed(self.current_exposure),
            "return": _format_percent(self.overall_return),
            "totalProfit": _format_fixed(self.total_profit),
            "trailingReturns": {k: _format_percent(self._trailing_display(k)) for k in trailing_keys},
            "trailingReturnsRaw": {k: _round2(self._trailing_display(k)) for k in trailing_keys},
            "drawdown": _format_fixed(_negate_magnitude(self.max_drawdown)),
            "equityCurve": [p.to_dict() for p in self.equity_curve],
            "drawdownCurve": [
                {"date": p.date.isoformat(), "value": _negate_magnitude(p.value)} for p in self.drawdown_curve
            ],
            "quarterlyPnl": self._format_quarterly_pnl(),
            "monthlyPnl": self._format_monthly_pnl(),
            "cashFlows": [e.to_dict() for e in self.cash_flows],
            "cashFlowTotals": self.cash_flow_summary().to_dict(),
            "strategyName": self.strategy_name,
            "accountCount": self.account_count,
            "drawdownPolicy": self.drawdown_policy,
        }
        if self.holdings is not None:
            response["holdings"] = self.holdings.to_dict()
        if self.metadata:
            response["metadata"] = self.metadata
        return _convert_to_json_serializable(response)

    def get_summary(self) -> Dict[str, Any]:
        """Get key portfolio metrics summary."""
        totals = self.cash_flow_summary()
        return {
            "strategy_name": self.strategy_name,
            "account_count": self.account_count,
            "amount_deposited": self.amount_deposited,
            "current_exposure": self.current_exposure,
            "total_profit": self.total_profit,
            "return": self.overall_return,
            "max_drawdown": self.max_drawdown,
            "current_drawdown": self.trailing_returns.get("currentDD"),
            "net_cash_flow": totals.net_flow,
            "inception_date": self.inception_date.isoformat() if self.inception_date else None,
            "data_as_of_date": self.data_as_of_date.isoformat() if self.data_as_of_date else None,
        }

    # ── CLI ───────────────────────────────────────────────────────────
    def to_cli_report(self) -> str:
        """Generate complete CLI formatted report."""
        sections = [
            self._format_header(),
            self._format_trailing_returns(),
            self._format_monthly_table(),
            self._format_quarterly_table(),
            self._format_cash_flows(),
        ]
        return "\n".join(sections)

    def _format_header(self) -> str:
        lines = [f"📊 Portfolio Statistics: {self.strategy_name}"]
        lines.append("=" * 50)
        lines.append(f"📅 Period: {self.inception_date or 'n/a'} to {self.data_as_of_date or 'n/a'}")
        lines.append(f"🏦 Accounts: {self.account_count}")
        lines.append(f"💰 Amount deposited:  {_format_fixed(self.amount_deposited)}")
        lines.append(f"📈 Current exposure:  {_format_fixed(self.current_exposure)}")
        lines.append(f"💵 Total profit:      {_format_fixed(self.total_profit)}")
        lines.append(f"🔁 Return:            {_format_percent(self.overall_return)}%")
        lines.append(f"📉 Max drawdown:      {_format_fixed(_negate_magnitude(self.max_drawdown))}%")
        return "\n".join(lines)

    def _format_trailing_returns(self) -> str:
        from portfolio_stats_engine.constants import TRAILING_LABELS

        keys = list(self.trailing_returns.keys())
        header = [""] + [TRAILING_LABELS.get(k, k) for k in keys]
        row = ["Return %"] + [_format_percent(self._trailing_display(k)) for k in keys]
        return "\n".join(_format_table([row], header=header, title="⏱️  TRAILING RETURNS", col_min=6))

    def _format_monthly_table(self) -> str:
        from portfolio_stats_engine.constants import MONTH_NAMES

        header = ["Year"] + [name[:3] for name in MONTH_NAMES] + ["Total"]
        rows = []
        for year, entry in self.monthly_pnl.items():
            months = entry["months"]
            rows.append(
                [year]
                + [_format_percent(months[name]["percent"]) if name in months else "" for name in MONTH_NAMES]
                + [_format_percent(entry["totalPercent"])]
            )
        return "\n".join(_format_table(rows, header=header, title="📅 MONTHLY RETURNS (%)", col_min=6))

    def _format_quarterly_table(self) -> str:
        from portfolio_stats_engine.constants import QUARTER_LABELS, QUARTER_MONTHS

        header = ["Year"] + [QUARTER_LABELS[q] for q in QUARTER_MONTHS] + ["Total", "Cash"]
        rows = []
        for year, entry in self.quarterly_pnl.items():
            rows.append(
                [year]
                + [_format_percent(entry["percent"][q]) for q in QUARTER_MONTHS]
                + [_format_percent(entry["percent"]["total"]), _format_fixed(entry["yearCash"])]
            )
        return "\n".join(_format_table(rows, header=header, title="🗓️  QUARTERLY RETURNS (%)", col_min=6))

    def _format_cash_flows(self) -> str:
        totals = self.cash_flow_summary()
        lines = ["", "💸 CASH FLOWS"]
        lines.append(f"Total in:   {_format_fixed(totals.total_in)}")
        lines.append(f"Total out:  {_format_fixed(totals.total_out)}")
        lines.append(f"Net flow:   {_format_fixed(totals.net_flow)}")
        lines.append(f"Events:     {len(self.cash_flows)}")
        return "\n".join(lines)
