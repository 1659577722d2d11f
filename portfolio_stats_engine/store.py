"""Ledger store protocol, registry and the two bundled implementations.

The time-series store is an external, read-only collaborator. The engine only
issues range and aggregate queries keyed by ``(account codes, system tag, date
range)`` and receives frames with the canonical ledger columns::

    date, nav, drawdown, pnl, capital_in_out, portfolio_value

``SqlLedgerStore`` runs those queries through ``pandas.read_sql`` on any DB-API
connection; ``FrameLedgerStore`` answers them from in-memory frames (CSV
exports, fixtures, offline runs).
"""

from __future__ import annotations

import datetime as dt
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union, runtime_checkable

import pandas as pd
import yaml

from portfolio_stats_engine import config
from portfolio_stats_engine._logging import portfolio_logger
from portfolio_stats_engine.exceptions import PortfolioStatsError


LEDGER_COLUMNS = ["date", "nav", "drawdown", "pnl", "capital_in_out", "portfolio_value"]

HOLDING_COLUMNS = [
    "qcode", "date", "symbol", "exchange", "isin", "quantity", "avg_price", "ltp",
    "buy_value", "value_as_of_today", "pnl_amount", "broker", "debt_equity", "sub_category",
]

# Physical column names per ledger kind → canonical names.
_LEDGER_SCHEMAS: Dict[str, Dict[str, Optional[str]]] = {
    "managed": {
        "key": "qcode",
        "tag": "system_tag",
        "date": "date",
        "nav": "nav",
        "drawdown": "drawdown",
        "pnl": "pnl",
        "capital_in_out": "capital_in_out",
        "portfolio_value": "portfolio_value",
    },
    "pms": {
        "key": "account_code",
        "tag": None,
        "date": "report_date",
        "nav": "nav",
        "drawdown": "drawdown_percent",
        "pnl": "pnl",
        "capital_in_out": "cash_in_out",
        "portfolio_value": "portfolio_value",
    },
}


@dataclass(frozen=True)
class LedgerQuery:
    """Which rows of which ledger table to read.

    ``kind`` selects the physical schema ('managed' or 'pms'); ``system_tag`` is
    ignored for ledgers without a tag column.
    """

    kind: str
    table: str
    account_codes: tuple
    system_tag: Optional[str] = None

    def __post_init__(self):
        if self.kind not in _LEDGER_SCHEMAS:
            raise ValueError(f"Unknown ledger kind: {self.kind}")
        object.__setattr__(self, "account_codes", tuple(self.account_codes))

    @property
    def schema(self) -> Dict[str, Optional[str]]:
        return _LEDGER_SCHEMAS[self.kind]


@runtime_checkable
class LedgerStore(Protocol):
    def fetch_ledger(self, query: LedgerQuery, start_date=None, end_date=None) -> pd.DataFrame: ...
    def sum_ledger(self, query: LedgerQuery, column: str) -> float: ...
    def fetch_custodian_codes(self, qcode: str) -> List[str]: ...
    def fetch_user_accounts(self, user_id: str) -> List[Dict[str, Any]]: ...
    def fetch_holdings(self, qcode: str) -> pd.DataFrame: ...


def empty_ledger() -> pd.DataFrame:
    return pd.DataFrame({col: pd.Series(dtype="float64") for col in LEDGER_COLUMNS}).astype({"date": "object"})


def _normalize_ledger_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Coerce a raw ledger frame to canonical dtypes, ascending by date.

    Unparseable dates are dropped; unparseable numerics become NaN so callers can
    apply their own not-null filters.
    """
    if df is None or df.empty:
        return empty_ledger()
    out = df.loc[:, [c for c in LEDGER_COLUMNS if c in df.columns]].copy()
    for col in LEDGER_COLUMNS:
        if col not in out.columns:
            out[col] = float("nan")
    out["date"] = pd.to_datetime(out["date"], errors="coerce")
    out = out.dropna(subset=["date"])
    out["date"] = out["date"].dt.date
    for col in LEDGER_COLUMNS[1:]:
        out[col] = pd.to_numeric(out[col], errors="coerce")
    out = out.sort_values("date", kind="mergesort").reset_index(drop=True)
    return out[LEDGER_COLUMNS]


def _normalize_holdings_frame(df: pd.DataFrame) -> pd.DataFrame:
    if df is None or df.empty:
        return pd.DataFrame(columns=HOLDING_COLUMNS)
    out = df.copy()
    for col in HOLDING_COLUMNS:
        if col not in out.columns:
            out[col] = None
    out["date"] = pd.to_datetime(out["date"], errors="coerce").dt.date
    for col in ("quantity", "avg_price", "ltp", "buy_value", "value_as_of_today", "pnl_amount"):
        out[col] = pd.to_numeric(out[col], errors="coerce").fillna(0.0)
    return out[HOLDING_COLUMNS].reset_index(drop=True)


def _as_date(value: Any) -> Optional[dt.date]:
    if value is None:
        return None
    return pd.Timestamp(value).date()


# ── SQL-backed store ──────────────────────────────────────────────────
class SqlLedgerStore:
    """
    Ledger store over a DB-API connection (sqlite3, psycopg2, ...).

    Parameters
    ----------
    connection :
        Any connection object accepted by ``pandas.read_sql``.
    paramstyle : str
        ``"qmark"`` (``?``, sqlite3) or ``"format"`` (``%s``, psycopg2).
    """

    def __init__(self, connection: Any, paramstyle: str = "qmark"):
        if paramstyle not in ("qmark", "format"):
            raise ValueError(f"Unsupported paramstyle: {paramstyle}")
        self.connection = connection
        self._ph = "?" if paramstyle == "qmark" else "%s"

    @classmethod
    def from_sqlite(cls, path: Union[str, Path]) -> "SqlLedgerStore":
        conn = sqlite3.connect(str(path), check_same_thread=False)
        return cls(conn, paramstyle="qmark")

    def _where(self, query: LedgerQuery, start_date=None, end_date=None) -> tuple:
        schema = query.schema
        placeholders = ", ".join([self._ph] * len(query.account_codes))
        clauses = [f"{schema['key']} IN ({placeholders})"]
        params: List[Any] = list(query.account_codes)
        if schema["tag"] and query.system_tag:
            clauses.append(f"{schema['tag']} = {self._ph}")
            params.append(query.system_tag)
        if start_date is not None:
            clauses.append(f"{schema['date']} >= {self._ph}")
            params.append(_as_date(start_date).isoformat())
        if end_date is not None:
            clauses.append(f"{schema['date']} <= {self._ph}")
            params.append(_as_date(end_date).isoformat())
        return " AND ".join(clauses), params

    def fetch_ledger(self, query: LedgerQuery, start_date=None, end_date=None) -> pd.DataFrame:
        if not query.account_codes:
            return empty_ledger()
        schema = query.schema
        where, params = self._where(query, start_date, end_date)
        select = ", ".join(f"{schema[col]} AS {col}" for col in LEDGER_COLUMNS)
        sql = f"SELECT {select} FROM {query.table} WHERE {where} ORDER BY {schema['date']} ASC"
        df = pd.read_sql(sql, self.connection, params=params)
        return _normalize_ledger_frame(df)

    def sum_ledger(self, query: LedgerQuery, column: str) -> float:
        if not query.account_codes:
            return 0.0
        physical = query.schema[column]
        where, params = self._where(query)
        sql = f"SELECT SUM({physical}) AS total FROM {query.table} WHERE {where} AND {physical} IS NOT NULL"
        df = pd.read_sql(sql, self.connection, params=params)
        total = pd.to_numeric(df["total"], errors="coerce").iloc[0] if not df.empty else None
        return 0.0 if total is None or pd.isna(total) else float(total)

    def fetch_custodian_codes(self, qcode: str) -> List[str]:
        table = config.LEDGER_TABLES["custodian_codes"]
        sql = f"SELECT custodian_code FROM {table} WHERE qcode = {self._ph}"
        df = pd.read_sql(sql, self.connection, params=[qcode])
        return [str(c) for c in df["custodian_code"].dropna().tolist()]

    def fetch_user_accounts(self, user_id: str) -> List[Dict[str, Any]]:
        tables = config.LEDGER_TABLES
        sql = (
            f"SELECT DISTINCT a.qcode, a.account_type, a.broker, a.strategy, a.account_name "
            f"FROM {tables['accounts']} a "
            f"WHERE a.account_type IS NOT NULL AND a.broker IS NOT NULL AND ("
            f"a.qcode IN (SELECT qcode FROM {tables['pooled_users']} WHERE icode = {self._ph}) "
            f"OR a.qcode IN (SELECT qcode FROM {tables['pooled_allocations']} WHERE icode = {self._ph})"
            f") ORDER BY a.qcode"
        )
        df = pd.read_sql(sql, self.connection, params=[user_id, user_id])
        df = df.drop_duplicates(subset=["qcode"])
        return df.where(pd.notna(df), None).to_dict(orient="records")

    def fetch_holdings(self, qcode: str) -> pd.DataFrame:
        table = config.LEDGER_TABLES["equity_holdings"]
        sql = (
            f"SELECT * FROM {table} WHERE qcode = {self._ph} AND quantity > 0 "
            f"AND date = (SELECT MAX(date) FROM {table} WHERE qcode = {self._ph})"
        )
        df = pd.read_sql(sql, self.connection, params=[qcode, qcode])
        return _normalize_holdings_frame(df)


# ── Frame-backed store ────────────────────────────────────────────────
class FrameLedgerStore:
    """
    Ledger store answering queries from in-memory DataFrames keyed by table name.

    Tables use the same physical column names as the SQL schema, so a CSV
    export of the database can be loaded as-is with ``from_csv_dir``.
    """

    def __init__(self, tables: Optional[Dict[str, pd.DataFrame]] = None):
        self.tables: Dict[str, pd.DataFrame] = {k: v.copy() for k, v in (tables or {}).items()}

    @classmethod
    def from_csv_dir(cls, directory: Union[str, Path]) -> "FrameLedgerStore":
        directory = Path(directory)
        tables = {path.stem: pd.read_csv(path) for path in sorted(directory.glob("*.csv"))}
        portfolio_logger.info("Loaded %d ledger tables from %s", len(tables), directory)
        return cls(tables)

    def load_accounts_yaml(self, path: Union[str, Path]) -> "FrameLedgerStore":
        """
        Load account metadata and pooled memberships from a YAML file::

            accounts:
              - qcode: QAC00041
                account_type: managed_account
                broker: zerodha
                strategy: QAW+
                users: [IC001, IC002]
        """
        with open(path, "r") as f:
            payload = yaml.safe_load(f) or {}
        rows, members = [], []
        for entry in payload.get("accounts", []):
            rows.append({
                "qcode": entry["qcode"],
                "account_type": entry.get("account_type"),
                "broker": entry.get("broker"),
                "strategy": entry.get("strategy"),
                "account_name": entry.get("account_name"),
            })
            for icode in entry.get("users", []) or []:
                members.append({"qcode": entry["qcode"], "icode": str(icode)})
        tables = config.LEDGER_TABLES
        self.tables[tables["accounts"]] = pd.DataFrame(rows, columns=["qcode", "account_type", "broker", "strategy", "account_name"])
        self.tables[tables["pooled_users"]] = pd.DataFrame(members, columns=["qcode", "icode"])
        return self

    def _table(self, name: str) -> pd.DataFrame:
        return self.tables.get(name, pd.DataFrame())

    def _select(self, query: LedgerQuery, start_date=None, end_date=None) -> pd.DataFrame:
        df = self._table(query.table)
        schema = query.schema
        if df.empty or schema["key"] not in df.columns:
            return pd.DataFrame(columns=df.columns)
        mask = df[schema["key"]].astype(str).isin([str(c) for c in query.account_codes])
        if schema["tag"] and query.system_tag:
            mask &= df[schema["tag"]] == query.system_tag
        if start_date is not None or end_date is not None:
            dates = pd.to_datetime(df[schema["date"]], errors="coerce").dt.date
            if start_date is not None:
                mask &= dates >= _as_date(start_date)
            if end_date is not None:
                mask &= dates <= _as_date(end_date)
        return df.loc[mask]

    def fetch_ledger(self, query: LedgerQuery, start_date=None, end_date=None) -> pd.DataFrame:
        rows = self._select(query, start_date, end_date)
        if rows.empty:
            return empty_ledger()
        schema = query.schema
        renamed = pd.DataFrame({
            col: rows[schema[col]] if schema[col] in rows.columns else float("nan")
            for col in LEDGER_COLUMNS
        })
        return _normalize_ledger_frame(renamed)

    def sum_ledger(self, query: LedgerQuery, column: str) -> float:
        rows = self._select(query)
        physical = query.schema[column]
        if rows.empty or physical not in rows.columns:
            return 0.0
        return float(pd.to_numeric(rows[physical], errors="coerce").sum(skipna=True))

    def fetch_custodian_codes(self, qcode: str) -> List[str]:
        df = self._table(config.LEDGER_TABLES["custodian_codes"])
        if df.empty:
            return []
        return [str(c) for c in df.loc[df["qcode"] == qcode, "custodian_code"].dropna().tolist()]

    def fetch_user_accounts(self, user_id: str) -> List[Dict[str, Any]]:
        tables = config.LEDGER_TABLES
        accounts = self._table(tables["accounts"])
        if accounts.empty:
            return []
        member_qcodes = set()
        for name in (tables["pooled_users"], tables["pooled_allocations"]):
            members = self._table(name)
            if not members.empty:
                member_qcodes.update(members.loc[members["icode"].astype(str) == str(user_id), "qcode"])
        visible = accounts[
            accounts["qcode"].isin(member_qcodes)
            & accounts["account_type"].notna()
            & accounts["broker"].notna()
        ].drop_duplicates(subset=["qcode"]).sort_values("qcode")
        return visible.astype(object).where(pd.notna(visible), None).to_dict(orient="records")

    def fetch_holdings(self, qcode: str) -> pd.DataFrame:
        df = self._table(config.LEDGER_TABLES["equity_holdings"])
        if df.empty:
            return _normalize_holdings_frame(df)
        rows = _normalize_holdings_frame(df[df["qcode"] == qcode])
        if rows.empty:
            return rows
        latest = rows["date"].dropna().max()
        return rows[(rows["date"] == latest) & (rows["quantity"] > 0)].reset_index(drop=True)


# ── registry ──────────────────────────────────────────────────────────
_ledger_store: Optional[LedgerStore] = None


def set_ledger_store(store: Optional[LedgerStore]) -> None:
    global _ledger_store
    _ledger_store = store


def get_ledger_store() -> LedgerStore:
    global _ledger_store
    if _ledger_store is None:
        url = config.LEDGER_DATABASE_URL
        if url.startswith("sqlite:///"):
            _ledger_store = SqlLedgerStore.from_sqlite(url[len("sqlite:///"):])
        else:
            raise PortfolioStatsError(
                "No ledger store configured; call set_ledger_store() or set LEDGER_DATABASE_URL=sqlite:///path"
            )
    return _ledger_store
