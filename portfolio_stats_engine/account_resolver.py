"""
Account resolution and adapter selection.

``get_user_accounts`` lists the accounts a user may view (pooled membership or
pooled allocation). ``select_adapter`` maps an account's ``(account_type,
broker)`` pair to a source adapter through a small registry with a broker
wildcard; an unmatched pair is a configuration error and raises
``UnsupportedAccountError`` so a pooled total is never silently short an
account. ``plan_adapters`` resolves every account up front, before any ledger
query runs.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional, Tuple

from portfolio_stats_engine._logging import log_critical_alert, portfolio_logger
from portfolio_stats_engine.constants import ACCOUNT_TYPE_MANAGED, ACCOUNT_TYPE_PMS, ANY_BROKER
from portfolio_stats_engine.data_objects import AccountRef
from portfolio_stats_engine.exceptions import UnsupportedAccountError
from portfolio_stats_engine.source_adapters import (
    JainamManagedAdapter,
    PmsAdapter,
    SourceAdapter,
    ZerodhaManagedAdapter,
)
from portfolio_stats_engine.store import LedgerStore, get_ledger_store

AdapterFactory = Callable[[AccountRef, Optional[LedgerStore]], SourceAdapter]

_ADAPTER_REGISTRY: Dict[Tuple[str, str], AdapterFactory] = {
    (ACCOUNT_TYPE_PMS, ANY_BROKER): lambda account, store: PmsAdapter(store),
    (ACCOUNT_TYPE_MANAGED, "jainam"): lambda account, store: JainamManagedAdapter(store),
    (ACCOUNT_TYPE_MANAGED, ANY_BROKER): lambda account, store: ZerodhaManagedAdapter(account.broker, store),
}


def register_adapter(account_type: str, broker: str, factory: AdapterFactory) -> None:
    """Register (or replace) the adapter factory for ``(account_type, broker)``; ``broker='*'`` matches any."""
    _ADAPTER_REGISTRY[(account_type.strip().lower(), broker.strip().lower())] = factory


def select_adapter(account: AccountRef, store: Optional[LedgerStore] = None) -> SourceAdapter:
    """Exact ``(type, broker)`` match first, then the type's broker wildcard."""
    factory = _ADAPTER_REGISTRY.get((account.account_type, account.broker))
    if factory is None:
        factory = _ADAPTER_REGISTRY.get((account.account_type, ANY_BROKER))
    if factory is None:
        raise UnsupportedAccountError(account.qcode, account.account_type, account.broker)
    return factory(account, store)


def plan_adapters(accounts: Iterable[AccountRef],
                  store: Optional[LedgerStore] = None) -> List[Tuple[AccountRef, SourceAdapter]]:
    """Pair every account with its adapter; raises before any ledger work if one is unsupported."""
    return [(account, select_adapter(account, store)) for account in accounts]


def get_user_accounts(user_id: str, store: Optional[LedgerStore] = None) -> List[AccountRef]:
    """Accounts visible to ``user_id``, distinct by qcode. Store failures log and return ``[]``."""
    store = store if store is not None else get_ledger_store()
    try:
        rows = store.fetch_user_accounts(user_id)
    except Exception as exc:
        log_critical_alert(
            "account_lookup_failed",
            "high",
            f"Could not load accounts for {user_id}: {exc}",
            action="returning no accounts",
            details={"user_id": user_id, "error_type": type(exc).__name__},
        )
        return []

    accounts: List[AccountRef] = []
    seen = set()
    for row in rows:
        qcode = row.get("qcode")
        if not qcode or qcode in seen:
            continue
        seen.add(qcode)
        accounts.append(AccountRef(
            qcode=str(qcode),
            account_type=row.get("account_type") or "",
            broker=row.get("broker") or "",
            strategy=row.get("strategy") or None,
            account_name=row.get("account_name") or None,
        ))
    portfolio_logger.debug("Resolved %d accounts for %s", len(accounts), user_id)
    return accounts


def filter_accounts(accounts: Iterable[AccountRef], account_type: Optional[str] = None,
                    broker: Optional[str] = None) -> List[AccountRef]:
    """Keep accounts matching the (case-insensitive) type and broker filters; ``None``/``'all'`` match any."""
    wanted_type = (account_type or "").strip().lower()
    wanted_broker = (broker or "").strip().lower()
    return [
        a for a in accounts
        if wanted_type in ("", "all", a.account_type)
        and wanted_broker in ("", "all", a.broker)
    ]
