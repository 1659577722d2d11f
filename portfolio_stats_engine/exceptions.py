"""Exceptions raised by portfolio_stats_engine.

Missing ledger data is never an exception; it surfaces as ``None``/``"-"``/empty
collections in the result object. Only configuration problems that would
silently under-report a pooled total, and requests with nothing to report, raise.
"""


class PortfolioStatsError(Exception):
    """Base class for stats engine errors."""


class UnsupportedAccountError(PortfolioStatsError):
    """No source adapter is registered for an account's (account_type, broker) pair."""

    def __init__(self, qcode: str, account_type: str, broker: str):
        self.qcode = qcode
        self.account_type = account_type
        self.broker = broker
        super().__init__(
            f"Unsupported account type: {account_type} or broker: {broker} (qcode={qcode})"
        )


class NoAccountDataError(PortfolioStatsError):
    """The user has no viewable accounts, or none of them produced any ledger data."""
