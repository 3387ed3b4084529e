"""Exception types shared across the report pipeline."""
from __future__ import annotations


class ReportFetchError(RuntimeError):
    """Raised when external report data cannot be fetched."""


class ActivityFetchError(ReportFetchError):
    """Raised when the activity indexer request fails."""


class SupplyFetchError(ReportFetchError):
    """Raised when the SEED supply cannot be read from any RPC endpoint."""


class NoReportError(LookupError):
    """Raised when a chat has no stored report to page through."""


__all__ = ["ActivityFetchError", "NoReportError", "ReportFetchError", "SupplyFetchError"]
