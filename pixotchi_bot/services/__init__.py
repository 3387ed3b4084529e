"""Indexer, RPC and report orchestration services."""

from .activity import ActivityClient, ItemNameCache
from .reports import RenderedPage, ReportSender, ReportService
from .supply import SupplyReader

__all__ = [
    "ActivityClient",
    "ItemNameCache",
    "RenderedPage",
    "ReportSender",
    "ReportService",
    "SupplyReader",
]
