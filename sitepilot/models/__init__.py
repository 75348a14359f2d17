"""Models package for SitePilot."""

from .records import (
    ChangeHistoryEntry,
    ChangeStatus,
    PendingChange,
    Site,
    SiteDetail,
    SiteSummary,
)

__all__ = [
    "ChangeHistoryEntry",
    "ChangeStatus",
    "PendingChange",
    "Site",
    "SiteDetail",
    "SiteSummary",
]
