from __future__ import annotations
import threading
from abc import ABC, abstractmethod
from typing import Optional
from pydantic import BaseModel

from ..models.records import (
    ChangeHistoryEntry,
    ChangeStatus,
    PendingChange,
    Site,
    utcnow,
)


def _newest_first(items, key):
    # reversed() first so that equal timestamps still list the latest insert first
    return sorted(reversed(list(items)), key=key, reverse=True)


# --- Record store contract ---
class RecordStore(ABC):
    """Durable store for sites, pending changes and history entries.

    Lookups that take a ``user_id`` or ``site_id`` only return records owned
    by that scope; callers never see another tenant's data.
    """

    # sites
    @abstractmethod
    def create_site(self, site: Site) -> Site: ...
    @abstractmethod
    def get_site(self, site_id: str, user_id: str) -> Site | None: ...
    @abstractmethod
    def list_sites(self, user_id: str) -> list[Site]: ...
    @abstractmethod
    def update_site(self, site: Site) -> Site: ...
    @abstractmethod
    def delete_site(self, site_id: str) -> None: ...

    # pending changes
    @abstractmethod
    def create_pending_change(self, change: PendingChange) -> PendingChange: ...
    @abstractmethod
    def get_pending_change(self, change_id: str, site_id: str) -> PendingChange | None: ...
    @abstractmethod
    def list_pending_changes(self, site_id: str, status: ChangeStatus | None = None,
                             limit: int | None = None) -> list[PendingChange]: ...
    @abstractmethod
    def update_preview_url(self, change_id: str, preview_url: str) -> None: ...
    @abstractmethod
    def transition_status(self, change_id: str, expected: ChangeStatus, new: ChangeStatus) -> bool:
        """Set ``new`` only if the stored status equals ``expected``; report whether it did."""

    # history
    @abstractmethod
    def add_history(self, entry: ChangeHistoryEntry) -> ChangeHistoryEntry: ...
    @abstractmethod
    def add_history_once(self, entry: ChangeHistoryEntry) -> bool:
        """Insert unless an entry for the same ``change_id`` exists; report whether it did."""
    @abstractmethod
    def get_history_for_change(self, change_id: str) -> ChangeHistoryEntry | None: ...
    @abstractmethod
    def list_history(self, site_id: str, limit: int | None = None) -> list[ChangeHistoryEntry]: ...


class InMemoryRecordStore(RecordStore):
    """Process-local store; one lock guards every mutation."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sites: dict[str, Site] = {}
        self._changes: dict[str, PendingChange] = {}
        self._history: dict[str, ChangeHistoryEntry] = {}

    def create_site(self, site: Site) -> Site:
        with self._lock:
            self._sites[site.id] = site.model_copy()
        return site

    def get_site(self, site_id: str, user_id: str) -> Site | None:
        site = self._sites.get(site_id)
        if site is None or site.user_id != user_id:
            return None
        return site.model_copy()

    def list_sites(self, user_id: str) -> list[Site]:
        owned = [s.model_copy() for s in self._sites.values() if s.user_id == user_id]
        return _newest_first(owned, key=lambda s: s.created_at)

    def update_site(self, site: Site) -> Site:
        with self._lock:
            if site.id not in self._sites:
                raise KeyError(site.id)
            updated = site.model_copy(update={"updated_at": utcnow()})
            self._sites[site.id] = updated
        return updated.model_copy()

    def delete_site(self, site_id: str) -> None:
        with self._lock:
            self._sites.pop(site_id, None)
            self._changes = {k: c for k, c in self._changes.items() if c.site_id != site_id}
            self._history = {k: h for k, h in self._history.items() if h.site_id != site_id}

    def create_pending_change(self, change: PendingChange) -> PendingChange:
        with self._lock:
            self._changes[change.id] = change.model_copy()
        return change

    def get_pending_change(self, change_id: str, site_id: str) -> PendingChange | None:
        change = self._changes.get(change_id)
        if change is None or change.site_id != site_id:
            return None
        return change.model_copy()

    def list_pending_changes(self, site_id: str, status: ChangeStatus | None = None,
                             limit: int | None = None) -> list[PendingChange]:
        matches = [
            c.model_copy() for c in self._changes.values()
            if c.site_id == site_id and (status is None or c.status == status)
        ]
        ordered = _newest_first(matches, key=lambda c: c.created_at)
        return ordered[:limit] if limit is not None else ordered

    def update_preview_url(self, change_id: str, preview_url: str) -> None:
        with self._lock:
            change = self._changes.get(change_id)
            if change is None:
                raise KeyError(change_id)
            self._changes[change_id] = change.model_copy(
                update={"preview_url": preview_url, "updated_at": utcnow()}
            )

    def transition_status(self, change_id: str, expected: ChangeStatus, new: ChangeStatus) -> bool:
        with self._lock:
            change = self._changes.get(change_id)
            if change is None or change.status != expected:
                return False
            self._changes[change_id] = change.model_copy(
                update={"status": new, "updated_at": utcnow()}
            )
            return True

    def add_history(self, entry: ChangeHistoryEntry) -> ChangeHistoryEntry:
        with self._lock:
            self._history[entry.id] = entry.model_copy()
        return entry

    def add_history_once(self, entry: ChangeHistoryEntry) -> bool:
        with self._lock:
            if entry.change_id is not None and any(
                h.change_id == entry.change_id for h in self._history.values()
            ):
                return False
            self._history[entry.id] = entry.model_copy()
        return True

    def get_history_for_change(self, change_id: str) -> ChangeHistoryEntry | None:
        for entry in self._history.values():
            if entry.change_id == change_id:
                return entry.model_copy()
        return None

    def list_history(self, site_id: str, limit: int | None = None) -> list[ChangeHistoryEntry]:
        matches = [h.model_copy() for h in self._history.values() if h.site_id == site_id]
        ordered = _newest_first(matches, key=lambda h: h.committed_at)
        return ordered[:limit] if limit is not None else ordered


# Factory
class StorageFactory(BaseModel):
    database_url: str | None = None
    _record_store: RecordStore | None = None

    class Config:
        arbitrary_types_allowed = True

    def record_store(self) -> RecordStore:
        if self._record_store is None:
            if self.database_url:
                from .db import SqlRecordStore
                self._record_store = SqlRecordStore(self.database_url)
            else:
                self._record_store = InMemoryRecordStore()
        return self._record_store
