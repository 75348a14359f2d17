"""Persisted workflow records."""

from __future__ import annotations
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


def _new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChangeStatus(str, Enum):
    """Lifecycle status of a pending change."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Site(BaseModel):
    """A managed website owned by a single user."""
    id: str = Field(default_factory=_new_id)
    user_id: str = Field(..., description="Owning user")
    name: str = Field(..., description="Human readable name")
    repo_name: str = Field(..., description="owner/repo, or bare repo resolved against the default org")
    vercel_project_id: Optional[str] = Field(None, description="Deployment project identifier")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def bare_repo_name(self) -> str:
        return self.repo_name.strip().split("/")[-1]

    @property
    def deployment_project(self) -> str:
        return self.vercel_project_id or self.bare_repo_name


class PendingChange(BaseModel):
    """A proposed change staged on a preview branch."""
    id: str = Field(default_factory=_new_id)
    site_id: str
    branch_name: str
    preview_url: Optional[str] = None
    user_message: str
    ai_summary: str
    files_changed: List[str] = Field(default_factory=list)
    status: ChangeStatus = ChangeStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ChangeHistoryEntry(BaseModel):
    """Immutable audit record of a merged change."""
    id: str = Field(default_factory=_new_id)
    site_id: str
    change_id: Optional[str] = Field(None, description="Approved pending change this entry was copied from")
    user_message: str
    ai_summary: str
    files_changed: List[str] = Field(default_factory=list)
    committed_at: datetime = Field(default_factory=utcnow)


class SiteSummary(BaseModel):
    """Site with its most recent open pending change."""
    site: Site
    latest_pending_change: Optional[PendingChange] = None


class SiteDetail(BaseModel):
    """Site with its pending changes and recent history."""
    site: Site
    pending_changes: List[PendingChange] = Field(default_factory=list)
    change_history: List[ChangeHistoryEntry] = Field(default_factory=list)
