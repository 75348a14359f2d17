"""Site management scoped to the owning user."""

from typing import List, Optional

from ..core.errors import InvalidInput, NotFound
from ..core.logging import get_logger
from ..core.storage import RecordStore
from ..models.records import ChangeHistoryEntry, ChangeStatus, Site, SiteDetail, SiteSummary

logger = get_logger(__name__)

RECENT_HISTORY_LIMIT = 10


class SiteService:
    """CRUD for sites plus the read views the presentation layer needs."""

    def __init__(self, store: RecordStore):
        self.store = store

    def require_site(self, user_id: str, site_id: str) -> Site:
        """Load a site owned by ``user_id`` or raise NotFound."""
        site = self.store.get_site(site_id, user_id)
        if site is None:
            raise NotFound("Site not found")
        return site

    def create(self, user_id: str, name: str, repo_name: str,
               vercel_project_id: Optional[str] = None) -> Site:
        if not (name or "").strip() or not (repo_name or "").strip():
            raise InvalidInput("Name and repoName are required")
        site = Site(
            user_id=user_id,
            name=name.strip(),
            repo_name=repo_name.strip(),
            vercel_project_id=vercel_project_id or None,
        )
        self.store.create_site(site)
        logger.info(f"Created site {site.name}", extra={"site_id": site.id, "user_id": user_id})
        return site

    def list(self, user_id: str) -> List[SiteSummary]:
        """Sites newest first, each with its most recent open pending change."""
        summaries = []
        for site in self.store.list_sites(user_id):
            latest = self.store.list_pending_changes(site.id, status=ChangeStatus.PENDING, limit=1)
            summaries.append(SiteSummary(site=site, latest_pending_change=latest[0] if latest else None))
        return summaries

    def get(self, user_id: str, site_id: str) -> SiteDetail:
        site = self.require_site(user_id, site_id)
        return SiteDetail(
            site=site,
            pending_changes=self.store.list_pending_changes(site.id),
            change_history=self.store.list_history(site.id, limit=RECENT_HISTORY_LIMIT),
        )

    def update(self, user_id: str, site_id: str, name: Optional[str] = None,
               vercel_project_id: Optional[str] = None, clear_project: bool = False) -> Site:
        """Update the name and/or deployment project.

        ``clear_project`` unsets the deployment project so previews fall back
        to the bare repository name.
        """
        site = self.require_site(user_id, site_id)
        changes = {}
        if name and name.strip():
            changes["name"] = name.strip()
        if vercel_project_id is not None:
            changes["vercel_project_id"] = vercel_project_id or None
        elif clear_project:
            changes["vercel_project_id"] = None
        if not changes:
            return site
        return self.store.update_site(site.model_copy(update=changes))

    def delete(self, user_id: str, site_id: str) -> None:
        """Delete a site along with its pending changes and history."""
        site = self.require_site(user_id, site_id)
        self.store.delete_site(site.id)
        logger.info("Deleted site", extra={"site_id": site.id, "user_id": user_id})

    def history(self, user_id: str, site_id: str) -> List[ChangeHistoryEntry]:
        site = self.require_site(user_id, site_id)
        return self.store.list_history(site.id)
