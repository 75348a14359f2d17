"""Pending change lifecycle: pending -> approved | rejected."""

from typing import Optional

from ..core.errors import AlreadyResolved, NotFound, UpstreamUnavailable
from ..core.logging import get_logger
from ..core.storage import RecordStore
from ..core.types import DeploymentState, GenerationResult, PreviewStatus
from ..models.records import ChangeHistoryEntry, ChangeStatus, PendingChange, Site
from .branches import BranchLifecycleManager
from .deployments import DeploymentStatusCorrelator

logger = get_logger(__name__)


class PendingChangeStateMachine:
    """Owns creation, preview refresh and resolution of pending changes.

    Callers pass a ``Site`` that has already been checked against the
    requesting user; every change lookup is scoped to that site.
    """

    def __init__(
        self,
        store: RecordStore,
        branches: BranchLifecycleManager,
        correlator: DeploymentStatusCorrelator,
    ):
        self.store = store
        self.branches = branches
        self.correlator = correlator

    def _load(self, site: Site, change_id: str) -> PendingChange:
        change = self.store.get_pending_change(change_id, site.id)
        if change is None:
            raise NotFound("Pending change not found")
        return change

    def _load_pending(self, site: Site, change_id: str) -> PendingChange:
        change = self._load(site, change_id)
        if change.status != ChangeStatus.PENDING:
            raise AlreadyResolved(f"Pending change already {change.status.value}")
        return change

    def create(
        self,
        site: Site,
        branch_name: str,
        instruction: str,
        result: GenerationResult,
        preview_url: Optional[str] = None,
    ) -> PendingChange:
        """Record a change whose files are already committed to ``branch_name``."""
        change = PendingChange(
            site_id=site.id,
            branch_name=branch_name,
            preview_url=preview_url,
            user_message=instruction,
            ai_summary=result.summary,
            files_changed=result.changed_paths,
        )
        self.store.create_pending_change(change)
        logger.info(
            "Recorded pending change",
            extra={"site_id": site.id, "change_id": change.id, "branch": branch_name},
        )
        return change

    def refresh_preview(self, site: Site, change_id: str) -> PreviewStatus:
        """Poll the deployment platform and persist a newly ready preview URL.

        Valid in every state; never changes the change's status.
        """
        change = self._load(site, change_id)
        deployment = self.correlator.correlate(site.deployment_project, change.branch_name)

        preview_url = change.preview_url
        if deployment.status == DeploymentState.READY and deployment.url:
            if deployment.url != change.preview_url:
                self.store.update_preview_url(change.id, deployment.url)
                logger.info(
                    f"Preview ready at {deployment.url}",
                    extra={"site_id": site.id, "change_id": change.id},
                )
            preview_url = deployment.url

        return PreviewStatus(
            id=change.id,
            branch_name=change.branch_name,
            preview_url=preview_url,
            status=deployment.status,
            change_status=change.status.value,
            user_message=change.user_message,
            ai_summary=change.ai_summary,
            files_changed=change.files_changed,
            created_at=change.created_at,
        )

    def approve(self, site: Site, change_id: str) -> PendingChange:
        """Merge the change into the default branch and record it in history.

        Order: merge, delete branch, write history, flip status. A merge
        failure leaves the change pending so it can be retried.

        Raises:
            NotFound: Unknown change for this site
            AlreadyResolved: Change is not pending, or another resolution won
            UpstreamUnavailable: Default-branch lookup or merge failed
        """
        change = self._load_pending(site, change_id)
        context = {"site_id": site.id, "change_id": change.id, "branch": change.branch_name}

        default_branch = self.branches.get_default_branch(site.repo_name)
        if not self.branches.merge_branch(site.repo_name, change.branch_name, default_branch):
            raise UpstreamUnavailable("Failed to merge changes")

        self.branches.cleanup_branch(site.repo_name, change.branch_name)

        # One audit row per change, even across retries and concurrent approvals
        recorded = self.store.add_history_once(ChangeHistoryEntry(
            site_id=site.id,
            change_id=change.id,
            user_message=change.user_message,
            ai_summary=change.ai_summary,
            files_changed=list(change.files_changed),
        ))
        if not recorded:
            logger.warning("History entry already present, not duplicating", extra=context)

        if not self.store.transition_status(change.id, ChangeStatus.PENDING, ChangeStatus.APPROVED):
            raise AlreadyResolved("Pending change already processed")

        logger.info("Change approved and merged", extra=context)
        return self._load(site, change.id)

    def reject(self, site: Site, change_id: str) -> PendingChange:
        """Discard the change and delete its branch. No history is written.

        Raises:
            NotFound: Unknown change for this site
            AlreadyResolved: Change is not pending, or another resolution won
        """
        change = self._load_pending(site, change_id)
        if not self.store.transition_status(change.id, ChangeStatus.PENDING, ChangeStatus.REJECTED):
            raise AlreadyResolved("Pending change already processed")

        self.branches.cleanup_branch(site.repo_name, change.branch_name)
        logger.info(
            "Change rejected",
            extra={"site_id": site.id, "change_id": change.id, "branch": change.branch_name},
        )
        return self._load(site, change.id)
