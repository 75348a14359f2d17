"""Change request coordinator: snapshot → generate → branch → commit → record."""

from typing import Callable, Union

from ..core.errors import InvalidInput, NoEditableFiles, UpstreamUnavailable
from ..core.logging import get_logger
from ..core.types import ModelChoice, PreviewStatus, ProposalOutcome
from ..models.records import PendingChange
from ..services.branches import BranchLifecycleManager
from ..services.deployments import DeploymentStatusCorrelator
from ..services.pending_changes import PendingChangeStateMachine
from ..services.sites import SiteService
from ..services.snapshot import SourceSnapshotFetcher
from ..tools.git_ops import preview_branch_name
from .codegen import CodeGenerationAdapter, parse_model_choice

logger = get_logger(__name__)

DEFAULT_MODEL = ModelChoice.GEMINI_FLASH


class ChangeRequestCoordinator:
    """Composes the workflow services into the propose and resolve flows.

    All collaborators are injected; nothing here holds per-request state.
    """

    def __init__(
        self,
        sites: SiteService,
        snapshots: SourceSnapshotFetcher,
        codegen: CodeGenerationAdapter,
        branches: BranchLifecycleManager,
        correlator: DeploymentStatusCorrelator,
        changes: PendingChangeStateMachine,
        branch_namer: Callable[[], str] = preview_branch_name,
    ):
        self.sites = sites
        self.snapshots = snapshots
        self.codegen = codegen
        self.branches = branches
        self.correlator = correlator
        self.changes = changes
        self.branch_namer = branch_namer

    def propose(
        self,
        user_id: str,
        site_id: str,
        message: str,
        model: Union[str, ModelChoice, None] = None,
    ) -> ProposalOutcome:
        """Turn a natural-language request into a pending change.

        Args:
            user_id: Authenticated caller
            site_id: Target site, must be owned by the caller
            message: Requested change
            model: Generation backend id (defaults to gemini-flash)

        Returns:
            Outcome with the pending change, or a no-op carrying only the summary

        Raises:
            InvalidInput: Empty message or unsupported model
            NotFound: Site missing or owned by someone else
            NoEditableFiles: Snapshot had nothing to edit
            UpstreamUnavailable: Host or backend failure; no record is created
            MalformedGenerationResponse: Backend broke the response contract
        """
        if not message or not message.strip():
            raise InvalidInput("Message is required")
        choice = parse_model_choice(model or DEFAULT_MODEL)

        site = self.sites.require_site(user_id, site_id)
        context = {"site_id": site.id, "user_id": user_id, "model": choice.value}
        logger.info("Change requested", extra=context)

        default_branch = self.branches.get_default_branch(site.repo_name)
        files = self.snapshots.fetch(site.repo_name, default_branch)
        if not files:
            raise NoEditableFiles("No editable files found in repository")

        result = self.codegen.generate(files, message, choice)
        changed_paths = result.changed_paths
        if not changed_paths:
            logger.info("No changes needed for this request", extra=context)
            return ProposalOutcome(summary=result.summary, files_changed=[])

        branch_name = self.branch_namer()
        context["branch"] = branch_name

        if not self.branches.create_branch(site.repo_name, branch_name, default_branch):
            raise UpstreamUnavailable("Failed to create preview branch")

        if not self.branches.commit_files(
            site.repo_name, branch_name, result.files, f"AI changes: {result.summary}"
        ):
            # Partial commits are not a usable preview; drop the branch
            self.branches.cleanup_branch(site.repo_name, branch_name)
            raise UpstreamUnavailable("Failed to commit changes")

        preview_url = self.correlator.preview_url_for(site.deployment_project, branch_name)
        change = self.changes.create(site, branch_name, message, result, preview_url=preview_url)

        logger.info(f"Proposed {len(changed_paths)} file changes", extra={**context, "change_id": change.id})
        return ProposalOutcome(
            summary=result.summary,
            files_changed=changed_paths,
            pending_change_id=change.id,
            branch_name=branch_name,
            preview_url=preview_url,
        )

    def preview(self, user_id: str, site_id: str, change_id: str) -> PreviewStatus:
        site = self.sites.require_site(user_id, site_id)
        return self.changes.refresh_preview(site, change_id)

    def approve(self, user_id: str, site_id: str, change_id: str) -> PendingChange:
        site = self.sites.require_site(user_id, site_id)
        return self.changes.approve(site, change_id)

    def reject(self, user_id: str, site_id: str, change_id: str) -> PendingChange:
        site = self.sites.require_site(user_id, site_id)
        return self.changes.reject(site, change_id)

    def list_models(self) -> list:
        return self.codegen.list_models()


def build_coordinator(config, store=None) -> ChangeRequestCoordinator:
    """Wire the production collaborators from configuration.

    Args:
        config: Loaded ``AppConfig``
        store: Optional record store (defaults to the configured one)
    """
    from ..core.storage import StorageFactory
    from ..services.generation_backends import build_backends
    from ..tools.github import GitHubClient
    from ..tools.vercel import VercelClient

    if store is None:
        store = StorageFactory(database_url=config.storage.database_url).record_store()

    github = GitHubClient(
        token=config.github.token,
        default_org=config.github.org,
        api_url=config.github.api_url,
        timeout=config.github.timeout,
    )
    vercel = VercelClient(
        token=config.vercel.token,
        team_id=config.vercel.team_id,
        api_url=config.vercel.api_url,
        timeout=config.vercel.timeout,
    )

    branches = BranchLifecycleManager(github)
    correlator = DeploymentStatusCorrelator(vercel, deployment_limit=config.vercel.deployment_limit)
    return ChangeRequestCoordinator(
        sites=SiteService(store),
        snapshots=SourceSnapshotFetcher(github),
        codegen=CodeGenerationAdapter(build_backends(config.generation)),
        branches=branches,
        correlator=correlator,
        changes=PendingChangeStateMachine(store, branches, correlator),
    )
