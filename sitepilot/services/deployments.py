"""Correlates preview branches with deployment-platform records."""

from ..core.logging import get_logger
from ..core.types import DeploymentState, DeploymentStatus
from ..tools.vercel import VercelClient

logger = get_logger(__name__)

READY_STATES = {"READY"}
FAILED_STATES = {"ERROR", "CANCELED"}


class DeploymentStatusCorrelator:
    """Maps a branch to the readiness of its preview deployment.

    Meant to be polled: every upstream failure reads as ``pending``.
    """

    def __init__(self, vercel: VercelClient, deployment_limit: int = 5):
        self.vercel = vercel
        self.deployment_limit = deployment_limit

    def correlate(self, project: str, branch: str) -> DeploymentStatus:
        try:
            deployments = self.vercel.list_preview_deployments(project, limit=self.deployment_limit)
        except Exception as e:
            logger.warning(f"Error checking deployment: {e}", extra={"branch": branch})
            return DeploymentStatus(status=DeploymentState.PENDING)

        deployment = next(
            (d for d in deployments
             if isinstance(d, dict) and (d.get("meta") or {}).get("githubCommitRef") == branch),
            None,
        )
        if deployment is None:
            return DeploymentStatus(status=DeploymentState.PENDING)

        state = deployment.get("state") or deployment.get("readyState")
        if state in READY_STATES and deployment.get("url"):
            return DeploymentStatus(status=DeploymentState.READY, url=f"https://{deployment['url']}")
        if state in FAILED_STATES:
            return DeploymentStatus(status=DeploymentState.ERROR)
        return DeploymentStatus(status=DeploymentState.PENDING)

    def preview_url_for(self, project: str, branch: str) -> str:
        return self.vercel.preview_url_for(project, branch)
