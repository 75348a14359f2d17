"""Branch lifecycle on the version-control host.

Each operation reports a plain success flag and logs the cause of a failure;
callers decide what a failure means for the workflow.
"""

from typing import Dict
import httpx

from ..core.errors import UpstreamUnavailable
from ..core.logging import get_logger
from ..tools.github import GitHubClient

logger = get_logger(__name__)


class BranchLifecycleManager:
    """Creates, commits to, merges and deletes preview branches."""

    def __init__(self, github: GitHubClient):
        self.github = github

    def get_default_branch(self, repo_name: str) -> str:
        """Ask the host for the repository's current default branch.

        Raises:
            UpstreamUnavailable: If the host cannot be reached
        """
        try:
            return self.github.get_default_branch(repo_name)
        except (httpx.HTTPError, KeyError) as e:
            logger.error(f"Error getting default branch: {e}", extra={"repo": repo_name})
            raise UpstreamUnavailable(f"Could not resolve default branch of {repo_name}") from e

    def create_branch(self, repo_name: str, branch: str, base: str) -> bool:
        """Create ``branch`` at the current head of ``base``."""
        try:
            sha = self.github.get_ref_sha(repo_name, base)
            if sha is None:
                logger.error(f"Base branch {base} not found", extra={"repo": repo_name, "branch": branch})
                return False
            self.github.create_ref(repo_name, branch, sha)
        except httpx.HTTPError as e:
            logger.error(f"Error creating branch {branch}: {e}", extra={"repo": repo_name, "branch": branch})
            return False
        logger.info(f"Created branch {branch} from {base}", extra={"repo": repo_name, "branch": branch})
        return True

    def commit_files(self, repo_name: str, branch: str, files: Dict[str, str], message: str) -> bool:
        """Commit each file to ``branch``, one contents-API write per file.

        Existing files are updated against their current blob SHA; missing
        ones are created. Stops at the first failure, which can leave the
        branch partially committed.
        """
        for path, content in files.items():
            try:
                sha = self.github.get_file_sha(repo_name, path, ref=branch)
                self.github.put_file(repo_name, path, content, branch, message, sha=sha)
            except httpx.HTTPError as e:
                logger.error(
                    f"Error committing {path}: {e}",
                    extra={"repo": repo_name, "branch": branch},
                )
                return False
        logger.info(f"Committed {len(files)} files", extra={"repo": repo_name, "branch": branch})
        return True

    def merge_branch(self, repo_name: str, head: str, base: str) -> bool:
        """Merge ``head`` into ``base``; conflicts and missing refs fail."""
        try:
            self.github.merge(repo_name, head, base, message=f"Merge {head} into {base}")
        except httpx.HTTPError as e:
            logger.error(f"Error merging branch {head}: {e}", extra={"repo": repo_name, "branch": head})
            return False
        logger.info(f"Merged {head} into {base}", extra={"repo": repo_name, "branch": head})
        return True

    def delete_branch(self, repo_name: str, branch: str) -> bool:
        """Delete ``branch``."""
        try:
            self.github.delete_ref(repo_name, branch)
        except httpx.HTTPError as e:
            logger.error(f"Error deleting branch {branch}: {e}", extra={"repo": repo_name, "branch": branch})
            return False
        logger.info(f"Deleted branch {branch}", extra={"repo": repo_name, "branch": branch})
        return True

    def cleanup_branch(self, repo_name: str, branch: str) -> None:
        """Best-effort delete that never raises; failures are only logged."""
        try:
            if not self.delete_branch(repo_name, branch):
                logger.warning(
                    f"Branch {branch} left behind after cleanup failure",
                    extra={"repo": repo_name, "branch": branch},
                )
        except Exception:
            logger.exception(
                f"Unexpected error cleaning up branch {branch}",
                extra={"repo": repo_name, "branch": branch},
            )
