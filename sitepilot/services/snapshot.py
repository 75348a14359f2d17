"""Source snapshot fetcher.

Walks a repository branch through the host's contents API and returns the
files a generation backend is allowed to edit.
"""

from typing import List
import httpx

from ..core.errors import UpstreamUnavailable
from ..core.logging import get_logger
from ..core.types import SourceFile
from ..tools.github import GitHubClient
from ..tools.repo_io import is_editable_file, should_descend

logger = get_logger(__name__)


class SourceSnapshotFetcher:
    """Collects editable files from a repository branch."""

    def __init__(self, github: GitHubClient):
        self.github = github

    def fetch(self, repo_name: str, branch: str) -> List[SourceFile]:
        """Fetch every editable file on ``branch``.

        Args:
            repo_name: Repository identifier
            branch: Branch to snapshot

        Returns:
            Editable files in walk order; empty if none qualify

        Raises:
            UpstreamUnavailable: If the repository root cannot be listed
        """
        try:
            root_entries = self.github.list_directory(repo_name, "", ref=branch)
        except httpx.HTTPError as e:
            logger.error(f"Failed to list repository root: {e}", extra={"repo": repo_name, "branch": branch})
            raise UpstreamUnavailable(f"Could not read repository {repo_name}") from e

        files: List[SourceFile] = []
        self._walk(repo_name, branch, root_entries, files)
        logger.info(
            f"Snapshot collected {len(files)} editable files",
            extra={"repo": repo_name, "branch": branch},
        )
        return files

    def _walk(self, repo_name: str, branch: str, entries: list, files: List[SourceFile]) -> None:
        for item in entries:
            item_path = item.get("path", "")
            item_type = item.get("type")

            if item_type == "dir":
                if not should_descend(item_path):
                    continue
                try:
                    children = self.github.list_directory(repo_name, item_path, ref=branch)
                except httpx.HTTPError as e:
                    logger.warning(f"Skipping directory {item_path}: {e}", extra={"repo": repo_name})
                    continue
                self._walk(repo_name, branch, children, files)

            elif item_type == "file" and is_editable_file(item_path):
                source = self._fetch_file(repo_name, branch, item_path)
                if source is not None:
                    files.append(source)

    def _fetch_file(self, repo_name: str, branch: str, path: str) -> SourceFile | None:
        try:
            data = self.github.get_file(repo_name, path, ref=branch)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Skipping file {path}: {e}", extra={"repo": repo_name, "branch": branch})
            return None
        if data is None:
            return None
        return SourceFile(path=path, content=data["content"], sha=data["sha"])
