"""GitHub API client for repository operations."""

import base64
import time
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote
import httpx
import logging

logger = logging.getLogger(__name__)


class GitHubClient:
    """Client for GitHub REST API v3.

    Repository arguments accept either ``owner/repo`` or a bare repository
    name, which is paired with the configured default organization.
    """

    def __init__(
        self,
        token: Optional[str],
        default_org: str = "",
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
        retries: int = 3,
        backoff_base: float = 1.0,
    ):
        self.default_org = (default_org or "").strip()
        self.retries = retries
        self.backoff_base = backoff_base
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token.strip()}"
        self.client = client or httpx.Client(base_url=api_url, headers=headers, timeout=timeout)

    def resolve_repo(self, repo_name: str) -> Tuple[str, str]:
        """Split a repository identifier into owner and name.

        Args:
            repo_name: ``owner/repo`` or bare ``repo``

        Returns:
            (owner, repo) tuple
        """
        clean = repo_name.strip()
        if "/" in clean:
            owner, repo = clean.split("/", 1)
            return owner.strip(), repo.strip()
        return self.default_org, clean

    def _repo_path(self, repo_name: str) -> str:
        owner, repo = self.resolve_repo(repo_name)
        return f"/repos/{owner}/{repo}"

    def _make_request(self, method: str, endpoint: str, json: Optional[Dict] = None,
                      params: Optional[Dict] = None) -> httpx.Response:
        """Make API request, retrying rate limits and server errors.

        Args:
            method: HTTP method
            endpoint: Path relative to the API root
            json: Request payload
            params: Query parameters

        Returns:
            Successful response

        Raises:
            httpx.HTTPStatusError: On a non-retryable or final failed status
            httpx.TransportError: When the host stays unreachable
        """
        for attempt in range(self.retries):
            try:
                response = self.client.request(method, endpoint, json=json, params=params)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if (status == 429 or status >= 500) and attempt < self.retries - 1:
                    wait_time = self.backoff_base * (2 ** attempt)
                    logger.warning(f"GitHub {method} {endpoint} returned {status}, retrying in {wait_time}s...")
                    time.sleep(wait_time)
                    continue
                raise
            except httpx.TransportError as e:
                if attempt < self.retries - 1:
                    wait_time = self.backoff_base * (2 ** attempt)
                    logger.warning(f"GitHub {method} {endpoint} transport error: {e}, retrying in {wait_time}s...")
                    time.sleep(wait_time)
                    continue
                raise

        raise RuntimeError(f"Failed after {self.retries} attempts")

    def get_default_branch(self, repo_name: str) -> str:
        """Get the repository's default branch name."""
        data = self._make_request("GET", self._repo_path(repo_name)).json()
        return data["default_branch"]

    def list_directory(self, repo_name: str, path: str = "", ref: Optional[str] = None) -> List[Dict[str, Any]]:
        """List entries of a directory.

        Returns:
            Entries with ``type``, ``path`` and ``sha`` keys; empty if ``path`` is a file
        """
        params = {"ref": ref} if ref else None
        data = self._make_request(
            "GET", f"{self._repo_path(repo_name)}/contents/{quote(path)}", params=params
        ).json()
        return data if isinstance(data, list) else []

    def _get_file_entry(self, repo_name: str, path: str, ref: Optional[str]) -> Optional[Dict[str, Any]]:
        params = {"ref": ref} if ref else None
        try:
            response = self._make_request(
                "GET", f"{self._repo_path(repo_name)}/contents/{quote(path)}", params=params
            )
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise
        data = response.json()
        if not isinstance(data, dict) or data.get("type") != "file":
            return None
        return data

    def get_file(self, repo_name: str, path: str, ref: Optional[str] = None) -> Optional[Dict[str, str]]:
        """Fetch and decode a file.

        Args:
            repo_name: Repository identifier
            path: File path
            ref: Branch or commit

        Returns:
            Dict with ``content`` (UTF-8 text) and ``sha``, or None if the file does not exist

        Raises:
            ValueError: If the content cannot be decoded to text
        """
        data = self._get_file_entry(repo_name, path, ref)
        if data is None or "content" not in data:
            return None
        return {"content": decode_content(data["content"]), "sha": data["sha"]}

    def get_file_sha(self, repo_name: str, path: str, ref: Optional[str] = None) -> Optional[str]:
        """Blob SHA of a file without decoding it, or None if the file does not exist."""
        data = self._get_file_entry(repo_name, path, ref)
        return data["sha"] if data is not None else None

    def get_ref_sha(self, repo_name: str, branch: str) -> Optional[str]:
        """Resolve ``heads/<branch>`` to its commit SHA, or None if missing."""
        try:
            response = self._make_request("GET", f"{self._repo_path(repo_name)}/git/ref/heads/{quote(branch)}")
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise
        return response.json()["object"]["sha"]

    def create_ref(self, repo_name: str, branch: str, sha: str) -> Dict:
        """Create ``refs/heads/<branch>`` pointing at ``sha``."""
        return self._make_request(
            "POST",
            f"{self._repo_path(repo_name)}/git/refs",
            json={"ref": f"refs/heads/{branch}", "sha": sha},
        ).json()

    def delete_ref(self, repo_name: str, branch: str) -> None:
        """Delete ``heads/<branch>``."""
        self._make_request("DELETE", f"{self._repo_path(repo_name)}/git/refs/heads/{quote(branch)}")

    def put_file(
        self,
        repo_name: str,
        path: str,
        content: str,
        branch: str,
        message: str,
        sha: Optional[str] = None,
    ) -> Dict:
        """Create or update a single file.

        Args:
            sha: Current blob SHA; required by GitHub when the file already exists

        Returns:
            Commit response
        """
        payload = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": branch,
        }
        if sha:
            payload["sha"] = sha
        return self._make_request(
            "PUT", f"{self._repo_path(repo_name)}/contents/{quote(path)}", json=payload
        ).json()

    def merge(self, repo_name: str, head: str, base: str, message: str) -> Optional[Dict]:
        """Merge ``head`` into ``base``.

        Returns:
            Merge commit, or None when ``base`` already contains ``head``
        """
        response = self._make_request(
            "POST",
            f"{self._repo_path(repo_name)}/merges",
            json={"base": base, "head": head, "commit_message": message},
        )
        if response.status_code == 204:
            return None
        return response.json()

    def close(self) -> None:
        self.client.close()


def decode_content(encoded: str) -> str:
    """Decode GitHub's base64 transport encoding into text.

    Raises:
        ValueError: If the payload is not base64 or not UTF-8
    """
    try:
        raw = base64.b64decode(encoded, validate=False)
        return raw.decode("utf-8")
    except (ValueError, UnicodeDecodeError) as e:
        raise ValueError(f"Undecodable file content: {e}") from e
