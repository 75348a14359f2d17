"""Vercel API client for preview deployments."""

from typing import Any, Dict, List, Optional
import httpx
import logging

logger = logging.getLogger(__name__)


class VercelClient:
    """Client for the Vercel deployments API."""

    def __init__(
        self,
        token: Optional[str],
        team_id: str = "",
        api_url: str = "https://api.vercel.com",
        timeout: float = 15.0,
        client: Optional[httpx.Client] = None,
    ):
        self.team_id = team_id or ""
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.client = client or httpx.Client(base_url=api_url, headers=headers, timeout=timeout)

    def list_preview_deployments(self, project: str, limit: int = 5) -> List[Dict[str, Any]]:
        """List the most recent preview deployments of a project.

        Args:
            project: Vercel project id or name
            limit: Number of deployments to return

        Returns:
            Deployment records, newest first

        Raises:
            httpx.HTTPError: On transport or status failure
        """
        params = {"projectId": project, "target": "preview", "limit": limit}
        if self.team_id:
            params["teamId"] = self.team_id
        response = self.client.get("/v6/deployments", params=params)
        response.raise_for_status()
        return response.json().get("deployments") or []

    def preview_url_for(self, project: str, branch: str) -> str:
        """Predict the branch preview URL from Vercel's naming convention."""
        return f"https://{project}-git-{branch}-{self.team_id}.vercel.app"

    def close(self) -> None:
        self.client.close()
