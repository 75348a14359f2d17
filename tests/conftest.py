"""Shared fakes and fixtures for workflow tests."""

import hashlib
from typing import Dict, List, Optional

import httpx
import pytest

from sitepilot.agents.codegen import CodeGenerationAdapter
from sitepilot.agents.orchestrator import ChangeRequestCoordinator
from sitepilot.core.storage import InMemoryRecordStore
from sitepilot.core.types import ModelChoice
from sitepilot.services.branches import BranchLifecycleManager
from sitepilot.services.deployments import DeploymentStatusCorrelator
from sitepilot.services.generation_backends import GenerationBackend
from sitepilot.services.pending_changes import PendingChangeStateMachine
from sitepilot.services.sites import SiteService
from sitepilot.services.snapshot import SourceSnapshotFetcher


def status_error(code: int, url: str = "https://api.github.com/x") -> httpx.HTTPStatusError:
    request = httpx.Request("GET", url)
    return httpx.HTTPStatusError(f"{code}", request=request, response=httpx.Response(code, request=request))


def blob_sha(content: str) -> str:
    return hashlib.sha1(content.encode()).hexdigest()


class FakeGitHub:
    """In-memory stand-in for GitHubClient; branches are path -> content maps."""

    def __init__(self, files: Optional[Dict[str, str]] = None, default_branch: str = "main"):
        self.default_branch = default_branch
        self.branches: Dict[str, Dict[str, str]] = {default_branch: dict(files or {})}
        self.calls: List[tuple] = []
        self.fail: set = set()
        self.fail_paths: set = set()
        self.undecodable: set = set()

    def _check(self, op: str) -> None:
        if op in self.fail:
            raise httpx.ConnectError(f"{op} failed")

    def get_default_branch(self, repo_name):
        self.calls.append(("get_default_branch", repo_name))
        self._check("get_default_branch")
        return self.default_branch

    def list_directory(self, repo_name, path="", ref=None):
        self.calls.append(("list_directory", path))
        self._check("list_directory")
        if path in self.fail_paths:
            raise status_error(500)
        entries, seen = [], set()
        for file_path in self.branches[ref or self.default_branch]:
            if path:
                if not file_path.startswith(path + "/"):
                    continue
                rel = file_path[len(path) + 1:]
            else:
                rel = file_path
            name = rel.split("/")[0]
            full = f"{path}/{name}" if path else name
            if full in seen:
                continue
            seen.add(full)
            kind = "dir" if "/" in rel else "file"
            entries.append({"type": kind, "path": full, "sha": f"sha-{full}"})
        return entries

    def get_file(self, repo_name, path, ref=None):
        self.calls.append(("get_file", path, ref))
        self._check("get_file")
        if path in self.undecodable:
            raise ValueError("Undecodable file content")
        content = self.branches[ref or self.default_branch].get(path)
        if content is None:
            return None
        return {"content": content, "sha": blob_sha(content)}

    def get_file_sha(self, repo_name, path, ref=None):
        self.calls.append(("get_file_sha", path, ref))
        self._check("get_file_sha")
        content = self.branches[ref or self.default_branch].get(path)
        return blob_sha(content) if content is not None else None

    def get_ref_sha(self, repo_name, branch):
        self.calls.append(("get_ref_sha", branch))
        self._check("get_ref_sha")
        return f"sha-{branch}" if branch in self.branches else None

    def create_ref(self, repo_name, branch, sha):
        self.calls.append(("create_ref", branch, sha))
        self._check("create_ref")
        if branch in self.branches:
            raise status_error(422)
        self.branches[branch] = dict(self.branches[sha[len("sha-"):]])
        return {"ref": f"refs/heads/{branch}"}

    def delete_ref(self, repo_name, branch):
        self.calls.append(("delete_ref", branch))
        self._check("delete_ref")
        if branch not in self.branches:
            raise status_error(422)
        del self.branches[branch]

    def put_file(self, repo_name, path, content, branch, message, sha=None):
        self.calls.append(("put_file", path, branch, sha))
        self._check("put_file")
        if path in self.fail_paths:
            raise status_error(500)
        files = self.branches[branch]
        current = files.get(path)
        if current is not None and sha != blob_sha(current):
            raise status_error(409)
        if current is None and sha is not None:
            raise status_error(422)
        files[path] = content
        return {"commit": {"sha": blob_sha(content)}}

    def merge(self, repo_name, head, base, message):
        self.calls.append(("merge", head, base))
        self._check("merge")
        if head not in self.branches or base not in self.branches:
            raise status_error(404)
        self.branches[base].update(self.branches[head])
        return {"sha": "merge-sha"}

    def ops(self, name: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == name]


class FakeVercel:
    """Stand-in for VercelClient with a scripted deployment list."""

    def __init__(self, team_id: str = "team123"):
        self.team_id = team_id
        self.deployments: List[dict] = []
        self.error: Optional[Exception] = None
        self.queries: List[tuple] = []

    def list_preview_deployments(self, project, limit=5):
        self.queries.append((project, limit))
        if self.error is not None:
            raise self.error
        return list(self.deployments)

    def preview_url_for(self, project, branch):
        return f"https://{project}-git-{branch}-{self.team_id}.vercel.app"


class FakeBackend(GenerationBackend):
    """Generation backend returning a scripted raw response."""

    def __init__(self, response: str = '{"summary": "Nothing to do", "files": {}}', model: str = "fake"):
        self.model = model
        self.response = response
        self.prompts: List[str] = []
        self.error: Optional[Exception] = None

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response


SITE_FILES = {
    "content/site.json": '{"hero": {"title": "Hello"}}',
    "app/page.tsx": "export default function Page() { return <h1>Hello</h1> }",
    "app/api/route.ts": "export async function GET() {}",
    "node_modules/react/index.js": "module.exports = {}",
    "public/logo.png": "binary",
    "next.config.js": "module.exports = {}",
    "README.md": "# Site",
}


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def github():
    return FakeGitHub(SITE_FILES)


@pytest.fixture
def vercel():
    return FakeVercel()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def coordinator(store, github, vercel, backend):
    branches = BranchLifecycleManager(github)
    correlator = DeploymentStatusCorrelator(vercel)
    backends = {choice: backend for choice in ModelChoice}
    names = iter(f"preview-{1700000000000 + i}" for i in range(100))
    return ChangeRequestCoordinator(
        sites=SiteService(store),
        snapshots=SourceSnapshotFetcher(github),
        codegen=CodeGenerationAdapter(backends),
        branches=branches,
        correlator=correlator,
        changes=PendingChangeStateMachine(store, branches, correlator),
        branch_namer=lambda: next(names),
    )


@pytest.fixture
def site(coordinator):
    return coordinator.sites.create("user-1", "Acme", "acme/site")
