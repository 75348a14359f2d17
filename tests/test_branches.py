"""Tests for branch lifecycle management."""

import pytest

from sitepilot.core.errors import UpstreamUnavailable
from sitepilot.services.branches import BranchLifecycleManager

from conftest import FakeGitHub, blob_sha


@pytest.fixture
def repo():
    return FakeGitHub({"content/site.json": "old", "README.md": "# Site"})


@pytest.fixture
def manager(repo):
    return BranchLifecycleManager(repo)


def test_create_branch_from_base(manager, repo):
    assert manager.create_branch("acme/site", "preview-1", "main") is True
    assert repo.branches["preview-1"] == repo.branches["main"]
    assert repo.ops("create_ref") == [("create_ref", "preview-1", "sha-main")]


def test_create_branch_missing_base(manager, repo):
    assert manager.create_branch("acme/site", "preview-1", "develop") is False
    assert "preview-1" not in repo.branches


def test_create_branch_already_exists(manager):
    assert manager.create_branch("acme/site", "preview-1", "main") is True
    assert manager.create_branch("acme/site", "preview-1", "main") is False


def test_commit_updates_with_sha_and_creates_without(manager, repo):
    manager.create_branch("acme/site", "preview-1", "main")

    ok = manager.commit_files(
        "acme/site", "preview-1",
        {"content/site.json": "new", "app/about.tsx": "about"},
        "AI changes: test",
    )

    assert ok is True
    puts = repo.ops("put_file")
    assert puts[0] == ("put_file", "content/site.json", "preview-1", blob_sha("old"))
    assert puts[1] == ("put_file", "app/about.tsx", "preview-1", None)
    assert repo.branches["preview-1"]["content/site.json"] == "new"
    assert repo.branches["main"]["content/site.json"] == "old"


def test_commit_retry_is_safe(manager, repo):
    manager.create_branch("acme/site", "preview-1", "main")
    files = {"content/site.json": "new"}

    assert manager.commit_files("acme/site", "preview-1", files, "m") is True
    assert manager.commit_files("acme/site", "preview-1", files, "m") is True
    assert repo.branches["preview-1"]["content/site.json"] == "new"


def test_commit_overwrites_undecodable_file(manager, repo):
    repo.branches["main"]["public/data.json"] = "latin-1 bytes"
    repo.undecodable.add("public/data.json")
    manager.create_branch("acme/site", "preview-1", "main")

    ok = manager.commit_files("acme/site", "preview-1", {"public/data.json": "{}"}, "m")

    assert ok is True
    assert repo.ops("get_file") == []
    assert repo.branches["preview-1"]["public/data.json"] == "{}"


def test_commit_partial_failure(manager, repo):
    manager.create_branch("acme/site", "preview-1", "main")
    repo.fail_paths.add("b.md")

    ok = manager.commit_files("acme/site", "preview-1", {"a.md": "a", "b.md": "b", "c.md": "c"}, "m")

    assert ok is False
    assert repo.branches["preview-1"]["a.md"] == "a"
    assert "c.md" not in repo.branches["preview-1"]


def test_merge_branch(manager, repo):
    manager.create_branch("acme/site", "preview-1", "main")
    manager.commit_files("acme/site", "preview-1", {"content/site.json": "new"}, "m")

    assert manager.merge_branch("acme/site", "preview-1", "main") is True
    assert repo.branches["main"]["content/site.json"] == "new"


def test_merge_missing_head_fails(manager):
    assert manager.merge_branch("acme/site", "preview-missing", "main") is False


def test_delete_branch(manager, repo):
    manager.create_branch("acme/site", "preview-1", "main")
    assert manager.delete_branch("acme/site", "preview-1") is True
    assert "preview-1" not in repo.branches
    assert manager.delete_branch("acme/site", "preview-1") is False


def test_cleanup_branch_never_raises(manager, repo):
    repo.fail.add("delete_ref")
    manager.cleanup_branch("acme/site", "preview-1")


def test_default_branch_unreachable(manager, repo):
    repo.fail.add("get_default_branch")
    with pytest.raises(UpstreamUnavailable):
        manager.get_default_branch("acme/site")
