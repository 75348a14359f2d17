"""Tests for the pending change state machine."""

import threading
from unittest.mock import patch

import pytest

from sitepilot.core.errors import AlreadyResolved, NotFound, UpstreamUnavailable
from sitepilot.core.types import DeploymentState, GenerationResult
from sitepilot.models.records import ChangeHistoryEntry, ChangeStatus
from sitepilot.services.branches import BranchLifecycleManager
from sitepilot.services.deployments import DeploymentStatusCorrelator
from sitepilot.services.pending_changes import PendingChangeStateMachine
from sitepilot.services.sites import SiteService

BRANCH = "preview-1700000000000"


@pytest.fixture
def machine(store, github, vercel):
    branches = BranchLifecycleManager(github)
    return PendingChangeStateMachine(store, branches, DeploymentStatusCorrelator(vercel))


@pytest.fixture
def site(store):
    return SiteService(store).create("user-1", "Acme", "acme/site")


@pytest.fixture
def change(machine, site, github):
    """A pending change whose branch already carries the edit."""
    github.create_ref("acme/site", BRANCH, "sha-main")
    github.branches[BRANCH]["content/site.json"] = '{"hero": {"title": "Welcome"}}'
    github.calls.clear()
    result = GenerationResult(
        summary="Updated title",
        files={"content/site.json": '{"hero": {"title": "Welcome"}}'},
    )
    return machine.create(
        site, BRANCH, "change hero title to Welcome", result,
        preview_url="https://site-git-preview-1700000000000-team123.vercel.app",
    )


def test_create_records_pending_change(store, site, change):
    stored = store.get_pending_change(change.id, site.id)
    assert stored.status == ChangeStatus.PENDING
    assert stored.files_changed == ["content/site.json"]
    assert stored.user_message == "change hero title to Welcome"
    assert stored.ai_summary == "Updated title"


class TestApprove:
    def test_merges_deletes_branch_and_writes_history(self, machine, store, github, site, change):
        approved = machine.approve(site, change.id)

        assert approved.status == ChangeStatus.APPROVED
        assert github.ops("merge") == [("merge", BRANCH, "main")]
        assert github.branches["main"]["content/site.json"] == '{"hero": {"title": "Welcome"}}'
        assert BRANCH not in github.branches

        history = store.list_history(site.id)
        assert len(history) == 1
        assert history[0].change_id == change.id
        assert history[0].user_message == change.user_message
        assert history[0].ai_summary == change.ai_summary
        assert history[0].files_changed == change.files_changed

    def test_second_approve_is_already_resolved(self, machine, store, github, site, change):
        machine.approve(site, change.id)
        github.calls.clear()

        with pytest.raises(AlreadyResolved):
            machine.approve(site, change.id)

        assert github.ops("merge") == []
        assert len(store.list_history(site.id)) == 1

    def test_merge_failure_leaves_change_pending(self, machine, store, github, site, change):
        github.fail.add("merge")

        with pytest.raises(UpstreamUnavailable):
            machine.approve(site, change.id)

        assert store.get_pending_change(change.id, site.id).status == ChangeStatus.PENDING
        assert BRANCH in github.branches
        assert store.list_history(site.id) == []

    def test_retry_after_merge_failure_succeeds(self, machine, store, github, site, change):
        github.fail.add("merge")
        with pytest.raises(UpstreamUnavailable):
            machine.approve(site, change.id)

        github.fail.clear()
        assert machine.approve(site, change.id).status == ChangeStatus.APPROVED

    def test_branch_delete_failure_does_not_block(self, machine, store, github, site, change):
        github.fail.add("delete_ref")

        assert machine.approve(site, change.id).status == ChangeStatus.APPROVED
        assert len(store.list_history(site.id)) == 1

    def test_existing_history_row_is_not_duplicated(self, machine, store, site, change):
        store.add_history(ChangeHistoryEntry(
            site_id=site.id,
            change_id=change.id,
            user_message=change.user_message,
            ai_summary=change.ai_summary,
            files_changed=change.files_changed,
        ))

        machine.approve(site, change.id)

        assert len(store.list_history(site.id)) == 1

    def test_concurrent_approvals_write_one_history_row(self, machine, store, github, site, change):
        barrier = threading.Barrier(2, timeout=5)
        merge = github.merge

        def merge_then_wait(*args, **kwargs):
            result = merge(*args, **kwargs)
            barrier.wait()
            return result

        github.merge = merge_then_wait
        outcomes = []

        def approve():
            try:
                outcomes.append(machine.approve(site, change.id).status.value)
            except AlreadyResolved:
                outcomes.append("already_resolved")

        threads = [threading.Thread(target=approve) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert sorted(outcomes) == ["already_resolved", "approved"]
        assert len(store.list_history(site.id)) == 1

    def test_lost_status_race(self, machine, store, site, change):
        with patch.object(store, "transition_status", return_value=False):
            with pytest.raises(AlreadyResolved):
                machine.approve(site, change.id)

    def test_unknown_change(self, machine, site):
        with pytest.raises(NotFound):
            machine.approve(site, "missing")


class TestReject:
    def test_deletes_branch_without_history(self, machine, store, github, site, change):
        rejected = machine.reject(site, change.id)

        assert rejected.status == ChangeStatus.REJECTED
        assert BRANCH not in github.branches
        assert github.ops("merge") == []
        assert store.list_history(site.id) == []

    def test_reject_after_approve(self, machine, site, change):
        machine.approve(site, change.id)
        with pytest.raises(AlreadyResolved):
            machine.reject(site, change.id)

    def test_branch_delete_failure_still_rejects(self, machine, store, github, site, change):
        github.fail.add("delete_ref")
        assert machine.reject(site, change.id).status == ChangeStatus.REJECTED

    def test_lost_status_race_keeps_branch(self, machine, store, github, site, change):
        with patch.object(store, "transition_status", return_value=False):
            with pytest.raises(AlreadyResolved):
                machine.reject(site, change.id)
        assert BRANCH in github.branches


class TestRefreshPreview:
    def test_pending_then_ready_updates_url_once(self, machine, store, vercel, site, change):
        predicted = change.preview_url
        with patch.object(store, "update_preview_url", wraps=store.update_preview_url) as update:
            first = machine.refresh_preview(site, change.id)
            assert first.status == DeploymentState.PENDING
            assert first.preview_url == predicted
            assert update.call_count == 0

            vercel.deployments = [{
                "url": "x.example.com",
                "state": "READY",
                "meta": {"githubCommitRef": BRANCH},
            }]
            second = machine.refresh_preview(site, change.id)

            assert second.status == DeploymentState.READY
            assert second.preview_url == "https://x.example.com"
            update.assert_called_once_with(change.id, "https://x.example.com")

            machine.refresh_preview(site, change.id)
            assert update.call_count == 1

        assert store.get_pending_change(change.id, site.id).preview_url == "https://x.example.com"

    def test_polls_deployment_project(self, machine, vercel, site, change):
        machine.refresh_preview(site, change.id)
        assert vercel.queries == [("site", 5)]

    def test_valid_after_resolution(self, machine, site, change):
        machine.reject(site, change.id)
        status = machine.refresh_preview(site, change.id)
        assert status.change_status == "rejected"
        assert status.status == DeploymentState.PENDING

    def test_deployment_error_is_reported(self, machine, vercel, site, change):
        vercel.deployments = [{"url": "x", "state": "ERROR", "meta": {"githubCommitRef": BRANCH}}]
        status = machine.refresh_preview(site, change.id)
        assert status.status == DeploymentState.ERROR
        assert status.preview_url == change.preview_url

    def test_change_from_other_site_is_not_found(self, machine, store, change):
        other = SiteService(store).create("user-1", "Other", "acme/other")
        with pytest.raises(NotFound):
            machine.refresh_preview(other, change.id)
