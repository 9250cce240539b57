"""Tests for role-restricted workspace views."""

import pytest

from marketplace.domain.workspaces import projector
from marketplace.domain.workspaces.schemas import (
    ClientPrivatePartition,
    FileCreate,
    FreelancerPrivatePartition,
    MessageCreate,
    NoteCreate,
)
from marketplace.domain.workspaces.service import WorkspaceService
from marketplace.errors import AccessDenied, NotFound, ValidationFailure


@pytest.fixture
def workspace_service(db, notifier, realtime):
    return WorkspaceService(db, notifier, realtime)


@pytest.fixture
def populated(workspace_service, workspace, client_user, freelancer_user):
    """Each party stores one private note and one private file, plus one shared file"""
    wid = workspace.workspace_id
    workspace_service.add_note(wid, NoteCreate(content="Client-only budget thoughts"), client_user)
    workspace_service.add_note(wid, NoteCreate(content="Freelancer-only time log"), freelancer_user)
    workspace_service.add_file(
        wid, FileCreate(filename="brief.pdf", fileUrl="https://files/brief.pdf"), client_user
    )
    workspace_service.add_file(
        wid, FileCreate(filename="invoice-draft.pdf", fileUrl="https://files/inv.pdf", private=True), client_user
    )
    workspace_service.add_file(
        wid, FileCreate(filename="timesheet.xlsx", fileUrl="https://files/ts.xlsx", private=True), freelancer_user
    )
    return workspace


class TestRoleResolution:

    def test_role_derived_from_identity(self, workspace, client_user, freelancer_user):
        assert projector.resolve_role(workspace, client_user.id) == "client"
        assert projector.resolve_role(workspace, freelancer_user.id) == "freelancer"

    def test_stranger_denied(self, workspace, stranger_user):
        with pytest.raises(AccessDenied):
            projector.project(workspace, stranger_user.id)

    def test_mismatched_claim_rejected(self, workspace, freelancer_user):
        with pytest.raises(AccessDenied):
            projector.project(workspace, freelancer_user.id, claimed_role="client")

    def test_matching_claim_accepted(self, workspace, client_user):
        view = projector.project(workspace, client_user.id, claimed_role="client")
        assert view.role == "client"


class TestPartitions:

    def test_client_sees_only_client_private_data(self, populated, client_user):
        view = projector.project(populated, client_user.id)
        assert isinstance(view.private, ClientPrivatePartition)
        assert [n.content for n in view.private.notes] == ["Client-only budget thoughts"]
        assert [f.filename for f in view.private.files] == ["invoice-draft.pdf"]
        assert view.private.budgetTracking["total_budget"] == 1000.0
        assert "earningsTracking" not in view.model_dump()["private"]

    def test_freelancer_sees_only_freelancer_private_data(self, populated, freelancer_user):
        view = projector.project(populated, freelancer_user.id)
        assert isinstance(view.private, FreelancerPrivatePartition)
        assert [n.content for n in view.private.notes] == ["Freelancer-only time log"]
        assert [f.filename for f in view.private.files] == ["timesheet.xlsx"]
        assert "budgetTracking" not in view.model_dump()["private"]

    def test_shared_files_exclude_private_uploads(self, populated, freelancer_user):
        view = projector.project(populated, freelancer_user.id)
        assert [f.filename for f in view.shared.files] == ["brief.pdf"]

    def test_shared_partition_lists_milestones_and_thread(self, workspace, client_user):
        view = projector.project(workspace, client_user.id)
        assert len(view.shared.milestones) == 3
        assert len(view.shared.messages) == 2
        assert view.participants == {"client": workspace.client_id, "freelancer": workspace.freelancer_id}

    def test_permission_sets(self, workspace, client_user, freelancer_user):
        client_view = projector.project(workspace, client_user.id)
        freelancer_view = projector.project(workspace, freelancer_user.id)
        assert set(client_view.permissions) == {
            "approve_milestones",
            "request_revisions",
            "make_payments",
            "upload_files",
            "send_messages",
        }
        assert set(freelancer_view.permissions) == {
            "submit_work",
            "track_earnings",
            "upload_files",
            "send_messages",
        }

    def test_projection_does_not_mutate(self, workspace, client_user, db):
        before = (workspace.version_id, workspace.unread_client, workspace.last_activity)
        projector.project(workspace, client_user.id)
        assert not db.dirty
        assert (workspace.version_id, workspace.unread_client, workspace.last_activity) == before


class TestWorkspaceActions:

    def test_message_bumps_counterpart_unread(self, workspace_service, workspace, client_user, freelancer_user, realtime):
        workspace_service.send_message(workspace.workspace_id, MessageCreate(content="Kickoff tomorrow?"), client_user)
        assert workspace.unread_freelancer == 1
        assert workspace.unread_client == 0
        assert any(pid == freelancer_user.id and e["type"] == "workspace_message" for pid, e in realtime.events)

        marked = workspace_service.mark_messages_read(workspace.workspace_id, freelancer_user)
        assert marked >= 1
        assert workspace.unread_freelancer == 0
        assert all(freelancer_user.id in m.read_by for m in workspace.messages)

    def test_empty_message_rejected(self, workspace_service, workspace, client_user):
        with pytest.raises(ValidationFailure):
            workspace_service.send_message(workspace.workspace_id, MessageCreate(content="   "), client_user)

    def test_stranger_cannot_post(self, workspace_service, workspace, stranger_user):
        with pytest.raises(AccessDenied):
            workspace_service.send_message(workspace.workspace_id, MessageCreate(content="hi"), stranger_user)

    def test_unknown_workspace(self, workspace_service, client_user):
        with pytest.raises(NotFound):
            workspace_service.get_view("ws_missing", client_user)

    def test_listing_is_role_specific(self, workspace_service, workspace, client_user, freelancer_user):
        assert [s.role for s in workspace_service.list_workspaces(client_user)] == ["client"]
        assert workspace_service.list_workspaces(client_user, role="freelancer") == []
        summaries = workspace_service.list_workspaces(freelancer_user)
        assert [s.workspaceId for s in summaries] == [workspace.workspace_id]
