"""Tests for the milestone lifecycle."""

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from marketplace.domain.milestones import lifecycle
from marketplace.domain.milestones.schemas import (
    ApproveRequest,
    MilestoneCreate,
    MilestoneUpdate,
    RevisionRequest,
    SubmitWorkRequest,
)
from marketplace.domain.milestones.service import MilestoneService
from marketplace.errors import AccessDenied, InvalidTransition, ValidationFailure
from marketplace.models_workspace import Milestone

ALL_ACTIONS = list(lifecycle.TRANSITIONS)
LEGAL = {
    ("start", "pending"),
    ("start", "revision_requested"),
    ("submit", "in_progress"),
    ("approve", "awaiting_approval"),
    ("request_revision", "awaiting_approval"),
}


class TestTransitionTable:

    @pytest.mark.parametrize("action", ALL_ACTIONS)
    @pytest.mark.parametrize("status", lifecycle.MILESTONE_STATUSES)
    def test_only_listed_edges_are_legal(self, action, status):
        actor = lifecycle.TRANSITIONS[action][0]
        if (action, status) in LEGAL:
            assert lifecycle.check_transition(action, actor, status) in lifecycle.MILESTONE_STATUSES
        else:
            with pytest.raises(InvalidTransition):
                lifecycle.check_transition(action, actor, status)

    @pytest.mark.parametrize(
        "action,wrong_role",
        [("start", "client"), ("submit", "client"), ("approve", "freelancer"), ("request_revision", "freelancer")],
    )
    def test_wrong_actor_denied(self, action, wrong_role):
        source = next(s for a, s in LEGAL if a == action)
        with pytest.raises(AccessDenied):
            lifecycle.check_transition(action, wrong_role, source)


class TestDerivedValues:

    @pytest.mark.parametrize(
        "statuses,expected",
        [
            ([], 0),
            (["pending"], 0),
            (["completed", "pending", "pending"], 33),
            (["completed", "completed", "pending"], 67),
            (["completed"] * 4, 100),
            (["completed"] + ["pending"] * 7, 13),
            (["completed"] * 5 + ["pending"] * 3, 63),
        ],
    )
    def test_progress_is_rounded_share_completed(self, statuses, expected):
        assert lifecycle.compute_progress(statuses) == expected

    def test_phase_labels(self):
        assert lifecycle.phase_status(None) == "pending"
        assert lifecycle.phase_status(SimpleNamespace(status="awaiting_approval", payment_processed=False)) == "in-progress"
        assert lifecycle.phase_status(SimpleNamespace(status="completed", payment_processed=False)) == "completed"
        assert lifecycle.phase_status(SimpleNamespace(status="completed", payment_processed=True)) == "paid"

    def test_stats(self):
        start = datetime(2026, 1, 1)
        milestones = [
            SimpleNamespace(status="completed", started_at=start, completed_at=start + timedelta(hours=2)),
            SimpleNamespace(status="completed", started_at=start, completed_at=start + timedelta(hours=4)),
            SimpleNamespace(status="in_progress", started_at=start, completed_at=None),
            SimpleNamespace(status="pending", started_at=None, completed_at=None),
        ]
        stats = lifecycle.compute_stats(milestones)
        assert stats["total"] == 4
        assert stats["completed"] == 2
        assert stats["inProgress"] == 1
        assert stats["completionRate"] == 50.0
        assert stats["averageCompletionSeconds"] == 3 * 3600


class TestLifecycleService:

    def test_approving_pending_milestone_rejected_without_mutation(
        self, milestone_service, workspace, client_user, db
    ):
        milestone = workspace.milestones[0]
        with pytest.raises(InvalidTransition):
            milestone_service.approve(workspace.workspace_id, milestone.milestone_id, ApproveRequest(), client_user)

        db.refresh(milestone)
        db.refresh(workspace)
        assert milestone.status == "pending"
        assert milestone.approved_at is None
        assert workspace.overall_progress == 0
        assert workspace.current_phase == 1

    def test_full_delivery_updates_progress_and_phase(
        self, milestone_service, workspace, client_user, freelancer_user, payments, notifier
    ):
        wid = workspace.workspace_id
        milestone = workspace.milestones[0]

        _, started = milestone_service.start(wid, milestone.milestone_id, freelancer_user)
        assert started.status == "in_progress"
        assert started.started_at is not None

        _, submitted = milestone_service.submit(
            wid, milestone.milestone_id, SubmitWorkRequest(submittedWork=["design.fig"], notes="v1"), freelancer_user
        )
        assert submitted.status == "awaiting_approval"
        assert submitted.submitted_work == ["design.fig"]
        assert submitted.client_approved is False

        ws, approved = milestone_service.approve(
            wid, milestone.milestone_id, ApproveRequest(feedback="Great"), client_user
        )
        assert approved.status == "completed"
        assert approved.client_approved is True
        assert approved.feedback == "Great"
        assert approved.payment_ready_at is not None
        assert ws.current_phase == 2
        assert ws.overall_progress == 33
        assert payments.ready == [milestone.milestone_id]
        assert "milestone_approved" in notifier.kinds_for(freelancer_user.id)

    def test_revision_loop(self, milestone_service, workspace, client_user, freelancer_user):
        wid = workspace.workspace_id
        mid = workspace.milestones[0].milestone_id
        milestone_service.start(wid, mid, freelancer_user)
        milestone_service.submit(wid, mid, SubmitWorkRequest(), freelancer_user)

        ws, revised = milestone_service.request_revision(wid, mid, RevisionRequest(revisionNotes="Darker palette"), client_user)
        assert revised.status == "revision_requested"
        assert revised.revision_count == 1
        assert ws.overall_progress == 0
        assert ws.current_phase == 1

        _, resumed = milestone_service.start(wid, mid, freelancer_user)
        assert resumed.status == "in_progress"
        milestone_service.submit(wid, mid, SubmitWorkRequest(), freelancer_user)
        _, done = milestone_service.approve(wid, mid, ApproveRequest(), client_user)
        assert done.status == "completed"

    def test_freelancer_cannot_approve(self, milestone_service, workspace, freelancer_user):
        wid = workspace.workspace_id
        mid = workspace.milestones[0].milestone_id
        milestone_service.start(wid, mid, freelancer_user)
        milestone_service.submit(wid, mid, SubmitWorkRequest(), freelancer_user)
        with pytest.raises(AccessDenied):
            milestone_service.approve(wid, mid, ApproveRequest(), freelancer_user)

    def test_stranger_cannot_touch_milestones(self, milestone_service, workspace, stranger_user):
        with pytest.raises(AccessDenied):
            milestone_service.start(workspace.workspace_id, workspace.milestones[0].milestone_id, stranger_user)

    def test_payment_signal_failure_keeps_approval(
        self, milestone_service, workspace, client_user, freelancer_user, payments
    ):
        payments.fail = True
        wid = workspace.workspace_id
        mid = workspace.milestones[0].milestone_id
        milestone_service.start(wid, mid, freelancer_user)
        milestone_service.submit(wid, mid, SubmitWorkRequest(), freelancer_user)
        _, approved = milestone_service.approve(wid, mid, ApproveRequest(), client_user)
        assert approved.status == "completed"
        assert approved.payment_eligible

    def test_concurrent_approvals_do_not_both_apply(
        self, session_factory, notifier, realtime, payments, workspace, client_user, freelancer_user, milestone_service
    ):
        wid = workspace.workspace_id
        mid = workspace.milestones[0].milestone_id
        milestone_service.start(wid, mid, freelancer_user)
        milestone_service.submit(wid, mid, SubmitWorkRequest(), freelancer_user)

        first_session = session_factory()
        second_session = session_factory()
        try:
            first = MilestoneService(first_session, notifier, realtime, payments)
            second = MilestoneService(second_session, notifier, realtime, payments)
            # Hold the second session's copies so they stay stale
            stale_workspace, _, stale_milestone = second.get_milestone(wid, mid, client_user)
            assert stale_milestone.status == "awaiting_approval"
            assert len(stale_workspace.milestones) == 3

            first.approve(wid, mid, ApproveRequest(feedback="first"), client_user)
            with pytest.raises(InvalidTransition) as exc:
                second.approve(wid, mid, ApproveRequest(feedback="second"), client_user)
            assert exc.value.code == "conflict"

            check = session_factory()
            stored = check.query(Milestone).filter_by(milestone_id=mid).one()
            assert stored.feedback == "first"
            check.close()
        finally:
            first_session.close()
            second_session.close()


class TestClientManagedMilestones:

    def test_create_recomputes_progress(self, milestone_service, workspace, client_user, freelancer_user):
        wid = workspace.workspace_id
        mid = workspace.milestones[0].milestone_id
        milestone_service.start(wid, mid, freelancer_user)
        milestone_service.submit(wid, mid, SubmitWorkRequest(), freelancer_user)
        ws, _ = milestone_service.approve(wid, mid, ApproveRequest(), client_user)
        assert ws.overall_progress == 33

        ws, created = milestone_service.create_milestone(
            wid, MilestoneCreate(phaseNumber=4, title="Extra polish", amount=100), client_user
        )
        assert created.status == "pending"
        assert ws.overall_progress == 25

    def test_duplicate_phase_rejected(self, milestone_service, workspace, client_user):
        with pytest.raises(InvalidTransition):
            milestone_service.create_milestone(
                workspace.workspace_id, MilestoneCreate(phaseNumber=1, title="Dup"), client_user
            )

    def test_freelancer_cannot_create(self, milestone_service, workspace, freelancer_user):
        with pytest.raises(AccessDenied):
            milestone_service.create_milestone(
                workspace.workspace_id, MilestoneCreate(phaseNumber=9, title="Mine"), freelancer_user
            )

    def test_update_only_while_pending(self, milestone_service, workspace, client_user, freelancer_user):
        wid = workspace.workspace_id
        mid = workspace.milestones[0].milestone_id
        _, updated = milestone_service.update_milestone(wid, mid, MilestoneUpdate(amount=350), client_user)
        assert updated.amount == 350

        milestone_service.start(wid, mid, freelancer_user)
        with pytest.raises(InvalidTransition):
            milestone_service.update_milestone(wid, mid, MilestoneUpdate(amount=999), client_user)

    def test_negative_amount_rejected(self, milestone_service, workspace, client_user):
        with pytest.raises(ValidationFailure):
            milestone_service.update_milestone(
                workspace.workspace_id, workspace.milestones[0].milestone_id, MilestoneUpdate(amount=-1), client_user
            )


class TestPaymentRelease:

    def _complete_first(self, milestone_service, workspace, client_user, freelancer_user):
        wid = workspace.workspace_id
        mid = workspace.milestones[0].milestone_id
        milestone_service.start(wid, mid, freelancer_user)
        milestone_service.submit(wid, mid, SubmitWorkRequest(), freelancer_user)
        milestone_service.approve(wid, mid, ApproveRequest(), client_user)
        return wid, mid

    def test_release_moves_ledgers(self, milestone_service, workspace, client_user, freelancer_user, notifier):
        wid, mid = self._complete_first(milestone_service, workspace, client_user, freelancer_user)
        ws, milestone = milestone_service.release_payment(wid, mid, client_user)

        assert milestone.payment_processed is True
        assert ws.client_ledger["paid_amount"] == 300.0
        assert ws.client_ledger["pending_amount"] == 700.0
        assert ws.freelancer_ledger["total_earned"] == 300.0
        assert ws.freelancer_ledger["pending_earnings"] == 700.0
        assert len(ws.client_ledger["transactions"]) == 1
        assert "payment_released" in notifier.kinds_for(freelancer_user.id)

    def test_release_twice_rejected(self, milestone_service, workspace, client_user, freelancer_user):
        wid, mid = self._complete_first(milestone_service, workspace, client_user, freelancer_user)
        milestone_service.release_payment(wid, mid, client_user)
        with pytest.raises(InvalidTransition) as exc:
            milestone_service.release_payment(wid, mid, client_user)
        assert exc.value.code == "already_paid"

    def test_unapproved_milestone_not_payable(self, milestone_service, workspace, client_user):
        with pytest.raises(InvalidTransition):
            milestone_service.release_payment(workspace.workspace_id, workspace.milestones[1].milestone_id, client_user)

    def test_freelancer_cannot_release(self, milestone_service, workspace, client_user, freelancer_user):
        wid, mid = self._complete_first(milestone_service, workspace, client_user, freelancer_user)
        with pytest.raises(AccessDenied):
            milestone_service.release_payment(wid, mid, freelancer_user)
