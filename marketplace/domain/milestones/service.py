"""Milestone service - Business logic for milestone delivery and approval"""

import logging

from sqlalchemy.orm import Session

from ...errors import AccessDenied, InvalidTransition, NotFound, ValidationFailure
from ...models import User, utcnow
from ...models_workspace import Milestone, Workspace, generate_milestone_id
from ...services.notification_service import NotificationEmitter, notify_quietly
from ...services.payment_eligibility import PaymentEligibility
from ...services.realtime import RealtimeChannel, publish_quietly
from ..workspaces.repository import WorkspaceRepository
from ..workspaces.projector import resolve_role
from ..workspaces.service import commit_or_raise
from . import lifecycle
from .repository import MilestoneRepository
from .schemas import (
    ApproveRequest,
    MilestoneCreate,
    MilestoneUpdate,
    RevisionRequest,
    SubmitWorkRequest,
)

logger = logging.getLogger(__name__)


class MilestoneService:
    """Service layer for the milestone lifecycle of one workspace"""

    def __init__(
        self,
        db: Session,
        notifier: NotificationEmitter,
        realtime: RealtimeChannel,
        payments: PaymentEligibility,
    ):
        self.db = db
        self.notifier = notifier
        self.realtime = realtime
        self.payments = payments
        self.repo = MilestoneRepository()
        self.workspace_repo = WorkspaceRepository()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_workspace(self, workspace_id: str, user: User):
        """Returns (workspace, role) for a party, NotFound / AccessDenied otherwise"""
        workspace = self.workspace_repo.get_by_workspace_id(self.db, workspace_id)
        if not workspace:
            raise NotFound("Workspace not found")
        return workspace, resolve_role(workspace, user.id)

    def get_milestone(self, workspace_id: str, milestone_id: str, user: User):
        """Returns (workspace, role, milestone)"""
        workspace, role = self.get_workspace(workspace_id, user)
        milestone = self.repo.get_by_milestone_id(self.db, workspace.id, milestone_id)
        if not milestone:
            raise NotFound("Milestone not found")
        return workspace, role, milestone

    def list_milestones(self, workspace_id: str, user: User) -> Workspace:
        workspace, _ = self.get_workspace(workspace_id, user)
        return workspace

    def get_stats(self, workspace_id: str, user: User):
        workspace, _ = self.get_workspace(workspace_id, user)
        return workspace, lifecycle.compute_stats(workspace.milestones)

    # ------------------------------------------------------------------
    # Client-managed terms
    # ------------------------------------------------------------------

    def create_milestone(self, workspace_id: str, data: MilestoneCreate, user: User):
        workspace, role = self.get_workspace(workspace_id, user)
        self._ensure_open(workspace)
        if role != "client":
            raise AccessDenied("Only the client can create milestones")
        if data.phaseNumber < 1:
            raise ValidationFailure("Phase number must be 1 or greater")
        if data.amount < 0:
            raise ValidationFailure("Milestone amount cannot be negative")
        if self.repo.get_by_phase(self.db, workspace.id, data.phaseNumber):
            raise InvalidTransition(
                f"Phase {data.phaseNumber} already has a milestone", code="duplicate_phase"
            )

        milestone = Milestone(
            milestone_id=generate_milestone_id(),
            phase_number=data.phaseNumber,
            title=data.title,
            description=data.description,
            amount=data.amount,
            due_date=data.dueDate,
            deliverables=list(data.deliverables or []),
            status=lifecycle.PENDING,
        )
        workspace.milestones.append(milestone)
        self._refresh_progress(workspace)
        workspace.last_activity = utcnow()

        commit_or_raise(self.db, f"milestone creation in workspace {workspace_id}")
        logger.info(f"📌 Milestone {milestone.milestone_id} (phase {milestone.phase_number}) created in {workspace_id}")

        self._push(workspace, milestone, "milestone_created")
        return workspace, milestone

    def update_milestone(self, workspace_id: str, milestone_id: str, data: MilestoneUpdate, user: User):
        workspace, role, milestone = self.get_milestone(workspace_id, milestone_id, user)
        self._ensure_open(workspace)
        if role != "client":
            raise AccessDenied("Only the client can update milestones")
        if milestone.status != lifecycle.PENDING:
            raise InvalidTransition(
                f'Cannot update milestone with status: "{milestone.status}"'
            )
        if data.amount is not None and data.amount < 0:
            raise ValidationFailure("Milestone amount cannot be negative")

        if data.title is not None:
            milestone.title = data.title
        if data.description is not None:
            milestone.description = data.description
        if data.amount is not None:
            milestone.amount = data.amount
        if data.dueDate is not None:
            milestone.due_date = data.dueDate
        if data.deliverables is not None:
            milestone.deliverables = list(data.deliverables)

        commit_or_raise(self.db, f"milestone {milestone_id} update")
        logger.info(f"✏️ Milestone {milestone_id} updated")
        return workspace, milestone

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    def start(self, workspace_id: str, milestone_id: str, user: User):
        workspace, role, milestone = self.get_milestone(workspace_id, milestone_id, user)
        self._ensure_open(workspace)
        target = lifecycle.check_transition("start", role, milestone.status)
        resumed = milestone.status == lifecycle.REVISION_REQUESTED

        now = utcnow()
        milestone.status = target
        if not milestone.started_at:
            milestone.started_at = now
        workspace.last_activity = now

        commit_or_raise(self.db, f"milestone {milestone_id} start")
        logger.info(f"🚀 Milestone {milestone_id} {'resumed' if resumed else 'started'}")

        self._notify(
            workspace,
            milestone,
            "client",
            "milestone_started",
            "Milestone Started",
            f"Work {'resumed' if resumed else 'started'} on \"{milestone.title}\"",
        )
        self._push(workspace, milestone, "milestone_updated")
        return workspace, milestone

    def submit(self, workspace_id: str, milestone_id: str, data: SubmitWorkRequest, user: User):
        workspace, role, milestone = self.get_milestone(workspace_id, milestone_id, user)
        self._ensure_open(workspace)
        target = lifecycle.check_transition("submit", role, milestone.status)

        now = utcnow()
        milestone.status = target
        milestone.submitted_at = now
        milestone.submitted_work = list(data.submittedWork or [])
        milestone.submission_notes = data.notes
        milestone.client_approved = False
        workspace.last_activity = now

        commit_or_raise(self.db, f"milestone {milestone_id} submission")
        logger.info(f"📤 Milestone {milestone_id} submitted for approval")

        self._notify(
            workspace,
            milestone,
            "client",
            "milestone_submitted",
            "Work Submitted",
            f"\"{milestone.title}\" is ready for your review",
        )
        self._push(workspace, milestone, "milestone_updated")
        return workspace, milestone

    def approve(self, workspace_id: str, milestone_id: str, data: ApproveRequest, user: User):
        workspace, role, milestone = self.get_milestone(workspace_id, milestone_id, user)
        self._ensure_open(workspace)
        target = lifecycle.check_transition("approve", role, milestone.status)

        now = utcnow()
        milestone.status = target
        milestone.client_approved = True
        milestone.approved_at = now
        milestone.feedback = data.feedback
        milestone.completed_at = now
        milestone.payment_ready_at = now

        workspace.current_phase = milestone.phase_number + 1
        self._refresh_progress(workspace)
        ledger = dict(workspace.freelancer_ledger or {})
        ledger["completed_milestones"] = ledger.get("completed_milestones", 0) + 1
        workspace.freelancer_ledger = ledger
        workspace.last_activity = now

        commit_or_raise(self.db, f"milestone {milestone_id} approval")
        logger.info(
            f"✅ Milestone {milestone_id} approved, workspace {workspace_id} at "
            f"{workspace.overall_progress}% (phase {workspace.current_phase})"
        )

        try:
            self.payments.mark_ready(milestone.milestone_id)
        except Exception as e:
            # payment_ready_at is already committed; the payment flow can recover from it
            logger.error(f"❌ Payment eligibility signal failed for {milestone.milestone_id}: {e}")

        self._notify(
            workspace,
            milestone,
            "freelancer",
            "milestone_approved",
            "Milestone Approved",
            f"\"{milestone.title}\" was approved and is eligible for payment",
        )
        self._push(workspace, milestone, "milestone_updated")
        return workspace, milestone

    def request_revision(self, workspace_id: str, milestone_id: str, data: RevisionRequest, user: User):
        workspace, role, milestone = self.get_milestone(workspace_id, milestone_id, user)
        self._ensure_open(workspace)
        target = lifecycle.check_transition("request_revision", role, milestone.status)
        if not (data.revisionNotes or "").strip():
            raise ValidationFailure("Revision notes are required")

        now = utcnow()
        milestone.status = target
        milestone.revision_notes = data.revisionNotes
        milestone.revision_requested_at = now
        milestone.revision_count = (milestone.revision_count or 0) + 1
        workspace.last_activity = now

        commit_or_raise(self.db, f"milestone {milestone_id} revision request")
        logger.info(f"🔄 Revision {milestone.revision_count} requested on milestone {milestone_id}")

        self._notify(
            workspace,
            milestone,
            "freelancer",
            "revision_requested",
            "Revision Requested",
            f"The client requested changes to \"{milestone.title}\"",
        )
        self._push(workspace, milestone, "milestone_updated")
        return workspace, milestone

    def release_payment(self, workspace_id: str, milestone_id: str, user: User):
        """Record that the client released an eligible milestone's payment"""
        workspace, role, milestone = self.get_milestone(workspace_id, milestone_id, user)
        if role != "client":
            raise AccessDenied("Only the client can release payments")
        if not milestone.payment_eligible:
            raise InvalidTransition(
                f'Milestone with status "{milestone.status}" is not eligible for payment',
                code="not_payment_eligible",
            )
        if milestone.payment_processed:
            raise InvalidTransition("Payment already released", code="already_paid")

        now = utcnow()
        amount = milestone.amount or 0
        milestone.payment_processed = True
        milestone.payment_processed_at = now

        transaction = {
            "milestone_id": milestone.milestone_id,
            "phase": milestone.phase_number,
            "amount": amount,
            "date": now.isoformat(),
        }
        client_ledger = dict(workspace.client_ledger or {})
        client_ledger["paid_amount"] = client_ledger.get("paid_amount", 0) + amount
        client_ledger["pending_amount"] = max(0, client_ledger.get("pending_amount", 0) - amount)
        client_ledger["transactions"] = list(client_ledger.get("transactions", [])) + [transaction]
        workspace.client_ledger = client_ledger

        freelancer_ledger = dict(workspace.freelancer_ledger or {})
        freelancer_ledger["total_earned"] = freelancer_ledger.get("total_earned", 0) + amount
        freelancer_ledger["pending_earnings"] = max(0, freelancer_ledger.get("pending_earnings", 0) - amount)
        freelancer_ledger["transactions"] = list(freelancer_ledger.get("transactions", [])) + [transaction]
        workspace.freelancer_ledger = freelancer_ledger
        workspace.last_activity = now

        commit_or_raise(self.db, f"milestone {milestone_id} payment release")
        logger.info(f"💸 Payment of {amount} released for milestone {milestone_id}")

        self._notify(
            workspace,
            milestone,
            "freelancer",
            "payment_released",
            "Payment Released",
            f"Payment of {amount:.2f} {workspace.currency} for \"{milestone.title}\" was released",
        )
        self._push(workspace, milestone, "milestone_updated")
        return workspace, milestone

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _ensure_open(workspace: Workspace) -> None:
        """Milestone terms and statuses are frozen once the workspace is closed"""
        if workspace.status != "active":
            raise InvalidTransition(
                f'Workspace is {workspace.status}, milestones can no longer change',
                code="workspace_closed",
            )

    @staticmethod
    def _refresh_progress(workspace: Workspace) -> None:
        workspace.overall_progress = lifecycle.compute_progress(m.status for m in workspace.milestones)

    def _notify(
        self,
        workspace: Workspace,
        milestone: Milestone,
        recipient_role: str,
        kind: str,
        title: str,
        message: str,
    ) -> None:
        payload = {
            "role": recipient_role,
            "title": title,
            "message": message,
            "workspace_id": workspace.workspace_id,
            "milestone_id": milestone.milestone_id,
            "phase": milestone.phase_number,
            "action_path": f"/{recipient_role}/workspace/{workspace.workspace_id}",
        }
        notify_quietly(self.notifier, workspace.party_id(recipient_role), kind, payload)

    def _push(self, workspace: Workspace, milestone: Milestone, event_type: str) -> None:
        event = {
            "type": event_type,
            "workspace_id": workspace.workspace_id,
            "milestone_id": milestone.milestone_id,
            "status": milestone.status,
            "overall_progress": workspace.overall_progress,
        }
        for party_id in (workspace.client_id, workspace.freelancer_id):
            publish_quietly(self.realtime, party_id, event)
