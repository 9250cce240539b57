"""
Workspace provisioning.

Turns a fully signed contract into exactly one collaboration workspace.
provision() is idempotent and safe to re-enter from scratch with only the
contract: it looks the workspace up by contract first, and a lost creation
race (unique contract_id, or the contract row bumped by the winner) is
resolved by re-reading the canonical workspace instead of failing the caller.
"""

import logging
from datetime import timedelta

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ...config import DEFAULT_CONTRACT_DAYS, PROVISION_MAX_ATTEMPTS
from ...errors import DependencyFailure, InvalidTransition
from ...models import Contract, utcnow
from ...models_workspace import (
    Milestone,
    Workspace,
    WorkspaceMessage,
    empty_client_ledger,
    empty_freelancer_ledger,
    generate_item_id,
    generate_milestone_id,
    generate_workspace_id,
)
from ...services.notification_service import NotificationEmitter, notify_quietly
from ...services.realtime import RealtimeChannel, publish_quietly
from .repository import WorkspaceRepository

logger = logging.getLogger(__name__)


class WorkspaceProvisioner:
    def __init__(
        self,
        db: Session,
        notifier: NotificationEmitter,
        realtime: RealtimeChannel,
        max_attempts: int = PROVISION_MAX_ATTEMPTS,
    ):
        self.db = db
        self.notifier = notifier
        self.realtime = realtime
        self.max_attempts = max(1, max_attempts)
        self.repo = WorkspaceRepository()

    def provision(self, contract: Contract) -> Workspace:
        """Return the contract's workspace, creating it on first call"""
        if not contract.both_signed or contract.status != "active":
            raise InvalidTransition(
                f"Contract {contract.public_id} is not fully signed "
                f"(client: {contract.client_signed}, freelancer: {contract.freelancer_signed})",
                code="not_fully_signed",
            )

        contract_pk = contract.id
        contract_public_id = contract.public_id
        last_error = None

        for attempt in range(1, self.max_attempts + 1):
            existing = self.repo.get_by_contract_id(self.db, contract_pk)
            if existing:
                logger.info(f"✅ Workspace already exists: {existing.workspace_id}")
                self._repair_reference(contract, existing)
                return existing

            workspace = self._build_workspace(contract)
            self.repo.add(self.db, workspace)
            contract.workspace_id = workspace.workspace_id

            try:
                self.db.commit()
            except (IntegrityError, StaleDataError) as e:
                # Another provisioner created the workspace between our lookup and insert
                self.db.rollback()
                logger.info(
                    f"🔁 Concurrent provisioning detected for contract {contract_public_id}, "
                    f"re-reading canonical workspace"
                )
                canonical = self.repo.get_by_contract_id(self.db, contract_pk)
                if canonical:
                    self.db.refresh(contract)
                    self._repair_reference(contract, canonical)
                    return canonical
                last_error = e
            except OperationalError as e:
                self.db.rollback()
                last_error = e
                logger.warning(
                    f"⚠️ Provisioning attempt {attempt}/{self.max_attempts} for contract "
                    f"{contract_public_id} failed: {e}"
                )
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"❌ Error creating workspace for contract {contract_public_id}: {e}")
                raise DependencyFailure(
                    f"Workspace could not be created for contract {contract_public_id}"
                )
            else:
                self.db.refresh(workspace)
                logger.info(
                    f"✅ Workspace {workspace.workspace_id} created for contract "
                    f"{contract_public_id} with {len(workspace.milestones)} milestone(s)"
                )
                self._announce(workspace, contract)
                return workspace

        logger.error(
            f"❌ Provisioning gave up for contract {contract_public_id} after "
            f"{self.max_attempts} attempt(s): {last_error}"
        )
        raise DependencyFailure(f"Workspace could not be created for contract {contract_public_id}")

    def _repair_reference(self, contract: Contract, workspace: Workspace) -> None:
        """Point the contract at its workspace if the write-back never landed"""
        for _ in range(self.max_attempts):
            if contract.workspace_id == workspace.workspace_id:
                return
            contract.workspace_id = workspace.workspace_id
            try:
                self.db.commit()
                logger.info(
                    f"🔧 Contract {contract.public_id} re-linked to workspace {workspace.workspace_id}"
                )
                return
            except StaleDataError:
                self.db.rollback()
                self.db.refresh(contract)
        # Left for the reconciliation sweep
        logger.warning(f"⚠️ Could not re-link contract {contract.id} to {workspace.workspace_id}")

    def _build_workspace(self, contract: Contract) -> Workspace:
        now = utcnow()
        budget = contract.total_budget or 0
        start_date = contract.start_date or now
        end_date = contract.end_date or now + timedelta(days=DEFAULT_CONTRACT_DAYS)
        client_name = contract.client.display_name if contract.client else "Client"
        freelancer_name = contract.freelancer.display_name if contract.freelancer else "Freelancer"

        workspace = Workspace(
            workspace_id=generate_workspace_id(),
            contract_id=contract.id,
            project_id=contract.project_id,
            client_id=contract.client_id,
            freelancer_id=contract.freelancer_id,
            title=contract.title or "Project Workspace",
            description=contract.description or f"Collaboration workspace for {contract.title}",
            status="active",
            current_phase=1,
            overall_progress=0,
            start_date=start_date,
            estimated_end_date=end_date,
            total_budget=budget,
            currency=contract.currency,
            service_type=contract.service_type or "general",
            last_activity=now,
            unread_client=0,
            unread_freelancer=0,
            client_ledger=empty_client_ledger(budget),
            freelancer_ledger=empty_freelancer_ledger(budget),
        )
        workspace.milestones = self._seed_milestones(contract, start_date, end_date)
        workspace.messages = [
            WorkspaceMessage(
                message_id=generate_item_id("msg"),
                sender_id=contract.client_id,
                sender_role="client",
                content=f"Welcome to the workspace! I'm {client_name}, looking forward to working with you.",
                read_by=[contract.client_id],
                created_at=now,
            ),
            WorkspaceMessage(
                message_id=generate_item_id("msg"),
                sender_id=contract.freelancer_id,
                sender_role="freelancer",
                content=f"Thanks {client_name}! I'm {freelancer_name}, excited to start this project.",
                read_by=[contract.freelancer_id],
                created_at=now + timedelta(seconds=1),
            ),
        ]
        return workspace

    @staticmethod
    def _seed_milestones(contract: Contract, start_date, end_date) -> list[Milestone]:
        """One milestone per agreed phase, or a single one for the whole project"""
        if not contract.phases:
            return [
                Milestone(
                    milestone_id=generate_milestone_id(),
                    phase_number=1,
                    title="Complete Project",
                    description="Complete the project as per agreement",
                    amount=contract.total_budget or 0,
                    due_date=end_date,
                    deliverables=["Final project delivery"],
                    status="pending",
                )
            ]

        return [
            Milestone(
                milestone_id=generate_milestone_id(),
                phase_number=phase.phase,
                title=phase.title or f"Phase {phase.phase}",
                description=phase.description or f"Phase {phase.phase} completion",
                amount=phase.amount,
                due_date=phase.due_date or start_date + timedelta(days=phase.phase * 10),
                deliverables=list(phase.deliverables or [f"Deliverable for phase {phase.phase}"]),
                status="pending",
            )
            for phase in contract.phases
        ]

    def _announce(self, workspace: Workspace, contract: Contract) -> None:
        """Role-scoped workspace_created notifications; never fails provisioning"""
        client_name = contract.client.display_name if contract.client else "Client"
        freelancer_name = contract.freelancer.display_name if contract.freelancer else "Freelancer"

        for role, party_id, counterpart in (
            ("client", workspace.client_id, freelancer_name),
            ("freelancer", workspace.freelancer_id, client_name),
        ):
            action_path = f"/{role}/workspace/{workspace.workspace_id}"
            notify_quietly(
                self.notifier,
                party_id,
                "workspace_created",
                {
                    "role": role,
                    "title": "Workspace Created",
                    "message": f"Your workspace with {counterpart} is ready!",
                    "workspace_id": workspace.workspace_id,
                    "contract_id": contract.public_id,
                    "project_title": workspace.title,
                    "action_path": action_path,
                },
            )
            publish_quietly(
                self.realtime,
                party_id,
                {
                    "type": "workspace_created",
                    "workspace_id": workspace.workspace_id,
                    "title": workspace.title,
                    "redirect_url": action_path,
                    "role": role,
                },
            )
