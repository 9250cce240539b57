"""Contract service - Business logic for contract negotiation and signing"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ...config import CONTRACT_RESPONSE_DAYS, DEFAULT_CONTRACT_DAYS, DEFAULT_CURRENCY
from ...errors import (
    AccessDenied,
    DependencyFailure,
    DomainError,
    InvalidTransition,
    NotFound,
    ValidationFailure,
)
from ...models import Contract, User, utcnow
from ...models_workspace import Workspace
from ...services.notification_service import NotificationEmitter, notify_quietly
from ...services.realtime import RealtimeChannel, publish_quietly
from ..milestones.lifecycle import COMPLETED, phase_status
from ..workspaces.provisioner import WorkspaceProvisioner
from ..workspaces.repository import WorkspaceRepository
from . import signing
from .repository import ContractRepository
from .schemas import (
    ContractCreate,
    ContractResponse,
    ContractUpdate,
    PhaseInput,
    PhaseResponse,
    SigningStatusResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_SIGNATURE = "Digital Signature"

# (share of budget, title, description, days after start, deliverables)
DEFAULT_PHASE_TEMPLATE = (
    (
        0.3,
        "Initial Planning & Design",
        "Project planning, requirements gathering, and initial design",
        10,
        ["Project plan", "Requirements document", "Initial designs"],
    ),
    (
        0.5,
        "Development Phase",
        "Core development and implementation",
        20,
        ["Core functionality", "Progress demo"],
    ),
    (
        0.2,
        "Final Delivery",
        "Testing, refinements, and final delivery",
        30,
        ["Final deliverables", "Documentation", "Handover"],
    ),
)


def default_phases(total_budget: float, start_date) -> list[dict]:
    return [
        {
            "phase": index,
            "title": title,
            "description": description,
            "amount": round(total_budget * share, 2),
            "due_date": start_date + timedelta(days=days),
            "deliverables": list(deliverables),
        }
        for index, (share, title, description, days, deliverables) in enumerate(
            DEFAULT_PHASE_TEMPLATE, start=1
        )
    ]


def validate_phases(phases: list[PhaseInput], total_budget: float) -> list[dict]:
    """Check ordinals and amounts; returns column dicts for ContractPhase"""
    seen = set()
    rows = []
    for phase in phases:
        if phase.phase < 1:
            raise ValidationFailure(f"Phase ordinal must be 1 or greater, got {phase.phase}")
        if phase.phase in seen:
            raise ValidationFailure(f"Duplicate phase ordinal: {phase.phase}")
        if phase.amount < 0:
            raise ValidationFailure(f"Phase {phase.phase} amount cannot be negative")
        if not (phase.title or "").strip():
            raise ValidationFailure(f"Phase {phase.phase} title is required")
        seen.add(phase.phase)
        rows.append(
            {
                "phase": phase.phase,
                "title": phase.title.strip(),
                "description": phase.description,
                "amount": phase.amount,
                "due_date": phase.dueDate,
                "deliverables": list(phase.deliverables or []),
            }
        )

    phase_total = sum(row["amount"] for row in rows)
    if rows and phase_total > total_budget:
        logger.warning(
            f"⚠️ Phase amounts ({phase_total:.2f}) exceed the contract budget ({total_budget:.2f})"
        )
    return sorted(rows, key=lambda row: row["phase"])


class ContractService:
    """Service layer for contract business logic"""

    def __init__(
        self,
        db: Session,
        notifier: NotificationEmitter,
        realtime: RealtimeChannel,
        provisioner: Optional[WorkspaceProvisioner] = None,
    ):
        self.db = db
        self.notifier = notifier
        self.realtime = realtime
        self.provisioner = provisioner or WorkspaceProvisioner(db, notifier, realtime)
        self.repo = ContractRepository()
        self.workspace_repo = WorkspaceRepository()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_contract(self, public_id: str, user: User) -> Contract:
        """Get a contract the user is a party to"""
        contract = self.repo.get_contract_for_party(self.db, public_id, user.id)
        if not contract:
            raise NotFound("Contract not found")
        return contract

    def list_contracts(
        self,
        user: User,
        role: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Contract], int]:
        return self.repo.get_contracts_for_party(self.db, user.id, role, status, page, limit)

    def get_signing_status(self, public_id: str, user: User) -> SigningStatusResponse:
        contract = self.get_contract(public_id, user)
        return SigningStatusResponse(
            clientSigned=contract.client_signed,
            freelancerSigned=contract.freelancer_signed,
            clientSignedAt=contract.client_signed_at,
            freelancerSignedAt=contract.freelancer_signed_at,
            bothSigned=contract.both_signed,
            status=contract.status,
        )

    def build_response(self, contract: Contract) -> ContractResponse:
        """Contract as the API shows it, phase status read from the workspace milestones"""
        workspace = self.workspace_repo.get_by_contract_id(self.db, contract.id)
        milestones = {m.phase_number: m for m in workspace.milestones} if workspace else {}

        return ContractResponse(
            id=contract.public_id,
            status=contract.status,
            title=contract.title,
            description=contract.description,
            terms=contract.terms,
            serviceType=contract.service_type,
            timeline=contract.timeline,
            totalBudget=contract.total_budget,
            currency=contract.currency,
            startDate=contract.start_date,
            endDate=contract.end_date,
            proposalId=contract.proposal_id,
            projectId=contract.project_id,
            clientId=contract.client_id,
            clientName=contract.client.display_name if contract.client else None,
            freelancerId=contract.freelancer_id,
            freelancerName=contract.freelancer.display_name if contract.freelancer else None,
            phases=[
                PhaseResponse(
                    phase=phase.phase,
                    title=phase.title,
                    description=phase.description,
                    amount=phase.amount,
                    dueDate=phase.due_date,
                    deliverables=list(phase.deliverables or []),
                    status=phase_status(milestones.get(phase.phase)),
                )
                for phase in contract.phases
            ],
            clientSigned=contract.client_signed,
            clientSignedAt=contract.client_signed_at,
            freelancerSigned=contract.freelancer_signed,
            freelancerSignedAt=contract.freelancer_signed_at,
            workspaceId=contract.workspace_id,
            sentAt=contract.sent_at,
            cancelledAt=contract.cancelled_at,
            cancelReason=contract.cancel_reason,
            declinedAt=contract.declined_at,
            declineReason=contract.decline_reason,
            completedAt=contract.completed_at,
            createdAt=contract.created_at,
        )

    # ------------------------------------------------------------------
    # Drafting
    # ------------------------------------------------------------------

    def create_contract(self, data: ContractCreate, user: User) -> Contract:
        """Create a draft contract with the caller as client"""
        logger.info(f"📥 Creating contract for client {user.id} and freelancer {data.freelancerId}")

        if data.freelancerId == user.id:
            raise ValidationFailure("Client and freelancer must be different users")
        freelancer = self.repo.get_user_by_id(self.db, data.freelancerId)
        if not freelancer:
            raise NotFound("Freelancer not found")
        if not (data.title or "").strip():
            raise ValidationFailure("Contract title is required")
        if not (data.terms or "").strip():
            raise ValidationFailure("Contract terms are required")
        if data.totalBudget is None or data.totalBudget <= 0:
            raise ValidationFailure("Total budget must be greater than zero")

        if data.proposalId:
            existing = self.repo.get_contract_by_proposal(self.db, data.proposalId)
            if existing and existing.status not in ("cancelled", "declined"):
                raise InvalidTransition(
                    f"A contract already exists for proposal {data.proposalId}",
                    code="duplicate_contract",
                )

        start_date = data.startDate or utcnow()
        end_date = data.endDate or start_date + timedelta(days=DEFAULT_CONTRACT_DAYS)
        if end_date < start_date:
            raise ValidationFailure("End date cannot be before start date")

        if data.phases is None:
            phases = default_phases(data.totalBudget, start_date)
        else:
            phases = validate_phases(data.phases, data.totalBudget)

        try:
            contract = self.repo.create_contract(
                self.db,
                phases,
                client_id=user.id,
                freelancer_id=freelancer.id,
                proposal_id=data.proposalId,
                project_id=data.projectId,
                title=data.title.strip(),
                description=data.description,
                terms=data.terms,
                service_type=data.serviceType or "general",
                timeline=data.timeline or f"{(end_date - start_date).days} days",
                total_budget=data.totalBudget,
                currency=data.currency or DEFAULT_CURRENCY,
                start_date=start_date,
                end_date=end_date,
                status="draft",
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create contract: {e}")
            raise DependencyFailure("Contract could not be saved")

        logger.info(f"✅ Contract {contract.public_id} created with {len(contract.phases)} phase(s)")
        return contract

    def update_contract(self, public_id: str, data: ContractUpdate, user: User) -> Contract:
        """Edit the terms of a draft contract"""
        contract = self.get_contract(public_id, user)
        if contract.role_of(user.id) != signing.CLIENT:
            raise AccessDenied("Only the client can edit a contract")
        if contract.status != "draft":
            raise InvalidTransition(f'Cannot edit contract with status: "{contract.status}"')

        if data.title is not None:
            if not data.title.strip():
                raise ValidationFailure("Contract title is required")
            contract.title = data.title.strip()
        if data.terms is not None:
            if not data.terms.strip():
                raise ValidationFailure("Contract terms are required")
            contract.terms = data.terms
        if data.totalBudget is not None:
            if data.totalBudget <= 0:
                raise ValidationFailure("Total budget must be greater than zero")
            contract.total_budget = data.totalBudget
        if data.description is not None:
            contract.description = data.description
        if data.serviceType is not None:
            contract.service_type = data.serviceType
        if data.timeline is not None:
            contract.timeline = data.timeline
        if data.currency is not None:
            contract.currency = data.currency
        if data.startDate is not None:
            contract.start_date = data.startDate
        if data.endDate is not None:
            contract.end_date = data.endDate
        if contract.start_date and contract.end_date and contract.end_date < contract.start_date:
            self.db.rollback()
            raise ValidationFailure("End date cannot be before start date")
        if data.phases is not None:
            rows = validate_phases(data.phases, contract.total_budget)
            self.repo.replace_phases(self.db, contract, rows)

        self._save(contract, "edit")
        logger.info(f"✏️ Contract {public_id} updated")
        return contract

    def send_contract(self, public_id: str, user: User) -> Contract:
        """Hand a draft to the freelancer for review and signature"""
        contract = self.get_contract(public_id, user)
        if contract.role_of(user.id) != signing.CLIENT:
            raise AccessDenied("Only the client can send a contract")
        if contract.status != "draft":
            raise InvalidTransition(f'Cannot send contract with status: "{contract.status}"')

        now = utcnow()
        contract.status = "sent"
        contract.sent_at = now
        self._save(contract, "send")
        logger.info(f"📤 Contract {public_id} sent to freelancer {contract.freelancer_id}")

        self._notify(
            contract,
            signing.FREELANCER,
            "contract_sent",
            "New Contract",
            f"{self._name(contract, signing.CLIENT)} sent you a contract: {contract.title}",
            # Advisory only; pending signatures never expire
            respond_by=(now + timedelta(days=CONTRACT_RESPONSE_DAYS)).isoformat(),
        )
        return contract

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def sign_contract(self, public_id: str, signature: Optional[str], user: User):
        """Record the caller's signature. Returns (contract, workspace or None)"""
        contract = self.get_contract(public_id, user)
        role = signing.ensure_party(contract.role_of(user.id))
        already_signed = contract.client_signed if role == signing.CLIENT else contract.freelancer_signed
        signing.ensure_can_sign(role, contract.status, already_signed)

        token = (signature or "").strip() or DEFAULT_SIGNATURE
        now = utcnow()
        if role == signing.CLIENT:
            contract.client_signed = True
            contract.client_signature = token
            contract.client_signed_at = now
        else:
            contract.freelancer_signed = True
            contract.freelancer_signature = token
            contract.freelancer_signed_at = now
        contract.status = signing.next_status(
            contract.status, contract.client_signed, contract.freelancer_signed
        )

        self._save(contract, "signature")
        logger.info(f"✍️ Contract {public_id} signed by {role}, status now {contract.status}")

        if contract.status != signing.ACTIVE:
            counterpart = signing.FREELANCER if role == signing.CLIENT else signing.CLIENT
            self._notify(
                contract,
                counterpart,
                "contract_signed",
                "Contract Signed",
                f"{self._name(contract, role)} signed \"{contract.title}\". Your signature is needed.",
            )
            return contract, None

        for party in (signing.CLIENT, signing.FREELANCER):
            self._notify(
                contract,
                party,
                "contract_activated",
                "Contract Active",
                f"\"{contract.title}\" is fully signed and active",
            )

        # Provisioning failure must not undo the signature; the sweep retries it
        try:
            workspace = self.provisioner.provision(contract)
        except DomainError as e:
            logger.error(f"❌ Workspace provisioning failed for contract {public_id}: {e}")
            return contract, None
        return contract, workspace

    def ensure_workspace(self, public_id: str, user: User) -> Workspace:
        """Idempotently provision the workspace of an active contract"""
        contract = self.get_contract(public_id, user)
        return self.provisioner.provision(contract)

    # ------------------------------------------------------------------
    # Withdrawal and completion
    # ------------------------------------------------------------------

    def decline_contract(self, public_id: str, reason: Optional[str], user: User) -> Contract:
        contract = self.get_contract(public_id, user)
        signing.ensure_can_decline(contract.role_of(user.id), contract.status, contract.freelancer_signed)

        contract.status = "declined"
        contract.declined_at = utcnow()
        contract.decline_reason = reason
        self._save(contract, "decline")
        logger.info(f"🚫 Contract {public_id} declined by freelancer")

        self._notify(
            contract,
            signing.CLIENT,
            "contract_declined",
            "Contract Declined",
            f"{self._name(contract, signing.FREELANCER)} declined \"{contract.title}\"",
            reason=reason,
        )
        return contract

    def cancel_contract(self, public_id: str, reason: Optional[str], user: User) -> Contract:
        contract = self.get_contract(public_id, user)
        signing.ensure_can_cancel(contract.role_of(user.id), contract.status)

        was_visible_to_freelancer = contract.status != "draft"
        contract.status = "cancelled"
        contract.cancelled_at = utcnow()
        contract.cancel_reason = reason
        self._save(contract, "cancellation")
        logger.info(f"🛑 Contract {public_id} cancelled by client")

        if was_visible_to_freelancer:
            self._notify(
                contract,
                signing.FREELANCER,
                "contract_cancelled",
                "Contract Cancelled",
                f"{self._name(contract, signing.CLIENT)} cancelled \"{contract.title}\"",
                reason=reason,
            )
        return contract

    def complete_contract(self, public_id: str, user: User) -> Contract:
        """Close an active contract once every milestone is completed"""
        contract = self.get_contract(public_id, user)
        if contract.role_of(user.id) != signing.CLIENT:
            raise AccessDenied("Only the client can complete a contract")
        if contract.status != signing.ACTIVE:
            raise InvalidTransition(f'Cannot complete contract with status: "{contract.status}"')

        workspace = self.workspace_repo.get_by_contract_id(self.db, contract.id)
        if not workspace:
            raise InvalidTransition("Contract has no workspace yet", code="no_workspace")
        open_milestones = [m for m in workspace.milestones if m.status != COMPLETED]
        if open_milestones:
            raise InvalidTransition(
                f"{len(open_milestones)} milestone(s) are not completed yet",
                code="milestones_open",
            )

        now = utcnow()
        contract.status = "completed"
        contract.completed_at = now
        workspace.status = "completed"
        workspace.overall_progress = 100
        workspace.last_activity = now
        self._save(contract, "completion")
        logger.info(f"🏁 Contract {public_id} completed")

        self._notify(
            contract,
            signing.FREELANCER,
            "contract_completed",
            "Contract Completed",
            f"\"{contract.title}\" was marked as completed",
        )
        return contract

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _save(self, contract: Contract, action: str) -> None:
        """Commit a contract transition; a concurrent writer makes it fail, never overwrite"""
        try:
            self.repo.save(self.db, contract)
        except StaleDataError:
            self.db.rollback()
            logger.warning(f"⚠️ Contract {contract.public_id} {action} lost a concurrent update")
            raise InvalidTransition(
                "Contract was modified concurrently, reload and retry", code="conflict"
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to save contract {contract.public_id} ({action}): {e}")
            raise DependencyFailure("Contract could not be saved")

    @staticmethod
    def _name(contract: Contract, role: str) -> str:
        party = contract.client if role == signing.CLIENT else contract.freelancer
        return party.display_name if party else role.capitalize()

    def _notify(self, contract: Contract, role: str, kind: str, title: str, message: str, **extra) -> None:
        party_id = contract.client_id if role == signing.CLIENT else contract.freelancer_id
        action_path = f"/{role}/contracts/{contract.public_id}"
        payload = {
            "role": role,
            "title": title,
            "message": message,
            "contract_id": contract.public_id,
            "contract_title": contract.title,
            "status": contract.status,
            "action_path": action_path,
            **extra,
        }
        notify_quietly(self.notifier, party_id, kind, payload)
        publish_quietly(
            self.realtime,
            party_id,
            {"type": kind, "contract_id": contract.public_id, "status": contract.status},
        )
