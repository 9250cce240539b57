"""Contract repository - Database operations for contracts"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models import Contract, ContractPhase, User


class ContractRepository:
    """Repository for contract database operations"""

    @staticmethod
    def get_contract_by_public_id(db: Session, public_id: str) -> Optional[Contract]:
        """Get a contract by public UUID"""
        return db.query(Contract).filter(Contract.public_id == public_id).first()

    @staticmethod
    def get_contract_for_party(db: Session, public_id: str, user_id: int) -> Optional[Contract]:
        """Get a contract only if the user is one of its parties"""
        return (
            db.query(Contract)
            .filter(
                Contract.public_id == public_id,
                or_(Contract.client_id == user_id, Contract.freelancer_id == user_id),
            )
            .first()
        )

    @staticmethod
    def get_contracts_for_party(
        db: Session,
        user_id: int,
        role: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Contract], int]:
        """Page through a user's contracts, newest first. Returns (items, total)"""
        if role == "client":
            query = db.query(Contract).filter(Contract.client_id == user_id)
        elif role == "freelancer":
            query = db.query(Contract).filter(Contract.freelancer_id == user_id)
        else:
            query = db.query(Contract).filter(
                or_(Contract.client_id == user_id, Contract.freelancer_id == user_id)
            )

        if status and status != "all":
            query = query.filter(Contract.status == status)

        total = query.count()
        items = (
            query.order_by(Contract.created_at.desc(), Contract.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total

    @staticmethod
    def get_contract_by_proposal(db: Session, proposal_id: str) -> Optional[Contract]:
        return db.query(Contract).filter(Contract.proposal_id == proposal_id).first()

    @staticmethod
    def get_active_contracts_without_workspace(db: Session, limit: int = 50) -> list[Contract]:
        """Active contracts whose provisioning never completed"""
        return (
            db.query(Contract)
            .filter(
                Contract.status == "active",
                Contract.client_signed.is_(True),
                Contract.freelancer_signed.is_(True),
                Contract.workspace_id.is_(None),
            )
            .order_by(Contract.id)
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def create_contract(db: Session, phases: list[dict], **contract_data) -> Contract:
        """Create a new contract with its phase terms"""
        contract = Contract(**contract_data)
        contract.phases = [ContractPhase(**phase) for phase in phases]
        db.add(contract)
        db.commit()
        db.refresh(contract)
        return contract

    @staticmethod
    def replace_phases(db: Session, contract: Contract, phases: list[dict]) -> None:
        # Old rows must be deleted before re-inserting the same ordinals
        contract.phases = []
        db.flush()
        contract.phases = [ContractPhase(**phase) for phase in phases]

    @staticmethod
    def save(db: Session, contract: Contract) -> Contract:
        """Commit pending changes; raises StaleDataError if another writer got there first"""
        db.commit()
        db.refresh(contract)
        return contract
