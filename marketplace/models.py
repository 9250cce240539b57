import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    # Subject of the already-verified bearer token (set by the identity provider)
    auth_uid = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=True)
    account_type = Column(String(50), nullable=True)  # client, freelancer (informational only)
    company_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    client_contracts = relationship(
        "Contract", back_populates="client", foreign_keys="Contract.client_id"
    )
    freelancer_contracts = relationship(
        "Contract", back_populates="freelancer", foreign_keys="Contract.freelancer_id"
    )
    notifications = relationship("Notification", back_populates="user")

    @property
    def display_name(self) -> str:
        return self.full_name or self.email or f"User {self.id}"


class Contract(Base):
    __tablename__ = "contracts"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(
        String(36), unique=True, nullable=False, index=True, default=generate_public_id
    )
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    freelancer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # Originating proposal / job, owned by the listing side of the marketplace
    proposal_id = Column(String(100), nullable=True, index=True)
    project_id = Column(String(100), nullable=True)

    title = Column(String(255), nullable=False)
    description = Column(String(2000), nullable=True)
    terms = Column(Text, nullable=False)
    service_type = Column(String(100), default="general")
    timeline = Column(String(100), nullable=True)  # e.g. "30 days"

    # Financial terms
    total_budget = Column(Float, nullable=False)
    currency = Column(String(10), default="USD")

    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)

    # Status workflow: draft → sent → pending_freelancer/pending_client → active → completed
    # cancelled: client withdrew before activation
    # declined: freelancer refused before signing
    status = Column(String(50), default="draft", nullable=False, index=True)

    # Client signature record
    client_signed = Column(Boolean, default=False, nullable=False)
    client_signature = Column(String(10000), nullable=True)  # Opaque token, not verified
    client_signed_at = Column(DateTime, nullable=True)
    # Freelancer signature record
    freelancer_signed = Column(Boolean, default=False, nullable=False)
    freelancer_signature = Column(String(10000), nullable=True)
    freelancer_signed_at = Column(DateTime, nullable=True)

    # Public id of the provisioned workspace; null until provisioning succeeds
    workspace_id = Column(String(64), nullable=True, index=True)

    sent_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancel_reason = Column(String(2000), nullable=True)
    declined_at = Column(DateTime, nullable=True)
    decline_reason = Column(String(2000), nullable=True)
    completed_at = Column(DateTime, nullable=True)

    # Optimistic concurrency: every UPDATE is conditional on the version we read
    version_id = Column(Integer, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version_id}

    client = relationship("User", back_populates="client_contracts", foreign_keys=[client_id])
    freelancer = relationship(
        "User", back_populates="freelancer_contracts", foreign_keys=[freelancer_id]
    )
    phases = relationship(
        "ContractPhase",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="ContractPhase.phase",
    )

    @property
    def both_signed(self) -> bool:
        return bool(self.client_signed and self.freelancer_signed)

    def role_of(self, user_id: int):
        """Derive the caller's role from the stored party references"""
        if user_id == self.client_id:
            return "client"
        if user_id == self.freelancer_id:
            return "freelancer"
        return None


class ContractPhase(Base):
    """Agreed phase terms. Phase status is read from the workspace milestone."""

    __tablename__ = "contract_phases"
    __table_args__ = (UniqueConstraint("contract_id", "phase", name="uq_contract_phase"),)

    id = Column(Integer, primary_key=True, index=True)
    contract_id = Column(Integer, ForeignKey("contracts.id"), nullable=False, index=True)
    phase = Column(Integer, nullable=False)  # Ordinal, starts at 1
    title = Column(String(255), nullable=False)
    description = Column(String(2000), nullable=True)
    amount = Column(Float, nullable=False, default=0)
    due_date = Column(DateTime, nullable=True)
    deliverables = Column(JSON, default=list)

    contract = relationship("Contract", back_populates="phases")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    notification_id = Column(
        String(36), unique=True, nullable=False, index=True, default=generate_public_id
    )
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    user_role = Column(String(20), nullable=True)
    type = Column(String(50), nullable=False)  # contract_sent, workspace_created, ...
    title = Column(String(255), nullable=True)
    message = Column(String(2000), nullable=True)
    payload = Column(JSON, default=dict)
    action_url = Column(String(500), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="notifications")
