"""
Collaboration workspace models.

A workspace is created once per fully signed contract. Its data is partitioned
into a shared section (both parties) and one private section per party.
"""

import uuid

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


def generate_workspace_id():
    return f"ws_{uuid.uuid4().hex}"


def generate_milestone_id():
    return f"ml_{uuid.uuid4().hex}"


def generate_item_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


def empty_client_ledger(total_budget: float) -> dict:
    return {
        "total_budget": total_budget,
        "paid_amount": 0.0,
        "pending_amount": total_budget,
        "transactions": [],
    }


def empty_freelancer_ledger(total_budget: float) -> dict:
    return {
        "total_earned": 0.0,
        "pending_earnings": total_budget,
        "completed_milestones": 0,
        "transactions": [],
    }


class Workspace(Base):
    __tablename__ = "workspaces"

    id = Column(Integer, primary_key=True, index=True)
    workspace_id = Column(
        String(64), unique=True, nullable=False, index=True, default=generate_workspace_id
    )
    # Unique: storage backstop for "one workspace per contract"
    contract_id = Column(Integer, ForeignKey("contracts.id"), nullable=False, unique=True)
    project_id = Column(String(100), nullable=True)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    freelancer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Shared partition
    title = Column(String(255), nullable=False)
    description = Column(String(2000), nullable=True)
    # Status workflow: active → completed (paused/terminated are set by project management)
    status = Column(String(20), default="active", nullable=False)
    current_phase = Column(Integer, default=1, nullable=False)
    overall_progress = Column(Integer, default=0, nullable=False)  # 0-100
    start_date = Column(DateTime, nullable=True)
    estimated_end_date = Column(DateTime, nullable=True)
    total_budget = Column(Float, default=0)
    currency = Column(String(10), default="USD")
    service_type = Column(String(100), default="general")
    last_activity = Column(DateTime, nullable=True)
    unread_client = Column(Integer, default=0, nullable=False)
    unread_freelancer = Column(Integer, default=0, nullable=False)

    # Private partitions: ledgers (notes and files live in their own tables)
    client_ledger = Column(JSON, default=dict)
    freelancer_ledger = Column(JSON, default=dict)

    version_id = Column(Integer, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version_id}

    contract = relationship("Contract")
    milestones = relationship(
        "Milestone",
        back_populates="workspace",
        cascade="all, delete-orphan",
        order_by="Milestone.phase_number",
    )
    messages = relationship(
        "WorkspaceMessage",
        back_populates="workspace",
        cascade="all, delete-orphan",
        order_by="WorkspaceMessage.id",
    )
    notes = relationship(
        "WorkspaceNote",
        back_populates="workspace",
        cascade="all, delete-orphan",
        order_by="WorkspaceNote.id",
    )
    files = relationship(
        "WorkspaceFile",
        back_populates="workspace",
        cascade="all, delete-orphan",
        order_by="WorkspaceFile.id",
    )
    calls = relationship(
        "WorkspaceCall",
        back_populates="workspace",
        cascade="all, delete-orphan",
        order_by="WorkspaceCall.scheduled_time",
    )

    def role_of(self, user_id: int):
        if user_id == self.client_id:
            return "client"
        if user_id == self.freelancer_id:
            return "freelancer"
        return None

    def party_id(self, role: str) -> int:
        return self.client_id if role == "client" else self.freelancer_id


class WorkspaceMessage(Base):
    __tablename__ = "workspace_messages"

    id = Column(Integer, primary_key=True, index=True)
    message_id = Column(String(40), unique=True, nullable=False, index=True)
    workspace_pk = Column(Integer, ForeignKey("workspaces.id"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    sender_role = Column(String(20), nullable=False)
    content = Column(Text, nullable=False)
    message_type = Column(String(20), default="text")
    attachments = Column(JSON, default=list)
    read_by = Column(JSON, default=list)  # user ids
    created_at = Column(DateTime, nullable=False)

    workspace = relationship("Workspace", back_populates="messages")


class WorkspaceNote(Base):
    """Private note, visible only to owner_role"""

    __tablename__ = "workspace_notes"

    id = Column(Integer, primary_key=True, index=True)
    note_id = Column(String(40), unique=True, nullable=False, index=True)
    workspace_pk = Column(Integer, ForeignKey("workspaces.id"), nullable=False, index=True)
    owner_role = Column(String(20), nullable=False)  # client, freelancer
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    workspace = relationship("Workspace", back_populates="notes")


class WorkspaceFile(Base):
    """File metadata only; the bytes live in external storage"""

    __tablename__ = "workspace_files"

    id = Column(Integer, primary_key=True, index=True)
    file_id = Column(String(40), unique=True, nullable=False, index=True)
    workspace_pk = Column(Integer, ForeignKey("workspaces.id"), nullable=False, index=True)
    # shared, client (client-private) or freelancer (freelancer-private)
    visibility = Column(String(20), default="shared", nullable=False)
    filename = Column(String(255), nullable=False)
    file_url = Column(String(1000), nullable=False)
    file_type = Column(String(100), nullable=True)
    file_size = Column(Integer, nullable=True)
    description = Column(String(1000), nullable=True)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    uploader_role = Column(String(20), nullable=False)
    uploaded_at = Column(DateTime, nullable=False)

    workspace = relationship("Workspace", back_populates="files")


class WorkspaceCall(Base):
    """Scheduled call; room provisioning is done by the video provider"""

    __tablename__ = "workspace_calls"

    id = Column(Integer, primary_key=True, index=True)
    call_id = Column(String(40), unique=True, nullable=False, index=True)
    workspace_pk = Column(Integer, ForeignKey("workspaces.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    room_url = Column(String(1000), nullable=True)
    scheduled_time = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, default=30)
    status = Column(String(20), default="scheduled")
    scheduled_by = Column(Integer, ForeignKey("users.id"), nullable=False)

    workspace = relationship("Workspace", back_populates="calls")


class Milestone(Base):
    """Canonical milestone entity, owned by the workspace"""

    __tablename__ = "milestones"
    __table_args__ = (
        UniqueConstraint("workspace_pk", "phase_number", name="uq_workspace_phase"),
    )

    id = Column(Integer, primary_key=True, index=True)
    milestone_id = Column(
        String(64), unique=True, nullable=False, index=True, default=generate_milestone_id
    )
    workspace_pk = Column(Integer, ForeignKey("workspaces.id"), nullable=False, index=True)
    phase_number = Column(Integer, nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(String(2000), nullable=True)
    amount = Column(Float, default=0, nullable=False)
    due_date = Column(DateTime, nullable=True)
    deliverables = Column(JSON, default=list)

    # Status workflow: pending → in_progress → awaiting_approval → completed
    #                                          ↘ revision_requested → in_progress
    status = Column(String(30), default="pending", nullable=False, index=True)

    # Progress record
    started_at = Column(DateTime, nullable=True)
    submitted_at = Column(DateTime, nullable=True)
    submitted_work = Column(JSON, default=list)  # deliverable references
    submission_notes = Column(Text, nullable=True)
    client_approved = Column(Boolean, default=False, nullable=False)
    approved_at = Column(DateTime, nullable=True)
    feedback = Column(Text, nullable=True)
    revision_notes = Column(Text, nullable=True)
    revision_requested_at = Column(DateTime, nullable=True)
    revision_count = Column(Integer, default=0, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    # Payment gate
    payment_ready_at = Column(DateTime, nullable=True)
    payment_processed = Column(Boolean, default=False, nullable=False)
    payment_processed_at = Column(DateTime, nullable=True)

    version_id = Column(Integer, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version_id}

    workspace = relationship("Workspace", back_populates="milestones")

    @property
    def payment_eligible(self) -> bool:
        return self.status == "completed" and self.payment_ready_at is not None
