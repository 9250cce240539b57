"""Workspace service - Business logic for the collaboration workspace"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ...errors import DependencyFailure, InvalidTransition, NotFound, ValidationFailure
from ...models import User, utcnow
from ...models_workspace import (
    WorkspaceCall,
    WorkspaceFile,
    WorkspaceMessage,
    WorkspaceNote,
    generate_item_id,
)
from ...services.notification_service import NotificationEmitter, notify_quietly
from ...services.realtime import RealtimeChannel, publish_quietly
from . import projector
from .repository import WorkspaceRepository
from .schemas import (
    CallCreate,
    CallView,
    FileCreate,
    FileView,
    MessageCreate,
    MessageView,
    NoteCreate,
    NoteView,
    RoleView,
    WorkspaceSummary,
)

logger = logging.getLogger(__name__)


def other_role(role: str) -> str:
    return "freelancer" if role == "client" else "client"


def commit_or_raise(db: Session, what: str) -> None:
    """Commit a workspace write, translating lost races and storage errors"""
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        logger.warning(f"⚠️ Concurrent update rejected: {what}")
        raise InvalidTransition(f"{what}: modified concurrently, reload and retry", code="conflict")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Storage error: {what}: {e}")
        raise DependencyFailure(f"{what}: storage unavailable")


class WorkspaceService:
    """Service layer for workspace reads and collaboration actions"""

    def __init__(self, db: Session, notifier: NotificationEmitter, realtime: RealtimeChannel):
        self.db = db
        self.notifier = notifier
        self.realtime = realtime
        self.repo = WorkspaceRepository()

    def get_workspace_for_party(self, workspace_id: str, user: User, claimed_role: Optional[str] = None):
        """Load a workspace and resolve the caller's role. Returns (workspace, role)"""
        workspace = self.repo.get_by_workspace_id(self.db, workspace_id)
        if not workspace:
            raise NotFound("Workspace not found")
        role = projector.resolve_role(workspace, user.id, claimed_role)
        return workspace, role

    def get_view(self, workspace_id: str, user: User, claimed_role: Optional[str] = None) -> RoleView:
        workspace, _ = self.get_workspace_for_party(workspace_id, user, claimed_role)
        return projector.project(workspace, user.id, claimed_role)

    def list_workspaces(self, user: User, role: Optional[str] = None, status: Optional[str] = None) -> list[WorkspaceSummary]:
        workspaces = self.repo.get_for_party(self.db, user.id, role, status)
        summaries = []
        for workspace in workspaces:
            party_role = workspace.role_of(user.id)
            has_private = any(n.owner_role == party_role for n in workspace.notes) or any(
                f.visibility == party_role for f in workspace.files
            )
            summaries.append(
                WorkspaceSummary(
                    workspaceId=workspace.workspace_id,
                    contractId=workspace.contract.public_id if workspace.contract else None,
                    title=workspace.title,
                    status=workspace.status,
                    role=party_role,
                    overallProgress=workspace.overall_progress,
                    currentPhase=workspace.current_phase,
                    totalBudget=workspace.total_budget or 0,
                    lastActivity=workspace.last_activity,
                    unreadMessages=(
                        workspace.unread_client if party_role == "client" else workspace.unread_freelancer
                    ),
                    hasPrivateData=has_private,
                    createdAt=workspace.created_at,
                )
            )
        return summaries

    # ------------------------------------------------------------------
    # Shared partition
    # ------------------------------------------------------------------

    def send_message(self, workspace_id: str, data: MessageCreate, user: User) -> MessageView:
        workspace, role = self.get_workspace_for_party(workspace_id, user)
        content = (data.content or "").strip()
        if not content:
            raise ValidationFailure("Message content cannot be empty")

        now = utcnow()
        message = WorkspaceMessage(
            message_id=generate_item_id("msg"),
            sender_id=user.id,
            sender_role=role,
            content=content,
            message_type=data.messageType or "text",
            attachments=list(data.attachments or []),
            read_by=[user.id],
            created_at=now,
        )
        workspace.messages.append(message)
        if role == "client":
            workspace.unread_freelancer = (workspace.unread_freelancer or 0) + 1
        else:
            workspace.unread_client = (workspace.unread_client or 0) + 1
        workspace.last_activity = now

        commit_or_raise(self.db, f"message in workspace {workspace_id}")
        logger.info(f"💬 Message {message.message_id} posted to {workspace_id} by {role}")

        recipient = other_role(role)
        publish_quietly(
            self.realtime,
            workspace.party_id(recipient),
            {
                "type": "workspace_message",
                "workspace_id": workspace.workspace_id,
                "message_id": message.message_id,
                "sender_role": role,
            },
        )
        return MessageView.from_model(message)

    def mark_messages_read(self, workspace_id: str, user: User) -> int:
        """Mark every message as read by the caller and reset their unread counter"""
        workspace, role = self.get_workspace_for_party(workspace_id, user)

        marked = 0
        for message in workspace.messages:
            readers = list(message.read_by or [])
            if user.id not in readers:
                # JSON columns only detect reassignment
                message.read_by = readers + [user.id]
                marked += 1

        if role == "client":
            workspace.unread_client = 0
        else:
            workspace.unread_freelancer = 0

        commit_or_raise(self.db, f"mark read in workspace {workspace_id}")
        logger.info(f"👁️ {marked} message(s) marked read in {workspace_id} by {role}")
        return marked

    def add_file(self, workspace_id: str, data: FileCreate, user: User) -> FileView:
        """Record file metadata; private files land in the uploader's partition"""
        workspace, role = self.get_workspace_for_party(workspace_id, user)
        now = utcnow()
        file = WorkspaceFile(
            file_id=generate_item_id("file"),
            visibility=role if data.private else "shared",
            filename=data.filename,
            file_url=data.fileUrl,
            file_type=data.fileType,
            file_size=data.fileSize,
            description=data.description,
            uploaded_by=user.id,
            uploader_role=role,
            uploaded_at=now,
        )
        workspace.files.append(file)
        workspace.last_activity = now

        commit_or_raise(self.db, f"file upload in workspace {workspace_id}")
        logger.info(f"📎 File {file.file_id} ({file.visibility}) added to {workspace_id}")

        if file.visibility == "shared":
            publish_quietly(
                self.realtime,
                workspace.party_id(other_role(role)),
                {"type": "workspace_file", "workspace_id": workspace.workspace_id, "file_id": file.file_id},
            )
        return FileView.from_model(file)

    def schedule_call(self, workspace_id: str, data: CallCreate, user: User) -> CallView:
        workspace, role = self.get_workspace_for_party(workspace_id, user)
        call = WorkspaceCall(
            call_id=generate_item_id("call"),
            title=data.title,
            description=data.description,
            room_url=data.roomUrl,
            scheduled_time=data.scheduledTime,
            duration_minutes=data.durationMinutes,
            status="scheduled",
            scheduled_by=user.id,
        )
        workspace.calls.append(call)
        workspace.last_activity = utcnow()

        commit_or_raise(self.db, f"call scheduling in workspace {workspace_id}")
        logger.info(f"📅 Call {call.call_id} scheduled in {workspace_id} for {call.scheduled_time}")

        notify_quietly(
            self.notifier,
            workspace.party_id(other_role(role)),
            "call_scheduled",
            {
                "role": other_role(role),
                "title": "Call Scheduled",
                "message": f"A call \"{call.title}\" was scheduled for {call.scheduled_time:%Y-%m-%d %H:%M} UTC",
                "workspace_id": workspace.workspace_id,
                "call_id": call.call_id,
                "action_path": f"/{other_role(role)}/workspace/{workspace.workspace_id}",
            },
        )
        return CallView.from_model(call)

    # ------------------------------------------------------------------
    # Private partition
    # ------------------------------------------------------------------

    def add_note(self, workspace_id: str, data: NoteCreate, user: User) -> NoteView:
        workspace, role = self.get_workspace_for_party(workspace_id, user)
        content = (data.content or "").strip()
        if not content:
            raise ValidationFailure("Note content cannot be empty")

        now = utcnow()
        note = WorkspaceNote(
            note_id=generate_item_id("note"),
            owner_role=role,
            content=content,
            created_at=now,
            updated_at=now,
        )
        workspace.notes.append(note)

        commit_or_raise(self.db, f"note in workspace {workspace_id}")
        logger.info(f"📝 Private {role} note added to {workspace_id}")
        return NoteView.from_model(note)
