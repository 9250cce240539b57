"""Workspace router - FastAPI endpoints for the collaboration workspace"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...dependencies import get_notification_emitter, get_realtime_channel
from ...models import User
from ...services.notification_service import NotificationEmitter
from ...services.realtime import RealtimeChannel
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
from .service import WorkspaceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspaces", tags=["Workspaces"])


def get_workspace_service(
    db: Session = Depends(get_db),
    notifier: NotificationEmitter = Depends(get_notification_emitter),
    realtime: RealtimeChannel = Depends(get_realtime_channel),
) -> WorkspaceService:
    """Dependency injection for WorkspaceService"""
    return WorkspaceService(db, notifier, realtime)


@router.get("", response_model=list[WorkspaceSummary])
async def list_workspaces(
    role: Optional[str] = Query(None, pattern="^(client|freelancer)$"),
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    """Workspaces where the caller is a party, optionally narrowed to one role"""
    return service.list_workspaces(current_user, role, status)


@router.get("/{workspace_id}", response_model=RoleView)
async def get_workspace(
    workspace_id: str,
    role: Optional[str] = Query(None, description="Asserted role; rejected if it does not match"),
    current_user: User = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    """Shared data plus the caller's own private partition"""
    return service.get_view(workspace_id, current_user, role)


@router.post("/{workspace_id}/messages", response_model=MessageView)
async def send_message(
    workspace_id: str,
    data: MessageCreate,
    current_user: User = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.send_message(workspace_id, data, current_user)


@router.post("/{workspace_id}/messages/read")
async def mark_messages_read(
    workspace_id: str,
    current_user: User = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    marked = service.mark_messages_read(workspace_id, current_user)
    return {"message": "Messages marked as read", "marked": marked}


@router.post("/{workspace_id}/notes", response_model=NoteView)
async def add_note(
    workspace_id: str,
    data: NoteCreate,
    current_user: User = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    """Private note, visible only to the caller's role"""
    return service.add_note(workspace_id, data, current_user)


@router.post("/{workspace_id}/files", response_model=FileView)
async def add_file(
    workspace_id: str,
    data: FileCreate,
    current_user: User = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.add_file(workspace_id, data, current_user)


@router.post("/{workspace_id}/calls", response_model=CallView)
async def schedule_call(
    workspace_id: str,
    data: CallCreate,
    current_user: User = Depends(get_current_user),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.schedule_call(workspace_id, data, current_user)
