"""Milestone router - FastAPI endpoints for milestone delivery and approval"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...dependencies import (
    get_notification_emitter,
    get_payment_eligibility,
    get_realtime_channel,
)
from ...models import User
from ...services.notification_service import NotificationEmitter
from ...services.payment_eligibility import PaymentEligibility
from ...services.realtime import RealtimeChannel
from .schemas import (
    ApproveRequest,
    MilestoneActionResponse,
    MilestoneCreate,
    MilestoneListResponse,
    MilestoneResponse,
    MilestoneStats,
    MilestoneStatsResponse,
    MilestoneUpdate,
    RevisionRequest,
    SubmitWorkRequest,
)
from .service import MilestoneService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspaces/{workspace_id}/milestones", tags=["Milestones"])


def get_milestone_service(
    db: Session = Depends(get_db),
    notifier: NotificationEmitter = Depends(get_notification_emitter),
    realtime: RealtimeChannel = Depends(get_realtime_channel),
    payments: PaymentEligibility = Depends(get_payment_eligibility),
) -> MilestoneService:
    """Dependency injection for MilestoneService"""
    return MilestoneService(db, notifier, realtime, payments)


def build_action_response(message: str, workspace, milestone) -> MilestoneActionResponse:
    return MilestoneActionResponse(
        message=message,
        milestone=MilestoneResponse.from_model(milestone),
        workspaceProgress=workspace.overall_progress,
        currentPhase=workspace.current_phase,
    )


@router.get("", response_model=MilestoneListResponse)
async def list_milestones(
    workspace_id: str,
    current_user: User = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    workspace = service.list_milestones(workspace_id, current_user)
    return MilestoneListResponse(
        milestones=[MilestoneResponse.from_model(m) for m in workspace.milestones],
        currentPhase=workspace.current_phase,
        overallProgress=workspace.overall_progress,
    )


@router.get("/stats", response_model=MilestoneStatsResponse)
async def get_milestone_stats(
    workspace_id: str,
    current_user: User = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    """Per-status counts, completion rate and average completion time"""
    workspace, stats = service.get_stats(workspace_id, current_user)
    return MilestoneStatsResponse(
        stats=MilestoneStats(**stats),
        overallProgress=workspace.overall_progress,
        currentPhase=workspace.current_phase,
    )


@router.get("/{milestone_id}", response_model=MilestoneResponse)
async def get_milestone(
    workspace_id: str,
    milestone_id: str,
    current_user: User = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    _, _, milestone = service.get_milestone(workspace_id, milestone_id, current_user)
    return MilestoneResponse.from_model(milestone)


@router.post("", response_model=MilestoneActionResponse)
async def create_milestone(
    workspace_id: str,
    data: MilestoneCreate,
    current_user: User = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    workspace, milestone = service.create_milestone(workspace_id, data, current_user)
    return build_action_response("Milestone created", workspace, milestone)


@router.patch("/{milestone_id}", response_model=MilestoneActionResponse)
async def update_milestone(
    workspace_id: str,
    milestone_id: str,
    data: MilestoneUpdate,
    current_user: User = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    """Edit milestone terms; only while the milestone is still pending"""
    workspace, milestone = service.update_milestone(workspace_id, milestone_id, data, current_user)
    return build_action_response("Milestone updated", workspace, milestone)


@router.post("/{milestone_id}/start", response_model=MilestoneActionResponse)
async def start_milestone(
    workspace_id: str,
    milestone_id: str,
    current_user: User = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    workspace, milestone = service.start(workspace_id, milestone_id, current_user)
    return build_action_response("Milestone started", workspace, milestone)


@router.post("/{milestone_id}/submit", response_model=MilestoneActionResponse)
async def submit_milestone(
    workspace_id: str,
    milestone_id: str,
    data: SubmitWorkRequest,
    current_user: User = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    workspace, milestone = service.submit(workspace_id, milestone_id, data, current_user)
    return build_action_response("Work submitted for approval", workspace, milestone)


@router.post("/{milestone_id}/approve", response_model=MilestoneActionResponse)
async def approve_milestone(
    workspace_id: str,
    milestone_id: str,
    data: Optional[ApproveRequest] = None,
    current_user: User = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    workspace, milestone = service.approve(workspace_id, milestone_id, data or ApproveRequest(), current_user)
    return build_action_response("Milestone approved", workspace, milestone)


@router.post("/{milestone_id}/request-revision", response_model=MilestoneActionResponse)
async def request_milestone_revision(
    workspace_id: str,
    milestone_id: str,
    data: RevisionRequest,
    current_user: User = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    workspace, milestone = service.request_revision(workspace_id, milestone_id, data, current_user)
    return build_action_response("Revision requested", workspace, milestone)


@router.post("/{milestone_id}/release-payment", response_model=MilestoneActionResponse)
async def release_milestone_payment(
    workspace_id: str,
    milestone_id: str,
    current_user: User = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    workspace, milestone = service.release_payment(workspace_id, milestone_id, current_user)
    return build_action_response("Payment released", workspace, milestone)
