"""Milestone domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class MilestoneCreate(BaseModel):
    phaseNumber: int
    title: str
    description: Optional[str] = None
    amount: float = 0
    dueDate: Optional[datetime] = None
    deliverables: list[str] = []


class MilestoneUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[float] = None
    dueDate: Optional[datetime] = None
    deliverables: Optional[list[str]] = None


class SubmitWorkRequest(BaseModel):
    submittedWork: list[str] = []  # deliverable references (file urls / ids)
    notes: Optional[str] = None


class ApproveRequest(BaseModel):
    feedback: Optional[str] = None


class RevisionRequest(BaseModel):
    revisionNotes: str


class MilestoneProgress(BaseModel):
    startedAt: Optional[datetime] = None
    submittedAt: Optional[datetime] = None
    submittedWork: list[str] = []
    notes: Optional[str] = None
    clientApproved: bool = False
    approvedAt: Optional[datetime] = None
    feedback: Optional[str] = None
    revisionNotes: Optional[str] = None
    revisionRequestedAt: Optional[datetime] = None
    revisionCount: int = 0
    completedAt: Optional[datetime] = None
    paymentReadyAt: Optional[datetime] = None
    paymentProcessed: bool = False
    paymentProcessedAt: Optional[datetime] = None


class MilestoneResponse(BaseModel):
    milestoneId: str
    phaseNumber: int
    title: str
    description: Optional[str] = None
    amount: float
    dueDate: Optional[datetime] = None
    deliverables: list[str] = []
    status: str
    progress: MilestoneProgress

    @classmethod
    def from_model(cls, milestone) -> "MilestoneResponse":
        return cls(
            milestoneId=milestone.milestone_id,
            phaseNumber=milestone.phase_number,
            title=milestone.title,
            description=milestone.description,
            amount=milestone.amount or 0,
            dueDate=milestone.due_date,
            deliverables=list(milestone.deliverables or []),
            status=milestone.status,
            progress=MilestoneProgress(
                startedAt=milestone.started_at,
                submittedAt=milestone.submitted_at,
                submittedWork=list(milestone.submitted_work or []),
                notes=milestone.submission_notes,
                clientApproved=milestone.client_approved,
                approvedAt=milestone.approved_at,
                feedback=milestone.feedback,
                revisionNotes=milestone.revision_notes,
                revisionRequestedAt=milestone.revision_requested_at,
                revisionCount=milestone.revision_count or 0,
                completedAt=milestone.completed_at,
                paymentReadyAt=milestone.payment_ready_at,
                paymentProcessed=milestone.payment_processed,
                paymentProcessedAt=milestone.payment_processed_at,
            ),
        )


class MilestoneListResponse(BaseModel):
    milestones: list[MilestoneResponse]
    currentPhase: int
    overallProgress: int


class MilestoneActionResponse(BaseModel):
    message: str
    milestone: MilestoneResponse
    workspaceProgress: int
    currentPhase: int


class MilestoneStats(BaseModel):
    total: int
    pending: int
    inProgress: int
    awaitingApproval: int
    revisionRequested: int
    completed: int
    completionRate: float
    averageCompletionSeconds: Optional[float] = None


class MilestoneStatsResponse(BaseModel):
    stats: MilestoneStats
    overallProgress: int
    currentPhase: int
