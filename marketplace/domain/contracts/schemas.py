"""Contract domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class PhaseInput(BaseModel):
    """One agreed phase of the contract"""

    phase: int
    title: str
    description: Optional[str] = None
    amount: float
    dueDate: Optional[datetime] = None
    deliverables: list[str] = []


class ContractCreate(BaseModel):
    """Schema for creating a new contract (client side)"""

    freelancerId: int
    title: str
    terms: Optional[str] = None
    description: Optional[str] = None
    proposalId: Optional[str] = None
    projectId: Optional[str] = None
    serviceType: Optional[str] = None
    timeline: Optional[str] = None
    totalBudget: float
    currency: Optional[str] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    # None = default phase template, [] = no phases
    phases: Optional[list[PhaseInput]] = None


class ContractUpdate(BaseModel):
    """Schema for editing a draft contract"""

    title: Optional[str] = None
    terms: Optional[str] = None
    description: Optional[str] = None
    serviceType: Optional[str] = None
    timeline: Optional[str] = None
    totalBudget: Optional[float] = None
    currency: Optional[str] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    phases: Optional[list[PhaseInput]] = None


class SignatureRequest(BaseModel):
    """Schema for signature submission; the token is opaque to this service"""

    signature: Optional[str] = None


class ReasonRequest(BaseModel):
    """Schema for cancel / decline"""

    reason: Optional[str] = None


class PhaseResponse(BaseModel):
    phase: int
    title: str
    description: Optional[str] = None
    amount: float
    dueDate: Optional[datetime] = None
    deliverables: list[str] = []
    status: str


class ContractResponse(BaseModel):
    """Schema for contract response"""

    id: str
    status: str
    title: str
    description: Optional[str] = None
    terms: str
    serviceType: Optional[str] = None
    timeline: Optional[str] = None
    totalBudget: float
    currency: Optional[str] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    proposalId: Optional[str] = None
    projectId: Optional[str] = None
    clientId: int
    clientName: Optional[str] = None
    freelancerId: int
    freelancerName: Optional[str] = None
    phases: list[PhaseResponse] = []
    clientSigned: bool
    clientSignedAt: Optional[datetime] = None
    freelancerSigned: bool
    freelancerSignedAt: Optional[datetime] = None
    workspaceId: Optional[str] = None
    sentAt: Optional[datetime] = None
    cancelledAt: Optional[datetime] = None
    cancelReason: Optional[str] = None
    declinedAt: Optional[datetime] = None
    declineReason: Optional[str] = None
    completedAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None


class ContractListResponse(BaseModel):
    contracts: list[ContractResponse]
    total: int
    page: int
    limit: int
    pages: int


class SigningStatusResponse(BaseModel):
    clientSigned: bool
    freelancerSigned: bool
    clientSignedAt: Optional[datetime] = None
    freelancerSignedAt: Optional[datetime] = None
    bothSigned: bool
    status: str


class SignResponse(BaseModel):
    message: str
    status: str
    fullyExecuted: bool
    workspaceId: Optional[str] = None
    contract: ContractResponse


class WorkspaceRefResponse(BaseModel):
    contractId: str
    workspaceId: str
