"""Contract router - FastAPI endpoints for contract negotiation and signing"""

import logging
import math
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
    ContractCreate,
    ContractListResponse,
    ContractResponse,
    ContractUpdate,
    ReasonRequest,
    SignatureRequest,
    SigningStatusResponse,
    SignResponse,
    WorkspaceRefResponse,
)
from .service import ContractService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contracts", tags=["Contracts"])


def get_contract_service(
    db: Session = Depends(get_db),
    notifier: NotificationEmitter = Depends(get_notification_emitter),
    realtime: RealtimeChannel = Depends(get_realtime_channel),
) -> ContractService:
    """Dependency injection for ContractService"""
    return ContractService(db, notifier, realtime)


# ============================================================================
# DRAFTING
# ============================================================================


@router.post("", response_model=ContractResponse)
async def create_contract(
    data: ContractCreate,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    """Create a draft contract; the caller becomes the client"""
    contract = service.create_contract(data, current_user)
    return service.build_response(contract)


@router.get("", response_model=ContractListResponse)
async def list_contracts(
    role: Optional[str] = Query(None, pattern="^(client|freelancer)$"),
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    contracts, total = service.list_contracts(current_user, role, status, page, limit)
    return ContractListResponse(
        contracts=[service.build_response(c) for c in contracts],
        total=total,
        page=page,
        limit=limit,
        pages=math.ceil(total / limit) if total else 0,
    )


@router.get("/{contract_id}", response_model=ContractResponse)
async def get_contract(
    contract_id: str,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    contract = service.get_contract(contract_id, current_user)
    return service.build_response(contract)


@router.patch("/{contract_id}", response_model=ContractResponse)
async def update_contract(
    contract_id: str,
    data: ContractUpdate,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    """Edit a draft contract (client only)"""
    contract = service.update_contract(contract_id, data, current_user)
    return service.build_response(contract)


@router.post("/{contract_id}/send", response_model=ContractResponse)
async def send_contract(
    contract_id: str,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    contract = service.send_contract(contract_id, current_user)
    return service.build_response(contract)


# ============================================================================
# SIGNING
# ============================================================================


@router.post("/{contract_id}/sign", response_model=SignResponse)
async def sign_contract(
    contract_id: str,
    data: Optional[SignatureRequest] = None,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    """Sign as whichever party the caller is; provisions the workspace once both have signed"""
    signature = data.signature if data else None
    contract, workspace = service.sign_contract(contract_id, signature, current_user)
    fully_executed = contract.both_signed
    if fully_executed:
        message = "Contract fully executed" if workspace else "Contract fully executed, workspace pending"
    else:
        message = "Signature recorded, waiting for the other party"
    return SignResponse(
        message=message,
        status=contract.status,
        fullyExecuted=fully_executed,
        workspaceId=workspace.workspace_id if workspace else None,
        contract=service.build_response(contract),
    )


@router.get("/{contract_id}/signing-status", response_model=SigningStatusResponse)
async def get_signing_status(
    contract_id: str,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    return service.get_signing_status(contract_id, current_user)


@router.post("/{contract_id}/workspace", response_model=WorkspaceRefResponse)
async def ensure_workspace(
    contract_id: str,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    """Create the workspace if provisioning never completed; safe to call repeatedly"""
    workspace = service.ensure_workspace(contract_id, current_user)
    return WorkspaceRefResponse(contractId=contract_id, workspaceId=workspace.workspace_id)


# ============================================================================
# WITHDRAWAL AND COMPLETION
# ============================================================================


@router.post("/{contract_id}/decline", response_model=ContractResponse)
async def decline_contract(
    contract_id: str,
    data: Optional[ReasonRequest] = None,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    contract = service.decline_contract(contract_id, data.reason if data else None, current_user)
    return service.build_response(contract)


@router.post("/{contract_id}/cancel", response_model=ContractResponse)
async def cancel_contract(
    contract_id: str,
    data: Optional[ReasonRequest] = None,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    contract = service.cancel_contract(contract_id, data.reason if data else None, current_user)
    return service.build_response(contract)


@router.post("/{contract_id}/complete", response_model=ContractResponse)
async def complete_contract(
    contract_id: str,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    contract = service.complete_contract(contract_id, current_user)
    return service.build_response(contract)
