"""
Role-restricted workspace views.

The requester's role is always derived by matching their identity against the
workspace's stored party references. A role asserted by the caller is only
accepted when it agrees with the derived role.
"""

from typing import Optional

from ...errors import AccessDenied
from ...models_workspace import Workspace
from .schemas import (
    CallView,
    ClientPrivatePartition,
    FileView,
    FreelancerPrivatePartition,
    MessageView,
    MilestoneSummary,
    NoteView,
    RoleView,
    SharedPartition,
)

SHARED_PERMISSIONS = ("upload_files", "send_messages")

ROLE_PERMISSIONS = {
    "client": ("approve_milestones", "request_revisions", "make_payments") + SHARED_PERMISSIONS,
    "freelancer": ("submit_work", "track_earnings") + SHARED_PERMISSIONS,
}


def resolve_role(workspace: Workspace, requesting_party_id: int, claimed_role: Optional[str] = None) -> str:
    role = workspace.role_of(requesting_party_id)
    if role is None:
        raise AccessDenied("You are not a party to this workspace")
    if claimed_role is not None and claimed_role != role:
        raise AccessDenied(f"{claimed_role.capitalize()} access denied")
    return role


def permissions_for(role: str) -> list[str]:
    return list(ROLE_PERMISSIONS[role])


def shared_partition(workspace: Workspace) -> SharedPartition:
    return SharedPartition(
        title=workspace.title,
        description=workspace.description,
        status=workspace.status,
        currentPhase=workspace.current_phase,
        overallProgress=workspace.overall_progress,
        startDate=workspace.start_date,
        estimatedEndDate=workspace.estimated_end_date,
        totalBudget=workspace.total_budget or 0,
        currency=workspace.currency,
        serviceType=workspace.service_type,
        lastActivity=workspace.last_activity,
        unreadMessages={"client": workspace.unread_client, "freelancer": workspace.unread_freelancer},
        messages=[MessageView.from_model(m) for m in workspace.messages],
        files=[FileView.from_model(f) for f in workspace.files if f.visibility == "shared"],
        milestones=[MilestoneSummary.from_model(m) for m in workspace.milestones],
        calls=[CallView.from_model(c) for c in workspace.calls],
    )


def private_partition(workspace: Workspace, role: str):
    notes = [NoteView.from_model(n) for n in workspace.notes if n.owner_role == role]
    files = [FileView.from_model(f) for f in workspace.files if f.visibility == role]
    if role == "client":
        return ClientPrivatePartition(
            notes=notes, files=files, budgetTracking=dict(workspace.client_ledger or {})
        )
    return FreelancerPrivatePartition(
        notes=notes, files=files, earningsTracking=dict(workspace.freelancer_ledger or {})
    )


def project(workspace: Workspace, requesting_party_id: int, claimed_role: Optional[str] = None) -> RoleView:
    """Shared data plus the requester's own private partition and permissions"""
    role = resolve_role(workspace, requesting_party_id, claimed_role)
    return RoleView(
        workspaceId=workspace.workspace_id,
        contractId=workspace.contract.public_id if workspace.contract else None,
        projectId=workspace.project_id,
        role=role,
        participants={"client": workspace.client_id, "freelancer": workspace.freelancer_id},
        shared=shared_partition(workspace),
        private=private_partition(workspace, role),
        permissions=permissions_for(role),
        createdAt=workspace.created_at,
        updatedAt=workspace.updated_at,
    )
