"""Workspace repository - Database operations for workspaces"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models_workspace import Workspace


class WorkspaceRepository:
    """Repository for workspace database operations"""

    @staticmethod
    def get_by_contract_id(db: Session, contract_pk: int) -> Optional[Workspace]:
        """Lookup by foreign key, used for idempotent provisioning"""
        return db.query(Workspace).filter(Workspace.contract_id == contract_pk).first()

    @staticmethod
    def get_by_workspace_id(db: Session, workspace_id: str) -> Optional[Workspace]:
        return db.query(Workspace).filter(Workspace.workspace_id == workspace_id).first()

    @staticmethod
    def get_for_party(db: Session, user_id: int, role: Optional[str] = None, status: Optional[str] = None) -> list[Workspace]:
        """All workspaces where the user is a party, most recently active first"""
        query = db.query(Workspace)
        if role == "client":
            query = query.filter(Workspace.client_id == user_id)
        elif role == "freelancer":
            query = query.filter(Workspace.freelancer_id == user_id)
        else:
            query = query.filter(
                (Workspace.client_id == user_id) | (Workspace.freelancer_id == user_id)
            )

        if status and status != "all":
            query = query.filter(Workspace.status == status)

        return query.order_by(Workspace.updated_at.desc(), Workspace.id.desc()).all()

    @staticmethod
    def add(db: Session, workspace: Workspace) -> None:
        db.add(workspace)
