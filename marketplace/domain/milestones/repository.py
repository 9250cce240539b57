"""Milestone repository - Database operations for milestones"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models_workspace import Milestone


class MilestoneRepository:
    """Repository for milestone database operations"""

    @staticmethod
    def get_by_milestone_id(db: Session, workspace_pk: int, milestone_id: str) -> Optional[Milestone]:
        return (
            db.query(Milestone)
            .filter(Milestone.workspace_pk == workspace_pk, Milestone.milestone_id == milestone_id)
            .first()
        )

    @staticmethod
    def get_by_phase(db: Session, workspace_pk: int, phase_number: int) -> Optional[Milestone]:
        return (
            db.query(Milestone)
            .filter(Milestone.workspace_pk == workspace_pk, Milestone.phase_number == phase_number)
            .first()
        )
