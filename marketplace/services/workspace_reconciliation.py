"""
Workspace reconciliation sweep.

Finds active, fully signed contracts whose workspace was never provisioned
(provisioning failed after the signature commit, or the process died in
between) and re-runs provisioning for each. Safe to run at any frequency:
provisioning is idempotent per contract.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..domain.contracts.repository import ContractRepository
from ..domain.workspaces.provisioner import WorkspaceProvisioner
from ..errors import DomainError
from .notification_service import DatabaseNotificationEmitter, NotificationEmitter
from .realtime import HttpRealtimeChannel, RealtimeChannel

logger = logging.getLogger(__name__)


def ensure_workspaces_for_active_contracts(
    db: Session,
    notifier: Optional[NotificationEmitter] = None,
    realtime: Optional[RealtimeChannel] = None,
    batch_size: int = 50,
) -> dict:
    """
    Provision missing workspaces. Should be run as a scheduled job (e.g. every few minutes)

    Returns:
        dict: Summary with checked / provisioned / failed counts
    """
    provisioner = WorkspaceProvisioner(
        db,
        notifier or DatabaseNotificationEmitter(db),
        realtime or HttpRealtimeChannel(),
    )
    summary = {"checked": 0, "provisioned": 0, "failed": 0}

    contracts = ContractRepository.get_active_contracts_without_workspace(db, limit=batch_size)
    for contract in contracts:
        summary["checked"] += 1
        public_id = contract.public_id
        try:
            workspace = provisioner.provision(contract)
            summary["provisioned"] += 1
            logger.info(f"✅ Reconciled contract {public_id} → workspace {workspace.workspace_id}")
        except DomainError as e:
            summary["failed"] += 1
            logger.error(f"❌ Reconciliation failed for contract {public_id}: {e}")

    if summary["checked"]:
        logger.info(
            f"🔁 Workspace reconciliation: {summary['provisioned']} provisioned, "
            f"{summary['failed']} failed of {summary['checked']} checked"
        )
    return summary
