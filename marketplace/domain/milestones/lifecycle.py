"""
Milestone state machine.

Pure rules: which edges exist, which role may take them, and how workspace
progress follows from milestone statuses. The service applies them to the
persisted rows.

    pending ──start──▶ in_progress ──submit──▶ awaiting_approval ──approve──▶ completed
                          ▲                           │
                          └──start── revision_requested ◀──request_revision
"""

from typing import Iterable, Optional

from ...errors import AccessDenied, InvalidTransition

PENDING = "pending"
IN_PROGRESS = "in_progress"
AWAITING_APPROVAL = "awaiting_approval"
REVISION_REQUESTED = "revision_requested"
COMPLETED = "completed"

MILESTONE_STATUSES = (PENDING, IN_PROGRESS, AWAITING_APPROVAL, REVISION_REQUESTED, COMPLETED)

# action -> (acting role, allowed source statuses, target status)
TRANSITIONS = {
    "start": ("freelancer", frozenset({PENDING, REVISION_REQUESTED}), IN_PROGRESS),
    "submit": ("freelancer", frozenset({IN_PROGRESS}), AWAITING_APPROVAL),
    "approve": ("client", frozenset({AWAITING_APPROVAL}), COMPLETED),
    "request_revision": ("client", frozenset({AWAITING_APPROVAL}), REVISION_REQUESTED),
}

# Read-side labels for contract phases
PHASE_STATUS_LABELS = {
    PENDING: "pending",
    IN_PROGRESS: "in-progress",
    AWAITING_APPROVAL: "in-progress",
    REVISION_REQUESTED: "in-progress",
    COMPLETED: "completed",
}


def check_transition(action: str, role: Optional[str], current_status: str) -> str:
    """Return the target status or raise; never mutates anything"""
    if action not in TRANSITIONS:
        raise InvalidTransition(f"Unknown milestone action: {action}")

    actor, sources, target = TRANSITIONS[action]
    if role != actor:
        raise AccessDenied(f"Only the {actor} can {action.replace('_', ' ')} a milestone")
    if current_status not in sources:
        raise InvalidTransition(
            f'Cannot {action.replace("_", " ")} milestone with status: "{current_status}"'
        )
    return target


def compute_progress(statuses: Iterable[str]) -> int:
    """100 * completed / total rounded half up, 0 for an empty workspace"""
    statuses = list(statuses)
    if not statuses:
        return 0
    completed = sum(1 for s in statuses if s == COMPLETED)
    total = len(statuses)
    # Integer half-up rounding; round() would send 12.5 to 12
    return (200 * completed + total) // (2 * total)


def phase_status(milestone) -> str:
    """Contract phase label derived from the canonical milestone"""
    if milestone is None:
        return "pending"
    if milestone.status == COMPLETED and milestone.payment_processed:
        return "paid"
    return PHASE_STATUS_LABELS.get(milestone.status, "pending")


def compute_stats(milestones) -> dict:
    milestones = list(milestones)
    counts = {status: 0 for status in MILESTONE_STATUSES}
    durations = []
    for milestone in milestones:
        counts[milestone.status] = counts.get(milestone.status, 0) + 1
        if milestone.status == COMPLETED and milestone.started_at and milestone.completed_at:
            durations.append((milestone.completed_at - milestone.started_at).total_seconds())

    total = len(milestones)
    return {
        "total": total,
        "pending": counts[PENDING],
        "inProgress": counts[IN_PROGRESS],
        "awaitingApproval": counts[AWAITING_APPROVAL],
        "revisionRequested": counts[REVISION_REQUESTED],
        "completed": counts[COMPLETED],
        "completionRate": round(100 * counts[COMPLETED] / total, 2) if total else 0.0,
        "averageCompletionSeconds": sum(durations) / len(durations) if durations else None,
    }
