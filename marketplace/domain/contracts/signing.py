"""
Contract signature state machine.

Pure functions only: they compute the next status from the two independent
signature flags and decide whether a party may sign, cancel or decline. The
service applies the result and persists it.
"""

from ...errors import AccessDenied, InvalidTransition

CLIENT = "client"
FREELANCER = "freelancer"

ACTIVE = "active"
PENDING_FREELANCER = "pending_freelancer"
PENDING_CLIENT = "pending_client"

CONTRACT_STATUSES = (
    "draft",
    "sent",
    PENDING_FREELANCER,
    PENDING_CLIENT,
    ACTIVE,
    "completed",
    "cancelled",
    "declined",
)

# "pending" is a legacy status still found on older rows
SIGNABLE_STATUSES = {
    CLIENT: frozenset({"draft", "sent", "pending", PENDING_CLIENT}),
    FREELANCER: frozenset({"draft", "sent", "pending", PENDING_FREELANCER}),
}

PRE_ACTIVE_STATUSES = frozenset({"draft", "sent", "pending", PENDING_FREELANCER, PENDING_CLIENT})
DECLINABLE_STATUSES = frozenset({"sent", "pending", PENDING_FREELANCER})
TERMINAL_STATUSES = frozenset({"completed", "cancelled", "declined"})


def next_status(current_status: str, client_signed: bool, freelancer_signed: bool) -> str:
    """Status implied by the signature flags; neither signed leaves it unchanged"""
    if client_signed and freelancer_signed:
        return ACTIVE
    if client_signed:
        return PENDING_FREELANCER
    if freelancer_signed:
        return PENDING_CLIENT
    return current_status


def ensure_party(role) -> str:
    if role not in (CLIENT, FREELANCER):
        raise AccessDenied("You are not a party to this contract")
    return role


def ensure_can_sign(role: str, current_status: str, already_signed: bool) -> None:
    ensure_party(role)
    if already_signed:
        raise InvalidTransition(f"Contract already signed by {role}", code="already_signed")
    if current_status not in SIGNABLE_STATUSES[role]:
        raise InvalidTransition(f'Cannot sign contract with status: "{current_status}"')


def ensure_can_cancel(role: str, current_status: str) -> None:
    if role != CLIENT:
        raise AccessDenied("Only the client can cancel a contract")
    if current_status not in PRE_ACTIVE_STATUSES:
        raise InvalidTransition(f'Cannot cancel contract with status: "{current_status}"')


def ensure_can_decline(role: str, current_status: str, freelancer_signed: bool) -> None:
    if role != FREELANCER:
        raise AccessDenied("Only the freelancer can decline a contract")
    if freelancer_signed or current_status not in DECLINABLE_STATUSES:
        raise InvalidTransition(f'Cannot decline contract with status: "{current_status}"')
