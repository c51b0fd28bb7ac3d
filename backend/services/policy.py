# backend/services/policy.py
"""Authorization policy for feedback.

``decide`` is a pure function: it never touches the store. Callers resolve the
feedback record first (a missing record is a ``NotFoundError`` raised before the
policy runs) and pass in only what the rules look at.

Rules, in order:

1. Only the owner or an admin may mutate a feedback record.
2. A non-admin owner may not edit feedback that is already approved. Deletion
   is not frozen by approval.
3. Only admins may change ``is_approved``, whoever owns the record.
4. Approve / reject are admin-only.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from utils.errors import ForbiddenError

ADMIN = "ADMIN"
USER = "USER"


class Action(str, Enum):
    UPDATE = "update"
    DELETE = "delete"
    CHANGE_APPROVAL = "change_approval"
    APPROVE = "approve"
    REJECT = "reject"


@dataclass(frozen=True)
class Actor:
    id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return (self.role or "").upper() == ADMIN


@dataclass(frozen=True)
class FeedbackResource:
    owner_id: str
    is_approved: bool


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None


ALLOW = Decision(True)

_NOT_OWNER = {
    Action.UPDATE: "You can only update your own feedback",
    Action.DELETE: "You can only delete your own feedback",
}


def decide(actor: Actor, resource: FeedbackResource, action: Action) -> Decision:
    is_owner = actor.id == resource.owner_id
    is_admin = actor.is_admin

    if action in (Action.APPROVE, Action.REJECT):
        return ALLOW if is_admin else Decision(False, "Only admins can moderate feedback")

    if action is Action.CHANGE_APPROVAL:
        return ALLOW if is_admin else Decision(False, "Only admins can change approval status")

    if not (is_owner or is_admin):
        return Decision(False, _NOT_OWNER[action])

    if action is Action.UPDATE and not is_admin and resource.is_approved:
        return Decision(False, "Cannot update approved feedback")

    return ALLOW


def ensure_allowed(actor: Actor, resource: FeedbackResource, action: Action) -> None:
    decision = decide(actor, resource, action)
    if not decision.allowed:
        raise ForbiddenError(decision.reason)
