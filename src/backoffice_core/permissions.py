"""Access policy for helpdesk, collaboration and reporting.

Every handler asks one question, ``is_allowed(actor, action, kind, owner_id,
status)``, instead of testing role membership itself. The rules are a two
tier model: the resource creator, and elevated staff (Admin or Manager).
"""
import enum
import logging
from dataclasses import dataclass, field
from typing import Optional
from uuid import UUID

from .errors import ForbiddenError
from .models import CollaborationTaskStatus, TicketStatus

logger = logging.getLogger("backoffice-core.permissions")


class Role(str, enum.Enum):
    """Role claims carried in bearer tokens."""

    ADMIN = "Admin"
    MANAGER = "Manager"
    CONSULTANT = "Consultant"
    CLIENT = "Client"


ELEVATED_ROLES = frozenset({Role.ADMIN.value, Role.MANAGER.value})


class Action(str, enum.Enum):
    """Capabilities a handler may ask about."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    # Assignment, status, resolution and estimate fields
    UPDATE_RESTRICTED = "update_restricted"
    COMMENT = "comment"
    ATTACH = "attach"
    LOG_WORK = "log_work"
    VIEW_REPORTS = "view_reports"
    MANAGE_SPACE = "manage_space"


class ResourceKind(str, enum.Enum):
    """Kinds of resource the policy knows about."""

    TICKET = "ticket"
    COLLABORATION_TASK = "collaboration_task"
    SPACE = "space"
    REPORT = "report"


@dataclass
class Actor:
    """Authenticated caller."""

    user_id: UUID
    roles: list[str] = field(default_factory=list)

    @property
    def is_elevated(self) -> bool:
        return any(role in ELEVATED_ROLES for role in self.roles)


# Statuses in which a creator may still edit descriptive fields
CREATOR_EDITABLE_STATUSES: dict[ResourceKind, frozenset] = {
    ResourceKind.TICKET: frozenset({
        TicketStatus.OPEN.value,
        TicketStatus.IN_PROGRESS.value,
        TicketStatus.BLOCKED.value,
    }),
    ResourceKind.COLLABORATION_TASK: frozenset({
        CollaborationTaskStatus.OPEN.value,
        CollaborationTaskStatus.IN_PROGRESS.value,
        CollaborationTaskStatus.BLOCKED.value,
    }),
}

# Capabilities per resource kind. Anything missing is denied.
# "any": every authenticated actor; "owner": creator or elevated;
# "owner_while_open": creator while editable, or elevated; "elevated": staff only
POLICY: dict[ResourceKind, dict[Action, str]] = {
    ResourceKind.TICKET: {
        Action.CREATE: "any",
        Action.READ: "owner",
        Action.UPDATE: "owner_while_open",
        Action.UPDATE_RESTRICTED: "elevated",
        Action.COMMENT: "owner",
        Action.ATTACH: "owner",
        Action.LOG_WORK: "elevated",
    },
    ResourceKind.COLLABORATION_TASK: {
        Action.CREATE: "any",
        Action.READ: "any",
        Action.UPDATE: "owner_while_open",
        Action.UPDATE_RESTRICTED: "elevated",
        Action.COMMENT: "any",
    },
    ResourceKind.SPACE: {
        Action.CREATE: "any",
        Action.READ: "owner",
        Action.MANAGE_SPACE: "owner",
    },
    ResourceKind.REPORT: {
        Action.VIEW_REPORTS: "elevated",
    },
}


def _value(status) -> Optional[str]:
    if status is None:
        return None
    return status.value if isinstance(status, enum.Enum) else str(status)


def is_allowed(
    actor: Actor,
    action: Action,
    kind: ResourceKind,
    owner_id: Optional[UUID] = None,
    status=None,
) -> bool:
    """
    Evaluate the access policy.

    Args:
        actor: Caller identity and roles
        action: Capability being exercised
        kind: Kind of resource it is exercised on
        owner_id: Creator (or, for spaces, member) id of the resource
        status: Current status of the resource, where it matters

    Returns:
        True if the action is permitted
    """
    rule = POLICY.get(kind, {}).get(action)
    if rule is None:
        return False
    if rule == "any" or actor.is_elevated:
        return True
    if rule == "elevated":
        return False

    is_owner = owner_id is not None and owner_id == actor.user_id
    if rule == "owner":
        return is_owner
    if rule == "owner_while_open":
        return is_owner and _value(status) in CREATOR_EDITABLE_STATUSES.get(kind, frozenset())
    return False


def authorize(
    actor: Actor,
    action: Action,
    kind: ResourceKind,
    owner_id: Optional[UUID] = None,
    status=None,
) -> None:
    """
    Enforce the access policy.

    Raises:
        ForbiddenError: If ``is_allowed`` denies the action
    """
    if not is_allowed(actor, action, kind, owner_id=owner_id, status=status):
        logger.warning(
            f"Denied {action.value} on {kind.value} for user {actor.user_id} (roles={actor.roles})"
        )
        raise ForbiddenError(f"Not permitted to {action.value.replace('_', ' ')} this {kind.value.replace('_', ' ')}")
