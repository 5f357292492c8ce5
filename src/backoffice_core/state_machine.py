"""State machine validation for timecard status transitions.

Lines move through the approval workflow:
- Open → Submitted (submission locks the line)
- Submitted → Approved | Rejected
- Rejected → Open | Submitted (resubmission after rework)
- Approved is terminal: the line can no longer be changed at all

Headers follow the same workflow, plus a starting ``Not Submitted`` state for
days that have no header yet. Header and line status are not linked.
"""
import logging

from .errors import StateConflictError
from .models import TimecardStatus

logger = logging.getLogger("backoffice-core.state_machine")


class StateTransitionError(StateConflictError):
    """Raised when an invalid state transition is attempted."""

    def __init__(
        self,
        message: str,
        current_status: TimecardStatus,
        requested_status: TimecardStatus,
        allowed_transitions: list[TimecardStatus]
    ):
        super().__init__(message)
        self.current_status = current_status
        self.requested_status = requested_status
        self.allowed_transitions = allowed_transitions


# Maps current line status → list of allowed next statuses
LINE_TRANSITION_MATRIX: dict[TimecardStatus, list[TimecardStatus]] = {
    TimecardStatus.OPEN: [
        TimecardStatus.OPEN,        # No-op (allowed)
        TimecardStatus.SUBMITTED,   # Forward: consultant submits the day
    ],
    TimecardStatus.SUBMITTED: [
        TimecardStatus.SUBMITTED,   # No-op (allowed)
        TimecardStatus.APPROVED,    # Forward: approver accepts
        TimecardStatus.REJECTED,    # Back: approver sends it back
    ],
    TimecardStatus.REJECTED: [
        TimecardStatus.REJECTED,    # No-op (allowed)
        TimecardStatus.OPEN,        # Back: reopened for editing
        TimecardStatus.SUBMITTED,   # Forward: resubmitted as is
    ],
    TimecardStatus.APPROVED: [
        # Terminal: approved lines are immutable
    ],
    TimecardStatus.NOT_SUBMITTED: [
        # Header-only state; lines never hold it
    ],
}

# Maps current header status → list of allowed next statuses
HEADER_TRANSITION_MATRIX: dict[TimecardStatus, list[TimecardStatus]] = {
    TimecardStatus.NOT_SUBMITTED: [
        TimecardStatus.NOT_SUBMITTED,
        TimecardStatus.OPEN,
        TimecardStatus.SUBMITTED,
    ],
    TimecardStatus.OPEN: [
        TimecardStatus.OPEN,
        TimecardStatus.SUBMITTED,
    ],
    TimecardStatus.SUBMITTED: [
        TimecardStatus.SUBMITTED,
        TimecardStatus.APPROVED,
        TimecardStatus.REJECTED,
    ],
    TimecardStatus.REJECTED: [
        TimecardStatus.REJECTED,
        TimecardStatus.OPEN,
        TimecardStatus.SUBMITTED,
    ],
    TimecardStatus.APPROVED: [
        TimecardStatus.APPROVED,
        TimecardStatus.REJECTED,    # Back: approval withdrawn
    ],
}

# Statuses a line holds while it is locked against consultant edits
LOCKED_STATUSES = frozenset({TimecardStatus.SUBMITTED, TimecardStatus.APPROVED})

# Statuses submit_day moves to Submitted
SUBMITTABLE_STATUSES = (TimecardStatus.OPEN, TimecardStatus.REJECTED)


def is_transition_valid(
    current_status: TimecardStatus,
    new_status: TimecardStatus,
    matrix: dict[TimecardStatus, list[TimecardStatus]] = LINE_TRANSITION_MATRIX,
) -> bool:
    """
    Check if a status transition is valid.

    Args:
        current_status: Current status
        new_status: Requested new status
        matrix: Transition matrix to check against (lines by default)

    Returns:
        True if transition is allowed, False otherwise
    """
    return new_status in matrix.get(current_status, [])


def validate_transition(
    current_status: TimecardStatus,
    new_status: TimecardStatus,
    matrix: dict[TimecardStatus, list[TimecardStatus]] = LINE_TRANSITION_MATRIX,
) -> None:
    """
    Validate a status transition and raise exception if invalid.

    Args:
        current_status: Current status
        new_status: Requested new status
        matrix: Transition matrix to check against (lines by default)

    Raises:
        StateTransitionError: If the transition is not allowed
    """
    if is_transition_valid(current_status, new_status, matrix):
        return

    allowed_transitions = matrix.get(current_status, [])
    allowed_names = [s.value for s in allowed_transitions if s != current_status]

    if allowed_names:
        error_msg = (
            f"Invalid status transition: {current_status.value} → {new_status.value}. "
            f"From {current_status.value}, you can only transition to: {', '.join(allowed_names)}."
        )
    else:
        error_msg = f"Invalid status transition: {current_status.value} is terminal."

    if current_status == TimecardStatus.APPROVED and matrix is LINE_TRANSITION_MATRIX:
        error_msg += " Approved timecard lines cannot be changed."

    logger.warning(f"Blocked transition: {error_msg}")
    raise StateTransitionError(
        message=error_msg,
        current_status=current_status,
        requested_status=new_status,
        allowed_transitions=allowed_transitions
    )


def get_allowed_transitions(
    current_status: TimecardStatus,
    matrix: dict[TimecardStatus, list[TimecardStatus]] = LINE_TRANSITION_MATRIX,
) -> list[TimecardStatus]:
    """
    Get list of statuses reachable from the current status.

    Args:
        current_status: Current status
        matrix: Transition matrix to read (lines by default)

    Returns:
        Allowed next statuses, excluding the current one
    """
    return [s for s in matrix.get(current_status, []) if s != current_status]


def is_locked_status(status: TimecardStatus) -> bool:
    """Return True if a line in this status is locked against edits."""
    return status in LOCKED_STATUSES
