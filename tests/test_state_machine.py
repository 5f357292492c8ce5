"""Tests for timecard state machine validation."""
import pytest
from backoffice_core.errors import StateConflictError
from backoffice_core.models import TimecardStatus
from backoffice_core.state_machine import (
    HEADER_TRANSITION_MATRIX,
    is_locked_status,
    is_transition_valid,
    validate_transition,
    StateTransitionError,
    get_allowed_transitions
)


class TestLineTransitions:
    """Test line status transition validation."""

    def test_valid_forward_transitions(self):
        """Test that valid forward transitions are allowed."""
        # Open → Submitted
        assert is_transition_valid(TimecardStatus.OPEN, TimecardStatus.SUBMITTED)
        validate_transition(TimecardStatus.OPEN, TimecardStatus.SUBMITTED)  # Should not raise

        # Submitted → Approved
        assert is_transition_valid(TimecardStatus.SUBMITTED, TimecardStatus.APPROVED)
        validate_transition(TimecardStatus.SUBMITTED, TimecardStatus.APPROVED)

        # Rejected → Submitted (resubmitted as is)
        assert is_transition_valid(TimecardStatus.REJECTED, TimecardStatus.SUBMITTED)
        validate_transition(TimecardStatus.REJECTED, TimecardStatus.SUBMITTED)

    def test_valid_back_transitions(self):
        """Test that valid back-transitions are allowed."""
        # Submitted → Rejected (sent back by approver)
        assert is_transition_valid(TimecardStatus.SUBMITTED, TimecardStatus.REJECTED)
        validate_transition(TimecardStatus.SUBMITTED, TimecardStatus.REJECTED)

        # Rejected → Open (reopened for rework)
        assert is_transition_valid(TimecardStatus.REJECTED, TimecardStatus.OPEN)
        validate_transition(TimecardStatus.REJECTED, TimecardStatus.OPEN)

    def test_noop_transitions_allowed(self):
        """Test that no-op transitions are allowed for every editable status."""
        for status in (TimecardStatus.OPEN, TimecardStatus.SUBMITTED, TimecardStatus.REJECTED):
            assert is_transition_valid(status, status)
            validate_transition(status, status)  # Should not raise

    def test_invalid_skip_submission(self):
        """Test that approving an Open line without submission is blocked."""
        assert not is_transition_valid(TimecardStatus.OPEN, TimecardStatus.APPROVED)

        with pytest.raises(StateTransitionError) as exc_info:
            validate_transition(TimecardStatus.OPEN, TimecardStatus.APPROVED)

        error = exc_info.value
        assert error.current_status == TimecardStatus.OPEN
        assert error.requested_status == TimecardStatus.APPROVED
        assert "submitted" in str(error).lower()

    def test_approved_is_terminal(self):
        """Test that Approved lines cannot move anywhere, not even to themselves."""
        for status in TimecardStatus:
            assert not is_transition_valid(TimecardStatus.APPROVED, status)

        with pytest.raises(StateTransitionError) as exc_info:
            validate_transition(TimecardStatus.APPROVED, TimecardStatus.OPEN)

        assert "terminal" in str(exc_info.value)
        assert "cannot be changed" in str(exc_info.value)

    def test_lines_never_enter_not_submitted(self):
        """Test that Not Submitted is unreachable for lines."""
        for status in TimecardStatus:
            assert not is_transition_valid(status, TimecardStatus.NOT_SUBMITTED)

    def test_transition_error_is_state_conflict(self):
        """Test that transition errors map to the 409 error class."""
        with pytest.raises(StateConflictError) as exc_info:
            validate_transition(TimecardStatus.OPEN, TimecardStatus.REJECTED)
        assert exc_info.value.status_code == 409


class TestHeaderTransitions:
    """Test header status transition validation."""

    def test_not_submitted_can_open_or_submit(self):
        """Test that a day without a header can start Open or Submitted."""
        assert is_transition_valid(TimecardStatus.NOT_SUBMITTED, TimecardStatus.OPEN, HEADER_TRANSITION_MATRIX)
        assert is_transition_valid(TimecardStatus.NOT_SUBMITTED, TimecardStatus.SUBMITTED, HEADER_TRANSITION_MATRIX)
        assert not is_transition_valid(TimecardStatus.NOT_SUBMITTED, TimecardStatus.APPROVED, HEADER_TRANSITION_MATRIX)

    def test_approval_can_be_withdrawn(self):
        """Test that an approved header may be rejected again."""
        validate_transition(TimecardStatus.APPROVED, TimecardStatus.REJECTED, HEADER_TRANSITION_MATRIX)

    def test_approved_header_cannot_reopen(self):
        """Test that an approved header cannot go straight back to Open."""
        with pytest.raises(StateTransitionError) as exc_info:
            validate_transition(TimecardStatus.APPROVED, TimecardStatus.OPEN, HEADER_TRANSITION_MATRIX)
        assert "cannot be changed" not in str(exc_info.value)


class TestAllowedTransitions:
    """Test getting allowed transitions for a status."""

    def test_open_allowed_transitions(self):
        """Test allowed transitions from Open."""
        assert get_allowed_transitions(TimecardStatus.OPEN) == [TimecardStatus.SUBMITTED]

    def test_submitted_allowed_transitions(self):
        """Test allowed transitions from Submitted."""
        allowed = get_allowed_transitions(TimecardStatus.SUBMITTED)
        assert TimecardStatus.APPROVED in allowed
        assert TimecardStatus.REJECTED in allowed
        assert TimecardStatus.SUBMITTED not in allowed  # No-op excluded
        assert len(allowed) == 2

    def test_approved_allowed_transitions(self):
        """Test that nothing is reachable from an approved line."""
        assert get_allowed_transitions(TimecardStatus.APPROVED) == []


class TestLockedStatuses:
    """Test the lock flag derived from status."""

    def test_submitted_and_approved_lock(self):
        """Test that Submitted and Approved lines are locked."""
        assert is_locked_status(TimecardStatus.SUBMITTED)
        assert is_locked_status(TimecardStatus.APPROVED)

    def test_open_and_rejected_unlock(self):
        """Test that Open and Rejected lines are editable."""
        assert not is_locked_status(TimecardStatus.OPEN)
        assert not is_locked_status(TimecardStatus.REJECTED)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
