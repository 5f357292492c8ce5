"""Tests for the access policy."""
from uuid import uuid4

import pytest
from backoffice_core.api.dependencies import actor_from_claims
from backoffice_core.errors import ForbiddenError
from backoffice_core.models import CollaborationTaskStatus, TicketStatus
from backoffice_core.permissions import Action, Actor, ResourceKind, authorize, is_allowed


class TestTicketPolicy:
    """Test ticket capabilities."""

    def test_anyone_can_create(self, consultant_actor):
        """Test that every authenticated user may open a ticket."""
        assert is_allowed(consultant_actor, Action.CREATE, ResourceKind.TICKET)

    def test_creator_reads_own_ticket_only(self, consultant_actor):
        """Test read access for creators."""
        assert is_allowed(consultant_actor, Action.READ, ResourceKind.TICKET, owner_id=consultant_actor.user_id)
        assert not is_allowed(consultant_actor, Action.READ, ResourceKind.TICKET, owner_id=uuid4())

    def test_creator_update_depends_on_status(self, consultant_actor):
        """Test that creators lose edit rights once a ticket is resolved."""
        owner = consultant_actor.user_id
        for status in (TicketStatus.OPEN, TicketStatus.IN_PROGRESS, TicketStatus.BLOCKED):
            assert is_allowed(consultant_actor, Action.UPDATE, ResourceKind.TICKET, owner_id=owner, status=status)
        for status in (TicketStatus.RESOLVED, TicketStatus.CLOSED):
            assert not is_allowed(consultant_actor, Action.UPDATE, ResourceKind.TICKET, owner_id=owner, status=status)

    def test_elevated_roles_bypass_ownership(self, admin, manager):
        """Test that Admin and Manager may update any ticket in any status."""
        for actor in (admin, manager):
            assert is_allowed(actor, Action.UPDATE, ResourceKind.TICKET, owner_id=uuid4(), status=TicketStatus.CLOSED)
            assert is_allowed(actor, Action.UPDATE_RESTRICTED, ResourceKind.TICKET)
            assert is_allowed(actor, Action.LOG_WORK, ResourceKind.TICKET)

    def test_work_logs_need_elevated_role(self, consultant_actor):
        """Test that creators cannot log work on their own ticket."""
        assert not is_allowed(
            consultant_actor, Action.LOG_WORK, ResourceKind.TICKET, owner_id=consultant_actor.user_id
        )


class TestOtherResources:
    """Test collaboration, space and report capabilities."""

    def test_collaboration_task_creator_window(self, consultant_actor):
        """Test creator edits on collaboration tasks stop once the task is done."""
        owner = consultant_actor.user_id
        assert is_allowed(consultant_actor, Action.UPDATE, ResourceKind.COLLABORATION_TASK,
                          owner_id=owner, status=CollaborationTaskStatus.BLOCKED)
        assert not is_allowed(consultant_actor, Action.UPDATE, ResourceKind.COLLABORATION_TASK,
                              owner_id=owner, status=CollaborationTaskStatus.DONE)

    def test_reports_for_staff_only(self, admin, consultant_actor):
        """Test report access."""
        assert is_allowed(admin, Action.VIEW_REPORTS, ResourceKind.REPORT)
        assert not is_allowed(consultant_actor, Action.VIEW_REPORTS, ResourceKind.REPORT)

    def test_unknown_capability_denied(self, admin):
        """Test that actions missing from the policy are denied, even for Admin."""
        assert not is_allowed(admin, Action.LOG_WORK, ResourceKind.SPACE)

    def test_authorize_raises_forbidden(self, consultant_actor):
        """Test that denial raises the 403 error class."""
        with pytest.raises(ForbiddenError) as exc_info:
            authorize(consultant_actor, Action.VIEW_REPORTS, ResourceKind.REPORT)
        assert exc_info.value.status_code == 403
        assert "view reports" in exc_info.value.message


class TestActorFromClaims:
    """Test building the caller from token claims."""

    def test_roles_list(self):
        """Test the userId and roles claims."""
        user_id = uuid4()
        actor = actor_from_claims({"userId": str(user_id), "roles": ["Manager"]})
        assert actor == Actor(user_id=user_id, roles=["Manager"])
        assert actor.is_elevated

    def test_single_role_and_sub(self):
        """Test the sub and role fallbacks."""
        user_id = uuid4()
        actor = actor_from_claims({"sub": str(user_id), "role": "Consultant"})
        assert actor.roles == ["Consultant"]
        assert not actor.is_elevated

    def test_missing_subject(self):
        """Test that a token without a subject is rejected."""
        with pytest.raises(ValueError):
            actor_from_claims({"roles": ["Admin"]})


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
