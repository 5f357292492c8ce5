"""Tests for helpdesk tickets."""
from datetime import date
from uuid import uuid4

import pytest
from pydantic import ValidationError as SchemaValidationError

from backoffice_core import helpdesk, schemas
from backoffice_core.errors import ForbiddenError, NotFoundError, ValidationError
from backoffice_core.models import TicketCategory, TicketPriority, TicketStatus


def _ticket(**overrides):
    fields = dict(
        title="Export button broken",
        description="Clicking export on the report page does nothing at all.",
    )
    fields.update(overrides)
    return schemas.TicketCreate(**fields)


class TestTicketValidation:
    """Test ticket payload validation."""

    def test_defaults(self):
        """Test category and priority defaults."""
        ticket = _ticket()
        assert ticket.category == TicketCategory.OTHER
        assert ticket.priority == TicketPriority.P2

    def test_short_title_rejected(self):
        """Test the minimum title length after trimming."""
        with pytest.raises(SchemaValidationError):
            _ticket(title="  Bug  ")

    def test_short_description_rejected(self):
        """Test the minimum description length."""
        with pytest.raises(SchemaValidationError):
            _ticket(description="Too short")

    def test_fractional_minutes_truncated(self):
        """Test that work log minutes are truncated to whole minutes."""
        assert schemas.WorkLogCreate(minutes=12.7).minutes == 12

    def test_negative_fractional_estimate_rejected(self):
        """Test that a negative estimate is rejected rather than truncated to zero."""
        with pytest.raises(SchemaValidationError):
            schemas.TicketUpdate(estimate_minutes=-0.5)
        with pytest.raises(SchemaValidationError):
            schemas.TicketUpdate(estimate_minutes=-1.0)
        assert schemas.TicketUpdate(estimate_minutes=30.9).estimate_minutes == 30

    def test_non_positive_minutes_rejected(self):
        """Test that work logs must be positive."""
        with pytest.raises(SchemaValidationError):
            schemas.WorkLogCreate(minutes=0)

    def test_status_filter_parsing(self):
        """Test comma-separated status filters."""
        assert helpdesk.parse_status_filter("open, blocked") == [TicketStatus.OPEN, TicketStatus.BLOCKED]
        assert helpdesk.parse_status_filter(None) == []
        with pytest.raises(ValidationError):
            helpdesk.parse_status_filter("open,pending")


class TestTicketLifecycle:
    """Test ticket creation, visibility and updates."""

    def test_create_records_creator(self, db, consultant_actor):
        """Test that the actor becomes the creator and the ticket starts open."""
        ticket = helpdesk.create_ticket(db, consultant_actor, _ticket())
        assert ticket.created_by_user_id == consultant_actor.user_id
        assert ticket.status == TicketStatus.OPEN
        assert ticket.total_time_spent_minutes == 0

    def test_non_staff_only_see_own_tickets(self, db, consultant_actor, admin):
        """Test list visibility."""
        mine = helpdesk.create_ticket(db, consultant_actor, _ticket())
        helpdesk.create_ticket(db, admin, _ticket(title="Someone else's ticket"))

        assert [t.id for t in helpdesk.list_tickets(db, consultant_actor)] == [mine.id]
        assert len(helpdesk.list_tickets(db, admin)) == 2

    def test_reading_another_users_ticket_forbidden(self, db, consultant_actor, admin):
        """Test read access for non-creators."""
        ticket = helpdesk.create_ticket(db, admin, _ticket())
        with pytest.raises(ForbiddenError):
            helpdesk.read_ticket(db, consultant_actor, ticket.id)

    def test_missing_ticket(self, db, admin):
        """Test that unknown tickets raise not found."""
        with pytest.raises(NotFoundError):
            helpdesk.read_ticket(db, admin, uuid4())

    def test_ordering(self, db, admin):
        """Test priority, then due date with nulls last, then newest."""
        low = helpdesk.create_ticket(db, admin, _ticket(title="Low priority", priority=TicketPriority.P3))
        undated = helpdesk.create_ticket(db, admin, _ticket(title="Urgent undated", priority=TicketPriority.P0))
        dated = helpdesk.create_ticket(db, admin, _ticket(
            title="Urgent dated", priority=TicketPriority.P0, due_date=date(2024, 5, 1)
        ))
        ids = [t.id for t in helpdesk.list_tickets(db, admin)]
        assert ids == [dated.id, undated.id, low.id]

    def test_closed_hidden_by_default(self, db, admin):
        """Test that closed tickets need includeClosed or a status filter."""
        ticket = helpdesk.create_ticket(db, admin, _ticket())
        helpdesk.update_ticket(db, admin, ticket.id, schemas.TicketUpdate(status=TicketStatus.CLOSED))

        assert helpdesk.list_tickets(db, admin) == []
        assert len(helpdesk.list_tickets(db, admin, include_closed=True)) == 1
        assert len(helpdesk.list_tickets(db, admin, statuses=[TicketStatus.CLOSED])) == 1

    def test_search(self, db, admin):
        """Test substring search over title and description."""
        helpdesk.create_ticket(db, admin, _ticket(affected_page="/reports/financial"))
        helpdesk.create_ticket(db, admin, _ticket(title="Login page slow"))
        assert len(helpdesk.list_tickets(db, admin, search="financial")) == 1
        assert len(helpdesk.list_tickets(db, admin, search="LOGIN")) == 1


class TestTicketUpdates:
    """Test field whitelisting and closure stamps."""

    def test_creator_restricted_fields_ignored(self, db, consultant_actor):
        """Test that a creator's status change is dropped while allowed fields apply."""
        ticket = helpdesk.create_ticket(db, consultant_actor, _ticket())
        updated = helpdesk.update_ticket(db, consultant_actor, ticket.id, schemas.TicketUpdate(
            title="Export button still broken", status=TicketStatus.CLOSED
        ))
        assert updated.title == "Export button still broken"
        assert updated.status == TicketStatus.OPEN

    def test_only_restricted_fields_rejected(self, db, consultant_actor):
        """Test that an update with nothing permitted is a validation error."""
        ticket = helpdesk.create_ticket(db, consultant_actor, _ticket())
        with pytest.raises(ValidationError):
            helpdesk.update_ticket(db, consultant_actor, ticket.id, schemas.TicketUpdate(
                assigned_to_user_id=uuid4()
            ))

    def test_creator_locked_out_after_resolution(self, db, consultant_actor, admin):
        """Test that creators cannot edit resolved tickets."""
        ticket = helpdesk.create_ticket(db, consultant_actor, _ticket())
        helpdesk.update_ticket(db, admin, ticket.id, schemas.TicketUpdate(status=TicketStatus.RESOLVED))
        with pytest.raises(ForbiddenError):
            helpdesk.update_ticket(db, consultant_actor, ticket.id, schemas.TicketUpdate(
                title="Please look again at this"
            ))

    def test_other_users_cannot_update(self, db, consultant_actor, admin):
        """Test that non-creators without an elevated role are refused."""
        ticket = helpdesk.create_ticket(db, admin, _ticket())
        with pytest.raises(ForbiddenError):
            helpdesk.update_ticket(db, consultant_actor, ticket.id, schemas.TicketUpdate(
                title="Hijacked title"
            ))

    def test_required_field_cannot_be_cleared(self, db, admin):
        """Test that required fields cannot be set to null."""
        ticket = helpdesk.create_ticket(db, admin, _ticket())
        with pytest.raises(ValidationError):
            helpdesk.update_ticket(db, admin, ticket.id, schemas.TicketUpdate(priority=None))

    def test_close_and_reopen_stamps(self, db, admin):
        """Test ClosedAt and ClosedByUserID follow the closed status."""
        ticket = helpdesk.create_ticket(db, admin, _ticket())
        closed = helpdesk.update_ticket(db, admin, ticket.id, schemas.TicketUpdate(
            status=TicketStatus.CLOSED, resolution_summary="Fixed in 1.4"
        ))
        assert closed.closed_at is not None
        assert closed.closed_by_user_id == admin.user_id

        reopened = helpdesk.update_ticket(db, admin, ticket.id, schemas.TicketUpdate(status=TicketStatus.OPEN))
        assert reopened.closed_at is None
        assert reopened.closed_by_user_id is None


class TestTicketChildren:
    """Test comments, attachments and work logs."""

    def test_internal_comments_hidden_from_creator(self, db, consultant_actor, admin):
        """Test internal comment visibility."""
        ticket = helpdesk.create_ticket(db, consultant_actor, _ticket())
        helpdesk.add_comment(db, admin, ticket.id, schemas.TicketCommentCreate(body="Triage note", is_internal=True))
        helpdesk.add_comment(db, admin, ticket.id, schemas.TicketCommentCreate(body="Looking into it"))

        loaded = helpdesk.read_ticket(db, consultant_actor, ticket.id)
        assert [c.body for c in helpdesk.visible_comments(loaded, consultant_actor)] == ["Looking into it"]
        assert len(helpdesk.visible_comments(loaded, admin)) == 2

    def test_creator_cannot_post_internal_comment(self, db, consultant_actor):
        """Test that the internal flag is dropped for non-staff."""
        ticket = helpdesk.create_ticket(db, consultant_actor, _ticket())
        comment = helpdesk.add_comment(
            db, consultant_actor, ticket.id, schemas.TicketCommentCreate(body="Any update?", is_internal=True)
        )
        assert comment.is_internal is False

    def test_work_logs_accumulate(self, db, consultant_actor, admin):
        """Test that the running total equals the sum of logged minutes."""
        ticket = helpdesk.create_ticket(db, consultant_actor, _ticket())
        helpdesk.add_work_log(db, admin, ticket.id, schemas.WorkLogCreate(minutes=30))
        helpdesk.add_work_log(db, admin, ticket.id, schemas.WorkLogCreate(minutes=12.7, note="follow-up"))

        loaded = helpdesk.read_ticket(db, admin, ticket.id)
        assert loaded.total_time_spent_minutes == 42
        assert sum(log.minutes for log in loaded.work_logs) == 42

    def test_failed_work_log_keeps_total(self, db, consultant_actor, admin, fail_commits):
        """Test that a refused commit drops both the log entry and the total increment."""
        ticket = helpdesk.create_ticket(db, consultant_actor, _ticket())
        helpdesk.add_work_log(db, admin, ticket.id, schemas.WorkLogCreate(minutes=15))

        fail_commits()
        with pytest.raises(RuntimeError, match="commit refused"):
            helpdesk.add_work_log(db, admin, ticket.id, schemas.WorkLogCreate(minutes=30))

        loaded = helpdesk.get_ticket(db, ticket.id, with_children=True)
        assert loaded.total_time_spent_minutes == 15
        assert [log.minutes for log in loaded.work_logs] == [15]

    def test_creator_cannot_log_work(self, db, consultant_actor):
        """Test that work logs need an elevated role."""
        ticket = helpdesk.create_ticket(db, consultant_actor, _ticket())
        with pytest.raises(ForbiddenError):
            helpdesk.add_work_log(db, consultant_actor, ticket.id, schemas.WorkLogCreate(minutes=5))

    def test_attachment_metadata(self, db, consultant_actor):
        """Test that creators can attach files to their tickets."""
        ticket = helpdesk.create_ticket(db, consultant_actor, _ticket())
        attachment = helpdesk.add_attachment(db, consultant_actor, ticket.id, schemas.AttachmentCreate(
            file_name="screenshot.png", file_path="tickets/screenshot.png", file_size=2048, mime_type="image/png"
        ))
        assert attachment.uploaded_by_user_id == consultant_actor.user_id


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
