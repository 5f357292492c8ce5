"""Helpdesk ticket API endpoints. All routes require a bearer token."""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ... import helpdesk, models, schemas
from ...database import get_db
from ...permissions import Actor
from ..dependencies import get_current_actor

logger = logging.getLogger("backoffice-core.helpdesk")

router = APIRouter(tags=["helpdesk"])


def _ticket_to_detail(ticket: models.Ticket, actor: Actor) -> schemas.TicketDetailResponse:
    """Convert a Ticket to its detail response, hiding internal comments from non-staff."""
    response = schemas.TicketDetailResponse.model_validate(ticket)
    response.comments = [
        schemas.TicketCommentResponse.model_validate(c) for c in helpdesk.visible_comments(ticket, actor)
    ]
    return response


@router.get("/tickets", response_model=list[schemas.TicketResponse])
def list_tickets(
    status: Optional[str] = Query(None, description="Comma-separated statuses"),
    include_closed: bool = Query(False, alias="includeClosed"),
    category: Optional[models.TicketCategory] = Query(None),
    priority: Optional[models.TicketPriority] = Query(None),
    assigned_to: Optional[UUID] = Query(None, alias="assignedTo"),
    created_by: Optional[UUID] = Query(None, alias="createdBy"),
    q: Optional[str] = Query(None, description="Search title, description, page and feature"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    List tickets.

    Admin and Manager see every ticket; other users only their own.
    Ordered by priority (P0 first), due date (nulls last), then newest.
    """
    return helpdesk.list_tickets(
        db,
        actor,
        statuses=helpdesk.parse_status_filter(status),
        include_closed=include_closed,
        category=category,
        priority=priority,
        assigned_to=assigned_to,
        created_by=created_by,
        search=q,
    )


@router.post("/tickets", response_model=schemas.TicketResponse, status_code=201)
def create_ticket(
    ticket: schemas.TicketCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    Open a ticket.

    - **title**: at least 5 characters
    - **description**: at least 20 characters
    - **category**: defaults to other
    - **priority**: P0-P3, defaults to P2
    """
    return helpdesk.create_ticket(db, actor, ticket)


@router.get("/tickets/{ticket_id}", response_model=schemas.TicketDetailResponse)
def get_ticket(
    ticket_id: UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Get a ticket with comments, work logs and attachments."""
    ticket = helpdesk.read_ticket(db, actor, ticket_id)
    return _ticket_to_detail(ticket, actor)


@router.patch("/tickets/{ticket_id}", response_model=schemas.TicketResponse)
def update_ticket(
    ticket_id: UUID,
    ticket_update: schemas.TicketUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    Update a ticket.

    Creators may edit descriptive fields while the ticket is open,
    in_progress or blocked. Admin and Manager may also set status,
    assignedToUserId, resolutionSummary, estimateMinutes and dueDate.
    """
    return helpdesk.update_ticket(db, actor, ticket_id, ticket_update)


@router.post("/tickets/{ticket_id}/comments", response_model=schemas.TicketCommentResponse, status_code=201)
def add_ticket_comment(
    ticket_id: UUID,
    comment: schemas.TicketCommentCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Comment on a ticket (creator or Admin/Manager)."""
    return helpdesk.add_comment(db, actor, ticket_id, comment)


@router.post("/tickets/{ticket_id}/attachments", response_model=schemas.AttachmentResponse, status_code=201)
def add_ticket_attachment(
    ticket_id: UUID,
    attachment: schemas.AttachmentCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Register attachment metadata on a ticket (creator or Admin/Manager)."""
    return helpdesk.add_attachment(db, actor, ticket_id, attachment)


@router.post("/tickets/{ticket_id}/work-logs", response_model=schemas.WorkLogResponse, status_code=201)
def add_ticket_work_log(
    ticket_id: UUID,
    work_log: schemas.WorkLogCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Log minutes against a ticket (Admin/Manager only)."""
    return helpdesk.add_work_log(db, actor, ticket_id, work_log)
