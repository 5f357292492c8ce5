"""Internal IT helpdesk: tickets, comments, attachments and work logs.

Access goes through ``permissions.authorize``. Creators may edit the
descriptive fields of their own tickets while the ticket is still being
worked (open, in_progress, blocked); Admin and Manager may change every
field, including assignment and closure, at any status.
"""
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import case, or_
from sqlalchemy.orm import Session, selectinload

from . import models, schemas
from .database import transaction
from .errors import NotFoundError, ValidationError
from .permissions import Action, Actor, ResourceKind, authorize, is_allowed

logger = logging.getLogger("backoffice-core.helpdesk")

PRIORITY_ORDER = [
    models.TicketPriority.P0,
    models.TicketPriority.P1,
    models.TicketPriority.P2,
    models.TicketPriority.P3,
]

CLOSED_STATUSES = (models.TicketStatus.RESOLVED, models.TicketStatus.CLOSED)

# Fields a creator may change on their own ticket
CREATOR_FIELDS = frozenset({
    "title",
    "description",
    "category",
    "priority",
    "affected_page",
    "affected_feature",
    "steps_to_reproduce",
    "expected_behavior",
    "actual_behavior",
    "environment",
})

# Additional fields only elevated staff may change
RESTRICTED_FIELDS = frozenset({
    "status",
    "assigned_to_user_id",
    "resolution_summary",
    "estimate_minutes",
    "due_date",
})

# Fields that may not be cleared once set
REQUIRED_FIELDS = frozenset({"title", "description", "category", "priority", "status"})


def _ticket_query(db: Session):
    return db.query(models.Ticket)


def get_ticket(db: Session, ticket_id: UUID, with_children: bool = False) -> Optional[models.Ticket]:
    """Get a ticket, optionally loading comments, work logs and attachments."""
    query = _ticket_query(db)
    if with_children:
        query = query.options(
            selectinload(models.Ticket.comments),
            selectinload(models.Ticket.work_logs),
            selectinload(models.Ticket.attachments),
        )
    return query.filter(models.Ticket.id == ticket_id).first()


def _require_ticket(db: Session, ticket_id: UUID, with_children: bool = False) -> models.Ticket:
    ticket = get_ticket(db, ticket_id, with_children=with_children)
    if ticket is None:
        raise NotFoundError(f"Ticket not found: {ticket_id}")
    return ticket


def parse_status_filter(value: Optional[str]) -> list[models.TicketStatus]:
    """
    Parse a comma-separated status filter.

    Raises:
        ValidationError: If any entry is not a ticket status
    """
    if not value:
        return []
    statuses = []
    for raw in value.split(","):
        raw = raw.strip()
        if not raw:
            continue
        try:
            statuses.append(models.TicketStatus(raw))
        except ValueError:
            allowed = ", ".join(s.value for s in models.TicketStatus)
            raise ValidationError(f"Invalid status '{raw}'. Allowed: {allowed}") from None
    return statuses


def list_tickets(
    db: Session,
    actor: Actor,
    statuses: Optional[list[models.TicketStatus]] = None,
    include_closed: bool = False,
    category: Optional[models.TicketCategory] = None,
    priority: Optional[models.TicketPriority] = None,
    assigned_to: Optional[UUID] = None,
    created_by: Optional[UUID] = None,
    search: Optional[str] = None,
) -> list[models.Ticket]:
    """
    List tickets visible to the actor.

    Non-elevated actors only ever see tickets they created. Closed and
    resolved tickets are hidden unless ``include_closed`` is set or a status
    filter names them.

    Ordered by priority (P0 first), then due date (nulls last), then newest.

    Args:
        db: Database session
        actor: Caller
        statuses: Only these statuses
        include_closed: Include resolved and closed tickets
        category: Filter by category
        priority: Filter by priority
        assigned_to: Filter by assignee
        created_by: Filter by creator (ignored for non-elevated actors)
        search: Substring over title, description, affected page and feature

    Returns:
        Ordered list of tickets
    """
    query = _ticket_query(db)

    if not actor.is_elevated:
        query = query.filter(models.Ticket.created_by_user_id == actor.user_id)
    elif created_by:
        query = query.filter(models.Ticket.created_by_user_id == created_by)

    if statuses:
        query = query.filter(models.Ticket.status.in_(statuses))
    elif not include_closed:
        query = query.filter(models.Ticket.status.notin_(CLOSED_STATUSES))

    if category:
        query = query.filter(models.Ticket.category == category)
    if priority:
        query = query.filter(models.Ticket.priority == priority)
    if assigned_to:
        query = query.filter(models.Ticket.assigned_to_user_id == assigned_to)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            models.Ticket.title.ilike(pattern),
            models.Ticket.description.ilike(pattern),
            models.Ticket.affected_page.ilike(pattern),
            models.Ticket.affected_feature.ilike(pattern),
        ))

    priority_rank = case(
        {p: i for i, p in enumerate(PRIORITY_ORDER)},
        value=models.Ticket.priority,
    )
    return query.order_by(
        priority_rank,
        models.Ticket.due_date.asc().nulls_last(),
        models.Ticket.created_at.desc(),
    ).all()


def read_ticket(db: Session, actor: Actor, ticket_id: UUID) -> models.Ticket:
    """
    Get a ticket with its children, enforcing read access.

    Raises:
        NotFoundError: If the ticket does not exist
        ForbiddenError: If the actor is neither the creator nor elevated
    """
    ticket = _require_ticket(db, ticket_id, with_children=True)
    authorize(actor, Action.READ, ResourceKind.TICKET, owner_id=ticket.created_by_user_id)
    return ticket


def visible_comments(ticket: models.Ticket, actor: Actor) -> list[models.TicketComment]:
    """Internal comments are only shown to elevated staff."""
    if actor.is_elevated:
        return list(ticket.comments)
    return [c for c in ticket.comments if not c.is_internal]


def create_ticket(db: Session, actor: Actor, ticket: schemas.TicketCreate) -> models.Ticket:
    """
    Open a ticket on behalf of the actor.

    Args:
        db: Database session
        actor: Caller, recorded as creator
        ticket: Validated ticket data (category defaults to other, priority to P2)

    Returns:
        Created ticket
    """
    authorize(actor, Action.CREATE, ResourceKind.TICKET)

    now = datetime.utcnow()
    db_ticket = models.Ticket(
        **ticket.model_dump(),
        status=models.TicketStatus.OPEN,
        created_at=now,
        created_by_user_id=actor.user_id,
        updated_at=now,
        updated_by_user_id=actor.user_id,
        total_time_spent_minutes=0,
    )
    db.add(db_ticket)
    db.commit()
    db.refresh(db_ticket)
    logger.info(f"Ticket {db_ticket.id} opened by {actor.user_id}: {db_ticket.title}")
    return db_ticket


def allowed_update_fields(actor: Actor) -> frozenset:
    """Fields the actor may change on a ticket they can update."""
    if is_allowed(actor, Action.UPDATE_RESTRICTED, ResourceKind.TICKET):
        return CREATOR_FIELDS | RESTRICTED_FIELDS
    return CREATOR_FIELDS


def update_ticket(db: Session, actor: Actor, ticket_id: UUID, ticket_update: schemas.TicketUpdate) -> models.Ticket:
    """
    Update a ticket.

    The payload is whitelisted by role first; fields the actor may not
    change are ignored. If nothing remains, or a required field would be
    cleared, the update is rejected without touching the ticket. Setting
    status to closed stamps ClosedAt and ClosedByUserID; reopening clears
    them.

    Raises:
        NotFoundError: If the ticket does not exist
        ForbiddenError: If the actor may not update this ticket in its status
        ValidationError: If no permitted field was supplied or a required one is cleared
    """
    ticket = _require_ticket(db, ticket_id)
    authorize(
        actor,
        Action.UPDATE,
        ResourceKind.TICKET,
        owner_id=ticket.created_by_user_id,
        status=ticket.status,
    )

    permitted = allowed_update_fields(actor)
    requested = ticket_update.model_dump(exclude_unset=True)
    changes = {field: value for field, value in requested.items() if field in permitted}

    ignored = sorted(set(requested) - set(changes))
    if ignored:
        logger.info(f"Ignoring fields {ignored} on ticket {ticket_id} for user {actor.user_id}")
    if not changes:
        raise ValidationError("No updatable fields supplied")

    cleared = sorted(field for field in REQUIRED_FIELDS if field in changes and changes[field] is None)
    if cleared:
        raise ValidationError(f"Fields cannot be cleared: {', '.join(cleared)}")

    now = datetime.utcnow()
    new_status = changes.get("status")
    if new_status is not None and new_status != ticket.status:
        if new_status == models.TicketStatus.CLOSED:
            ticket.closed_at = now
            ticket.closed_by_user_id = actor.user_id
        elif ticket.status == models.TicketStatus.CLOSED:
            ticket.closed_at = None
            ticket.closed_by_user_id = None

    for field, value in changes.items():
        setattr(ticket, field, value)
    ticket.updated_at = now
    ticket.updated_by_user_id = actor.user_id

    db.commit()
    db.refresh(ticket)
    logger.info(f"Ticket {ticket_id} updated by {actor.user_id}: {sorted(changes)}")
    return ticket


def add_comment(
    db: Session, actor: Actor, ticket_id: UUID, comment: schemas.TicketCommentCreate
) -> models.TicketComment:
    """
    Comment on a ticket. Only elevated staff may post internal comments.

    Raises:
        NotFoundError: If the ticket does not exist
        ForbiddenError: If the actor is neither the creator nor elevated
    """
    ticket = _require_ticket(db, ticket_id)
    authorize(actor, Action.COMMENT, ResourceKind.TICKET, owner_id=ticket.created_by_user_id)

    db_comment = models.TicketComment(
        ticket_id=ticket.id,
        body=comment.body,
        is_internal=comment.is_internal and actor.is_elevated,
        created_at=datetime.utcnow(),
        created_by_user_id=actor.user_id,
    )
    db.add(db_comment)
    db.commit()
    db.refresh(db_comment)
    return db_comment


def add_attachment(
    db: Session, actor: Actor, ticket_id: UUID, attachment: schemas.AttachmentCreate
) -> models.TicketAttachment:
    """
    Register attachment metadata on a ticket.

    Raises:
        NotFoundError: If the ticket does not exist
        ForbiddenError: If the actor is neither the creator nor elevated
    """
    ticket = _require_ticket(db, ticket_id)
    authorize(actor, Action.ATTACH, ResourceKind.TICKET, owner_id=ticket.created_by_user_id)

    db_attachment = models.TicketAttachment(
        ticket_id=ticket.id,
        **attachment.model_dump(),
        uploaded_at=datetime.utcnow(),
        uploaded_by_user_id=actor.user_id,
    )
    db.add(db_attachment)
    db.commit()
    db.refresh(db_attachment)
    logger.info(f"Attachment {db_attachment.file_name} added to ticket {ticket_id}")
    return db_attachment


def add_work_log(db: Session, actor: Actor, ticket_id: UUID, work_log: schemas.WorkLogCreate) -> models.TicketWorkLog:
    """
    Log time against a ticket.

    The log entry and the ticket's running total are written in one
    transaction. The total is incremented in SQL so concurrent logs add up.

    Raises:
        NotFoundError: If the ticket does not exist
        ForbiddenError: If the actor is not Admin or Manager
    """
    ticket = _require_ticket(db, ticket_id)
    authorize(actor, Action.LOG_WORK, ResourceKind.TICKET, owner_id=ticket.created_by_user_id)

    now = datetime.utcnow()
    db_log = models.TicketWorkLog(
        ticket_id=ticket.id,
        minutes=work_log.minutes,
        note=work_log.note,
        created_at=now,
        created_by_user_id=actor.user_id,
    )
    with transaction(db):
        db.add(db_log)
        db.query(models.Ticket).filter(models.Ticket.id == ticket.id).update(
            {
                models.Ticket.total_time_spent_minutes: models.Ticket.total_time_spent_minutes + work_log.minutes,
                models.Ticket.updated_at: now,
                models.Ticket.updated_by_user_id: actor.user_id,
            },
            synchronize_session=False,
        )

    db.refresh(db_log)
    db.refresh(ticket)
    logger.info(f"Logged {work_log.minutes} min on ticket {ticket_id} (total {ticket.total_time_spent_minutes})")
    return db_log
