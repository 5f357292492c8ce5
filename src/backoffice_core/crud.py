"""CRUD operations for reference data, timecards, projects and subtasks."""
import logging
import math
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from . import models, schemas
from .config import get_settings
from .database import transaction
from .errors import NotFoundError, StateConflictError, ValidationError
from .state_machine import (
    HEADER_TRANSITION_MATRIX,
    SUBMITTABLE_STATUSES,
    is_locked_status,
    validate_transition,
)

logger = logging.getLogger("backoffice-core.crud")

MAX_BUCKET_HOURS = 99.9


# ============================================================================
# Hour normalization
# ============================================================================


def clamp_hours(value: Optional[float]) -> float:
    """
    Clamp one hour bucket to [0, 99.9] with one decimal place.

    Args:
        value: Raw hour value (None and NaN count as 0)

    Returns:
        Clamped and rounded hours
    """
    if value is None or math.isnan(value):
        return 0.0
    return round(min(max(float(value), 0.0), MAX_BUCKET_HOURS), 1)


def line_total(client_facing: float, non_client_facing: float, other: float) -> float:
    """Total of the three (already clamped) buckets, rounded to one decimal."""
    return round(client_facing + non_client_facing + other, 1)


# ============================================================================
# Users, consultants, clients, contracts
# ============================================================================


def create_user(db: Session, user: schemas.UserCreate) -> models.User:
    """Create a user."""
    db_user = models.User(**user.model_dump())
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def get_user(db: Session, user_id: UUID) -> Optional[models.User]:
    """Get a user by ID."""
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_users(db: Session) -> list[models.User]:
    """List users ordered by last name, first name."""
    return db.query(models.User).order_by(models.User.last_name, models.User.first_name).all()


def create_consultant(db: Session, consultant: schemas.ConsultantCreate) -> models.Consultant:
    """Create a consultant."""
    db_consultant = models.Consultant(**consultant.model_dump())
    db.add(db_consultant)
    db.commit()
    db.refresh(db_consultant)
    logger.info(f"Created consultant {db_consultant.id}: {db_consultant.display_name}")
    return db_consultant


def get_consultant(db: Session, consultant_id: UUID) -> Optional[models.Consultant]:
    """Get a consultant by ID."""
    return db.query(models.Consultant).filter(models.Consultant.id == consultant_id).first()


def get_consultants(db: Session, active_only: bool = False) -> list[models.Consultant]:
    """
    List consultants ordered by last name, first name.

    Args:
        db: Database session
        active_only: Only return consultants whose status flag is set

    Returns:
        List of consultants
    """
    query = db.query(models.Consultant)
    if active_only:
        query = query.filter(models.Consultant.status.is_(True))
    return query.order_by(models.Consultant.last_name, models.Consultant.first_name).all()


def create_client(db: Session, client: schemas.ClientCreate) -> models.Client:
    """Create a client."""
    db_client = models.Client(**client.model_dump())
    db.add(db_client)
    db.commit()
    db.refresh(db_client)
    logger.info(f"Created client {db_client.id}: {db_client.client_name}")
    return db_client


def get_client(db: Session, client_id: UUID) -> Optional[models.Client]:
    """Get a client by ID."""
    return db.query(models.Client).filter(models.Client.id == client_id).first()


def get_clients(db: Session) -> list[models.Client]:
    """List clients ordered by name."""
    return db.query(models.Client).order_by(models.Client.client_name).all()


def create_contract(db: Session, contract: schemas.ContractCreate) -> models.Contract:
    """
    Create a contract.

    Raises:
        NotFoundError: If the client does not exist
    """
    if not get_client(db, contract.client_id):
        raise NotFoundError(f"Client not found: {contract.client_id}")

    db_contract = models.Contract(**contract.model_dump())
    db.add(db_contract)
    db.commit()
    db.refresh(db_contract)
    logger.info(f"Created contract {db_contract.id} for client {db_contract.client_id}")
    return db_contract


def get_contract(db: Session, contract_id: UUID) -> Optional[models.Contract]:
    """Get a contract by ID."""
    return db.query(models.Contract).filter(models.Contract.id == contract_id).first()


def get_contracts(db: Session, client_id: Optional[UUID] = None) -> list[models.Contract]:
    """List contracts, optionally for one client, newest start date first."""
    query = db.query(models.Contract)
    if client_id:
        query = query.filter(models.Contract.client_id == client_id)
    return query.order_by(models.Contract.contract_start_date.desc().nulls_last()).all()


# ============================================================================
# Timecard headers
# ============================================================================


def get_timecard_header(db: Session, timecard_id: UUID) -> Optional[models.TimecardHeader]:
    """Get a timecard header by ID."""
    return db.query(models.TimecardHeader).filter(models.TimecardHeader.id == timecard_id).first()


def get_timecard_headers(db: Session) -> list[models.TimecardHeader]:
    """List all timecard headers, newest day first."""
    return (
        db.query(models.TimecardHeader)
        .order_by(models.TimecardHeader.timesheet_date.desc())
        .all()
    )


def get_timecard_headers_by_consultant(db: Session, consultant_id: UUID) -> list[models.TimecardHeader]:
    """List a consultant's timecard headers ordered by date descending."""
    return (
        db.query(models.TimecardHeader)
        .filter(models.TimecardHeader.consultant_id == consultant_id)
        .order_by(models.TimecardHeader.timesheet_date.desc())
        .all()
    )


def get_timecard_header_by_consultant_and_date(
    db: Session, consultant_id: UUID, timesheet_date: date
) -> Optional[models.TimecardHeader]:
    """Get the header for one consultant day, if any."""
    return (
        db.query(models.TimecardHeader)
        .filter(
            models.TimecardHeader.consultant_id == consultant_id,
            models.TimecardHeader.timesheet_date == timesheet_date,
        )
        .first()
    )


def get_timecard_day_status(db: Session, consultant_id: UUID, timesheet_date: date) -> schemas.TimecardDayStatus:
    """
    Get the status of a consultant day.

    A day without a header reports ``Not Submitted``.
    """
    header = get_timecard_header_by_consultant_and_date(db, consultant_id, timesheet_date)
    if header is None:
        return schemas.TimecardDayStatus(
            consultant_id=consultant_id,
            timesheet_date=timesheet_date,
            status=models.TimecardStatus.NOT_SUBMITTED,
        )
    return schemas.TimecardDayStatus(
        consultant_id=consultant_id,
        timesheet_date=timesheet_date,
        timecard_id=header.id,
        status=header.status,
        total_hours=header.total_hours,
    )


def create_timecard_header(db: Session, header: schemas.TimecardHeaderCreate) -> models.TimecardHeader:
    """
    Create a timecard header.

    Args:
        db: Database session
        header: Header data (TotalHours defaults to 0, Status to Open, Notes to "")

    Returns:
        Created header
    """
    now = datetime.utcnow()
    db_header = models.TimecardHeader(
        consultant_id=header.consultant_id,
        timesheet_date=header.timesheet_date,
        total_hours=header.total_hours,
        status=header.status,
        notes=header.notes,
        created_on=now,
        updated_on=now,
    )
    db.add(db_header)
    db.commit()
    db.refresh(db_header)
    logger.info(f"Created timecard header {db_header.id} for {header.consultant_id} on {header.timesheet_date}")
    return db_header


def update_timecard_header(
    db: Session, timecard_id: UUID, header_update: schemas.TimecardHeaderUpdate
) -> Optional[models.TimecardHeader]:
    """
    Update status, notes or total hours of a header.

    Returns:
        Updated header, or None if not found

    Raises:
        StateTransitionError: If the status change is not allowed
    """
    db_header = get_timecard_header(db, timecard_id)
    if not db_header:
        return None

    update_data = header_update.model_dump(exclude_unset=True)
    if update_data.get("status") is not None:
        validate_transition(db_header.status, update_data["status"], HEADER_TRANSITION_MATRIX)

    for field, value in update_data.items():
        if value is not None:
            setattr(db_header, field, value)
    db_header.updated_on = datetime.utcnow()

    db.commit()
    db.refresh(db_header)
    logger.info(f"Updated timecard header {timecard_id}: {sorted(update_data)}")
    return db_header


def delete_timecard_header(db: Session, timecard_id: UUID) -> bool:
    """Delete a header. Its lines are kept and detached."""
    db_header = get_timecard_header(db, timecard_id)
    if not db_header:
        return False

    for line in db_header.lines:
        line.timecard_id = None
    db.delete(db_header)
    db.commit()
    logger.info(f"Deleted timecard header {timecard_id}")
    return True


def reconcile_timecard_header(db: Session, timecard_id: UUID) -> Optional[schemas.TimecardReconciliation]:
    """
    Compare a header's stored total with the sum of its lines.

    Read-only: the header total is never rewritten from the lines.

    Returns:
        Reconciliation, or None if the header does not exist
    """
    db_header = get_timecard_header(db, timecard_id)
    if not db_header:
        return None

    line_sum = (
        db.query(func.coalesce(func.sum(models.TimecardLine.total_hours), 0.0))
        .filter(models.TimecardLine.timecard_id == timecard_id)
        .scalar()
    )
    line_sum = round(float(line_sum or 0.0), 1)
    header_total = round(float(db_header.total_hours or 0.0), 1)
    return schemas.TimecardReconciliation(
        timecard_id=timecard_id,
        header_total_hours=header_total,
        line_total_hours=line_sum,
        drift=round(header_total - line_sum, 1),
    )


# ============================================================================
# Timecard lines
# ============================================================================


def get_timecard_line(db: Session, line_id: UUID) -> Optional[models.TimecardLine]:
    """Get a timecard line by ID."""
    return db.query(models.TimecardLine).filter(models.TimecardLine.id == line_id).first()


def _lines_query(db: Session):
    return db.query(models.TimecardLine).options(
        joinedload(models.TimecardLine.consultant),
        joinedload(models.TimecardLine.client),
    )


def get_timecard_lines(db: Session) -> list[models.TimecardLine]:
    """List all lines, newest day first."""
    return (
        _lines_query(db)
        .order_by(models.TimecardLine.timesheet_date.desc(), models.TimecardLine.created_on)
        .all()
    )


def get_timecard_lines_by_header(db: Session, timecard_id: UUID) -> list[models.TimecardLine]:
    """List the lines of one header with consultant and client loaded."""
    return (
        _lines_query(db)
        .filter(models.TimecardLine.timecard_id == timecard_id)
        .order_by(models.TimecardLine.created_on)
        .all()
    )


def get_timecard_lines_by_consultant_and_date(
    db: Session, consultant_id: UUID, timesheet_date: date
) -> list[models.TimecardLine]:
    """List a consultant's lines for one day."""
    return (
        _lines_query(db)
        .filter(
            models.TimecardLine.consultant_id == consultant_id,
            models.TimecardLine.timesheet_date == timesheet_date,
        )
        .order_by(models.TimecardLine.created_on)
        .all()
    )


def _month_bounds(year: int, month: int) -> tuple[date, date]:
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid month: {month}")
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start, end


def get_timecard_lines_by_month(
    db: Session, year: int, month: int, consultant_id: Optional[UUID] = None
) -> list[models.TimecardLine]:
    """
    List lines in a calendar month.

    Args:
        db: Database session
        year: Calendar year
        month: Calendar month (1-12)
        consultant_id: Restrict to one consultant

    Returns:
        Lines ordered by date, then creation time

    Raises:
        ValidationError: If the month is out of range
    """
    start, end = _month_bounds(year, month)
    query = _lines_query(db).filter(
        models.TimecardLine.timesheet_date >= start,
        models.TimecardLine.timesheet_date < end,
    )
    if consultant_id:
        query = query.filter(models.TimecardLine.consultant_id == consultant_id)
    return query.order_by(models.TimecardLine.timesheet_date, models.TimecardLine.created_on).all()


def get_timecard_lines_by_date(db: Session, timesheet_date: date) -> list[models.TimecardLine]:
    """List every consultant's lines for one day."""
    return (
        _lines_query(db)
        .filter(models.TimecardLine.timesheet_date == timesheet_date)
        .order_by(models.TimecardLine.consultant_id, models.TimecardLine.created_on)
        .all()
    )


def get_timecard_summary(db: Session) -> list[schemas.TimecardDaySummary]:
    """Total hours per consultant per day, newest day first."""
    rows = (
        db.query(
            models.TimecardLine.consultant_id,
            models.TimecardLine.timesheet_date,
            func.sum(models.TimecardLine.total_hours).label("total_hours"),
        )
        .group_by(models.TimecardLine.consultant_id, models.TimecardLine.timesheet_date)
        .order_by(models.TimecardLine.timesheet_date.desc())
        .all()
    )
    return [
        schemas.TimecardDaySummary(
            consultant_id=row.consultant_id,
            timesheet_date=row.timesheet_date,
            total_hours=round(float(row.total_hours or 0.0), 1),
        )
        for row in rows
    ]


def create_timecard_line(db: Session, line: schemas.TimecardLineCreate) -> models.TimecardLine:
    """
    Create a timecard line.

    Each hour bucket is clamped to [0, 99.9] with one decimal place and the
    total is their rounded sum. A blank project falls back to the generic
    time-entry project.

    Args:
        db: Database session
        line: Line data

    Returns:
        Created line

    Raises:
        ValidationError: If the initial status is not a line status
    """
    if line.status == models.TimecardStatus.NOT_SUBMITTED:
        raise ValidationError("Timecard lines cannot be created as 'Not Submitted'")

    settings = get_settings()
    client_facing = clamp_hours(line.client_facing_hours)
    non_client_facing = clamp_hours(line.non_client_facing_hours)
    other = clamp_hours(line.other_task_hours)

    project_id = line.project_id or settings.generic_project_id
    project_name = line.project_name or settings.generic_project_name

    now = datetime.utcnow()
    db_line = models.TimecardLine(
        timecard_id=line.timecard_id,
        consultant_id=line.consultant_id,
        timesheet_date=line.timesheet_date,
        client_id=line.client_id,
        project_id=project_id,
        project_name=project_name,
        project_task=line.project_task,
        client_facing_hours=client_facing,
        non_client_facing_hours=non_client_facing,
        other_task_hours=other,
        total_hours=line_total(client_facing, non_client_facing, other),
        status=line.status,
        notes=line.notes,
        benchmark_status=line.benchmark_status,
        approved_by=line.approved_by,
        rejected_notes=line.rejected_notes,
        is_locked=is_locked_status(line.status),
        created_on=now,
        updated_on=now,
    )
    db.add(db_line)
    db.commit()
    db.refresh(db_line)
    logger.info(f"Created timecard line {db_line.id} ({db_line.total_hours}h) for {line.consultant_id}")
    return db_line


def update_timecard_line(
    db: Session, line_id: UUID, line_update: schemas.TimecardLineUpdate
) -> Optional[models.TimecardLine]:
    """
    Patch a timecard line.

    Only provided fields change; UpdatedOn is always stamped. Hour buckets
    are clamped and the total recomputed when any of them changes. A status
    change follows the line transition table and sets the lock flag to match
    the new status unless IsLocked is given explicitly.

    Args:
        db: Database session
        line_id: Line UUID
        line_update: Fields to change

    Returns:
        Updated line, or None if not found

    Raises:
        StateConflictError: If the line is Approved
        StateTransitionError: If the status change is not allowed
    """
    db_line = get_timecard_line(db, line_id)
    if not db_line:
        return None

    if db_line.status == models.TimecardStatus.APPROVED:
        logger.warning(f"Rejected update of approved timecard line {line_id}")
        raise StateConflictError("Cannot update an approved timecard line")

    update_data = line_update.model_dump(exclude_unset=True)

    new_status = update_data.pop("status", None)
    if new_status is not None:
        validate_transition(db_line.status, new_status)
        db_line.status = new_status
        if "is_locked" not in update_data:
            db_line.is_locked = is_locked_status(new_status)

    if "project_id" in update_data:
        update_data["project_id"] = update_data["project_id"] or get_settings().generic_project_id

    hours_changed = False
    for field in ("client_facing_hours", "non_client_facing_hours", "other_task_hours"):
        if field in update_data:
            setattr(db_line, field, clamp_hours(update_data.pop(field)))
            hours_changed = True
    if hours_changed:
        db_line.total_hours = line_total(
            db_line.client_facing_hours, db_line.non_client_facing_hours, db_line.other_task_hours
        )

    for field, value in update_data.items():
        if field == "is_locked" and value is None:
            continue
        setattr(db_line, field, value)
    db_line.updated_on = datetime.utcnow()

    db.commit()
    db.refresh(db_line)
    logger.info(f"Updated timecard line {line_id}")
    return db_line


def submit_timecard_day(db: Session, consultant_id: UUID, timesheet_date: date) -> int:
    """
    Submit every Open or Rejected line of a consultant day.

    One conditional UPDATE: matching lines become Submitted and locked; lines
    already Submitted or Approved are untouched.

    Returns:
        Number of lines submitted
    """
    rows_affected = (
        db.query(models.TimecardLine)
        .filter(
            models.TimecardLine.consultant_id == consultant_id,
            models.TimecardLine.timesheet_date == timesheet_date,
            models.TimecardLine.status.in_(SUBMITTABLE_STATUSES),
        )
        .update(
            {
                models.TimecardLine.status: models.TimecardStatus.SUBMITTED,
                models.TimecardLine.is_locked: True,
                models.TimecardLine.updated_on: datetime.utcnow(),
            },
            synchronize_session=False,
        )
    )
    db.commit()
    logger.info(f"Submitted {rows_affected} timecard lines for {consultant_id} on {timesheet_date}")
    return rows_affected


def delete_timecard_line(db: Session, line_id: UUID) -> bool:
    """
    Delete a timecard line.

    Raises:
        StateConflictError: If the line is Approved
    """
    db_line = get_timecard_line(db, line_id)
    if not db_line:
        return False
    if db_line.status == models.TimecardStatus.APPROVED:
        raise StateConflictError("Cannot delete an approved timecard line")

    db.delete(db_line)
    db.commit()
    logger.info(f"Deleted timecard line {line_id}")
    return True


# ============================================================================
# Projects and subtasks
# ============================================================================


def create_project(db: Session, project: schemas.ProjectCreate) -> models.Project:
    """Create a project in Active status."""
    now = datetime.utcnow()
    db_project = models.Project(**project.model_dump(), created_on=now, updated_on=now)
    db.add(db_project)
    db.commit()
    db.refresh(db_project)
    logger.info(f"Created project {db_project.id}: {db_project.project_name}")
    return db_project


def get_project(db: Session, project_id: UUID) -> Optional[models.Project]:
    """Get a project with its tasks and subtasks."""
    return (
        db.query(models.Project)
        .options(joinedload(models.Project.tasks).joinedload(models.ProjectTask.subtasks))
        .filter(models.Project.id == project_id)
        .first()
    )


def create_project_task(db: Session, project_id: UUID, task: schemas.ProjectTaskCreate) -> Optional[models.ProjectTask]:
    """Add a task to a project. Returns None if the project does not exist."""
    if not db.query(models.Project).filter(models.Project.id == project_id).first():
        return None

    db_task = models.ProjectTask(project_id=project_id, task_name=task.task_name)
    db.add(db_task)
    db.commit()
    db.refresh(db_task)
    return db_task


def get_subtask(db: Session, subtask_id: UUID) -> Optional[models.Subtask]:
    """Get a subtask by ID."""
    return db.query(models.Subtask).filter(models.Subtask.id == subtask_id).first()


def get_subtasks_by_task(db: Session, task_id: UUID) -> list[models.Subtask]:
    """List a task's subtasks by due date (nulls last), then creation time."""
    return (
        db.query(models.Subtask)
        .filter(models.Subtask.task_id == task_id)
        .order_by(models.Subtask.due_date.asc().nulls_last(), models.Subtask.created_on)
        .all()
    )


def create_subtask(db: Session, subtask: schemas.SubtaskCreate) -> models.Subtask:
    """
    Create a subtask.

    Raises:
        NotFoundError: If the parent task does not exist
    """
    task = db.query(models.ProjectTask).filter(models.ProjectTask.id == subtask.task_id).first()
    if not task:
        raise NotFoundError(f"Task not found: {subtask.task_id}")

    now = datetime.utcnow()
    db_subtask = models.Subtask(**subtask.model_dump(), created_on=now, updated_on=now)
    with transaction(db):
        db.add(db_subtask)
        db.flush()
        _sync_project_status(db, task.project_id)
    db.refresh(db_subtask)
    return db_subtask


def _sync_project_status(db: Session, project_id: UUID) -> Optional[models.ProjectStatus]:
    """
    Recompute a project's status from its subtasks.

    Completed when no subtask of the project is open, Active otherwise.
    Writes only when the status differs. Caller owns the transaction.

    Returns:
        The new status if it changed, else None
    """
    open_count = (
        db.query(func.count(models.Subtask.id))
        .join(models.ProjectTask, models.Subtask.task_id == models.ProjectTask.id)
        .filter(
            models.ProjectTask.project_id == project_id,
            models.Subtask.status != models.SubtaskStatus.COMPLETED,
        )
        .scalar()
    )
    target = models.ProjectStatus.COMPLETED if open_count == 0 else models.ProjectStatus.ACTIVE

    project = db.query(models.Project).filter(models.Project.id == project_id).first()
    if project is None or project.status == target:
        return None

    project.status = target
    project.updated_on = datetime.utcnow()
    logger.info(f"Project {project_id} status → {target.value} ({open_count} open subtasks)")
    return target


def update_subtask(db: Session, subtask_id: UUID, subtask_update: schemas.SubtaskUpdate) -> Optional[models.Subtask]:
    """
    Patch a subtask.

    A status change recomputes the parent project's status in the same
    transaction.

    Returns:
        Updated subtask, or None if not found
    """
    db_subtask = get_subtask(db, subtask_id)
    if not db_subtask:
        return None

    update_data = subtask_update.model_dump(exclude_unset=True)
    status_changed = "status" in update_data and update_data["status"] != db_subtask.status

    with transaction(db):
        for field, value in update_data.items():
            if field == "status" and value is None:
                continue
            setattr(db_subtask, field, value)
        db_subtask.updated_on = datetime.utcnow()
        db.flush()
        if status_changed:
            _sync_project_status(db, db_subtask.task.project_id)

    db.refresh(db_subtask)
    return db_subtask


def delete_subtask(db: Session, subtask_id: UUID) -> bool:
    """Delete a subtask. The project status is left as is."""
    db_subtask = get_subtask(db, subtask_id)
    if not db_subtask:
        return False

    db.delete(db_subtask)
    db.commit()
    logger.info(f"Deleted subtask {subtask_id}")
    return True
