"""Collaboration spaces and tasks."""
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import case
from sqlalchemy.orm import Session, selectinload

from . import models, schemas
from .database import transaction
from .errors import NotFoundError, ValidationError
from .permissions import Action, Actor, ResourceKind, authorize

logger = logging.getLogger("backoffice-core.collaboration")

PRIORITY_ORDER = [
    models.CollaborationTaskPriority.URGENT,
    models.CollaborationTaskPriority.HIGH,
    models.CollaborationTaskPriority.MEDIUM,
    models.CollaborationTaskPriority.LOW,
]

CLOSED_STATUSES = (models.CollaborationTaskStatus.DONE, models.CollaborationTaskStatus.CANCELLED)

# Fields only elevated staff may change on an existing task
RESTRICTED_FIELDS = frozenset({"status", "assigned_to_user_id"})


# ============================================================================
# Spaces
# ============================================================================


def _membership(space: models.CollaborationSpace, user_id: UUID) -> Optional[models.CollaborationSpaceMember]:
    for member in space.members:
        if member.user_id == user_id:
            return member
    return None


def list_spaces_for_user(db: Session, user_id: UUID) -> list[models.CollaborationSpace]:
    """List the spaces a user belongs to, most recently updated first."""
    return (
        db.query(models.CollaborationSpace)
        .join(
            models.CollaborationSpaceMember,
            models.CollaborationSpaceMember.space_id == models.CollaborationSpace.id,
        )
        .filter(models.CollaborationSpaceMember.user_id == user_id)
        .order_by(models.CollaborationSpace.updated_on.desc())
        .all()
    )


def create_space(db: Session, actor: Actor, space: schemas.SpaceCreate) -> models.CollaborationSpace:
    """
    Create a space with the actor as OWNER.

    The space, the owner membership and one MEMBER row per distinct
    ``member_user_ids`` entry (excluding the creator) are inserted in a
    single transaction.

    Returns:
        Created space with members loaded
    """
    authorize(actor, Action.CREATE, ResourceKind.SPACE)

    now = datetime.utcnow()
    db_space = models.CollaborationSpace(
        name=space.name,
        description=space.description,
        is_private=space.is_private,
        created_by_user_id=actor.user_id,
        created_on=now,
        updated_on=now,
    )

    member_ids: list[UUID] = []
    for user_id in space.member_user_ids:
        if user_id != actor.user_id and user_id not in member_ids:
            member_ids.append(user_id)

    with transaction(db):
        db.add(db_space)
        db.flush()
        db.add(models.CollaborationSpaceMember(
            space_id=db_space.id,
            user_id=actor.user_id,
            role=models.SpaceMemberRole.OWNER,
            added_on=now,
        ))
        for user_id in member_ids:
            db.add(models.CollaborationSpaceMember(
                space_id=db_space.id,
                user_id=user_id,
                role=models.SpaceMemberRole.MEMBER,
                added_on=now,
            ))

    logger.info(f"Space {db_space.id} '{db_space.name}' created by {actor.user_id} with {len(member_ids)} members")
    return get_space(db, db_space.id)


def get_space(db: Session, space_id: UUID) -> Optional[models.CollaborationSpace]:
    """Get a space with its members loaded."""
    return (
        db.query(models.CollaborationSpace)
        .options(
            selectinload(models.CollaborationSpace.members)
            .selectinload(models.CollaborationSpaceMember.user)
        )
        .filter(models.CollaborationSpace.id == space_id)
        .first()
    )


def read_space(db: Session, actor: Actor, space_id: UUID) -> models.CollaborationSpace:
    """
    Get a space, enforcing visibility.

    Public spaces are readable by anyone; private ones only by members and
    elevated staff.

    Raises:
        NotFoundError: If the space does not exist
        ForbiddenError: If the space is private and the actor may not see it
    """
    space = get_space(db, space_id)
    if space is None:
        raise NotFoundError(f"Space not found: {space_id}")
    if space.is_private:
        member = _membership(space, actor.user_id)
        authorize(actor, Action.READ, ResourceKind.SPACE, owner_id=member.user_id if member else None)
    return space


def add_member(
    db: Session, actor: Actor, space_id: UUID, member: schemas.SpaceMemberAdd
) -> models.CollaborationSpace:
    """
    Add a user to a space. Adding an existing member is a no-op.

    Raises:
        NotFoundError: If the space does not exist
        ForbiddenError: If the actor neither owns the space nor is elevated
    """
    space = get_space(db, space_id)
    if space is None:
        raise NotFoundError(f"Space not found: {space_id}")

    actor_membership = _membership(space, actor.user_id)
    owner_id = (
        actor.user_id
        if actor_membership and actor_membership.role == models.SpaceMemberRole.OWNER
        else None
    )
    authorize(actor, Action.MANAGE_SPACE, ResourceKind.SPACE, owner_id=owner_id)

    if _membership(space, member.user_id) is not None:
        return space

    now = datetime.utcnow()
    with transaction(db):
        db.add(models.CollaborationSpaceMember(
            space_id=space.id,
            user_id=member.user_id,
            role=member.role,
            added_on=now,
        ))
        space.updated_on = now

    logger.info(f"User {member.user_id} added to space {space_id} as {member.role.value}")
    db.expire(space)
    return get_space(db, space_id)


# ============================================================================
# Tasks
# ============================================================================


def get_task(db: Session, task_id: UUID) -> Optional[models.CollaborationTask]:
    """Get a collaboration task by ID."""
    return db.query(models.CollaborationTask).filter(models.CollaborationTask.id == task_id).first()


def _require_task(db: Session, task_id: UUID) -> models.CollaborationTask:
    task = get_task(db, task_id)
    if task is None:
        raise NotFoundError(f"Task not found: {task_id}")
    return task


def _completion_stamp(
    status: models.CollaborationTaskStatus,
    current: Optional[datetime],
    now: datetime,
) -> Optional[datetime]:
    # Keeps the first completion time while a task stays closed
    if status in CLOSED_STATUSES:
        return current or now
    return None


def list_tasks(
    db: Session,
    actor: Optional[Actor] = None,
    space_id: Optional[UUID] = None,
    assigned_to: Optional[UUID] = None,
    status: Optional[models.CollaborationTaskStatus] = None,
    include_closed: bool = False,
) -> list[models.CollaborationTask]:
    """
    List tasks.

    Ordered by priority (URGENT first), then due date (nulls last), then most
    recently updated. DONE and CANCELLED tasks are hidden unless
    ``include_closed`` is set or ``status`` asks for them.

    When ``actor`` is given, filtering by a space enforces that space's
    visibility first.

    Raises:
        NotFoundError: If ``space_id`` names a space that does not exist
        ForbiddenError: If the space is private and the actor may not see it
    """
    if space_id and actor is not None:
        read_space(db, actor, space_id)

    query = db.query(models.CollaborationTask)
    if space_id:
        query = query.filter(models.CollaborationTask.space_id == space_id)
    if assigned_to:
        query = query.filter(models.CollaborationTask.assigned_to_user_id == assigned_to)
    if status:
        query = query.filter(models.CollaborationTask.status == status)
    elif not include_closed:
        query = query.filter(models.CollaborationTask.status.notin_(CLOSED_STATUSES))

    priority_rank = case(
        {p: i for i, p in enumerate(PRIORITY_ORDER)},
        value=models.CollaborationTask.priority,
    )
    return query.order_by(
        priority_rank,
        models.CollaborationTask.due_date.asc().nulls_last(),
        models.CollaborationTask.updated_on.desc(),
    ).all()


def create_task(db: Session, actor: Actor, task: schemas.CollaborationTaskCreate) -> models.CollaborationTask:
    """
    Create a task owned by the actor.

    Raises:
        NotFoundError: If ``space_id`` names a space that does not exist
    """
    authorize(actor, Action.CREATE, ResourceKind.COLLABORATION_TASK)
    if task.space_id and not db.query(models.CollaborationSpace).filter(
        models.CollaborationSpace.id == task.space_id
    ).first():
        raise NotFoundError(f"Space not found: {task.space_id}")

    now = datetime.utcnow()
    db_task = models.CollaborationTask(
        **task.model_dump(),
        created_by_user_id=actor.user_id,
        created_on=now,
        updated_on=now,
        completed_on=_completion_stamp(task.status, None, now),
    )
    db.add(db_task)
    db.commit()
    db.refresh(db_task)
    logger.info(f"Collaboration task {db_task.id} created by {actor.user_id}: {db_task.title}")
    return db_task


def update_task(
    db: Session, actor: Actor, task_id: UUID, task_update: schemas.CollaborationTaskUpdate
) -> models.CollaborationTask:
    """
    Patch a task.

    Creators edit descriptive fields while the task is OPEN, IN_PROGRESS or
    BLOCKED; status and assignment changes need Admin or Manager. Moving to
    DONE or CANCELLED stamps CompletedOn, any other status clears it.

    Raises:
        NotFoundError: If the task does not exist
        ForbiddenError: If the actor may not update the task or a restricted field
        ValidationError: If a required field is cleared
    """
    task = _require_task(db, task_id)
    authorize(
        actor,
        Action.UPDATE,
        ResourceKind.COLLABORATION_TASK,
        owner_id=task.created_by_user_id,
        status=task.status,
    )

    changes = task_update.model_dump(exclude_unset=True)
    if RESTRICTED_FIELDS & set(changes):
        authorize(actor, Action.UPDATE_RESTRICTED, ResourceKind.COLLABORATION_TASK)
    for field in ("title", "priority", "status"):
        if field in changes and changes[field] is None:
            raise ValidationError(f"Field cannot be cleared: {field}")

    now = datetime.utcnow()
    for field, value in changes.items():
        setattr(task, field, value)
    task.completed_on = _completion_stamp(task.status, task.completed_on, now)
    task.updated_on = now

    db.commit()
    db.refresh(task)
    logger.info(f"Collaboration task {task_id} updated by {actor.user_id}: {sorted(changes)}")
    return task


def list_comments(db: Session, actor: Actor, task_id: UUID) -> list[models.CollaborationTaskComment]:
    """List a task's comments, oldest first."""
    task = _require_task(db, task_id)
    authorize(actor, Action.READ, ResourceKind.COLLABORATION_TASK, owner_id=task.created_by_user_id)
    return (
        db.query(models.CollaborationTaskComment)
        .filter(models.CollaborationTaskComment.task_id == task_id)
        .order_by(models.CollaborationTaskComment.created_on.asc())
        .all()
    )


def add_comment(
    db: Session, actor: Actor, task_id: UUID, comment: schemas.TaskCommentCreate
) -> models.CollaborationTaskComment:
    """Comment on a task and bump its UpdatedOn."""
    task = _require_task(db, task_id)
    authorize(actor, Action.COMMENT, ResourceKind.COLLABORATION_TASK, owner_id=task.created_by_user_id)

    now = datetime.utcnow()
    db_comment = models.CollaborationTaskComment(
        task_id=task.id,
        user_id=actor.user_id,
        body=comment.body,
        created_on=now,
    )
    with transaction(db):
        db.add(db_comment)
        task.updated_on = now

    db.refresh(db_comment)
    return db_comment

