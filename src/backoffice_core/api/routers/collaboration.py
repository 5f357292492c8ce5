"""Collaboration space and task API endpoints. All routes require a bearer token."""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ... import collaboration, models, schemas
from ...database import get_db
from ...permissions import Actor
from ..dependencies import get_current_actor

logger = logging.getLogger("backoffice-core.collaboration")

router = APIRouter(tags=["collaboration"])


def _space_to_detail(space: models.CollaborationSpace) -> schemas.SpaceDetailResponse:
    """Convert a space to its detail response with member names."""
    response = schemas.SpaceDetailResponse.model_validate(space)
    response.members = [
        schemas.SpaceMemberResponse(
            user_id=member.user_id,
            role=member.role,
            added_on=member.added_on,
            display_name=member.user.display_name if member.user else None,
        )
        for member in space.members
    ]
    return response


@router.get("/spaces", response_model=list[schemas.SpaceResponse])
def list_spaces(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """List the caller's spaces, most recently updated first."""
    return collaboration.list_spaces_for_user(db, actor.user_id)


@router.post("/spaces", response_model=schemas.SpaceDetailResponse, status_code=201)
def create_space(
    space: schemas.SpaceCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    Create a space. The caller becomes its OWNER.

    - **name**: required
    - **isPrivate**: private spaces are visible to members and Admin/Manager only
    - **memberUserIds**: users added as MEMBER
    """
    return _space_to_detail(collaboration.create_space(db, actor, space))


@router.get("/spaces/{space_id}", response_model=schemas.SpaceDetailResponse)
def get_space(
    space_id: UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Get a space with its members."""
    return _space_to_detail(collaboration.read_space(db, actor, space_id))


@router.post("/spaces/{space_id}/members", response_model=schemas.SpaceDetailResponse)
def add_space_member(
    space_id: UUID,
    member: schemas.SpaceMemberAdd,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Add a member to a space (owner or Admin/Manager). Existing members are left as is."""
    return _space_to_detail(collaboration.add_member(db, actor, space_id, member))


@router.get("/tasks", response_model=list[schemas.CollaborationTaskResponse])
def list_tasks(
    space_id: Optional[UUID] = Query(None, alias="spaceId"),
    assigned_to: Optional[UUID] = Query(None, alias="assignedTo"),
    status: Optional[models.CollaborationTaskStatus] = Query(None),
    include_closed: bool = Query(False, alias="includeClosed"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    List tasks.

    Ordered by priority (URGENT first), due date (nulls last), then most
    recently updated. DONE and CANCELLED are hidden unless requested.
    Filtering by a private space needs membership or an elevated role.
    """
    return collaboration.list_tasks(
        db,
        actor,
        space_id=space_id,
        assigned_to=assigned_to,
        status=status,
        include_closed=include_closed,
    )


@router.post("/tasks", response_model=schemas.CollaborationTaskResponse, status_code=201)
def create_task(
    task: schemas.CollaborationTaskCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Create a task. Priority defaults to MEDIUM and status to OPEN."""
    return collaboration.create_task(db, actor, task)


@router.patch("/tasks/{task_id}", response_model=schemas.CollaborationTaskResponse)
def update_task(
    task_id: UUID,
    task_update: schemas.CollaborationTaskUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    Patch a task.

    Status and assignment changes need Admin or Manager. DONE and CANCELLED
    stamp completedOn; other statuses clear it.
    """
    return collaboration.update_task(db, actor, task_id, task_update)


@router.get("/tasks/{task_id}/comments", response_model=list[schemas.TaskCommentResponse])
def list_task_comments(
    task_id: UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """List a task's comments, oldest first."""
    return collaboration.list_comments(db, actor, task_id)


@router.post("/tasks/{task_id}/comments", response_model=schemas.TaskCommentResponse, status_code=201)
def add_task_comment(
    task_id: UUID,
    comment: schemas.TaskCommentCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Comment on a task."""
    return collaboration.add_comment(db, actor, task_id, comment)
