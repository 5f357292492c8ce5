"""Subtask API endpoints.

Changing a subtask's status recomputes the parent project's status.
"""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ... import crud, schemas
from ...database import get_db

logger = logging.getLogger("backoffice-core.subtasks")

router = APIRouter(tags=["subtasks"])


@router.get("/task/{task_id}", response_model=list[schemas.SubtaskResponse])
def list_subtasks(task_id: UUID, db: Session = Depends(get_db)):
    """List a task's subtasks."""
    return crud.get_subtasks_by_task(db, task_id)


@router.post("", response_model=schemas.SubtaskResponse, status_code=201)
def create_subtask(subtask: schemas.SubtaskCreate, db: Session = Depends(get_db)):
    """
    Create a subtask.

    - **TaskID**: parent task (required)
    - **SubTaskName**: required
    - **PlannedHours**, **DueDate**: optional
    - **Status**: defaults to NotStarted
    """
    return crud.create_subtask(db, subtask)


@router.patch("/{subtask_id}", response_model=schemas.SubtaskResponse)
def update_subtask(
    subtask_id: UUID,
    subtask_update: schemas.SubtaskUpdate,
    db: Session = Depends(get_db),
):
    """Patch a subtask. Only provided fields change."""
    subtask = crud.update_subtask(db, subtask_id, subtask_update)
    if not subtask:
        raise HTTPException(status_code=404, detail="Subtask not found")
    return subtask


@router.delete("/{subtask_id}", status_code=204)
def delete_subtask(subtask_id: UUID, db: Session = Depends(get_db)):
    """Delete a subtask."""
    if not crud.delete_subtask(db, subtask_id):
        raise HTTPException(status_code=404, detail="Subtask not found")
