"""Project API endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ... import crud, schemas
from ...database import get_db

router = APIRouter(tags=["projects"])


@router.post("", response_model=schemas.ProjectResponse, status_code=201)
def create_project(project: schemas.ProjectCreate, db: Session = Depends(get_db)):
    """Create a project. New projects start Active."""
    return crud.create_project(db, project)


@router.get("/{project_id}", response_model=schemas.ProjectResponse)
def get_project(project_id: UUID, db: Session = Depends(get_db)):
    """Get a project with its tasks and subtasks."""
    project = crud.get_project(db, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.post("/{project_id}/tasks", response_model=schemas.ProjectTaskResponse, status_code=201)
def create_project_task(
    project_id: UUID,
    task: schemas.ProjectTaskCreate,
    db: Session = Depends(get_db),
):
    """Add a task to a project."""
    db_task = crud.create_project_task(db, project_id, task)
    if not db_task:
        raise HTTPException(status_code=404, detail="Project not found")
    return db_task
