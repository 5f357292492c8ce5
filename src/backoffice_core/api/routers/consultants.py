"""Consultant API endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ... import crud, schemas
from ...database import get_db

router = APIRouter(tags=["consultants"])


@router.get("", response_model=list[schemas.ConsultantResponse])
def list_consultants(
    active_only: bool = Query(False, alias="activeOnly", description="Only active consultants"),
    db: Session = Depends(get_db),
):
    """List consultants ordered by name."""
    return crud.get_consultants(db, active_only=active_only)


@router.post("", response_model=schemas.ConsultantResponse, status_code=201)
def create_consultant(consultant: schemas.ConsultantCreate, db: Session = Depends(get_db)):
    """Create a consultant."""
    return crud.create_consultant(db, consultant)


@router.get("/{consultant_id}", response_model=schemas.ConsultantResponse)
def get_consultant(consultant_id: UUID, db: Session = Depends(get_db)):
    """Get a consultant by ID."""
    consultant = crud.get_consultant(db, consultant_id)
    if not consultant:
        raise HTTPException(status_code=404, detail="Consultant not found")
    return consultant
