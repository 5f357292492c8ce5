"""Timecard header API endpoints."""
import logging
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ... import crud, schemas
from ...database import get_db

logger = logging.getLogger("backoffice-core.timecard_headers")

router = APIRouter(tags=["timecard-headers"])


@router.get("", response_model=list[schemas.TimecardHeaderResponse])
def list_timecard_headers(db: Session = Depends(get_db)):
    """List all timecard headers, newest day first."""
    return crud.get_timecard_headers(db)


@router.get("/consultant", response_model=list[schemas.TimecardHeaderResponse])
def list_timecard_headers_for_consultant(
    consultant_id: UUID = Query(..., alias="ConsultantID", description="Consultant UUID"),
    db: Session = Depends(get_db),
):
    """List a consultant's timecard headers ordered by date descending."""
    return crud.get_timecard_headers_by_consultant(db, consultant_id)


@router.get("/day", response_model=schemas.TimecardDayStatus)
def get_timecard_day(
    consultant_id: UUID = Query(..., alias="ConsultantID", description="Consultant UUID"),
    timesheet_date: date = Query(..., alias="TimesheetDate", description="Day (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
):
    """
    Get the status of one consultant day.

    Days with no header report **Not Submitted**.
    """
    return crud.get_timecard_day_status(db, consultant_id, timesheet_date)


@router.get("/{timecard_id}", response_model=schemas.TimecardHeaderResponse)
def get_timecard_header(timecard_id: UUID, db: Session = Depends(get_db)):
    """Get a timecard header by ID."""
    header = crud.get_timecard_header(db, timecard_id)
    if not header:
        raise HTTPException(status_code=404, detail="Timecard header not found")
    return header


@router.get("/{timecard_id}/reconciliation", response_model=schemas.TimecardReconciliation)
def reconcile_timecard_header(timecard_id: UUID, db: Session = Depends(get_db)):
    """
    Compare the header's TotalHours with the sum of its lines.

    Read-only; the header is not changed.
    """
    result = crud.reconcile_timecard_header(db, timecard_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Timecard header not found")
    return result


@router.post("", response_model=schemas.TimecardHeaderResponse, status_code=201)
def create_timecard_header(header: schemas.TimecardHeaderCreate, db: Session = Depends(get_db)):
    """
    Create a timecard header.

    - **ConsultantID**: Consultant UUID (required)
    - **TimesheetDate**: Day the header covers (required)
    - **TotalHours**: Defaults to 0
    - **Status**: Defaults to Open
    - **Notes**: Defaults to ""
    """
    if not crud.get_consultant(db, header.consultant_id):
        raise HTTPException(status_code=404, detail=f"Consultant not found: {header.consultant_id}")
    return crud.create_timecard_header(db, header)


@router.put("/{timecard_id}", response_model=schemas.TimecardHeaderResponse)
def update_timecard_header(
    timecard_id: UUID,
    header_update: schemas.TimecardHeaderUpdate,
    db: Session = Depends(get_db),
):
    """
    Update a timecard header's Status, Notes or TotalHours.

    Status changes follow the timecard workflow; disallowed transitions return 409.
    """
    header = crud.update_timecard_header(db, timecard_id, header_update)
    if not header:
        raise HTTPException(status_code=404, detail="Timecard header not found")
    return header


@router.delete("/{timecard_id}", status_code=204)
def delete_timecard_header(timecard_id: UUID, db: Session = Depends(get_db)):
    """Delete a timecard header. Administrative; its lines are kept."""
    if not crud.delete_timecard_header(db, timecard_id):
        raise HTTPException(status_code=404, detail="Timecard header not found")
