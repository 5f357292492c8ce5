"""Timecard line API endpoints."""
import logging
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ...database import get_db

logger = logging.getLogger("backoffice-core.timecard_lines")

router = APIRouter(tags=["timecard-lines"])


def _line_to_response(line: models.TimecardLine) -> schemas.TimecardLineResponse:
    """Convert a TimecardLine to its response, with consultant and client names."""
    response = schemas.TimecardLineResponse.model_validate(line)
    if line.consultant is not None:
        response.consultant_name = line.consultant.display_name
    if line.client is not None:
        response.client_name = line.client.client_name
    return response


@router.get("", response_model=list[schemas.TimecardLineResponse])
def list_timecard_lines(
    consultant_id: Optional[UUID] = Query(None, alias="ConsultantID", description="Filter by consultant"),
    timesheet_date: Optional[date] = Query(None, alias="TimesheetDate", description="Filter by day"),
    db: Session = Depends(get_db),
):
    """
    List timecard lines.

    With **ConsultantID** and **TimesheetDate**, returns that consultant's
    lines for the day; with only **TimesheetDate**, every consultant's lines
    for the day; otherwise all lines.
    """
    if consultant_id and timesheet_date:
        lines = crud.get_timecard_lines_by_consultant_and_date(db, consultant_id, timesheet_date)
    elif timesheet_date:
        lines = crud.get_timecard_lines_by_date(db, timesheet_date)
    else:
        lines = crud.get_timecard_lines(db)
    return [_line_to_response(line) for line in lines]


@router.get("/summary", response_model=list[schemas.TimecardDaySummary])
def timecard_summary(db: Session = Depends(get_db)):
    """Total hours per consultant per day."""
    return crud.get_timecard_summary(db)


@router.get("/month", response_model=list[schemas.TimecardLineResponse])
def list_timecard_lines_for_month(
    year: int = Query(..., ge=1900, le=9999),
    month: int = Query(..., ge=1, le=12),
    consultant_id: Optional[UUID] = Query(None, alias="ConsultantID", description="Restrict to one consultant"),
    db: Session = Depends(get_db),
):
    """List lines in a calendar month, optionally for one consultant."""
    lines = crud.get_timecard_lines_by_month(db, year, month, consultant_id)
    return [_line_to_response(line) for line in lines]


@router.get("/timecard/{timecard_id}", response_model=list[schemas.TimecardLineResponse])
def list_timecard_lines_for_header(timecard_id: UUID, db: Session = Depends(get_db)):
    """List the lines of one timecard header with consultant and client names."""
    lines = crud.get_timecard_lines_by_header(db, timecard_id)
    return [_line_to_response(line) for line in lines]


@router.post("/submit-day", response_model=schemas.SubmitDayResponse)
def submit_timecard_day(request: schemas.SubmitDayRequest, db: Session = Depends(get_db)):
    """
    Submit a consultant's day.

    Every Open or Rejected line for **ConsultantID** on **TimesheetDate**
    becomes Submitted and locked. Returns 404 when no line qualified.
    """
    rows_affected = crud.submit_timecard_day(db, request.consultant_id, request.timesheet_date)
    if rows_affected == 0:
        raise HTTPException(status_code=404, detail="No open or rejected timecard lines for that day")
    return schemas.SubmitDayResponse(rows_affected=rows_affected)


@router.get("/{line_id}", response_model=schemas.TimecardLineResponse)
def get_timecard_line(line_id: UUID, db: Session = Depends(get_db)):
    """Get a timecard line by ID."""
    line = crud.get_timecard_line(db, line_id)
    if not line:
        raise HTTPException(status_code=404, detail="Timecard line not found")
    return _line_to_response(line)


@router.post("", response_model=schemas.TimecardLineResponse, status_code=201)
def create_timecard_line(line: schemas.TimecardLineCreate, db: Session = Depends(get_db)):
    """
    Create a timecard line.

    - **ConsultantID**: Consultant UUID (required)
    - **TimesheetDate**: Day of the work (required)
    - **TimecardID**: Parent header (optional)
    - **ClientID**: Client UUID (optional)
    - **ProjectID**: Project UUID; blank books the generic time-entry project
    - **ProjectTask**: Task label
    - **ClientFacingHours** / **NonClientFacingHours** / **OtherTaskHours**:
      each clamped to [0, 99.9], one decimal place
    - **Notes**: Free text
    """
    if not crud.get_consultant(db, line.consultant_id):
        raise HTTPException(status_code=404, detail=f"Consultant not found: {line.consultant_id}")
    if line.timecard_id and not crud.get_timecard_header(db, line.timecard_id):
        raise HTTPException(status_code=404, detail=f"Timecard header not found: {line.timecard_id}")

    db_line = crud.create_timecard_line(db, line)
    return _line_to_response(db_line)


@router.put("/{line_id}", response_model=schemas.TimecardLineResponse)
def update_timecard_line(
    line_id: UUID,
    line_update: schemas.TimecardLineUpdate,
    db: Session = Depends(get_db),
):
    """
    Patch a timecard line. Only provided fields change.

    Approved lines cannot be changed (409).
    """
    line = crud.update_timecard_line(db, line_id, line_update)
    if not line:
        raise HTTPException(status_code=404, detail="Timecard line not found")
    return _line_to_response(line)


@router.delete("/{line_id}", status_code=204)
def delete_timecard_line(line_id: UUID, db: Session = Depends(get_db)):
    """Delete a timecard line. Approved lines cannot be deleted (409)."""
    if not crud.delete_timecard_line(db, line_id):
        raise HTTPException(status_code=404, detail="Timecard line not found")
