"""Client activity report endpoints."""
import logging
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ... import reporting, schemas
from ...database import get_db
from ...permissions import Actor
from ..dependencies import require_report_access

logger = logging.getLogger("backoffice-core.client_activity")

router = APIRouter(tags=["reports"])


def _build(
    db: Session,
    client_id: Optional[UUID],
    start_date: Optional[date],
    end_date: Optional[date],
    include_weekends: bool,
    approved_only: bool,
    include_notes: bool,
) -> schemas.ClientActivityReport:
    return reporting.build_client_activity_report(
        db,
        client_id=client_id,
        start_date=start_date,
        end_date=end_date,
        include_weekends=include_weekends,
        approved_only=approved_only,
        include_notes=include_notes,
    )


@router.get("/report", response_model=schemas.ClientActivityReport)
def client_activity_report(
    client_id: Optional[UUID] = Query(None, alias="clientId"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    include_weekends: bool = Query(True, alias="includeWeekends"),
    approved_only: bool = Query(True, alias="approvedOnly"),
    include_notes: bool = Query(False, alias="includeNotes"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_report_access),
):
    """
    Hours logged for a client, summarized by week, month, person and category.

    - **clientId**, **startDate**, **endDate**: required (400 if missing)
    - **includeWeekends**: keep Saturday/Sunday lines (default true)
    - **approvedOnly**: only Approved lines, else Approved and Submitted (default true)
    - **includeNotes**: attach notes to detail rows (default false)
    """
    return _build(db, client_id, start_date, end_date, include_weekends, approved_only, include_notes)


@router.get("/report.csv")
def client_activity_csv(
    client_id: Optional[UUID] = Query(None, alias="clientId"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    include_weekends: bool = Query(True, alias="includeWeekends"),
    approved_only: bool = Query(True, alias="approvedOnly"),
    include_notes: bool = Query(False, alias="includeNotes"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_report_access),
):
    """Detail rows of the client activity report as a CSV download."""
    report = _build(db, client_id, start_date, end_date, include_weekends, approved_only, include_notes)
    content = reporting.export_activity_csv(report.detail, include_notes=include_notes)
    filename = reporting.activity_csv_filename(report.client_id, report.start_date, report.end_date)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
