"""Financial report endpoints."""
import logging
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ... import reporting, schemas
from ...database import get_db
from ...errors import ValidationError
from ...permissions import Actor
from ..dependencies import require_report_access

logger = logging.getLogger("backoffice-core.financial_reports")

router = APIRouter(tags=["reports"])


@router.get("", response_model=list[schemas.FinancialLineItem])
def financial_data(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    client_ids: Optional[list[UUID]] = Query(None, alias="clientIds"),
    consultant_ids: Optional[list[UUID]] = Query(None, alias="consultantIds"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_report_access),
):
    """
    Contract staff line items with pricing, logged hours and months remaining.

    - **startDate** / **endDate**: optional range; contracts outside it are skipped
    - **clientIds**: repeatable, restricts contracts
    - **consultantIds**: repeatable, restricts consultant matching
    """
    if start_date and end_date and start_date > end_date:
        raise ValidationError("startDate must be on or before endDate")
    return reporting.get_financial_data(
        db,
        start_date=start_date,
        end_date=end_date,
        client_ids=client_ids,
        consultant_ids=consultant_ids,
    )
