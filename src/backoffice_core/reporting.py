"""Client activity and financial reports.

Both reports load joined rows with one query each and reduce them in memory.
Hour totals in report output are rounded to two decimals.
"""
import csv
import io
import json
import logging
import math
from collections import OrderedDict
from datetime import date
from typing import Any, Iterable, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from . import models, schemas
from .errors import ValidationError

logger = logging.getLogger("backoffice-core.reporting")

UNCATEGORIZED = "Uncategorized"
NO_ROLE = "—"
CSV_COLUMNS = ["Date", "Person", "Role", "Project", "Task", "Category", "Hours"]


# ============================================================================
# Client activity
# ============================================================================


def iso_week(day: date) -> str:
    """
    ISO-8601 week label for a date, e.g. ``2024-W01``.

    The week belongs to the year of its Thursday, so 2023-12-31 (a Sunday)
    is ``2023-W52`` and 2024-12-30 (a Monday) is ``2025-W01``.
    """
    year, week, _ = day.isocalendar()
    return f"{year}-W{week:02d}"


def _month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def _round(value: float) -> float:
    return round(value, 2)


def _fetch_activity_rows(
    db: Session,
    client_id: UUID,
    start_date: date,
    end_date: date,
    approved_only: bool,
):
    statuses = [models.TimecardStatus.APPROVED]
    if not approved_only:
        statuses.append(models.TimecardStatus.SUBMITTED)

    line_hours = (
        func.coalesce(models.TimecardLine.client_facing_hours, 0)
        + func.coalesce(models.TimecardLine.non_client_facing_hours, 0)
        + func.coalesce(models.TimecardLine.other_task_hours, 0)
    )
    return (
        db.query(
            models.TimecardLine.timesheet_date,
            models.TimecardLine.consultant_id,
            models.TimecardLine.project_task,
            models.TimecardLine.notes,
            func.coalesce(models.Project.project_name, models.TimecardLine.project_name).label("project_name"),
            models.Consultant.first_name,
            models.Consultant.last_name,
            models.Consultant.job_title,
            line_hours.label("hours"),
        )
        .join(models.Consultant, models.TimecardLine.consultant_id == models.Consultant.id)
        .outerjoin(models.Project, models.TimecardLine.project_id == models.Project.id)
        .filter(
            models.TimecardLine.client_id == client_id,
            models.TimecardLine.timesheet_date >= start_date,
            models.TimecardLine.timesheet_date <= end_date,
            models.TimecardLine.status.in_(statuses),
        )
        .order_by(models.TimecardLine.timesheet_date.asc(), models.Consultant.last_name, models.Consultant.first_name)
        .all()
    )


def _require_filters(client_id: Optional[UUID], start_date: Optional[date], end_date: Optional[date]) -> None:
    missing = [
        name
        for name, value in (("clientId", client_id), ("startDate", start_date), ("endDate", end_date))
        if value is None
    ]
    if missing:
        raise ValidationError(f"Missing required parameter(s): {', '.join(missing)}")
    if start_date > end_date:
        raise ValidationError("startDate must be on or before endDate")


def build_client_activity_report(
    db: Session,
    client_id: Optional[UUID],
    start_date: Optional[date],
    end_date: Optional[date],
    include_weekends: bool = True,
    approved_only: bool = True,
    include_notes: bool = False,
) -> schemas.ClientActivityReport:
    """
    Build the activity report for a client over a date range.

    Args:
        db: Database session
        client_id: Client UUID (required)
        start_date: First day, inclusive (required)
        end_date: Last day, inclusive (required)
        include_weekends: Keep Saturday and Sunday lines
        approved_only: Only Approved lines; otherwise Approved and Submitted
        include_notes: Attach line notes to detail rows

    Returns:
        Report with by-week, by-month, by-person and by-category summaries
        plus one detail row per line

    Raises:
        ValidationError: If a required filter is missing, before any query runs
    """
    _require_filters(client_id, start_date, end_date)

    rows = _fetch_activity_rows(db, client_id, start_date, end_date, approved_only)

    by_week: "OrderedDict[tuple, float]" = OrderedDict()
    by_month: "OrderedDict[tuple, float]" = OrderedDict()
    by_person: "OrderedDict[tuple, float]" = OrderedDict()
    by_category: "OrderedDict[str, float]" = OrderedDict()
    detail: list[schemas.ActivityDetailRow] = []

    for row in rows:
        day = row.timesheet_date
        if not include_weekends and day.weekday() >= 5:
            continue

        hours = float(row.hours or 0.0)
        person = f"{row.first_name or ''} {row.last_name or ''}".strip()
        role = row.job_title or NO_ROLE
        category = UNCATEGORIZED

        week_key = (iso_week(day), role, person, category)
        month_key = (_month_key(day), role, person, category)
        by_week[week_key] = by_week.get(week_key, 0.0) + hours
        by_month[month_key] = by_month.get(month_key, 0.0) + hours
        by_person[(role, person)] = by_person.get((role, person), 0.0) + hours
        by_category[category] = by_category.get(category, 0.0) + hours

        detail.append(schemas.ActivityDetailRow(
            activity_date=day,
            consultant_id=row.consultant_id,
            person=person,
            role=role,
            project=row.project_name,
            task=row.project_task,
            category=category,
            hours=_round(hours),
            notes=(row.notes or "") if include_notes else None,
        ))

    summary = schemas.ActivitySummary(
        by_week=[
            schemas.WeekSummary(iso_week=w, role=r, person=p, category=c, hours=_round(h))
            for (w, r, p, c), h in by_week.items()
        ],
        by_month=[
            schemas.MonthSummary(month=m, role=r, person=p, category=c, hours=_round(h))
            for (m, r, p, c), h in by_month.items()
        ],
        by_person=[
            schemas.PersonSummary(role=r, person=p, hours=_round(h))
            for (r, p), h in by_person.items()
        ],
        by_category=[
            schemas.CategorySummary(category=c, hours=_round(h))
            for c, h in by_category.items()
        ],
    )

    logger.info(
        f"Client activity report for {client_id} {start_date}..{end_date}: "
        f"{len(detail)} lines, {len(by_person)} people"
    )
    return schemas.ClientActivityReport(
        client_id=client_id,
        start_date=start_date,
        end_date=end_date,
        include_weekends=include_weekends,
        approved_only=approved_only,
        include_notes=include_notes,
        summary=summary,
        detail=detail,
    )


def export_activity_csv(detail: Iterable[schemas.ActivityDetailRow], include_notes: bool = False) -> str:
    """
    Serialize report detail rows as CSV.

    The header row and the ISO date are written bare, text fields are always
    quoted with embedded quotes doubled and hours are left bare. Columns:
    Date, Person, Role, Project, Task, Category, Hours and Notes when
    requested.
    """
    buffer = io.StringIO()
    header_writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    header_writer.writerow(CSV_COLUMNS + (["Notes"] if include_notes else []))
    for row in detail:
        # ISO dates never need quoting
        buffer.write(row.activity_date.isoformat() + ",")
        record = [
            row.person or "",
            row.role or "",
            row.project or "",
            row.task or "",
            row.category or "",
            float(row.hours),
        ]
        if include_notes:
            record.append(row.notes or "")
        writer.writerow(record)
    return buffer.getvalue()


def activity_csv_filename(client_id: UUID, start_date: date, end_date: date) -> str:
    """Download name for an activity CSV."""
    return f"client_activity_{client_id}_{start_date.isoformat()}_{end_date.isoformat()}.csv"


# ============================================================================
# Financial report
# ============================================================================

DAYS_PER_MONTH = 30

# (name column, rate column, role label) for the fixed staff slots on a contract
STAFF_SLOTS = (
    ("assigned_cfo", "assigned_cfo_rate", "CFO"),
    ("assigned_controller", "assigned_controller_rate", "Controller"),
    ("assigned_senior_accountant", "assigned_senior_accountant_rate", "Senior Accountant"),
)


def to_float(value: Any) -> float:
    """Parse a money or hour figure, falling back to 0."""
    if value is None or value == "":
        return 0.0
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(result) else result


def normalize_name(name: Optional[str]) -> str:
    """Lower-case a name and collapse runs of whitespace."""
    return " ".join((name or "").split()).lower()


def is_contract_valid(
    contract: models.Contract,
    client_active: bool,
    start_date: Optional[date],
    end_date: Optional[date],
) -> bool:
    """
    Decide whether a contract belongs in a financial report.

    The client must be active. With a date range, the contract must start on
    or before the range end and, when it has both an end date and an end
    reason, end on or after the range start.
    """
    if not client_active:
        return False
    if start_date is None or end_date is None:
        return True
    if contract.contract_start_date and contract.contract_start_date > end_date:
        return False
    if (
        contract.contract_end_reason
        and contract.contract_end_date
        and contract.contract_end_date < start_date
    ):
        return False
    return True


def contract_length_months(contract: models.Contract, today: date) -> Optional[int]:
    """
    Contract length in 30-day months.

    A stored length wins. Otherwise a running contract (no end reason) is
    measured from its start to the later of today and its end date, and a
    finished one from start to end.
    """
    if contract.contract_length:
        return contract.contract_length
    start = contract.contract_start_date
    if start is None:
        return None

    end = contract.contract_end_date
    if not contract.contract_end_reason:
        reference = max(today, end) if end else today
    elif end:
        reference = end
    else:
        return None
    return math.ceil(abs((reference - start).days) / DAYS_PER_MONTH)


def months_remaining(contract: models.Contract, length: Optional[int], today: date) -> int:
    """
    Months left on a contract.

    0 once an end reason is recorded; otherwise counted to the end date, or
    derived from length and elapsed time when there is no end date.
    """
    if contract.contract_end_reason:
        return 0
    if contract.contract_end_date:
        return max(0, math.ceil((contract.contract_end_date - today).days / DAYS_PER_MONTH))
    if length and contract.contract_start_date:
        elapsed = math.floor((today - contract.contract_start_date).days / DAYS_PER_MONTH)
        return max(0, length - elapsed)
    return 0


def _staff_entries(contract: models.Contract) -> list[dict]:
    """Expand a contract into (name, role, rate, quantity) staff entries."""
    entries = []
    for name_field, rate_field, role in STAFF_SLOTS:
        name = getattr(contract, name_field)
        if name:
            entries.append({
                "name": name,
                "role": role,
                "rate": to_float(getattr(contract, rate_field)),
                "quantity": 1,
            })

    if contract.assigned_software:
        entries.append({
            "name": contract.assigned_software,
            "role": "Software",
            "rate": to_float(contract.assigned_software_rate),
            "quantity": contract.assigned_software_quantity or 1,
        })

    if contract.additional_staff:
        try:
            extra = json.loads(contract.additional_staff)
        except (TypeError, ValueError):
            logger.warning(f"Unparseable additional staff on contract {contract.id}; skipping")
            extra = []
        if isinstance(extra, list):
            for member in extra:
                if isinstance(member, dict) and member.get("name"):
                    entries.append({
                        "name": member["name"],
                        "role": member.get("role") or "Additional Staff",
                        "rate": to_float(member.get("rate")),
                        "quantity": 1,
                    })
    return entries


def _consultant_lookup(consultants: list[models.Consultant]) -> dict[str, models.Consultant]:
    lookup: dict[str, models.Consultant] = {}
    for consultant in consultants:
        full_name = f"{consultant.first_name} {consultant.last_name}"
        for key in (full_name, full_name.lower(), normalize_name(full_name)):
            lookup.setdefault(key, consultant)
    return lookup


def _find_consultant(lookup: dict[str, models.Consultant], name: str) -> Optional[models.Consultant]:
    return lookup.get(name) or lookup.get(name.lower()) or lookup.get(normalize_name(name))


def _approved_hours(
    db: Session,
    start_date: Optional[date],
    end_date: Optional[date],
) -> dict[tuple[UUID, UUID], float]:
    query = (
        db.query(
            models.TimecardLine.consultant_id,
            models.TimecardLine.client_id,
            func.sum(
                func.coalesce(models.TimecardLine.client_facing_hours, 0)
                + func.coalesce(models.TimecardLine.non_client_facing_hours, 0)
            ).label("hours"),
        )
        .filter(models.TimecardLine.status == models.TimecardStatus.APPROVED)
    )
    if start_date:
        query = query.filter(models.TimecardLine.timesheet_date >= start_date)
    if end_date:
        query = query.filter(models.TimecardLine.timesheet_date <= end_date)
    rows = query.group_by(models.TimecardLine.consultant_id, models.TimecardLine.client_id).all()
    return {(row.consultant_id, row.client_id): float(row.hours or 0.0) for row in rows}


def get_financial_data(
    db: Session,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    client_ids: Optional[list[UUID]] = None,
    consultant_ids: Optional[list[UUID]] = None,
    today: Optional[date] = None,
) -> list[schemas.FinancialLineItem]:
    """
    Expand valid contracts into priced staff line items.

    Each assigned staff slot (CFO, Controller, Senior Accountant, Software
    and any additional staff) becomes one line item. Staff are matched to
    active consultants by name (exact, case-insensitive, then
    whitespace-normalized) to attach pay data and approved hours logged
    against the contract's client in the range.

    Args:
        db: Database session
        start_date: Range start (optional)
        end_date: Range end (optional)
        client_ids: Restrict to these clients
        consultant_ids: Restrict consultant matching to these consultants
        today: Reference date for remaining-month math (defaults to today)

    Returns:
        Line items in contract order
    """
    today = today or date.today()

    contract_query = (
        db.query(models.Contract, models.Client)
        .join(models.Client, models.Contract.client_id == models.Client.id)
    )
    if client_ids:
        contract_query = contract_query.filter(models.Contract.client_id.in_(client_ids))
    contracts = contract_query.order_by(models.Client.client_name, models.Contract.contract_start_date).all()

    consultant_query = db.query(models.Consultant).filter(models.Consultant.status.is_(True))
    if consultant_ids:
        consultant_query = consultant_query.filter(models.Consultant.id.in_(consultant_ids))
    lookup = _consultant_lookup(consultant_query.all())

    hours = _approved_hours(db, start_date, end_date)

    items: list[schemas.FinancialLineItem] = []
    for contract, client in contracts:
        if not is_contract_valid(contract, bool(client.active_status), start_date, end_date):
            continue

        length = contract_length_months(contract, today)
        remaining = months_remaining(contract, length, today)
        staff = _staff_entries(contract)

        for entry in staff:
            consultant = _find_consultant(lookup, entry["name"])
            total_hours = 0.0
            if consultant is not None:
                total_hours = hours.get((consultant.id, contract.client_id), 0.0)

            items.append(schemas.FinancialLineItem(
                contract_id=contract.id,
                client_id=contract.client_id,
                client_name=client.client_name,
                contract_type=contract.contract_type or "Project",
                contract_start_date=contract.contract_start_date,
                contract_end_date=contract.contract_end_date,
                contract_end_reason=contract.contract_end_reason,
                contract_length=length,
                active_status=bool(client.active_status),
                staff_name=entry["name"],
                role=entry["role"],
                client_rate=entry["rate"],
                quantity=entry["quantity"],
                consultant_id=consultant.id if consultant else None,
                pay_type=consultant.pay_type if consultant else None,
                pay_rate=consultant.pay_rate if consultant else None,
                hourly_rate=consultant.hourly_rate if consultant else None,
                job_title=consultant.job_title if consultant else None,
                total_project_fee=to_float(contract.total_project_fee),
                monthly_fee=to_float(contract.monthly_fee),
                onboarding_fee=to_float(contract.onboarding_fee),
                total_hours=_round(total_hours),
                months_remaining=remaining,
                line_item_count=len(staff),
            ))

    logger.info(f"Financial report: {len(items)} line items from {len(contracts)} contracts")
    return items
