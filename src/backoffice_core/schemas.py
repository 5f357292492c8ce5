"""Pydantic schemas for API request/response validation.

Entity rows (timecards, benchmarks, reference data) keep the PascalCase field
names of the underlying tables on the wire (``ConsultantID``,
``TimesheetDate``). Reports, helpdesk and collaboration payloads are camelCase.
Both accept snake_case field names as well.
"""
from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import (
    CollaborationTaskPriority,
    CollaborationTaskStatus,
    DistributionType,
    ProjectStatus,
    SpaceMemberRole,
    SubtaskStatus,
    TicketCategory,
    TicketPriority,
    TicketStatus,
    TimecardStatus,
)


def to_wire_name(name: str) -> str:
    """snake_case → PascalCase, with ``id`` rendered as ``ID``.

    ``consultant_id`` → ``ConsultantID``, ``client_facing_hours`` → ``ClientFacingHours``.
    """
    return "".join("ID" if part == "id" else part.capitalize() for part in name.split("_"))


class EntityModel(BaseModel):
    """Base for table-shaped payloads."""

    model_config = ConfigDict(alias_generator=to_wire_name, populate_by_name=True, from_attributes=True)


class CamelModel(BaseModel):
    """Base for camelCase payloads."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# ============================================================================
# Reference data
# ============================================================================


class UserCreate(EntityModel):
    """Schema for creating a user."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)


class UserResponse(UserCreate):
    """Schema for user response."""

    id: UUID
    created_on: datetime


class ConsultantCreate(EntityModel):
    """Schema for creating a consultant."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    company_email: Optional[str] = None
    job_title: Optional[str] = Field(None, description="Shown as the role in activity reports")
    pay_type: Optional[str] = None
    pay_rate: Optional[float] = None
    hourly_rate: Optional[float] = None
    status: bool = Field(True, description="Active flag")


class ConsultantResponse(ConsultantCreate):
    """Schema for consultant response."""

    id: UUID
    created_on: datetime
    updated_on: datetime


class ClientCreate(EntityModel):
    """Schema for creating a client."""

    client_name: str = Field(..., min_length=1, max_length=200)
    active_status: bool = True


class ClientResponse(ClientCreate):
    """Schema for client response."""

    id: UUID
    created_on: datetime
    updated_on: datetime


class ContractCreate(EntityModel):
    """Schema for creating a contract."""

    client_id: UUID
    contract_name: Optional[str] = None
    contract_type: Optional[str] = None
    contract_length: Optional[int] = Field(None, ge=0, description="Length in months")
    contract_start_date: Optional[date] = None
    contract_end_date: Optional[date] = None
    contract_end_reason: Optional[str] = None
    total_project_fee: Optional[float] = None
    monthly_fee: Optional[float] = None
    onboarding_fee: Optional[float] = None
    assigned_cfo: Optional[str] = Field(None, alias="AssignedCFO")
    assigned_cfo_rate: Optional[float] = Field(None, alias="AssignedCFORate")
    assigned_controller: Optional[str] = None
    assigned_controller_rate: Optional[float] = None
    assigned_senior_accountant: Optional[str] = None
    assigned_senior_accountant_rate: Optional[float] = None
    assigned_software: Optional[str] = None
    assigned_software_rate: Optional[float] = None
    assigned_software_quantity: Optional[int] = None
    additional_staff: Optional[str] = Field(
        None, description='JSON array of {"name", "role", "rate"} objects'
    )


class ContractResponse(ContractCreate):
    """Schema for contract response."""

    id: UUID
    created_on: datetime
    updated_on: datetime


# ============================================================================
# Projects and subtasks
# ============================================================================


class ProjectCreate(EntityModel):
    """Schema for creating a project."""

    client_id: Optional[UUID] = None
    project_name: str = Field(..., min_length=1, max_length=200)
    start_date: Optional[date] = None


class ProjectTaskCreate(EntityModel):
    """Schema for adding a task to a project."""

    task_name: str = Field(..., min_length=1, max_length=200)


class SubtaskCreate(EntityModel):
    """Schema for creating a subtask."""

    task_id: UUID
    subtask_name: str = Field(..., alias="SubTaskName", min_length=1, max_length=200)
    planned_hours: Optional[float] = Field(None, ge=0)
    due_date: Optional[date] = None
    status: SubtaskStatus = SubtaskStatus.NOT_STARTED


class SubtaskUpdate(EntityModel):
    """Schema for patching a subtask. Only provided fields change."""

    subtask_name: Optional[str] = Field(None, alias="SubTaskName", min_length=1, max_length=200)
    planned_hours: Optional[float] = Field(None, ge=0)
    due_date: Optional[date] = None
    status: Optional[SubtaskStatus] = None


class SubtaskResponse(EntityModel):
    """Schema for subtask response."""

    id: UUID
    task_id: UUID
    subtask_name: str = Field(..., alias="SubTaskName")
    planned_hours: Optional[float] = None
    due_date: Optional[date] = None
    status: SubtaskStatus
    created_on: datetime
    updated_on: datetime


class ProjectTaskResponse(EntityModel):
    """Schema for project task response."""

    id: UUID
    project_id: UUID
    task_name: str
    subtasks: list[SubtaskResponse] = Field(default_factory=list)


class ProjectResponse(EntityModel):
    """Schema for project response, including tasks and subtasks."""

    id: UUID
    client_id: Optional[UUID] = None
    project_name: str
    status: ProjectStatus
    start_date: Optional[date] = None
    created_on: datetime
    updated_on: datetime
    tasks: list[ProjectTaskResponse] = Field(default_factory=list)


# ============================================================================
# Timecards
# ============================================================================


class TimecardHeaderCreate(EntityModel):
    """Schema for creating a timecard header."""

    consultant_id: UUID
    timesheet_date: date
    total_hours: float = Field(0, ge=0)
    status: TimecardStatus = TimecardStatus.OPEN
    notes: str = ""


class TimecardHeaderUpdate(EntityModel):
    """Schema for updating a timecard header. Only provided fields change."""

    status: Optional[TimecardStatus] = None
    notes: Optional[str] = None
    total_hours: Optional[float] = Field(None, ge=0)


class TimecardHeaderResponse(EntityModel):
    """Schema for timecard header response."""

    id: UUID = Field(..., alias="TimecardID")
    consultant_id: UUID
    timesheet_date: date
    total_hours: float
    status: TimecardStatus
    notes: str
    created_on: datetime
    updated_on: datetime


class TimecardDayStatus(EntityModel):
    """Status of one consultant day, derived as Not Submitted when no header exists."""

    consultant_id: UUID
    timesheet_date: date
    timecard_id: Optional[UUID] = None
    status: TimecardStatus
    total_hours: float = 0


class TimecardReconciliation(EntityModel):
    """Header total compared with the sum of its lines."""

    timecard_id: UUID
    header_total_hours: float
    line_total_hours: float
    drift: float


class TimecardLineCreate(EntityModel):
    """Schema for creating a timecard line.

    Hour buckets outside [0, 99.9] are clamped, not rejected.
    """

    timecard_id: Optional[UUID] = None
    consultant_id: UUID
    timesheet_date: date
    client_id: Optional[UUID] = None
    project_id: Optional[UUID] = Field(None, description="Blank falls back to the generic time-entry project")
    project_name: Optional[str] = None
    project_task: Optional[str] = None
    client_facing_hours: float = Field(0, allow_inf_nan=False)
    non_client_facing_hours: float = Field(0, allow_inf_nan=False)
    other_task_hours: float = Field(0, allow_inf_nan=False)
    status: TimecardStatus = TimecardStatus.OPEN
    notes: Optional[str] = None
    benchmark_status: Optional[str] = None
    approved_by: Optional[str] = None
    rejected_notes: Optional[str] = None

    @field_validator("timecard_id", "client_id", "project_id", mode="before")
    @classmethod
    def blank_ids_to_none(cls, value):
        return _blank_to_none(value)


class TimecardLineUpdate(EntityModel):
    """Schema for patching a timecard line. Only provided fields change."""

    client_id: Optional[UUID] = None
    project_id: Optional[UUID] = None
    project_task: Optional[str] = None
    client_facing_hours: Optional[float] = Field(None, allow_inf_nan=False)
    non_client_facing_hours: Optional[float] = Field(None, allow_inf_nan=False)
    other_task_hours: Optional[float] = Field(None, allow_inf_nan=False)
    status: Optional[TimecardStatus] = None
    notes: Optional[str] = None
    benchmark_status: Optional[str] = None
    approved_by: Optional[str] = None
    rejected_notes: Optional[str] = None
    is_locked: Optional[bool] = None

    @field_validator("client_id", "project_id", mode="before")
    @classmethod
    def blank_ids_to_none(cls, value):
        return _blank_to_none(value)


class TimecardLineResponse(EntityModel):
    """Schema for timecard line response."""

    id: UUID = Field(..., alias="TimecardLineID")
    timecard_id: Optional[UUID] = None
    consultant_id: UUID
    timesheet_date: date
    client_id: Optional[UUID] = None
    project_id: UUID
    project_name: Optional[str] = None
    project_task: Optional[str] = None
    client_facing_hours: float
    non_client_facing_hours: float
    other_task_hours: float
    total_hours: float
    status: TimecardStatus
    notes: Optional[str] = None
    benchmark_status: Optional[str] = None
    approved_by: Optional[str] = None
    rejected_notes: Optional[str] = None
    is_locked: bool
    created_on: datetime
    updated_on: datetime
    consultant_name: Optional[str] = None
    client_name: Optional[str] = None


class SubmitDayRequest(EntityModel):
    """Schema for submitting every open line of a consultant's day."""

    consultant_id: UUID
    timesheet_date: date


class SubmitDayResponse(EntityModel):
    """Result of a day submission."""

    rows_affected: int


class TimecardDaySummary(EntityModel):
    """Total hours per consultant per day."""

    consultant_id: UUID
    timesheet_date: date
    total_hours: float


# ============================================================================
# Benchmarks
# ============================================================================


class BenchmarkCreate(EntityModel):
    """Schema for creating a benchmark."""

    client_id: UUID
    consultant_id: UUID
    role: Optional[str] = None
    low_range_hours: Optional[float] = Field(None, ge=0)
    target_hours: Optional[float] = Field(None, ge=0)
    high_range_hours: Optional[float] = Field(None, ge=0)
    weekly_hours: Optional[float] = Field(None, ge=0)
    bill_rate: Optional[float] = Field(None, ge=0)
    calculated_benchmark: bool = False
    effective_date: Optional[date] = None
    distribution_type: DistributionType = DistributionType.LINEAR


class BenchmarkUpdate(EntityModel):
    """Schema for updating a benchmark.

    ``StartDate`` marks where the new values take effect; it becomes the
    EndDate of the history snapshot and defaults to now.
    """

    role: Optional[str] = None
    low_range_hours: Optional[float] = Field(None, ge=0)
    target_hours: Optional[float] = Field(None, ge=0)
    high_range_hours: Optional[float] = Field(None, ge=0)
    weekly_hours: Optional[float] = Field(None, ge=0)
    bill_rate: Optional[float] = Field(None, ge=0)
    calculated_benchmark: Optional[bool] = None
    effective_date: Optional[date] = None
    distribution_type: Optional[DistributionType] = None
    start_date: Optional[datetime] = None


class BenchmarkResponse(EntityModel):
    """Schema for benchmark response."""

    id: UUID = Field(..., alias="BenchmarkID")
    client_id: UUID
    consultant_id: UUID
    role: Optional[str] = None
    low_range_hours: Optional[float] = None
    target_hours: Optional[float] = None
    high_range_hours: Optional[float] = None
    weekly_hours: Optional[float] = None
    bill_rate: Optional[float] = None
    calculated_benchmark: bool
    effective_date: Optional[date] = None
    distribution_type: DistributionType
    created_on: datetime
    updated_on: datetime
    consultant_name: Optional[str] = None
    client_name: Optional[str] = None


class BenchmarkHistoryResponse(EntityModel):
    """Schema for a benchmark history snapshot."""

    id: UUID = Field(..., alias="HistoryID")
    benchmark_id: UUID
    client_id: UUID
    consultant_id: UUID
    role: Optional[str] = None
    low_range_hours: Optional[float] = None
    target_hours: Optional[float] = None
    high_range_hours: Optional[float] = None
    weekly_hours: Optional[float] = None
    bill_rate: Optional[float] = None
    calculated_benchmark: bool
    effective_date: Optional[date] = None
    distribution_type: DistributionType
    end_date: datetime
    created_on: datetime


class BulkDistributionUpdate(CamelModel):
    """Schema for changing the distribution type of many benchmarks."""

    benchmark_ids: list[UUID]
    distribution_type: DistributionType


class BulkDistributionResult(CamelModel):
    """Benchmarks actually updated; missing ids are skipped."""

    updated: int
    benchmark_ids: list[UUID]


# ============================================================================
# Reports
# ============================================================================


class WeekSummary(CamelModel):
    """Hours per ISO week and role/person/category."""

    iso_week: str
    role: str
    person: str
    category: str
    hours: float


class MonthSummary(CamelModel):
    """Hours per calendar month and role/person/category."""

    month: str
    role: str
    person: str
    category: str
    hours: float


class PersonSummary(CamelModel):
    """Hours per role/person."""

    role: str
    person: str
    hours: float


class CategorySummary(CamelModel):
    """Hours per category."""

    category: str
    hours: float


class ActivitySummary(CamelModel):
    """The four summary views of a client activity report."""

    by_week: list[WeekSummary] = Field(default_factory=list)
    by_month: list[MonthSummary] = Field(default_factory=list)
    by_person: list[PersonSummary] = Field(default_factory=list)
    by_category: list[CategorySummary] = Field(default_factory=list)


class ActivityDetailRow(CamelModel):
    """One timecard line in a client activity report."""

    activity_date: date = Field(..., alias="date")
    consultant_id: UUID = Field(..., alias="consultantID")
    person: str
    role: str
    project: Optional[str] = None
    task: Optional[str] = None
    category: str
    hours: float
    notes: Optional[str] = None


class ClientActivityReport(CamelModel):
    """Client activity report: filters echoed back, summaries and detail."""

    client_id: UUID = Field(..., alias="clientID")
    start_date: date
    end_date: date
    include_weekends: bool
    approved_only: bool
    include_notes: bool
    summary: ActivitySummary
    detail: list[ActivityDetailRow] = Field(default_factory=list)


class FinancialLineItem(EntityModel):
    """One staff role on one contract, priced and joined to logged hours."""

    contract_id: UUID
    client_id: UUID
    client_name: Optional[str] = None
    contract_type: str
    contract_start_date: Optional[date] = None
    contract_end_date: Optional[date] = None
    contract_end_reason: Optional[str] = None
    contract_length: Optional[int] = None
    active_status: bool
    staff_name: str
    role: str
    client_rate: float
    quantity: int = 1
    consultant_id: Optional[UUID] = None
    pay_type: Optional[str] = None
    pay_rate: Optional[float] = None
    hourly_rate: Optional[float] = None
    job_title: Optional[str] = None
    total_project_fee: float = 0
    monthly_fee: float = 0
    onboarding_fee: float = 0
    total_hours: float = 0
    months_remaining: int = 0
    line_item_count: int = 1


# ============================================================================
# Helpdesk
# ============================================================================


def _truncate_minutes(value: Any) -> Any:
    # 12.7 minutes is stored as 12; negatives are left for the range check
    if isinstance(value, float) and value >= 0:
        return int(value)
    return value


class TicketCreate(CamelModel):
    """Schema for opening a helpdesk ticket."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    title: str = Field(..., min_length=5, max_length=200)
    description: str = Field(..., min_length=20)
    category: TicketCategory = TicketCategory.OTHER
    priority: TicketPriority = TicketPriority.P2
    affected_page: Optional[str] = Field(None, max_length=255)
    affected_feature: Optional[str] = Field(None, max_length=255)
    steps_to_reproduce: Optional[str] = None
    expected_behavior: Optional[str] = None
    actual_behavior: Optional[str] = None
    environment: Optional[str] = Field(None, max_length=100)
    browser_info: Optional[str] = Field(None, max_length=500)
    app_version: Optional[str] = Field(None, max_length=50)
    due_date: Optional[date] = None


class TicketUpdate(CamelModel):
    """Schema for updating a ticket.

    Fields are whitelisted by role before anything is applied: creators may
    change descriptive fields only, elevated staff may change everything.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    title: Optional[str] = Field(None, min_length=5, max_length=200)
    description: Optional[str] = Field(None, min_length=20)
    category: Optional[TicketCategory] = None
    priority: Optional[TicketPriority] = None
    affected_page: Optional[str] = Field(None, max_length=255)
    affected_feature: Optional[str] = Field(None, max_length=255)
    steps_to_reproduce: Optional[str] = None
    expected_behavior: Optional[str] = None
    actual_behavior: Optional[str] = None
    environment: Optional[str] = Field(None, max_length=100)
    status: Optional[TicketStatus] = None
    assigned_to_user_id: Optional[UUID] = None
    resolution_summary: Optional[str] = None
    estimate_minutes: Optional[int] = Field(None, ge=0)
    due_date: Optional[date] = None

    @field_validator("estimate_minutes", mode="before")
    @classmethod
    def truncate_minutes(cls, value):
        return _truncate_minutes(value)


class TicketCommentCreate(CamelModel):
    """Schema for commenting on a ticket."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    body: str = Field(..., min_length=2)
    is_internal: bool = False


class TicketCommentResponse(CamelModel):
    """Schema for ticket comment response."""

    id: UUID
    ticket_id: UUID
    body: str
    is_internal: bool
    created_at: datetime
    created_by_user_id: Optional[UUID] = None


class WorkLogCreate(CamelModel):
    """Schema for logging time against a ticket."""

    minutes: int = Field(..., gt=0)
    note: Optional[str] = None

    @field_validator("minutes", mode="before")
    @classmethod
    def truncate_minutes(cls, value):
        return _truncate_minutes(value)


class WorkLogResponse(CamelModel):
    """Schema for ticket work log response."""

    id: UUID
    ticket_id: UUID
    minutes: int
    note: Optional[str] = None
    created_at: datetime
    created_by_user_id: Optional[UUID] = None


class AttachmentCreate(CamelModel):
    """Attachment metadata. The file itself is stored elsewhere."""

    file_name: str = Field(..., min_length=1, max_length=255)
    file_path: str = Field(..., min_length=1, max_length=500)
    file_size: Optional[int] = Field(None, ge=0)
    mime_type: Optional[str] = Field(None, max_length=100)


class AttachmentResponse(AttachmentCreate):
    """Schema for attachment metadata response."""

    id: UUID
    ticket_id: UUID
    uploaded_at: datetime
    uploaded_by_user_id: Optional[UUID] = None


class TicketResponse(CamelModel):
    """Schema for ticket response."""

    id: UUID
    title: str
    description: str
    category: TicketCategory
    priority: TicketPriority
    status: TicketStatus
    affected_page: Optional[str] = None
    affected_feature: Optional[str] = None
    steps_to_reproduce: Optional[str] = None
    expected_behavior: Optional[str] = None
    actual_behavior: Optional[str] = None
    environment: Optional[str] = None
    browser_info: Optional[str] = None
    app_version: Optional[str] = None
    due_date: Optional[date] = None
    created_at: datetime
    created_by_user_id: Optional[UUID] = None
    updated_at: datetime
    updated_by_user_id: Optional[UUID] = None
    assigned_to_user_id: Optional[UUID] = None
    resolution_summary: Optional[str] = None
    estimate_minutes: Optional[int] = None
    closed_at: Optional[datetime] = None
    closed_by_user_id: Optional[UUID] = None
    total_time_spent_minutes: int


class TicketDetailResponse(TicketResponse):
    """Ticket with its comments, work logs and attachments."""

    comments: list[TicketCommentResponse] = Field(default_factory=list)
    work_logs: list[WorkLogResponse] = Field(default_factory=list)
    attachments: list[AttachmentResponse] = Field(default_factory=list)


# ============================================================================
# Collaboration
# ============================================================================


class SpaceCreate(CamelModel):
    """Schema for creating a collaboration space."""

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    is_private: bool = False
    member_user_ids: list[UUID] = Field(default_factory=list)


class SpaceMemberAdd(CamelModel):
    """Schema for adding a member to a space."""

    user_id: UUID
    role: SpaceMemberRole = SpaceMemberRole.MEMBER


class SpaceMemberResponse(CamelModel):
    """Schema for space membership response."""

    user_id: UUID
    role: SpaceMemberRole
    added_on: datetime
    display_name: Optional[str] = None


class SpaceResponse(CamelModel):
    """Schema for collaboration space response."""

    id: UUID
    name: str
    description: Optional[str] = None
    is_private: bool
    created_by_user_id: Optional[UUID] = None
    created_on: datetime
    updated_on: datetime


class SpaceDetailResponse(SpaceResponse):
    """Space with its members."""

    members: list[SpaceMemberResponse] = Field(default_factory=list)


class CollaborationTaskCreate(CamelModel):
    """Schema for creating a collaboration task."""

    space_id: Optional[UUID] = None
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    priority: CollaborationTaskPriority = CollaborationTaskPriority.MEDIUM
    status: CollaborationTaskStatus = CollaborationTaskStatus.OPEN
    due_date: Optional[date] = None
    client_id: Optional[UUID] = None
    contract_id: Optional[UUID] = None
    project_id: Optional[UUID] = None
    assigned_to_user_id: Optional[UUID] = None


class CollaborationTaskUpdate(CamelModel):
    """Schema for patching a collaboration task. Only provided fields change."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    priority: Optional[CollaborationTaskPriority] = None
    status: Optional[CollaborationTaskStatus] = None
    due_date: Optional[date] = None
    client_id: Optional[UUID] = None
    contract_id: Optional[UUID] = None
    project_id: Optional[UUID] = None
    assigned_to_user_id: Optional[UUID] = None


class CollaborationTaskResponse(CamelModel):
    """Schema for collaboration task response."""

    id: UUID
    space_id: Optional[UUID] = None
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    priority: CollaborationTaskPriority
    status: CollaborationTaskStatus
    due_date: Optional[date] = None
    client_id: Optional[UUID] = None
    contract_id: Optional[UUID] = None
    project_id: Optional[UUID] = None
    assigned_to_user_id: Optional[UUID] = None
    created_by_user_id: Optional[UUID] = None
    created_on: datetime
    updated_on: datetime
    completed_on: Optional[datetime] = None


class TaskCommentCreate(CamelModel):
    """Schema for commenting on a collaboration task."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    body: str = Field(..., min_length=1)


class TaskCommentResponse(CamelModel):
    """Schema for collaboration task comment response."""

    id: UUID
    task_id: UUID
    user_id: Optional[UUID] = None
    body: str
    created_on: datetime
