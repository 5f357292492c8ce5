"""SQLAlchemy database models."""
from datetime import datetime
from uuid import uuid4
import enum

from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    Float,
    Date,
    DateTime,
    ForeignKey,
    Enum,
    Boolean,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship

# Base class for all models
Base = declarative_base()


def _enum_values(obj):
    """Persist enum values rather than member names."""
    return [e.value for e in obj]


class TimecardStatus(str, enum.Enum):
    """Timecard status shared by headers and lines.

    ``Not Submitted`` only applies to headers: it is what a day reports when
    no header row exists for it yet.
    """

    NOT_SUBMITTED = "Not Submitted"
    OPEN = "Open"
    SUBMITTED = "Submitted"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class DistributionType(str, enum.Enum):
    """How a benchmark's target hours spread across a period."""

    LINEAR = "linear"
    FRONT_LOADED = "front_loaded"
    BACK_LOADED = "back_loaded"
    U_SHAPED = "u_shaped"
    CUSTOM = "custom"


class ProjectStatus(str, enum.Enum):
    """Project status, recomputed from subtask completion."""

    ACTIVE = "Active"
    COMPLETED = "Completed"


class SubtaskStatus(str, enum.Enum):
    """Subtask status enum."""

    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"


class TicketCategory(str, enum.Enum):
    """Helpdesk ticket category."""

    BUG = "bug"
    UI_UX = "ui_ux"
    DATA = "data"
    ACCESS = "access"
    INTEGRATION = "integration"
    PERFORMANCE = "performance"
    FEATURE_REQUEST = "feature_request"
    OTHER = "other"


class TicketPriority(str, enum.Enum):
    """Helpdesk ticket priority. P0 is the most urgent."""

    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"


class TicketStatus(str, enum.Enum):
    """Helpdesk ticket status."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    RESOLVED = "resolved"
    CLOSED = "closed"


class SpaceMemberRole(str, enum.Enum):
    """Collaboration space membership role."""

    OWNER = "OWNER"
    MEMBER = "MEMBER"


class CollaborationTaskPriority(str, enum.Enum):
    """Collaboration task priority, most urgent first."""

    URGENT = "URGENT"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class CollaborationTaskStatus(str, enum.Enum):
    """Collaboration task status. DONE and CANCELLED are closed."""

    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    BLOCKED = "BLOCKED"
    DONE = "DONE"
    CANCELLED = "CANCELLED"


# Reference data ------------------------------------------------------------


class User(Base):
    """Application user (token subject)."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid4)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    created_on = Column(DateTime, nullable=False, default=datetime.utcnow)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"


class Consultant(Base):
    """Consultant who logs time against clients."""

    __tablename__ = "consultants"

    id = Column(Uuid, primary_key=True, default=uuid4)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    company_email = Column(String(255), nullable=True)
    job_title = Column(String(100), nullable=True)
    pay_type = Column(String(50), nullable=True)
    pay_rate = Column(Float, nullable=True)
    hourly_rate = Column(Float, nullable=True)
    status = Column(Boolean, nullable=False, default=True)  # active flag
    created_on = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_on = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self):
        return f"<Consultant(id={self.id}, name='{self.display_name}')>"


class Client(Base):
    """Client organization."""

    __tablename__ = "clients"

    id = Column(Uuid, primary_key=True, default=uuid4)
    client_name = Column(String(200), nullable=False, index=True)
    active_status = Column(Boolean, nullable=False, default=True)
    created_on = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_on = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    contracts = relationship("Contract", back_populates="client")

    def __repr__(self):
        return f"<Client(id={self.id}, name='{self.client_name}')>"


class Contract(Base):
    """Client contract with its assigned staff and fees.

    Staff are referenced by display name, not by consultant id; the financial
    report matches them to consultants by normalized name.
    """

    __tablename__ = "contracts"

    id = Column(Uuid, primary_key=True, default=uuid4)
    client_id = Column(Uuid, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    contract_name = Column(String(200), nullable=True)
    contract_type = Column(String(50), nullable=True)
    contract_length = Column(Integer, nullable=True)  # months
    contract_start_date = Column(Date, nullable=True)
    contract_end_date = Column(Date, nullable=True)
    contract_end_reason = Column(String(255), nullable=True)

    total_project_fee = Column(Float, nullable=True)
    monthly_fee = Column(Float, nullable=True)
    onboarding_fee = Column(Float, nullable=True)

    assigned_cfo = Column(String(200), nullable=True)
    assigned_cfo_rate = Column(Float, nullable=True)
    assigned_controller = Column(String(200), nullable=True)
    assigned_controller_rate = Column(Float, nullable=True)
    assigned_senior_accountant = Column(String(200), nullable=True)
    assigned_senior_accountant_rate = Column(Float, nullable=True)
    assigned_software = Column(String(200), nullable=True)
    assigned_software_rate = Column(Float, nullable=True)
    assigned_software_quantity = Column(Integer, nullable=True)
    # JSON array of {"name", "role", "rate"}
    additional_staff = Column(Text, nullable=True)

    created_on = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_on = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = relationship("Client", back_populates="contracts")

    def __repr__(self):
        return f"<Contract(id={self.id}, client_id={self.client_id})>"


# Projects and subtasks -----------------------------------------------------


class Project(Base):
    """Client project broken down into tasks and subtasks."""

    __tablename__ = "projects"

    id = Column(Uuid, primary_key=True, default=uuid4)
    client_id = Column(Uuid, ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True)
    project_name = Column(String(200), nullable=False)
    status = Column(
        Enum(ProjectStatus, values_callable=_enum_values),
        nullable=False,
        default=ProjectStatus.ACTIVE,
    )
    start_date = Column(Date, nullable=True)
    created_on = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_on = Column(DateTime, nullable=False, default=datetime.utcnow)

    tasks = relationship("ProjectTask", back_populates="project", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Project(id={self.id}, name='{self.project_name}', status='{self.status}')>"


class ProjectTask(Base):
    """Task inside a project."""

    __tablename__ = "project_tasks"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    task_name = Column(String(200), nullable=False)
    created_on = Column(DateTime, nullable=False, default=datetime.utcnow)

    project = relationship("Project", back_populates="tasks")
    subtasks = relationship("Subtask", back_populates="task", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<ProjectTask(id={self.id}, name='{self.task_name}')>"


class Subtask(Base):
    """Unit of planned work under a project task."""

    __tablename__ = "subtasks"

    id = Column(Uuid, primary_key=True, default=uuid4)
    task_id = Column(Uuid, ForeignKey("project_tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    subtask_name = Column(String(200), nullable=False)
    planned_hours = Column(Float, nullable=True)
    due_date = Column(Date, nullable=True)
    status = Column(
        Enum(SubtaskStatus, values_callable=_enum_values),
        nullable=False,
        default=SubtaskStatus.NOT_STARTED,
    )
    created_on = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_on = Column(DateTime, nullable=False, default=datetime.utcnow)

    task = relationship("ProjectTask", back_populates="subtasks")

    def __repr__(self):
        return f"<Subtask(id={self.id}, status='{self.status}')>"


# Timecards -----------------------------------------------------------------


class TimecardHeader(Base):
    """One row per consultant per timesheet day.

    ``total_hours`` is supplied by the caller and is not recomputed from the
    lines; see ``crud.reconcile_timecard_header`` for the drift view.
    """

    __tablename__ = "timecard_headers"

    id = Column(Uuid, primary_key=True, default=uuid4)
    consultant_id = Column(Uuid, ForeignKey("consultants.id", ondelete="CASCADE"), nullable=False, index=True)
    timesheet_date = Column(Date, nullable=False, index=True)
    total_hours = Column(Float, nullable=False, default=0)
    status = Column(
        Enum(TimecardStatus, values_callable=_enum_values),
        nullable=False,
        default=TimecardStatus.OPEN,
        index=True,
    )
    notes = Column(Text, nullable=False, default="")
    created_on = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_on = Column(DateTime, nullable=False, default=datetime.utcnow)

    consultant = relationship("Consultant")
    lines = relationship("TimecardLine", back_populates="header")

    def __repr__(self):
        return f"<TimecardHeader(id={self.id}, date={self.timesheet_date}, status='{self.status}')>"


class TimecardLine(Base):
    """Hours for one client/project/task within a timecard day."""

    __tablename__ = "timecard_lines"

    id = Column(Uuid, primary_key=True, default=uuid4)
    timecard_id = Column(Uuid, ForeignKey("timecard_headers.id", ondelete="CASCADE"), nullable=True, index=True)
    consultant_id = Column(Uuid, ForeignKey("consultants.id", ondelete="CASCADE"), nullable=False, index=True)
    timesheet_date = Column(Date, nullable=False, index=True)
    client_id = Column(Uuid, ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True)
    # Loose reference: the generic time-entry project may not be a real project row
    project_id = Column(Uuid, nullable=False)
    project_name = Column(String(200), nullable=True)
    project_task = Column(String(200), nullable=True)

    client_facing_hours = Column(Float, nullable=False, default=0)
    non_client_facing_hours = Column(Float, nullable=False, default=0)
    other_task_hours = Column(Float, nullable=False, default=0)
    total_hours = Column(Float, nullable=False, default=0)

    status = Column(
        Enum(TimecardStatus, values_callable=_enum_values),
        nullable=False,
        default=TimecardStatus.OPEN,
        index=True,
    )
    notes = Column(Text, nullable=True)
    benchmark_status = Column(String(50), nullable=True)
    approved_by = Column(String(200), nullable=True)
    rejected_notes = Column(Text, nullable=True)
    is_locked = Column(Boolean, nullable=False, default=False)

    created_on = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_on = Column(DateTime, nullable=False, default=datetime.utcnow)

    header = relationship("TimecardHeader", back_populates="lines")
    consultant = relationship("Consultant")
    client = relationship("Client")

    def __repr__(self):
        return f"<TimecardLine(id={self.id}, date={self.timesheet_date}, total={self.total_hours})>"


# Benchmarks ----------------------------------------------------------------


class Benchmark(Base):
    """Contracted hours and rate target for a client/consultant/role."""

    __tablename__ = "benchmarks"

    id = Column(Uuid, primary_key=True, default=uuid4)
    client_id = Column(Uuid, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    consultant_id = Column(Uuid, ForeignKey("consultants.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(100), nullable=True)
    low_range_hours = Column(Float, nullable=True)
    target_hours = Column(Float, nullable=True)
    high_range_hours = Column(Float, nullable=True)
    weekly_hours = Column(Float, nullable=True)
    bill_rate = Column(Float, nullable=True)
    calculated_benchmark = Column(Boolean, nullable=False, default=False)
    effective_date = Column(Date, nullable=True)
    distribution_type = Column(
        Enum(DistributionType, values_callable=_enum_values),
        nullable=False,
        default=DistributionType.LINEAR,
    )
    created_on = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_on = Column(DateTime, nullable=False, default=datetime.utcnow)

    client = relationship("Client")
    consultant = relationship("Consultant")

    def __repr__(self):
        return f"<Benchmark(id={self.id}, role='{self.role}', target={self.target_hours})>"


class BenchmarkHistory(Base):
    """Append-only snapshot of a benchmark taken before each update or delete.

    No foreign key to ``benchmarks``: snapshots outlive the live row.
    """

    __tablename__ = "benchmark_history"

    id = Column(Uuid, primary_key=True, default=uuid4)
    benchmark_id = Column(Uuid, nullable=False, index=True)
    client_id = Column(Uuid, nullable=False)
    consultant_id = Column(Uuid, nullable=False)
    role = Column(String(100), nullable=True)
    low_range_hours = Column(Float, nullable=True)
    target_hours = Column(Float, nullable=True)
    high_range_hours = Column(Float, nullable=True)
    weekly_hours = Column(Float, nullable=True)
    bill_rate = Column(Float, nullable=True)
    calculated_benchmark = Column(Boolean, nullable=False, default=False)
    effective_date = Column(Date, nullable=True)
    distribution_type = Column(
        Enum(DistributionType, values_callable=_enum_values),
        nullable=False,
        default=DistributionType.LINEAR,
    )
    end_date = Column(DateTime, nullable=False, index=True)
    created_on = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f"<BenchmarkHistory(benchmark_id={self.benchmark_id}, end_date={self.end_date})>"


# Helpdesk ------------------------------------------------------------------


class Ticket(Base):
    """Internal IT helpdesk ticket."""

    __tablename__ = "it_tickets"

    id = Column(Uuid, primary_key=True, default=uuid4)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(
        Enum(TicketCategory, values_callable=_enum_values),
        nullable=False,
        default=TicketCategory.OTHER,
        index=True,
    )
    priority = Column(
        Enum(TicketPriority, values_callable=_enum_values),
        nullable=False,
        default=TicketPriority.P2,
        index=True,
    )
    status = Column(
        Enum(TicketStatus, values_callable=_enum_values),
        nullable=False,
        default=TicketStatus.OPEN,
        index=True,
    )

    affected_page = Column(String(255), nullable=True)
    affected_feature = Column(String(255), nullable=True)
    steps_to_reproduce = Column(Text, nullable=True)
    expected_behavior = Column(Text, nullable=True)
    actual_behavior = Column(Text, nullable=True)
    environment = Column(String(100), nullable=True)
    browser_info = Column(String(500), nullable=True)
    app_version = Column(String(50), nullable=True)
    due_date = Column(Date, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_by_user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_by_user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assigned_to_user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    resolution_summary = Column(Text, nullable=True)
    estimate_minutes = Column(Integer, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    closed_by_user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    total_time_spent_minutes = Column(Integer, nullable=False, default=0)

    comments = relationship("TicketComment", back_populates="ticket", order_by="TicketComment.created_at")
    work_logs = relationship("TicketWorkLog", back_populates="ticket", order_by="TicketWorkLog.created_at")
    attachments = relationship("TicketAttachment", back_populates="ticket", order_by="TicketAttachment.uploaded_at")

    def __repr__(self):
        return f"<Ticket(id={self.id}, priority='{self.priority}', status='{self.status}')>"


class TicketComment(Base):
    """Comment on a helpdesk ticket."""

    __tablename__ = "it_ticket_comments"

    id = Column(Uuid, primary_key=True, default=uuid4)
    ticket_id = Column(Uuid, ForeignKey("it_tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    body = Column(Text, nullable=False)
    is_internal = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_by_user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    ticket = relationship("Ticket", back_populates="comments")


class TicketWorkLog(Base):
    """Immutable record of time spent on a ticket."""

    __tablename__ = "it_ticket_work_logs"

    id = Column(Uuid, primary_key=True, default=uuid4)
    ticket_id = Column(Uuid, ForeignKey("it_tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    minutes = Column(Integer, nullable=False)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_by_user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    ticket = relationship("Ticket", back_populates="work_logs")


class TicketAttachment(Base):
    """Attachment metadata. File bytes live outside the database."""

    __tablename__ = "it_ticket_attachments"

    id = Column(Uuid, primary_key=True, default=uuid4)
    ticket_id = Column(Uuid, ForeignKey("it_tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String(100), nullable=True)
    uploaded_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    uploaded_by_user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    ticket = relationship("Ticket", back_populates="attachments")


# Collaboration -------------------------------------------------------------


class CollaborationSpace(Base):
    """Named group of users sharing a task list."""

    __tablename__ = "collaboration_spaces"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    is_private = Column(Boolean, nullable=False, default=False)
    created_by_user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_on = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_on = Column(DateTime, nullable=False, default=datetime.utcnow)

    members = relationship(
        "CollaborationSpaceMember",
        back_populates="space",
        cascade="all, delete-orphan",
        order_by="CollaborationSpaceMember.added_on",
    )

    def __repr__(self):
        return f"<CollaborationSpace(id={self.id}, name='{self.name}')>"


class CollaborationSpaceMember(Base):
    """Membership of a user in a collaboration space."""

    __tablename__ = "collaboration_space_members"
    __table_args__ = (UniqueConstraint("space_id", "user_id", name="uq_space_member"),)

    id = Column(Uuid, primary_key=True, default=uuid4)
    space_id = Column(Uuid, ForeignKey("collaboration_spaces.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(
        Enum(SpaceMemberRole, values_callable=_enum_values),
        nullable=False,
        default=SpaceMemberRole.MEMBER,
    )
    added_on = Column(DateTime, nullable=False, default=datetime.utcnow)

    space = relationship("CollaborationSpace", back_populates="members")
    user = relationship("User")


class CollaborationTask(Base):
    """Internal work item, optionally linked to a client, contract or project."""

    __tablename__ = "collaboration_tasks"

    id = Column(Uuid, primary_key=True, default=uuid4)
    space_id = Column(Uuid, ForeignKey("collaboration_spaces.id", ondelete="SET NULL"), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    priority = Column(
        Enum(CollaborationTaskPriority, values_callable=_enum_values),
        nullable=False,
        default=CollaborationTaskPriority.MEDIUM,
        index=True,
    )
    status = Column(
        Enum(CollaborationTaskStatus, values_callable=_enum_values),
        nullable=False,
        default=CollaborationTaskStatus.OPEN,
        index=True,
    )
    due_date = Column(Date, nullable=True)
    client_id = Column(Uuid, ForeignKey("clients.id", ondelete="SET NULL"), nullable=True)
    contract_id = Column(Uuid, ForeignKey("contracts.id", ondelete="SET NULL"), nullable=True)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    assigned_to_user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_by_user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_on = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_on = Column(DateTime, nullable=False, default=datetime.utcnow)
    completed_on = Column(DateTime, nullable=True)

    comments = relationship(
        "CollaborationTaskComment",
        back_populates="task",
        order_by="CollaborationTaskComment.created_on",
    )

    def __repr__(self):
        return f"<CollaborationTask(id={self.id}, status='{self.status}')>"


class CollaborationTaskComment(Base):
    """Comment on a collaboration task."""

    __tablename__ = "collaboration_task_comments"

    id = Column(Uuid, primary_key=True, default=uuid4)
    task_id = Column(Uuid, ForeignKey("collaboration_tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    body = Column(Text, nullable=False)
    created_on = Column(DateTime, nullable=False, default=datetime.utcnow)

    task = relationship("CollaborationTask", back_populates="comments")
