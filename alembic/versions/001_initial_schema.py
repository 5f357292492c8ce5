"""Initial back-office schema: reference data, timecards, benchmarks, helpdesk, collaboration.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

GENERIC_PROJECT_ID = 'b892f250-8a39-4411-bc76-372693828e56'

# Enum types are created once up front and shared between tables
timecard_status = postgresql.ENUM(
    'Not Submitted', 'Open', 'Submitted', 'Approved', 'Rejected',
    name='timecardstatus', create_type=False,
)
distribution_type = postgresql.ENUM(
    'linear', 'front_loaded', 'back_loaded', 'u_shaped', 'custom',
    name='distributiontype', create_type=False,
)
project_status = postgresql.ENUM('Active', 'Completed', name='projectstatus', create_type=False)
subtask_status = postgresql.ENUM('NotStarted', 'InProgress', 'Completed', name='subtaskstatus', create_type=False)
ticket_category = postgresql.ENUM(
    'bug', 'ui_ux', 'data', 'access', 'integration', 'performance', 'feature_request', 'other',
    name='ticketcategory', create_type=False,
)
ticket_priority = postgresql.ENUM('P0', 'P1', 'P2', 'P3', name='ticketpriority', create_type=False)
ticket_status = postgresql.ENUM(
    'open', 'in_progress', 'blocked', 'resolved', 'closed',
    name='ticketstatus', create_type=False,
)
space_member_role = postgresql.ENUM('OWNER', 'MEMBER', name='spacememberrole', create_type=False)
collaboration_task_priority = postgresql.ENUM(
    'URGENT', 'HIGH', 'MEDIUM', 'LOW',
    name='collaborationtaskpriority', create_type=False,
)
collaboration_task_status = postgresql.ENUM(
    'OPEN', 'IN_PROGRESS', 'BLOCKED', 'DONE', 'CANCELLED',
    name='collaborationtaskstatus', create_type=False,
)

ENUMS = (
    timecard_status,
    distribution_type,
    project_status,
    subtask_status,
    ticket_category,
    ticket_priority,
    ticket_status,
    space_member_role,
    collaboration_task_priority,
    collaboration_task_status,
)


def _uuid():
    return postgresql.UUID(as_uuid=True)


def _timestamp(name):
    return sa.Column(name, sa.DateTime, nullable=False, server_default=sa.text('NOW()'))


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ENUMS:
        enum_type.create(bind, checkfirst=True)

    # Reference data
    op.create_table(
        'users',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        _timestamp('created_on'),
    )

    op.create_table(
        'consultants',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('company_email', sa.String(255)),
        sa.Column('job_title', sa.String(100)),
        sa.Column('pay_type', sa.String(50)),
        sa.Column('pay_rate', sa.Float),
        sa.Column('hourly_rate', sa.Float),
        sa.Column('status', sa.Boolean, nullable=False, server_default=sa.true()),
        _timestamp('created_on'),
        _timestamp('updated_on'),
    )

    op.create_table(
        'clients',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('client_name', sa.String(200), nullable=False),
        sa.Column('active_status', sa.Boolean, nullable=False, server_default=sa.true()),
        _timestamp('created_on'),
        _timestamp('updated_on'),
    )
    op.create_index('ix_clients_client_name', 'clients', ['client_name'])

    op.create_table(
        'contracts',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('client_id', _uuid(), sa.ForeignKey('clients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('contract_name', sa.String(200)),
        sa.Column('contract_type', sa.String(50)),
        sa.Column('contract_length', sa.Integer),
        sa.Column('contract_start_date', sa.Date),
        sa.Column('contract_end_date', sa.Date),
        sa.Column('contract_end_reason', sa.String(255)),
        sa.Column('total_project_fee', sa.Float),
        sa.Column('monthly_fee', sa.Float),
        sa.Column('onboarding_fee', sa.Float),
        sa.Column('assigned_cfo', sa.String(200)),
        sa.Column('assigned_cfo_rate', sa.Float),
        sa.Column('assigned_controller', sa.String(200)),
        sa.Column('assigned_controller_rate', sa.Float),
        sa.Column('assigned_senior_accountant', sa.String(200)),
        sa.Column('assigned_senior_accountant_rate', sa.Float),
        sa.Column('assigned_software', sa.String(200)),
        sa.Column('assigned_software_rate', sa.Float),
        sa.Column('assigned_software_quantity', sa.Integer),
        sa.Column('additional_staff', sa.Text),
        _timestamp('created_on'),
        _timestamp('updated_on'),
    )
    op.create_index('ix_contracts_client_id', 'contracts', ['client_id'])

    # Projects and subtasks
    op.create_table(
        'projects',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('client_id', _uuid(), sa.ForeignKey('clients.id', ondelete='SET NULL')),
        sa.Column('project_name', sa.String(200), nullable=False),
        sa.Column('status', project_status, nullable=False, server_default='Active'),
        sa.Column('start_date', sa.Date),
        _timestamp('created_on'),
        _timestamp('updated_on'),
    )
    op.create_index('ix_projects_client_id', 'projects', ['client_id'])

    op.create_table(
        'project_tasks',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('project_id', _uuid(), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('task_name', sa.String(200), nullable=False),
        _timestamp('created_on'),
    )
    op.create_index('ix_project_tasks_project_id', 'project_tasks', ['project_id'])

    op.create_table(
        'subtasks',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('task_id', _uuid(), sa.ForeignKey('project_tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('subtask_name', sa.String(200), nullable=False),
        sa.Column('planned_hours', sa.Float),
        sa.Column('due_date', sa.Date),
        sa.Column('status', subtask_status, nullable=False, server_default='NotStarted'),
        _timestamp('created_on'),
        _timestamp('updated_on'),
    )
    op.create_index('ix_subtasks_task_id', 'subtasks', ['task_id'])

    # Catch-all project for lines saved without one
    op.execute(
        sa.text(
            "INSERT INTO projects (id, project_name, status) VALUES (:id, 'Time Entry', 'Active')"
        ).bindparams(id=GENERIC_PROJECT_ID)
    )

    # Timecards
    op.create_table(
        'timecard_headers',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('consultant_id', _uuid(), sa.ForeignKey('consultants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('timesheet_date', sa.Date, nullable=False),
        sa.Column('total_hours', sa.Float, nullable=False, server_default='0'),
        sa.Column('status', timecard_status, nullable=False, server_default='Open'),
        sa.Column('notes', sa.Text, nullable=False, server_default=''),
        _timestamp('created_on'),
        _timestamp('updated_on'),
    )
    op.create_index('ix_timecard_headers_consultant_id', 'timecard_headers', ['consultant_id'])
    op.create_index('ix_timecard_headers_timesheet_date', 'timecard_headers', ['timesheet_date'])
    op.create_index('ix_timecard_headers_status', 'timecard_headers', ['status'])

    op.create_table(
        'timecard_lines',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('timecard_id', _uuid(), sa.ForeignKey('timecard_headers.id', ondelete='CASCADE')),
        sa.Column('consultant_id', _uuid(), sa.ForeignKey('consultants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('timesheet_date', sa.Date, nullable=False),
        sa.Column('client_id', _uuid(), sa.ForeignKey('clients.id', ondelete='SET NULL')),
        sa.Column('project_id', _uuid(), nullable=False),
        sa.Column('project_name', sa.String(200)),
        sa.Column('project_task', sa.String(200)),
        sa.Column('client_facing_hours', sa.Float, nullable=False, server_default='0'),
        sa.Column('non_client_facing_hours', sa.Float, nullable=False, server_default='0'),
        sa.Column('other_task_hours', sa.Float, nullable=False, server_default='0'),
        sa.Column('total_hours', sa.Float, nullable=False, server_default='0'),
        sa.Column('status', timecard_status, nullable=False, server_default='Open'),
        sa.Column('notes', sa.Text),
        sa.Column('benchmark_status', sa.String(50)),
        sa.Column('approved_by', sa.String(200)),
        sa.Column('rejected_notes', sa.Text),
        sa.Column('is_locked', sa.Boolean, nullable=False, server_default=sa.false()),
        _timestamp('created_on'),
        _timestamp('updated_on'),
        sa.CheckConstraint('client_facing_hours BETWEEN 0 AND 99.9', name='ck_timecard_lines_client_facing'),
        sa.CheckConstraint('non_client_facing_hours BETWEEN 0 AND 99.9', name='ck_timecard_lines_non_client_facing'),
        sa.CheckConstraint('other_task_hours BETWEEN 0 AND 99.9', name='ck_timecard_lines_other'),
    )
    op.create_index('ix_timecard_lines_timecard_id', 'timecard_lines', ['timecard_id'])
    op.create_index('ix_timecard_lines_consultant_id', 'timecard_lines', ['consultant_id'])
    op.create_index('ix_timecard_lines_timesheet_date', 'timecard_lines', ['timesheet_date'])
    op.create_index('ix_timecard_lines_client_id', 'timecard_lines', ['client_id'])
    op.create_index('ix_timecard_lines_status', 'timecard_lines', ['status'])

    # Benchmarks
    op.create_table(
        'benchmarks',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('client_id', _uuid(), sa.ForeignKey('clients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('consultant_id', _uuid(), sa.ForeignKey('consultants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(100)),
        sa.Column('low_range_hours', sa.Float),
        sa.Column('target_hours', sa.Float),
        sa.Column('high_range_hours', sa.Float),
        sa.Column('weekly_hours', sa.Float),
        sa.Column('bill_rate', sa.Float),
        sa.Column('calculated_benchmark', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('effective_date', sa.Date),
        sa.Column('distribution_type', distribution_type, nullable=False, server_default='linear'),
        _timestamp('created_on'),
        _timestamp('updated_on'),
    )
    op.create_index('ix_benchmarks_client_id', 'benchmarks', ['client_id'])
    op.create_index('ix_benchmarks_consultant_id', 'benchmarks', ['consultant_id'])

    # No foreign key: history outlives deleted benchmarks
    op.create_table(
        'benchmark_history',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('benchmark_id', _uuid(), nullable=False),
        sa.Column('client_id', _uuid(), nullable=False),
        sa.Column('consultant_id', _uuid(), nullable=False),
        sa.Column('role', sa.String(100)),
        sa.Column('low_range_hours', sa.Float),
        sa.Column('target_hours', sa.Float),
        sa.Column('high_range_hours', sa.Float),
        sa.Column('weekly_hours', sa.Float),
        sa.Column('bill_rate', sa.Float),
        sa.Column('calculated_benchmark', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('effective_date', sa.Date),
        sa.Column('distribution_type', distribution_type, nullable=False, server_default='linear'),
        sa.Column('end_date', sa.DateTime, nullable=False),
        _timestamp('created_on'),
    )
    op.create_index('ix_benchmark_history_benchmark_id', 'benchmark_history', ['benchmark_id'])
    op.create_index('ix_benchmark_history_end_date', 'benchmark_history', ['end_date'])

    # Helpdesk
    op.create_table(
        'it_tickets',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=False),
        sa.Column('category', ticket_category, nullable=False, server_default='other'),
        sa.Column('priority', ticket_priority, nullable=False, server_default='P2'),
        sa.Column('status', ticket_status, nullable=False, server_default='open'),
        sa.Column('affected_page', sa.String(255)),
        sa.Column('affected_feature', sa.String(255)),
        sa.Column('steps_to_reproduce', sa.Text),
        sa.Column('expected_behavior', sa.Text),
        sa.Column('actual_behavior', sa.Text),
        sa.Column('environment', sa.String(100)),
        sa.Column('browser_info', sa.String(500)),
        sa.Column('app_version', sa.String(50)),
        sa.Column('due_date', sa.Date),
        _timestamp('created_at'),
        sa.Column('created_by_user_id', _uuid(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        _timestamp('updated_at'),
        sa.Column('updated_by_user_id', _uuid(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('assigned_to_user_id', _uuid(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('resolution_summary', sa.Text),
        sa.Column('estimate_minutes', sa.Integer),
        sa.Column('closed_at', sa.DateTime),
        sa.Column('closed_by_user_id', _uuid(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('total_time_spent_minutes', sa.Integer, nullable=False, server_default='0'),
        sa.CheckConstraint('estimate_minutes IS NULL OR estimate_minutes >= 0', name='ck_it_tickets_estimate'),
    )
    op.create_index('ix_it_tickets_status', 'it_tickets', ['status'])
    op.create_index('ix_it_tickets_priority', 'it_tickets', ['priority'])
    op.create_index('ix_it_tickets_category', 'it_tickets', ['category'])
    op.create_index('ix_it_tickets_created_by_user_id', 'it_tickets', ['created_by_user_id'])
    op.create_index('ix_it_tickets_assigned_to_user_id', 'it_tickets', ['assigned_to_user_id'])

    op.create_table(
        'it_ticket_comments',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('ticket_id', _uuid(), sa.ForeignKey('it_tickets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('body', sa.Text, nullable=False),
        sa.Column('is_internal', sa.Boolean, nullable=False, server_default=sa.false()),
        _timestamp('created_at'),
        sa.Column('created_by_user_id', _uuid(), sa.ForeignKey('users.id', ondelete='SET NULL')),
    )
    op.create_index('ix_it_ticket_comments_ticket_id', 'it_ticket_comments', ['ticket_id'])

    op.create_table(
        'it_ticket_work_logs',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('ticket_id', _uuid(), sa.ForeignKey('it_tickets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('minutes', sa.Integer, nullable=False),
        sa.Column('note', sa.Text),
        _timestamp('created_at'),
        sa.Column('created_by_user_id', _uuid(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.CheckConstraint('minutes > 0', name='ck_it_ticket_work_logs_minutes'),
    )
    op.create_index('ix_it_ticket_work_logs_ticket_id', 'it_ticket_work_logs', ['ticket_id'])

    op.create_table(
        'it_ticket_attachments',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('ticket_id', _uuid(), sa.ForeignKey('it_tickets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('file_name', sa.String(255), nullable=False),
        sa.Column('file_path', sa.String(500), nullable=False),
        sa.Column('file_size', sa.Integer),
        sa.Column('mime_type', sa.String(100)),
        _timestamp('uploaded_at'),
        sa.Column('uploaded_by_user_id', _uuid(), sa.ForeignKey('users.id', ondelete='SET NULL')),
    )
    op.create_index('ix_it_ticket_attachments_ticket_id', 'it_ticket_attachments', ['ticket_id'])

    # Collaboration
    op.create_table(
        'collaboration_spaces',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('is_private', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_by_user_id', _uuid(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        _timestamp('created_on'),
        _timestamp('updated_on'),
    )

    op.create_table(
        'collaboration_space_members',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('space_id', _uuid(), sa.ForeignKey('collaboration_spaces.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', _uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', space_member_role, nullable=False, server_default='MEMBER'),
        _timestamp('added_on'),
        sa.UniqueConstraint('space_id', 'user_id', name='uq_space_member'),
    )
    op.create_index('ix_collaboration_space_members_space_id', 'collaboration_space_members', ['space_id'])
    op.create_index('ix_collaboration_space_members_user_id', 'collaboration_space_members', ['user_id'])

    op.create_table(
        'collaboration_tasks',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('space_id', _uuid(), sa.ForeignKey('collaboration_spaces.id', ondelete='SET NULL')),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('category', sa.String(100)),
        sa.Column('priority', collaboration_task_priority, nullable=False, server_default='MEDIUM'),
        sa.Column('status', collaboration_task_status, nullable=False, server_default='OPEN'),
        sa.Column('due_date', sa.Date),
        sa.Column('client_id', _uuid(), sa.ForeignKey('clients.id', ondelete='SET NULL')),
        sa.Column('contract_id', _uuid(), sa.ForeignKey('contracts.id', ondelete='SET NULL')),
        sa.Column('project_id', _uuid(), sa.ForeignKey('projects.id', ondelete='SET NULL')),
        sa.Column('assigned_to_user_id', _uuid(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('created_by_user_id', _uuid(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        _timestamp('created_on'),
        _timestamp('updated_on'),
        sa.Column('completed_on', sa.DateTime),
    )
    op.create_index('ix_collaboration_tasks_space_id', 'collaboration_tasks', ['space_id'])
    op.create_index('ix_collaboration_tasks_status', 'collaboration_tasks', ['status'])
    op.create_index('ix_collaboration_tasks_priority', 'collaboration_tasks', ['priority'])
    op.create_index('ix_collaboration_tasks_assigned_to_user_id', 'collaboration_tasks', ['assigned_to_user_id'])

    op.create_table(
        'collaboration_task_comments',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('task_id', _uuid(), sa.ForeignKey('collaboration_tasks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', _uuid(), sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('body', sa.Text, nullable=False),
        _timestamp('created_on'),
    )
    op.create_index('ix_collaboration_task_comments_task_id', 'collaboration_task_comments', ['task_id'])


def downgrade() -> None:
    op.drop_table('collaboration_task_comments')
    op.drop_table('collaboration_tasks')
    op.drop_table('collaboration_space_members')
    op.drop_table('collaboration_spaces')
    op.drop_table('it_ticket_attachments')
    op.drop_table('it_ticket_work_logs')
    op.drop_table('it_ticket_comments')
    op.drop_table('it_tickets')
    op.drop_table('benchmark_history')
    op.drop_table('benchmarks')
    op.drop_table('timecard_lines')
    op.drop_table('timecard_headers')
    op.drop_table('subtasks')
    op.drop_table('project_tasks')
    op.drop_table('projects')
    op.drop_table('contracts')
    op.drop_table('clients')
    op.drop_table('consultants')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in reversed(ENUMS):
        enum_type.drop(bind, checkfirst=True)
