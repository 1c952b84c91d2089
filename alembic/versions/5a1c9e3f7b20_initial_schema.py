"""initial_schema

Revision ID: 5a1c9e3f7b20
Revises:
Create Date: 2026-10-17 09:12:44.318207

Creates users, students, venues, activities with weekly schedules,
enrollments, waitlist entries, attendance, conflict diagnostics and the
audit log.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5a1c9e3f7b20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Create all tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=True),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('role', sa.String(7), nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'students',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('grade_level', sa.Integer, nullable=True),
        sa.Column('date_of_birth', sa.Date, nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_students_user_id', 'students', ['user_id'])

    op.create_table(
        'venues',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('venue_type', sa.String(50), nullable=True),
        sa.Column('capacity', sa.Integer, nullable=True),
        sa.Column('location', sa.String(200), nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        'activities',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('category', sa.String(50), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('coach_id', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('venue', sa.String(100), nullable=True),
        sa.Column('schedule', sa.String(100), nullable=True),
        sa.Column('capacity', sa.Integer, nullable=False, server_default='30'),
        sa.Column('current_enrollment', sa.Integer, nullable=False, server_default='0'),
        sa.Column('fee', sa.Numeric(10, 2), nullable=False, server_default='0.00'),
        sa.Column('min_grade', sa.Integer, nullable=True),
        sa.Column('max_grade', sa.Integer, nullable=True),
        sa.Column('min_age', sa.Integer, nullable=True),
        sa.Column('max_age', sa.Integer, nullable=True),
        sa.Column('registration_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('registration_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('term_start_date', sa.Date, nullable=True),
        sa.Column('term_end_date', sa.Date, nullable=True),
        sa.Column('status', sa.String(9), nullable=False, server_default='active'),
        *_timestamps(),
        sa.CheckConstraint('capacity >= 0', name='ck_activity_capacity_non_negative'),
        sa.CheckConstraint('current_enrollment >= 0', name='ck_activity_enrollment_non_negative'),
    )
    op.create_index('ix_activities_category', 'activities', ['category'])
    op.create_index('ix_activities_coach_id', 'activities', ['coach_id'])
    op.create_index('ix_activities_status', 'activities', ['status'])

    op.create_table(
        'activity_schedules',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('activity_id', sa.String(36), sa.ForeignKey('activities.id', ondelete='CASCADE'), nullable=False),
        sa.Column('venue_id', sa.String(36), sa.ForeignKey('venues.id'), nullable=True),
        sa.Column('day_of_week', sa.String(9), nullable=False),
        sa.Column('start_time', sa.Time, nullable=False),
        sa.Column('end_time', sa.Time, nullable=False),
        sa.Column('effective_from', sa.Date, nullable=False),
        sa.Column('effective_until', sa.Date, nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint('start_time < end_time', name='ck_schedule_time_order'),
    )
    op.create_index('ix_activity_schedules_activity_id', 'activity_schedules', ['activity_id'])
    op.create_index('ix_activity_schedules_venue_id', 'activity_schedules', ['venue_id'])

    op.create_table(
        'enrollments',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('student_id', sa.String(36), sa.ForeignKey('students.id'), nullable=False),
        sa.Column('activity_id', sa.String(36), sa.ForeignKey('activities.id'), nullable=False),
        sa.Column('enrolled_by', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('status', sa.String(9), nullable=False, server_default='active'),
        sa.Column('grade_level', sa.Integer, nullable=True),
        sa.Column('enrolled_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.Text, nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('performance_remark', sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_enrollments_student_id', 'enrollments', ['student_id'])
    op.create_index('ix_enrollments_activity_id', 'enrollments', ['activity_id'])
    op.create_index('ix_enrollments_status', 'enrollments', ['status'])
    # At most one open enrollment per (student, activity)
    op.create_index(
        'uq_enrollment_open_student_activity',
        'enrollments',
        ['student_id', 'activity_id'],
        unique=True,
        sqlite_where=sa.text("status IN ('active', 'approved')"),
        postgresql_where=sa.text("status IN ('active', 'approved')"),
    )

    op.create_table(
        'waitlist_entries',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('student_id', sa.String(36), sa.ForeignKey('students.id'), nullable=False),
        sa.Column('activity_id', sa.String(36), sa.ForeignKey('activities.id'), nullable=False),
        sa.Column('grade_level', sa.Integer, nullable=True),
        sa.Column('position', sa.Integer, nullable=False),
        sa.Column('priority', sa.Integer, nullable=False, server_default='0'),
        sa.Column('status', sa.String(9), nullable=False, server_default='waiting'),
        sa.Column('added_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('promoted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_waitlist_entries_student_id', 'waitlist_entries', ['student_id'])
    op.create_index('ix_waitlist_entries_activity_id', 'waitlist_entries', ['activity_id'])
    op.create_index(
        'ix_waitlist_activity_order',
        'waitlist_entries',
        ['activity_id', 'status', 'priority', 'position'],
    )
    op.create_index(
        'uq_waitlist_waiting_student_activity',
        'waitlist_entries',
        ['student_id', 'activity_id'],
        unique=True,
        sqlite_where=sa.text("status = 'waiting'"),
        postgresql_where=sa.text("status = 'waiting'"),
    )

    op.create_table(
        'attendances',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('enrollment_id', sa.String(36), sa.ForeignKey('enrollments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('activity_id', sa.String(36), sa.ForeignKey('activities.id'), nullable=False),
        sa.Column('date', sa.Date, nullable=False),
        sa.Column('status', sa.String(7), nullable=False),
        sa.Column('marked_by', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('remarks', sa.Text, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('enrollment_id', 'date', name='unique_enrollment_date_attendance'),
    )
    op.create_index('ix_attendances_enrollment_id', 'attendances', ['enrollment_id'])
    op.create_index('ix_attendances_activity_id', 'attendances', ['activity_id'])
    op.create_index('ix_attendances_date', 'attendances', ['date'])
    op.create_index('ix_attendances_marked_by', 'attendances', ['marked_by'])
    op.create_index('idx_attendance_date_enrollment', 'attendances', ['enrollment_id', 'date'])

    op.create_table(
        'enrollment_conflicts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('student_id', sa.String(36), sa.ForeignKey('students.id'), nullable=False),
        sa.Column('attempted_activity_id', sa.String(36), sa.ForeignKey('activities.id'), nullable=False),
        sa.Column('conflicting_activity_id', sa.String(36), sa.ForeignKey('activities.id'), nullable=True),
        sa.Column('conflicting_schedule_id', sa.String(36), sa.ForeignKey('activity_schedules.id'), nullable=True),
        sa.Column('conflict_type', sa.String(17), nullable=False),
        sa.Column('attempted_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('resolved', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('resolution_notes', sa.Text, nullable=True),
    )
    op.create_index('ix_enrollment_conflicts_student_id', 'enrollment_conflicts', ['student_id'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), nullable=True),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.String(36), nullable=True),
        sa.Column('old_value', sa.JSON, nullable=True),
        sa.Column('new_value', sa.JSON, nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('audit_logs')
    op.drop_table('enrollment_conflicts')
    op.drop_table('attendances')
    op.drop_table('waitlist_entries')
    op.drop_table('enrollments')
    op.drop_table('activity_schedules')
    op.drop_table('activities')
    op.drop_table('venues')
    op.drop_table('students')
    op.drop_table('users')
