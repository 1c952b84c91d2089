"""evaluations_and_badges

Revision ID: 8d3f2b6a1c47
Revises: 5a1c9e3f7b20
Create Date: 2026-10-17 15:40:02.117583

Adds coach evaluations, skill badge definitions and the badges students
have earned.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8d3f2b6a1c47'
down_revision: Union[str, Sequence[str], None] = '5a1c9e3f7b20'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Create evaluation and badge tables."""
    op.create_table(
        'skill_badges',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('category', sa.String(50), nullable=True),
        sa.Column('icon_url', sa.String(500), nullable=True),
        sa.Column('points', sa.Integer, nullable=False, server_default='0'),
        sa.Column('requirements', sa.Text, nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_skill_badges_category', 'skill_badges', ['category'])

    op.create_table(
        'student_badges',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('student_id', sa.String(36), sa.ForeignKey('students.id'), nullable=False),
        sa.Column('badge_id', sa.String(36), sa.ForeignKey('skill_badges.id', ondelete='CASCADE'), nullable=False),
        sa.Column('enrollment_id', sa.String(36), sa.ForeignKey('enrollments.id', ondelete='SET NULL'), nullable=True),
        sa.Column('awarded_by', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('awarded_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('student_id', 'badge_id', name='uq_student_badges_student_badge'),
    )
    op.create_index('ix_student_badges_student_id', 'student_badges', ['student_id'])
    op.create_index('ix_student_badges_badge_id', 'student_badges', ['badge_id'])

    op.create_table(
        'evaluations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('enrollment_id', sa.String(36), sa.ForeignKey('enrollments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('student_id', sa.String(36), sa.ForeignKey('students.id'), nullable=False),
        sa.Column('activity_id', sa.String(36), sa.ForeignKey('activities.id'), nullable=False),
        sa.Column('evaluator_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('evaluation_date', sa.Date, nullable=False),
        sa.Column('term', sa.String(50), nullable=True),
        sa.Column('overall_rating', sa.Numeric(3, 2), nullable=True),
        sa.Column('skill_ratings', sa.JSON, nullable=True),
        sa.Column('strengths', sa.Text, nullable=True),
        sa.Column('areas_for_improvement', sa.Text, nullable=True),
        sa.Column('coach_notes', sa.Text, nullable=True),
        sa.Column('status', sa.String(9), nullable=False),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            'overall_rating IS NULL OR (overall_rating >= 0 AND overall_rating <= 5)',
            name='ck_evaluations_overall_rating',
        ),
    )
    op.create_index('ix_evaluations_enrollment_id', 'evaluations', ['enrollment_id'])
    op.create_index('ix_evaluations_student_id', 'evaluations', ['student_id'])
    op.create_index('ix_evaluations_activity_id', 'evaluations', ['activity_id'])
    op.create_index('ix_evaluations_term', 'evaluations', ['term'])
    op.create_index('ix_evaluations_status', 'evaluations', ['status'])


def downgrade() -> None:
    """Drop evaluation and badge tables."""
    op.drop_table('evaluations')
    op.drop_table('student_badges')
    op.drop_table('skill_badges')
