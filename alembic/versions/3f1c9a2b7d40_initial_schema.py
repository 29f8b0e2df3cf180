"""initial_schema

Revision ID: 3f1c9a2b7d40
Revises:
Create Date: 2026-10-12 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a2b7d40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('users',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('username', sa.String(50), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='student'),
        sa.Column('display_name', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table('sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('token_jti', sa.String(64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_seen_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE')
    )
    op.create_index('ix_sessions_id', 'sessions', ['id'])
    op.create_index('ix_sessions_token_jti', 'sessions', ['token_jti'], unique=True)

    op.create_table('tests',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('creator_id', sa.String(64), nullable=True),
        sa.Column('title', sa.String(120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('instructions', sa.Text(), nullable=True),
        sa.Column('duration_sec', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('visibility', sa.String(20), nullable=False, server_default='private'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['creator_id'], ['users.id'], ondelete='SET NULL')
    )
    op.create_index('ix_tests_creator_id', 'tests', ['creator_id'])

    op.create_table('test_sections',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('test_id', sa.String(64), nullable=False),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['test_id'], ['tests.id'], ondelete='CASCADE')
    )
    op.create_index('ix_test_sections_test_id', 'test_sections', ['test_id'])

    op.create_table('questions',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('prompt_text', sa.Text(), nullable=True),
        sa.Column('prompt_image_url', sa.String(500), nullable=True),
        sa.Column('options_json', sa.Text(), nullable=True),
        sa.Column('answer_key_json', sa.Text(), nullable=True),
        sa.Column('marks', sa.Float(), nullable=False),
        sa.Column('negative_marks', sa.Float(), nullable=False),
        sa.Column('subject', sa.String(100), nullable=True),
        sa.Column('chapter', sa.String(100), nullable=True),
        sa.Column('difficulty', sa.String(20), nullable=True),
        sa.Column('solution_text', sa.Text(), nullable=True),
        sa.Column('solution_image_url', sa.String(500), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('test_questions',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('test_id', sa.String(64), nullable=False),
        sa.Column('question_id', sa.String(64), nullable=False),
        sa.Column('section_id', sa.String(64), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.Column('marks_override', sa.Float(), nullable=True),
        sa.Column('negative_marks_override', sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['test_id'], ['tests.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['question_id'], ['questions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['section_id'], ['test_sections.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('test_id', 'sort_order', name='uq_test_question_order'),
        sa.UniqueConstraint('test_id', 'question_id', name='uq_test_question')
    )
    op.create_index('ix_test_questions_test_id', 'test_questions', ['test_id'])
    op.create_index('ix_test_questions_question_id', 'test_questions', ['question_id'])

    op.create_table('groups',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('owner_id', sa.String(64), nullable=True),
        sa.Column('name', sa.String(80), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='SET NULL')
    )
    op.create_index('ix_groups_owner_id', 'groups', ['owner_id'])

    op.create_table('group_members',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('group_id', sa.String(64), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='member'),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['group_id'], ['groups.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('group_id', 'user_id', name='uq_group_member')
    )
    op.create_index('ix_group_members_id', 'group_members', ['id'])
    op.create_index('ix_group_members_group_id', 'group_members', ['group_id'])
    op.create_index('ix_group_members_user_id', 'group_members', ['user_id'])

    op.create_table('group_test_assignments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('group_id', sa.String(64), nullable=False),
        sa.Column('test_id', sa.String(64), nullable=False),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['group_id'], ['groups.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['test_id'], ['tests.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('group_id', 'test_id', name='uq_group_test')
    )
    op.create_index('ix_group_test_assignments_id', 'group_test_assignments', ['id'])
    op.create_index('ix_group_test_assignments_group_id', 'group_test_assignments', ['group_id'])
    op.create_index('ix_group_test_assignments_test_id', 'group_test_assignments', ['test_id'])

    op.create_table('attempts',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('test_id', sa.String(64), nullable=False),
        sa.Column('student_id', sa.String(64), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='in_progress'),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ends_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_seen_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['test_id'], ['tests.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['student_id'], ['users.id'], ondelete='CASCADE')
    )
    op.create_index('ix_attempts_test_id', 'attempts', ['test_id'])
    op.create_index('ix_attempts_student_id', 'attempts', ['student_id'])
    op.create_index(
        'uq_attempt_in_progress', 'attempts', ['test_id', 'student_id'],
        unique=True,
        sqlite_where=sa.text("status = 'in_progress'"),
        postgresql_where=sa.text("status = 'in_progress'"),
    )

    op.create_table('attempt_answers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('attempt_id', sa.String(64), nullable=False),
        sa.Column('question_id', sa.String(64), nullable=False),
        sa.Column('response_json', sa.Text(), nullable=True),
        sa.Column('visited', sa.Boolean(), nullable=False),
        sa.Column('is_marked', sa.Boolean(), nullable=False),
        sa.Column('time_spent_ms', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['attempt_id'], ['attempts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['question_id'], ['questions.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('attempt_id', 'question_id', name='uq_attempt_question')
    )
    op.create_index('ix_attempt_answers_id', 'attempt_answers', ['id'])
    op.create_index('ix_attempt_answers_attempt_id', 'attempt_answers', ['attempt_id'])

    op.create_table('attempt_results',
        sa.Column('attempt_id', sa.String(64), nullable=False),
        sa.Column('score', sa.Float(), nullable=False),
        sa.Column('max_score', sa.Float(), nullable=False),
        sa.Column('correct_count', sa.Integer(), nullable=False),
        sa.Column('wrong_count', sa.Integer(), nullable=False),
        sa.Column('unattempted_count', sa.Integer(), nullable=False),
        sa.Column('accuracy', sa.Float(), nullable=False),
        sa.Column('total_time_ms', sa.Integer(), nullable=False),
        sa.Column('subject_breakup_json', sa.Text(), nullable=True),
        sa.Column('computed_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('attempt_id'),
        sa.ForeignKeyConstraint(['attempt_id'], ['attempts.id'], ondelete='CASCADE')
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('attempt_results')
    op.drop_index('ix_attempt_answers_attempt_id', table_name='attempt_answers')
    op.drop_index('ix_attempt_answers_id', table_name='attempt_answers')
    op.drop_table('attempt_answers')
    op.drop_index('uq_attempt_in_progress', table_name='attempts')
    op.drop_index('ix_attempts_student_id', table_name='attempts')
    op.drop_index('ix_attempts_test_id', table_name='attempts')
    op.drop_table('attempts')
    op.drop_table('group_test_assignments')
    op.drop_table('group_members')
    op.drop_table('groups')
    op.drop_table('test_questions')
    op.drop_table('questions')
    op.drop_table('test_sections')
    op.drop_table('tests')
    op.drop_table('sessions')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_table('users')
