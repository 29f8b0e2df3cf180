"""add_group_invites

Revision ID: b72e4d19c5a3
Revises: 3f1c9a2b7d40
Create Date: 2026-10-19 09:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'b72e4d19c5a3'
down_revision: Union[str, Sequence[str], None] = '3f1c9a2b7d40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('group_invites',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('group_id', sa.String(64), nullable=False),
        sa.Column('created_by_id', sa.String(64), nullable=True),
        sa.Column('code', sa.String(64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('max_uses', sa.Integer(), nullable=True),
        sa.Column('uses_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['group_id'], ['groups.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id'], ondelete='SET NULL')
    )
    op.create_index('ix_group_invites_id', 'group_invites', ['id'])
    op.create_index('ix_group_invites_group_id', 'group_invites', ['group_id'])
    op.create_index('ix_group_invites_code', 'group_invites', ['code'], unique=True)

    with op.batch_alter_table('group_test_assignments') as batch_op:
        batch_op.add_column(sa.Column('assigned_by_id', sa.String(64), nullable=True))
        batch_op.create_foreign_key(
            'fk_group_test_assignments_assigned_by_id', 'users',
            ['assigned_by_id'], ['id'], ondelete='SET NULL'
        )


def downgrade() -> None:
    """Downgrade schema."""
    with op.batch_alter_table('group_test_assignments') as batch_op:
        batch_op.drop_constraint('fk_group_test_assignments_assigned_by_id', type_='foreignkey')
        batch_op.drop_column('assigned_by_id')

    op.drop_index('ix_group_invites_code', table_name='group_invites')
    op.drop_index('ix_group_invites_group_id', table_name='group_invites')
    op.drop_index('ix_group_invites_id', table_name='group_invites')
    op.drop_table('group_invites')
