"""V13 shadow fields on tasks

Adds the nullable columns the V13 shadow migration writes. Existing rows keep
their legacy ``progress`` value; data is populated by ``migrate_shadow``, not
by this revision.

Revision ID: 002
Revises: 001
Create Date: 2026-07-01 20:10:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column('tasks', sa.Column('progress_v13', sa.JSON(), nullable=True))
    op.add_column('tasks', sa.Column('type', sa.String(), nullable=True))
    op.add_column('tasks', sa.Column('order', sa.Float(), nullable=True))
    op.add_column('tasks', sa.Column('ancestor_ids', sa.JSON(), nullable=True))
    op.add_column('tasks', sa.Column('parent_id', sa.String(), nullable=True))
    op.add_column('tasks', sa.Column('plan_id', sa.String(), nullable=True))
    op.add_column('tasks', sa.Column('plan_status', sa.String(), nullable=True))
    op.create_index(op.f('ix_tasks_parent_id'), 'tasks', ['parent_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_tasks_parent_id'), table_name='tasks')
    op.drop_column('tasks', 'plan_status')
    op.drop_column('tasks', 'plan_id')
    op.drop_column('tasks', 'parent_id')
    op.drop_column('tasks', 'ancestor_ids')
    op.drop_column('tasks', 'order')
    op.drop_column('tasks', 'type')
    op.drop_column('tasks', 'progress_v13')
