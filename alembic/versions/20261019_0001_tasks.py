"""tasks table with taxonomy enums

Revision ID: 20261019_0001
Revises: 
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20261019_0001'
down_revision = None
branch_labels = None
depends_on = None

task_type = sa.Enum('Focus', 'Follow up', 'Save for later', name='task_type')
task_category = sa.Enum(
    'My questions', 'Questions for me', 'My asks', 'Asks of me', 'Recommendations', 'Finds',
    'Ideas', 'Rules / promises', 'Task', 'Night out', 'Date night', 'Family day',
    name='task_category_new',
)
task_subcategory = sa.Enum(
    'House', 'Car', 'Boat', 'Travel', 'Books', 'Movies', 'Shows', 'Music', 'Eats', 'Podcasts',
    'Activities', 'Appearance', 'Career / network', 'Rules', 'Family / friends', 'Gifts',
    'Finances', 'Philanthropy', 'Side quests',
    name='task_subcategory',
)

def upgrade():
    op.create_table('tasks',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('entry', sa.Text(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('type', task_type, nullable=False),
        sa.Column('category', task_category, nullable=False),
        sa.Column('subcategory', task_subcategory, nullable=True),
        sa.Column('who', sa.String(), nullable=False, server_default=''),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False)
    )
    for column in ('type', 'category', 'subcategory', 'due_date', 'completed', 'created_at'):
        op.create_index(f'ix_tasks_{column}', 'tasks', [column])

def downgrade():
    for column in ('type', 'category', 'subcategory', 'due_date', 'completed', 'created_at'):
        op.drop_index(f'ix_tasks_{column}', table_name='tasks')
    op.drop_table('tasks')
    bind = op.get_bind()
    for enum_type in (task_subcategory, task_category, task_type):
        enum_type.drop(bind, checkfirst=True)
