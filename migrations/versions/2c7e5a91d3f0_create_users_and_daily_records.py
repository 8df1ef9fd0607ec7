"""create users and daily records

Revision ID: 2c7e5a91d3f0
Revises:
Create Date: 2026-10-19 09:12:40.118402

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '2c7e5a91d3f0'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('users',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('full_name', sa.String(length=255), nullable=True),
    sa.Column('email', sa.String(length=255), nullable=True),
    sa.Column('password_hash', sa.String(length=255), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('email')
    )
    op.create_table('daily_records',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('user_id', sa.Integer(), nullable=False),
    sa.Column('date', sa.Date(), nullable=False),
    sa.Column('weight', sa.Float(), nullable=False),
    sa.Column('diet_score', sa.Integer(), nullable=True),
    sa.Column('water_score', sa.Integer(), nullable=True),
    sa.Column('exercise_score', sa.Integer(), nullable=True),
    sa.Column('mood_score', sa.Integer(), nullable=True),
    sa.Column('sleep_condition', sa.Integer(), nullable=True),
    sa.Column('has_bowel_movement', sa.Boolean(), nullable=True),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('user_id', 'date', name='uq_daily_record_user_date')
    )
    with op.batch_alter_table('daily_records', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_daily_records_date'), ['date'], unique=False)
        batch_op.create_index(batch_op.f('ix_daily_records_user_id'), ['user_id'], unique=False)


def downgrade():
    with op.batch_alter_table('daily_records', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_daily_records_user_id'))
        batch_op.drop_index(batch_op.f('ix_daily_records_date'))

    op.drop_table('daily_records')
    op.drop_table('users')
