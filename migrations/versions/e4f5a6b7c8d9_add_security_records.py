"""add security records

Revision ID: e4f5a6b7c8d9
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'e4f5a6b7c8d9'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'security_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(length=255), nullable=False),
        sa.Column('value_json', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('security_records', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_security_records_key'), ['key'], unique=True)


def downgrade():
    with op.batch_alter_table('security_records', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_security_records_key'))

    op.drop_table('security_records')
