"""promotion approval workflow

Revision ID: b2d4f6a8c0e2
Revises: a1c3e5f7b9d1
Create Date: 2025-02-03 16:20:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b2d4f6a8c0e2'
down_revision = 'a1c3e5f7b9d1'
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table('promotions') as batch_op:
        batch_op.add_column(sa.Column('approval_status', sa.String(length=20), nullable=False, server_default='pending'))
        batch_op.add_column(sa.Column('approved_by', sa.String(length=36), nullable=True))
        batch_op.add_column(sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True))
        batch_op.add_column(sa.Column('approval_notes', sa.Text(), nullable=True))
        batch_op.add_column(sa.Column('publish_to_site', sa.Boolean(), nullable=False, server_default=sa.false()))
        batch_op.add_column(sa.Column('publish_to_slack', sa.Boolean(), nullable=False, server_default=sa.false()))
        batch_op.add_column(sa.Column('slack_channel', sa.String(length=120), nullable=True))

    # Promotions that were live before the workflow existed count as approved
    op.execute("UPDATE promotions SET approval_status = 'approved', publish_to_site = true WHERE status = 'active'")


def downgrade():
    with op.batch_alter_table('promotions') as batch_op:
        batch_op.drop_column('slack_channel')
        batch_op.drop_column('publish_to_slack')
        batch_op.drop_column('publish_to_site')
        batch_op.drop_column('approval_notes')
        batch_op.drop_column('approved_at')
        batch_op.drop_column('approved_by')
        batch_op.drop_column('approval_status')
