"""add receipt_path to transactions

Revision ID: 202402110800
Revises: 202401050900
Create Date: 2024-02-11 08:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202402110800"
down_revision = "202401050900"
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table("transactions") as batch:
        batch.add_column(sa.Column("receipt_path", sa.String(length=255)))


def downgrade():
    with op.batch_alter_table("transactions") as batch:
        batch.drop_column("receipt_path")
