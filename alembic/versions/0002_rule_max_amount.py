"""monitoring rule max amount

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-18 15:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("monitoring_rules", sa.Column("max_amount", sa.DECIMAL(14, 2), nullable=True))


def downgrade() -> None:
    op.drop_column("monitoring_rules", "max_amount")
