"""Margin rule conditions: star rating band and check-in window

Revision ID: hotelhub_002
Revises: hotelhub_001
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

revision = "hotelhub_002"
down_revision = "hotelhub_001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("margin_rules", sa.Column("min_stars", sa.Integer))
    op.add_column("margin_rules", sa.Column("max_stars", sa.Integer))
    op.add_column("margin_rules", sa.Column("checkin_from", sa.Date))
    op.add_column("margin_rules", sa.Column("checkin_to", sa.Date))


def downgrade() -> None:
    op.drop_column("margin_rules", "checkin_to")
    op.drop_column("margin_rules", "checkin_from")
    op.drop_column("margin_rules", "max_stars")
    op.drop_column("margin_rules", "min_stars")
