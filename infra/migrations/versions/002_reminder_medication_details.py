"""Medication details on reminders.

Revision ID: 002_reminder_medication
Revises: 001_initial
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "002_reminder_medication"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table("reminders") as batch:
        batch.add_column(sa.Column("medication_name", sa.String(120), nullable=True))
        batch.add_column(sa.Column("dosage", sa.String(60), nullable=True))
        batch.add_column(sa.Column("frequency", sa.String(60), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("reminders") as batch:
        batch.drop_column("frequency")
        batch.drop_column("dosage")
        batch.drop_column("medication_name")
