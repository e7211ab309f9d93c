"""create health tracker tables

Revision ID: 20251019_01
Revises: None
Create Date: 2025-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20251019_01"
down_revision = None
branch_labels = None
depends_on = None

TS = sa.TIMESTAMP(timezone=True)


def _id() -> sa.Column:
    return sa.Column("id", sa.String(length=36), primary_key=True)


def _created_at() -> sa.Column:
    return sa.Column("created_at", TS, server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "health_data",
        _id(),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("heart_rate", sa.Float()),
        sa.Column("systolic_bp", sa.Float()),
        sa.Column("diastolic_bp", sa.Float()),
        sa.Column("blood_sugar", sa.Float()),
        sa.Column("blood_sugar_type", sa.String(length=16)),
        sa.Column("weight", sa.Float()),
        sa.Column("temperature", sa.Float()),
        sa.Column("sleep_hours", sa.Float()),
        sa.Column("exercise_minutes", sa.Float()),
        sa.Column("steps", sa.Float()),
        sa.Column("mood", sa.String()),
        sa.Column("symptoms", sa.Text()),
        sa.Column("medications", sa.Text()),
        sa.Column("notes", sa.Text()),
        _created_at(),
    )
    op.create_index("ix_health_data_user_id", "health_data", ["user_id"])
    op.create_index("ix_health_data_user_created", "health_data", ["user_id", "created_at"])

    op.create_table(
        "symptoms",
        _id(),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("symptoms", sa.JSON(), nullable=False),
        sa.Column("additional_notes", sa.Text()),
        _created_at(),
    )
    op.create_index("ix_symptoms_user_id", "symptoms", ["user_id"])

    op.create_table(
        "health_insights",
        _id(),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("metadata", sa.JSON()),
        sa.Column("source", sa.String(length=32), nullable=False, server_default="server"),
        _created_at(),
    )
    op.create_index("ix_health_insights_user_id", "health_insights", ["user_id"])

    op.create_table(
        "reminders",
        _id(),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("remind_at", TS, nullable=False),
        sa.Column("repeat", sa.String(length=16), server_default="none"),
        sa.Column("sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sent_at", TS),
        sa.Column("recipient_email", sa.String()),
        sa.Column("caregiver_id", sa.String(length=36)),
        _created_at(),
    )
    op.create_index("ix_reminders_user_id", "reminders", ["user_id"])
    op.create_index("ix_reminders_sent_remind_at", "reminders", ["sent", "remind_at"])

    op.create_table(
        "caregivers",
        _id(),
        sa.Column("patient_id", sa.String(), nullable=False),
        sa.Column("name", sa.String()),
        sa.Column("email", sa.String()),
        sa.Column("phone", sa.String()),
        sa.Column("caregiver_user_id", sa.String()),
        _created_at(),
    )
    op.create_index("ix_caregivers_patient_id", "caregivers", ["patient_id"])

    op.create_table(
        "health_goals",
        _id(),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("metric", sa.String(length=32), nullable=False),
        sa.Column("goal_value", sa.Float(), nullable=False),
        sa.Column("period", sa.String(length=16), server_default="daily"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
    )
    op.create_index("ix_health_goals_user_id", "health_goals", ["user_id"])

    op.create_table(
        "notifications",
        _id(),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("caregiver_user_id", sa.String()),
        sa.Column("channel", sa.String(length=16), nullable=False, server_default="email"),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("meta", sa.JSON()),
        _created_at(),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    for table in (
        "notifications",
        "health_goals",
        "caregivers",
        "reminders",
        "health_insights",
        "symptoms",
        "health_data",
    ):
        op.drop_table(table)
