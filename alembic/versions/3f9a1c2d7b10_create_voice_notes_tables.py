"""create_voice_notes_tables

Revision ID: 3f9a1c2d7b10
Revises:
Create Date: 2026-10-19 09:12:44.481203

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f9a1c2d7b10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

voice_note_status = sa.Enum(
    "PROCESSING", "TRANSCRIBED", "ANALYZED", "ERROR", name="voice_note_status"
)
checklist_item_type = sa.Enum("exam", "medication", "referral", "followup", name="checklist_item_type")
checklist_item_status = sa.Enum("pending", "completed", name="checklist_item_status")


def upgrade() -> None:
    op.create_table(
        "voice_notes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("doctor_id", sa.String(length=255), nullable=False),
        sa.Column("patient_id", sa.String(length=255), nullable=False),
        sa.Column("audio_key", sa.String(length=500), nullable=False),
        sa.Column("content_type", sa.String(length=100), nullable=False),
        sa.Column("language", sa.String(length=10), nullable=False),
        sa.Column("duration_seconds", sa.Integer(), nullable=False),
        sa.Column("transcription", sa.Text(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("status", voice_note_status, nullable=False),
        sa.Column("error_stage", sa.String(length=50), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_voice_notes_doctor_id", "voice_notes", ["doctor_id"])
    op.create_index("ix_voice_notes_patient_id", "voice_notes", ["patient_id"])
    op.create_index("ix_voice_notes_status", "voice_notes", ["status"])

    op.create_table(
        "voice_note_checklist_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("voice_note_id", sa.Uuid(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", checklist_item_type, nullable=False),
        sa.Column("status", checklist_item_status, nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.ForeignKeyConstraint(["voice_note_id"], ["voice_notes.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_voice_note_checklist_items_voice_note_id",
        "voice_note_checklist_items",
        ["voice_note_id"],
    )

    op.create_table(
        "voice_note_tasks",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("voice_note_id", sa.Uuid(), nullable=False),
        sa.Column("job_id", sa.String(length=255), nullable=False),
        sa.Column("stage", sa.String(length=50), nullable=True),
        sa.Column("worker_id", sa.String(length=255), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_details", sa.JSON(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.ForeignKeyConstraint(["voice_note_id"], ["voice_notes.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("voice_note_id"),
    )
    op.create_index("ix_voice_note_tasks_job_id", "voice_note_tasks", ["job_id"], unique=True)
    op.create_index("ix_voice_note_tasks_updated_at", "voice_note_tasks", ["updated_at"])


def downgrade() -> None:
    op.drop_index("ix_voice_note_tasks_updated_at", table_name="voice_note_tasks")
    op.drop_index("ix_voice_note_tasks_job_id", table_name="voice_note_tasks")
    op.drop_table("voice_note_tasks")
    op.drop_index(
        "ix_voice_note_checklist_items_voice_note_id", table_name="voice_note_checklist_items"
    )
    op.drop_table("voice_note_checklist_items")
    op.drop_index("ix_voice_notes_status", table_name="voice_notes")
    op.drop_index("ix_voice_notes_patient_id", table_name="voice_notes")
    op.drop_index("ix_voice_notes_doctor_id", table_name="voice_notes")
    op.drop_table("voice_notes")
    checklist_item_status.drop(op.get_bind(), checkfirst=True)
    checklist_item_type.drop(op.get_bind(), checkfirst=True)
    voice_note_status.drop(op.get_bind(), checkfirst=True)
