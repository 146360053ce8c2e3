"""activity engine initial tables

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "202610190001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "activities",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("plan_id", sa.Integer(), nullable=True),
        sa.Column("activity_type", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("state", sa.String(length=30), nullable=False, server_default="PENDING"),
        sa.Column("actor", sa.String(length=30), nullable=False),
        sa.Column("responsible_principal", sa.String(), nullable=True),
        sa.Column("responsible_secondary", sa.JSON(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("requires_legal_review", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("origin_kind", sa.String(length=30), nullable=False, server_default="MANUAL"),
        sa.Column("is_draft", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("attachments", sa.JSON(), nullable=False),
        sa.Column("comments", sa.JSON(), nullable=False),
        sa.Column("cancel_reason", sa.String(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.String(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    for column in (
        "plan_id",
        "activity_type",
        "state",
        "actor",
        "responsible_principal",
        "due_date",
        "origin_kind",
        "is_draft",
        "created_by",
        "created_at",
        "updated_at",
    ):
        op.create_index(f"ix_activities_{column}", "activities", [column])
    op.create_index("ix_activities_state_actor", "activities", ["state", "actor"])
    op.create_index("ix_activities_plan_state", "activities", ["plan_id", "state"])

    op.create_table(
        "activity_audit_records",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("activity_id", sa.Integer(), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("action", sa.String(length=30), nullable=False),
        sa.Column("from_state", sa.String(length=30), nullable=True),
        sa.Column("to_state", sa.String(length=30), nullable=True),
        sa.Column("justification", sa.String(), nullable=True),
        sa.Column("detail", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["activity_id"], ["activities.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_activity_audit_records_activity_id", "activity_audit_records", ["activity_id"])
    op.create_index("ix_activity_audit_records_actor_id", "activity_audit_records", ["actor_id"])
    op.create_index("ix_activity_audit_records_action", "activity_audit_records", ["action"])
    op.create_index("ix_activity_audit_records_created_at", "activity_audit_records", ["created_at"])
    op.create_index(
        "ix_activity_audit_records_activity_created",
        "activity_audit_records",
        ["activity_id", "created_at"],
    )

    op.create_table(
        "activity_transfer_records",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("activity_id", sa.Integer(), nullable=False),
        sa.Column("source_team", sa.String(length=30), nullable=False),
        sa.Column("destination_team", sa.String(length=30), nullable=False),
        sa.Column("previous_responsible", sa.String(), nullable=True),
        sa.Column("new_responsible", sa.String(), nullable=True),
        sa.Column("justification", sa.String(), nullable=False),
        sa.Column("state_at_transfer", sa.String(length=30), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["activity_id"], ["activities.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_activity_transfer_records_activity_id", "activity_transfer_records", ["activity_id"])
    op.create_index("ix_activity_transfer_records_actor_id", "activity_transfer_records", ["actor_id"])
    op.create_index("ix_activity_transfer_records_created_at", "activity_transfer_records", ["created_at"])

    op.create_table(
        "activity_review_records",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("activity_id", sa.Integer(), nullable=False),
        sa.Column("stage", sa.String(length=30), nullable=False),
        sa.Column("decision", sa.String(length=30), nullable=False),
        sa.Column("reviewer_id", sa.String(), nullable=False),
        sa.Column("observations", sa.String(), nullable=True),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("invalidated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["activity_id"], ["activities.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_activity_review_records_activity_id", "activity_review_records", ["activity_id"])
    op.create_index("ix_activity_review_records_reviewer_id", "activity_review_records", ["reviewer_id"])
    op.create_index("ix_activity_review_records_is_current", "activity_review_records", ["is_current"])
    op.create_index("ix_activity_review_records_created_at", "activity_review_records", ["created_at"])
    op.create_index(
        "ix_activity_review_records_activity_stage",
        "activity_review_records",
        ["activity_id", "stage"],
    )


def downgrade() -> None:
    op.drop_table("activity_review_records")
    op.drop_table("activity_transfer_records")
    op.drop_table("activity_audit_records")
    op.drop_table("activities")
