"""Initial schema — releases, assessment requests, attachments, results.

Revision ID: 001
Revises: None
Create Date: 2026-01-01
"""
import uuid
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SEED_RELEASES = ["EB20", "EB21", "EB22", "EB23", "EB24", "EB25.1"]


def upgrade() -> None:
    # Releases
    releases = op.create_table(
        "releases",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("version", sa.String(50), unique=True, nullable=False),
        sa.Column("ordinal", sa.Integer, unique=True, nullable=False),
        sa.Column("release_date", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("is_active", sa.Boolean, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Assessment requests
    op.create_table(
        "assessment_requests",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("report_type", sa.String(20), nullable=False),
        sa.Column("current_release_id", sa.String(36), sa.ForeignKey("releases.id"), nullable=False),
        sa.Column("target_release_id", sa.String(36), sa.ForeignKey("releases.id"), nullable=False),
        sa.Column("environment", sa.String(20), nullable=False, server_default="Not Applicable"),
        sa.Column("title", sa.String(100), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="Queued"),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("email_notification", sa.Boolean, server_default=sa.true()),
        sa.Column("inapp_notification", sa.Boolean, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "report_type IN ('API', 'Database', 'API + Database')",
            name="ck_assessment_requests_report_type",
        ),
        sa.CheckConstraint(
            "environment IN ('Development', 'Test', 'Staging', 'Production', 'Not Applicable')",
            name="ck_assessment_requests_environment",
        ),
        sa.CheckConstraint(
            "status IN ('Queued', 'Running', 'Completed', 'Failed')",
            name="ck_assessment_requests_status",
        ),
    )
    op.create_index("ix_assessment_requests_user_id", "assessment_requests", ["user_id"])
    op.create_index("ix_assessment_requests_status", "assessment_requests", ["status"])
    op.create_index("ix_assessment_requests_created_at", "assessment_requests", [sa.text("created_at DESC")])

    # Attachments
    op.create_table(
        "attachments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "request_id",
            sa.String(36),
            sa.ForeignKey("assessment_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("file_path", sa.Text, nullable=False),
        sa.Column("file_size", sa.Integer, nullable=False),
        sa.Column("file_type", sa.String(100), nullable=False),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_attachments_request_id", "attachments", ["request_id"])

    # Assessment results
    op.create_table(
        "assessment_results",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "request_id",
            sa.String(36),
            sa.ForeignKey("assessment_requests.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("summary", postgresql.JSONB, nullable=False),
        sa.Column("api_changes", postgresql.JSONB, nullable=True),
        sa.Column("database_changes", postgresql.JSONB, nullable=True),
        sa.Column("raw_data", postgresql.JSONB, nullable=False),
        sa.Column("generated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_assessment_results_request_id", "assessment_results", ["request_id"])

    op.bulk_insert(
        releases,
        [
            {"id": str(uuid.uuid4()), "version": version, "ordinal": ordinal, "is_active": True}
            for ordinal, version in enumerate(SEED_RELEASES, start=1)
        ],
    )


def downgrade() -> None:
    op.drop_table("assessment_results")
    op.drop_table("attachments")
    op.drop_table("assessment_requests")
    op.drop_table("releases")
