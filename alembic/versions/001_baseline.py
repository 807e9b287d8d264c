"""baseline — users, reports, threads, analysis jobs, ratings, uploads, notifications

Revision ID: 001_baseline
Revises: None
Create Date: 2026-10-18

For databases created by startup create_all: run `alembic stamp 001_baseline`.
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_baseline"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(255)),
        sa.Column("role", sa.String(20)),
        sa.Column("avatar_url", sa.String(1024)),
        sa.Column("is_active", sa.Boolean()),
        sa.Column("created_at", sa.DateTime()),
    )

    op.create_table(
        "bug_reports",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("report_type", sa.String(20), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("severity", sa.String(20), nullable=False),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("page_url", sa.String(2048)),
        sa.Column("user_agent", sa.String(512)),
        sa.Column("screenshot_url", sa.String(2048)),
        sa.Column("video_url", sa.String(2048)),
        sa.Column("reporter_name", sa.String(255)),
        sa.Column("reporter_email", sa.String(255)),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("admin_notes", sa.Text()),
        sa.Column("assigned_to_id", sa.Integer(), sa.ForeignKey("users.id")),
        sa.Column("resolved_at", sa.DateTime()),
        sa.Column("resolved_by_id", sa.Integer(), sa.ForeignKey("users.id")),
        sa.Column("archived_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
    )
    op.create_index("ix_bug_reports_user_created", "bug_reports", ["user_id", "created_at"])
    op.create_index("ix_bug_reports_status_created", "bug_reports", ["status", "created_at"])

    op.create_table(
        "report_messages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("report_id", sa.Integer(), sa.ForeignKey("bug_reports.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id")),
        sa.Column("author_name", sa.String(255), nullable=False),
        sa.Column("is_admin", sa.Boolean(), nullable=False),
        sa.Column("is_system", sa.Boolean(), nullable=False),
        sa.Column("system_type", sa.String(20)),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime()),
    )
    op.create_index("ix_report_messages_report", "report_messages", ["report_id", "id"])

    op.create_table(
        "analysis_jobs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("report_id", sa.Integer(), sa.ForeignKey("bug_reports.id"), nullable=False),
        sa.Column("requested_by_id", sa.Integer(), sa.ForeignKey("users.id")),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("include_screenshot", sa.Boolean(), nullable=False),
        sa.Column("include_video", sa.Boolean(), nullable=False),
        sa.Column("summary", sa.Text()),
        sa.Column("suggested_cause", sa.Text()),
        sa.Column("confidence", sa.String(20)),
        sa.Column("model_used", sa.String(100)),
        sa.Column("processing_time_ms", sa.Integer()),
        sa.Column("screenshot_analysis", sa.JSON()),
        sa.Column("video_analysis", sa.JSON()),
        sa.Column("suggested_solutions", sa.JSON()),
        sa.Column("related_docs", sa.JSON()),
        sa.Column("error", sa.Text()),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("started_at", sa.DateTime()),
        sa.Column("completed_at", sa.DateTime()),
    )
    op.create_index("ix_analysis_jobs_report_created", "analysis_jobs", ["report_id", "created_at"])

    op.create_table(
        "satisfaction_ratings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("report_id", sa.Integer(), sa.ForeignKey("bug_reports.id"), nullable=False, unique=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("rating", sa.String(20), nullable=False),
        sa.Column("feedback", sa.Text()),
        sa.Column("submitted_at", sa.DateTime()),
    )

    op.create_table(
        "media_uploads",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(512), nullable=False, unique=True),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("content_type", sa.String(100), nullable=False),
        sa.Column("size_bytes", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("public_url", sa.String(2048)),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("uploaded_at", sa.DateTime()),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(1024)),
        sa.Column("priority", sa.String(20)),
        sa.Column("data", sa.JSON()),
        sa.Column("is_read", sa.Boolean()),
        sa.Column("created_at", sa.DateTime()),
    )
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"])


def downgrade() -> None:
    """Drop everything. Dev/test only."""
    op.drop_index("ix_notifications_user_created", table_name="notifications")
    op.drop_table("notifications")
    op.drop_table("media_uploads")
    op.drop_table("satisfaction_ratings")
    op.drop_index("ix_analysis_jobs_report_created", table_name="analysis_jobs")
    op.drop_table("analysis_jobs")
    op.drop_index("ix_report_messages_report", table_name="report_messages")
    op.drop_table("report_messages")
    op.drop_index("ix_bug_reports_status_created", table_name="bug_reports")
    op.drop_index("ix_bug_reports_user_created", table_name="bug_reports")
    op.drop_table("bug_reports")
    op.drop_table("users")
