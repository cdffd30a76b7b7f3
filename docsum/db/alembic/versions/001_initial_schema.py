"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates:
- document (status record, outline, continuation state)
- section (append-only per-section summaries)
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all tables."""
    op.create_table(
        "document",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("original_name", sa.Text(), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="processing"),
        sa.Column("current_step", sa.Text(), nullable=True, server_default="uploaded"),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status_message", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("outline", sa.JSON(), nullable=True),
        sa.Column("outline_generated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("outline_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("continuation_state", sa.JSON(), nullable=True),
        sa.Column("pdf_title", sa.Text(), nullable=True),
        sa.Column("pdf_author", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_document_status", "document", ["status"])

    op.create_table(
        "section",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "document_id",
            sa.Integer(),
            sa.ForeignKey("document.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("summary_format", sa.Text(), nullable=False, server_default="raw_text"),
        sa.Column("start_page", sa.Integer(), nullable=False),
        sa.Column("end_page", sa.Integer(), nullable=False),
        sa.Column("section_number", sa.Integer(), nullable=False),
        sa.Column("export_ref", sa.Text(), nullable=True),
        sa.UniqueConstraint("document_id", "section_number", name="uq_section_document_number"),
    )
    op.create_index("idx_section_document", "section", ["document_id", "section_number"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index("idx_section_document", table_name="section")
    op.drop_table("section")
    op.drop_index("idx_document_status", table_name="document")
    op.drop_table("document")
