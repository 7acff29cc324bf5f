"""outing_requests

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates the outing workflow tables: outing_requests and the
outing_transitions ledger, plus the partial unique index that allows one
active outing per student.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

outing_status = sa.Enum(
    "requested", "guardian_approved", "faculty_approved", "qr_generated", "exited", "re_entered", "rejected",
    name="outingstatus",
)
approval_status = sa.Enum("pending", "approved", "rejected", name="approvalstatus")


def upgrade() -> None:
    # --- outing_requests ---
    op.create_table(
        "outing_requests",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("student_id", sa.String(36), nullable=False),
        sa.Column("student_name", sa.String(100), nullable=False),
        sa.Column("departure_date", sa.String(20), nullable=False),
        sa.Column("departure_time", sa.String(20), nullable=False),
        sa.Column("arrival_date", sa.String(20), nullable=False),
        sa.Column("arrival_time", sa.String(20), nullable=False),
        sa.Column("full_reason", sa.Text, nullable=False),
        sa.Column("summarized_reason", sa.Text, nullable=False),
        sa.Column("guardians", sa.JSON, nullable=False),
        sa.Column("selected_guardian", sa.JSON, nullable=False),
        sa.Column("guardian_approval_status", approval_status, nullable=False, server_default="pending"),
        sa.Column("faculty_approval_status", approval_status, nullable=False, server_default="pending"),
        sa.Column("status", outing_status, nullable=False, server_default="requested"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("guardian_approval_token", sa.String(64), nullable=True, unique=True),
        sa.Column("guardian_token_digest", sa.String(64), nullable=False, unique=True),
        sa.Column("guardian_approval_link", sa.String(500), nullable=True),
        sa.Column("guardian_approval_expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("qr_data", sa.String(120), nullable=True),
        sa.Column("exit_scan_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("entry_scan_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("guardian_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
    )
    op.create_index("ix_outing_requests_student_id", "outing_requests", ["student_id"])
    op.create_index("ix_outing_requests_status", "outing_requests", ["status"])
    op.create_index(
        "uq_outing_requests_active_student",
        "outing_requests",
        ["student_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
        sqlite_where=sa.text("is_active = 1"),
    )

    # --- outing_transitions ---
    op.create_table(
        "outing_transitions",
        sa.Column("transition_id", sa.String(36), primary_key=True),
        sa.Column("outing_id", sa.String(36), nullable=False),
        sa.Column("event", sa.String(30), nullable=False),
        sa.Column("from_status", sa.String(30), nullable=False),
        sa.Column("to_status", sa.String(30), nullable=True),
        sa.Column("actor_id", sa.String(120), nullable=False),
        sa.Column("actor_role", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_outing_transitions_outing_id", "outing_transitions", ["outing_id"])


def downgrade() -> None:
    op.drop_index("ix_outing_transitions_outing_id", table_name="outing_transitions")
    op.drop_table("outing_transitions")
    op.drop_index("uq_outing_requests_active_student", table_name="outing_requests")
    op.drop_index("ix_outing_requests_status", table_name="outing_requests")
    op.drop_index("ix_outing_requests_student_id", table_name="outing_requests")
    op.drop_table("outing_requests")
    approval_status.drop(op.get_bind(), checkfirst=True)
    outing_status.drop(op.get_bind(), checkfirst=True)
