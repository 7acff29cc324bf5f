"""OutingRequest ORM model — the aggregate root of the outing workflow."""
import uuid
import enum
from sqlalchemy import Column, String, Text, Boolean, DateTime, Integer, JSON, Index, Enum as SAEnum, text
from dormlink.database import Base


class OutingStatus(str, enum.Enum):
    requested = "requested"
    guardian_approved = "guardian_approved"
    faculty_approved = "faculty_approved"
    qr_generated = "qr_generated"
    exited = "exited"
    re_entered = "re_entered"
    rejected = "rejected"


class ApprovalStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


TERMINAL_STATUSES = frozenset({OutingStatus.rejected, OutingStatus.re_entered})


class OutingRequest(Base):
    __tablename__ = "outing_requests"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id = Column(String(36), nullable=False, index=True)
    student_name = Column(String(100), nullable=False)

    # Campus-local wall-clock values, stored as entered
    departure_date = Column(String(20), nullable=False)
    departure_time = Column(String(20), nullable=False)
    arrival_date = Column(String(20), nullable=False)
    arrival_time = Column(String(20), nullable=False)

    full_reason = Column(Text, nullable=False)
    summarized_reason = Column(Text, nullable=False)

    guardians = Column(JSON, nullable=False, default=list)
    selected_guardian = Column(JSON, nullable=False)

    guardian_approval_status = Column(SAEnum(ApprovalStatus), nullable=False, default=ApprovalStatus.pending)
    faculty_approval_status = Column(SAEnum(ApprovalStatus), nullable=False, default=ApprovalStatus.pending)
    status = Column(SAEnum(OutingStatus), nullable=False, default=OutingStatus.requested, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    guardian_approval_token = Column(String(64), nullable=True, unique=True)
    guardian_token_digest = Column(String(64), nullable=False, unique=True)
    guardian_approval_link = Column(String(500), nullable=True)
    guardian_approval_expires_at = Column(DateTime(timezone=True), nullable=False)

    qr_data = Column(String(120), nullable=True)
    exit_scan_at = Column(DateTime(timezone=True), nullable=True)
    entry_scan_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    guardian_approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)

    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        # At most one open outing per student, enforced by the database
        Index(
            "uq_outing_requests_active_student",
            "student_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )
