"""Pydantic schemas for outing requests."""
from __future__ import annotations
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field, model_validator

# Bounds follow the outing_requests columns and the ledger actor_id width
MAX_SCHEDULE_FIELD = 20
MAX_GUARDIAN_NAME = 100


class Guardian(BaseModel):
    name: str = Field(max_length=MAX_GUARDIAN_NAME)
    relation: str = Field(max_length=50)
    phone: str = Field(max_length=30)
    email: Optional[str] = Field(default=None, max_length=254)


class Schedule(BaseModel):
    departure_date: str = Field(max_length=MAX_SCHEDULE_FIELD)
    departure_time: str = Field(max_length=MAX_SCHEDULE_FIELD)
    arrival_date: str = Field(max_length=MAX_SCHEDULE_FIELD)
    arrival_time: str = Field(max_length=MAX_SCHEDULE_FIELD)


class OutingCreate(BaseModel):
    schedule: Schedule
    reason: str
    guardians: list[Guardian]
    selected_guardian: Guardian


class OutingOut(BaseModel):
    id: str
    student_id: str
    student_name: str
    departure_date: str
    departure_time: str
    arrival_date: str
    arrival_time: str
    full_reason: str
    summarized_reason: str
    guardians: list[Guardian]
    selected_guardian: Guardian
    guardian_approval_status: str
    faculty_approval_status: str
    status: str
    is_active: bool
    guardian_approval_link: Optional[str] = None  # owner only
    guardian_approval_expires_at: datetime
    qr_data: Optional[str] = None
    exit_scan_at: Optional[datetime] = None
    entry_scan_at: Optional[datetime] = None
    created_at: datetime
    guardian_approved_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    version: int

    model_config = {"from_attributes": True}


class GuardianView(BaseModel):
    """What a guardian sees behind the approval link. No token, no QR."""

    student_name: str
    departure_date: str
    departure_time: str
    arrival_date: str
    arrival_time: str
    summarized_reason: str
    selected_guardian: Guardian
    guardian_approval_status: str
    guardian_approval_expires_at: datetime

    model_config = {"from_attributes": True}


class GuardianDecision(BaseModel):
    action: Literal["approve", "reject"]


class FacultyDecisionOut(BaseModel):
    id: str
    status: str
    faculty_approval_status: str
    qr_data: Optional[str] = None
    approved_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class GateScanRequest(BaseModel):
    qr_data: Optional[str] = None
    request_id: Optional[str] = None

    @model_validator(mode="after")
    def _one_identifier(self) -> GateScanRequest:
        if not self.qr_data and not self.request_id:
            raise ValueError("Either qr_data or request_id is required")
        return self


class GateScanOut(BaseModel):
    id: str
    student_id: str
    student_name: str
    status: str
    exit_scan_at: Optional[datetime] = None
    entry_scan_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
