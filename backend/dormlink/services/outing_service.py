"""Outing orchestrator — request creation, cancellation and query views.

Responsibilities:
- Input validation before anything is persisted
- One open outing per student (checked here, enforced by the store's index)
- Guardian snapshot copied into the request, never referenced live
- Token issuance and the guardian link
- Actor-scoped reads: students see their own requests, staff see all
"""
import copy
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from sqlalchemy.orm import Session

from dormlink.agent.summarizer import summarize
from dormlink.config import settings
from dormlink.errors import ActiveOutingExists, Forbidden, ValidationError
from dormlink.models.outing_request import OutingRequest, OutingStatus, ApprovalStatus
from dormlink.schemas.actor import Actor, Role
from dormlink.schemas.outing import Guardian, Schedule, MAX_GUARDIAN_NAME, MAX_SCHEDULE_FIELD
from dormlink.services import outing_store, token_issuer

logger = logging.getLogger(__name__)

MAX_GUARDIANS = 5
MAX_STUDENT_ID = 36
MAX_STUDENT_NAME = 100
STAFF_ROLES = (Role.faculty, Role.gate)


def _validate(schedule: Schedule, reason: str, guardians: list[Guardian], selected: Guardian) -> None:
    blank = [field for field, value in schedule.model_dump().items() if not value or not value.strip()]
    if blank:
        raise ValidationError(f"Schedule fields must not be empty: {', '.join(blank)}")
    too_long = [field for field, value in schedule.model_dump().items() if len(value.strip()) > MAX_SCHEDULE_FIELD]
    if too_long:
        raise ValidationError(f"Schedule fields exceed {MAX_SCHEDULE_FIELD} characters: {', '.join(too_long)}")
    if not reason or not reason.strip():
        raise ValidationError("A reason for the outing is required")
    if not guardians:
        raise ValidationError("At least one guardian is required")
    if len(guardians) > MAX_GUARDIANS:
        raise ValidationError(f"At most {MAX_GUARDIANS} guardians may be listed")
    if any(len(g.name) > MAX_GUARDIAN_NAME for g in guardians):
        raise ValidationError(f"Guardian names are limited to {MAX_GUARDIAN_NAME} characters")
    if selected not in guardians:
        raise ValidationError("Selected guardian must be one of the listed guardians")


def create_request(
    db: Session,
    actor: Actor,
    schedule: Schedule,
    reason: str,
    guardians: list[Guardian],
    selected_guardian: Guardian,
    now: Optional[datetime] = None,
    summarizer: Callable[[str], str] = summarize,
) -> OutingRequest:
    """Create an outing request in state ``requested`` with a fresh guardian link."""
    if actor.role != Role.student:
        raise Forbidden("Only students may request an outing")
    if len(actor.id) > MAX_STUDENT_ID or len(actor.display_name) > MAX_STUDENT_NAME:
        raise ValidationError(
            f"Student id or name too long (limits {MAX_STUDENT_ID} and {MAX_STUDENT_NAME} characters)"
        )
    _validate(schedule, reason, guardians, selected_guardian)

    if outing_store.find_active_for_student(db, actor.id) is not None:
        raise ActiveOutingExists("Student already has an active outing request")

    now = now or datetime.now(timezone.utc)
    token, expires_at = token_issuer.issue(now)
    snapshot = copy.deepcopy([g.model_dump() for g in guardians])

    outing = OutingRequest(
        student_id=actor.id,
        student_name=actor.display_name,
        departure_date=schedule.departure_date.strip(),
        departure_time=schedule.departure_time.strip(),
        arrival_date=schedule.arrival_date.strip(),
        arrival_time=schedule.arrival_time.strip(),
        full_reason=reason.strip(),
        summarized_reason=summarizer(reason.strip()),
        guardians=snapshot,
        selected_guardian=selected_guardian.model_dump(),
        guardian_approval_status=ApprovalStatus.pending,
        faculty_approval_status=ApprovalStatus.pending,
        status=OutingStatus.requested,
        is_active=True,
        guardian_approval_token=token,
        guardian_token_digest=token_issuer.token_digest(token),
        guardian_approval_link=token_issuer.build_link(settings.PUBLIC_BASE_URL, token),
        guardian_approval_expires_at=expires_at,
        created_at=now,
        version=1,
    )
    outing = outing_store.insert_outing(db, outing, actor)
    logger.info("Outing %s requested by student %s (guardian: %s)", outing.id, actor.id, selected_guardian.name)
    return outing


def cancel(db: Session, outing_id: str, actor: Actor) -> None:
    """Withdraw a request while the guardian decision is still pending."""

    def guard(outing: OutingRequest) -> None:
        if outing.student_id != actor.id:
            raise Forbidden("Only the requesting student may cancel this outing")

    outing_store.delete_outing(db, outing_id, actor, guard=guard)


# ── Query views ────────────────────────────────────────────────────

def get_for_actor(db: Session, outing_id: str, actor: Actor) -> OutingRequest:
    outing = outing_store.get_outing(db, outing_id)
    if actor.role not in STAFF_ROLES and outing.student_id != actor.id:
        raise Forbidden("Not your outing request")
    return outing


def list_for_actor(
    db: Session,
    actor: Actor,
    statuses: Optional[Iterable[OutingStatus]] = None,
    active_only: bool = False,
) -> list[OutingRequest]:
    if actor.role in STAFF_ROLES:
        return outing_store.list_outings(db, statuses=statuses, active_only=active_only)
    if actor.role == Role.student:
        return outing_store.list_outings(db, student_id=actor.id, statuses=statuses, active_only=active_only)
    raise Forbidden("Not allowed to list outing requests")


def active_for_student(db: Session, actor: Actor) -> Optional[OutingRequest]:
    if actor.role != Role.student:
        raise Forbidden("Only students have an active outing")
    return outing_store.find_active_for_student(db, actor.id)
