"""Outing request store — owns persistence and transition legality.

Every mutation goes through one of three write paths here:

- ``insert_outing``: new request; the partial unique index on
  ``(student_id) WHERE is_active`` rejects a second open outing.
- ``apply_transition``: fresh read, guard, conditional ``UPDATE`` on
  ``version``, ledger row, commit. A lost race is retried with a fresh read
  up to ``MAX_WRITE_ATTEMPTS`` times, then surfaces ``ConflictWrite``.
- ``delete_outing``: the same shape, for student cancellation.

The change feed is notified after each commit. It is never read here.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Any

from sqlalchemy import update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dormlink.config import settings
from dormlink.errors import ActiveOutingExists, ConflictWrite, InvalidTransition, NotFound
from dormlink.models.outing_request import OutingRequest, OutingStatus, ApprovalStatus, TERMINAL_STATUSES
from dormlink.models.outing_transition import OutingTransition
from dormlink.schemas.actor import Actor
from dormlink.services.outing_feed import feed

logger = logging.getLogger(__name__)

GUARDIAN_APPROVE = "guardian_approve"
GUARDIAN_REJECT = "guardian_reject"
FACULTY_APPROVE = "faculty_approve"
FACULTY_REJECT = "faculty_reject"
EXIT_SCAN = "exit_scan"
ENTRY_SCAN = "entry_scan"
CANCEL = "cancel"

TRANSITIONS: dict[tuple[OutingStatus, str], OutingStatus] = {
    (OutingStatus.requested, GUARDIAN_APPROVE): OutingStatus.guardian_approved,
    (OutingStatus.requested, GUARDIAN_REJECT): OutingStatus.rejected,
    (OutingStatus.guardian_approved, FACULTY_APPROVE): OutingStatus.faculty_approved,
    (OutingStatus.guardian_approved, FACULTY_REJECT): OutingStatus.rejected,
    (OutingStatus.faculty_approved, EXIT_SCAN): OutingStatus.exited,
    (OutingStatus.qr_generated, EXIT_SCAN): OutingStatus.exited,
    (OutingStatus.exited, ENTRY_SCAN): OutingStatus.re_entered,
}

Guard = Callable[[OutingRequest], None]
Changes = Callable[[OutingRequest, datetime], dict[str, Any]]


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything here is stored in UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def next_status(current: OutingStatus, event: str) -> OutingStatus:
    """Look up the transition table or fail with InvalidTransition."""
    target = TRANSITIONS.get((current, event))
    if target is None:
        logger.warning("Rejected transition: state=%s event=%s", current.value, event)
        raise InvalidTransition(current.value, event)
    return target


# ── Reads ──────────────────────────────────────────────────────────

def get_outing(db: Session, outing_id: str, fresh: bool = False) -> OutingRequest:
    outing = db.get(OutingRequest, outing_id, populate_existing=fresh)
    if outing is None:
        raise NotFound("Outing request not found")
    return outing


def find_by_token_digest(db: Session, digest: str) -> Optional[OutingRequest]:
    return (
        db.query(OutingRequest)
        .filter(OutingRequest.guardian_token_digest == digest)
        .populate_existing()
        .first()
    )


def find_active_for_student(db: Session, student_id: str) -> Optional[OutingRequest]:
    """The single non-terminal request for a student, if any."""
    return (
        db.query(OutingRequest)
        .filter(OutingRequest.student_id == student_id, OutingRequest.is_active.is_(True))
        .first()
    )


def list_outings(
    db: Session,
    student_id: Optional[str] = None,
    statuses: Optional[Iterable[OutingStatus]] = None,
    active_only: bool = False,
) -> list[OutingRequest]:
    """Filtered listing, newest first."""
    query = db.query(OutingRequest)
    if student_id:
        query = query.filter(OutingRequest.student_id == student_id)
    if statuses:
        query = query.filter(OutingRequest.status.in_(list(statuses)))
    if active_only:
        query = query.filter(OutingRequest.is_active.is_(True))
    return query.order_by(OutingRequest.created_at.desc()).all()


# ── Writes ─────────────────────────────────────────────────────────

def _ledger(db: Session, outing_id: str, event: str, from_status: OutingStatus,
            to_status: Optional[OutingStatus], actor: Actor, now: datetime) -> None:
    db.add(OutingTransition(
        outing_id=outing_id,
        event=event,
        from_status=from_status.value,
        to_status=to_status.value if to_status else None,
        actor_id=actor.id,
        actor_role=actor.role.value,
        created_at=now,
    ))


def insert_outing(db: Session, outing: OutingRequest, actor: Actor) -> OutingRequest:
    """Persist a new request in state ``requested``."""
    db.add(outing)
    try:
        db.flush()
        _ledger(db, outing.id, "create", OutingStatus.requested, OutingStatus.requested, actor, outing.created_at)
        db.commit()
    except IntegrityError:
        db.rollback()
        if find_active_for_student(db, outing.student_id) is not None:
            raise ActiveOutingExists("Student already has an active outing request")
        raise
    db.refresh(outing)
    feed.publish(db)
    return outing


def apply_transition(
    db: Session,
    outing_id: str,
    event: str,
    actor: Actor,
    guard: Optional[Guard] = None,
    changes: Optional[Changes] = None,
    now: Optional[datetime] = None,
) -> OutingRequest:
    """Atomically move one outing along the state machine.

    ``guard`` runs against the freshly read row and raises to refuse the
    event; ``changes`` returns the extra column values to write alongside
    the new status.
    """
    now = now or datetime.now(timezone.utc)
    for attempt in range(1, settings.MAX_WRITE_ATTEMPTS + 1):
        outing = get_outing(db, outing_id, fresh=True)
        if guard:
            guard(outing)
        current = outing.status
        target = next_status(current, event)

        values = changes(outing, now) if changes else {}
        values["status"] = target
        values["version"] = outing.version + 1
        if target in TERMINAL_STATUSES:
            values["is_active"] = False

        result = db.execute(
            update(OutingRequest)
            .where(OutingRequest.id == outing_id, OutingRequest.version == outing.version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            _ledger(db, outing_id, event, current, target, actor, now)
            db.commit()
            outing = get_outing(db, outing_id, fresh=True)
            logger.info("Outing %s: %s -> %s (%s by %s)", outing_id, current.value, target.value, event, actor.id)
            feed.publish(db)
            return outing

        db.rollback()
        logger.warning("Outing %s: lost write race on %s (attempt %d)", outing_id, event, attempt)

    raise ConflictWrite(f"Outing {outing_id} was modified concurrently; '{event}' not applied")


def delete_outing(
    db: Session,
    outing_id: str,
    actor: Actor,
    guard: Optional[Guard] = None,
    now: Optional[datetime] = None,
) -> None:
    """Atomically delete a request whose guardian decision is still pending."""
    now = now or datetime.now(timezone.utc)
    for attempt in range(1, settings.MAX_WRITE_ATTEMPTS + 1):
        outing = get_outing(db, outing_id, fresh=True)
        if guard:
            guard(outing)
        if outing.guardian_approval_status != ApprovalStatus.pending:
            logger.warning("Rejected transition: state=%s event=%s", outing.status.value, CANCEL)
            raise InvalidTransition(outing.status.value, CANCEL)

        current = outing.status
        result = db.execute(
            delete(OutingRequest)
            .where(
                OutingRequest.id == outing_id,
                OutingRequest.version == outing.version,
                OutingRequest.guardian_approval_status == ApprovalStatus.pending,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            _ledger(db, outing_id, CANCEL, current, None, actor, now)
            db.commit()
            db.expunge(outing)
            logger.info("Outing %s cancelled by %s", outing_id, actor.id)
            feed.publish(db)
            return

        db.rollback()
        logger.warning("Outing %s: lost write race on %s (attempt %d)", outing_id, CANCEL, attempt)

    raise ConflictWrite(f"Outing {outing_id} was modified concurrently; '{CANCEL}' not applied")
