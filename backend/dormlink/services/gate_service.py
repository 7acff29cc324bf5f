"""Gate scan reconciler — records exit and entry against the QR credential.

Scanners and operators retry, so both scans are compare-and-swap writes
through ``outing_store.apply_transition`` and a repeated scan is refused
with ``AlreadyScanned`` rather than re-applied.
"""
import logging
import secrets
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from dormlink.errors import AlreadyScanned, Forbidden, InvalidTransition, NotFound
from dormlink.models.outing_request import OutingRequest, OutingStatus
from dormlink.schemas.actor import Actor, Role
from dormlink.services import outing_store, token_issuer

logger = logging.getLogger(__name__)

SCAN_ROLES = (Role.faculty, Role.gate)
EXIT_STATUSES = (OutingStatus.faculty_approved, OutingStatus.qr_generated)


def check_actor(actor: Actor) -> None:
    if actor.role not in SCAN_ROLES:
        raise Forbidden("Only gate staff may record scans")


def _check_credential(outing: OutingRequest, presented: Optional[str]) -> None:
    """The record must hold a live credential, and it must be the one presented."""
    if outing.qr_data is None:
        raise NotFound("No live pass for this outing")
    if presented is not None and not secrets.compare_digest(outing.qr_data, presented):
        logger.warning("Scan for outing %s presented a stale or forged credential", outing.id)
        raise NotFound("No live pass for this outing")


def resolve_credential(db: Session, qr_data: str) -> OutingRequest:
    """Map a scanned credential back to its outing."""
    outing = outing_store.get_outing(db, token_issuer.parse_qr(qr_data), fresh=True)
    _check_credential(outing, qr_data)
    return outing


def record_exit(
    db: Session,
    outing_id: str,
    actor: Actor,
    qr_data: Optional[str] = None,
    now: Optional[datetime] = None,
) -> OutingRequest:
    check_actor(actor)

    def guard(outing: OutingRequest) -> None:
        if outing.exit_scan_at is not None:
            raise AlreadyScanned("Exit already recorded")
        if outing.status not in EXIT_STATUSES:
            logger.warning("Rejected transition: state=%s event=%s", outing.status.value, outing_store.EXIT_SCAN)
            raise InvalidTransition(outing.status.value, outing_store.EXIT_SCAN)
        _check_credential(outing, qr_data)

    return outing_store.apply_transition(
        db,
        outing_id,
        outing_store.EXIT_SCAN,
        actor=actor,
        guard=guard,
        changes=lambda outing, at: {"exit_scan_at": at},
        now=now,
    )


def record_entry(
    db: Session,
    outing_id: str,
    actor: Actor,
    qr_data: Optional[str] = None,
    now: Optional[datetime] = None,
) -> OutingRequest:
    check_actor(actor)

    def guard(outing: OutingRequest) -> None:
        if outing.entry_scan_at is not None:
            raise AlreadyScanned("Entry already recorded")
        if outing.exit_scan_at is None or outing.status != OutingStatus.exited:
            logger.warning("Rejected transition: state=%s event=%s", outing.status.value, outing_store.ENTRY_SCAN)
            raise InvalidTransition(
                outing.status.value,
                outing_store.ENTRY_SCAN,
                "Student must exit before re-entry",
            )
        _check_credential(outing, qr_data)

    return outing_store.apply_transition(
        db,
        outing_id,
        outing_store.ENTRY_SCAN,
        actor=actor,
        guard=guard,
        changes=lambda outing, at: {"entry_scan_at": at, "qr_data": None},
        now=now,
    )
