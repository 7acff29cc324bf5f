"""Faculty authorization — institutional approval after guardian consent."""
import logging
from datetime import datetime
from typing import Literal, Optional

from sqlalchemy.orm import Session

from dormlink.errors import Forbidden
from dormlink.models.outing_request import OutingRequest, ApprovalStatus
from dormlink.schemas.actor import Actor, Role
from dormlink.services import outing_store, token_issuer

logger = logging.getLogger(__name__)

FacultyAction = Literal["approve", "reject"]


def _approve_changes(outing: OutingRequest, now: datetime) -> dict:
    return {
        "faculty_approval_status": ApprovalStatus.approved,
        "approved_at": now,
        "qr_data": token_issuer.mint_qr(outing.id),
    }


def _reject_changes(outing: OutingRequest, now: datetime) -> dict:
    return {"faculty_approval_status": ApprovalStatus.rejected}


def decide(
    db: Session,
    outing_id: str,
    action: FacultyAction,
    actor: Actor,
    now: Optional[datetime] = None,
) -> OutingRequest:
    """Approve (minting the QR credential) or reject a guardian-approved outing."""
    if actor.role != Role.faculty:
        raise Forbidden("Only faculty may authorize outings")

    if action == "approve":
        event, changes = outing_store.FACULTY_APPROVE, _approve_changes
    elif action == "reject":
        event, changes = outing_store.FACULTY_REJECT, _reject_changes
    else:
        raise ValueError(f"Unknown faculty action: {action}")

    outing = outing_store.apply_transition(db, outing_id, event, actor=actor, changes=changes, now=now)
    logger.info("Faculty %s %s outing %s", actor.id, "approved" if action == "approve" else "rejected", outing_id)
    return outing
