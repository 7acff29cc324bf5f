"""Guardian approval gateway.

The only entry point reachable without authentication: knowledge of the
token is the whole credential. Lookups use the token's digest so that a
consumed token (cleared from the record) still resolves to "already
processed" instead of an unknown link.
"""
import logging
from datetime import datetime, timezone
from typing import Literal, Optional

from sqlalchemy.orm import Session

from dormlink.errors import AlreadyProcessed, Expired, NotFound
from dormlink.models.outing_request import OutingRequest, ApprovalStatus
from dormlink.schemas.actor import Actor
from dormlink.services import outing_store, token_issuer

logger = logging.getLogger(__name__)

GuardianAction = Literal["approve", "reject"]


def _check_expiry(outing: OutingRequest, now: datetime) -> None:
    if now > outing_store.as_utc(outing.guardian_approval_expires_at):
        logger.info("Guardian token for outing %s expired at %s", outing.id, outing.guardian_approval_expires_at)
        raise Expired("Approval link has expired")


def resolve(db: Session, token: str, now: Optional[datetime] = None) -> OutingRequest:
    """Return the request currently holding ``token``."""
    now = now or datetime.now(timezone.utc)
    outing = outing_store.find_by_token_digest(db, token_issuer.token_digest(token))
    if outing is None or outing.guardian_approval_token != token:
        logger.info("Guardian token did not resolve to a pending outing")
        raise NotFound("Approval link not found")
    _check_expiry(outing, now)
    return outing


def decide(db: Session, token: str, action: GuardianAction, now: Optional[datetime] = None) -> OutingRequest:
    """Apply the guardian's decision exactly once."""
    now = now or datetime.now(timezone.utc)
    outing = outing_store.find_by_token_digest(db, token_issuer.token_digest(token))
    if outing is None:
        logger.info("Guardian decision with unknown token")
        raise NotFound("Approval link not found")

    def guard(current: OutingRequest) -> None:
        if current.guardian_approval_status != ApprovalStatus.pending:
            raise AlreadyProcessed("This request has already been processed")
        _check_expiry(current, now)

    if action == "approve":
        event = outing_store.GUARDIAN_APPROVE

        def changes(current: OutingRequest, at: datetime) -> dict:
            return {
                "guardian_approval_status": ApprovalStatus.approved,
                "guardian_approved_at": at,
                "guardian_approval_token": None,
                "guardian_approval_link": None,
            }
    elif action == "reject":
        event = outing_store.GUARDIAN_REJECT

        def changes(current: OutingRequest, at: datetime) -> dict:
            return {
                "guardian_approval_status": ApprovalStatus.rejected,
                "guardian_approval_token": None,
                "guardian_approval_link": None,
            }
    else:
        raise ValueError(f"Unknown guardian action: {action}")

    return outing_store.apply_transition(
        db,
        outing.id,
        event,
        actor=Actor.guardian(outing.selected_guardian),
        guard=guard,
        changes=changes,
        now=now,
    )
