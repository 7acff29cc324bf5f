"""Guardian approval routes — reachable without login, gated by the token.

Unknown and expired links get the same response so the endpoint cannot be
used to probe which tokens exist.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from dormlink.database import get_db
from dormlink.errors import NotFound
from dormlink.schemas.outing import GuardianDecision, GuardianView
from dormlink.services import guardian_gateway

logger = logging.getLogger(__name__)
router = APIRouter()

UNAVAILABLE = "This approval link is invalid or has expired."


@router.get("/approve/{token}", response_model=GuardianView)
def view_request(token: str, db: Session = Depends(get_db)):
    """Show the guardian what they are being asked to approve."""
    try:
        return guardian_gateway.resolve(db, token)
    except NotFound as e:
        logger.info("Guardian link unavailable: %s", e.error)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=UNAVAILABLE)


@router.post("/approve/{token}", response_model=GuardianView)
def decide_request(token: str, payload: GuardianDecision, db: Session = Depends(get_db)):
    """Record the guardian's decision. A second click gets 409 already_processed."""
    try:
        return guardian_gateway.decide(db, token, payload.action)
    except NotFound as e:
        logger.info("Guardian decision on unavailable link: %s", e.error)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=UNAVAILABLE)
