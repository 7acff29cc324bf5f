"""Gate scan routes — exit and entry checkpoints."""
import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from dormlink.database import get_db
from dormlink.deps import get_actor
from dormlink.schemas.actor import Actor
from dormlink.schemas.outing import GateScanRequest, GateScanOut
from dormlink.services import gate_service, token_issuer

logger = logging.getLogger(__name__)
router = APIRouter()


def _target(payload: GateScanRequest) -> str:
    return payload.request_id or token_issuer.parse_qr(payload.qr_data)


@router.post("/exit", response_model=GateScanOut)
def scan_exit(payload: GateScanRequest, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """Record the student leaving campus."""
    return gate_service.record_exit(db, _target(payload), actor, qr_data=payload.qr_data)


@router.post("/entry", response_model=GateScanOut)
def scan_entry(payload: GateScanRequest, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """Record the student returning; the pass is spent afterwards."""
    return gate_service.record_entry(db, _target(payload), actor, qr_data=payload.qr_data)


@router.get("/pass", response_model=GateScanOut)
def inspect_pass(qr_data: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """Look up whose pass is being presented before recording a scan."""
    gate_service.check_actor(actor)
    return gate_service.resolve_credential(db, qr_data)
