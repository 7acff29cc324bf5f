"""Outing request API routes — student requests and faculty decisions."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from dormlink.database import get_db
from dormlink.deps import get_actor
from dormlink.models.outing_request import OutingRequest, OutingStatus
from dormlink.schemas.actor import Actor
from dormlink.schemas.outing import OutingCreate, OutingOut, FacultyDecisionOut
from dormlink.services import faculty_service, outing_service

logger = logging.getLogger(__name__)
router = APIRouter()


def _present(outing: OutingRequest, actor: Actor) -> OutingOut:
    """Only the requesting student gets the guardian link."""
    out = OutingOut.model_validate(outing)
    if outing.student_id != actor.id:
        out = out.model_copy(update={"guardian_approval_link": None})
    return out


@router.post("/", response_model=OutingOut, status_code=status.HTTP_201_CREATED)
def create_outing(payload: OutingCreate, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """Request an outing; returns the record including the guardian approval link."""
    outing = outing_service.create_request(
        db=db,
        actor=actor,
        schedule=payload.schedule,
        reason=payload.reason,
        guardians=payload.guardians,
        selected_guardian=payload.selected_guardian,
    )
    return _present(outing, actor)


@router.get("/", response_model=list[OutingOut])
def list_outings(
    status_filter: Optional[list[OutingStatus]] = Query(None),
    active_only: bool = Query(False),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """List outings, newest first. Students see only their own."""
    outings = outing_service.list_for_actor(db, actor, statuses=status_filter, active_only=active_only)
    return [_present(o, actor) for o in outings]


@router.get("/active", response_model=Optional[OutingOut])
def get_active_outing(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """The calling student's open outing, or null."""
    outing = outing_service.active_for_student(db, actor)
    return _present(outing, actor) if outing else None


@router.get("/{outing_id}", response_model=OutingOut)
def get_outing(outing_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return _present(outing_service.get_for_actor(db, outing_id, actor), actor)


@router.delete("/{outing_id}", status_code=status.HTTP_204_NO_CONTENT)
def cancel_outing(outing_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """Cancel a request that the guardian has not yet answered."""
    outing_service.cancel(db, outing_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{outing_id}/approve", response_model=FacultyDecisionOut)
def approve_outing(outing_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """Faculty approval — mints the QR pass."""
    return faculty_service.decide(db, outing_id, "approve", actor)


@router.post("/{outing_id}/reject", response_model=FacultyDecisionOut)
def reject_outing(outing_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return faculty_service.decide(db, outing_id, "reject", actor)
