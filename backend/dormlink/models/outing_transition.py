"""OutingTransition ORM model — append-only ledger of committed transitions."""
import uuid
from sqlalchemy import Column, String, DateTime
from dormlink.database import Base


class OutingTransition(Base):
    __tablename__ = "outing_transitions"

    transition_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # No foreign key: cancelled requests are deleted but their ledger stays
    outing_id = Column(String(36), nullable=False, index=True)
    event = Column(String(30), nullable=False)
    from_status = Column(String(30), nullable=False)
    to_status = Column(String(30), nullable=True)
    actor_id = Column(String(120), nullable=False)
    actor_role = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
