"""Live outing views for dashboards (subscribe-to-query).

A subscriber registers a predicate over ``OutingOut`` and a listener. It gets
the matching snapshot immediately and again after every committed change.
This is a read-side fan-out only; write paths never consult it.

Subscriptions live in this process. With several workers each one notifies
only its own subscribers, so a dashboard sees the changes made through the
worker it is attached to.
"""
import logging
import threading
import uuid
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dormlink.models.outing_request import OutingRequest
from dormlink.schemas.outing import OutingOut

logger = logging.getLogger(__name__)

Predicate = Callable[[OutingOut], bool]
Listener = Callable[[list[OutingOut]], None]


def for_student(student_id: str) -> Predicate:
    return lambda outing: outing.student_id == student_id


def active_requests() -> Predicate:
    return lambda outing: outing.is_active


class OutingFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: dict[str, tuple[Predicate, Listener]] = {}

    def subscribe(self, db: Session, predicate: Predicate, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        sub_id = str(uuid.uuid4())
        with self._lock:
            self._subscriptions[sub_id] = (predicate, listener)
        listener(self._snapshot(db, predicate))

        def unsubscribe() -> None:
            with self._lock:
                self._subscriptions.pop(sub_id, None)

        return unsubscribe

    def publish(self, db: Session) -> None:
        """Push fresh snapshots to every subscriber."""
        with self._lock:
            subscriptions = list(self._subscriptions.values())
        if not subscriptions:
            return

        try:
            outings = self._load(db)
        except SQLAlchemyError:
            # The write is already committed; subscribers catch up on the next change
            logger.exception("Outing feed snapshot query failed")
            db.rollback()
            return
        for predicate, listener in subscriptions:
            try:
                listener([o for o in outings if predicate(o)])
            except Exception:
                logger.exception("Outing feed listener failed")

    def clear(self) -> None:
        with self._lock:
            self._subscriptions.clear()

    @staticmethod
    def _load(db: Session) -> list[OutingOut]:
        return [OutingOut.model_validate(o) for o in db.query(OutingRequest).all()]

    def _snapshot(self, db: Session, predicate: Predicate) -> list[OutingOut]:
        return [o for o in self._load(db) if predicate(o)]


feed = OutingFeed()
