"""Tests for the outing store — transition table, atomic writes, ledger."""
from datetime import timedelta

import pytest

from dormlink.errors import ActiveOutingExists, ConflictWrite, InvalidTransition, NotFound
from dormlink.models.outing_request import OutingRequest, OutingStatus
from dormlink.models.outing_transition import OutingTransition
from dormlink.services import outing_store
from tests.conftest import FACULTY, STUDENT, OTHER_STUDENT, T0, create_test_outing


class TestTransitionTable:
    @pytest.mark.parametrize("current,event,expected", [
        (OutingStatus.requested, outing_store.GUARDIAN_APPROVE, OutingStatus.guardian_approved),
        (OutingStatus.requested, outing_store.GUARDIAN_REJECT, OutingStatus.rejected),
        (OutingStatus.guardian_approved, outing_store.FACULTY_APPROVE, OutingStatus.faculty_approved),
        (OutingStatus.guardian_approved, outing_store.FACULTY_REJECT, OutingStatus.rejected),
        (OutingStatus.faculty_approved, outing_store.EXIT_SCAN, OutingStatus.exited),
        (OutingStatus.qr_generated, outing_store.EXIT_SCAN, OutingStatus.exited),
        (OutingStatus.exited, outing_store.ENTRY_SCAN, OutingStatus.re_entered),
    ])
    def test_allowed(self, current, event, expected):
        assert outing_store.next_status(current, event) == expected

    @pytest.mark.parametrize("current,event", [
        (OutingStatus.requested, outing_store.FACULTY_APPROVE),
        (OutingStatus.requested, outing_store.EXIT_SCAN),
        (OutingStatus.guardian_approved, outing_store.GUARDIAN_APPROVE),
        (OutingStatus.faculty_approved, outing_store.FACULTY_APPROVE),
        (OutingStatus.faculty_approved, outing_store.ENTRY_SCAN),
        (OutingStatus.rejected, outing_store.FACULTY_APPROVE),
        (OutingStatus.re_entered, outing_store.EXIT_SCAN),
    ])
    def test_refused_names_state_and_event(self, current, event):
        with pytest.raises(InvalidTransition) as exc_info:
            outing_store.next_status(current, event)
        assert exc_info.value.current == current.value
        assert exc_info.value.event == event


class TestReads:
    def test_get_unknown_id(self, db):
        with pytest.raises(NotFound):
            outing_store.get_outing(db, "does-not-exist")

    def test_find_active_for_student(self, db):
        outing = create_test_outing(db)
        assert outing_store.find_active_for_student(db, STUDENT.id).id == outing.id
        assert outing_store.find_active_for_student(db, OTHER_STUDENT.id) is None

    def test_list_newest_first(self, db):
        first = create_test_outing(db, actor=STUDENT, now=T0)
        second = create_test_outing(db, actor=OTHER_STUDENT, now=T0 + timedelta(minutes=5))
        ids = [o.id for o in outing_store.list_outings(db)]
        assert ids == [second.id, first.id]

    def test_list_filters_by_status(self, db):
        create_test_outing(db)
        assert outing_store.list_outings(db, statuses=[OutingStatus.requested])
        assert outing_store.list_outings(db, statuses=[OutingStatus.exited]) == []


class TestAtomicWrites:
    def test_unique_index_rejects_second_active_outing(self, db):
        """The store refuses a second open outing even if the service check is bypassed."""
        first = create_test_outing(db)
        duplicate = OutingRequest(
            student_id=STUDENT.id,
            student_name=STUDENT.display_name,
            departure_date="2026-03-10",
            departure_time="10:00",
            arrival_date="2026-03-10",
            arrival_time="18:00",
            full_reason="Dentist",
            summarized_reason="Dentist",
            guardians=[],
            selected_guardian={},
            guardian_approval_token="t" * 43,
            guardian_token_digest="d" * 64,
            guardian_approval_link="https://dormlink.test/guardian/approve/" + "t" * 43,
            guardian_approval_expires_at=T0 + timedelta(hours=48),
            created_at=T0,
        )
        with pytest.raises(ActiveOutingExists):
            outing_store.insert_outing(db, duplicate, STUDENT)
        assert len(outing_store.list_outings(db, student_id=STUDENT.id)) == 1
        assert first.id

    def test_transition_bumps_version_and_writes_ledger(self, db):
        outing = create_test_outing(db)
        outing_store.apply_transition(
            db, outing.id, outing_store.GUARDIAN_APPROVE, actor=FACULTY,
            changes=lambda o, at: {"guardian_approval_token": None},
        )
        updated = outing_store.get_outing(db, outing.id, fresh=True)
        assert updated.version == 2
        assert updated.status == OutingStatus.guardian_approved

        ledger = db.query(OutingTransition).filter(OutingTransition.outing_id == outing.id).all()
        assert [(t.event, t.from_status, t.to_status) for t in ledger] == [
            ("create", "requested", "requested"),
            ("guardian_approve", "requested", "guardian_approved"),
        ]

    def test_terminal_state_clears_active_flag(self, db):
        outing = create_test_outing(db)
        outing_store.apply_transition(db, outing.id, outing_store.GUARDIAN_REJECT, actor=FACULTY)
        assert outing_store.get_outing(db, outing.id, fresh=True).is_active is False
        assert outing_store.find_active_for_student(db, STUDENT.id) is None

    def test_guard_refusal_writes_nothing(self, db):
        outing = create_test_outing(db)

        def refuse(_):
            raise InvalidTransition("requested", "custom")

        with pytest.raises(InvalidTransition):
            outing_store.apply_transition(db, outing.id, outing_store.GUARDIAN_APPROVE, actor=FACULTY, guard=refuse)
        assert outing_store.get_outing(db, outing.id, fresh=True).version == 1

    def test_lost_race_retries_then_surfaces_conflict(self, db, session_factory, monkeypatch):
        """A concurrent writer bumps the version between our read and our write, every time."""
        outing = create_test_outing(db)
        rival = session_factory()

        def meddle(o):
            row = rival.get(OutingRequest, o.id, populate_existing=True)
            row.version += 1
            rival.commit()

        try:
            with pytest.raises(ConflictWrite):
                outing_store.apply_transition(db, outing.id, outing_store.GUARDIAN_APPROVE, actor=FACULTY, guard=meddle)
        finally:
            rival.close()

        refreshed = outing_store.get_outing(db, outing.id, fresh=True)
        assert refreshed.status == OutingStatus.requested
        assert refreshed.version == 3  # two rival writes, none of ours

    def test_lost_race_once_succeeds_on_retry(self, db, session_factory):
        outing = create_test_outing(db)
        rival = session_factory()
        calls = []

        def meddle_once(o):
            calls.append(o.version)
            if len(calls) == 1:
                row = rival.get(OutingRequest, o.id, populate_existing=True)
                row.version += 1
                rival.commit()

        try:
            result = outing_store.apply_transition(
                db, outing.id, outing_store.GUARDIAN_APPROVE, actor=FACULTY, guard=meddle_once,
            )
        finally:
            rival.close()

        assert calls == [1, 2]
        assert result.status == OutingStatus.guardian_approved
        assert result.version == 3
