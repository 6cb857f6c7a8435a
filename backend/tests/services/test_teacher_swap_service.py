"""Tests for TeacherSwapService.swap_teacher."""

import pytest
from sqlalchemy.orm import Session

from classbook.core.enums import ConflictKind, OperationError, TransactionState
from classbook.core.exceptions import ScheduleConflictException
from classbook.models import ClassSession
from classbook.services.teacher_swap_service import TeacherSwapService
from tests.factories.schedule_builders import (
    OTHER_STUDIO_ID,
    STUDIO_ID,
    at,
    create_blocked_time,
    create_class_session,
)

ORIGINAL = "01HTEACHER0000000000000ORG"
SUBSTITUTE = "01HTEACHER0000000000000SUB"


@pytest.fixture
def swap_service(db: Session) -> TeacherSwapService:
    return TeacherSwapService(db)


def _teacher_of(db: Session, session_id: str) -> str:
    db.expire_all()
    teacher_id = db.get(ClassSession, session_id).teacher_id
    db.rollback()
    return teacher_id


def test_swap_to_free_teacher_commits(db, swap_service):
    class_session = create_class_session(db, teacher_id=ORIGINAL, start=at(10))

    result = swap_service.swap_teacher(class_session.id, SUBSTITUTE, STUDIO_ID)

    assert result.ok
    assert result.state == TransactionState.COMMITTED
    assert result.class_session.teacher_id == SUBSTITUTE
    assert not result.conflict.has_conflict
    assert _teacher_of(db, class_session.id) == SUBSTITUTE


def test_swap_into_overlapping_class_is_rejected(db, swap_service):
    class_session = create_class_session(db, teacher_id=ORIGINAL, start=at(10))
    busy = create_class_session(
        db,
        teacher_id=SUBSTITUTE,
        start=at(10, 30),
        class_type_name="Barre",
        location_name="Room 3",
    )

    result = swap_service.swap_teacher(class_session.id, SUBSTITUTE, STUDIO_ID)

    assert not result.ok
    assert result.state == TransactionState.CONFLICT
    assert result.error == OperationError.SCHEDULE_CONFLICT
    assert result.conflict.class_session_id == busy.id
    assert result.message == "Target teacher already has Barre at Room 3 in this time slot."
    assert _teacher_of(db, class_session.id) == ORIGINAL
    with pytest.raises(ScheduleConflictException):
        result.raise_for_error()


def test_swap_into_back_to_back_class_is_allowed(db, swap_service):
    class_session = create_class_session(db, teacher_id=ORIGINAL, start=at(10))
    create_class_session(db, teacher_id=SUBSTITUTE, start=at(11))

    result = swap_service.swap_teacher(class_session.id, SUBSTITUTE, STUDIO_ID)

    assert result.ok


def test_swap_into_blocked_time_is_rejected(db, swap_service):
    class_session = create_class_session(db, teacher_id=ORIGINAL, start=at(10))
    create_blocked_time(db, SUBSTITUTE, start=at(9), minutes=240, reason="Sick")

    result = swap_service.swap_teacher(class_session.id, SUBSTITUTE, STUDIO_ID)

    assert result.error == OperationError.BLOCKED_TIME
    assert result.conflict.kind == ConflictKind.BLOCKED_TIME
    assert result.to_payload()["conflict"]["reason"] == "Sick"
    assert _teacher_of(db, class_session.id) == ORIGINAL


def test_session_of_another_studio_is_not_found(db, swap_service):
    class_session = create_class_session(db, teacher_id=ORIGINAL, studio_id=OTHER_STUDIO_ID)

    result = swap_service.swap_teacher(class_session.id, SUBSTITUTE, STUDIO_ID)

    assert result.error == OperationError.NOT_FOUND
    assert result.state == TransactionState.FAILED
    assert _teacher_of(db, class_session.id) == ORIGINAL


def test_stale_expected_teacher_is_contended(db, swap_service):
    class_session = create_class_session(db, teacher_id=ORIGINAL, start=at(10))

    result = swap_service.swap_teacher(
        class_session.id, SUBSTITUTE, STUDIO_ID, expected_teacher_id="01HTEACHER0000000000000OLD"
    )

    assert result.error == OperationError.CONTENDED
    assert result.retryable
    assert _teacher_of(db, class_session.id) == ORIGINAL


def test_swap_back_to_same_teacher_is_a_noop_success(db, swap_service):
    class_session = create_class_session(db, teacher_id=ORIGINAL, start=at(10))

    result = swap_service.swap_teacher(class_session.id, ORIGINAL, STUDIO_ID)

    assert result.ok
    assert _teacher_of(db, class_session.id) == ORIGINAL


def test_contended_result_is_readable_after_rollback(db, swap_service):
    class_session = create_class_session(db, teacher_id=ORIGINAL, start=at(10))

    result = swap_service.swap_teacher(
        class_session.id, SUBSTITUTE, STUDIO_ID, expected_teacher_id="01HTEACHER0000000000000OLD"
    )

    assert result.to_payload()["error_code"] == OperationError.CONTENDED.value
    assert not db.in_transaction()
