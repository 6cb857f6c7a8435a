"""
Concurrency tests for waitlist positions.

Clients joining and leaving the waitlist of one full class at the same time
must end up with distinct positions 1..n and no gaps.
"""

from concurrent.futures import ThreadPoolExecutor
import threading
from typing import Any, Callable

import pytest
from sqlalchemy.orm import Session, sessionmaker

from classbook.core.enums import WaitlistStatus
from classbook.models import WaitlistEntry
from classbook.services.booking_service import BookingService
from tests.factories.schedule_builders import (
    STUDIO_ID,
    create_class_session,
    create_confirmed_bookings,
)


def _run_concurrently(
    session_factory: sessionmaker, calls: list[Callable[[BookingService], Any]]
) -> list[Any]:
    barrier = threading.Barrier(len(calls))

    def _worker(call: Callable[[BookingService], Any]) -> Any:
        session = session_factory()
        try:
            barrier.wait(timeout=30)
            return call(BookingService(session))
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=len(calls)) as executor:
        return list(executor.map(_worker, calls))


def _waiting_positions(db: Session, class_session_id: str) -> list[int]:
    db.expire_all()
    positions = [
        entry.position
        for entry in db.query(WaitlistEntry)
        .filter(
            WaitlistEntry.class_session_id == class_session_id,
            WaitlistEntry.status == WaitlistStatus.WAITING.value,
        )
        .order_by(WaitlistEntry.position)
    ]
    db.rollback()
    return positions


@pytest.mark.slow
@pytest.mark.parametrize("clients", [2, 20])
def test_concurrent_joins_get_unique_positions(
    db: Session, session_factory: sessionmaker, clients: int
) -> None:
    class_session = create_class_session(db, capacity=2)
    create_confirmed_bookings(db, class_session, 2)

    results = _run_concurrently(
        session_factory,
        [
            lambda service, client_id=f"CLIENT_{i:03d}": service.join_waitlist(
                class_session.id, client_id
            )
            for i in range(clients)
        ],
    )

    assert all(r.ok for r in results)
    assert sorted(r.position for r in results) == list(range(1, clients + 1))
    assert _waiting_positions(db, class_session.id) == list(range(1, clients + 1))


@pytest.mark.slow
def test_concurrent_joins_and_leaves_keep_positions_dense(
    db: Session, session_factory: sessionmaker
) -> None:
    class_session = create_class_session(db, capacity=1)
    create_confirmed_bookings(db, class_session, 1)
    service = BookingService(db)
    entry_ids = {}
    for i in range(6):
        client_id = f"EARLY_{i}"
        entry_ids[client_id] = service.join_waitlist(class_session.id, client_id).entry.id

    departing = ["EARLY_0", "EARLY_2", "EARLY_4"]
    calls: list[Callable[[BookingService], Any]] = [
        lambda s, client_id=client_id: s.leave_waitlist(
            entry_ids[client_id], client_id, STUDIO_ID
        )
        for client_id in departing
    ]
    calls += [
        lambda s, client_id=f"LATE_{i}": s.join_waitlist(class_session.id, client_id)
        for i in range(3)
    ]

    results = _run_concurrently(session_factory, calls)

    assert all(r.ok for r in results)
    assert _waiting_positions(db, class_session.id) == [1, 2, 3, 4, 5, 6]
