# backend/classbook/services/teacher_swap_service.py
"""
Teacher Swap Service for the booking core.

Reassigns a class session to another teacher without ever producing a
double-booked teacher. A swap locks the class session, then the target
teacher's schedule, re-reads the session and runs the conflict check inside
that same transaction before writing.

Swaps can be applied directly (``swap_teacher``) or go through a request that
a studio admin approves or declines.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import OperationError, SwapRequestStatus, TransactionState
from ..core.exceptions import LockContentionException, NotFoundException, RepositoryException
from ..core.resource_lock import lock_class_session, lock_teacher_schedule
from ..core.timezone_utils import ensure_utc, utc_now
from ..models.swap_request import ClassSwapRequest
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.class_session_repository import ClassSessionRepository
from ..repositories.swap_request_repository import SwapRequestRepository
from ..schemas.updates import ClassSessionUpdate, SwapRequestResolution
from .base import BaseService
from .conflict_checker import ConflictChecker
from .results import (
    CONTENDED_MESSAGE,
    GENERIC_FAILURE_MESSAGE,
    SwapRequestResult,
    SwapResult,
    error_for_exception,
)

logger = logging.getLogger(__name__)

SESSION_NOT_FOUND_MESSAGE = "Class session not found"
REQUEST_NOT_FOUND_MESSAGE = "Swap request not found"
REASSIGNED_MESSAGE = "This class was reassigned in the meantime, please refresh"
SAME_TEACHER_MESSAGE = "Choose a different teacher"
NOT_OWNER_MESSAGE = "You can only swap your own classes"
STARTED_MESSAGE = "Only upcoming classes can be swapped"
DUPLICATE_MESSAGE = "A swap request is already pending for this class"
NOT_PENDING_MESSAGE = "Only pending requests can be updated"
AUTO_APPROVED_NOTE = "Auto-approved by studio setting"

_FAILURES = (NotFoundException, LockContentionException, RepositoryException, SQLAlchemyError)


class TeacherSwapService(BaseService):
    """
    Service layer for teacher reassignment.

    Like ``BookingService`` it expects a session with no transaction in
    progress and always leaves it committed or rolled back.
    """

    def __init__(
        self,
        db: Session,
        session_repository: Optional[ClassSessionRepository] = None,
        swap_request_repository: Optional[SwapRequestRepository] = None,
        conflict_checker: Optional[ConflictChecker] = None,
    ):
        super().__init__(db)
        self.session_repository = (
            session_repository or RepositoryFactory.create_class_session_repository(db)
        )
        self.swap_request_repository = (
            swap_request_repository or RepositoryFactory.create_swap_request_repository(db)
        )
        self.conflict_checker = conflict_checker or ConflictChecker(db)

    @BaseService.measure_operation("swap_teacher")
    def swap_teacher(
        self,
        session_id: str,
        new_teacher_id: str,
        studio_id: str,
        expected_teacher_id: Optional[str] = None,
    ) -> SwapResult:
        """
        Reassign a class session to ``new_teacher_id``.

        Args:
            session_id: Class session to reassign
            new_teacher_id: Teacher taking over the class
            studio_id: Studio the caller acts for; the session must belong to it
            expected_teacher_id: Teacher the caller saw on the session. When the
                session has been reassigned since, the swap is refused with
                CONTENDED instead of silently overwriting the other change.
                Defaults to the teacher read just before the lock is taken.

        Returns:
            SwapResult. Failures are SCHEDULE_CONFLICT or BLOCKED_TIME (with the
            conflict details), NOT_FOUND, CONTENDED and INFRA_ERROR.
        """
        self.log_operation(
            "swap_teacher",
            class_session_id=session_id,
            new_teacher_id=new_teacher_id,
            studio_id=studio_id,
        )
        try:
            if expected_teacher_id is None:
                # Snapshot before the lock; a swap committed while waiting shows up as a change
                current = self.session_repository.get_for_studio(
                    session_id, studio_id, refresh=True
                )
                if current is None:
                    raise NotFoundException(SESSION_NOT_FOUND_MESSAGE, code="NOT_FOUND")
                expected_teacher_id = current.teacher_id

            attempt = self._swap_under_lock(
                session_id, new_teacher_id, studio_id, expected_teacher_id
            )
            if not attempt.ok:
                self.rollback()
                return self._finish(attempt, "swap_teacher")
            self.db.commit()
        except _FAILURES as exc:
            self.rollback()
            return self._finish(self._swap_failure(exc, session_id), "swap_teacher")

        self.logger.info("Class %s reassigned to teacher %s", session_id, new_teacher_id)
        return self._finish(replace(attempt, state=TransactionState.COMMITTED), "swap_teacher")

    @BaseService.measure_operation("request_swap")
    def request_swap(
        self,
        session_id: str,
        from_teacher_id: str,
        to_teacher_id: str,
        studio_id: str,
        notes: Optional[str] = None,
        requires_approval: bool = True,
        now: Optional[datetime] = None,
    ) -> SwapRequestResult:
        """
        Ask to hand an upcoming class to another teacher.

        With ``requires_approval`` a PENDING request is stored for an admin.
        Otherwise the swap is performed immediately and an APPROVED request
        is recorded in the same transaction.
        """
        now = ensure_utc(now) if now is not None else utc_now()
        self.log_operation(
            "request_swap",
            class_session_id=session_id,
            from_teacher_id=from_teacher_id,
            to_teacher_id=to_teacher_id,
        )
        if from_teacher_id == to_teacher_id:
            return self._reject(OperationError.INVALID_REQUEST, SAME_TEACHER_MESSAGE)

        try:
            # Pending-request check and insert must not interleave with another request
            lock_class_session(self.db, session_id)
            session = self.session_repository.get_for_studio(session_id, studio_id, refresh=True)
            if session is None:
                raise NotFoundException(SESSION_NOT_FOUND_MESSAGE, code="NOT_FOUND")
            if session.teacher_id != from_teacher_id:
                return self._reject(OperationError.INVALID_REQUEST, NOT_OWNER_MESSAGE)
            if session.start_time <= now:
                return self._reject(OperationError.INVALID_REQUEST, STARTED_MESSAGE)
            if self.swap_request_repository.find_pending(session_id, from_teacher_id):
                return self._reject(OperationError.DUPLICATE_REQUEST, DUPLICATE_MESSAGE)

            if requires_approval:
                # Advisory only; approval re-checks under the lock
                conflict = self.conflict_checker.check_assignment_conflict(
                    to_teacher_id,
                    studio_id,
                    session.start_time,
                    session.end_time,
                    exclude_session_id=session.id,
                )
                if conflict.has_conflict:
                    self.rollback()
                    return self._finish_request(
                        SwapRequestResult.from_swap(SwapResult.from_conflict(conflict)),
                        "request_swap",
                    )
                swap_request = self._create_request(
                    session_id, from_teacher_id, to_teacher_id, studio_id, notes
                )
                self.db.commit()
                mode = "PENDING_APPROVAL"
            else:
                attempt = self._swap_under_lock(
                    session_id, to_teacher_id, studio_id, from_teacher_id
                )
                if not attempt.ok:
                    self.rollback()
                    return self._finish_request(
                        SwapRequestResult.from_swap(attempt), "request_swap"
                    )
                swap_request = self._create_request(
                    session_id,
                    from_teacher_id,
                    to_teacher_id,
                    studio_id,
                    notes,
                    status=SwapRequestStatus.APPROVED.value,
                    admin_notes=AUTO_APPROVED_NOTE,
                    resolved_at=now,
                )
                self.db.commit()
                mode = "AUTO_APPROVED"
        except _FAILURES as exc:
            self.rollback()
            return self._finish_request(
                SwapRequestResult.from_swap(self._swap_failure(exc, session_id)), "request_swap"
            )

        return self._finish_request(
            SwapRequestResult(
                ok=True,
                state=TransactionState.COMMITTED,
                swap_request=swap_request,
                mode=mode,
            ),
            "request_swap",
        )

    @BaseService.measure_operation("approve_swap_request")
    def approve_swap_request(
        self,
        request_id: str,
        studio_id: str,
        resolved_by_id: Optional[str] = None,
        admin_notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> SwapRequestResult:
        """
        Approve a pending request and reassign the class in one transaction.

        The swap expects the requesting teacher to still own the class; if it
        was reassigned since the request was made, approval is CONTENDED.
        """
        now = ensure_utc(now) if now is not None else utc_now()
        self.log_operation("approve_swap_request", request_id=request_id, studio_id=studio_id)

        try:
            swap_request = self.swap_request_repository.get_for_studio(request_id, studio_id)
            if swap_request is None:
                raise NotFoundException(REQUEST_NOT_FOUND_MESSAGE, code="NOT_FOUND")
            if swap_request.status != SwapRequestStatus.PENDING.value:
                return self._reject(OperationError.INVALID_REQUEST, NOT_PENDING_MESSAGE)
            session = self.session_repository.get_for_studio(
                swap_request.class_session_id, studio_id, refresh=True
            )
            if session is None:
                raise NotFoundException(SESSION_NOT_FOUND_MESSAGE, code="NOT_FOUND")
            if session.start_time <= now:
                return self._reject(OperationError.INVALID_REQUEST, STARTED_MESSAGE)

            attempt = self._swap_under_lock(
                swap_request.class_session_id,
                swap_request.to_teacher_id,
                studio_id,
                swap_request.from_teacher_id,
            )
            if not attempt.ok:
                self.rollback()
                return self._finish_request(
                    SwapRequestResult.from_swap(attempt), "approve_swap_request"
                )

            swap_request = self.swap_request_repository.get_for_studio(request_id, studio_id)
            if swap_request is None or swap_request.status != SwapRequestStatus.PENDING.value:
                return self._reject(OperationError.INVALID_REQUEST, NOT_PENDING_MESSAGE)

            self.swap_request_repository.resolve(
                swap_request,
                self._resolution(SwapRequestStatus.APPROVED, now, resolved_by_id, admin_notes),
            )
            self.db.commit()
        except _FAILURES as exc:
            self.rollback()
            return self._finish_request(
                SwapRequestResult.from_swap(self._swap_failure(exc, request_id)),
                "approve_swap_request",
            )

        return self._finish_request(
            SwapRequestResult(
                ok=True,
                state=TransactionState.COMMITTED,
                swap_request=swap_request,
                mode="APPROVED",
            ),
            "approve_swap_request",
        )

    @BaseService.measure_operation("decline_swap_request")
    def decline_swap_request(
        self,
        request_id: str,
        studio_id: str,
        resolved_by_id: Optional[str] = None,
        admin_notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> SwapRequestResult:
        """Decline a pending request; the class keeps its teacher."""
        now = ensure_utc(now) if now is not None else utc_now()
        return self._close_pending(
            request_id,
            studio_id,
            self._resolution(SwapRequestStatus.DECLINED, now, resolved_by_id, admin_notes),
            "decline_swap_request",
        )

    @BaseService.measure_operation("cancel_swap_request")
    def cancel_swap_request(
        self, request_id: str, studio_id: str, teacher_id: str, now: Optional[datetime] = None
    ) -> SwapRequestResult:
        """Withdraw a pending request; only the requesting teacher may do this."""
        now = ensure_utc(now) if now is not None else utc_now()
        return self._close_pending(
            request_id,
            studio_id,
            self._resolution(SwapRequestStatus.CANCELLED, now, teacher_id, None),
            "cancel_swap_request",
            requester_id=teacher_id,
        )

    def list_pending_requests(self, studio_id: str, limit: int = 100) -> List[ClassSwapRequest]:
        """Pending requests of a studio, newest first."""
        return self.swap_request_repository.list_for_studio(
            studio_id, SwapRequestStatus.PENDING, limit
        )

    # Private helpers

    def _swap_under_lock(
        self,
        session_id: str,
        new_teacher_id: str,
        studio_id: str,
        expected_teacher_id: Optional[str],
    ) -> SwapResult:
        """
        Lock, re-read, check and write a reassignment without committing.

        Returns a CHECKED result on success; the caller commits. Lock and
        store failures are raised for the caller to classify.
        """
        lock_class_session(self.db, session_id)
        lock_teacher_schedule(self.db, new_teacher_id)

        session = self.session_repository.get_for_studio(session_id, studio_id, refresh=True)
        if session is None:
            raise NotFoundException(SESSION_NOT_FOUND_MESSAGE, code="NOT_FOUND")

        if expected_teacher_id is not None and session.teacher_id != expected_teacher_id:
            self.logger.info(
                "Class %s moved from %s to %s before the swap",
                session_id,
                expected_teacher_id,
                session.teacher_id,
            )
            # No instance on the result: the caller's rollback expires it
            return SwapResult(
                ok=False,
                state=TransactionState.REJECTED,
                error=OperationError.CONTENDED,
                message=REASSIGNED_MESSAGE,
            )

        conflict = self.conflict_checker.check_assignment_conflict(
            new_teacher_id,
            studio_id,
            session.start_time,
            session.end_time,
            exclude_session_id=session.id,
        )
        if conflict.has_conflict:
            return SwapResult.from_conflict(conflict)

        self.session_repository.apply_update(session, ClassSessionUpdate(teacher_id=new_teacher_id))
        return SwapResult(ok=True, state=TransactionState.CHECKED, class_session=session)

    def _close_pending(
        self,
        request_id: str,
        studio_id: str,
        resolution: SwapRequestResolution,
        operation: str,
        requester_id: Optional[str] = None,
    ) -> SwapRequestResult:
        self.log_operation(operation, request_id=request_id, studio_id=studio_id)
        try:
            swap_request = self.swap_request_repository.get_for_studio(request_id, studio_id)
            if swap_request is None:
                raise NotFoundException(REQUEST_NOT_FOUND_MESSAGE, code="NOT_FOUND")

            # Serializes with a concurrent approval of the same request
            lock_class_session(self.db, swap_request.class_session_id)
            swap_request = self.swap_request_repository.get_for_studio(request_id, studio_id)
            if swap_request is None:
                raise NotFoundException(REQUEST_NOT_FOUND_MESSAGE, code="NOT_FOUND")
            if swap_request.status != SwapRequestStatus.PENDING.value:
                return self._reject(OperationError.INVALID_REQUEST, NOT_PENDING_MESSAGE)
            if requester_id is not None and swap_request.from_teacher_id != requester_id:
                return self._reject(OperationError.INVALID_REQUEST, NOT_OWNER_MESSAGE)

            self.swap_request_repository.resolve(swap_request, resolution)
            self.db.commit()
        except _FAILURES as exc:
            self.rollback()
            return self._finish_request(
                SwapRequestResult.from_swap(self._swap_failure(exc, request_id)), operation
            )

        return self._finish_request(
            SwapRequestResult(
                ok=True,
                state=TransactionState.COMMITTED,
                swap_request=swap_request,
                mode=swap_request.status,
            ),
            operation,
        )

    def _create_request(
        self,
        session_id: str,
        from_teacher_id: str,
        to_teacher_id: str,
        studio_id: str,
        notes: Optional[str],
        **resolution: Any,
    ) -> ClassSwapRequest:
        return self.swap_request_repository.create(
            studio_id=studio_id,
            class_session_id=session_id,
            from_teacher_id=from_teacher_id,
            to_teacher_id=to_teacher_id,
            notes=notes,
            **resolution,
        )

    @staticmethod
    def _resolution(
        status: SwapRequestStatus,
        now: datetime,
        resolved_by_id: Optional[str],
        admin_notes: Optional[str],
    ) -> SwapRequestResolution:
        # Absent fields stay untouched on the request
        fields: Dict[str, Any] = {"status": status.value, "resolved_at": now}
        if resolved_by_id is not None:
            fields["resolved_by_id"] = resolved_by_id
        if admin_notes is not None:
            fields["admin_notes"] = admin_notes
        return SwapRequestResolution(**fields)

    def _reject(self, error: OperationError, message: str) -> SwapRequestResult:
        self.rollback()
        prometheus_metrics.record_booking_outcome("swap_request", error.value)
        return SwapRequestResult(
            ok=False, state=TransactionState.REJECTED, error=error, message=message
        )

    def _swap_failure(self, exc: BaseException, resource_id: str) -> SwapResult:
        error = error_for_exception(exc)
        if error == OperationError.NOT_FOUND:
            message = getattr(exc, "message", SESSION_NOT_FOUND_MESSAGE)
        elif error == OperationError.CONTENDED:
            message = CONTENDED_MESSAGE
        else:
            message = GENERIC_FAILURE_MESSAGE
            self.logger.error("Swap transaction failed for %s: %s", resource_id, exc, exc_info=True)
        return SwapResult(ok=False, state=TransactionState.FAILED, error=error, message=message)

    @staticmethod
    def _finish(result: SwapResult, operation: str) -> SwapResult:
        outcome = "committed" if result.ok else (result.error or OperationError.INFRA_ERROR).value
        prometheus_metrics.record_booking_outcome(operation, outcome)
        return result

    @staticmethod
    def _finish_request(result: SwapRequestResult, operation: str) -> SwapRequestResult:
        outcome = "committed" if result.ok else (result.error or OperationError.INFRA_ERROR).value
        prometheus_metrics.record_booking_outcome(operation, outcome)
        return result
