from .booking_service import BookingService
from .conflict_checker import ConflictChecker
from .execution_mode import get_execution_mode, run_batched_reads, run_queries
from .results import BookingResult, SwapRequestResult, SwapResult, WaitlistResult
from .teacher_swap_service import TeacherSwapService

__all__ = [
    "BookingResult",
    "BookingService",
    "ConflictChecker",
    "SwapRequestResult",
    "SwapResult",
    "TeacherSwapService",
    "WaitlistResult",
    "get_execution_mode",
    "run_batched_reads",
    "run_queries",
]
