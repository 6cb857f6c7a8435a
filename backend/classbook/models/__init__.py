from .booking import Booking
from .class_session import ClassSession
from .swap_request import ClassSwapRequest
from .teacher_blocked_time import TeacherBlockedTime
from .waitlist_entry import WaitlistEntry

__all__ = ["Booking", "ClassSession", "ClassSwapRequest", "TeacherBlockedTime", "WaitlistEntry"]
