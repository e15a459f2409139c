# campops_console/lifecycle/__init__.py
# LIFECYCLE PACKAGE INITIALIZATION

from .engine import LifecycleEngine
from .models import (BookingReportStatus, Camp, CampReportStatus, CampStatus,
                     PaymentStatus, Role, TestBooking, VendorStatus,
                     parse_booking, parse_camp)
from .results import ErrorKind, TransitionResult
from .status_clock import (BookingStage, CampStage, booking_stage, camp_stage,
                           is_current_day, is_overdue, is_same_calendar_day)
from .bookings import BookingDraft

__all__ = [
    "LifecycleEngine", "BookingDraft",
    "Camp", "TestBooking", "parse_camp", "parse_booking",
    "CampStatus", "CampReportStatus", "PaymentStatus", "VendorStatus", "BookingReportStatus", "Role",
    "ErrorKind", "TransitionResult",
    "CampStage", "BookingStage", "camp_stage", "booking_stage",
    "is_overdue", "is_current_day", "is_same_calendar_day",
]
