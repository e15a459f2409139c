# campops_console/lifecycle/status_clock.py
# STATUS CLOCK - DERIVED STATUS FROM RAW FIELDS + "NOW"

"""
Pure classification of derived status. Nothing here reads the wall clock:
every function takes `now` explicitly, so the same (record, now) pair always
yields the same answer.
"""

from datetime import datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, Optional, Union

from config import settings
from data_processing.helpers import parse_datetime
from .models import (BookingReportStatus, Camp, CampReportStatus, CampStatus,
                     PaymentStatus, TestBooking, VendorStatus, parse_booking,
                     parse_camp)

CampLike = Union[Camp, Dict[str, Any]]
BookingLike = Union[TestBooking, Dict[str, Any]]


class CampStage(str, Enum):
    PENDING = "pending"
    INCOMPLETE = "incomplete"
    PENDING_CLOSURE = "pendingClosure"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class BookingStage(str, Enum):
    INCOMPLETE = "incomplete"
    PENDING_VENDOR = "pendingVendor"
    PENDING_REPORT = "pendingReport"
    COMPLETED = "completed"


def _as_camp(entity: CampLike) -> Optional[Camp]:
    return entity if isinstance(entity, Camp) else parse_camp(entity, entity.get('id') if isinstance(entity, dict) else None)


def _as_booking(entity: BookingLike) -> Optional[TestBooking]:
    return entity if isinstance(entity, TestBooking) else parse_booking(entity, entity.get('id') if isinstance(entity, dict) else None)


def is_same_calendar_day(value: Any, now: datetime) -> bool:
    """Compares year/month/day only; time of day is ignored."""
    day = parse_datetime(value)
    reference = parse_datetime(now)
    if day is None or reference is None:
        return False
    return day.date() == reference.date()


def is_current_day(entity: CampLike, now: datetime) -> bool:
    camp = _as_camp(entity)
    return camp is not None and camp.date is not None and is_same_calendar_day(camp.date, now)


def is_overdue(entity: CampLike, now: datetime) -> bool:
    """
    A camp not yet completed is overdue from the day after its date; a camp
    dated today never is. A completed camp without a sent report is overdue
    once more than three days have passed since its date. Cancelled camps and
    camps without a readable date are never overdue.
    """
    camp = _as_camp(entity)
    if camp is None or camp.date is None:
        return False
    reference = parse_datetime(now)
    if reference is None:
        return False

    camp_day = datetime.combine(camp.date.date(), time.min)
    if camp.status == CampStatus.CANCELLED:
        return False

    if camp.status != CampStatus.COMPLETED:
        if camp_day.date() == reference.date():
            return False
        return reference >= camp_day + timedelta(days=settings.WORKFLOW.overdue_grace_days)

    if camp.report_status is None:
        return reference > camp_day + timedelta(days=settings.WORKFLOW.pending_closure_days)

    return False


def camp_stage(entity: CampLike) -> Optional[CampStage]:
    camp = _as_camp(entity)
    if camp is None:
        return None
    if camp.status == CampStatus.CANCELLED:
        return CampStage.CANCELLED
    if camp.status == CampStatus.PENDING:
        return CampStage.PENDING
    if camp.status == CampStatus.COMPLETED:
        if camp.report_status == CampReportStatus.SENT:
            return CampStage.CLOSED
        return CampStage.PENDING_CLOSURE
    return CampStage.INCOMPLETE


def booking_stage(entity: BookingLike) -> Optional[BookingStage]:
    booking = _as_booking(entity)
    if booking is None:
        return None
    if booking.payment_status != PaymentStatus.COMPLETED:
        return BookingStage.INCOMPLETE
    if booking.vendor_status != VendorStatus.COMPLETED:
        return BookingStage.PENDING_VENDOR
    if booking.report_status != BookingReportStatus.SUBMITTED:
        return BookingStage.PENDING_REPORT
    return BookingStage.COMPLETED
