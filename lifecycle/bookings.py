# campops_console/lifecycle/bookings.py
# TEST BOOKING LIFECYCLE - DRAFT & PURE TRANSITIONS

"""
Booking workflow: payment -> vendor check -> report submission.

`BookingDraft` holds the tests selected for a new booking and keeps
totalPrice equal to the sum of test prices after every change. The
transitions mirror camps.py: pure functions returning a TransitionResult.

Audit fields for bookings live under `metadata`. Because a merge-write is
shallow, any patch that touches metadata carries the full merged subtree.
"""

import logging
import random
import string
from datetime import datetime
from typing import Any, Dict, List, Optional

from config import settings
from data_processing.helpers import coerce_number, is_blank, to_iso
from .models import (BookingReportStatus, PaymentStatus, TestBooking,
                     VendorStatus, coerce_enum, parse_booking)
from .results import ErrorKind, TransitionResult

logger = logging.getLogger(__name__)

BASE36_ALPHABET = string.digits + string.ascii_lowercase
FREE_PAYMENT = {'paymentMode': 'free', 'paymentReference': 'FREE', 'paymentStatus': PaymentStatus.COMPLETED.value}


# --- Code generation ---
def to_base36(number: int) -> str:
    if number == 0:
        return '0'
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return ''.join(reversed(digits))


def _random_suffix(rng: random.Random, length: int = 3) -> str:
    return ''.join(rng.choice(BASE36_ALPHABET) for _ in range(length))


def _epoch_ms(now: datetime) -> int:
    return int(now.timestamp() * 1000)


def generate_test_code(catalog_code: str, now: datetime, rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    return f"{catalog_code}-{to_base36(_epoch_ms(now))}-{_random_suffix(rng)}".upper()


def generate_master_booking_id(now: datetime, rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    return f"BK-{to_base36(_epoch_ms(now))}-{_random_suffix(rng)}".upper()


def compute_total_price(tests: List[Dict[str, Any]]) -> float:
    return float(sum(coerce_number(t.get('price')) or 0.0 for t in tests))


# --- Draft ---
class BookingDraft:
    """Tests selected for a booking that has not been created yet."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self.tests: List[Dict[str, Any]] = []
        self.total_price: float = 0.0

    def _recompute(self) -> None:
        self.total_price = compute_total_price(self.tests)

    def select_test(self, test_name: str, now: datetime) -> Dict[str, Any]:
        """Adds a catalog test with a code unique within this booking."""
        entry = settings.TEST_CATALOG.get(test_name)
        if entry is None:
            raise KeyError(f"Unknown test '{test_name}'")
        taken = {t['testCode'] for t in self.tests}
        code = generate_test_code(entry.code, now, self.rng)
        while code in taken:
            code = generate_test_code(entry.code, now, self.rng)
        item = {'testName': test_name, 'testCode': code, 'price': entry.price, 'bookingId': f"BK-{code}"}
        self.tests.append(item)
        self._recompute()
        return item

    def add_item(self, item: Dict[str, Any]) -> None:
        self.tests.append(dict(item))
        self._recompute()

    def remove_test(self, index: int) -> Dict[str, Any]:
        removed = self.tests.pop(index)
        self._recompute()
        return removed

    def clear(self) -> None:
        self.tests = []
        self._recompute()


# --- Helpers ---
def _load(current: Optional[Dict[str, Any]]) -> Any:
    if current is None:
        return TransitionResult.failure(ErrorKind.NOT_FOUND, "Booking not found")
    booking = parse_booking(current, current.get('id'))
    if booking is None:
        return TransitionResult.failure(ErrorKind.DATA_SHAPE_ANOMALY, "Booking record is malformed and cannot be updated")
    return booking


def _metadata(current: Dict[str, Any], now: datetime, **extra: Any) -> Dict[str, Any]:
    existing = current.get('metadata')
    merged = dict(existing) if isinstance(existing, dict) else {}
    merged.update(lastModified=to_iso(now), **extra)
    return merged


def _missing(data: Dict[str, Any], fields: List[str]) -> List[str]:
    return [f for f in fields if is_blank(data.get(f))]


def _payment_fields(data: Dict[str, Any]) -> Any:
    """Validated payment triad for a paid booking, or a failure result."""
    missing = _missing(data, settings.BOOKING_PAYMENT_FIELDS)
    if missing:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, "Please fill in all payment details")
    status = coerce_enum(PaymentStatus, data['paymentStatus'])
    if status is None:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, f"Unknown payment status '{data['paymentStatus']}'")
    return {
        'paymentMode': str(data['paymentMode']).strip(),
        'paymentReference': str(data['paymentReference']).strip(),
        'paymentStatus': status.value,
    }


# --- Transitions ---
def create_booking(data: Dict[str, Any], actor: str, now: datetime, rng: Optional[random.Random] = None) -> TransitionResult:
    """
    Builds the full record for a new booking. `data['tests']` is the list of
    selected test items; totalPrice is always recomputed from it.
    """
    tests = [dict(t) for t in (data.get('tests') or []) if isinstance(t, dict)]
    if not tests:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, "Please select at least one test")
    missing = _missing(data, settings.BOOKING_REQUIRED_FIELDS)
    if missing:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, f"Please fill in all required fields: {', '.join(missing)}")
    codes = [t.get('testCode') for t in tests]
    if any(is_blank(c) for c in codes) or len(set(codes)) != len(codes):
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, "Every selected test needs a unique test code")

    is_free = data.get('isFree') is True
    if is_free:
        payment = dict(FREE_PAYMENT)
    else:
        payment = _payment_fields(data)
        if isinstance(payment, TransitionResult):
            return payment

    stamp = to_iso(now)
    record: Dict[str, Any] = {f: data[f] for f in settings.BOOKING_PATIENT_FIELDS if f in data}
    record['hasPartner'] = data.get('hasPartner') is True
    if not record['hasPartner']:
        record.update(partnerName='', partnerReferenceId='')
    record.update(
        tests=tests,
        totalPrice=compute_total_price(tests),
        testCount=len(tests),
        masterBookingId=generate_master_booking_id(now, rng),
        testCodes=codes,
        testNames=[t.get('testName') for t in tests],
        isFree=is_free,
        submitter={'email': actor, 'submittedAt': stamp},
        metadata={'createdAt': stamp, 'lastModified': stamp, 'status': 'active', 'entryType': 'multiple_tests'},
        **payment,
    )
    return TransitionResult.success(record, f"Successfully added {len(tests)} test(s)!")


def update_payment(current: Optional[Dict[str, Any]], data: Dict[str, Any], actor: str, now: datetime) -> TransitionResult:
    loaded = _load(current)
    if isinstance(loaded, TransitionResult):
        return loaded
    booking: TestBooking = loaded
    if booking.payment_status == PaymentStatus.COMPLETED:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, "Payment is already completed; booking details are read-only")
    extra = sorted(set(data) - set(settings.BOOKING_PAYMENT_FIELDS) - {'isFree'})
    if extra:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, f"Only payment fields can be updated here: {', '.join(extra)}")
    if data.get('isFree') is True and not booking.is_free:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, "Cannot change a paid booking to free after submission")

    payment = _payment_fields({**current, **data})
    if isinstance(payment, TransitionResult):
        return payment
    patch = {**payment, 'metadata': _metadata(current, now, paymentUpdatedBy=actor)}
    return TransitionResult.success(patch, "Payment details updated successfully!")


def update_patient_details(current: Optional[Dict[str, Any]], data: Dict[str, Any], actor: str, now: datetime) -> TransitionResult:
    loaded = _load(current)
    if isinstance(loaded, TransitionResult):
        return loaded
    booking: TestBooking = loaded
    if booking.payment_status == PaymentStatus.COMPLETED:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, "Patient details are locked once payment is completed")
    extra = sorted(set(data) - set(settings.BOOKING_PATIENT_FIELDS))
    if extra:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, f"Not patient fields: {', '.join(extra)}")
    if not data:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, "No new changes to save")
    missing = _missing({**current, **data}, settings.BOOKING_REQUIRED_FIELDS)
    if missing:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, f"Please fill in all required fields: {', '.join(missing)}")

    patch = {**data, 'metadata': _metadata(current, now, lastModifiedBy=actor)}
    return TransitionResult.success(patch, "Patient details updated successfully!")


def set_vendor_status(current: Optional[Dict[str, Any]], data: Dict[str, Any], actor: str, now: datetime) -> TransitionResult:
    loaded = _load(current)
    if isinstance(loaded, TransitionResult):
        return loaded
    booking: TestBooking = loaded
    if booking.report_status == BookingReportStatus.SUBMITTED:
        return TransitionResult.failure(
            ErrorKind.GUARD_VIOLATION, "Report has already been submitted; vendor details can no longer change"
        )
    if booking.payment_status != PaymentStatus.COMPLETED:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, "Payment must be completed before the vendor check")
    status = coerce_enum(VendorStatus, data.get('vendorStatus', VendorStatus.COMPLETED.value))
    if status is None:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, f"Unknown vendor status '{data.get('vendorStatus')}'")

    patch: Dict[str, Any] = {'vendorStatus': status.value}
    if not is_blank(data.get('vendorBookingId')):
        patch['vendorBookingId'] = str(data['vendorBookingId']).strip()
    patch['metadata'] = _metadata(current, now, vendorStatusUpdatedAt=to_iso(now), vendorStatusUpdatedBy=actor)
    return TransitionResult.success(patch, "Vendor status updated successfully!")


def submit_report(current: Optional[Dict[str, Any]], actor: str, now: datetime) -> TransitionResult:
    loaded = _load(current)
    if isinstance(loaded, TransitionResult):
        return loaded
    booking: TestBooking = loaded
    if booking.report_status == BookingReportStatus.SUBMITTED:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, "Report has already been submitted")
    if booking.payment_status != PaymentStatus.COMPLETED or booking.vendor_status != VendorStatus.COMPLETED:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, "Cannot update report status until vendor check is completed")

    stamp = to_iso(now)
    patch = {
        'reportStatus': BookingReportStatus.SUBMITTED.value,
        'metadata': _metadata(current, now, reportStatusUpdatedAt=stamp, reportStatusUpdatedBy=actor),
    }
    return TransitionResult.success(patch, "Report status updated successfully!")
