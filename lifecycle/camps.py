# campops_console/lifecycle/camps.py
# CAMP LIFECYCLE - PURE TRANSITIONS

"""
Camp state machine. Every transition is a pure function
`(current, data, actor, now) -> TransitionResult`: it either returns the full
patch for a single merge-write or a failure, never a partial patch.

    (none|pending) --schedule--> scheduled --complete--> completed --close_report--> report sent
                                 scheduled --cancel----> cancelled

Vendor details and test counts are one-shot locks: the first complete write
sticks, later writes report ALREADY_LOCKED.
"""

import logging
import random
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from config import settings
from data_processing.helpers import calendar_day, coerce_number, is_blank, to_iso
from .models import Camp, CampReportStatus, CampStatus, parse_camp
from .results import ErrorKind, TransitionResult

logger = logging.getLogger(__name__)

STAFF_ENTRY_PATTERN = re.compile(r'^\s*\S.*\(\s*[^()]+\s*\)\s*$')
PIN_CODE_PATTERN = re.compile(r'^\d{6}$')
MOBILE_PATTERN = re.compile(r'^\d{10}$')

# Fields no caller-supplied payload may write directly.
PROTECTED_FIELDS = {
    'id', 'status', 'reportStatus', 'createdAt', 'createdBy', 'completedAt', 'completedBy',
    'cancelledAt', 'cancelledBy', 'reportStatusUpdatedAt', 'reportStatusUpdatedBy',
    'lastModified', 'lastModifiedBy',
}
MAX_CODE_ATTEMPTS = 25


# --- Helpers ---
def _audit(action: str, actor: str, now: datetime) -> Dict[str, Any]:
    return {f"{action}At": to_iso(now), f"{action}By": actor}


def _touch(actor: str, now: datetime) -> Dict[str, Any]:
    return {'lastModified': to_iso(now), 'lastModifiedBy': actor}


def _missing(data: Dict[str, Any], fields: Iterable[str]) -> List[str]:
    return [f for f in fields if is_blank(data.get(f))]


def _numeric_value(value: Any) -> Optional[float]:
    number = coerce_number(value)
    if number is not None and number.is_integer():
        return int(number)
    return number


def _load(current: Optional[Dict[str, Any]]) -> Any:
    """Returns a Camp, or a failure result when the record is absent or malformed."""
    if current is None:
        return TransitionResult.failure(ErrorKind.NOT_FOUND, "Camp not found")
    camp = parse_camp(current, current.get('id'))
    if camp is None:
        return TransitionResult.failure(ErrorKind.DATA_SHAPE_ANOMALY, "Camp record is malformed and cannot be updated")
    return camp


def _status_label(camp: Camp) -> str:
    return camp.status.value if camp.status else "unknown"


def generate_camp_code(camp_date: Any, rng: Optional[random.Random] = None) -> str:
    """MSHC + YYYYMMDD of the camp date + four random digits."""
    rng = rng or random.Random()
    day = calendar_day(camp_date)
    date_part = day.strftime('%Y%m%d') if day else ''
    return f"{settings.CAMP_CODE_PREFIX}{date_part}{rng.randrange(10000):04d}"


def validate_camp_details(data: Dict[str, Any]) -> Dict[str, str]:
    """Field-level validation for scheduling; returns {field: message}."""
    errors: Dict[str, str] = {f: "This field is required" for f in _missing(data, settings.CAMP_REQUIRED_FIELDS)}

    if 'date' not in errors and calendar_day(data.get('date')) is None:
        errors['date'] = "Camp date is not a valid date"
    pin_code = data.get('pinCode')
    if not is_blank(pin_code) and not PIN_CODE_PATTERN.match(str(pin_code).strip()):
        errors['pinCode'] = "Pin code must be 6 digits"
    mobile = data.get('mobileNo')
    if not is_blank(mobile) and not MOBILE_PATTERN.match(str(mobile).strip()):
        errors['mobileNo'] = "Mobile number must be 10 digits"

    for staff_field in settings.CAMP_STAFF_FIELDS:
        value = data.get(staff_field)
        if is_blank(value):
            errors[staff_field] = "Staff member is required"
        elif not STAFF_ENTRY_PATTERN.match(str(value)):
            errors[staff_field] = "Invalid staff format. Use: NAME (CODE)"
    return errors


def _format_errors(errors: Dict[str, str]) -> str:
    return "; ".join(f"{f}: {msg}" for f, msg in errors.items())


# --- Transitions ---
def schedule_camp(
    current: Optional[Dict[str, Any]],
    data: Dict[str, Any],
    actor: str,
    now: datetime,
    existing_codes: Iterable[str] = (),
    rng: Optional[random.Random] = None,
) -> TransitionResult:
    """
    Creates a scheduled camp, or schedules a camp awaiting approval in place.
    The camp code must be unique; a generated code is re-rolled on collision.
    """
    camp: Optional[Camp] = None
    if current is not None:
        loaded = _load(current)
        if isinstance(loaded, TransitionResult):
            return loaded
        camp = loaded
        if camp.status != CampStatus.PENDING:
            return TransitionResult.failure(
                ErrorKind.GUARD_VIOLATION,
                f"Camp is already {_status_label(camp)}; only camps awaiting approval can be scheduled",
            )

    merged = {**(current or {}), **data}
    errors = validate_camp_details(merged)
    if errors:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, f"Camp details are incomplete: {_format_errors(errors)}")

    own_code = (camp.camp_code or '').strip().upper() if camp else ''
    taken = {str(c).strip().upper() for c in existing_codes if not is_blank(c)} - {own_code}
    supplied = merged.get('campCode')
    if own_code:
        # An assigned code never changes.
        if not is_blank(data.get('campCode')) and str(data['campCode']).strip().upper() != own_code:
            return TransitionResult.failure(
                ErrorKind.GUARD_VIOLATION, f"Camp code {camp.camp_code} is already assigned and cannot be changed"
            )
        code = camp.camp_code.strip()
    elif not is_blank(supplied):
        code = str(supplied).strip().upper()
        if code in taken:
            return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, f"Camp code {code} already exists")
    else:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_camp_code(merged.get('date'), rng)
            if code not in taken:
                break
        else:
            return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, "Could not generate a unique camp code")

    patch = {k: v for k, v in data.items() if k not in PROTECTED_FIELDS}
    patch.update(campCode=code, status=CampStatus.SCHEDULED.value, isConfirmed=True, **_touch(actor, now))
    if current is None:
        patch.update(_audit('created', actor, now))
    return TransitionResult.success(patch, "Camp scheduled successfully!")


def complete_camp(current: Optional[Dict[str, Any]], data: Dict[str, Any], actor: str, now: datetime) -> TransitionResult:
    """Locks the camp's financials and marks it completed."""
    loaded = _load(current)
    if isinstance(loaded, TransitionResult):
        return loaded
    camp: Camp = loaded
    if camp.status != CampStatus.SCHEDULED:
        return TransitionResult.failure(
            ErrorKind.GUARD_VIOLATION, f"Only scheduled camps can be completed; this camp is {_status_label(camp)}"
        )

    merged = {**current, **data}
    missing = _missing(merged, settings.CAMP_COMPLETION_FIELDS)
    if missing:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, f"Missing required financial fields: {', '.join(missing)}")
    not_numeric = [f for f in settings.CAMP_COMPLETION_FIELDS if coerce_number(merged.get(f)) is None]
    if not_numeric:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, f"Financial fields must be numeric: {', '.join(not_numeric)}")

    patch: Dict[str, Any] = {}
    for f in settings.CAMP_FINANCIAL_FIELDS:
        if f in data and not is_blank(data[f]):
            patch[f] = data[f] if f == 'transactionId' else _numeric_value(data[f])
    if not camp.vendor_details_locked:
        patch.update({f: data[f] for f in settings.CAMP_VENDOR_FIELDS if not is_blank(data.get(f))})
    if not camp.test_counts_locked:
        patch.update({f: _numeric_value(data[f]) for f in settings.CAMP_TEST_COUNT_FIELDS if not is_blank(data.get(f))})
    patch.update(status=CampStatus.COMPLETED.value, **_audit('completed', actor, now), **_touch(actor, now))
    return TransitionResult.success(patch, "Camp completed successfully!")


def cancel_camp(current: Optional[Dict[str, Any]], actor: str, now: datetime) -> TransitionResult:
    loaded = _load(current)
    if isinstance(loaded, TransitionResult):
        return loaded
    camp: Camp = loaded
    if camp.status not in (CampStatus.SCHEDULED, CampStatus.PENDING):
        return TransitionResult.failure(
            ErrorKind.GUARD_VIOLATION, f"Cannot cancel a camp that is {_status_label(camp)}"
        )
    patch = {'status': CampStatus.CANCELLED.value, **_audit('cancelled', actor, now), **_touch(actor, now)}
    return TransitionResult.success(patch, "Camp cancelled successfully!")


def close_camp_report(current: Optional[Dict[str, Any]], data: Dict[str, Any], actor: str, now: datetime) -> TransitionResult:
    """Marks a completed camp's report as sent. Requires valid vendor details."""
    loaded = _load(current)
    if isinstance(loaded, TransitionResult):
        return loaded
    camp: Camp = loaded
    if camp.status != CampStatus.COMPLETED:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, "Camp must be completed before its report can be closed")
    if camp.report_status == CampReportStatus.SENT:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, "Camp report has already been sent")

    vendor_patch: Dict[str, Any] = {}
    if not camp.vendor_details_locked:
        vendor_patch = {f: data[f] for f in settings.CAMP_VENDOR_FIELDS if not is_blank(data.get(f))}
    merged = {**current, **vendor_patch}
    missing = _missing(merged, settings.CAMP_VENDOR_FIELDS)
    if missing:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, f"Vendor details required before closing: {', '.join(missing)}")
    if not MOBILE_PATTERN.match(str(merged['phleboMobileNo']).strip()):
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, "Phlebotomist mobile number must be 10 digits")

    patch = {**vendor_patch, 'reportStatus': CampReportStatus.SENT.value,
             **_audit('reportStatusUpdated', actor, now), **_touch(actor, now)}
    return TransitionResult.success(patch, "Camp report marked as sent")


def save_vendor_details(current: Optional[Dict[str, Any]], data: Dict[str, Any], actor: str, now: datetime) -> TransitionResult:
    loaded = _load(current)
    if isinstance(loaded, TransitionResult):
        return loaded
    camp: Camp = loaded
    if camp.vendor_details_locked:
        return TransitionResult.failure(ErrorKind.ALREADY_LOCKED, "Vendor details already saved; no new changes to save")
    if camp.is_terminal:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, f"Camp is {_status_label(camp)}; vendor details are read-only")

    missing = _missing(data, settings.CAMP_VENDOR_FIELDS)
    if missing:
        return TransitionResult.failure(
            ErrorKind.GUARD_VIOLATION, "Please provide vendor name, phlebotomist name and mobile number"
        )
    if not MOBILE_PATTERN.match(str(data['phleboMobileNo']).strip()):
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, "Mobile number must be 10 digits")
    if data['vendorName'] not in settings.VENDOR_CODES:
        logger.warning(f"({camp.camp_code}) Vendor '{data['vendorName']}' is not in the configured vendor list.")

    patch = {f: data[f] for f in settings.CAMP_VENDOR_FIELDS}
    patch.update(_touch(actor, now))
    return TransitionResult.success(patch, "Vendor details saved successfully!")


def save_test_counts(current: Optional[Dict[str, Any]], data: Dict[str, Any], actor: str, now: datetime) -> TransitionResult:
    loaded = _load(current)
    if isinstance(loaded, TransitionResult):
        return loaded
    camp: Camp = loaded
    if camp.test_counts_locked:
        return TransitionResult.failure(ErrorKind.ALREADY_LOCKED, "Tests count already saved; no new changes to save")
    if camp.is_terminal:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, f"Camp is {_status_label(camp)}; test counts are read-only")

    provided = {f: data.get(f) for f in settings.CAMP_TEST_COUNT_FIELDS if not is_blank(data.get(f))}
    if not provided:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, "No new changes to save or required fields are missing")
    invalid = [f for f, v in provided.items() if coerce_number(v) is None]
    if invalid:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, f"Test counts must be numeric: {', '.join(invalid)}")

    patch: Dict[str, Any] = {f: _numeric_value(v) for f, v in provided.items()}
    patch.update(_touch(actor, now))
    return TransitionResult.success(patch, "Tests count saved successfully!")


def update_camp_financials(current: Optional[Dict[str, Any]], data: Dict[str, Any], actor: str, now: datetime) -> TransitionResult:
    """Writes financial fields; allowed only before the camp is completed or cancelled."""
    loaded = _load(current)
    if isinstance(loaded, TransitionResult):
        return loaded
    camp: Camp = loaded
    if camp.is_terminal:
        return TransitionResult.failure(
            ErrorKind.GUARD_VIOLATION, f"Financial fields are locked; camp is {_status_label(camp)}"
        )

    unknown = sorted(set(data) - set(settings.CAMP_FINANCIAL_FIELDS))
    if unknown:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, f"Not financial fields: {', '.join(unknown)}")
    provided = {f: v for f, v in data.items() if not is_blank(v)}
    if not provided:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, "No financial fields to update")
    invalid = [f for f, v in provided.items() if f != 'transactionId' and coerce_number(v) is None]
    if invalid:
        return TransitionResult.failure(ErrorKind.GUARD_VIOLATION, f"Financial fields must be numeric: {', '.join(invalid)}")

    patch: Dict[str, Any] = {f: (v if f == 'transactionId' else _numeric_value(v)) for f, v in provided.items()}
    patch.update(_touch(actor, now))
    return TransitionResult.success(patch, "Financial details updated")
