# campops_console/lifecycle/engine.py
# LIFECYCLE ENGINE - STORE-BOUND TRANSITIONS

"""
Binds the pure transitions in camps.py and bookings.py to a Store.

Every call reads the current record once, runs the guard, and performs a
single merge-write (or push for creates). Nothing here raises for
single-record problems: store failures and malformed records come back as a
TransitionResult with the matching ErrorKind.

Concurrent edits on the same record resolve by the store's last-write-wins;
there is no version check before the write.
"""

import logging
import random
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from config import settings
from data_processing.helpers import is_blank
from data_processing.store import Store, StoreUnavailableError
from . import bookings, camps
from .models import parse_booking
from .results import ErrorKind, TransitionResult

logger = logging.getLogger(__name__)

Transition = Callable[[Optional[Dict[str, Any]]], TransitionResult]


class LifecycleEngine:
    def __init__(
        self,
        store: Store,
        clock: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None,
        camps_collection: Optional[str] = None,
        bookings_collection: Optional[str] = None,
    ):
        self.store = store
        self.clock = clock or datetime.now
        self.rng = rng or random.Random()
        self.camps_collection = camps_collection or settings.CAMPS_COLLECTION
        self.bookings_collection = bookings_collection or settings.BOOKINGS_COLLECTION

    # --- Store plumbing ---
    def _now(self, now: Optional[datetime]) -> datetime:
        return now or self.clock()

    def _read_collection(self, collection: str) -> Any:
        try:
            raw = self.store.get(collection)
        except StoreUnavailableError as e:
            logger.error(f"({collection}) Read failed: {e}")
            return TransitionResult.failure(ErrorKind.STORE_UNAVAILABLE, "Could not reach the data store. Please try again.")
        return raw if isinstance(raw, dict) else {}

    def _apply(self, collection: str, record_id: str, transition: Transition, action: str) -> TransitionResult:
        path = f"{collection}/{record_id}"
        try:
            current = self.store.get(path)
        except StoreUnavailableError as e:
            logger.error(f"({record_id}) {action}: read failed: {e}")
            return TransitionResult.failure(ErrorKind.STORE_UNAVAILABLE, "Could not reach the data store. Please try again.", record_id)
        if current is not None and not isinstance(current, dict):
            logger.warning(f"({record_id}) {action}: stored value is not an object.")
            return TransitionResult.failure(ErrorKind.DATA_SHAPE_ANOMALY, "Record is malformed and cannot be updated", record_id)
        if current is not None:
            current = {**current, 'id': record_id}

        result = transition(current).with_record_id(record_id)
        if not result.ok:
            logger.warning(f"({record_id}) {action} rejected [{result.error.value}]: {result.message}")
            return result

        try:
            self.store.merge(path, result.patch)
        except StoreUnavailableError as e:
            logger.error(f"({record_id}) {action}: write failed: {e}")
            return TransitionResult.failure(ErrorKind.STORE_UNAVAILABLE, "Could not save changes. Please try again.", record_id)
        logger.info(f"({record_id}) {action} applied: {sorted(result.patch)}")
        return result

    def _create(self, collection: str, result: TransitionResult, action: str) -> TransitionResult:
        if not result.ok:
            logger.warning(f"({collection}) {action} rejected [{result.error.value}]: {result.message}")
            return result
        try:
            new_id = self.store.push(collection, result.patch)
        except StoreUnavailableError as e:
            logger.error(f"({collection}) {action}: write failed: {e}")
            return TransitionResult.failure(ErrorKind.STORE_UNAVAILABLE, "Could not save changes. Please try again.")
        logger.info(f"({new_id}) {action} created in '{collection}'.")
        return result.with_record_id(new_id)

    # --- Camps ---
    def existing_camp_codes(self) -> Any:
        raw = self._read_collection(self.camps_collection)
        if isinstance(raw, TransitionResult):
            return raw
        return [r.get('campCode') for r in raw.values() if isinstance(r, dict) and not is_blank(r.get('campCode'))]

    def schedule_camp(self, data: Dict[str, Any], actor: str, camp_id: Optional[str] = None,
                      now: Optional[datetime] = None) -> TransitionResult:
        """Creates a scheduled camp, or schedules the pending camp `camp_id` in place."""
        now = self._now(now)
        codes = self.existing_camp_codes()
        if isinstance(codes, TransitionResult):
            return codes

        if camp_id is None:
            result = camps.schedule_camp(None, data, actor, now, codes, self.rng)
            return self._create(self.camps_collection, result, "Schedule camp")
        return self._apply(
            self.camps_collection, camp_id,
            lambda current: camps.schedule_camp(current, data, actor, now, codes, self.rng),
            "Schedule camp",
        )

    def complete_camp(self, camp_id: str, data: Dict[str, Any], actor: str, now: Optional[datetime] = None) -> TransitionResult:
        now = self._now(now)
        return self._apply(self.camps_collection, camp_id, lambda c: camps.complete_camp(c, data, actor, now), "Complete camp")

    def cancel_camp(self, camp_id: str, actor: str, now: Optional[datetime] = None) -> TransitionResult:
        now = self._now(now)
        return self._apply(self.camps_collection, camp_id, lambda c: camps.cancel_camp(c, actor, now), "Cancel camp")

    def close_camp_report(self, camp_id: str, actor: str, data: Optional[Dict[str, Any]] = None,
                          now: Optional[datetime] = None) -> TransitionResult:
        now = self._now(now)
        return self._apply(self.camps_collection, camp_id,
                           lambda c: camps.close_camp_report(c, data or {}, actor, now), "Close camp report")

    def save_vendor_details(self, camp_id: str, data: Dict[str, Any], actor: str, now: Optional[datetime] = None) -> TransitionResult:
        now = self._now(now)
        return self._apply(self.camps_collection, camp_id,
                           lambda c: camps.save_vendor_details(c, data, actor, now), "Save vendor details")

    def save_test_counts(self, camp_id: str, data: Dict[str, Any], actor: str, now: Optional[datetime] = None) -> TransitionResult:
        now = self._now(now)
        return self._apply(self.camps_collection, camp_id,
                           lambda c: camps.save_test_counts(c, data, actor, now), "Save test counts")

    def update_camp_financials(self, camp_id: str, data: Dict[str, Any], actor: str, now: Optional[datetime] = None) -> TransitionResult:
        now = self._now(now)
        return self._apply(self.camps_collection, camp_id,
                           lambda c: camps.update_camp_financials(c, data, actor, now), "Update camp financials")

    def find_camp_by_code(self, code: str) -> TransitionResult:
        raw = self._read_collection(self.camps_collection)
        if isinstance(raw, TransitionResult):
            return raw
        wanted = (code or '').strip().upper()
        for record_id, record in raw.items():
            if isinstance(record, dict) and str(record.get('campCode') or '').strip().upper() == wanted and wanted:
                return TransitionResult(record_id=record_id, record={**record, 'id': record_id}, message="Camp found")
        return TransitionResult.failure(ErrorKind.NOT_FOUND, f"No camp found with code {code}")

    # --- Bookings ---
    def create_booking(self, data: Dict[str, Any], actor: str, now: Optional[datetime] = None) -> TransitionResult:
        now = self._now(now)
        return self._create(self.bookings_collection, bookings.create_booking(data, actor, now, self.rng), "Create booking")

    def update_payment(self, booking_id: str, data: Dict[str, Any], actor: str, now: Optional[datetime] = None) -> TransitionResult:
        now = self._now(now)
        return self._apply(self.bookings_collection, booking_id,
                           lambda c: bookings.update_payment(c, data, actor, now), "Update payment")

    def update_patient_details(self, booking_id: str, data: Dict[str, Any], actor: str,
                               now: Optional[datetime] = None) -> TransitionResult:
        now = self._now(now)
        return self._apply(self.bookings_collection, booking_id,
                           lambda c: bookings.update_patient_details(c, data, actor, now), "Update patient details")

    def set_vendor_status(self, booking_id: str, data: Dict[str, Any], actor: str, now: Optional[datetime] = None) -> TransitionResult:
        now = self._now(now)
        return self._apply(self.bookings_collection, booking_id,
                           lambda c: bookings.set_vendor_status(c, data, actor, now), "Set vendor status")

    def submit_report(self, booking_id: str, actor: str, now: Optional[datetime] = None) -> TransitionResult:
        now = self._now(now)
        return self._apply(self.bookings_collection, booking_id,
                           lambda c: bookings.submit_report(c, actor, now), "Submit report")

    def find_booking_by_code(self, code: str) -> TransitionResult:
        """Matches masterBookingId, any per-test code, or a legacy single testCode."""
        raw = self._read_collection(self.bookings_collection)
        if isinstance(raw, TransitionResult):
            return raw
        wanted = (code or '').strip().upper()
        if wanted:
            for record_id, record in raw.items():
                booking = parse_booking(record, record_id)
                if booking is None:
                    continue
                codes: List[str] = [booking.master_booking_id or ''] + booking.all_test_codes
                if wanted in (c.strip().upper() for c in codes if c):
                    return TransitionResult(record_id=record_id, record={**record, 'id': record_id}, message="Booking found")
        return TransitionResult.failure(ErrorKind.NOT_FOUND, f"No booking found with code {code}")
