# campops_console/tests/test_booking_lifecycle.py
# TEST BOOKING LIFECYCLE TESTS

import random
import re

import pytest

from lifecycle import BookingDraft, ErrorKind
from lifecycle import bookings
from lifecycle.bookings import compute_total_price, generate_master_booking_id, to_base36

PATIENT = {"name": "Kabir Khan", "mobileNo": "9811122233", "age": "41", "gender": "Male", "address": "9 Lake Road"}
PAID = {"paymentMode": "upi", "paymentReference": "TXN123", "paymentStatus": "pending"}


# --- Codes ---
def test_to_base36():
    assert to_base36(0) == "0"
    assert to_base36(35) == "z"
    assert to_base36(36) == "10"


def test_master_booking_id_format(now):
    assert re.fullmatch(r"BK-[0-9A-Z]+-[0-9A-Z]{3}", generate_master_booking_id(now, random.Random(5)))


# --- Draft & price totals ---
def test_draft_total_tracks_selected_tests():
    draft = BookingDraft()
    draft.add_item({"testName": "Blood Sugar", "testCode": "BST-1", "price": 300})
    draft.add_item({"testName": "HbA1c", "testCode": "HBA-1", "price": 400})
    assert draft.total_price == 700

    draft.remove_test(1)
    assert draft.total_price == 300
    assert draft.total_price == compute_total_price(draft.tests)


def test_select_test_from_catalog(now):
    draft = BookingDraft(rng=random.Random(9))
    first = draft.select_test("CBC", now)
    second = draft.select_test("CBC", now)
    assert re.fullmatch(r"CBC-[0-9A-Z]+-[0-9A-Z]{3}", first["testCode"])
    assert first["bookingId"] == f"BK-{first['testCode']}"
    assert first["testCode"] != second["testCode"]
    assert draft.total_price == 1000


def test_select_unknown_test_raises(now):
    with pytest.raises(KeyError):
        BookingDraft().select_test("Unobtainium Panel", now)


# --- Create ---
def _draft_tests(now):
    draft = BookingDraft(rng=random.Random(2))
    draft.select_test("Blood Sugar", now)
    draft.select_test("HbA1c", now)
    return draft.tests


def test_create_booking_recomputes_total_and_writes_metadata(now, actor):
    data = {**PATIENT, **PAID, "tests": _draft_tests(now), "totalPrice": 1}
    result = bookings.create_booking(data, actor, now, random.Random(4))
    assert result.ok
    record = result.patch
    assert record["totalPrice"] == 700
    assert record["testCount"] == 2
    assert record["testNames"] == ["Blood Sugar", "HbA1c"]
    assert record["testCodes"] == [t["testCode"] for t in record["tests"]]
    assert record["paymentStatus"] == "pending"
    assert record["submitter"] == {"email": actor, "submittedAt": now.isoformat()}
    assert record["metadata"]["createdAt"] == now.isoformat()
    assert record["metadata"]["entryType"] == "multiple_tests"
    assert record["masterBookingId"].startswith("BK-")


def test_create_requires_a_test(now, actor):
    result = bookings.create_booking({**PATIENT, **PAID, "tests": []}, actor, now)
    assert result.error == ErrorKind.GUARD_VIOLATION
    assert result.message == "Please select at least one test"


def test_create_requires_patient_fields(now, actor):
    result = bookings.create_booking({**PAID, "name": "X", "tests": _draft_tests(now)}, actor, now)
    assert result.error == ErrorKind.GUARD_VIOLATION
    assert "mobileNo" in result.message


def test_create_paid_booking_requires_payment_fields(now, actor):
    result = bookings.create_booking({**PATIENT, "paymentMode": "cash", "tests": _draft_tests(now)}, actor, now)
    assert result.error == ErrorKind.GUARD_VIOLATION


def test_create_free_booking(now, actor):
    result = bookings.create_booking({**PATIENT, "isFree": True, "tests": _draft_tests(now)}, actor, now)
    assert result.ok
    assert (result.patch["paymentMode"], result.patch["paymentReference"], result.patch["paymentStatus"]) == \
        ("free", "FREE", "completed")


def test_create_rejects_duplicate_test_codes(now, actor):
    tests = [{"testName": "CBC", "testCode": "CBC-1", "price": 500}] * 2
    result = bookings.create_booking({**PATIENT, **PAID, "tests": tests}, actor, now)
    assert result.error == ErrorKind.GUARD_VIOLATION


# --- Payment & patient details ---
def test_update_payment_only_while_not_completed(make_booking, actor, now):
    ok = bookings.update_payment(make_booking("pending"), {"paymentStatus": "completed"}, actor, now)
    assert ok.ok
    assert ok.patch["paymentStatus"] == "completed"
    assert ok.patch["metadata"]["createdAt"] == "2024-06-10T09:00:00"

    locked = bookings.update_payment(make_booking("completed"), {"paymentStatus": "failed"}, actor, now)
    assert locked.error == ErrorKind.GUARD_VIOLATION


def test_update_payment_rejects_non_payment_fields(make_booking, actor, now):
    result = bookings.update_payment(make_booking("failed"), {"paymentStatus": "completed", "name": "Z"}, actor, now)
    assert result.error == ErrorKind.GUARD_VIOLATION


def test_update_payment_rejects_unknown_status(make_booking, actor, now):
    result = bookings.update_payment(make_booking(), {"paymentStatus": "refunded"}, actor, now)
    assert result.error == ErrorKind.GUARD_VIOLATION


def test_patient_details_locked_after_payment(make_booking, actor, now):
    ok = bookings.update_patient_details(make_booking("pending"), {"age": "35"}, actor, now)
    assert ok.ok and ok.patch["age"] == "35"
    locked = bookings.update_patient_details(make_booking("completed"), {"age": "35"}, actor, now)
    assert locked.error == ErrorKind.GUARD_VIOLATION


def test_patient_details_cannot_blank_required_field(make_booking, actor, now):
    result = bookings.update_patient_details(make_booking(), {"name": "  "}, actor, now)
    assert result.error == ErrorKind.GUARD_VIOLATION


# --- Vendor & report ---
def test_vendor_status_requires_completed_payment(make_booking, actor, now):
    result = bookings.set_vendor_status(make_booking("pending"), {"vendorStatus": "completed"}, actor, now)
    assert result.error == ErrorKind.GUARD_VIOLATION


def test_vendor_status_merges_metadata(make_booking, actor, now):
    result = bookings.set_vendor_status(make_booking("completed"), {"vendorBookingId": "VB77"}, actor, now)
    assert result.ok
    assert result.patch["vendorStatus"] == "completed"
    assert result.patch["vendorBookingId"] == "VB77"
    metadata = result.patch["metadata"]
    assert metadata["vendorStatusUpdatedBy"] == actor
    assert metadata["createdAt"] == "2024-06-10T09:00:00"


def test_vendor_status_frozen_after_report_submitted(make_booking, actor, now):
    booking = make_booking("completed", vendorStatus="completed", vendorBookingId="VB1", reportStatus="submitted")
    result = bookings.set_vendor_status(booking, {"vendorBookingId": "VB2"}, actor, now)
    assert result.error == ErrorKind.GUARD_VIOLATION
    assert result.patch == {}


def test_submit_report_requires_vendor_check(make_booking, actor, now):
    result = bookings.submit_report(make_booking("completed"), actor, now)
    assert result.error == ErrorKind.GUARD_VIOLATION
    assert result.message == "Cannot update report status until vendor check is completed"


def test_submit_report_is_terminal(make_booking, actor, now):
    booking = make_booking("completed", vendorStatus="completed")
    result = bookings.submit_report(booking, actor, now)
    assert result.ok
    assert result.patch["reportStatus"] == "submitted"
    assert result.patch["metadata"]["reportStatusUpdatedBy"] == actor

    again = bookings.submit_report({**booking, **result.patch}, actor, now)
    assert again.error == ErrorKind.GUARD_VIOLATION


# --- Store-bound engine ---
def test_submit_report_on_pending_payment_leaves_store_unchanged(engine, store, put, make_booking, actor, bookings_path):
    booking_id = put(bookings_path, "-b1", make_booking("pending"))
    result = engine.submit_report(booking_id, actor)
    assert result.error == ErrorKind.GUARD_VIOLATION
    assert "reportStatus" not in store.get(f"{bookings_path}/{booking_id}")


def test_booking_workflow_through_engine(engine, store, actor, now, bookings_path):
    created = engine.create_booking({**PATIENT, **PAID, "tests": _draft_tests(now)}, actor)
    assert created.ok
    booking_id = created.record_id

    assert engine.update_payment(booking_id, {"paymentStatus": "completed"}, actor).ok
    assert engine.update_patient_details(booking_id, {"age": "50"}, actor).error == ErrorKind.GUARD_VIOLATION
    assert engine.set_vendor_status(booking_id, {"vendorStatus": "completed", "vendorBookingId": "VB1"}, actor).ok
    assert engine.submit_report(booking_id, actor).ok

    stored = store.get(f"{bookings_path}/{booking_id}")
    assert stored["reportStatus"] == "submitted"
    assert stored["totalPrice"] == 700
    assert stored["metadata"]["createdAt"] == now.isoformat()
    assert stored["metadata"]["vendorStatusUpdatedBy"] == actor
    assert stored["metadata"]["reportStatusUpdatedBy"] == actor


def test_find_booking_by_any_code(engine, put, make_booking, bookings_path):
    put(bookings_path, "-b2", make_booking())
    assert engine.find_booking_by_code("bk-lx1abc-7tt").record_id == "-b2"
    assert engine.find_booking_by_code("HBA-LX1ABC-K2P").record_id == "-b2"
    assert engine.find_booking_by_code("legacy-1").error == ErrorKind.NOT_FOUND

    put(bookings_path, "-b3", make_booking(testCode="LEGACY-1", tests=[], testCodes=[], masterBookingId=None))
    assert engine.find_booking_by_code("legacy-1").record_id == "-b3"


def test_create_booking_store_unavailable(engine, store, actor, now):
    store.available = False
    result = engine.create_booking({**PATIENT, **PAID, "tests": _draft_tests(now)}, actor, now)
    assert result.error == ErrorKind.STORE_UNAVAILABLE
    assert result.record_id is None
