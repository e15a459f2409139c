# campops_console/generate_data.py
# SYNTHETIC CAMP & BOOKING DATA GENERATOR

"""
Generates realistic-looking camp and test-booking collections, shaped exactly
as the store holds them, and seeds an InMemoryStore with them. Used by the
console demo and by the test-suite fixtures.

Run directly to write both collections to CSV:
    python generate_data.py --camps 200 --bookings 600 --out data_sources
"""

import argparse
import logging
import random
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd

from config import settings
from data_processing.store import InMemoryStore
from lifecycle.bookings import generate_master_booking_id, generate_test_code

logger = logging.getLogger(__name__)

# --- Configuration for Data Generation ---
NUM_CAMPS = 120
NUM_BOOKINGS = 400
DAYS_BACK = 90
DAYS_AHEAD = 21

CLINIC_CODES = ["CL-PUN-01", "CL-PUN-02", "CL-MUM-01", "CL-NSK-01", "CL-NGP-01"]
DISTRICTS = {"Pune": "Maharashtra", "Mumbai": "Maharashtra", "Nashik": "Maharashtra",
             "Indore": "Madhya Pradesh", "Bhopal": "Madhya Pradesh"}
STAFF = {
    "nurseName": ["ASHA PATIL (N101)", "MEERA JOSHI (N102)", "KAVITA RAO (N103)"],
    "teamLeader": ["RAHUL DESAI (TL11)", "SNEHA KULKARNI (TL12)"],
    "dcName": ["AMIT SHAH (DC21)", "PRIYA NAIR (DC22)"],
    "agentName": ["VIKRAM SINGH (AG31)", "NEHA GUPTA (AG32)", "ROHAN MEHTA (AG33)"],
    "roName": ["SURESH IYER (RO41)", "ANJALI VERMA (RO42)"],
    "somName": ["DEEPAK MISHRA (SOM51)"],
}
PARTNERS = ["", "", "", "HUMANA", "M-AFFINITY", "PAHAL"]
FIRST_NAMES = ["Aarav", "Diya", "Ishaan", "Ananya", "Kabir", "Saanvi", "Vivaan", "Myra", "Arjun", "Kiara"]
LAST_NAMES = ["Sharma", "Patil", "Kulkarni", "Deshmukh", "Reddy", "Iyer", "Khan", "Das"]
PAYMENT_MODES = ["cash", "upi", "card"]

CAMP_STATUS_WEIGHTS = {"pending": 0.1, "scheduled": 0.35, "completed": 0.5, "cancelled": 0.05}


def _record_id(rng: random.Random) -> str:
    return f"-{uuid.UUID(int=rng.getrandbits(128)).hex[:20]}"


def _mobile(rng: random.Random) -> str:
    return f"{rng.choice('6789')}{rng.randrange(10 ** 9):09d}"


def generate_camp(rng: random.Random, now: datetime) -> Dict[str, Any]:
    day = (now - timedelta(days=rng.randint(-DAYS_AHEAD, DAYS_BACK))).replace(hour=0, minute=0, second=0, microsecond=0)
    status = rng.choices(list(CAMP_STATUS_WEIGHTS), weights=list(CAMP_STATUS_WEIGHTS.values()))[0]
    if day > now and status == "completed":
        status = "scheduled"
    district = rng.choice(list(DISTRICTS))
    created = day - timedelta(days=rng.randint(3, 20))

    camp: Dict[str, Any] = {
        "campCode": f"{settings.CAMP_CODE_PREFIX}{day.strftime('%Y%m%d')}{rng.randrange(10000):04d}",
        "clinicCode": rng.choice(CLINIC_CODES),
        "date": day.isoformat(),
        "address": f"{rng.randint(1, 300)} Market Road",
        "district": district,
        "state": DISTRICTS[district],
        "pinCode": f"{rng.randint(400001, 499999)}",
        "mobileNo": _mobile(rng),
        "partnerName": rng.choice(PARTNERS),
        "status": status,
        "isConfirmed": status != "pending",
        "createdAt": created.isoformat(),
        "createdBy": "scheduler@campops.example",
        "lastModified": created.isoformat(),
    }
    camp.update({f: rng.choice(names) for f, names in STAFF.items()})

    if status == "completed":
        units = rng.randint(5, 60)
        camp.update(
            unitsSold=units,
            revenue=units * rng.choice([300, 500, 800]),
            marketingExpense=rng.randint(500, 3000),
            operationalExpense=rng.randint(1000, 5000),
            amountPaidToFinance=units * 250,
            completedAt=(day + timedelta(hours=18)).isoformat(),
            completedBy="field@campops.example",
            lastModified=(day + timedelta(hours=18)).isoformat(),
        )
        if camp["partnerName"]:
            adjusted = rng.randint(0, 10)
            camp.update(partnerAdjustedCount=adjusted,
                        partnerAdjustmentAmount=adjusted * settings.PARTNER_PRICES[camp["partnerName"]])
        if rng.random() < 0.7:
            camp.update(vendorName=rng.choice(settings.VENDOR_CODES), phleboName="RAVI KUMAR", phleboMobileNo=_mobile(rng))
            camp.update(totalConversions=rng.randint(0, units), totalSales=rng.randint(0, units))
        if "vendorName" in camp and rng.random() < 0.6:
            sent = day + timedelta(days=rng.randint(1, 5))
            camp.update(reportStatus="sent", reportStatusUpdatedAt=sent.isoformat(), reportStatusUpdatedBy="ops@campops.example")
    elif status == "cancelled":
        camp.update(cancelledAt=(day - timedelta(days=1)).isoformat(), cancelledBy="ops@campops.example")
    return camp


def generate_booking(rng: random.Random, now: datetime) -> Dict[str, Any]:
    created = now - timedelta(days=rng.randint(0, DAYS_BACK), minutes=rng.randint(0, 1439))
    names = rng.sample(list(settings.TEST_CATALOG), k=rng.randint(1, 3))
    tests = []
    for name in names:
        code = generate_test_code(settings.TEST_CATALOG[name].code, created, rng)
        tests.append({"testName": name, "testCode": code, "price": settings.TEST_CATALOG[name].price, "bookingId": f"BK-{code}"})

    is_free = rng.random() < 0.1
    payment_status = "completed" if is_free else rng.choices(["pending", "completed", "failed"], weights=[0.25, 0.65, 0.1])[0]
    district = rng.choice(list(DISTRICTS))
    partner = rng.choice(PARTNERS)
    booking: Dict[str, Any] = {
        "name": f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}",
        "mobileNo": _mobile(rng),
        "age": str(rng.randint(18, 80)),
        "gender": rng.choice(["Male", "Female"]),
        "district": district,
        "state": DISTRICTS[district],
        "city": district,
        "pincode": f"{rng.randint(400001, 499999)}",
        "address": f"{rng.randint(1, 300)} Station Road",
        "hasPartner": bool(partner),
        "partnerName": partner,
        "partnerReferenceId": f"REF{rng.randrange(100000)}" if partner else "",
        "tests": tests,
        "totalPrice": float(sum(t["price"] for t in tests)),
        "testCount": len(tests),
        "masterBookingId": generate_master_booking_id(created, rng),
        "testCodes": [t["testCode"] for t in tests],
        "testNames": names,
        "isFree": is_free,
        "paymentMode": "free" if is_free else rng.choice(PAYMENT_MODES),
        "paymentReference": "FREE" if is_free else f"TXN{rng.randrange(10 ** 8):08d}",
        "paymentStatus": payment_status,
        "submitter": {"email": "desk@campops.example", "submittedAt": created.isoformat()},
        "metadata": {"createdAt": created.isoformat(), "lastModified": created.isoformat(),
                     "status": "active", "entryType": "multiple_tests"},
    }
    if payment_status == "completed" and rng.random() < 0.6:
        vendor_at = created + timedelta(hours=rng.randint(2, 48))
        booking.update(vendorStatus="completed", vendorBookingId=f"VB{rng.randrange(10 ** 6):06d}")
        booking["metadata"].update(vendorStatusUpdatedAt=vendor_at.isoformat(), vendorStatusUpdatedBy="lab@campops.example")
        if rng.random() < 0.5:
            booking["reportStatus"] = "submitted"
            booking["metadata"].update(reportStatusUpdatedAt=(vendor_at + timedelta(days=1)).isoformat(),
                                       reportStatusUpdatedBy="lab@campops.example")
    return booking


def generate_collections(num_camps: int = NUM_CAMPS, num_bookings: int = NUM_BOOKINGS,
                         now: Optional[datetime] = None, seed: int = 42) -> Dict[str, Dict[str, Any]]:
    """Both collections keyed by record id, as they sit in the store."""
    rng = random.Random(seed)
    now = now or datetime.now()
    camps = {_record_id(rng): generate_camp(rng, now) for _ in range(num_camps)}
    bookings = {_record_id(rng): generate_booking(rng, now) for _ in range(num_bookings)}
    return {settings.CAMPS_COLLECTION: camps, settings.BOOKINGS_COLLECTION: bookings}


def seed_store(store: Optional[InMemoryStore] = None, **kwargs: Any) -> InMemoryStore:
    collections = generate_collections(**kwargs)
    if store is None:
        store = InMemoryStore(collections)
    else:
        for name, records in collections.items():
            for record_id, record in records.items():
                store.merge(f"{name}/{record_id}", record)
    logger.info(f"Seeded store with {', '.join(f'{len(v)} {k}' for k, v in collections.items())}.")
    return store


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate synthetic camp and booking collections.")
    parser.add_argument("--camps", type=int, default=NUM_CAMPS)
    parser.add_argument("--bookings", type=int, default=NUM_BOOKINGS)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--out", type=Path, default=Path("data_sources"))
    args = parser.parse_args()

    logging.basicConfig(level=settings.LOG_LEVEL, format=settings.LOG_FORMAT, datefmt=settings.LOG_DATE_FORMAT)
    collections = generate_collections(args.camps, args.bookings, seed=args.seed)
    args.out.mkdir(parents=True, exist_ok=True)
    for name, records in collections.items():
        df = pd.json_normalize([{**r, "id": rid} for rid, r in records.items()])
        path = args.out / f"{name}.csv"
        df.to_csv(path, index=False)
        print(f"Wrote {len(df)} records to {path}")


if __name__ == "__main__":
    main()
