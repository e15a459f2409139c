# campops_console/tests/conftest.py
# PYTEST FIXTURES

import sys
from pathlib import Path

# --- Path Setup for Module Imports ---
_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import random
from datetime import datetime, timedelta

import pytest

from config import settings
from data_processing import InMemoryStore
from generate_data import generate_collections
from lifecycle import LifecycleEngine

FIXED_NOW = datetime(2024, 6, 15, 14, 30)
ACTOR = "ops.lead@campops.example"


def _iso_day(offset_days: int) -> str:
    return (FIXED_NOW - timedelta(days=offset_days)).replace(hour=0, minute=0).isoformat()


# --- Reference time & identity ---
@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def actor() -> str:
    return ACTOR


# --- Record factories ---
@pytest.fixture
def schedule_payload() -> dict:
    """A complete, valid payload for scheduling a camp on 20 Jun 2024."""
    return {
        "date": "2024-06-20", "clinicCode": "CL-PUN-01", "address": "12 Market Road",
        "district": "Pune", "state": "Maharashtra", "pinCode": "411001", "mobileNo": "9876543210",
        "nurseName": "ASHA PATIL (N101)", "teamLeader": "RAHUL DESAI (TL11)", "dcName": "AMIT SHAH (DC21)",
        "agentName": "VIKRAM SINGH (AG31)", "roName": "SURESH IYER (RO41)", "somName": "DEEPAK MISHRA (SOM51)",
    }


@pytest.fixture
def make_camp():
    """Builds a stored camp dict dated `days_ago` days before FIXED_NOW."""
    def _make(days_ago: int = 0, status: str = "scheduled", **overrides) -> dict:
        camp = {
            "campCode": f"MSHC{(FIXED_NOW - timedelta(days=days_ago)).strftime('%Y%m%d')}{random.randrange(10000):04d}",
            "clinicCode": "CL-PUN-01", "date": _iso_day(days_ago), "status": status,
            "district": "Pune", "state": "Maharashtra",
        }
        camp.update(overrides)
        return camp
    return _make


@pytest.fixture
def make_booking():
    def _make(payment_status: str = "pending", **overrides) -> dict:
        booking = {
            "name": "Diya Patil", "mobileNo": "9822001122", "age": "34", "gender": "Female",
            "address": "4 Station Road", "district": "Pune",
            "tests": [
                {"testName": "Blood Sugar", "testCode": "BST-LX1ABC-9QZ", "price": 300, "bookingId": "BK-BST-LX1ABC-9QZ"},
                {"testName": "HbA1c", "testCode": "HBA-LX1ABC-K2P", "price": 400, "bookingId": "BK-HBA-LX1ABC-K2P"},
            ],
            "testCodes": ["BST-LX1ABC-9QZ", "HBA-LX1ABC-K2P"],
            "totalPrice": 700, "masterBookingId": "BK-LX1ABC-7TT",
            "paymentMode": "upi", "paymentReference": "TXN0001", "paymentStatus": payment_status,
            "metadata": {"createdAt": "2024-06-10T09:00:00", "lastModified": "2024-06-10T09:00:00",
                         "status": "active", "entryType": "multiple_tests"},
        }
        booking.update(overrides)
        return booking
    return _make


# --- Store & engine ---
@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def engine(store, now) -> LifecycleEngine:
    return LifecycleEngine(store, clock=lambda: now, rng=random.Random(1234))


@pytest.fixture
def put(store):
    """Writes a record under a fixed id and returns the id."""
    def _put(collection: str, record_id: str, record: dict) -> str:
        store.merge(f"{collection}/{record_id}", record)
        return record_id
    return _put


@pytest.fixture(scope="session")
def synthetic_collections() -> dict:
    return generate_collections(num_camps=60, num_bookings=120, now=FIXED_NOW, seed=7)


@pytest.fixture
def seeded_store(synthetic_collections) -> InMemoryStore:
    return InMemoryStore(synthetic_collections)


@pytest.fixture
def camps_path() -> str:
    return settings.CAMPS_COLLECTION


@pytest.fixture
def bookings_path() -> str:
    return settings.BOOKINGS_COLLECTION
