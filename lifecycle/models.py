# campops_console/lifecycle/models.py
# TYPED RECORD PROJECTIONS & CLOSED STATUS ENUMS

"""
Read-side projections of store records.

The store keeps camelCase dicts with no schema; these models give each entity
explicit optional fields and closed enums. Parsing is tolerant: malformed
dates and numbers inside a record degrade to None, and an unknown status
string degrades to the enum's neutral value, so classification never has to
probe raw dicts.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from data_processing.helpers import coerce_number, is_blank, parse_datetime

logger = logging.getLogger(__name__)

E = TypeVar('E', bound=Enum)


# --- Closed Enums ---
class CampStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CampReportStatus(str, Enum):
    SENT = "sent"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class VendorStatus(str, Enum):
    COMPLETED = "completed"


class BookingReportStatus(str, Enum):
    NOT_SUBMITTED = "not_submitted"
    SUBMITTED = "submitted"


class Role(str, Enum):
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    STAFF = "staff"


def coerce_enum(enum_cls: Type[E], value: Any) -> Optional[E]:
    """Maps a stored string onto a closed enum, case-insensitively; unknown values give None."""
    if isinstance(value, enum_cls):
        return value
    if is_blank(value) or not isinstance(value, str):
        return None
    try:
        return enum_cls(value.strip().lower())
    except ValueError:
        logger.debug(f"Unknown {enum_cls.__name__} value '{value}'.")
        return None


# --- Base Projection ---
class StoreRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='allow')

    id: Optional[str] = None


def _text(value: Any) -> Optional[str]:
    if is_blank(value):
        return None
    return str(value).strip()


# --- Camp ---
class Camp(StoreRecord):
    camp_code: Optional[str] = None
    clinic_code: Optional[str] = None
    date: Optional[datetime] = None
    status: Optional[CampStatus] = None
    report_status: Optional[CampReportStatus] = None

    address: Optional[str] = None
    district: Optional[str] = None
    state: Optional[str] = None
    pin_code: Optional[str] = None
    mobile_no: Optional[str] = None

    nurse_name: Optional[str] = None
    team_leader: Optional[str] = None
    dc_name: Optional[str] = None
    agent_name: Optional[str] = None
    ro_name: Optional[str] = None
    som_name: Optional[str] = None

    vendor_name: Optional[str] = None
    phlebo_name: Optional[str] = None
    phlebo_mobile_no: Optional[str] = None
    partner_name: Optional[str] = None

    units_sold: Optional[float] = None
    revenue: Optional[float] = None
    amount_paid_to_finance: Optional[float] = None
    marketing_expense: Optional[float] = None
    operational_expense: Optional[float] = None
    partner_adjusted_count: Optional[float] = None
    partner_adjustment_amount: Optional[float] = None
    total_conversions: Optional[float] = None
    total_sales: Optional[float] = None

    created_at: Optional[str] = None
    created_by: Optional[str] = None
    completed_at: Optional[str] = None
    completed_by: Optional[str] = None
    cancelled_at: Optional[str] = None
    cancelled_by: Optional[str] = None
    report_status_updated_at: Optional[str] = None
    report_status_updated_by: Optional[str] = None
    last_modified: Optional[str] = None
    last_modified_by: Optional[str] = None

    @field_validator('date', mode='before')
    @classmethod
    def _parse_date(cls, v: Any) -> Optional[datetime]:
        return parse_datetime(v)

    @field_validator('status', mode='before')
    @classmethod
    def _parse_status(cls, v: Any) -> Optional[CampStatus]:
        return coerce_enum(CampStatus, v)

    @field_validator('report_status', mode='before')
    @classmethod
    def _parse_report_status(cls, v: Any) -> Optional[CampReportStatus]:
        return coerce_enum(CampReportStatus, v)

    @field_validator(
        'units_sold', 'revenue', 'amount_paid_to_finance', 'marketing_expense', 'operational_expense',
        'partner_adjusted_count', 'partner_adjustment_amount', 'total_conversions', 'total_sales',
        mode='before',
    )
    @classmethod
    def _parse_number(cls, v: Any) -> Optional[float]:
        return coerce_number(v)

    @field_validator(
        'camp_code', 'clinic_code', 'address', 'district', 'state', 'pin_code', 'mobile_no',
        'nurse_name', 'team_leader', 'dc_name', 'agent_name', 'ro_name', 'som_name',
        'vendor_name', 'phlebo_name', 'phlebo_mobile_no', 'partner_name',
        'created_at', 'created_by', 'completed_at', 'completed_by', 'cancelled_at', 'cancelled_by',
        'report_status_updated_at', 'report_status_updated_by', 'last_modified', 'last_modified_by',
        mode='before',
    )
    @classmethod
    def _parse_text(cls, v: Any) -> Optional[str]:
        return _text(v)

    @property
    def is_terminal(self) -> bool:
        return self.status in (CampStatus.COMPLETED, CampStatus.CANCELLED)

    @property
    def vendor_details_locked(self) -> bool:
        return all((self.vendor_name, self.phlebo_name, self.phlebo_mobile_no))

    @property
    def test_counts_locked(self) -> bool:
        return self.total_conversions is not None or self.total_sales is not None


# --- Test Booking ---
class TestItem(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='allow')

    test_name: Optional[str] = None
    test_code: Optional[str] = None
    price: float = 0.0
    booking_id: Optional[str] = None

    @field_validator('price', mode='before')
    @classmethod
    def _parse_price(cls, v: Any) -> float:
        return coerce_number(v) or 0.0

    @field_validator('test_name', 'test_code', 'booking_id', mode='before')
    @classmethod
    def _parse_text(cls, v: Any) -> Optional[str]:
        return _text(v)


class BookingMetadata(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='allow')

    created_at: Optional[str] = None
    last_modified: Optional[str] = None
    status: Optional[str] = None
    entry_type: Optional[str] = None
    vendor_status_updated_at: Optional[str] = None
    vendor_status_updated_by: Optional[str] = None
    report_status_updated_at: Optional[str] = None
    report_status_updated_by: Optional[str] = None

    @field_validator('*', mode='before')
    @classmethod
    def _parse_text(cls, v: Any) -> Optional[str]:
        return _text(v)


class TestBooking(StoreRecord):
    master_booking_id: Optional[str] = None
    test_code: Optional[str] = None
    name: Optional[str] = None
    mobile_no: Optional[str] = None
    age: Optional[Any] = None
    gender: Optional[str] = None
    address: Optional[str] = None

    tests: List[TestItem] = Field(default_factory=list)
    test_codes: List[str] = Field(default_factory=list)
    total_price: float = 0.0
    is_free: bool = False

    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_mode: Optional[str] = None
    payment_reference: Optional[str] = None
    vendor_status: Optional[VendorStatus] = None
    vendor_booking_id: Optional[str] = None
    report_status: BookingReportStatus = BookingReportStatus.NOT_SUBMITTED

    metadata: BookingMetadata = Field(default_factory=BookingMetadata)

    @field_validator('tests', 'test_codes', mode='before')
    @classmethod
    def _parse_list(cls, v: Any) -> List[Any]:
        if isinstance(v, dict):
            return list(v.values())
        return v if isinstance(v, list) else []

    @field_validator('total_price', mode='before')
    @classmethod
    def _parse_total(cls, v: Any) -> float:
        return coerce_number(v) or 0.0

    @field_validator('is_free', mode='before')
    @classmethod
    def _parse_flag(cls, v: Any) -> bool:
        return v is True or (isinstance(v, str) and v.strip().lower() == 'true')

    @field_validator('payment_status', mode='before')
    @classmethod
    def _parse_payment(cls, v: Any) -> PaymentStatus:
        return coerce_enum(PaymentStatus, v) or PaymentStatus.PENDING

    @field_validator('vendor_status', mode='before')
    @classmethod
    def _parse_vendor(cls, v: Any) -> Optional[VendorStatus]:
        return coerce_enum(VendorStatus, v)

    @field_validator('report_status', mode='before')
    @classmethod
    def _parse_report(cls, v: Any) -> BookingReportStatus:
        return coerce_enum(BookingReportStatus, v) or BookingReportStatus.NOT_SUBMITTED

    @field_validator('metadata', mode='before')
    @classmethod
    def _parse_metadata(cls, v: Any) -> Dict[str, Any]:
        return v if isinstance(v, dict) else {}

    @field_validator(
        'master_booking_id', 'test_code', 'name', 'mobile_no', 'gender', 'address',
        'payment_mode', 'payment_reference', 'vendor_booking_id',
        mode='before',
    )
    @classmethod
    def _parse_text(cls, v: Any) -> Optional[str]:
        return _text(v)

    @property
    def all_test_codes(self) -> List[str]:
        codes = [t.test_code for t in self.tests if t.test_code]
        codes.extend(c for c in self.test_codes if isinstance(c, str))
        if self.test_code:
            codes.append(self.test_code)
        return codes

    @property
    def display_id(self) -> str:
        return self.master_booking_id or self.test_code or 'N/A'


# --- Tolerant Parsing ---
def parse_camp(raw: Any, record_id: Optional[str] = None) -> Optional[Camp]:
    """Builds a Camp projection; a record that cannot be projected is logged and skipped."""
    if not isinstance(raw, dict):
        logger.warning(f"({record_id}) Camp record is not an object; skipping.")
        return None
    try:
        camp = Camp.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"({record_id}) Camp record failed validation and is skipped: {e.error_count()} error(s).")
        return None
    if record_id is not None:
        camp.id = record_id
    return camp


def parse_booking(raw: Any, record_id: Optional[str] = None) -> Optional[TestBooking]:
    """Builds a TestBooking projection; a record that cannot be projected is logged and skipped."""
    if not isinstance(raw, dict):
        logger.warning(f"({record_id}) Booking record is not an object; skipping.")
        return None
    try:
        booking = TestBooking.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"({record_id}) Booking record failed validation and is skipped: {e.error_count()} error(s).")
        return None
    if record_id is not None:
        booking.id = record_id
    return booking
