# campops_console/data_processing/export.py
# EXPORT - DISPLAY-FORMATTED ROWS & FILE SINKS

"""
Builds fully denormalized, display-formatted rows for export.

Exported values match what is rendered on screen: dates as 'dd Mon yyyy',
currency with the configured symbol, nested fields flattened to
'parent.child' keys. Sinks only write what they are given.
"""

import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union

import pandas as pd
from pydantic import BaseModel

from config import settings
from .helpers import coerce_number, get_path, is_blank, parse_datetime
from .query import ColumnType

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


class ExportColumn(BaseModel):
    header: str
    field: str
    type: ColumnType = ColumnType.TEXT


def _columns(rows: Sequence[tuple]) -> List[ExportColumn]:
    return [ExportColumn(header=h, field=f, type=t) for h, f, t in rows]


_T, _N, _C, _D = ColumnType.TEXT, ColumnType.NUMBER, ColumnType.CURRENCY, ColumnType.DATE

CAMP_COLUMNS: List[ExportColumn] = _columns([
    ("Camp Code", "campCode", _T), ("Clinic Code", "clinicCode", _T), ("Date", "date", _D),
    ("Agent Name", "agentName", _T), ("Nurse Name", "nurseName", _T), ("DC Name", "dcName", _T),
    ("SOM Name", "somName", _T), ("RO Name", "roName", _T), ("Team Leader", "teamLeader", _T),
    ("Phlebo Name", "phleboName", _T), ("Phlebo Mobile", "phleboMobileNo", _T), ("Mobile No", "mobileNo", _T),
    ("Address", "address", _T), ("District", "district", _T), ("State", "state", _T), ("Pin Code", "pinCode", _T),
    ("Partner Name", "partnerName", _T), ("Partner Adjusted Count", "partnerAdjustedCount", _N),
    ("Partner Adjustment Amount", "partnerAdjustmentAmount", _C), ("Units Sold", "unitsSold", _N),
    ("Revenue", "revenue", _C), ("Amount Paid", "amountPaidToFinance", _C),
    ("Marketing Expense", "marketingExpense", _C), ("Operational Expense", "operationalExpense", _C),
    ("Transaction ID", "transactionId", _T), ("Vendor Name", "vendorName", _T),
    ("Total Conversions", "totalConversions", _N), ("Total Sales", "totalSales", _N),
    ("Status", "status", _T), ("Report Status", "reportStatus", _T),
    ("Report Status Updated At", "reportStatusUpdatedAt", _D), ("Report Status Updated By", "reportStatusUpdatedBy", _T),
    ("Created At", "createdAt", _D), ("Created By", "createdBy", _T),
    ("Completed At", "completedAt", _D), ("Completed By", "completedBy", _T),
    ("Last Modified", "lastModified", _D),
])

BOOKING_COLUMNS: List[ExportColumn] = _columns([
    ("Booking ID", "bookingId", _T), ("Master Booking ID", "masterBookingId", _T),
    ("Patient Name", "name", _T), ("Age", "age", _T), ("Gender", "gender", _T),
    ("Test Name", "testName", _T), ("Mobile", "mobileNo", _T), ("City", "city", _T),
    ("District", "district", _T), ("Address", "address", _T), ("Pincode", "pincode", _T),
    ("Payment Mode", "paymentMode", _T), ("Payment Status", "paymentStatus", _T),
    ("Payment Reference", "paymentReference", _T), ("Price", "price", _C),
    ("Vendor Status", "vendorStatus", _T), ("Report Status", "reportStatus", _T),
    ("Status", "metadata.status", _T), ("Created At", "metadata.createdAt", _D),
    ("Last Modified", "metadata.lastModified", _D),
    ("Report Status Updated At", "metadata.reportStatusUpdatedAt", _D),
    ("Report Status Updated By", "metadata.reportStatusUpdatedBy", _T),
    ("Vendor Status Updated At", "metadata.vendorStatusUpdatedAt", _D),
    ("Vendor Status Updated By", "metadata.vendorStatusUpdatedBy", _T),
])


def column_types(columns: Sequence[ExportColumn]) -> Dict[str, ColumnType]:
    """The {field: type} map a QueryEngine needs to sort these columns like the table does."""
    return {c.field: c.type for c in columns}


# --- Formatting ---
def format_date(value: Any) -> str:
    if is_blank(value):
        return ''
    parsed = parse_datetime(value)
    if parsed is None:
        return str(value)
    return parsed.strftime(settings.DISPLAY_DATE_FORMAT)


def format_currency(value: Any) -> str:
    amount = coerce_number(value)
    if amount is None:
        return ''
    return f"{settings.CURRENCY_SYMBOL}{amount:,.2f}"


def format_value(value: Any, column_type: ColumnType) -> Any:
    if column_type == ColumnType.DATE:
        return format_date(value)
    if column_type == ColumnType.CURRENCY:
        return format_currency(value)
    if is_blank(value):
        return ''
    if column_type == ColumnType.NUMBER:
        number = coerce_number(value)
        if number is None:
            return str(value)
        return int(number) if number.is_integer() else number
    if isinstance(value, (list, tuple)):
        return ', '.join(str(v) for v in value)
    return value


def flatten_booking_tests(bookings: Sequence[Row]) -> List[Row]:
    """One row per booked test: test fields over the parent booking's fields."""
    rows: List[Row] = []
    for booking in bookings:
        tests = booking.get('tests')
        if isinstance(tests, dict):
            tests = list(tests.values())
        if not isinstance(tests, list) or not tests:
            rows.append(dict(booking))
            continue
        for test in tests:
            if isinstance(test, dict):
                rows.append({**booking, **test})
    return rows


def build_export_rows(records: Sequence[Row], columns: Sequence[ExportColumn]) -> List[Row]:
    """Rows keyed by field path ('metadata.createdAt'), values formatted for display."""
    return [
        {c.field: format_value(get_path(record, c.field), c.type) for c in columns}
        for record in records
    ]


def export_filename(hint: str, on: date, extension: str = "csv") -> str:
    return f"{hint}_{on.strftime('%Y-%m-%d')}.{extension}"


def can_export(role: Any) -> bool:
    """Advisory check mirroring what the console shows; the store enforces real access."""
    value = getattr(role, 'value', role)
    return isinstance(value, str) and value.lower() in settings.EXPORT_ROLES


# --- Sinks ---
class ExportSink(Protocol):
    def export_rows(self, rows: List[Row], filename_hint: str) -> Any: ...


class CsvExportSink:
    """Writes rows to '<output_dir>/<hint>_<YYYY-MM-DD>.csv' with display headers."""

    def __init__(self, output_dir: Union[str, Path], columns: Optional[Sequence[ExportColumn]] = None,
                 today: Optional[date] = None):
        self.output_dir = Path(output_dir)
        self.columns = list(columns) if columns else None
        self.today = today

    def to_frame(self, rows: List[Row]) -> pd.DataFrame:
        if self.columns:
            fields = [c.field for c in self.columns]
            df = pd.DataFrame(rows, columns=fields)
            return df.rename(columns={c.field: c.header for c in self.columns})
        return pd.DataFrame(rows)

    def export_rows(self, rows: List[Row], filename_hint: str) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / export_filename(filename_hint, self.today or date.today())
        self.to_frame(rows).to_csv(path, index=False)
        logger.info(f"(export) Wrote {len(rows)} rows to {path}.")
        return path
