# campops_console/workflow/views.py
# WORKFLOW VIEWS - BUCKET CLASSIFICATION, CONTEXT TABS & RECORD SELECTION

"""
Binds a named context (schedule, complete, close, vendor-check, ...) to the
buckets derived by the status clock, and supports cross-screen navigation by
record identity.

A WorkflowView owns its LiveCollection: `start()` subscribes, `stop()`
releases, and the view can be used as a context manager so the release
cannot be forgotten.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

import pandas as pd

from config import settings
from data_processing.export import BOOKING_COLUMNS, CAMP_COLUMNS, ExportColumn, can_export, column_types
from data_processing.helpers import get_path, is_blank, to_local_datetimes
from data_processing.live_collection import LiveCollection, RecordMap, Subscription
from data_processing.query import PageSpec, QueryEngine, QueryResult, SortSpec, clamp_page, toggled_sort
from lifecycle.models import parse_booking, parse_camp
from lifecycle.status_clock import (BookingStage, CampStage, booking_stage,
                                    camp_stage, is_current_day, is_overdue)

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
Buckets = Dict[str, List[Record]]
SelectCallback = Callable[[Record, str], None]


class EntityKind(str, Enum):
    CAMP = "camp"
    BOOKING = "booking"


# --- Static context tables ---
CAMP_CONTEXT_TABS: Dict[str, List[str]] = {
    "schedule": [CampStage.PENDING.value, CampStage.INCOMPLETE.value],
    "complete": [CampStage.INCOMPLETE.value, CampStage.PENDING_CLOSURE.value],
    "close": [CampStage.PENDING_CLOSURE.value, CampStage.CLOSED.value],
    "default": [CampStage.INCOMPLETE.value, CampStage.PENDING.value,
                CampStage.PENDING_CLOSURE.value, CampStage.CLOSED.value],
}
CAMP_DEFAULT_TAB: Dict[str, str] = {
    "schedule": CampStage.INCOMPLETE.value,
    "complete": CampStage.INCOMPLETE.value,
    "close": CampStage.PENDING_CLOSURE.value,
    "default": CampStage.INCOMPLETE.value,
}

BOOKING_CONTEXT_TABS: Dict[str, List[str]] = {
    "vendor-check": [BookingStage.PENDING_VENDOR.value, BookingStage.PENDING_REPORT.value],
    "report-status": [BookingStage.PENDING_REPORT.value, BookingStage.COMPLETED.value],
    "default": [BookingStage.INCOMPLETE.value, BookingStage.PENDING_VENDOR.value],
}
BOOKING_DEFAULT_TAB: Dict[str, str] = {
    "vendor-check": BookingStage.PENDING_VENDOR.value,
    "report-status": BookingStage.PENDING_REPORT.value,
    "default": BookingStage.INCOMPLETE.value,
}

CONTEXT_TABS = {EntityKind.CAMP: CAMP_CONTEXT_TABS, EntityKind.BOOKING: BOOKING_CONTEXT_TABS}
DEFAULT_TABS = {EntityKind.CAMP: CAMP_DEFAULT_TAB, EntityKind.BOOKING: BOOKING_DEFAULT_TAB}
SORT_FIELDS = {EntityKind.CAMP: "date", EntityKind.BOOKING: "metadata.createdAt"}
COLUMNS: Dict[EntityKind, List[ExportColumn]] = {EntityKind.CAMP: CAMP_COLUMNS, EntityKind.BOOKING: BOOKING_COLUMNS}


def tabs_for(kind: EntityKind, context: str) -> List[str]:
    table = CONTEXT_TABS[kind]
    return list(table.get(context, table["default"]))


def default_tab_for(kind: EntityKind, context: str) -> str:
    table = DEFAULT_TABS[kind]
    return table.get(context, table["default"])


def _newest_first(records: List[Record], field_path: str) -> List[Record]:
    """Stable descending sort by a timestamp; unreadable timestamps go last."""
    if not records:
        return []
    keys = to_local_datetimes([get_path(r, field_path) for r in records]).fillna(pd.Timestamp(0))
    order = keys.sort_values(ascending=False, kind='mergesort').index
    return [records[i] for i in order]


# --- Classification ---
def classify_camps(records: Sequence[Record], now: datetime) -> Buckets:
    """
    Partitions camps into stage buckets, newest camp date first. Cancelled
    camps are left out; each record is annotated with isOverdue/isCurrentDay.
    A record that cannot be projected is skipped without affecting the rest.
    """
    buckets: Buckets = {s.value: [] for s in CampStage if s != CampStage.CANCELLED}
    for record in records:
        camp = parse_camp(record, record.get('id') if isinstance(record, dict) else None)
        if camp is None:
            continue
        stage = camp_stage(camp)
        if stage is None or stage == CampStage.CANCELLED:
            continue
        buckets[stage.value].append({
            **record,
            'isOverdue': is_overdue(camp, now),
            'isCurrentDay': is_current_day(camp, now),
        })
    return {name: _newest_first(items, SORT_FIELDS[EntityKind.CAMP]) for name, items in buckets.items()}


def classify_bookings(records: Sequence[Record]) -> Buckets:
    """Partitions bookings by workflow stage, newest creation first."""
    buckets: Buckets = {s.value: [] for s in BookingStage}
    for record in records:
        booking = parse_booking(record, record.get('id') if isinstance(record, dict) else None)
        if booking is None:
            continue
        stage = booking_stage(booking)
        buckets[stage.value].append({**record, 'displayId': booking.display_id})
    return {name: _newest_first(items, SORT_FIELDS[EntityKind.BOOKING]) for name, items in buckets.items()}


@dataclass(frozen=True)
class BucketSummary:
    name: str
    count: int
    overdue: int = 0
    today: int = 0


def summarize(buckets: Buckets) -> Dict[str, BucketSummary]:
    return {
        name: BucketSummary(
            name=name,
            count=len(items),
            overdue=sum(1 for r in items if r.get('isOverdue')),
            today=sum(1 for r in items if r.get('isCurrentDay')),
        )
        for name, items in buckets.items()
    }


# --- View ---
class WorkflowView:
    """
    A tabbed workflow screen over one collection.

    Args:
        kind: which entity kind the collection holds.
        collection: the LiveCollection this view owns.
        context: named context selecting the visible tabs.
        clock: returns the reference "now" for overdue/same-day flags.
        on_record_select: receives (full record, target context) on selection.
        query_engine: filters, sorts and pages the active bucket; defaults to
            one typed by the kind's export columns.
        page_size: rows per page; defaults to the configured page size.
    """
    def __init__(
        self,
        kind: EntityKind,
        collection: LiveCollection,
        context: str = "default",
        clock: Optional[Callable[[], datetime]] = None,
        on_record_select: Optional[SelectCallback] = None,
        on_change: Optional[Callable[['WorkflowView'], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
        query_engine: Optional[QueryEngine] = None,
        page_size: Optional[int] = None,
    ):
        self.kind = EntityKind(kind)
        self.collection = collection
        self.columns = COLUMNS[self.kind]
        self.query_engine = query_engine or QueryEngine(column_types=column_types(self.columns))
        self.filters: Dict[str, Any] = {}
        self.sort_spec: Optional[SortSpec] = None
        self.page = PageSpec(size=page_size) if page_size else PageSpec()
        self.clock = clock or datetime.now
        self.on_record_select = on_record_select
        self.on_change = on_change
        self.on_error = on_error
        self.buckets: Buckets = {}
        self.loading = True
        self.error: Optional[str] = None
        self.context = context
        self.active_tab = default_tab_for(self.kind, context)

    # --- Lifecycle ---
    def start(self) -> Subscription:
        self.loading = True
        return self.collection.subscribe(self._handle_snapshot, self._handle_error)

    def stop(self) -> None:
        self.collection.unsubscribe()

    def __enter__(self) -> 'WorkflowView':
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def _handle_snapshot(self, snapshot: RecordMap) -> None:
        self.loading = False
        self.error = None
        self.refresh(snapshot)

    def _handle_error(self, reason: str) -> None:
        self.loading = False
        self.error = reason
        if self.on_error is not None:
            self.on_error(reason)

    def refresh(self, snapshot: Optional[RecordMap] = None) -> Buckets:
        """Reclassifies the current snapshot against a fresh "now"."""
        records = list((snapshot if snapshot is not None else self.collection.snapshot).values())
        if self.kind == EntityKind.CAMP:
            self.buckets = classify_camps(records, self.clock())
        else:
            self.buckets = classify_bookings(records)
        if self.on_change is not None:
            self.on_change(self)
        return self.buckets

    # --- Tabs ---
    @property
    def tabs(self) -> List[str]:
        return tabs_for(self.kind, self.context)

    def set_context(self, context: str) -> None:
        self.context = context
        self.active_tab = default_tab_for(self.kind, context)
        self._first_page()

    def set_tab(self, tab: str) -> None:
        if tab not in self.tabs:
            raise ValueError(f"Tab '{tab}' is not available in context '{self.context}'")
        self.active_tab = tab
        self._first_page()

    # --- Filter, sort & page ---
    def _first_page(self) -> None:
        self.page = PageSpec(index=1, size=self.page.size)

    def set_filter(self, field_name: str, value: Any) -> QueryResult:
        """Sets one column filter (None or '' clears it) and returns to page 1."""
        if value is None or (isinstance(value, str) and value == ''):
            self.filters.pop(field_name, None)
        else:
            self.filters[field_name] = value
        self._first_page()
        return self.query()

    def clear_filters(self) -> QueryResult:
        self.filters = {}
        self._first_page()
        return self.query()

    def toggle_sort(self, field_name: str) -> QueryResult:
        self.sort_spec = toggled_sort(self.sort_spec, field_name)
        return self.query()

    def clear_sort(self) -> QueryResult:
        self.sort_spec = None
        return self.query()

    def set_page(self, index: int) -> QueryResult:
        result = self.query_engine.run(self.bucket(), self.filters, self.sort_spec, self.page)
        self.page = PageSpec(index=clamp_page(index, result.page_count), size=self.page.size)
        return self.query()

    def options(self, field_name: str, name: Optional[str] = None) -> List[Any]:
        """Dropdown values for a column filter, taken from the bucket being viewed."""
        return self.query_engine.unique_values(self.bucket(name), field_name)

    def query(self, name: Optional[str] = None) -> QueryResult:
        """
        Runs the current filters and sort over a bucket (the active tab by
        default) and slices the current page. Without a sort the bucket's
        own order is kept. The page is clamped to the filtered result.
        """
        result = self.query_engine.run(self.bucket(name), self.filters, self.sort_spec, self.page)
        index = clamp_page(self.page.index, result.page_count)
        if index != result.page_index:
            result.page_index = index
            result.rows = self.query_engine.paginate(result.items, PageSpec(index=index, size=self.page.size))
        return result

    # --- Reads ---
    @property
    def record_count(self) -> int:
        return sum(len(items) for items in self.buckets.values())

    @property
    def is_large(self) -> bool:
        return len(self.collection.snapshot) > settings.WORKFLOW.large_collection_threshold

    def bucket(self, name: Optional[str] = None) -> List[Record]:
        return self.buckets.get(name or self.active_tab, [])

    def visible(self, name: Optional[str] = None, show_all: bool = False) -> List[Record]:
        """
        The rendered slice of a bucket after filters and sort: the first
        display-window records unless show_all.
        """
        items = self.query(name).items
        if show_all:
            return items
        return items[:settings.WORKFLOW.display_window]

    def summary(self) -> Dict[str, BucketSummary]:
        return summarize({tab: self.bucket(tab) for tab in self.tabs})

    def can_export(self, role: Any) -> bool:
        return can_export(role)

    # --- Navigation ---
    def select(self, record_id: str, target_context: Optional[str] = None) -> Optional[Record]:
        """
        Hands the full current record to on_record_select and, when given,
        switches this view to target_context. Unknown ids return None.
        """
        record = self.collection.get(record_id)
        if record is None:
            logger.warning(f"({self.collection.context}) Selected record '{record_id}' is not in the current snapshot.")
            return None
        if target_context is not None:
            self.set_context(target_context)
        if self.on_record_select is not None:
            self.on_record_select(dict(record), self.context)
        return record

    def find_by_code(self, code: str) -> Optional[Record]:
        """Looks a record up by camp code or booking/test code, case-insensitively."""
        wanted = (code or '').strip().upper()
        if not wanted:
            return None
        for record in self.collection.records():
            if self.kind == EntityKind.CAMP:
                candidates = [record.get('campCode')]
            else:
                booking = parse_booking(record, record.get('id'))
                candidates = [booking.master_booking_id, *booking.all_test_codes] if booking else []
            if any(not is_blank(c) and str(c).strip().upper() == wanted for c in candidates):
                return record
        return None
