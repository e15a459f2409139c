# campops_console/data_processing/query.py
# QUERY ENGINE - FILTER, SORT & PAGINATE LIVE SNAPSHOTS

"""
Turns a raw collection snapshot plus filter, sort and page settings into an ordered,
paginated view.

The engine recomputes from scratch on every snapshot. Windowing for large
collections is left to the presentation layer; the engine still orders the
full list.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd
from pydantic import BaseModel, Field

from config import settings
from .helpers import calendar_day, coerce_number, get_path, is_blank, to_local_datetimes
from .live_collection import LiveCollection, RecordMap, Subscription

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


# --- Query Specs ---
class ColumnType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    CURRENCY = "currency"
    DATE = "date"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SortSpec(BaseModel):
    field: str
    direction: SortDirection = SortDirection.DESC


class PageSpec(BaseModel):
    index: int = 1
    size: int = Field(default_factory=lambda: settings.WORKFLOW.page_size, gt=0)


@dataclass
class QueryResult:
    items: List[Record]
    rows: List[Record]
    total: int
    page_index: int
    page_size: int
    page_count: int
    is_large: bool = False
    filters: Dict[str, Any] = field(default_factory=dict)

    @property
    def start_index(self) -> int:
        return (self.page_index - 1) * self.page_size

    def window(self, limit: Optional[int] = None) -> List[Record]:
        """The capped slice a consumer should render when the collection is large."""
        limit = settings.WORKFLOW.display_window if limit is None else limit
        return self.items[:limit]


def count_pages(total: int, size: int) -> int:
    return (total - 1) // size + 1


def clamp_page(index: int, page_count: int) -> int:
    return max(1, min(index, max(page_count, 1)))


def toggled_sort(current: Optional[SortSpec], field_name: str) -> SortSpec:
    """Same field flips asc to desc; anything else starts ascending."""
    if current is not None and current.field == field_name and current.direction == SortDirection.ASC:
        return SortSpec(field=field_name, direction=SortDirection.DESC)
    return SortSpec(field=field_name, direction=SortDirection.ASC)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, np.number)) and not isinstance(value, (bool, np.bool_))


def _sort_text(value: Any) -> str:
    if is_blank(value):
        return ''
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).lower()


def _matches(value: Any, target: Any) -> bool:
    try:
        return bool(value == target)
    except (TypeError, ValueError):
        return False


# --- Engine ---
class QueryEngine:
    """
    Stateless filter/sort/paginate over a list of record dicts.

    Args:
        column_types: declared types per field (dot-paths allowed).
        date_fields: extra field names that sort and filter as dates.
    """
    def __init__(
        self,
        column_types: Optional[Mapping[str, ColumnType]] = None,
        date_fields: Optional[Iterable[str]] = None,
        large_threshold: Optional[int] = None,
    ):
        self.column_types: Dict[str, ColumnType] = dict(column_types or {})
        self.date_fields = set(date_fields or settings.KNOWN_DATE_FIELDS)
        self.large_threshold = large_threshold or settings.WORKFLOW.large_collection_threshold

    # --- Field typing ---
    def is_date_field(self, field_name: str) -> bool:
        if self.column_types.get(field_name) == ColumnType.DATE:
            return True
        leaf = field_name.rsplit('.', 1)[-1]
        return leaf.endswith('At') or field_name in self.date_fields or leaf in self.date_fields

    def is_numeric_field(self, field_name: str, values: List[Any]) -> bool:
        if self.column_types.get(field_name) in (ColumnType.NUMBER, ColumnType.CURRENCY):
            return True
        present = [v for v in values if not is_blank(v)]
        return bool(present) and all(_is_number(v) for v in present)

    # --- Operations ---
    def filter(self, records: List[Record], filters: Optional[Mapping[str, Any]]) -> List[Record]:
        """Keeps records matching every active filter (logical AND)."""
        active = {f: v for f, v in (filters or {}).items() if not (v is None or (isinstance(v, str) and v == ''))}
        if not records or not active:
            return list(records)

        mask = np.ones(len(records), dtype=bool)
        for field_name, target in active.items():
            values = [get_path(r, field_name) for r in records]
            target_day = calendar_day(target) if self.is_date_field(field_name) else None
            if target_day is not None:
                days = to_local_datetimes(values).dt.normalize()
                mask &= (days == pd.Timestamp(target_day)).to_numpy()
            else:
                mask &= np.fromiter((_matches(v, target) for v in values), dtype=bool, count=len(values))

        return [r for r, keep in zip(records, mask) if keep]

    def sort(self, records: List[Record], sort: Optional[SortSpec]) -> List[Record]:
        """
        Orders records by one field. Dates compare by timestamp with missing
        values at epoch 0, numbers numerically, everything else as lowercased
        text with missing as ''. The sort is stable.
        """
        if not records or sort is None or not sort.field:
            return list(records)

        values = [get_path(r, sort.field) for r in records]
        ascending = sort.direction == SortDirection.ASC
        if self.is_date_field(sort.field):
            key = to_local_datetimes(values).fillna(pd.Timestamp(0))
        elif self.is_numeric_field(sort.field, values):
            key = pd.Series([coerce_number(v) for v in values], dtype=float)
        else:
            key = pd.Series([_sort_text(v) for v in values], dtype=object)

        order = key.sort_values(ascending=ascending, kind='mergesort', na_position='first' if ascending else 'last').index
        return [records[i] for i in order]

    def paginate(self, records: List[Record], page: PageSpec) -> List[Record]:
        start = (page.index - 1) * page.size
        if start < 0:
            return []
        return records[start:start + page.size]

    def run(
        self,
        records: List[Record],
        filters: Optional[Mapping[str, Any]] = None,
        sort: Optional[SortSpec] = None,
        page: Optional[PageSpec] = None,
    ) -> QueryResult:
        page = page or PageSpec()
        ordered = self.sort(self.filter(records, filters), sort)
        total = len(ordered)
        return QueryResult(
            items=ordered,
            rows=self.paginate(ordered, page),
            total=total,
            page_index=page.index,
            page_size=page.size,
            page_count=count_pages(total, page.size),
            is_large=len(records) > self.large_threshold,
            filters=dict(filters or {}),
        )

    def unique_values(self, records: List[Record], field_name: str) -> List[Any]:
        """Distinct non-empty values of a field, sorted, for filter dropdown options."""
        if self.is_date_field(field_name):
            return []
        seen = {}
        for r in records:
            value = get_path(r, field_name)
            if is_blank(value) or isinstance(value, (dict, list)):
                continue
            seen.setdefault(value, None)
        return sorted(seen, key=_sort_text)


# --- Live binding ---
class LiveQuery:
    """
    Binds a LiveCollection to a QueryEngine and holds the current filter,
    sort and page. Snapshots, filter changes and sort changes trigger a full
    recompute; page changes only re-slice the ordered list.
    """
    def __init__(
        self,
        collection: LiveCollection,
        engine: Optional[QueryEngine] = None,
        sort: Optional[SortSpec] = None,
        page_size: Optional[int] = None,
        on_change: Optional[Callable[[QueryResult], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
    ):
        self.collection = collection
        self.engine = engine or QueryEngine()
        self.sort_spec = sort
        self.page = PageSpec(size=page_size) if page_size else PageSpec()
        self.filters: Dict[str, Any] = {}
        self.on_change = on_change
        self.on_error = on_error
        self._records: List[Record] = []
        self.result: QueryResult = self.engine.run([], sort=self.sort_spec, page=self.page)

    def start(self) -> Subscription:
        return self.collection.subscribe(self._handle_snapshot, self._handle_error)

    def stop(self) -> None:
        self.collection.unsubscribe()

    def _handle_snapshot(self, snapshot: RecordMap) -> None:
        self._records = list(snapshot.values())
        self.recompute()

    def _handle_error(self, reason: str) -> None:
        if self.on_error is not None:
            self.on_error(reason)

    def recompute(self) -> QueryResult:
        self.result = self.engine.run(self._records, self.filters, self.sort_spec, self.page)
        if self.result.is_large:
            logger.info(f"({self.collection.collection_name}) Large collection: {len(self._records)} records, render a window.")
        if self.on_change is not None:
            self.on_change(self.result)
        return self.result

    def set_filter(self, field_name: str, value: Any) -> QueryResult:
        if value is None:
            self.filters.pop(field_name, None)
        else:
            self.filters[field_name] = value
        self.page = PageSpec(index=1, size=self.page.size)
        return self.recompute()

    def clear_filters(self) -> QueryResult:
        self.filters = {}
        self.page = PageSpec(index=1, size=self.page.size)
        return self.recompute()

    def set_sort(self, field_name: str, direction: SortDirection = SortDirection.ASC) -> QueryResult:
        self.sort_spec = SortSpec(field=field_name, direction=direction)
        return self.recompute()

    def toggle_sort(self, field_name: str) -> QueryResult:
        self.sort_spec = toggled_sort(self.sort_spec, field_name)
        return self.recompute()

    def set_page(self, index: int) -> QueryResult:
        index = clamp_page(index, self.result.page_count)
        self.page = PageSpec(index=index, size=self.page.size)
        self.result.rows = self.engine.paginate(self.result.items, self.page)
        self.result.page_index = index
        if self.on_change is not None:
            self.on_change(self.result)
        return self.result

    def options(self, field_name: str) -> List[Any]:
        return self.engine.unique_values(self._records, field_name)
