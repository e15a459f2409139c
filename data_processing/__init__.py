# campops_console/data_processing/__init__.py
# DATA PROCESSING PACKAGE - PUBLIC API

"""
Store boundary, live snapshots, query engine and export formatting.

Everything the views and lifecycle engine consume from this package is
re-exported here so callers have a single import point.
"""

# --- Coercion & pipeline utilities from helpers.py ---
from .helpers import (
    DataPipeline,
    calendar_day,
    coerce_number,
    get_path,
    parse_datetime,
    to_iso,
)

# --- Store boundary from store.py ---
from .store import InMemoryStore, Store, StoreUnavailableError

# --- Live snapshots from live_collection.py ---
from .live_collection import LiveCollection, Subscription

# --- Query engine from query.py ---
from .query import (
    ColumnType,
    LiveQuery,
    PageSpec,
    QueryEngine,
    QueryResult,
    SortDirection,
    SortSpec,
    toggled_sort,
)

# --- Export from export.py ---
from .export import (
    BOOKING_COLUMNS,
    CAMP_COLUMNS,
    CsvExportSink,
    ExportColumn,
    build_export_rows,
    can_export,
    export_filename,
    flatten_booking_tests,
)


__all__ = [
    # helpers.py
    "DataPipeline",
    "calendar_day",
    "coerce_number",
    "get_path",
    "parse_datetime",
    "to_iso",

    # store.py
    "InMemoryStore",
    "Store",
    "StoreUnavailableError",

    # live_collection.py
    "LiveCollection",
    "Subscription",

    # query.py
    "ColumnType",
    "LiveQuery",
    "PageSpec",
    "QueryEngine",
    "QueryResult",
    "SortDirection",
    "SortSpec",
    "toggled_sort",

    # export.py
    "BOOKING_COLUMNS",
    "CAMP_COLUMNS",
    "CsvExportSink",
    "ExportColumn",
    "build_export_rows",
    "can_export",
    "export_filename",
    "flatten_booking_tests",
]
