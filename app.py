# campops_console/app.py
# APPLICATION ENTRY POINT - STREAMLIT OPERATIONS CONSOLE

import html
import logging
import sys
from datetime import date, datetime
from pathlib import Path

try:
    _project_root = Path(__file__).resolve().parent
    if str(_project_root) not in sys.path:
        sys.path.insert(0, str(_project_root))

    import pandas as pd
    import streamlit as st
    from config import settings
    from analytics import Timeframe, available_fiscal_years, available_month_years, camp_performance, prepare_camp_frame
    from data_processing import (BOOKING_COLUMNS, CAMP_COLUMNS, CsvExportSink, LiveCollection, toggled_sort,
                                 build_export_rows, export_filename, flatten_booking_tests)
    from generate_data import seed_store
    from lifecycle import LifecycleEngine, Role
    from workflow import EntityKind, WorkflowView

except ImportError as e:
    print(f"FATAL ERROR in app.py: A core module failed to import.", file=sys.stderr)
    print("Run the console from the project root: `streamlit run app.py`", file=sys.stderr)
    print(f"\nPython Path: {sys.path}\nOriginal ImportError: {e}", file=sys.stderr)
    sys.exit(1)

# --- Global Configuration ---
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format=settings.LOG_FORMAT,
    datefmt=settings.LOG_DATE_FORMAT,
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True
)
logger = logging.getLogger(__name__)

st.set_page_config(page_title=f"{settings.APP_NAME}", layout="wide", initial_sidebar_state="expanded")

CAMP_DISPLAY_FIELDS = ["campCode", "date", "clinicCode", "district", "status", "isOverdue", "isCurrentDay"]
BOOKING_DISPLAY_FIELDS = ["displayId", "name", "mobileNo", "totalPrice", "paymentStatus", "vendorStatus", "reportStatus"]


# --- Session State ---
if "store" not in st.session_state:
    st.session_state.store = seed_store()
    st.session_state.engine = LifecycleEngine(st.session_state.store)
    st.session_state.selected = None
store = st.session_state.store
engine: LifecycleEngine = st.session_state.engine


def _remember_selection(record: dict, context: str) -> None:
    st.session_state.selected = {"record": record, "context": context}


# --- Sidebar ---
with st.sidebar:
    st.header("Console")
    actor = st.text_input("Signed in as", value="admin@campops.example")
    role = st.selectbox("Role", [r.value for r in Role])
    kind = EntityKind(st.radio("Workflow", [EntityKind.CAMP.value, EntityKind.BOOKING.value]))
    contexts = ["default", "schedule", "complete", "close"] if kind == EntityKind.CAMP else ["default", "vendor-check", "report-status"]
    context = st.selectbox("Context", contexts)
    show_all = st.toggle("Show all records", value=False)

st.title(settings.APP_NAME)
st.caption(f"v{settings.APP_VERSION}")

collection_name = settings.CAMPS_COLLECTION if kind == EntityKind.CAMP else settings.BOOKINGS_COLLECTION
with WorkflowView(kind, LiveCollection(store, collection_name, consumer="console"), context=context,
                  on_record_select=_remember_selection) as view:

    if view.error:
        st.error(f"Could not load {collection_name}: {view.error}")
    if view.is_large:
        st.warning(f"Large collection: showing the first {settings.WORKFLOW.display_window} records per tab.")

    summary = view.summary()
    metric_cols = st.columns(len(view.tabs))
    for col, tab in zip(metric_cols, view.tabs):
        s = summary[tab]
        col.metric(tab, s.count, delta=f"{s.overdue} overdue" if s.overdue else None, delta_color="inverse")

    tab = st.radio("Bucket", view.tabs, index=view.tabs.index(view.active_tab), horizontal=True,
                   key=f"bucket_{kind.value}_{context}")
    view.set_tab(tab)

    # --- Column filters, sort & page ---
    query_state = st.session_state.setdefault(f"query_{kind.value}", {"filters": {}, "sort": None, "page": 1})
    fields_by_header = {c.header: c.field for c in view.columns}
    with st.expander("Filter & sort", expanded=bool(query_state["filters"])):
        f1, f2, f3 = st.columns(3)
        header = f1.selectbox("Column", list(fields_by_header), key=f"column_{kind.value}")
        field = fields_by_header[header]
        value = f2.selectbox("Value", [None] + view.options(field), key=f"value_{kind.value}_{field}",
                             format_func=lambda v: "(any)" if v is None else str(v))
        if f3.button("Apply filter", key=f"apply_{kind.value}"):
            if value is None:
                query_state["filters"].pop(field, None)
            else:
                query_state["filters"][field] = value
            query_state["page"] = 1
        s1, s2 = st.columns(2)
        if s1.button(f"Sort by {header}", key=f"sort_{kind.value}"):
            query_state["sort"] = toggled_sort(query_state["sort"], field)
        if s2.button("Clear filters & sort", key=f"clear_{kind.value}"):
            query_state.update(filters={}, sort=None, page=1)

    for field_name, filter_value in query_state["filters"].items():
        view.set_filter(field_name, filter_value)
    view.sort_spec = query_state["sort"]
    result = view.set_page(query_state["page"])
    if query_state["filters"] or query_state["sort"]:
        sort_note = f"{query_state['sort'].field} {query_state['sort'].direction.value}" if query_state["sort"] else "bucket order"
        st.caption(f"Filters: {query_state['filters'] or 'none'} | Sort: {sort_note}")

    fields = CAMP_DISPLAY_FIELDS if kind == EntityKind.CAMP else BOOKING_DISPLAY_FIELDS
    if show_all:
        if result.page_count > 1:
            query_state["page"] = int(st.number_input("Page", min_value=1, max_value=result.page_count,
                                                      value=result.page_index, key=f"page_{kind.value}"))
            result = view.set_page(query_state["page"])
        st.caption(f"{result.total} records, page {result.page_index} of {max(result.page_count, 1)}")
        rows = result.rows
    else:
        rows = view.visible()

    if not rows:
        st.info("No records in this bucket.")
    else:
        st.dataframe(pd.DataFrame(rows).reindex(columns=["id", *fields]), use_container_width=True, hide_index=True)
        pick = st.selectbox("Open record", [""] + [r["id"] for r in rows], key=f"pick_{tab}")
        if pick:
            view.select(pick)

    code = st.text_input("Find by code")
    if code:
        found = view.find_by_code(code)
        if found is None:
            st.warning(f"No record found with code {html.escape(code)}")
        else:
            view.select(found["id"])

    if view.can_export(role):
        records = view.collection.records()
        if kind == EntityKind.BOOKING:
            records, columns = flatten_booking_tests(records), BOOKING_COLUMNS
        else:
            columns = CAMP_COLUMNS
        frame = CsvExportSink(".", columns=columns).to_frame(build_export_rows(records, columns))
        st.download_button("Export CSV", data=frame.to_csv(index=False).encode("utf-8"),
                           file_name=export_filename(collection_name, date.today()), mime="text/csv")

# --- Detail / Actions ---
selected = st.session_state.selected
if selected:
    record = selected["record"]
    st.divider()
    st.subheader(f"Record {record.get('campCode') or record.get('masterBookingId') or record['id']}")
    st.json(record, expanded=False)
    now = datetime.now()
    result = None
    if kind == EntityKind.CAMP and "campCode" in record:
        c1, c2, c3 = st.columns(3)
        if c1.button("Cancel camp"):
            result = engine.cancel_camp(record["id"], actor, now)
        if c2.button("Close report"):
            result = engine.close_camp_report(record["id"], actor, now=now)
        if c3.button("Complete with current figures"):
            result = engine.complete_camp(record["id"], {}, actor, now)
    elif kind == EntityKind.BOOKING and "masterBookingId" in record:
        c1, c2 = st.columns(2)
        if c1.button("Mark vendor check completed"):
            result = engine.set_vendor_status(record["id"], {"vendorStatus": "completed"}, actor, now)
        if c2.button("Submit report"):
            result = engine.submit_report(record["id"], actor, now)
    if result is not None:
        (st.success if result.ok else st.error)(result.message)

# --- Performance ---
if kind == EntityKind.CAMP:
    st.divider()
    st.header("Camp Performance")
    camps = LiveCollection.rekey(store.get(settings.CAMPS_COLLECTION)).values()
    frame = prepare_camp_frame(list(camps))
    timeframe = Timeframe(st.radio("Period", [t.value for t in Timeframe], horizontal=True))
    month_year = st.selectbox("Month", available_month_years(frame)) if timeframe == Timeframe.MTD else None
    fiscal_year = st.selectbox("Fiscal year", available_fiscal_years(frame)) if timeframe == Timeframe.YTD else None
    metrics = camp_performance(list(camps), timeframe, month_year, fiscal_year)
    perf_cols = st.columns(4)
    for col, (label, value, key) in zip(perf_cols, [
        ("Total Camps", metrics.total_camps, "totalCamps"),
        ("Units Sold", int(metrics.units_sold), "unitsSold"),
        ("Revenue", f"{settings.CURRENCY_SYMBOL}{metrics.total_revenue:,.0f}", "totalRevenue"),
        ("Avg Units / Camp", f"{metrics.avg_units_per_camp:.1f}", "avgUnitsPerCamp"),
    ]):
        change = metrics.changes.get(key)
        col.metric(label, value, delta=f"{change}%" if change is not None else None)
