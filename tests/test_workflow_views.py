# campops_console/tests/test_workflow_views.py
# WORKFLOW VIEW TESTS

import pytest

from config import settings
from data_processing import ColumnType, InMemoryStore, LiveCollection
from lifecycle import LifecycleEngine, Role
from workflow import (BOOKING_CONTEXT_TABS, CAMP_CONTEXT_TABS, EntityKind, WorkflowView,
                      classify_bookings, classify_camps, default_tab_for, summarize, tabs_for)


# --- Static tables ---
def test_context_tab_tables():
    assert CAMP_CONTEXT_TABS["schedule"] == ["pending", "incomplete"]
    assert CAMP_CONTEXT_TABS["close"] == ["pendingClosure", "closed"]
    assert BOOKING_CONTEXT_TABS["vendor-check"] == ["pendingVendor", "pendingReport"]
    assert default_tab_for(EntityKind.CAMP, "close") == "pendingClosure"
    assert default_tab_for(EntityKind.BOOKING, "report-status") == "pendingReport"


def test_unknown_context_falls_back_to_default():
    assert tabs_for(EntityKind.CAMP, "nonexistent") == CAMP_CONTEXT_TABS["default"]
    assert default_tab_for(EntityKind.BOOKING, "nonexistent") == "incomplete"


# --- Classification ---
def test_classify_camps_buckets_and_annotations(make_camp, now):
    records = [
        {**make_camp(days_ago=0, status="scheduled"), "id": "today"},
        {**make_camp(days_ago=2, status="scheduled"), "id": "late"},
        {**make_camp(days_ago=1, status="pending"), "id": "awaiting"},
        {**make_camp(days_ago=5, status="completed"), "id": "unclosed"},
        {**make_camp(days_ago=5, status="completed", reportStatus="sent"), "id": "closed"},
        {**make_camp(days_ago=1, status="cancelled"), "id": "cancelled"},
    ]
    buckets = classify_camps(records, now)

    assert set(buckets) == {"pending", "incomplete", "pendingClosure", "closed"}
    assert [r["id"] for r in buckets["incomplete"]] == ["today", "late"]
    assert [r["id"] for r in buckets["pending"]] == ["awaiting"]
    assert [r["id"] for r in buckets["pendingClosure"]] == ["unclosed"]
    assert [r["id"] for r in buckets["closed"]] == ["closed"]
    assert all(r["id"] != "cancelled" for items in buckets.values() for r in items)

    today, late = buckets["incomplete"]
    assert today["isCurrentDay"] and not today["isOverdue"]
    assert late["isOverdue"] and not late["isCurrentDay"]
    assert buckets["pendingClosure"][0]["isOverdue"]


def test_classify_camps_survives_bad_records(make_camp, now):
    records = [
        {**make_camp(days_ago=1), "id": "ok"},
        {**make_camp(date="not-a-date"), "id": "undated"},
        "not a record",
    ]
    buckets = classify_camps(records, now)
    assert [r["id"] for r in buckets["incomplete"]] == ["ok", "undated"]
    assert buckets["incomplete"][1]["isOverdue"] is False


def test_classify_bookings(make_booking):
    records = [
        {**make_booking("pending"), "id": "b1"},
        {**make_booking("completed"), "id": "b2"},
        {**make_booking("completed", vendorStatus="completed"), "id": "b3"},
        {**make_booking("completed", vendorStatus="completed", reportStatus="submitted"), "id": "b4"},
    ]
    buckets = classify_bookings(records)
    assert {name: [r["id"] for r in items] for name, items in buckets.items()} == {
        "incomplete": ["b1"], "pendingVendor": ["b2"], "pendingReport": ["b3"], "completed": ["b4"],
    }
    assert buckets["pendingReport"][0]["displayId"] == "BK-LX1ABC-7TT"


def test_classify_bookings_newest_first(make_booking):
    older = {**make_booking(), "id": "old"}
    newer = {**make_booking(metadata={"createdAt": "2024-06-12T10:00:00"}), "id": "new"}
    assert [r["id"] for r in classify_bookings([older, newer])["incomplete"]] == ["new", "old"]


def test_summarize_counts_overdue_and_today(make_camp, now):
    buckets = classify_camps([
        {**make_camp(days_ago=0), "id": "a"},
        {**make_camp(days_ago=3), "id": "b"},
        {**make_camp(days_ago=4), "id": "c"},
    ], now)
    summary = summarize(buckets)["incomplete"]
    assert (summary.count, summary.overdue, summary.today) == (3, 2, 1)


# --- View ---
@pytest.fixture
def camp_view_store(make_camp) -> InMemoryStore:
    camps = {f"-c{i}": make_camp(days_ago=i, status="scheduled") for i in range(15)}
    camps["-p"] = make_camp(days_ago=0, status="pending", campCode="MSHC202406150001")
    return InMemoryStore({settings.CAMPS_COLLECTION: camps})


def test_view_classifies_on_start_and_windows(camp_view_store, now):
    view = WorkflowView(EntityKind.CAMP, LiveCollection(camp_view_store, settings.CAMPS_COLLECTION), clock=lambda: now)
    with view:
        assert not view.loading
        assert view.active_tab == "incomplete"
        assert len(view.bucket()) == 15
        assert len(view.visible()) == settings.WORKFLOW.display_window
        assert len(view.visible(show_all=True)) == 15
        assert not view.is_large
    assert camp_view_store.listener_count == 0


def test_view_follows_lifecycle_transitions(camp_view_store, now, actor):
    engine = LifecycleEngine(camp_view_store, clock=lambda: now)
    changes = []
    view = WorkflowView(EntityKind.CAMP, LiveCollection(camp_view_store, settings.CAMPS_COLLECTION),
                        clock=lambda: now, on_change=changes.append)
    with view:
        assert engine.cancel_camp("-c0", actor).ok
        assert len(view.bucket("incomplete")) == 14
        assert engine.schedule_camp({}, actor, camp_id="-p").error is not None
        assert len(changes) == 2


def test_select_passes_full_record_and_switches_context(camp_view_store, now):
    selections = []
    view = WorkflowView(EntityKind.CAMP, LiveCollection(camp_view_store, settings.CAMPS_COLLECTION),
                        context="schedule", clock=lambda: now,
                        on_record_select=lambda record, context: selections.append((record, context)))
    with view:
        record = view.select("-p", target_context="complete")
        assert record["campCode"] == "MSHC202406150001"
        assert view.context == "complete"
        assert view.active_tab == "incomplete"
        assert selections == [(camp_view_store.get(f"{settings.CAMPS_COLLECTION}/-p") | {"id": "-p"}, "complete")]
        assert view.select("-missing") is None
        assert len(selections) == 1


def test_find_by_code(camp_view_store, now):
    with WorkflowView(EntityKind.CAMP, LiveCollection(camp_view_store, settings.CAMPS_COLLECTION), clock=lambda: now) as view:
        assert view.find_by_code("mshc202406150001")["id"] == "-p"
        assert view.find_by_code("nope") is None
        assert view.find_by_code("") is None


def test_booking_view_find_by_test_code(make_booking):
    store = InMemoryStore({settings.BOOKINGS_COLLECTION: {"-b1": make_booking("completed")}})
    with WorkflowView(EntityKind.BOOKING, LiveCollection(store, settings.BOOKINGS_COLLECTION),
                      context="vendor-check") as view:
        assert view.tabs == ["pendingVendor", "pendingReport"]
        assert view.active_tab == "pendingVendor"
        assert [r["id"] for r in view.visible()] == ["-b1"]
        assert view.find_by_code("bst-lx1abc-9qz")["id"] == "-b1"


def test_set_tab_rejects_tab_outside_context(camp_view_store, now):
    view = WorkflowView(EntityKind.CAMP, LiveCollection(camp_view_store, settings.CAMPS_COLLECTION),
                        context="schedule", clock=lambda: now)
    view.set_tab("pending")
    assert view.active_tab == "pending"
    with pytest.raises(ValueError):
        view.set_tab("closed")


def test_view_summary_only_covers_context_tabs(camp_view_store, now):
    with WorkflowView(EntityKind.CAMP, LiveCollection(camp_view_store, settings.CAMPS_COLLECTION),
                      context="schedule", clock=lambda: now) as view:
        summary = view.summary()
        assert set(summary) == {"pending", "incomplete"}
        assert summary["pending"].today == 1
        assert summary["incomplete"].overdue == 14


def test_view_reports_subscription_errors():
    store = InMemoryStore()
    store.available = False
    errors = []
    view = WorkflowView(EntityKind.CAMP, LiveCollection(store, settings.CAMPS_COLLECTION), on_error=errors.append)
    view.start()
    assert view.error == errors[0]
    assert not view.loading


def test_export_is_advisory_by_role(camp_view_store):
    view = WorkflowView(EntityKind.CAMP, LiveCollection(camp_view_store, settings.CAMPS_COLLECTION))
    assert view.can_export(Role.SUPERADMIN)
    assert view.can_export("superadmin")
    assert not view.can_export(Role.STAFF)


# --- Filter, sort & page ---
def test_view_filters_sorts_and_pages_the_active_bucket(camp_view_store, now):
    with WorkflowView(EntityKind.CAMP, LiveCollection(camp_view_store, settings.CAMPS_COLLECTION),
                      clock=lambda: now, page_size=4) as view:
        result = view.query()
        assert (result.total, result.page_count) == (15, 4)
        assert [r["id"] for r in result.rows] == ["-c0", "-c1", "-c2", "-c3"]

        last = view.set_page(9)
        assert last.page_index == 4
        assert len(last.rows) == 3

        filtered = view.set_filter("date", "2024-06-14")
        assert filtered.page_index == 1
        assert [r["id"] for r in filtered.rows] == ["-c1"]
        assert [r["id"] for r in view.visible()] == ["-c1"]
        assert view.clear_filters().total == 15

        assert view.toggle_sort("date").rows[0]["id"] == "-c14"
        assert view.toggle_sort("date").rows[0]["id"] == "-c0"
        assert view.options("district") == ["Pune"]


def test_switching_tab_returns_to_first_page(camp_view_store, now):
    with WorkflowView(EntityKind.CAMP, LiveCollection(camp_view_store, settings.CAMPS_COLLECTION),
                      context="schedule", clock=lambda: now, page_size=4) as view:
        assert view.set_page(2).page_index == 2
        view.set_tab("pending")
        assert view.page.index == 1
        result = view.query()
        assert result.page_index == 1
        assert [r["id"] for r in result.rows] == ["-p"]


def test_view_query_engine_is_typed_by_export_columns(camp_view_store):
    view = WorkflowView(EntityKind.CAMP, LiveCollection(camp_view_store, settings.CAMPS_COLLECTION))
    assert view.query_engine.column_types["revenue"] == ColumnType.CURRENCY
    assert view.query_engine.column_types["date"] == ColumnType.DATE


def test_out_of_range_dates_do_not_break_classification(make_camp, now):
    records = [
        {**make_camp(days_ago=1), "id": "ok"},
        {**make_camp(date="0202-06-01"), "id": "typo"},
        {**make_camp(date="9999-12-31T23:00:00Z"), "id": "far"},
    ]
    buckets = classify_camps(records, now)
    assert [r["id"] for r in buckets["incomplete"]][0] == "ok"
    assert {r["id"] for r in buckets["incomplete"]} == {"ok", "typo", "far"}
    assert not any(r["isOverdue"] for r in buckets["incomplete"] if r["id"] != "ok")
