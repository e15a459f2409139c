# campops_console/workflow/__init__.py
# WORKFLOW PACKAGE INITIALIZATION

from .views import (
    BOOKING_CONTEXT_TABS,
    CAMP_CONTEXT_TABS,
    BucketSummary,
    EntityKind,
    WorkflowView,
    classify_bookings,
    classify_camps,
    default_tab_for,
    summarize,
    tabs_for,
)

__all__ = [
    "BOOKING_CONTEXT_TABS",
    "CAMP_CONTEXT_TABS",
    "BucketSummary",
    "EntityKind",
    "WorkflowView",
    "classify_bookings",
    "classify_camps",
    "default_tab_for",
    "summarize",
    "tabs_for",
]
