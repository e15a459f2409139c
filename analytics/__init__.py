# campops_console/analytics/__init__.py
# ANALYTICS PACKAGE INITIALIZATION

"""
Aggregate figures computed over camp snapshots for the console's
performance panel.
"""

# From camp_performance.py
from .camp_performance import (
    PerformanceMetrics,
    Timeframe,
    available_fiscal_years,
    available_month_years,
    calculate_metrics,
    camp_performance,
    filter_period,
    prepare_camp_frame,
)

__all__ = [
    "PerformanceMetrics",
    "Timeframe",
    "available_fiscal_years",
    "available_month_years",
    "calculate_metrics",
    "camp_performance",
    "filter_period",
    "prepare_camp_frame",
]
