# campops_console/tests/test_camp_performance.py
# CAMP PERFORMANCE ANALYTICS TESTS

import pytest

from analytics import (Timeframe, available_fiscal_years, available_month_years,
                       calculate_metrics, camp_performance, filter_period, prepare_camp_frame)


def camp(day: str, units=10, revenue=1000, status="completed", **extra) -> dict:
    return {"date": day, "unitsSold": units, "revenue": revenue, "status": status, **extra}


@pytest.fixture
def camp_records() -> list:
    return [
        camp("2024-01-10"),
        camp("2024-01-20", units=20, revenue=3000),
        camp("2023-12-05", units="15", revenue="1500"),
        camp("2024-03-31", units=5),
        camp("2024-04-01", units=8),
        camp("2024-01-12", status="scheduled"),
        camp("not a date"),
    ]


def test_prepare_keeps_completed_dated_camps(camp_records):
    df = prepare_camp_frame(camp_records)
    assert len(df) == 5
    assert df["unitsSold"].dtype == float


def test_partner_adjustment_is_applied_for_listed_partners_only():
    df = prepare_camp_frame([
        camp("2024-01-10", units=10, partnerName="HUMANA", partnerAdjustedCount=4),
        camp("2024-01-11", units=10, partnerName="PAHAL", partnerAdjustedCount=4),
    ])
    assert df["unitsSold"].tolist() == [14.0, 10.0]


def test_prepare_empty():
    df = prepare_camp_frame([])
    current, previous = filter_period(df, Timeframe.MTD, "0-2024")
    assert current.empty and previous.empty
    assert calculate_metrics(current, previous).total_camps == 0


def test_mtd_compares_against_previous_month_across_year_boundary(camp_records):
    df = prepare_camp_frame(camp_records)
    current, previous = filter_period(df, Timeframe.MTD, month_year="0-2024")
    assert len(current) == 2
    assert len(previous) == 1


def test_ytd_uses_april_to_march_fiscal_year(camp_records):
    df = prepare_camp_frame(camp_records)
    current, previous = filter_period(df, Timeframe.YTD, fiscal_year="FY2023-2024")
    assert len(current) == 4
    assert previous.empty
    current, previous = filter_period(df, Timeframe.YTD, fiscal_year="FY2024-2025")
    assert len(current) == 1
    assert len(previous) == 4


def test_itd_takes_everything(camp_records):
    metrics = camp_performance(camp_records, Timeframe.ITD)
    assert metrics.total_camps == 5
    assert metrics.units_sold == 58
    assert metrics.changes["totalCamps"] is None


def test_metrics_and_percentage_change(camp_records):
    metrics = camp_performance(camp_records, Timeframe.MTD, month_year="0-2024")
    assert metrics.total_camps == 2
    assert metrics.units_sold == 30
    assert metrics.total_revenue == 4000
    assert metrics.avg_units_per_camp == 15
    assert metrics.changes["totalCamps"] == 100.0
    assert metrics.changes["unitsSold"] == 100.0
    assert metrics.changes["totalRevenue"] == 166.7


def test_missing_period_selection_gives_empty_metrics(camp_records):
    assert camp_performance(camp_records, Timeframe.MTD).total_camps == 0
    assert camp_performance(camp_records, "ytd").total_camps == 0


def test_period_options(camp_records):
    df = prepare_camp_frame(camp_records)
    assert available_month_years(df) == ["3-2024", "2-2024", "0-2024", "11-2023"]
    assert available_fiscal_years(df) == ["FY2024-2025", "FY2023-2024"]
