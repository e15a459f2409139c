# campops_console/tests/test_export.py
# EXPORT FORMATTING TESTS

from datetime import date

import pandas as pd

from data_processing import (BOOKING_COLUMNS, CAMP_COLUMNS, ColumnType, CsvExportSink, ExportColumn,
                             build_export_rows, can_export, export_filename, flatten_booking_tests)
from data_processing.export import column_types, format_currency, format_date, format_value


def test_format_date_matches_screen_pattern():
    assert format_date("2024-06-05T10:00:00") == "05 Jun 2024"
    assert format_date("") == ""
    assert format_date(None) == ""
    assert format_date("sometime") == "sometime"


def test_format_currency():
    assert format_currency(1500) == "₹1,500.00"
    assert format_currency("250.5") == "₹250.50"
    assert format_currency(None) == ""


def test_format_value_by_type():
    assert format_value("12", ColumnType.NUMBER) == 12
    assert format_value(None, ColumnType.TEXT) == ""
    assert format_value(["CBC", "HbA1c"], ColumnType.TEXT) == "CBC, HbA1c"


def test_build_export_rows_flattens_nested_fields(make_booking):
    columns = [
        ExportColumn(header="Patient Name", field="name"),
        ExportColumn(header="Created At", field="metadata.createdAt", type=ColumnType.DATE),
        ExportColumn(header="Vendor Status Updated By", field="metadata.vendorStatusUpdatedBy"),
        ExportColumn(header="Total", field="totalPrice", type=ColumnType.CURRENCY),
    ]
    rows = build_export_rows([make_booking()], columns)
    assert rows == [{
        "name": "Diya Patil",
        "metadata.createdAt": "10 Jun 2024",
        "metadata.vendorStatusUpdatedBy": "",
        "totalPrice": "₹700.00",
    }]


def test_flatten_booking_tests_gives_one_row_per_test(make_booking):
    rows = flatten_booking_tests([make_booking(), make_booking(tests=[])])
    assert len(rows) == 3
    assert [r.get("testName") for r in rows[:2]] == ["Blood Sugar", "HbA1c"]
    assert rows[0]["bookingId"] == "BK-BST-LX1ABC-9QZ"
    assert rows[0]["name"] == "Diya Patil"


def test_export_filename():
    assert export_filename("healthCamps", date(2024, 6, 15)) == "healthCamps_2024-06-15.csv"


def test_can_export_is_superadmin_only():
    assert can_export("SuperAdmin")
    assert not can_export("admin")
    assert not can_export(None)


def test_column_tables_cover_dates_and_money():
    camp_types = column_types(CAMP_COLUMNS)
    assert camp_types["date"] == ColumnType.DATE
    assert camp_types["revenue"] == ColumnType.CURRENCY
    assert column_types(BOOKING_COLUMNS)["metadata.createdAt"] == ColumnType.DATE


def test_csv_sink_writes_headers(tmp_path, make_camp):
    camp = make_camp(days_ago=0, status="completed", revenue=4200)
    rows = build_export_rows([camp], CAMP_COLUMNS)
    sink = CsvExportSink(tmp_path, columns=CAMP_COLUMNS, today=date(2024, 6, 15))
    path = sink.export_rows(rows, "healthCamps")

    assert path.name == "healthCamps_2024-06-15.csv"
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    assert list(df.columns) == [c.header for c in CAMP_COLUMNS]
    assert df.loc[0, "Date"] == "15 Jun 2024"
    assert df.loc[0, "Revenue"] == "₹4,200.00"
    assert df.loc[0, "Status"] == "completed"
