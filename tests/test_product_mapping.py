"""Tests for the import column normalizer / field mapper."""
from datetime import date, datetime
from decimal import Decimal

import pytest

from app.seedtrace.modules.products.mapping import (
    DECIMAL,
    MISSING,
    PRODUCT_FIELDS,
    coerce_date,
    coerce_decimal,
    map_row,
    normalize_header,
    resolve_field,
)

COMPANY = "Green Gold Seeds Pvt. Ltd."


def _map(row, n=1):
    return map_row(row, row_number=n, unique_id="GGS-2025-000001", default_company=COMPANY)


class TestResolveField:
    """Alias resolution order and presence semantics."""

    def test_first_alias_in_priority_order_wins(self):
        row = {"MRP": "650", "MRP (₹)": "700"}
        assert resolve_field(row, ("MRP (₹)", "MRP")) == "700"

    def test_blank_higher_priority_alias_falls_through(self):
        row = {"MRP (₹)": "  ", "MRP": "650"}
        assert resolve_field(row, ("MRP (₹)", "MRP")) == "650"

    def test_normalized_header_match(self):
        row = {"  mrp  ": "650"}
        assert resolve_field(row, ("MRP",)) == "650"
        assert normalize_header("No. of Packets") == "noofpackets"

    def test_present_but_blank_vs_missing(self):
        assert resolve_field({"Brand": ""}, ("Brand",)) is None
        assert resolve_field({"Other": "x"}, ("Brand",)) is MISSING


class TestCoercions:
    @pytest.mark.parametrize("raw", ["N/A", "Ask Store", "", None, "   ", "nan", "inf", True])
    def test_unparsable_decimal_is_none(self, raw):
        assert coerce_decimal(raw) is None

    @pytest.mark.parametrize("raw", ["1e999999999", "1e50000000", "-1E+30", "1e-999999999", "0E-50"])
    def test_out_of_range_exponent_is_none(self, raw):
        assert coerce_decimal(raw) is None

    def test_exponent_within_range_is_expanded(self):
        assert coerce_decimal("1.5e3") == "1500"
        assert coerce_decimal(Decimal("1E+20")) == "100000000000000000000"

    @pytest.mark.parametrize(
        "raw,expected",
        [("650", "650"), (650, "650"), (650.5, "650.5"), ("1,250.00", "1250.00"), ("₹ 99", "99"), ("Rs. 45.5", "45.5")],
    )
    def test_decimal_values(self, raw, expected):
        assert coerce_decimal(raw) == expected

    def test_serial_date_becomes_display_date(self):
        assert coerce_date(45000) == "15/03/2023"
        assert coerce_date(25568) == "31/12/1969"
        assert coerce_date(45000.75) == "15/03/2023"

    def test_small_numbers_are_not_dates(self):
        assert coerce_date(25567) == "25567"
        assert coerce_date(12.0) == "12"

    def test_date_cells_and_strings(self):
        assert coerce_date(datetime(2024, 11, 5, 10, 30)) == "05/11/2024"
        assert coerce_date(date(2025, 1, 31)) == "31/01/2025"
        assert coerce_date("Nov 2024") == "Nov 2024"


class TestMapRow:
    def test_every_decimal_field_present_even_when_absent(self):
        mapped = _map({"Product": "Hybrid Maize"})
        for spec in PRODUCT_FIELDS:
            if spec.kind == DECIMAL:
                assert spec.name in mapped
                assert mapped[spec.name] is None

    def test_defaults_and_placeholder_name(self):
        mapped = _map({"MRP": "650"}, n=2)
        assert mapped["company"] == COMPANY
        assert mapped["brand"] == COMPANY
        assert mapped["product"] == "Product 2"
        assert mapped["description"] == "Product 2"
        assert mapped["mrp"] == "650"

    def test_crop_derived_placeholder_and_description(self):
        mapped = _map({"Crop Name": "Maize", "Market Code": "GOLD-1144 ANKUSH", "Lot/Batch": "T341746"})
        assert mapped["product"] == "Maize GOLD-1144 ANKUSH"
        assert mapped["description"] == "Maize GOLD-1144 ANKUSH - Crop: Maize, Variety: GOLD-1144 ANKUSH, Lot: T341746"

    def test_file_unique_id_is_always_replaced(self):
        mapped = _map({"Product": "X", "Unique ID": "FROM-FILE", "unique_id": "ALSO-FILE"})
        assert mapped["unique_id"] == "GGS-2025-000001"

    def test_text_columns_absent_vs_blank(self):
        mapped = _map({"Product": "X", "Lot No": ""})
        assert mapped["lot_no"] == ""
        assert "stack_no" not in mapped

    def test_numeric_text_cells_lose_float_tail(self):
        mapped = _map({"Product": "X", "Lot No": 12345.0, "Customer Care": 18001234567})
        assert mapped["lot_no"] == "12345"
        assert mapped["customer_care"] == "18001234567"

    def test_label_dates_formatted(self):
        mapped = _map({"Product": "X", "Mfg Date": 45000, "Expiry Date": datetime(2025, 6, 1), "Date of Test": "Q3-24"})
        assert mapped["mfg_date"] == "15/03/2023"
        assert mapped["expiry_date"] == "01/06/2025"
        assert mapped["date_of_test"] == "Q3-24"

    def test_mapping_is_pure(self):
        row = {"Product": "X", "MRP": "N/A"}
        before = dict(row)
        assert _map(row) == _map(row)
        assert row == before
