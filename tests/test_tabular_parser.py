"""Tests for upload type detection and CSV / Excel parsing."""
import io
import types
from datetime import datetime

import pytest
from openpyxl import Workbook

from app.seedtrace.modules.products.parsers.tabular import (
    KIND_CSV,
    KIND_SPREADSHEET,
    EmptyFileError,
    ImportFileError,
    UnreadableFileError,
    UnsupportedFormatError,
    detect_file_kind,
    iter_csv_rows,
    parse_tabular,
)

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _xlsx_bytes(rows, *, start_cell=None, extra_sheet=False) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Products"
    if start_cell:
        r0, c0 = start_cell
        for i, values in enumerate(rows):
            for j, v in enumerate(values):
                ws.cell(row=r0 + i, column=c0 + j, value=v)
    else:
        for values in rows:
            ws.append(values)
    if extra_sheet:
        other = wb.create_sheet("Notes")
        other.append(["Product"])
        other.append(["Should be ignored"])
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


class TestDetectFileKind:
    def test_csv_wins_when_either_signal_says_csv(self):
        assert detect_file_kind("text/csv", "labels.xlsx") == KIND_CSV
        assert detect_file_kind("application/vnd.ms-excel", "labels.csv") == KIND_CSV
        assert detect_file_kind("text/csv; charset=utf-8", None) == KIND_CSV

    def test_spreadsheet_by_mime_or_extension(self):
        assert detect_file_kind(XLSX, "upload") == KIND_SPREADSHEET
        assert detect_file_kind("application/octet-stream", "LABELS.XLSX") == KIND_SPREADSHEET
        assert detect_file_kind("application/octet-stream", "old.xls") == KIND_SPREADSHEET

    def test_unsupported(self):
        with pytest.raises(UnsupportedFormatError):
            detect_file_kind("application/pdf", "labels.pdf")
        assert issubclass(UnsupportedFormatError, ImportFileError)


class TestCsv:
    def test_rows_are_lazy_and_header_keyed(self):
        headers, rows = iter_csv_rows(b"Product,MRP\nMaize,650\n")
        assert headers == ["Product", "MRP"]
        assert isinstance(rows, types.GeneratorType)
        assert list(rows) == [{"Product": "Maize", "MRP": "650"}]

    def test_bom_blank_rows_short_rows_and_blank_headers(self):
        data = "﻿Product,,MRP\nMaize,x,650\n,,\nWheat\n".encode("utf-8")
        table = parse_tabular(data, mime_type="text/csv", filename="p.csv")
        assert table.headers == ["Product", "Column_2", "MRP"]
        assert table.rows == [
            {"Product": "Maize", "Column_2": "x", "MRP": "650"},
            {"Product": "Wheat", "Column_2": "", "MRP": ""},
        ]

    def test_repeated_header_keeps_first_column(self):
        data = b"Product,MRP,MRP,,MRP\nMaize,650,700,x,800\n"
        table = parse_tabular(data, mime_type="text/csv", filename="p.csv")
        assert table.headers == ["Product", "MRP", "MRP_3", "Column_4", "MRP_5"]
        assert table.rows[0]["MRP"] == "650"
        assert table.rows[0]["MRP_3"] == "700"

    def test_cp1252_export_is_decoded(self):
        data = "Company,Product\nCafé Seeds,Maize\n".encode("cp1252")
        table = parse_tabular(data, mime_type="text/csv", filename="p.csv")
        assert table.rows[0]["Company"] == "Café Seeds"

    def test_utf8_is_preferred_over_cp1252(self):
        data = "Company\nCafé Seeds ₹\n".encode("utf-8")
        table = parse_tabular(data, mime_type="text/csv", filename="p.csv")
        assert table.rows[0]["Company"] == "Café Seeds ₹"

    def test_undecodable_bytes_are_unreadable(self):
        with pytest.raises(UnreadableFileError):
            parse_tabular(b"Product\n\x81\x8d\n", mime_type="text/csv", filename="p.csv")

    def test_header_only_is_empty(self):
        with pytest.raises(EmptyFileError):
            parse_tabular(b"Product,MRP\n", mime_type="text/csv", filename="p.csv")

    def test_zero_bytes_is_empty(self):
        with pytest.raises(EmptyFileError):
            parse_tabular(b"", mime_type="text/csv", filename="p.csv")


class TestSpreadsheet:
    def test_first_sheet_header_and_cell_types(self):
        data = _xlsx_bytes(
            [
                ["Product", None, "MRP", "Mfg Date"],
                ["Hybrid Maize", "note", 650, datetime(2024, 11, 5)],
            ],
            extra_sheet=True,
        )
        table = parse_tabular(data, mime_type=XLSX, filename="labels.xlsx")
        assert table.headers == ["Product", "Column_2", "MRP", "Mfg Date"]
        assert len(table.rows) == 1
        row = table.rows[0]
        assert row["Product"] == "Hybrid Maize"
        assert row["MRP"] == 650
        assert row["Mfg Date"] == datetime(2024, 11, 5)

    def test_repeated_header_in_workbook_keeps_first_column(self):
        data = _xlsx_bytes([["Product", "MRP", "MRP"], ["Maize", 650, 999]])
        table = parse_tabular(data, mime_type=XLSX, filename="labels.xlsx")
        assert table.headers == ["Product", "MRP", "MRP_3"]
        assert table.rows[0]["MRP"] == 650

    def test_used_range_offset_and_blank_rows(self):
        data = _xlsx_bytes(
            [
                ["Product", "MRP"],
                ["Maize", 650],
                [None, None],
                ["Wheat", None],
            ],
            start_cell=(3, 2),
        )
        table = parse_tabular(data, mime_type=None, filename="offset.xlsx")
        assert table.headers == ["Product", "MRP"]
        assert table.rows == [{"Product": "Maize", "MRP": 650}, {"Product": "Wheat", "MRP": None}]

    def test_header_only_workbook_is_empty(self):
        data = _xlsx_bytes([["Product", "MRP"]])
        with pytest.raises(EmptyFileError):
            parse_tabular(data, mime_type=XLSX, filename="labels.xlsx")

    def test_corrupt_workbook_is_unreadable(self):
        with pytest.raises(UnreadableFileError):
            parse_tabular(b"definitely not a workbook", mime_type=XLSX, filename="labels.xlsx")

    def test_corrupt_legacy_workbook_is_unreadable(self):
        garbage = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 64
        with pytest.raises(UnreadableFileError):
            parse_tabular(garbage, mime_type="application/vnd.ms-excel", filename="labels.xls")
