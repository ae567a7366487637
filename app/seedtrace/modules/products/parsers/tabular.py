from __future__ import annotations

import csv
import io
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

CSV_MIME_TYPES = frozenset(
    {
        "text/csv",
        "application/csv",
        "text/comma-separated-values",
        "text/x-csv",
        "application/x-csv",
    }
)
SPREADSHEET_MIME_TYPES = frozenset(
    {
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-excel",
    }
)
CSV_EXTENSIONS = (".csv",)
# Tried in order; Excel on Windows saves "CSV" as cp1252.
CSV_ENCODINGS = ("utf-8-sig", "cp1252")
SPREADSHEET_EXTENSIONS = (".xlsx", ".xls")

_ZIP_MAGIC = b"PK\x03\x04"
_OLE_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

KIND_CSV = "csv"
KIND_SPREADSHEET = "spreadsheet"


class ImportFileError(ValueError):
    """Operation-level import failure: the whole file is rejected before any row is processed."""

    code = "import_failed"


class UnsupportedFormatError(ImportFileError):
    code = "unsupported_format"


class EmptyFileError(ImportFileError):
    code = "empty_file"


class UnreadableFileError(ImportFileError):
    code = "unreadable_file"


@dataclass(frozen=True)
class ParsedTable:
    headers: list[str]
    rows: list[dict[str, Any]]


def detect_file_kind(mime_type: str | None, filename: str | None) -> str:
    """
    Choose a parser branch from the declared MIME type and the filename.
    CSV wins when either signal says CSV, so a ".csv" upload that the browser labels
    application/vnd.ms-excel still goes to the CSV branch.
    """
    mime = (mime_type or "").split(";")[0].strip().lower()
    name = (filename or "").strip().lower()
    if mime in CSV_MIME_TYPES or name.endswith(CSV_EXTENSIONS):
        return KIND_CSV
    if mime in SPREADSHEET_MIME_TYPES or name.endswith(SPREADSHEET_EXTENSIONS):
        return KIND_SPREADSHEET
    raise UnsupportedFormatError(
        f"Unsupported file type {filename or mime or 'unknown'!r}. Upload a .csv, .xlsx or .xls file."
    )


def _header_labels(raw: list[Any]) -> list[str]:
    """
    Blank header cells get a positional placeholder so every column is addressable.
    A repeated label keeps its first column; later copies get a "_<n>" suffix.
    """
    headers: list[str] = []
    seen: set[str] = set()
    for idx, v in enumerate(raw, start=1):
        label = ("" if v is None else str(v).strip()) or f"Column_{idx}"
        if label in seen:
            label = f"{label}_{idx}"
            while label in seen:
                label = f"{label}_{idx}"
        seen.add(label)
        headers.append(label)
    return headers


def _is_blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and v.strip() == "")


def _decode_csv(file_bytes: bytes) -> str:
    for encoding in CSV_ENCODINGS:
        try:
            return file_bytes.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise UnreadableFileError(f"Could not decode CSV; expected one of: {', '.join(CSV_ENCODINGS)}")


def iter_csv_rows(file_bytes: bytes) -> tuple[list[str], Iterator[dict[str, Any]]]:
    """
    Returns (headers, lazy row iterator). The iterator is single-pass; callers that
    need positional row numbers must materialize it.
    """
    text = _decode_csv(file_bytes)
    reader = csv.reader(io.StringIO(text))
    try:
        first = next(reader)
    except StopIteration:
        return [], iter(())
    except csv.Error as e:
        raise UnreadableFileError(f"Could not read CSV: {e}") from e
    headers = _header_labels(first)

    def _rows() -> Iterator[dict[str, Any]]:
        try:
            for values in reader:
                if all(_is_blank(v) for v in values):
                    continue
                padded = list(values) + [""] * (len(headers) - len(values))
                yield dict(zip(headers, padded))
        except csv.Error as e:
            raise UnreadableFileError(f"Could not read CSV: {e}") from e

    return headers, _rows()


def _table_from_matrix(matrix: Iterator[list[Any]]) -> ParsedTable:
    headers: list[str] | None = None
    rows: list[dict[str, Any]] = []
    for values in matrix:
        if headers is None:
            # Header = first non-empty row of the used range.
            if all(_is_blank(v) for v in values):
                continue
            headers = _header_labels(values)
            continue
        if all(_is_blank(v) for v in values):
            continue
        padded = list(values) + [None] * (len(headers) - len(values))
        rows.append(dict(zip(headers, padded)))
    return ParsedTable(headers=headers or [], rows=rows)


def _xlsx_matrix(file_bytes: bytes) -> Iterator[list[Any]]:
    from openpyxl import load_workbook

    wb = load_workbook(io.BytesIO(file_bytes), data_only=True)
    try:
        ws = wb.worksheets[0]
        for values in ws.iter_rows(min_row=ws.min_row, min_col=ws.min_column, values_only=True):
            yield list(values)
    finally:
        wb.close()


def _xls_matrix(file_bytes: bytes) -> Iterator[list[Any]]:
    import xlrd

    wb = xlrd.open_workbook(file_contents=file_bytes)
    ws = wb.sheet_by_index(0)
    for r in range(ws.nrows):
        values: list[Any] = []
        for c in range(ws.ncols):
            cell = ws.cell(r, c)
            if cell.ctype == xlrd.XL_CELL_DATE:
                # Keep dates as date values; the field mapper formats them.
                values.append(xlrd.xldate_as_datetime(cell.value, wb.datemode))
            elif cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
                values.append(None)
            else:
                values.append(cell.value)
        yield values


def parse_spreadsheet(file_bytes: bytes, filename: str | None = None) -> ParsedTable:
    """Read the first sheet of an .xlsx (openpyxl) or legacy .xls (xlrd) workbook."""
    name = (filename or "").lower()
    if file_bytes.startswith(_OLE_MAGIC):
        is_xls = True
    elif file_bytes.startswith(_ZIP_MAGIC):
        is_xls = False
    else:
        is_xls = name.endswith(".xls")
    try:
        matrix = _xls_matrix(file_bytes) if is_xls else _xlsx_matrix(file_bytes)
        return _table_from_matrix(matrix)
    except ImportFileError:
        raise
    except Exception as e:
        logger.warning("Workbook parse failed (filename=%s, xls=%s): %s", filename, is_xls, e)
        raise UnreadableFileError(f"Could not read workbook: {e}") from e


def parse_tabular(file_bytes: bytes, *, mime_type: str | None, filename: str | None) -> ParsedTable:
    """
    Detect the file type, parse it and materialize the rows.

    Raises:
      UnsupportedFormatError: neither MIME type nor extension is CSV/Excel.
      UnreadableFileError: the bytes are not a readable CSV/workbook.
      EmptyFileError: the file has no data rows.
    """
    kind = detect_file_kind(mime_type, filename)
    if kind == KIND_CSV:
        headers, row_iter = iter_csv_rows(file_bytes)
        table = ParsedTable(headers=headers, rows=list(row_iter))
    else:
        table = parse_spreadsheet(file_bytes, filename)

    logger.info("Parsed %s upload %s: %d columns, %d rows", kind, filename, len(table.headers), len(table.rows))
    if not table.rows:
        raise EmptyFileError("The file contains no data rows.")
    return table
