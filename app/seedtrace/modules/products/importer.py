"""
Bulk product import: parsed rows -> mapped payloads -> validated -> persisted.

Rows are independent. A row that fails mapping, validation or persistence is
skipped and reported; it never aborts the rows after it. Only the first
`max_errors` failure messages are kept, the counts always cover every row.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from app.seedtrace.modules.products.mapping import map_row
from app.seedtrace.modules.products.parsers.tabular import parse_tabular

logger = logging.getLogger(__name__)

DEFAULT_MAX_ERRORS = 10


class RowValidationError(ValueError):
    """One row does not satisfy the product schema; the row is skipped."""


@dataclass
class ImportOutcome:
    max_errors: int = DEFAULT_MAX_ERRORS
    total: int = 0
    imported: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def record_success(self) -> "ImportOutcome":
        self.total += 1
        self.imported += 1
        return self

    def record_failure(self, row_number: int, message: str) -> "ImportOutcome":
        self.total += 1
        self.skipped += 1
        if len(self.errors) < self.max_errors:
            self.errors.append(f"Row {row_number}: {message}")
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": "Import completed",
            "imported": self.imported,
            "skipped": self.skipped,
            "total": self.total,
            "errors": list(self.errors),
        }


def _failure_message(e: Exception) -> str:
    # DB driver errors carry the SQL statement on later lines.
    text = str(e).strip()
    return text.splitlines()[0] if text else e.__class__.__name__


def validate_row(payload: dict[str, Any]) -> dict[str, Any]:
    from app.seedtrace.modules.products.service import validate_product_payload

    errors = validate_product_payload(payload)
    if errors:
        raise RowValidationError("; ".join(errors))
    return payload


def process_row(
    outcome: ImportOutcome,
    row: dict[str, Any],
    row_number: int,
    *,
    create_record: Callable[[dict[str, Any]], Any],
    generate_unique_id: Callable[[], str],
    default_company: str,
) -> ImportOutcome:
    try:
        payload = map_row(
            row,
            row_number=row_number,
            unique_id=generate_unique_id(),
            default_company=default_company,
        )
        validate_row(payload)
        create_record(payload)
    except Exception as e:
        logger.warning("Import row %s skipped: %s", row_number, e)
        return outcome.record_failure(row_number, _failure_message(e))
    return outcome.record_success()


def import_rows(
    rows: Iterable[dict[str, Any]],
    *,
    create_record: Callable[[dict[str, Any]], Any],
    generate_unique_id: Callable[[], str],
    default_company: str,
    max_errors: int = DEFAULT_MAX_ERRORS,
) -> ImportOutcome:
    """
    Run every row through map -> validate -> persist, in file order.

    `create_record` persists one payload and raises on failure; it is expected to
    leave the store usable for the next row (commit or roll back per row).
    Row numbers are 1-based positions among the data rows.
    """
    outcome = ImportOutcome(max_errors=max_errors)
    for row_number, row in enumerate(rows, start=1):
        outcome = process_row(
            outcome,
            row,
            row_number,
            create_record=create_record,
            generate_unique_id=generate_unique_id,
            default_company=default_company,
        )
    logger.info(
        "Import finished: %d imported, %d skipped of %d rows", outcome.imported, outcome.skipped, outcome.total
    )
    return outcome


def run_import(
    file_bytes: bytes,
    *,
    mime_type: str | None,
    filename: str | None,
    create_record: Callable[[dict[str, Any]], Any],
    generate_unique_id: Callable[[], str],
    default_company: str,
    max_errors: int = DEFAULT_MAX_ERRORS,
) -> ImportOutcome:
    """Parse the upload then import its rows. File-level problems raise ImportFileError."""
    table = parse_tabular(file_bytes, mime_type=mime_type, filename=filename)
    return import_rows(
        table.rows,
        create_record=create_record,
        generate_unique_id=generate_unique_id,
        default_company=default_company,
        max_errors=max_errors,
    )
