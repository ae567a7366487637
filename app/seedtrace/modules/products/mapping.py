"""
Column normalizer / field mapper for product imports.

Spreadsheets arrive from many hands: "MRP", "mrp", "MRP (₹)" all mean the same
column. PRODUCT_FIELDS lists, per canonical field, the accepted source headers in
priority order together with the coercion to apply. `map_row()` is the only
consumer; it has no side effects.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

TEXT = "text"
DECIMAL = "decimal"
DATE = "date"

# Spreadsheet day zero and the smallest serial treated as a date.
SPREADSHEET_EPOCH = date(1899, 12, 30)
DATE_SERIAL_THRESHOLD = 25568
DISPLAY_DATE_FORMAT = "%d/%m/%Y"

# Cells whose decimal exponent is outside this range are not label quantities.
MAX_DECIMAL_EXPONENT = 20


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


# No alias for the field is present in the row (distinct from a present-but-blank cell).
MISSING: Any = _Missing()


@dataclass(frozen=True)
class FieldSpec:
    name: str
    aliases: tuple[str, ...]
    kind: str = TEXT


PRODUCT_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("company", ("Company", "company", "COMPANY", "Company Name", "Producer")),
    FieldSpec("brand", ("Brand", "brand", "BRAND", "Brand Name")),
    FieldSpec("product", ("Product Name", "Product", "product", "PRODUCT", "productName", "Variety Name")),
    FieldSpec("description", ("Description", "description", "Product Description", "Details")),
    FieldSpec("crop_name", ("Crop Name", "Crop", "cropName", "crop_name", "CROP")),
    FieldSpec("label_number", ("Label Number", "Label No", "Label No.", "labelNumber", "label_number")),
    FieldSpec("mrp", ("MRP (₹)", "MRP", "mrp", "MRP (Rs)", "MRP Rs.", "M.R.P.", "Price"), DECIMAL),
    FieldSpec(
        "unit_sale_price",
        ("Unit Sale Price (₹)", "Unit Sale Price", "unitSalePrice", "unit_sale_price", "Sale Price"),
        DECIMAL,
    ),
    FieldSpec("net_qty", ("Net Quantity", "Net Qty", "Net Qty.", "netQty", "net_qty", "NET QTY")),
    FieldSpec("pack_size", ("Pack Size", "packSize", "pack_size", "Packing")),
    FieldSpec("no_of_pkts", ("No. of Packets", "No of Packets", "No. of Pkts", "noOfPkts", "no_of_pkts"), DECIMAL),
    FieldSpec("total_pkts", ("Total Packets", "Total Pkts", "totalPkts", "total_pkts"), DECIMAL),
    FieldSpec("lot_batch", ("Lot/Batch", "Lot Batch", "Lot/Batch No", "lotBatch", "lot_batch", "Batch No", "Batch")),
    FieldSpec("lot_no", ("Lot No", "Lot No.", "Lot Number", "lotNo", "lot_no")),
    FieldSpec("stack_no", ("Stack No", "Stack No.", "stackNo", "stack_no")),
    FieldSpec(
        "mfg_date",
        ("Manufacturing Date", "Mfg Date", "Mfg. Date", "Date of Manufacture", "mfgDate", "mfg_date"),
        DATE,
    ),
    FieldSpec("expiry_date", ("Expiry Date", "Exp Date", "Exp. Date", "Valid Upto", "expiryDate", "expiry_date"), DATE),
    FieldSpec("date_of_test", ("Date of Test", "Test Date", "dateOfTest", "date_of_test"), DATE),
    FieldSpec("customer_care", ("Customer Care", "Customer Care No", "customerCare", "customer_care", "Helpline")),
    FieldSpec("email", ("Email", "E-mail", "email", "Email ID")),
    FieldSpec("company_address", ("Company Address", "Address", "companyAddress", "company_address")),
    FieldSpec("marketed_by", ("Marketed By", "marketedBy", "marketed_by")),
    FieldSpec("location", ("Location", "location")),
    FieldSpec("from_location", ("From", "from", "From Location", "from_location")),
    FieldSpec("to_location", ("To", "to", "To Location", "to_location")),
    FieldSpec("marketing_code", ("Marketing Code", "marketingCode", "marketing_code")),
    FieldSpec(
        "unit_of_measure_code",
        ("Unit of Measure Code", "UOM Code", "UOM", "unitOfMeasureCode", "unit_of_measure_code"),
    ),
    FieldSpec("market_code", ("Market Code", "marketCode", "market_code", "Variety Code", "Variety")),
    FieldSpec("prod_code", ("Product Code", "Prod Code", "prodCode", "prod_code")),
    FieldSpec("stage_code", ("Stage Code", "Stage", "stageCode", "stage_code")),
    FieldSpec(
        "remaining_quantity",
        ("Remaining Quantity", "Remaining Qty", "remainingQuantity", "remaining_quantity"),
        DECIMAL,
    ),
    FieldSpec(
        "normal_germination",
        ("Normal Germination (%)", "Normal Germination", "Germination %", "normalGermination", "normal_germination"),
        DECIMAL,
    ),
    FieldSpec("ger_ave", ("Germination Average", "Ger Ave", "gerAve", "ger_ave"), DECIMAL),
    FieldSpec("gb", ("GB", "gb")),
    FieldSpec("got_percent", ("GOT Percent", "GOT %", "GOT (%)", "gotPercent", "got_percent"), DECIMAL),
    FieldSpec("got_ave", ("GOT Average", "GOT Ave", "gotAve", "got_ave"), DECIMAL),
)

_NON_ALNUM = re.compile(r"[^0-9a-z]+")
_CURRENCY = re.compile(r"^(rs\.?|inr|₹)\s*", re.IGNORECASE)


def normalize_header(label: str) -> str:
    """'MRP (₹)' -> 'mrp', 'No. of Packets' -> 'noofpackets'."""
    return _NON_ALNUM.sub("", str(label).lower())


def _is_blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and v.strip() == "")


def header_index(row: dict[str, Any]) -> dict[str, str]:
    index: dict[str, str] = {}
    for key in row:
        if key is None:
            continue
        index.setdefault(normalize_header(key), key)
    return index


def resolve_field(row: dict[str, Any], aliases: tuple[str, ...], index: dict[str, str] | None = None) -> Any:
    """
    First non-blank value among `aliases`, exact header match first, then
    case/space/punctuation-insensitive. Returns None when an alias column exists
    but every match is blank, MISSING when no alias column exists at all.
    """
    present = False
    for alias in aliases:
        if alias in row:
            present = True
            if not _is_blank(row[alias]):
                return row[alias]
    if index is None:
        index = header_index(row)
    for alias in aliases:
        key = index.get(normalize_header(alias))
        if key is not None:
            present = True
            if not _is_blank(row[key]):
                return row[key]
    return None if present else MISSING


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float, Decimal)) and not isinstance(v, bool)


def coerce_decimal(v: Any) -> str | None:
    """Lenient: anything that is not a finite number becomes None, never an error."""
    if v is MISSING or _is_blank(v) or isinstance(v, bool):
        return None
    if _is_number(v):
        raw = str(v)
    else:
        raw = _CURRENCY.sub("", str(v).strip()).replace(",", "").strip()
    try:
        d = Decimal(raw)
    except (InvalidOperation, ValueError):
        return None
    if not d.is_finite() or abs(d.adjusted()) > MAX_DECIMAL_EXPONENT:
        return None
    return format(d, "f")


def _format_number(v: Any) -> str:
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


def coerce_date(v: Any) -> str:
    """
    Label dates stay display strings. Date cells and spreadsheet serials become
    DD/MM/YYYY; everything else passes through unchanged.
    """
    if _is_blank(v):
        return ""
    if isinstance(v, (datetime, date)):
        return v.strftime(DISPLAY_DATE_FORMAT)
    if _is_number(v):
        if v >= DATE_SERIAL_THRESHOLD:
            try:
                return (SPREADSHEET_EPOCH + timedelta(days=int(v))).strftime(DISPLAY_DATE_FORMAT)
            except OverflowError:
                return _format_number(v)
        return _format_number(v)
    return str(v).strip()


def coerce_text(v: Any) -> str:
    if _is_blank(v):
        return ""
    if isinstance(v, (datetime, date)):
        return v.strftime(DISPLAY_DATE_FORMAT)
    if _is_number(v):
        return _format_number(v)
    return str(v).strip()


_COERCERS = {TEXT: coerce_text, DATE: coerce_date}


def placeholder_product_name(mapped: dict[str, Any], row_number: int) -> str:
    crop = (mapped.get("crop_name") or "").strip()
    if crop:
        return " ".join(p for p in (crop, (mapped.get("market_code") or "").strip()) if p)
    return f"Product {row_number}"


def synthesize_description(mapped: dict[str, Any]) -> str:
    details = []
    if mapped.get("crop_name"):
        details.append(f"Crop: {mapped['crop_name']}")
    if mapped.get("market_code"):
        details.append(f"Variety: {mapped['market_code']}")
    if mapped.get("lot_batch"):
        details.append(f"Lot: {mapped['lot_batch']}")
    name = mapped.get("product") or ""
    if not details:
        return name
    return f"{name} - {', '.join(details)}"


def map_row(row: dict[str, Any], *, row_number: int, unique_id: str, default_company: str) -> dict[str, Any]:
    """
    Map one raw row-record to a product payload.

    Decimal fields are always present (None when absent, blank or unparsable).
    Other fields are omitted when no alias column exists, "" when the column is blank.
    Any id supplied by the file is replaced with `unique_id`.
    """
    index = header_index(row)
    mapped: dict[str, Any] = {}
    for spec in PRODUCT_FIELDS:
        raw = resolve_field(row, spec.aliases, index)
        if spec.kind == DECIMAL:
            mapped[spec.name] = coerce_decimal(raw)
            continue
        if raw is MISSING:
            continue
        mapped[spec.name] = _COERCERS[spec.kind](raw)

    if not mapped.get("company"):
        mapped["company"] = default_company
    if not mapped.get("brand"):
        mapped["brand"] = default_company
    if not mapped.get("product"):
        mapped["product"] = placeholder_product_name(mapped, row_number)
    if not mapped.get("description"):
        mapped["description"] = synthesize_description(mapped)

    mapped["unique_id"] = unique_id
    return mapped
