from __future__ import annotations

import logging
import os
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from werkzeug.utils import secure_filename

from app.seedtrace.audit import record_event
from app.seedtrace.constants import (
    BROCHURE_EXTENSIONS,
    BROCHURE_MAX_BYTES,
    PRODUCT_STATUS_APPROVED,
    PRODUCT_STATUS_PENDING,
    PRODUCT_STATUS_REJECTED,
    PRODUCT_STATUSES,
)
from app.seedtrace.modules.products.importer import ImportOutcome, run_import
from app.seedtrace.modules.products.mapping import MAX_DECIMAL_EXPONENT, PRODUCT_FIELDS
from app.seedtrace.modules.products.models import DECIMAL_COLUMNS, TEXT_COLUMNS, TEXT_LIMITS, Product
from app.seedtrace.storage import brochure_key

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.seedtrace.models import User
    from app.seedtrace.storage import Storage

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("company", "brand", "product", "description")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Largest absolute value each Numeric column can hold.
DECIMAL_LIMITS = {
    "mrp": Decimal("99999999.99"),
    "unit_sale_price": Decimal("99999999.99"),
    "no_of_pkts": Decimal("9999999999.99"),
    "total_pkts": Decimal("9999999999.99"),
    "remaining_quantity": Decimal("9999999999.99"),
    "normal_germination": Decimal("9999.99"),
    "ger_ave": Decimal("9999.99"),
    "got_percent": Decimal("9999.99"),
    "got_ave": Decimal("9999.99"),
}

FIELD_LABELS = {f.name: f.aliases[0] for f in PRODUCT_FIELDS}

_UNIQUE_ID_ATTEMPTS = 1000


def _label(field: str) -> str:
    return FIELD_LABELS.get(field, field.replace("_", " ").capitalize())


def _clean(v: Any) -> str | None:
    if v is None:
        return None
    return str(v).strip() or None


def to_decimal(v: Any) -> Decimal | None:
    """Parse a decimal string (or number). Blank -> None; invalid raises ValueError."""
    if v is None or (isinstance(v, str) and not v.strip()):
        return None
    try:
        d = Decimal(str(v).strip())
    except InvalidOperation as e:
        raise ValueError(f"Invalid decimal value: {v!r}") from e
    if not d.is_finite() or abs(d.adjusted()) > MAX_DECIMAL_EXPONENT:
        raise ValueError(f"Invalid decimal value: {v!r}")
    return d


def generate_unique_id(s: "Session", prefix: str = "GGS", *, now: datetime | None = None) -> str:
    """
    Tracking id "<prefix>-<year>-<last 6 digits of the ms timestamp>".
    Two ids minted in the same millisecond would collide, so the suffix is stepped
    until it is unused in the store.
    """
    now = now or datetime.now()
    suffix = int(now.timestamp() * 1000) % 1_000_000
    for _ in range(_UNIQUE_ID_ATTEMPTS):
        candidate = f"{prefix}-{now.year}-{suffix:06d}"
        taken = s.query(Product.id).filter(Product.unique_id == candidate).first()
        if taken is None:
            return candidate
        suffix = (suffix + 1) % 1_000_000
    raise RuntimeError(f"Could not allocate a unique product id for prefix {prefix!r}")


def validate_product_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """
    Product schema contract. Returns a list of errors (empty when valid).
    With partial=True only the keys present in the payload are checked (edits).
    """
    errors: list[str] = []

    for field in REQUIRED_FIELDS:
        if partial and field not in payload:
            continue
        if not _clean(payload.get(field)):
            errors.append(f"{_label(field)} is required.")

    for field, limit in TEXT_LIMITS.items():
        v = _clean(payload.get(field))
        if v and len(v) > limit:
            errors.append(f"{_label(field)} must be at most {limit} characters.")

    for field in DECIMAL_COLUMNS:
        try:
            d = to_decimal(payload.get(field))
        except ValueError:
            errors.append(f"{_label(field)} must be a number.")
            continue
        if d is None:
            continue
        if d < 0:
            errors.append(f"{_label(field)} must not be negative.")
        elif d > DECIMAL_LIMITS[field]:
            errors.append(f"{_label(field)} is too large.")

    email = _clean(payload.get("email"))
    if email and not EMAIL_RE.match(email):
        errors.append("Email must be a valid email address.")

    status = _clean(payload.get("status"))
    if status and status not in PRODUCT_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(PRODUCT_STATUSES)}")

    return errors


def create_product(s: "Session", payload: dict, user: "User | None", *, audit: bool = True) -> Product:
    """Insert a validated payload as a pending product."""
    product = Product(
        unique_id=payload["unique_id"],
        status=PRODUCT_STATUS_PENDING,
        submission_date=datetime.utcnow(),
        submitted_by=user,
        brochure_url=_clean(payload.get("brochure_url")),
        brochure_filename=_clean(payload.get("brochure_filename")),
    )
    for col in TEXT_COLUMNS:
        setattr(product, col, _clean(payload.get(col)))
    for col in DECIMAL_COLUMNS:
        setattr(product, col, to_decimal(payload.get(col)))
    s.add(product)
    s.flush()

    if audit:
        record_event(
            s,
            actor=user,
            action="product.create",
            entity_type="Product",
            entity_id=str(product.id),
            metadata={"unique_id": product.unique_id, "product": product.product},
        )
    return product


def update_product(s: "Session", product: Product, payload: dict, user: "User") -> dict[str, dict]:
    """Apply the keys present in `payload`. Returns the changes that were made."""
    changes: dict[str, dict] = {}

    for col in TEXT_COLUMNS:
        if col not in payload:
            continue
        new = _clean(payload.get(col))
        if new != getattr(product, col):
            changes[col] = {"old": getattr(product, col), "new": new}
            setattr(product, col, new)

    for col in DECIMAL_COLUMNS:
        if col not in payload:
            continue
        new_d = to_decimal(payload.get(col))
        old_d = getattr(product, col)
        if new_d != old_d:
            changes[col] = {"old": str(old_d) if old_d is not None else None, "new": str(new_d) if new_d is not None else None}
            setattr(product, col, new_d)

    # An edited rejection goes back into the review queue.
    if changes and product.status == PRODUCT_STATUS_REJECTED:
        changes["status"] = {"old": product.status, "new": PRODUCT_STATUS_PENDING}
        product.status = PRODUCT_STATUS_PENDING
        product.rejection_reason = None

    if changes:
        record_event(
            s,
            actor=user,
            action="product.edit",
            entity_type="Product",
            entity_id=str(product.id),
            metadata={"unique_id": product.unique_id, "changes": changes},
        )
    return changes


def validate_status_change(status: str | None, rejection_reason: str | None) -> list[str]:
    errors = []
    status = (status or "").strip()
    if status not in (PRODUCT_STATUS_APPROVED, PRODUCT_STATUS_REJECTED):
        errors.append(f"Status must be '{PRODUCT_STATUS_APPROVED}' or '{PRODUCT_STATUS_REJECTED}'.")
    if status == PRODUCT_STATUS_REJECTED and not (rejection_reason or "").strip():
        errors.append("A rejection reason is required.")
    elif len((rejection_reason or "").strip()) > 500:
        errors.append("Rejection reason must be at most 500 characters.")
    return errors


def set_product_status(
    s: "Session", product: Product, status: str, user: "User", rejection_reason: str | None = None
) -> Product:
    old_status = product.status
    product.status = status
    product.approved_by = user
    product.approval_date = datetime.utcnow()
    if status == PRODUCT_STATUS_REJECTED:
        product.rejection_reason = (rejection_reason or "").strip() or None
    else:
        product.rejection_reason = None

    record_event(
        s,
        actor=user,
        action=f"product.{'approve' if status == PRODUCT_STATUS_APPROVED else 'reject'}",
        entity_type="Product",
        entity_id=str(product.id),
        reason=product.rejection_reason,
        metadata={"unique_id": product.unique_id, "old_status": old_status, "new_status": status},
    )
    return product


def delete_product(s: "Session", product: Product, user: "User", storage: "Storage | None" = None) -> None:
    if storage is not None and product.brochure_url:
        storage.delete(brochure_key(product.brochure_url.rsplit("/", 1)[-1]))
    record_event(
        s,
        actor=user,
        action="product.delete",
        entity_type="Product",
        entity_id=str(product.id),
        metadata={"unique_id": product.unique_id, "product": product.product, "status": product.status},
    )
    s.delete(product)


def query_products(
    s: "Session",
    *,
    status: str | None = None,
    search: str | None = None,
    submitted_by_user_id: int | None = None,
) -> list[Product]:
    q = s.query(Product)
    if submitted_by_user_id is not None:
        q = q.filter(Product.submitted_by_user_id == submitted_by_user_id)
    if status:
        q = q.filter(Product.status == status)
    if search:
        like = f"%{search}%"
        q = q.filter(
            (Product.unique_id.ilike(like))
            | (Product.company.ilike(like))
            | (Product.brand.ilike(like))
            | (Product.product.ilike(like))
            | (Product.description.ilike(like))
            | (Product.lot_batch.ilike(like))
            | (Product.mfg_date.ilike(like))
            | (Product.expiry_date.ilike(like))
            | (Product.customer_care.ilike(like))
            | (Product.email.ilike(like))
            | (Product.marketed_by.ilike(like))
        )
    return q.order_by(Product.submission_date.desc(), Product.id.desc()).all()


def find_approved_product(s: "Session", unique_id: str) -> Product | None:
    return (
        s.query(Product)
        .filter(Product.unique_id == unique_id.strip(), Product.status == PRODUCT_STATUS_APPROVED)
        .one_or_none()
    )


def public_product_dict(product: Product, info_url: str | None = None) -> dict:
    """What the public tracking page may see: no reviewer data, no submitter."""
    d = product.to_dict()
    for private in ("id", "submitted_by", "approved_by", "rejection_reason"):
        d.pop(private, None)
    d["info_url"] = info_url
    return d


def tracking_url(base_url: str, unique_id: str) -> str:
    return f"{base_url.rstrip('/')}/track/{unique_id}"


def store_brochure(
    storage: "Storage",
    unique_id: str,
    filename: str,
    file_bytes: bytes,
    content_type: str | None = None,
) -> tuple[str, str]:
    """
    Save a brochure as brochures/<unique_id><ext>.
    Returns (download url, original filename). Raises ValueError for bad uploads.
    """
    original = secure_filename(filename) or "brochure"
    ext = os.path.splitext(original)[1].lower()
    if ext not in BROCHURE_EXTENSIONS:
        raise ValueError(f"Brochure must be one of: {', '.join(sorted(BROCHURE_EXTENSIONS))}")
    if len(file_bytes) > BROCHURE_MAX_BYTES:
        raise ValueError("Brochure is too large. Maximum size is 10MB.")
    stored_name = f"{unique_id}{ext}"
    storage.put_bytes(brochure_key(stored_name), file_bytes, content_type=content_type)
    return f"/api/files/{stored_name}", original


def import_products(
    s: "Session",
    *,
    file_bytes: bytes,
    mime_type: str | None,
    filename: str | None,
    user: "User",
    default_company: str,
    unique_id_prefix: str = "GGS",
    max_errors: int = 10,
) -> ImportOutcome:
    """
    Wire the import pipeline to the database: one insert and commit per row,
    rolled back on failure so the next row starts from a clean session.
    """

    def _create_record(payload: dict) -> Product:
        try:
            product = create_product(s, payload, user, audit=False)
            s.commit()
        except Exception:
            s.rollback()
            raise
        return product

    outcome = run_import(
        file_bytes,
        mime_type=mime_type,
        filename=filename,
        create_record=_create_record,
        generate_unique_id=lambda: generate_unique_id(s, unique_id_prefix),
        default_company=default_company,
        max_errors=max_errors,
    )

    record_event(
        s,
        actor=user,
        action="product.import",
        entity_type="Product",
        metadata={
            "filename": filename,
            "imported": outcome.imported,
            "skipped": outcome.skipped,
            "total": outcome.total,
        },
    )
    s.commit()
    logger.info("Product import by %s from %s: %s", user.email, filename, outcome.to_dict())
    return outcome
