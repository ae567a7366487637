from __future__ import annotations

import io
import mimetypes

from flask import Blueprint, abort, current_app, g, jsonify, request, send_file

from app.seedtrace.audit import record_event
from app.seedtrace.constants import OPERATOR_EDITABLE_STATUSES
from app.seedtrace.db import db_session
from app.seedtrace.models import User
from app.seedtrace.modules.products.export import XLSX_MIMETYPE, build_products_workbook, export_filename
from app.seedtrace.modules.products.models import Product
from app.seedtrace.modules.products.service import (
    create_product,
    delete_product,
    find_approved_product,
    generate_unique_id,
    import_products,
    public_product_dict,
    query_products,
    set_product_status,
    store_brochure,
    update_product,
    validate_product_payload,
    validate_status_change,
)
from app.seedtrace.rbac import require_permission, user_has_permission
from app.seedtrace.storage import StorageError, brochure_key, storage_from_config
from app.seedtrace.utils import current_user_or_raise, request_data

bp = Blueprint("products", __name__)

# Fields a client may never set directly through create/edit.
_PROTECTED_FIELDS = (
    "id",
    "status",
    "submission_date",
    "approval_date",
    "submitted_by_user_id",
    "approved_by_user_id",
    "rejection_reason",
    "brochure_url",
    "brochure_filename",
)


def _base_url() -> str:
    return (current_app.config.get("PUBLIC_BASE_URL") or request.host_url).rstrip("/")


def _payload_from_request() -> dict:
    data = dict(request_data())
    data.pop("csrf_token", None)
    for key in _PROTECTED_FIELDS:
        data.pop(key, None)
    return data


def _can_view(user: User, product: Product) -> bool:
    return user_has_permission(user, "products.view_all") or product.submitted_by_user_id == user.id


def _can_edit(user: User, product: Product) -> bool:
    if user_has_permission(user, "products.edit_any"):
        return True
    return product.submitted_by_user_id == user.id and product.status in OPERATOR_EDITABLE_STATUSES


def _attach_brochure(payload: dict, unique_id: str) -> tuple[dict, str | None]:
    f = request.files.get("brochure")
    if not f or not f.filename:
        return payload, None
    storage = storage_from_config(current_app.config)
    try:
        url, original = store_brochure(storage, unique_id, f.filename, f.read(), f.mimetype)
    except ValueError as e:
        return payload, str(e)
    payload["brochure_url"] = url
    payload["brochure_filename"] = original
    return payload, None


# ---------- List / create ----------
@bp.get("/products")
@require_permission("products.view")
def products_list():
    s = db_session()
    u = current_user_or_raise()

    status = (request.args.get("status") or "").strip() or None
    search = (request.args.get("q") or "").strip() or None
    owner_id = None if user_has_permission(u, "products.view_all") else u.id

    products = query_products(s, status=status, search=search, submitted_by_user_id=owner_id)
    return jsonify([p.to_dict() for p in products])


@bp.post("/products")
@require_permission("products.create")
def products_create():
    s = db_session()
    u = current_user_or_raise()
    payload = _payload_from_request()
    company_name = current_app.config["COMPANY_NAME"]

    for key in ("company", "brand"):
        if not (payload.get(key) or "").strip():
            payload[key] = company_name

    unique_id = (payload.get("unique_id") or "").strip()
    if unique_id:
        if s.query(Product.id).filter(Product.unique_id == unique_id).first():
            return jsonify({"message": f"Unique ID {unique_id} is already in use."}), 409
    else:
        unique_id = generate_unique_id(s, current_app.config["UNIQUE_ID_PREFIX"])
    payload["unique_id"] = unique_id

    errors = validate_product_payload(payload)
    if errors:
        return jsonify({"message": errors[0], "errors": errors}), 400

    payload, brochure_error = _attach_brochure(payload, unique_id)
    if brochure_error:
        return jsonify({"message": brochure_error, "errors": [brochure_error]}), 400

    product = create_product(s, payload, u)
    s.commit()
    current_app.logger.info("Product %s submitted by %s", product.unique_id, u.email)
    return jsonify(product.to_dict()), 201


# ---------- Import / export ----------
@bp.post("/products/import")
@require_permission("products.import")
def products_import():
    s = db_session()
    u = current_user_or_raise()

    f = request.files.get("file")
    if not f or not f.filename:
        return jsonify({"message": "No file uploaded", "error": "missing_file"}), 400

    outcome = import_products(
        s,
        file_bytes=f.read(),
        mime_type=f.mimetype,
        filename=f.filename,
        user=u,
        default_company=current_app.config["COMPANY_NAME"],
        unique_id_prefix=current_app.config["UNIQUE_ID_PREFIX"],
        max_errors=current_app.config["IMPORT_ERROR_LIMIT"],
    )
    return jsonify(outcome.to_dict())


@bp.get("/products/export")
@require_permission("products.export")
def products_export():
    s = db_session()
    u = current_user_or_raise()
    status = (request.args.get("status") or "").strip() or None

    products = query_products(s, status=status)
    data = build_products_workbook(products, _base_url())

    record_event(
        s,
        actor=u,
        action="product.export",
        entity_type="Product",
        entity_id="export",
        metadata={"status": status, "row_count": len(products)},
    )
    s.commit()

    return send_file(
        io.BytesIO(data),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=export_filename(current_app.config["COMPANY_NAME"]),
        max_age=0,
    )


# ---------- Detail / edit / review / delete ----------
@bp.get("/products/<int:product_id>")
@require_permission("products.view")
def product_detail(product_id: int):
    s = db_session()
    u = current_user_or_raise()
    product = s.get(Product, product_id)
    if not product or not _can_view(u, product):
        abort(404)
    return jsonify(product.to_dict())


@bp.patch("/products/<int:product_id>")
@require_permission("products.edit")
def product_edit(product_id: int):
    s = db_session()
    u = current_user_or_raise()
    product = s.get(Product, product_id)
    if not product or not _can_view(u, product):
        abort(404)
    if not _can_edit(u, product):
        g.missing_permission = "products.edit_any"
        return jsonify({"message": "You can only edit your own pending or rejected products"}), 403

    payload = _payload_from_request()
    payload.pop("unique_id", None)
    errors = validate_product_payload(payload, partial=True)
    if errors:
        return jsonify({"message": errors[0], "errors": errors}), 400

    payload, brochure_error = _attach_brochure(payload, product.unique_id)
    if brochure_error:
        return jsonify({"message": brochure_error, "errors": [brochure_error]}), 400
    if "brochure_url" in payload:
        product.brochure_url = payload.pop("brochure_url")
        product.brochure_filename = payload.pop("brochure_filename")

    update_product(s, product, payload, u)
    s.commit()
    return jsonify(product.to_dict())


@bp.patch("/products/<int:product_id>/status")
@require_permission("products.approve")
def product_set_status(product_id: int):
    s = db_session()
    u = current_user_or_raise()
    product = s.get(Product, product_id)
    if not product:
        abort(404)

    data = request_data()
    status = (data.get("status") or "").strip()
    reason = data.get("rejection_reason") or data.get("reason")
    errors = validate_status_change(status, reason)
    if errors:
        return jsonify({"message": errors[0], "errors": errors}), 400

    set_product_status(s, product, status, u, reason)
    s.commit()
    current_app.logger.info("Product %s %s by %s", product.unique_id, status, u.email)
    return jsonify(product.to_dict())


@bp.delete("/products/<int:product_id>")
@require_permission("products.delete")
def product_delete(product_id: int):
    s = db_session()
    product = s.get(Product, product_id)
    if not product:
        abort(404)
    delete_product(s, product, current_user_or_raise(), storage_from_config(current_app.config))
    s.commit()
    return "", 204


# ---------- Public ----------
@bp.get("/files/<path:filename>")
def brochure_download(filename: str):
    storage = storage_from_config(current_app.config)
    try:
        fobj = storage.open(brochure_key(filename))
    except StorageError:
        abort(404)
    mimetype = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    return send_file(fobj, mimetype=mimetype, download_name=filename, max_age=0)


@bp.get("/track/<unique_id>")
def track_product(unique_id: str):
    from app.seedtrace.modules.crops.service import find_variety_url

    s = db_session()
    product = find_approved_product(s, unique_id)
    if not product:
        return jsonify({"message": "Product not found or not yet approved"}), 404
    info = find_variety_url(s, product.crop_name, product.market_code)
    return jsonify(public_product_dict(product, info.url if info else None))
