from __future__ import annotations

from flask import Blueprint, abort, current_app, jsonify, request
from sqlalchemy.exc import IntegrityError

from app.seedtrace.db import db_session
from app.seedtrace.modules.crops.models import Crop, Variety, VarietyUrl
from app.seedtrace.modules.crops.service import (
    create_crop,
    create_variety,
    delete_crop,
    delete_variety,
    delete_variety_url,
    find_variety_url,
    list_crops,
    update_variety_url,
    upsert_variety_url,
    validate_crop_name,
    validate_variety_url_payload,
)
from app.seedtrace.rbac import require_permission
from app.seedtrace.utils import current_user_or_raise, parse_int, request_data

bp = Blueprint("crops", __name__)


# ---------- Crops / varieties ----------
@bp.get("/crops")
@require_permission("crops.view")
def crops_list():
    s = db_session()
    return jsonify([c.to_dict() for c in list_crops(s)])


@bp.post("/crops")
@require_permission("crops.manage")
def crops_create():
    s = db_session()
    u = current_user_or_raise()
    name = (request_data().get("name") or "").strip()

    errors = validate_crop_name(name)
    if errors:
        return jsonify({"message": errors[0], "errors": errors}), 400
    if s.query(Crop).filter(Crop.name.ilike(name)).first():
        return jsonify({"message": f"Crop '{name}' already exists."}), 409

    crop = create_crop(s, name, u)
    s.commit()
    return jsonify(crop.to_dict()), 201


@bp.delete("/crops/<int:crop_id>")
@require_permission("crops.manage")
def crops_delete(crop_id: int):
    s = db_session()
    crop = s.get(Crop, crop_id)
    if not crop:
        abort(404)
    delete_crop(s, crop, current_user_or_raise())
    s.commit()
    return "", 204


@bp.post("/varieties")
@require_permission("crops.manage")
def varieties_create():
    s = db_session()
    u = current_user_or_raise()
    data = request_data()
    code = (data.get("code") or "").strip()
    crop_id = parse_int(data.get("crop_id"))
    crop = s.get(Crop, crop_id) if crop_id else None

    if not crop:
        return jsonify({"message": "A valid crop_id is required."}), 400
    if not code or len(code) > 128:
        return jsonify({"message": "Variety code is required (max 128 characters)."}), 400

    try:
        variety = create_variety(s, crop, code, u)
        s.commit()
    except IntegrityError:
        s.rollback()
        return jsonify({"message": f"Variety '{code}' already exists for {crop.name}."}), 409
    return jsonify(variety.to_dict()), 201


@bp.delete("/varieties/<int:variety_id>")
@require_permission("crops.manage")
def varieties_delete(variety_id: int):
    s = db_session()
    variety = s.get(Variety, variety_id)
    if not variety:
        abort(404)
    delete_variety(s, variety, current_user_or_raise())
    s.commit()
    return "", 204


# ---------- Variety information URLs ----------
@bp.get("/crop-variety-urls")
@require_permission("crops.view")
def variety_urls_list():
    s = db_session()
    rows = s.query(VarietyUrl).order_by(VarietyUrl.crop_id.asc(), VarietyUrl.variety_id.asc()).all()
    return jsonify([r.to_dict() for r in rows])


@bp.get("/crop-variety-urls/by-names")
def variety_urls_by_names():
    # Public: the tracking page resolves the info link for the product it shows.
    s = db_session()
    row = find_variety_url(s, request.args.get("crop"), request.args.get("variety"))
    if not row:
        return jsonify({"message": "No URL configured for this crop and variety"}), 404
    return jsonify(row.to_dict())


@bp.post("/crop-variety-urls")
@require_permission("crops.manage")
def variety_urls_create():
    s = db_session()
    u = current_user_or_raise()
    data = request_data()

    errors = validate_variety_url_payload(data)
    if errors:
        return jsonify({"message": errors[0], "errors": errors}), 400

    crop = s.get(Crop, int(data["crop_id"]))
    variety = s.get(Variety, int(data["variety_id"]))
    if not crop or not variety or variety.crop_id != crop.id:
        return jsonify({"message": "Variety does not belong to the selected crop."}), 400

    row = upsert_variety_url(s, crop, variety, data["url"], data.get("description"), u)
    s.commit()
    current_app.logger.info("Variety URL saved for %s / %s", crop.name, variety.code)
    return jsonify(row.to_dict()), 201


@bp.put("/crop-variety-urls/<int:url_id>")
@require_permission("crops.manage")
def variety_urls_update(url_id: int):
    s = db_session()
    row = s.get(VarietyUrl, url_id)
    if not row:
        abort(404)
    data = request_data()
    errors = validate_variety_url_payload(data, partial=True)
    if errors:
        return jsonify({"message": errors[0], "errors": errors}), 400

    update_variety_url(s, row, data["url"], data.get("description"), current_user_or_raise())
    s.commit()
    return jsonify(row.to_dict())


@bp.delete("/crop-variety-urls/<int:url_id>")
@require_permission("crops.manage")
def variety_urls_delete(url_id: int):
    s = db_session()
    row = s.get(VarietyUrl, url_id)
    if not row:
        abort(404)
    delete_variety_url(s, row, current_user_or_raise())
    s.commit()
    return "", 204
