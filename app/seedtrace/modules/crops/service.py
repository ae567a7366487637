from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING

from app.seedtrace.audit import record_event
from app.seedtrace.modules.crops.models import Crop, Variety, VarietyUrl

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.seedtrace.models import User

logger = logging.getLogger(__name__)

URL_RE = re.compile(r"^https?://\S+$", re.IGNORECASE)


def list_crops(s: "Session") -> list[Crop]:
    return s.query(Crop).order_by(Crop.name.asc()).all()


def validate_crop_name(name: str | None) -> list[str]:
    name = (name or "").strip()
    if not name:
        return ["Crop name is required."]
    if len(name) > 128:
        return ["Crop name must be at most 128 characters."]
    return []


def create_crop(s: "Session", name: str, user: "User | None") -> Crop:
    crop = Crop(name=name.strip())
    s.add(crop)
    s.flush()
    record_event(s, actor=user, action="crop.create", entity_type="Crop", entity_id=str(crop.id), metadata={"name": crop.name})
    return crop


def delete_crop(s: "Session", crop: Crop, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="crop.delete",
        entity_type="Crop",
        entity_id=str(crop.id),
        metadata={"name": crop.name, "varieties": [v.code for v in crop.varieties]},
    )
    s.delete(crop)


def create_variety(s: "Session", crop: Crop, code: str, user: "User | None") -> Variety:
    variety = Variety(crop_id=crop.id, code=code.strip())
    s.add(variety)
    s.flush()
    record_event(
        s,
        actor=user,
        action="variety.create",
        entity_type="Variety",
        entity_id=str(variety.id),
        metadata={"crop": crop.name, "code": variety.code},
    )
    return variety


def delete_variety(s: "Session", variety: Variety, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="variety.delete",
        entity_type="Variety",
        entity_id=str(variety.id),
        metadata={"crop_id": variety.crop_id, "code": variety.code},
    )
    s.delete(variety)


def validate_variety_url_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors = []
    if not partial:
        for key in ("crop_id", "variety_id"):
            try:
                int(payload.get(key))
            except (TypeError, ValueError):
                errors.append(f"{key} is required.")
    url = (payload.get("url") or "").strip()
    if not url:
        errors.append("URL is required.")
    elif not URL_RE.match(url) or len(url) > 1024:
        errors.append("URL must be a valid http(s) address.")
    return errors


def upsert_variety_url(
    s: "Session", crop: Crop, variety: Variety, url: str, description: str | None, user: "User"
) -> VarietyUrl:
    """One URL per crop + variety; posting again replaces it."""
    row = (
        s.query(VarietyUrl)
        .filter(VarietyUrl.crop_id == crop.id, VarietyUrl.variety_id == variety.id)
        .one_or_none()
    )
    action = "variety_url.update"
    if row is None:
        row = VarietyUrl(crop_id=crop.id, variety_id=variety.id, url=url.strip())
        s.add(row)
        action = "variety_url.create"
    row.url = url.strip()
    row.description = (description or "").strip() or None
    row.updated_at = datetime.utcnow()
    s.flush()
    record_event(
        s,
        actor=user,
        action=action,
        entity_type="VarietyUrl",
        entity_id=str(row.id),
        metadata={"crop": crop.name, "variety": variety.code, "url": row.url},
    )
    return row


def update_variety_url(s: "Session", row: VarietyUrl, url: str, description: str | None, user: "User") -> VarietyUrl:
    old_url = row.url
    row.url = url.strip()
    row.description = (description or "").strip() or None
    row.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="variety_url.update",
        entity_type="VarietyUrl",
        entity_id=str(row.id),
        metadata={"old_url": old_url, "new_url": row.url},
    )
    return row


def delete_variety_url(s: "Session", row: VarietyUrl, user: "User") -> None:
    record_event(s, actor=user, action="variety_url.delete", entity_type="VarietyUrl", entity_id=str(row.id))
    s.delete(row)


def find_variety_url(s: "Session", crop_name: str | None, variety_code: str | None) -> VarietyUrl | None:
    """Look up by display names (case-insensitive), as printed on the product."""
    crop_name = (crop_name or "").strip()
    variety_code = (variety_code or "").strip()
    if not crop_name or not variety_code:
        return None
    return (
        s.query(VarietyUrl)
        .join(Crop, VarietyUrl.crop_id == Crop.id)
        .join(Variety, VarietyUrl.variety_id == Variety.id)
        .filter(Crop.name.ilike(crop_name), Variety.code.ilike(variety_code))
        .first()
    )


def seed_crop_catalogue(s: "Session", catalogue: dict[str, list[str]]) -> tuple[int, int]:
    """
    Idempotent: existing crops and varieties are left alone.
    Returns (crops added, varieties added).
    """
    crops_added = 0
    varieties_added = 0
    for name, codes in catalogue.items():
        crop = s.query(Crop).filter(Crop.name == name).one_or_none()
        if crop is None:
            crop = Crop(name=name)
            s.add(crop)
            s.flush()
            crops_added += 1
        existing = {v.code for v in s.query(Variety).filter(Variety.crop_id == crop.id).all()}
        for code in codes:
            if code in existing:
                continue
            s.add(Variety(crop_id=crop.id, code=code))
            existing.add(code)
            varieties_added += 1
    s.flush()
    logger.info("Crop catalogue seeded: %d crops, %d varieties added", crops_added, varieties_added)
    return crops_added, varieties_added
