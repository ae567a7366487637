import io
from datetime import datetime
from decimal import Decimal

import pytest
from openpyxl import load_workbook

from app.seedtrace import create_app
from app.seedtrace.db import session_scope
from app.seedtrace.models import AuditEvent, Base
from app.seedtrace.modules.crops.models import Crop, Variety, VarietyUrl
from app.seedtrace.modules.products.export import EXPORT_COLUMNS, export_filename
from app.seedtrace.modules.products.models import Product
from app.seedtrace.modules.products.service import generate_unique_id
from scripts.init_db import ensure_user, seed_rbac

COMPANY = "Green Gold Seeds Pvt. Ltd."


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("COMPANY_NAME", COMPANY)
    monkeypatch.delenv("PUBLIC_BASE_URL", raising=False)

    app = create_app()
    app.config["STORAGE_ROOT"] = str(tmp_path / "storage")

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        roles = seed_rbac(s)
        ensure_user(s, username="admin", email="admin@example.com", password="pw", role=roles["admin"])
        ensure_user(s, username="op", email="op@example.com", password="pw", role=roles["operator"])
        ensure_user(s, username="op2", email="op2@example.com", password="pw", role=roles["operator"])

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, username="admin", password="pw") -> dict:
    r = client.post("/api/login", json={"username": username, "password": password})
    assert r.status_code == 200, r.json
    return {"X-CSRF-Token": r.json["csrf_token"]}


def _switch(client, username) -> dict:
    client.post("/api/logout")
    return _login(client, username)


def _create(client, headers, **fields) -> dict:
    payload = {"product": "Hybrid Maize", "description": "Single cross hybrid", "mrp": "650"}
    payload.update(fields)
    r = client.post("/api/products", json=payload, headers=headers)
    assert r.status_code == 201, r.json
    return r.json


def test_operator_submits_pending_product(app, client):
    headers = _login(client, "op")
    p = _create(client, headers)
    assert p["status"] == "pending"
    assert p["company"] == COMPANY
    assert p["brand"] == COMPANY
    assert Decimal(p["mrp"]) == Decimal("650")
    assert p["unique_id"].startswith(f"GGS-{datetime.now().year}-")
    assert p["submitted_by"] == "op@example.com"

    with session_scope(app) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "product.create").one()
        assert ev.entity_id == str(p["id"])


def test_create_validation_and_duplicate_id(client):
    headers = _login(client, "op")
    r = client.post("/api/products", json={"product": "", "description": "x", "mrp": "-1"}, headers=headers)
    assert r.status_code == 400
    assert "Product Name is required." in r.json["errors"]
    assert "MRP (₹) must not be negative." in r.json["errors"]

    r = client.post("/api/products", json={"product": "X", "description": "x", "email": "nope"}, headers=headers)
    assert r.status_code == 400
    assert r.json["message"] == "Email must be a valid email address."

    r = client.post("/api/products", json={"product": "X", "description": "x", "mrp": "1e999999999"}, headers=headers)
    assert r.status_code == 400
    assert "MRP (₹) must be a number." in r.json["errors"]

    _create(client, headers, unique_id="GGS-2025-000042")
    r = client.post(
        "/api/products", json={"product": "Y", "description": "y", "unique_id": "GGS-2025-000042"}, headers=headers
    )
    assert r.status_code == 409


def test_client_cannot_set_review_fields(client):
    headers = _login(client, "op")
    p = _create(client, headers, status="approved", rejection_reason="x")
    assert p["status"] == "pending"
    assert p["rejection_reason"] is None


def test_operators_only_see_their_own_products(client):
    headers = _login(client, "op")
    _create(client, headers, product="Op One Maize")
    headers = _switch(client, "op2")
    _create(client, headers, product="Op Two Wheat")

    r = client.get("/api/products")
    assert [p["product"] for p in r.json] == ["Op Two Wheat"]

    _switch(client, "admin")
    r = client.get("/api/products")
    assert {p["product"] for p in r.json} == {"Op One Maize", "Op Two Wheat"}
    r = client.get("/api/products?q=wheat")
    assert [p["product"] for p in r.json] == ["Op Two Wheat"]
    r = client.get("/api/products?status=approved")
    assert r.json == []


def test_review_workflow_and_edit_rules(app, client):
    headers = _login(client, "op")
    p = _create(client, headers)
    pid = p["id"]

    r = client.patch(f"/api/products/{pid}", json={"mrp": "700"}, headers=headers)
    assert r.status_code == 200
    assert Decimal(r.json["mrp"]) == Decimal("700")

    r = client.patch(f"/api/products/{pid}/status", json={"status": "approved"}, headers=headers)
    assert r.status_code == 403

    headers = _switch(client, "admin")
    r = client.patch(f"/api/products/{pid}/status", json={"status": "rejected"}, headers=headers)
    assert r.status_code == 400
    assert r.json["message"] == "A rejection reason is required."

    r = client.patch(
        f"/api/products/{pid}/status",
        json={"status": "rejected", "rejection_reason": "Germination below label"},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json["status"] == "rejected"
    assert r.json["rejection_reason"] == "Germination below label"

    headers = _switch(client, "op")
    r = client.patch(f"/api/products/{pid}", json={"normal_germination": "85"}, headers=headers)
    assert r.status_code == 200
    assert r.json["status"] == "pending"
    assert r.json["rejection_reason"] is None

    headers = _switch(client, "admin")
    r = client.patch(f"/api/products/{pid}/status", json={"status": "approved"}, headers=headers)
    assert r.status_code == 200
    assert r.json["approved_by"] == "admin@example.com"
    assert r.json["approval_date"]

    headers = _switch(client, "op")
    r = client.patch(f"/api/products/{pid}", json={"mrp": "1"}, headers=headers)
    assert r.status_code == 403

    with session_scope(app) as s:
        actions = [e.action for e in s.query(AuditEvent).order_by(AuditEvent.id).all()]
        assert "product.reject" in actions
        assert "product.approve" in actions
        assert "product.edit" in actions


def test_operator_cannot_see_other_operators_product(client):
    headers = _login(client, "op")
    pid = _create(client, headers)["id"]
    _switch(client, "op2")
    assert client.get(f"/api/products/{pid}").status_code == 404


def test_public_tracking_only_for_approved(app, client):
    headers = _login(client, "op")
    p = _create(client, headers, crop_name="Maize", market_code="GOLD-1144 ANKUSH")
    uid = p["unique_id"]

    client.post("/api/logout")
    r = client.get(f"/api/track/{uid}")
    assert r.status_code == 404
    assert r.json["message"] == "Product not found or not yet approved"

    with session_scope(app) as s:
        crop = Crop(name="Maize")
        variety = Variety(code="GOLD-1144 ANKUSH")
        crop.varieties.append(variety)
        s.add(crop)
        s.flush()
        s.add(VarietyUrl(crop_id=crop.id, variety_id=variety.id, url="https://example.com/maize/ankush"))

    headers = _login(client, "admin")
    client.patch(f"/api/products/{p['id']}/status", json={"status": "approved"}, headers=headers)
    client.post("/api/logout")

    r = client.get(f"/api/track/{uid}")
    assert r.status_code == 200
    assert r.json["unique_id"] == uid
    assert r.json["info_url"] == "https://example.com/maize/ankush"
    for private in ("id", "submitted_by", "approved_by", "rejection_reason"):
        assert private not in r.json


def test_export_workbook_has_qr_and_tracking_link(app, client):
    headers = _login(client, "op")
    uid = _create(client, headers, lot_batch="T341746")["unique_id"]

    _switch(client, "op")
    assert client.get("/api/products/export").status_code == 403

    _switch(client, "admin")
    r = client.get("/api/products/export")
    assert r.status_code == 200
    assert r.mimetype == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    assert "green-gold-seeds-pvt-ltd-products-" in r.headers["Content-Disposition"]

    wb = load_workbook(io.BytesIO(r.data))
    ws = wb.active
    headers_row = [c.value for c in ws[1]]
    assert headers_row == [h for h, _, _ in EXPORT_COLUMNS]
    assert ws.freeze_panes == "A2"

    values = dict(zip(headers_row, [c.value for c in ws[2]]))
    assert values["Unique ID"] == uid
    assert values["Lot/Batch"] == "T341746"
    assert values["Tracking URL"] == f"http://localhost/track/{uid}"
    assert ws.cell(row=2, column=headers_row.index("Tracking URL") + 1).hyperlink.target == values["Tracking URL"]
    assert len(ws._images) == 1

    with session_scope(app) as s:
        assert s.query(AuditEvent).filter(AuditEvent.action == "product.export").count() == 1


def test_export_filename():
    from datetime import date

    assert export_filename("Green Gold Seeds Pvt. Ltd.", date(2025, 3, 1)) == "green-gold-seeds-pvt-ltd-products-2025-03-01.xlsx"


def test_delete_requires_permission(client):
    headers = _login(client, "op")
    pid = _create(client, headers)["id"]
    assert client.delete(f"/api/products/{pid}", headers=headers).status_code == 403

    headers = _switch(client, "admin")
    assert client.delete(f"/api/products/{pid}", headers=headers).status_code == 204
    assert client.get(f"/api/products/{pid}").status_code == 404


def test_unique_id_steps_past_taken_suffix(app):
    now = datetime(2025, 6, 1, 10, 30, 0, 123000)
    suffix = int(now.timestamp() * 1000) % 1_000_000
    with session_scope(app) as s:
        first = generate_unique_id(s, "GGS", now=now)
        assert first == f"GGS-2025-{suffix:06d}"
        s.add(Product(unique_id=first, company="c", brand="b", product="p", description="d"))
        s.flush()
        second = generate_unique_id(s, "GGS", now=now)
        assert second == f"GGS-2025-{(suffix + 1) % 1_000_000:06d}"


def test_brochure_upload_and_download(client):
    headers = _login(client, "op")
    r = client.post(
        "/api/products",
        data={
            "product": "Hybrid Maize",
            "description": "Single cross hybrid",
            "brochure": (io.BytesIO(b"%PDF-1.4 brochure"), "Maize Leaflet.pdf", "application/pdf"),
        },
        headers=headers,
        content_type="multipart/form-data",
    )
    assert r.status_code == 201, r.json
    uid = r.json["unique_id"]
    assert r.json["brochure_url"] == f"/api/files/{uid}.pdf"
    assert r.json["brochure_filename"] == "Maize_Leaflet.pdf"

    client.post("/api/logout")
    r = client.get(f"/api/files/{uid}.pdf")
    assert r.status_code == 200
    assert r.data == b"%PDF-1.4 brochure"
    assert client.get("/api/files/missing.pdf").status_code == 404


def test_brochure_rejects_unknown_extension(client):
    headers = _login(client, "op")
    r = client.post(
        "/api/products",
        data={
            "product": "Hybrid Maize",
            "description": "x",
            "brochure": (io.BytesIO(b"MZ"), "setup.exe", "application/octet-stream"),
        },
        headers=headers,
        content_type="multipart/form-data",
    )
    assert r.status_code == 400
    assert r.json["message"].startswith("Brochure must be one of")
