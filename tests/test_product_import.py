import io
import itertools

import pytest
from openpyxl import Workbook

from app.seedtrace import create_app
from app.seedtrace.db import session_scope
from app.seedtrace.models import AuditEvent, Base
from app.seedtrace.modules.products.importer import ImportOutcome, import_rows, run_import
from app.seedtrace.modules.products.models import Product
from app.seedtrace.modules.products.parsers.tabular import UnsupportedFormatError
from scripts.init_db import ensure_user, seed_rbac

COMPANY = "Green Gold Seeds Pvt. Ltd."
XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("COMPANY_NAME", COMPANY)
    monkeypatch.setenv("UNIQUE_ID_PREFIX", "GGS")
    monkeypatch.delenv("IMPORT_ERROR_LIMIT", raising=False)

    app = create_app()
    app.config["STORAGE_ROOT"] = str(tmp_path / "storage")

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        roles = seed_rbac(s)
        ensure_user(s, username="admin", email="admin@example.com", password="pw", role=roles["admin"])
        ensure_user(s, username="op", email="op@example.com", password="pw", role=roles["operator"])

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, username="admin", password="pw") -> dict:
    r = client.post("/api/login", json={"username": username, "password": password})
    assert r.status_code == 200, r.json
    return {"X-CSRF-Token": r.json["csrf_token"]}


def _upload(client, headers, data: bytes, filename: str, mimetype: str):
    return client.post(
        "/api/products/import",
        data={"file": (io.BytesIO(data), filename, mimetype)},
        headers=headers,
        content_type="multipart/form-data",
    )


def _ids():
    counter = itertools.count(1)
    return lambda: f"GGS-2025-{next(counter):06d}"


# ---------- Pipeline (no database) ----------
def test_import_rows_maps_and_persists_in_file_order():
    saved = []
    outcome = import_rows(
        [{"Product": "Hybrid Maize", "MRP": "650"}, {"Product": "Wheat", "MRP": "Ask Store"}],
        create_record=saved.append,
        generate_unique_id=_ids(),
        default_company=COMPANY,
    )
    assert outcome.to_dict() == {
        "message": "Import completed",
        "imported": 2,
        "skipped": 0,
        "total": 2,
        "errors": [],
    }
    assert [p["unique_id"] for p in saved] == ["GGS-2025-000001", "GGS-2025-000002"]
    assert saved[0]["mrp"] == "650"
    assert saved[1]["mrp"] is None
    assert saved[1]["company"] == COMPANY


def test_error_list_is_capped_but_counts_are_not():
    rows = [{"Product": f"P{i}", "MRP": "-5"} for i in range(12)]
    outcome = import_rows(rows, create_record=lambda p: None, generate_unique_id=_ids(), default_company=COMPANY)
    assert outcome.imported == 0
    assert outcome.skipped == 12
    assert outcome.total == 12
    assert len(outcome.errors) == 10
    assert outcome.errors[0] == "Row 1: MRP (₹) must not be negative."
    assert outcome.errors[-1].startswith("Row 10: ")


def test_persistence_failure_skips_row_and_continues():
    saved = []

    def create(payload):
        if payload["product"] == "Boom":
            raise RuntimeError("duplicate key value violates unique constraint\n[SQL: INSERT INTO products ...]")
        saved.append(payload)

    outcome = import_rows(
        [{"Product": "A"}, {"Product": "Boom"}, {"Product": "C"}],
        create_record=create,
        generate_unique_id=_ids(),
        default_company=COMPANY,
    )
    assert [p["product"] for p in saved] == ["A", "C"]
    assert outcome.imported == 2
    assert outcome.skipped == 1
    assert outcome.errors == ["Row 2: duplicate key value violates unique constraint"]


def test_outcome_accumulator():
    outcome = ImportOutcome(max_errors=1)
    outcome.record_failure(1, "bad").record_failure(2, "worse").record_success()
    assert (outcome.total, outcome.imported, outcome.skipped) == (3, 1, 2)
    assert outcome.errors == ["Row 1: bad"]


def test_run_import_rejects_unsupported_file_before_any_row():
    calls = []
    with pytest.raises(UnsupportedFormatError):
        run_import(
            b"Product\nMaize\n",
            mime_type="text/plain",
            filename="notes.txt",
            create_record=calls.append,
            generate_unique_id=_ids(),
            default_company=COMPANY,
        )
    assert calls == []


# ---------- HTTP end to end ----------
def test_csv_missing_product_gets_placeholder(app, client):
    headers = _login(client)
    csv_bytes = b"Product,MRP,Lot/Batch\nHybrid Maize,650,T1\n,700,T2\nWheat,55.50,T3\n"
    r = _upload(client, headers, csv_bytes, "labels.csv", "text/csv")
    assert r.status_code == 200, r.json
    assert r.json["imported"] == 3
    assert r.json["skipped"] == 0
    assert r.json["total"] == 3
    assert r.json["errors"] == []

    with session_scope(app) as s:
        products = s.query(Product).order_by(Product.id).all()
        assert [p.product for p in products] == ["Hybrid Maize", "Product 2", "Wheat"]
        assert all(p.status == "pending" for p in products)
        assert all(p.company == COMPANY and p.brand == COMPANY for p in products)
        assert len({p.unique_id for p in products}) == 3
        assert all(p.unique_id.startswith("GGS-") for p in products)
        assert str(products[2].mrp) == "55.50"

        ev = s.query(AuditEvent).filter(AuditEvent.action == "product.import").one()
        assert ev.actor_user_email == "admin@example.com"


def test_workbook_unparsable_mrp_imports_as_null(app, client):
    headers = _login(client)
    wb = Workbook()
    ws = wb.active
    ws.append(["Product Name", "Crop Name", "Market Code", "MRP (₹)", "Mfg Date"])
    ws.append(["Seeds A", "Maize", "GOLD-1166", 650, 45000])
    ws.append(["Seeds B", "Maize", "GOLD-1166", "Ask Store", None])
    buf = io.BytesIO()
    wb.save(buf)

    r = _upload(client, headers, buf.getvalue(), "labels.xlsx", XLSX)
    assert r.status_code == 200, r.json
    assert r.json["imported"] == 2
    assert r.json["skipped"] == 0

    with session_scope(app) as s:
        a, b = s.query(Product).order_by(Product.id).all()
        assert str(a.mrp) == "650.00"
        assert a.mfg_date == "15/03/2023"
        assert a.crop_name == "Maize"
        assert b.mrp is None


def test_invalid_rows_reported_with_row_numbers(app, client):
    headers = _login(client)
    csv_bytes = b"Product,Email\nGood,ok@example.com\nBad,not-an-email\n"
    r = _upload(client, headers, csv_bytes, "labels.csv", "text/csv")
    assert r.status_code == 200
    assert r.json["imported"] == 1
    assert r.json["skipped"] == 1
    assert r.json["errors"] == ["Row 2: Email must be a valid email address."]


def test_text_file_is_rejected_without_a_report(client):
    headers = _login(client)
    r = _upload(client, headers, b"just some notes", "notes.txt", "text/plain")
    assert r.status_code == 400
    assert r.json["error"] == "unsupported_format"
    assert "imported" not in r.json
    assert "skipped" not in r.json


def test_header_only_csv_is_empty_file(client):
    headers = _login(client)
    r = _upload(client, headers, b"Product,MRP\n", "labels.csv", "text/csv")
    assert r.status_code == 400
    assert r.json["error"] == "empty_file"
    assert "imported" not in r.json


def test_missing_file_and_permissions(client):
    assert client.post("/api/products/import").status_code in (400, 401)

    headers = _login(client, "op")
    r = _upload(client, headers, b"Product\nX\n", "labels.csv", "text/csv")
    assert r.status_code == 403

    client.post("/api/logout")
    headers = _login(client)
    r = client.post("/api/products/import", data={}, headers=headers, content_type="multipart/form-data")
    assert r.status_code == 400
    assert r.json["error"] == "missing_file"


def test_file_unique_id_column_is_never_stored(app, client):
    headers = _login(client)
    csv_bytes = b"Unique ID,Product\nFROM-FILE-1,Maize\n"
    r = _upload(client, headers, csv_bytes, "labels.csv", "text/csv")
    assert r.status_code == 200, r.json
    assert r.json["imported"] == 1

    with session_scope(app) as s:
        product = s.query(Product).one()
        assert product.unique_id.startswith("GGS-")
        assert s.query(Product).filter(Product.unique_id == "FROM-FILE-1").count() == 0
