"""
Integration tests: HTTP API over a real SQLite document store.

conftest.py points DATABASE_URL and BACKUP_INBOX at temp locations before the
app is imported. The console dependency is swapped for one whose journal
writes synchronously, so store contents can be asserted right after a call.
"""
import base64
import json

import pytest
from fastapi.testclient import TestClient

from buildconsole.core.database import create_db_and_tables, engine
from buildconsole.main import app
from buildconsole.services.console import BusinessConsole, get_console
from buildconsole.store.sql_store import SqlDocumentStore
from buildconsole.sync.journal import WriteJournal

TENANT = "api-tenant"

LINES = [
    {"itemId": "i1", "itemName": "Brick Work", "lh": "10", "wd": "5", "rate": 100, "qty": 1, "gstRate": 18},
    {"itemId": "i2", "itemName": "Plaster", "lh": "10", "wd": "30", "rate": 10, "qty": 1, "gstRate": 0},
]

ESTIMATE_FORM = {
    "customerName": "Ravi Patel",
    "phoneNumber": "9876543210",
    "currentAddress": "12 MG Road",
    "siteAddress": "Plot 12, Alkapuri",
    "items": LINES,
    "discountValue": 500,
    "discountType": "amount",
}


@pytest.fixture(scope="module")
def api_console():
    create_db_and_tables()
    store = SqlDocumentStore(engine)
    c = BusinessConsole(store, WriteJournal(store, synchronous=True), TENANT)
    c.start()
    yield c
    c.stop()


@pytest.fixture(scope="module")
def client(api_console):
    app.dependency_overrides[get_console] = lambda: api_console
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="module")
def saved(client):
    r = client.post("/api/estimates", json=ESTIMATE_FORM)
    assert r.status_code == 200, r.text
    return r.json()


class TestSystem:
    def test_root(self, client):
        assert client.get("/").json()["docs"] == "/docs"

    def test_health(self, client):
        r = client.get("/api/health")
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "ok"
        assert data["db"] == "ok"

    def test_settings(self, client):
        r = client.get("/api/settings")
        assert r.status_code == 200
        assert r.json()["watcher_active"] is False

    def test_sync_status(self, client, saved):
        r = client.get("/api/sync-status")
        assert r.status_code == 200
        data = r.json()
        assert data["failed"] == 0
        assert data["pending"] == 0
        assert any(e["path"].endswith(saved["id"]) for e in data["entries"])


class TestCatalogAPI:
    def test_crud(self, client):
        r = client.post("/api/items", json={"name": "Waterproofing", "unit": "Sqft", "saleRate": 45, "gstRate": 18})
        assert r.status_code == 201
        item = r.json()
        assert item["saleRate"] == 45

        r = client.put(f"/api/items/{item['id']}", json={"name": "Waterproofing", "saleRate": 50, "gstRate": 18})
        assert r.json()["saleRate"] == 50
        assert client.get(f"/api/items/{item['id']}").json()["saleRate"] == 50
        assert any(i["id"] == item["id"] for i in client.get("/api/items?q=water").json())

        assert client.delete(f"/api/items/{item['id']}").status_code == 409
        assert client.delete(f"/api/items/{item['id']}?confirm=true").status_code == 200
        assert client.get(f"/api/items/{item['id']}").status_code == 404

    def test_options(self, client):
        data = client.get("/api/items/options").json()
        assert "Sqft" in data["units"]
        assert data["gst_rates"] == [0, 5, 12, 18, 28]

    def test_item_as_line(self, client):
        item = client.post("/api/items", json={"name": "Tiles", "unit": "Box", "saleRate": 450, "gstRate": 28}).json()
        line = client.get(f"/api/items/{item['id']}/line").json()
        assert line["itemId"] == item["id"]
        assert line["total"] == 450
        assert line["gstAmount"] == pytest.approx(126)

    def test_invalid_gst_rate(self, client):
        r = client.post("/api/items", json={"name": "Odd", "gstRate": 7})
        assert r.status_code == 422

    def test_unknown_item(self, client):
        assert client.put("/api/items/ghost", json={"name": "Ghost"}).status_code == 404


class TestEstimateAPI:
    def test_pricing_preview(self, client):
        r = client.post("/api/estimates/pricing", json={"items": LINES, "discountValue": 500})
        assert r.status_code == 200
        data = r.json()
        assert data["subTotal"] == 8000
        assert data["gstExtra"] == pytest.approx(900)
        assert data["totalAmount"] == pytest.approx(8400)
        assert data["gstBreakdown"]["18"] == pytest.approx(900)

    def test_manual_tax_preview(self, client):
        body = {"items": LINES, "discountValue": 500, "gstCalculationMode": "manual", "gstExtra": 1000}
        assert client.post("/api/estimates/pricing", json=body).json()["totalAmount"] == pytest.approx(8500)

    def test_save(self, saved):
        assert saved["version"] == 1
        assert saved["status"] == "Pending"
        assert saved["totalAmount"] == pytest.approx(8400)
        assert saved["estimateNumber"].startswith("EST-")

    def test_save_side_effects(self, client, saved):
        customers = client.get("/api/customers?q=9876543210").json()
        assert [c["name"] for c in customers] == ["Ravi Patel"]
        names = {i["name"] for i in client.get("/api/items").json()}
        assert {"Brick Work", "Plaster"} <= names

    @pytest.mark.parametrize("missing", ["customerName", "phoneNumber", "siteAddress"])
    def test_required_fields(self, client, missing):
        body = {**ESTIMATE_FORM, missing: "  "}
        assert client.post("/api/estimates", json=body).status_code == 422

    def test_needs_a_line(self, client):
        assert client.post("/api/estimates", json={**ESTIMATE_FORM, "items": []}).status_code == 422

    def test_get_and_list(self, client, saved):
        assert client.get(f"/api/estimates/{saved['id']}").json()["id"] == saved["id"]
        assert any(e["id"] == saved["id"] for e in client.get("/api/estimates").json())
        assert client.get("/api/estimates/nope").status_code == 404

    def test_status_change(self, client, saved):
        r = client.put(f"/api/estimates/{saved['id']}/status", json={"status": "Converted"})
        assert r.json()["status"] == "Converted"
        listed = client.get("/api/estimates?status=Converted").json()
        assert [e["id"] for e in listed] == [saved["id"]]
        client.put(f"/api/estimates/{saved['id']}/status", json={"status": "Pending"})

    def test_revise_then_save(self, client, saved):
        draft = client.post(f"/api/estimates/{saved['id']}/revise").json()
        assert draft["estimateNumber"] == saved["estimateNumber"] + "-R2"
        assert client.get(f"/api/estimates/{draft['id']}").status_code == 404

        r = client.post("/api/estimates", json=draft)
        assert r.status_code == 200
        revision = r.json()
        assert revision["id"] == draft["id"]
        assert revision["version"] == 2
        assert revision["parentId"] == saved["id"]

        chain = client.get(f"/api/estimates/{revision['id']}/revisions").json()
        assert [e["version"] for e in chain] == [1, 2]

    def test_revision_saved_after_drafts_lost(self, client, api_console):
        original = client.post("/api/estimates", json={**ESTIMATE_FORM, "discountValue": 0}).json()
        draft = client.post(f"/api/estimates/{original['id']}/revise").json()
        api_console._drafts.clear()

        r = client.post("/api/estimates", json=draft)
        assert r.status_code == 200, r.text
        revision = r.json()
        assert revision["id"] == draft["id"]
        assert revision["version"] == 2
        assert revision["parentId"] == original["id"]
        assert revision["estimateNumber"] == original["estimateNumber"] + "-R2"

    def test_revision_with_unknown_parent(self, client):
        body = {**ESTIMATE_FORM, "id": "est-orphan", "parentId": "est-missing", "version": 2}
        assert client.post("/api/estimates", json=body).status_code == 404

    def test_autofill(self, client, saved):
        r = client.post("/api/estimates/autofill", json={"phoneNumber": "9876543210"})
        assert r.json()["siteAddress"] == "Plot 12, Alkapuri"

    def test_delete_requires_confirmation(self, client):
        created = client.post("/api/estimates", json={**ESTIMATE_FORM, "discountValue": 0}).json()
        assert client.delete(f"/api/estimates/{created['id']}").status_code == 409
        assert client.delete(f"/api/estimates/{created['id']}?confirm=true").status_code == 200
        assert client.get(f"/api/estimates/{created['id']}").status_code == 404
        assert client.delete(f"/api/estimates/{created['id']}?confirm=true").status_code == 404


class TestCustomerAPI:
    def test_customer_and_followups(self, client):
        r = client.post("/api/customers", json={"name": "Meena Shah", "phone": "+91 91234 56780"})
        assert r.status_code == 201
        customer = r.json()

        r = client.put(f"/api/customers/{customer['id']}", json={"name": "Meena Shah", "phone": "+91 91234 56780", "address": "Gotri"})
        assert r.json()["address"] == "Gotri"
        assert r.json()["createdAt"] == customer["createdAt"]

        r = client.post(
            "/api/followups",
            json={"customerId": customer["id"], "date": "2020-01-01", "time": "09:00", "reason": "Site visit"},
        )
        assert r.status_code == 201
        followup = r.json()
        assert followup["customerName"] == "Meena Shah"

        agenda = client.get("/api/followups/agenda").json()
        entry = next(f for f in agenda["due"] if f["id"] == followup["id"])
        assert entry["whatsappUrl"] == "https://wa.me/919123456780"

        assert client.post(f"/api/followups/{followup['id']}/toggle").json()["status"] == "Completed"
        agenda = client.get("/api/followups/agenda").json()
        assert followup["id"] in [f["id"] for f in agenda["completed"]]

        assert client.delete(f"/api/followups/{followup['id']}?confirm=true").status_code == 200
        assert client.delete(f"/api/customers/{customer['id']}?confirm=true").status_code == 200
        assert client.get(f"/api/customers/{customer['id']}").status_code == 404

    def test_followup_needs_known_customer(self, client):
        body = {"customerId": "ghost", "date": "2026-01-01", "reason": "Call"}
        assert client.post("/api/followups", json=body).status_code == 404

    def test_followup_date_format(self, client):
        body = {"customerId": "x", "date": "01/01/2026", "reason": "Call"}
        assert client.post("/api/followups", json=body).status_code == 422


class TestCompanyAPI:
    def test_info(self, client):
        r = client.put("/api/company/info", json={"name": "Acme Builders", "email": "a@b.in", "phone": "1", "address": "X"})
        assert r.status_code == 200
        assert client.get("/api/company/info").json()["name"] == "Acme Builders"

    def test_logo(self, client):
        data_url = "data:image/png;base64," + base64.b64encode(b"\x89PNG fake").decode()
        assert client.put("/api/company/logo", json={"data_url": data_url}).status_code == 200
        assert client.get("/api/company/logo").json()["data_url"] == data_url
        assert client.delete("/api/company/logo").status_code == 200

    def test_logo_rejects_non_image(self, client):
        r = client.put("/api/company/logo", json={"data_url": "data:text/plain;base64,aGk="})
        assert r.status_code == 422

    def test_logo_size_limit(self, client):
        big = base64.b64encode(b"\0" * (2 * 1024 * 1024 + 1)).decode()
        r = client.put("/api/company/logo", json={"data_url": f"data:image/png;base64,{big}"})
        assert r.status_code == 422


class TestAnalyticsAndBackup:
    def test_analytics(self, client, saved):
        data = client.get("/api/analytics").json()
        assert data["total"] >= 1
        assert data["monthly"]

    def test_export(self, client, saved):
        r = client.get("/api/backup/export")
        assert r.status_code == 200
        assert "attachment" in r.headers["content-disposition"]
        data = r.json()
        assert any(e["id"] == saved["id"] for e in data["estimates"])

    def test_import_upload(self, client):
        backup = {"items": [{"id": "imp-1", "name": "Imported Tile", "saleRate": 30, "gstRate": 18}]}
        r = client.post(
            "/api/backup/import",
            files={"file": ("backup.json", json.dumps(backup).encode(), "application/json")},
        )
        assert r.status_code == 200
        assert r.json()["status"] == "success"
        assert r.json()["items_imported"] == 1
        assert client.get("/api/items/imp-1").json()["name"] == "Imported Tile"

        logs = client.get("/api/backup/import-logs").json()
        assert logs[0]["file_name"].endswith(".json")

    def test_import_needs_input(self, client):
        assert client.post("/api/backup/import").status_code == 400

    def test_import_missing_path(self, client):
        assert client.post("/api/backup/import?path=/no/such/file.json").status_code == 404
