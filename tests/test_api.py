"""
HTTP surface tests.

Verifies:
- Health and product endpoints over the in-memory backend
- Mutations without a bearer token return 401
- Checkout online and offline, deletion by sale number
- Sync status/trigger and local backup endpoints
- Scanner connect/scan/stop control
"""

import asyncio
import time

from fastapi.testclient import TestClient

from lubricentro.scanner import BarcodeScanner


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestProducts:
    def test_list_and_lookup(self, client):
        resp = client.get("/api/v1/products")
        assert resp.status_code == 200
        assert len(resp.json()) == 3

        resp = client.get("/api/v1/products/barcode/7790001234567")
        assert resp.json()["id"] == "p-oil"
        assert client.get("/api/v1/products/barcode/000").status_code == 404

    def test_create_requires_token(self, client):
        resp = client.post("/api/v1/products", json={"barcode": "111", "name": "Grasa"})
        assert resp.status_code == 401
        assert resp.json()["error"] == "AuthorizationError"

    def test_create_update_delete(self, client, auth_headers):
        resp = client.post("/api/v1/products", json={"barcode": "111", "name": "Grasa", "price": 900}, headers=auth_headers)
        assert resp.status_code == 201
        product_id = resp.json()["id"]

        resp = client.patch(f"/api/v1/products/{product_id}", json={"stock": 12}, headers=auth_headers)
        assert resp.json()["stock"] == 12

        assert client.delete(f"/api/v1/products/{product_id}", headers=auth_headers).status_code == 204
        assert client.delete(f"/api/v1/products/{product_id}", headers=auth_headers).status_code == 404

    def test_token_does_not_outlive_its_request(self, client, auth_headers):
        resp = client.post("/api/v1/products", json={"barcode": "111", "name": "Grasa"}, headers=auth_headers)
        assert resp.status_code == 201
        resp = client.post("/api/v1/products", json={"barcode": "112", "name": "Grasa fina"})
        assert resp.status_code == 401

    def test_price_defaults_to_cost_plus_markup(self, client, auth_headers):
        client.put("/api/v1/local/settings", json={"markupPercentage": 0.4})
        resp = client.post("/api/v1/products", json={"barcode": "111", "name": "Grasa", "cost": 1000}, headers=auth_headers)
        assert resp.json()["price"] == 1400

        resp = client.post(
            "/api/v1/products",
            json={"barcode": "112", "name": "Grasa fina", "cost": 1000, "price": 1100},
            headers=auth_headers,
        )
        assert resp.json()["price"] == 1100

    def test_duplicate_barcode(self, client, auth_headers):
        resp = client.post("/api/v1/products", json={"barcode": "7790001234567", "name": "Copia"}, headers=auth_headers)
        assert resp.status_code == 400

    def test_inventory_stats(self, client):
        stats = client.get("/api/v1/products/stats").json()
        assert stats["totalProducts"] == 3
        assert stats["outOfStockCount"] == 1


class TestSales:
    def test_checkout_and_delete(self, client, backend, auth_headers):
        resp = client.post(
            "/api/v1/sales/checkout",
            json={"items": [{"product_id": "p-oil", "quantity": 2}], "payment_method": "card"},
            headers=auth_headers,
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["offline"] is False
        assert body["sales"][0]["payment_method"] == "card"
        assert backend.products["p-oil"]["stock"] == 8

        stats = client.get("/api/v1/sales/today/stats").json()
        assert stats["totalSalesToday"] == 1

        resp = client.delete(f"/api/v1/sales/{body['sale_number']}", headers=auth_headers)
        assert resp.status_code == 200
        assert backend.products["p-oil"]["stock"] == 10
        assert client.delete(f"/api/v1/sales/{body['sale_number']}", headers=auth_headers).status_code == 404

    def test_insufficient_stock_message(self, client, auth_headers):
        resp = client.post(
            "/api/v1/sales/checkout",
            json={"items": [{"product_id": "p-filter", "quantity": 9}]},
            headers=auth_headers,
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Stock insuficiente para 'Filtro Mann W712'. Disponible: 4, Requerido: 9"

    def test_offline_checkout_is_queued(self, client, backend, auth_headers):
        client.post("/api/v1/sync", headers=auth_headers)
        client.post("/api/v1/sync/offline")

        resp = client.post("/api/v1/sales/checkout", json={"items": [{"product_id": "p-oil", "quantity": 1}]})
        assert resp.status_code == 201
        assert resp.json()["offline"] is True
        assert resp.json()["warnings"]
        assert backend.sales == {}

        status = client.get("/api/v1/sync/status").json()
        assert status["online"] is False
        assert status["pending_items"] == 1

        resp = client.post("/api/v1/sync/online", headers=auth_headers)
        assert resp.json()["report"]["synced_sales"] == 1
        assert len(backend.sales) == 1
        assert backend.products["p-oil"]["stock"] == 9


class TestSync:
    def test_trigger_and_status(self, client):
        resp = client.post("/api/v1/sync")
        assert resp.json()["started"] is True
        assert resp.json()["report"]["products_updated"] is True

        status = client.get("/api/v1/sync/status").json()
        assert status["stats"]["local_products_count"] == 3
        assert status["needs_sync"] is False


class TestLocal:
    def test_export_import_validate(self, client):
        client.post("/api/v1/sync")
        exported = client.get("/api/v1/local/export").json()
        assert len(exported["products"]) == 3
        assert exported["settings"]["autoSync"] is True

        resp = client.post("/api/v1/local/import", json={"products": exported["products"][:1]})
        assert resp.status_code == 200
        assert client.get("/api/v1/local/validate").json()["is_valid"] is True

        resp = client.post("/api/v1/local/import", json={"products": "nope"})
        assert resp.status_code == 400

    def test_settings_round_trip(self, client):
        resp = client.put("/api/v1/local/settings", json={"autoSync": False, "markupPercentage": 0.4})
        assert resp.json()["autoSync"] is False
        assert client.get("/api/v1/local/settings").json()["markupPercentage"] == 0.4


# =============================================================================
# SCANNER
# =============================================================================


class FakeWriter:
    def close(self):
        self.closed = True

    async def wait_closed(self):
        return None


class OneScanThenIdle:
    """Serial reader that delivers one barcode and then waits for more input."""

    def __init__(self):
        self.chunks = [b"77900012", b"34567\r\n"]

    async def read(self, n):
        if self.chunks:
            return self.chunks.pop(0)
        await asyncio.sleep(3600)
        return b""


class TestScanner:
    def test_connect_without_port(self, client):
        resp = client.post("/api/v1/scanner/connect")
        assert resp.status_code == 503
        assert resp.json()["error"] == "ScannerError"
        assert client.get("/api/v1/scanner/status").json()["state"] == "disconnected"

    def test_scan_lifecycle(self, store, backend):
        from lubricentro.main import create_app

        async def opener(port, baudrate):
            return OneScanThenIdle(), FakeWriter()

        app = create_app(store=store, backend=backend)
        app.state.scanner = BarcodeScanner(app.state.channel, "/dev/ttyUSB0", opener=opener)

        with TestClient(app) as client:
            assert client.post("/api/v1/scanner/connect").json()["state"] == "connected"
            assert client.post("/api/v1/scanner/start").json()["state"] == "scanning"

            for _ in range(200):
                status = client.get("/api/v1/scanner/status").json()
                if status["last_scanned_code"]:
                    break
                time.sleep(0.01)
            assert status["last_scanned_code"] == "7790001234567"
            assert client.post("/api/v1/scanner/start").status_code == 503

            assert client.post("/api/v1/scanner/stop").json()["state"] == "connected"
            assert client.delete("/api/v1/scanner/last").json()["last_scanned_code"] is None
            resp = client.post("/api/v1/scanner/disconnect").json()
            assert resp["state"] == "disconnected"
            assert resp["connected"] is False
