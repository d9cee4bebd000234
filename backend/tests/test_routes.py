"""
HTTP API tests.

Verifies:
- Anonymous access is limited to the catalog, order intake and health
- Cashiers can run the POS but cannot touch the catalog or reports
- The POS cart, checkout, history and receipt endpoints work end to end
"""

import pytest

from posboard.models import PosTransaction, Product
from posboard.services.snapshot_feed import RECENT_TRANSACTIONS, SnapshotFeed


def _line(product, quantity):
    return {
        "product_id": product.id,
        "name": product.name,
        "price": product.price,
        "quantity": quantity,
        "category": product.category,
        "stock": product.stock,
    }


# =============================================================================
# ACCESS POLICY
# =============================================================================


class TestAnonymousAccess:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/products"),
            ("PUT", "/api/products/1"),
            ("DELETE", "/api/products/1"),
            ("POST", "/api/pos/cart"),
            ("POST", "/api/pos/checkout"),
            ("GET", "/api/pos/recent"),
            ("GET", "/api/pos/feed"),
            ("GET", "/api/pos/transactions"),
            ("GET", "/api/pos/transactions/abc/receipt"),
            ("GET", "/api/orders"),
            ("GET", "/api/reports/sales"),
            ("GET", "/api/reports/financial"),
            ("GET", "/api/reports/dashboard"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_catalog_is_public(self, client, products):
        resp = client.get("/api/products")
        assert resp.status_code == 200
        assert resp.get_json()["count"] == 4

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "healthy"

    def test_cors_for_known_origins_only(self, client, db_session):
        allowed = client.get("/health", headers={"Origin": "http://localhost:5173"})
        other = client.get("/health", headers={"Origin": "http://evil.example"})

        assert allowed.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
        assert "Access-Control-Allow-Origin" not in other.headers

    def test_storefront_can_place_orders(self, client, db_session):
        resp = client.post("/api/orders", json={
            "items": [{"name": "Matcha Kit Kat", "price": 1000, "quantity": 2, "category": "Snacks"}],
            "shipping_fee": 800,
            "customer_email": "guest@example.com",
        })
        assert resp.status_code == 201
        assert resp.get_json()["order"]["total_price"] == 2800


class TestCashierDenied:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/products"),
            ("GET", "/api/orders"),
            ("GET", "/api/reports/sales"),
            ("GET", "/api/reports/financial"),
            ("GET", "/api/reports/dashboard"),
        ],
    )
    def test_admin_only(self, client, cashier_headers, method, path):
        resp = getattr(client, method.lower())(path, headers=cashier_headers, json={})
        assert resp.status_code == 403
        assert resp.get_json()["required_role"] == ["admin"]


class TestAdminAccess:

    def test_reports(self, client, admin_headers):
        for path in ("/api/reports/sales", "/api/reports/financial", "/api/reports/dashboard"):
            assert client.get(path, headers=admin_headers).status_code == 200

    def test_invalid_report_month(self, client, admin_headers):
        resp = client.get("/api/reports/sales?month=13-2026", headers=admin_headers)
        assert resp.status_code == 400

    def test_list_orders(self, client, admin_headers):
        client.post("/api/orders", json={"items": [{"name": "A", "price": 100, "quantity": 1}]})
        resp = client.get("/api/orders", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["count"] == 1


# =============================================================================
# AUTH
# =============================================================================


class TestAuthRoutes:

    def test_bad_credentials(self, client, cashier_user):
        resp = client.post("/api/auth/login", json={"username": "cashier", "password": "nope"})
        assert resp.status_code == 401

    def test_missing_credentials(self, client, db_session):
        assert client.post("/api/auth/login", json={}).status_code == 400

    def test_me_and_logout(self, client, cashier_headers):
        resp = client.get("/api/auth/me", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.get_json()["cashier_name"] == "hanako"

        assert client.post("/api/auth/logout", headers=cashier_headers).status_code == 200
        assert client.get("/api/auth/me", headers=cashier_headers).status_code == 401


# =============================================================================
# CATALOG MAINTENANCE
# =============================================================================


class TestProducts:

    def test_filter_by_category_and_search(self, client, products):
        snacks = client.get("/api/products?category=Snacks").get_json()
        assert [p["name"] for p in snacks["items"]] == ["Matcha Kit Kat", "Pocky Strawberry"]

        towels = client.get("/api/products?search=cotton").get_json()
        assert [p["name"] for p in towels["items"]] == ["Tenugui Towel"]

    def test_categories(self, client, products):
        assert client.get("/api/products/categories").get_json()["items"] == ["Goods", "Snacks", "Tea"]

    def test_admin_crud(self, client, admin_headers):
        resp = client.post(
            "/api/products",
            json={"name": "Daruma", "price": 3000, "category": "Goods", "stock": 4},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        product_id = resp.get_json()["id"]

        resp = client.put(f"/api/products/{product_id}", json={"price": 3200}, headers=admin_headers)
        assert resp.get_json()["price"] == 3200

        assert client.delete(f"/api/products/{product_id}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/products/{product_id}").status_code == 404

    @pytest.mark.parametrize(
        "payload",
        [
            {"name": "X", "category": "Goods"},
            {"name": "X", "category": "Goods", "price": "12.5"},
            {"name": "X", "category": "Goods", "price": -1},
            {"name": "X", "category": "Goods", "price": 100, "stock": -3},
            {"name": "X", "category": "Goods", "price": 100, "sku": "nope"},
        ],
    )
    def test_create_validation(self, client, admin_headers, payload):
        resp = client.post("/api/products", json=payload, headers=admin_headers)
        assert resp.status_code == 400


# =============================================================================
# POS FLOW
# =============================================================================


class TestPosCart:

    def test_add_by_product_id(self, client, cashier_headers, product):
        resp = client.post(
            "/api/pos/cart",
            json={"cart": [], "action": {"type": "add_line", "product_id": product.id}},
            headers=cashier_headers,
        )
        data = resp.get_json()

        assert resp.status_code == 200
        assert data["cart"][0]["quantity"] == 1
        assert data["cart"][0]["stock"] == 10
        assert data["total"] == 1000

    def test_stock_ceiling_comes_from_catalog(self, client, cashier_headers, product_factory):
        scarce = product_factory(name="Uji Sencha", category="Tea", price=1800, stock=1)
        stale = dict(_line(scarce, 1), stock=99)

        resp = client.post(
            "/api/pos/cart",
            json={"cart": [stale], "action": {"type": "change_quantity", "product_id": scarce.id, "delta": 1}},
            headers=cashier_headers,
        )
        data = resp.get_json()

        assert data["cart"][0]["quantity"] == 1
        assert data["warnings"][0]["code"] == "STOCK_LIMIT"

    def test_lines_are_clamped_when_stock_drops(self, client, db_session, cashier_headers, product_factory):
        kit_kat = product_factory(name="Matcha Kit Kat", category="Snacks", price=1000, stock=2)
        pocky = product_factory(name="Pocky Strawberry", category="Snacks", price=250, stock=10)
        cart = [_line(kit_kat, 2), _line(pocky, 1)]

        db_session.get(Product, kit_kat.id).stock = 1
        db_session.commit()

        resp = client.post(
            "/api/pos/cart",
            json={"cart": cart, "action": {"type": "remove_line", "product_id": pocky.id}},
            headers=cashier_headers,
        )
        data = resp.get_json()

        assert resp.status_code == 200
        assert [(l["product_id"], l["quantity"], l["stock"]) for l in data["cart"]] == [(kit_kat.id, 1, 1)]
        assert data["total"] == 1000
        assert [w["code"] for w in data["warnings"]] == ["STOCK_LIMIT"]

    def test_sold_out_lines_are_dropped(self, client, db_session, cashier_headers, product):
        cart = [_line(product, 2)]
        db_session.get(Product, product.id).stock = 0
        db_session.commit()

        resp = client.post(
            "/api/pos/cart",
            json={"cart": cart, "action": {"type": "clear"}},
            headers=cashier_headers,
        )
        data = resp.get_json()

        assert data["cart"] == []
        assert data["warnings"][0]["code"] == "OUT_OF_STOCK"

    def test_unknown_product(self, client, cashier_headers, db_session):
        resp = client.post(
            "/api/pos/cart",
            json={"cart": [], "action": {"type": "add_line", "product_id": 404}},
            headers=cashier_headers,
        )
        assert resp.status_code == 404

    def test_missing_action(self, client, cashier_headers):
        assert client.post("/api/pos/cart", json={"cart": []}, headers=cashier_headers).status_code == 400


class TestPosCheckout:

    def test_cash_checkout(self, client, db_session, cashier_headers, product):
        resp = client.post(
            "/api/pos/checkout",
            json={
                "cart": [_line(product, 2)],
                "payment_method": "Cash",
                "cash_amount": 5000,
                "customer_name": "Tanaka",
            },
            headers=cashier_headers,
        )
        data = resp.get_json()

        assert resp.status_code == 201
        assert data["transaction"]["total"] == 2000
        assert data["transaction"]["change_amount"] == 3000
        assert data["receipt"]["change_amount_display"] == "￥3,000"
        assert data["trail"][-1] == "COMPLETE"
        assert data["session"]["cart"] == []
        assert data["session"]["customer_name"] == ""
        assert data["session"]["recent"][0]["id"] == data["transaction"]["id"]

        db_session.expire_all()
        assert db_session.get(Product, product.id).stock == 8

    def test_empty_cart_rejected(self, client, db_session, cashier_headers):
        resp = client.post(
            "/api/pos/checkout",
            json={"cart": [], "payment_method": "Cash", "cash_amount": 5000},
            headers=cashier_headers,
        )
        data = resp.get_json()

        assert resp.status_code == 400
        assert data["code"] == "EMPTY_CART"
        assert data["trail"][-1] == "FAILED"
        assert db_session.query(PosTransaction).count() == 0

    def test_insufficient_stock_rejected(self, client, db_session, cashier_headers, product):
        resp = client.post(
            "/api/pos/checkout",
            json={"cart": [_line(product, 11)], "payment_method": "Non-Cash"},
            headers=cashier_headers,
        )

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INSUFFICIENT_STOCK"
        db_session.expire_all()
        assert db_session.get(Product, product.id).stock == 10


    def test_client_price_is_not_trusted(self, client, db_session, cashier_headers, product):
        cheap = dict(_line(product, 2), price=1)

        resp = client.post(
            "/api/pos/checkout",
            json={"cart": [cheap], "payment_method": "Cash", "cash_amount": 2},
            headers=cashier_headers,
        )
        data = resp.get_json()

        assert resp.status_code == 400
        assert data["code"] == "PRICE_CHANGED"
        assert data["details"]["items"][0]["price"] == 1000
        assert db_session.query(PosTransaction).count() == 0
        db_session.expire_all()
        assert db_session.get(Product, product.id).stock == 10


class TestPosHistory:

    @pytest.fixture
    def sold(self, client, cashier_headers, product):
        resp = client.post(
            "/api/pos/checkout",
            json={"cart": [_line(product, 1)], "payment_method": "Cash", "cash_amount": 1000, "customer_name": "Sato"},
            headers=cashier_headers,
        )
        return resp.get_json()["transaction"]

    def test_recent_and_feed(self, client, cashier_headers, sold):
        recent = client.get("/api/pos/recent", headers=cashier_headers).get_json()["items"]
        assert [t["id"] for t in recent] == [sold["id"]]

        feed = client.get("/api/pos/feed?since=0", headers=cashier_headers).get_json()
        assert feed["changed"] is True
        assert feed["snapshot"][0]["id"] == sold["id"]

        again = client.get(f"/api/pos/feed?since={feed['version']}", headers=cashier_headers).get_json()
        assert again["changed"] is False

    def test_history_filters(self, client, cashier_headers, sold):
        hits = client.get("/api/pos/transactions?search=sato&date_filter=today", headers=cashier_headers).get_json()
        assert hits["count"] == 1

        misses = client.get("/api/pos/transactions?date_filter=yesterday", headers=cashier_headers).get_json()
        assert misses["count"] == 0
        assert misses["total_count"] == 1

        bad = client.get("/api/pos/transactions?date_filter=decade", headers=cashier_headers)
        assert bad.status_code == 400

    def test_transaction_detail(self, client, cashier_headers, sold):
        resp = client.get(f"/api/pos/transactions/{sold['id']}", headers=cashier_headers)
        assert resp.get_json()["transaction"]["customer_name"] == "Sato"
        assert client.get("/api/pos/transactions/missing", headers=cashier_headers).status_code == 404

    def test_receipt_formats(self, client, cashier_headers, sold):
        base = f"/api/pos/transactions/{sold['id']}/receipt"

        as_json = client.get(base, headers=cashier_headers).get_json()["receipt"]
        assert as_json["total_display"] == "￥1,000"

        as_text = client.get(f"{base}?format=text", headers=cashier_headers)
        assert as_text.mimetype == "text/plain"
        assert "TOTAL" in as_text.get_data(as_text=True)

        as_html = client.get(f"{base}?format=html", headers=cashier_headers)
        assert as_html.mimetype == "text/html"

        assert client.get(f"{base}?format=pdf", headers=cashier_headers).status_code == 400

    def test_feed_starts_from_stored_transactions(self, app, client, cashier_headers, sold, monkeypatch):
        monkeypatch.setitem(app.extensions["snapshot_feeds"], RECENT_TRANSACTIONS, SnapshotFeed(RECENT_TRANSACTIONS))

        feed = client.get("/api/pos/feed?since=0", headers=cashier_headers).get_json()

        assert feed["changed"] is True
        assert feed["version"] == 1
        assert [t["id"] for t in feed["snapshot"]] == [sold["id"]]

    def test_feed_version_from_before_restart_is_stale(self, app, client, cashier_headers, sold, monkeypatch):
        monkeypatch.setitem(app.extensions["snapshot_feeds"], RECENT_TRANSACTIONS, SnapshotFeed(RECENT_TRANSACTIONS))

        feed = client.get("/api/pos/feed?since=42", headers=cashier_headers).get_json()

        assert feed["changed"] is True
        assert feed["snapshot"][0]["id"] == sold["id"]
