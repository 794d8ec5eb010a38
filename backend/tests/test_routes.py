"""
HTTP tests for the API blueprints.

Verifies:
- Unauthenticated requests return 401
- Staff are denied manager/admin operations (403)
- The main POS, receiving and transfer flows over HTTP
"""

import pytest


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


@pytest.mark.parametrize(
    "method,path",
    [
        ("GET", "/api/auth/me"),
        ("GET", "/api/admin/users"),
        ("GET", "/api/products/variants"),
        ("POST", "/api/inventory/adjust"),
        ("POST", "/api/pos/checkout"),
        ("GET", "/api/tabs"),
        ("GET", "/api/purchase-orders"),
        ("POST", "/api/receiving/sessions"),
        ("POST", "/api/transfers"),
        ("GET", "/api/dashboard"),
        ("GET", "/api/reports/summary"),
    ],
)
def test_requires_auth(client, method, path):
    resp = getattr(client, method.lower())(path)
    assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"


# =============================================================================
# STAFF DENIED PRIVILEGED OPERATIONS (403)
# =============================================================================


class TestStaffDenied:

    def test_cannot_list_users(self, client, staff_headers):
        assert client.get("/api/admin/users", headers=staff_headers).status_code == 403

    def test_cannot_manage_purchase_orders(self, client, staff_headers):
        resp = client.get("/api/purchase-orders", headers=staff_headers)
        assert resp.status_code == 403
        assert resp.get_json()["required_roles"] == ["admin", "manager"]

    def test_cannot_adjust_inventory(self, client, staff_headers, stocked, locations):
        resp = client.post(
            "/api/inventory/adjust",
            json={"variant_id": stocked["beer"].id, "location_id": locations["floor"].id, "quantity_change": 5},
            headers=staff_headers,
        )
        assert resp.status_code == 403

    def test_cannot_view_reports(self, client, staff_headers):
        assert client.get("/api/reports/summary", headers=staff_headers).status_code == 403

    def test_cannot_complete_cycle_count(self, client, staff_headers, locations):
        resp = client.post(
            "/api/cycle-counts/complete",
            json={"location_id": locations["floor"].id, "lines": []},
            headers=staff_headers,
        )
        assert resp.status_code == 403

    def test_costs_hidden_from_staff(self, client, staff_headers, catalog):
        resp = client.get(f"/api/products/variants/{catalog['whisky'].id}", headers=staff_headers)
        assert resp.status_code == 200
        assert "cost" not in resp.get_json()

    def test_staff_may_quick_add(self, client, staff_headers):
        resp = client.post(
            "/api/products/quick-add",
            json={"upc": "600100", "brand": "Chrome", "category": "Vodka", "size_ml": 750, "price": 950},
            headers=staff_headers,
        )
        assert resp.status_code == 201


# =============================================================================
# AUTH FLOW
# =============================================================================


class TestAuthFlow:

    def test_register_then_login(self, client):
        resp = client.post("/api/auth/register", json={"email": "owner@lastkings.test", "password": "Kings2026"})
        assert resp.status_code == 201
        assert resp.get_json()["awaiting_approval"] is False

        resp = client.post("/api/auth/login", json={"email": "owner@lastkings.test", "password": "Kings2026"})
        assert resp.status_code == 200
        token = resp.get_json()["token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.get_json()["user"]["role"] == "admin"

    def test_unapproved_user_cannot_log_in(self, client, admin_user):
        client.post("/api/auth/register", json={"email": "clerk@lastkings.test", "password": "Kings2026"})

        resp = client.post("/api/auth/login", json={"email": "clerk@lastkings.test", "password": "Kings2026"})
        assert resp.status_code == 403

    def test_bad_password(self, client, admin_user):
        resp = client.post("/api/auth/login", json={"email": admin_user.email, "password": "Wrong12345"})
        assert resp.status_code == 401

    def test_logout_revokes_token(self, client, staff_headers):
        assert client.post("/api/auth/logout", headers=staff_headers).status_code == 200
        assert client.get("/api/auth/me", headers=staff_headers).status_code == 401


# =============================================================================
# WORKFLOWS
# =============================================================================


def test_scan_and_checkout(client, staff_headers, stocked, locations):
    resp = client.post("/api/pos/scan", json={"cart": [], "upc": "6161101600019"}, headers=staff_headers)
    assert resp.status_code == 200
    cart = [{"variant_id": i["variant_id"], "quantity": i["quantity"]} for i in resp.get_json()["items"]]

    resp = client.post("/api/pos/scan", json={"cart": cart, "upc": "6161101600019"}, headers=staff_headers)
    body = resp.get_json()
    assert body["item_count"] == 2
    assert body["totals"]["total"] == "665.23"

    cart = [{"variant_id": i["variant_id"], "quantity": i["quantity"]} for i in body["items"]]
    resp = client.post(
        "/api/pos/checkout",
        json={"cart": cart, "payment_method": "cash", "received_amount": 700},
        headers=staff_headers,
    )
    assert resp.status_code == 201
    sale = resp.get_json()
    assert sale["total_amount"] == "665.23"
    assert sale["change_given"] == "34.77"


def test_scan_unknown_returns_quick_add_hint(client, staff_headers, locations):
    resp = client.post("/api/pos/scan", json={"cart": [], "upc": "777"}, headers=staff_headers)
    assert resp.status_code == 404
    assert resp.get_json()["details"]["quick_add"] is True


def test_checkout_oversell_returns_409(client, staff_headers, stocked, locations):
    resp = client.post(
        "/api/pos/checkout",
        json={"cart": [{"variant_id": stocked["whisky"].id, "quantity": 6}], "payment_method": "mpesa"},
        headers=staff_headers,
    )
    assert resp.status_code == 409
    assert resp.get_json()["details"]["available"] == 5


def test_receive_then_transfer(client, staff_headers, catalog, locations):
    resp = client.post(
        "/api/receiving/sessions",
        json={"lines": [{"upc": "5011007003005", "quantity": 10, "lot_number": "JM-7"}]},
        headers=staff_headers,
    )
    assert resp.status_code == 201
    assert resp.get_json()["status"] == "completed"

    resp = client.post(
        "/api/transfers",
        json={
            "source_location_id": locations["warehouse"].id,
            "destination_location_id": locations["floor"].id,
            "lines": [{"variant_id": catalog["whisky"].id, "quantity": 4}],
        },
        headers=staff_headers,
    )
    assert resp.status_code == 200
    assert resp.get_json()["results"][0]["lots"] == [{"lot_number": "JM-7", "quantity": 4}]


def test_partial_transfer_returns_207(client, staff_headers, stocked, locations):
    resp = client.post(
        "/api/transfers",
        json={
            "source_location_id": locations["floor"].id,
            "destination_location_id": locations["backroom"].id,
            "lines": [
                {"variant_id": stocked["whisky"].id, "quantity": 50},
                {"variant_id": stocked["beer"].id, "quantity": 1},
            ],
        },
        headers=staff_headers,
    )
    assert resp.status_code == 207


def test_manager_creates_and_sends_po(client, manager_headers, catalog):
    resp = client.post("/api/distributors", json={"name": "KBL", "phone": "0712 000 111"}, headers=manager_headers)
    assert resp.status_code == 201
    distributor_id = resp.get_json()["id"]

    resp = client.post(
        "/api/purchase-orders",
        json={"distributor_id": distributor_id, "items": [{"variant_id": catalog["beer"].id, "quantity": 48}]},
        headers=manager_headers,
    )
    assert resp.status_code == 201
    po_id = resp.get_json()["id"]

    resp = client.post(f"/api/purchase-orders/{po_id}/send", json={"channel": "whatsapp"}, headers=manager_headers)
    assert resp.status_code == 200
    assert resp.get_json()["purchase_order"]["status"] == "sent"
    assert resp.get_json()["message"]["url"].startswith("https://wa.me/0712000111")


def test_snapshot_values_admin_only(client, admin_headers, manager_headers, stocked, locations):
    admin = client.get("/api/dashboard/daily-snapshots", headers=admin_headers).get_json()
    manager = client.get("/api/dashboard/daily-snapshots", headers=manager_headers).get_json()

    assert "closing_stock_value" in admin["snapshots"][0]
    assert "closing_stock_value" not in manager["snapshots"][0]


def test_cors_header_for_allowed_origin(client):
    resp = client.get("/api/system/health", headers={"Origin": "http://localhost:3000"})
    assert resp.headers.get("Access-Control-Allow-Origin") == "http://localhost:3000"


class TestCustomers:

    def test_create_and_search(self, client, staff_headers):
        resp = client.post(
            "/api/customers",
            json={"first_name": "Wanjiru", "last_name": "Kamau", "email": "Wanjiru@Example.com", "is_whale": True},
            headers=staff_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["email"] == "wanjiru@example.com"

        found = client.get("/api/customers?search=kamau", headers=staff_headers).get_json()
        assert found["count"] == 1
        assert found["items"][0]["is_whale"] is True

    def test_duplicate_email_conflicts(self, client, staff_headers):
        body = {"first_name": "Otieno", "email": "otieno@example.com"}
        client.post("/api/customers", json=body, headers=staff_headers)
        assert client.post("/api/customers", json=body, headers=staff_headers).status_code == 409

    def test_missing_customer(self, client, staff_headers):
        assert client.get("/api/customers/999", headers=staff_headers).status_code == 404


class TestBadInputIsRejected:

    def test_nan_cash_received(self, client, staff_headers, stocked, locations):
        resp = client.post(
            "/api/pos/checkout",
            json={"cart": [{"variant_id": stocked["beer"].id, "quantity": 1}], "payment_method": "cash", "received_amount": "NaN"},
            headers=staff_headers,
        )
        assert resp.status_code == 400

    def test_nan_variant_price(self, client, manager_headers, catalog):
        resp = client.patch(
            f"/api/products/variants/{catalog['whisky'].id}",
            json={"price": "NaN"},
            headers=manager_headers,
        )
        assert resp.status_code == 400

    def test_count_sheet_lines_must_be_objects(self, client, staff_headers, stocked, locations):
        resp = client.post(
            "/api/cycle-counts/scan",
            json={"location_id": locations["floor"].id, "upc": "5011007003005", "lines": ["x"]},
            headers=staff_headers,
        )
        assert resp.status_code == 400

    def test_adjustment_note_too_long(self, client, manager_headers, stocked, locations):
        resp = client.post(
            "/api/inventory/adjust",
            json={
                "variant_id": stocked["beer"].id,
                "location_id": locations["floor"].id,
                "quantity_change": 1,
                "notes": "n" * 300,
            },
            headers=manager_headers,
        )
        assert resp.status_code == 400
