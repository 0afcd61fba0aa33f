import pytest


def test_login_failures(client, gm):
    resp = client.post("/api/admin/login", json={"employee_id": "GM001", "password": "nope"})
    assert resp.status_code == 401
    assert client.post("/api/admin/login", json={"employee_id": "GM001"}).status_code == 400


def test_validate_and_dashboard(client, gm, customer, make_product):
    resp = client.get("/api/admin/validate", headers=gm["headers"])
    assert resp.json()["valid"] is True
    assert resp.json()["admin"]["clearance_level"] == "GENERAL_MANAGER"

    make_product(stock=3)
    stats = client.get("/api/admin/dashboard/stats", headers=gm["headers"]).json()
    assert stats["total_products"] == 1
    assert stats["total_customers"] == 1
    assert stats["low_stock_products"] == 1

    assert client.get("/api/admin/validate", headers=customer["headers"]).status_code == 403
    assert client.get("/api/admin/validate").status_code == 401


@pytest.mark.parametrize(
    "path",
    ["/api/admin/admins", "/api/admin/logs", "/api/admin/customers", "/api/admin/analytics/clearance"],
)
def test_general_manager_areas(client, gm, make_admin, path):
    assert client.get(path, headers=gm["headers"]).status_code == 200
    analyst = make_admin("ANA001", "ANALYTICS")
    resp = client.get(path, headers=analyst["headers"])
    assert resp.status_code == 403
    assert resp.json()["detail"]["required"] == ["GENERAL_MANAGER"]


# ============================================================================
# ADMIN ACCOUNTS
# ============================================================================

def test_create_update_and_deactivate_admin(client, gm):
    body = {"employee_id": "EXP001", "name": "Pat", "password": "expert1", "clearance_level": "PRODUCT_EXPERT"}
    resp = client.post("/api/admin/admins", json=body, headers=gm["headers"])
    assert resp.status_code == 201
    admin_id = resp.json()["admin_id"]
    assert client.post("/api/admin/admins", json=body, headers=gm["headers"]).status_code == 400
    short = dict(body, employee_id="EXP002", password="123")
    assert client.post("/api/admin/admins", json=short, headers=gm["headers"]).status_code == 400
    bogus = dict(body, employee_id="EXP003", clearance_level="JANITOR")
    assert client.post("/api/admin/admins", json=bogus, headers=gm["headers"]).status_code == 400

    token = client.post("/api/admin/login", json={"employee_id": "EXP001", "password": "expert1"}).json()["token"]
    expert_headers = {"Authorization": f"Bearer {token}"}
    assert client.get("/api/admin/products", headers=expert_headers).status_code == 200

    resp = client.put(f"/api/admin/admins/{admin_id}/clearance", json={"clearance_level": "ANALYTICS"}, headers=gm["headers"])
    assert resp.json()["clearance_level"] == "ANALYTICS"
    # clearance is read from the account, not the token
    assert client.get("/api/admin/products", headers=expert_headers).status_code == 403

    client.put(f"/api/admin/admins/{admin_id}", json={"is_active": False}, headers=gm["headers"])
    assert client.get("/api/admin/validate", headers=expert_headers).status_code == 403
    resp = client.post("/api/admin/login", json={"employee_id": "EXP001", "password": "expert1"})
    assert resp.status_code == 403

    actions = [log["action"] for log in client.get("/api/admin/logs", headers=gm["headers"]).json()["logs"]]
    assert {"CREATE_ADMIN", "UPDATE_CLEARANCE", "UPDATE_ADMIN"} <= set(actions)


def test_signup_request_approval(client, gm):
    body = {"employee_id": "INV009", "name": "Sam", "password": "stockpw", "requested_clearance": "INVENTORY_MANAGER"}
    resp = client.post("/api/admin/signup-requests", json=body)
    assert resp.status_code == 201
    request_id = resp.json()["request"]["request_id"]
    assert client.post("/api/admin/signup-requests", json=body).status_code == 400

    notes = client.get("/api/admin/notifications", headers=gm["headers"]).json()
    assert notes[0]["type"] == "signup_request"
    assert notes[0]["related_id"] == str(request_id)
    assert client.get("/api/admin/notifications/unread-count", headers=gm["headers"]).json()["unread_count"] == 1
    client.patch(f"/api/admin/notifications/{notes[0]['notification_id']}/read", headers=gm["headers"])
    assert client.get("/api/admin/notifications/unread-count", headers=gm["headers"]).json()["unread_count"] == 0

    pending = client.get("/api/admin/signup-requests", headers=gm["headers"]).json()
    assert [r["employee_id"] for r in pending] == ["INV009"]

    resp = client.post(f"/api/admin/signup-requests/{request_id}/approve", headers=gm["headers"])
    assert resp.status_code == 200
    assert resp.json()["request"]["status"] == "approved"
    assert client.post(f"/api/admin/signup-requests/{request_id}/reject", headers=gm["headers"]).status_code == 400

    login = client.post("/api/admin/login", json={"employee_id": "INV009", "password": "stockpw"})
    assert login.status_code == 200
    assert login.json()["admin"]["clearance_level"] == "INVENTORY_MANAGER"


def test_signup_request_rejection(client, gm):
    body = {"employee_id": "X1", "name": "Eve", "password": "hunter22", "requested_clearance": "GENERAL_MANAGER"}
    request_id = client.post("/api/admin/signup-requests", json=body).json()["request"]["request_id"]
    resp = client.post(f"/api/admin/signup-requests/{request_id}/reject", headers=gm["headers"])
    assert resp.json()["request"]["status"] == "rejected"
    assert client.post("/api/admin/login", json={"employee_id": "X1", "password": "hunter22"}).status_code == 401
    assert client.get("/api/admin/signup-requests", headers=gm["headers"]).json() == []


# ============================================================================
# CATALOG AND INVENTORY
# ============================================================================

def test_product_crud(client, gm, make_category):
    category_id = make_category("GPUs")
    resp = client.post(
        "/api/admin/products",
        json={"name": "RTX 4070", "price": 599.0, "category_id": category_id, "stock": 4, "cost": 450,
              "specs": {"memory": "12GB"}},
        headers=gm["headers"],
    )
    assert resp.status_code == 201
    product = resp.json()
    assert product["stock_status"] == "low_stock"
    assert product["category_name"] == "GPUs"

    bad = client.post("/api/admin/products", json={"name": "X", "price": 1, "category_id": 999}, headers=gm["headers"])
    assert bad.status_code == 400

    resp = client.put(
        f"/api/admin/products/{product['id']}",
        json={"discount_status": True, "discount_percent": 10, "stock": 30},
        headers=gm["headers"],
    )
    assert resp.json()["effective_price"] == pytest.approx(539.1)
    assert resp.json()["stock"] == 30
    assert client.put(
        f"/api/admin/products/{product['id']}", json={"discount_percent": 120}, headers=gm["headers"]
    ).status_code == 400

    listing = client.get("/api/admin/products", params={"search": "rtx"}, headers=gm["headers"]).json()
    assert listing["pagination"]["totalItems"] == 1

    assert client.delete(f"/api/admin/products/{product['id']}", headers=gm["headers"]).status_code == 200
    assert client.get(f"/api/admin/products/{product['id']}", headers=gm["headers"]).status_code == 404


def test_deleting_product_drops_cart_lines(client, gm, customer, make_product):
    product_id = make_product()
    client.post("/api/cart/add", json={"product_id": product_id}, headers=customer["headers"])
    client.delete(f"/api/admin/products/{product_id}", headers=gm["headers"])
    assert client.get("/api/cart", headers=customer["headers"]).json()["items"] == []


def test_categories(client, make_admin):
    expert = make_admin("EXP001", "PRODUCT_EXPERT")
    resp = client.post("/api/admin/categories", json={"name": "Cases"}, headers=expert["headers"])
    assert resp.status_code == 201
    assert client.post("/api/admin/categories", json={"name": "Cases"}, headers=expert["headers"]).status_code == 400

    analyst = make_admin("ANA001", "ANALYTICS")
    categories = client.get("/api/admin/categories", headers=analyst["headers"]).json()
    assert categories == [{"id": resp.json()["id"], "name": "Cases", "description": None, "image_url": None,
                           "product_count": 0}]
    assert client.post("/api/admin/categories", json={"name": "Fans"}, headers=analyst["headers"]).status_code == 403


def test_stock_operations(client, make_admin, make_product):
    inventory = make_admin("INV001", "INVENTORY_MANAGER")
    product_id = make_product(stock=20)
    path = f"/api/admin/inventory/{product_id}/stock"

    resp = client.put(path, json={"stock": 5, "operation": "add"}, headers=inventory["headers"])
    assert resp.json() == {"product_id": product_id, "old_stock": 20, "new_stock": 25, "stock_status": "in_stock"}
    resp = client.put(path, json={"stock": 100, "operation": "subtract"}, headers=inventory["headers"])
    assert resp.json()["new_stock"] == 0
    assert resp.json()["stock_status"] == "out_of_stock"
    resp = client.put(path, json={"stock": 7}, headers=inventory["headers"])
    assert resp.json()["stock_status"] == "low_stock"

    assert client.put(path, json={"stock": -1}, headers=inventory["headers"]).status_code == 400
    assert client.put(path, json={"stock": 1, "operation": "multiply"}, headers=inventory["headers"]).status_code == 400

    overview = client.get("/api/admin/inventory", params={"stock_status": "low_stock"}, headers=inventory["headers"])
    assert [row["product_id"] for row in overview.json()["inventory"]] == [product_id]
    assert overview.json()["summary"]["inventory_value"] == 7 * 50.0


# ============================================================================
# CUSTOMERS AND REPORTS
# ============================================================================

def test_customer_views(client, gm, customer, make_product, place_order):
    client.post(
        "/api/user/addresses",
        json={"address": "1 Main St", "city": "Springfield", "zipCode": "12345", "country": "US"},
        headers=customer["headers"],
    )
    place_order(customer["headers"], {make_product(price=40.0): 1})

    listing = client.get("/api/admin/customers", params={"search": "ALICE"}, headers=gm["headers"]).json()
    assert listing["total"] == 1
    row = listing["customers"][0]
    assert row["order_count"] == 1
    assert row["total_spent"] == 50.0

    detail = client.get(f"/api/admin/customers/{row['customer_id']}", headers=gm["headers"]).json()
    assert detail["addresses"][0]["city"] == "Springfield"
    assert len(detail["recent_orders"]) == 1
    assert client.get("/api/admin/customers/999", headers=gm["headers"]).status_code == 404


def test_csv_reports(client, make_admin, customer, make_product, place_order):
    analyst = make_admin("ANA001", "ANALYTICS")
    place_order(customer["headers"], {make_product(name="Case", price=70.0): 1})

    resp = client.get("/api/admin/reports/orders", headers=analyst["headers"])
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert 'filename="orders_report.csv"' in resp.headers["content-disposition"]
    lines = resp.text.strip().splitlines()
    assert lines[0] == "id,customer,order_date,status,payment_method,discount_amount,total_price"
    assert ",alice," in lines[1]

    products = client.get("/api/admin/reports/products", headers=analyst["headers"]).text.splitlines()
    assert products[1].startswith("1,Case,")
    for report in ("sales", "users"):
        assert client.get(f"/api/admin/reports/{report}", headers=analyst["headers"]).status_code == 200

    assert client.get("/api/admin/reports/taxes", headers=analyst["headers"]).status_code == 400


# ============================================================================
# ADMIN CONSOLE ROUTES
# ============================================================================

def test_signup_request_aliases_and_review_by_action(client, gm):
    body = {"employee_id": "ANA009", "name": "Kim", "password": "numbers1", "requested_clearance": "ANALYTICS",
            "reason_for_access": "monthly reporting"}
    resp = client.post("/api/admin/signup-request", json=body)
    assert resp.status_code == 201
    request = resp.json()["request"]
    assert request["reason"] == "monthly reporting"

    path = f"/api/admin/signup-requests/{request['request_id']}"
    assert client.put(path, json={"action": "maybe"}, headers=gm["headers"]).status_code == 400
    bogus = {"action": "approve", "assigned_clearance": "JANITOR"}
    assert client.put(path, json=bogus, headers=gm["headers"]).status_code == 400

    resp = client.put(path, json={"action": "approve", "assigned_clearance": "ORDER_MANAGER"}, headers=gm["headers"])
    assert resp.json()["request"]["status"] == "approved"
    login = client.post("/api/admin/login", json={"employee_id": "ANA009", "password": "numbers1"})
    assert login.json()["admin"]["clearance_level"] == "ORDER_MANAGER"


def test_signup_request_rejection_reason_is_logged(client, gm):
    body = {"employee_id": "X2", "name": "Lee", "password": "hunter22", "requested_clearance": "GENERAL_MANAGER"}
    request_id = client.post("/api/admin/signup-request", json=body).json()["request"]["request_id"]
    resp = client.put(
        f"/api/admin/signup-requests/{request_id}",
        json={"action": "reject", "rejection_reason": "not on the team"},
        headers=gm["headers"],
    )
    assert resp.json()["request"]["status"] == "rejected"
    logs = client.get("/api/admin/logs", params={"action": "REJECT_SIGNUP"}, headers=gm["headers"]).json()["logs"]
    assert logs[0]["details"]["rejection_reason"] == "not on the team"


@pytest.mark.parametrize("method", ["put", "patch"])
def test_mark_all_notifications_read(client, gm, method):
    body = {"employee_id": "INV010", "name": "Sam", "password": "stockpw", "requested_clearance": "INVENTORY_MANAGER"}
    client.post("/api/admin/signup-request", json=body)
    assert client.get("/api/admin/notifications/unread-count", headers=gm["headers"]).json()["unread_count"] == 1
    resp = getattr(client, method)("/api/admin/notifications/mark-all-read", headers=gm["headers"])
    assert resp.json() == {"updated": 1}
    assert client.get("/api/admin/notifications/unread-count", headers=gm["headers"]).json()["unread_count"] == 0


def test_user_listing(client, gm, customer, make_admin):
    users = client.get("/api/admin/users", headers=gm["headers"]).json()
    assert [(u["username"], u["user_type"]) for u in users] == [("alice", "Customer")]
    assert users[0]["email"] == "alice@example.com"
    analyst = make_admin("ANA001", "ANALYTICS")
    assert client.get("/api/admin/users", headers=analyst["headers"]).status_code == 403


def test_own_profile_and_password(client, make_admin):
    expert = make_admin("EXP001", "PRODUCT_EXPERT", password="expert1")
    headers = expert["headers"]
    assert client.get("/api/admin/profile", headers=headers).json()["employee_id"] == "EXP001"

    resp = client.put("/api/admin/profile", json={"name": "Pat Doe"}, headers=headers)
    assert resp.json()["name"] == "Pat Doe"
    assert client.put("/api/admin/profile", json={}, headers=headers).status_code == 400

    wrong = {"currentPassword": "nope", "newPassword": "expert2"}
    assert client.put("/api/admin/change-password", json=wrong, headers=headers).status_code == 400
    short = {"currentPassword": "expert1", "newPassword": "x"}
    assert client.put("/api/admin/change-password", json=short, headers=headers).status_code == 400
    resp = client.put(
        "/api/admin/change-password", json={"current_password": "expert1", "new_password": "expert2"}, headers=headers
    )
    assert resp.status_code == 200
    assert client.post("/api/admin/login", json={"employee_id": "EXP001", "password": "expert1"}).status_code == 401
    assert client.post("/api/admin/login", json={"employee_id": "EXP001", "password": "expert2"}).status_code == 200


def test_review_moderation(client, gm, customer, make_admin, make_product, place_order):
    product_id = make_product(name="Mouse")
    order = place_order(customer["headers"], {product_id: 1})
    client.put(f"/api/admin/orders/{order['id']}/status", json={"status": "delivered"}, headers=gm["headers"])
    rating = {"order_id": order["id"], "order_item_id": order["items"][0]["id"], "product_id": product_id,
              "rating": 2, "review_text": "Broke in a week"}
    rating_id = client.post("/api/ratings/submit", json=rating, headers=customer["headers"]).json()["rating"]["id"]

    expert = make_admin("EXP001", "PRODUCT_EXPERT")
    reviews = client.get("/api/admin/reviews", params={"max_rating": 3}, headers=expert["headers"]).json()
    assert [(r["id"], r["product_name"], r["username"]) for r in reviews] == [(rating_id, "Mouse", "alice")]
    assert client.get("/api/admin/reviews", params={"max_rating": 1}, headers=expert["headers"]).json() == []

    analyst = make_admin("ANA001", "ANALYTICS")
    assert client.delete(f"/api/admin/reviews/{rating_id}", headers=analyst["headers"]).status_code == 403
    assert client.delete(f"/api/admin/reviews/{rating_id}", headers=expert["headers"]).status_code == 200
    assert client.delete(f"/api/admin/reviews/{rating_id}", headers=expert["headers"]).status_code == 404
    assert client.get(f"/api/ratings/product/{product_id}").json()["total_ratings"] == 0

    actions = [log["action"] for log in client.get("/api/admin/logs", headers=gm["headers"]).json()["logs"]]
    assert "DELETE_REVIEW" in actions
