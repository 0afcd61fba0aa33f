from conftest import stock_of
from storefront import models


def _set_status(client, headers, order_id, status):
    return client.put(f"/api/admin/orders/{order_id}/status", json={"status": status}, headers=headers)


def test_processing_deducts_and_cancel_restores_stock(client, customer, gm, make_product, place_order, db):
    product_id = make_product(stock=20)
    order = place_order(customer["headers"], {product_id: 3})

    resp = _set_status(client, gm["headers"], order["id"], "processing")
    assert resp.status_code == 200
    assert resp.json()["old_status"] == "pending"
    assert stock_of(db, product_id) == 17

    # moving between held states does not touch stock again
    _set_status(client, gm["headers"], order["id"], "shipped")
    assert stock_of(db, product_id) == 17

    _set_status(client, gm["headers"], order["id"], "cancelled")
    assert stock_of(db, product_id) == 20

    resp = _set_status(client, gm["headers"], order["id"], "processing")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Cancelled orders cannot change status"


def test_build_orders_deduct_component_stock(client, customer, gm, make_product, db):
    headers = customer["headers"]
    cpu = make_product(name="CPU", stock=10)
    fan = make_product(name="Fan", stock=10)
    build_id = client.post("/api/builds", json={}, headers=headers).json()["id"]
    client.post(f"/api/builds/{build_id}/products", json={"product_id": cpu}, headers=headers)
    client.post(f"/api/builds/{build_id}/products", json={"product_id": fan, "quantity": 2}, headers=headers)
    client.post("/api/cart/add", json={"build_id": build_id, "quantity": 2}, headers=headers)
    order = client.post(
        "/api/orders/checkout",
        json={"payment_method": "card", "shipping_address": {"address": "a", "city": "b", "zipCode": "c", "country": "d"}},
        headers=headers,
    ).json()["order"]

    _set_status(client, gm["headers"], order["id"], "processing")
    assert stock_of(db, cpu) == 8
    assert stock_of(db, fan) == 6


def _order_cpu_build(client, customer, make_product):
    headers = customer["headers"]
    cpu = make_product(name="CPU", stock=10)
    gpu = make_product(name="GPU", stock=10)
    build_id = client.post("/api/builds", json={}, headers=headers).json()["id"]
    client.post(f"/api/builds/{build_id}/products", json={"product_id": cpu}, headers=headers)
    client.post("/api/cart/add", json={"build_id": build_id}, headers=headers)
    order = client.post(
        "/api/orders/checkout",
        json={"payment_method": "card", "shipping_address": {"address": "a", "city": "b", "zipCode": "c", "country": "d"}},
        headers=headers,
    ).json()["order"]
    return order, build_id, cpu, gpu


def test_editing_build_after_processing_restores_what_was_deducted(client, customer, gm, make_product, db):
    order, build_id, cpu, gpu = _order_cpu_build(client, customer, make_product)
    _set_status(client, gm["headers"], order["id"], "processing")
    assert stock_of(db, cpu) == 9

    headers = customer["headers"]
    client.post(f"/api/builds/{build_id}/products", json={"product_id": gpu, "quantity": 3}, headers=headers)
    client.post(f"/api/builds/{build_id}/products", json={"product_id": cpu}, headers=headers)

    assert _set_status(client, gm["headers"], order["id"], "cancelled").status_code == 200
    assert stock_of(db, cpu) == 10
    assert stock_of(db, gpu) == 10


def test_deleting_build_after_processing_still_restores_stock(client, customer, gm, make_product, db):
    order, build_id, cpu, _ = _order_cpu_build(client, customer, make_product)
    _set_status(client, gm["headers"], order["id"], "processing")
    assert stock_of(db, cpu) == 9

    assert client.delete(f"/api/builds/{build_id}", headers=customer["headers"]).status_code == 200
    _set_status(client, gm["headers"], order["id"], "cancelled")
    assert stock_of(db, cpu) == 10

    components = db.query(models.OrderItemComponent).all()
    assert [(c.product_id, c.quantity) for c in components] == [(cpu, 1)]


def test_build_edited_before_processing_deducts_ordered_parts(client, customer, gm, make_product, db):
    order, build_id, cpu, gpu = _order_cpu_build(client, customer, make_product)
    client.post(f"/api/builds/{build_id}/products", json={"product_id": gpu}, headers=customer["headers"])

    _set_status(client, gm["headers"], order["id"], "processing")
    assert stock_of(db, cpu) == 9
    assert stock_of(db, gpu) == 10


def test_not_enough_stock_blocks_processing(client, customer, gm, make_product, place_order, db):
    product_id = make_product(stock=5)
    order = place_order(customer["headers"], {product_id: 4})
    attribute = db.query(models.ProductAttribute).filter_by(product_id=product_id).one()
    attribute.stock = 1
    db.commit()

    resp = _set_status(client, gm["headers"], order["id"], "processing")
    assert resp.status_code == 400
    assert resp.json()["available"] == 1
    db.expire_all()
    assert db.get(models.Order, order["id"]).status == "pending"


def test_delivery_awards_points_once(client, customer, gm, make_product, place_order):
    order = place_order(customer["headers"], {make_product(price=99.5): 2})  # 199 + 10 delivery
    assert order["total_price"] == 209.0

    resp = _set_status(client, gm["headers"], order["id"], "delivered")
    assert resp.json()["points_awarded"] == 209
    assert resp.json()["order"]["payment_status"] is True

    # back and forth must not pay out a second time
    _set_status(client, gm["headers"], order["id"], "shipped")
    resp = _set_status(client, gm["headers"], order["id"], "delivered")
    assert resp.json()["points_awarded"] == 0

    points = client.get("/api/vouchers/points", headers=customer["headers"]).json()
    assert points["points_balance"] == 209
    assert points["total_earned"] == 209
    assert [t["transaction_type"] for t in points["history"]] == ["earned"]


def test_status_change_notifies_customer(client, customer, gm, make_product, place_order):
    order = place_order(customer["headers"], {make_product(): 1})
    _set_status(client, gm["headers"], order["id"], "shipped")
    notes = client.get(
        "/api/notifications", params={"notification_type": "order_status_update"}, headers=customer["headers"]
    ).json()
    assert len(notes) == 1
    assert notes[0]["data"]["new_status"] == "shipped"
    assert "has been shipped" in notes[0]["notification_text"]


def test_invalid_status_and_same_status(client, customer, gm, make_product, place_order):
    order = place_order(customer["headers"], {make_product(): 1})
    assert _set_status(client, gm["headers"], order["id"], "lost").status_code == 400
    resp = _set_status(client, gm["headers"], order["id"], "pending")
    assert resp.status_code == 200
    assert resp.json()["new_status"] == "pending"


def test_low_stock_alert_goes_to_inventory_managers(client, customer, gm, make_admin, make_product, place_order):
    inventory = make_admin("INV001", "INVENTORY_MANAGER")
    product_id = make_product(stock=12)
    order = place_order(customer["headers"], {product_id: 5})
    _set_status(client, gm["headers"], order["id"], "processing")

    notes = client.get("/api/admin/notifications", headers=inventory["headers"]).json()
    assert [n["type"] for n in notes] == ["low_stock"]
    assert notes[0]["related_id"] == str(product_id)
    assert client.get("/api/admin/notifications", headers=gm["headers"]).json() == []


def test_bulk_status_is_all_or_nothing(client, customer, gm, make_product, place_order, db):
    plenty = make_product(name="Plenty", stock=50)
    scarce = make_product(name="Scarce", stock=2)
    first = place_order(customer["headers"], {plenty: 1})
    second = place_order(customer["headers"], {scarce: 2})
    attribute = db.query(models.ProductAttribute).filter_by(product_id=scarce).one()
    attribute.stock = 0
    db.commit()

    resp = client.put(
        "/api/admin/orders/bulk-status",
        json={"order_ids": [first["id"], second["id"]], "status": "processing"},
        headers=gm["headers"],
    )
    assert resp.status_code == 400
    db.expire_all()
    assert db.get(models.Order, first["id"]).status == "pending"
    assert stock_of(db, plenty) == 50

    resp = client.put(
        "/api/admin/orders/bulk-status", json={"order_ids": [first["id"], 999], "status": "processing"},
        headers=gm["headers"],
    )
    assert resp.status_code == 404


def test_admin_order_views_and_notes(client, customer, gm, make_admin, make_product, place_order):
    order = place_order(customer["headers"], {make_product(): 1})
    listing = client.get("/api/admin/orders", params={"search": "alice"}, headers=gm["headers"]).json()
    assert listing["total"] == 1
    assert listing["orders"][0]["customer"]["username"] == "alice"

    resp = client.put(f"/api/admin/orders/{order['id']}/notes", json={"notes": "gift wrap"}, headers=gm["headers"])
    assert resp.json()["notes"] == "gift wrap"

    order_manager = make_admin("ORD001", "ORDER_MANAGER")
    assert client.get(f"/api/admin/orders/{order['id']}", headers=order_manager["headers"]).status_code == 200
    promo = make_admin("PRM001", "PROMO_MANAGER")
    assert client.get("/api/admin/orders", headers=promo["headers"]).status_code == 403

    analytics = client.get("/api/admin/orders/analytics", headers=gm["headers"]).json()
    assert analytics["overview"]["total_orders"] == 1
    assert analytics["top_products"][0]["units_sold"] == 1
