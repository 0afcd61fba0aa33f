def test_add_product_merges_lines_and_totals(client, customer, make_product):
    headers = customer["headers"]
    product_id = make_product(price=80.0, discount_status=True, discount_percent=10)

    first = client.post("/api/cart/add", json={"product_id": product_id, "quantity": 1}, headers=headers)
    assert first.status_code == 201
    assert first.json()["item"]["unit_price"] == 72.0
    client.post("/api/cart/add", json={"product_id": product_id, "quantity": 2}, headers=headers)

    cart = client.get("/api/cart", headers=headers).json()
    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 3
    assert cart["total"] == 216.0


def test_add_requires_exactly_one_reference(client, customer, make_product):
    product_id = make_product()
    resp = client.post("/api/cart/add", json={}, headers=customer["headers"])
    assert resp.status_code == 400
    resp = client.post("/api/cart/add", json={"product_id": product_id, "build_id": 1}, headers=customer["headers"])
    assert resp.status_code == 400


def test_add_checks_stock_including_cart_quantity(client, customer, make_product):
    headers = customer["headers"]
    product_id = make_product(stock=3)
    assert client.post("/api/cart/add", json={"product_id": product_id, "quantity": 2}, headers=headers).status_code == 201

    resp = client.post("/api/cart/add", json={"product_id": product_id, "quantity": 2}, headers=headers)
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Insufficient stock", "available": 3, "requested": 4}


def test_unavailable_product_cannot_be_added(client, customer, make_product):
    product_id = make_product(availability=False)
    resp = client.post("/api/cart/add", json={"product_id": product_id}, headers=customer["headers"])
    assert resp.status_code == 400


def test_update_remove_and_clear(client, customer, make_user, make_product):
    headers = customer["headers"]
    a = make_product(name="A")
    b = make_product(name="B")
    item_id = client.post("/api/cart/add", json={"product_id": a}, headers=headers).json()["item"]["id"]
    client.post("/api/cart/add", json={"product_id": b}, headers=headers)

    assert client.put(f"/api/cart/item/{item_id}", json={"quantity": 0}, headers=headers).status_code == 400
    resp = client.put(f"/api/cart/item/{item_id}", json={"quantity": 4}, headers=headers)
    assert resp.json()["item"]["quantity"] == 4

    intruder = make_user("mallory")
    assert client.delete(f"/api/cart/item/{item_id}", headers=intruder["headers"]).status_code == 404

    assert client.delete(f"/api/cart/item/{item_id}", headers=headers).status_code == 200
    resp = client.delete("/api/cart/clear", headers=headers)
    assert resp.json()["removed"] == 1
    assert client.get("/api/cart", headers=headers).json()["items"] == []


def test_build_lifecycle(client, customer, make_product):
    headers = customer["headers"]
    cpu = make_product(name="CPU", price=200.0)
    ram = make_product(name="RAM", price=50.0)

    build = client.post("/api/builds", json={"name": "Gaming rig"}, headers=headers)
    assert build.status_code == 201
    build_id = build.json()["id"]
    assert build.json()["status"] == "draft"

    client.post(f"/api/builds/{build_id}/products", json={"product_id": cpu}, headers=headers)
    resp = client.post(f"/api/builds/{build_id}/products", json={"product_id": ram, "quantity": 2}, headers=headers)
    assert resp.status_code == 201
    assert resp.json()["total_price"] == 300.0
    assert resp.json()["product_count"] == 3

    assert client.put(f"/api/builds/{build_id}", json={"status": "bogus"}, headers=headers).status_code == 400
    assert client.put(f"/api/builds/{build_id}", json={"status": "completed"}, headers=headers).json()["status"] == "completed"

    resp = client.delete(f"/api/builds/{build_id}/products/{ram}", headers=headers)
    assert [p["name"] for p in resp.json()["products"]] == ["CPU"]

    assert client.delete(f"/api/builds/{build_id}", headers=headers).status_code == 200
    assert client.get(f"/api/builds/{build_id}", headers=headers).status_code == 404


def test_build_in_cart_is_priced_from_components(client, customer, make_product):
    headers = customer["headers"]
    cpu = make_product(name="CPU", price=200.0, discount_status=True, discount_percent=50)
    build_id = client.post("/api/builds", json={}, headers=headers).json()["id"]

    resp = client.post("/api/cart/add", json={"build_id": build_id}, headers=headers)
    assert resp.status_code == 400  # empty build

    client.post(f"/api/builds/{build_id}/products", json={"product_id": cpu}, headers=headers)
    resp = client.post("/api/cart/add", json={"build_id": build_id, "quantity": 2}, headers=headers)
    assert resp.status_code == 201
    assert resp.json()["item"]["unit_price"] == 200.0
    assert client.get("/api/cart", headers=headers).json()["total"] == 400.0


def test_other_customers_build_is_not_found(client, customer, make_user):
    build_id = client.post("/api/builds", json={}, headers=customer["headers"]).json()["id"]
    other = make_user("mallory")
    assert client.get(f"/api/builds/{build_id}", headers=other["headers"]).status_code == 404
    resp = client.post("/api/cart/add", json={"build_id": build_id}, headers=other["headers"])
    assert resp.status_code == 404
