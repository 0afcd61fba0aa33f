import pytest


@pytest.fixture
def delivered(client, customer, gm, make_product, place_order):
    """A delivered order holding one product line and one build line."""
    headers = customer["headers"]
    ssd = make_product(name="SSD", price=80.0)
    cpu = make_product(name="CPU", price=200.0)
    build_id = client.post("/api/builds", json={"name": "Rig"}, headers=headers).json()["id"]
    client.post(f"/api/builds/{build_id}/products", json={"product_id": cpu}, headers=headers)
    client.post("/api/cart/add", json={"build_id": build_id}, headers=headers)
    order = place_order(headers, {ssd: 1})
    resp = client.put(f"/api/admin/orders/{order['id']}/status", json={"status": "delivered"}, headers=gm["headers"])
    assert resp.status_code == 200
    lines = {item["item_type"]: item for item in order["items"]}
    return {"order": order, "ssd": ssd, "cpu": cpu, "product_line": lines["product"], "build_line": lines["build"]}


def _submit(client, headers, order_id, line_id, product_id, rating=8, **extra):
    body = {"order_id": order_id, "order_item_id": line_id, "product_id": product_id, "rating": rating, **extra}
    return client.post("/api/ratings/submit", json=body, headers=headers)


def test_ratable_products_include_build_components(client, customer, delivered):
    products = client.get("/api/ratings/ratable-products", headers=customer["headers"]).json()["products"]
    by_product = {p["product_id"]: p for p in products}
    assert set(by_product) == {delivered["ssd"], delivered["cpu"]}
    assert by_product[delivered["cpu"]]["item_type"] == "build"
    assert by_product[delivered["cpu"]]["order_item_id"] == delivered["build_line"]["id"]


def test_rate_product_bought_inside_a_build(client, customer, delivered):
    resp = _submit(
        client, customer["headers"], delivered["order"]["id"], delivered["build_line"]["id"], delivered["cpu"],
        rating=9, review_text="Runs cool",
    )
    assert resp.status_code == 201
    assert resp.json()["rating"]["rating"] == 9

    remaining = client.get("/api/ratings/ratable-products", headers=customer["headers"]).json()["products"]
    assert [p["product_id"] for p in remaining] == [delivered["ssd"]]

    summary = client.get(f"/api/ratings/product/{delivered['cpu']}").json()
    assert summary["average_rating"] == 9.0
    assert summary["total_ratings"] == 1
    assert client.get(f"/api/products/{delivered['cpu']}").json()["average_rating"] == 9.0


def test_parts_added_to_build_after_delivery_are_not_ratable(client, customer, delivered, make_product):
    headers = customer["headers"]
    fan = make_product(name="Fan")
    build_id = delivered["build_line"]["build_id"]
    client.post(f"/api/builds/{build_id}/products", json={"product_id": fan}, headers=headers)

    products = client.get("/api/ratings/ratable-products", headers=headers).json()["products"]
    assert fan not in {p["product_id"] for p in products}
    resp = _submit(client, headers, delivered["order"]["id"], delivered["build_line"]["id"], fan)
    assert resp.status_code == 403


def test_build_parts_stay_ratable_after_build_is_deleted(client, customer, delivered):
    headers = customer["headers"]
    client.delete(f"/api/builds/{delivered['build_line']['build_id']}", headers=headers)
    resp = _submit(client, headers, delivered["order"]["id"], delivered["build_line"]["id"], delivered["cpu"])
    assert resp.status_code == 201


def test_duplicate_rating_rejected(client, customer, delivered):
    args = (client, customer["headers"], delivered["order"]["id"], delivered["product_line"]["id"], delivered["ssd"])
    assert _submit(*args).status_code == 201
    resp = _submit(*args)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "You have already rated this product for this order"


@pytest.mark.parametrize("value", [11, -1, 7.5])
def test_rating_value_bounds(client, customer, delivered, value):
    resp = _submit(
        client, customer["headers"], delivered["order"]["id"], delivered["product_line"]["id"], delivered["ssd"],
        rating=value,
    )
    assert resp.status_code == 400


def test_missing_fields(client, customer):
    resp = client.post("/api/ratings/submit", json={"rating": 5}, headers=customer["headers"])
    assert resp.status_code == 400


def test_undelivered_order_is_not_ratable(client, customer, make_product, place_order):
    product_id = make_product()
    order = place_order(customer["headers"], {product_id: 1})
    assert client.get("/api/ratings/ratable-products", headers=customer["headers"]).json()["products"] == []
    resp = _submit(client, customer["headers"], order["id"], order["items"][0]["id"], product_id)
    assert resp.status_code == 403


def test_product_not_in_that_line_is_forbidden(client, customer, delivered):
    # the SSD was not part of the build line
    resp = _submit(
        client, customer["headers"], delivered["order"]["id"], delivered["build_line"]["id"], delivered["ssd"]
    )
    assert resp.status_code == 403


def test_another_customer_cannot_rate(client, make_user, delivered):
    other = make_user("mallory")
    resp = _submit(
        client, other["headers"], delivered["order"]["id"], delivered["product_line"]["id"], delivered["ssd"]
    )
    assert resp.status_code == 403


def test_update_and_delete_own_rating(client, customer, make_user, delivered):
    headers = customer["headers"]
    rating_id = _submit(
        client, headers, delivered["order"]["id"], delivered["product_line"]["id"], delivered["ssd"]
    ).json()["rating"]["id"]

    resp = client.put(f"/api/ratings/{rating_id}", json={"rating": 3, "review_text": "Died"}, headers=headers)
    assert resp.json()["rating"] == 3
    assert resp.json()["review_text"] == "Died"
    assert client.put(f"/api/ratings/{rating_id}", json={"rating": 12}, headers=headers).status_code == 400

    other = make_user("mallory")
    assert client.delete(f"/api/ratings/{rating_id}", headers=other["headers"]).status_code == 404

    assert [r["id"] for r in client.get("/api/account/reviews", headers=headers).json()] == [rating_id]
    assert client.delete(f"/api/ratings/{rating_id}", headers=headers).status_code == 200
    assert client.get("/api/ratings/my-ratings", headers=headers).json() == []


def test_ratings_for_unknown_product(client):
    assert client.get("/api/ratings/product/999").status_code == 404
