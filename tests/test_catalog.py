def test_product_detail_uses_effective_price(client, make_product):
    product_id = make_product(price=200.0, discount_status=True, discount_percent=25)
    resp = client.get(f"/api/products/{product_id}")
    assert resp.status_code == 200
    body = resp.json()
    assert body["effective_price"] == 150.0
    assert body["stock"] == 20
    assert body["average_rating"] == 0


def test_unknown_product_is_404(client):
    assert client.get("/api/products/999").status_code == 404


def test_search_matches_name_and_category(client, make_product, make_category):
    gpus = make_category("Graphics Cards")
    make_product(name="RTX 4070", category_id=gpus)
    make_product(name="Ryzen 5")

    by_name = client.get("/api/products/search", params={"q": "ryzen"}).json()
    assert [p["name"] for p in by_name["products"]] == ["Ryzen 5"]

    by_category = client.get("/api/products/search", params={"q": "graphics"}).json()
    assert [p["name"] for p in by_category["products"]] == ["RTX 4070"]
    assert by_category["pagination"]["totalItems"] == 1


def test_random_products_skip_unavailable(client, make_product):
    make_product(name="In stock")
    make_product(name="Retired", availability=False)
    names = {p["name"] for p in client.get("/api/products/random", params={"limit": 10}).json()}
    assert names == {"In stock"}


def test_category_listing_filters_and_sorting(client, make_category, make_product):
    cpus = make_category("CPUs")
    make_product(name="Budget", price=50, category_id=cpus, specs={"socket": "AM4"})
    make_product(name="Mid", price=150, category_id=cpus, specs={"socket": "AM5"})
    make_product(name="Sale", price=400, category_id=cpus, specs={"socket": "AM5"},
                 discount_status=True, discount_percent=50)
    make_product(name="Hidden", price=100, category_id=cpus, availability=False)

    resp = client.get(f"/api/categories/{cpus}/products", params={"sortBy": "price", "sortOrder": "ASC"})
    assert [p["name"] for p in resp.json()["products"]] == ["Budget", "Mid", "Sale"]

    resp = client.get(f"/api/categories/{cpus}/products", params={"minPrice": 100, "maxPrice": 250})
    assert {p["name"] for p in resp.json()["products"]} == {"Mid", "Sale"}

    resp = client.get(f"/api/categories/{cpus}/products", params={"spec_socket": "am5"})
    assert {p["name"] for p in resp.json()["products"]} == {"Mid", "Sale"}

    resp = client.get(f"/api/categories/{cpus}/products", params={"availability": "all"})
    assert resp.json()["pagination"]["totalItems"] == 4


def test_category_filters(client, make_category, make_product):
    cpus = make_category("CPUs")
    make_product(name="A", price=50, category_id=cpus, specs={"socket": "AM4", "cores": 6})
    make_product(name="B", price=120, category_id=cpus, specs={"socket": "AM5"})

    body = client.get(f"/api/categories/{cpus}/filters").json()
    assert body["priceRange"] == {"min": 50.0, "max": 120.0}
    assert body["specs"]["socket"] == ["AM4", "AM5"]
    assert body["specs"]["cores"] == ["6"]


def test_empty_category_filters_default_range(client, make_category):
    empty = make_category("Empty")
    assert client.get(f"/api/categories/{empty}/filters").json()["priceRange"] == {"min": 0, "max": 1000}


def test_category_detail_counts_available_products(client, make_category, make_product):
    cpus = make_category("CPUs")
    make_product(category_id=cpus)
    make_product(name="Gone", category_id=cpus, availability=False)
    body = client.get(f"/api/categories/{cpus}").json()
    assert body["product_count"] == 1
    assert client.get("/api/categories/999").status_code == 404
