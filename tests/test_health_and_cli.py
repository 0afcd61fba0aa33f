from prometheus_client import REGISTRY

from storefront import cli, models
from storefront.database import Base


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/health/db").json() == {"status": "healthy", "database": "connected"}


def test_schema_index_names_are_unique():
    names = [index.name for table in Base.metadata.sorted_tables for index in table.indexes]
    assert "ix_product_category_id" in names
    assert len(names) == len(set(names))


def _requests_seen(endpoint, status):
    labels = {"method": "GET", "endpoint": endpoint, "status": status}
    return REGISTRY.get_sample_value("http_requests_total", labels) or 0.0


def test_metrics_count_requests(client):
    before = _requests_seen("/health", "200")
    client.get("/health")
    assert _requests_seen("/health", "200") == before + 1
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text


def test_unmatched_paths_share_one_metrics_label(client):
    before = _requests_seen("unmatched", "404")
    assert client.get("/no/such/path/12345").status_code == 404
    client.get("/no/such/path/67890")
    assert _requests_seen("unmatched", "404") == before + 2
    assert REGISTRY.get_sample_value(
        "http_requests_total", {"method": "GET", "endpoint": "/no/such/path/12345", "status": "404"}
    ) is None


def test_store_errors_render_as_json(client):
    resp = client.get("/api/products/999")
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Product not found"}


def _write_csv(tmp_path, text):
    path = tmp_path / "products.csv"
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_import_products(tmp_path, db):
    path = _write_csv(
        tmp_path,
        "name,price,category,stock,cost,discount_percent,specs\n"
        'Ryzen 5,150,CPUs,12,100,,"{""cores"": ""6""}"\n'
        "Ryzen 9,450,CPUs,3,300,10,\n",
    )
    assert cli.main(["import-products", path]) == 0

    products = db.query(models.Product).order_by(models.Product.id).all()
    assert [p.name for p in products] == ["Ryzen 5", "Ryzen 9"]
    assert products[0].specs == {"cores": "6"}
    assert products[0].category_id == products[1].category_id
    assert products[1].discount_status is True
    assert products[1].stock == 3
    assert db.query(models.ProductCategory).count() == 1


def test_import_is_all_or_nothing(tmp_path, db, make_product):
    make_product(name="Existing")
    path = _write_csv(tmp_path, "name,price\nGood,10\nBad,ten\n")
    assert cli.main(["import-products", path, "--replace"]) == 1
    db.expire_all()
    assert [p.name for p in db.query(models.Product)] == ["Existing"]


def test_create_admin_command(client):
    assert cli.main(["create-admin", "OPS001", "Ops Person", "--clearance", "ANALYTICS", "--password", "opspass1"]) == 0
    resp = client.post("/api/admin/login", json={"employee_id": "OPS001", "password": "opspass1"})
    assert resp.json()["admin"]["clearance_level"] == "ANALYTICS"
    assert cli.main(["create-admin", "OPS001", "Again", "--password", "opspass1"]) == 1
