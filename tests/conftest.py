"""
Shared fixtures.

The API runs against an in-memory SQLite database; the environment has to
be set before ``storefront`` is imported because settings are read at
import time.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient

from storefront import models, schemas, security
from storefront.crud import admin as admin_crud
from storefront.database import Base, SessionLocal, engine
from storefront.main import app

ADDRESS = {"address": "1 Main St", "city": "Springfield", "zipCode": "12345", "country": "US"}


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


def auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(client):
    def _make(username="alice", password="secret123"):
        resp = client.post(
            "/api/signup",
            json={
                "username": username,
                "email": f"{username}@example.com",
                "password": password,
                "full_name": f"{username.title()} Tester",
            },
        )
        assert resp.status_code == 201, resp.text
        login = client.post("/api/login", json={"identifier": username, "password": password})
        assert login.status_code == 200, login.text
        return {"id": resp.json()["user"]["id"], "headers": auth(login.json()["token"])}

    return _make


@pytest.fixture
def customer(make_user):
    return make_user("alice")


@pytest.fixture
def make_admin(client, db):
    def _make(employee_id="GM001", clearance="GENERAL_MANAGER", password="adminpass", user_id=None):
        data = schemas.AdminCreate(
            employee_id=employee_id, name=f"Staff {employee_id}", password=password, clearance_level=clearance
        )
        admin = admin_crud.create_admin(db, data, security.get_password_hash(password), security.CLEARANCE_LEVELS)
        if user_id is not None:
            admin.user_id = user_id
            db.commit()
        resp = client.post("/api/admin/login", json={"employee_id": employee_id, "password": password})
        assert resp.status_code == 200, resp.text
        return {"id": admin.admin_id, "headers": auth(resp.json()["token"])}

    return _make


@pytest.fixture
def gm(make_admin):
    return make_admin()


@pytest.fixture
def make_category(db):
    def _make(name="CPUs"):
        category = models.ProductCategory(name=name)
        db.add(category)
        db.commit()
        return category.id

    return _make


@pytest.fixture
def make_product(db):
    def _make(name="Ryzen 7", price=100.0, stock=20, category_id=None, specs=None, **fields):
        product = models.Product(name=name, price=price, category_id=category_id, specs=specs or {}, **fields)
        product.attribute = models.ProductAttribute(stock=stock, cost=price / 2)
        db.add(product)
        db.commit()
        return product.id

    return _make


@pytest.fixture
def place_order(client):
    """Fill the cart with ``{product_id: quantity}`` and check out."""

    def _place(headers, lines, promo_code=None):
        for product_id, quantity in lines.items():
            resp = client.post("/api/cart/add", json={"product_id": product_id, "quantity": quantity}, headers=headers)
            assert resp.status_code == 201, resp.text
        body = {"payment_method": "card", "shipping_address": ADDRESS}
        if promo_code:
            body["promo_code"] = promo_code
        resp = client.post("/api/orders/checkout", json=body, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["order"]

    return _place


def stock_of(db, product_id):
    db.expire_all()
    return (
        db.query(models.ProductAttribute.stock)
        .filter(models.ProductAttribute.product_id == product_id)
        .scalar()
    )
