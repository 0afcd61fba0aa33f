"""Shopping cart operations. One cart per customer, created on first use."""

import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from storefront import models, schemas
from storefront.errors import NotFoundError, StoreError

logger = logging.getLogger(__name__)


def get_or_create_cart(db: Session, customer: models.Customer) -> models.Cart:
    cart = db.query(models.Cart).filter(models.Cart.customer_id == customer.id).first()
    if cart is None:
        cart = models.Cart(customer_id=customer.id)
        db.add(cart)
        db.commit()
        db.refresh(cart)
    return cart


def build_unit_price(build: models.Build) -> float:
    """A build sells at the list price of its components."""
    return build.total_price


def serialize_cart(cart: models.Cart) -> Dict[str, Any]:
    items = sorted(cart.items, key=lambda i: (i.added_at, i.id), reverse=True)
    rows = []
    for item in items:
        rows.append(
            {
                "id": item.id,
                "product_id": item.product_id,
                "build_id": item.build_id,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "line_total": round(item.unit_price * item.quantity, 2),
                "product_name": item.product.name if item.product else None,
                "image_url": item.product.image_url if item.product else None,
                "build_name": item.build.name if item.build else None,
                "added_at": item.added_at,
            }
        )
    total = round(sum(item.unit_price * item.quantity for item in cart.items), 2)
    return {"cart_id": cart.id, "items": rows, "total": total}


def add_item(db: Session, customer: models.Customer, data: schemas.CartAdd) -> models.CartItem:
    """
    Add a product or a build to the cart, merging with an existing line.

    Raises:
        StoreError: both/neither of product_id and build_id, bad quantity,
            unavailable product, not enough stock (including the quantity
            already in the cart)
        NotFoundError: unknown product, or a build the customer does not own
    """
    if (data.product_id is None) == (data.build_id is None):
        raise StoreError("Provide exactly one of product_id or build_id")
    if data.quantity < 1:
        raise StoreError("Quantity must be at least 1")

    cart = get_or_create_cart(db, customer)

    if data.product_id is not None:
        product = db.get(models.Product, data.product_id)
        if product is None:
            raise NotFoundError("Product not found")
        if not product.availability:
            raise StoreError("Product is not available")
        line = (
            db.query(models.CartItem)
            .filter(models.CartItem.cart_id == cart.id, models.CartItem.product_id == product.id)
            .first()
        )
        wanted = data.quantity + (line.quantity if line else 0)
        if product.stock < wanted:
            raise StoreError("Insufficient stock", available=product.stock, requested=wanted)
        if line is None:
            line = models.CartItem(
                cart_id=cart.id, product_id=product.id, quantity=data.quantity, unit_price=product.effective_price
            )
            db.add(line)
        else:
            line.quantity = wanted
    else:
        build = (
            db.query(models.Build)
            .filter(models.Build.id == data.build_id, models.Build.customer_id == customer.id)
            .first()
        )
        if build is None:
            raise NotFoundError("Build not found")
        if not build.products:
            raise StoreError("Build has no products")
        line = (
            db.query(models.CartItem)
            .filter(models.CartItem.cart_id == cart.id, models.CartItem.build_id == build.id)
            .first()
        )
        if line is None:
            line = models.CartItem(
                cart_id=cart.id, build_id=build.id, quantity=data.quantity, unit_price=build_unit_price(build)
            )
            db.add(line)
        else:
            line.quantity += data.quantity

    db.commit()
    db.refresh(line)
    return line


def _get_line(db: Session, customer: models.Customer, item_id: int) -> models.CartItem:
    line = (
        db.query(models.CartItem)
        .join(models.Cart)
        .filter(models.CartItem.id == item_id, models.Cart.customer_id == customer.id)
        .first()
    )
    if line is None:
        raise NotFoundError("Cart item not found")
    return line


def update_item(db: Session, customer: models.Customer, item_id: int, quantity) -> models.CartItem:
    if quantity is None or quantity < 1:
        raise StoreError("Quantity must be at least 1")
    line = _get_line(db, customer, item_id)
    line.quantity = quantity
    db.commit()
    db.refresh(line)
    return line


def remove_item(db: Session, customer: models.Customer, item_id: int) -> None:
    db.delete(_get_line(db, customer, item_id))
    db.commit()


def clear_cart(db: Session, customer: models.Customer) -> int:
    cart = get_or_create_cart(db, customer)
    removed = db.query(models.CartItem).filter(models.CartItem.cart_id == cart.id).delete(synchronize_session=False)
    db.commit()
    return removed
