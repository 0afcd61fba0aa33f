"""The signed-in customer's cart."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from storefront import models, schemas, security
from storefront.crud import carts
from storefront.database import get_db

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("")
def get_cart(customer: models.Customer = Depends(security.get_current_customer), db: Session = Depends(get_db)):
    return carts.serialize_cart(carts.get_or_create_cart(db, customer))


@router.post("/add", status_code=status.HTTP_201_CREATED)
def add_to_cart(
    data: schemas.CartAdd,
    customer: models.Customer = Depends(security.get_current_customer),
    db: Session = Depends(get_db),
):
    line = carts.add_item(db, customer, data)
    return {
        "message": "Item added to cart",
        "item": {
            "id": line.id,
            "product_id": line.product_id,
            "build_id": line.build_id,
            "quantity": line.quantity,
            "unit_price": line.unit_price,
        },
    }


@router.put("/item/{item_id}")
def update_cart_item(
    item_id: int,
    data: schemas.CartItemUpdate,
    customer: models.Customer = Depends(security.get_current_customer),
    db: Session = Depends(get_db),
):
    line = carts.update_item(db, customer, item_id, data.quantity)
    return {"message": "Cart item updated", "item": {"id": line.id, "quantity": line.quantity}}


@router.delete("/item/{item_id}")
def remove_cart_item(
    item_id: int,
    customer: models.Customer = Depends(security.get_current_customer),
    db: Session = Depends(get_db),
):
    carts.remove_item(db, customer, item_id)
    return {"message": "Item removed from cart"}


@router.delete("/clear")
def clear_cart(customer: models.Customer = Depends(security.get_current_customer), db: Session = Depends(get_db)):
    removed = carts.clear_cart(db, customer)
    return {"message": "Cart cleared", "removed": removed}
