"""Customer orders and checkout."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from storefront import models, schemas, security
from storefront.crud import orders
from storefront.database import get_db

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("")
def list_orders(customer: models.Customer = Depends(security.get_current_customer), db: Session = Depends(get_db)):
    return [orders.serialize_order(o) for o in orders.list_orders(db, customer)]


@router.post("/checkout", status_code=status.HTTP_201_CREATED)
def checkout(
    data: schemas.CheckoutRequest,
    customer: models.Customer = Depends(security.get_current_customer),
    db: Session = Depends(get_db),
):
    return orders.checkout(db, customer, data)


@router.post("/from-cart", status_code=status.HTTP_201_CREATED)
def order_from_cart(
    data: schemas.OrderFromCartRequest,
    customer: models.Customer = Depends(security.get_current_customer),
    db: Session = Depends(get_db),
):
    return orders.order_from_cart(db, customer, data)


@router.get("/{order_id}")
def get_order(
    order_id: int,
    customer: models.Customer = Depends(security.get_current_customer),
    db: Session = Depends(get_db),
):
    return orders.serialize_order(orders.get_order(db, customer, order_id), with_items=True)


@router.put("/{order_id}/status")
def cancel_order(
    order_id: int,
    data: schemas.OrderStatusUpdate,
    customer: models.Customer = Depends(security.get_current_customer),
    db: Session = Depends(get_db),
):
    order = orders.cancel_own_order(db, customer, order_id, data.status)
    return {"message": "Order cancelled", "order": orders.serialize_order(order)}
