"""
Orders
======

Checkout turns the shopper's cart into an order in one transaction:

    validate cart -> resolve coupon -> insert order + items
    -> mark voucher used / record promotion usage -> empty cart
    -> "order_placed" notification -> COMMIT

Any refusal along the way rolls everything back.

Status lifecycle (staff driven):

    pending -> processing -> shipped -> delivered
         \\________________________________> cancelled

Stock is held from the moment an order leaves "pending" (processing,
shipped, delivered) and released if it is cancelled or sent back to
pending. Reaching "delivered" awards loyalty points, once per order.
"""

import logging
from collections import defaultdict
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from storefront import config, models, schemas
from storefront.crud import admin as admin_crud
from storefront.crud import loyalty, notifications, promotions, users
from storefront.errors import NotFoundError, StoreError
from storefront.models import utcnow
from storefront.telemetry import checkout_counter, orders_total, revenue_total, tracer

logger = logging.getLogger(__name__)

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")
STOCK_HELD_STATUSES = ("processing", "shipped", "delivered")


# ============================================================================
# SERIALIZATION
# ============================================================================

def serialize_item(item: models.OrderItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "product_id": item.product_id,
        "build_id": item.build_id,
        "item_type": "build" if item.build_id else "product",
        "quantity": item.quantity,
        "unit_price": item.unit_price,
        "total_price": item.total_price,
        "product_name": item.product.name if item.product else None,
        "image_url": item.product.image_url if item.product else None,
        "build_name": item.build.name if item.build else None,
    }


def serialize_order(order: models.Order, with_items: bool = False) -> Dict[str, Any]:
    address = order.shipping_address
    data = {
        "id": order.id,
        "customer_id": order.customer_id,
        "order_date": order.order_date,
        "status": order.status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "delivery_charge": order.delivery_charge,
        "discount_amount": order.discount_amount,
        "total_price": order.total_price,
        "notes": order.notes,
        "promo_code": order.promotion.code if order.promotion else None,
        "item_count": len(order.items),
        "shipping_address": {
            "id": address.id,
            "address": address.address,
            "city": address.city,
            "zip_code": address.zip_code,
            "country": address.country,
        }
        if address
        else None,
    }
    if with_items:
        data["items"] = [serialize_item(item) for item in order.items]
    return data


# ============================================================================
# CUSTOMER READS
# ============================================================================

def list_orders(db: Session, customer: models.Customer) -> List[models.Order]:
    return (
        db.query(models.Order)
        .options(selectinload(models.Order.items))
        .filter(models.Order.customer_id == customer.id)
        .order_by(models.Order.order_date.desc(), models.Order.id.desc())
        .all()
    )


def get_order(db: Session, customer: models.Customer, order_id: int) -> models.Order:
    order = (
        db.query(models.Order)
        .filter(models.Order.id == order_id, models.Order.customer_id == customer.id)
        .first()
    )
    if order is None:
        raise NotFoundError("Order not found")
    return order


# ============================================================================
# CHECKOUT
# ============================================================================

def _validate_cart(cart: Optional[models.Cart]) -> List[models.CartItem]:
    if cart is None:
        raise StoreError("No cart found")
    items = list(cart.items)
    if not items:
        raise StoreError("Cart is empty")
    for item in items:
        if item.product_id is None:
            continue
        product = item.product
        if not product.availability:
            raise StoreError(f"Product {product.name} is not available", product_id=product.id)
        if product.stock < item.quantity:
            raise StoreError(
                f"Insufficient stock for {product.name}",
                product_id=product.id,
                available=product.stock,
                requested=item.quantity,
            )
    return items


def place_order(
    db: Session,
    customer: models.Customer,
    shipping_address: models.ShippingAddress,
    payment_method: str,
    delivery_charge: float,
    coupon_code: Optional[str] = None,
    entry_point: str = "checkout",
) -> Dict[str, Any]:
    """
    Convert the customer's cart into an order.

    Returns:
        {"message", "order", "total_items", "discount_applied"}

    Raises:
        StoreError: empty cart, unavailable/out-of-stock product, bad coupon
    """
    with tracer.start_as_current_span("place_order") as span:
        span.set_attribute("order.customer_id", customer.id)
        span.set_attribute("order.entry_point", entry_point)
        try:
            with tracer.start_as_current_span("validate_cart"):
                cart = db.query(models.Cart).filter(models.Cart.customer_id == customer.id).first()
                items = _validate_cart(cart)
                subtotal = round(sum(item.unit_price * item.quantity for item in items), 2)
                span.set_attribute("order.item_count", len(items))
                span.set_attribute("order.subtotal", subtotal)

            applied = None
            if coupon_code:
                with tracer.start_as_current_span("apply_discount") as discount_span:
                    applied = promotions.resolve_coupon(db, customer, coupon_code, subtotal)
                    discount_span.set_attribute("discount.source", applied.source)
                    discount_span.set_attribute("discount.amount", applied.discount_amount)

            discount = applied.discount_amount if applied else 0.0
            if applied and applied.free_shipping:
                delivery_charge = 0.0
            total = round(subtotal - discount + delivery_charge, 2)

            with tracer.start_as_current_span("save_order"):
                order = models.Order(
                    customer_id=customer.id,
                    status="pending",
                    payment_status=False,
                    payment_method=payment_method,
                    delivery_charge=delivery_charge,
                    discount_amount=discount,
                    total_price=total,
                    shipping_address_id=shipping_address.id,
                    promo_id=applied.promotion.id if applied and applied.promotion else None,
                )
                db.add(order)
                db.flush()
                for item in items:
                    line = models.OrderItem(
                        product_id=item.product_id,
                        build_id=item.build_id,
                        quantity=item.quantity,
                        unit_price=item.unit_price,
                        total_price=round(item.unit_price * item.quantity, 2),
                    )
                    if item.build is not None:
                        line.components = [
                            models.OrderItemComponent(product_id=part.product_id, quantity=part.quantity)
                            for part in item.build.products
                        ]
                    order.items.append(line)

                if applied and applied.voucher is not None:
                    loyalty.mark_voucher_used(db, applied.voucher, order.id)
                elif applied and applied.promotion is not None:
                    db.add(
                        models.PromotionUsage(
                            promotion_id=applied.promotion.id,
                            user_id=customer.user_id,
                            order_id=order.id,
                            discount_amount=discount,
                            order_value=subtotal,
                        )
                    )

                cart.items.clear()

                coupon_note = f" Coupon {applied.code} saved you ${discount:.2f}." if applied else ""
                notifications.create_notification(
                    db,
                    customer.user_id,
                    f"Order #{order.id} placed successfully!{coupon_note} We'll notify you when it's on its way.",
                    notification_type="order_placed",
                    category="orders",
                    link="/account/orders",
                    data={
                        "order_id": order.id,
                        "coupon_used": applied.code if applied else None,
                        "discount_amount": discount,
                        "total_items": len(items),
                    },
                )
                db.commit()
                db.refresh(order)
        except (StoreError, SQLAlchemyError) as exc:
            db.rollback()
            span.record_exception(exc)
            span.set_attribute("error", True)
            orders_total.labels(status="failed").inc()
            logger.warning("Checkout failed for customer %s: %s", customer.id, exc)
            raise

        span.set_attribute("order.id", order.id)
        span.set_attribute("order.total_price", total)
        span.add_event("order_created", {"order_id": order.id, "total_price": total})

    orders_total.labels(status="placed").inc()
    revenue_total.inc(total)
    checkout_counter.add(1, {"entry_point": entry_point})
    logger.info("Order %s placed by customer %s (total=%.2f)", order.id, customer.id, total)
    return {
        "message": "Order created successfully",
        "order": serialize_order(order, with_items=True),
        "total_items": len(items),
        "discount_applied": discount,
    }


def checkout(db: Session, customer: models.Customer, data: schemas.CheckoutRequest) -> Dict[str, Any]:
    """Checkout with an inline shipping address and the standard delivery charge."""
    if not data.payment_method:
        raise StoreError("Payment method is required")
    if data.shipping_address is None:
        raise StoreError("Shipping address is required")
    address = users.find_or_add_address(db, customer, data.shipping_address)
    return place_order(
        db,
        customer,
        address,
        payment_method=data.payment_method,
        delivery_charge=config.DELIVERY_CHARGE,
        coupon_code=data.promo_code,
        entry_point="checkout",
    )


def order_from_cart(db: Session, customer: models.Customer, data: schemas.OrderFromCartRequest) -> Dict[str, Any]:
    """Cash-on-delivery checkout against a saved address, no delivery charge."""
    if data.shipping_address_id is None:
        raise StoreError("Shipping address is required")
    address = users.get_address(db, customer, data.shipping_address_id)
    if address is None:
        raise StoreError("Invalid shipping address")
    return place_order(
        db,
        customer,
        address,
        payment_method="cod",
        delivery_charge=0.0,
        coupon_code=data.coupon_code,
        entry_point="from_cart",
    )


# ============================================================================
# STATUS TRANSITIONS
# ============================================================================

def _stock_requirements(order: models.Order) -> Dict[int, int]:
    """Units per product an order consumes; build lines expand into the parts they were sold with."""
    needed: Dict[int, int] = defaultdict(int)
    for item in order.items:
        if item.product_id is not None:
            needed[item.product_id] += item.quantity
        else:
            for part in item.components:
                if part.product_id is not None:
                    needed[part.product_id] += item.quantity * part.quantity
    return needed


def _locked_attributes(db: Session, product_ids) -> Dict[int, models.ProductAttribute]:
    rows = (
        db.query(models.ProductAttribute)
        .filter(models.ProductAttribute.product_id.in_(list(product_ids)))
        .with_for_update()
        .all()
    )
    return {row.product_id: row for row in rows}


def _deduct_stock(db: Session, order: models.Order) -> None:
    needed = _stock_requirements(order)
    attributes = _locked_attributes(db, needed)
    for product_id, quantity in needed.items():
        attribute = attributes.get(product_id)
        available = attribute.stock if attribute else 0
        if available < quantity:
            product = db.get(models.Product, product_id)
            raise StoreError(
                f"Insufficient stock for {product.name if product else product_id}",
                product_id=product_id,
                available=available,
                requested=quantity,
            )
    for product_id, quantity in needed.items():
        attribute = attributes[product_id]
        before = attribute.stock
        attribute.stock -= quantity
        attribute.units_sold += quantity
        if before >= config.LOW_STOCK_THRESHOLD > attribute.stock:
            admin_crud.notify_admins(
                db,
                "INVENTORY_MANAGER",
                "low_stock",
                "Low stock alert",
                f"Product #{product_id} is down to {attribute.stock} units",
                related_id=product_id,
            )


def _restore_stock(db: Session, order: models.Order) -> None:
    needed = _stock_requirements(order)
    attributes = _locked_attributes(db, needed)
    for product_id, quantity in needed.items():
        attribute = attributes.get(product_id)
        if attribute is None:
            continue
        attribute.stock += quantity
        attribute.units_sold = max(0, attribute.units_sold - quantity)


def _already_awarded(db: Session, order: models.Order) -> bool:
    return (
        db.query(models.PointsTransaction.id)
        .filter(
            models.PointsTransaction.order_id == order.id,
            models.PointsTransaction.transaction_type == "earned",
        )
        .first()
        is not None
    )


def change_status(db: Session, order: models.Order, new_status: Optional[str], notify: bool = True) -> Dict[str, Any]:
    """
    Move ``order`` to ``new_status`` and apply the side effects.

    Stages everything on the session; the caller commits.

    Returns:
        {"old_status", "new_status", "points_awarded"}

    Raises:
        StoreError: invalid status, reopening a cancelled order, or not
            enough stock to fulfil the order
    """
    if new_status not in ORDER_STATUSES:
        raise StoreError(f"Invalid status. Must be one of: {', '.join(ORDER_STATUSES)}")
    old_status = order.status
    result = {"old_status": old_status, "new_status": new_status, "points_awarded": 0}
    if old_status == new_status:
        return result
    if old_status == "cancelled":
        raise StoreError("Cancelled orders cannot change status")

    with tracer.start_as_current_span("update_order_status") as span:
        span.set_attribute("order.id", order.id)
        span.set_attribute("order.old_status", old_status)
        span.set_attribute("order.new_status", new_status)

        held_before = old_status in STOCK_HELD_STATUSES
        held_after = new_status in STOCK_HELD_STATUSES
        if held_after and not held_before:
            with tracer.start_as_current_span("deduct_stock"):
                _deduct_stock(db, order)
        elif held_before and not held_after:
            with tracer.start_as_current_span("restore_stock"):
                _restore_stock(db, order)

        order.status = new_status
        if new_status == "delivered":
            order.payment_status = True
            if not _already_awarded(db, order):
                with tracer.start_as_current_span("award_points"):
                    result["points_awarded"] = loyalty.award_points_for_order(db, order)
        if notify:
            notifications.notify_order_status(db, order, old_status)
        db.flush()

    orders_total.labels(status=new_status).inc()
    return result


def cancel_own_order(db: Session, customer: models.Customer, order_id: int, status: Optional[str]) -> models.Order:
    """Shoppers may only cancel their own orders, and only while pending."""
    order = get_order(db, customer, order_id)
    if status != "cancelled":
        raise StoreError("Customers can only cancel orders")
    if order.status != "pending":
        raise StoreError("Only pending orders can be cancelled")
    change_status(db, order, "cancelled", notify=False)
    db.commit()
    db.refresh(order)
    return order


# ============================================================================
# STAFF ORDER MANAGEMENT
# ============================================================================

def admin_get_order(db: Session, order_id: int) -> models.Order:
    order = db.get(models.Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return order


def admin_serialize_order(order: models.Order, with_items: bool = False) -> Dict[str, Any]:
    data = serialize_order(order, with_items=with_items)
    user = order.customer.user
    data["customer"] = {"user_id": user.id, "username": user.username, "email": user.email, "name": user.full_name}
    return data


def admin_list_orders(
    db: Session,
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Dict[str, Any]:
    query = (
        db.query(models.Order)
        .join(models.Customer, models.Customer.id == models.Order.customer_id)
        .join(models.GeneralUser, models.GeneralUser.id == models.Customer.user_id)
    )
    if status and status != "all":
        query = query.filter(models.Order.status == status)
    if search:
        pattern = f"%{search}%"
        conditions = [models.GeneralUser.username.ilike(pattern), models.GeneralUser.email.ilike(pattern)]
        if search.isdigit():
            conditions.append(models.Order.id == int(search))
        query = query.filter(or_(*conditions))
    total = query.count()
    orders = (
        query.order_by(models.Order.order_date.desc(), models.Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "orders": [admin_serialize_order(o) for o in orders],
        "total": total,
        "page": page,
        "limit": limit,
    }


def admin_update_status(db: Session, order_id: int, status: Optional[str], admin: models.AdminUser) -> Dict[str, Any]:
    order = admin_get_order(db, order_id)
    try:
        result = change_status(db, order, status)
        admin_crud.log_admin_action(
            db, admin.admin_id, "UPDATE_ORDER_STATUS", "order", order.id,
            {"old_status": result["old_status"], "new_status": result["new_status"]},
        )
        db.commit()
    except (StoreError, SQLAlchemyError):
        db.rollback()
        raise
    db.refresh(order)
    logger.info("Order %s: %s -> %s by admin %s", order.id, result["old_status"], result["new_status"], admin.admin_id)
    return {"order": admin_serialize_order(order, with_items=True), **result}


def admin_bulk_status(db: Session, order_ids: List[int], status: Optional[str], admin: models.AdminUser) -> Dict[str, Any]:
    """All-or-nothing: one refused order leaves every order untouched."""
    if not order_ids:
        raise StoreError("order_ids must be a non-empty list")
    orders = db.query(models.Order).filter(models.Order.id.in_(order_ids)).all()
    missing = sorted(set(order_ids) - {o.id for o in orders})
    if missing:
        raise NotFoundError(f"Orders not found: {missing}")
    try:
        points = 0
        for order in orders:
            points += change_status(db, order, status)["points_awarded"]
        admin_crud.log_admin_action(
            db, admin.admin_id, "BULK_UPDATE_ORDER_STATUS", "order", None,
            {"order_ids": sorted(order_ids), "new_status": status},
        )
        db.commit()
    except (StoreError, SQLAlchemyError):
        db.rollback()
        raise
    return {"updated": len(orders), "status": status, "points_awarded": points}


def admin_set_notes(db: Session, order_id: int, notes: Optional[str], admin: models.AdminUser) -> models.Order:
    order = admin_get_order(db, order_id)
    order.notes = notes
    admin_crud.log_admin_action(db, admin.admin_id, "UPDATE_ORDER_NOTES", "order", order.id, None)
    db.commit()
    db.refresh(order)
    return order


def order_analytics(db: Session, days: int = 30) -> Dict[str, Any]:
    since = utcnow() - timedelta(days=days)
    billable = models.Order.status != "cancelled"

    total_orders, revenue, average = db.query(
        func.count(models.Order.id),
        func.coalesce(func.sum(models.Order.total_price), 0),
        func.coalesce(func.avg(models.Order.total_price), 0),
    ).filter(billable).one()
    by_status = dict(
        db.query(models.Order.status, func.count(models.Order.id)).group_by(models.Order.status).all()
    )

    day = func.date(models.Order.order_date)
    trends = (
        db.query(day.label("day"), func.count(models.Order.id), func.coalesce(func.sum(models.Order.total_price), 0))
        .filter(billable, models.Order.order_date >= since)
        .group_by(day)
        .order_by(day)
        .all()
    )

    top_products = (
        db.query(
            models.Product.id,
            models.Product.name,
            func.sum(models.OrderItem.quantity).label("units"),
            func.sum(models.OrderItem.total_price).label("revenue"),
        )
        .join(models.OrderItem, models.OrderItem.product_id == models.Product.id)
        .join(models.Order, models.Order.id == models.OrderItem.order_id)
        .filter(billable)
        .group_by(models.Product.id, models.Product.name)
        .order_by(func.sum(models.OrderItem.quantity).desc())
        .limit(10)
        .all()
    )

    return {
        "overview": {
            "total_orders": total_orders,
            "total_revenue": round(float(revenue), 2),
            "average_order_value": round(float(average), 2),
            "orders_by_status": by_status,
        },
        "trends": [
            {"date": str(d), "orders": count, "revenue": round(float(total), 2)} for d, count, total in trends
        ],
        "top_products": [
            {"product_id": pid, "name": name, "units_sold": int(units), "revenue": round(float(rev), 2)}
            for pid, name, units, rev in top_products
        ],
    }
