"""
Product ratings, gated on verified purchases.

A user may rate a product once per order line it arrived on, and only once
the order is delivered. A product reaches a customer two ways:

- direct:  order_item.product_id = product
- build:   order_item -> order_item_component.product_id = product
           (the parts the build had when it was ordered)

Both paths are combined with UNION ALL into one "purchases" subquery, which
drives the ratable-products list and the eligibility check alike.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import String, and_, func, literal, select, union_all
from sqlalchemy.orm import Session, selectinload

from storefront import models, schemas
from storefront.crud import admin as admin_crud
from storefront.errors import ForbiddenError, NotFoundError, StoreError

logger = logging.getLogger(__name__)


def _purchases(customer_id: int):
    """
    SQL generated (roughly):
        SELECT oi.id, o.id, oi.product_id, o.order_date, 'direct', NULL ...
          FROM order_item oi JOIN "order" o ON o.id = oi.order_id
         WHERE o.customer_id = :c AND o.status = 'delivered' AND oi.product_id IS NOT NULL
        UNION ALL
        SELECT oi.id, o.id, c.product_id, o.order_date, 'build', oi.build_id ...
          FROM order_item oi JOIN "order" o ... JOIN order_item_component c ON c.order_item_id = oi.id
         WHERE o.customer_id = :c AND o.status = 'delivered'
    """
    delivered = and_(models.Order.customer_id == customer_id, models.Order.status == "delivered")
    direct = (
        select(
            models.OrderItem.id.label("order_item_id"),
            models.Order.id.label("order_id"),
            models.OrderItem.product_id.label("product_id"),
            models.Order.order_date.label("order_date"),
            literal("direct", type_=String).label("item_type"),
            models.OrderItem.build_id.label("build_id"),
        )
        .select_from(models.OrderItem)
        .join(models.Order, models.Order.id == models.OrderItem.order_id)
        .where(delivered, models.OrderItem.product_id.isnot(None))
    )
    via_build = (
        select(
            models.OrderItem.id.label("order_item_id"),
            models.Order.id.label("order_id"),
            models.OrderItemComponent.product_id.label("product_id"),
            models.Order.order_date.label("order_date"),
            literal("build", type_=String).label("item_type"),
            models.OrderItem.build_id.label("build_id"),
        )
        .select_from(models.OrderItem)
        .join(models.Order, models.Order.id == models.OrderItem.order_id)
        .join(models.OrderItemComponent, models.OrderItemComponent.order_item_id == models.OrderItem.id)
        .where(delivered, models.OrderItemComponent.product_id.isnot(None))
    )
    return union_all(direct, via_build).subquery("purchases")


def ratable_products(db: Session, user: models.GeneralUser, customer: models.Customer) -> List[Dict[str, Any]]:
    purchases = _purchases(customer.id)
    rows = (
        db.query(
            purchases.c.order_item_id,
            purchases.c.order_id,
            purchases.c.product_id,
            purchases.c.order_date,
            purchases.c.item_type,
            purchases.c.build_id,
            models.Product.name,
            models.Product.image_url,
        )
        .join(models.Product, models.Product.id == purchases.c.product_id)
        .outerjoin(
            models.Rating,
            and_(
                models.Rating.user_id == user.id,
                models.Rating.product_id == purchases.c.product_id,
                models.Rating.order_item_id == purchases.c.order_item_id,
            ),
        )
        .filter(models.Rating.id.is_(None))
        .order_by(purchases.c.order_date.desc(), purchases.c.order_item_id.desc())
        .all()
    )
    return [
        {
            "order_item_id": order_item_id,
            "order_id": order_id,
            "product_id": product_id,
            "order_date": order_date,
            "item_type": item_type,
            "build_id": build_id,
            "product_name": name,
            "image_url": image_url,
        }
        for order_item_id, order_id, product_id, order_date, item_type, build_id, name, image_url in rows
    ]


def is_eligible(db: Session, customer: models.Customer, product_id: int, order_item_id: int, order_id: int) -> bool:
    purchases = _purchases(customer.id)
    row = (
        db.query(purchases.c.order_item_id)
        .filter(
            purchases.c.product_id == product_id,
            purchases.c.order_item_id == order_item_id,
            purchases.c.order_id == order_id,
        )
        .first()
    )
    return row is not None


def _check_rating_value(value) -> int:
    if value is None or float(value) != int(value) or not 0 <= value <= 10:
        raise StoreError("Rating must be an integer between 0 and 10")
    return int(value)


def serialize_rating(rating: models.Rating) -> Dict[str, Any]:
    return {
        "id": rating.id,
        "user_id": rating.user_id,
        "username": rating.user.username if rating.user else None,
        "product_id": rating.product_id,
        "product_name": rating.product.name if rating.product else None,
        "order_id": rating.order_id,
        "order_item_id": rating.order_item_id,
        "rating": rating.rating,
        "review_text": rating.review_text,
        "created_at": rating.created_at,
        "updated_at": rating.updated_at,
    }


def submit_rating(
    db: Session, user: models.GeneralUser, customer: models.Customer, data: schemas.RatingSubmit
) -> models.Rating:
    """
    Raises:
        StoreError: missing fields, rating outside 0-10 or fractional,
            already rated
        ForbiddenError: no delivered purchase matches the product/order line
    """
    if data.product_id is None or data.order_item_id is None or data.order_id is None or data.rating is None:
        raise StoreError("product_id, order_item_id, order_id and rating are required")
    value = _check_rating_value(data.rating)

    existing = (
        db.query(models.Rating.id)
        .filter(
            models.Rating.user_id == user.id,
            models.Rating.product_id == data.product_id,
            models.Rating.order_item_id == data.order_item_id,
        )
        .first()
    )
    if existing is not None:
        raise StoreError("You have already rated this product for this order")
    if not is_eligible(db, customer, data.product_id, data.order_item_id, data.order_id):
        logger.warning("User %s tried to rate product %s without a delivered purchase", user.id, data.product_id)
        raise ForbiddenError("You can only rate products from your delivered orders")

    rating = models.Rating(
        user_id=user.id,
        product_id=data.product_id,
        order_id=data.order_id,
        order_item_id=data.order_item_id,
        rating=value,
        review_text=data.review_text,
    )
    db.add(rating)
    db.commit()
    db.refresh(rating)
    return rating


def _owned_rating(db: Session, user: models.GeneralUser, rating_id: int) -> models.Rating:
    rating = (
        db.query(models.Rating)
        .filter(models.Rating.id == rating_id, models.Rating.user_id == user.id)
        .first()
    )
    if rating is None:
        raise NotFoundError("Rating not found")
    return rating


def update_rating(db: Session, user: models.GeneralUser, rating_id: int, data: schemas.RatingUpdate) -> models.Rating:
    rating = _owned_rating(db, user, rating_id)
    if data.rating is None and data.review_text is None:
        raise StoreError("Nothing to update")
    if data.rating is not None:
        rating.rating = _check_rating_value(data.rating)
    if data.review_text is not None:
        rating.review_text = data.review_text
    db.commit()
    db.refresh(rating)
    return rating


def delete_rating(db: Session, user: models.GeneralUser, rating_id: int) -> None:
    db.delete(_owned_rating(db, user, rating_id))
    db.commit()


def my_ratings(db: Session, user: models.GeneralUser) -> List[models.Rating]:
    return (
        db.query(models.Rating)
        .filter(models.Rating.user_id == user.id)
        .order_by(models.Rating.created_at.desc(), models.Rating.id.desc())
        .all()
    )


def product_ratings(db: Session, product_id: int, limit: Optional[int] = None) -> Dict[str, Any]:
    if db.get(models.Product, product_id) is None:
        raise NotFoundError("Product not found")
    average, total = (
        db.query(func.avg(models.Rating.rating), func.count(models.Rating.id))
        .filter(models.Rating.product_id == product_id)
        .one()
    )
    query = (
        db.query(models.Rating)
        .filter(models.Rating.product_id == product_id)
        .order_by(models.Rating.created_at.desc(), models.Rating.id.desc())
    )
    if limit:
        query = query.limit(limit)
    return {
        "product_id": product_id,
        "average_rating": round(float(average), 1) if average is not None else 0,
        "total_ratings": total,
        "ratings": [serialize_rating(r) for r in query.all()],
    }


# ============================================================================
# STAFF MODERATION
# ============================================================================

def list_reviews(
    db: Session,
    product_id: Optional[int] = None,
    max_rating: Optional[int] = None,
    with_text_only: bool = False,
) -> List[Dict[str, Any]]:
    """All ratings for the back office, newest first."""
    query = db.query(models.Rating).options(selectinload(models.Rating.user), selectinload(models.Rating.product))
    if product_id is not None:
        query = query.filter(models.Rating.product_id == product_id)
    if max_rating is not None:
        query = query.filter(models.Rating.rating <= max_rating)
    if with_text_only:
        query = query.filter(models.Rating.review_text.isnot(None), models.Rating.review_text != "")
    reviews = []
    for rating in query.order_by(models.Rating.created_at.desc(), models.Rating.id.desc()).all():
        row = serialize_rating(rating)
        row["full_name"] = rating.user.full_name if rating.user else None
        reviews.append(row)
    return reviews


def remove_review(db: Session, rating_id: int, moderator: models.AdminUser) -> None:
    rating = db.get(models.Rating, rating_id)
    if rating is None:
        raise NotFoundError("Review not found")
    admin_crud.log_admin_action(
        db,
        moderator.admin_id,
        "DELETE_REVIEW",
        "rating",
        rating.id,
        {"product_id": rating.product_id, "user_id": rating.user_id, "rating": rating.rating},
    )
    db.delete(rating)
    db.commit()
    logger.info("Admin %s removed rating %s", moderator.admin_id, rating_id)
