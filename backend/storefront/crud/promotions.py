"""
Discount codes: admin promotions and coupon resolution.

A code typed at checkout is resolved in this order:

1. a voucher owned by the shopper (active, unredeemed, unexpired), matched
   case-insensitively;
2. an admin promotion (active, inside its date window, under max_uses).

The discount is always computed here from the cart subtotal; amounts sent
by clients are never trusted.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront import models, schemas
from storefront.errors import NotFoundError, StoreError
from storefront.models import ensure_aware, utcnow

logger = logging.getLogger(__name__)

PROMOTION_TYPES = ("percentage", "fixed_amount", "free_shipping")


@dataclass
class AppliedDiscount:
    code: str
    discount_amount: float = 0.0
    free_shipping: bool = False
    voucher: Optional[models.Voucher] = None
    promotion: Optional[models.Promotion] = None

    @property
    def source(self) -> str:
        return "voucher" if self.voucher is not None else "promotion"


def _percentage(subtotal: float, percent: float) -> float:
    return round(subtotal * percent / 100.0, 2)


def find_customer_voucher(db: Session, customer: models.Customer, code: str) -> Optional[models.Voucher]:
    return (
        db.query(models.Voucher)
        .filter(
            func.upper(models.Voucher.code) == code.strip().upper(),
            models.Voucher.customer_id == customer.id,
            models.Voucher.status == "active",
            models.Voucher.is_redeemed.is_(False),
            models.Voucher.expires_at > utcnow(),
        )
        .first()
    )


def find_live_promotion(db: Session, code: str) -> Optional[models.Promotion]:
    now = utcnow()
    return (
        db.query(models.Promotion)
        .filter(
            func.upper(models.Promotion.code) == code.strip().upper(),
            models.Promotion.is_active.is_(True),
            (models.Promotion.start_date.is_(None)) | (models.Promotion.start_date <= now),
            (models.Promotion.end_date.is_(None)) | (models.Promotion.end_date >= now),
        )
        .first()
    )


def usage_count(db: Session, promotion_id: int) -> int:
    return (
        db.query(func.count(models.PromotionUsage.id))
        .filter(models.PromotionUsage.promotion_id == promotion_id)
        .scalar()
    )


def resolve_coupon(db: Session, customer: models.Customer, code: str, subtotal: float) -> AppliedDiscount:
    """
    Work out what ``code`` is worth against ``subtotal``.

    Raises:
        StoreError: unknown/expired code, usage limit reached, or subtotal
            below the code's minimum order value
    """
    voucher = find_customer_voucher(db, customer, code)
    if voucher is not None:
        if subtotal < (voucher.min_order_amount or 0):
            raise StoreError(f"Minimum order amount of ${voucher.min_order_amount:.2f} required for this voucher")
        if voucher.discount_type == "percentage":
            amount = _percentage(subtotal, voucher.value)
            if voucher.max_discount_amount is not None:
                amount = min(amount, voucher.max_discount_amount)
        else:
            amount = voucher.value
        return AppliedDiscount(code=voucher.code, discount_amount=round(min(amount, subtotal), 2), voucher=voucher)

    promotion = find_live_promotion(db, code)
    if promotion is None:
        raise StoreError("Invalid or expired coupon code")
    if promotion.max_uses is not None and usage_count(db, promotion.id) >= promotion.max_uses:
        raise StoreError("Promotion usage limit exceeded")
    if subtotal < (promotion.min_order_value or 0):
        raise StoreError(f"Minimum order value of ${promotion.min_order_value:.2f} required for this promotion")

    applied = AppliedDiscount(code=promotion.code, promotion=promotion)
    if promotion.type == "percentage":
        applied.discount_amount = _percentage(subtotal, promotion.discount_value)
    elif promotion.type == "fixed_amount":
        applied.discount_amount = promotion.discount_value
    elif promotion.type == "free_shipping":
        applied.free_shipping = True
    applied.discount_amount = round(min(applied.discount_amount, subtotal), 2)
    return applied


def preview_coupon(db: Session, customer: models.Customer, code: Optional[str], order_total: float) -> Dict[str, Any]:
    if not code:
        raise StoreError("code is required")
    applied = resolve_coupon(db, customer, code, order_total)
    return {
        "valid": True,
        "code": applied.code,
        "source": applied.source,
        "discount_amount": applied.discount_amount,
        "free_shipping": applied.free_shipping,
        "new_total": round(order_total - applied.discount_amount, 2),
    }


# ============================================================================
# ADMIN PROMOTION MANAGEMENT
# ============================================================================

def promotion_status(promotion: models.Promotion) -> str:
    end_date = ensure_aware(promotion.end_date)
    if end_date is not None and end_date < utcnow():
        return "Expired"
    if not promotion.is_active:
        return "Inactive"
    return "Active"


def serialize_promotion(promotion: models.Promotion, usage: int = 0, total_discount: float = 0) -> Dict[str, Any]:
    return {
        "id": promotion.id,
        "name": promotion.name,
        "code": promotion.code,
        "type": promotion.type,
        "discount_value": promotion.discount_value,
        "max_uses": promotion.max_uses,
        "min_order_value": promotion.min_order_value,
        "start_date": promotion.start_date,
        "end_date": promotion.end_date,
        "description": promotion.description,
        "is_active": promotion.is_active,
        "created_by": promotion.created_by,
        "created_at": promotion.created_at,
        "usage_count": int(usage or 0),
        "total_discount_given": round(float(total_discount or 0), 2),
        "status": promotion_status(promotion),
    }


def list_promotions(db: Session) -> List[Dict[str, Any]]:
    usage = (
        db.query(
            models.PromotionUsage.promotion_id.label("promotion_id"),
            func.count(models.PromotionUsage.id).label("usage_count"),
            func.sum(models.PromotionUsage.discount_amount).label("total_discount"),
        )
        .group_by(models.PromotionUsage.promotion_id)
        .subquery()
    )
    rows = (
        db.query(models.Promotion, usage.c.usage_count, usage.c.total_discount)
        .outerjoin(usage, usage.c.promotion_id == models.Promotion.id)
        .order_by(models.Promotion.created_at.desc(), models.Promotion.id.desc())
        .all()
    )
    return [serialize_promotion(*row) for row in rows]


def promotion_analytics(db: Session) -> Dict[str, Any]:
    now = utcnow()
    active = (
        db.query(func.count(models.Promotion.id))
        .filter(
            models.Promotion.is_active.is_(True),
            (models.Promotion.end_date.is_(None)) | (models.Promotion.end_date >= now),
        )
        .scalar()
    )
    coupons_used, total_discount, revenue = db.query(
        func.count(models.PromotionUsage.id),
        func.coalesce(func.sum(models.PromotionUsage.discount_amount), 0),
        func.coalesce(func.sum(models.PromotionUsage.order_value), 0),
    ).one()
    total_discount = float(total_discount)
    revenue = float(revenue)
    roi = round((revenue - total_discount) / total_discount * 100, 2) if total_discount > 0 else 0
    return {
        "active_promotions": active,
        "total_discount_given": round(total_discount, 2),
        "coupons_used": coupons_used,
        "revenue_with_promotions": round(revenue, 2),
        "roi_percent": roi,
    }


def _validate_promotion(name, code, promo_type, discount_value) -> None:
    if not name or not code or not promo_type:
        raise StoreError("name, code and type are required")
    if promo_type not in PROMOTION_TYPES:
        raise StoreError(f"type must be one of: {', '.join(PROMOTION_TYPES)}")
    if discount_value is not None and discount_value < 0:
        raise StoreError("discount_value cannot be negative")
    if promo_type == "percentage" and discount_value is not None and discount_value > 100:
        raise StoreError("Percentage discount cannot exceed 100")


def create_promotion(db: Session, data: schemas.PromotionIn, admin_id: Optional[int]) -> models.Promotion:
    _validate_promotion(data.name, data.code, data.type, data.discount_value)
    promotion = models.Promotion(**data.model_dump(), created_by=admin_id)
    db.add(promotion)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise StoreError("Promotion code already exists")
    db.refresh(promotion)
    logger.info("Promotion %s created by admin %s", promotion.code, admin_id)
    return promotion


def update_promotion(db: Session, promotion_id: int, data: schemas.PromotionUpdate) -> models.Promotion:
    promotion = db.get(models.Promotion, promotion_id)
    if promotion is None:
        raise NotFoundError("Promotion not found")
    update_data = data.model_dump(exclude_unset=True)
    merged = {
        "name": update_data.get("name", promotion.name),
        "code": update_data.get("code", promotion.code),
        "promo_type": update_data.get("type", promotion.type),
        "discount_value": update_data.get("discount_value", promotion.discount_value),
    }
    _validate_promotion(**merged)
    for field, value in update_data.items():
        setattr(promotion, field, value)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise StoreError("Promotion code already exists")
    db.refresh(promotion)
    return promotion


def delete_promotion(db: Session, promotion_id: int) -> None:
    promotion = db.get(models.Promotion, promotion_id)
    if promotion is None:
        raise NotFoundError("Promotion not found")
    db.delete(promotion)
    db.commit()


def generate_coupons(db: Session, data: schemas.CouponBatch, admin_id: Optional[int]) -> List[models.Promotion]:
    """Create ``count`` single promotions coded BASE001, BASE002, ..."""
    if not data.base_code:
        raise StoreError("base_code is required")
    if not 1 <= data.count <= 1000:
        raise StoreError("count must be between 1 and 1000")
    base = data.base_code.strip().upper()
    _validate_promotion(data.name or base, base, data.type, data.discount_value)
    coupons = []
    for n in range(1, data.count + 1):
        coupon = models.Promotion(
            name=f"{data.name or base} #{n}",
            code=f"{base}{n:03d}",
            type=data.type,
            discount_value=data.discount_value,
            max_uses=data.max_uses,
            min_order_value=data.min_order_value,
            start_date=data.start_date,
            end_date=data.end_date,
            description=data.description,
            created_by=admin_id,
        )
        db.add(coupon)
        coupons.append(coupon)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise StoreError("One or more generated codes already exist")
    for coupon in coupons:
        db.refresh(coupon)
    logger.info("Generated %d coupons with base %s", len(coupons), base)
    return coupons


def promotion_usage(db: Session, promotion_id: int) -> List[Dict[str, Any]]:
    if db.get(models.Promotion, promotion_id) is None:
        raise NotFoundError("Promotion not found")
    rows = (
        db.query(models.PromotionUsage, models.GeneralUser.username, models.GeneralUser.email)
        .join(models.GeneralUser, models.GeneralUser.id == models.PromotionUsage.user_id)
        .filter(models.PromotionUsage.promotion_id == promotion_id)
        .order_by(models.PromotionUsage.used_at.desc(), models.PromotionUsage.id.desc())
        .all()
    )
    return [
        {
            "id": usage.id,
            "user_id": usage.user_id,
            "username": username,
            "email": email,
            "order_id": usage.order_id,
            "discount_amount": usage.discount_amount,
            "order_value": usage.order_value,
            "used_at": usage.used_at,
        }
        for usage, username, email in rows
    ]
