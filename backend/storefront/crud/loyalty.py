"""
Loyalty Program
===============

Points and vouchers.

Earning:
    A customer earns floor(order.total_price) points when an order is
    delivered. The award is staged inside the status update's transaction:
    if anything fails, the status change rolls back with it.

Spending:
    Points convert to vouchers in whole multiples of POINTS_PER_VOUCHER.
    Each block becomes one fixed-amount voucher worth VOUCHER_VALUE that
    expires after VOUCHER_EXPIRY_DAYS.

Ledger:
    Every change to customer_points is mirrored by a points_transaction row
    (earned | redeemed | bonus).
"""

import logging
import math
import secrets
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from storefront import config, models
from storefront.crud import notifications
from storefront.errors import StoreError
from storefront.models import ensure_aware, utcnow
from storefront.telemetry import points_awarded_total, vouchers_issued_total

logger = logging.getLogger(__name__)


# ============================================================================
# POINTS
# ============================================================================

def get_points(db: Session, customer_id: int, for_update: bool = False) -> Optional[models.CustomerPoints]:
    query = db.query(models.CustomerPoints).filter(models.CustomerPoints.customer_id == customer_id)
    if for_update:
        query = query.with_for_update()
    return query.first()


def points_summary(db: Session, customer: models.Customer) -> Dict[str, Any]:
    row = get_points(db, customer.id)
    return {
        "points_balance": row.points_balance if row else 0,
        "total_earned": row.total_earned if row else 0,
        "total_redeemed": row.total_redeemed if row else 0,
        "points_per_voucher": config.POINTS_PER_VOUCHER,
        "voucher_value": config.VOUCHER_VALUE,
    }


def points_history(db: Session, customer: models.Customer, limit: int = 50) -> List[models.PointsTransaction]:
    return (
        db.query(models.PointsTransaction)
        .filter(models.PointsTransaction.customer_id == customer.id)
        .order_by(models.PointsTransaction.created_at.desc(), models.PointsTransaction.id.desc())
        .limit(limit)
        .all()
    )


def credit_points(db: Session, customer_id: int, points: int) -> models.CustomerPoints:
    """Upsert the customer's points row and add ``points`` to it."""
    row = get_points(db, customer_id, for_update=True)
    if row is None:
        row = models.CustomerPoints(customer_id=customer_id, points_balance=0, total_earned=0, total_redeemed=0)
        db.add(row)
    row.points_balance += points
    row.total_earned += points
    db.flush()
    return row


def award_points_for_order(db: Session, order: models.Order) -> int:
    """
    Award floor(total_price) points for a delivered order.

    Stages the points row, the ledger entry and a notification; the caller
    commits. Returns the number of points awarded (0 when the order total
    rounds down to nothing).
    """
    points = int(math.floor(order.total_price or 0))
    if points <= 0:
        return 0

    credit_points(db, order.customer_id, points)
    db.add(
        models.PointsTransaction(
            customer_id=order.customer_id,
            transaction_type="earned",
            points=points,
            order_id=order.id,
            description=f"Points earned from order #{order.id} - ${order.total_price:.2f}",
        )
    )
    notifications.create_notification(
        db,
        order.customer.user_id,
        f"You earned {points} points from your recent order! Use them to get discount vouchers.",
        notification_type="points_earned",
        category="rewards",
        link="/account/vouchers",
        data={
            "points_earned": points,
            "order_id": order.id,
            "total_amount": order.total_price,
            "points_rate": "1 point per $1 spent",
        },
    )
    points_awarded_total.inc(points)
    logger.info("Awarded %d points to customer %s for order %s", points, order.customer_id, order.id)
    return points


# ============================================================================
# VOUCHERS
# ============================================================================

def voucher_status(voucher: models.Voucher) -> str:
    if voucher.is_redeemed or voucher.status == "used":
        return "used"
    expires_at = ensure_aware(voucher.expires_at)
    if voucher.status == "expired" or (expires_at is not None and expires_at <= utcnow()):
        return "expired"
    return "active"


def serialize_voucher(voucher: models.Voucher) -> Dict[str, Any]:
    return {
        "id": voucher.id,
        "code": voucher.code,
        "type": voucher.type,
        "value": voucher.value,
        "discount_type": voucher.discount_type,
        "min_order_amount": voucher.min_order_amount,
        "max_discount_amount": voucher.max_discount_amount,
        "is_redeemed": voucher.is_redeemed,
        "redeemed_at": voucher.redeemed_at,
        "order_id": voucher.order_id,
        "points_used": voucher.points_used,
        "expires_at": voucher.expires_at,
        "created_at": voucher.created_at,
        "status": voucher_status(voucher),
    }


def list_vouchers(db: Session, customer: models.Customer) -> List[models.Voucher]:
    return (
        db.query(models.Voucher)
        .filter(models.Voucher.customer_id == customer.id)
        .order_by(models.Voucher.created_at.desc(), models.Voucher.id.desc())
        .all()
    )


def _new_voucher_code(db: Session) -> str:
    while True:
        code = f"LB-{secrets.token_hex(4).upper()}"
        if db.query(models.Voucher.id).filter(models.Voucher.code == code).first() is None:
            return code


def redeem_points(db: Session, customer: models.Customer, points) -> List[models.Voucher]:
    """
    Convert ``points`` into vouchers.

    Raises:
        StoreError: points missing, not a positive multiple of
            POINTS_PER_VOUCHER, or more than the current balance
    """
    block = config.POINTS_PER_VOUCHER
    if points is None or points <= 0 or points % block != 0:
        raise StoreError(f"Points must be a positive multiple of {block}")

    row = get_points(db, customer.id, for_update=True)
    balance = row.points_balance if row else 0
    if points > balance:
        raise StoreError("Insufficient points", available=balance, requested=points)

    expires_at = utcnow() + timedelta(days=config.VOUCHER_EXPIRY_DAYS)
    vouchers = []
    for _ in range(points // block):
        voucher = models.Voucher(
            customer_id=customer.id,
            code=_new_voucher_code(db),
            value=config.VOUCHER_VALUE,
            discount_type="fixed_amount",
            points_used=block,
            expires_at=expires_at,
        )
        db.add(voucher)
        db.flush()
        db.add(
            models.PointsTransaction(
                customer_id=customer.id,
                transaction_type="redeemed",
                points=-block,
                voucher_id=voucher.id,
                description=f"Redeemed {block} points for voucher {voucher.code}",
            )
        )
        vouchers.append(voucher)

    row.points_balance -= points
    row.total_redeemed += points
    notifications.create_notification(
        db,
        customer.user_id,
        f"{len(vouchers)} voucher(s) worth ${config.VOUCHER_VALUE:.2f} each are ready to use.",
        notification_type="voucher_generated",
        category="rewards",
        link="/account/vouchers",
        data={"voucher_codes": [v.code for v in vouchers], "points_used": points},
    )
    db.commit()
    for voucher in vouchers:
        db.refresh(voucher)
    vouchers_issued_total.inc(len(vouchers))
    logger.info("Customer %s redeemed %d points for %d vouchers", customer.id, points, len(vouchers))
    return vouchers


def mark_voucher_used(db: Session, voucher: models.Voucher, order_id: int) -> None:
    voucher.is_redeemed = True
    voucher.redeemed_at = utcnow()
    voucher.status = "used"
    voucher.order_id = order_id


def account_vouchers(db: Session, customer: models.Customer) -> Dict[str, Any]:
    summary = points_summary(db, customer)
    return {
        "vouchers": [serialize_voucher(v) for v in list_vouchers(db, customer)],
        "points": summary["points_balance"],
        "points_summary": summary,
    }


# ============================================================================
# BATCH JOBS
# ============================================================================

def expire_vouchers(db: Session) -> int:
    expired = (
        db.query(models.Voucher)
        .filter(
            models.Voucher.status == "active",
            models.Voucher.is_redeemed.is_(False),
            models.Voucher.expires_at <= utcnow(),
        )
        .update({models.Voucher.status: "expired"}, synchronize_session=False)
    )
    db.commit()
    return expired


def notify_vouchers_available(db: Session) -> int:
    """Remind customers holding usable vouchers, at most once per reminder window."""
    now = utcnow()
    recently_notified = select(models.Notification.user_id).where(
        models.Notification.notification_type == "vouchers_available",
        models.Notification.created_at > now - timedelta(days=config.VOUCHER_REMINDER_DAYS),
    )
    rows = (
        db.query(models.Customer.user_id, models.GeneralUser.username, func.count(models.Voucher.id))
        .join(models.Voucher, models.Voucher.customer_id == models.Customer.id)
        .join(models.GeneralUser, models.GeneralUser.id == models.Customer.user_id)
        .filter(
            models.Voucher.status == "active",
            models.Voucher.is_redeemed.is_(False),
            models.Voucher.expires_at > now,
            models.Customer.user_id.notin_(recently_notified),
        )
        .group_by(models.Customer.user_id, models.GeneralUser.username)
        .all()
    )
    for user_id, username, voucher_count in rows:
        notifications.create_notification(
            db,
            user_id,
            f"You have {voucher_count} active voucher(s) available! Use them in your cart before they expire.",
            notification_type="vouchers_available",
            category="rewards",
            link="/account/vouchers",
            data={"voucher_count": voucher_count, "username": username},
        )
    db.commit()
    logger.info("Sent voucher reminders to %d customers", len(rows))
    return len(rows)
