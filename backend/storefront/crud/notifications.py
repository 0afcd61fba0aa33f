"""
User notifications.

``create_notification`` only stages the row: the caller's transaction (an
order placement, a status change, a Q&A answer) decides when it commits, so
a notification never outlives a rolled-back operation.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

from storefront import models, schemas
from storefront.errors import NotFoundError, StoreError
from storefront.models import utcnow

PRIORITY_RANK = {"urgent": 1, "high": 2, "normal": 3, "low": 4}
VALID_PRIORITIES = tuple(PRIORITY_RANK)


def create_notification(
    db: Session,
    user_id: int,
    text: str,
    notification_type: str = "general",
    category: str = "general",
    priority: str = "normal",
    link: Optional[str] = None,
    action_url: Optional[str] = None,
    data: Optional[Dict[str, Any]] = None,
    expires_at=None,
) -> models.Notification:
    notification = models.Notification(
        user_id=user_id,
        notification_text=text,
        notification_type=notification_type,
        category=category,
        priority=priority,
        link=link,
        action_url=action_url,
        data=data or {},
        expires_at=expires_at,
    )
    db.add(notification)
    db.flush()
    return notification


def _visible(user_id: int):
    return (
        models.Notification.user_id == user_id,
        or_(models.Notification.expires_at.is_(None), models.Notification.expires_at > utcnow()),
    )


def list_notifications(
    db: Session,
    user_id: int,
    seen_status: Optional[bool] = None,
    notification_type: Optional[str] = None,
    category: Optional[str] = None,
    limit: int = 50,
) -> List[models.Notification]:
    """Unexpired notifications, most urgent first, then newest first."""
    query = db.query(models.Notification).filter(*_visible(user_id))
    if seen_status is not None:
        query = query.filter(models.Notification.seen_status == seen_status)
    if notification_type:
        query = query.filter(models.Notification.notification_type == notification_type)
    if category:
        query = query.filter(models.Notification.category == category)
    rank = case(PRIORITY_RANK, value=models.Notification.priority, else_=5)
    return (
        query.order_by(rank, models.Notification.created_at.desc(), models.Notification.id.desc())
        .limit(limit)
        .all()
    )


def unread_count(db: Session, user_id: int) -> int:
    return (
        db.query(func.count(models.Notification.id))
        .filter(*_visible(user_id), models.Notification.seen_status.is_(False))
        .scalar()
    )


def _get_owned(db: Session, user_id: int, notification_id: int) -> models.Notification:
    notification = (
        db.query(models.Notification)
        .filter(models.Notification.id == notification_id, models.Notification.user_id == user_id)
        .first()
    )
    if notification is None:
        raise NotFoundError("Notification not found")
    return notification


def mark_read(db: Session, user_id: int, notification_id: int) -> models.Notification:
    notification = _get_owned(db, user_id, notification_id)
    notification.seen_status = True
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: int) -> int:
    updated = (
        db.query(models.Notification)
        .filter(models.Notification.user_id == user_id, models.Notification.seen_status.is_(False))
        .update({models.Notification.seen_status: True}, synchronize_session=False)
    )
    db.commit()
    return updated


def delete_notification(db: Session, user_id: int, notification_id: int) -> None:
    db.delete(_get_owned(db, user_id, notification_id))
    db.commit()


# ============================================================================
# STAFF-ISSUED NOTIFICATIONS
# ============================================================================

def _check_payload(text: Optional[str], priority: str) -> None:
    if not text:
        raise StoreError("notification_text is required")
    if priority not in VALID_PRIORITIES:
        raise StoreError(f"priority must be one of: {', '.join(VALID_PRIORITIES)}")


def send_to_users(db: Session, data: schemas.NotificationSend) -> List[int]:
    if not data.user_ids:
        raise StoreError("user_ids must be a non-empty list")
    _check_payload(data.notification_text, data.priority)
    known = {
        row.id
        for row in db.query(models.GeneralUser.id).filter(models.GeneralUser.id.in_(data.user_ids))
    }
    unknown = sorted(set(data.user_ids) - known)
    if unknown:
        raise NotFoundError(f"Unknown user ids: {unknown}")
    ids = [
        create_notification(
            db,
            user_id,
            data.notification_text,
            notification_type=data.notification_type,
            category=data.category,
            priority=data.priority,
            link=data.link,
            action_url=data.action_url,
            data=data.data,
            expires_at=data.expires_at,
        ).id
        for user_id in data.user_ids
    ]
    db.commit()
    return ids


def broadcast(db: Session, data: schemas.NotificationBroadcast) -> int:
    """Notify every user that has a customer profile."""
    _check_payload(data.notification_text, data.priority)
    user_ids = [row.user_id for row in db.query(models.Customer.user_id)]
    for user_id in user_ids:
        create_notification(
            db,
            user_id,
            data.notification_text,
            notification_type=data.notification_type,
            category=data.category,
            priority=data.priority,
            link=data.link,
            action_url=data.action_url,
            data=data.data,
            expires_at=data.expires_at,
        )
    db.commit()
    return len(user_ids)


def notification_stats(db: Session) -> Dict[str, Any]:
    total, unread = db.query(
        func.count(models.Notification.id),
        func.coalesce(func.sum(case((models.Notification.seen_status.is_(False), 1), else_=0)), 0),
    ).one()
    by_type = (
        db.query(models.Notification.notification_type, func.count(models.Notification.id))
        .group_by(models.Notification.notification_type)
        .order_by(func.count(models.Notification.id).desc())
        .all()
    )
    by_priority = (
        db.query(models.Notification.priority, func.count(models.Notification.id))
        .group_by(models.Notification.priority)
        .all()
    )
    return {
        "total": total,
        "unread": int(unread),
        "by_type": [{"notification_type": t, "count": c} for t, c in by_type],
        "by_priority": {p: c for p, c in by_priority},
    }


# ============================================================================
# SYSTEM NOTIFICATIONS
# ============================================================================

ORDER_STATUS_MESSAGES = {
    "processing": "is being processed",
    "shipped": "has been shipped",
    "delivered": "has been delivered",
    "cancelled": "has been cancelled",
    "pending": "is pending",
}


def notify_order_status(db: Session, order: models.Order, old_status: str) -> models.Notification:
    phrase = ORDER_STATUS_MESSAGES.get(order.status, f"is now {order.status}")
    return create_notification(
        db,
        order.customer.user_id,
        f"Your order #{order.id} {phrase}.",
        notification_type="order_status_update",
        category="orders",
        priority="high" if order.status in ("delivered", "cancelled") else "normal",
        link="/account/orders",
        data={"order_id": order.id, "old_status": old_status, "new_status": order.status},
    )


def notify_qa_answered(db: Session, question: models.ProductQuestion, answer: models.QAAnswer) -> models.Notification:
    return create_notification(
        db,
        question.customer.user_id,
        f"Your question about {question.product.name} has been answered.",
        notification_type="qa_answered",
        category="support",
        link=f"/product/{question.product_id}",
        data={"question_id": question.id, "answer_id": answer.id, "product_id": question.product_id},
    )
