"""User notifications, plus staff send/broadcast."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from storefront import models, schemas, security
from storefront.crud import notifications
from storefront.database import get_db

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=List[schemas.NotificationOut])
def list_notifications(
    seen_status: Optional[bool] = None,
    notification_type: Optional[str] = None,
    category: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    user: models.GeneralUser = Depends(security.get_current_user),
    db: Session = Depends(get_db),
):
    return notifications.list_notifications(db, user.id, seen_status, notification_type, category, limit)


@router.get("/unread-count")
def unread_count(user: models.GeneralUser = Depends(security.get_current_user), db: Session = Depends(get_db)):
    return {"unread_count": notifications.unread_count(db, user.id)}


@router.patch("/read-all")
def mark_all_read(user: models.GeneralUser = Depends(security.get_current_user), db: Session = Depends(get_db)):
    return {"message": "All notifications marked as read", "updated": notifications.mark_all_read(db, user.id)}


@router.patch("/{notification_id}/read", response_model=schemas.NotificationOut)
def mark_read(
    notification_id: int,
    user: models.GeneralUser = Depends(security.get_current_user),
    db: Session = Depends(get_db),
):
    return notifications.mark_read(db, user.id, notification_id)


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: int,
    user: models.GeneralUser = Depends(security.get_current_user),
    db: Session = Depends(get_db),
):
    notifications.delete_notification(db, user.id, notification_id)
    return {"message": "Notification deleted"}


# ============================================================================
# STAFF
# ============================================================================

@router.post("/admin/send", status_code=status.HTTP_201_CREATED)
def send_notifications(
    data: schemas.NotificationSend,
    admin: models.AdminUser = Depends(security.get_current_admin),
    db: Session = Depends(get_db),
):
    ids = notifications.send_to_users(db, data)
    return {"message": f"Notification sent to {len(ids)} users", "notification_ids": ids}


@router.post("/admin/broadcast", status_code=status.HTTP_201_CREATED)
def broadcast(
    data: schemas.NotificationBroadcast,
    admin: models.AdminUser = Depends(security.get_current_admin),
    db: Session = Depends(get_db),
):
    count = notifications.broadcast(db, data)
    return {"message": f"Broadcast sent to {count} users", "recipients": count}


@router.get("/admin/stats")
def notification_stats(admin: models.AdminUser = Depends(security.get_current_admin), db: Session = Depends(get_db)):
    return notifications.notification_stats(db)
