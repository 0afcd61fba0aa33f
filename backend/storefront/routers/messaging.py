"""Support conversations (customer side) and the staff inbox."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from storefront import models, schemas, security
from storefront.crud import messaging
from storefront.database import get_db

router = APIRouter(prefix="/messaging", tags=["messaging"])


@router.get("/conversations")
def list_conversations(user: models.GeneralUser = Depends(security.get_current_user), db: Session = Depends(get_db)):
    return messaging.list_conversations(db, user)


@router.post("/conversations", status_code=status.HTTP_201_CREATED)
def start_conversation(
    data: schemas.ConversationCreate,
    user: models.GeneralUser = Depends(security.get_current_user),
    db: Session = Depends(get_db),
):
    conversation = messaging.start_conversation(db, user, data)
    return {"message": "Conversation started", "conversation": messaging.serialize_conversation(db, conversation)}


@router.get("/conversations/{conversation_id}/messages")
def read_messages(
    conversation_id: int,
    user: models.GeneralUser = Depends(security.get_current_user),
    db: Session = Depends(get_db),
):
    return [messaging.serialize_message(m) for m in messaging.read_messages(db, user, conversation_id)]


@router.post("/conversations/{conversation_id}/messages", status_code=status.HTTP_201_CREATED)
def send_message(
    conversation_id: int,
    data: schemas.MessageCreate,
    user: models.GeneralUser = Depends(security.get_current_user),
    db: Session = Depends(get_db),
):
    return messaging.serialize_message(messaging.send_message(db, user, conversation_id, data))


@router.post("/send", status_code=status.HTTP_201_CREATED)
def send_direct(
    data: schemas.DirectMessage,
    user: models.GeneralUser = Depends(security.get_current_user),
    db: Session = Depends(get_db),
):
    message = messaging.send_direct(db, user, data)
    return {"message": "Message sent successfully", "data": messaging.serialize_message(message)}


@router.get("/messages")
def direct_messages(user: models.GeneralUser = Depends(security.get_current_user), db: Session = Depends(get_db)):
    return [messaging.serialize_message(m) for m in messaging.direct_messages(db, user)]


@router.patch("/messages/{message_id}/read")
def mark_message_read(
    message_id: int,
    user: models.GeneralUser = Depends(security.get_current_user),
    db: Session = Depends(get_db),
):
    return messaging.serialize_message(messaging.mark_message_read(db, user, message_id))


# ============================================================================
# STAFF
# ============================================================================

@router.get("/admin/conversations")
def admin_list_conversations(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    conversation_type: Optional[str] = Query(None, alias="type"),
    admin: models.AdminUser = Depends(security.get_current_staff),
    db: Session = Depends(get_db),
):
    return messaging.admin_list_conversations(db, status, priority, conversation_type)


@router.get("/admin/conversations/{conversation_id}")
def admin_read_thread(
    conversation_id: int,
    admin: models.AdminUser = Depends(security.get_current_staff),
    db: Session = Depends(get_db),
):
    return messaging.admin_read_thread(db, conversation_id)


@router.post("/admin/conversations/{conversation_id}/messages", status_code=status.HTTP_201_CREATED)
def admin_reply(
    conversation_id: int,
    data: schemas.MessageCreate,
    admin: models.AdminUser = Depends(security.get_current_staff),
    db: Session = Depends(get_db),
):
    return messaging.serialize_message(messaging.admin_reply(db, admin, conversation_id, data))


@router.patch("/admin/conversations/{conversation_id}")
def admin_update_conversation(
    conversation_id: int,
    data: schemas.ConversationUpdate,
    admin: models.AdminUser = Depends(security.get_current_staff),
    db: Session = Depends(get_db),
):
    conversation = messaging.admin_update_conversation(db, conversation_id, data)
    return messaging.serialize_conversation(db, conversation)
