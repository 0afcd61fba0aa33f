"""
Customer support messaging.

Conversations are threads between a customer and staff. Each participant
row remembers ``last_read_at``; a participant's unread count is the number
of messages from anyone else sent after that moment.

Staff replies are stored with ``sender_admin_id`` and no ``sender_id``.

Direct messages (``conversation_id IS NULL``) are the older inbox: a
customer writes to a support admin picked at random.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from storefront import models, schemas
from storefront.errors import ForbiddenError, NotFoundError, StoreError
from storefront.models import utcnow

logger = logging.getLogger(__name__)

STAFF_SETTABLE_STATUSES = ("active", "resolved", "closed")
PRIORITIES = ("low", "normal", "high", "urgent")


def serialize_message(message: models.Message) -> Dict[str, Any]:
    if message.sender_admin_id is not None:
        sender_type = "admin"
        sender_name = message.sender_admin.name if message.sender_admin else None
    else:
        sender_type = "customer"
        sender_name = message.sender.username if message.sender else None
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "sender_id": message.sender_id,
        "sender_admin_id": message.sender_admin_id,
        "receiver_id": message.receiver_id,
        "sender_type": sender_type,
        "sender_name": sender_name,
        "subject": message.subject,
        "message_text": message.message_text,
        "message_type": message.message_type,
        "seen_status": message.seen_status,
        "sent_at": message.sent_at,
    }


def _last_message(db: Session, conversation_id: int) -> Optional[models.Message]:
    return (
        db.query(models.Message)
        .filter(models.Message.conversation_id == conversation_id)
        .order_by(models.Message.sent_at.desc(), models.Message.id.desc())
        .first()
    )


def _unread_count(db: Session, participant: models.ConversationParticipant) -> int:
    query = db.query(func.count(models.Message.id)).filter(
        models.Message.conversation_id == participant.conversation_id,
        or_(models.Message.sender_id.is_(None), models.Message.sender_id != participant.user_id),
    )
    if participant.last_read_at is not None:
        query = query.filter(models.Message.sent_at > participant.last_read_at)
    return query.scalar()


def serialize_conversation(
    db: Session,
    conversation: models.Conversation,
    participant: Optional[models.ConversationParticipant] = None,
) -> Dict[str, Any]:
    last = _last_message(db, conversation.id)
    data = {
        "id": conversation.id,
        "title": conversation.title,
        "status": conversation.status,
        "priority": conversation.priority,
        "type": conversation.type,
        "created_by": conversation.created_by,
        "customer_name": conversation.creator.username if conversation.creator else None,
        "assigned_to": conversation.assigned_to,
        "created_at": conversation.created_at,
        "last_message_at": conversation.last_message_at,
        "last_message": last.message_text if last else None,
        "last_message_sender": serialize_message(last)["sender_type"] if last else None,
    }
    if participant is not None:
        data["unread_count"] = _unread_count(db, participant)
    return data


# ============================================================================
# CUSTOMER SIDE
# ============================================================================

def _get_conversation(db: Session, conversation_id: int) -> models.Conversation:
    conversation = db.get(models.Conversation, conversation_id)
    if conversation is None:
        raise NotFoundError("Conversation not found")
    return conversation


def _participant(
    db: Session, conversation: models.Conversation, user: models.GeneralUser
) -> models.ConversationParticipant:
    participant = (
        db.query(models.ConversationParticipant)
        .filter(
            models.ConversationParticipant.conversation_id == conversation.id,
            models.ConversationParticipant.user_id == user.id,
        )
        .first()
    )
    if participant is None:
        raise ForbiddenError("You are not a participant in this conversation")
    return participant


def list_conversations(db: Session, user: models.GeneralUser) -> List[Dict[str, Any]]:
    rows = (
        db.query(models.Conversation, models.ConversationParticipant)
        .join(
            models.ConversationParticipant,
            models.ConversationParticipant.conversation_id == models.Conversation.id,
        )
        .filter(models.ConversationParticipant.user_id == user.id)
        .order_by(models.Conversation.last_message_at.desc(), models.Conversation.id.desc())
        .all()
    )
    return [serialize_conversation(db, conversation, participant) for conversation, participant in rows]


def start_conversation(db: Session, user: models.GeneralUser, data: schemas.ConversationCreate) -> models.Conversation:
    """Open a thread with its first message; status starts at "pending"."""
    if not data.subject or not data.message:
        raise StoreError("subject and message are required")
    now = utcnow()
    conversation = models.Conversation(
        title=data.subject,
        type=data.type or "general",
        status="pending",
        created_by=user.id,
        last_message_at=now,
    )
    conversation.participants.append(
        models.ConversationParticipant(user_id=user.id, role="customer", last_read_at=now)
    )
    conversation.messages.append(
        models.Message(sender_id=user.id, subject=data.subject, message_text=data.message, sent_at=now)
    )
    db.add(conversation)
    db.commit()
    db.refresh(conversation)
    logger.info("User %s opened conversation %s", user.id, conversation.id)
    return conversation


def read_messages(db: Session, user: models.GeneralUser, conversation_id: int) -> List[models.Message]:
    """Return the thread and mark it read up to now."""
    conversation = _get_conversation(db, conversation_id)
    participant = _participant(db, conversation, user)
    messages = (
        db.query(models.Message)
        .filter(models.Message.conversation_id == conversation.id)
        .order_by(models.Message.sent_at.asc(), models.Message.id.asc())
        .all()
    )
    participant.last_read_at = utcnow()
    for message in messages:
        if message.sender_id != user.id:
            message.seen_status = True
    db.commit()
    return messages


def send_message(
    db: Session, user: models.GeneralUser, conversation_id: int, data: schemas.MessageCreate
) -> models.Message:
    if not data.text:
        raise StoreError("message_text is required")
    conversation = _get_conversation(db, conversation_id)
    participant = _participant(db, conversation, user)
    if conversation.status == "closed":
        raise StoreError("Conversation is closed")
    now = utcnow()
    message = models.Message(sender_id=user.id, message_text=data.text, sent_at=now)
    conversation.messages.append(message)
    conversation.last_message_at = now
    participant.last_read_at = now
    db.commit()
    db.refresh(message)
    return message


def send_direct(db: Session, user: models.GeneralUser, data: schemas.DirectMessage) -> models.Message:
    if not data.message_text:
        raise StoreError("message_text is required")
    admin = (
        db.query(models.AdminUser)
        .filter(models.AdminUser.is_active.is_(True), models.AdminUser.user_id.isnot(None))
        .order_by(func.random())
        .first()
    )
    if admin is None:
        raise StoreError("No support staff available", status_code=503)
    message = models.Message(
        sender_id=user.id,
        receiver_id=admin.user_id,
        subject=data.subject,
        message_text=data.message_text,
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def direct_messages(db: Session, user: models.GeneralUser) -> List[models.Message]:
    return (
        db.query(models.Message)
        .filter(
            models.Message.conversation_id.is_(None),
            or_(models.Message.sender_id == user.id, models.Message.receiver_id == user.id),
        )
        .order_by(models.Message.sent_at.desc(), models.Message.id.desc())
        .all()
    )


def mark_message_read(db: Session, user: models.GeneralUser, message_id: int) -> models.Message:
    message = db.get(models.Message, message_id)
    if message is None:
        raise NotFoundError("Message not found")
    if message.conversation_id is None:
        allowed = message.receiver_id == user.id
    else:
        allowed = (
            db.query(models.ConversationParticipant.id)
            .filter(
                models.ConversationParticipant.conversation_id == message.conversation_id,
                models.ConversationParticipant.user_id == user.id,
            )
            .first()
            is not None
        )
    if not allowed:
        raise NotFoundError("Message not found")
    message.seen_status = True
    db.commit()
    db.refresh(message)
    return message


# ============================================================================
# STAFF SIDE
# ============================================================================

def admin_list_conversations(
    db: Session,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    conversation_type: Optional[str] = None,
) -> List[Dict[str, Any]]:
    query = db.query(models.Conversation)
    if status and status != "all":
        query = query.filter(models.Conversation.status == status)
    if priority:
        query = query.filter(models.Conversation.priority == priority)
    if conversation_type:
        query = query.filter(models.Conversation.type == conversation_type)
    conversations = query.order_by(models.Conversation.last_message_at.desc(), models.Conversation.id.desc()).all()
    result = []
    for conversation in conversations:
        data = serialize_conversation(db, conversation)
        data["unread_count"] = (
            db.query(func.count(models.Message.id))
            .filter(
                models.Message.conversation_id == conversation.id,
                models.Message.sender_admin_id.is_(None),
                models.Message.seen_status.is_(False),
            )
            .scalar()
        )
        result.append(data)
    return result


def admin_read_thread(db: Session, conversation_id: int) -> Dict[str, Any]:
    conversation = _get_conversation(db, conversation_id)
    messages = sorted(conversation.messages, key=lambda m: (m.sent_at, m.id))
    for message in messages:
        if message.sender_admin_id is None:
            message.seen_status = True
    db.commit()
    return {
        "conversation": serialize_conversation(db, conversation),
        "messages": [serialize_message(m) for m in messages],
    }


def admin_reply(
    db: Session, admin: models.AdminUser, conversation_id: int, data: schemas.MessageCreate
) -> models.Message:
    if not data.text:
        raise StoreError("message_text is required")
    conversation = _get_conversation(db, conversation_id)
    if conversation.status == "closed":
        raise StoreError("Conversation is closed")
    now = utcnow()
    message = models.Message(
        sender_admin_id=admin.admin_id,
        receiver_id=conversation.created_by,
        message_text=data.text,
        sent_at=now,
    )
    conversation.messages.append(message)
    if conversation.status == "pending":
        conversation.status = "active"
    if conversation.assigned_to is None:
        conversation.assigned_to = admin.admin_id
    conversation.last_message_at = now
    db.commit()
    db.refresh(message)
    return message


def admin_update_conversation(
    db: Session, conversation_id: int, data: schemas.ConversationUpdate
) -> models.Conversation:
    conversation = _get_conversation(db, conversation_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise StoreError("Nothing to update")
    if "status" in changes and changes["status"] not in STAFF_SETTABLE_STATUSES:
        raise StoreError(f"status must be one of: {', '.join(STAFF_SETTABLE_STATUSES)}")
    if "priority" in changes and changes["priority"] not in PRIORITIES:
        raise StoreError(f"priority must be one of: {', '.join(PRIORITIES)}")
    if "assigned_to" in changes and db.get(models.AdminUser, changes["assigned_to"]) is None:
        raise StoreError("assigned_to must be an existing admin")
    for field, value in changes.items():
        setattr(conversation, field, value)
    db.commit()
    db.refresh(conversation)
    return conversation
