"""
Product questions and staff answers.

Question status: pending -> answered -> published. A question becomes
"published" (visible on the product page) as soon as one of its answers is.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from storefront import models, schemas
from storefront.crud import notifications
from storefront.crud.admin import log_admin_action
from storefront.errors import NotFoundError, StoreError

QUESTION_STATUSES = ("pending", "answered", "published")
QUESTION_PRIORITIES = ("low", "normal", "high", "urgent")
QUESTION_CATEGORIES = ("general", "compatibility", "specifications", "shipping", "warranty", "other")


def serialize_answer(answer: models.QAAnswer) -> Dict[str, Any]:
    return {
        "id": answer.id,
        "answer_text": answer.answer_text,
        "is_published": answer.is_published,
        "send_to_customer": answer.send_to_customer,
        "admin_name": answer.admin.name if answer.admin else None,
        "created_at": answer.created_at,
        "updated_at": answer.updated_at,
    }


def serialize_question(question: models.ProductQuestion, answers=None) -> Dict[str, Any]:
    if answers is None:
        answers = question.answers
    customer_user = question.customer.user if question.customer else None
    return {
        "id": question.id,
        "product_id": question.product_id,
        "product_name": question.product.name if question.product else None,
        "customer_name": customer_user.username if customer_user else None,
        "question_text": question.question_text,
        "category": question.category,
        "status": question.status,
        "priority": question.priority,
        "created_at": question.created_at,
        "updated_at": question.updated_at,
        "answers": [serialize_answer(a) for a in sorted(answers, key=lambda a: a.id)],
    }


# ============================================================================
# PUBLIC AND CUSTOMER
# ============================================================================

def _published_query(db: Session):
    return (
        db.query(models.ProductQuestion)
        .options(selectinload(models.ProductQuestion.answers))
        .filter(models.ProductQuestion.status == "published")
    )


def _published_view(question: models.ProductQuestion) -> Dict[str, Any]:
    return serialize_question(question, [a for a in question.answers if a.is_published])


def product_qa(db: Session, product_id: int) -> List[Dict[str, Any]]:
    questions = (
        _published_query(db)
        .filter(models.ProductQuestion.product_id == product_id)
        .order_by(models.ProductQuestion.created_at.desc())
        .all()
    )
    return [_published_view(q) for q in questions]


def published_questions(
    db: Session,
    category: Optional[str] = None,
    product_id: Optional[int] = None,
    search: Optional[str] = None,
    limit: int = 50,
) -> List[Dict[str, Any]]:
    query = _published_query(db)
    if category:
        query = query.filter(models.ProductQuestion.category == category)
    if product_id is not None:
        query = query.filter(models.ProductQuestion.product_id == product_id)
    if search:
        query = query.filter(models.ProductQuestion.question_text.ilike(f"%{search}%"))
    questions = query.order_by(models.ProductQuestion.created_at.desc()).limit(limit).all()
    return [_published_view(q) for q in questions]


def ask_question(
    db: Session, customer: models.Customer, product_id: int, data: schemas.QuestionCreate
) -> models.ProductQuestion:
    if not data.question_text or not data.question_text.strip():
        raise StoreError("question_text is required")
    if db.get(models.Product, product_id) is None:
        raise NotFoundError("Product not found")
    category = data.category if data.category in QUESTION_CATEGORIES else "general"
    question = models.ProductQuestion(
        product_id=product_id,
        customer_id=customer.id,
        question_text=data.question_text.strip(),
        category=category,
    )
    db.add(question)
    db.commit()
    db.refresh(question)
    return question


def my_questions(db: Session, customer: models.Customer) -> List[Dict[str, Any]]:
    """The asker sees published answers and those sent to them directly."""
    questions = (
        db.query(models.ProductQuestion)
        .options(selectinload(models.ProductQuestion.answers))
        .filter(models.ProductQuestion.customer_id == customer.id)
        .order_by(models.ProductQuestion.created_at.desc(), models.ProductQuestion.id.desc())
        .all()
    )
    return [
        serialize_question(q, [a for a in q.answers if a.is_published or a.send_to_customer])
        for q in questions
    ]


# ============================================================================
# STAFF
# ============================================================================

def admin_questions(
    db: Session,
    status: Optional[str] = "pending",
    priority: Optional[str] = None,
    category: Optional[str] = None,
) -> List[Dict[str, Any]]:
    query = db.query(models.ProductQuestion).options(selectinload(models.ProductQuestion.answers))
    if status and status != "all":
        query = query.filter(models.ProductQuestion.status == status)
    if priority:
        query = query.filter(models.ProductQuestion.priority == priority)
    if category:
        query = query.filter(models.ProductQuestion.category == category)
    questions = query.order_by(models.ProductQuestion.created_at.asc(), models.ProductQuestion.id.asc()).all()
    return [serialize_question(q) for q in questions]


def _get_question(db: Session, question_id: int) -> models.ProductQuestion:
    question = db.get(models.ProductQuestion, question_id)
    if question is None:
        raise NotFoundError("Question not found")
    return question


def answer_question(
    db: Session, question_id: int, data: schemas.AnswerCreate, admin: models.AdminUser
) -> models.QAAnswer:
    question = _get_question(db, question_id)
    if not data.answer_text or not data.answer_text.strip():
        raise StoreError("answer_text is required")
    answer = models.QAAnswer(
        admin_id=admin.admin_id,
        answer_text=data.answer_text.strip(),
        is_published=data.is_published,
        send_to_customer=data.send_to_customer,
    )
    question.answers.append(answer)
    question.status = "published" if data.is_published else "answered"
    db.flush()
    if data.send_to_customer:
        notifications.notify_qa_answered(db, question, answer)
    log_admin_action(db, admin.admin_id, "ANSWER_QUESTION", "question", question.id, {"answer_id": answer.id})
    db.commit()
    db.refresh(answer)
    return answer


def update_question(db: Session, question_id: int, data: schemas.QuestionUpdate) -> models.ProductQuestion:
    question = _get_question(db, question_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise StoreError("Nothing to update")
    if "status" in changes and changes["status"] not in QUESTION_STATUSES:
        raise StoreError(f"status must be one of: {', '.join(QUESTION_STATUSES)}")
    if "priority" in changes and changes["priority"] not in QUESTION_PRIORITIES:
        raise StoreError(f"priority must be one of: {', '.join(QUESTION_PRIORITIES)}")
    for field, value in changes.items():
        setattr(question, field, value)
    db.commit()
    db.refresh(question)
    return question


def update_answer(db: Session, answer_id: int, data: schemas.AnswerUpdate) -> models.QAAnswer:
    answer = db.get(models.QAAnswer, answer_id)
    if answer is None:
        raise NotFoundError("Answer not found")
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise StoreError("Nothing to update")
    newly_sent = changes.get("send_to_customer") is True and not answer.send_to_customer
    for field, value in changes.items():
        setattr(answer, field, value)
    if answer.is_published:
        answer.question.status = "published"
    if newly_sent:
        notifications.notify_qa_answered(db, answer.question, answer)
    db.commit()
    db.refresh(answer)
    return answer


def qa_stats(db: Session) -> Dict[str, Any]:
    by_status = dict(
        db.query(models.ProductQuestion.status, func.count(models.ProductQuestion.id))
        .group_by(models.ProductQuestion.status)
        .all()
    )
    by_category = dict(
        db.query(models.ProductQuestion.category, func.count(models.ProductQuestion.id))
        .group_by(models.ProductQuestion.category)
        .all()
    )
    urgent = (
        db.query(func.count(models.ProductQuestion.id))
        .filter(
            models.ProductQuestion.status == "pending",
            or_(models.ProductQuestion.priority == "high", models.ProductQuestion.priority == "urgent"),
        )
        .scalar()
    )
    return {
        "total_questions": sum(by_status.values()),
        "pending": by_status.get("pending", 0),
        "answered": by_status.get("answered", 0),
        "published": by_status.get("published", 0),
        "high_priority_pending": urgent,
        "total_answers": db.query(func.count(models.QAAnswer.id)).scalar(),
        "by_category": by_category,
    }
