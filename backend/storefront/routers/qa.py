"""Product Q&A: public reads, customer questions, staff answers."""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from storefront import models, schemas, security
from storefront.crud import qa
from storefront.database import get_db

router = APIRouter(prefix="/qa", tags=["qa"])


@router.get("/product/{product_id}")
def product_questions(product_id: int, db: Session = Depends(get_db)):
    return qa.product_qa(db, product_id)


@router.get("/published")
def published_questions(
    category: Optional[str] = None,
    product_id: Optional[int] = None,
    search: Optional[str] = None,
    limit: int = 50,
    db: Session = Depends(get_db),
):
    return qa.published_questions(db, category, product_id, search, limit)


@router.post("/product/{product_id}/questions", status_code=status.HTTP_201_CREATED)
def ask_question(
    product_id: int,
    data: schemas.QuestionCreate,
    customer: models.Customer = Depends(security.get_current_customer),
    db: Session = Depends(get_db),
):
    question = qa.ask_question(db, customer, product_id, data)
    return {"message": "Question submitted successfully", "question": qa.serialize_question(question)}


@router.get("/my-questions")
@router.get("/customer/questions")
def my_questions(customer: models.Customer = Depends(security.get_current_customer), db: Session = Depends(get_db)):
    return qa.my_questions(db, customer)


# ============================================================================
# STAFF
# ============================================================================

@router.get("/admin/pending")
def admin_questions(
    status: Optional[str] = "pending",
    priority: Optional[str] = None,
    category: Optional[str] = None,
    admin: models.AdminUser = Depends(security.get_current_staff),
    db: Session = Depends(get_db),
):
    return qa.admin_questions(db, status, priority, category)


@router.post("/admin/questions/{question_id}/answer", status_code=status.HTTP_201_CREATED)
def answer_question(
    question_id: int,
    data: schemas.AnswerCreate,
    admin: models.AdminUser = Depends(security.get_current_staff),
    db: Session = Depends(get_db),
):
    answer = qa.answer_question(db, question_id, data, admin)
    return {"message": "Answer submitted successfully", "answer": qa.serialize_answer(answer)}


@router.patch("/admin/questions/{question_id}")
def update_question(
    question_id: int,
    data: schemas.QuestionUpdate,
    admin: models.AdminUser = Depends(security.get_current_staff),
    db: Session = Depends(get_db),
):
    return qa.serialize_question(qa.update_question(db, question_id, data))


@router.patch("/admin/answers/{answer_id}")
def update_answer(
    answer_id: int,
    data: schemas.AnswerUpdate,
    admin: models.AdminUser = Depends(security.get_current_staff),
    db: Session = Depends(get_db),
):
    return qa.serialize_answer(qa.update_answer(db, answer_id, data))


@router.get("/admin/stats")
def qa_stats(admin: models.AdminUser = Depends(security.get_current_staff), db: Session = Depends(get_db)):
    return qa.qa_stats(db)
