"""Verified-purchase product ratings."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from storefront import models, schemas, security
from storefront.crud import ratings
from storefront.database import get_db

router = APIRouter(prefix="/ratings", tags=["ratings"])


@router.get("/ratable-products")
def ratable_products(
    user: models.GeneralUser = Depends(security.get_current_user),
    customer: models.Customer = Depends(security.get_current_customer),
    db: Session = Depends(get_db),
):
    return {"products": ratings.ratable_products(db, user, customer)}


@router.post("/submit", status_code=status.HTTP_201_CREATED)
def submit_rating(
    data: schemas.RatingSubmit,
    user: models.GeneralUser = Depends(security.get_current_user),
    customer: models.Customer = Depends(security.get_current_customer),
    db: Session = Depends(get_db),
):
    rating = ratings.submit_rating(db, user, customer, data)
    return {"message": "Rating submitted successfully", "rating": ratings.serialize_rating(rating)}


@router.get("/my-ratings")
def my_ratings(user: models.GeneralUser = Depends(security.get_current_user), db: Session = Depends(get_db)):
    return [ratings.serialize_rating(r) for r in ratings.my_ratings(db, user)]


@router.get("/product/{product_id}")
def product_ratings(product_id: int, db: Session = Depends(get_db)):
    return ratings.product_ratings(db, product_id)


@router.put("/{rating_id}")
def update_rating(
    rating_id: int,
    data: schemas.RatingUpdate,
    user: models.GeneralUser = Depends(security.get_current_user),
    db: Session = Depends(get_db),
):
    return ratings.serialize_rating(ratings.update_rating(db, user, rating_id, data))


@router.delete("/{rating_id}")
def delete_rating(
    rating_id: int,
    user: models.GeneralUser = Depends(security.get_current_user),
    db: Session = Depends(get_db),
):
    ratings.delete_rating(db, user, rating_id)
    return {"message": "Rating deleted successfully"}
