"""Loyalty points and vouchers for the signed-in customer."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from storefront import models, schemas, security
from storefront.crud import loyalty, promotions, ratings
from storefront.database import get_db

router = APIRouter(prefix="/vouchers", tags=["vouchers"])
account_router = APIRouter(prefix="/account", tags=["account"])


@router.get("")
def list_vouchers(customer: models.Customer = Depends(security.get_current_customer), db: Session = Depends(get_db)):
    return [loyalty.serialize_voucher(v) for v in loyalty.list_vouchers(db, customer)]


@router.get("/points")
def points(customer: models.Customer = Depends(security.get_current_customer), db: Session = Depends(get_db)):
    summary = loyalty.points_summary(db, customer)
    summary["history"] = [
        {
            "id": t.id,
            "transaction_type": t.transaction_type,
            "points": t.points,
            "order_id": t.order_id,
            "voucher_id": t.voucher_id,
            "description": t.description,
            "created_at": t.created_at,
        }
        for t in loyalty.points_history(db, customer)
    ]
    return summary


@router.post("/redeem-points", status_code=status.HTTP_201_CREATED)
def redeem_points(
    data: schemas.RedeemPoints,
    customer: models.Customer = Depends(security.get_current_customer),
    db: Session = Depends(get_db),
):
    vouchers = loyalty.redeem_points(db, customer, data.points)
    return {
        "message": f"Successfully redeemed {data.points} points for {len(vouchers)} voucher(s)",
        "vouchers": [loyalty.serialize_voucher(v) for v in vouchers],
        "points": loyalty.points_summary(db, customer),
    }


@router.post("/validate")
def validate_code(
    data: schemas.VoucherValidate,
    customer: models.Customer = Depends(security.get_current_customer),
    db: Session = Depends(get_db),
):
    return promotions.preview_coupon(db, customer, data.code, data.order_total)


@account_router.get("/vouchers")
def account_vouchers(
    customer: models.Customer = Depends(security.get_current_customer), db: Session = Depends(get_db)
):
    return loyalty.account_vouchers(db, customer)


@account_router.get("/reviews")
def account_reviews(user: models.GeneralUser = Depends(security.get_current_user), db: Session = Depends(get_db)):
    return [ratings.serialize_rating(r) for r in ratings.my_ratings(db, user)]
