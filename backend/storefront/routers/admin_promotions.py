"""Promotion management (/api/admin/promotions), PROMO_MANAGER clearance."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from storefront import models, schemas, security
from storefront.crud import promotions
from storefront.crud.admin import log_admin_action
from storefront.database import get_db

router = APIRouter(prefix="/admin/promotions", tags=["promotions"])

promo_manager = security.require_clearance("PROMO_MANAGER")


@router.get("")
def list_promotions(admin: models.AdminUser = Depends(promo_manager), db: Session = Depends(get_db)):
    return promotions.list_promotions(db)


@router.get("/analytics")
def promotion_analytics(admin: models.AdminUser = Depends(promo_manager), db: Session = Depends(get_db)):
    return promotions.promotion_analytics(db)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_promotion(
    data: schemas.PromotionIn,
    admin: models.AdminUser = Depends(promo_manager),
    db: Session = Depends(get_db),
):
    promotion = promotions.create_promotion(db, data, admin.admin_id)
    log_admin_action(db, admin.admin_id, "CREATE_PROMOTION", "promotion", promotion.id, {"code": promotion.code})
    db.commit()
    return promotions.serialize_promotion(promotion)


@router.post("/generate-coupons", status_code=status.HTTP_201_CREATED)
def generate_coupons(
    data: schemas.CouponBatch,
    admin: models.AdminUser = Depends(promo_manager),
    db: Session = Depends(get_db),
):
    coupons = promotions.generate_coupons(db, data, admin.admin_id)
    log_admin_action(
        db, admin.admin_id, "GENERATE_COUPONS", "promotion", None,
        {"base_code": data.base_code, "count": len(coupons)},
    )
    db.commit()
    return {
        "message": f"Generated {len(coupons)} coupons",
        "coupons": [promotions.serialize_promotion(c) for c in coupons],
    }


@router.put("/{promotion_id}")
def update_promotion(
    promotion_id: int,
    data: schemas.PromotionUpdate,
    admin: models.AdminUser = Depends(promo_manager),
    db: Session = Depends(get_db),
):
    promotion = promotions.update_promotion(db, promotion_id, data)
    log_admin_action(db, admin.admin_id, "UPDATE_PROMOTION", "promotion", promotion.id, None)
    db.commit()
    return promotions.serialize_promotion(promotion)


@router.delete("/{promotion_id}")
def delete_promotion(
    promotion_id: int,
    admin: models.AdminUser = Depends(promo_manager),
    db: Session = Depends(get_db),
):
    promotions.delete_promotion(db, promotion_id)
    log_admin_action(db, admin.admin_id, "DELETE_PROMOTION", "promotion", promotion_id, None)
    db.commit()
    return {"message": "Promotion deleted successfully"}


@router.get("/{promotion_id}/usage")
def promotion_usage(promotion_id: int, admin: models.AdminUser = Depends(promo_manager), db: Session = Depends(get_db)):
    return promotions.promotion_usage(db, promotion_id)
