"""
Back-office API (/api/admin).

Clearance levels gate each area; GENERAL_MANAGER passes every check:

    admins, signup review, logs .............. GENERAL_MANAGER
    users, customers ......................... GENERAL_MANAGER
    products, categories, reviews ............ PRODUCT_EXPERT
    inventory ................................ INVENTORY_MANAGER
    orders ................................... INVENTORY_MANAGER or ORDER_MANAGER
    reports .................................. ANALYTICS
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session

from storefront import models, schemas, security
from storefront.crud import admin as admin_crud
from storefront.crud import inventory, orders, ratings
from storefront.database import get_db
from storefront.errors import StoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

general_manager = security.require_clearance("GENERAL_MANAGER")
product_expert = security.require_clearance("PRODUCT_EXPERT")
inventory_manager = security.require_clearance("INVENTORY_MANAGER")
order_staff = security.require_clearance("INVENTORY_MANAGER", "ORDER_MANAGER")
analytics_staff = security.require_clearance("ANALYTICS")


# ============================================================================
# SESSION
# ============================================================================

@router.post("/login")
def admin_login(data: schemas.AdminLogin, request: Request, db: Session = Depends(get_db)):
    if not data.employee_id or not data.password:
        raise StoreError("Employee ID and password are required")
    admin = admin_crud.get_admin_by_employee_id(db, data.employee_id)
    if admin is None or not security.verify_password(data.password, admin.password):
        logger.warning("Failed admin login for %s from %s", data.employee_id, request.client.host if request.client else "-")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not admin.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated")
    admin_crud.record_login(db, admin)
    return {
        "message": "Login successful",
        "token": security.create_admin_token(admin),
        "token_type": "bearer",
        "admin": schemas.AdminOut.model_validate(admin),
    }


@router.get("/validate")
def validate_session(admin: models.AdminUser = Depends(security.get_current_admin)):
    return {"valid": True, "admin": schemas.AdminOut.model_validate(admin)}


@router.get("/dashboard/stats")
def dashboard_stats(admin: models.AdminUser = Depends(security.get_current_admin), db: Session = Depends(get_db)):
    return admin_crud.dashboard_stats(db)


@router.get("/profile", response_model=schemas.AdminOut)
def get_own_profile(admin: models.AdminUser = Depends(security.get_current_admin)):
    return admin


@router.put("/profile", response_model=schemas.AdminOut)
def update_own_profile(
    data: schemas.AdminProfileUpdate,
    admin: models.AdminUser = Depends(security.get_current_admin),
    db: Session = Depends(get_db),
):
    return admin_crud.update_own_profile(db, admin, data)


@router.put("/change-password")
def change_own_password(
    data: schemas.AdminPasswordChange,
    admin: models.AdminUser = Depends(security.get_current_admin),
    db: Session = Depends(get_db),
):
    if not data.current_password or not data.new_password:
        raise StoreError("Current password and new password are required")
    if len(data.new_password) < 6:
        raise StoreError("New password must be at least 6 characters long")
    if not security.verify_password(data.current_password, admin.password):
        raise StoreError("Current password is incorrect")
    admin_crud.set_own_password(db, admin, security.get_password_hash(data.new_password))
    return {"message": "Password changed successfully"}


# ============================================================================
# ADMIN ACCOUNTS AND SIGNUP REQUESTS
# ============================================================================

@router.get("/admins", response_model=List[schemas.AdminOut])
def list_admins(admin: models.AdminUser = Depends(general_manager), db: Session = Depends(get_db)):
    return admin_crud.list_admins(db)


@router.post("/admins", response_model=schemas.AdminOut, status_code=status.HTTP_201_CREATED)
def create_admin(
    data: schemas.AdminCreate,
    admin: models.AdminUser = Depends(general_manager),
    db: Session = Depends(get_db),
):
    if not data.password or len(data.password) < 6:
        raise StoreError("Password must be at least 6 characters long")
    password_hash = security.get_password_hash(data.password)
    return admin_crud.create_admin(db, data, password_hash, security.CLEARANCE_LEVELS, created_by=admin)


@router.put("/admins/{admin_id}", response_model=schemas.AdminOut)
def update_admin(
    admin_id: int,
    data: schemas.AdminUpdate,
    admin: models.AdminUser = Depends(general_manager),
    db: Session = Depends(get_db),
):
    password_hash = security.get_password_hash(data.password) if data.password else None
    return admin_crud.update_admin(db, admin_id, data, password_hash, admin)


@router.put("/admins/{admin_id}/clearance", response_model=schemas.AdminOut)
def update_clearance(
    admin_id: int,
    data: schemas.ClearanceUpdate,
    admin: models.AdminUser = Depends(general_manager),
    db: Session = Depends(get_db),
):
    return admin_crud.set_clearance(db, admin_id, data.clearance_level, security.CLEARANCE_LEVELS, admin)


@router.post("/signup-requests", status_code=status.HTTP_201_CREATED)
@router.post("/signup-request", status_code=status.HTTP_201_CREATED)
def submit_signup_request(data: schemas.AdminSignupCreate, db: Session = Depends(get_db)):
    if not data.password or len(data.password) < 6:
        raise StoreError("Password must be at least 6 characters long")
    request = admin_crud.create_signup_request(
        db, data, security.get_password_hash(data.password), security.CLEARANCE_LEVELS
    )
    return {
        "message": "Signup request submitted for review",
        "request": admin_crud.serialize_signup_request(request),
    }


@router.get("/signup-requests")
def list_signup_requests(
    status: Optional[str] = "pending",
    admin: models.AdminUser = Depends(general_manager),
    db: Session = Depends(get_db),
):
    return [admin_crud.serialize_signup_request(r) for r in admin_crud.list_signup_requests(db, status)]


@router.post("/signup-requests/{request_id}/approve")
def approve_signup_request(
    request_id: int, admin: models.AdminUser = Depends(general_manager), db: Session = Depends(get_db)
):
    return admin_crud.review_signup_request(db, request_id, True, admin)


@router.post("/signup-requests/{request_id}/reject")
def reject_signup_request(
    request_id: int, admin: models.AdminUser = Depends(general_manager), db: Session = Depends(get_db)
):
    return admin_crud.review_signup_request(db, request_id, False, admin)


@router.put("/signup-requests/{request_id}")
def decide_signup_request(
    request_id: int,
    data: schemas.SignupReview,
    admin: models.AdminUser = Depends(general_manager),
    db: Session = Depends(get_db),
):
    if data.action not in ("approve", "reject"):
        raise StoreError("action must be approve or reject")
    return admin_crud.review_signup_request(
        db,
        request_id,
        data.action == "approve",
        admin,
        assigned_clearance=data.assigned_clearance,
        allowed_levels=security.CLEARANCE_LEVELS,
        rejection_reason=data.rejection_reason,
    )


# ============================================================================
# AUDIT LOG AND ADMIN NOTIFICATIONS
# ============================================================================

@router.get("/logs")
def list_logs(
    admin_id: Optional[int] = None,
    action: Optional[str] = None,
    target_type: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin: models.AdminUser = Depends(general_manager),
    db: Session = Depends(get_db),
):
    return admin_crud.list_logs(db, admin_id, action, target_type, page, limit)


@router.get("/notifications")
def list_admin_notifications(
    unread_only: bool = False,
    admin: models.AdminUser = Depends(security.get_current_admin),
    db: Session = Depends(get_db),
):
    notes = admin_crud.list_admin_notifications(db, admin, unread_only)
    return [admin_crud.serialize_admin_notification(n) for n in notes]


@router.get("/notifications/unread-count")
def admin_unread_count(admin: models.AdminUser = Depends(security.get_current_admin), db: Session = Depends(get_db)):
    return {"unread_count": admin_crud.admin_unread_count(db, admin)}


@router.patch("/notifications/read-all")
@router.put("/notifications/mark-all-read")
@router.patch("/notifications/mark-all-read")
def mark_all_admin_notifications_read(
    admin: models.AdminUser = Depends(security.get_current_admin), db: Session = Depends(get_db)
):
    return {"updated": admin_crud.mark_all_admin_notifications_read(db, admin)}


@router.patch("/notifications/{notification_id}/read")
@router.put("/notifications/{notification_id}/read")
def mark_admin_notification_read(
    notification_id: int,
    admin: models.AdminUser = Depends(security.get_current_admin),
    db: Session = Depends(get_db),
):
    note = admin_crud.mark_admin_notification_read(db, admin, notification_id)
    return admin_crud.serialize_admin_notification(note)


# ============================================================================
# PRODUCTS, CATEGORIES AND INVENTORY
# ============================================================================

@router.get("/products")
def list_products(
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    availability: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    admin: models.AdminUser = Depends(product_expert),
    db: Session = Depends(get_db),
):
    return inventory.list_products(db, search, category_id, availability, page, limit)


@router.post("/products", status_code=status.HTTP_201_CREATED)
def create_product(
    data: schemas.ProductIn,
    admin: models.AdminUser = Depends(product_expert),
    db: Session = Depends(get_db),
):
    return inventory.serialize_admin_product(inventory.create_product(db, data, admin))


@router.get("/products/{product_id}")
def get_product(product_id: int, admin: models.AdminUser = Depends(product_expert), db: Session = Depends(get_db)):
    return inventory.serialize_admin_product(inventory.get_product(db, product_id))


@router.put("/products/{product_id}")
def update_product(
    product_id: int,
    data: schemas.ProductUpdate,
    admin: models.AdminUser = Depends(product_expert),
    db: Session = Depends(get_db),
):
    return inventory.serialize_admin_product(inventory.update_product(db, product_id, data, admin))


@router.delete("/products/{product_id}")
def delete_product(product_id: int, admin: models.AdminUser = Depends(product_expert), db: Session = Depends(get_db)):
    inventory.delete_product(db, product_id, admin)
    return {"message": "Product deleted successfully"}


@router.get("/categories")
def list_categories(admin: models.AdminUser = Depends(security.get_current_admin), db: Session = Depends(get_db)):
    return inventory.list_categories(db)


@router.post("/categories", status_code=status.HTTP_201_CREATED, response_model=schemas.CategoryOut)
def create_category(
    data: schemas.CategoryIn,
    admin: models.AdminUser = Depends(product_expert),
    db: Session = Depends(get_db),
):
    return inventory.create_category(db, data, admin)


@router.get("/inventory")
def inventory_overview(
    stock_status: Optional[str] = None,
    admin: models.AdminUser = Depends(inventory_manager),
    db: Session = Depends(get_db),
):
    return inventory.inventory_overview(db, stock_status)


@router.put("/inventory/{product_id}/stock")
def update_stock(
    product_id: int,
    data: schemas.StockUpdate,
    admin: models.AdminUser = Depends(inventory_manager),
    db: Session = Depends(get_db),
):
    return inventory.update_stock(db, product_id, data, admin)


# ============================================================================
# ORDERS
# ============================================================================

@router.get("/orders")
def list_orders(
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    admin: models.AdminUser = Depends(order_staff),
    db: Session = Depends(get_db),
):
    return orders.admin_list_orders(db, status, search, page, limit)


@router.get("/orders/analytics")
def order_analytics(
    days: int = Query(30, ge=1, le=365),
    admin: models.AdminUser = Depends(order_staff),
    db: Session = Depends(get_db),
):
    return orders.order_analytics(db, days)


@router.put("/orders/bulk-status")
def bulk_update_status(
    data: schemas.BulkStatusUpdate,
    admin: models.AdminUser = Depends(order_staff),
    db: Session = Depends(get_db),
):
    return orders.admin_bulk_status(db, data.order_ids, data.status, admin)


@router.get("/orders/{order_id}")
def get_order(order_id: int, admin: models.AdminUser = Depends(order_staff), db: Session = Depends(get_db)):
    return orders.admin_serialize_order(orders.admin_get_order(db, order_id), with_items=True)


@router.put("/orders/{order_id}/status")
def update_order_status(
    order_id: int,
    data: schemas.OrderStatusUpdate,
    admin: models.AdminUser = Depends(order_staff),
    db: Session = Depends(get_db),
):
    return orders.admin_update_status(db, order_id, data.status, admin)


@router.put("/orders/{order_id}/notes")
def update_order_notes(
    order_id: int,
    data: schemas.OrderNotes,
    admin: models.AdminUser = Depends(order_staff),
    db: Session = Depends(get_db),
):
    return orders.admin_serialize_order(orders.admin_set_notes(db, order_id, data.notes, admin))


# ============================================================================
# REVIEW MODERATION
# ============================================================================

@router.get("/reviews")
def list_reviews(
    product_id: Optional[int] = None,
    max_rating: Optional[int] = Query(None, ge=0, le=10),
    with_text_only: bool = False,
    admin: models.AdminUser = Depends(product_expert),
    db: Session = Depends(get_db),
):
    return ratings.list_reviews(db, product_id, max_rating, with_text_only)


@router.delete("/reviews/{rating_id}")
def delete_review(rating_id: int, admin: models.AdminUser = Depends(product_expert), db: Session = Depends(get_db)):
    ratings.remove_review(db, rating_id, admin)
    return {"message": "Review deleted successfully"}


# ============================================================================
# CUSTOMERS, REPORTS AND ANALYTICS
# ============================================================================

@router.get("/users")
def list_users(admin: models.AdminUser = Depends(general_manager), db: Session = Depends(get_db)):
    return admin_crud.list_users(db)


@router.get("/customers")
def list_customers(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    admin: models.AdminUser = Depends(general_manager),
    db: Session = Depends(get_db),
):
    return admin_crud.list_customers(db, search, page, limit)


@router.get("/customers/{customer_id}")
def customer_detail(customer_id: int, admin: models.AdminUser = Depends(general_manager), db: Session = Depends(get_db)):
    return admin_crud.customer_detail(db, customer_id)


@router.get("/reports/{report_type}")
def download_report(
    report_type: str,
    admin: models.AdminUser = Depends(analytics_staff),
    db: Session = Depends(get_db),
):
    body = admin_crud.report_csv(db, report_type)
    admin_crud.log_admin_action(db, admin.admin_id, "EXPORT_REPORT", "report", report_type)
    db.commit()
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{report_type}_report.csv"'},
    )


@router.get("/analytics/clearance")
def clearance_analytics(admin: models.AdminUser = Depends(general_manager), db: Session = Depends(get_db)):
    return admin_crud.clearance_analytics(db)
