"""
Staff accounts, audit trail and back-office reporting.

Password hashing happens in the routers (``storefront.security``); these
functions only ever see hashes.
"""

import csv
import io
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from storefront import config, models, schemas
from storefront.errors import NotFoundError, StoreError
from storefront.models import utcnow

logger = logging.getLogger(__name__)

REPORT_TYPES = ("sales", "products", "users", "orders")


# ============================================================================
# AUDIT LOG
# ============================================================================

def log_admin_action(
    db: Session,
    admin_id: Optional[int],
    action: str,
    target_type: Optional[str] = None,
    target_id=None,
    details: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> models.AdminLog:
    """Stage an audit row; it is committed with the action it describes."""
    entry = models.AdminLog(
        admin_id=admin_id,
        action=action,
        target_type=target_type,
        target_id=str(target_id) if target_id is not None else None,
        details=details,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(entry)
    return entry


def list_logs(
    db: Session,
    admin_id: Optional[int] = None,
    action: Optional[str] = None,
    target_type: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> Dict[str, Any]:
    query = db.query(models.AdminLog)
    if admin_id is not None:
        query = query.filter(models.AdminLog.admin_id == admin_id)
    if action:
        query = query.filter(models.AdminLog.action == action)
    if target_type:
        query = query.filter(models.AdminLog.target_type == target_type)
    total = query.count()
    logs = (
        query.order_by(models.AdminLog.created_at.desc(), models.AdminLog.log_id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "logs": [
            {
                "log_id": log.log_id,
                "admin_id": log.admin_id,
                "admin_name": log.admin.name if log.admin else None,
                "action": log.action,
                "target_type": log.target_type,
                "target_id": log.target_id,
                "details": log.details,
                "ip_address": log.ip_address,
                "created_at": log.created_at,
            }
            for log in logs
        ],
        "total": total,
        "page": page,
        "limit": limit,
    }


# ============================================================================
# ADMIN NOTIFICATIONS
# ============================================================================

def notify_admins(
    db: Session,
    clearance_level: str,
    notification_type: str,
    title: str,
    message: Optional[str] = None,
    related_id=None,
) -> int:
    """Stage one notification per active admin holding ``clearance_level``."""
    admins = (
        db.query(models.AdminUser)
        .filter(models.AdminUser.clearance_level == clearance_level, models.AdminUser.is_active.is_(True))
        .all()
    )
    for admin in admins:
        db.add(
            models.AdminNotification(
                admin_id=admin.admin_id,
                type=notification_type,
                title=title,
                message=message,
                related_id=str(related_id) if related_id is not None else None,
            )
        )
    return len(admins)


def list_admin_notifications(db: Session, admin: models.AdminUser, unread_only: bool = False, limit: int = 50):
    query = db.query(models.AdminNotification).filter(models.AdminNotification.admin_id == admin.admin_id)
    if unread_only:
        query = query.filter(models.AdminNotification.is_read.is_(False))
    return (
        query.order_by(models.AdminNotification.created_at.desc(), models.AdminNotification.notification_id.desc())
        .limit(limit)
        .all()
    )


def admin_unread_count(db: Session, admin: models.AdminUser) -> int:
    return (
        db.query(func.count(models.AdminNotification.notification_id))
        .filter(
            models.AdminNotification.admin_id == admin.admin_id,
            models.AdminNotification.is_read.is_(False),
        )
        .scalar()
    )


def mark_admin_notification_read(db: Session, admin: models.AdminUser, notification_id: int) -> models.AdminNotification:
    note = (
        db.query(models.AdminNotification)
        .filter(
            models.AdminNotification.notification_id == notification_id,
            models.AdminNotification.admin_id == admin.admin_id,
        )
        .first()
    )
    if note is None:
        raise NotFoundError("Notification not found")
    note.is_read = True
    db.commit()
    db.refresh(note)
    return note


def mark_all_admin_notifications_read(db: Session, admin: models.AdminUser) -> int:
    updated = (
        db.query(models.AdminNotification)
        .filter(
            models.AdminNotification.admin_id == admin.admin_id,
            models.AdminNotification.is_read.is_(False),
        )
        .update({models.AdminNotification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return updated


def serialize_admin_notification(note: models.AdminNotification) -> Dict[str, Any]:
    return {
        "notification_id": note.notification_id,
        "type": note.type,
        "title": note.title,
        "message": note.message,
        "related_id": note.related_id,
        "is_read": note.is_read,
        "created_at": note.created_at,
    }


# ============================================================================
# ADMIN ACCOUNTS
# ============================================================================

def get_admin(db: Session, admin_id: int) -> models.AdminUser:
    admin = db.get(models.AdminUser, admin_id)
    if admin is None:
        raise NotFoundError("Admin not found")
    return admin


def get_admin_by_employee_id(db: Session, employee_id: str) -> Optional[models.AdminUser]:
    return db.query(models.AdminUser).filter(models.AdminUser.employee_id == employee_id).first()


def record_login(db: Session, admin: models.AdminUser) -> None:
    admin.last_login = utcnow()
    log_admin_action(db, admin.admin_id, "LOGIN", "admin", admin.admin_id)
    db.commit()
    db.refresh(admin)


def list_admins(db: Session) -> List[models.AdminUser]:
    return db.query(models.AdminUser).order_by(models.AdminUser.admin_id).all()


def _check_clearance(level: Optional[str], allowed) -> None:
    if level not in allowed:
        raise StoreError(f"clearance_level must be one of: {', '.join(allowed)}")


def create_admin(
    db: Session,
    data: schemas.AdminCreate,
    password_hash: str,
    allowed_levels,
    created_by: Optional[models.AdminUser] = None,
) -> models.AdminUser:
    if not data.employee_id or not data.name or not data.password:
        raise StoreError("employee_id, name and password are required")
    _check_clearance(data.clearance_level, allowed_levels)
    if get_admin_by_employee_id(db, data.employee_id) is not None:
        raise StoreError("Employee ID already exists")
    admin = models.AdminUser(
        employee_id=data.employee_id,
        name=data.name,
        password=password_hash,
        clearance_level=data.clearance_level,
    )
    db.add(admin)
    db.flush()
    log_admin_action(
        db,
        created_by.admin_id if created_by else None,
        "CREATE_ADMIN",
        "admin",
        admin.admin_id,
        {"employee_id": admin.employee_id, "clearance_level": admin.clearance_level},
    )
    db.commit()
    db.refresh(admin)
    logger.info("Admin %s created with clearance %s", admin.employee_id, admin.clearance_level)
    return admin


def update_admin(
    db: Session,
    admin_id: int,
    data: schemas.AdminUpdate,
    password_hash: Optional[str],
    actor: models.AdminUser,
) -> models.AdminUser:
    admin = get_admin(db, admin_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    changes.pop("password", None)
    if not changes and password_hash is None:
        raise StoreError("Nothing to update")
    for field, value in changes.items():
        setattr(admin, field, value)
    if password_hash is not None:
        admin.password = password_hash
        changes["password"] = "changed"
    log_admin_action(db, actor.admin_id, "UPDATE_ADMIN", "admin", admin.admin_id, changes)
    db.commit()
    db.refresh(admin)
    return admin


def set_clearance(db: Session, admin_id: int, level: Optional[str], allowed_levels, actor: models.AdminUser) -> models.AdminUser:
    _check_clearance(level, allowed_levels)
    admin = get_admin(db, admin_id)
    old_level = admin.clearance_level
    admin.clearance_level = level
    log_admin_action(
        db, actor.admin_id, "UPDATE_CLEARANCE", "admin", admin.admin_id,
        {"old_level": old_level, "new_level": level},
    )
    db.commit()
    db.refresh(admin)
    return admin


def update_own_profile(db: Session, admin: models.AdminUser, data: schemas.AdminProfileUpdate) -> models.AdminUser:
    if not data.name or not data.name.strip():
        raise StoreError("Nothing to update")
    admin.name = data.name.strip()
    log_admin_action(db, admin.admin_id, "UPDATE_PROFILE", "admin", admin.admin_id, {"name": admin.name})
    db.commit()
    db.refresh(admin)
    return admin


def set_own_password(db: Session, admin: models.AdminUser, password_hash: str) -> None:
    admin.password = password_hash
    log_admin_action(db, admin.admin_id, "CHANGE_PASSWORD", "admin", admin.admin_id)
    db.commit()


# ============================================================================
# SIGNUP REQUESTS
# ============================================================================

def create_signup_request(
    db: Session, data: schemas.AdminSignupCreate, password_hash: str, allowed_levels
) -> models.AdminSignupRequest:
    if not data.employee_id or not data.name or not data.password:
        raise StoreError("employee_id, name and password are required")
    _check_clearance(data.requested_clearance, allowed_levels)
    if get_admin_by_employee_id(db, data.employee_id) is not None:
        raise StoreError("Employee ID already exists")
    pending = (
        db.query(models.AdminSignupRequest)
        .filter(
            models.AdminSignupRequest.employee_id == data.employee_id,
            models.AdminSignupRequest.status == "pending",
        )
        .first()
    )
    if pending is not None:
        raise StoreError("A signup request for this employee ID is already pending")

    request = models.AdminSignupRequest(
        employee_id=data.employee_id,
        name=data.name,
        password_hash=password_hash,
        requested_clearance=data.requested_clearance,
        reason=data.reason or data.reason_for_access,
    )
    db.add(request)
    db.flush()
    notify_admins(
        db,
        "GENERAL_MANAGER",
        "signup_request",
        "New admin signup request",
        f"{data.name} ({data.employee_id}) requested {data.requested_clearance} access",
        related_id=request.request_id,
    )
    db.commit()
    db.refresh(request)
    return request


def serialize_signup_request(request: models.AdminSignupRequest) -> Dict[str, Any]:
    return {
        "request_id": request.request_id,
        "employee_id": request.employee_id,
        "name": request.name,
        "requested_clearance": request.requested_clearance,
        "reason": request.reason,
        "status": request.status,
        "reviewed_by": request.reviewed_by,
        "reviewed_at": request.reviewed_at,
        "created_at": request.created_at,
    }


def list_signup_requests(db: Session, status: Optional[str] = "pending") -> List[models.AdminSignupRequest]:
    query = db.query(models.AdminSignupRequest)
    if status and status != "all":
        query = query.filter(models.AdminSignupRequest.status == status)
    return query.order_by(models.AdminSignupRequest.created_at.desc()).all()


def review_signup_request(
    db: Session,
    request_id: int,
    approve: bool,
    reviewer: models.AdminUser,
    assigned_clearance: Optional[str] = None,
    allowed_levels=(),
    rejection_reason: Optional[str] = None,
) -> Dict[str, Any]:
    """Approve (creating the admin account) or reject a pending request.

    ``assigned_clearance`` overrides the requested level on approval; a
    ``rejection_reason`` is kept in the audit log.
    """
    request = db.get(models.AdminSignupRequest, request_id)
    if request is None:
        raise NotFoundError("Signup request not found")
    if request.status != "pending":
        raise StoreError(f"Request already {request.status}")
    if approve and assigned_clearance is not None:
        _check_clearance(assigned_clearance, allowed_levels)

    admin = None
    if approve:
        if get_admin_by_employee_id(db, request.employee_id) is not None:
            raise StoreError("Employee ID already exists")
        admin = models.AdminUser(
            employee_id=request.employee_id,
            name=request.name,
            password=request.password_hash,
            clearance_level=assigned_clearance or request.requested_clearance,
        )
        db.add(admin)
    request.status = "approved" if approve else "rejected"
    request.reviewed_by = reviewer.admin_id
    request.reviewed_at = utcnow()
    db.flush()
    log_admin_action(
        db,
        reviewer.admin_id,
        "APPROVE_SIGNUP" if approve else "REJECT_SIGNUP",
        "signup_request",
        request.request_id,
        {
            "employee_id": request.employee_id,
            "clearance_level": admin.clearance_level if admin else None,
            "rejection_reason": None if approve else rejection_reason,
        },
    )
    db.commit()
    result = {"request": serialize_signup_request(request)}
    if admin is not None:
        db.refresh(admin)
        result["admin_id"] = admin.admin_id
    return result


# ============================================================================
# DASHBOARD, CUSTOMERS AND REPORTS
# ============================================================================

def dashboard_stats(db: Session) -> Dict[str, Any]:
    billable = models.Order.status != "cancelled"
    revenue = db.query(func.coalesce(func.sum(models.Order.total_price), 0)).filter(billable).scalar()
    return {
        "total_products": db.query(func.count(models.Product.id)).scalar(),
        "total_customers": db.query(func.count(models.Customer.id)).scalar(),
        "total_orders": db.query(func.count(models.Order.id)).scalar(),
        "pending_orders": db.query(func.count(models.Order.id)).filter(models.Order.status == "pending").scalar(),
        "total_revenue": round(float(revenue), 2),
        "low_stock_products": db.query(func.count(models.ProductAttribute.id))
        .filter(models.ProductAttribute.stock < config.LOW_STOCK_THRESHOLD)
        .scalar(),
        "pending_questions": db.query(func.count(models.ProductQuestion.id))
        .filter(models.ProductQuestion.status == "pending")
        .scalar(),
        "open_conversations": db.query(func.count(models.Conversation.id))
        .filter(models.Conversation.status.in_(("pending", "active")))
        .scalar(),
    }


def list_users(db: Session) -> List[Dict[str, Any]]:
    """Every account, newest first; ``user_type`` tells shoppers from bare users."""
    rows = (
        db.query(models.GeneralUser, models.Customer.id)
        .outerjoin(models.Customer, models.Customer.user_id == models.GeneralUser.id)
        .order_by(models.GeneralUser.created_at.desc(), models.GeneralUser.id.desc())
        .all()
    )
    return [
        {
            "user_id": user.id,
            "username": user.username,
            "email": user.email,
            "full_name": user.full_name,
            "contact_no": user.contact_no,
            "gender": user.gender,
            "created_at": user.created_at,
            "user_type": "Customer" if customer_id is not None else "User",
        }
        for user, customer_id in rows
    ]


def _customer_rows(db: Session):
    order_stats = (
        db.query(
            models.Order.customer_id.label("customer_id"),
            func.count(models.Order.id).label("order_count"),
            func.coalesce(func.sum(models.Order.total_price), 0).label("total_spent"),
            func.max(models.Order.order_date).label("last_order"),
        )
        .filter(models.Order.status != "cancelled")
        .group_by(models.Order.customer_id)
        .subquery()
    )
    query = (
        db.query(
            models.Customer,
            models.GeneralUser,
            func.coalesce(order_stats.c.order_count, 0),
            func.coalesce(order_stats.c.total_spent, 0),
            order_stats.c.last_order,
        )
        .join(models.GeneralUser, models.GeneralUser.id == models.Customer.user_id)
        .outerjoin(order_stats, order_stats.c.customer_id == models.Customer.id)
    )
    return query


def _serialize_customer(customer, user, order_count, total_spent, last_order) -> Dict[str, Any]:
    return {
        "customer_id": customer.id,
        "user_id": user.id,
        "username": user.username,
        "email": user.email,
        "name": user.full_name,
        "contact_no": user.contact_no,
        "joined": user.created_at,
        "order_count": int(order_count),
        "total_spent": round(float(total_spent), 2),
        "last_order": last_order,
    }


def list_customers(db: Session, search: Optional[str] = None, page: int = 1, limit: int = 20) -> Dict[str, Any]:
    query = _customer_rows(db)
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            models.GeneralUser.username.ilike(pattern)
            | models.GeneralUser.email.ilike(pattern)
            | models.GeneralUser.first_name.ilike(pattern)
            | models.GeneralUser.last_name.ilike(pattern)
        )
    total = query.count()
    rows = query.order_by(models.Customer.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return {"customers": [_serialize_customer(*row) for row in rows], "total": total, "page": page, "limit": limit}


def customer_detail(db: Session, customer_id: int) -> Dict[str, Any]:
    row = _customer_rows(db).filter(models.Customer.id == customer_id).first()
    if row is None:
        raise NotFoundError("Customer not found")
    customer = row[0]
    data = _serialize_customer(*row)
    points = customer.points
    data["points_balance"] = points.points_balance if points else 0
    data["addresses"] = [
        {"id": a.id, "address": a.address, "city": a.city, "zip_code": a.zip_code, "country": a.country}
        for a in customer.addresses
    ]
    data["recent_orders"] = [
        {"id": o.id, "order_date": o.order_date, "status": o.status, "total_price": o.total_price}
        for o in sorted(customer.orders, key=lambda o: o.id, reverse=True)[:10]
    ]
    return data


def _sales_rows(db: Session):
    day = func.date(models.Order.order_date)
    rows = (
        db.query(day, func.count(models.Order.id), func.coalesce(func.sum(models.Order.total_price), 0))
        .filter(models.Order.status != "cancelled")
        .group_by(day)
        .order_by(day)
        .all()
    )
    return ["date", "orders", "revenue"], [(str(d), n, round(float(r), 2)) for d, n, r in rows]


def _product_rows(db: Session):
    rows = (
        db.query(models.Product, models.ProductCategory.name)
        .outerjoin(models.ProductCategory, models.ProductCategory.id == models.Product.category_id)
        .order_by(models.Product.id)
        .all()
    )
    header = ["id", "name", "category", "price", "stock", "units_sold", "availability"]
    return header, [
        (
            p.id,
            p.name,
            category or "",
            p.price,
            p.stock,
            p.attribute.units_sold if p.attribute else 0,
            p.availability,
        )
        for p, category in rows
    ]


def _user_rows(db: Session):
    rows = _customer_rows(db).order_by(models.Customer.id).all()
    header = ["customer_id", "username", "email", "name", "order_count", "total_spent"]
    return header, [
        (c.id, u.username, u.email, u.full_name, int(n), round(float(s), 2)) for c, u, n, s, _ in rows
    ]


def _order_rows(db: Session):
    rows = (
        db.query(models.Order, models.GeneralUser.username)
        .join(models.Customer, models.Customer.id == models.Order.customer_id)
        .join(models.GeneralUser, models.GeneralUser.id == models.Customer.user_id)
        .order_by(models.Order.id)
        .all()
    )
    header = ["id", "customer", "order_date", "status", "payment_method", "discount_amount", "total_price"]
    return header, [
        (o.id, username, o.order_date, o.status, o.payment_method, o.discount_amount, o.total_price)
        for o, username in rows
    ]


_REPORTS = {
    "sales": _sales_rows,
    "products": _product_rows,
    "users": _user_rows,
    "orders": _order_rows,
}


def report_csv(db: Session, report_type: str) -> str:
    """Render one of REPORT_TYPES as CSV text."""
    if report_type not in _REPORTS:
        raise StoreError(f"Report type must be one of: {', '.join(REPORT_TYPES)}")
    header, rows = _REPORTS[report_type](db)
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def clearance_analytics(db: Session) -> Dict[str, Any]:
    by_level = dict(
        db.query(models.AdminUser.clearance_level, func.count(models.AdminUser.admin_id))
        .filter(models.AdminUser.is_active.is_(True))
        .group_by(models.AdminUser.clearance_level)
        .all()
    )
    actions = (
        db.query(models.AdminUser.clearance_level, func.count(models.AdminLog.log_id))
        .join(models.AdminLog, models.AdminLog.admin_id == models.AdminUser.admin_id)
        .group_by(models.AdminUser.clearance_level)
        .all()
    )
    pending = (
        db.query(func.count(models.AdminSignupRequest.request_id))
        .filter(models.AdminSignupRequest.status == "pending")
        .scalar()
    )
    return {
        "admins_by_clearance": by_level,
        "actions_by_clearance": dict(actions),
        "pending_signup_requests": pending,
    }
