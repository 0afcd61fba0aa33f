"""
Authentication and authorization.

Customers and staff both authenticate with HS256 bearer tokens:

- customer tokens: ``{"sub": "<user id>", "username": ..., "type": "user"}``
- staff tokens: ``{"sub": "<admin id>", "admin_id": ..., "employee_id": ...,
  "clearance_level": ..., "type": "admin"}``

A missing token is a 401, a token that does not verify is a 403.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from storefront import config, models
from storefront.crud import users as users_crud
from storefront.database import get_db

CLEARANCE_LEVELS = (
    "GENERAL_MANAGER",
    "INVENTORY_MANAGER",
    "PRODUCT_EXPERT",
    "ORDER_MANAGER",
    "PROMO_MANAGER",
    "ANALYTICS",
)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login", auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=config.USER_TOKEN_HOURS))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def create_user_token(user: models.GeneralUser) -> str:
    return create_access_token(
        {"sub": str(user.id), "username": user.username, "type": "user"},
        timedelta(hours=config.USER_TOKEN_HOURS),
    )


def create_admin_token(admin: models.AdminUser) -> str:
    return create_access_token(
        {
            "sub": str(admin.admin_id),
            "admin_id": admin.admin_id,
            "employee_id": admin.employee_id,
            "clearance_level": admin.clearance_level,
            "type": "admin",
        },
        timedelta(hours=config.ADMIN_TOKEN_HOURS),
    )


def _decode(token: Optional[str]) -> dict:
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired token")
    if payload.get("sub") is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired token")
    return payload


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> models.GeneralUser:
    payload = _decode(token)
    if payload.get("type", "user") != "user":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Customer token required")
    user = users_crud.get_user(db, int(payload["sub"]))
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def get_current_customer(
    user: models.GeneralUser = Depends(get_current_user), db: Session = Depends(get_db)
) -> models.Customer:
    return users_crud.get_or_create_customer(db, user.id)


def _active_admin(admin: Optional[models.AdminUser]) -> models.AdminUser:
    if admin is None or not admin.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return admin


def _admin_from_payload(db: Session, payload: dict) -> Optional[models.AdminUser]:
    return db.get(models.AdminUser, int(payload.get("admin_id") or payload["sub"]))


def get_current_admin(
    token: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> models.AdminUser:
    """Resolve the staff member behind a staff token (the admin console's login)."""
    payload = _decode(token)
    if payload.get("type") != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return _active_admin(_admin_from_payload(db, payload))


def get_current_staff(
    token: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> models.AdminUser:
    """Like ``get_current_admin``, but support staff may also use their customer token.

    A customer token resolves when that user is linked to an active admin
    account. Only the messaging and Q&A staff endpoints take this dependency.
    """
    payload = _decode(token)
    if payload.get("type") == "admin":
        return _active_admin(_admin_from_payload(db, payload))
    admin = db.query(models.AdminUser).filter(models.AdminUser.user_id == int(payload["sub"])).first()
    return _active_admin(admin)


def has_clearance(admin: models.AdminUser, *levels: str) -> bool:
    return admin.clearance_level == "GENERAL_MANAGER" or admin.clearance_level in levels


def require_clearance(*levels: str):
    """Dependency factory: the admin must hold one of ``levels`` (or be a GM)."""

    def dependency(admin: models.AdminUser = Depends(get_current_admin)) -> models.AdminUser:
        if not has_clearance(admin, *levels):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": "Insufficient clearance level",
                    "required": list(levels),
                    "current": admin.clearance_level,
                },
            )
        return admin

    return dependency
