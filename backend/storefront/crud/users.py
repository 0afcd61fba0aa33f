"""Accounts: users, customer profiles and shipping addresses."""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront import models, schemas
from storefront.errors import NotFoundError, StoreError

logger = logging.getLogger(__name__)


def split_full_name(full_name: str) -> Tuple[str, Optional[str]]:
    """Split "Ada King Lovelace" into ("Ada", "King Lovelace")."""
    parts = full_name.strip().split(None, 1)
    first = parts[0] if parts else ""
    last = parts[1] if len(parts) > 1 else None
    return first, last


def get_user(db: Session, user_id: int) -> Optional[models.GeneralUser]:
    return db.get(models.GeneralUser, user_id)


def get_user_by_login(db: Session, login_name: str) -> Optional[models.GeneralUser]:
    """Find a user by username or email (email match is case-insensitive)."""
    return (
        db.query(models.GeneralUser)
        .filter(
            or_(
                models.GeneralUser.username == login_name,
                func.lower(models.GeneralUser.email) == login_name.lower(),
            )
        )
        .first()
    )


def validate_signup(data: schemas.SignupRequest) -> None:
    missing = [f for f in ("username", "email", "password", "full_name") if not getattr(data, f)]
    if missing:
        raise StoreError(f"Missing required fields: {', '.join(missing)}")
    if len(data.password) < 6:
        raise StoreError("Password must be at least 6 characters long")


def create_user(db: Session, data: schemas.SignupRequest, password_hash: str) -> models.GeneralUser:
    """
    Register a user and the customer profile that goes with it.

    Raises:
        StoreError: username or email already taken
    """
    taken = (
        db.query(models.GeneralUser)
        .filter(
            or_(
                models.GeneralUser.username == data.username,
                func.lower(models.GeneralUser.email) == data.email.lower(),
            )
        )
        .first()
    )
    if taken is not None:
        raise StoreError("Username or email already exists")

    first_name, last_name = split_full_name(data.full_name)
    user = models.GeneralUser(
        username=data.username,
        email=data.email,
        password_hash=password_hash,
        first_name=first_name,
        last_name=last_name,
        contact_no=data.contact_no,
        gender=data.gender,
    )
    db.add(user)
    db.flush()
    db.add(models.Customer(user_id=user.id))
    db.commit()
    db.refresh(user)
    logger.info("New user registered: %s (id=%s)", user.username, user.id)
    return user


def get_customer(db: Session, user_id: int) -> Optional[models.Customer]:
    return db.query(models.Customer).filter(models.Customer.user_id == user_id).first()


def get_or_create_customer(db: Session, user_id: int) -> models.Customer:
    customer = get_customer(db, user_id)
    if customer is None:
        customer = models.Customer(user_id=user_id)
        db.add(customer)
        db.commit()
        db.refresh(customer)
    return customer


def update_profile(db: Session, user: models.GeneralUser, data: schemas.ProfileUpdate) -> models.GeneralUser:
    update_data = data.model_dump(exclude_unset=True, exclude_none=True)
    full_name = update_data.pop("full_name", None)
    if full_name:
        user.first_name, user.last_name = split_full_name(full_name)
    for field, value in update_data.items():
        setattr(user, field, value)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise StoreError("Username or email already exists")
    db.refresh(user)
    return user


def set_password(db: Session, user: models.GeneralUser, password_hash: str) -> None:
    user.password_hash = password_hash
    db.commit()


# ============================================================================
# SHIPPING ADDRESSES
# ============================================================================

def _validate_address(data: schemas.AddressIn) -> None:
    if not all([data.address, data.city, data.zip_code, data.country]):
        raise StoreError("All address fields are required")


def list_addresses(db: Session, customer: models.Customer) -> List[models.ShippingAddress]:
    return (
        db.query(models.ShippingAddress)
        .filter(models.ShippingAddress.customer_id == customer.id)
        .order_by(models.ShippingAddress.created_at.desc(), models.ShippingAddress.id.desc())
        .all()
    )


def get_address(db: Session, customer: models.Customer, address_id: int) -> Optional[models.ShippingAddress]:
    return (
        db.query(models.ShippingAddress)
        .filter(
            models.ShippingAddress.id == address_id,
            models.ShippingAddress.customer_id == customer.id,
        )
        .first()
    )


def create_address(db: Session, customer: models.Customer, data: schemas.AddressIn) -> models.ShippingAddress:
    _validate_address(data)
    address = models.ShippingAddress(
        customer_id=customer.id,
        address=data.address,
        city=data.city,
        zip_code=data.zip_code,
        country=data.country,
    )
    db.add(address)
    db.commit()
    db.refresh(address)
    return address


def find_or_add_address(db: Session, customer: models.Customer, data: schemas.AddressIn) -> models.ShippingAddress:
    """Reuse an identical saved address, or stage a new one (flushed, not committed)."""
    _validate_address(data)
    existing = (
        db.query(models.ShippingAddress)
        .filter(
            models.ShippingAddress.customer_id == customer.id,
            models.ShippingAddress.address == data.address,
            models.ShippingAddress.city == data.city,
            models.ShippingAddress.zip_code == data.zip_code,
            models.ShippingAddress.country == data.country,
        )
        .first()
    )
    if existing is not None:
        return existing
    address = models.ShippingAddress(
        customer_id=customer.id,
        address=data.address,
        city=data.city,
        zip_code=data.zip_code,
        country=data.country,
    )
    db.add(address)
    db.flush()
    return address


def update_address(
    db: Session, customer: models.Customer, address_id: int, data: schemas.AddressIn
) -> models.ShippingAddress:
    _validate_address(data)
    address = get_address(db, customer, address_id)
    if address is None:
        raise NotFoundError("Address not found")
    address.address = data.address
    address.city = data.city
    address.zip_code = data.zip_code
    address.country = data.country
    db.commit()
    db.refresh(address)
    return address


def delete_address(db: Session, customer: models.Customer, address_id: int) -> None:
    address = get_address(db, customer, address_id)
    if address is None:
        raise NotFoundError("Address not found")
    db.delete(address)
    db.commit()
