"""Profile, password and saved shipping addresses of the signed-in user."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from storefront import models, schemas, security
from storefront.crud import users as users_crud
from storefront.database import get_db
from storefront.errors import StoreError

router = APIRouter(prefix="/user", tags=["user"])


@router.get("/profile", response_model=schemas.UserOut)
def get_profile(user: models.GeneralUser = Depends(security.get_current_user)):
    return user


@router.put("/profile", response_model=schemas.UserOut)
def update_profile(
    data: schemas.ProfileUpdate,
    user: models.GeneralUser = Depends(security.get_current_user),
    db: Session = Depends(get_db),
):
    return users_crud.update_profile(db, user, data)


@router.put("/password")
def change_password(
    data: schemas.PasswordChange,
    user: models.GeneralUser = Depends(security.get_current_user),
    db: Session = Depends(get_db),
):
    if not data.current_password or not data.new_password:
        raise StoreError("Current password and new password are required")
    if len(data.new_password) < 6:
        raise StoreError("New password must be at least 6 characters long")
    if not security.verify_password(data.current_password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
    users_crud.set_password(db, user, security.get_password_hash(data.new_password))
    return {"message": "Password updated successfully"}


@router.get("/addresses", response_model=List[schemas.AddressOut])
def list_addresses(
    customer: models.Customer = Depends(security.get_current_customer), db: Session = Depends(get_db)
):
    return users_crud.list_addresses(db, customer)


@router.post("/addresses", response_model=schemas.AddressOut, status_code=status.HTTP_201_CREATED)
def create_address(
    data: schemas.AddressIn,
    customer: models.Customer = Depends(security.get_current_customer),
    db: Session = Depends(get_db),
):
    return users_crud.create_address(db, customer, data)


@router.put("/addresses/{address_id}", response_model=schemas.AddressOut)
def update_address(
    address_id: int,
    data: schemas.AddressIn,
    customer: models.Customer = Depends(security.get_current_customer),
    db: Session = Depends(get_db),
):
    return users_crud.update_address(db, customer, address_id, data)


@router.delete("/addresses/{address_id}")
def delete_address(
    address_id: int,
    customer: models.Customer = Depends(security.get_current_customer),
    db: Session = Depends(get_db),
):
    users_crud.delete_address(db, customer, address_id)
    return {"message": "Address deleted successfully"}
