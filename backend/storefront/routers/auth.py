"""Customer signup and login (mounted at /api and /api/auth)."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from storefront import schemas, security
from storefront.crud import users as users_crud
from storefront.database import get_db
from storefront.errors import StoreError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.post("/signup", status_code=status.HTTP_201_CREATED)
def signup(data: schemas.SignupRequest, db: Session = Depends(get_db)):
    users_crud.validate_signup(data)
    user = users_crud.create_user(db, data, security.get_password_hash(data.password))
    return {"message": "User created successfully", "user": schemas.UserOut.model_validate(user)}


@router.post("/login")
def login(data: schemas.LoginRequest, db: Session = Depends(get_db)):
    if not data.login_name or not data.password:
        raise StoreError("Username/email and password are required")
    user = users_crud.get_user_by_login(db, data.login_name)
    if user is None or not security.verify_password(data.password, user.password_hash):
        logger.warning("Failed login for %s", data.login_name)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return {
        "message": "Login successful",
        "token": security.create_user_token(user),
        "token_type": "bearer",
        "user": schemas.UserOut.model_validate(user),
    }
