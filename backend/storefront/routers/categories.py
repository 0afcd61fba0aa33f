"""Category pages: listing, filtered product grid and filter options."""

from typing import List

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from storefront import schemas
from storefront.crud import catalog
from storefront.database import get_db
from storefront.errors import NotFoundError

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=List[schemas.CategoryOut])
def list_categories(db: Session = Depends(get_db)):
    return catalog.list_categories(db)


@router.get("/{category_id}")
def get_category(category_id: int, db: Session = Depends(get_db)):
    category = catalog.get_category(db, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    return category


@router.get("/{category_id}/products")
def category_products(
    category_id: int,
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    db: Session = Depends(get_db),
):
    # spec_<key> filters are open-ended, so the raw query string is passed down
    return catalog.category_products(db, category_id, request.query_params, page, limit)


@router.get("/{category_id}/filters")
def category_filters(category_id: int, db: Session = Depends(get_db)):
    if catalog.get_category(db, category_id) is None:
        raise NotFoundError("Category not found")
    return catalog.category_filters(db, category_id)
