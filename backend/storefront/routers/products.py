"""Public catalog: product pages, search and random picks."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.crud import catalog
from storefront.database import get_db
from storefront.errors import NotFoundError

router = APIRouter(prefix="/products", tags=["products"])


@router.get("/random")
def random_products(limit: int = Query(8, ge=1, le=100), db: Session = Depends(get_db)):
    return catalog.random_products(db, limit)


@router.get("/search")
def search_products(
    q: str = "",
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return catalog.search_products(db, q, page, limit)


@router.get("/random-by-category/{category_id}")
def random_by_category(category_id: int, limit: int = Query(8, ge=1, le=100), db: Session = Depends(get_db)):
    return catalog.random_products(db, limit, category_id=category_id)


@router.get("/{product_id}")
def get_product(product_id: int, db: Session = Depends(get_db)):
    product = catalog.get_product_detail(db, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product

