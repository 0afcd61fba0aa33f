"""
Catalog reads: products, categories, category listings and filter options.

Prices shown to shoppers are *effective* prices: a product with
``discount_status`` on and a positive ``discount_percent`` sells at
``price * (1 - discount_percent / 100)``. Price filters, price sorting and
the filter price range all work on that value.
"""

import math
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import and_, case, func, or_
from sqlalchemy.orm import Session, joinedload

from storefront import models

SORT_FIELDS = ("date_added", "price", "name", "rating")

effective_price = case(
    (
        and_(models.Product.discount_status.is_(True), models.Product.discount_percent > 0),
        models.Product.price * (1 - models.Product.discount_percent / 100.0),
    ),
    else_=models.Product.price,
)


def _rating_stats(db: Session):
    return (
        db.query(
            models.Rating.product_id.label("product_id"),
            func.avg(models.Rating.rating).label("average_rating"),
            func.count(models.Rating.id).label("total_ratings"),
        )
        .group_by(models.Rating.product_id)
        .subquery()
    )


def serialize_product(product: models.Product, average_rating=None, total_ratings=0) -> Dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "excerpt": product.excerpt,
        "image_url": product.image_url,
        "price": product.price,
        "discount_status": product.discount_status,
        "discount_percent": product.discount_percent,
        "effective_price": product.effective_price,
        "availability": product.availability,
        "category_id": product.category_id,
        "category_name": product.category.name if product.category else None,
        "specs": product.specs or {},
        "stock": product.stock,
        "date_added": product.date_added,
        "average_rating": round(float(average_rating), 1) if average_rating is not None else 0,
        "total_ratings": int(total_ratings or 0),
    }


def _with_ratings(db: Session):
    stats = _rating_stats(db)
    query = (
        db.query(models.Product, stats.c.average_rating, stats.c.total_ratings)
        .outerjoin(stats, stats.c.product_id == models.Product.id)
        .options(joinedload(models.Product.category), joinedload(models.Product.attribute))
    )
    return query, stats


def get_product(db: Session, product_id: int) -> Optional[models.Product]:
    return db.get(models.Product, product_id)


def get_product_detail(db: Session, product_id: int) -> Optional[Dict[str, Any]]:
    query, _ = _with_ratings(db)
    row = query.filter(models.Product.id == product_id).first()
    if row is None:
        return None
    return serialize_product(*row)


def random_products(db: Session, limit: int = 8, category_id: Optional[int] = None) -> List[Dict[str, Any]]:
    query, _ = _with_ratings(db)
    query = query.filter(models.Product.availability.is_(True))
    if category_id is not None:
        query = query.filter(models.Product.category_id == category_id)
    return [serialize_product(*row) for row in query.order_by(func.random()).limit(limit).all()]


def search_products(db: Session, q: str, page: int = 1, limit: int = 20) -> Dict[str, Any]:
    """Case-insensitive match on name, excerpt or category name."""
    pattern = f"%{q.strip()}%"
    query, _ = _with_ratings(db)
    query = query.outerjoin(models.ProductCategory, models.ProductCategory.id == models.Product.category_id).filter(
        or_(
            models.Product.name.ilike(pattern),
            models.Product.excerpt.ilike(pattern),
            models.ProductCategory.name.ilike(pattern),
        )
    )
    total = query.count()
    rows = query.order_by(models.Product.name).offset((page - 1) * limit).limit(limit).all()
    return {
        "query": q,
        "products": [serialize_product(*row) for row in rows],
        "pagination": pagination(page, limit, total),
    }


def pagination(page: int, limit: int, total: int) -> Dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "currentPage": page,
        "totalPages": total_pages,
        "totalItems": total,
        "itemsPerPage": limit,
        "hasNext": page < total_pages,
        "hasPrev": page > 1,
    }


# ============================================================================
# CATEGORIES
# ============================================================================

def list_categories(db: Session) -> List[models.ProductCategory]:
    return db.query(models.ProductCategory).order_by(models.ProductCategory.name).all()


def get_category(db: Session, category_id: int) -> Optional[Dict[str, Any]]:
    category = db.get(models.ProductCategory, category_id)
    if category is None:
        return None
    product_count = (
        db.query(func.count(models.Product.id))
        .filter(models.Product.category_id == category_id, models.Product.availability.is_(True))
        .scalar()
    )
    return {
        "id": category.id,
        "name": category.name,
        "description": category.description,
        "image_url": category.image_url,
        "product_count": product_count,
    }


def category_products(
    db: Session,
    category_id: int,
    params: Mapping[str, str],
    page: int = 1,
    limit: int = 12,
) -> Dict[str, Any]:
    """
    Filtered, sorted, paginated listing for a category page.

    Args:
        params: Raw query parameters. Understood keys:
            availability: "true" (default) | "false" | "all"
            minPrice / maxPrice: bounds on the effective price
            sortBy: date_added | price | name | rating (default date_added)
            sortOrder: ASC | DESC (default DESC)
            spec_<key>=<text>: substring match on specs[key]; several spec
                filters widen the result (any one may match)
    """
    query, stats = _with_ratings(db)
    query = query.filter(models.Product.category_id == category_id)

    availability = params.get("availability", "true")
    if availability != "all":
        query = query.filter(models.Product.availability.is_(availability == "true"))

    min_price = _to_float(params.get("minPrice"))
    if min_price is not None:
        query = query.filter(effective_price >= min_price)
    max_price = _to_float(params.get("maxPrice"))
    if max_price is not None:
        query = query.filter(effective_price <= max_price)

    spec_conditions = [
        models.Product.specs[key[len("spec_"):]].as_string().ilike(f"%{value}%")
        for key, value in params.items()
        if key.startswith("spec_") and value
    ]
    if spec_conditions:
        query = query.filter(or_(*spec_conditions))

    sort_by = params.get("sortBy", "date_added")
    if sort_by not in SORT_FIELDS:
        sort_by = "date_added"
    sort_column = {
        "date_added": models.Product.date_added,
        "price": effective_price,
        "name": models.Product.name,
        "rating": func.coalesce(stats.c.average_rating, 0),
    }[sort_by]
    descending = params.get("sortOrder", "DESC").upper() != "ASC"

    total = query.count()
    rows = (
        query.order_by(sort_column.desc() if descending else sort_column.asc(), models.Product.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "products": [serialize_product(*row) for row in rows],
        "pagination": pagination(page, limit, total),
    }


def category_filters(db: Session, category_id: int) -> Dict[str, Any]:
    available = (
        models.Product.category_id == category_id,
        models.Product.availability.is_(True),
    )
    min_price, max_price = db.query(func.min(effective_price), func.max(effective_price)).filter(*available).one()

    spec_options: Dict[str, set] = {}
    for (specs,) in db.query(models.Product.specs).filter(*available):
        for key, value in (specs or {}).items():
            if value is not None and value != "":
                spec_options.setdefault(key, set()).add(str(value))

    return {
        "priceRange": {
            "min": round(float(min_price), 2) if min_price is not None else 0,
            "max": round(float(max_price), 2) if max_price is not None else 1000,
        },
        "specs": {key: sorted(values) for key, values in spec_options.items()},
        "availabilityOptions": [
            {"value": "true", "label": "In Stock"},
            {"value": "false", "label": "Out of Stock"},
            {"value": "all", "label": "All"},
        ],
        "sortOptions": [
            {"value": "date_added", "label": "Newest First"},
            {"value": "price", "label": "Price"},
            {"value": "name", "label": "Name"},
            {"value": "rating", "label": "Highest Rated"},
        ],
    }


def _to_float(value: Optional[str]) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        result = float(value)
    except ValueError:
        return None
    return None if math.isnan(result) else result
