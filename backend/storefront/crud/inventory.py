"""
Back-office catalog management: products, categories and stock levels.

Every write is mirrored into ``admin_logs`` in the same commit.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from storefront import config, models, schemas
from storefront.crud import catalog
from storefront.crud.admin import log_admin_action
from storefront.errors import NotFoundError, StoreError

logger = logging.getLogger(__name__)

STOCK_OPERATIONS = ("set", "add", "subtract")
ATTRIBUTE_FIELDS = ("stock", "cost")


def stock_status(stock: int) -> str:
    if stock <= 0:
        return "out_of_stock"
    if stock < config.LOW_STOCK_THRESHOLD:
        return "low_stock"
    return "in_stock"


def serialize_admin_product(product: models.Product) -> Dict[str, Any]:
    data = catalog.serialize_product(product)
    attribute = product.attribute
    data.update(
        {
            "cost": attribute.cost if attribute else 0,
            "units_sold": attribute.units_sold if attribute else 0,
            "stock_status": stock_status(product.stock),
        }
    )
    return data


def get_product(db: Session, product_id: int) -> models.Product:
    product = db.get(models.Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def list_products(
    db: Session,
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    availability: Optional[bool] = None,
    page: int = 1,
    limit: int = 20,
) -> Dict[str, Any]:
    query = db.query(models.Product).options(
        joinedload(models.Product.category), joinedload(models.Product.attribute)
    )
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(models.Product.name.ilike(pattern), models.Product.excerpt.ilike(pattern)))
    if category_id is not None:
        query = query.filter(models.Product.category_id == category_id)
    if availability is not None:
        query = query.filter(models.Product.availability.is_(availability))
    total = query.count()
    products = query.order_by(models.Product.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return {
        "products": [serialize_admin_product(p) for p in products],
        "pagination": catalog.pagination(page, limit, total),
    }


def _validate_product_fields(values: Dict[str, Any]) -> None:
    if "price" in values and (values["price"] is None or values["price"] < 0):
        raise StoreError("price must be a non-negative number")
    percent = values.get("discount_percent")
    if percent is not None and not 0 <= percent <= 100:
        raise StoreError("discount_percent must be between 0 and 100")
    if values.get("stock") is not None and values["stock"] < 0:
        raise StoreError("stock cannot be negative")


def _check_category(db: Session, category_id: Optional[int]) -> None:
    if category_id is not None and db.get(models.ProductCategory, category_id) is None:
        raise StoreError("Invalid category_id")


def create_product(db: Session, data: schemas.ProductIn, admin: models.AdminUser) -> models.Product:
    if not data.name or data.price is None:
        raise StoreError("name and price are required")
    values = data.model_dump()
    _validate_product_fields(values)
    _check_category(db, data.category_id)

    attribute_values = {field: values.pop(field) for field in ATTRIBUTE_FIELDS}
    product = models.Product(**values)
    product.attribute = models.ProductAttribute(**attribute_values)
    db.add(product)
    db.flush()
    log_admin_action(db, admin.admin_id, "CREATE_PRODUCT", "product", product.id, {"name": product.name})
    db.commit()
    db.refresh(product)
    logger.info("Product %s created by admin %s", product.id, admin.admin_id)
    return product


def update_product(db: Session, product_id: int, data: schemas.ProductUpdate, admin: models.AdminUser) -> models.Product:
    """Partial update; only fields present in the request change."""
    product = get_product(db, product_id)
    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise StoreError("Nothing to update")
    _validate_product_fields(changes)
    if "category_id" in changes:
        _check_category(db, changes["category_id"])

    attribute_changes = {f: changes.pop(f) for f in ATTRIBUTE_FIELDS if f in changes}
    for field, value in changes.items():
        setattr(product, field, value)
    if attribute_changes:
        if product.attribute is None:
            product.attribute = models.ProductAttribute()
        for field, value in attribute_changes.items():
            if value is not None:
                setattr(product.attribute, field, value)

    log_admin_action(
        db, admin.admin_id, "UPDATE_PRODUCT", "product", product.id,
        {"fields": sorted(list(changes) + list(attribute_changes))},
    )
    db.commit()
    db.refresh(product)
    return product


def delete_product(db: Session, product_id: int, admin: models.AdminUser) -> None:
    """Cart and build lines go with the product; order lines keep their prices."""
    product = get_product(db, product_id)
    name = product.name
    db.delete(product)
    log_admin_action(db, admin.admin_id, "DELETE_PRODUCT", "product", product_id, {"name": name})
    db.commit()
    logger.info("Product %s deleted by admin %s", product_id, admin.admin_id)


# ============================================================================
# CATEGORIES
# ============================================================================

def list_categories(db: Session) -> List[Dict[str, Any]]:
    rows = (
        db.query(models.ProductCategory, func.count(models.Product.id))
        .outerjoin(models.Product, models.Product.category_id == models.ProductCategory.id)
        .group_by(models.ProductCategory.id)
        .order_by(models.ProductCategory.name)
        .all()
    )
    return [
        {
            "id": category.id,
            "name": category.name,
            "description": category.description,
            "image_url": category.image_url,
            "product_count": count,
        }
        for category, count in rows
    ]


def create_category(db: Session, data: schemas.CategoryIn, admin: models.AdminUser) -> models.ProductCategory:
    if not data.name:
        raise StoreError("name is required")
    category = models.ProductCategory(**data.model_dump())
    db.add(category)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise StoreError("Category already exists")
    log_admin_action(db, admin.admin_id, "CREATE_CATEGORY", "category", category.id, {"name": category.name})
    db.commit()
    db.refresh(category)
    return category


# ============================================================================
# INVENTORY
# ============================================================================

def inventory_overview(db: Session, status: Optional[str] = None) -> Dict[str, Any]:
    products = (
        db.query(models.Product)
        .options(joinedload(models.Product.attribute), joinedload(models.Product.category))
        .order_by(models.Product.name)
        .all()
    )
    rows = [
        {
            "product_id": p.id,
            "name": p.name,
            "category_name": p.category.name if p.category else None,
            "stock": p.stock,
            "cost": p.attribute.cost if p.attribute else 0,
            "units_sold": p.attribute.units_sold if p.attribute else 0,
            "price": p.price,
            "stock_status": stock_status(p.stock),
        }
        for p in products
    ]
    summary = {
        "total_products": len(rows),
        "out_of_stock": sum(1 for r in rows if r["stock_status"] == "out_of_stock"),
        "low_stock": sum(1 for r in rows if r["stock_status"] == "low_stock"),
        "inventory_value": round(sum(r["stock"] * r["cost"] for r in rows), 2),
        "low_stock_threshold": config.LOW_STOCK_THRESHOLD,
    }
    if status:
        rows = [r for r in rows if r["stock_status"] == status]
    return {"inventory": rows, "summary": summary}


def update_stock(db: Session, product_id: int, data: schemas.StockUpdate, admin: models.AdminUser) -> Dict[str, Any]:
    """
    Adjust a product's stock.

    Operations:
        set: stock = value
        add: stock += value
        subtract: stock -= value, floored at 0
    """
    if data.stock is None or data.stock < 0:
        raise StoreError("stock must be a non-negative integer")
    if data.operation not in STOCK_OPERATIONS:
        raise StoreError(f"operation must be one of: {', '.join(STOCK_OPERATIONS)}")
    product = get_product(db, product_id)
    attribute = product.attribute
    if attribute is None:
        attribute = product.attribute = models.ProductAttribute(stock=0)
        db.flush()

    old_stock = attribute.stock or 0
    if data.operation == "set":
        attribute.stock = data.stock
    elif data.operation == "add":
        attribute.stock = old_stock + data.stock
    else:
        attribute.stock = max(0, old_stock - data.stock)

    log_admin_action(
        db, admin.admin_id, "UPDATE_STOCK", "product", product.id,
        {"operation": data.operation, "value": data.stock, "old_stock": old_stock, "new_stock": attribute.stock},
    )
    db.commit()
    return {
        "product_id": product.id,
        "old_stock": old_stock,
        "new_stock": attribute.stock,
        "stock_status": stock_status(attribute.stock),
    }
