"""PC builds: customer-owned bundles of products."""

from typing import Any, Dict, List

from sqlalchemy.orm import Session, selectinload

from storefront import models, schemas
from storefront.errors import NotFoundError, StoreError

BUILD_STATUSES = ("draft", "completed", "ordered")


def serialize_build(build: models.Build, with_products: bool = False) -> Dict[str, Any]:
    data = {
        "id": build.id,
        "name": build.name,
        "description": build.description,
        "status": build.status,
        "created_at": build.created_at,
        "updated_at": build.updated_at,
        "product_count": sum(bp.quantity for bp in build.products),
        "total_price": build.total_price,
    }
    if with_products:
        data["products"] = [
            {
                "id": bp.id,
                "product_id": bp.product_id,
                "name": bp.product.name,
                "image_url": bp.product.image_url,
                "price": bp.product.price,
                "quantity": bp.quantity,
                "category_name": bp.product.category.name if bp.product.category else None,
                "availability": bp.product.availability,
            }
            for bp in build.products
        ]
    return data


def list_builds(db: Session, customer: models.Customer) -> List[models.Build]:
    return (
        db.query(models.Build)
        .options(selectinload(models.Build.products).selectinload(models.BuildProduct.product))
        .filter(models.Build.customer_id == customer.id)
        .order_by(models.Build.created_at.desc(), models.Build.id.desc())
        .all()
    )


def get_build(db: Session, customer: models.Customer, build_id: int) -> models.Build:
    build = (
        db.query(models.Build)
        .filter(models.Build.id == build_id, models.Build.customer_id == customer.id)
        .first()
    )
    if build is None:
        raise NotFoundError("Build not found")
    return build


def create_build(db: Session, customer: models.Customer, data: schemas.BuildCreate) -> models.Build:
    build = models.Build(customer_id=customer.id, name=data.name or "My Build", description=data.description)
    db.add(build)
    db.commit()
    db.refresh(build)
    return build


def add_product(db: Session, customer: models.Customer, build_id: int, data: schemas.BuildProductAdd) -> models.Build:
    build = get_build(db, customer, build_id)
    if data.product_id is None:
        raise StoreError("product_id is required")
    if data.quantity < 1:
        raise StoreError("Quantity must be at least 1")
    product = db.get(models.Product, data.product_id)
    if product is None:
        raise NotFoundError("Product not found")
    if not product.availability:
        raise StoreError("Product is not available")

    existing = next((bp for bp in build.products if bp.product_id == product.id), None)
    if existing is not None:
        existing.quantity += data.quantity
    else:
        build.products.append(models.BuildProduct(product_id=product.id, quantity=data.quantity))
    db.commit()
    db.refresh(build)
    return build


def update_build(db: Session, customer: models.Customer, build_id: int, data: schemas.BuildUpdate) -> models.Build:
    build = get_build(db, customer, build_id)
    update_data = data.model_dump(exclude_unset=True, exclude_none=True)
    if not update_data:
        raise StoreError("Nothing to update")
    if "status" in update_data and update_data["status"] not in BUILD_STATUSES:
        raise StoreError(f"status must be one of: {', '.join(BUILD_STATUSES)}")
    for field, value in update_data.items():
        setattr(build, field, value)
    db.commit()
    db.refresh(build)
    return build


def remove_product(db: Session, customer: models.Customer, build_id: int, product_id: int) -> models.Build:
    build = get_build(db, customer, build_id)
    line = next((bp for bp in build.products if bp.product_id == product_id), None)
    if line is None:
        raise NotFoundError("Product not found in build")
    build.products.remove(line)
    db.commit()
    db.refresh(build)
    return build


def delete_build(db: Session, customer: models.Customer, build_id: int) -> None:
    db.delete(get_build(db, customer, build_id))
    db.commit()
