"""PC builds owned by the signed-in customer."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from storefront import models, schemas, security
from storefront.crud import builds
from storefront.database import get_db

router = APIRouter(prefix="/builds", tags=["builds"])


@router.get("")
def list_builds(customer: models.Customer = Depends(security.get_current_customer), db: Session = Depends(get_db)):
    return [builds.serialize_build(b) for b in builds.list_builds(db, customer)]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_build(
    data: schemas.BuildCreate,
    customer: models.Customer = Depends(security.get_current_customer),
    db: Session = Depends(get_db),
):
    return builds.serialize_build(builds.create_build(db, customer, data))


@router.get("/{build_id}")
def get_build(
    build_id: int,
    customer: models.Customer = Depends(security.get_current_customer),
    db: Session = Depends(get_db),
):
    return builds.serialize_build(builds.get_build(db, customer, build_id), with_products=True)


@router.post("/{build_id}/products", status_code=status.HTTP_201_CREATED)
def add_build_product(
    build_id: int,
    data: schemas.BuildProductAdd,
    customer: models.Customer = Depends(security.get_current_customer),
    db: Session = Depends(get_db),
):
    return builds.serialize_build(builds.add_product(db, customer, build_id, data), with_products=True)


@router.put("/{build_id}")
def update_build(
    build_id: int,
    data: schemas.BuildUpdate,
    customer: models.Customer = Depends(security.get_current_customer),
    db: Session = Depends(get_db),
):
    return builds.serialize_build(builds.update_build(db, customer, build_id, data))


@router.delete("/{build_id}/products/{product_id}")
def remove_build_product(
    build_id: int,
    product_id: int,
    customer: models.Customer = Depends(security.get_current_customer),
    db: Session = Depends(get_db),
):
    return builds.serialize_build(builds.remove_product(db, customer, build_id, product_id), with_products=True)


@router.delete("/{build_id}")
def delete_build(
    build_id: int,
    customer: models.Customer = Depends(security.get_current_customer),
    db: Session = Depends(get_db),
):
    builds.delete_build(db, customer, build_id)
    return {"message": "Build deleted successfully"}
