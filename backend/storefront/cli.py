"""
Operator commands.

    storefront init-db
    storefront create-admin EMP001 "Jane Doe" --clearance GENERAL_MANAGER
    storefront import-products products.csv [--replace]
    storefront notify-vouchers
    storefront expire-vouchers
    storefront serve [--port 8000]

The voucher jobs are meant to run from cron.
"""

import argparse
import csv
import getpass
import json
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from storefront import config, models, schemas, security
from storefront.crud import admin as admin_crud
from storefront.crud import loyalty
from storefront.database import Base, SessionLocal, engine
from storefront.errors import StoreError

logger = logging.getLogger("storefront.cli")

TRUE_VALUES = ("1", "true", "yes", "y")


def init_db(args) -> int:
    Base.metadata.create_all(bind=engine)
    logger.info("Schema created on %s", engine.url.render_as_string(hide_password=True))
    return 0


def create_admin(args) -> int:
    password = args.password or getpass.getpass("Password: ")
    data = schemas.AdminCreate(
        employee_id=args.employee_id, name=args.name, password=password, clearance_level=args.clearance
    )
    with SessionLocal() as db:
        admin = admin_crud.create_admin(db, data, security.get_password_hash(password), security.CLEARANCE_LEVELS)
        logger.info("Created admin %s (id=%s, %s)", admin.employee_id, admin.admin_id, admin.clearance_level)
    return 0


def _category_id(db, name, cache):
    if not name:
        return None
    if name not in cache:
        category = db.query(models.ProductCategory).filter(models.ProductCategory.name == name).first()
        if category is None:
            category = models.ProductCategory(name=name)
            db.add(category)
            db.flush()
        cache[name] = category.id
    return cache[name]


def _product_from_row(db, row, categories) -> models.Product:
    """
    CSV columns: name, price (required); category, excerpt, image_url,
    discount_percent, availability, stock, cost, specs (JSON object).
    """
    discount = float(row.get("discount_percent") or 0)
    product = models.Product(
        name=row["name"].strip(),
        price=float(row["price"]),
        excerpt=row.get("excerpt") or None,
        image_url=row.get("image_url") or None,
        discount_status=discount > 0,
        discount_percent=discount,
        availability=(row.get("availability") or "true").strip().lower() in TRUE_VALUES,
        category_id=_category_id(db, (row.get("category") or "").strip(), categories),
        specs=json.loads(row["specs"]) if row.get("specs") else {},
    )
    product.attribute = models.ProductAttribute(
        stock=int(row.get("stock") or 0), cost=float(row.get("cost") or 0)
    )
    return product


def import_products(args) -> int:
    """Load products from CSV in one transaction; a bad row aborts the import."""
    with SessionLocal() as db, open(args.csv_file, newline="", encoding="utf-8") as handle:
        try:
            if args.replace:
                removed = db.query(models.Product).delete(synchronize_session=False)
                logger.info("Removed %d existing products", removed)
            categories = {}
            count = 0
            for line_no, row in enumerate(csv.DictReader(handle), start=2):
                try:
                    db.add(_product_from_row(db, row, categories))
                except (KeyError, ValueError) as exc:
                    raise StoreError(f"{args.csv_file}:{line_no}: {exc}")
                count += 1
            db.commit()
        except (StoreError, SQLAlchemyError):
            db.rollback()
            raise
    logger.info("Imported %d products", count)
    return 0


def notify_vouchers(args) -> int:
    with SessionLocal() as db:
        loyalty.notify_vouchers_available(db)
    return 0


def expire_vouchers(args) -> int:
    with SessionLocal() as db:
        expired = loyalty.expire_vouchers(db)
    logger.info("Expired %d vouchers", expired)
    return 0


def serve(args) -> int:
    import uvicorn

    uvicorn.run("storefront.main:app", host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storefront", description="LogicBuilders storefront operations")
    parser.add_argument("--log-level", default=None, help="override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="create all tables").set_defaults(func=init_db)

    p = sub.add_parser("create-admin", help="create a staff account")
    p.add_argument("employee_id")
    p.add_argument("name")
    p.add_argument("--clearance", default="GENERAL_MANAGER", choices=security.CLEARANCE_LEVELS)
    p.add_argument("--password", help="prompted for when omitted")
    p.set_defaults(func=create_admin)

    p = sub.add_parser("import-products", help="load products from a CSV file")
    p.add_argument("csv_file")
    p.add_argument("--replace", action="store_true", help="delete existing products first")
    p.set_defaults(func=import_products)

    sub.add_parser("notify-vouchers", help="remind customers about active vouchers").set_defaults(
        func=notify_vouchers
    )
    sub.add_parser("expire-vouchers", help="mark overdue vouchers expired").set_defaults(func=expire_vouchers)

    p = sub.add_parser("serve", help="run the API with uvicorn")
    p.add_argument("--host", default="0.0.0.0")
    p.add_argument("--port", type=int, default=config.PORT)
    p.set_defaults(func=serve)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config.configure_logging(args.log_level)
    try:
        return args.func(args)
    except StoreError as exc:
        logger.error("%s", exc.detail)
        return 1


if __name__ == "__main__":
    sys.exit(main())
