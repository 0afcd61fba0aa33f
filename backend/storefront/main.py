"""
LogicBuilders Storefront API with OpenTelemetry Instrumentation
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.exc import SQLAlchemyError

from storefront import __version__, config, models  # noqa: F401  (models registers the tables)
from storefront.database import Base, db_healthcheck, engine
from storefront.errors import StoreError
from storefront.routers import (
    admin,
    admin_promotions,
    auth,
    builds,
    cart,
    categories,
    messaging,
    notifications,
    orders,
    products,
    qa,
    ratings,
    users,
    vouchers,
)
from storefront.telemetry import configure_tracing, metrics_middleware

logger = logging.getLogger(__name__)

app = FastAPI(
    title="LogicBuilders Storefront API",
    description="Storefront backend: catalog, carts, PC builds, orders, loyalty and support",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(metrics_middleware)

Base.metadata.create_all(bind=engine)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    # A malformed email is a plain 400, like the other account field checks
    if any(error["loc"][-1] == "email" for error in exc.errors()):
        return JSONResponse(status_code=400, content={"detail": "Invalid email address"})
    return await request_validation_exception_handler(request, exc)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    # The request's session is rolled back when get_db closes it
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Database error"})


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": config.SERVICE_NAME}


@app.get("/health/db")
async def health_check_db():
    if db_healthcheck():
        return {"status": "healthy", "database": "connected"}
    return JSONResponse(status_code=503, content={"status": "unhealthy", "database": "unreachable"})


@app.get("/metrics")
async def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


# Both paths are used by the storefront clients
app.include_router(auth.router, prefix="/api")
app.include_router(auth.router, prefix="/api/auth")

for module in (users, products, categories, cart, builds, orders, ratings, qa, messaging, notifications):
    app.include_router(module.router, prefix="/api")
app.include_router(vouchers.router, prefix="/api")
app.include_router(vouchers.account_router, prefix="/api")
app.include_router(admin_promotions.router, prefix="/api")
app.include_router(admin.router, prefix="/api")

FastAPIInstrumentor.instrument_app(app)


@app.on_event("startup")
async def startup_event():
    config.configure_logging()
    configure_tracing()
    logger.info("LogicBuilders storefront %s started", __version__)
    logger.info("OpenTelemetry instrumentation active, Prometheus metrics at /metrics")
