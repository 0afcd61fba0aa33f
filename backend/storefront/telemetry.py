"""
Observability: Prometheus metrics and the OpenTelemetry tracer.

HTTP request counts and latencies are recorded by a middleware for every
route; the domain counters below are bumped by the order and loyalty code.
"""

import time

from fastapi import Request
from opentelemetry import metrics, trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from prometheus_client import Counter, Histogram

from storefront import config

tracer = trace.get_tracer("storefront")
meter = metrics.get_meter("storefront")
checkout_counter = meter.create_counter("storefront.checkouts", description="Checkouts by entry point")

# Prometheus metrics
http_requests_total = Counter("http_requests_total", "Total HTTP requests", ["method", "endpoint", "status"])
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds", "HTTP request duration", ["method", "endpoint"]
)
orders_total = Counter("orders_total", "Total orders", ["status"])
revenue_total = Counter("revenue_total_usd", "Total revenue in USD")
points_awarded_total = Counter("points_awarded_total", "Loyalty points awarded on delivered orders")
vouchers_issued_total = Counter("vouchers_issued_total", "Vouchers minted from loyalty points")


def _endpoint_label(request: Request) -> str:
    # Route templates keep label cardinality bounded (/api/orders/{order_id});
    # requests no route matched share one label
    route = request.scope.get("route")
    return getattr(route, "path", "unmatched")


async def metrics_middleware(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    endpoint = _endpoint_label(request)
    http_requests_total.labels(method=request.method, endpoint=endpoint, status=str(response.status_code)).inc()
    http_request_duration_seconds.labels(method=request.method, endpoint=endpoint).observe(time.time() - start_time)
    return response


def configure_tracing() -> None:
    """Install an SDK tracer provider tagged with the service name.

    Spans are printed to stdout when OTEL_CONSOLE_EXPORT is on; otherwise they
    stay in-process until an exporter is attached by the deployment.
    """
    provider = TracerProvider(resource=Resource.create({"service.name": config.SERVICE_NAME}))
    if config.OTEL_CONSOLE_EXPORT:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
