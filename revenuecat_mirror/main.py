"""
RevenueCat Mirror API - Main Application
========================================

FastAPI application entry point with middleware configuration
and route registration.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import newrelic.agent

from revenuecat_mirror.config import settings

# Configure logging for the application (root logger defaults to WARNING)
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from revenuecat_mirror.core.errors import setup_exception_handlers
from revenuecat_mirror.db.session import close_db, init_db
from revenuecat_mirror.services.cache import close_redis, init_redis
from revenuecat_mirror.services.cleanup_worker import CleanupWorker

logger = logging.getLogger(__name__)


# =============================================================================
# New Relic Transaction Enrichment Middleware (Raw ASGI)
# =============================================================================

class NewRelicTransactionMiddleware:
    """
    Raw ASGI middleware that enriches every New Relic transaction with
    custom attributes for filtering, alerting, and dashboarding.

    Uses raw ASGI instead of BaseHTTPMiddleware to preserve the async
    context chain. BaseHTTPMiddleware's ``call_next()`` spawns the route
    handler in a separate task, which breaks New Relic's contextvars-based
    span propagation and drops the DB and Redis child spans from traces.

    Captures: response status, latency, HTTP method, route pattern, and the
    RevenueCat event id/type when the webhook route recorded them.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start = time.perf_counter()
        status_code = 500  # default until we capture the real one

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration_ms = (time.perf_counter() - start) * 1000

            txn = newrelic.agent.current_transaction()
            if txn:
                # Route pattern (e.g. "/api/v1/customers/{app_user_id}") for grouping
                route = scope.get("route")
                route_path = route.path if route else scope.get("path", "unknown")

                client = scope.get("client")
                client_ip = client[0] if client else "unknown"

                newrelic.agent.add_custom_attributes([
                    ("http.method", scope.get("method", "")),
                    ("http.route", route_path),
                    ("http.status_code", status_code),
                    ("http.duration_ms", round(duration_ms, 2)),
                    ("http.client_ip", client_ip),
                    ("environment", settings.ENVIRONMENT),
                ])

                # Set by the webhook route
                state = scope.get("state") or {}
                event_id = state.get("webhook_event_id")
                if event_id:
                    newrelic.agent.add_custom_attributes([
                        ("revenuecat.event_id", event_id),
                        ("revenuecat.event_type", state.get("webhook_event_type", "")),
                    ])


_cleanup_worker: CleanupWorker | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events for:
    - Database connection
    - Redis connection (read cache)
    - Cleanup background worker (rate limit counters, webhook event log)
    """
    global _cleanup_worker

    # Startup
    logger.info("Starting RevenueCat Mirror API (%s)", settings.ENVIRONMENT)

    if not settings.REVENUECAT_WEBHOOK_AUTH:
        logger.warning("REVENUECAT_WEBHOOK_AUTH is not set; webhook endpoint is unauthenticated")

    # Initialize database
    try:
        await init_db()
    except Exception as e:
        logger.error("Database connection failed: %s", e)
        # Continue startup even if DB fails (for health checks)

    # Initialize Redis
    if settings.CACHE_ENABLED:
        try:
            await init_redis()
        except Exception as e:
            logger.warning("Redis connection failed, serving reads from the database: %s", e)

    if settings.CLEANUP_WORKER_ENABLED:
        _cleanup_worker = CleanupWorker()
        await _cleanup_worker.start()

    yield

    # Shutdown
    logger.info("Shutting down RevenueCat Mirror API")
    if _cleanup_worker is not None:
        await _cleanup_worker.stop()
        _cleanup_worker = None
    await close_db()
    await close_redis()


# Create FastAPI application
app = FastAPI(
    title="RevenueCat Mirror API",
    description="""
## RevenueCat Mirror

Mirrors RevenueCat subscription state into a local database by consuming
webhook events, and serves entitlement and subscription checks from it.

### Webhooks
- `POST /api/v1/webhooks/revenuecat`: idempotent by event id
- Rate limit: 100 events/minute per RevenueCat app

### Reads
- Customers, entitlements, subscriptions, experiments, invoices,
  transfers and virtual currency
- Require `Authorization: Bearer <API_ACCESS_TOKEN>` when configured
    """,
    version="1.0.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    openapi_url="/openapi.json" if settings.is_development else None,
    lifespan=lifespan,
    responses={
        400: {"description": "Invalid argument"},
        401: {"description": "Not authenticated"},
        404: {"description": "Resource not found"},
        422: {"description": "Validation error"},
        429: {"description": "Rate limit exceeded"},
        500: {"description": "Internal server error"},
    },
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# New Relic transaction enrichment (adds custom attrs to every transaction)
app.add_middleware(NewRelicTransactionMiddleware)

# Setup exception handlers
setup_exception_handlers(app)


# =============================================================================
# Health Check Endpoints
# =============================================================================

@app.get("/health", tags=["Health"])
async def health_check() -> dict:
    """
    Health check endpoint.

    Returns the current status of the API.
    """
    return {
        "status": "healthy",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
    }


@app.get("/", tags=["Health"])
async def root() -> dict:
    """Root endpoint with API information."""
    return {
        "name": "RevenueCat Mirror API",
        "version": "1.0.0",
        "docs": "/docs" if settings.is_development else "Disabled in production",
    }


# =============================================================================
# API Routes
# =============================================================================

from revenuecat_mirror.api.v1 import billing, customers, subscriptions, webhooks

app.include_router(webhooks.router, prefix="/api/v1/webhooks", tags=["Webhooks"])
app.include_router(customers.router, prefix="/api/v1/customers", tags=["Customers"])
app.include_router(subscriptions.router, prefix="/api/v1/subscriptions", tags=["Subscriptions"])
app.include_router(billing.router, prefix="/api/v1/billing", tags=["Billing"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "revenuecat_mirror.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=settings.is_development,
    )
