"""
FastAPI Application - Certificate Issuance & Verification API
"""

from __future__ import annotations

import logging
import secrets
from contextlib import asynccontextmanager
from pathlib import Path

from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from certissuer.config import settings
from certissuer.database import Base, engine
from certissuer.database_async import get_async_session

# Collision-free imports
from certissuer.models import certificate, customer, template  # noqa: F401
from certissuer.observability import (
    MetricsMiddleware,
    configure_logging,
    metrics_response,
)
from certissuer.routers.auth import router as auth_router
from certissuer.routers.certificates import router as certificates_router
from certissuer.routers.customers import router as customers_router
from certissuer.routers.templates import router as templates_router
from certissuer.security import limiter

logger = logging.getLogger(__name__)


# ==========================================
# Database Initialization & Seeding
# ==========================================
def init_database() -> None:
    Base.metadata.create_all(bind=engine)


async def create_admin_customer_on_startup() -> None:
    """Create the operator account from ADMIN_EMAIL / ADMIN_PASSWORD."""
    if not settings.admin_email or not settings.admin_password:
        return

    from fastapi_users.exceptions import UserNotExists
    from fastapi_users_db_sqlalchemy import SQLAlchemyUserDatabase

    from certissuer.auth import CustomerManager
    from certissuer.database_async import AsyncSessionLocal
    from certissuer.models.customer import Customer
    from certissuer.schemas.customer import CustomerCreate
    from certissuer.services.credentials import generate_api_credentials

    async with AsyncSessionLocal() as session:
        manager = CustomerManager(SQLAlchemyUserDatabase(session, Customer))
        try:
            await manager.get_by_email(settings.admin_email)
            logger.info("Admin customer %s exists", settings.admin_email)
            return
        except UserNotExists:
            pass

        api_key, api_secret = generate_api_credentials()
        admin = await manager.create(
            CustomerCreate(
                email=settings.admin_email,
                password=settings.admin_password,
                company_name="Administrator",
                api_key=api_key,
                hashed_api_secret=manager.hash_secret(api_secret),
                is_superuser=True,
                is_verified=True,
            )
        )
        logger.info("Created admin customer %s", admin.email)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application")
    init_database()
    Path(settings.certificates_dir).mkdir(parents=True, exist_ok=True)
    await create_admin_customer_on_startup()
    logger.info("Application ready")
    yield
    logger.info("Shutting down application")


# ==========================================
# Environment
# ==========================================
configure_logging(
    settings.log_level.upper(),
    environment=settings.environment,
    db_echo=settings.db_echo,
)
IS_PROD = settings.is_production


# ==========================================
# Exception handlers (define BEFORE registration)
# ==========================================
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        {"detail": "Rate limit exceeded. Please retry shortly."},
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    """Generic 500; the exception text is exposed outside production only."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    payload = {"detail": "Internal server error"}
    if not IS_PROD:
        payload["message"] = str(exc)
    return JSONResponse(payload, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


# ==========================================
# FastAPI Application
# ==========================================
app = FastAPI(
    title="certissuer",
    description="Signed, verifiable PDF certificates",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None if IS_PROD else "/docs",
    redoc_url=None if IS_PROD else "/redoc",
    openapi_url=None if IS_PROD else "/openapi.json",
)
# Order: rate-limit/metrics → correlation id
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(CorrelationIdMiddleware, header_name="X-Request-ID")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)
if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=[
            "Accept",
            "Content-Type",
            "Authorization",
            "X-API-Key",
            "X-API-Secret",
        ],
    )


# ==========================================
# Health & readiness (minimal in prod)
# ==========================================
@app.get("/healthz", tags=["system"], summary="Health check", response_model=dict)
async def health_check(session: AsyncSession = Depends(get_async_session)) -> dict:
    try:
        await session.execute(text("SELECT 1"))
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="unhealthy"
        )
    if IS_PROD:
        return {"status": "healthy"}
    return {"status": "healthy", "database": "connected", "version": app.version}


@app.get("/readyz", tags=["system"], summary="Readiness check", response_model=dict)
async def readiness_check(session: AsyncSession = Depends(get_async_session)) -> dict:
    try:
        await session.execute(text("SELECT 1"))
        if not Path(settings.certificates_dir).is_dir():
            raise RuntimeError(
                f"Certificates dir missing: {settings.certificates_dir}"
            )
    except Exception as exc:
        detail = "not ready" if IS_PROD else str(exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail
        )
    if IS_PROD:
        return {"status": "ready"}
    return {"status": "ready", "database": "connected", "storage": "available"}


# ==========================================
# Metrics (Protected with HTTP Basic Auth)
# ==========================================
security = HTTPBasic(auto_error=False)


def verify_metrics_auth(
    credentials: HTTPBasicCredentials | None = Depends(security),
) -> str:
    """Verify HTTP Basic Auth credentials for the metrics endpoint."""
    if not settings.metrics_password:
        return credentials.username if credentials else ""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    correct_username = secrets.compare_digest(
        credentials.username, settings.metrics_username
    )
    correct_password = secrets.compare_digest(
        credentials.password, settings.metrics_password
    )
    if not (correct_username and correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username


@app.get("/metrics", include_in_schema=False)
def metrics(_: str = Depends(verify_metrics_auth)):
    """
    Prometheus metrics endpoint.

    Set METRICS_USERNAME and METRICS_PASSWORD to require HTTP Basic Auth.
    """
    return metrics_response()


# ==========================================
# Routers
# ==========================================
app.include_router(auth_router, prefix=settings.api_prefix)
app.include_router(templates_router, prefix=settings.api_prefix)
app.include_router(certificates_router, prefix=settings.api_prefix)
app.include_router(customers_router, prefix=settings.api_prefix)
