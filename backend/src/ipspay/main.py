"""FastAPI application entry point."""
import traceback
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from sqlalchemy.exc import SQLAlchemyError

from ipspay.cache import cache
from ipspay.config import settings
from ipspay.errors import AmountMismatchError, PaymentError
from ipspay.middleware.logging import LoggingMiddleware, setup_logging
from ipspay.middleware.metrics import MetricsMiddleware
from ipspay.schemas.error import REMEDIATION_HINTS, ErrorCode, ErrorDetail
from ipspay.services.ips_qr import IpsQrEncoder

setup_logging()
logger = structlog.get_logger(__name__)


def _request_id(request: Request) -> str:
    return request.headers.get("x-request-id", f"req_{uuid.uuid4().hex[:12]}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    logger.info("application_starting", env=settings.app_env)
    # Raises ConfigurationError on a bad recipient setup; startup stops here
    encoder = IpsQrEncoder.from_settings()
    logger.info("ips_recipient_configured", account=encoder.recipient_account)
    yield
    await cache.close()
    logger.info("application_shutting_down")


app = FastAPI(
    title="IPS Payments",
    description="IPS QR payment references, intents and reconciliation",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(MetricsMiddleware)
app.add_middleware(LoggingMiddleware)

metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.exception_handler(PaymentError)
async def payment_exception_handler(request: Request, exc: PaymentError) -> JSONResponse:
    """
    Handle ledger and purchase errors.

    Status and code come from the exception class.
    """
    request_id = _request_id(request)

    detail = {"code": exc.code, "message": exc.message}
    if exc.reference_number:
        detail["field"] = "reference_number"
        detail["value"] = exc.reference_number
    details = [ErrorDetail(**detail).model_dump()]
    if isinstance(exc, AmountMismatchError):
        details.append(
            ErrorDetail(
                code=exc.code,
                message=f"expected {exc.expected}, observed {exc.observed}",
                field="amount",
                value=exc.observed,
            ).model_dump()
        )

    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "payment_error",
        path=request.url.path,
        method=request.method,
        request_id=request_id,
        error=exc.error,
        code=exc.code,
        message=exc.message,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error,
            "message": exc.message,
            "details": details,
            "remediation": REMEDIATION_HINTS.get(exc.code),
            "request_id": request_id,
            "timestamp": datetime.utcnow().isoformat() + "Z",
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle Pydantic validation errors with structured response.

    Returns 422 with field-level validation errors.
    """
    request_id = _request_id(request)

    code_mapping = {
        "uuid_parsing": ErrorCode.INVALID_UUID,
        "uuid_type": ErrorCode.INVALID_UUID,
        "enum": ErrorCode.INVALID_ENUM_VALUE,
        "missing": ErrorCode.MISSING_REQUIRED_FIELD,
        "int_parsing": ErrorCode.INVALID_AMOUNT,
        "int_type": ErrorCode.INVALID_AMOUNT,
        "greater_than": ErrorCode.INVALID_AMOUNT,
    }

    details = []
    for error in exc.errors():
        details.append(
            ErrorDetail(
                code=code_mapping.get(error["type"], "validation_error"),
                message=error["msg"],
                field=".".join(str(loc) for loc in error["loc"]),
                value=error.get("input"),
            ).model_dump()
        )

    logger.warning(
        "validation_error",
        path=request.url.path,
        method=request.method,
        request_id=request_id,
        error_count=len(details),
    )

    return JSONResponse(
        status_code=422,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "details": details,
            "remediation": "Check the API documentation for correct request format at /docs",
            "request_id": request_id,
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "documentation_url": f"{request.base_url}docs",
        },
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """
    Handle database errors.

    Returns 503 Service Unavailable.
    """
    request_id = _request_id(request)

    logger.error(
        "database_error",
        path=request.url.path,
        method=request.method,
        request_id=request_id,
        error_type=type(exc).__name__,
        error_message=str(exc),
    )

    # Don't expose internal database details in production
    error_message = "Database temporarily unavailable" if settings.app_env == "production" else str(exc)

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error": "DatabaseError",
            "message": "A database error occurred",
            "details": [
                {
                    "code": ErrorCode.DATABASE_ERROR,
                    "message": error_message,
                }
            ],
            "remediation": REMEDIATION_HINTS.get(ErrorCode.DATABASE_ERROR),
            "request_id": request_id,
            "timestamp": datetime.utcnow().isoformat() + "Z",
        },
        headers={"Retry-After": "30"},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle all other uncaught exceptions.

    Logs the full stack trace but returns a safe message to the client.
    """
    request_id = _request_id(request)

    logger.exception(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        request_id=request_id,
        exception_type=type(exc).__name__,
        exception_message=str(exc),
        stack_trace=traceback.format_exc(),
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "InternalServerError",
            "message": "An unexpected error occurred",
            "details": [
                {
                    "code": ErrorCode.INTERNAL_ERROR,
                    "message": str(exc) if settings.debug else "Internal server error",
                }
            ],
            "remediation": "Please contact support with the request ID",
            "request_id": request_id,
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "documentation_url": f"{request.base_url}docs",
        },
    )


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "service": "IPS Payments",
        "version": "0.1.0",
        "status": "operational",
        "docs": "/docs",
    }


from ipspay.api.v1 import health, payments, settings as settings_routes  # noqa: E402

app.include_router(health.router, tags=["Health"])
app.include_router(payments.router, prefix="/v1", tags=["Payments"])
app.include_router(settings_routes.router, prefix="/v1", tags=["Settings"])
