"""FastAPI application initialization."""

from contextlib import asynccontextmanager
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from account_service.api.middleware import CorrelationIdMiddleware
from account_service.api.routes import router
from account_service.api.users import router as users_router
from account_service.config import get_settings
from account_service.errors import AccountServiceError, AuthError
from account_service.services.logging_service import configure_logging, get_logger
from account_service.services.media_service import CloudinaryUploader


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    from account_service.database import close_database, init_database, run_migrations

    try:
        await init_database()
        await run_migrations()
        logger.info("database_initialized")
    except Exception as e:
        logger.warning(
            "database_initialization_failed",
            error=str(e),
            note="Continuing without database - account endpoints will return 503",
        )

    app.state.uploader = CloudinaryUploader.from_settings(settings)

    logger.info("application_started", log_level=settings.log_level)

    yield

    await app.state.uploader.close()
    await close_database()

    logger.info("application_shutdown")


app = FastAPI(
    title="Account Service",
    description="User accounts, JWT sessions, profile media, and channel profiles",
    version="1.0.0",
    lifespan=lifespan,
)


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or str(uuid4())


@app.exception_handler(AccountServiceError)
async def account_service_exception_handler(
    request: Request, exc: AccountServiceError
) -> JSONResponse:
    """Render domain errors as the standard error envelope."""
    correlation_id = _correlation_id(request)
    logger = structlog.get_logger()

    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "request_failed",
        correlation_id=correlation_id,
        error=exc.error,
        detail=exc.message,
        status_code=exc.status_code,
    )

    headers = {"X-Correlation-Id": correlation_id}
    if isinstance(exc, AuthError):
        headers["WWW-Authenticate"] = "Bearer"

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error,
            "detail": exc.message,
            "correlation_id": correlation_id,
        },
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors with user-friendly messages.

    Returns 400 Bad Request naming the first offending field.
    """
    correlation_id = _correlation_id(request)
    logger = structlog.get_logger()

    errors = exc.errors()
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", ["unknown"]))
        message = first_error.get("msg", "Validation failed")
        detail = f"Field '{field}': {message}"
    else:
        detail = "Request validation failed"

    logger.warning(
        "validation_error",
        correlation_id=correlation_id,
        detail=detail,
    )

    return JSONResponse(
        status_code=400,
        content={
            "error": "validation_error",
            "detail": detail,
            "correlation_id": correlation_id,
        },
        headers={"X-Correlation-Id": correlation_id},
    )


# Cookies carry tokens, so credentials must be allowed
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIdMiddleware)

app.include_router(users_router)
app.include_router(router)
