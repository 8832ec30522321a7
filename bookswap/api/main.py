"""
bookswap.api.main — FastAPI application entry point
====================================================

Run with::

    uvicorn bookswap.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

load_dotenv()

from bookswap.api.deps import Services  # noqa: E402
from bookswap.api.routes.billing import router as billing_router  # noqa: E402
from bookswap.api.routes.books import router as books_router  # noqa: E402
from bookswap.api.routes.swaps import router as swaps_router  # noqa: E402
from bookswap.api.routes.users import router as users_router  # noqa: E402
from bookswap.config import load_config  # noqa: E402
from bookswap.database.engine import create_db_engine  # noqa: E402
from bookswap.services.billing_service import create_payment_client  # noqa: E402
from bookswap.services.email_service import create_email_sender  # noqa: E402
from bookswap.services.exceptions import (  # noqa: E402
    BillingUnavailable,
    BookSwapError,
    ConflictError,
    Forbidden,
    InvalidOperation,
    NotFound,
    ValidationError,
)
from bookswap.services.notification_service import NotificationDispatcher  # noqa: E402

logger = logging.getLogger(__name__)

# Most specific first; NotEntitled is caught as Forbidden.
ERROR_STATUS: tuple[tuple[type[BookSwapError], int], ...] = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (Forbidden, status.HTTP_403_FORBIDDEN),
    (InvalidOperation, status.HTTP_400_BAD_REQUEST),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ConflictError, status.HTTP_409_CONFLICT),
    (BillingUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(exc: BookSwapError) -> int:
    for cls, code in ERROR_STATUS:
        if isinstance(exc, cls):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


def build_services() -> Services:
    """Construct every external collaborator from config + environment."""
    cfg = load_config(os.getenv("BOOKSWAP_CONFIG", "config.yaml"))
    engine = create_db_engine()
    notifier = NotificationDispatcher(
        create_email_sender(cfg),
        app_name=cfg.app_name,
        app_url=cfg.app_url,
        max_queue=cfg.notification_queue_size,
    )
    return Services(
        engine=engine,
        config=cfg,
        notifier=notifier,
        payments=create_payment_client(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: build collaborators, run the notification worker."""
    services = build_services()
    services.notifier.start()
    app.state.services = services
    logger.info("BookSwap API started (%s)", services.engine.url.database)
    yield
    logger.info("BookSwap API shutting down")
    services.notifier.stop()
    if services.payments is not None:
        services.payments.close()
    services.engine.dispose()


app = FastAPI(
    title="BookSwap API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BookSwapError)
async def bookswap_error_handler(request: Request, exc: BookSwapError) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    return JSONResponse(status_code=code, content={"error": str(exc)})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def _describe_validation_error(err: dict) -> str:
    # loc starts with the source ("body", "query", ...), which is dropped.
    field = ".".join(str(part) for part in err.get("loc", ())[1:])
    return f"{field}: {err.get('msg')}" if field else str(err.get("msg"))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = "; ".join(_describe_validation_error(err) for err in exc.errors())
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": message or "Invalid request"},
    )


app.include_router(users_router, prefix="/api")
app.include_router(books_router, prefix="/api")
app.include_router(swaps_router, prefix="/api")
app.include_router(billing_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
