from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from bookshare.core.config import get_settings
from bookshare.core.logging_config import setup_logging
from bookshare.db.create_tables import create_all
from bookshare.db.session import get_session
from bookshare.domain.errors import BookshareError, BusinessErrorCode
from bookshare.routers import auth as auth_router
from bookshare.routers import books as books_router
from bookshare.services.auth_service import AuthService
from bookshare.services.book_service import BookService
from bookshare.services.credential_issuer import CredentialIssuer
from bookshare.services.lending_ledger import LendingLedger

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Internal error, please contact the administrator"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Inject baseline security headers (anti clickjacking, no sniffing, referrer policy)."""

    def __init__(self, app, *, enforce_hsts: bool) -> None:
        super().__init__(app)
        self._enforce_hsts = enforce_hsts

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("Cache-Control", "no-store")
        if self._enforce_hsts:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response


def _error_body(
    *,
    code: BusinessErrorCode | None = None,
    error: str | None = None,
    validation_errors: list[str] | None = None,
    description: str | None = None,
) -> dict:
    return {
        "business_error_code": code.code if code else None,
        "business_error_description": description or (code.description if code else None),
        "error": error,
        "validation_errors": validation_errors,
    }


async def handle_business_error(request: Request, exc: BookshareError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(code=exc.error_code, error=exc.message),
    )


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = set()
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        message = err.get("msg", "Invalid value")
        messages.add(f"{location}: {message}" if location else message)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(code=BusinessErrorCode.VALIDATION_FAILED, validation_errors=sorted(messages)),
    )


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(error=str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(description="Internal Server Error", error=GENERIC_ERROR),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up Bookshare API...")
    create_all()
    yield
    logger.info("Shutting down Bookshare API...")


def create_app() -> FastAPI:
    """Build the FastAPI application with services wired into app.state."""
    setup_logging()
    settings = get_settings()

    app = FastAPI(title="Bookshare API", version="1.0.0", lifespan=lifespan)

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_origins),
            allow_credentials=True,
            allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type"],
        )
    app.add_middleware(SecurityHeadersMiddleware, enforce_hsts=settings.app_env == "prod")

    app.add_exception_handler(BookshareError, handle_business_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    issuer = CredentialIssuer()
    app.state.credential_issuer = issuer
    app.state.auth_service = AuthService(issuer=issuer)
    app.state.book_service = BookService()
    app.state.lending_ledger = LendingLedger()

    @app.get("/health", tags=["system"])
    def health_check():
        try:
            with get_session() as session:
                session.execute(text("SELECT 1"))
        except Exception:
            logger.exception("Health check failed")
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "unhealthy", "database": "unavailable"},
            )
        return {"status": "healthy", "database": "connected"}

    app.include_router(auth_router.router)
    app.include_router(books_router.router)
    return app
