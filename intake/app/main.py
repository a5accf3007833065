import traceback
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from intake.app.api.questions import router as questions_router
from intake.app.core.config import settings
from intake.app.core.http_client import init_http_client
from intake.app.core.logging import get_log_context, get_logger, setup_logging
from intake.app.exceptions import (
    ClassificationError,
    IntakeException,
    InvalidQuestionError,
    RateLimitExceededError,
)
from intake.app.middleware.rate_limit import build_rate_limiters, get_rate_limit_headers
from intake.app.middleware.request_id import RequestIdMiddleware, get_request_id
from intake.app.providers.factory import create_provider
from intake.app.services.classifier import LegalClassifier
from intake.app.services.knowledge_base import get_knowledge_base
from intake.app.services.triage import TriageOrchestrator


def _validation_fields(exc: RequestValidationError) -> Dict[str, str]:
    """Map each invalid field name to its first error message."""
    fields: Dict[str, str] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        name = ".".join(loc) or "body"
        fields.setdefault(name, error.get("msg", "Invalid value"))
    return fields


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[Dict[str, Any], None]:
        """Create the shared HTTP client and the triage pipeline on startup."""
        async with init_http_client() as http_client:
            provider = create_provider(http_client)
            app.state.orchestrator = TriageOrchestrator(
                classifier=LegalClassifier(provider),
                knowledge_base=app.state.knowledge_base,
            )
            logger.info(
                "Application startup complete",
                extra={
                    "provider": provider.name,
                    "knowledge_base_version": app.state.knowledge_base.version,
                    "debug_mode": settings.debug,
                },
            )
            yield {}

        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Legal Intake",
        description="Legal question intake with rate limiting and curated answer triage",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Limiter tables and the knowledge base belong to this app instance
    app.state.rate_limiters = build_rate_limiters(settings)
    app.state.knowledge_base = get_knowledge_base()

    # Middleware (last added = first executed)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
        max_age=600,
    )

    app.include_router(questions_router)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Report invalid request bodies as HTTP 400 naming each field."""
        error = InvalidQuestionError(fields=_validation_fields(exc))
        logger.warning(
            f"Invalid request: {', '.join(error.fields)}",
            extra=get_log_context(request_id=get_request_id(request), path=request.url.path),
        )
        return JSONResponse(status_code=error.status_code, content=error.to_response())

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
        """Handle RateLimitExceededError and return HTTP 429 with limiter headers."""
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response(),
            headers=exc.headers,
        )

    @app.exception_handler(ClassificationError)
    async def classification_error_handler(request: Request, exc: ClassificationError) -> JSONResponse:
        """Handle ClassificationError and return HTTP 503."""
        logger.error(
            f"Classification failed: {exc.detail}",
            extra=get_log_context(
                request_id=get_request_id(request),
                cause=repr(exc.__cause__) if exc.__cause__ else None,
            ),
        )
        content = exc.to_response()
        if not settings.debug:
            content["message"] = ClassificationError().message
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=get_rate_limit_headers(request),
        )

    @app.exception_handler(IntakeException)
    async def intake_exception_handler(request: Request, exc: IntakeException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response(),
            headers=get_rate_limit_headers(request),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        Never returns a traceback to the client; full details are logged
        server-side. Debug mode adds the exception message.
        """
        request_id = get_request_id(request)
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={
                "request_id": request_id,
                "exception_type": type(exc).__name__,
                "traceback": traceback.format_exc(),
            },
        )

        content = {
            "success": False,
            "error": "internal_error",
            "message": "Error interno del servidor",
            "request_id": request_id,
        }
        if settings.debug:
            content["message"] = str(exc)
            content["exception_type"] = type(exc).__name__
        return JSONResponse(
            status_code=500, content=content, headers=get_rate_limit_headers(request)
        )

    return app


# Create the application instance
app = create_app()
