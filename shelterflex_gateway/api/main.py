"""FastAPI application factory"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from shelterflex_gateway.api.middleware import REQUEST_ID_HEADER, MetricsMiddleware, RequestIDMiddleware
from shelterflex_gateway.api.v1 import admin, balance, deals, payments
from shelterflex_gateway.config import settings
from shelterflex_gateway.container import Container
from shelterflex_gateway.domain.exceptions import DomainException
from shelterflex_gateway.infrastructure.observability.logging import setup_logging

# Setup structured logging
setup_logging(settings.log_level)

logger = logging.getLogger(__name__)

HTTP_ERROR_CODES = {
    400: "VALIDATION_ERROR",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    429: "CONFLICT",
}


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: Optional[Any] = None,
) -> JSONResponse:
    """Error envelope: {"error": {"code", "message", "details"?}}"""
    error: Dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details

    response = JSONResponse(status_code=status_code, content={"error": error})
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        response.headers[REQUEST_ID_HEADER] = request_id
    return response


def _validation_issues(exc: RequestValidationError) -> list:
    issues = []
    for err in exc.errors():
        # Drop the "body"/"query"/"path" location prefix
        loc = [str(part) for part in err.get("loc", ())][1:]
        issues.append({"path": ".".join(loc), "message": err.get("msg", "")})
    return issues


def register_exception_handlers(app: FastAPI, is_production: bool) -> None:
    @app.exception_handler(DomainException)
    async def handle_domain_exception(request: Request, exc: DomainException):
        return error_response(request, exc.status_code, exc.code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        if any(err.get("type") == "json_invalid" for err in exc.errors()):
            return error_response(request, 400, "VALIDATION_ERROR", "Malformed JSON in request body")
        return error_response(
            request, 400, "VALIDATION_ERROR", "Invalid request data", {"issues": _validation_issues(exc)}
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        code = HTTP_ERROR_CODES.get(exc.status_code, "INTERNAL_ERROR" if exc.status_code >= 500 else "BAD_REQUEST")
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        if exc.status_code == 404 and message == "Not Found":
            message = f"Route not found: {request.method} {request.url.path}"
        return error_response(request, exc.status_code, code, message)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.error(
            "Unhandled error",
            exc_info=not is_production,
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "error_name": exc.__class__.__name__,
                "path": request.url.path,
                "method": request.method,
            },
        )
        message = "An unexpected error occurred" if is_production else str(exc) or "An unexpected error occurred"
        return error_response(request, 500, "INTERNAL_ERROR", message)


def create_app(container: Optional[Container] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        container: Pre-built stores and adapters; built from settings on first
            request when omitted
    """
    app = FastAPI(
        title="ShelterFlex Gateway",
        description="Rent financing deals and ledger receipts",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.container = container

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    is_production = container.settings.is_production if container else settings.is_production
    register_exception_handlers(app, is_production)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(deals.router, prefix="/api/deals", tags=["deals"])
    app.include_router(payments.router, prefix="/api/payments", tags=["payments"])
    app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
    app.include_router(balance.router, prefix="/api/balance", tags=["ledger"])
    app.include_router(balance.config_router, prefix="/soroban", tags=["ledger"])

    return app


app = create_app()
