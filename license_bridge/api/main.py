"""
Main FastAPI application.

Payment-to-license fulfillment API with:
- Permissive CORS and blanket OPTIONS preflight answers
- Error taxonomy rendered as ``{"error": ...}`` bodies
- Request ID tracking
- Structured logging
"""
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from license_bridge.config import Settings, get_settings
from license_bridge.core.errors import LicenseBridgeError
from license_bridge.monitoring.logging import setup_logging

from .dependencies import Services
from .routes import checkout_router, monitoring_router, paypal_router, webhook_router

logger = structlog.get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, stripe-signature",
}


def create_app(
    settings: Optional[Settings] = None, services: Optional[Services] = None
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use (environment by default)
        services: Pre-built service wiring, mainly for tests
    """
    settings = settings or get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, Any]:
        logger.info(
            "application_startup",
            app_name=settings.app_name,
            env=settings.app_env,
            services=app.state.services.health.services(),
        )
        yield
        logger.info("application_shutdown")
        await app.state.services.close()

    app = FastAPI(
        title="License Bridge",
        description=(
            "Turns Stripe and PayPal payment confirmations into license keys, "
            "issued at most once per payment event."
        ),
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.services = services or Services.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins_list(),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "stripe-signature"],
    )

    @app.middleware("http")
    async def add_request_id_middleware(request: Request, call_next: Any) -> Response:
        """Answer preflights, then add request ID and timing to everything else."""
        if request.method == "OPTIONS":
            return Response(status_code=status.HTTP_200_OK, headers=CORS_HEADERS)

        request_id = str(uuid.uuid4())
        start_time = time.time()

        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_seconds=time.time() - start_time,
            )
            return response

        except Exception as e:
            logger.error(
                "request_failed",
                error=str(e),
                duration_seconds=time.time() - start_time,
            )
            raise

        finally:
            structlog.contextvars.clear_contextvars()

    @app.exception_handler(LicenseBridgeError)
    async def license_bridge_error_handler(
        request: Request, exc: LicenseBridgeError
    ) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.warning("request_body_invalid", errors=exc.errors())
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request body"},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions."""
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )

    app.include_router(checkout_router)
    app.include_router(webhook_router)
    app.include_router(paypal_router)
    app.include_router(monitoring_router)

    return app


def main() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "license_bridge.api.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
