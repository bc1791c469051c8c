"""
Main Application - FastAPI application setup.
"""

import time
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import generate_latest

from appstore_receipts.api.routes import router
from appstore_receipts.config import settings
from appstore_receipts.observability import get_logger, log_context, metrics, setup_logging
from appstore_receipts.services.receipt_verifier import AppStoreReceiptClient

# Setup logging before anything else
setup_logging()
logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.

    Creates the shared receipt client on startup and closes it on shutdown.
    """
    logger.info(
        "application_starting",
        service=settings.api_title,
        version=settings.api_version,
        appstore_environment=settings.appstore_environment,
        metrics_enabled=settings.metrics_enabled,
    )

    client = AppStoreReceiptClient.from_settings(settings)
    app.state.receipt_service = client

    yield

    logger.info("application_shutting_down")
    await client.aclose()
    logger.info("receipt_client_closed")


app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description=settings.api_description,
    lifespan=lifespan,
)


# Request logging middleware
@app.middleware("http")
async def logging_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """
    Log and time each request under a request id.

    The caller's X-Request-ID is reused when present, otherwise one is
    generated. It is bound for every log line emitted while the request is
    handled (verifier events included) and echoed on the response.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    endpoint = request.url.path
    method = request.method
    start_time = time.time()

    with log_context(request_id=request_id):
        logger.info("request_started", method=method, path=endpoint)
        metrics.http_requests_in_progress.labels(endpoint=endpoint, method=method).inc()
        try:
            response = await call_next(request)
        except Exception:
            duration = time.time() - start_time
            metrics.record_http_request(endpoint, method, 500, duration)
            logger.exception("request_failed", path=endpoint, duration_seconds=duration)
            raise
        finally:
            metrics.http_requests_in_progress.labels(endpoint=endpoint, method=method).dec()

        duration = time.time() - start_time
        metrics.record_http_request(endpoint, method, response.status_code, duration)
        logger.info(
            "request_completed",
            path=endpoint,
            status_code=response.status_code,
            duration_seconds=duration,
        )

    response.headers[REQUEST_ID_HEADER] = request_id
    return response


app.include_router(router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.api_title,
        "version": settings.api_version,
        "status": "running",
    }


if settings.metrics_enabled:

    @app.get("/metrics")
    async def metrics_endpoint() -> Response:
        """
        Prometheus metrics endpoint.

        Returns metrics in Prometheus text format.
        """
        return PlainTextResponse(generate_latest())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "appstore_receipts.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
        log_level=settings.log_level.lower(),
    )
