"""
DocLedger Chaincode Host

A FastAPI-based development host for the document tracking chaincode.
It stands in for the peer: each request becomes one transaction executed
against the contract, and the transaction's writes are committed to the
ledger state database only when the contract reports success.

Ordering, endorsement and consensus are not modeled; the host simply runs
one transaction at a time.
"""
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from docledger import metrics
from docledger.api import router
from docledger.config import settings
from docledger.database import engine, Base
from docledger.logging import (
    configure_logging,
    get_logger,
    set_invocation_context,
    clear_invocation_context,
    generate_tx_id,
)

# Configure structured logging
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(
        "service_starting",
        service_name=settings.service_name,
        database_url=engine.url.render_as_string(hide_password=True),
    )

    # Create ledger tables if they don't exist
    Base.metadata.create_all(bind=engine)

    logger.info("service_started", service_name=settings.service_name)

    yield

    logger.info("service_stopping", service_name=settings.service_name)


app = FastAPI(
    title="DocLedger Chaincode Host",
    description="Development host for the document tracking smart contract",
    version="0.1.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """
    Middleware for request tracing, logging, and metrics.

    The X-Request-ID header, when supplied, becomes the transaction ID.
    """
    method = request.method
    path = request.url.path

    # Skip logging/metrics for health and metrics endpoints
    if path in ("/health", "/metrics"):
        return await call_next(request)

    request_id = request.headers.get("X-Request-ID") or generate_tx_id()
    set_invocation_context(request_id)

    # Store request_id in request state for access in route handlers
    request.state.request_id = request_id

    start_time = time.perf_counter()

    logger.info("request_received", method=method, path=path)

    try:
        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            "request_completed",
            method=method,
            path=path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        metrics.record_http_request(
            method=method,
            endpoint=path,
            status=response.status_code,
            latency_seconds=duration_ms / 1000,
        )

        response.headers["X-Request-ID"] = request_id

        return response

    except Exception as e:
        duration_ms = (time.perf_counter() - start_time) * 1000

        logger.error(
            "request_failed",
            method=method,
            path=path,
            duration_ms=round(duration_ms, 2),
            error=str(e),
        )

        metrics.record_http_request(
            method=method,
            endpoint=path,
            status=500,
            latency_seconds=duration_ms / 1000,
        )

        raise

    finally:
        clear_invocation_context()


# Include API routes
app.include_router(router)


@app.get("/health")
async def health_check():
    """Health check endpoint for container orchestration."""
    return {"status": "ok", "service": settings.service_name}


@app.get("/metrics")
async def metrics_endpoint():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
