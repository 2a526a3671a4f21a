"""FastAPI application factory"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from good4it_gateway.api.dependencies import get_request_id
from good4it_gateway.api.middleware import MetricsMiddleware, RequestIDMiddleware
from good4it_gateway.api.v1 import disputes, requests, scores, tasks, transactions
from good4it_gateway.config import settings
from good4it_gateway.domain.exceptions import DomainException
from good4it_gateway.infrastructure.observability.logging import setup_logging

# Setup structured logging
setup_logging(settings.log_level)

STATUS_BY_KIND = {
    "validation": 400,
    "authorization": 403,
    "not_found": 404,
    "state_conflict": 409,
    "dependency": 503,
}


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, 500)
    log = logging.error if status_code >= 500 else logging.warning
    log(
        f"Request failed: {exc.message}",
        extra={"request_id": get_request_id(request), "error": exc.code, "kind": exc.kind},
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "error": exc.code, "kind": exc.kind},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    detail = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content={"detail": detail, "error": "INVALID_INPUT", "kind": "validation"},
    )


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Good4It Lending Gateway",
        description="Peer-to-peer lending between friends: requests, repayments, EMIs and task-for-debt",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(requests.router, prefix="/v1", tags=["requests"])
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])
    app.include_router(tasks.router, prefix="/v1", tags=["tasks"])
    app.include_router(disputes.router, prefix="/v1", tags=["disputes"])
    app.include_router(scores.router, prefix="/v1", tags=["scores"])

    return app


app = create_app()
