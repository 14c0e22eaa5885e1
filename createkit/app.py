"""
FastAPI application entry point for the CreateKit backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from createkit.config import get_settings
from createkit.errors import BadRequest, CreateKitError
from createkit.routes import router

logger = logging.getLogger(__name__)


def _envelope_key(request: Request, default: str = "error") -> str:
    settings = get_settings()
    if request.url.path.startswith(f"{settings.api_prefix}/user"):
        return "message"
    return default


async def handle_createkit_error(request: Request, exc: CreateKitError):
    key = exc.explicit_envelope_key or _envelope_key(request, exc.envelope_key)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(key))


async def handle_validation_error(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ())[1:]) or 'body'}: {err.get('msg')}"
        for err in exc.errors()
    )
    error = BadRequest(
        f"Invalid request: {details}", envelope_key=_envelope_key(request)
    )
    return JSONResponse(status_code=error.status_code, content=error.to_payload())


async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, _envelope_key(request): "Internal server error"},
    )


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(title="CreateKit Backend (FastAPI)", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(CreateKitError, handle_createkit_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
