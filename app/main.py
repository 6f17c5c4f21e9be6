# app/main.py
"""
ShopDesk API entry point.

Run with ``uvicorn app.main:app``.
"""

import json
import logging
import os
import time

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.api import api_router
from app.core.config import settings
from app.core.events import setup_event_handlers
from app.db.init_db import init
from app.db.session import SessionLocal

DEV_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]
API_VERSION = "1.0.0"


def configure_logging() -> logging.Logger:
    """Apply LOG_LEVEL from the environment to the root and ``app`` loggers."""
    level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    app_logger = logging.getLogger("app")
    app_logger.setLevel(level)
    return app_logger


logger = configure_logging()


def _cors_origins():
    configured = [str(origin) for origin in settings.BACKEND_CORS_ORIGINS or [] if origin]
    if configured:
        return configured
    logger.warning(f"BACKEND_CORS_ORIGINS is empty; allowing local frontends {DEV_CORS_ORIGINS}")
    return DEV_CORS_ORIGINS


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = jsonable_encoder(exc.errors())
    logger.warning(f"Rejected malformed body for {request.method} {request.url.path} ({len(errors)} errors)")
    logger.debug(json.dumps(errors, indent=2))
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": errors})


async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    route = f"{request.method} {request.url.path}"
    try:
        response = await call_next(request)
    except Exception:
        logger.exception(f"{route} crashed after {time.perf_counter() - started:.3f}s")
        raise
    logger.info(f"{route} -> {response.status_code} in {time.perf_counter() - started:.3f}s")
    return response


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Multi-branch purchase order approval workflow",
        version=API_VERSION,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        docs_url=f"{settings.API_V1_STR}/docs",
        redoc_url=f"{settings.API_V1_STR}/redoc",
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_exception_handler(RequestValidationError, request_validation_handler)
    application.middleware("http")(log_requests)

    setup_event_handlers(application)

    @application.on_event("startup")
    async def bootstrap_database():
        db = SessionLocal()
        try:
            init(db)
        finally:
            db.close()

    application.include_router(api_router, prefix=settings.API_V1_STR)

    @application.get("/", tags=["Root"])
    def read_root():
        return {
            "name": settings.PROJECT_NAME,
            "version": API_VERSION,
            "environment": settings.ENVIRONMENT,
            "docs": application.docs_url,
        }

    @application.get("/health", tags=["Health"])
    def health_check():
        return {"status": "ok"}

    return application


app = create_app()
