import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException

from sitequota import __version__
from sitequota.api import health, quota
from sitequota.core.config import settings, validate_config
from sitequota.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from sitequota.core.logging import configure_logging
from sitequota.core.middleware.request_id import RequestIdMiddleware
from sitequota.core.validation import validate_env
from sitequota.features.quota.service import build_catalog

configure_logging(settings.ENV, settings.LOG_LEVEL)
validate_env()
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("sitequota")
    logger.info("Starting sitequota...")
    executor = None
    if settings.USAGE_QUERY_WORKERS > 1:
        executor = ThreadPoolExecutor(max_workers=settings.USAGE_QUERY_WORKERS, thread_name_prefix="usage")
    app.state.usage_executor = executor
    app.state.plan_catalog = build_catalog()
    try:
        yield
    finally:
        if executor is not None:
            executor.shutdown(wait=True)
        logger.info("Stopping sitequota...")


app = FastAPI(title="sitequota", version=__version__, lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.include_router(health.router)
app.include_router(quota.router)
