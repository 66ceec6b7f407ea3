"""
FastAPI application factory
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from mealcycle.api.v1.endpoints import health, invoices, jobs, pricing, subscriptions, vendors
from mealcycle.core.config import settings
from mealcycle.core.exceptions import AppError
from mealcycle.core.logging import setup_logging
from mealcycle.services.limits import close_client

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Starting %s %s (%s)", settings.PROJECT_NAME, settings.VERSION, settings.ENV)
    yield
    await close_client()
    logger.info("Shutting down %s", settings.PROJECT_NAME)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.__class__.__name__, request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def create_application() -> FastAPI:
    """
    Build the API application with all routers and error handlers.
    """
    application = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    application.add_exception_handler(AppError, app_error_handler)
    application.add_exception_handler(HTTPException, http_error_handler)

    api_prefix = f"{settings.API_PREFIX.rstrip('/')}/v1"
    for module in (health, jobs, pricing, subscriptions, invoices, vendors):
        application.include_router(module.router, prefix=api_prefix)

    return application


app = create_application()
