from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI
from starlette.requests import Request

from app.api.router import api_router
from app.core.config import Settings, get_settings
from app.core.telemetry import configure_api_logging, setup_api_telemetry, shutdown_api_telemetry
from app.services.auth_cache import get_agent_cache
from app.services.repository import get_repository

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("api starting storage_backend=%s", app.state.settings.storage_backend)
    try:
        yield
    finally:
        shutdown_api_telemetry(app, app.state.telemetry)
        # Only tear down a repository that was actually built.
        if get_repository.cache_info().currsize:
            await get_repository().close()
            get_repository.cache_clear()
        if get_agent_cache.cache_info().currsize:
            get_agent_cache().clear()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_api_logging(settings)

    application = FastAPI(title=settings.app_name, lifespan=lifespan)
    application.state.settings = settings
    application.state.telemetry = setup_api_telemetry(application, settings)

    @application.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        started_at = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started_at) * 1000.0
        logger.info(
            "http request method=%s path=%s status=%s duration_ms=%.2f",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response

    application.include_router(api_router)
    return application


app = create_app()
