# backend/studiobook/main.py
"""
Studio booking API application.

Run locally with:
    uvicorn studiobook.main:app --reload
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncIterator

from fastapi import APIRouter, FastAPI, Response
from sqlalchemy import text

from . import __version__
from .core.config import settings
from .database import get_db_pool_status, get_engine
from .errors import register_error_handlers
from .middleware.prometheus_middleware import METRICS_PATH, PrometheusMiddleware
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes.v1 import booking_requests as booking_requests_v1
from .routes.v1 import bookings as bookings_v1
from .routes.v1 import credits as credits_v1
from .routes.v1 import staff as staff_v1
from .routes.v1 import studio as studio_v1
from .schemas.common import HealthResponse

# Configure logging
logging.basicConfig(
    level=settings.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)

API_TITLE = "Studiobook API"
API_DESCRIPTION = "Multi-tenant studio booking and session credit reservation"


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info(f"Starting {API_TITLE} {__version__} ({settings.environment})")
    yield
    logger.info(f"Shutting down {API_TITLE}")


def create_app() -> FastAPI:
    application = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=app_lifespan,
    )
    register_error_handlers(application)
    application.add_middleware(PrometheusMiddleware)

    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(bookings_v1.router, prefix="/bookings")
    api_v1.include_router(booking_requests_v1.router, prefix="/booking-requests")
    api_v1.include_router(credits_v1.router, prefix="/credits")
    api_v1.include_router(studio_v1.router, prefix="/studio")
    api_v1.include_router(staff_v1.router, prefix="/staff")
    application.include_router(api_v1)

    @application.get("/health", response_model=HealthResponse, include_in_schema=False)
    def health_check(response: Response) -> HealthResponse:
        database = "ok"
        try:
            with get_engine().connect() as connection:
                connection.execute(text("SELECT 1"))
        except Exception as exc:
            logger.error(f"Health check database query failed: {type(exc).__name__}: {exc}")
            database = "unavailable"
            response.status_code = 503
        return HealthResponse(
            status="healthy" if database == "ok" else "degraded",
            version=__version__,
            database=database,
            pool=get_db_pool_status() if database == "ok" else {},
        )

    @application.get(METRICS_PATH, include_in_schema=False)
    def metrics() -> Response:
        return Response(
            content=prometheus_metrics.get_metrics(),
            media_type=prometheus_metrics.get_content_type(),
        )

    return application


app = create_app()
