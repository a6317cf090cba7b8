import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from salon import database
from salon.config import get_settings
from salon.exception_handlers import register_exception_handlers
from salon.middleware.logging import StructuredLoggingMiddleware, setup_structured_logging
from salon.middleware.rate_limit import configure_rate_limiting
from salon.routes import appointments, backups, billing, plans, security, two_factor
from salon.scheduler import register_jobs, scheduler

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} ({settings.environment})")

    if settings.scheduler_enabled:
        register_jobs(settings)
        scheduler.start()

    yield

    if scheduler.running:
        scheduler.shutdown(wait=False)
    await database.engine.dispose()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    settings = get_settings()
    setup_structured_logging(log_level=settings.log_level, json_format=settings.log_json)

    app = FastAPI(
        title=settings.app_name,
        description="Billing, plan, scheduling and two-factor backend for the salon booking platform",
        debug=settings.debug,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    configure_rate_limiting(app)
    register_exception_handlers(app)

    for module in (billing, plans, two_factor, appointments, backups, security):
        app.include_router(module.router, prefix=API_PREFIX)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    if settings.debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    return app


app = create_app()
