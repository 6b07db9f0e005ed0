from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from app.config import Settings, settings
from app.container import Container
from app.core.errors import MentorError
from app.core.errors.middleware import (
    mentor_error_handler,
    unhandled_error_handler,
    validation_error_handler,
)
from app.core.errors.registry import error_registry
from app.core.log_middleware import CorrelationMiddleware
from app.core.structured_logging import APP_VERSION, setup_logging
from app.routers import feedback, health

logger = logging.getLogger(__name__)

API_TITLE = "Mentor API"
API_DESCRIPTION = """
## Mentor API - Student Feedback Intake

Students report how a task felt ("too hard", "скучно", ...). Each report is
classified, turned into a strategy snapshot, stored through the Dapr
PostgreSQL binding, and answered with the updated strategy.
"""

TAGS_METADATA = [
    {
        "name": "health",
        "description": "Kubernetes startup, liveness and readiness probes.",
    },
    {
        "name": "feedback",
        "description": "Submit student feedback and read a student's feedback history.",
    },
]


def _build_lifespan(app_settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(
            log_dir=app_settings.log_dir,
            log_level=app_settings.log_level,
            to_file=app_settings.log_to_file,
        )
        logger.info("Starting %s v%s", app_settings.app_name, APP_VERSION)

        error_registry.load()

        container = Container.build(app_settings)
        app.state.container = container

        # Not fatal: the readiness probe keeps reporting until the sidecar is up
        try:
            await container.gateway.ping()
            logger.info("database_binding_reachable", extra={"binding": app_settings.db_binding_name})
        except MentorError as e:
            logger.warning(
                "database_binding_unreachable",
                extra={"binding": app_settings.db_binding_name, "error.message": e.detail},
            )

        yield

        logger.info("Shutting down %s...", app_settings.app_name)
        await container.aclose()

    return lifespan


def create_app(app_settings: Settings = settings) -> FastAPI:
    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=APP_VERSION,
        openapi_tags=TAGS_METADATA,
        lifespan=_build_lifespan(app_settings),
    )

    app.add_middleware(CorrelationMiddleware)

    app.add_exception_handler(MentorError, mentor_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(health.router, tags=["health"])
    app.include_router(feedback.router, prefix="/api/v1", tags=["feedback"])

    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run("app.main:app", host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
