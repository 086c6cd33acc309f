from fastapi import FastAPI

from app.escolastica.api import api_router
from app.escolastica.core.config import settings
from app.escolastica.core.errors import setup_exception_handlers
from app.escolastica.core.logging import configure_logging
from app.escolastica.middleware.actor import ActorContextMiddleware
from app.escolastica.middleware.observability import ObservabilityMiddleware
from app.escolastica.middleware.trace import TraceIdMiddleware


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME)
    app.add_middleware(ActorContextMiddleware)
    app.add_middleware(TraceIdMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    setup_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()
