"""
HTTP surface for ingestion, research and maintenance.

``create_app`` receives a fully built :class:`ServiceContainer`; the app
never constructs services itself.

Usage::

    container = await ServiceContainer.from_settings(get_settings())
    app = create_app(container)
"""

import logging

from fastapi import FastAPI

from ideaslot import __version__
from ideaslot.api.errors import register_exception_handlers
from ideaslot.api.routes import duplicates, health, ideas, research
from ideaslot.container import ServiceContainer

logger = logging.getLogger(__name__)


def create_app(container: ServiceContainer) -> FastAPI:
    app = FastAPI(title="IdeaSlot", version=__version__)
    app.state.container = container

    register_exception_handlers(app)
    app.include_router(health.router)
    app.include_router(duplicates.router)
    app.include_router(research.router)
    app.include_router(ideas.router)

    logger.info("API ready (environment=%s)", container.settings.environment)
    return app


__all__ = ["create_app"]
