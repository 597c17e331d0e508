"""FastAPI application factory."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from repodocs import __version__
from repodocs.api.routes import docs_router, health_router, sync_router, webhooks_router
from repodocs.api.routes.sync import set_sync_manager
from repodocs.ingestion.pipeline import SyncManager, create_orchestrator
from repodocs.storage import get_session_factory, init_database


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    await init_database()
    session_factory = await get_session_factory()

    manager = SyncManager(
        orchestrator_factory=lambda: create_orchestrator(session_factory),
        session_factory=session_factory,
    )
    set_sync_manager(manager)

    yield

    # Shutdown
    await manager.shutdown()
    set_sync_manager(None)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="RepoDocs",
        description="Evidence-backed documentation generated from GitHub repositories",
        version=__version__,
        lifespan=lifespan,
    )

    # Register routes
    app.include_router(sync_router)
    app.include_router(docs_router)
    app.include_router(webhooks_router)
    app.include_router(health_router)

    @app.get("/")
    async def root():
        return {
            "name": "RepoDocs",
            "version": __version__,
            "docs": "/docs",
        }

    return app


# Create app instance for uvicorn
app = create_app()
