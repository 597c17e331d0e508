"""Routes package."""

from repodocs.api.routes.docs import router as docs_router
from repodocs.api.routes.health import router as health_router
from repodocs.api.routes.sync import router as sync_router
from repodocs.api.routes.webhooks import router as webhooks_router

__all__ = [
    "docs_router",
    "health_router",
    "sync_router",
    "webhooks_router",
]
