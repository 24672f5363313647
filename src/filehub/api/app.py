from fastapi import FastAPI

from filehub.api.errors import register_error_handlers
from filehub.api.lifespan import lifespan
from filehub.api.routes.files import router as files_router
from filehub.api.routes.folders import router as folders_router
from filehub.api.routes.health import router as health_router
from filehub.api.routes.shares import router as shares_router
from filehub.api.routes.storage import router as storage_router
from filehub.core.hub import FileHub


def create_app(hub: FileHub | None = None) -> FastAPI:
    """Build the HTTP app; pass ``hub`` to serve an existing session instead of one from the environment."""
    app = FastAPI(
        title="filehub API",
        description="Local-first file storage with background sync and sharing.",
        version="0.1.0",
        lifespan=lifespan,
    )
    if hub is not None:
        app.state.hub = hub

    register_error_handlers(app)

    app.include_router(health_router, include_in_schema=False)
    app.include_router(files_router)
    app.include_router(folders_router)
    app.include_router(shares_router)
    app.include_router(storage_router)

    return app
