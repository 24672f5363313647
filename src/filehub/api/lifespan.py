import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from filehub.config import Settings
from filehub.wiring import create_hub

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    hub = getattr(app.state, "hub", None)
    if hub is None:
        hub = await create_hub(Settings.from_env())
        app.state.hub = hub
    await hub.load()
    try:
        yield
    finally:
        await hub.aclose()
        logger.info("File hub closed")
