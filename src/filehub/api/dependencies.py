from fastapi import Request

from filehub.core.hub import FileHub


def get_hub(request: Request) -> FileHub:
    """The session the lifespan stored on ``app.state``."""
    return request.app.state.hub
