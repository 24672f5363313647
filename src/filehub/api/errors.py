from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from filehub.errors import (
    AlreadyExistsError,
    AlreadySharedError,
    CapacityExceededError,
    FileHubError,
    ForbiddenError,
    NotFoundError,
    TransientIOError,
    UnauthenticatedError,
)

_STATUS_BY_ERROR: list[tuple[type[FileHubError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (AlreadySharedError, status.HTTP_409_CONFLICT),
    (AlreadyExistsError, status.HTTP_409_CONFLICT),
    (UnauthenticatedError, status.HTTP_401_UNAUTHORIZED),
    (CapacityExceededError, status.HTTP_507_INSUFFICIENT_STORAGE),
    (TransientIOError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_for(exc: FileHubError) -> int:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def _filehub_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, FileHubError)
    return JSONResponse(
        status_code=status_for(exc),
        content={"detail": str(exc), "error": type(exc).__name__},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FileHubError, _filehub_error_handler)
