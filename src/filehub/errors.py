"""Error taxonomy shared by the stores, the router and the session."""

from __future__ import annotations


class FileHubError(Exception):
    """Base class for every error the core raises on purpose."""


class CapacityExceededError(FileHubError):
    """A storage tier rejected a write because it is full."""

    def __init__(
        self,
        tier: str,
        required_bytes: int,
        available_bytes: int | None = None,
        detail: str | None = None,
    ) -> None:
        self.tier = tier
        self.required_bytes = required_bytes
        self.available_bytes = available_bytes
        if detail is None:
            detail = f"{tier} is full (need {required_bytes} bytes"
            if available_bytes is not None:
                detail += f", {available_bytes} available"
            detail += ")"
        super().__init__(detail)


class StorageExhaustedError(CapacityExceededError):
    """Every planned tier refused the file.

    ``attempts`` maps each tier that was tried to the error it raised.
    """

    def __init__(self, required_bytes: int, attempts: dict[str, Exception]) -> None:
        self.attempts = attempts
        tried = ", ".join(f"{tier}: {exc}" for tier, exc in attempts.items()) or "none"
        super().__init__(
            "all",
            required_bytes,
            detail=f"no storage tier accepted {required_bytes} bytes (tried {tried})",
        )


class UnauthenticatedError(FileHubError):
    """No active principal for a remote-dependent operation."""

    def __init__(self, message: str = "not signed in") -> None:
        super().__init__(message)


class NotFoundError(FileHubError):
    """A referenced entity does not exist."""


class ForbiddenError(FileHubError):
    """The current principal does not own the target."""


class AlreadySharedError(FileHubError):
    """The target is already shared with the recipient."""


class AlreadyExistsError(FileHubError):
    """An entity with the same identity already exists."""


class TransientIOError(FileHubError):
    """Network or device I/O failure; retried by the next reconciliation pass."""
