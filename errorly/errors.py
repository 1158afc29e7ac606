"""Error taxonomy shared by the gateway, services and CLI."""

from typing import Optional


class BoardError(Exception):
    """Base class for every failure an operation can report."""


class NetworkFailure(BoardError):
    """The request could not complete (connection error, timeout)."""


class ServerRejection(BoardError):
    """The backend answered, but not with the payload we expected."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (HTTP {self.status_code})"


class LocalPrecondition(BoardError):
    """The operation was refused before anything was sent."""
