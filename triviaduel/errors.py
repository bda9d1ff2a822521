"""Domain errors raised by the service layer.

Routers translate these to HTTP responses; services never raise HTTPException.
"""
from fastapi import HTTPException, status


class ChallengeError(Exception):
    """Base class for domain errors."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(ChallengeError):
    """Referenced challenge, notification or user does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class Unauthorized(ChallengeError):
    """Actor is not a legitimate party to the mutation."""

    status_code = status.HTTP_403_FORBIDDEN


class InvalidTransition(ChallengeError):
    """Action is illegal in the challenge's current state."""


class InvalidScore(ChallengeError):
    """Score is outside 0..question count."""


def to_http(exc: ChallengeError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail)
