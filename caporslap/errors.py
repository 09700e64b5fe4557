"""Errors raised by the game core.

Routers translate these into HTTP responses; services never build HTTP
responses themselves. Eligibility refusals are not errors and are returned
as structured results instead.
"""

from fastapi import status


class GameError(Exception):
    code = "GAME_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class SessionNotFoundError(GameError):
    code = "SESSION_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class UnauthorizedError(GameError):
    code = "UNAUTHORIZED"
    status_code = status.HTTP_403_FORBIDDEN


class TamperDetectedError(GameError):
    code = "TAMPER_DETECTED"
    status_code = status.HTTP_400_BAD_REQUEST


class RateLimitedError(GameError):
    code = "RATE_LIMITED"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class ValidationFailedError(GameError):
    code = "VALIDATION_FAILED"
    status_code = status.HTTP_400_BAD_REQUEST


class InitialPairUnavailableError(GameError):
    code = "INITIAL_PAIR_UNAVAILABLE"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class UpstreamUnavailableError(GameError):
    code = "UPSTREAM_UNAVAILABLE"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class PrizePoolNotFoundError(GameError):
    code = "PRIZE_POOL_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
