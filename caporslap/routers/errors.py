from fastapi import HTTPException

from caporslap.errors import GameError


def to_http_exception(error: GameError) -> HTTPException:
    return HTTPException(
        status_code=error.status_code,
        detail={"code": error.code, "message": error.message},
    )
