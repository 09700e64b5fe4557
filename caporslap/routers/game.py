import logging

from fastapi import APIRouter, Depends

from caporslap.dependencies import get_game_session_service
from caporslap.errors import GameError
from caporslap.models.dc_models import (
    GuessRequestModel,
    GuessResponseModel,
    StartSessionRequestModel,
    StartSessionResponseModel,
)
from caporslap.routers.errors import to_http_exception
from caporslap.services.game_session import GameSessionService

game_router = APIRouter(prefix="/game", tags=["game"])


class GameAPI:
    @staticmethod
    @game_router.post("/start", response_model=StartSessionResponseModel)
    async def start_game(
        request: StartSessionRequestModel,
        service: GameSessionService = Depends(get_game_session_service),
    ):
        try:
            return await service.start(request.user_id)
        except GameError as e:
            logging.error(f"Failed to start game for {request.user_id}: {e.code}")
            raise to_http_exception(e) from e

    @staticmethod
    @game_router.post("/guess", response_model=GuessResponseModel)
    async def submit_guess(
        request: GuessRequestModel,
        service: GameSessionService = Depends(get_game_session_service),
    ):
        try:
            return await service.guess(request)
        except GameError as e:
            logging.info(f"Rejected guess on run {request.run_id}: {e.code}")
            raise to_http_exception(e) from e
