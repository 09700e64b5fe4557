from typing import Optional

from fastapi import APIRouter, Depends, Query

from caporslap.dependencies import get_leaderboard_service
from caporslap.errors import GameError
from caporslap.models.dc_models import (
    BoardModel,
    CheckOvertakesRequestModel,
    CheckOvertakesResponseModel,
    LeaderboardResponseModel,
    PositionChangeModel,
    PositionChangeRequestModel,
    SubmitScoreRequestModel,
    SubmitScoreResponseModel,
)
from caporslap.routers.errors import to_http_exception
from caporslap.services.leaderboard import LeaderboardService

leaderboard_router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])


class LeaderboardAPI:
    @staticmethod
    @leaderboard_router.get("", response_model=LeaderboardResponseModel)
    async def get_leaderboard(
        type: BoardModel = Query(BoardModel.weekly),
        limit: int = Query(50, ge=1, le=100),
        user_id: Optional[str] = None,
        service: LeaderboardService = Depends(get_leaderboard_service),
    ):
        try:
            return await service.get_leaderboard(type, limit, user_id)
        except GameError as e:
            raise to_http_exception(e) from e

    @staticmethod
    @leaderboard_router.post("/submit", response_model=SubmitScoreResponseModel)
    async def submit_score(
        request: SubmitScoreRequestModel,
        service: LeaderboardService = Depends(get_leaderboard_service),
    ):
        try:
            return await service.submit_score(request)
        except GameError as e:
            raise to_http_exception(e) from e

    @staticmethod
    @leaderboard_router.post("/check-overtakes", response_model=CheckOvertakesResponseModel)
    async def check_overtakes(
        request: CheckOvertakesRequestModel,
        service: LeaderboardService = Depends(get_leaderboard_service),
    ):
        try:
            overtakes = await service.check_overtakes(
                request.user_id, request.current_streak, request.previous_streak
            )
        except GameError as e:
            raise to_http_exception(e) from e
        return CheckOvertakesResponseModel(overtakes=overtakes)

    @staticmethod
    @leaderboard_router.post("/position-change", response_model=PositionChangeModel)
    async def position_change(
        request: PositionChangeRequestModel,
        service: LeaderboardService = Depends(get_leaderboard_service),
    ):
        try:
            return await service.position_change(request.user_id, request.board)
        except GameError as e:
            raise to_http_exception(e) from e
