import logging
from typing import Optional

from fastapi import APIRouter, Depends

from caporslap.dependencies import get_prize_pool_service, require_admin
from caporslap.errors import GameError
from caporslap.models.dc_models import (
    FinalizeResponseModel,
    PrizePoolFinalizeRequestModel,
    PrizePoolInitRequestModel,
    PrizePoolResponseModel,
)
from caporslap.models.schema_models import WeeklyPrizePoolSchema
from caporslap.routers.errors import to_http_exception
from caporslap.services.prize_pool import PrizePoolService

prize_pool_router = APIRouter(prefix="/prizepool", tags=["prizepool"])


class PrizePoolAPI:
    @staticmethod
    @prize_pool_router.get("", response_model=PrizePoolResponseModel)
    async def get_prize_pool(
        user_id: Optional[str] = None,
        service: PrizePoolService = Depends(get_prize_pool_service),
    ):
        try:
            return await service.get_current(user_id)
        except GameError as e:
            raise to_http_exception(e) from e

    @staticmethod
    @prize_pool_router.post("", response_model=WeeklyPrizePoolSchema)
    async def initialize_prize_pool(
        request: PrizePoolInitRequestModel,
        admin: str = Depends(require_admin),
        service: PrizePoolService = Depends(get_prize_pool_service),
    ):
        logging.info(f"{admin} initializes prize pool {request.week_key or 'current week'}")
        try:
            return await service.initialize(request.total_amount, request.week_key, request.sponsor)
        except GameError as e:
            raise to_http_exception(e) from e

    @staticmethod
    @prize_pool_router.post("/finalize", response_model=FinalizeResponseModel)
    async def finalize_prize_pool(
        request: PrizePoolFinalizeRequestModel,
        admin: str = Depends(require_admin),
        service: PrizePoolService = Depends(get_prize_pool_service),
    ):
        logging.info(f"{admin} finalizes prize pool {request.week_key or 'current week'}")
        try:
            return await service.rollover(
                request.week_key, request.next_week_amount, request.next_week_sponsor
            )
        except GameError as e:
            raise to_http_exception(e) from e
