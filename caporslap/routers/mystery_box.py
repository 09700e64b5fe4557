from fastapi import APIRouter, Depends

from caporslap.dependencies import get_mystery_box_service
from caporslap.errors import GameError
from caporslap.models.dc_models import (
    ClaimRequestModel,
    ClaimResponseModel,
    EligibilityModel,
    EligibilityRequestModel,
    PoolCountModel,
)
from caporslap.routers.errors import to_http_exception
from caporslap.services.mystery_box import MysteryBoxService

mystery_box_router = APIRouter(prefix="/mystery-box", tags=["mystery-box"])


class MysteryBoxAPI:
    @staticmethod
    @mystery_box_router.post("/check", response_model=EligibilityModel)
    async def check_eligibility(
        request: EligibilityRequestModel,
        service: MysteryBoxService = Depends(get_mystery_box_service),
    ):
        try:
            return await service.check(request.user_id, request.streak)
        except GameError as e:
            raise to_http_exception(e) from e

    @staticmethod
    @mystery_box_router.post("/claim", response_model=ClaimResponseModel)
    async def claim(
        request: ClaimRequestModel,
        service: MysteryBoxService = Depends(get_mystery_box_service),
    ):
        try:
            return await service.claim(request.user_id, request.streak, request.box_id)
        except GameError as e:
            raise to_http_exception(e) from e

    @staticmethod
    @mystery_box_router.get("/pool", response_model=PoolCountModel)
    async def pool(service: MysteryBoxService = Depends(get_mystery_box_service)):
        try:
            return PoolCountModel(count=await service.pool_count())
        except GameError as e:
            raise to_http_exception(e) from e
