from fastapi import Depends
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from caporslap.authentication.basic_authentication import BasicAuthentication
from caporslap.create_redis_client import redis
from caporslap.load_secrets import (
    feature_mystery_box,
    min_guess_interval_ms,
    mystery_box_daily_limit,
    mystery_box_daily_pool,
    preload_count,
    prize_pool_default_amount,
    prize_pool_enabled,
    prize_pool_top_n,
    session_ttl_seconds,
    verification_threshold,
)
from caporslap.services.game_session import GameSessionService
from caporslap.services.identity import AddressIdentityResolver, IdentityService
from caporslap.services.leaderboard import LeaderboardService
from caporslap.services.mystery_box import MysteryBoxService
from caporslap.services.prize_pool import PrizePoolService
from caporslap.services.token_pool import RedisTokenPool
from caporslap.store import KeyValueStore

security = HTTPBasic()

store = KeyValueStore(redis)
identity_service = IdentityService(store, AddressIdentityResolver())
game_session_service = GameSessionService(
    store,
    RedisTokenPool(store),
    session_ttl_seconds=session_ttl_seconds,
    min_guess_interval_ms=min_guess_interval_ms,
    preload_count=preload_count,
)
leaderboard_service = LeaderboardService(
    store, identity_service, verification_threshold=verification_threshold
)
prize_pool_service = PrizePoolService(
    store,
    enabled=prize_pool_enabled,
    top_n=prize_pool_top_n,
    default_amount=prize_pool_default_amount,
)
mystery_box_service = MysteryBoxService(
    store,
    enabled=feature_mystery_box,
    daily_pool=mystery_box_daily_pool,
    daily_limit=mystery_box_daily_limit,
)


def get_store() -> KeyValueStore:
    return store


def get_game_session_service() -> GameSessionService:
    return game_session_service


def get_leaderboard_service() -> LeaderboardService:
    return leaderboard_service


def get_prize_pool_service() -> PrizePoolService:
    return prize_pool_service


def get_mystery_box_service() -> MysteryBoxService:
    return mystery_box_service


async def require_admin(
    credentials: HTTPBasicCredentials = Depends(security),
    store: KeyValueStore = Depends(get_store),
) -> str:
    return await BasicAuthentication(store).check_admin(credentials)
