"""Redis adapter for every piece of game state.

All payloads are parsed into pydantic schemas here, so callers only ever
see typed records. Redis failures are logged and re-raised as
``UpstreamUnavailableError``.
"""

import json
import logging
from contextlib import contextmanager
from typing import List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from caporslap.errors import UpstreamUnavailableError
from caporslap.models.schema_models import (
    GameSessionSchema,
    IdentitySchema,
    MysteryBoxSchema,
    RunHistoryEntrySchema,
    TokenSchema,
    WeeklyPrizePoolSchema,
    WeeklyStatsSchema,
)

WEEKLY_TTL_SECONDS = 8 * 24 * 3600
PROFILE_TTL_SECONDS = 7 * 24 * 3600
RUN_HISTORY_TTL_SECONDS = 30 * 24 * 3600
RUN_HISTORY_LENGTH = 20
DAILY_TTL_SECONDS = 2 * 24 * 3600
CLAIMED_MARKER_TTL_SECONDS = 30 * 24 * 3600

CLAIMED = "CLAIMED"
REPLAYED = "REPLAYED"
BOX_ALREADY_CLAIMED = "BOX_ALREADY_CLAIMED"

SchemaT = TypeVar("SchemaT", bound=BaseModel)

# KEYS: pool, user claims, claimed marker
# ARGV: initial pool, daily limit, user id, box json, daily ttl, marker ttl
CLAIM_SCRIPT = """
local owner = redis.call('HGET', KEYS[3], 'user_id')
if owner then
    if owner == ARGV[3] then
        return {'REPLAYED', redis.call('HGET', KEYS[3], 'box')}
    end
    return {'BOX_ALREADY_CLAIMED', ''}
end
redis.call('SET', KEYS[1], ARGV[1], 'NX', 'EX', ARGV[5])
local pool = tonumber(redis.call('GET', KEYS[1]))
if pool <= 0 then
    return {'POOL_EXHAUSTED', ''}
end
local claims = tonumber(redis.call('GET', KEYS[2]) or '0')
if claims >= tonumber(ARGV[2]) then
    return {'DAILY_LIMIT_REACHED', ''}
end
redis.call('DECR', KEYS[1])
redis.call('INCR', KEYS[2])
redis.call('EXPIRE', KEYS[2], ARGV[5])
redis.call('HSET', KEYS[3], 'user_id', ARGV[3], 'box', ARGV[4])
redis.call('EXPIRE', KEYS[3], ARGV[6])
return {'CLAIMED', ARGV[4]}
"""


# KEYS: weekly stats hash
# ARGV: streak, cumulative score, timestamp, ttl
WEEKLY_STATS_SCRIPT = """
local streak = tonumber(ARGV[1])
local best = tonumber(redis.call('HGET', KEYS[1], 'best_streak') or '0')
if streak > best then
    best = streak
end
local cumulative = tonumber(ARGV[2])
local stored = tonumber(redis.call('HGET', KEYS[1], 'cumulative_score') or '0')
if stored > cumulative then
    cumulative = stored
end
local runs = redis.call('HINCRBY', KEYS[1], 'run_count', 1)
redis.call('HSET', KEYS[1], 'best_streak', best, 'cumulative_score', cumulative, 'last_updated', ARGV[3])
redis.call('EXPIRE', KEYS[1], ARGV[4])
return {cumulative, best, runs}
"""


class Keys:
    """Key layout. One place so the layout can be read at a glance."""

    GLOBAL_LEADERBOARD = "leaderboard:global"
    TOKEN_POOL = "tokens:pool"

    @staticmethod
    def session(run_id: str) -> str:
        return f"game:{run_id}:state"

    @staticmethod
    def seed(run_id: str) -> str:
        return f"game:{run_id}:seed"

    @staticmethod
    def weekly_leaderboard(week_key: str) -> str:
        return f"scores:weekly:{week_key}:cumulative"

    @staticmethod
    def profile(user_id: str) -> str:
        return f"user:{user_id}:profile"

    @staticmethod
    def rank_snapshot(user_id: str, board: str) -> str:
        return f"user:{user_id}:rank:{board}:previous"

    @staticmethod
    def weekly_stats(user_id: str, week_key: str) -> str:
        return f"user:{user_id}:weekly:{week_key}"

    @staticmethod
    def run_history(user_id: str) -> str:
        return f"user:{user_id}:runs"

    @staticmethod
    def mystery_box_pool(day_key: str) -> str:
        return f"mystery-box:daily:{day_key}"

    @staticmethod
    def mystery_box_claims(day_key: str, user_id: str) -> str:
        return f"mystery-box:claims:{day_key}:{user_id}"

    @staticmethod
    def mystery_box_claimed(box_id: str) -> str:
        return f"mystery-box:claimed:{box_id}"

    @staticmethod
    def prize_pool(week_key: str) -> str:
        return f"prizepool:weekly:{week_key}"

    @staticmethod
    def admin_user(username: str) -> str:
        return f"admin:{username}"


@contextmanager
def upstream(action: str):
    try:
        yield
    except RedisError as e:
        logging.error(f"Failed to {action}: {e}")
        raise UpstreamUnavailableError(f"Failed to {action}") from e


def parse_payload(schema: Type[SchemaT], raw: Optional[str], action: str) -> Optional[SchemaT]:
    if raw is None:
        return None
    try:
        return schema.model_validate_json(raw)
    except ValidationError as e:
        logging.error(f"Failed to {action}, stored payload is malformed: {e}")
        raise UpstreamUnavailableError(f"Failed to {action}") from e


class KeyValueStore:
    def __init__(self, redis: Redis):
        self.redis = redis
        self.claim_script = redis.register_script(CLAIM_SCRIPT)
        self.weekly_stats_script = redis.register_script(WEEKLY_STATS_SCRIPT)

    async def ping(self) -> bool:
        with upstream("ping redis"):
            return bool(await self.redis.ping())

    # ==== Sessions ================================================================

    async def get_session(self, run_id: str) -> Optional[GameSessionSchema]:
        with upstream("read session"):
            raw = await self.redis.get(Keys.session(run_id))
        return parse_payload(GameSessionSchema, raw, "read session")

    async def save_session(self, session: GameSessionSchema, ttl_seconds: int) -> None:
        with upstream("save session"):
            await self.redis.set(
                Keys.session(session.run_id), session.model_dump_json(), ex=ttl_seconds
            )

    async def save_seed(self, run_id: str, seed: str, ttl_seconds: int) -> None:
        with upstream("save seed"):
            await self.redis.set(Keys.seed(run_id), seed, ex=ttl_seconds)

    async def get_seed(self, run_id: str) -> Optional[str]:
        with upstream("read seed"):
            return await self.redis.get(Keys.seed(run_id))

    # ==== Token pool ==============================================================

    async def get_token_pool(self) -> List[TokenSchema]:
        with upstream("read token pool"):
            raw = await self.redis.get(Keys.TOKEN_POOL)
        if raw is None:
            return []
        try:
            return [TokenSchema.model_validate(item) for item in json.loads(raw)]
        except (ValueError, ValidationError) as e:
            logging.error(f"Failed to read token pool, stored payload is malformed: {e}")
            raise UpstreamUnavailableError("Failed to read token pool") from e

    async def set_token_pool(self, tokens: List[TokenSchema]) -> None:
        payload = json.dumps([token.model_dump() for token in tokens])
        with upstream("save token pool"):
            await self.redis.set(Keys.TOKEN_POOL, payload)

    # ==== Leaderboards ============================================================

    async def set_global_if_greater(self, user_id: str, streak: int) -> None:
        """ZADD GT: the stored best streak only ever moves up."""
        with upstream("update global leaderboard"):
            await self.redis.zadd(Keys.GLOBAL_LEADERBOARD, {user_id: streak}, gt=True)

    async def add_weekly_score(self, week_key: str, user_id: str, streak: int) -> int:
        key = Keys.weekly_leaderboard(week_key)
        with upstream("update weekly leaderboard"):
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.zincrby(key, streak, user_id)
                pipe.expire(key, WEEKLY_TTL_SECONDS)
                total, _ = await pipe.execute()
        return int(total)

    async def get_score(self, board_key: str, user_id: str) -> Optional[int]:
        with upstream("read score"):
            score = await self.redis.zscore(board_key, user_id)
        return None if score is None else int(score)

    async def get_rank(self, board_key: str, user_id: str) -> Optional[int]:
        """1-indexed rank, best first. None when the user is not on the board."""
        with upstream("read rank"):
            rank = await self.redis.zrevrank(board_key, user_id)
        return None if rank is None else rank + 1

    async def top_scores(self, board_key: str, limit: int) -> List[Tuple[str, int]]:
        if limit <= 0:
            return []
        with upstream("read leaderboard"):
            rows = await self.redis.zrevrange(board_key, 0, limit - 1, withscores=True)
        return [(member, int(score)) for member, score in rows]

    async def scores_between(
        self, board_key: str, lower_exclusive: int, upper_exclusive: int
    ) -> List[Tuple[str, int]]:
        """Members with ``lower < score < upper``, highest first."""
        with upstream("read leaderboard range"):
            rows = await self.redis.zrevrangebyscore(
                board_key, f"({upper_exclusive}", f"({lower_exclusive}", withscores=True
            )
        return [(member, int(score)) for member, score in rows]

    async def get_rank_snapshot(self, user_id: str, board: str) -> Optional[int]:
        with upstream("read rank snapshot"):
            raw = await self.redis.get(Keys.rank_snapshot(user_id, board))
        return None if raw is None else int(raw)

    async def set_rank_snapshot(self, user_id: str, board: str, rank: int) -> None:
        with upstream("save rank snapshot"):
            await self.redis.set(Keys.rank_snapshot(user_id, board), rank, ex=WEEKLY_TTL_SECONDS)

    # ==== Per-user records ========================================================

    async def get_weekly_stats(self, user_id: str, week_key: str) -> WeeklyStatsSchema:
        with upstream("read weekly stats"):
            data = await self.redis.hgetall(Keys.weekly_stats(user_id, week_key))
        try:
            return WeeklyStatsSchema.model_validate(data)
        except ValidationError as e:
            logging.error(f"Failed to read weekly stats, stored payload is malformed: {e}")
            raise UpstreamUnavailableError("Failed to read weekly stats") from e

    async def record_weekly_run(
        self, user_id: str, week_key: str, streak: int, cumulative_score: int, timestamp: int
    ) -> WeeklyStatsSchema:
        """Count one run in the user's weekly stats in a single Lua call.

        ``run_count`` is incremented and ``best_streak`` only moves up, so
        concurrent submissions never lose an update.
        """
        with upstream("save weekly stats"):
            cumulative, best, runs = await self.weekly_stats_script(
                keys=[Keys.weekly_stats(user_id, week_key)],
                args=[streak, cumulative_score, timestamp, WEEKLY_TTL_SECONDS],
            )
        return WeeklyStatsSchema(
            cumulative_score=int(cumulative),
            best_streak=int(best),
            run_count=int(runs),
            last_updated=timestamp,
        )

    async def get_profile(self, user_id: str) -> Optional[IdentitySchema]:
        with upstream("read profile"):
            raw = await self.redis.get(Keys.profile(user_id))
        return parse_payload(IdentitySchema, raw, "read profile")

    async def save_profile(self, identity: IdentitySchema) -> None:
        with upstream("save profile"):
            await self.redis.set(
                Keys.profile(identity.user_id),
                identity.model_dump_json(),
                ex=PROFILE_TTL_SECONDS,
            )

    async def push_run(self, user_id: str, entry: RunHistoryEntrySchema) -> None:
        key = Keys.run_history(user_id)
        with upstream("record run"):
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.lpush(key, entry.model_dump_json())
                pipe.ltrim(key, 0, RUN_HISTORY_LENGTH - 1)
                pipe.expire(key, RUN_HISTORY_TTL_SECONDS)
                await pipe.execute()

    async def get_runs(self, user_id: str) -> List[RunHistoryEntrySchema]:
        """Recorded runs, newest first."""
        with upstream("read run history"):
            rows = await self.redis.lrange(Keys.run_history(user_id), 0, RUN_HISTORY_LENGTH - 1)
        return [parse_payload(RunHistoryEntrySchema, row, "read run history") for row in rows]

    # ==== Mystery box =============================================================

    async def get_mystery_box_pool(self, day_key: str) -> Optional[int]:
        """Boxes left today, None when today's pool has not been opened yet."""
        with upstream("read mystery box pool"):
            raw = await self.redis.get(Keys.mystery_box_pool(day_key))
        return None if raw is None else int(raw)

    async def get_daily_claims(self, day_key: str, user_id: str) -> int:
        with upstream("read daily claims"):
            raw = await self.redis.get(Keys.mystery_box_claims(day_key, user_id))
        return 0 if raw is None else int(raw)

    async def claim_mystery_box(
        self,
        day_key: str,
        box: MysteryBoxSchema,
        initial_pool: int,
        daily_limit: int,
    ) -> Tuple[str, Optional[MysteryBoxSchema]]:
        """Run the claim in one Lua call.

        Opens today's pool if needed, then either refuses with a reason or
        decrements the pool, bumps the user's counter and marks the box as
        claimed. A retried claim for the same box by the same user returns
        the box stored the first time.

        Returns:
            Tuple[str, Optional[MysteryBoxSchema]]: outcome code and the paid-out box
        """
        with upstream("claim mystery box"):
            outcome, payload = await self.claim_script(
                keys=[
                    Keys.mystery_box_pool(day_key),
                    Keys.mystery_box_claims(day_key, box.user_id),
                    Keys.mystery_box_claimed(box.box_id),
                ],
                args=[
                    initial_pool,
                    daily_limit,
                    box.user_id,
                    box.model_dump_json(),
                    DAILY_TTL_SECONDS,
                    CLAIMED_MARKER_TTL_SECONDS,
                ],
            )
        if outcome in (CLAIMED, REPLAYED):
            return outcome, parse_payload(MysteryBoxSchema, payload, "claim mystery box")
        return outcome, None

    async def get_claimed_box(self, box_id: str) -> Optional[MysteryBoxSchema]:
        with upstream("read claimed box"):
            raw = await self.redis.hget(Keys.mystery_box_claimed(box_id), "box")
        return parse_payload(MysteryBoxSchema, raw, "read claimed box")

    # ==== Prize pool ==============================================================

    async def get_prize_pool(self, week_key: str) -> Optional[WeeklyPrizePoolSchema]:
        with upstream("read prize pool"):
            raw = await self.redis.get(Keys.prize_pool(week_key))
        return parse_payload(WeeklyPrizePoolSchema, raw, "read prize pool")

    async def save_prize_pool(self, prize_pool: WeeklyPrizePoolSchema) -> None:
        with upstream("save prize pool"):
            await self.redis.set(Keys.prize_pool(prize_pool.week_key), prize_pool.model_dump_json())

    # ==== Admin users =============================================================

    async def get_admin_user(self, username: str) -> Optional[dict]:
        with upstream("read admin user"):
            data = await self.redis.hgetall(Keys.admin_user(username))
        return data or None

    async def save_admin_user(self, username: str, salt: str, hash_password: str) -> None:
        with upstream("save admin user"):
            await self.redis.hset(
                Keys.admin_user(username), mapping={"salt": salt, "hash_password": hash_password}
            )
