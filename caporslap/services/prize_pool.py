import logging
from typing import Callable, List, Optional, Tuple

from caporslap.clock import now_ms
from caporslap.domain.calendar import next_week_key, week_key, week_key_start_ms
from caporslap.domain.prize_pool import calculate_prize_distribution, prize_for_user
from caporslap.errors import PrizePoolNotFoundError, ValidationFailedError
from caporslap.models.dc_models import (
    FinalizeResponseModel,
    PrizePoolResponseModel,
    WeeklyScoreModel,
)
from caporslap.models.schema_models import (
    PrizeAllocationSchema,
    SponsorSchema,
    WeeklyPrizePoolSchema,
)
from caporslap.store import Keys, KeyValueStore

ACTIVE = "active"
FINALIZED = "finalized"


def checked_week_start(key: str) -> int:
    try:
        return week_key_start_ms(key)
    except ValueError as e:
        raise ValidationFailedError(f"Invalid week key {key!r}, expected YYYY-WW") from e


class PrizePoolService:
    """Weekly prize pool lifecycle: initialize, read, finalize, roll over."""

    def __init__(
        self,
        store: KeyValueStore,
        enabled: bool = False,
        top_n: int = 50,
        default_amount: float = 1000.0,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.enabled = enabled
        self.top_n = top_n
        self.default_amount = default_amount
        self.clock = clock

    async def initialize(
        self,
        total_amount: float,
        key: Optional[str] = None,
        sponsor: Optional[SponsorSchema] = None,
    ) -> WeeklyPrizePoolSchema:
        key = key or week_key(self.clock())
        checked_week_start(key)
        existing = await self.store.get_prize_pool(key)
        if existing is not None and existing.status == FINALIZED:
            raise ValidationFailedError(f"Prize pool for week {key} is already finalized")

        prize_pool = WeeklyPrizePoolSchema(
            week_key=key,
            total_amount=total_amount,
            eligible_ranks=self.top_n,
            sponsor=sponsor,
            status=ACTIVE,
            created_at=self.clock(),
        )
        await self.store.save_prize_pool(prize_pool)
        logging.info(f"Initialized prize pool {key} with {total_amount}")
        return prize_pool

    async def ranked_scores(self, key: str) -> List[Tuple[str, int]]:
        return await self.store.top_scores(Keys.weekly_leaderboard(key), self.top_n)

    async def get_current(self, user_id: Optional[str] = None) -> PrizePoolResponseModel:
        key = week_key(self.clock())
        prize_pool = await self.store.get_prize_pool(key)
        ranked = await self.ranked_scores(key)

        top_scores: List[WeeklyScoreModel] = []
        for member, score in ranked:
            stats = await self.store.get_weekly_stats(member, key)
            top_scores.append(
                WeeklyScoreModel(
                    user_id=member,
                    cumulative_score=score,
                    best_streak=stats.best_streak,
                    run_count=stats.run_count,
                )
            )

        distribution: List[PrizeAllocationSchema] = []
        if prize_pool is not None:
            distribution = prize_pool.distribution or calculate_prize_distribution(
                ranked, prize_pool.total_amount, self.top_n, self.enabled
            )

        user_score = 0
        user_rank = None
        if user_id:
            weekly_key = Keys.weekly_leaderboard(key)
            user_score = await self.store.get_score(weekly_key, user_id) or 0
            user_rank = await self.store.get_rank(weekly_key, user_id)

        return PrizePoolResponseModel(
            enabled=self.enabled,
            prize_pool=prize_pool,
            top_scores=top_scores,
            distribution=distribution,
            user_score=user_score,
            user_rank=user_rank,
            user_prize_estimate=prize_for_user(distribution, user_id) if user_id else 0.0,
        )

    async def finalize(self, key: str) -> List[PrizeAllocationSchema]:
        """Freeze the distribution for ``key``. A finalized week is returned unchanged."""
        prize_pool = await self.store.get_prize_pool(key)
        if prize_pool is None:
            raise PrizePoolNotFoundError(f"No prize pool for week {key}")
        if prize_pool.status == FINALIZED:
            logging.info(f"Prize pool {key} already finalized")
            return prize_pool.distribution

        distribution = calculate_prize_distribution(
            await self.ranked_scores(key), prize_pool.total_amount, self.top_n, self.enabled
        )
        finalized = prize_pool.model_copy(
            update={
                "status": FINALIZED,
                "finalized_at": self.clock(),
                "distribution": distribution,
            }
        )
        await self.store.save_prize_pool(finalized)
        logging.info(f"Finalized prize pool {key}: {len(distribution)} winners")
        return distribution

    async def rollover(
        self,
        key: Optional[str] = None,
        next_amount: Optional[float] = None,
        next_sponsor: Optional[SponsorSchema] = None,
    ) -> FinalizeResponseModel:
        """Finalize the closing week and open the following one."""
        key = key or week_key(self.clock())
        following = next_week_key(checked_week_start(key))
        distribution = await self.finalize(key)

        next_week_initialized = False
        existing = await self.store.get_prize_pool(following)
        if existing is None:
            await self.initialize(next_amount or self.default_amount, following, next_sponsor)
            next_week_initialized = True
        return FinalizeResponseModel(
            week_key=key,
            distribution=distribution,
            next_week_key=following,
            next_week_initialized=next_week_initialized,
        )

    async def scheduled_rollover(self) -> None:
        """Weekly job: close the week that just ended."""
        if not self.enabled:
            return
        # Runs at Sunday 00:00, so one hour back is still inside the closing week.
        closing = week_key(self.clock() - 3_600_000)
        try:
            await self.rollover(closing)
        except PrizePoolNotFoundError:
            logging.warning(f"No prize pool to roll over for week {closing}")
            current = week_key(self.clock())
            if await self.store.get_prize_pool(current) is None:
                await self.initialize(self.default_amount, current)
