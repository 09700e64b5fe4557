import logging
from typing import Callable, Optional

import numpy as np
from uuid6 import uuid7

from caporslap.clock import now_ms
from caporslap.domain.calendar import day_key
from caporslap.domain.eligibility import (
    FEATURE_DISABLED,
    MESSAGES,
    EligibilityResult,
    evaluate_eligibility,
)
from caporslap.domain.mystery_box import generate_mystery_box
from caporslap.models.dc_models import ClaimResponseModel, EligibilityModel
from caporslap.store import BOX_ALREADY_CLAIMED, CLAIMED, REPLAYED, KeyValueStore

CLAIM_MESSAGES = dict(MESSAGES, **{BOX_ALREADY_CLAIMED: "This box was claimed by another user"})


class MysteryBoxService:
    """Daily mystery box pool.

    ``check`` only reads. ``claim`` re-checks the eligibility rules and then
    commits through a single Lua script, so the shared pool never goes
    below zero and a box id pays out at most once.
    """

    def __init__(
        self,
        store: KeyValueStore,
        enabled: bool = False,
        daily_pool: int = 50,
        daily_limit: int = 2,
        rng: Optional[np.random.Generator] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.enabled = enabled
        self.daily_pool = daily_pool
        self.daily_limit = daily_limit
        self.rng = rng if rng is not None else np.random.default_rng()
        self.clock = clock

    async def pool_count(self) -> int:
        """Boxes left today. A day without a stored counter has the full pool."""
        count = await self.store.get_mystery_box_pool(day_key(self.clock()))
        return self.daily_pool if count is None else count

    async def evaluate(self, user_id: str, streak: int) -> EligibilityResult:
        if not self.enabled:
            return EligibilityResult(eligible=False, reason=FEATURE_DISABLED)
        now = self.clock()
        return evaluate_eligibility(
            streak=streak,
            pool_count=await self.pool_count(),
            daily_claims=await self.store.get_daily_claims(day_key(now), user_id),
            runs=await self.store.get_runs(user_id),
            now_ms=now,
            daily_limit=self.daily_limit,
        )

    async def check(self, user_id: str, streak: int) -> EligibilityModel:
        result = await self.evaluate(user_id, streak)
        return EligibilityModel(eligible=result.eligible, reason=result.reason, message=result.message)

    async def claim(
        self, user_id: str, streak: int, box_id: Optional[str] = None
    ) -> ClaimResponseModel:
        """Claim a box. Passing the same ``box_id`` again returns the first payout."""
        if box_id is not None:
            previous = await self.store.get_claimed_box(box_id)
            if previous is not None and previous.user_id == user_id:
                logging.info(f"Replayed claim of box {box_id} for {user_id}")
                return ClaimResponseModel(success=True, box=previous, rewards=previous.rewards)

        result = await self.evaluate(user_id, streak)
        if not result.eligible:
            return ClaimResponseModel(success=False, reason=result.reason, message=result.message)

        now = self.clock()
        box = generate_mystery_box(box_id or str(uuid7()), user_id, now, self.rng)
        outcome, stored = await self.store.claim_mystery_box(
            day_key(now), box, self.daily_pool, self.daily_limit
        )
        if outcome not in (CLAIMED, REPLAYED):
            return ClaimResponseModel(
                success=False, reason=outcome, message=CLAIM_MESSAGES.get(outcome)
            )
        logging.info(f"{user_id} claimed box {stored.box_id} worth {stored.total_value}")
        return ClaimResponseModel(success=True, box=stored, rewards=stored.rewards)
