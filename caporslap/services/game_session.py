import logging
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np
from uuid6 import uuid7

from caporslap.clock import now_ms
from caporslap.domain.difficulty import tier_for_streak
from caporslap.domain.game_rules import check_rate_limit, correct_answer, is_correct_guess
from caporslap.domain.sequencing import (
    RandomSequencer,
    SeededSequencer,
    TokenSequencer,
    generate_seed,
)
from caporslap.errors import (
    InitialPairUnavailableError,
    RateLimitedError,
    SessionNotFoundError,
    TamperDetectedError,
    UnauthorizedError,
    UpstreamUnavailableError,
)
from caporslap.models.dc_models import (
    GuessChoiceModel,
    GuessRequestModel,
    GuessResponseModel,
    StartSessionResponseModel,
)
from caporslap.models.schema_models import GameSessionSchema, GuessRecordSchema, TokenSchema
from caporslap.services.token_pool import TokenPoolReader
from caporslap.store import KeyValueStore


class GameSessionService:
    """Starts runs and validates every guess against the stored session.

    The stored session is the only source of truth for the current pair and
    streak. A guess is checked in a fixed order (session exists, owner
    matches, pair matches, rate limit) and nothing is written unless all
    checks pass.
    """

    def __init__(
        self,
        store: KeyValueStore,
        token_pool: TokenPoolReader,
        session_ttl_seconds: int = 3600,
        min_guess_interval_ms: int = 500,
        preload_count: int = 5,
        deterministic: bool = False,
        rng: Optional[np.random.Generator] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.token_pool = token_pool
        self.session_ttl_seconds = session_ttl_seconds
        self.min_guess_interval_ms = min_guess_interval_ms
        self.preload_count = preload_count
        self.deterministic = deterministic
        self.rng = rng if rng is not None else np.random.default_rng()
        self.random_sequencer = RandomSequencer(self.rng)
        self.clock = clock

    def sequencers(self, seed: str) -> List[TokenSequencer]:
        """Primary strategy first, the other one as fallback."""
        seeded = SeededSequencer(seed)
        if self.deterministic:
            return [seeded, self.random_sequencer]
        return [self.random_sequencer, seeded]

    async def start(self, user_id: str) -> StartSessionResponseModel:
        pool = await self.token_pool.get_pool()
        run_id = str(uuid7())
        seed = generate_seed(self.rng)

        pair = None
        for sequencer in self.sequencers(seed):
            pair = sequencer.select_initial_pair(pool)
            if pair is not None:
                break
        if pair is None:
            logging.error(f"No initial pair for run {run_id}, pool size {len(pool)}")
            raise InitialPairUnavailableError("Could not select an initial token pair")
        current, upcoming = pair

        started_at = self.clock()
        tier = tier_for_streak(0)
        session = GameSessionSchema(
            run_id=run_id,
            seed=seed,
            user_id=user_id,
            started_at=started_at,
            current_token_id=current.id,
            next_token_id=upcoming.id,
            difficulty_tier=tier.name,
        )
        await self.store.save_session(session, self.session_ttl_seconds)
        await self.store.save_seed(run_id, seed, self.session_ttl_seconds)
        logging.info(f"Started run {run_id} for {user_id}")

        preloaded = self.sequencers(seed)[0].preload_tokens(
            pool, upcoming, [current.id, upcoming.id], self.preload_count
        )
        return StartSessionResponseModel(
            run_id=run_id,
            seed=seed,
            current_token=current,
            next_token=upcoming,
            timer_duration=tier.timer_duration_ms,
            difficulty=tier.name,
            started_at=started_at,
            preloaded_tokens=preloaded,
        )

    async def load_owned_session(self, run_id: str, user_id: str) -> GameSessionSchema:
        session = await self.store.get_session(run_id)
        if session is None:
            raise SessionNotFoundError(f"Run {run_id} not found or expired")
        if session.user_id != user_id:
            logging.warning(f"User {user_id} tried to play run {run_id} owned by {session.user_id}")
            raise UnauthorizedError("Run belongs to another user")
        return session

    def select_next(
        self,
        pool: Sequence[TokenSchema],
        previous: TokenSchema,
        recent_ids: Sequence[str],
        streak: int,
        round_number: int,
        seed: str,
    ) -> TokenSchema:
        for sequencer in self.sequencers(seed):
            token = sequencer.select_next(pool, previous, recent_ids, streak, round_number)
            if token is not None:
                return token
        if not pool:
            raise UpstreamUnavailableError("Token pool is empty")
        logging.warning(f"Sequencer found no candidate, picking uniformly from {len(pool)} tokens")
        return pool[int(self.rng.integers(len(pool)))]

    async def guess(self, request: GuessRequestModel) -> GuessResponseModel:
        now = self.clock()
        session = await self.load_owned_session(request.run_id, request.user_id)

        if session.ended:
            raise TamperDetectedError("Run has already ended")
        if (request.current_token_id, request.next_token_id) != (
            session.current_token_id,
            session.next_token_id,
        ):
            logging.warning(
                f"Pair mismatch on run {session.run_id}: got "
                f"({request.current_token_id}, {request.next_token_id}), stored "
                f"({session.current_token_id}, {session.next_token_id})"
            )
            raise TamperDetectedError("Token pair does not match the session")
        if not check_rate_limit(session.last_guess_timestamp, now, self.min_guess_interval_ms):
            raise RateLimitedError("Guesses are coming in too fast")

        pool = await self.token_pool.get_pool()
        tokens: Dict[str, TokenSchema] = {token.id: token for token in pool}
        current = tokens.get(session.current_token_id)
        upcoming = tokens.get(session.next_token_id)
        if current is None or upcoming is None:
            raise UpstreamUnavailableError("Session tokens are no longer in the pool")

        record = GuessRecordSchema(
            round=session.round_number,
            current_token_id=current.id,
            next_token_id=upcoming.id,
            choice=request.choice.value,
            timestamp=now,
        )
        guesses = session.guesses + [record]

        if not is_correct_guess(current, upcoming, request.choice.value):
            ended = session.model_copy(
                update={"guesses": guesses, "last_guess_timestamp": now, "ended": True}
            )
            await self.store.save_session(ended, self.session_ttl_seconds)
            logging.info(f"Run {session.run_id} ended with streak {session.current_streak}")
            return GuessResponseModel(
                correct=False,
                final_streak=session.current_streak,
                current_token=current,
                revealed_market_cap=upcoming.market_cap,
                correct_answer=GuessChoiceModel(correct_answer(current, upcoming)),
                difficulty=session.difficulty_tier,
            )

        new_streak = session.current_streak + 1
        new_round = session.round_number + 1
        tier = tier_for_streak(new_streak)
        used_ids = [token_id for g in guesses for token_id in (g.current_token_id, g.next_token_id)]
        following = self.select_next(pool, upcoming, used_ids, new_streak, new_round, session.seed)

        advanced = session.model_copy(
            update={
                "guesses": guesses,
                "current_streak": new_streak,
                "round_number": new_round,
                "current_token_id": upcoming.id,
                "next_token_id": following.id,
                "difficulty_tier": tier.name,
                "last_guess_timestamp": now,
            }
        )
        await self.store.save_session(advanced, self.session_ttl_seconds)
        return GuessResponseModel(
            correct=True,
            new_streak=new_streak,
            current_token=upcoming,
            next_token=following,
            revealed_market_cap=upcoming.market_cap,
            timer_duration=tier.timer_duration_ms,
            difficulty=tier.name,
        )
