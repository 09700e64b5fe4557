import logging
from typing import Callable, Dict, List, Optional

from caporslap.clock import now_ms
from caporslap.domain.calendar import week_key
from caporslap.domain.game_rules import is_guest, requires_verification, validate_session_state
from caporslap.errors import UnauthorizedError, ValidationFailedError
from caporslap.models.dc_models import (
    BoardModel,
    LeaderboardEntryModel,
    LeaderboardResponseModel,
    OvertakeModel,
    PositionChangeModel,
    SubmitScoreRequestModel,
    SubmitScoreResponseModel,
)
from caporslap.models.schema_models import RunHistoryEntrySchema
from caporslap.services.identity import IdentityService
from caporslap.store import Keys, KeyValueStore

MAX_OVERTAKES = 3
MAX_LEADERBOARD_LIMIT = 100


class LeaderboardService:
    """Global best-streak board and weekly cumulative board.

    Global scores only move up (``ZADD GT``). Weekly scores are summed per
    week key (``ZINCRBY``). Ranks are 1-indexed, best first; equal scores
    are ordered the way Redis orders them.
    """

    def __init__(
        self,
        store: KeyValueStore,
        identity: IdentityService,
        verification_threshold: int = 10,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.identity = identity
        self.verification_threshold = verification_threshold
        self.clock = clock

    def board_key(self, board: BoardModel, timestamp_ms: Optional[int] = None) -> str:
        if board == BoardModel.global_:
            return Keys.GLOBAL_LEADERBOARD
        return Keys.weekly_leaderboard(week_key(timestamp_ms or self.clock()))

    async def verify_run(self, user_id: str, run_id: str, streak: int) -> None:
        """High scores must match a stored session owned by the caller.

        Raises:
            ValidationFailedError: Session missing, owned by someone else, or inconsistent
        """
        if not requires_verification(streak, self.verification_threshold):
            return
        session = await self.store.get_session(run_id)
        if session is None:
            raise ValidationFailedError("Game session not found, score cannot be verified")
        if session.user_id != user_id:
            raise ValidationFailedError("Game session belongs to another user")
        if session.current_streak != streak:
            raise ValidationFailedError(
                f"Streak mismatch: reported {streak}, server has {session.current_streak}"
            )
        valid, reason = validate_session_state(session)
        if not valid:
            logging.warning(f"Validation failed for run {run_id}: {reason}")
            raise ValidationFailedError(f"Score validation failed: {reason}")

    async def submit_score(self, request: SubmitScoreRequestModel) -> SubmitScoreResponseModel:
        user_id = request.user_id
        run = request.run
        if is_guest(user_id):
            raise UnauthorizedError("Guest users cannot submit to the leaderboard")
        await self.verify_run(user_id, run.run_id, run.streak)

        now = self.clock()
        week = week_key(now)
        weekly_key = Keys.weekly_leaderboard(week)
        await self.identity.resolve(user_id)

        previous_best = await self.store.get_score(Keys.GLOBAL_LEADERBOARD, user_id)
        previous_rank = await self.store.get_rank_snapshot(user_id, BoardModel.global_.value)
        previous_weekly_rank = await self.store.get_rank_snapshot(user_id, BoardModel.weekly.value)

        await self.store.set_global_if_greater(user_id, run.streak)
        cumulative = await self.store.add_weekly_score(week, user_id, run.streak)
        await self.store.record_weekly_run(user_id, week, run.streak, cumulative, now)
        if run.streak > 0:
            entry = RunHistoryEntrySchema(
                streak=run.streak,
                timestamp=run.timestamp or now,
                used_reprieve=run.used_reprieve,
            )
            await self.store.push_run(user_id, entry)

        new_rank = await self.store.get_rank(Keys.GLOBAL_LEADERBOARD, user_id)
        weekly_rank = await self.store.get_rank(weekly_key, user_id)
        if new_rank is not None:
            await self.store.set_rank_snapshot(user_id, BoardModel.global_.value, new_rank)
        if weekly_rank is not None:
            await self.store.set_rank_snapshot(user_id, BoardModel.weekly.value, weekly_rank)

        is_new_best = previous_best is None or run.streak > previous_best
        overtakes: List[OvertakeModel] = []
        if is_new_best:
            overtakes = await self.check_overtakes(user_id, run.streak, previous_best or 0)

        logging.info(
            f"Score {run.streak} from {user_id}: global rank {previous_rank} -> {new_rank}, "
            f"weekly total {cumulative}"
        )
        return SubmitScoreResponseModel(
            is_new_best=is_new_best,
            previous_rank=previous_rank,
            new_rank=new_rank,
            previous_weekly_rank=previous_weekly_rank,
            weekly_rank=weekly_rank,
            cumulative_score=cumulative,
            streak=run.streak,
            overtakes=overtakes,
        )

    async def check_overtakes(
        self, user_id: str, current_streak: int, previous_streak: int = 0
    ) -> List[OvertakeModel]:
        """Other players whose score lies strictly between the two streaks.

        Both boards are searched, each overtaken player is reported once
        (at their highest score), guests are skipped, and at most
        ``MAX_OVERTAKES`` results are returned, highest score first.
        """
        if current_streak <= 0 or current_streak <= previous_streak:
            return []

        found: Dict[str, OvertakeModel] = {}
        for board in (BoardModel.global_, BoardModel.weekly):
            rows = await self.store.scores_between(
                self.board_key(board), previous_streak, current_streak
            )
            for member, score in rows:
                if member == user_id or is_guest(member):
                    continue
                if member in found and found[member].their_score >= score:
                    continue
                found[member] = OvertakeModel(
                    overtaken_user_id=member,
                    overtaken_user=await self.identity.cached(member),
                    their_score=score,
                    your_score=current_streak,
                    board=board,
                )
        ranked = sorted(found.values(), key=lambda overtake: overtake.their_score, reverse=True)
        return ranked[:MAX_OVERTAKES]

    async def get_leaderboard(
        self, board: BoardModel, limit: int = 50, user_id: Optional[str] = None
    ) -> LeaderboardResponseModel:
        limit = max(1, min(limit, MAX_LEADERBOARD_LIMIT))
        now = self.clock()
        key = self.board_key(board, now)
        rows = await self.store.top_scores(key, limit)

        entries: List[LeaderboardEntryModel] = []
        for rank, (member, score) in enumerate(rows, start=1):
            identity = await self.identity.cached(member)
            if board == BoardModel.weekly:
                stats = await self.store.get_weekly_stats(member, week_key(now))
                entry = LeaderboardEntryModel(
                    rank=rank, user=identity, best_streak=stats.best_streak, cumulative_score=score
                )
            else:
                entry = LeaderboardEntryModel(rank=rank, user=identity, best_streak=score)
            entries.append(entry)

        user_rank = await self.store.get_rank(key, user_id) if user_id else None
        return LeaderboardResponseModel(type=board, entries=entries, user_rank=user_rank)

    async def position_change(self, user_id: str, board: BoardModel) -> PositionChangeModel:
        """Compare the live rank with the stored snapshot, then move the snapshot forward."""
        current = await self.store.get_rank(self.board_key(board), user_id)
        previous = await self.store.get_rank_snapshot(user_id, board.value)
        if current is not None:
            await self.store.set_rank_snapshot(user_id, board.value, current)

        if previous is None or current is None or previous == current:
            return PositionChangeModel(
                changed=False,
                previous_rank=previous,
                current_rank=current,
                direction=None,
                rank_change=0,
            )
        delta = previous - current
        return PositionChangeModel(
            changed=True,
            previous_rank=previous,
            current_rank=current,
            direction="up" if delta > 0 else "down",
            rank_change=abs(delta),
        )
