import numpy as np
import pytest

from caporslap.errors import UnauthorizedError, ValidationFailedError
from caporslap.models.dc_models import (
    BoardModel,
    GuessRequestModel,
    RunModel,
    SubmitScoreRequestModel,
)
from caporslap.services.game_session import GameSessionService
from caporslap.services.leaderboard import LeaderboardService
from caporslap.store import Keys
from helpers import WEEK_KEY, losing_choice, winning_choice


@pytest.fixture()
def service(store, identity, clock):
    return LeaderboardService(store, identity, verification_threshold=10, clock=clock)


def submission(user_id, streak, run_id="run"):
    return SubmitScoreRequestModel(
        user_id=user_id, run=RunModel(run_id=run_id, streak=streak)
    )


async def test_first_submission_is_new_best(service):
    result = await service.submit_score(submission("0xaaaaaaaaaaaa1111", 4))
    assert result.is_new_best
    assert result.previous_rank is None
    assert result.new_rank == 1
    assert result.weekly_rank == 1
    assert result.cumulative_score == 4


async def test_global_best_is_monotonic(service, store):
    for streak in (7, 3, 9, 2):
        await service.submit_score(submission("0xabc", streak))
        best = await store.get_score(Keys.GLOBAL_LEADERBOARD, "0xabc")
    assert best == 9
    result = await service.submit_score(submission("0xabc", 5))
    assert not result.is_new_best
    assert await store.get_score(Keys.GLOBAL_LEADERBOARD, "0xabc") == 9


async def test_weekly_score_is_exact_sum(store, identity, clock):
    service = LeaderboardService(store, identity, verification_threshold=100, clock=clock)
    for streak in (5, 8, 12):
        result = await service.submit_score(submission("0xabc", streak))
    assert result.cumulative_score == 25
    stats = await store.get_weekly_stats("0xabc", WEEK_KEY)
    assert (stats.cumulative_score, stats.best_streak, stats.run_count) == (25, 12, 3)


async def test_ranks_reported_against_snapshot(service):
    await service.submit_score(submission("0xaaa", 6))
    await service.submit_score(submission("0xbbb", 4))
    result = await service.submit_score(submission("0xbbb", 8))
    assert result.previous_rank == 2
    assert result.new_rank == 1


async def seed_board(store, scores):
    for member, score in scores.items():
        await store.set_global_if_greater(member, score)


async def test_overtakes_strictly_inside_range(service, store):
    await seed_board(
        store,
        {"at_low": 3, "four": 4, "seven": 7, "eight": 8, "at_high": 9, "above": 12, "guest_x": 5},
    )
    overtakes = await service.check_overtakes("0xme", 9, 3)
    assert [o.overtaken_user_id for o in overtakes] == ["eight", "seven", "four"]
    assert all(3 < o.their_score < 9 for o in overtakes)
    assert all(o.your_score == 9 for o in overtakes)

    assert await service.check_overtakes("0xme", 9, 9) == []
    assert await service.check_overtakes("0xme", 0, 0) == []


async def test_overtakes_deduplicated_across_boards_and_capped(service, store):
    await seed_board(store, {"a": 5, "b": 6, "c": 7, "d": 8})
    await store.add_weekly_score(WEEK_KEY, "a", 5)
    await store.add_weekly_score(WEEK_KEY, "e", 4)
    overtakes = await service.check_overtakes("0xme", 10, 1)
    ids = [o.overtaken_user_id for o in overtakes]
    assert len(ids) == 3
    assert len(set(ids)) == 3
    assert ids == ["d", "c", "b"]


async def test_overtakes_never_include_self(service, store):
    await seed_board(store, {"0xme": 5, "other": 6})
    overtakes = await service.check_overtakes("0xme", 9, 3)
    assert [o.overtaken_user_id for o in overtakes] == ["other"]


async def test_submission_reports_overtakes(service, store):
    await seed_board(store, {"rival": 5})
    result = await service.submit_score(submission("0xme", 7))
    assert [o.overtaken_user_id for o in result.overtakes] == ["rival"]


async def test_guest_cannot_submit(service):
    with pytest.raises(UnauthorizedError):
        await service.submit_score(submission("guest_123", 3))


async def play_run(game, clock, user_id, wins):
    started = await game.start(user_id)
    current, upcoming = started.current_token, started.next_token
    for _ in range(wins):
        clock.advance(2_000)
        result = await game.guess(
            GuessRequestModel(
                run_id=started.run_id,
                user_id=user_id,
                choice=winning_choice(current, upcoming),
                current_token_id=current.id,
                next_token_id=upcoming.id,
            )
        )
        current, upcoming = result.current_token, result.next_token
    clock.advance(2_000)
    await game.guess(
        GuessRequestModel(
            run_id=started.run_id,
            user_id=user_id,
            choice=losing_choice(current, upcoming),
            current_token_id=current.id,
            next_token_id=upcoming.id,
        )
    )
    return started.run_id


async def test_high_score_requires_matching_session(store, identity, token_pool, clock):
    game = GameSessionService(store, token_pool, rng=np.random.default_rng(3), clock=clock)
    service = LeaderboardService(store, identity, verification_threshold=3, clock=clock)
    run_id = await play_run(game, clock, "0xabc", 4)

    with pytest.raises(ValidationFailedError):
        await service.submit_score(submission("0xabc", 6, run_id))
    with pytest.raises(ValidationFailedError):
        await service.submit_score(submission("0xdef", 4, run_id))
    with pytest.raises(ValidationFailedError):
        await service.submit_score(submission("0xabc", 4, "missing"))

    result = await service.submit_score(submission("0xabc", 4, run_id))
    assert result.streak == 4
    # Below the threshold the reported streak is trusted
    assert (await service.submit_score(submission("0xabc", 2, "no-session"))).streak == 2


async def test_leaderboard_projection(service):
    await service.submit_score(submission("0x1111111111111111", 6))
    await service.submit_score(submission("0x2222222222222222", 9))
    await service.submit_score(submission("0x2222222222222222", 1))

    weekly = await service.get_leaderboard(BoardModel.weekly, 10, "0x1111111111111111")
    assert [entry.rank for entry in weekly.entries] == [1, 2]
    assert weekly.entries[0].user.display_name == "0x2222...2222"
    assert weekly.entries[0].cumulative_score == 10
    assert weekly.entries[0].best_streak == 9
    assert weekly.user_rank == 2

    global_board = await service.get_leaderboard(BoardModel.global_, 10)
    assert global_board.entries[0].best_streak == 9
    assert global_board.entries[0].cumulative_score is None
    assert global_board.user_rank is None


async def test_position_change(service, store):
    first = await service.position_change("0xabc", BoardModel.global_)
    assert not first.changed

    await store.set_global_if_greater("0xabc", 5)
    seeded = await service.position_change("0xabc", BoardModel.global_)
    assert not seeded.changed
    assert seeded.current_rank == 1

    await store.set_global_if_greater("rival", 8)
    dropped = await service.position_change("0xabc", BoardModel.global_)
    assert dropped.changed
    assert dropped.direction == "down"
    assert dropped.rank_change == 1
    assert (dropped.previous_rank, dropped.current_rank) == (1, 2)


async def test_run_history_records_reprieve(service, store):
    request = SubmitScoreRequestModel(
        user_id="0xabc", run=RunModel(run_id="run", streak=6, used_reprieve=True)
    )
    await service.submit_score(request)
    runs = await store.get_runs("0xabc")
    assert [(run.streak, run.used_reprieve) for run in runs] == [(6, True)]
