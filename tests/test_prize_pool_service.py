import pytest

from caporslap.errors import PrizePoolNotFoundError, ValidationFailedError
from caporslap.models.schema_models import SponsorSchema, WeeklyPrizePoolSchema
from caporslap.services.prize_pool import PrizePoolService
from helpers import NEXT_WEEK_KEY, WEEK_KEY


@pytest.fixture()
def service(store, clock):
    return PrizePoolService(store, enabled=True, top_n=50, default_amount=1000, clock=clock)


async def seed_weekly(store, scores):
    for member, score in scores.items():
        await store.add_weekly_score(WEEK_KEY, member, score)


async def test_initialize_and_read_current(service, store):
    sponsor = SponsorSchema(company_name="Acme", token_symbol="ACME")
    await service.initialize(2_000, sponsor=sponsor)
    await seed_weekly(store, {"a": 100, "b": 300, "c": 600})

    current = await service.get_current("a")
    assert current.enabled
    assert current.prize_pool.week_key == WEEK_KEY
    assert current.prize_pool.sponsor.company_name == "Acme"
    assert [score.user_id for score in current.top_scores] == ["c", "b", "a"]
    assert current.user_score == 100
    assert current.user_rank == 3
    assert current.user_prize_estimate == pytest.approx(200)


async def test_disabled_pool_has_no_distribution(store, clock):
    service = PrizePoolService(store, enabled=False, clock=clock)
    await service.initialize(1_000)
    await seed_weekly(store, {"a": 100})
    current = await service.get_current("a")
    assert current.distribution == []
    assert current.user_prize_estimate == 0.0
    assert await service.finalize(WEEK_KEY) == []


async def test_finalize_is_idempotent(service, store):
    await service.initialize(1_000)
    await seed_weekly(store, {"a": 100, "b": 900})
    first = await service.finalize(WEEK_KEY)
    assert [allocation.prize for allocation in first] == pytest.approx([900, 100])

    # Late scores must not change a frozen week
    await seed_weekly(store, {"a": 5_000})
    assert await service.finalize(WEEK_KEY) == first
    with pytest.raises(ValidationFailedError):
        await service.initialize(5_000, WEEK_KEY)


async def test_finalize_unknown_week(service):
    with pytest.raises(PrizePoolNotFoundError):
        await service.finalize("1999-01")


async def test_rollover_opens_next_week(service, store):
    await service.initialize(1_000)
    await seed_weekly(store, {"a": 10})
    result = await service.rollover(WEEK_KEY, next_amount=2_500)
    assert result.week_key == WEEK_KEY
    assert result.next_week_key == NEXT_WEEK_KEY
    assert result.next_week_initialized
    assert (await store.get_prize_pool(NEXT_WEEK_KEY)).total_amount == 2_500

    again = await service.rollover(WEEK_KEY)
    assert not again.next_week_initialized
    assert again.distribution == result.distribution


async def test_scheduled_rollover_closes_previous_week(store, clock):
    service = PrizePoolService(store, enabled=True, clock=clock)
    await service.initialize(1_000, WEEK_KEY)
    # Sunday 2025-10-26 00:00 UTC, the start of the next week
    clock.now = 1_761_436_800_000
    await service.scheduled_rollover()
    assert (await store.get_prize_pool(WEEK_KEY)).status == "finalized"
    assert (await store.get_prize_pool(NEXT_WEEK_KEY)).status == "active"


async def test_scheduled_rollover_keeps_pool_set_up_for_new_week(store, clock):
    service = PrizePoolService(store, enabled=True, default_amount=1000, clock=clock)
    sponsor = SponsorSchema(company_name="Acme")
    await service.initialize(5_000, NEXT_WEEK_KEY, sponsor)
    clock.now = 1_761_436_800_000
    await service.scheduled_rollover()
    prize_pool = await store.get_prize_pool(NEXT_WEEK_KEY)
    assert prize_pool.total_amount == 5_000
    assert prize_pool.sponsor.company_name == "Acme"


async def test_malformed_week_key_is_rejected(service):
    with pytest.raises(ValidationFailedError):
        await service.initialize(1_000, "week-one")


async def test_rollover_checks_week_key_before_finalizing(service, store):
    await store.save_prize_pool(
        WeeklyPrizePoolSchema(
            week_key="week-one", total_amount=1_000, eligible_ranks=50, status="active", created_at=0
        )
    )
    with pytest.raises(ValidationFailedError):
        await service.rollover("week-one")
    assert (await store.get_prize_pool("week-one")).status == "active"
