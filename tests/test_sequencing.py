import numpy as np

from caporslap.domain.sequencing import (
    RandomSequencer,
    SeededSequencer,
    candidate_weights,
    mcap_ratio,
    verify_sequence,
)
from caporslap.models.schema_models import GuessRecordSchema, TokenSchema
from helpers import make_tokens, winning_choice


def test_small_pool_returns_none():
    sequencer = RandomSequencer(np.random.default_rng(1))
    pool = make_tokens(1)
    assert sequencer.select_next(pool, pool[0]) is None
    assert sequencer.select_next([], None) is None
    assert sequencer.select_initial_pair(pool) is None


def test_never_returns_previous_token():
    pool = make_tokens(3)
    sequencer = RandomSequencer(np.random.default_rng(7))
    for _ in range(50):
        token = sequencer.select_next(pool, pool[1], streak=3)
        assert token.id != pool[1].id


def test_recent_tokens_skipped_while_alternatives_exist():
    pool = make_tokens(5)
    sequencer = RandomSequencer(np.random.default_rng(3))
    recent = ["tok0", "tok1", "tok2"]
    for _ in range(30):
        assert sequencer.select_next(pool, pool[4], recent).id == "tok3"


def test_recency_relaxed_when_everything_was_used():
    pool = make_tokens(3)
    sequencer = RandomSequencer(np.random.default_rng(3))
    token = sequencer.select_next(pool, pool[0], ["tok0", "tok1", "tok2"])
    assert token is not None
    assert token.id != "tok0"


def test_streak_prefers_tier_ratio_band():
    pool = make_tokens(60)
    previous = pool[30]
    candidates, weights = candidate_weights(pool, previous, (), streak=12)
    # Hard tier band is 1.5 - 4
    assert candidates
    assert all(1.5 <= mcap_ratio(previous, token) <= 4 for token in candidates)
    assert len(weights) == len(candidates)


def test_seeded_selection_is_deterministic():
    pool = make_tokens(60)
    first = SeededSequencer("seed-a").select_next(pool, pool[20], ["tok1"], 6, 4)
    for _ in range(5):
        again = SeededSequencer("seed-a").select_next(pool, pool[20], ["tok1"], 6, 4)
        assert again.id == first.id
    assert SeededSequencer("seed-a").select_initial_pair(pool) == SeededSequencer(
        "seed-a"
    ).select_initial_pair(pool)


def test_initial_pair_is_two_different_tokens():
    pool = make_tokens(60)
    current, next_token = RandomSequencer(np.random.default_rng(11)).select_initial_pair(pool)
    assert current.id != next_token.id


def test_preload_returns_distinct_lookahead():
    pool = make_tokens(60)
    sequencer = RandomSequencer(np.random.default_rng(5))
    preloaded = sequencer.preload_tokens(pool, pool[10], ["tok9", "tok10"], 5)
    assert len(preloaded) == 5
    assert len({token.id for token in preloaded}) == 5
    assert "tok10" not in {token.id for token in preloaded}


def play_seeded_run(pool, seed, rounds):
    sequencer = SeededSequencer(seed)
    current, upcoming = sequencer.select_initial_pair(pool)
    used = [current.id, upcoming.id]
    guesses = []
    for index in range(rounds):
        guesses.append(
            GuessRecordSchema(
                round=index,
                current_token_id=current.id,
                next_token_id=upcoming.id,
                choice=winning_choice(current, upcoming),
                timestamp=index,
            )
        )
        current = upcoming
        upcoming = sequencer.select_next(pool, current, used, index + 1, index + 1)
        used.append(upcoming.id)
    return guesses


def test_verify_sequence_accepts_replayed_run():
    pool = make_tokens(60)
    guesses = play_seeded_run(pool, "replay-seed", 8)
    assert verify_sequence(pool, "replay-seed", guesses) == (True, None, None)


def test_verify_sequence_rejects_forged_pair():
    pool = make_tokens(60)
    guesses = play_seeded_run(pool, "replay-seed", 6)
    guesses[3] = guesses[3].model_copy(update={"next_token_id": "tok999"})
    valid, failed_round, _ = verify_sequence(pool, "replay-seed", guesses)
    assert not valid
    assert failed_round == 3


def test_ratio_is_symmetric():
    a = TokenSchema(id="a", market_cap=100)
    b = TokenSchema(id="b", market_cap=400)
    assert mcap_ratio(a, b) == mcap_ratio(b, a) == 4
