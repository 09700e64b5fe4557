import numpy as np
import pytest

from caporslap.domain.mystery_box import (
    MIN_TOKEN_VALUE,
    REWARD_TOKENS,
    generate_mystery_box,
    split_value,
)


@pytest.mark.parametrize("seed", range(20))
def test_box_holds_one_dollar_across_distinct_tokens(seed):
    box = generate_mystery_box("box-1", "0xabc", 123, np.random.default_rng(seed))
    symbols = [reward.symbol for reward in box.rewards]
    assert 1 <= len(symbols) <= 4
    assert len(set(symbols)) == len(symbols)
    assert box.total_value == pytest.approx(1.0)
    assert sum(reward.usd_value for reward in box.rewards) == pytest.approx(1.0)
    if len(symbols) > 1:
        assert all(reward.usd_value >= MIN_TOKEN_VALUE - 1e-9 for reward in box.rewards)


def test_single_token_list_gets_full_value():
    box = generate_mystery_box(
        "box-2", "0xabc", 123, np.random.default_rng(0), tokens=REWARD_TOKENS[:1]
    )
    assert [reward.symbol for reward in box.rewards] == ["USDC"]
    assert box.rewards[0].usd_value == 1.0


def test_split_rejects_too_many_tokens_for_value():
    with pytest.raises(ValueError):
        split_value(20, 1.0, np.random.default_rng(0))


def test_empty_token_list_rejected():
    with pytest.raises(ValueError):
        generate_mystery_box("box-3", "0xabc", 123, np.random.default_rng(0), tokens=[])
