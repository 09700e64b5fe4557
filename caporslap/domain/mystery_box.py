"""Mystery box contents: which reward tokens a box holds and how much of each."""

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from caporslap.models.schema_models import MysteryBoxRewardSchema, MysteryBoxSchema

BOX_TOTAL_VALUE = 1.0
MIN_TOKEN_VALUE = 0.1
MIN_TOKENS = 1
MAX_TOKENS = 4
STABLE_SYMBOL = "USDC"
STABLE_INCLUDE_PROBABILITY = 0.7
DEFAULT_TOKEN_WEIGHT = 10


@dataclass(frozen=True)
class RewardToken:
    address: str
    symbol: str
    name: str
    decimals: int
    weight: int = DEFAULT_TOKEN_WEIGHT
    logo_url: Optional[str] = None


REWARD_TOKENS: List[RewardToken] = [
    RewardToken("0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913", "USDC", "USD Coin", 6, 30),
    RewardToken("0x50f88fe97f72cd3e75b9eb4f747f59bceba80d59", "JESSE", "Jesse", 18, 20),
    RewardToken("0x940181a94a35a4569e4529a3cdfb74e38fd98631", "AERO", "Aerodrome", 18, 20),
    RewardToken("0x696f9436b67233384889472cd7cd58a6fb5df4f1", "AVNT", "Avantis", 18, 15),
    RewardToken("0x22af33fe49fd1fa80c7149773dde5890d3c76f3b", "BANKR", "Bankroll", 18, 10),
    RewardToken("0x1111111111166b7fe7bd91427724b487980afc69", "ZORA", "Zora", 18, 5),
]


def select_reward_tokens(
    tokens: Sequence[RewardToken], rng: np.random.Generator
) -> List[RewardToken]:
    """Weighted pick of 1-4 distinct tokens. The stable token is favoured."""
    if not tokens:
        raise ValueError("no reward tokens configured")
    if len(tokens) == 1:
        return list(tokens)

    count = min(int(rng.integers(MIN_TOKENS, MAX_TOKENS + 1)), len(tokens))
    selected: List[RewardToken] = []
    stable = next((token for token in tokens if token.symbol.upper() == STABLE_SYMBOL), None)
    if stable is not None and rng.random() < STABLE_INCLUDE_PROBABILITY:
        selected.append(stable)

    remaining = [token for token in tokens if token not in selected]
    needed = count - len(selected)
    if needed > 0:
        weights = np.array([token.weight for token in remaining], dtype=float)
        picks = rng.choice(len(remaining), size=needed, replace=False, p=weights / weights.sum())
        selected.extend(remaining[int(index)] for index in picks)

    order = rng.permutation(len(selected))
    return [selected[int(index)] for index in order]


def split_value(
    count: int,
    total_value: float,
    rng: np.random.Generator,
    min_value: float = MIN_TOKEN_VALUE,
) -> List[float]:
    """Random split of ``total_value`` into ``count`` parts of at least ``min_value``."""
    if count == 1:
        return [total_value]
    floor_total = min_value * count
    if floor_total > total_value:
        raise ValueError(f"total value {total_value} too small for {count} tokens")

    weights = rng.random(count)
    amounts = min_value + weights / weights.sum() * (total_value - floor_total)
    # Rounding drift goes to the first token.
    amounts[0] += total_value - amounts.sum()
    return [float(amount) for amount in amounts]


def generate_mystery_box(
    box_id: str,
    user_id: str,
    created_at: int,
    rng: Optional[np.random.Generator] = None,
    tokens: Sequence[RewardToken] = REWARD_TOKENS,
    total_value: float = BOX_TOTAL_VALUE,
) -> MysteryBoxSchema:
    rng = rng if rng is not None else np.random.default_rng()
    chosen = select_reward_tokens(tokens, rng)
    values = split_value(len(chosen), total_value, rng)
    rewards = [
        MysteryBoxRewardSchema(
            address=token.address,
            symbol=token.symbol,
            name=token.name,
            usd_value=value,
            decimals=token.decimals,
            logo_url=token.logo_url,
        )
        for token, value in zip(chosen, values)
    ]
    return MysteryBoxSchema(
        box_id=box_id,
        user_id=user_id,
        rewards=rewards,
        total_value=float(sum(values)),
        created_at=created_at,
    )
