"""Difficulty tiers derived from the current streak.

A tier decides how long the player has to answer and how close the next
token's market cap may be to the current one. Higher streaks get shorter
timers and tighter market-cap ratios.
"""

from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class DifficultyTier:
    name: str
    min_streak: int
    max_streak: Optional[int]  # None means open-ended
    timer_duration_ms: int
    min_mcap_ratio: float
    max_mcap_ratio: float
    token_pool_size: int

    @property
    def mid_ratio(self) -> float:
        return (self.min_mcap_ratio + self.max_mcap_ratio) / 2


DIFFICULTY_TIERS: List[DifficultyTier] = [
    DifficultyTier("Easy", 0, 4, 60_000, 3.0, 100.0, 40),
    DifficultyTier("Medium", 5, 9, 45_000, 2.0, 10.0, 60),
    DifficultyTier("Hard", 10, 14, 30_000, 1.5, 4.0, 200),
    DifficultyTier("Expert", 15, 19, 20_000, 1.2, 2.5, 350),
    DifficultyTier("Insane", 20, 24, 15_000, 1.1, 1.8, 500),
    DifficultyTier("Legendary", 25, None, 10_000, 1.1, 1.8, 500),
]


def tier_for_streak(streak: int) -> DifficultyTier:
    """Return the tier for a streak. Total over all non-negative ints."""
    if streak < 0:
        raise ValueError("streak must be non-negative")
    for tier in DIFFICULTY_TIERS:
        if tier.max_streak is None or streak <= tier.max_streak:
            if streak >= tier.min_streak:
                return tier
    return DIFFICULTY_TIERS[-1]


def tier_name(streak: int) -> str:
    return tier_for_streak(streak).name


def timer_duration_ms(streak: int) -> int:
    return tier_for_streak(streak).timer_duration_ms


def next_tier_at(streak: int) -> Optional[int]:
    """Streak at which the next tier starts, or None on the last tier."""
    tier = tier_for_streak(streak)
    index = DIFFICULTY_TIERS.index(tier)
    if index == len(DIFFICULTY_TIERS) - 1:
        return None
    return DIFFICULTY_TIERS[index + 1].min_streak
