"""Proportional prize split over the weekly top-N."""

from typing import List, Sequence, Tuple

import numpy as np

from caporslap.models.schema_models import PrizeAllocationSchema


def calculate_prize_distribution(
    ranked_scores: Sequence[Tuple[str, float]],
    total_amount: float,
    top_n: int,
    enabled: bool = True,
) -> List[PrizeAllocationSchema]:
    """Split ``total_amount`` across the top-N users in proportion to their score.

    The denominator is the sum over exactly the top-N slice. Disabled pools
    yield an empty distribution, and a zero denominator yields zero prizes.

    Args:
        ranked_scores (Sequence[Tuple[str, float]]): (user_id, score) pairs, best first
        total_amount (float): Amount to distribute
        top_n (int): Number of paid ranks
        enabled (bool): Prize pool feature flag

    Returns:
        List[PrizeAllocationSchema]: One allocation per user in the top-N slice
    """
    if not enabled:
        return []
    eligible = list(ranked_scores)[:top_n]
    if not eligible:
        return []

    scores = np.array([score for _, score in eligible], dtype=float)
    denominator = scores.sum()
    if denominator <= 0:
        prizes = np.zeros(len(eligible))
    else:
        prizes = scores / denominator * total_amount

    return [
        PrizeAllocationSchema(
            user_id=user_id, rank=rank, score=int(score), prize=float(prize)
        )
        for rank, ((user_id, score), prize) in enumerate(zip(eligible, prizes), start=1)
    ]


def prize_for_user(distribution: Sequence[PrizeAllocationSchema], user_id: str) -> float:
    for allocation in distribution:
        if allocation.user_id == user_id:
            return allocation.prize
    return 0.0
