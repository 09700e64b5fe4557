"""Token sequencing: which token the player compares against next.

Two strategies share one interface:

- ``RandomSequencer`` draws from a process-level numpy ``Generator``.
- ``SeededSequencer`` derives a fresh ``Generator`` from ``(seed, round)`` so
  the same seed, round and pool always give the same token. This is what
  makes server-side replay of a claimed sequence possible.

The caller picks the strategy. Nothing here touches Redis or the clock.
"""

import hashlib
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from caporslap.domain.difficulty import DIFFICULTY_TIERS, DifficultyTier, tier_for_streak
from caporslap.domain.game_rules import is_correct_guess
from caporslap.models.schema_models import GuessRecordSchema, TokenSchema

INITIAL_ROUND = 0
RATIO_WEIGHT_FALLOFF = 0.5


def mcap_ratio(token_a: TokenSchema, token_b: TokenSchema) -> float:
    """Larger market cap over smaller one, always >= 1."""
    larger = max(token_a.market_cap, token_b.market_cap)
    smaller = min(token_a.market_cap, token_b.market_cap)
    if smaller <= 0:
        return float("inf")
    return larger / smaller


def same_token(token_a: TokenSchema, token_b: TokenSchema) -> bool:
    if token_a.id == token_b.id:
        return True
    # The feed sometimes lists one asset under two ids.
    return bool(token_a.symbol) and token_a.symbol.upper() == token_b.symbol.upper()


def tier_pool(pool: Sequence[TokenSchema], tier: DifficultyTier) -> List[TokenSchema]:
    """Top ``tier.token_pool_size`` tokens by market cap."""
    ranked = sorted(pool, key=lambda token: token.market_cap, reverse=True)
    return ranked[: tier.token_pool_size]


def _in_band(previous: TokenSchema, candidate: TokenSchema, tier: DifficultyTier) -> bool:
    ratio = mcap_ratio(previous, candidate)
    return tier.min_mcap_ratio <= ratio <= tier.max_mcap_ratio


def candidate_weights(
    pool: Sequence[TokenSchema],
    previous: Optional[TokenSchema],
    recent_ids: Iterable[str] = (),
    streak: Optional[int] = None,
) -> Tuple[List[TokenSchema], np.ndarray]:
    """Build the candidate list for the next draw and its selection weights.

    Constraints are relaxed step by step until something is left:
    tier pool within the ratio band, full pool within the band, full pool
    within the easiest band, anything not recently used, anything that is
    not the previous token.

    Args:
        pool (Sequence[TokenSchema]): Current token pool
        previous (Optional[TokenSchema]): Token the player is looking at, None at run start
        recent_ids (Iterable[str]): Token ids already used in this run
        streak (Optional[int]): Current streak. None disables difficulty weighting

    Returns:
        Tuple[List[TokenSchema], np.ndarray]: Candidates and their (unnormalized) weights
    """
    recent = set(recent_ids)

    def allowed(token: TokenSchema, skip_recent: bool) -> bool:
        if previous is not None and same_token(token, previous):
            return False
        return not (skip_recent and token.id in recent)

    if streak is not None and previous is not None:
        tier = tier_for_streak(streak)
        for source, band in (
            (tier_pool(pool, tier), tier),
            (pool, tier),
            (pool, DIFFICULTY_TIERS[0]),
        ):
            candidates = [
                token
                for token in source
                if allowed(token, True) and _in_band(previous, token, band)
            ]
            if candidates:
                distances = np.array(
                    [abs(mcap_ratio(previous, token) - band.mid_ratio) for token in candidates]
                )
                return candidates, 1.0 / (1.0 + distances * RATIO_WEIGHT_FALLOFF)

    for skip_recent in (True, False):
        candidates = [token for token in pool if allowed(token, skip_recent)]
        if candidates:
            return candidates, np.ones(len(candidates))
    return [], np.ones(0)


class TokenSequencer:
    """Common selection logic. Subclasses only decide where randomness comes from."""

    def rng_for_round(self, round_number: int) -> np.random.Generator:
        raise NotImplementedError

    def select_next(
        self,
        pool: Sequence[TokenSchema],
        previous: Optional[TokenSchema],
        recent_ids: Iterable[str] = (),
        streak: Optional[int] = None,
        round_number: int = 0,
    ) -> Optional[TokenSchema]:
        """Pick the next token, or None when no token can be offered.

        Never raises on a small pool: fewer than two tokens means there is
        nothing to compare, so None is returned.
        """
        if len(pool) < 2:
            return None
        candidates, weights = candidate_weights(pool, previous, recent_ids, streak)
        if not candidates:
            return None
        rng = self.rng_for_round(round_number)
        index = rng.choice(len(candidates), p=weights / weights.sum())
        return candidates[int(index)]

    def select_initial_pair(
        self, pool: Sequence[TokenSchema]
    ) -> Optional[Tuple[TokenSchema, TokenSchema]]:
        """Pick the opening pair from the easy tier's pool."""
        if len(pool) < 2:
            return None
        opening_pool = tier_pool(pool, DIFFICULTY_TIERS[0])
        if len(opening_pool) < 2:
            opening_pool = list(pool)
        rng = self.rng_for_round(INITIAL_ROUND)
        current = opening_pool[int(rng.integers(len(opening_pool)))]
        candidates, weights = candidate_weights(opening_pool, current, (), 0)
        if not candidates:
            return None
        index = rng.choice(len(candidates), p=weights / weights.sum())
        return current, candidates[int(index)]

    def preload_tokens(
        self,
        pool: Sequence[TokenSchema],
        after: TokenSchema,
        used_ids: Iterable[str],
        count: int,
    ) -> List[TokenSchema]:
        """Look-ahead tokens for client rendering. Never trusted on submission."""
        used = list(used_ids)
        preloaded: List[TokenSchema] = []
        last = after
        for offset in range(count):
            token = self.select_next(pool, last, used, round_number=offset + 1)
            if token is None:
                break
            preloaded.append(token)
            used.append(token.id)
            last = token
        return preloaded


class RandomSequencer(TokenSequencer):
    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng()

    def rng_for_round(self, round_number: int) -> np.random.Generator:
        return self.rng


class SeededSequencer(TokenSequencer):
    def __init__(self, seed: str):
        self.seed = seed
        self.seed_key = int.from_bytes(hashlib.sha256(seed.encode()).digest()[:8], "big")

    def rng_for_round(self, round_number: int) -> np.random.Generator:
        return np.random.default_rng([self.seed_key, round_number])


def generate_seed(rng: Optional[np.random.Generator] = None) -> str:
    rng = rng if rng is not None else np.random.default_rng()
    return rng.bytes(16).hex()


def verify_sequence(
    pool: Sequence[TokenSchema], seed: str, guesses: Sequence[GuessRecordSchema]
) -> Tuple[bool, Optional[int], Optional[str]]:
    """Replay a seeded run and check that the recorded guesses could have happened.

    Every recorded pair must be the pair the seeded strategy would have
    shown, and every guess but the last one must have been correct.

    Returns:
        Tuple[bool, Optional[int], Optional[str]]: valid flag, failing round and reason
    """
    sequencer = SeededSequencer(seed)
    pair = sequencer.select_initial_pair(pool)
    if pair is None:
        return False, None, "could not generate initial pair"
    current, upcoming = pair
    used = [current.id, upcoming.id]

    for index, guess in enumerate(guesses):
        if guess.current_token_id != current.id or guess.next_token_id != upcoming.id:
            return (
                False,
                index,
                f"round {index}: expected ({current.id}, {upcoming.id}), "
                f"got ({guess.current_token_id}, {guess.next_token_id})",
            )
        correct = is_correct_guess(current, upcoming, guess.choice)
        if index < len(guesses) - 1 and not correct:
            return False, index, f"round {index}: incorrect guess but the run continued"

        current = upcoming
        following = sequencer.select_next(pool, current, used, index + 1, index + 1)
        if following is None:
            return False, index, f"round {index + 1}: no candidate token"
        upcoming = following
        used.append(upcoming.id)
    return True, None, None
