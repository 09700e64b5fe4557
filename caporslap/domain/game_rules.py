"""Guess evaluation and the small rules around it.

Rule of thumb:
- OK: comparisons, thresholds, pure transformations.
- Not OK: touching Redis, FastAPI, or reading the clock.
"""

from typing import Optional, Sequence, Tuple

from caporslap.domain.difficulty import timer_duration_ms
from caporslap.models.schema_models import GameSessionSchema, GuessRecordSchema, TokenSchema

CAP = "cap"
SLAP = "slap"
GUEST_PREFIX = "guest_"


def correct_answer(current: TokenSchema, next_token: TokenSchema) -> str:
    """Equal market caps count as ``cap``."""
    if next_token.market_cap >= current.market_cap:
        return CAP
    return SLAP


def is_correct_guess(current: TokenSchema, next_token: TokenSchema, choice: str) -> bool:
    return choice == correct_answer(current, next_token)


def check_rate_limit(
    last_guess_timestamp: Optional[int], now_ms: int, min_interval_ms: int
) -> bool:
    """Return True when a guess at ``now_ms`` is allowed.

    Args:
        last_guess_timestamp (Optional[int]): Epoch ms of the previous accepted guess
        now_ms (int): Epoch ms of this guess
        min_interval_ms (int): Minimum gap between two guesses

    Returns:
        bool: False when the guess comes too soon after the previous one
    """
    if last_guess_timestamp is None:
        return True
    return now_ms - last_guess_timestamp >= min_interval_ms


def requires_verification(streak: int, threshold: int) -> bool:
    return streak >= threshold


def is_guest(user_id: str) -> bool:
    return user_id.startswith(GUEST_PREFIX)


def is_in_overtake_range(score: float, previous_streak: int, current_streak: int) -> bool:
    """Strict on both ends: a score equal to either boundary is not overtaken."""
    return previous_streak < score < current_streak


GUESS_INTERVAL_BUFFER_MS = 5000
MIN_HUMAN_GUESS_MS = 100


def validate_guess_timing(
    guesses: Sequence[GuessRecordSchema], started_at: int
) -> Tuple[bool, Optional[str]]:
    """Every guess must land within its round's timer plus a latency buffer,
    and no faster than a human could click.
    """
    last_timestamp = started_at
    for index, guess in enumerate(guesses):
        elapsed = guess.timestamp - last_timestamp
        allowed = timer_duration_ms(index) + GUESS_INTERVAL_BUFFER_MS
        if elapsed > allowed:
            return False, f"round {index}: guess took {elapsed}ms, max allowed {allowed}ms"
        if elapsed < MIN_HUMAN_GUESS_MS:
            return False, f"round {index}: guess was suspiciously fast ({elapsed}ms)"
        last_timestamp = guess.timestamp
    return True, None


def validate_session_state(session: GameSessionSchema) -> Tuple[bool, Optional[str]]:
    """Consistency checks run before a high score is accepted."""
    valid, reason = validate_guess_timing(session.guesses, session.started_at)
    if not valid:
        return valid, reason
    # The losing guess is recorded too, so an ended run has one extra guess.
    expected = len(session.guesses) - 1 if session.ended else len(session.guesses)
    if session.current_streak != expected:
        return False, f"streak {session.current_streak} does not match {expected} recorded guesses"
    return True, None
