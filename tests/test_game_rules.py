from caporslap.domain.game_rules import (
    check_rate_limit,
    correct_answer,
    is_correct_guess,
    is_guest,
    is_in_overtake_range,
    requires_verification,
    validate_guess_timing,
    validate_session_state,
)
from caporslap.models.schema_models import GameSessionSchema, GuessRecordSchema, TokenSchema


def token(token_id, market_cap):
    return TokenSchema(id=token_id, market_cap=market_cap)


def test_cap_wins_when_next_is_higher():
    assert is_correct_guess(token("a", 10), token("b", 20), "cap")
    assert not is_correct_guess(token("a", 10), token("b", 20), "slap")


def test_slap_wins_when_next_is_lower():
    assert is_correct_guess(token("a", 20), token("b", 10), "slap")
    assert not is_correct_guess(token("a", 20), token("b", 10), "cap")


def test_equal_market_caps_resolve_to_cap():
    current, next_token = token("a", 500.0), token("b", 500.0)
    assert correct_answer(current, next_token) == "cap"
    assert is_correct_guess(current, next_token, "cap")
    assert not is_correct_guess(current, next_token, "slap")


def test_rate_limit():
    assert check_rate_limit(None, 1_000, 500)
    assert check_rate_limit(1_000, 1_500, 500)
    assert not check_rate_limit(1_000, 1_499, 500)


def test_requires_verification_at_threshold():
    assert not requires_verification(9, 10)
    assert requires_verification(10, 10)


def test_guest_ids():
    assert is_guest("guest_123")
    assert not is_guest("0xabc")


def test_overtake_range_is_strict():
    assert is_in_overtake_range(5, 3, 9)
    assert not is_in_overtake_range(3, 3, 9)
    assert not is_in_overtake_range(9, 3, 9)


def guesses_at(*timestamps):
    return [
        GuessRecordSchema(
            round=i, current_token_id="a", next_token_id="b", choice="cap", timestamp=ts
        )
        for i, ts in enumerate(timestamps)
    ]


def test_guess_timing_rejects_bot_speed_and_stalling():
    assert validate_guess_timing(guesses_at(1_000, 3_000), 0)[0]
    # 50ms after the previous guess
    assert not validate_guess_timing(guesses_at(1_000, 1_050), 0)[0]
    # Longer than the easy timer plus the latency buffer
    assert not validate_guess_timing(guesses_at(1_000, 1_000 + 70_000), 0)[0]


def test_session_state_streak_must_match_guesses():
    session = GameSessionSchema(
        run_id="r",
        seed="s",
        user_id="u",
        started_at=0,
        guesses=guesses_at(1_000, 2_000, 3_000),
        current_streak=2,
        round_number=2,
        current_token_id="a",
        next_token_id="b",
        ended=True,
    )
    assert validate_session_state(session) == (True, None)
    forged = session.model_copy(update={"current_streak": 3})
    assert not validate_session_state(forged)[0]
