from caporslap.models.schema_models import TokenSchema

# Monday 2025-10-20 12:00 UTC, week key 2025-42
NOW_MS = 1_760_961_600_000
WEEK_KEY = "2025-42"
NEXT_WEEK_KEY = "2025-43"
HOUR_MS = 3_600_000


class FakeClock:
    def __init__(self, now: int = NOW_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


def make_tokens(count: int = 60, step: float = 1.15):
    return [
        TokenSchema(
            id=f"tok{i}",
            market_cap=1_000_000 * step**i,
            symbol=f"T{i}",
            name=f"Token {i}",
        )
        for i in range(count)
    ]


def winning_choice(current: TokenSchema, next_token: TokenSchema) -> str:
    return "cap" if next_token.market_cap >= current.market_cap else "slap"


def losing_choice(current: TokenSchema, next_token: TokenSchema) -> str:
    return "slap" if winning_choice(current, next_token) == "cap" else "cap"
