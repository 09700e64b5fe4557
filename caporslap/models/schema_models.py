from pydantic import BaseModel, Field
from typing import List, Optional


class TokenSchema(BaseModel):
    """One entry of the token pool. Only ``id`` and ``market_cap`` matter to the game core."""

    id: str
    market_cap: float
    symbol: str = ""
    name: str = ""
    logo_url: str = ""
    chain: str = ""
    address: str = ""
    category: Optional[str] = None

    class Config:
        from_attributes = True


class GuessRecordSchema(BaseModel):
    round: int
    current_token_id: str
    next_token_id: str
    choice: str
    timestamp: int


class GameSessionSchema(BaseModel):
    run_id: str
    seed: str
    user_id: str
    started_at: int
    guesses: List[GuessRecordSchema] = Field(default_factory=list)
    current_streak: int = 0
    round_number: int = 0
    current_token_id: str
    next_token_id: str
    has_used_reprieve: bool = False
    difficulty_tier: str = "Easy"
    last_guess_timestamp: Optional[int] = None
    ended: bool = False

    class Config:
        from_attributes = True


class IdentitySchema(BaseModel):
    user_id: str
    display_name: str
    avatar_url: Optional[str] = None
    source: str = "address"


class WeeklyStatsSchema(BaseModel):
    cumulative_score: int = 0
    best_streak: int = 0
    run_count: int = 0
    last_updated: int = 0


class RunHistoryEntrySchema(BaseModel):
    streak: int
    timestamp: int
    used_reprieve: bool = False


class SponsorSchema(BaseModel):
    company_name: str
    token_symbol: Optional[str] = None
    token_address: Optional[str] = None
    logo_url: Optional[str] = None


class PrizeAllocationSchema(BaseModel):
    user_id: str
    rank: int
    score: int
    prize: float


class WeeklyPrizePoolSchema(BaseModel):
    week_key: str
    total_amount: float
    eligible_ranks: int
    sponsor: Optional[SponsorSchema] = None
    status: str = "active"  # active | finalized
    created_at: int
    finalized_at: Optional[int] = None
    distribution: List[PrizeAllocationSchema] = Field(default_factory=list)


class MysteryBoxRewardSchema(BaseModel):
    address: str
    symbol: str
    name: str
    usd_value: float
    decimals: int
    logo_url: Optional[str] = None


class MysteryBoxSchema(BaseModel):
    box_id: str
    user_id: str
    rewards: List[MysteryBoxRewardSchema]
    total_value: float
    created_at: int
