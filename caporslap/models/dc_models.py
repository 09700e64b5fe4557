from pydantic import BaseModel, Field
from enum import Enum
from typing import List, Optional

from caporslap.domain.calendar import WEEK_KEY_PATTERN
from caporslap.models.schema_models import (
    IdentitySchema,
    MysteryBoxRewardSchema,
    MysteryBoxSchema,
    PrizeAllocationSchema,
    SponsorSchema,
    TokenSchema,
    WeeklyPrizePoolSchema,
)


class GuessChoiceModel(str, Enum):
    cap = "cap"  # next token's market cap is higher or equal
    slap = "slap"  # next token's market cap is lower


class BoardModel(str, Enum):
    weekly = "weekly"
    global_ = "global"


class StartSessionRequestModel(BaseModel):
    user_id: str = Field(min_length=1)


class StartSessionResponseModel(BaseModel):
    run_id: str
    seed: str
    current_token: TokenSchema
    next_token: TokenSchema
    timer_duration: int
    difficulty: str
    started_at: int
    preloaded_tokens: List[TokenSchema]


class GuessRequestModel(BaseModel):
    run_id: str
    user_id: str
    choice: GuessChoiceModel
    current_token_id: str
    next_token_id: str


class GuessResponseModel(BaseModel):
    correct: bool
    new_streak: Optional[int] = None
    final_streak: Optional[int] = None
    current_token: TokenSchema
    next_token: Optional[TokenSchema] = None
    revealed_market_cap: float
    correct_answer: Optional[GuessChoiceModel] = None
    timer_duration: Optional[int] = None
    difficulty: str


class RunModel(BaseModel):
    run_id: str
    streak: int = Field(ge=0)
    used_reprieve: bool = False
    timestamp: Optional[int] = None


class SubmitScoreRequestModel(BaseModel):
    run: RunModel
    user_id: str = Field(min_length=1)


class OvertakeModel(BaseModel):
    overtaken_user_id: str
    overtaken_user: IdentitySchema
    their_score: int
    your_score: int
    board: BoardModel


class SubmitScoreResponseModel(BaseModel):
    is_new_best: bool
    previous_rank: Optional[int]
    new_rank: Optional[int]
    previous_weekly_rank: Optional[int]
    weekly_rank: Optional[int]
    cumulative_score: int
    streak: int
    overtakes: List[OvertakeModel]


class CheckOvertakesRequestModel(BaseModel):
    user_id: str
    current_streak: int = Field(ge=0)
    previous_streak: int = Field(default=0, ge=0)


class CheckOvertakesResponseModel(BaseModel):
    overtakes: List[OvertakeModel]


class LeaderboardEntryModel(BaseModel):
    rank: int
    user: IdentitySchema
    best_streak: int
    cumulative_score: Optional[int] = None


class LeaderboardResponseModel(BaseModel):
    type: BoardModel
    entries: List[LeaderboardEntryModel]
    user_rank: Optional[int] = None


class PositionChangeRequestModel(BaseModel):
    user_id: str
    board: BoardModel = BoardModel.weekly


class PositionChangeModel(BaseModel):
    changed: bool
    previous_rank: Optional[int]
    current_rank: Optional[int]
    direction: Optional[str]  # up | down
    rank_change: int


class EligibilityRequestModel(BaseModel):
    user_id: str = Field(min_length=1)
    streak: int = Field(ge=0)


class EligibilityModel(BaseModel):
    eligible: bool
    reason: Optional[str] = None
    message: Optional[str] = None


class ClaimRequestModel(BaseModel):
    user_id: str = Field(min_length=1)
    streak: int = Field(ge=0)
    box_id: Optional[str] = None  # idempotency key for retried claims


class ClaimResponseModel(BaseModel):
    success: bool
    box: Optional[MysteryBoxSchema] = None
    rewards: List[MysteryBoxRewardSchema] = Field(default_factory=list)
    reason: Optional[str] = None
    message: Optional[str] = None


class PoolCountModel(BaseModel):
    count: int


class WeeklyScoreModel(BaseModel):
    user_id: str
    cumulative_score: int
    best_streak: int = 0
    run_count: int = 0


class PrizePoolInitRequestModel(BaseModel):
    week_key: Optional[str] = Field(default=None, pattern=WEEK_KEY_PATTERN)
    total_amount: float = Field(gt=0)
    sponsor: Optional[SponsorSchema] = None


class PrizePoolFinalizeRequestModel(BaseModel):
    week_key: Optional[str] = Field(default=None, pattern=WEEK_KEY_PATTERN)
    next_week_amount: Optional[float] = Field(default=None, gt=0)
    next_week_sponsor: Optional[SponsorSchema] = None


class PrizePoolResponseModel(BaseModel):
    enabled: bool
    prize_pool: Optional[WeeklyPrizePoolSchema]
    top_scores: List[WeeklyScoreModel]
    distribution: List[PrizeAllocationSchema]
    user_score: int = 0
    user_rank: Optional[int] = None
    user_prize_estimate: float = 0.0


class FinalizeResponseModel(BaseModel):
    week_key: str
    distribution: List[PrizeAllocationSchema]
    next_week_key: str
    next_week_initialized: bool
