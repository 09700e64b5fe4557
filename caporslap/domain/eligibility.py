"""Mystery box eligibility rules.

The rules run in a fixed order and stop at the first failure. Everything
the rules need is passed in, so evaluating twice with the same inputs
always gives the same answer.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from caporslap.domain.calendar import MS_PER_HOUR, day_key
from caporslap.models.schema_models import RunHistoryEntrySchema

POOL_EXHAUSTED = "POOL_EXHAUSTED"
DAILY_LIMIT_REACHED = "DAILY_LIMIT_REACHED"
INSUFFICIENT_HISTORY = "INSUFFICIENT_HISTORY"
TIME_CONDITION_NOT_MET = "TIME_CONDITION_NOT_MET"
ABOVE_AVERAGE_PERFORMANCE = "ABOVE_AVERAGE_PERFORMANCE"
FEATURE_DISABLED = "FEATURE_DISABLED"

MIN_HISTORY_RUNS = 3
AVERAGE_WINDOW = 10
HOURS_SINCE_LAST_RUN = 24
MIN_RUNS_TODAY = 2

MESSAGES = {
    POOL_EXHAUSTED: "No mystery boxes left today",
    DAILY_LIMIT_REACHED: "Daily mystery box limit reached",
    INSUFFICIENT_HISTORY: "Play a few more runs first",
    TIME_CONDITION_NOT_MET: "Come back later",
    ABOVE_AVERAGE_PERFORMANCE: "Streak is above your recent average",
    FEATURE_DISABLED: "Mystery boxes are disabled",
}


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    reason: Optional[str] = None

    @property
    def message(self) -> Optional[str]:
        return MESSAGES.get(self.reason) if self.reason else None


def _refuse(reason: str) -> EligibilityResult:
    return EligibilityResult(eligible=False, reason=reason)


def average_streak(runs: Sequence[RunHistoryEntrySchema], window: int = AVERAGE_WINDOW) -> float:
    """Mean streak of the most recent ``window`` runs. ``runs`` is newest first."""
    recent = runs[:window]
    if not recent:
        return 0.0
    return float(np.mean([run.streak for run in recent]))


def evaluate_eligibility(
    streak: int,
    pool_count: int,
    daily_claims: int,
    runs: Sequence[RunHistoryEntrySchema],
    now_ms: int,
    daily_limit: int = 2,
) -> EligibilityResult:
    """Evaluate the five eligibility rules in order.

    Args:
        streak (int): Streak of the run that just ended
        pool_count (int): Boxes left in today's shared pool
        daily_claims (int): Boxes this user already claimed today
        runs (Sequence[RunHistoryEntrySchema]): Recorded runs, newest first
        now_ms (int): Current epoch ms
        daily_limit (int): Boxes one user may claim per UTC day

    Returns:
        EligibilityResult: eligible flag and the first failed rule's reason
    """
    if pool_count <= 0:
        return _refuse(POOL_EXHAUSTED)
    if daily_claims >= daily_limit:
        return _refuse(DAILY_LIMIT_REACHED)
    if len(runs) < MIN_HISTORY_RUNS:
        return _refuse(INSUFFICIENT_HISTORY)

    last_run_at = max(run.timestamp for run in runs)
    hours_since_last = (now_ms - last_run_at) / MS_PER_HOUR
    today = day_key(now_ms)
    runs_today = sum(1 for run in runs if day_key(run.timestamp) == today)
    if hours_since_last < HOURS_SINCE_LAST_RUN and runs_today < MIN_RUNS_TODAY:
        return _refuse(TIME_CONDITION_NOT_MET)

    if streak >= average_streak(runs):
        return _refuse(ABOVE_AVERAGE_PERFORMANCE)
    return EligibilityResult(eligible=True)
