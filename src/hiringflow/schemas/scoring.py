from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .application import Outcome


class RubricState(str, Enum):
    """Rubric lifecycle. RETIRED is terminal."""

    ACTIVE = "ACTIVE"
    RETIRED = "RETIRED"


class RubricDeletion(str, Enum):
    RETIRED = "RETIRED"
    DELETED = "DELETED"


class Rubric(BaseModel):
    """Weighted scoring criterion."""

    id: int
    name: str
    description: str | None = None
    max_score: float = 10
    weight: float = 1.0
    state: RubricState = RubricState.ACTIVE
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(extra="forbid")

    @property
    def is_active(self) -> bool:
        return self.state is RubricState.ACTIVE


class Score(BaseModel):
    """Score for one rubric on one application."""

    application_id: int
    rubric_id: int
    score_value: float
    comments: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(extra="forbid")

    @property
    def key(self) -> tuple[int, int]:
        return self.application_id, self.rubric_id


class ScoreLine(BaseModel):
    """Score joined with its rubric for reporting."""

    rubric_id: int
    rubric_name: str
    score_value: float
    max_score: float
    weight: float
    weighted_score: float
    weighted_max: float
    comments: str | None = None


class ScoreCalculation(BaseModel):
    total_score: float
    max_possible_score: float
    percentage: float
    result: Outcome
    passing_threshold: float
    lines: list[ScoreLine] = Field(default_factory=list)


class ScoreSummary(BaseModel):
    """Scoring progress for one application."""

    application_id: int
    scored_rubrics: int
    active_rubrics: int
    unscored_rubric_ids: list[int] = Field(default_factory=list)
    calculation: ScoreCalculation | None = None
