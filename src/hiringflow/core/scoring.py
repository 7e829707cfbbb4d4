"""Weighted rubric scoring."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from ..errors import (
    DegenerateScoreError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ..repository import KeyedLocks
from ..schemas import (
    Application,
    ApplicationStatus,
    Outcome,
    Rubric,
    RubricDeletion,
    RubricState,
    Score,
    ScoreCalculation,
    ScoreLine,
    ScoreSummary,
)

if TYPE_CHECKING:
    from . import ApplicationRepository, ScoringRepository

_RUBRIC_FIELDS = frozenset({"name", "description", "max_score", "weight", "is_active"})


@dataclass
class ScoringConfig:
    """Scoring thresholds."""

    passing_score_percentage: float = 70.0


class ScoringEngine:
    """Rubric management, per-rubric scores and weighted result derivation."""

    def __init__(
        self,
        *,
        applications: "ApplicationRepository",
        repository: "ScoringRepository",
        config: ScoringConfig | None = None,
    ) -> None:
        self._applications = applications
        self._repository = repository
        self._config = config or ScoringConfig()
        self._rubric_locks = KeyedLocks()
        self._logger = structlog.get_logger(__name__)

    @property
    def passing_threshold(self) -> float:
        return self._config.passing_score_percentage

    # Rubrics

    def create_rubric(
        self,
        name: str,
        description: str | None = None,
        max_score: float = 10,
        weight: float = 1.0,
    ) -> Rubric:
        fields = self._validate_rubric_fields(
            {"name": name, "description": description, "max_score": max_score, "weight": weight}
        )
        rubric = self._repository.create_rubric(fields)
        self._logger.info("rubric.created", rubric_id=rubric.id, name=rubric.name)
        return rubric

    def get_rubric(self, rubric_id: int) -> Rubric:
        rubric = self._repository.get_rubric(rubric_id)
        if rubric is None:
            raise NotFoundError("Rubric not found", rubric_id=rubric_id)
        return rubric

    def list_rubrics(self, *, include_inactive: bool = False) -> list[Rubric]:
        return self._repository.list_rubrics(include_inactive=include_inactive)

    def update_rubric(self, rubric_id: int, **changes: Any) -> Rubric:
        unknown = set(changes) - _RUBRIC_FIELDS
        if unknown:
            raise ValidationError(f"Unknown rubric fields: {sorted(unknown)}", fields=sorted(unknown))

        with self._rubric_locks.hold(rubric_id):
            rubric = self.get_rubric(rubric_id)
            is_active = changes.pop("is_active", None)
            fields = self._validate_rubric_fields(
                {key: value for key, value in changes.items() if value is not None},
                partial=True,
            )
            if is_active is True and not rubric.is_active:
                raise InvalidStateError("Retired rubrics cannot be reactivated", rubric_id=rubric_id)
            if is_active is False:
                fields["state"] = RubricState.RETIRED
            if not fields:
                return rubric
            return self._repository.update_rubric(rubric_id, fields)

    def delete_rubric(self, rubric_id: int) -> RubricDeletion:
        """Retire a rubric that has scores, otherwise remove it."""
        with self._rubric_locks.hold(rubric_id):
            rubric = self.get_rubric(rubric_id)
            if self._repository.rubric_has_scores(rubric_id):
                if rubric.is_active:
                    self._repository.update_rubric(rubric_id, {"state": RubricState.RETIRED})
                self._logger.info("rubric.retired", rubric_id=rubric_id)
                return RubricDeletion.RETIRED
            self._repository.delete_rubric(rubric_id)
            self._logger.info("rubric.deleted", rubric_id=rubric_id)
            return RubricDeletion.DELETED

    # Scores

    def create_score(
        self,
        application_id: int,
        rubric_id: int,
        score_value: float,
        comments: str | None = None,
    ) -> Score:
        """Create or overwrite the score for ``(application_id, rubric_id)``."""
        return self._write_score(application_id, rubric_id, score_value, comments, require_existing=False)

    def update_score(
        self,
        application_id: int,
        rubric_id: int,
        score_value: float,
        comments: str | None = None,
    ) -> Score:
        return self._write_score(application_id, rubric_id, score_value, comments, require_existing=True)

    def get_scores(self, application_id: int) -> list[Score]:
        self._require_application(application_id)
        return self._repository.list_scores(application_id)

    def delete_score(self, application_id: int, rubric_id: int) -> None:
        with self._applications.lock_application(application_id), self._rubric_locks.hold(rubric_id):
            if self._repository.get_score(application_id, rubric_id) is None:
                raise NotFoundError(
                    "Score not found", application_id=application_id, rubric_id=rubric_id
                )
            self._repository.delete_score(application_id, rubric_id)

    def discard_application_scores(self, application_id: int) -> int:
        return self._repository.delete_scores_for_application(application_id)

    # Results

    def calculate_application_score(self, application_id: int) -> ScoreCalculation:
        scores = self._repository.list_scores(application_id)
        if not scores:
            raise ValidationError(
                "No scores found for this application", application_id=application_id
            )

        lines: list[ScoreLine] = []
        for score in scores:
            rubric = self._repository.get_rubric(score.rubric_id)
            if rubric is None:
                raise NotFoundError("Rubric not found", rubric_id=score.rubric_id)
            lines.append(
                ScoreLine(
                    rubric_id=rubric.id,
                    rubric_name=rubric.name,
                    score_value=score.score_value,
                    max_score=rubric.max_score,
                    weight=rubric.weight,
                    weighted_score=score.score_value * rubric.weight,
                    weighted_max=rubric.max_score * rubric.weight,
                    comments=score.comments,
                )
            )

        total_score = sum(line.weighted_score for line in lines)
        max_possible_score = sum(line.weighted_max for line in lines)
        if max_possible_score <= 0:
            raise DegenerateScoreError(
                "Maximum possible score is zero; check rubric weights",
                application_id=application_id,
            )

        percentage = 100.0 * total_score / max_possible_score
        result = Outcome.PASS if percentage >= self.passing_threshold else Outcome.FAIL
        return ScoreCalculation(
            total_score=total_score,
            max_possible_score=max_possible_score,
            percentage=percentage,
            result=result,
            passing_threshold=self.passing_threshold,
            lines=lines,
        )

    def score_summary(self, application_id: int) -> ScoreSummary:
        self._require_application(application_id)
        scored = {score.rubric_id for score in self._repository.list_scores(application_id)}
        active = self._repository.list_rubrics()
        calculation = self.calculate_application_score(application_id) if scored else None
        return ScoreSummary(
            application_id=application_id,
            scored_rubrics=len(scored),
            active_rubrics=len(active),
            unscored_rubric_ids=[rubric.id for rubric in active if rubric.id not in scored],
            calculation=calculation,
        )

    # Internals

    def _write_score(
        self,
        application_id: int,
        rubric_id: int,
        score_value: float,
        comments: str | None,
        *,
        require_existing: bool,
    ) -> Score:
        # application lock first, then rubric lock
        with self._applications.lock_application(application_id), self._rubric_locks.hold(rubric_id):
            application = self._require_application(application_id)
            if application.status != ApplicationStatus.APPROVED:
                raise InvalidStateError(
                    "Scores can only be recorded for approved applications",
                    application_id=application_id,
                    status=application.status.value,
                )
            rubric = self._repository.get_rubric(rubric_id)
            if rubric is None or not rubric.is_active:
                raise NotFoundError("Rubric not found or inactive", rubric_id=rubric_id)
            if require_existing and self._repository.get_score(application_id, rubric_id) is None:
                raise NotFoundError(
                    "Score not found", application_id=application_id, rubric_id=rubric_id
                )
            value = _as_number(score_value, "score_value")
            if not 0 <= value <= rubric.max_score:
                raise ValidationError(
                    f"Score must be between 0 and {rubric.max_score:g}",
                    rubric_id=rubric_id,
                    score_value=value,
                )
            score = self._repository.upsert_score(application_id, rubric_id, value, comments)

        self._logger.info(
            "score.recorded",
            application_id=application_id,
            rubric_id=rubric_id,
            score_value=value,
        )
        return score

    def _require_application(self, application_id: int) -> Application:
        application = self._applications.find_by_id(application_id)
        if application is None:
            raise NotFoundError("Application not found", application_id=application_id)
        return application

    @staticmethod
    def _validate_rubric_fields(fields: dict[str, Any], *, partial: bool = False) -> dict[str, Any]:
        validated = dict(fields)
        if "name" in validated or not partial:
            name = str(validated.get("name") or "").strip()
            if not name:
                raise ValidationError("Rubric name is required")
            validated["name"] = name
        if "max_score" in validated:
            max_score = _as_number(validated["max_score"], "max_score")
            if max_score <= 0:
                raise ValidationError("max_score must be greater than 0", max_score=max_score)
            validated["max_score"] = max_score
        if "weight" in validated:
            weight = _as_number(validated["weight"], "weight")
            if weight < 0:
                raise ValidationError("weight must not be negative", weight=weight)
            validated["weight"] = weight
        return validated


def _as_number(value: Any, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number", field=field, value=value)
    if not math.isfinite(value):
        raise ValidationError(f"{field} must be finite", field=field, value=value)
    return float(value)


__all__ = ["ScoringConfig", "ScoringEngine"]
