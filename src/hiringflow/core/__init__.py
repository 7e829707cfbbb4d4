"""Lifecycle and scoring engine components."""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from ..schemas import Applicant, Application, NotificationEvent, Rubric, Score


@runtime_checkable
class ApplicationRepository(Protocol):
    """Durable application store used by the engines."""

    def lock_application(self, application_id: int) -> AbstractContextManager[None]:
        """Hold exclusive access to one application for a read-check-write."""

    def lock_applicant(self, applicant_id: int) -> AbstractContextManager[None]:
        """Hold exclusive access to one applicant's attempt sequence."""

    def find_by_id(self, application_id: int) -> Application | None: ...

    def find_active_by_applicant(self, applicant_id: int) -> Application | None: ...

    def find_last_attempt(self, applicant_id: int) -> Application | None: ...

    def list_by_applicant(self, applicant_id: int) -> list[Application]: ...

    def find_all(self, **filters: Any) -> tuple[list[Application], int]: ...

    def create(self, fields: dict[str, Any]) -> Application: ...

    def update(
        self,
        application_id: int,
        changes: dict[str, Any],
        *,
        expected_updated_at: datetime | None = None,
    ) -> Application:
        """Apply ``changes``; reject when ``updated_at`` moved since it was read."""

    def delete(self, application_id: int) -> None: ...


@runtime_checkable
class ScoringRepository(Protocol):
    """Rubric and score store keyed by (application_id, rubric_id)."""

    def get_rubric(self, rubric_id: int) -> Rubric | None: ...

    def list_rubrics(self, *, include_inactive: bool = False) -> list[Rubric]: ...

    def create_rubric(self, fields: dict[str, Any]) -> Rubric: ...

    def update_rubric(self, rubric_id: int, changes: dict[str, Any]) -> Rubric: ...

    def delete_rubric(self, rubric_id: int) -> None: ...

    def rubric_has_scores(self, rubric_id: int) -> bool: ...

    def get_score(self, application_id: int, rubric_id: int) -> Score | None: ...

    def list_scores(self, application_id: int) -> list[Score]: ...

    def upsert_score(
        self,
        application_id: int,
        rubric_id: int,
        score_value: float,
        comments: str | None = None,
    ) -> Score:
        """Create or overwrite the score, keeping the original ``created_at``."""

    def delete_score(self, application_id: int, rubric_id: int) -> None: ...

    def delete_scores_for_application(self, application_id: int) -> int: ...


@runtime_checkable
class ApplicantDirectory(Protocol):
    """User lookup owned by user management."""

    def get(self, user_id: int) -> Applicant | None: ...

    def hr_recipients(self) -> list[Applicant]: ...


@runtime_checkable
class NotificationPublisher(Protocol):
    """Accepts events after commit; must not block on delivery."""

    def publish(self, event: NotificationEvent) -> None: ...


# NOTE: engine imports come after the protocols they reference.
from .dates import date_only, earliest_schedule_date, ensure_min_days_ahead, to_instant  # noqa: E402
from .scoring import ScoringConfig, ScoringEngine  # noqa: E402
from .lifecycle import ApplicationLifecycle, LifecycleConfig  # noqa: E402

__all__ = [
    "ApplicationRepository",
    "ApplicantDirectory",
    "NotificationPublisher",
    "ScoringRepository",
    "ApplicationLifecycle",
    "LifecycleConfig",
    "ScoringConfig",
    "ScoringEngine",
    "date_only",
    "earliest_schedule_date",
    "ensure_min_days_ahead",
    "to_instant",
]
