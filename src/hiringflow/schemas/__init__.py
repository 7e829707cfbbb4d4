"""Pydantic schema definitions for applications, scoring and notifications."""

from __future__ import annotations

from .application import (
    ACTIVE_STATUSES,
    SUBMISSION_FIELDS,
    Application,
    ApplicationPage,
    ApplicationStatus,
    Outcome,
    RescheduleReason,
)
from .notification import (
    HR_ROLES,
    Applicant,
    NotificationEvent,
    NotificationKind,
    NotificationRecord,
    Role,
)
from .scoring import (
    Rubric,
    RubricDeletion,
    RubricState,
    Score,
    ScoreCalculation,
    ScoreLine,
    ScoreSummary,
)

__all__ = [
    "ACTIVE_STATUSES",
    "SUBMISSION_FIELDS",
    "HR_ROLES",
    "Application",
    "ApplicationPage",
    "ApplicationStatus",
    "Outcome",
    "RescheduleReason",
    "Applicant",
    "NotificationEvent",
    "NotificationKind",
    "NotificationRecord",
    "Role",
    "Rubric",
    "RubricDeletion",
    "RubricState",
    "Score",
    "ScoreCalculation",
    "ScoreLine",
    "ScoreSummary",
]
