from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .application import Application


class Role(str, Enum):
    APPLICANT = "APPLICANT"
    HR = "HR"
    ADMIN = "ADMIN"


HR_ROLES: frozenset[Role] = frozenset({Role.HR, Role.ADMIN})


class NotificationKind(str, Enum):
    SUBMISSION = "submission"
    HR_ALERT = "hr_alert"
    APPROVAL = "approval"
    REJECTION = "rejection"
    SCHEDULE = "schedule"
    RESCHEDULE = "reschedule"
    RESULTS = "results"
    INTERVIEW_SCHEDULE = "interview_schedule"


class Applicant(BaseModel):
    """User record as exposed by the user directory."""

    id: int
    email: str
    first_name: str = ""
    last_name: str | None = None
    phone: str | None = None
    role: Role = Role.APPLICANT

    model_config = ConfigDict(extra="ignore")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name or ''}".strip()


class NotificationEvent(BaseModel):
    """Lifecycle event handed to notification gateways after commit."""

    kind: NotificationKind
    application: Application
    applicant: Applicant
    recipients: list[Applicant] = Field(default_factory=list)
    extra: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class NotificationRecord(BaseModel):
    """Delivered in-app notification, kept for audit."""

    email: str
    subject: str
    message: str
    kind: NotificationKind
    application_id: int | None = None
    sent_at: datetime
