"""Application record and lifecycle enumerations."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ApplicationStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


ACTIVE_STATUSES: frozenset[ApplicationStatus] = frozenset(
    {ApplicationStatus.PENDING, ApplicationStatus.APPROVED}
)


class Outcome(str, Enum):
    """Demo or interview outcome."""

    PASS = "PASS"
    FAIL = "FAIL"


class RescheduleReason(str, Enum):
    APPLICANT_NO_SHOW = "APPLICANT_NO_SHOW"
    SCHOOL = "SCHOOL"

    @classmethod
    def _missing_(cls, value: object) -> "RescheduleReason | None":
        # legacy lower-case values still arrive from older clients
        aliases = {
            "applicant_no_show": cls.APPLICANT_NO_SHOW,
            "school": cls.SCHOOL,
            "school_reschedule": cls.SCHOOL,
        }
        if isinstance(value, str):
            return aliases.get(value.strip().lower())
        return None


class Application(BaseModel):
    """A single hiring attempt for one applicant."""

    id: int
    applicant_id: int
    attempt_number: int = 1
    status: ApplicationStatus = ApplicationStatus.PENDING
    result: Outcome | None = None
    interview_result: Outcome | None = None
    total_score: float | None = None
    interview_eligible: bool = False

    demo_schedule: datetime | None = None
    demo_location: str | None = None
    demo_duration: int | None = None
    demo_notes: str | None = None
    demo_reschedule_count: int = 0
    demo_reschedule_reason: RescheduleReason | None = None

    interview_schedule: datetime | None = None
    interview_reschedule_count: int = 0
    interview_reschedule_reason: RescheduleReason | None = None
    interview_score: float | None = None

    hr_notes: str | None = None
    interview_notes: str | None = None
    documents: str | None = None

    program: str | None = None
    position: str | None = None
    subject_specialization: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    educational_background: str | None = None
    teaching_experience: str | None = None
    motivation: str | None = None

    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def program_name(self) -> str:
        return self.program or self.position or self.subject_specialization or ""


class ApplicationPage(BaseModel):
    """One page of a filtered application listing."""

    items: list[Application] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10


SUBMISSION_FIELDS: frozenset[str] = frozenset(
    {
        "documents",
        "program",
        "position",
        "subject_specialization",
        "first_name",
        "last_name",
        "email",
        "phone",
        "address",
        "educational_background",
        "teaching_experience",
        "motivation",
    }
)
