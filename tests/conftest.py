from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pendulum
import pytest

from hiringflow.core import ApplicationLifecycle, LifecycleConfig, ScoringConfig, ScoringEngine
from hiringflow.notifications import InAppNotificationStore, NotificationBus
from hiringflow.repository import (
    InMemoryApplicantDirectory,
    InMemoryApplicationRepository,
    InMemoryScoringRepository,
)
from hiringflow.schemas import Applicant, Application, NotificationEvent, Role

NOW = pendulum.datetime(2026, 3, 10, 9, 0, tz="UTC")

APPLICANT_ID = 1
HR_ID = 100


class FixedClock:
    def __init__(self, now: pendulum.DateTime) -> None:
        self.now = now

    def __call__(self) -> pendulum.DateTime:
        return self.now

    def advance(self, **delta: Any) -> None:
        self.now = self.now.add(**delta)


class RecordingGateway:
    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    def notify(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def kinds(self) -> list[str]:
        return [event.kind.value for event in self.events]


@dataclass
class Harness:
    lifecycle: ApplicationLifecycle
    scoring: ScoringEngine
    applications: InMemoryApplicationRepository
    scores: InMemoryScoringRepository
    directory: InMemoryApplicantDirectory
    bus: NotificationBus
    inbox: InAppNotificationStore
    recorder: RecordingGateway
    clock: FixedClock
    rubric_ids: list[int] = field(default_factory=list)

    def approved(self, applicant_id: int = APPLICANT_ID) -> Application:
        application = self.lifecycle.create_application(applicant_id, program="Mathematics")
        return self.lifecycle.approve(application.id)

    def scored(self, value: float, applicant_id: int = APPLICANT_ID) -> Application:
        """Approved application with one 10-point rubric scored at ``value`` and scoring completed."""
        application = self.approved(applicant_id)
        if not self.rubric_ids:
            self.rubric_ids.append(self.scoring.create_rubric("Lesson delivery").id)
        self.scoring.create_score(application.id, self.rubric_ids[0], value)
        return self.lifecycle.complete_scoring(application.id)


def build_harness(
    clock: FixedClock,
    *,
    lifecycle_config: LifecycleConfig | None = None,
    scoring_config: ScoringConfig | None = None,
) -> Harness:
    applications = InMemoryApplicationRepository(now_provider=clock)
    scores = InMemoryScoringRepository(now_provider=clock)
    directory = InMemoryApplicantDirectory(
        [
            Applicant(id=APPLICANT_ID, email="ana@example.com", first_name="Ana", last_name="Reyes"),
            Applicant(id=2, email="ben@example.com", first_name="Ben"),
            Applicant(id=HR_ID, email="hr@example.com", first_name="Hana", role=Role.HR),
            Applicant(id=101, email="admin@example.com", first_name="Ari", role=Role.ADMIN),
        ]
    )
    recorder = RecordingGateway()
    inbox = InAppNotificationStore(now_provider=clock)
    bus = NotificationBus([inbox, recorder], background=False)
    scoring = ScoringEngine(applications=applications, repository=scores, config=scoring_config)
    lifecycle = ApplicationLifecycle(
        repository=applications,
        scoring=scoring,
        notifier=bus,
        directory=directory,
        config=lifecycle_config,
        now_provider=clock,
    )
    return Harness(
        lifecycle=lifecycle,
        scoring=scoring,
        applications=applications,
        scores=scores,
        directory=directory,
        bus=bus,
        inbox=inbox,
        recorder=recorder,
        clock=clock,
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def harness(clock: FixedClock) -> Harness:
    return build_harness(clock)
