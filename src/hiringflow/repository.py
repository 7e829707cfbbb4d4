"""In-process repositories and applicant directory."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any, Callable, Hashable, Iterable, Iterator

import pendulum

from .errors import ConcurrentUpdateError, RepositoryError
from .schemas import (
    ACTIVE_STATUSES,
    HR_ROLES,
    Applicant,
    Application,
    ApplicationStatus,
    Outcome,
    Rubric,
    Score,
)

_SEARCH_FIELDS = ("first_name", "last_name", "email")


class KeyedLocks:
    """Lazily created re-entrant lock per key."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.RLock] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.RLock())
        with lock:
            yield


def _next_timestamp(now: datetime, previous: datetime | None) -> datetime:
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


class InMemoryApplicationRepository:
    """Thread-safe application store keyed by numeric id."""

    def __init__(
        self,
        records: Iterable[dict[str, Any] | Application] | None = None,
        *,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        self._now_provider = now_provider or pendulum.now
        self._guard = threading.RLock()
        self._records: dict[int, Application] = {}
        self._application_locks = KeyedLocks()
        self._applicant_locks = KeyedLocks()
        for record in records or []:
            application = Application.model_validate(record)
            self._records[application.id] = application
        self._next_id = max(self._records, default=0) + 1

    @contextmanager
    def lock_application(self, application_id: int) -> Iterator[None]:
        with self._application_locks.hold(application_id):
            yield

    @contextmanager
    def lock_applicant(self, applicant_id: int) -> Iterator[None]:
        with self._applicant_locks.hold(applicant_id):
            yield

    def find_by_id(self, application_id: int) -> Application | None:
        with self._guard:
            record = self._records.get(application_id)
            return record.model_copy(deep=True) if record else None

    def find_active_by_applicant(self, applicant_id: int) -> Application | None:
        with self._guard:
            for record in self._records.values():
                if record.applicant_id == applicant_id and record.status in ACTIVE_STATUSES:
                    return record.model_copy(deep=True)
        return None

    def find_last_attempt(self, applicant_id: int) -> Application | None:
        attempts = self.list_by_applicant(applicant_id)
        return attempts[0] if attempts else None

    def list_by_applicant(self, applicant_id: int) -> list[Application]:
        with self._guard:
            owned = [
                record.model_copy(deep=True)
                for record in self._records.values()
                if record.applicant_id == applicant_id
            ]
        return sorted(owned, key=lambda app: app.attempt_number, reverse=True)

    def find_all(
        self,
        *,
        status: ApplicationStatus | None = None,
        result: Outcome | None = None,
        interview_eligible: bool | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> tuple[list[Application], int]:
        needle = (search or "").strip().lower()
        with self._guard:
            matched = [
                record
                for record in self._records.values()
                if (status is None or record.status == status)
                and (result is None or record.result == result)
                and (interview_eligible is None or record.interview_eligible == interview_eligible)
                and (not needle or _matches_search(record, needle))
            ]
            matched.sort(key=lambda app: (app.created_at, app.id), reverse=True)
            total = len(matched)
            window = matched[offset:] if limit is None else matched[offset : offset + limit]
            return [record.model_copy(deep=True) for record in window], total

    def create(self, fields: dict[str, Any]) -> Application:
        with self._guard:
            now = self._now_provider()
            application = Application.model_validate(
                {
                    **fields,
                    "id": self._next_id,
                    "created_at": now,
                    "updated_at": now,
                }
            )
            self._records[application.id] = application
            self._next_id += 1
            return application.model_copy(deep=True)

    def update(
        self,
        application_id: int,
        changes: dict[str, Any],
        *,
        expected_updated_at: datetime | None = None,
    ) -> Application:
        with self._guard:
            current = self._records.get(application_id)
            if current is None:
                raise RepositoryError(f"Application {application_id} does not exist")
            if expected_updated_at is not None and current.updated_at != expected_updated_at:
                raise ConcurrentUpdateError(application_id, expected_updated_at, current.updated_at)
            payload = current.model_dump()
            payload.update(changes)
            payload["id"] = current.id
            payload["created_at"] = current.created_at
            payload["updated_at"] = _next_timestamp(self._now_provider(), current.updated_at)
            updated = Application.model_validate(payload)
            self._records[application_id] = updated
            return updated.model_copy(deep=True)

    def delete(self, application_id: int) -> None:
        with self._guard:
            if self._records.pop(application_id, None) is None:
                raise RepositoryError(f"Application {application_id} does not exist")

    def dump(self) -> list[dict[str, Any]]:
        with self._guard:
            return [
                self._records[key].model_dump(mode="json")
                for key in sorted(self._records)
            ]


class InMemoryScoringRepository:
    """Rubric and score store; scores are keyed by (application_id, rubric_id)."""

    def __init__(
        self,
        rubrics: Iterable[dict[str, Any] | Rubric] | None = None,
        scores: Iterable[dict[str, Any] | Score] | None = None,
        *,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        self._now_provider = now_provider or pendulum.now
        self._guard = threading.RLock()
        self._rubrics: dict[int, Rubric] = {}
        self._scores: dict[tuple[int, int], Score] = {}
        for raw in rubrics or []:
            rubric = Rubric.model_validate(raw)
            self._rubrics[rubric.id] = rubric
        for raw in scores or []:
            score = Score.model_validate(raw)
            self._scores[score.key] = score
        self._next_rubric_id = max(self._rubrics, default=0) + 1

    def get_rubric(self, rubric_id: int) -> Rubric | None:
        with self._guard:
            rubric = self._rubrics.get(rubric_id)
            return rubric.model_copy() if rubric else None

    def list_rubrics(self, *, include_inactive: bool = False) -> list[Rubric]:
        with self._guard:
            return [
                self._rubrics[key].model_copy()
                for key in sorted(self._rubrics)
                if include_inactive or self._rubrics[key].is_active
            ]

    def create_rubric(self, fields: dict[str, Any]) -> Rubric:
        with self._guard:
            now = self._now_provider()
            rubric = Rubric.model_validate(
                {**fields, "id": self._next_rubric_id, "created_at": now, "updated_at": now}
            )
            self._rubrics[rubric.id] = rubric
            self._next_rubric_id += 1
            return rubric.model_copy()

    def update_rubric(self, rubric_id: int, changes: dict[str, Any]) -> Rubric:
        with self._guard:
            current = self._rubrics.get(rubric_id)
            if current is None:
                raise RepositoryError(f"Rubric {rubric_id} does not exist")
            payload = current.model_dump()
            payload.update(changes)
            payload["updated_at"] = _next_timestamp(self._now_provider(), current.updated_at)
            updated = Rubric.model_validate(payload)
            self._rubrics[rubric_id] = updated
            return updated.model_copy()

    def delete_rubric(self, rubric_id: int) -> None:
        with self._guard:
            if self._rubrics.pop(rubric_id, None) is None:
                raise RepositoryError(f"Rubric {rubric_id} does not exist")

    def rubric_has_scores(self, rubric_id: int) -> bool:
        with self._guard:
            return any(key[1] == rubric_id for key in self._scores)

    def get_score(self, application_id: int, rubric_id: int) -> Score | None:
        with self._guard:
            score = self._scores.get((application_id, rubric_id))
            return score.model_copy() if score else None

    def list_scores(self, application_id: int) -> list[Score]:
        with self._guard:
            return [
                score.model_copy()
                for key, score in sorted(self._scores.items())
                if key[0] == application_id
            ]

    def upsert_score(
        self,
        application_id: int,
        rubric_id: int,
        score_value: float,
        comments: str | None = None,
    ) -> Score:
        with self._guard:
            now = self._now_provider()
            existing = self._scores.get((application_id, rubric_id))
            score = Score(
                application_id=application_id,
                rubric_id=rubric_id,
                score_value=score_value,
                comments=comments,
                created_at=existing.created_at if existing else now,
                updated_at=_next_timestamp(now, existing.updated_at if existing else None),
            )
            self._scores[score.key] = score
            return score.model_copy()

    def delete_score(self, application_id: int, rubric_id: int) -> None:
        with self._guard:
            if self._scores.pop((application_id, rubric_id), None) is None:
                raise RepositoryError(
                    f"Score for application {application_id} rubric {rubric_id} does not exist"
                )

    def delete_scores_for_application(self, application_id: int) -> int:
        with self._guard:
            doomed = [key for key in self._scores if key[0] == application_id]
            for key in doomed:
                del self._scores[key]
            return len(doomed)

    def dump(self) -> dict[str, list[dict[str, Any]]]:
        with self._guard:
            return {
                "rubrics": [self._rubrics[key].model_dump(mode="json") for key in sorted(self._rubrics)],
                "scores": [self._scores[key].model_dump(mode="json") for key in sorted(self._scores)],
            }


class InMemoryApplicantDirectory:
    """User lookup used to address notifications."""

    def __init__(self, users: Iterable[dict[str, Any] | Applicant] | None = None) -> None:
        self._guard = threading.Lock()
        self._users: dict[int, Applicant] = {}
        for raw in users or []:
            self.add(Applicant.model_validate(raw))

    def add(self, user: Applicant) -> Applicant:
        with self._guard:
            self._users[user.id] = user
        return user

    def get(self, user_id: int) -> Applicant | None:
        with self._guard:
            return self._users.get(user_id)

    def hr_recipients(self) -> list[Applicant]:
        with self._guard:
            return [user for _, user in sorted(self._users.items()) if user.role in HR_ROLES]

    def dump(self) -> list[dict[str, Any]]:
        with self._guard:
            return [self._users[key].model_dump(mode="json") for key in sorted(self._users)]


def _matches_search(record: Application, needle: str) -> bool:
    return any(needle in (getattr(record, field) or "").lower() for field in _SEARCH_FIELDS)


__all__ = [
    "KeyedLocks",
    "InMemoryApplicationRepository",
    "InMemoryScoringRepository",
    "InMemoryApplicantDirectory",
]
