"""Application lifecycle state machine."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

import pendulum
import structlog

from ..errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    RescheduleLimitError,
    ValidationError,
)
from ..schemas import (
    SUBMISSION_FIELDS,
    Application,
    ApplicationPage,
    ApplicationStatus,
    NotificationEvent,
    NotificationKind,
    Outcome,
    RescheduleReason,
)
from .dates import date_only, ensure_min_days_ahead
from .scoring import ScoringEngine

if TYPE_CHECKING:
    from . import ApplicantDirectory, ApplicationRepository, NotificationPublisher


@dataclass
class LifecycleConfig:
    """Lifecycle thresholds and scheduling rules."""

    interview_eligibility_threshold: float = 75.0
    demo_duration_minutes: int = 60
    max_reschedules: int = 1
    min_days_ahead: int = 1
    timezone: str = "UTC"


@dataclass(slots=True)
class _PendingNotice:
    kind: NotificationKind
    to_hr: bool = False
    extra: dict[str, Any] | None = None


class ApplicationLifecycle:
    """Owns every status, result and schedule transition of an application.

    Each mutating operation reads, checks and writes one application while
    holding that application's repository lock, and writes with a
    compare-and-swap on ``updated_at``. Notifications are published only
    after the write, outside the lock; publishing failures are logged and
    never reach the caller.
    """

    def __init__(
        self,
        *,
        repository: "ApplicationRepository",
        scoring: ScoringEngine,
        notifier: "NotificationPublisher",
        directory: "ApplicantDirectory",
        config: LifecycleConfig | None = None,
        now_provider: Callable[[], Any] | None = None,
    ) -> None:
        self._repository = repository
        self._scoring = scoring
        self._notifier = notifier
        self._directory = directory
        self._config = config or LifecycleConfig()
        self._now_provider = now_provider or pendulum.now
        self._logger = structlog.get_logger(__name__)

    # Submission

    def create_application(self, applicant_id: int, **fields: Any) -> Application:
        if isinstance(applicant_id, bool) or not isinstance(applicant_id, int) or applicant_id <= 0:
            raise ValidationError("Invalid applicant ID", applicant_id=applicant_id)
        unknown = set(fields) - SUBMISSION_FIELDS
        if unknown:
            raise ValidationError(
                f"Unknown application fields: {sorted(unknown)}", fields=sorted(unknown)
            )

        with self._repository.lock_applicant(applicant_id):
            active = self._repository.find_active_by_applicant(applicant_id)
            if active is not None:
                raise ConflictError(
                    "You already have an active application. Please wait for the "
                    "current application to be completed.",
                    applicant_id=applicant_id,
                    active_application_id=active.id,
                )
            last = self._repository.find_last_attempt(applicant_id)
            application = self._repository.create(
                {
                    **fields,
                    "applicant_id": applicant_id,
                    "attempt_number": last.attempt_number + 1 if last else 1,
                    "status": ApplicationStatus.PENDING,
                }
            )

        self._logger.info(
            "application.created",
            application_id=application.id,
            applicant_id=applicant_id,
            attempt_number=application.attempt_number,
        )
        self._notify(
            application,
            _PendingNotice(NotificationKind.SUBMISSION),
            _PendingNotice(NotificationKind.HR_ALERT, to_hr=True),
        )
        return application

    # HR decision

    def approve(self, application_id: int, hr_notes: str | None = None) -> Application:
        return self._decide(application_id, ApplicationStatus.APPROVED, hr_notes)

    def reject(self, application_id: int, hr_notes: str | None = None) -> Application:
        return self._decide(application_id, ApplicationStatus.REJECTED, hr_notes)

    def _decide(
        self,
        application_id: int,
        status: ApplicationStatus,
        hr_notes: str | None,
    ) -> Application:
        # HR may override any status; only existence is checked.
        changes: dict[str, Any] = {"status": status}
        if hr_notes is not None:
            changes["hr_notes"] = hr_notes

        with self._repository.lock_application(application_id):
            current = self._load(application_id)
            updated = self._commit(current, changes)

        kind = (
            NotificationKind.APPROVAL
            if status is ApplicationStatus.APPROVED
            else NotificationKind.REJECTION
        )
        self._logger.info(
            f"application.{status.value.lower()}",
            application_id=application_id,
            previous_status=current.status.value,
        )
        self._notify(updated, _PendingNotice(kind))
        return updated

    # Demo

    def schedule_demo(
        self,
        application_id: int,
        demo_schedule: Any,
        location: str | None = None,
        duration: int | None = None,
        notes: str | None = None,
        reschedule_reason: RescheduleReason | str | None = None,
    ) -> Application:
        """Schedule the teaching demo, or reschedule it once.

        ``duration`` is accepted for compatibility but the stored duration is
        always the configured demo length.
        """
        with self._repository.lock_application(application_id):
            current = self._load(application_id)
            if current.status != ApplicationStatus.APPROVED:
                raise InvalidStateError(
                    "Application must be approved before scheduling demo",
                    application_id=application_id,
                    status=current.status.value,
                )
            instant = ensure_min_days_ahead(
                demo_schedule,
                now=self._now_provider(),
                tz=self._config.timezone,
                min_days=self._config.min_days_ahead,
                label="Demo date",
            )
            if current.result is not None:
                raise InvalidStateError(
                    "Cannot schedule or reschedule the demo after a demo result exists",
                    application_id=application_id,
                    result=current.result.value,
                )

            is_reschedule = current.demo_schedule is not None
            changes: dict[str, Any] = {
                "demo_schedule": instant,
                "demo_duration": self._config.demo_duration_minutes,
            }
            if location is not None:
                changes["demo_location"] = location
            if notes is not None:
                changes["demo_notes"] = notes
            if is_reschedule:
                reason = self._require_reason(reschedule_reason, "demo")
                self._check_reschedule_budget(current.demo_reschedule_count, "demo", application_id)
                changes["demo_reschedule_count"] = current.demo_reschedule_count + 1
                changes["demo_reschedule_reason"] = reason

            updated = self._commit(current, changes)

        self._logger.info(
            "demo.rescheduled" if is_reschedule else "demo.scheduled",
            application_id=application_id,
            demo_schedule=instant.to_iso8601_string(),
            reschedule_count=updated.demo_reschedule_count,
            requested_duration=duration,
        )
        if is_reschedule:
            extra = {"reason": updated.demo_reschedule_reason.value}
            self._notify(
                updated,
                _PendingNotice(NotificationKind.RESCHEDULE, extra=extra),
                _PendingNotice(NotificationKind.HR_ALERT, to_hr=True, extra={**extra, "event": "demo_rescheduled"}),
            )
        else:
            self._notify(updated, _PendingNotice(NotificationKind.SCHEDULE))
        return updated

    # Scoring

    def complete_scoring(self, application_id: int) -> Application:
        """Derive the demo result from rubric scores.

        FAIL rejects the application and clears interview eligibility. PASS
        unlocks interview scheduling; the status stays as it is.
        """
        with self._repository.lock_application(application_id):
            current = self._load(application_id)
            if current.interview_result is not None:
                raise InvalidStateError(
                    "Cannot rescore an application whose interview has been rated",
                    application_id=application_id,
                )
            calculation = self._scoring.calculate_application_score(application_id)
            changes: dict[str, Any] = {
                "total_score": calculation.percentage,
                "result": calculation.result,
            }
            if calculation.result is Outcome.FAIL:
                changes["status"] = ApplicationStatus.REJECTED
            # rescoring may flip PASS to FAIL, so the flag is always rewritten
            changes["interview_eligible"] = calculation.result is Outcome.PASS
            updated = self._commit(current, changes)

        self._logger.info(
            "scoring.completed",
            application_id=application_id,
            percentage=calculation.percentage,
            result=calculation.result.value,
            status=updated.status.value,
            interview_eligible=updated.interview_eligible,
        )
        self._notify(
            updated,
            _PendingNotice(
                NotificationKind.RESULTS,
                extra={"calculation": calculation.model_dump(mode="json")},
            ),
        )
        return updated

    # Interview

    def schedule_interview(
        self,
        application_id: int,
        interview_schedule: Any,
        reschedule_reason: RescheduleReason | str | None = None,
    ) -> Application:
        tz = self._config.timezone
        with self._repository.lock_application(application_id):
            current = self._load(application_id)
            if current.interview_result is not None:
                raise InvalidStateError(
                    "Cannot schedule or reschedule the interview after an interview result exists",
                    application_id=application_id,
                    interview_result=current.interview_result.value,
                )
            if not self.is_interview_eligible(current):
                raise InvalidStateError(
                    "Application is not eligible for an interview",
                    application_id=application_id,
                    total_score=current.total_score,
                )
            instant = ensure_min_days_ahead(
                interview_schedule,
                now=self._now_provider(),
                tz=tz,
                min_days=self._config.min_days_ahead,
                label="Interview date",
            )
            if current.demo_schedule is not None and date_only(instant, tz) < date_only(
                current.demo_schedule, tz
            ):
                raise ValidationError(
                    "Interview date cannot be before the demo date",
                    demo_date=date_only(current.demo_schedule, tz).to_date_string(),
                )

            is_reschedule = current.interview_schedule is not None
            changes: dict[str, Any] = {"interview_schedule": instant}
            if is_reschedule:
                reason = self._require_reason(reschedule_reason, "interview")
                self._check_reschedule_budget(
                    current.interview_reschedule_count, "interview", application_id
                )
                changes["interview_reschedule_count"] = current.interview_reschedule_count + 1
                changes["interview_reschedule_reason"] = reason

            updated = self._commit(current, changes)

        self._logger.info(
            "interview.rescheduled" if is_reschedule else "interview.scheduled",
            application_id=application_id,
            interview_schedule=instant.to_iso8601_string(),
            reschedule_count=updated.interview_reschedule_count,
        )
        extra = {"rescheduled": is_reschedule}
        if is_reschedule:
            extra["reason"] = updated.interview_reschedule_reason.value
        self._notify(updated, _PendingNotice(NotificationKind.INTERVIEW_SCHEDULE, extra=extra))
        return updated

    def rate_interview(
        self,
        application_id: int,
        interview_result: Outcome | str,
        interview_score: float | None = None,
        interview_notes: str | None = None,
    ) -> Application:
        with self._repository.lock_application(application_id):
            current = self._load(application_id)
            if current.interview_schedule is None:
                raise InvalidStateError(
                    "Cannot rate an interview that has not been scheduled",
                    application_id=application_id,
                )
            outcome = _parse_outcome(interview_result)
            changes: dict[str, Any] = {
                "interview_result": outcome,
                "status": (
                    ApplicationStatus.COMPLETED
                    if outcome is Outcome.PASS
                    else ApplicationStatus.REJECTED
                ),
            }
            if interview_score is not None:
                if (
                    isinstance(interview_score, bool)
                    or not isinstance(interview_score, (int, float))
                    or not math.isfinite(interview_score)
                    or not 0 <= interview_score <= 100
                ):
                    raise ValidationError(
                        "Interview score must be between 0 and 100",
                        interview_score=interview_score,
                    )
                changes["interview_score"] = float(interview_score)
            if interview_notes is not None:
                changes["interview_notes"] = interview_notes
            updated = self._commit(current, changes)

        # TODO: add an interview result notification kind and send it to the applicant here.
        self._logger.info(
            "interview.rated",
            application_id=application_id,
            interview_result=outcome.value,
            status=updated.status.value,
        )
        return updated

    @staticmethod
    def _require_reason(value: Any, event: str) -> RescheduleReason:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(
                f"A reschedule reason is required to reschedule the {event}",
                allowed=[reason.value for reason in RescheduleReason],
            )
        try:
            return RescheduleReason(value)
        except ValueError as exc:
            raise ValidationError(
                f"Invalid reschedule reason: {value!r}",
                allowed=[reason.value for reason in RescheduleReason],
            ) from exc

    def _check_reschedule_budget(self, count: int, event: str, application_id: int) -> None:
        if count >= self._config.max_reschedules:
            raise RescheduleLimitError(
                f"The {event} has already been rescheduled and cannot be rescheduled again",
                application_id=application_id,
                reschedule_count=count,
            )

    def is_interview_eligible(self, application: Application) -> bool:
        if application.result is Outcome.FAIL:
            return False
        return application.interview_eligible or (
            application.total_score is not None
            and application.total_score >= self._config.interview_eligibility_threshold
        )

    # Administration

    def delete_application(self, application_id: int) -> None:
        with self._repository.lock_application(application_id):
            current = self._load(application_id)
            self._repository.delete(application_id)
            discarded = self._scoring.discard_application_scores(application_id)
        self._logger.info(
            "application.deleted",
            application_id=application_id,
            status=current.status.value,
            discarded_scores=discarded,
        )

    def update_notes(
        self,
        application_id: int,
        *,
        hr_notes: str | None = None,
        demo_notes: str | None = None,
        interview_notes: str | None = None,
    ) -> Application:
        changes = {
            key: value
            for key, value in {
                "hr_notes": hr_notes,
                "demo_notes": demo_notes,
                "interview_notes": interview_notes,
            }.items()
            if value is not None
        }
        with self._repository.lock_application(application_id):
            current = self._load(application_id)
            if not changes:
                return current
            updated = self._commit(current, changes)
        self._logger.info("application.notes_updated", application_id=application_id, fields=sorted(changes))
        return updated

    def backfill_interview_eligibility(self) -> int:
        """Mark every application scored at or above the eligibility threshold."""
        candidates, _ = self._repository.find_all(interview_eligible=False)
        updated = 0
        for candidate in candidates:
            with self._repository.lock_application(candidate.id):
                current = self._repository.find_by_id(candidate.id)
                if current is None or current.interview_eligible or current.result is Outcome.FAIL:
                    continue
                if (
                    current.total_score is None
                    or current.total_score < self._config.interview_eligibility_threshold
                ):
                    continue
                self._commit(current, {"interview_eligible": True})
                updated += 1
        self._logger.info("interview_eligibility.backfilled", updated=updated)
        return updated

    # Queries

    def get_application(self, application_id: int) -> Application:
        return self._load(application_id)

    def get_active_application(self, applicant_id: int) -> Application | None:
        return self._repository.find_active_by_applicant(applicant_id)

    def list_applications_for_applicant(self, applicant_id: int) -> list[Application]:
        return self._repository.list_by_applicant(applicant_id)

    def list_applications(
        self,
        *,
        status: ApplicationStatus | str | None = None,
        result: Outcome | str | None = None,
        interview_eligible: bool | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> ApplicationPage:
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive", page=page, limit=limit)
        try:
            status_filter = ApplicationStatus(status) if status is not None else None
        except ValueError as exc:
            raise ValidationError(f"Invalid status filter: {status!r}") from exc
        result_filter = _parse_outcome(result) if result is not None else None

        items, total = self._repository.find_all(
            status=status_filter,
            result=result_filter,
            interview_eligible=interview_eligible,
            search=search,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return ApplicationPage(items=items, total=total, page=page, limit=limit)

    # Internals

    def _load(self, application_id: int) -> Application:
        application = self._repository.find_by_id(application_id)
        if application is None:
            raise NotFoundError("Application not found", application_id=application_id)
        return application

    def _commit(self, current: Application, changes: dict[str, Any]) -> Application:
        return self._repository.update(
            current.id, changes, expected_updated_at=current.updated_at
        )

    def _notify(self, application: Application, *notices: _PendingNotice) -> None:
        applicant = self._directory.get(application.applicant_id)
        if applicant is None:
            self._logger.warning(
                "notification.skipped",
                application_id=application.id,
                applicant_id=application.applicant_id,
                reason="applicant_not_found",
            )
            return

        now = self._now_provider()
        for notice in notices:
            recipients = self._directory.hr_recipients() if notice.to_hr else [applicant]
            if not recipients:
                self._logger.debug(
                    "notification.no_recipients",
                    application_id=application.id,
                    kind=notice.kind.value,
                )
                continue
            event = NotificationEvent(
                kind=notice.kind,
                application=application,
                applicant=applicant,
                recipients=recipients,
                extra=notice.extra or {},
                created_at=now,
            )
            try:
                self._notifier.publish(event)
            except Exception as exc:  # noqa: BLE001
                self._logger.error(
                    "notification.publish_failed",
                    application_id=application.id,
                    kind=notice.kind.value,
                    error=str(exc),
                )


def _parse_outcome(value: Any) -> Outcome:
    try:
        return Outcome(value.upper() if isinstance(value, str) else value)
    except ValueError as exc:
        raise ValidationError(
            f"Result must be one of {[outcome.value for outcome in Outcome]}",
            value=value,
        ) from exc


__all__ = ["ApplicationLifecycle", "LifecycleConfig"]
