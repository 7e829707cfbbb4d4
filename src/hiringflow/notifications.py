"""Post-commit notification bus, message rendering and in-app delivery."""

from __future__ import annotations

import json
import queue
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol, runtime_checkable

import pendulum
import structlog

from .schemas import (
    Applicant,
    NotificationEvent,
    NotificationKind,
    NotificationRecord,
    Outcome,
    RescheduleReason,
)


@runtime_checkable
class NotificationGateway(Protocol):
    """Consumer of lifecycle events (email sender, in-app inbox, ...)."""

    def notify(self, event: NotificationEvent) -> None:
        """Deliver ``event`` to its recipients."""


class NotificationBus:
    """At-most-once, best-effort fan-out of events to gateways.

    In background mode events are queued and delivered by a worker thread;
    otherwise delivery happens inside ``publish``. Gateway errors are logged
    and dropped in both modes.
    """

    def __init__(
        self,
        gateways: Iterable[NotificationGateway] = (),
        *,
        background: bool = True,
    ) -> None:
        self._gateways = list(gateways)
        self._background = background
        self._queue: queue.Queue[NotificationEvent | None] = queue.Queue()
        self._worker: threading.Thread | None = None
        self._state_lock = threading.Lock()
        self._closed = False
        self._logger = structlog.get_logger(__name__)

    def subscribe(self, gateway: NotificationGateway) -> None:
        self._gateways.append(gateway)

    def publish(self, event: NotificationEvent) -> None:
        if not self._background:
            self._deliver(event)
            return
        with self._state_lock:
            if self._closed:
                self._logger.warning(
                    "notification.dropped",
                    kind=event.kind.value,
                    application_id=event.application.id,
                    reason="bus_closed",
                )
                return
            if self._worker is None:
                self._worker = threading.Thread(
                    target=self._run, name="notification-bus", daemon=True
                )
                self._worker.start()
            self._queue.put(event)

    def join(self) -> None:
        """Block until every queued event has been handled."""
        self._queue.join()

    def close(self, timeout: float | None = 5.0) -> None:
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            worker = self._worker
        if worker is not None:
            self._queue.put(None)
            worker.join(timeout)

    def _run(self) -> None:
        while True:
            event = self._queue.get()
            try:
                if event is None:
                    return
                self._deliver(event)
            finally:
                self._queue.task_done()

    def _deliver(self, event: NotificationEvent) -> None:
        for gateway in self._gateways:
            try:
                gateway.notify(event)
            except Exception as exc:  # noqa: BLE001
                self._logger.error(
                    "notification.failed",
                    gateway=type(gateway).__name__,
                    kind=event.kind.value,
                    application_id=event.application.id,
                    error=str(exc),
                )


@dataclass
class RenderedMessage:
    subject: str
    message: str


class MessageRenderer:
    """Builds subject and body text for each notification kind."""

    def __init__(self, *, organization: str = "Hiring Team", tz: str = "UTC") -> None:
        self._organization = organization
        self._tz = tz

    def render(self, event: NotificationEvent, recipient: Applicant) -> RenderedMessage:
        handler = getattr(self, f"_render_{event.kind.value}")
        subject, body = handler(event, recipient)
        return RenderedMessage(subject=subject, message=f"{body.strip()}\n\n{self._signature()}")

    def _render_submission(self, event: NotificationEvent, recipient: Applicant) -> tuple[str, str]:
        app = event.application
        return (
            "Application Submitted Successfully",
            f"""
Dear {recipient.full_name},

Thank you for submitting your teacher application{self._program_clause(event)}.

Application ID: {app.id}
Attempt Number: {app.attempt_number}
Submission Date: {self._date(app.created_at)}
Status: Pending Review

Our HR team will review your application and keep you updated as it progresses.
""",
        )

    def _render_hr_alert(self, event: NotificationEvent, recipient: Applicant) -> tuple[str, str]:
        app = event.application
        applicant = event.applicant
        if event.extra.get("event") == "demo_rescheduled":
            return (
                f"Application #{app.id} - Demo Rescheduled",
                f"""
Application ID: {app.id}
Applicant: {applicant.full_name} ({applicant.email})
New Demo: {self._datetime(app.demo_schedule)}
Reason: {event.extra.get('reason') or 'Not specified'}

Please review the schedule in the HR portal.
""",
            )
        return (
            "New Teacher Application Submitted - Action Required",
            f"""
A new teacher application requires review.

Applicant: {applicant.full_name}
Email: {applicant.email}
Phone: {applicant.phone or 'Not provided'}
Application ID: {app.id}
Attempt Number: {app.attempt_number}
Submission Date: {self._date(app.created_at)}
""",
        )

    def _render_approval(self, event: NotificationEvent, recipient: Applicant) -> tuple[str, str]:
        app = event.application
        notes = f"\nHR Notes: {app.hr_notes}\n" if app.hr_notes else ""
        return (
            "Application Approved - Teaching Demo Scheduling",
            f"""
Dear {recipient.full_name},

Your teacher application{self._program_clause(event)} has been approved.
You will be notified about the schedule of your teaching demonstration.
{notes}
Application ID: {app.id}
""",
        )

    def _render_rejection(self, event: NotificationEvent, recipient: Applicant) -> tuple[str, str]:
        app = event.application
        feedback = f"\nFeedback: {app.hr_notes}\n" if app.hr_notes else ""
        return (
            "Application Status Update",
            f"""
Dear {recipient.full_name},

After careful review we will not be moving forward with your application{self._program_clause(event)} at this time.
{feedback}
You are welcome to apply again in the future.

Application ID: {app.id}
""",
        )

    def _render_schedule(self, event: NotificationEvent, recipient: Applicant) -> tuple[str, str]:
        app = event.application
        return (
            "Teaching Demo Scheduled",
            f"""
Dear {recipient.full_name},

Your teaching demonstration has been scheduled.

Date and time: {self._datetime(app.demo_schedule)}
Location: {app.demo_location or 'To be announced'}
Duration: {app.demo_duration} minutes
Application ID: {app.id}

Please prepare a {app.demo_duration}-minute lesson.
""",
        )

    def _render_reschedule(self, event: NotificationEvent, recipient: Applicant) -> tuple[str, str]:
        app = event.application
        reason = event.extra.get("reason")
        if reason == RescheduleReason.APPLICANT_NO_SHOW.value:
            subject = "Action Required: Rescheduling Your Teaching Demo"
            opening = (
                "We could not proceed with your teaching demonstration because you did not "
                "appear at the scheduled time. A new demo has been scheduled for you."
            )
            closing = "Please be punctual; further no-shows may affect your application."
        elif reason == RescheduleReason.SCHOOL.value:
            subject = "Notice: Teaching Demo Rescheduled by HR"
            opening = (
                "Your teaching demonstration has been rescheduled by our HR team for "
                "administrative reasons. We apologize for the inconvenience."
            )
            closing = ""
        else:
            subject = "Teaching Demo Rescheduled"
            opening = "Your teaching demonstration has been rescheduled."
            closing = ""
        return (
            subject,
            f"""
Dear {recipient.full_name},

{opening}

Date and time: {self._datetime(app.demo_schedule)}
Location: {app.demo_location or 'To be announced'}
Application ID: {app.id}

{closing}
""",
        )

    def _render_results(self, event: NotificationEvent, recipient: Applicant) -> tuple[str, str]:
        app = event.application
        calculation = event.extra.get("calculation") or {}
        breakdown = "\n".join(
            f"- {line['rubric_name']}: {line['score_value']:g}/{line['max_score']:g}"
            + (f" ({line['comments']})" if line.get("comments") else "")
            for line in calculation.get("lines", [])
        )
        passed = app.result is Outcome.PASS
        verdict = (
            "Congratulations! You have passed the teaching demonstration."
            if passed
            else "Unfortunately, you did not pass the teaching demonstration."
        )
        next_steps = (
            "You will be notified about the next steps in the hiring process."
            if passed
            else "You are welcome to apply again in the future."
        )
        return (
            "Teaching Demo Results",
            f"""
Dear {recipient.full_name},

{verdict}

Overall Score: {app.total_score or 0:.1f}%
Result: {app.result.value if app.result else 'N/A'}

Score Breakdown:
{breakdown or '- No breakdown available'}

{next_steps}
""",
        )

    def _render_interview_schedule(
        self, event: NotificationEvent, recipient: Applicant
    ) -> tuple[str, str]:
        app = event.application
        rescheduled = bool(event.extra.get("rescheduled"))
        return (
            "Interview Rescheduled" if rescheduled else "Interview Scheduled",
            f"""
Dear {recipient.full_name},

Your interview has been {'rescheduled' if rescheduled else 'scheduled'}.

Date and time: {self._datetime(app.interview_schedule)}
Application ID: {app.id}

Please be prepared and on time.
""",
        )

    def _program_clause(self, event: NotificationEvent) -> str:
        program = event.application.program_name
        return f" for the {program} specialization" if program else ""

    def _date(self, value: Any) -> str:
        if value is None:
            return "N/A"
        return pendulum.instance(value).in_timezone(self._tz).to_date_string()

    def _datetime(self, value: Any) -> str:
        if value is None:
            return "N/A"
        return pendulum.instance(value).in_timezone(self._tz).format("YYYY-MM-DD h:mm A")

    def _signature(self) -> str:
        return f"Best regards,\n{self._organization}"


class InAppNotificationStore:
    """Gateway that keeps rendered notifications as an in-app inbox."""

    def __init__(
        self,
        *,
        renderer: MessageRenderer | None = None,
        audit_path: str | Path | None = None,
        now_provider: Callable[[], Any] | None = None,
    ) -> None:
        self._renderer = renderer or MessageRenderer()
        self._audit_path = Path(audit_path) if audit_path else None
        self._now_provider = now_provider or pendulum.now
        self._records: list[NotificationRecord] = []
        self._lock = threading.Lock()
        if self._audit_path:
            self._audit_path.parent.mkdir(parents=True, exist_ok=True)

    def notify(self, event: NotificationEvent) -> None:
        for recipient in event.recipients:
            rendered = self._renderer.render(event, recipient)
            record = NotificationRecord(
                email=recipient.email,
                subject=rendered.subject,
                message=rendered.message,
                kind=event.kind,
                application_id=event.application.id,
                sent_at=self._now_provider(),
            )
            with self._lock:
                self._records.append(record)
                if self._audit_path:
                    with self._audit_path.open("a", encoding="utf-8") as handle:
                        handle.write(json.dumps(record.model_dump(mode="json"), ensure_ascii=False))
                        handle.write("\n")

    def history(
        self,
        *,
        email: str | None = None,
        kind: NotificationKind | str | None = None,
        application_id: int | None = None,
        limit: int = 50,
    ) -> list[NotificationRecord]:
        kind_filter = NotificationKind(kind) if kind is not None else None
        with self._lock:
            matched = [
                record
                for record in reversed(self._records)
                if (email is None or record.email == email)
                and (kind_filter is None or record.kind == kind_filter)
                and (application_id is None or record.application_id == application_id)
            ]
        return matched[:limit]


class LoggingGateway:
    """Gateway that logs each outbound message instead of sending it."""

    def __init__(self, renderer: MessageRenderer | None = None) -> None:
        self._renderer = renderer or MessageRenderer()
        self._logger = structlog.get_logger(__name__)

    def notify(self, event: NotificationEvent) -> None:
        for recipient in event.recipients:
            rendered = self._renderer.render(event, recipient)
            self._logger.info(
                "notification.outbound",
                kind=event.kind.value,
                application_id=event.application.id,
                email=recipient.email,
                subject=rendered.subject,
            )


__all__ = [
    "NotificationGateway",
    "NotificationBus",
    "MessageRenderer",
    "RenderedMessage",
    "InAppNotificationStore",
    "LoggingGateway",
]
