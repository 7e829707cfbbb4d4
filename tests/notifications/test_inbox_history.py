from __future__ import annotations

import json
from pathlib import Path

import pendulum
from structlog.testing import capture_logs

from hiringflow.notifications import InAppNotificationStore, LoggingGateway, MessageRenderer
from hiringflow.schemas import Applicant, Application, NotificationEvent, NotificationKind

SENT = pendulum.datetime(2026, 3, 10, 9, tz="UTC")


def build_event(kind: NotificationKind, *, application_id: int = 1, **extra) -> NotificationEvent:
    applicant = Applicant(id=1, email="ana@example.com", first_name="Ana", last_name="Reyes")
    application = Application(
        id=application_id,
        applicant_id=1,
        program="Mathematics",
        demo_schedule=pendulum.datetime(2026, 3, 12, 6, tz="UTC"),
        demo_location="Room 3",
        demo_duration=60,
        created_at=SENT,
        updated_at=SENT,
    )
    return NotificationEvent(
        kind=kind,
        application=application,
        applicant=applicant,
        recipients=[applicant],
        extra=extra,
        created_at=SENT,
    )


def test_history_filters_newest_first(tmp_path: Path):
    store = InAppNotificationStore(audit_path=tmp_path / "audit" / "inbox.jsonl", now_provider=lambda: SENT)

    store.notify(build_event(NotificationKind.SUBMISSION))
    store.notify(build_event(NotificationKind.APPROVAL))
    store.notify(build_event(NotificationKind.SUBMISSION, application_id=2))

    history = store.history(email="ana@example.com")
    assert [record.kind.value for record in history] == ["submission", "approval", "submission"]
    assert [record.application_id for record in store.history(kind="submission")] == [2, 1]
    assert len(store.history(limit=1)) == 1
    assert store.history(email="nobody@example.com") == []

    lines = (tmp_path / "audit" / "inbox.jsonl").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
    assert json.loads(lines[0])["subject"] == "Application Submitted Successfully"


def test_renderer_uses_configured_timezone():
    renderer = MessageRenderer(organization="Riverside School", tz="Asia/Manila")
    event = build_event(NotificationKind.SCHEDULE)

    rendered = renderer.render(event, event.applicant)

    assert rendered.subject == "Teaching Demo Scheduled"
    assert "Date and time: 2026-03-12 2:00 PM" in rendered.message
    assert "Dear Ana Reyes," in rendered.message
    assert rendered.message.endswith("Best regards,\nRiverside School")


def test_reschedule_without_known_reason_uses_generic_text():
    event = build_event(NotificationKind.RESCHEDULE)

    rendered = MessageRenderer().render(event, event.applicant)

    assert rendered.subject == "Teaching Demo Rescheduled"


def test_logging_gateway_renders_every_recipient():
    event = build_event(NotificationKind.SUBMISSION)

    with capture_logs() as logs:
        LoggingGateway().notify(event)

    assert [entry["event"] for entry in logs] == ["notification.outbound"]
    assert logs[0]["email"] == "ana@example.com"
    assert logs[0]["subject"] == "Application Submitted Successfully"
