from __future__ import annotations

import pytest

from hiringflow.errors import ConflictError, NotFoundError, ValidationError
from hiringflow.schemas import ApplicationStatus, Outcome


def test_attempt_numbers_increase_across_finished_applications(harness):
    lifecycle = harness.lifecycle

    first = lifecycle.create_application(1, program="Science")
    lifecycle.reject(first.id, hr_notes="Incomplete documents")

    second = lifecycle.create_application(1, program="Science")
    lifecycle.approve(second.id)
    harness.applications.update(second.id, {"status": ApplicationStatus.COMPLETED})

    third = lifecycle.create_application(1, program="Science")

    assert [first.attempt_number, second.attempt_number, third.attempt_number] == [1, 2, 3]
    history = lifecycle.list_applications_for_applicant(1)
    assert [app.attempt_number for app in history] == [3, 2, 1]


@pytest.mark.parametrize("status", [ApplicationStatus.PENDING, ApplicationStatus.APPROVED])
def test_active_application_blocks_new_submission(harness, status):
    lifecycle = harness.lifecycle
    existing = lifecycle.create_application(1)
    if status is ApplicationStatus.APPROVED:
        lifecycle.approve(existing.id)

    with pytest.raises(ConflictError) as exc:
        lifecycle.create_application(1)

    assert exc.value.context["active_application_id"] == existing.id


@pytest.mark.parametrize("final_status", [ApplicationStatus.REJECTED, ApplicationStatus.COMPLETED])
def test_finished_application_allows_new_submission(harness, final_status):
    lifecycle = harness.lifecycle
    existing = lifecycle.create_application(1)
    harness.applications.update(existing.id, {"status": final_status})

    created = lifecycle.create_application(1)

    assert created.status is ApplicationStatus.PENDING
    assert lifecycle.get_active_application(1).id == created.id


def test_other_applicants_are_independent(harness):
    harness.lifecycle.create_application(1)
    other = harness.lifecycle.create_application(2)

    assert other.attempt_number == 1


def test_submission_notifies_applicant_and_hr(harness):
    application = harness.lifecycle.create_application(1, program="English")

    assert harness.recorder.kinds() == ["submission", "hr_alert"]
    submission, alert = harness.recorder.events
    assert [r.email for r in submission.recipients] == ["ana@example.com"]
    assert [r.email for r in alert.recipients] == ["hr@example.com", "admin@example.com"]
    inbox = harness.inbox.history(application_id=application.id)
    assert {record.email for record in inbox} == {
        "ana@example.com",
        "hr@example.com",
        "admin@example.com",
    }


@pytest.mark.parametrize("applicant_id", [0, -3, "7", None, True])
def test_invalid_applicant_id_rejected(harness, applicant_id):
    with pytest.raises(ValidationError):
        harness.lifecycle.create_application(applicant_id)


def test_unknown_submission_fields_rejected(harness):
    with pytest.raises(ValidationError):
        harness.lifecycle.create_application(1, status="APPROVED")


def test_approve_and_reject_only_require_existence(harness):
    lifecycle = harness.lifecycle
    application = lifecycle.create_application(1)
    harness.applications.update(
        application.id,
        {"status": ApplicationStatus.COMPLETED, "interview_result": Outcome.PASS},
    )

    reopened = lifecycle.approve(application.id, hr_notes="Override")
    assert reopened.status is ApplicationStatus.APPROVED
    assert reopened.hr_notes == "Override"

    rejected = lifecycle.reject(application.id)
    assert rejected.status is ApplicationStatus.REJECTED
    assert rejected.hr_notes == "Override"
    assert rejected.updated_at > reopened.updated_at

    with pytest.raises(NotFoundError):
        lifecycle.approve(999)


def test_decisions_notify_applicant(harness):
    application = harness.lifecycle.create_application(1)
    harness.recorder.events.clear()

    harness.lifecycle.approve(application.id, hr_notes="Welcome")
    harness.lifecycle.reject(application.id, hr_notes="Position filled")

    assert harness.recorder.kinds() == ["approval", "rejection"]
    rejection = harness.inbox.history(kind="rejection")[0]
    assert "Position filled" in rejection.message


def test_delete_is_allowed_in_any_status_and_removes_scores(harness):
    application = harness.scored(9)
    assert harness.scores.list_scores(application.id)

    harness.lifecycle.delete_application(application.id)

    with pytest.raises(NotFoundError):
        harness.lifecycle.get_application(application.id)
    assert harness.scores.list_scores(application.id) == []
    with pytest.raises(NotFoundError):
        harness.lifecycle.delete_application(application.id)


def test_notes_can_be_edited_after_terminal_status(harness):
    application = harness.lifecycle.create_application(1)
    harness.lifecycle.reject(application.id)

    updated = harness.lifecycle.update_notes(application.id, hr_notes="Re-apply next term")

    assert updated.hr_notes == "Re-apply next term"
    assert updated.status is ApplicationStatus.REJECTED


def test_list_applications_filters_and_paginates(harness):
    lifecycle = harness.lifecycle
    ana = lifecycle.create_application(1, first_name="Ana", email="ana@example.com")
    harness.clock.advance(minutes=1)
    ben = lifecycle.create_application(2, first_name="Ben", email="ben@example.com")
    lifecycle.approve(ben.id)

    approved = lifecycle.list_applications(status="APPROVED")
    assert [app.id for app in approved.items] == [ben.id]

    searched = lifecycle.list_applications(search="ANA")
    assert [app.id for app in searched.items] == [ana.id]

    paged = lifecycle.list_applications(limit=1, page=2)
    assert paged.total == 2
    assert [app.id for app in paged.items] == [ana.id]

    with pytest.raises(ValidationError):
        lifecycle.list_applications(status="ARCHIVED")
    with pytest.raises(ValidationError):
        lifecycle.list_applications(page=0)
