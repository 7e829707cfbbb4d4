from __future__ import annotations

import pytest

from hiringflow.authorization import DEFAULT_CAPABILITIES, Actor, CapabilityPolicy
from hiringflow.errors import AuthorizationError
from hiringflow.schemas import Role

APPLICANT = Actor(user_id=1, role=Role.APPLICANT)
HR = Actor(user_id=100, role=Role.HR)
ADMIN = Actor(user_id=101, role=Role.ADMIN)


@pytest.mark.parametrize(
    "operation",
    ["approve", "schedule_demo", "complete_scoring", "rate_interview", "create_score"],
)
def test_staff_only_operations(operation):
    policy = CapabilityPolicy()

    assert policy.allows(HR, operation)
    assert policy.allows(ADMIN, operation)
    assert not policy.allows(APPLICANT, operation, owner_id=APPLICANT.user_id)


def test_applicant_reaches_only_own_records():
    policy = CapabilityPolicy()

    assert policy.allows(APPLICANT, "get_application", owner_id=1)
    assert not policy.allows(APPLICANT, "get_application", owner_id=2)
    assert not policy.allows(APPLICANT, "create_application", owner_id=None)
    assert policy.allows(HR, "get_application", owner_id=2)


def test_hr_cannot_submit_applications():
    assert not CapabilityPolicy().allows(HR, "create_application", owner_id=100)


def test_backfill_is_admin_only():
    policy = CapabilityPolicy()

    assert policy.allows(ADMIN, "backfill_interview_eligibility")
    with pytest.raises(AuthorizationError) as exc:
        policy.check(HR, "backfill_interview_eligibility")
    assert exc.value.to_dict()["kind"] == "forbidden"


def test_unknown_operation_is_denied():
    assert not CapabilityPolicy().allows(ADMIN, "drop_everything")


def test_capabilities_can_be_overridden():
    capabilities = dict(DEFAULT_CAPABILITIES)
    capabilities["list_rubrics"] = frozenset(Role)
    policy = CapabilityPolicy(capabilities=capabilities)

    assert policy.allows(APPLICANT, "list_rubrics")
    assert not CapabilityPolicy().allows(APPLICANT, "list_rubrics")
