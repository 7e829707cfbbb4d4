"""Caller-side capability checks for engine operations."""

from __future__ import annotations

from dataclasses import dataclass, field

from .errors import AuthorizationError
from .schemas import HR_ROLES, Role

_STAFF = frozenset(HR_ROLES)
_EVERYONE = frozenset(Role)

DEFAULT_CAPABILITIES: dict[str, frozenset[Role]] = {
    "create_application": frozenset({Role.APPLICANT}),
    "get_application": _EVERYONE,
    "get_active_application": _EVERYONE,
    "list_applications_for_applicant": _EVERYONE,
    "list_applications": _STAFF,
    "approve": _STAFF,
    "reject": _STAFF,
    "schedule_demo": _STAFF,
    "complete_scoring": _STAFF,
    "schedule_interview": _STAFF,
    "rate_interview": _STAFF,
    "update_notes": _STAFF,
    "delete_application": _STAFF,
    "backfill_interview_eligibility": frozenset({Role.ADMIN}),
    "create_rubric": _STAFF,
    "update_rubric": _STAFF,
    "delete_rubric": _STAFF,
    "list_rubrics": _STAFF,
    "create_score": _STAFF,
    "update_score": _STAFF,
    "delete_score": _STAFF,
    "calculate_application_score": _STAFF,
    "score_summary": _EVERYONE,
}

# Applicants may only reach these for records they own.
OWNER_SCOPED: frozenset[str] = frozenset(
    {
        "create_application",
        "get_application",
        "get_active_application",
        "list_applications_for_applicant",
        "score_summary",
    }
)


@dataclass(frozen=True)
class Actor:
    user_id: int
    role: Role = Role.APPLICANT


@dataclass
class CapabilityPolicy:
    """Role-based allow-list keyed by operation name."""

    capabilities: dict[str, frozenset[Role]] = field(
        default_factory=lambda: dict(DEFAULT_CAPABILITIES)
    )

    def allows(self, actor: Actor, operation: str, owner_id: int | None = None) -> bool:
        roles = self.capabilities.get(operation)
        if roles is None or actor.role not in roles:
            return False
        if actor.role in HR_ROLES or operation not in OWNER_SCOPED:
            return True
        return owner_id is not None and owner_id == actor.user_id

    def check(self, actor: Actor, operation: str, owner_id: int | None = None) -> None:
        if not self.allows(actor, operation, owner_id):
            raise AuthorizationError(
                f"{actor.role.value} may not perform {operation}",
                operation=operation,
                user_id=actor.user_id,
            )


__all__ = ["Actor", "CapabilityPolicy", "DEFAULT_CAPABILITIES", "OWNER_SCOPED"]
