"""Replay of lifecycle command journals against a state snapshot."""

from __future__ import annotations

import inspect
import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable

import pendulum
import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaValidationError

from . import __version__
from .authorization import Actor, CapabilityPolicy
from .container import HiringContainer
from .errors import LifecycleError, RepositoryError
from .logging import bind_command
from .schemas import Role


class ActorPayload(BaseModel):
    user_id: int
    role: Role = Role.APPLICANT

    model_config = ConfigDict(extra="forbid")


class JournalCommand(BaseModel):
    """One line of a command journal."""

    line: int = 0
    op: str
    actor: ActorPayload
    args: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


class JournalLoadError(ValueError):
    """Raised when journal lines cannot be parsed."""

    def __init__(self, errors: list[str], partial: list[JournalCommand]):
        super().__init__("Journal loading failed")
        self.errors = errors
        self.partial = partial

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"Journal loading failed: {self.errors}"


@dataclass(frozen=True)
class Operation:
    """Dispatch entry: engine attribute, method name and owner lookup."""

    engine: str
    method: str
    owner: Callable[[HiringContainer, dict[str, Any]], int | None] | None = None


def _owner_from_applicant(_: HiringContainer, args: dict[str, Any]) -> int | None:
    return args.get("applicant_id")


def _owner_from_application(container: HiringContainer, args: dict[str, Any]) -> int | None:
    application = container.application_repository().find_by_id(args.get("application_id"))
    return application.applicant_id if application else None


OPERATIONS: dict[str, Operation] = {
    "create_application": Operation("lifecycle", "create_application", _owner_from_applicant),
    "get_application": Operation("lifecycle", "get_application", _owner_from_application),
    "get_active_application": Operation("lifecycle", "get_active_application", _owner_from_applicant),
    "list_applications_for_applicant": Operation(
        "lifecycle", "list_applications_for_applicant", _owner_from_applicant
    ),
    "list_applications": Operation("lifecycle", "list_applications"),
    "approve": Operation("lifecycle", "approve"),
    "reject": Operation("lifecycle", "reject"),
    "schedule_demo": Operation("lifecycle", "schedule_demo"),
    "complete_scoring": Operation("lifecycle", "complete_scoring"),
    "schedule_interview": Operation("lifecycle", "schedule_interview"),
    "rate_interview": Operation("lifecycle", "rate_interview"),
    "update_notes": Operation("lifecycle", "update_notes"),
    "delete_application": Operation("lifecycle", "delete_application"),
    "backfill_interview_eligibility": Operation("lifecycle", "backfill_interview_eligibility"),
    "create_rubric": Operation("scoring_engine", "create_rubric"),
    "update_rubric": Operation("scoring_engine", "update_rubric"),
    "delete_rubric": Operation("scoring_engine", "delete_rubric"),
    "list_rubrics": Operation("scoring_engine", "list_rubrics"),
    "create_score": Operation("scoring_engine", "create_score"),
    "update_score": Operation("scoring_engine", "update_score"),
    "delete_score": Operation("scoring_engine", "delete_score"),
    "calculate_application_score": Operation("scoring_engine", "calculate_application_score"),
    "score_summary": Operation("scoring_engine", "score_summary", _owner_from_application),
}


class JournalLoader:
    """Parse JSONL command journals."""

    def load(self, path: Path) -> list[JournalCommand]:
        commands: list[JournalCommand] = []
        errors: list[str] = []
        with path.open("r", encoding="utf-8") as handle:
            for idx, line in enumerate(handle, start=1):
                raw = line.strip()
                if not raw or raw.startswith("#"):
                    continue
                try:
                    record = json.loads(raw)
                except json.JSONDecodeError as exc:
                    errors.append(f"line {idx}: invalid JSON ({exc})")
                    continue
                if not isinstance(record, dict):
                    errors.append(f"line {idx}: command must be an object")
                    continue
                try:
                    command = JournalCommand.model_validate({**record, "line": idx})
                except SchemaValidationError as exc:
                    errors.append(f"line {idx}: {exc.errors()[0]['msg']}")
                    continue
                if command.op not in OPERATIONS:
                    errors.append(f"line {idx}: unsupported op '{command.op}'")
                    continue
                commands.append(command)
        if errors:
            raise JournalLoadError(errors, commands)
        return commands


class StateLoader:
    """Load a JSON state snapshot."""

    def load(self, path: Path) -> dict[str, Any]:
        with path.open("r", encoding="utf-8") as handle:
            try:
                data = json.load(handle)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid state JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError("State snapshot must be a JSON object")
        return data


class OutputWriter:
    """Persist replay outcomes."""

    def write(self, path: Path, payload: dict | list[dict]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2, default=_json_default),
            encoding="utf-8",
        )


class ReplayPipeline:
    """Apply journal commands through the capability policy and engines."""

    def __init__(
        self,
        *,
        container: HiringContainer,
        journal_loader: JournalLoader | None = None,
        writer: OutputWriter | None = None,
    ) -> None:
        self._container = container
        self._journal = journal_loader or JournalLoader()
        self._writer = writer or OutputWriter()
        self._logger = structlog.get_logger(__name__)

    def run(self, *, commands_path: Path, output_path: Path) -> list[dict[str, Any]]:
        load_errors: list[str] = []
        try:
            commands = self._journal.load(commands_path)
        except JournalLoadError as exc:
            commands = exc.partial
            load_errors.extend(exc.errors)
            self._logger.warning("journal.partial_load", errors=exc.errors)

        results = [self.apply(command) for command in commands]

        bus = self._container.notification_bus()
        bus.join()
        inbox = self._container.inbox()

        payload = {
            "metadata": {
                "command_count": len(commands),
                "succeeded": sum(1 for result in results if result["ok"]),
                "failed": sum(1 for result in results if not result["ok"]),
                "errors": load_errors,
                "timestamp": pendulum.now().to_iso8601_string(),
                "app_version": __version__,
            },
            "results": results,
            "notifications": [
                record.model_dump(mode="json") for record in reversed(inbox.history(limit=10_000))
            ],
            "state": snapshot(self._container),
        }
        self._writer.write(output_path, payload)
        return results

    def apply(self, command: JournalCommand) -> dict[str, Any]:
        operation = OPERATIONS[command.op]
        actor = Actor(user_id=command.actor.user_id, role=command.actor.role)
        policy: CapabilityPolicy = self._container.policy()
        bind_command(line=command.line, op=command.op, actor=actor.user_id)
        entry: dict[str, Any] = {"line": command.line, "op": command.op}

        method = getattr(getattr(self._container, operation.engine)(), operation.method)
        try:
            inspect.signature(method).bind(**command.args)
        except TypeError as exc:
            self._logger.warning("command.invalid_arguments", error=str(exc))
            return {**entry, "ok": False, "error": {"kind": "invalid_arguments", "message": str(exc)}}

        try:
            owner_id = operation.owner(self._container, command.args) if operation.owner else None
            policy.check(actor, command.op, owner_id)
            outcome = method(**command.args)
        except LifecycleError as exc:
            self._logger.info("command.rejected", kind=exc.kind, message=exc.message)
            return {**entry, "ok": False, "error": exc.to_dict()}
        except RepositoryError as exc:
            self._logger.error("command.repository_error", error=str(exc))
            return {**entry, "ok": False, "error": {"kind": "repository", "message": str(exc)}}

        self._logger.info("command.applied")
        return {**entry, "ok": True, "result": _serialize(outcome)}


def snapshot(container: HiringContainer) -> dict[str, Any]:
    scoring = container.scoring_repository().dump()
    return {
        "applications": container.application_repository().dump(),
        "rubrics": scoring["rubrics"],
        "scores": scoring["scores"],
        "users": container.applicant_directory().dump(),
    }


def _serialize(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_serialize(item) for item in value]
    return value


def _json_default(value: Any) -> str:
    if isinstance(value, pendulum.DateTime):
        return value.to_iso8601_string()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
