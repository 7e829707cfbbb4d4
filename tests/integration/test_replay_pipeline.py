from __future__ import annotations

import json
from pathlib import Path

import pendulum
import pytest

from hiringflow.container import create_container
from hiringflow.pipeline import (
    JournalCommand,
    JournalLoader,
    JournalLoadError,
    OutputWriter,
    ReplayPipeline,
)

FIXED = pendulum.datetime(2026, 3, 10, 9, tz="UTC")


def build_pipeline() -> ReplayPipeline:
    container = create_container(
        settings={"notifications": {"background": False}},
        state={"users": [{"id": 1, "email": "ana@example.com", "first_name": "Ana"}]},
        now_provider=lambda: FIXED,
    )
    return ReplayPipeline(container=container)


def test_loader_collects_line_errors(tmp_path: Path):
    path = tmp_path / "commands.jsonl"
    path.write_text(
        "\n".join(
            [
                "# seeded by hand",
                json.dumps({"op": "create_application", "actor": {"user_id": 1}, "args": {"applicant_id": 1}}),
                "{not json",
                json.dumps(["approve"]),
                json.dumps({"op": "launch", "actor": {"user_id": 1}}),
                json.dumps({"op": "approve"}),
                "",
            ]
        ),
        encoding="utf-8",
    )

    with pytest.raises(JournalLoadError) as exc:
        JournalLoader().load(path)

    assert len(exc.value.partial) == 1
    assert exc.value.partial[0].line == 2
    assert [error.split(":")[0] for error in exc.value.errors] == ["line 3", "line 4", "line 5", "line 6"]


def test_run_reports_partial_load(tmp_path: Path):
    commands = tmp_path / "commands.jsonl"
    output = tmp_path / "result.json"
    commands.write_text(
        json.dumps({"op": "create_application", "actor": {"user_id": 1}, "args": {"applicant_id": 1}})
        + "\n{broken\n",
        encoding="utf-8",
    )

    results = build_pipeline().run(commands_path=commands, output_path=output)

    assert [result["ok"] for result in results] == [True]
    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["metadata"]["errors"][0].startswith("line 2")
    assert payload["state"]["applications"][0]["attempt_number"] == 1


def test_unexpected_arguments_are_reported():
    pipeline = build_pipeline()

    outcome = pipeline.apply(
        JournalCommand(op="create_rubric", actor={"user_id": 9, "role": "HR"}, args={"title": "x"})
    )

    assert outcome["ok"] is False
    assert outcome["error"]["kind"] == "invalid_arguments"


def test_domain_errors_are_recorded_with_context():
    pipeline = build_pipeline()

    outcome = pipeline.apply(
        JournalCommand(op="approve", actor={"user_id": 9, "role": "ADMIN"}, args={"application_id": 42})
    )

    assert outcome == {
        "line": 0,
        "op": "approve",
        "ok": False,
        "error": {"kind": "not_found", "message": "Application not found", "context": {"application_id": 42}},
    }


def test_applicant_cannot_read_someone_elses_application():
    pipeline = build_pipeline()
    created = pipeline.apply(
        JournalCommand(op="create_application", actor={"user_id": 1}, args={"applicant_id": 1})
    )

    outcome = pipeline.apply(
        JournalCommand(
            op="get_application",
            actor={"user_id": 2},
            args={"application_id": created["result"]["id"]},
        )
    )

    assert outcome["error"]["kind"] == "forbidden"


def test_output_writer_serialises_pendulum_values(tmp_path: Path):
    path = tmp_path / "nested" / "payload.json"

    OutputWriter().write(path, {"generated_at": FIXED})

    assert json.loads(path.read_text(encoding="utf-8")) == {"generated_at": "2026-03-10T09:00:00Z"}

    with pytest.raises(TypeError):
        OutputWriter().write(path, {"blob": object()})
