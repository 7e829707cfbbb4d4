"""Typer CLI entrypoint for journal replay and maintenance tasks."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import pendulum
import typer

from .config import load_config_file
from .container import create_container
from .logging import configure_logging
from .pipeline import OutputWriter, ReplayPipeline, StateLoader, snapshot

app = typer.Typer(help="Hiring application lifecycle CLI.")


def _settings(config: Optional[Path]) -> dict[str, Any]:
    if not config:
        return {}
    try:
        return load_config_file(config).to_settings()
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_name="config") from exc


def _state(state: Optional[Path]) -> dict[str, Any]:
    if not state:
        return {}
    try:
        return StateLoader().load(state)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_name="state") from exc


def _clock(today: Optional[str]):
    if not today:
        return None
    try:
        fixed = pendulum.parse(today)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid date: {today}", param_name="today") from exc
    return lambda: fixed


@app.command()
def replay(
    commands: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Command journal (JSONL)."),
    output: Path = typer.Option(
        ...,
        exists=False,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
        help="Output JSON path.",
    ),
    state: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="Seed state snapshot (JSON)."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    today: Optional[str] = typer.Option(None, help="Pin the clock (ISO date/time) for schedule checks."),
    log_level: str = typer.Option("INFO", help="Log level for structured logging."),
) -> None:
    """Replay a command journal and write results plus the final state."""
    configure_logging(log_level)

    container = create_container(
        settings=_settings(config),
        state=_state(state),
        now_provider=_clock(today),
    )
    pipeline = ReplayPipeline(container=container)
    try:
        results = pipeline.run(commands_path=commands, output_path=output)
    finally:
        container.notification_bus().close()

    failed = sum(1 for result in results if not result["ok"])
    typer.echo(f"Replayed {len(results)} commands ({failed} rejected). Results saved to {output}.")


@app.command("backfill-eligibility")
def backfill_eligibility(
    state: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="State snapshot (JSON)."),
    output: Path = typer.Option(..., dir_okay=False, resolve_path=True, help="Updated snapshot path."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    log_level: str = typer.Option("INFO", help="Log level for structured logging."),
) -> None:
    """Mark applications scored at or above the eligibility threshold as interview eligible."""
    configure_logging(log_level)

    container = create_container(settings=_settings(config), state=_state(state))
    updated = container.lifecycle().backfill_interview_eligibility()
    OutputWriter().write(output, snapshot(container))
    typer.echo(f"Updated {updated} applications. Snapshot saved to {output}.")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
