"""Pydantic configuration schema for YAML settings."""

from __future__ import annotations

from typing import Any

import pendulum

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class LifecycleSettings(BaseModel):
    passing_score_percentage: float = Field(default=70.0, ge=0, le=100)
    interview_eligibility_threshold: float = Field(default=75.0, ge=0, le=100)
    demo_duration_minutes: int = Field(default=60, gt=0)
    max_reschedules: int = Field(default=1, ge=0)
    min_days_ahead: int = Field(default=1, ge=0)
    timezone: str = "UTC"

    model_config = ConfigDict(extra="forbid")

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            pendulum.timezone(value)
        except Exception as exc:  # noqa: BLE001
            raise ValueError(f"Unknown timezone: {value!r}") from exc
        return value


class NotificationSettings(BaseModel):
    background: bool = True
    audit_log: str | None = None

    model_config = ConfigDict(extra="forbid")


class AppConfig(BaseModel):
    lifecycle: LifecycleSettings = Field(default_factory=LifecycleSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)

    model_config = ConfigDict(extra="forbid")

    def to_settings(self) -> dict[str, Any]:
        return {
            "lifecycle": self.lifecycle.model_dump(),
            "notifications": self.notifications.model_dump(exclude_none=True),
        }


def load_config(raw: Any) -> AppConfig:
    if raw is None:
        return AppConfig()
    if not isinstance(raw, dict):
        raise ValidationError.from_exception_data(
            "AppConfig",
            [{"type": "dict_type", "loc": ("config",), "input": raw}],
        )
    return AppConfig.model_validate(raw)
