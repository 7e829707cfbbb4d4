"""Dependency injection container for the hiring workflow."""

from __future__ import annotations

from typing import Any, Callable

import pendulum
from dependency_injector import containers, providers

from .authorization import CapabilityPolicy
from .core import ApplicationLifecycle, LifecycleConfig, ScoringConfig, ScoringEngine
from .notifications import (
    InAppNotificationStore,
    LoggingGateway,
    MessageRenderer,
    NotificationBus,
)
from .repository import (
    InMemoryApplicantDirectory,
    InMemoryApplicationRepository,
    InMemoryScoringRepository,
)
from .schemas.config import load_config


class HiringContainer(containers.DeclarativeContainer):
    """Dependency-injector container definition."""

    config = providers.Configuration()

    now_provider = providers.Object(pendulum.now)

    application_repository = providers.Singleton(
        InMemoryApplicationRepository,
        now_provider=now_provider,
    )
    scoring_repository = providers.Singleton(
        InMemoryScoringRepository,
        now_provider=now_provider,
    )
    applicant_directory = providers.Singleton(InMemoryApplicantDirectory)

    message_renderer = providers.Singleton(
        MessageRenderer,
        tz=config.lifecycle.timezone,
    )
    inbox = providers.Singleton(
        InAppNotificationStore,
        renderer=message_renderer,
        audit_path=config.notifications.audit_log,
        now_provider=now_provider,
    )
    logging_gateway = providers.Singleton(LoggingGateway, renderer=message_renderer)

    notification_bus = providers.Singleton(
        NotificationBus,
        gateways=providers.List(inbox, logging_gateway),
        background=config.notifications.background,
    )

    scoring_config = providers.Factory(
        ScoringConfig,
        passing_score_percentage=config.lifecycle.passing_score_percentage,
    )
    lifecycle_config = providers.Factory(
        LifecycleConfig,
        interview_eligibility_threshold=config.lifecycle.interview_eligibility_threshold,
        demo_duration_minutes=config.lifecycle.demo_duration_minutes,
        max_reschedules=config.lifecycle.max_reschedules,
        min_days_ahead=config.lifecycle.min_days_ahead,
        timezone=config.lifecycle.timezone,
    )

    scoring_engine = providers.Singleton(
        ScoringEngine,
        applications=application_repository,
        repository=scoring_repository,
        config=scoring_config,
    )

    lifecycle = providers.Singleton(
        ApplicationLifecycle,
        repository=application_repository,
        scoring=scoring_engine,
        notifier=notification_bus,
        directory=applicant_directory,
        config=lifecycle_config,
        now_provider=now_provider,
    )

    policy = providers.Singleton(CapabilityPolicy)


def create_container(
    *,
    settings: dict | None = None,
    state: dict[str, Any] | None = None,
    now_provider: Callable[[], Any] | None = None,
) -> HiringContainer:
    """Instantiate the container with validated settings and optional seed state.

    ``state`` may hold ``applications``, ``rubrics``, ``scores`` and ``users``
    lists as produced by the repositories' ``dump`` methods.
    """

    container = HiringContainer()
    container.config.from_dict(load_config(settings or {}).to_settings())

    if now_provider is not None:
        container.now_provider.override(providers.Object(now_provider))

    if not state:
        return container

    clock = container.now_provider
    container.application_repository.override(
        providers.Singleton(
            InMemoryApplicationRepository,
            state.get("applications") or [],
            now_provider=clock,
        )
    )
    container.scoring_repository.override(
        providers.Singleton(
            InMemoryScoringRepository,
            state.get("rubrics") or [],
            state.get("scores") or [],
            now_provider=clock,
        )
    )
    container.applicant_directory.override(
        providers.Singleton(InMemoryApplicantDirectory, state.get("users") or [])
    )
    return container
