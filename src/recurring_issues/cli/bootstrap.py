# src/recurring_issues/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- wires settings + schedule into concrete services (tracker, state store, processors),
- runs the startup sequence: identity, state sync, board, labels, catch-up.

The catch-up step runs missed deadlines first, then today's issues. Both steps are idempotent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from ..config import Settings
from ..core.ports import TrackerClient
from ..schedule.models import ScheduleDefinition
from ..tasks.deadline_processor import DeadlineProcessor
from ..tasks.issue_lifecycle import Clock, IssueLifecycle
from ..tasks.state_store import JsonFileStateBackend, StateStore
from ..tracker.errors import TrackerError
from ..tracker.github_client import GitHubTrackerClient

logger = logging.getLogger(__name__)

MANAGED_LABEL_COLOR = "0E8A16"
UNRESOLVED_LABEL_COLOR = "D93F0B"
CATEGORY_LABEL_COLORS = (
    "1D76DB",  # blue
    "0E8A16",  # green
    "D93F0B",  # red
    "FBCA04",  # yellow
    "6F42C1",  # purple
    "E99695",  # pink
)


@dataclass(slots=True)
class Services:
    settings: Settings
    tracker: TrackerClient
    state_store: StateStore
    lifecycle: IssueLifecycle
    processor: DeadlineProcessor


def build_services(
    settings: Settings,
    schedule: ScheduleDefinition,
    *,
    tracker: TrackerClient | None = None,
    state_store: StateStore | None = None,
    clock: Clock = datetime.now,
) -> Services:
    """
    Wire concrete implementations.

    tracker, state_store and clock are injectable for tests and dry runs.
    """
    if tracker is None:
        repo = settings.github_repo or schedule.repo
        tracker = GitHubTrackerClient(
            settings.require_token(),
            repo,
            managed_label=settings.managed_label,
            api_url=settings.github_api_url,
            timeout_seconds=settings.http_timeout_seconds,
        )
        logger.info("GitHub tracker ready repo=%s", repo)

    if state_store is None:
        state_store = StateStore(JsonFileStateBackend(settings.state_path))
        logger.info("State store ready path=%s", settings.state_path)

    lifecycle = IssueLifecycle(
        tracker,
        state_store,
        managed_label=settings.managed_label,
        unresolved_label=settings.unresolved_label,
        clock=clock,
    )
    processor = DeadlineProcessor(
        tracker,
        state_store,
        tz=schedule.tzinfo,
        managed_label=settings.managed_label,
        unresolved_label=settings.unresolved_label,
        fail_fast=settings.deadline_fail_fast,
        clock=clock,
    )
    return Services(
        settings=settings,
        tracker=tracker,
        state_store=state_store,
        lifecycle=lifecycle,
        processor=processor,
    )


def ensure_labels(
    tracker: TrackerClient,
    schedule: ScheduleDefinition,
    *,
    managed_label: str,
    unresolved_label: str,
) -> int:
    """Create the managed, unresolved and per-category labels if missing. Returns how many were created."""
    logger.info("Ensuring all labels exist")
    created = 0
    created += tracker.ensure_label(managed_label, MANAGED_LABEL_COLOR)
    created += tracker.ensure_label(unresolved_label, UNRESOLVED_LABEL_COLOR)

    for i, task in enumerate(schedule.tasks):
        color = CATEGORY_LABEL_COLORS[i % len(CATEGORY_LABEL_COLORS)]
        try:
            created += tracker.ensure_label(task.category, color)
        except TrackerError:
            logger.error("Failed to create label category=%s op=ensure_label", task.category)
            raise

    logger.info("All labels ensured created=%d", created)
    return created


def ensure_board(tracker: TrackerClient, name: str) -> None:
    """Make sure the project board exists. The board is cosmetic: failures are logged, not raised."""
    if not name:
        logger.debug("Board bootstrap disabled")
        return

    logger.info("Ensuring project board exists board=%s", name)
    try:
        if tracker.board_exists(name):
            logger.info("Project board already exists board=%s", name)
            return
        tracker.create_board(name)
    except TrackerError as e:
        logger.warning("Could not ensure project board board=%s error=%s", name, e)


def run_startup(services: Services, schedule: ScheduleDefinition) -> str:
    """
    Startup sequence. Returns the authenticated identity (used as assignee).

    Any tracker or state-write failure propagates and the triggers are not started.
    """
    settings = services.settings
    logger.info("Starting startup sequence tasks=%d", len(schedule.tasks))

    identity = services.tracker.get_authenticated_identity()
    logger.info("Authenticated with tracker user=%s", identity)

    services.state_store.sync_with_schedule(schedule)
    ensure_board(services.tracker, settings.board_name)
    ensure_labels(
        services.tracker,
        schedule,
        managed_label=settings.managed_label,
        unresolved_label=settings.unresolved_label,
    )

    logger.info("Processing any missed deadlines")
    services.processor.process_all(schedule.tasks)

    logger.info("Creating today's issues")
    services.lifecycle.run_daily_creation(schedule, identity)

    logger.info("Startup sequence complete")
    return identity
