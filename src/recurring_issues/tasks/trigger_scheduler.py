# src/recurring_issues/tasks/trigger_scheduler.py

from __future__ import annotations

"""
Daily wall-clock triggers.

One trigger per distinct deadline time (it processes every category sharing that time)
plus one 00:00 trigger for daily issue creation, all in the schedule's timezone.

Each firing runs the (blocking) callback in a worker thread as its own asyncio task,
so a slow invocation overlaps with the next one instead of delaying it. Every callback
is idempotent per day.

To stop, call stop() (safe from a signal handler, safe to call twice).
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, time, tzinfo
from enum import StrEnum

from ..schedule.models import ScheduleDefinition, TaskSpec
from .deadline_processor import DeadlineProcessor, next_deadline_after
from .issue_lifecycle import IssueLifecycle

logger = logging.getLogger(__name__)

Clock = Callable[[tzinfo], datetime]
Sleeper = Callable[[float], Awaitable[None]]

MIDNIGHT = time(0, 0)

# Re-check the wall clock at least this often while waiting (DST shifts, suspended hosts).
MAX_SLEEP_SECONDS = 3600.0


class SchedulerState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(slots=True, frozen=True)
class DailyTrigger:
    name: str
    at: time
    callback: Callable[[], object]

    def next_fire(self, now: datetime) -> datetime:
        return next_deadline_after(self.at, now)


class TriggerScheduler:
    def __init__(
            self,
            processor: DeadlineProcessor,
            lifecycle: IssueLifecycle,
            *,
            clock: Clock = datetime.now,
            sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._processor = processor
        self._lifecycle = lifecycle
        self._clock = clock
        self._sleep = sleep

        self._state = SchedulerState.IDLE
        self._tz: tzinfo | None = None
        self._triggers: list[DailyTrigger] = []
        self._loops: list[asyncio.Task[None]] = []
        self._inflight: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def triggers(self) -> list[DailyTrigger]:
        return list(self._triggers)

    # ---- trigger construction ----

    def _deadline_callback(self, tasks: list[TaskSpec]) -> Callable[[], None]:
        def run() -> None:
            for task in tasks:
                logger.info("Deadline check triggered category=%s deadline=%s", task.category, task.deadline_str)
                try:
                    self._processor.process_category(task.category, task.deadline)
                except Exception:
                    # Categories sharing a deadline time are independent of each other.
                    logger.exception("Deadline processing failed category=%s op=deadline_trigger", task.category)

        return run

    def build_triggers(self, schedule: ScheduleDefinition, assignee: str | None) -> list[DailyTrigger]:
        by_time: dict[time, list[TaskSpec]] = {}
        for task in schedule.tasks:
            by_time.setdefault(task.deadline, []).append(task)

        triggers = [
            DailyTrigger(
                name=f"deadline@{at:%H:%M}",
                at=at,
                callback=self._deadline_callback(tasks),
            )
            for at, tasks in sorted(by_time.items())
        ]

        def create_issues() -> None:
            logger.info("Midnight job triggered, creating today's issues")
            self._lifecycle.run_daily_creation(schedule, assignee)

        triggers.append(DailyTrigger(name="daily-creation@00:00", at=MIDNIGHT, callback=create_issues))
        return triggers

    # ---- lifecycle ----

    def start(self, schedule: ScheduleDefinition, assignee: str | None = None) -> None:
        """Register and start all triggers. Must be called from inside a running event loop."""
        if self._state is not SchedulerState.IDLE:
            logger.warning("Scheduler start ignored, state=%s", self._state.value)
            return

        self._tz = schedule.tzinfo
        self._triggers = self.build_triggers(schedule, assignee)

        for trig in self._triggers:
            t = asyncio.create_task(self._run_trigger(trig), name=f"trigger_{trig.name}")
            self._loops.append(t)
            logger.info("Trigger scheduled name=%s time=%s tz=%s", trig.name, f"{trig.at:%H:%M}", schedule.timezone)

        self._state = SchedulerState.RUNNING
        logger.info("Scheduler started triggers=%d", len(self._triggers))

    def stop(self) -> None:
        """Cancel every trigger loop. In-flight callbacks finish in their threads."""
        if self._state is SchedulerState.STOPPED:
            return

        logger.info("Stopping scheduler")
        for t in self._loops:
            t.cancel()
        self._state = SchedulerState.STOPPED
        logger.info("Scheduler stopped")

    async def wait(self) -> None:
        """Wait until all trigger loops have ended (after stop())."""
        await asyncio.gather(*self._loops, return_exceptions=True)
        self._loops.clear()
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    def describe(self) -> list[tuple[str, datetime]]:
        """(trigger name, next fire time) for every registered trigger."""
        if self._tz is None:
            return []
        now = self._clock(self._tz)
        return [(t.name, t.next_fire(now)) for t in self._triggers]

    # ---- loops ----

    async def _run_trigger(self, trig: DailyTrigger) -> None:
        assert self._tz is not None
        while True:
            target = trig.next_fire(self._clock(self._tz))
            logger.debug("Next fire name=%s at=%s", trig.name, target.isoformat())

            while True:
                remaining = (target - self._clock(self._tz)).total_seconds()
                if remaining <= 0:
                    break
                await self._sleep(min(remaining, MAX_SLEEP_SECONDS))

            t = asyncio.create_task(self._invoke(trig), name=f"fire_{trig.name}")
            self._inflight.add(t)
            t.add_done_callback(self._inflight.discard)

            # Yield so the fire task starts before the next target is computed.
            await asyncio.sleep(0)

    async def _invoke(self, trig: DailyTrigger) -> None:
        try:
            await asyncio.to_thread(trig.callback)
        except Exception:
            logger.exception("Trigger callback failed name=%s", trig.name)
