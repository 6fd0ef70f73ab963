# src/recurring_issues/cli/main.py

"""
CLI entrypoint.

Initializes logging, loads settings and schedule.yaml, runs the startup catch-up,
then keeps the daily triggers running until SIGINT/SIGTERM.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from pathlib import Path

from ..cli.bootstrap import Services, build_services, run_startup
from ..config import ConfigError, Settings, get_settings
from ..logging_setup import setup_logging
from ..schedule.loader import ScheduleError, load_schedule
from ..schedule.models import ScheduleDefinition
from ..tasks.deadline_processor import DeadlineProcessingError
from ..tasks.state_store import StateWriteError
from ..tasks.trigger_scheduler import TriggerScheduler
from ..tracker.errors import TrackerError

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="recurring-issues",
        description="Create recurring GitHub issues and close them at their deadlines.",
    )
    parser.add_argument("--schedule", type=Path, default=None, help="Path to schedule.yaml")
    parser.add_argument("--log-level", default=None, help="Console log level (default: from settings)")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run the startup catch-up (missed deadlines + today's issues) and exit",
    )
    return parser.parse_args(argv)


async def _serve(services: Services, schedule: ScheduleDefinition, assignee: str) -> None:
    scheduler = TriggerScheduler(services.processor, services.lifecycle)
    scheduler.start(schedule, assignee)

    loop = asyncio.get_running_loop()

    def _handle_signal(signum: int) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        scheduler.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _handle_signal, sig)
        except (NotImplementedError, RuntimeError):
            # Windows event loops do not support add_signal_handler.
            signal.signal(sig, lambda signum, _frame: loop.call_soon_threadsafe(_handle_signal, signum))

    for name, at in scheduler.describe():
        logger.info("Next run name=%s at=%s", name, at.isoformat())
    logger.info("Running. Press Ctrl+C to stop.")

    await scheduler.wait()


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings: Settings = get_settings()

    level_name = str(args.log_level or settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("%s starting", settings.app_name)

    services: Services | None = None
    try:
        schedule = load_schedule(args.schedule or settings.schedule_path)
        services = build_services(settings, schedule)
        assignee = run_startup(services, schedule)

        if args.once:
            logger.info("Catch-up complete (--once), exiting")
            return 0

        asyncio.run(_serve(services, schedule, assignee))
        return 0

    except ScheduleError as e:
        for problem in e.problems:
            logger.error("Schedule problem source=%s: %s", e.source, problem)
        return 1
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1
    except (TrackerError, StateWriteError, DeadlineProcessingError):
        logger.exception("Startup failed")
        return 1
    finally:
        close = getattr(services.tracker, "close", None) if services is not None else None
        if callable(close):
            close()
        logger.info("Shutdown complete")


if __name__ == "__main__":
    raise SystemExit(main())
