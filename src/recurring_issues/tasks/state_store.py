# src/recurring_issues/tasks/state_store.py

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Any

from ..core.ports import StateBackend
from ..schedule.models import ScheduleDefinition
from .state_models import CategoryState

logger = logging.getLogger(__name__)


class StateWriteError(RuntimeError):
    """Persisting the state collection failed; the caller's operation must not report success."""


class JsonFileStateBackend:
    """
    JSON file backend: a list of CategoryState dicts.

    Saves go to a sibling .tmp file and are moved into place with os.replace,
    so readers never observe a half-written collection.
    """

    def __init__(self, path: str | Path = "data/state.json") -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load_raw(self) -> list[dict[str, Any]] | None:
        if not self._path.exists():
            return None
        data = json.loads(self._path.read_text("utf-8"))
        if not isinstance(data, list):
            raise ValueError(f"state file must contain a JSON list, got {type(data).__name__}")
        return data

    def save_raw(self, records: list[dict[str, Any]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(records, ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, self._path)


class MemoryStateBackend:
    """In-process backend (tests, dry runs)."""

    def __init__(self, records: list[dict[str, Any]] | None = None) -> None:
        self._records = [dict(r) for r in records] if records is not None else None

    def load_raw(self) -> list[dict[str, Any]] | None:
        if self._records is None:
            return None
        return [dict(r) for r in self._records]

    def save_raw(self, records: list[dict[str, Any]]) -> None:
        self._records = [dict(r) for r in records]


class StateStore:
    """
    Idempotency bookkeeping: one CategoryState per schedule category.

    Failure policy:
    - load never raises: a missing, unreadable or corrupt backend yields [] and a warning
    - save always raises StateWriteError on failure

    Thread-safety:
    - read-modify-write cycles (update_category, sync_with_schedule) hold a lock,
      since trigger callbacks run in worker threads
    """

    def __init__(self, backend: StateBackend) -> None:
        self._backend = backend
        self._lock = threading.RLock()

    # ---- collection I/O ----

    def load(self) -> list[CategoryState]:
        try:
            raw = self._backend.load_raw()
        except Exception as e:
            logger.warning("State load failed, continuing with empty state: %s", e)
            return []

        if raw is None:
            logger.debug("State not found, returning empty state")
            return []

        out: list[CategoryState] = []
        for item in raw:
            if not isinstance(item, dict) or not item.get("category"):
                logger.warning("Skipping malformed state record: %r", item)
                continue
            out.append(CategoryState.from_dict(item))
        return out

    def save(self, states: list[CategoryState]) -> None:
        try:
            self._backend.save_raw([s.to_dict() for s in states])
        except Exception as e:
            logger.error("State save failed: %s", e)
            raise StateWriteError(f"Failed to save state: {e}") from e
        logger.debug("State saved records=%d", len(states))

    # ---- record access ----

    def get_by_category(self, category: str) -> CategoryState | None:
        for s in self.load():
            if s.category == category:
                return s
        return None

    def update_category(self, category: str, **changes: Any) -> CategoryState | None:
        """Merge `changes` into the record for `category`. Unknown category -> warning, no-op."""
        with self._lock:
            states = self.load()
            for i, s in enumerate(states):
                if s.category == category:
                    states[i] = replace(s, **changes)
                    self.save(states)
                    return states[i]

        logger.warning("Category not found in state category=%s", category)
        return None

    def mark_issue_created(self, category: str, day: date) -> None:
        self.update_category(category, last_created_date=day)

    def mark_deadline_processed(self, category: str, day: date) -> None:
        self.update_category(category, deadline_processed_date=day)

    def needs_issue_creation(self, category: str, day: date) -> bool:
        item = self.get_by_category(category)
        if item is None:
            return True
        return item.last_created_date != day

    def needs_deadline_processing(self, category: str, day: date) -> bool:
        item = self.get_by_category(category)
        if item is None:
            # Nothing was ever created for it, so there is nothing to close yet.
            return False
        return item.deadline_processed_date != day

    # ---- startup ----

    def sync_with_schedule(self, schedule: ScheduleDefinition) -> int:
        """
        Append records for categories the store has never seen.

        Stale categories (removed from the schedule) are kept; cleaning them up is a manual step.
        Returns the number of records added.
        """
        with self._lock:
            states = self.load()
            known = {s.category: i for i, s in enumerate(states)}
            added = 0
            changed = False

            for task in schedule.tasks:
                idx = known.get(task.category)
                if idx is None:
                    states.append(CategoryState(category=task.category, deadline=task.deadline_str))
                    added += 1
                    changed = True
                elif states[idx].deadline != task.deadline_str:
                    states[idx] = replace(states[idx], deadline=task.deadline_str)
                    changed = True

            if changed:
                self.save(states)

        stale = sorted(set(known) - set(schedule.categories))
        if stale:
            logger.info("State keeps categories no longer in schedule: %s", ", ".join(stale))
        if added:
            logger.info("State synced with schedule new_categories=%d", added)
        else:
            logger.info("State already initialized categories=%d", len(known))
        return added

