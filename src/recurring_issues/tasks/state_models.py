# src/recurring_issues/tasks/state_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any


def _date_from_raw(raw: Any) -> date | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, date):
        return raw
    try:
        return date.fromisoformat(str(raw)[:10])
    except ValueError:
        return None


@dataclass(slots=True)
class CategoryState:
    """
    Per-category progress marker.

    Notes:
    - last_created_date is written only after the tracker accepted the new issue.
    - deadline_processed_date is written only after every open issue was closed.
    - deadline is a display copy of the schedule's HH:MM; the schedule stays authoritative.
    """

    category: str
    deadline: str
    last_created_date: date | None = None
    deadline_processed_date: date | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "deadline": self.deadline,
            "last_created_date": self.last_created_date.isoformat() if self.last_created_date else None,
            "deadline_processed_date": (
                self.deadline_processed_date.isoformat() if self.deadline_processed_date else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CategoryState:
        # camelCase keys are what older state.json files used.
        return cls(
            category=str(data["category"]),
            deadline=str(data.get("deadline") or ""),
            last_created_date=_date_from_raw(data.get("last_created_date", data.get("lastCreatedDate"))),
            deadline_processed_date=_date_from_raw(
                data.get("deadline_processed_date", data.get("deadlineProcessedDate"))
            ),
        )
