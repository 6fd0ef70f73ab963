# src/recurring_issues/tracker/models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from .errors import TrackerResponseError


class ItemState(StrEnum):
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class TrackedItem:
    """
    One issue in the tracker, as seen at the moment it was fetched.

    Never cached by the core: every read is a fresh list call.
    """

    number: int
    title: str
    body: str
    labels: tuple[str, ...]
    state: ItemState

    @classmethod
    def from_api(cls, raw: Any) -> TrackedItem:
        """
        Validate a GitHub issue payload.

        Labels may come back either as plain strings or as {"name": ...} objects.
        A null body is normalized to "".
        """
        if not isinstance(raw, dict):
            raise TrackerResponseError(f"Expected issue object, got {type(raw).__name__}")

        number = raw.get("number")
        if not isinstance(number, int) or isinstance(number, bool):
            raise TrackerResponseError(f"Issue payload has no integer 'number': {number!r}")

        state_raw = raw.get("state")
        try:
            state = ItemState(str(state_raw).lower())
        except ValueError as e:
            raise TrackerResponseError(f"Issue #{number} has unknown state {state_raw!r}") from e

        labels: list[str] = []
        for label in raw.get("labels") or []:
            if isinstance(label, str):
                name = label
            elif isinstance(label, dict):
                name = str(label.get("name") or "")
            else:
                continue
            if name:
                labels.append(name)

        return cls(
            number=number,
            title=str(raw.get("title") or ""),
            body=str(raw.get("body") or ""),
            labels=tuple(labels),
            state=state,
        )
