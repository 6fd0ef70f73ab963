# src/recurring_issues/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The lifecycle and deadline code depends on Protocols instead of concrete implementations.
"""

from collections.abc import Sequence
from typing import Any, Protocol

from ..tracker.models import ItemState, TrackedItem


class TrackerClient(Protocol):
    """
    Issue tracker operations the core needs.

    Implementations must attach the managed label on list/create calls so that
    items created by people (or other tools) are never touched.
    """

    def get_authenticated_identity(self) -> str: ...

    def create_item(
            self,
            *,
            title: str,
            body: str,
            labels: Sequence[str],
            assignees: Sequence[str] = (),
    ) -> int: ...

    def close_item(self, number: int) -> None: ...
    def add_labels(self, number: int, labels: Sequence[str]) -> None: ...
    def remove_label(self, number: int, label: str) -> None: ...

    def list_items_by_labels(
            self,
            labels: Sequence[str],
            state: ItemState | str = ItemState.OPEN,
    ) -> list[TrackedItem]: ...

    # Startup helpers
    def label_exists(self, name: str) -> bool: ...
    def create_label(self, name: str, color: str) -> None: ...
    def ensure_label(self, name: str, color: str) -> bool: ...
    def board_exists(self, name: str) -> bool: ...
    def create_board(self, name: str) -> None: ...


class StateBackend(Protocol):
    """
    Raw persistence for the category state collection.

    load_raw returns the whole collection (None when nothing has been saved yet);
    save_raw replaces the whole collection atomically.
    """

    def load_raw(self) -> list[dict[str, Any]] | None: ...
    def save_raw(self, records: list[dict[str, Any]]) -> None: ...
