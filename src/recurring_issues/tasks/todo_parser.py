# src/recurring_issues/tasks/todo_parser.py

"""
Markdown checkbox parsing for issue bodies.

Only unchecked items ("- [ ] text", "* [ ] text", "+ [] text") count as todos.
Checked items ("[x]" / "[X]") and plain list lines are ignored.
"""

from __future__ import annotations

import re

MIGRATION_HEADING = "## Migrated from previous day"

_UNCHECKED_RE = re.compile(r"^[-*+]\s*\[\s*\]\s*(?P<text>.+)$")


def extract_unchecked(body: str | None) -> list[str]:
    if not body:
        return []

    todos: list[str] = []
    for line in body.splitlines():
        m = _UNCHECKED_RE.match(line.strip())
        if not m:
            continue
        text = m.group("text").strip()
        if text:
            todos.append(text)
    return todos


def has_unchecked(body: str | None) -> bool:
    return len(extract_unchecked(body)) > 0


def format_todo(text: str) -> str:
    return f"- [ ] {text}"


def format_migrated_todos(todos: list[str]) -> str:
    """Render the carry-forward section appended to a new issue body ("" when there is nothing to carry)."""
    if not todos:
        return ""
    lines = "\n".join(format_todo(t) for t in todos)
    return f"\n\n{MIGRATION_HEADING}\n{lines}"
