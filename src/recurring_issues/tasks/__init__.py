"""
Task lifecycle subsystem.

Components:
- recurrence.py: is a task due on a given date
- todo_parser.py: unchecked checkbox extraction / migration section rendering
- state_models.py, state_store.py: per-category idempotency state (JSON file backend)
- issue_lifecycle.py: daily creation with carry-forward of unresolved todos
- deadline_processor.py: closes issues at their deadline, marks unresolved ones
- trigger_scheduler.py: asyncio daily triggers driving the two processors
"""
