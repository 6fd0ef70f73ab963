"""
Schedule definition.

Components:
- models.py: TaskSpec / Recurrence / ScheduleDefinition (read-only for a run)
- loader.py: schedule.yaml parsing and validation (ScheduleError)
"""
