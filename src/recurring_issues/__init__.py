"""Recurring GitHub issues: create them on schedule, close them at their deadline, carry unfinished todos forward."""

__version__ = "0.1.0"
