"""Core interfaces (ports) shared by the task subsystem and its adapters."""
