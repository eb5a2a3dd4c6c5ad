"""Chat-driven personal task tracker with timed reminders."""

__version__ = "0.1.0"
