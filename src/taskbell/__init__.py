"""taskbell: recurring weekly task reminders with status tracking and alert history."""

__version__ = "0.1.0"
