"""taskalert — scheduled task reminders delivered by email."""

__version__ = "0.1.0"
