"""rx-reminders: prescription-to-reminder scheduling pipeline."""

__version__ = "1.0.0"
