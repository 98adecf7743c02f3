"""Infrastructure layer for rx-reminders: configuration, settings and logging."""
