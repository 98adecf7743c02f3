"""Notification scheduler adapters."""

from rxreminders.adapters.scheduling.in_memory_scheduler import (
    InMemoryNotificationScheduler,
    ScheduledNotification,
)

__all__ = ["InMemoryNotificationScheduler", "ScheduledNotification"]
