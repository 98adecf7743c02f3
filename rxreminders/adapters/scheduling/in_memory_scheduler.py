"""In-Memory Notification Scheduler.

Reference implementation of NotificationSchedulerPort. It records each
trigger and its content under a generated handle and logs it; delivering the
notification is left to the device scheduler this adapter stands in for.
"""

import logging
import uuid
from dataclasses import dataclass
from threading import Lock
from typing import Optional

from rxreminders.domain.enums import TriggerKind
from rxreminders.domain.models import NotificationContent, TriggerSpec
from rxreminders.domain.ports import NotificationSchedulerPort, SchedulingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduledNotification:
    handle: str
    trigger: TriggerSpec
    content: NotificationContent


class InMemoryNotificationScheduler(NotificationSchedulerPort):
    """Keeps scheduled notifications in a dict keyed by handle.

    Parameters:
        max_pending: Refuse new triggers beyond this many (None = unlimited),
            mirroring the pending-notification cap of mobile schedulers
    """

    def __init__(self, max_pending: Optional[int] = None):
        self.max_pending = max_pending
        self._scheduled: dict[str, ScheduledNotification] = {}
        self._lock = Lock()

    def schedule(self, trigger: TriggerSpec, content: NotificationContent) -> str:
        if trigger.kind == TriggerKind.TIME_INTERVAL and not trigger.seconds:
            raise SchedulingError("One-shot trigger needs a positive delay", trigger=trigger)

        with self._lock:
            if self.max_pending is not None and len(self._scheduled) >= self.max_pending:
                raise SchedulingError(
                    f"Pending notification limit reached ({self.max_pending})",
                    trigger=trigger
                )
            handle = str(uuid.uuid4())
            self._scheduled[handle] = ScheduledNotification(handle=handle, trigger=trigger, content=content)

        logger.debug(f"Scheduled {trigger.kind.value} notification {handle}")
        return handle

    def cancel(self, handle: str) -> None:
        with self._lock:
            removed = self._scheduled.pop(handle, None)
        if removed is not None:
            logger.debug(f"Cancelled notification {handle}")

    def cancel_all(self) -> None:
        with self._lock:
            self._scheduled.clear()

    def pending(self) -> list[ScheduledNotification]:
        """Scheduled notifications in scheduling order."""
        with self._lock:
            return list(self._scheduled.values())

    def __len__(self) -> int:
        return len(self._scheduled)
