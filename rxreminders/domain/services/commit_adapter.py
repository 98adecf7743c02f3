"""Commit Adapter.

Turns the surviving drafts of a preview session into persisted, scheduled
reminders. Drafts are partitioned by source record, merged per medication,
and each record group is submitted separately:

    1. store.save_group(record_id, entries)      -> persisted ids
    2. scheduler.schedule(trigger, content)      for every (entry, time)

A group whose save or scheduling fails is rolled back on its own (issued
handles cancelled, persisted ids deleted) and reported in
CommitResult.failed_groups; the remaining groups are still attempted.
Groups already submitted cannot be withdrawn. Setting the cancel event stops
only the groups not yet submitted; they are reported in skipped_groups.

Architecture:
    - Depends only on PersistenceStorePort and NotificationSchedulerPort
    - Groups are submitted sequentially so each failure stays attributed
      to its own record
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Iterable, Optional

from rxreminders.domain.models import (
    CommitResult,
    FailedGroup,
    MedicationEntry,
    NotificationContent,
    ReminderDraft,
)
from rxreminders.domain.ports import NotificationSchedulerPort, PersistenceStorePort
from rxreminders.domain.services.grouping import build_commit_plan
from rxreminders.domain.services.trigger_mapper import to_trigger

logger = logging.getLogger(__name__)


def notification_content(entry: MedicationEntry, reminder_id: str, time_of_day: str) -> NotificationContent:
    """Notification title/body for one reminder time."""
    body = entry.dosage
    if entry.instructions:
        body = f"{body} - {entry.instructions}" if body else entry.instructions
    return NotificationContent(
        title=f"Time to take {entry.medication_name}",
        body=body,
        data={"reminder_id": reminder_id, "time_of_day": time_of_day},
    )


class CommitAdapter:
    """Persists and schedules drafts group by group.

    Parameters:
        store: Persistence store port
        scheduler: Notification scheduler port
        now: Clock used for one-shot triggers
    """

    def __init__(
        self,
        store: PersistenceStorePort,
        scheduler: NotificationSchedulerPort,
        now: Optional[Callable[[], datetime]] = None
    ):
        self.store = store
        self.scheduler = scheduler
        self.now = now or datetime.now

    def commit(
        self,
        drafts: Iterable[ReminderDraft],
        cancel_event: Optional[threading.Event] = None
    ) -> CommitResult:
        """Commit drafts.

        Parameters:
            drafts: Surviving drafts from the preview session
            cancel_event: When set, groups not yet submitted are skipped

        Returns:
            CommitResult: Persisted count and ids, failed and skipped groups
        """
        plan = build_commit_plan(drafts)
        result = CommitResult()

        for record_id, entries in plan.items():
            if cancel_event is not None and cancel_event.is_set():
                result.skipped_groups.append(record_id)
                continue

            failure = self._submit_group(record_id, entries, result)
            if failure is not None:
                result.failed_groups.append(failure)

        if result.skipped_groups:
            logger.warning(f"Commit cancelled; {len(result.skipped_groups)} record group(s) not submitted")
        logger.info(
            f"Commit finished: {result.persisted_count} reminder(s) persisted, "
            f"{len(result.failed_groups)} record group(s) failed"
        )
        return result

    def _submit_group(
        self,
        record_id: str,
        entries: list[MedicationEntry],
        result: CommitResult
    ) -> Optional[FailedGroup]:
        """Save and schedule one record group. Returns a FailedGroup on failure."""
        try:
            saved = self.store.save_group(record_id, entries)
        except Exception as e:
            logger.error(f"Persistence raised for record {record_id}: {e}")
            return FailedGroup(source_record_id=record_id, error=str(e), error_type=type(e).__name__)

        if saved.is_failure():
            logger.error(f"Persistence failed for record {record_id}: {saved.error}")
            return FailedGroup(source_record_id=record_id, error=saved.error, error_type=saved.error_type)

        persisted_ids = list(saved.value or [])
        if len(persisted_ids) != len(entries):
            self._rollback(persisted_ids, {})
            return FailedGroup(
                source_record_id=record_id,
                error=f"Store returned {len(persisted_ids)} id(s) for {len(entries)} medication(s)",
                error_type="StorageError",
            )

        handles: dict[str, list[str]] = {}
        try:
            for reminder_id, entry in zip(persisted_ids, entries):
                handles[reminder_id] = []
                for time_of_day in entry.times:
                    trigger = to_trigger(entry.recurrence, time_of_day, entry.anchor_date, now=self.now())
                    handle = self.scheduler.schedule(trigger, notification_content(entry, reminder_id, time_of_day))
                    handles[reminder_id].append(handle)
        except Exception as e:
            logger.error(f"Scheduling failed for record {record_id}: {e}")
            self._rollback(persisted_ids, handles)
            return FailedGroup(source_record_id=record_id, error=str(e), error_type=type(e).__name__)

        result.persisted_ids.extend(persisted_ids)
        result.persisted_count += len(persisted_ids)
        result.scheduled_handles.update(handles)
        return None

    def _rollback(self, persisted_ids: list[str], handles: dict[str, list[str]]) -> None:
        """Undo a partially submitted group. Rollback problems are logged, not raised."""
        for handle_list in handles.values():
            for handle in handle_list:
                try:
                    self.scheduler.cancel(handle)
                except Exception as e:
                    logger.warning(f"Failed to cancel notification {handle}: {e}")

        for reminder_id in persisted_ids:
            deleted = self.store.delete(reminder_id)
            if deleted.is_failure():
                logger.warning(f"Failed to roll back reminder {reminder_id}: {deleted.error}")
