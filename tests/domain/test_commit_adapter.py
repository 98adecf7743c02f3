"""Unit tests for CommitAdapter."""

import threading
from unittest.mock import Mock

from conftest import NOW, make_draft
from rxreminders.domain.enums import Recurrence, TriggerKind
from rxreminders.domain.models import MedicationEntry
from rxreminders.domain.ports import Result, SchedulingError, StorageError
from rxreminders.domain.services.commit_adapter import CommitAdapter, notification_content


class FailingForRecordStore:
    """Delegates to a real store but fails save_group for one record."""

    def __init__(self, store, failing_record_id: str, raise_error: bool = False):
        self._store = store
        self.failing_record_id = failing_record_id
        self.raise_error = raise_error

    def save_group(self, source_record_id, entries):
        if source_record_id == self.failing_record_id:
            if self.raise_error:
                raise StorageError("disk full", operation="save_group")
            return Result.failure_result("disk full", error_type="StorageError")
        return self._store.save_group(source_record_id, entries)

    def __getattr__(self, name):
        return getattr(self._store, name)


class TestNotificationContent:
    """Test suite for notification_content()."""

    def test_title_and_body(self):
        entry = MedicationEntry(
            medication_name="Amoxicillin",
            dosage="500mg",
            instructions="after meals",
            times=["08:00"],
            anchor_date=NOW.date(),
        )

        content = notification_content(entry, "rem-1", "08:00")

        assert content.title == "Time to take Amoxicillin"
        assert content.body == "500mg - after meals"
        assert content.data == {"reminder_id": "rem-1", "time_of_day": "08:00"}


class TestCommitAdapter:
    """Test suite for CommitAdapter."""

    def test_commit_persists_one_reminder_per_group(self, store, scheduler):
        """Test that two drafts of one medication become one reminder with both times."""
        adapter = CommitAdapter(store, scheduler, now=lambda: NOW)

        result = adapter.commit([
            make_draft("rec-1", "Amoxicillin", "08:00"),
            make_draft("rec-1", "Amoxicillin", "20:00"),
            make_draft("rec-2", "Metformin", "08:00"),
        ])

        assert result.is_complete
        assert result.persisted_count == 2
        reminders = store.list_active()
        assert [(r.medication_name, r.times) for r in reminders] == [
            ("Amoxicillin", ["08:00", "20:00"]),
            ("Metformin", ["08:00"]),
        ]
        assert [r.id for r in reminders] == result.persisted_ids

    def test_one_trigger_per_time(self, store, scheduler):
        adapter = CommitAdapter(store, scheduler, now=lambda: NOW)

        result = adapter.commit([
            make_draft("rec-1", "Amoxicillin", "08:00", recurrence=Recurrence.WEEKLY),
            make_draft("rec-1", "Amoxicillin", "20:00", recurrence=Recurrence.WEEKLY),
        ])

        reminder_id = result.persisted_ids[0]
        assert len(result.scheduled_handles[reminder_id]) == 2
        pending = scheduler.pending()
        assert [p.trigger.kind for p in pending] == [TriggerKind.WEEKLY, TriggerKind.WEEKLY]
        assert [(p.trigger.hour, p.trigger.weekday) for p in pending] == [(8, 1), (20, 1)]

    def test_edited_time_is_persisted(self, store, scheduler):
        """Test that an edited time replaces the original one."""
        edited = make_draft("rec-1", "Amoxicillin", "08:00").model_copy(
            update={"time_of_day": "09:30", "edit_sequence": 1}
        )

        CommitAdapter(store, scheduler, now=lambda: NOW).commit([edited])

        times = store.list_active()[0].times
        assert "09:30" in times
        assert "08:00" not in times

    def test_failed_group_does_not_block_siblings(self, store, scheduler):
        """Test that exactly the failing record group is reported."""
        failing_store = FailingForRecordStore(store, "rec-2")
        adapter = CommitAdapter(failing_store, scheduler, now=lambda: NOW)

        result = adapter.commit([
            make_draft("rec-1", "Amoxicillin", "08:00"),
            make_draft("rec-2", "Metformin", "08:00"),
            make_draft("rec-3", "Aspirin", "08:00"),
        ])

        assert result.failed_record_ids == ["rec-2"]
        assert result.failed_groups[0].error_type == "StorageError"
        assert result.persisted_count == 2
        assert {r.source_record_id for r in store.list_active()} == {"rec-1", "rec-3"}
        assert not result.is_complete

    def test_store_exception_is_recorded(self, store, scheduler):
        failing_store = FailingForRecordStore(store, "rec-1", raise_error=True)
        adapter = CommitAdapter(failing_store, scheduler, now=lambda: NOW)

        result = adapter.commit([make_draft("rec-1", "Amoxicillin", "08:00")])

        assert result.failed_record_ids == ["rec-1"]
        assert result.failed_groups[0].error_type == "StorageError"
        assert result.persisted_count == 0

    def test_scheduling_failure_rolls_back_group(self, store):
        """Test that a scheduling failure removes the group's reminders and handles."""
        scheduler = Mock()
        scheduler.schedule.side_effect = ["handle-1", SchedulingError("limit reached")]
        adapter = CommitAdapter(store, scheduler, now=lambda: NOW)

        result = adapter.commit([
            make_draft("rec-1", "Amoxicillin", "08:00"),
            make_draft("rec-1", "Amoxicillin", "20:00"),
        ])

        assert result.failed_record_ids == ["rec-1"]
        assert result.failed_groups[0].error_type == "SchedulingError"
        scheduler.cancel.assert_called_once_with("handle-1")
        assert store.list_active() == []

    def test_id_count_mismatch_is_a_failure(self, scheduler):
        store = Mock()
        store.save_group.return_value = Result.success_result(["only-one"])
        store.delete.return_value = Result.success_result(None)
        adapter = CommitAdapter(store, scheduler, now=lambda: NOW)

        result = adapter.commit([
            make_draft("rec-1", "Amoxicillin", "08:00"),
            make_draft("rec-1", "Metformin", "08:00"),
        ])

        assert result.failed_record_ids == ["rec-1"]
        store.delete.assert_called_once_with("only-one")
        assert len(scheduler) == 0

    def test_cancel_skips_remaining_groups(self, store, scheduler):
        """Test that cancellation stops only groups not yet submitted."""
        cancel = threading.Event()

        class CancelAfterFirstStore(FailingForRecordStore):
            def save_group(self, source_record_id, entries):
                saved = super().save_group(source_record_id, entries)
                cancel.set()
                return saved

        adapter = CommitAdapter(CancelAfterFirstStore(store, failing_record_id=""), scheduler, now=lambda: NOW)

        result = adapter.commit([
            make_draft("rec-1", "Amoxicillin", "08:00"),
            make_draft("rec-2", "Metformin", "08:00"),
            make_draft("rec-3", "Aspirin", "08:00"),
        ], cancel_event=cancel)

        assert result.persisted_count == 1
        assert result.skipped_groups == ["rec-2", "rec-3"]
        assert not result.is_complete

    def test_deleted_draft_is_never_persisted(self, store, scheduler):
        drafts = [
            make_draft("rec-1", "Amoxicillin", "08:00"),
            make_draft("rec-1", "Amoxicillin", "20:00"),
        ]
        surviving = [d for d in drafts if d.id != "rec-1_Amoxicillin_20:00"]

        CommitAdapter(store, scheduler, now=lambda: NOW).commit(surviving)

        assert store.list_active()[0].times == ["08:00"]

    def test_empty_commit(self, store, scheduler):
        result = CommitAdapter(store, scheduler).commit([])

        assert result.persisted_count == 0
        assert result.is_complete
