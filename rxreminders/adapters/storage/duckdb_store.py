"""DuckDB Reminder Store.

This adapter implements the PersistenceStorePort contract on DuckDB, an
in-process database that works equally well as a file on the device or
in memory for tests.

Architecture:
    - Implements PersistenceStorePort (Hexagonal Architecture)
    - One transaction per record group: a group is saved completely or not at all
    - Times of day are stored as a JSON array in a VARCHAR column
    - Every write is appended to an audit_log table
    - Taken and skipped doses go to medication_history; compliance is
      aggregated from it over enabled reminders
"""

import json
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

import duckdb
import pandas as pd

from rxreminders.domain.enums import DoseStatus, Recurrence
from rxreminders.domain.models import (
    ComplianceSummary,
    DoseEvent,
    MedicationEntry,
    PersistedReminder,
    parse_time_of_day,
)
from rxreminders.domain.ports import PersistenceStorePort, Result, StorageError
from rxreminders.infrastructure.config_manager import StorageConfig

logger = logging.getLogger(__name__)

_COLUMNS = (
    "reminder_id, source_record_id, medication_name, dosage, frequency_text, "
    "instructions, notes, times, recurrence, anchor_date, analysis_strategy, "
    "enabled, last_fired_at, created_at"
)


class DuckDBReminderStore(PersistenceStorePort):
    """DuckDB implementation of PersistenceStorePort.

    Parameters:
        storage_config: StorageConfig from the configuration manager (preferred)
        db_path: Path to DuckDB database file (or ':memory:' for in-memory)

    Example Usage:
        ```python
        store = DuckDBReminderStore(db_path=":memory:")
        store.initialize_schema()
        result = store.save_group("rec-1", entries)
        for reminder in store.list_active():
            print(reminder.medication_name, reminder.times)
        ```
    """

    def __init__(self, storage_config: Optional[StorageConfig] = None, db_path: Optional[str] = None):
        if storage_config:
            self.db_path = storage_config.db_path
        else:
            self.db_path = db_path or ":memory:"

        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._initialized = False

        if self.db_path != ":memory:":
            db_path_obj = Path(self.db_path)
            if not db_path_obj.parent.exists():
                raise StorageError(
                    f"Database directory does not exist: {db_path_obj.parent}",
                    operation="__init__"
                )

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        """Get or create the DuckDB connection."""
        if self._connection is None:
            try:
                self._connection = duckdb.connect(self.db_path)
                logger.info(f"Connected to DuckDB database: {self.db_path}")
            except Exception as e:
                raise StorageError(
                    f"Failed to connect to DuckDB: {str(e)}",
                    operation="connect",
                    details={"db_path": self.db_path}
                )
        return self._connection

    def _ensure_schema(self) -> Optional[Result]:
        if not self._initialized:
            init_result = self.initialize_schema()
            if not init_result.is_success():
                return init_result
        return None

    def initialize_schema(self) -> Result[None]:
        """Create the medication_reminders, medication_history and audit_log tables."""
        try:
            conn = self._get_connection()

            conn.execute("CREATE SEQUENCE IF NOT EXISTS reminder_position_seq")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS medication_reminders (
                    reminder_id VARCHAR PRIMARY KEY,
                    position BIGINT DEFAULT nextval('reminder_position_seq'),
                    source_record_id VARCHAR NOT NULL,
                    medication_name VARCHAR NOT NULL,
                    dosage VARCHAR,
                    frequency_text VARCHAR,
                    instructions VARCHAR,
                    notes VARCHAR,
                    times VARCHAR NOT NULL,
                    recurrence VARCHAR NOT NULL,
                    anchor_date DATE NOT NULL,
                    analysis_strategy VARCHAR NOT NULL,
                    enabled BOOLEAN NOT NULL DEFAULT TRUE,
                    last_fired_at TIMESTAMP,
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS audit_log (
                    audit_id VARCHAR PRIMARY KEY,
                    event_type VARCHAR NOT NULL,
                    event_timestamp TIMESTAMP NOT NULL,
                    reminder_id VARCHAR,
                    source_record_id VARCHAR,
                    details VARCHAR
                )
            """)
            conn.execute("CREATE SEQUENCE IF NOT EXISTS dose_position_seq")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS medication_history (
                    event_id VARCHAR PRIMARY KEY,
                    position BIGINT DEFAULT nextval('dose_position_seq'),
                    reminder_id VARCHAR NOT NULL,
                    status VARCHAR NOT NULL,
                    recorded_at TIMESTAMP NOT NULL,
                    notes VARCHAR,
                    side_effects VARCHAR
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_reminders_record ON medication_reminders(source_record_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_history_reminder ON medication_history(reminder_id)"
            )

            self._initialized = True
            logger.info("Reminder schema initialized successfully")
            return Result.success_result(None)

        except Exception as e:
            error_msg = f"Failed to initialize schema: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return Result.failure_result(
                StorageError(error_msg, operation="initialize_schema"),
                error_type="StorageError"
            )

    def save_group(self, source_record_id: str, entries: list[MedicationEntry]) -> Result[list[str]]:
        """Persist one record group in a single transaction.

        Parameters:
            source_record_id: Record the entries were generated from
            entries: One entry per medication

        Returns:
            Result[list[str]]: Allocated reminder ids in entry order, or error
        """
        try:
            init_failure = self._ensure_schema()
            if init_failure is not None:
                return init_failure

            conn = self._get_connection()
            now = datetime.now()
            reminder_ids = []

            conn.begin()
            try:
                for entry in entries:
                    reminder_id = str(uuid.uuid4())
                    conn.execute("""
                        INSERT INTO medication_reminders (
                            reminder_id, source_record_id, medication_name, dosage, frequency_text,
                            instructions, notes, times, recurrence, anchor_date, analysis_strategy,
                            enabled, last_fired_at, created_at, updated_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, TRUE, NULL, ?, ?)
                    """, [
                        reminder_id,
                        source_record_id,
                        entry.medication_name,
                        entry.dosage,
                        entry.frequency_text,
                        entry.instructions,
                        entry.notes,
                        json.dumps(entry.times),
                        entry.recurrence.value,
                        entry.anchor_date,
                        entry.analysis_strategy.value,
                        now,
                        now,
                    ])
                    reminder_ids.append(reminder_id)

                self._log_audit_event(
                    conn,
                    "SAVE_GROUP",
                    source_record_id=source_record_id,
                    details={"reminder_count": len(reminder_ids)}
                )
                conn.commit()
            except Exception:
                conn.rollback()
                raise

            logger.info(f"Persisted {len(reminder_ids)} reminder(s) for record {source_record_id}")
            return Result.success_result(reminder_ids)

        except Exception as e:
            error_msg = f"Failed to save reminders: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return Result.failure_result(
                StorageError(error_msg, operation="save_group", details={"source_record_id": source_record_id}),
                error_type="StorageError",
                error_details={"source_record_id": source_record_id}
            )

    def get(self, reminder_id: str) -> Optional[PersistedReminder]:
        """Fetch one reminder by id (enabled or not)."""
        if self._ensure_schema() is not None:
            return None
        row = self._get_connection().execute(
            f"SELECT {_COLUMNS} FROM medication_reminders WHERE reminder_id = ?",
            [reminder_id]
        ).fetchone()
        return self._row_to_reminder(row) if row else None

    def list_active(self) -> list[PersistedReminder]:
        """Return enabled reminders in creation order."""
        init_failure = self._ensure_schema()
        if init_failure is not None:
            raise StorageError(init_failure.error, operation="list_active")

        rows = self._get_connection().execute(
            f"SELECT {_COLUMNS} FROM medication_reminders WHERE enabled ORDER BY position"
        ).fetchall()
        return [self._row_to_reminder(row) for row in rows]

    def reminders_dataframe(self, active_only: bool = True) -> pd.DataFrame:
        """Return reminders as a DataFrame (for export and reporting)."""
        init_failure = self._ensure_schema()
        if init_failure is not None:
            raise StorageError(init_failure.error, operation="reminders_dataframe")

        where = "WHERE enabled" if active_only else ""
        return self._get_connection().execute(
            f"SELECT {_COLUMNS} FROM medication_reminders {where} ORDER BY position"
        ).fetchdf()

    def delete(self, reminder_id: str) -> Result[None]:
        """Delete a reminder."""
        return self._mutate(
            reminder_id,
            "DELETE",
            "DELETE FROM medication_reminders WHERE reminder_id = ?",
            [reminder_id],
        )

    def set_enabled(self, reminder_id: str, enabled: bool) -> Result[PersistedReminder]:
        """Toggle a reminder on or off."""
        result = self._mutate(
            reminder_id,
            "ENABLE" if enabled else "DISABLE",
            "UPDATE medication_reminders SET enabled = ?, updated_at = ? WHERE reminder_id = ?",
            [enabled, datetime.now(), reminder_id],
        )
        return self._with_reminder(result, reminder_id)

    def update_schedule(
        self,
        reminder_id: str,
        times: list[str],
        recurrence: Recurrence
    ) -> Result[PersistedReminder]:
        """Replace the times of day and recurrence of a reminder."""
        try:
            normalized = sorted({parse_time_of_day(t) for t in times})
            recurrence = Recurrence(recurrence)
        except ValueError as e:
            return Result.failure_result(e, error_type="ValidationError")
        if not normalized:
            return Result.failure_result("A reminder needs at least one time of day", error_type="ValidationError")

        result = self._mutate(
            reminder_id,
            "UPDATE_SCHEDULE",
            "UPDATE medication_reminders SET times = ?, recurrence = ?, updated_at = ? WHERE reminder_id = ?",
            [json.dumps(normalized), recurrence.value, datetime.now(), reminder_id],
        )
        return self._with_reminder(result, reminder_id)

    def mark_fired(self, reminder_id: str, fired_at: Optional[datetime] = None) -> Result[None]:
        """Record that a reminder fired."""
        return self._mutate(
            reminder_id,
            "FIRED",
            "UPDATE medication_reminders SET last_fired_at = ? WHERE reminder_id = ?",
            [fired_at or datetime.now(), reminder_id],
        )

    def record_dose(
        self,
        reminder_id: str,
        status: DoseStatus,
        notes: Optional[str] = None,
        side_effects: Optional[str] = None
    ) -> Result[DoseEvent]:
        """Append a taken or skipped dose to the reminder's history.

        Parameters:
            reminder_id: Reminder the dose belongs to
            status: DoseStatus.TAKEN or DoseStatus.SKIPPED
            notes: Note or skip reason
            side_effects: Side effects reported with a taken dose

        Returns:
            Result[DoseEvent]: The stored event, or a 'NotFound' failure
        """
        event = DoseEvent(
            id=str(uuid.uuid4()),
            reminder_id=reminder_id,
            status=DoseStatus(status),
            recorded_at=datetime.now(),
            notes=notes,
            side_effects=side_effects,
        )
        result = self._mutate(
            reminder_id,
            f"DOSE_{event.status.value.upper()}",
            """
                INSERT INTO medication_history (event_id, reminder_id, status, recorded_at, notes, side_effects)
                VALUES (?, ?, ?, ?, ?, ?)
            """,
            [event.id, reminder_id, event.status.value, event.recorded_at, notes, side_effects],
        )
        if result.is_failure():
            return result
        return Result.success_result(event)

    def dose_history(self, reminder_id: Optional[str] = None, limit: int = 50) -> list[DoseEvent]:
        """Return recorded doses, newest first."""
        init_failure = self._ensure_schema()
        if init_failure is not None:
            raise StorageError(init_failure.error, operation="dose_history")

        where = "WHERE reminder_id = ?" if reminder_id else ""
        params = [reminder_id] if reminder_id else []
        rows = self._get_connection().execute(
            f"""
                SELECT event_id, reminder_id, status, recorded_at, notes, side_effects
                FROM medication_history {where}
                ORDER BY position DESC
                LIMIT ?
            """,
            params + [max(0, limit)]
        ).fetchall()
        return [
            DoseEvent(
                id=event_id,
                reminder_id=row_reminder_id,
                status=status,
                recorded_at=recorded_at,
                notes=notes,
                side_effects=side_effects,
            )
            for event_id, row_reminder_id, status, recorded_at, notes, side_effects in rows
        ]

    def compliance(self) -> ComplianceSummary:
        """Aggregate taken and skipped doses of enabled reminders."""
        init_failure = self._ensure_schema()
        if init_failure is not None:
            raise StorageError(init_failure.error, operation="compliance")

        completed, missed = self._get_connection().execute("""
            SELECT
                count(*) FILTER (WHERE h.status = 'taken'),
                count(*) FILTER (WHERE h.status = 'skipped')
            FROM medication_history h
            JOIN medication_reminders r ON r.reminder_id = h.reminder_id
            WHERE r.enabled
        """).fetchone()
        return ComplianceSummary.from_counts(completed=completed, missed=missed)

    def _mutate(self, reminder_id: str, event_type: str, sql: str, params: list) -> Result[None]:
        """Run one statement against an existing reminder inside a transaction."""
        try:
            init_failure = self._ensure_schema()
            if init_failure is not None:
                return init_failure

            conn = self._get_connection()
            exists = conn.execute(
                "SELECT source_record_id FROM medication_reminders WHERE reminder_id = ?",
                [reminder_id]
            ).fetchone()
            if exists is None:
                return Result.failure_result(
                    f"Reminder not found: {reminder_id}",
                    error_type="NotFound",
                    error_details={"reminder_id": reminder_id}
                )

            conn.begin()
            try:
                conn.execute(sql, params)
                self._log_audit_event(conn, event_type, reminder_id=reminder_id, source_record_id=exists[0])
                conn.commit()
            except Exception:
                conn.rollback()
                raise

            return Result.success_result(None)

        except Exception as e:
            error_msg = f"Failed to {event_type.lower()} reminder: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return Result.failure_result(
                StorageError(error_msg, operation=event_type.lower(), details={"reminder_id": reminder_id}),
                error_type="StorageError"
            )

    def _with_reminder(self, result: Result[None], reminder_id: str) -> Result[PersistedReminder]:
        if result.is_failure():
            return result
        return Result.success_result(self.get(reminder_id))

    def _log_audit_event(
        self,
        conn: duckdb.DuckDBPyConnection,
        event_type: str,
        reminder_id: Optional[str] = None,
        source_record_id: Optional[str] = None,
        details: Optional[dict] = None
    ) -> None:
        conn.execute("""
            INSERT INTO audit_log (audit_id, event_type, event_timestamp, reminder_id, source_record_id, details)
            VALUES (?, ?, ?, ?, ?, ?)
        """, [
            str(uuid.uuid4()),
            event_type,
            datetime.now(),
            reminder_id,
            source_record_id,
            json.dumps(details) if details else None,
        ])

    @staticmethod
    def _row_to_reminder(row: tuple) -> PersistedReminder:
        (reminder_id, source_record_id, medication_name, dosage, frequency_text,
         instructions, notes, times, recurrence, anchor_date, analysis_strategy,
         enabled, last_fired_at, created_at) = row
        return PersistedReminder(
            id=reminder_id,
            source_record_id=source_record_id,
            medication_name=medication_name,
            dosage=dosage or "",
            frequency_text=frequency_text or "",
            instructions=instructions or "",
            notes=notes,
            times=json.loads(times),
            recurrence=recurrence,
            anchor_date=anchor_date,
            analysis_strategy=analysis_strategy,
            enabled=enabled,
            last_fired_at=last_fired_at,
            created_at=created_at,
        )

    def close(self) -> None:
        """Close storage connection and release resources."""
        if self._connection is not None:
            try:
                self._connection.close()
                self._connection = None
                logger.info("Closed DuckDB connection")
            except Exception as e:
                logger.warning(f"Error closing connection: {str(e)}")
