"""Domain Ports - Abstract Contracts for the Reminder Pipeline.

This module defines the Port interfaces (abstract contracts) that Adapters must
implement. Following Hexagonal Architecture, the Domain Core defines what it
needs from the analysis provider, the notification scheduler and the
persistence store, not how they are provided.

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - Adapters (LLM provider, DuckDB store, in-memory scheduler) implement these ports
    - Failures that are part of normal operation cross ports as Result objects;
      exceptions are reserved for programming and infrastructure errors
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Generic, Optional, TypeVar, Union

from rxreminders.domain.enums import DoseStatus, Recurrence
from rxreminders.domain.models import (
    AnalysisResponse,
    ComplianceSummary,
    DoseEvent,
    MedicationEntry,
    NotificationContent,
    PersistedReminder,
    SourceRecord,
    TriggerSpec,
)

T = TypeVar('T')


# ============================================================================
# Result Type for Success/Failure Communication
# ============================================================================

@dataclass(frozen=True)
class Result(Generic[T]):
    """Result type for communicating success or failure without exceptions.

    Attributes:
        success: True if the operation succeeded, False otherwise
        value: The successful result value (only present if success=True)
        error: Error information (only present if success=False)
        error_type: Type of error (DraftNotFound, StorageError, etc.)
        error_details: Additional error context (source_record_id, draft_id, etc.)

    Example:
        ```python
        result = store.save_group("rec-1", entries)
        if result.is_success():
            persisted_ids = result.value
        else:
            logger.warning(result.error, extra={"details": result.error_details})
        ```
    """

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_details: Optional[dict] = None

    @classmethod
    def success_result(cls, value: T = None) -> 'Result[T]':
        """Create a successful result."""
        return cls(success=True, value=value)

    @classmethod
    def failure_result(
        cls,
        error: Union[str, Exception],
        error_type: Optional[str] = None,
        error_details: Optional[dict] = None
    ) -> 'Result[T]':
        """Create a failure result.

        Parameters:
            error: Error message or exception
            error_type: Type of error; defaults to the exception class name
            error_details: Additional context

        Returns:
            Result: Failure result with error information
        """
        error_message = str(error) if isinstance(error, Exception) else error
        error_type_name = error_type or (type(error).__name__ if isinstance(error, Exception) else "UnknownError")

        return cls(
            success=False,
            value=None,
            error=error_message,
            error_type=error_type_name,
            error_details=error_details or {}
        )

    def is_success(self) -> bool:
        """Check if result is successful."""
        return self.success

    def is_failure(self) -> bool:
        """Check if result is a failure."""
        return not self.success


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class ReminderPipelineError(Exception):
    """Base exception for all reminder pipeline errors."""
    pass


class AnalysisError(ReminderPipelineError):
    """Raised when analysis of a source record cannot be completed.

    Attributes:
        record_id: The record whose analysis failed
    """

    def __init__(self, message: str, record_id: Optional[str] = None):
        super().__init__(message)
        self.record_id = record_id


class ProviderResponseError(AnalysisError):
    """Raised when the analysis provider returns output that cannot be parsed.

    Attributes:
        record_id: The record whose analysis failed
        raw_response: The provider output (may be truncated)
    """

    def __init__(self, message: str, record_id: Optional[str] = None, raw_response: Optional[str] = None):
        super().__init__(message, record_id=record_id)
        self.raw_response = raw_response[:500] if raw_response else raw_response


class StorageError(ReminderPipelineError):
    """Raised when the persistence store fails.

    Attributes:
        operation: The storage operation that failed
        details: Additional error details
    """

    def __init__(self, message: str, operation: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.operation = operation
        self.details = details or {}


class SchedulingError(ReminderPipelineError):
    """Raised when the notification scheduler rejects a trigger.

    Attributes:
        trigger: The trigger that could not be scheduled
    """

    def __init__(self, message: str, trigger: Optional[TriggerSpec] = None):
        super().__init__(message)
        self.trigger = trigger


class InvalidTransitionError(ReminderPipelineError):
    """Raised when a workflow operation is not allowed in the current state.

    Attributes:
        current: State the workflow was in
        attempted: State the operation tried to move to
    """

    def __init__(self, current, attempted):
        super().__init__(f"Cannot move from {current.value!r} to {attempted.value!r}")
        self.current = current
        self.attempted = attempted


# ============================================================================
# Ports
# ============================================================================

class AnalysisProviderPort(ABC):
    """Abstract contract for AI-assisted analysis of a source record.

    The provider reads the full record (diagnosis, notes, prescriptions) and
    proposes reminders. Implementations should report failures through
    AnalysisResponse.failed(); the orchestrator also treats raised exceptions
    and timeouts as a failure for that record only.
    """

    @abstractmethod
    async def analyze(self, record: SourceRecord) -> AnalysisResponse:
        """Analyze one record and return reminder suggestions.

        Parameters:
            record: The record to analyze

        Returns:
            AnalysisResponse: success with suggestions, or failure with an error
        """
        pass


class NotificationSchedulerPort(ABC):
    """Abstract contract for the device notification scheduler.

    Delivery of a notification is the scheduler's concern; the pipeline only
    hands over trigger descriptors and content.
    """

    @abstractmethod
    def schedule(self, trigger: TriggerSpec, content: NotificationContent) -> str:
        """Schedule a notification.

        Returns:
            str: Handle that can be passed to cancel()

        Raises:
            SchedulingError: If the trigger cannot be scheduled
        """
        pass

    @abstractmethod
    def cancel(self, handle: str) -> None:
        """Cancel a scheduled notification. Unknown handles are ignored."""
        pass


class PersistenceStorePort(ABC):
    """Abstract contract for reminder persistence.

    Example Usage:
        ```python
        store = DuckDBReminderStore(db_path=":memory:")
        store.initialize_schema()
        result = store.save_group("rec-1", [entry])
        if result.is_success():
            print(result.value)  # allocated reminder ids
        ```
    """

    @abstractmethod
    def initialize_schema(self) -> Result[None]:
        """Create tables if they do not exist."""
        pass

    @abstractmethod
    def save_group(self, source_record_id: str, entries: list[MedicationEntry]) -> Result[list[str]]:
        """Persist all medication entries of one source record atomically.

        Parameters:
            source_record_id: Record the entries were generated from
            entries: One entry per medication

        Returns:
            Result[list[str]]: Allocated reminder ids in entry order, or failure
        """
        pass

    @abstractmethod
    def list_active(self) -> list[PersistedReminder]:
        """Return enabled reminders ordered by creation."""
        pass

    @abstractmethod
    def delete(self, reminder_id: str) -> Result[None]:
        """Delete a reminder. Unknown ids fail with error_type 'NotFound'."""
        pass

    @abstractmethod
    def set_enabled(self, reminder_id: str, enabled: bool) -> Result[PersistedReminder]:
        """Toggle a reminder on or off."""
        pass

    @abstractmethod
    def update_schedule(
        self,
        reminder_id: str,
        times: list[str],
        recurrence: Recurrence
    ) -> Result[PersistedReminder]:
        """Replace the scheduled times and recurrence of a reminder."""
        pass

    @abstractmethod
    def mark_fired(self, reminder_id: str, fired_at: Optional[datetime] = None) -> Result[None]:
        """Record that a reminder fired."""
        pass

    @abstractmethod
    def record_dose(
        self,
        reminder_id: str,
        status: DoseStatus,
        notes: Optional[str] = None,
        side_effects: Optional[str] = None
    ) -> Result[DoseEvent]:
        """Record a taken or skipped dose.

        Returns:
            Result[DoseEvent]: The stored event, or a 'NotFound' failure
        """
        pass

    @abstractmethod
    def dose_history(self, reminder_id: Optional[str] = None, limit: int = 50) -> list[DoseEvent]:
        """Return recorded doses, newest first, optionally for one reminder."""
        pass

    @abstractmethod
    def compliance(self) -> ComplianceSummary:
        """Return adherence totals across enabled reminders."""
        pass
