"""Domain layer for rx-reminders.

This module contains the reminder pipeline models and the ports the pipeline
needs from the outside world. All domain models are pure Python with no
external dependencies beyond Pydantic.
"""

from .enums import (
    AnalysisAdvisory,
    AnalysisStrategy,
    DoseStatus,
    Recurrence,
    TriggerKind,
    WorkflowState,
)
from .models import (
    AdvancedReminderSuggestion,
    AnalysisResponse,
    CommitResult,
    ComplianceSummary,
    DoseEvent,
    MedicationEntry,
    PersistedReminder,
    PrescriptionLine,
    ReminderDraft,
    SourceRecord,
    TriggerSpec,
)

__all__ = [
    "AnalysisAdvisory",
    "AnalysisStrategy",
    "DoseStatus",
    "Recurrence",
    "TriggerKind",
    "WorkflowState",
    "AdvancedReminderSuggestion",
    "AnalysisResponse",
    "CommitResult",
    "ComplianceSummary",
    "DoseEvent",
    "MedicationEntry",
    "PersistedReminder",
    "PrescriptionLine",
    "ReminderDraft",
    "SourceRecord",
    "TriggerSpec",
]
