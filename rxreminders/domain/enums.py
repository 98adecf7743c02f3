"""Domain Enumerations.

String-valued enums shared by the reminder pipeline models and services.
"""

from enum import Enum


class Recurrence(str, Enum):
    """Repetition policy of a reminder."""
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class AnalysisStrategy(str, Enum):
    """Method used to derive reminders from a source record.

    BASIC parses the prescription frequency text deterministically.
    ADVANCED asks the external analysis provider to read the whole record.
    """
    BASIC = "basic"
    ADVANCED = "advanced"


class TriggerKind(str, Enum):
    """Shape of a scheduler trigger."""
    TIME_INTERVAL = "time_interval"
    DAILY = "daily"
    WEEKLY = "weekly"
    CALENDAR = "calendar"


class WorkflowState(str, Enum):
    """States of one generate/preview/edit/commit session."""
    IDLE = "idle"
    GENERATING = "generating"
    PREVIEWING = "previewing"
    EDITING = "editing"
    COMMITTING = "committing"
    DONE = "done"
    CANCELLED = "cancelled"


class AnalysisAdvisory(str, Enum):
    """Batch-level advisories raised by the analysis orchestrator.

    Advisories are informational; they never abort generation.
    """
    FULL_FALLBACK = "full_fallback"
    NO_PRESCRIPTIONS = "no_prescriptions"


class DoseStatus(str, Enum):
    """Outcome recorded for one scheduled dose."""
    TAKEN = "taken"
    SKIPPED = "skipped"
