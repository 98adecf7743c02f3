"""Reminder Pipeline Domain Models.

This module defines the canonical data models that flow through the
prescription-to-reminder pipeline: the read-only source records handed in by
the presentation layer, the staged drafts a user reviews, the commit-time
requests sent to persistence, and the trigger descriptors handed to the
notification scheduler.

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Drafts and triggers are immutable; the session replaces them on edit
    - Time-of-day values are validated and normalized to 24-hour HH:MM
"""

import re
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rxreminders.domain.enums import AnalysisStrategy, DoseStatus, Recurrence, TriggerKind

DEFAULT_DIRECTIONS = "As directed by physician"

_TIME_OF_DAY_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def parse_time_of_day(value: str) -> str:
    """Normalize a time-of-day string to zero-padded 24-hour HH:MM.

    Parameters:
        value: Time string such as "8:00" or "20:30"

    Returns:
        Normalized "HH:MM" string

    Raises:
        ValueError: If the value is not a valid 24-hour time
    """
    if not isinstance(value, str):
        raise ValueError(f"Time of day must be a string. Got: {value!r}")

    match = _TIME_OF_DAY_PATTERN.match(value)
    if not match:
        raise ValueError(f"Time of day must use HH:MM format. Got: {value!r}")

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"Time of day out of range. Got: {value!r}")

    return f"{hour:02d}:{minute:02d}"


def split_time_of_day(value: str) -> tuple[int, int]:
    """Return (hour, minute) for a validated HH:MM string."""
    hour, minute = parse_time_of_day(value).split(":")
    return int(hour), int(minute)


# ============================================================================
# Source records (read-only input)
# ============================================================================

class PrescriptionLine(BaseModel):
    """One medication line of a prescription.

    Parameters:
        drug_name: Medication name as written on the prescription
        dosage_text: Free-text dose (e.g. "1 tablet", "500mg")
        frequency_text: Free-text dose count per day (e.g. "twice daily")
        usage_instructions: How to take the medication (e.g. "after meals")
        note: Additional physician note for this line
    """

    model_config = ConfigDict(frozen=True)

    drug_name: str = Field(..., min_length=1, description="Medication name")
    dosage_text: str = Field(default="", description="Free-text dose")
    frequency_text: str = Field(default="", description="Free-text frequency")
    usage_instructions: Optional[str] = Field(None, description="Usage instructions")
    note: Optional[str] = Field(None, description="Physician note for this line")


class SourceRecord(BaseModel):
    """A medical visit record with its prescription.

    Records are owned by the external record store; the pipeline only reads them.

    Parameters:
        id: Record identifier
        hospital: Hospital name
        clinician_name: Attending clinician name
        visit_date: Date of the visit
        admission_diagnosis: Diagnosis at admission
        discharge_diagnosis: Diagnosis at discharge
        treatment_method: Treatment applied
        treatment_outcome: Treatment result
        physician_notes: Free-text advice from the physician
        notes: Other notes on the record
        prescriptions: Prescription lines
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Record identifier")
    hospital: Optional[str] = Field(None, description="Hospital name")
    clinician_name: Optional[str] = Field(None, description="Attending clinician")
    visit_date: Optional[date] = Field(None, description="Visit date")
    admission_diagnosis: Optional[str] = Field(None, description="Diagnosis at admission")
    discharge_diagnosis: Optional[str] = Field(None, description="Diagnosis at discharge")
    treatment_method: Optional[str] = Field(None, description="Treatment method")
    treatment_outcome: Optional[str] = Field(None, description="Treatment outcome")
    physician_notes: Optional[str] = Field(None, description="Physician advice")
    notes: Optional[str] = Field(None, description="Other notes")
    prescriptions: list[PrescriptionLine] = Field(
        default_factory=list,
        description="Prescription lines"
    )

    @property
    def diagnosis(self) -> Optional[str]:
        """Discharge diagnosis when present, otherwise the admission diagnosis."""
        return self.discharge_diagnosis or self.admission_diagnosis


# ============================================================================
# Analysis provider contract
# ============================================================================

class AdvancedReminderSuggestion(BaseModel):
    """One reminder proposed by the analysis provider.

    Parameters:
        medication_name: Medication (or health task) the reminder is for
        dosage: Dose to take
        frequency: Frequency text as the provider phrased it
        instructions: Usage instructions
        time: Suggested time of day (HH:MM)
        notes: Provider notes about this medication
        recommendations: Provider recommendations (interactions, cautions)
        recurrence: Explicit recurrence, when the provider supplies one
    """

    medication_name: str = Field(..., min_length=1)
    dosage: str = Field(default="")
    frequency: str = Field(default="")
    instructions: str = Field(default="")
    time: str = Field(...)
    notes: Optional[str] = None
    recommendations: Optional[str] = None
    recurrence: Optional[Recurrence] = None

    @field_validator("time", mode="before")
    @classmethod
    def validate_time(cls, v) -> str:
        return parse_time_of_day(v)

    @field_validator("dosage", "frequency", "instructions", mode="before")
    @classmethod
    def coerce_missing_text(cls, v) -> str:
        return "" if v is None else v


class AnalysisResponse(BaseModel):
    """Outcome of one analysis provider call.

    Parameters:
        success: True when the provider produced a usable suggestion list
        reminders: Suggestions (empty on failure)
        error: Error message (only on failure)
    """

    success: bool
    reminders: list[AdvancedReminderSuggestion] = Field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def ok(cls, reminders: list[AdvancedReminderSuggestion]) -> "AnalysisResponse":
        return cls(success=True, reminders=reminders)

    @classmethod
    def failed(cls, error: str) -> "AnalysisResponse":
        return cls(success=False, error=error)


# ============================================================================
# Drafts (staged in the preview session)
# ============================================================================

class ReminderDraft(BaseModel):
    """A staged, user-editable candidate reminder.

    Drafts are immutable; the preview session replaces a draft with an
    updated copy when the user edits it.

    Parameters:
        id: Identifier unique within the current session
        source_record_id: Back reference to the originating SourceRecord
        medication_name: Medication name
        dosage: Dose to take
        frequency_text: Frequency text shown to the user
        instructions: Usage instructions
        notes: Line notes
        time_of_day: HH:MM, 24-hour
        recurrence: Repetition policy
        analysis_strategy: Strategy that produced the draft
        ai_notes: Provider notes (advanced drafts only)
        ai_recommendations: Provider recommendations (advanced drafts only)
        anchor_date: Date captured at build/edit time; fixes the weekly weekday,
            the monthly day and the one-shot fire date
        edit_sequence: Stamp of the last edit in this session (0 = never edited)
    """

    model_config = ConfigDict(frozen=True)

    id: str
    source_record_id: str
    medication_name: str
    dosage: str = ""
    frequency_text: str = ""
    instructions: str = DEFAULT_DIRECTIONS
    notes: Optional[str] = None
    time_of_day: str
    recurrence: Recurrence = Recurrence.DAILY
    analysis_strategy: AnalysisStrategy
    ai_notes: Optional[str] = None
    ai_recommendations: Optional[str] = None
    anchor_date: date = Field(default_factory=date.today)
    edit_sequence: int = Field(default=0, ge=0)

    @field_validator("time_of_day", mode="before")
    @classmethod
    def validate_time_of_day(cls, v) -> str:
        return parse_time_of_day(v)

    @property
    def group_key(self) -> tuple[str, str]:
        """Key of the group this draft merges into at commit time."""
        return (self.source_record_id, self.medication_name)


# ============================================================================
# Commit-time requests and persisted reminders
# ============================================================================

class MedicationEntry(BaseModel):
    """Persistence request for one (record, medication) group.

    Parameters:
        medication_name: Medication name
        dosage: Dose to take
        frequency_text: Frequency text
        instructions: Usage instructions
        notes: Line notes
        times: Sorted union of the group's times of day
        recurrence: Recurrence resolved for the group
        anchor_date: Anchor date of the draft that decided the recurrence
        analysis_strategy: Strategy that produced the group's drafts
    """

    model_config = ConfigDict(frozen=True)

    medication_name: str
    dosage: str = ""
    frequency_text: str = ""
    instructions: str = DEFAULT_DIRECTIONS
    notes: Optional[str] = None
    times: list[str] = Field(..., min_length=1)
    recurrence: Recurrence = Recurrence.DAILY
    anchor_date: date
    analysis_strategy: AnalysisStrategy = AnalysisStrategy.BASIC


class PersistedReminder(BaseModel):
    """A reminder owned by the persistence store after commit.

    Parameters:
        id: Stable identifier allocated by the store
        source_record_id: Record the reminder was generated from
        medication_name: Medication name
        dosage: Dose to take
        frequency_text: Frequency text
        instructions: Usage instructions
        notes: Line notes
        times: Scheduled times of day
        recurrence: Repetition policy
        anchor_date: Anchor date for weekly/monthly/one-shot triggers
        analysis_strategy: Strategy that produced the reminder
        enabled: Whether the reminder is active
        last_fired_at: When the reminder last fired (None if never)
        created_at: Creation timestamp
    """

    id: str
    source_record_id: str
    medication_name: str
    dosage: str = ""
    frequency_text: str = ""
    instructions: str = DEFAULT_DIRECTIONS
    notes: Optional[str] = None
    times: list[str] = Field(..., min_length=1)
    recurrence: Recurrence = Recurrence.DAILY
    anchor_date: date
    analysis_strategy: AnalysisStrategy = AnalysisStrategy.BASIC
    enabled: bool = True
    last_fired_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.now)


class DoseEvent(BaseModel):
    """One taken or skipped dose in a reminder's history.

    Parameters:
        id: Event identifier
        reminder_id: Reminder the dose belongs to
        status: Whether the dose was taken or skipped
        recorded_at: When the event was recorded
        notes: Free-text note (skip reason for skipped doses)
        side_effects: Side effects reported with a taken dose
    """

    model_config = ConfigDict(frozen=True)

    id: str
    reminder_id: str
    status: DoseStatus
    recorded_at: datetime
    notes: Optional[str] = None
    side_effects: Optional[str] = None


class ComplianceSummary(BaseModel):
    """Adherence totals across active reminders.

    compliance_rate is the rounded percentage of recorded doses that were
    taken, 0 when nothing has been recorded.
    """

    model_config = ConfigDict(frozen=True)

    total_reminders: int = 0
    completed: int = 0
    missed: int = 0
    compliance_rate: int = 0

    @classmethod
    def from_counts(cls, completed: int, missed: int) -> "ComplianceSummary":
        total = completed + missed
        # Half rounds up (12.5 -> 13)
        rate = int(completed * 100 / total + 0.5) if total else 0
        return cls(total_reminders=total, completed=completed, missed=missed, compliance_rate=rate)


# ============================================================================
# Scheduler contract
# ============================================================================

class TriggerSpec(BaseModel):
    """Scheduler-facing trigger descriptor.

    Parameters:
        kind: Trigger shape
        seconds: Delay for one-shot TIME_INTERVAL triggers
        weekday: 1-7 with Sunday = 1 (WEEKLY only)
        day: Day of month, passed through unclamped (CALENDAR only)
        hour: Hour of day for repeating triggers
        minute: Minute of hour for repeating triggers
        repeats: Whether the trigger repeats
    """

    model_config = ConfigDict(frozen=True)

    kind: TriggerKind
    seconds: Optional[int] = Field(None, ge=1)
    weekday: Optional[int] = Field(None, ge=1, le=7)
    day: Optional[int] = Field(None, ge=1, le=31)
    hour: Optional[int] = Field(None, ge=0, le=23)
    minute: Optional[int] = Field(None, ge=0, le=59)
    repeats: bool = False


class NotificationContent(BaseModel):
    """Title and body of a scheduled notification."""

    model_config = ConfigDict(frozen=True)

    title: str
    body: str
    data: dict = Field(default_factory=dict)


class FailedGroup(BaseModel):
    """A record group whose persistence or scheduling failed at commit."""

    source_record_id: str
    error: str
    error_type: Optional[str] = None


class CommitResult(BaseModel):
    """Aggregate outcome of a commit.

    Parameters:
        persisted_count: Number of reminders persisted and scheduled
        persisted_ids: Their store identifiers, in submission order
        failed_groups: Record groups that failed
        skipped_groups: Record ids not submitted because the commit was cancelled
        scheduled_handles: Scheduler handles per persisted reminder id
    """

    persisted_count: int = 0
    persisted_ids: list[str] = Field(default_factory=list)
    failed_groups: list[FailedGroup] = Field(default_factory=list)
    skipped_groups: list[str] = Field(default_factory=list)
    scheduled_handles: dict[str, list[str]] = Field(default_factory=dict)

    @property
    def failed_record_ids(self) -> list[str]:
        return [group.source_record_id for group in self.failed_groups]

    @property
    def is_complete(self) -> bool:
        """True when every group was submitted and none failed."""
        return not self.failed_groups and not self.skipped_groups
