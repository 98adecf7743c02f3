"""Shared fixtures for the reminder pipeline tests."""

from datetime import date, datetime

import pytest

from rxreminders.adapters.scheduling import InMemoryNotificationScheduler
from rxreminders.adapters.storage import DuckDBReminderStore
from rxreminders.domain.enums import AnalysisStrategy
from rxreminders.domain.models import PrescriptionLine, ReminderDraft, SourceRecord

# Sunday, last day of a 31-day month
ANCHOR_DATE = date(2024, 3, 31)
NOW = datetime(2024, 3, 31, 6, 0, 0)


def make_record(record_id: str, *lines: tuple[str, str], **fields) -> SourceRecord:
    """Build a SourceRecord from (drug_name, frequency_text) pairs."""
    prescriptions = [
        PrescriptionLine(drug_name=name, dosage_text="1 tablet", frequency_text=frequency)
        for name, frequency in lines
    ]
    return SourceRecord(id=record_id, prescriptions=prescriptions, **fields)


def make_draft(
    record_id: str,
    medication: str,
    time_of_day: str,
    strategy: AnalysisStrategy = AnalysisStrategy.BASIC,
    **fields
) -> ReminderDraft:
    return ReminderDraft(
        id=f"{record_id}_{medication}_{time_of_day}",
        source_record_id=record_id,
        medication_name=medication,
        dosage="1 tablet",
        time_of_day=time_of_day,
        analysis_strategy=strategy,
        anchor_date=fields.pop("anchor_date", ANCHOR_DATE),
        **fields
    )


@pytest.fixture
def sample_records() -> list[SourceRecord]:
    """Two records: rec-1 with two drugs, rec-2 with one."""
    return [
        make_record(
            "rec-1",
            ("Amoxicillin", "twice daily"),
            ("Paracetamol", "3 times a day"),
            hospital="City Hospital",
            discharge_diagnosis="Acute sinusitis",
        ),
        make_record("rec-2", ("Metformin", "once daily")),
    ]


@pytest.fixture
def store():
    """Initialized in-memory DuckDB reminder store."""
    reminder_store = DuckDBReminderStore(db_path=":memory:")
    result = reminder_store.initialize_schema()
    assert result.is_success()
    yield reminder_store
    reminder_store.close()


@pytest.fixture
def scheduler() -> InMemoryNotificationScheduler:
    return InMemoryNotificationScheduler()
