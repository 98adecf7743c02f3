"""Composition root for the reminder pipeline.

This module wires the domain services to their configured adapters and
loads source records handed in by the presentation layer.

Architecture:
    - Follows Hexagonal Architecture principles
    - The store, scheduler and analysis provider are chosen from configuration
    - Domain services only see the ports
"""

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from rxreminders.adapters.analysis import get_analysis_provider
from rxreminders.adapters.scheduling import InMemoryNotificationScheduler
from rxreminders.adapters.storage import DuckDBReminderStore
from rxreminders.domain.models import SourceRecord
from rxreminders.domain.ports import (
    AnalysisProviderPort,
    NotificationSchedulerPort,
    PersistenceStorePort,
    StorageError,
)
from rxreminders.domain.services import (
    AnalysisOrchestrator,
    CommitAdapter,
    DraftBuilder,
    PreviewSession,
    ReminderWorkflow,
)
from rxreminders.infrastructure.settings import settings

logger = logging.getLogger(__name__)

_RECORD_LIST = TypeAdapter(list[SourceRecord])


def create_reminder_store() -> DuckDBReminderStore:
    """Create the reminder store from configuration.

    Raises:
        StorageError: If the database cannot be opened or initialized
    """
    storage_config = settings.storage_config
    logger.info(f"Initializing DuckDB reminder store with path: {storage_config.db_path}")
    store = DuckDBReminderStore(storage_config=storage_config)
    result = store.initialize_schema()
    if result.is_failure():
        store.close()
        raise StorageError(result.error, operation="initialize_schema")
    return store


def create_analysis_provider() -> Optional[AnalysisProviderPort]:
    """Create the analysis provider, or None when no API key is configured."""
    return get_analysis_provider(settings.analysis_config)


def create_workflow(
    store: PersistenceStorePort,
    scheduler: Optional[NotificationSchedulerPort] = None,
    provider: Optional[AnalysisProviderPort] = None
) -> ReminderWorkflow:
    """Wire a fresh workflow session.

    Parameters:
        store: Reminder store
        scheduler: Notification scheduler (default: in-memory)
        provider: Analysis provider (None disables advanced analysis)

    Returns:
        ReminderWorkflow: Workflow in the IDLE state
    """
    analysis_config = settings.analysis_config
    orchestrator = AnalysisOrchestrator(
        provider=provider,
        timeout_seconds=analysis_config.timeout_seconds,
        max_concurrency=analysis_config.max_concurrency,
    )
    commit_adapter = CommitAdapter(store, scheduler or InMemoryNotificationScheduler())
    session = PreviewSession(propagate_recurrence=settings.propagate_recurrence)
    return ReminderWorkflow(orchestrator, commit_adapter, draft_builder=DraftBuilder(), session=session)


def load_records(path: Path) -> list[SourceRecord]:
    """Load source records from a JSON file.

    The file holds either a list of records or a single record object.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not valid JSON or a record is invalid
    """
    if not path.exists():
        raise FileNotFoundError(f"Records file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in records file: {str(e)}")

    if isinstance(data, dict):
        data = [data]

    try:
        return _RECORD_LIST.validate_python(data)
    except PydanticValidationError as e:
        raise ValueError(f"Invalid source record: {str(e)}")
