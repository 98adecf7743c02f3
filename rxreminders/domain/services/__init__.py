"""Domain Services.

This package contains the reminder pipeline services: frequency
interpretation, analysis strategies, draft building, the preview session,
commit grouping, trigger mapping and the workflow state machine.
"""

from rxreminders.domain.services.analyzers import (
    AdvancedAnalyzer,
    AnalysisOrchestrator,
    AnalysisOutcome,
    Analyzer,
    BasicAnalyzer,
    PreDraft,
)
from rxreminders.domain.services.commit_adapter import CommitAdapter
from rxreminders.domain.services.draft_builder import DraftBuilder
from rxreminders.domain.services.frequency_interpreter import interpret, is_recognized
from rxreminders.domain.services.session import PreviewSession
from rxreminders.domain.services.trigger_mapper import to_trigger
from rxreminders.domain.services.workflow import ReminderWorkflow

__all__ = [
    'AdvancedAnalyzer',
    'AnalysisOrchestrator',
    'AnalysisOutcome',
    'Analyzer',
    'BasicAnalyzer',
    'PreDraft',
    'CommitAdapter',
    'DraftBuilder',
    'interpret',
    'is_recognized',
    'PreviewSession',
    'to_trigger',
    'ReminderWorkflow',
]
