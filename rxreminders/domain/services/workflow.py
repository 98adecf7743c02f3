"""Reminder Workflow State Machine.

Drives one user session from record selection to committed reminders:

    IDLE -> GENERATING -> PREVIEWING <-> EDITING -> COMMITTING -> DONE
                              |             |
                              +-> CANCELLED <+

GENERATING runs the analysis orchestrator and draft builder (slow for the
advanced strategy). PREVIEWING and EDITING are user-paced and have no side
effects. COMMITTING is the only phase that reaches external systems and it
only moves forward. Any operation attempted from a state that does not allow
it raises InvalidTransitionError.
"""

import logging
import threading
from typing import Optional

from rxreminders.domain.enums import AnalysisStrategy, Recurrence, WorkflowState
from rxreminders.domain.models import CommitResult, ReminderDraft, SourceRecord
from rxreminders.domain.ports import InvalidTransitionError, Result
from rxreminders.domain.services.analyzers import AnalysisOrchestrator, AnalysisOutcome
from rxreminders.domain.services.commit_adapter import CommitAdapter
from rxreminders.domain.services.draft_builder import DraftBuilder
from rxreminders.domain.services.session import PreviewSession

logger = logging.getLogger(__name__)

TRANSITIONS: dict[WorkflowState, frozenset[WorkflowState]] = {
    WorkflowState.IDLE: frozenset({WorkflowState.GENERATING}),
    WorkflowState.GENERATING: frozenset({WorkflowState.PREVIEWING, WorkflowState.IDLE}),
    WorkflowState.PREVIEWING: frozenset({
        WorkflowState.EDITING,
        WorkflowState.COMMITTING,
        WorkflowState.CANCELLED,
    }),
    WorkflowState.EDITING: frozenset({WorkflowState.PREVIEWING, WorkflowState.CANCELLED}),
    WorkflowState.COMMITTING: frozenset({WorkflowState.DONE}),
    WorkflowState.DONE: frozenset(),
    WorkflowState.CANCELLED: frozenset(),
}


class ReminderWorkflow:
    """One generate/preview/edit/commit session.

    Parameters:
        orchestrator: Analysis orchestrator
        commit_adapter: Commit adapter
        draft_builder: Draft builder (default: DraftBuilder())
        session: Preview session (default: a new empty PreviewSession)

    Example Usage:
        ```python
        workflow = ReminderWorkflow(orchestrator, commit_adapter)
        outcome = await workflow.generate(records, AnalysisStrategy.BASIC)
        workflow.begin_edit(draft_id)
        workflow.apply_edit(draft_id, "09:30", Recurrence.DAILY)
        result = workflow.commit()
        ```
    """

    def __init__(
        self,
        orchestrator: AnalysisOrchestrator,
        commit_adapter: CommitAdapter,
        draft_builder: Optional[DraftBuilder] = None,
        session: Optional[PreviewSession] = None
    ):
        self.orchestrator = orchestrator
        self.commit_adapter = commit_adapter
        self.draft_builder = draft_builder or DraftBuilder()
        self.session = session if session is not None else PreviewSession()
        self.outcome: Optional[AnalysisOutcome] = None
        self.commit_result: Optional[CommitResult] = None
        self.editing_id: Optional[str] = None
        self._state = WorkflowState.IDLE
        self._commit_cancel = threading.Event()

    @property
    def state(self) -> WorkflowState:
        return self._state

    def _transition(self, target: WorkflowState) -> None:
        if target not in TRANSITIONS[self._state]:
            raise InvalidTransitionError(self._state, target)
        logger.debug(f"Workflow {self._state.value} -> {target.value}")
        self._state = target

    def _require(self, *states: WorkflowState) -> None:
        if self._state not in states:
            raise InvalidTransitionError(self._state, states[0])

    async def generate(self, records: list[SourceRecord], strategy: AnalysisStrategy) -> AnalysisOutcome:
        """Analyze records and stage the resulting drafts.

        Returns:
            AnalysisOutcome: Includes advisories such as full fallback

        Raises:
            InvalidTransitionError: If the workflow is not IDLE
        """
        self._transition(WorkflowState.GENERATING)
        try:
            outcome = await self.orchestrator.analyze(records, strategy)
            drafts = self.draft_builder.build(outcome.pre_drafts)
            self.session.load(drafts)
        except BaseException:
            self.session.clear()
            self._transition(WorkflowState.IDLE)
            raise

        self.outcome = outcome
        self._transition(WorkflowState.PREVIEWING)
        return outcome

    def drafts(self) -> tuple[ReminderDraft, ...]:
        return self.session.snapshot()

    def begin_edit(self, draft_id: str) -> Result[ReminderDraft]:
        """Open a draft for editing.

        An unknown id leaves the workflow in PREVIEWING and returns a failure.
        """
        self._require(WorkflowState.PREVIEWING)
        draft = self.session.get(draft_id)
        if draft is None:
            return Result.failure_result(f"Draft not found: {draft_id}", error_type="DraftNotFound")
        self._transition(WorkflowState.EDITING)
        self.editing_id = draft_id
        return Result.success_result(draft)

    def apply_edit(self, draft_id: str, time_of_day: str, recurrence: Recurrence) -> Result[ReminderDraft]:
        """Save an edit and return to PREVIEWING.

        Raises:
            InvalidTransitionError: If the workflow is not EDITING
            ValueError: If draft_id is not the draft opened by begin_edit, or
                the time or recurrence is invalid; the workflow stays EDITING
        """
        self._require(WorkflowState.EDITING)
        if draft_id != self.editing_id:
            raise ValueError(f"Draft {draft_id} is not being edited (editing {self.editing_id})")
        result = self.session.edit(draft_id, time_of_day, recurrence)
        self.editing_id = None
        self._transition(WorkflowState.PREVIEWING)
        return result

    def discard_edit(self) -> None:
        """Leave EDITING without changing the draft."""
        self._require(WorkflowState.EDITING)
        self.editing_id = None
        self._transition(WorkflowState.PREVIEWING)

    def delete(self, draft_id: str) -> bool:
        """Delete a draft while previewing. Idempotent."""
        self._require(WorkflowState.PREVIEWING)
        return self.session.delete(draft_id)

    def cancel(self) -> None:
        """Abandon the session. Nothing has been sent to external systems."""
        self._transition(WorkflowState.CANCELLED)
        self.editing_id = None
        self.session.clear()
        logger.info("Reminder workflow cancelled before commit")

    def request_commit_cancel(self) -> None:
        """Stop a running commit from submitting further record groups."""
        self._commit_cancel.set()

    def commit(self) -> CommitResult:
        """Persist and schedule the staged drafts.

        Returns:
            CommitResult: Aggregate result; partial success is reported, not raised
        """
        self._transition(WorkflowState.COMMITTING)
        try:
            self.commit_result = self.commit_adapter.commit(self.session.snapshot(), cancel_event=self._commit_cancel)
        finally:
            self._transition(WorkflowState.DONE)
            self.session.clear()
        return self.commit_result
