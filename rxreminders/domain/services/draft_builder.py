"""Draft Builder.

Converts analyzer pre-drafts into ReminderDraft objects for the preview
session. Draft ids are derived from (record, medication, time of day) so that
regenerating the same inputs yields the same ids; a repeated id within one
batch is dropped.
"""

import logging
import re
from datetime import date
from typing import Callable, Iterable, Optional

from rxreminders.domain.enums import AnalysisStrategy, Recurrence
from rxreminders.domain.models import DEFAULT_DIRECTIONS, ReminderDraft
from rxreminders.domain.services.analyzers import PreDraft

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s")


def draft_id(
    source_record_id: str,
    medication_name: str,
    time_of_day: str,
    strategy: AnalysisStrategy = AnalysisStrategy.BASIC
) -> str:
    """Deterministic session-scoped draft id."""
    prefix = "preview_ai" if strategy == AnalysisStrategy.ADVANCED else "preview"
    return _WHITESPACE.sub("_", f"{prefix}_{source_record_id}_{medication_name}_{time_of_day}")


class DraftBuilder:
    """Builds reminder drafts from pre-drafts.

    Parameters:
        today: Clock returning the anchor date for new drafts
        default_recurrence: Recurrence for drafts whose source does not set one
    """

    def __init__(
        self,
        today: Optional[Callable[[], date]] = None,
        default_recurrence: Recurrence = Recurrence.DAILY
    ):
        self.today = today or date.today
        self.default_recurrence = default_recurrence

    def build(self, pre_drafts: Iterable[PreDraft]) -> list[ReminderDraft]:
        """Build drafts in pre-draft order.

        Parameters:
            pre_drafts: Output of the analysis orchestrator

        Returns:
            list[ReminderDraft]: One draft per distinct id
        """
        anchor = self.today()
        drafts: list[ReminderDraft] = []
        seen: set[str] = set()

        for pre_draft in pre_drafts:
            if pre_draft.strategy == AnalysisStrategy.ADVANCED and pre_draft.suggestion is not None:
                draft = self._from_suggestion(pre_draft, anchor)
            else:
                draft = self._from_line(pre_draft, anchor)

            if draft.id in seen:
                logger.debug(f"Dropping duplicate draft {draft.id}")
                continue
            seen.add(draft.id)
            drafts.append(draft)

        return drafts

    def _from_line(self, pre_draft: PreDraft, anchor: date) -> ReminderDraft:
        line = pre_draft.line
        record_id = pre_draft.record.id
        return ReminderDraft(
            id=draft_id(record_id, line.drug_name, pre_draft.time_of_day),
            source_record_id=record_id,
            medication_name=line.drug_name,
            dosage=line.dosage_text,
            frequency_text=line.frequency_text or DEFAULT_DIRECTIONS,
            instructions=line.usage_instructions or DEFAULT_DIRECTIONS,
            notes=line.note,
            time_of_day=pre_draft.time_of_day,
            recurrence=self.default_recurrence,
            analysis_strategy=AnalysisStrategy.BASIC,
            anchor_date=anchor,
        )

    def _from_suggestion(self, pre_draft: PreDraft, anchor: date) -> ReminderDraft:
        suggestion = pre_draft.suggestion
        record_id = pre_draft.record.id
        return ReminderDraft(
            id=draft_id(record_id, suggestion.medication_name, suggestion.time, AnalysisStrategy.ADVANCED),
            source_record_id=record_id,
            medication_name=suggestion.medication_name,
            dosage=suggestion.dosage,
            frequency_text=suggestion.frequency or DEFAULT_DIRECTIONS,
            instructions=suggestion.instructions or DEFAULT_DIRECTIONS,
            time_of_day=suggestion.time,
            recurrence=suggestion.recurrence or self.default_recurrence,
            analysis_strategy=AnalysisStrategy.ADVANCED,
            ai_notes=suggestion.notes,
            ai_recommendations=suggestion.recommendations,
            anchor_date=anchor,
        )
