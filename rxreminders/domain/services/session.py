"""Preview/Edit Session.

In-memory staging area for reminder drafts between generation and commit.
The session is single-writer (the interactive user) and never touches
external systems; discarding it has no side effects.

Only the time of day and recurrence of a draft can be changed. Editing or
deleting an unknown id is a silent no-op: edit() reports it through a failure
Result, delete() returns False.
"""

import logging
from datetime import date
from typing import Callable, Iterable, Optional

from rxreminders.domain.enums import Recurrence
from rxreminders.domain.models import ReminderDraft, parse_time_of_day
from rxreminders.domain.ports import Result

logger = logging.getLogger(__name__)

DRAFT_NOT_FOUND = "DraftNotFound"


class PreviewSession:
    """Mutable collection of drafts keyed by id, in generation order.

    Parameters:
        today: Clock used to re-capture a draft's anchor date on edit
        propagate_recurrence: When True, an edit's recurrence is applied to
            every draft of the same (record, medication) group so the group
            never disagrees at commit time
    """

    def __init__(
        self,
        today: Optional[Callable[[], date]] = None,
        propagate_recurrence: bool = False
    ):
        self.today = today or date.today
        self.propagate_recurrence = propagate_recurrence
        self._drafts: dict[str, ReminderDraft] = {}
        self._edit_counter = 0

    def load(self, drafts: Iterable[ReminderDraft]) -> None:
        """Populate the session in one batch.

        Raises:
            ValueError: If the session already holds drafts
        """
        if self._drafts:
            raise ValueError("Session is already populated")
        for draft in drafts:
            self._drafts.setdefault(draft.id, draft)
        logger.debug(f"Preview session loaded with {len(self._drafts)} draft(s)")

    def get(self, draft_id: str) -> Optional[ReminderDraft]:
        return self._drafts.get(draft_id)

    def edit(
        self,
        draft_id: str,
        new_time_of_day: str,
        new_recurrence: Recurrence
    ) -> Result[ReminderDraft]:
        """Replace the time of day and recurrence of a draft.

        The anchor date is re-captured from the session clock, so a weekly or
        monthly reminder follows the day the user edited it.

        Parameters:
            draft_id: Draft to edit
            new_time_of_day: HH:MM time of day
            new_recurrence: New recurrence

        Returns:
            Result[ReminderDraft]: The updated draft, or a DraftNotFound failure

        Raises:
            ValueError: If the draft exists and new_time_of_day or
                new_recurrence is invalid
        """
        current = self._drafts.get(draft_id)
        if current is None:
            return Result.failure_result(
                f"Draft not found: {draft_id}",
                error_type=DRAFT_NOT_FOUND,
                error_details={"draft_id": draft_id},
            )

        time_of_day = parse_time_of_day(new_time_of_day)
        recurrence = Recurrence(new_recurrence)

        self._edit_counter += 1
        updated = current.model_copy(update={
            "time_of_day": time_of_day,
            "recurrence": recurrence,
            "anchor_date": self.today(),
            "edit_sequence": self._edit_counter,
        })
        self._drafts[draft_id] = updated

        if self.propagate_recurrence:
            self._apply_group_recurrence(updated)

        return Result.success_result(updated)

    def _apply_group_recurrence(self, edited: ReminderDraft) -> None:
        for draft_id, draft in self._drafts.items():
            if draft_id != edited.id and draft.group_key == edited.group_key and draft.recurrence != edited.recurrence:
                self._drafts[draft_id] = draft.model_copy(update={"recurrence": edited.recurrence})

    def delete(self, draft_id: str) -> bool:
        """Remove a draft. Returns False if it was not present."""
        return self._drafts.pop(draft_id, None) is not None

    def snapshot(self) -> tuple[ReminderDraft, ...]:
        """Current drafts in generation order (read-only view)."""
        return tuple(self._drafts.values())

    def clear(self) -> None:
        self._drafts.clear()
        self._edit_counter = 0

    def __len__(self) -> int:
        return len(self._drafts)

    def __contains__(self, draft_id: object) -> bool:
        return draft_id in self._drafts
