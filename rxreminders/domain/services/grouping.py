"""Draft Grouping and Merge Rule.

Drafts that share a (source record, medication) pair become one persisted
reminder. The merge rule:

    - times:      sorted union of the drafts' times of day
    - recurrence: taken from the most recently edited draft; when no draft
                  (or several equally) was edited, the later draft in
                  session order wins
    - metadata:   taken from the first draft of the group
"""

from typing import Callable, Hashable, Iterable, TypeVar

from rxreminders.domain.enums import AnalysisStrategy
from rxreminders.domain.models import MedicationEntry, ReminderDraft

T = TypeVar('T')
K = TypeVar('K', bound=Hashable)


def group_by(items: Iterable[T], key: Callable[[T], K]) -> dict[K, list[T]]:
    """Group items by key, keeping first-seen key order and item order."""
    groups: dict[K, list[T]] = {}
    for item in items:
        groups.setdefault(key(item), []).append(item)
    return groups


def merge_group(drafts: list[ReminderDraft]) -> MedicationEntry:
    """Merge the drafts of one (record, medication) group.

    Raises:
        ValueError: If drafts is empty or spans several groups
    """
    if not drafts:
        raise ValueError("Cannot merge an empty group")
    if len({d.group_key for d in drafts}) != 1:
        raise ValueError("Drafts belong to more than one (record, medication) group")

    representative = drafts[0]
    # max() keeps the first maximum, so scan in reverse to let later drafts win ties
    deciding = max(reversed(drafts), key=lambda d: d.edit_sequence)

    if any(d.analysis_strategy == AnalysisStrategy.ADVANCED for d in drafts):
        strategy = AnalysisStrategy.ADVANCED
    else:
        strategy = AnalysisStrategy.BASIC

    return MedicationEntry(
        medication_name=representative.medication_name,
        dosage=representative.dosage,
        frequency_text=representative.frequency_text,
        instructions=representative.instructions,
        notes=representative.notes or representative.ai_notes,
        times=sorted({d.time_of_day for d in drafts}),
        recurrence=deciding.recurrence,
        anchor_date=deciding.anchor_date,
        analysis_strategy=strategy,
    )


def build_commit_plan(drafts: Iterable[ReminderDraft]) -> dict[str, list[MedicationEntry]]:
    """Partition drafts by source record, then merge per medication.

    Returns:
        dict: source_record_id -> medication entries, in draft order
    """
    plan: dict[str, list[MedicationEntry]] = {}
    for record_id, record_drafts in group_by(drafts, lambda d: d.source_record_id).items():
        by_medication = group_by(record_drafts, lambda d: d.medication_name)
        plan[record_id] = [merge_group(group) for group in by_medication.values()]
    return plan
