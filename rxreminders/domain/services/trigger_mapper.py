"""Recurrence Trigger Mapper.

Maps an abstract recurrence plus a time of day and anchor date to the
concrete trigger descriptor consumed by the notification scheduler.

    none     -> one-shot TIME_INTERVAL, fires after max(1, anchor - now) seconds
    daily    -> repeating DAILY at hour:minute
    weekly   -> repeating WEEKLY on the anchor's weekday (Sunday = 1) at hour:minute
    monthly  -> repeating CALENDAR on the anchor's day of month at hour:minute

The monthly day is passed through as-is: day 31 stays 31 even for 30-day
months, and the scheduler's own rollover policy applies.
"""

import math
from datetime import date, datetime, time
from typing import Optional

from rxreminders.domain.enums import Recurrence, TriggerKind
from rxreminders.domain.models import TriggerSpec, split_time_of_day


def scheduler_weekday(anchor_date: date) -> int:
    """Weekday number in the scheduler's convention (Sunday = 1 ... Saturday = 7)."""
    return anchor_date.isoweekday() % 7 + 1


def to_trigger(
    recurrence: Recurrence,
    time_of_day: str,
    anchor_date: date,
    now: Optional[datetime] = None
) -> TriggerSpec:
    """Build the trigger for one reminder time.

    Parameters:
        recurrence: Repetition policy
        time_of_day: HH:MM time of day
        anchor_date: Date captured when the reminder was created or edited
        now: Current time, used only for one-shot triggers (defaults to now)

    Returns:
        TriggerSpec: Scheduler-facing trigger

    Raises:
        ValueError: If time_of_day is not a valid HH:MM value
    """
    hour, minute = split_time_of_day(time_of_day)
    recurrence = Recurrence(recurrence)

    if recurrence == Recurrence.DAILY:
        return TriggerSpec(kind=TriggerKind.DAILY, hour=hour, minute=minute, repeats=True)

    if recurrence == Recurrence.WEEKLY:
        return TriggerSpec(
            kind=TriggerKind.WEEKLY,
            weekday=scheduler_weekday(anchor_date),
            hour=hour,
            minute=minute,
            repeats=True,
        )

    if recurrence == Recurrence.MONTHLY:
        return TriggerSpec(
            kind=TriggerKind.CALENDAR,
            day=anchor_date.day,
            hour=hour,
            minute=minute,
            repeats=True,
        )

    # Past anchors clamp to one second so the reminder fires immediately
    now = now or datetime.now()
    fire_at = datetime.combine(anchor_date, time(hour, minute))
    seconds = max(1, math.floor((fire_at - now).total_seconds()))
    return TriggerSpec(kind=TriggerKind.TIME_INTERVAL, seconds=seconds, repeats=False)
