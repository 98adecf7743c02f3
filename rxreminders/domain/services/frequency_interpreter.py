"""Frequency Interpreter.

Translates a free-text dosage frequency ("twice daily", "3 lần/ngày", "tid")
into the ordered times of day at which reminders should fire.

Matching is keyword based, case-insensitive and first-match-wins, checking
the daily dose counts in ascending order. Text that matches nothing falls back
to the twice-daily schedule: interpretation never fails, so an unusual
frequency never blocks reminder creation.
"""

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

# Canonical times per daily dose count
TIME_SETS: dict[int, tuple[str, ...]] = {
    1: ("08:00",),
    2: ("08:00", "20:00"),
    3: ("08:00", "13:00", "20:00"),
    4: ("08:00", "12:00", "16:00", "20:00"),
}

DEFAULT_DOSE_COUNT = 2

# English, Latin abbreviations and Vietnamese phrasing, per dose count.
_COUNT_PATTERNS: tuple[tuple[int, re.Pattern], ...] = (
    (1, re.compile(
        r"\bonce\b|\bone\s+times?\b|(?<!\d)1\s*(?:x\b|times?\b)"
        r"|\b(?:qd|od)\b|\bq\.d\.|\bo\.d\."
        r"|(?<!\d)1\s*lần|\bmột\s+lần"
    )),
    (2, re.compile(
        r"\btwice\b|\btwo\s+times\b|(?<!\d)2\s*(?:x\b|times\b)"
        r"|\b(?:bid|bd)\b|\bb\.i\.d\."
        r"|(?<!\d)2\s*lần|\bhai\s+lần"
    )),
    (3, re.compile(
        r"\bthrice\b|\bthree\s+times\b|(?<!\d)3\s*(?:x\b|times\b)"
        r"|\btid\b|\bt\.i\.d\."
        r"|(?<!\d)3\s*lần|\bba\s+lần"
    )),
    (4, re.compile(
        r"\bfour\s+times\b|(?<!\d)4\s*(?:x\b|times\b)"
        r"|\bqid\b|\bq\.i\.d\."
        r"|(?<!\d)4\s*lần|\bbốn\s+lần"
    )),
)


# Morning-noon-evening(-night) notation, e.g. "1-0-1"
_SLOT_PATTERN = re.compile(r"(?<![\d-])([01])-([01])-([01])(?:-([01]))?(?![\d-])")


def dose_count(frequency_text: Optional[str]) -> Optional[int]:
    """Return the recognized daily dose count, or None if nothing matched."""
    if not frequency_text:
        return None

    text = frequency_text.lower()
    for count, pattern in _COUNT_PATTERNS:
        if pattern.search(text):
            return count

    match = _SLOT_PATTERN.search(text)
    if match:
        total = sum(int(slot) for slot in match.groups() if slot is not None)
        if total in TIME_SETS:
            return total
    return None


def is_recognized(frequency_text: Optional[str]) -> bool:
    """Check whether interpret() would match the text rather than default.

    Lets a presentation layer tell the user that a frequency was not
    understood while still using the default schedule.
    """
    return dose_count(frequency_text) is not None


def interpret(frequency_text: Optional[str]) -> list[str]:
    """Translate frequency text into ordered HH:MM times of day.

    Parameters:
        frequency_text: Free-text frequency; empty or None is allowed

    Returns:
        list[str]: Times of day, earliest first. Unrecognized text yields the
        twice-daily default ["08:00", "20:00"].

    Example:
        ```python
        interpret("once daily")      # ["08:00"]
        interpret("3 times a day")   # ["08:00", "13:00", "20:00"]
        interpret("")                # ["08:00", "20:00"]
        ```
    """
    count = dose_count(frequency_text)
    if count is None:
        if frequency_text:
            logger.debug("Frequency text not recognized, using twice-daily default")
        count = DEFAULT_DOSE_COUNT
    return list(TIME_SETS[count])
