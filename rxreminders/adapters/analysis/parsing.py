"""Parsing of analysis provider replies.

Language models wrap JSON in prose or code fences, so the first `{`
through the last `}` is taken as the payload. Medication reminders map
directly to suggestions; health-care reminders (checkups, lifestyle,
warnings) become suggestions named "[TYPE] title" with no dosage.

Individual entries that fail validation are dropped with a warning; a
reply with no usable entry at all is a ProviderResponseError.
"""

import json
import logging
import re
from typing import Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from rxreminders.domain.enums import Recurrence
from rxreminders.domain.models import AdvancedReminderSuggestion
from rxreminders.domain.ports import ProviderResponseError

logger = logging.getLogger(__name__)

_JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")

HEALTH_REMINDER_DOSAGE = "N/A"


class _HealthReminder(BaseModel):
    type: str = "general"
    title: str = Field(..., min_length=1)
    description: str = ""
    time: str
    frequency: str = ""


class _ProviderReply(BaseModel):
    reminders: list = Field(default_factory=list)
    health_reminders: list = Field(default_factory=list)


def extract_json_object(text: str, record_id: Optional[str] = None) -> dict:
    """Return the JSON object embedded in a free-text reply.

    Raises:
        ProviderResponseError: If no object is found or it does not decode
    """
    match = _JSON_OBJECT_PATTERN.search(text or "")
    if not match:
        raise ProviderResponseError("No JSON object in provider reply", record_id=record_id, raw_response=text)

    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ProviderResponseError(
            f"Provider reply is not valid JSON: {str(e)}",
            record_id=record_id,
            raw_response=text
        ) from e

    if not isinstance(payload, dict):
        raise ProviderResponseError("Provider reply is not a JSON object", record_id=record_id, raw_response=text)
    return payload


def _recurrence_from_text(frequency: str) -> Optional[Recurrence]:
    try:
        return Recurrence(frequency.strip().lower())
    except ValueError:
        return None


def _medication_suggestion(item: dict) -> AdvancedReminderSuggestion:
    return AdvancedReminderSuggestion(
        medication_name=item.get("medication_name") or "",
        dosage=item.get("dosage"),
        frequency=item.get("frequency"),
        instructions=item.get("instructions"),
        time=item.get("time"),
        notes=item.get("ai_notes") or item.get("notes"),
        recommendations=item.get("recommendations"),
        recurrence=_recurrence_from_text(item.get("recurrence") or ""),
    )


def _health_suggestion(item: dict) -> AdvancedReminderSuggestion:
    reminder = _HealthReminder.model_validate(item)
    return AdvancedReminderSuggestion(
        medication_name=f"[{reminder.type.upper()}] {reminder.title}",
        dosage=HEALTH_REMINDER_DOSAGE,
        frequency=reminder.frequency,
        instructions=reminder.description,
        time=reminder.time,
        notes=reminder.description or None,
        recurrence=_recurrence_from_text(reminder.frequency),
    )


def parse_provider_reply(text: str, record_id: Optional[str] = None) -> list[AdvancedReminderSuggestion]:
    """Parse a provider reply into reminder suggestions.

    Parameters:
        text: Raw model output
        record_id: Record being analyzed, for error context

    Returns:
        list[AdvancedReminderSuggestion]: Medication suggestions first, then
        health-care suggestions, each in reply order

    Raises:
        ProviderResponseError: If the reply has no JSON object, is not shaped
            like a reminder plan, or contains no valid entry
    """
    payload = extract_json_object(text, record_id=record_id)

    try:
        reply = _ProviderReply.model_validate(payload)
    except PydanticValidationError as e:
        raise ProviderResponseError(
            f"Provider reply has an unexpected shape: {str(e)}",
            record_id=record_id,
            raw_response=text
        ) from e

    suggestions: list[AdvancedReminderSuggestion] = []
    dropped = 0
    entries = [(item, _medication_suggestion) for item in reply.reminders]
    entries += [(item, _health_suggestion) for item in reply.health_reminders]

    for item, convert in entries:
        try:
            suggestions.append(convert(item))
        except (PydanticValidationError, ValueError, TypeError, AttributeError) as e:
            dropped += 1
            logger.warning(f"Dropping malformed provider entry for record {record_id}: {str(e)}")

    if not suggestions and dropped:
        raise ProviderResponseError(
            f"All {dropped} provider entries were malformed",
            record_id=record_id,
            raw_response=text
        )

    return suggestions
