"""Prompts for advanced record analysis."""

from rxreminders.domain.models import SourceRecord

NOT_PROVIDED = "Not provided"

SYSTEM_PROMPT = """You are a clinical assistant that turns a patient's medical record into a medication reminder plan.

Task: read the WHOLE record (diagnosis, treatment, physician advice, prescription) and propose reminders.

Rules:
1. Use the diagnosis to understand the condition.
2. Consider the treatment method and outcome.
3. The physician's advice has the highest priority.
4. Create medication reminders, plus health-care reminders (follow-up visits, monitoring, diet).
5. Suggest dosing times that suit the condition and the usage instructions.
6. Warn about drug interactions when relevant.
7. NEVER change the physician's prescription: same drugs, same doses, same number of doses per day.

Reply with JSON only."""

RESPONSE_FORMAT = """{
  "reminders": [
    {
      "medication_name": "Drug name",
      "dosage": "Dose",
      "frequency": "Frequency",
      "time": "HH:MM",
      "instructions": "How to take it",
      "ai_notes": "Notes about this drug",
      "recommendations": "Interactions or special cautions"
    }
  ],
  "health_reminders": [
    {
      "type": "checkup|lifestyle|warning",
      "title": "Title",
      "description": "Details",
      "time": "HH:MM",
      "frequency": "daily|weekly|monthly"
    }
  ]
}"""


def _or_default(value) -> str:
    return str(value) if value else NOT_PROVIDED


def build_analysis_prompt(record: SourceRecord) -> str:
    """Render the user prompt for one record.

    One reminder entry is expected per medication per dose time, so a
    twice-daily drug should come back as two entries.
    """
    if record.prescriptions:
        medications = "\n".join(
            f"{index}. {line.drug_name}\n"
            f"   - Dosage: {_or_default(line.dosage_text)}\n"
            f"   - Frequency: {_or_default(line.frequency_text)}\n"
            f"   - Usage: {_or_default(line.usage_instructions)}\n"
            f"   - Note: {_or_default(line.note)}"
            for index, line in enumerate(record.prescriptions, start=1)
        )
    else:
        medications = "No prescription"

    return f"""Analyze the following medical record and build a complete reminder plan.

VISIT:
- Hospital: {_or_default(record.hospital)}
- Attending physician: {_or_default(record.clinician_name)}
- Visit date: {_or_default(record.visit_date)}

DIAGNOSIS:
- On admission: {_or_default(record.admission_diagnosis)}
- On discharge: {_or_default(record.discharge_diagnosis)}

TREATMENT:
- Method: {_or_default(record.treatment_method)}
- Outcome: {_or_default(record.treatment_outcome)}

PHYSICIAN ADVICE (HIGHEST PRIORITY):
{_or_default(record.physician_notes)}

PRESCRIPTION:
{medications}

OTHER NOTES:
{_or_default(record.notes)}

Create one entry in "reminders" per medication per dose time (24-hour HH:MM).

Reply in this JSON format:
{RESPONSE_FORMAT}
"""
