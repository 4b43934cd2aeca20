"""
Centralised prompt templates for protocol and subject-record extraction.

Templates use ``{name}`` placeholders filled by plain string substitution
(``format_prompt``), so the literal JSON braces in the schemas need no escaping.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from cra_assistant.schemas.extraction import PromptKind

SYSTEM_PROMPT = """\
You are a clinical research associate (CRA) assistant. You help process clinical
trial protocol documents and subject medical records. You can:

1. Extract inclusion and exclusion criteria from a protocol precisely.
2. Identify and organise the visit schedule.
3. Recognise medication information in medical records.
4. Understand clinical-trial terminology and abbreviations.

Your answers must be accurate, complete and well structured. Mark uncertain
information as null. Keep medical terms exactly as written in the source and
answer in the language of the source document.

Output ONLY the requested JSON. No prose outside the JSON.
"""

CRITERIA_PROMPT = """\
Extract the complete inclusion and exclusion criteria from the following clinical
trial protocol.

Requirements:
1. Identify every inclusion criterion.
2. Identify every exclusion criterion.
3. Extract each criterion's number and full description.
4. Extract the criterion's category if the protocol groups them.
5. Keep the original wording; do not omit any detail.

OUTPUT SCHEMA:
```json
{
  "inclusionCriteria": [
    {"number": "1", "description": "full criterion text", "category": "demographic / medical / laboratory (if any)"}
  ],
  "exclusionCriteria": [
    {"number": "1", "description": "full criterion text", "category": "medical / safety / concomitant medication (if any)"}
  ]
}
```

Notes:
- If criteria are not numbered, number them 1, 2, 3... in order.
- Use an empty string for category when the protocol has none.

PROTOCOL:
{content}
"""

VISIT_SCHEDULE_PROMPT = """\
Extract the complete visit schedule from the following clinical trial protocol.

Requirements:
1. Identify every visit (screening, treatment, follow-up, ...).
2. Extract each visit's number and name.
3. Extract the visit window (start and end) using the protocol's wording.
4. List the procedures performed at each visit.
5. List the assessments / examinations performed at each visit.

OUTPUT SCHEMA:
```json
{
  "visitSchedule": [
    {
      "visitNumber": "1",
      "visitName": "Screening",
      "windowStart": "Day -28",
      "windowEnd": "Day -1",
      "procedures": [
        {"name": "Informed consent", "category": "screening", "timing": "Day -28", "required": true}
      ],
      "assessments": [
        {"name": "Complete blood count", "type": "lab", "timing": "Day -1", "required": true}
      ]
    }
  ]
}
```

Allowed values:
- procedures.category: "screening", "treatment", "follow-up", "other"
- assessments.type: "vital", "lab", "ecg", "imaging", "questionnaire", "other"

PROTOCOL:
{content}
"""

MEDICATIONS_PROMPT = """\
Identify every medication in the following subject medical record, including
concomitant and prior medications.

Requirements:
1. Medication name (generic name preferred).
2. Dose, frequency and route of administration.
3. Start and end dates when stated.
4. Indication / reason for use.
5. Your confidence in the extraction.

OUTPUT SCHEMA:
```json
{
  "medications": [
    {
      "medicationName": "Aspirin",
      "dosage": "100mg",
      "frequency": "once daily",
      "route": "oral",
      "startDate": "2024-01-15",
      "endDate": null,
      "indication": "CAD prevention",
      "confidence": "high"
    }
  ]
}
```

Confidence: "high" (complete and explicit), "medium" (partly inferred), "low"
(incomplete, needs confirmation). Dates use YYYY-MM-DD; use null when unknown or
when the medication is ongoing.

MEDICAL RECORD:
{content}
"""

SUBJECT_NUMBER_PROMPT = """\
Find the subject (screening / randomisation) number in the following medical
record. Return an empty string if none is present.

OUTPUT SCHEMA:
```json
{"subjectNumber": "S-001"}
```

MEDICAL RECORD:
{content}
"""

SUBJECT_VISIT_DATES_PROMPT = """\
Match the following subject medical record against the protocol visit schedule
and report the actual date of each scheduled visit.

VISIT SCHEDULE (id: number - name - window):
{visit_schedule_summary}

OUTPUT SCHEMA:
```json
{
  "visits": [
    {"visitScheduleId": "visit_001", "actualVisitDate": "2024-03-01", "status": "completed", "notes": ""}
  ]
}
```

status is one of "completed", "missed", "pending". actualVisitDate uses
YYYY-MM-DD or null.

MEDICAL RECORD:
{content}
"""

SUBJECT_VISIT_ITEMS_PROMPT = """\
Match the following subject medical record against the scheduled visit items
(procedures and assessments) and report when each item was performed.

VISIT ITEMS (visit id: item name - item type):
{visit_items_summary}

OUTPUT SCHEMA:
```json
{
  "items": [
    {"visitScheduleId": "visit_001", "itemName": "Complete blood count", "itemType": "lab",
     "actualDate": "2024-03-01", "status": "completed", "notes": ""}
  ]
}
```

status is one of "completed", "missed", "pending". actualDate uses YYYY-MM-DD
or null.

MEDICAL RECORD:
{content}
"""

CONNECTION_TEST_SYSTEM = "You are a connectivity test assistant."
CONNECTION_TEST_PROMPT = 'Reply with exactly: "connected"'

DEFAULT_TOKEN_BUDGET = 8000
TRUNCATION_MARKER = "\n\n[content truncated...]"

_PLACEHOLDER = re.compile(r"\{([a-z_]+)\}")


@dataclass(frozen=True)
class PromptTemplate:
    template: str
    token_budget: int = DEFAULT_TOKEN_BUDGET

    @property
    def placeholders(self) -> set[str]:
        return set(_PLACEHOLDER.findall(self.template))


PROMPTS: dict[PromptKind, PromptTemplate] = {
    PromptKind.CRITERIA: PromptTemplate(CRITERIA_PROMPT),
    PromptKind.VISIT_SCHEDULE: PromptTemplate(VISIT_SCHEDULE_PROMPT),
    PromptKind.MEDICATIONS: PromptTemplate(MEDICATIONS_PROMPT),
    PromptKind.SUBJECT_NUMBER: PromptTemplate(SUBJECT_NUMBER_PROMPT, token_budget=2000),
    PromptKind.SUBJECT_VISIT_DATES: PromptTemplate(SUBJECT_VISIT_DATES_PROMPT),
    PromptKind.SUBJECT_VISIT_ITEMS: PromptTemplate(SUBJECT_VISIT_ITEMS_PROMPT),
}


def format_prompt(template: str, params: dict[str, str]) -> str:
    """Replace every ``{key}`` in *template* with ``params[key]``.

    Single pass: placeholder-like text inside substituted values is left alone.
    Unknown placeholders are kept verbatim.
    """
    return _PLACEHOLDER.sub(lambda m: params.get(m.group(1), m.group(0)), template)


def truncate_content(content: str, max_tokens: int = DEFAULT_TOKEN_BUDGET) -> str:
    """Cut *content* to roughly *max_tokens* (1 token ≈ 2 characters)."""
    max_chars = max_tokens * 2
    if len(content) <= max_chars:
        return content
    return content[:max_chars] + TRUNCATION_MARKER
