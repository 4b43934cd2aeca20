"""
Map the model's generic JSON into the typed extraction outputs.

Every item comes out stamped ``ai_extracted=True, user_confirmed=False``.
Items that are not objects or lack their essential text are skipped with a
warning; the rest of the list is kept.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Callable

from cra_assistant.logging import log
from cra_assistant.schemas.extraction import (
    Assessment,
    AssessmentType,
    Confidence,
    CriteriaSet,
    Criterion,
    MedicationRecord,
    Procedure,
    ProcedureCategory,
    PromptKind,
    SubjectVisit,
    SubjectVisitItem,
    VisitSchedule,
)

_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%Y.%m.%d", "%Y%m%d")
_FALSE_WORDS = frozenset({"false", "no", "0"})


def to_criteria(data: dict[str, Any]) -> CriteriaSet:
    return CriteriaSet(
        inclusion=_criteria(data.get("inclusionCriteria"), "inc"),
        exclusion=_criteria(data.get("exclusionCriteria"), "exc"),
    )


def to_visit_schedule(data: dict[str, Any]) -> list[VisitSchedule]:
    visits: list[VisitSchedule] = []
    for i, item in enumerate(_items(data.get("visitSchedule"), "visitSchedule")):
        visit_id = f"visit_{i + 1:03d}"
        visits.append(VisitSchedule(
            id=visit_id,
            visit_number=_text(item.get("visitNumber")) or str(i + 1),
            visit_name=_text(item.get("visitName")),
            window_start=_text(item.get("windowStart")),
            window_end=_text(item.get("windowEnd")),
            procedures=[
                Procedure(
                    id=f"{visit_id}_proc_{j + 1:03d}",
                    name=name,
                    category=_enum(ProcedureCategory, p.get("category"), ProcedureCategory.OTHER),
                    timing=_text(p.get("timing")),
                    required=_flag(p.get("required")),
                )
                for j, (p, name) in enumerate(_named(item.get("procedures")))
            ],
            assessments=[
                Assessment(
                    id=f"{visit_id}_assess_{j + 1:03d}",
                    name=name,
                    type=_enum(AssessmentType, a.get("type"), AssessmentType.OTHER),
                    timing=_text(a.get("timing")),
                    required=_flag(a.get("required")),
                )
                for j, (a, name) in enumerate(_named(item.get("assessments")))
            ],
            notes=_text(item.get("notes")),
        ))
    return visits


def to_medications(data: dict[str, Any]) -> list[MedicationRecord]:
    medications: list[MedicationRecord] = []
    for i, item in enumerate(_items(data.get("medications"), "medications")):
        name = _text(item.get("medicationName"))
        if not name:
            log.warning("transform.skipped_item", kind="medications", index=i, reason="no medicationName")
            continue
        medications.append(MedicationRecord(
            id=f"med_{i + 1:03d}",
            medication_name=name,
            dosage=_text(item.get("dosage")),
            frequency=_text(item.get("frequency")),
            route=_text(item.get("route")),
            start_date=parse_date(item.get("startDate")),
            end_date=parse_date(item.get("endDate")),
            indication=_text(item.get("indication")),
            confidence=_enum(Confidence, item.get("confidence"), Confidence.LOW),
        ))
    return medications


def to_subject_number(data: dict[str, Any]) -> str:
    return _text(data.get("subjectNumber"))


def to_subject_visits(data: dict[str, Any]) -> list[SubjectVisit]:
    return [
        SubjectVisit(
            visit_schedule_id=_text(item.get("visitScheduleId")),
            actual_visit_date=_text(item.get("actualVisitDate")) or None,
            status=_text(item.get("status")) or "unknown",
            notes=_text(item.get("notes")),
        )
        for item in _items(data.get("visits"), "visits")
        if item.get("visitScheduleId")
    ]


def to_subject_visit_items(data: dict[str, Any]) -> list[SubjectVisitItem]:
    return [
        SubjectVisitItem(
            visit_schedule_id=_text(item.get("visitScheduleId")),
            item_name=_text(item.get("itemName")),
            item_type=_text(item.get("itemType")),
            actual_date=_text(item.get("actualDate")) or None,
            status=_text(item.get("status")) or "unknown",
            notes=_text(item.get("notes")),
        )
        for item in _items(data.get("items"), "items")
        if item.get("visitScheduleId") and item.get("itemName")
    ]


TRANSFORMS: dict[PromptKind, Callable[[dict[str, Any]], Any]] = {
    PromptKind.CRITERIA: to_criteria,
    PromptKind.VISIT_SCHEDULE: to_visit_schedule,
    PromptKind.MEDICATIONS: to_medications,
    PromptKind.SUBJECT_NUMBER: to_subject_number,
    PromptKind.SUBJECT_VISIT_DATES: to_subject_visits,
    PromptKind.SUBJECT_VISIT_ITEMS: to_subject_visit_items,
}


def parse_date(value: Any) -> date | None:
    """Parse a model-supplied date; anything unparseable becomes None."""
    text = _text(value)
    if not text:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    log.debug("transform.unparsed_date", value=text)
    return None


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------

def _criteria(raw: Any, prefix: str) -> list[Criterion]:
    criteria: list[Criterion] = []
    for i, item in enumerate(_items(raw, prefix)):
        description = _text(item.get("description"))
        if not description:
            log.warning("transform.skipped_item", kind=prefix, index=i, reason="no description")
            continue
        criteria.append(Criterion(
            id=f"{prefix}_{i + 1:03d}",
            number=_text(item.get("number")) or str(i + 1),
            description=description,
            category=_text(item.get("category")),
        ))
    return criteria


def _items(raw: Any, kind: str) -> list[dict[str, Any]]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        log.warning("transform.not_a_list", kind=kind, got=type(raw).__name__)
        return []
    items = [item for item in raw if isinstance(item, dict)]
    if len(items) != len(raw):
        log.warning("transform.skipped_non_objects", kind=kind, skipped=len(raw) - len(items))
    return items


def _named(raw: Any) -> list[tuple[dict[str, Any], str]]:
    """Procedures/assessments arrive as objects or, in terse answers, bare names."""
    if not isinstance(raw, list):
        return []
    named: list[tuple[dict[str, Any], str]] = []
    for entry in raw:
        if isinstance(entry, str) and entry.strip():
            named.append(({}, entry.strip()))
        elif isinstance(entry, dict) and _text(entry.get("name")):
            named.append((entry, _text(entry.get("name"))))
    return named


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _flag(value: Any) -> bool:
    """Missing means required; the model sometimes answers with strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_WORDS
    return bool(value)


def _enum(enum_cls, value: Any, default):
    try:
        return enum_cls(_text(value).lower())
    except ValueError:
        return default
