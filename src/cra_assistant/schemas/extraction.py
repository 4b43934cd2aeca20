"""Schemas for extraction requests and the kind-specific extraction outputs."""

from datetime import date
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class PromptKind(StrEnum):
    CRITERIA = "criteria"
    VISIT_SCHEDULE = "visit_schedule"
    MEDICATIONS = "medications"
    SUBJECT_NUMBER = "subject_number"
    SUBJECT_VISIT_DATES = "subject_visit_dates"
    SUBJECT_VISIT_ITEMS = "subject_visit_items"


class ExtractionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw_text: str
    prompt_kind: PromptKind
    params: dict[str, str] = Field(default_factory=dict)


class ReviewFlags(BaseModel):
    """Review state carried by every extracted item."""
    ai_extracted: bool = True      # produced by the model
    user_confirmed: bool = False   # reviewer has accepted it


# ---------------------------------------------------------------------------
# Criteria (protocol)
# ---------------------------------------------------------------------------

class Criterion(ReviewFlags):
    id: str = Field(description="Stable identifier, e.g. 'inc_001'")
    number: str
    description: str = Field(description="Verbatim criterion text from the protocol")
    category: str = ""
    notes: str = ""


class CriteriaSet(BaseModel):
    inclusion: list[Criterion] = Field(default_factory=list)
    exclusion: list[Criterion] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Visit schedule (protocol)
# ---------------------------------------------------------------------------

class ProcedureCategory(StrEnum):
    SCREENING = "screening"
    TREATMENT = "treatment"
    FOLLOW_UP = "follow-up"
    OTHER = "other"


class AssessmentType(StrEnum):
    VITAL = "vital"
    LAB = "lab"
    ECG = "ecg"
    IMAGING = "imaging"
    QUESTIONNAIRE = "questionnaire"
    OTHER = "other"


class Procedure(BaseModel):
    id: str
    name: str
    category: ProcedureCategory = ProcedureCategory.OTHER
    timing: str = ""
    required: bool = True


class Assessment(BaseModel):
    id: str
    name: str
    type: AssessmentType = AssessmentType.OTHER
    timing: str = ""
    required: bool = True


class VisitSchedule(ReviewFlags):
    id: str
    visit_number: str
    visit_name: str
    window_start: str = ""   # protocol wording, e.g. "Day -28"
    window_end: str = ""
    procedures: list[Procedure] = Field(default_factory=list)
    assessments: list[Assessment] = Field(default_factory=list)
    notes: str = ""


# ---------------------------------------------------------------------------
# Medications (subject records)
# ---------------------------------------------------------------------------

class Confidence(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class MedicationRecord(ReviewFlags):
    id: str
    medication_name: str
    dosage: str = ""
    frequency: str = ""
    route: str = ""
    start_date: date | None = None
    end_date: date | None = None   # None also covers "ongoing"
    indication: str = ""
    confidence: Confidence = Confidence.LOW
    notes: str = ""


# ---------------------------------------------------------------------------
# Subject visits (subject records matched against the schedule)
# ---------------------------------------------------------------------------

class SubjectVisit(ReviewFlags):
    visit_schedule_id: str
    actual_visit_date: str | None = None
    status: str = "unknown"
    notes: str = ""


class SubjectVisitItem(ReviewFlags):
    visit_schedule_id: str
    item_name: str
    item_type: str = ""
    actual_date: str | None = None
    status: str = "unknown"
    notes: str = ""
