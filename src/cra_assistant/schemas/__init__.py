from cra_assistant.schemas.document import PageText, ParsedDocument, SourceType
from cra_assistant.schemas.errors import (
    AppError,
    ErrorCategory,
    ErrorCode,
    ErrorSeverity,
    NetworkCause,
)
from cra_assistant.schemas.extraction import (
    Assessment,
    AssessmentType,
    Confidence,
    CriteriaSet,
    Criterion,
    ExtractionRequest,
    MedicationRecord,
    Procedure,
    ProcedureCategory,
    PromptKind,
    SubjectVisit,
    SubjectVisitItem,
    VisitSchedule,
)
from cra_assistant.schemas.result import Err, GatewayError, Ok, Result

__all__ = [
    "AppError",
    "Assessment",
    "AssessmentType",
    "Confidence",
    "CriteriaSet",
    "Criterion",
    "Err",
    "ErrorCategory",
    "ErrorCode",
    "ErrorSeverity",
    "ExtractionRequest",
    "GatewayError",
    "MedicationRecord",
    "NetworkCause",
    "Ok",
    "PageText",
    "ParsedDocument",
    "Procedure",
    "ProcedureCategory",
    "PromptKind",
    "Result",
    "SourceType",
    "SubjectVisit",
    "SubjectVisitItem",
    "VisitSchedule",
]
