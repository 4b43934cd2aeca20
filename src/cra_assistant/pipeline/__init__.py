from cra_assistant.pipeline.subjects import (
    SubjectOutcome,
    run_subject_batch,
    run_subject_files,
    summarize_visit_items,
    summarize_visit_schedule,
)
from cra_assistant.pipeline.text_extractor import DocumentError, load_document, load_text

__all__ = [
    "DocumentError",
    "SubjectOutcome",
    "load_document",
    "load_text",
    "run_subject_batch",
    "run_subject_files",
    "summarize_visit_items",
    "summarize_visit_schedule",
]
