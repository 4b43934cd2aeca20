"""
Per-subject extraction over a batch of medical records.

Each record is an independent gateway call; all calls run concurrently and
share the gateway's rate limiter. A failed record (unreadable file or an Err
from the gateway) is reported in its outcome and the batch carries on.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from cra_assistant.gateway.client import GatewayClient
from cra_assistant.logging import log
from cra_assistant.pipeline.text_extractor import DocumentError, load_text
from cra_assistant.schemas.errors import AppError
from cra_assistant.schemas.extraction import PromptKind, VisitSchedule
from cra_assistant.schemas.result import Err, Result


@dataclass
class SubjectOutcome:
    source: str
    result: Result[Any] | None = None
    load_error: str | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None and self.result.is_ok

    @property
    def error(self) -> AppError | None:
        return self.result.error if isinstance(self.result, Err) else None


async def run_subject_batch(
    gateway: GatewayClient,
    records: dict[str, str],
    kind: PromptKind,
    extra_params: dict[str, str] | None = None,
) -> list[SubjectOutcome]:
    """Run *kind* over every ``source -> text`` entry in *records*."""

    async def one(source: str, text: str) -> SubjectOutcome:
        result = await gateway.extract(kind, text, extra_params)
        if isinstance(result, Err):
            log.warning(
                "subjects.skipped",
                source=source,
                code=result.error.code,
                error=result.error.technical_message,
            )
        return SubjectOutcome(source=source, result=result)

    outcomes = await asyncio.gather(*(one(source, text) for source, text in records.items()))
    log.info(
        "subjects.batch_done",
        kind=kind.value,
        total=len(outcomes),
        failed=sum(1 for o in outcomes if not o.ok),
    )
    return list(outcomes)


async def run_subject_files(
    gateway: GatewayClient,
    paths: list[Path],
    kind: PromptKind,
    extra_params: dict[str, str] | None = None,
) -> list[SubjectOutcome]:
    """Load each file and run *kind* over the readable ones."""
    records: dict[str, str] = {}
    unreadable: list[SubjectOutcome] = []
    for path in paths:
        try:
            records[str(path)] = load_text(path)
        except DocumentError as exc:
            log.warning("subjects.unreadable", source=str(path), error=str(exc))
            unreadable.append(SubjectOutcome(source=str(path), load_error=str(exc)))

    outcomes = await run_subject_batch(gateway, records, kind, extra_params) if records else []
    return outcomes + unreadable


# ---------------------------------------------------------------------------
# Schedule summaries fed into the subject prompts
# ---------------------------------------------------------------------------

def summarize_visit_schedule(visits: list[VisitSchedule]) -> str:
    """One line per visit: ``id: number - name - window``."""
    return "\n".join(
        f"{v.id}: {v.visit_number} - {v.visit_name} - {_window(v)}"
        for v in visits
    )


def summarize_visit_items(visits: list[VisitSchedule]) -> str:
    """One line per scheduled procedure/assessment: ``visit id: name - type``."""
    lines: list[str] = []
    for v in visits:
        lines.extend(f"{v.id}: {p.name} - procedure/{p.category.value}" for p in v.procedures)
        lines.extend(f"{v.id}: {a.name} - {a.type.value}" for a in v.assessments)
    return "\n".join(lines)


def _window(visit: VisitSchedule) -> str:
    if visit.window_start and visit.window_end:
        return f"{visit.window_start} ~ {visit.window_end}"
    return visit.window_start or visit.window_end or "n/a"
