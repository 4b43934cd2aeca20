"""
Simple CLI for running extractions locally.

Usage:
    cra-assistant criteria path/to/protocol.pdf
    cra-assistant visits path/to/protocol.pdf --output schedule.json
    cra-assistant medications records/*.pdf
    cra-assistant subject record.pdf --schedule schedule.json
    cra-assistant check
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError
from pydantic_core import to_json
from rich.console import Console
from rich.table import Table

from cra_assistant.schemas.errors import AppError, ErrorSeverity
from cra_assistant.schemas.extraction import CriteriaSet, MedicationRecord, PromptKind, VisitSchedule
from cra_assistant.schemas.result import Err

console = Console()

_SEVERITY_COLOR = {
    ErrorSeverity.CRITICAL: "red",
    ErrorSeverity.WARNING: "yellow",
    ErrorSeverity.INFO: "cyan",
}


def app() -> None:
    import argparse

    parser = argparse.ArgumentParser(
        prog="cra-assistant",
        description="Clinical trial protocol and subject record extraction",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_criteria = sub.add_parser("criteria", help="Extract inclusion/exclusion criteria from a protocol")
    p_criteria.add_argument("protocol", type=Path, help="Protocol file (.pdf, .txt or image)")
    p_criteria.add_argument("--output", type=Path, help="Write JSON output to this file")

    p_visits = sub.add_parser("visits", help="Extract the visit schedule from a protocol")
    p_visits.add_argument("protocol", type=Path, help="Protocol file (.pdf, .txt or image)")
    p_visits.add_argument("--output", type=Path, help="Write JSON output to this file")

    p_meds = sub.add_parser("medications", help="Recognise medications in subject records")
    p_meds.add_argument("records", type=Path, nargs="+", help="One file per subject")
    p_meds.add_argument("--output", type=Path, help="Write JSON output to this file")

    p_subject = sub.add_parser("subject", help="Match a subject record against a visit schedule")
    p_subject.add_argument("record", type=Path, help="Subject medical record")
    p_subject.add_argument("--schedule", type=Path, required=True, help="JSON written by `visits --output`")
    p_subject.add_argument("--output", type=Path, help="Write JSON output to this file")

    sub.add_parser("check", help="Test the API credential and connection")

    args = parser.parse_args()

    from cra_assistant.logging import configure_logging

    configure_logging()

    commands = {
        "criteria": _cmd_criteria,
        "visits": _cmd_visits,
        "medications": _cmd_medications,
        "subject": _cmd_subject,
        "check": _cmd_check,
    }
    sys.exit(asyncio.run(commands[args.command](args)))


def _gateway():
    from cra_assistant.config import settings
    from cra_assistant.gateway.client import GatewayClient

    return GatewayClient(settings.gateway_config())


def _read(path: Path) -> str | None:
    from cra_assistant.pipeline.text_extractor import DocumentError, load_text

    try:
        return load_text(path)
    except DocumentError as exc:
        console.print(f"[red]{exc}[/red]")
        return None


async def _cmd_criteria(args) -> int:
    text = _read(args.protocol)
    if text is None:
        return 1

    console.print(f"[bold]Extracting criteria:[/bold] {args.protocol}")
    async with _gateway() as gateway:
        result = await gateway.extract_criteria(text)
    if isinstance(result, Err):
        return _print_error(result.error)

    criteria: CriteriaSet = result.value
    for title, items, style in (
        ("Inclusion criteria", criteria.inclusion, "green"),
        ("Exclusion criteria", criteria.exclusion, "red"),
    ):
        table = Table(title=title, title_style=f"bold {style}")
        table.add_column("#", style="dim")
        table.add_column("Category")
        table.add_column("Description")
        for c in items:
            table.add_row(c.number, c.category or "-", c.description)
        console.print(table)

    _write(args.output, criteria)
    return 0


async def _cmd_visits(args) -> int:
    text = _read(args.protocol)
    if text is None:
        return 1

    console.print(f"[bold]Extracting visit schedule:[/bold] {args.protocol}")
    async with _gateway() as gateway:
        result = await gateway.extract_visit_schedule(text)
    if isinstance(result, Err):
        return _print_error(result.error)

    visits: list[VisitSchedule] = result.value
    table = Table(title=f"Visit schedule: {args.protocol.name}")
    table.add_column("ID", style="dim")
    table.add_column("Visit")
    table.add_column("Window")
    table.add_column("Procedures", justify="right")
    table.add_column("Assessments", justify="right")
    for v in visits:
        table.add_row(
            v.id,
            f"{v.visit_number} {v.visit_name}",
            f"{v.window_start} ~ {v.window_end}",
            str(len(v.procedures)),
            str(len(v.assessments)),
        )
    console.print(table)

    _write(args.output, visits)
    return 0


async def _cmd_medications(args) -> int:
    from cra_assistant.pipeline.subjects import run_subject_files

    async with _gateway() as gateway:
        outcomes = await run_subject_files(gateway, args.records, PromptKind.MEDICATIONS)

    report: dict[str, Any] = {}
    for outcome in outcomes:
        if outcome.load_error:
            console.print(f"[yellow]Skipped {outcome.source}:[/yellow] {outcome.load_error}")
            continue
        if outcome.error is not None:
            console.print(f"[yellow]Skipped {outcome.source}:[/yellow] {outcome.error.user_message}")
            continue

        medications: list[MedicationRecord] = outcome.result.value
        report[outcome.source] = medications
        table = Table(title=f"Medications: {outcome.source}")
        table.add_column("Medication")
        table.add_column("Dose")
        table.add_column("Frequency")
        table.add_column("Route")
        table.add_column("Start")
        table.add_column("End")
        table.add_column("Confidence")
        for m in medications:
            table.add_row(
                m.medication_name,
                m.dosage,
                m.frequency,
                m.route,
                str(m.start_date or "?"),
                str(m.end_date or "ongoing"),
                m.confidence.value,
            )
        console.print(table)

    console.print(f"\nSubjects processed: {len(report)}/{len(outcomes)}")
    _write(args.output, report)
    return 0 if report else 1


async def _cmd_subject(args) -> int:
    from cra_assistant.pipeline.subjects import summarize_visit_items, summarize_visit_schedule

    try:
        visits = TypeAdapter(list[VisitSchedule]).validate_json(args.schedule.read_bytes())
    except (OSError, ValidationError) as exc:
        console.print(f"[red]Invalid --schedule file: {exc}[/red]")
        return 1

    text = _read(args.record)
    if text is None:
        return 1

    async with _gateway() as gateway:
        number, dates, items = await asyncio.gather(
            gateway.extract_subject_number(text),
            gateway.extract_subject_visit_dates(text, summarize_visit_schedule(visits)),
            gateway.extract_subject_visit_items(text, summarize_visit_items(visits)),
        )

    failures = [r.error for r in (number, dates, items) if isinstance(r, Err)]
    for error in failures:
        _print_error(error)
    if len(failures) == 3:
        return 1

    if not isinstance(number, Err):
        console.print(f"[bold]Subject number:[/bold] {number.value or '?'}")

    names = {v.id: f"{v.visit_number} {v.visit_name}" for v in visits}
    if not isinstance(dates, Err):
        table = Table(title="Visit dates")
        table.add_column("Visit")
        table.add_column("Date")
        table.add_column("Status")
        for d in dates.value:
            table.add_row(names.get(d.visit_schedule_id, d.visit_schedule_id), d.actual_visit_date or "-", d.status)
        console.print(table)

    if not isinstance(items, Err):
        table = Table(title="Visit items")
        table.add_column("Visit")
        table.add_column("Item")
        table.add_column("Date")
        table.add_column("Status")
        for i in items.value:
            table.add_row(names.get(i.visit_schedule_id, i.visit_schedule_id), i.item_name, i.actual_date or "-", i.status)
        console.print(table)

    _write(args.output, {
        "subject_number": None if isinstance(number, Err) else number.value,
        "visits": None if isinstance(dates, Err) else dates.value,
        "items": None if isinstance(items, Err) else items.value,
    })
    return 0


async def _cmd_check(args) -> int:
    async with _gateway() as gateway:
        result = await gateway.test_connection()
    if isinstance(result, Err):
        return _print_error(result.error)
    console.print(f"[green]API connection OK[/green] ({gateway.config.model}): {result.value}")
    return 0


def _print_error(error: AppError) -> int:
    color = _SEVERITY_COLOR[error.severity]
    console.print(f"[{color}]{error.user_message}[/{color}]")
    console.print(f"[dim]{error.code}: {error.technical_message[:300]}[/dim]")
    return 1


def _write(output: Path | None, value: Any) -> None:
    if output is None:
        return
    output.write_text(to_json(value, indent=2).decode("utf-8"), encoding="utf-8")
    console.print(f"[green]JSON written to {output}[/green]")


if __name__ == "__main__":
    app()
