from __future__ import annotations

from pathlib import Path
from typing import Any, List

from openpyxl import Workbook

from .logging_utils import log_conflict, log_info, log_ok, log_warn
from .models import Archive, Plan, RunReport


def print_plan_details(plan: Plan) -> None:
    if plan.conflict_groups:
        log_conflict("Folders claimed by more than one archive:")
        for claim, group in plan.conflict_groups.items():
            details = "; ".join(archive.name for archive in group)
            log_conflict(f"{claim.label}: {details}", indent=2)
    else:
        log_ok("No folder conflicts found.")

    if plan.held:
        log_warn("Archives targeting protected folders:")
        for archive in plan.held:
            log_warn(f"{archive.label}: {', '.join(sorted(archive.folders))}", indent=2)

    if plan.to_install:
        log_info("Pending installs:")
        for archive in plan.to_install:
            log_info(f"{archive.label}: {', '.join(sorted(archive.folders))}", indent=2)

    if plan.to_remove:
        log_info("Pending removals:")
        for claim in plan.to_remove:
            log_info(claim.label, indent=2)

    log_info(
        f"{len(plan.current)} of {plan.total_archives} archive(s) already current."
    )


def _archive_status(archive: Archive, plan: Plan) -> str:
    if archive in plan.conflicts:
        return "conflict"
    if archive in plan.held:
        return "protected"
    if archive in plan.to_install:
        return "install"
    return "current"


def _build_archive_rows(report: RunReport) -> List[List[Any]]:
    rows: List[List[Any]] = []
    for archive in report.archives:
        rows.append(
            [
                archive.variant,
                archive.name,
                ", ".join(sorted(archive.folders)),
                archive.fingerprint,
                _archive_status(archive, report.plan),
            ]
        )
    return rows


def export_report(output_path: Path, report: RunReport) -> None:
    """Write an Excel workbook summarizing a reconciliation run."""

    output_path.parent.mkdir(parents=True, exist_ok=True)

    workbook = Workbook()

    # Archives sheet
    archives_sheet = workbook.active
    if not archives_sheet:
        archives_sheet = workbook.create_sheet("archives")
    else:
        archives_sheet.title = "archives"
    archives_sheet.append(["variant", "archive", "folders", "fingerprint", "status"])
    for row in _build_archive_rows(report):
        archives_sheet.append(row)

    # Actions sheet
    actions_sheet = workbook.create_sheet("actions")
    actions_sheet.append(["action", "variant", "folder", "archive"])
    for action in report.execution.actions:
        actions_sheet.append(
            [
                action.kind.value,
                action.variant,
                action.folder,
                action.archive.name if action.archive else "",
            ]
        )

    # Failures sheet
    failures_sheet = workbook.create_sheet("failures")
    failures_sheet.append(["kind", "variant", "archive", "message"])
    for failure in report.failures:
        failures_sheet.append(
            [failure.kind.value, failure.variant, failure.source_path.name, failure.message]
        )

    workbook.save(output_path)
    workbook.close()


__all__ = ["print_plan_details", "export_report"]
