from __future__ import annotations

import shutil
import zipfile
from pathlib import Path
from typing import Mapping

from .archive_inspector import ZIP_READ_ERRORS, is_directory_entry, is_loose_file
from .errors import ExtractionFailed
from .file_utils import ensure_directory, remove_tree
from .logging_utils import log_error, log_info, log_new, log_removed, log_replaced
from .models import (
    ActionKind,
    Archive,
    ArchiveFailure,
    ExecutionReport,
    FailureKind,
    FolderAction,
    Plan,
)
from .path_utils import is_unsafe_member, split_segments


def extract_archive(archive: Archive, installation_root: Path) -> None:
    """Unpack every member of the archive below the installation root.

    Loose files at the archive root are left out, as they are at inspection.
    """

    path = archive.source_path
    try:
        with zipfile.ZipFile(path) as bundle:
            infos = bundle.infolist()
            unsafe = [info.filename for info in infos if is_unsafe_member(info.filename)]
            if unsafe:
                raise ExtractionFailed(path, f"entry '{unsafe[0]}' points outside the installation")

            ensure_directory(installation_root)
            for info in infos:
                if is_loose_file(info):
                    continue
                target = installation_root.joinpath(*split_segments(info.filename))
                if is_directory_entry(info):
                    ensure_directory(target)
                    continue
                ensure_directory(target.parent)
                with bundle.open(info) as source, target.open("wb") as destination:
                    shutil.copyfileobj(source, destination)
    except ZIP_READ_ERRORS as exc:
        raise ExtractionFailed(path, str(exc) or type(exc).__name__) from exc


def _install(
    archive: Archive,
    installation_root: Path,
    report: ExecutionReport,
    dry_run: bool,
) -> None:
    log_info(f"Installing {archive.label}")
    for folder in sorted(archive.folders):
        target = installation_root / folder
        label = f"{archive.variant}/{folder}"
        if target.is_dir():
            log_replaced(label, indent=2)
            if not dry_run:
                try:
                    remove_tree(target)
                except OSError as exc:
                    raise ExtractionFailed(archive.source_path, f"cannot remove {label}: {exc}") from exc
            report.actions.append(FolderAction(ActionKind.REPLACED, archive.variant, folder, archive))
        else:
            log_new(label, indent=2)
            report.actions.append(FolderAction(ActionKind.NEW, archive.variant, folder, archive))

    if dry_run:
        return
    extract_archive(archive, installation_root)
    report.installed.append(archive)


def execute_plan(
    plan: Plan,
    installation_roots: Mapping[str, Path],
    dry_run: bool = False,
) -> ExecutionReport:
    """Apply a plan: replace stale folders, extract archives, then remove orphans.

    Extraction errors stay with their archive. The remaining archives and the
    removals still run, and the failed archive is retried on the next run
    because its installed fingerprint will not match.
    """

    report = ExecutionReport(dry_run=dry_run)

    for archive in plan.to_install:
        installation_root = installation_roots[archive.variant]
        try:
            _install(archive, installation_root, report, dry_run)
        except ExtractionFailed as exc:
            log_error(f"Failed to extract {archive.label}: {exc.reason}", indent=2)
            report.failures.append(
                ArchiveFailure(
                    source_path=archive.source_path,
                    variant=archive.variant,
                    kind=FailureKind.EXTRACTION,
                    message=exc.reason,
                )
            )

    for claim in plan.to_remove:
        target = installation_roots[claim.variant] / claim.folder
        log_removed(claim.label)
        if not dry_run and not remove_tree(target):
            log_info(f"{claim.label} was already gone.", indent=2)
        report.actions.append(FolderAction(ActionKind.REMOVED, claim.variant, claim.folder))

    if dry_run and report.changed:
        log_info("Dry run active. No file changes were made.")
    return report
