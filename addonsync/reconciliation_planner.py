from __future__ import annotations

from collections import defaultdict
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Set

from .logging_utils import log_conflict, log_warn
from .models import Archive, FolderClaim, InstalledFolder, Plan

InstalledFingerprint = Callable[[str, FrozenSet[str]], Optional[str]]


def _archive_order(archive: Archive) -> tuple[str, str]:
    return archive.variant, str(archive.source_path)


def group_claims(archives: Iterable[Archive]) -> Dict[FolderClaim, List[Archive]]:
    """Group archives by every (variant, folder) pair they contain."""

    grouped: Dict[FolderClaim, List[Archive]] = defaultdict(list)
    for archive in archives:
        if not archive.folders:
            raise ValueError(f"Archive {archive.source_path} claims no top-level folder")
        for claim in archive.claims():
            grouped[claim].append(archive)
    return grouped


def detect_conflicts(grouped: Dict[FolderClaim, List[Archive]]) -> Dict[FolderClaim, List[Archive]]:
    conflicts: Dict[FolderClaim, List[Archive]] = {}
    for claim, group in grouped.items():
        if len(group) > 1:
            conflicts[claim] = sorted(group, key=_archive_order)
    return conflicts


def plan_reconciliation(
    archives: Iterable[Archive],
    installed: Iterable[InstalledFolder],
    installed_fingerprint: InstalledFingerprint,
) -> Plan:
    """Decide which archives to install and which folders to remove.

    Archives sharing a folder are all set aside as conflicts; nothing picks a
    winner between them. Their folders still count as claimed, so an
    unresolved conflict never deletes anything. An archive is current only
    when the fingerprint over the union of its folders matches.
    """

    archive_list = sorted(set(archives), key=_archive_order)
    installed_list = list(installed)
    grouped = group_claims(archive_list)
    conflict_groups = detect_conflicts(grouped)

    conflicting: Set[Archive] = {
        archive for group in conflict_groups.values() for archive in group
    }
    protected: Set[FolderClaim] = {
        folder.claim for folder in installed_list if folder.protected
    }

    ordered_groups = sorted(conflict_groups.items(), key=lambda item: (item[0].variant, item[0].folder))
    plan = Plan(conflict_groups=dict(ordered_groups))
    for archive in archive_list:
        if archive in conflicting:
            plan.conflicts.append(archive)
            log_conflict(f"{archive.label} conflicts!")
            continue

        held_claims = [claim for claim in archive.claims() if claim in protected]
        if held_claims:
            names = ", ".join(claim.folder for claim in held_claims)
            log_warn(f"{archive.label} targets protected folder(s) {names}. Leaving it alone.")
            plan.held.append(archive)
            continue

        current = installed_fingerprint(archive.variant, archive.folders)
        if current is None or current != archive.fingerprint:
            plan.to_install.append(archive)
        else:
            plan.current.append(archive)

    claimed = set(grouped)
    plan.to_remove = sorted(
        (
            folder.claim
            for folder in installed_list
            if not folder.protected and folder.claim not in claimed
        ),
        key=lambda claim: (claim.variant, claim.folder),
    )
    return plan
