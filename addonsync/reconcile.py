from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Set

from .archive_cache import ArchiveCache
from .archive_inspector import discover_archive_files, inspect_archives
from .downloader import refresh_archives
from .load_config import ProgramConfig
from .logging_utils import log_info, log_warn
from .models import Archive, ArchiveFailure, InstalledFolder, RunReport
from .plan_executor import execute_plan
from .reconciliation_planner import plan_reconciliation
from .report import print_plan_details
from .state_scanner import installed_fingerprint, scan_installed

Scanner = Callable[[Path, str], Set[InstalledFolder]]
TreeFingerprint = Callable[[Path, Iterable[str]], Optional[str]]


def reconcile(
    archives: Iterable[Archive],
    installation_roots: Mapping[str, Path],
    dry_run: bool = False,
    verbose_plan: bool = False,
    inspection_failures: List[ArchiveFailure] | None = None,
    scanner: Scanner = scan_installed,
    tree_fingerprint: TreeFingerprint = installed_fingerprint,
) -> RunReport:
    """Plan and apply the changes for a complete, already inspected archive set."""

    archive_list = list(archives)
    unknown = sorted({archive.variant for archive in archive_list} - set(installation_roots))
    if unknown:
        raise ValueError(f"No installation root given for variant(s): {', '.join(unknown)}")

    installed: Set[InstalledFolder] = set()
    for variant, root in installation_roots.items():
        installed |= scanner(root, variant)

    def lookup(variant: str, folders: FrozenSet[str]) -> str | None:
        return tree_fingerprint(installation_roots[variant], folders)

    log_info("Installing updates...")
    plan = plan_reconciliation(archive_list, installed, lookup)
    if verbose_plan:
        print_plan_details(plan)
    execution = execute_plan(plan, installation_roots, dry_run=dry_run)
    return RunReport(
        archives=archive_list,
        plan=plan,
        execution=execution,
        inspection_failures=list(inspection_failures or []),
    )


def run(
    config: ProgramConfig,
    dry_run: bool = False,
    skip_download: bool = False,
    verbose_plan: bool = False,
) -> RunReport:
    """Full run: refresh downloads, inspect archives, then reconcile every variant."""

    # Resolve first so a missing installation aborts before anything is touched.
    installation_roots: Dict[str, Path] = config.locator().resolve_all(config.variants)

    if not skip_download and not dry_run:
        refresh_archives(
            archive_root=config.archive_root,
            manifest_path=config.manifest_path,
            interval_minutes=config.check_interval_minutes,
            workers=config.workers,
        )

    sources = discover_archive_files(config.archive_root, config.variants)
    if not sources:
        log_warn(f"No archives found under {config.archive_root}.")
    else:
        log_info(f"Found {len(sources)} archive(s) in {config.archive_root}.")

    cache = ArchiveCache(config.cache_path)
    archives, failures = inspect_archives(sources, cache=cache, workers=config.workers)
    cache.save()

    return reconcile(
        archives,
        installation_roots,
        dry_run=dry_run,
        verbose_plan=verbose_plan,
        inspection_failures=failures,
    )
