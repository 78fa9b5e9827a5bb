"""Core package for the addonsync archive reconciler."""

from .archive_cache import ArchiveCache, ArchiveIdentity
from .archive_inspector import discover_archive_files, inspect_archive, inspect_archives
from .downloader import refresh_archives
from .errors import (
    AddonSyncError,
    CorruptArchive,
    DownloadFailed,
    EmptyArchive,
    ExtractionFailed,
    InstallationNotFound,
)
from .fingerprint import fingerprint, fingerprint_bytes
from .installation import InstallationLocator
from .load_config import ProgramConfig, load_program_config
from .models import (
    ActionKind,
    Archive,
    ArchiveFailure,
    ExecutionReport,
    FailureKind,
    FolderAction,
    FolderClaim,
    InstalledFolder,
    Plan,
    RunReport,
)
from .plan_executor import execute_plan, extract_archive
from .reconcile import reconcile, run
from .reconciliation_planner import plan_reconciliation
from .report import export_report, print_plan_details
from .state_scanner import installed_fingerprint, read_protected_names, scan_installed

__all__ = [
    "ActionKind",
    "AddonSyncError",
    "Archive",
    "ArchiveCache",
    "ArchiveFailure",
    "ArchiveIdentity",
    "CorruptArchive",
    "DownloadFailed",
    "EmptyArchive",
    "ExecutionReport",
    "ExtractionFailed",
    "FailureKind",
    "FolderAction",
    "FolderClaim",
    "InstallationLocator",
    "InstallationNotFound",
    "InstalledFolder",
    "Plan",
    "ProgramConfig",
    "RunReport",
    "discover_archive_files",
    "execute_plan",
    "export_report",
    "extract_archive",
    "fingerprint",
    "fingerprint_bytes",
    "inspect_archive",
    "inspect_archives",
    "installed_fingerprint",
    "load_program_config",
    "plan_reconciliation",
    "print_plan_details",
    "read_protected_names",
    "reconcile",
    "refresh_archives",
    "run",
    "scan_installed",
]
