from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Set

from .fingerprint import FingerprintEntry, fingerprint
from .models import InstalledFolder

KEEP_FILE = ".keep"
VCS_MARKER = ".git"


def read_protected_names(installation_root: Path) -> Set[str]:
    """Folder names listed in the root's keep file, one per line."""

    keep_file = installation_root / KEEP_FILE
    if not keep_file.is_file():
        return set()

    names: Set[str] = set()
    with keep_file.open("r", encoding="utf-8", errors="ignore") as handle:
        for raw_line in handle:
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue
            names.add(line)
    return names


def is_protected(folder: Path, protected_names: Set[str]) -> bool:
    return (
        folder.name in protected_names
        or (folder / KEEP_FILE).is_file()
        or (folder / VCS_MARKER).is_dir()
    )


def scan_installed(installation_root: Path, variant: str) -> Set[InstalledFolder]:
    if not installation_root.is_dir():
        return set()

    protected_names = read_protected_names(installation_root)
    installed: Set[InstalledFolder] = set()
    for path in installation_root.iterdir():
        if not path.is_dir():
            continue
        installed.add(
            InstalledFolder(
                variant=variant,
                name=path.name,
                protected=is_protected(path, protected_names),
            )
        )
    return installed


def _tree_entries(installation_root: Path, folder: Path) -> List[FingerprintEntry]:
    entries: List[FingerprintEntry] = []
    for path in folder.rglob("*"):
        if not path.is_file():
            continue
        relative = path.relative_to(installation_root).as_posix()
        entries.append((relative, (lambda path=path: path.open("rb"))))
    return entries


def installed_fingerprint(installation_root: Path, folders: Iterable[str]) -> str | None:
    """Fingerprint the union of the given folders, or None if one is missing."""

    entries: List[FingerprintEntry] = []
    for name in sorted(folders):
        folder = installation_root / name
        if not folder.is_dir():
            return None
        entries.extend(_tree_entries(installation_root, folder))
    return fingerprint(entries)
