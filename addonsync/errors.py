from __future__ import annotations

from pathlib import Path


class AddonSyncError(Exception):
    """Base class for every error raised by addonsync."""


class ArchiveError(AddonSyncError):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"{path.name}: {reason}")
        self.path = path
        self.reason = reason


class CorruptArchive(ArchiveError):
    pass


class EmptyArchive(ArchiveError):
    pass


class ExtractionFailed(ArchiveError):
    pass


class DownloadFailed(AddonSyncError):
    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class InstallationNotFound(AddonSyncError):
    def __init__(self, variant: str, path: Path) -> None:
        super().__init__(f"Installation for variant '{variant}' not found at {path}")
        self.variant = variant
        self.path = path
