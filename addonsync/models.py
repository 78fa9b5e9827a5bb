from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, List


class FailureKind(str, Enum):
    CORRUPT = "corrupt_archive"
    EMPTY = "empty_archive"
    EXTRACTION = "extraction_failed"


class ActionKind(str, Enum):
    NEW = "new"
    REPLACED = "replaced"
    REMOVED = "removed"


@dataclass(frozen=True, slots=True)
class FolderClaim:
    variant: str
    folder: str

    @property
    def label(self) -> str:
        return f"{self.variant}/{self.folder}"


@dataclass(frozen=True, slots=True)
class Archive:
    source_path: Path
    variant: str
    folders: FrozenSet[str]
    fingerprint: str

    def __post_init__(self) -> None:
        if not self.folders:
            raise ValueError(f"Archive {self.source_path} claims no top-level folder")

    @property
    def name(self) -> str:
        return self.source_path.name

    @property
    def label(self) -> str:
        return f"{self.variant}/{self.name}"

    def claims(self) -> List[FolderClaim]:
        return [FolderClaim(self.variant, folder) for folder in sorted(self.folders)]


@dataclass(frozen=True, slots=True)
class InstalledFolder:
    variant: str
    name: str
    protected: bool = False

    @property
    def claim(self) -> FolderClaim:
        return FolderClaim(self.variant, self.name)


@dataclass(slots=True)
class ArchiveFailure:
    source_path: Path
    variant: str
    kind: FailureKind
    message: str

    @property
    def label(self) -> str:
        return f"{self.variant}/{self.source_path.name}"


@dataclass(slots=True)
class Plan:
    conflicts: List[Archive] = field(default_factory=list)
    conflict_groups: Dict[FolderClaim, List[Archive]] = field(default_factory=dict)
    to_install: List[Archive] = field(default_factory=list)
    current: List[Archive] = field(default_factory=list)
    held: List[Archive] = field(default_factory=list)
    to_remove: List[FolderClaim] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.to_install and not self.to_remove

    @property
    def total_archives(self) -> int:
        return len(self.conflicts) + len(self.to_install) + len(self.current) + len(self.held)


@dataclass(slots=True)
class FolderAction:
    kind: ActionKind
    variant: str
    folder: str
    archive: Archive | None = None

    @property
    def label(self) -> str:
        return f"{self.variant}/{self.folder}"


@dataclass(slots=True)
class ExecutionReport:
    actions: List[FolderAction] = field(default_factory=list)
    installed: List[Archive] = field(default_factory=list)
    failures: List[ArchiveFailure] = field(default_factory=list)
    dry_run: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.actions)

    def actions_of(self, kind: ActionKind) -> List[FolderAction]:
        return [action for action in self.actions if action.kind == kind]


@dataclass(slots=True)
class RunReport:
    archives: List[Archive]
    plan: Plan
    execution: ExecutionReport
    inspection_failures: List[ArchiveFailure] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.execution.changed

    @property
    def failures(self) -> List[ArchiveFailure]:
        return [*self.inspection_failures, *self.execution.failures]
