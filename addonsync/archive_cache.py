from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Iterable

import toml

from .file_utils import ensure_directory
from .logging_utils import log_warn

CACHE_FORMAT = 1


@dataclass(frozen=True, slots=True)
class ArchiveIdentity:
    """Changes whenever the bytes of the archive file may have changed."""

    path: str
    size: int
    mtime_ns: int

    @classmethod
    def from_path(cls, path: Path) -> "ArchiveIdentity":
        stat = path.stat()
        return cls(path=str(path.resolve()), size=stat.st_size, mtime_ns=stat.st_mtime_ns)


@dataclass(frozen=True, slots=True)
class CachedArchive:
    folders: FrozenSet[str]
    fingerprint: str


class ArchiveCache:
    """Previously computed archive metadata, persisted as a TOML document."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._records: Dict[str, tuple[ArchiveIdentity, CachedArchive]] = {}
        self._seen: set[str] = set()
        self._dirty = False
        self._load()

    def __len__(self) -> int:
        return len(self._records)

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            document = toml.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, toml.TomlDecodeError) as exc:
            log_warn(f"Ignoring unreadable archive cache {self.path}: {exc}")
            self._dirty = True
            return

        if document.get("format") != CACHE_FORMAT:
            log_warn(f"Archive cache {self.path} has an unknown format. Rebuilding it.")
            self._dirty = True
            return

        try:
            records = [self._parse_record(raw) for raw in document.get("archives", [])]
        except (KeyError, TypeError, ValueError) as exc:
            log_warn(f"Archive cache {self.path} is malformed ({exc}). Rebuilding it.")
            self._dirty = True
            return

        for identity, cached in records:
            self._records[identity.path] = (identity, cached)

    @staticmethod
    def _parse_record(raw: dict) -> tuple[ArchiveIdentity, CachedArchive]:
        identity = ArchiveIdentity(
            path=str(raw["path"]),
            size=int(raw["size"]),
            mtime_ns=int(raw["mtime_ns"]),
        )
        folders = frozenset(str(folder) for folder in raw["folders"])
        fingerprint = str(raw["fingerprint"])
        if not folders or not fingerprint:
            raise ValueError(f"incomplete record for {identity.path}")
        return identity, CachedArchive(folders=folders, fingerprint=fingerprint)

    def lookup(self, identity: ArchiveIdentity) -> CachedArchive | None:
        self._seen.add(identity.path)
        record = self._records.get(identity.path)
        if record is None:
            return None
        stored_identity, cached = record
        if stored_identity != identity:
            return None
        return cached

    def store(self, identity: ArchiveIdentity, folders: Iterable[str], fingerprint: str) -> None:
        self._seen.add(identity.path)
        self._records[identity.path] = (
            identity,
            CachedArchive(folders=frozenset(folders), fingerprint=fingerprint),
        )
        self._dirty = True

    def save(self) -> None:
        """Write the cache, keeping only archives looked up or stored in this run."""

        stale = [path for path in self._records if path not in self._seen]
        for path in stale:
            del self._records[path]
        if not stale and not self._dirty and self.path.exists():
            return

        archives = []
        for path in sorted(self._records):
            identity, cached = self._records[path]
            archives.append(
                {
                    "path": identity.path,
                    "size": identity.size,
                    "mtime_ns": identity.mtime_ns,
                    "folders": sorted(cached.folders),
                    "fingerprint": cached.fingerprint,
                }
            )
        ensure_directory(self.path.parent)
        self.path.write_text(toml.dumps({"format": CACHE_FORMAT, "archives": archives}), encoding="utf-8")
        self._dirty = False
