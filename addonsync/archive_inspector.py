from __future__ import annotations

import zipfile
import zlib
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Sequence

from .archive_cache import ArchiveCache, ArchiveIdentity
from .errors import ArchiveError, CorruptArchive, EmptyArchive
from .fingerprint import fingerprint
from .logging_utils import log_error, log_info, log_warn
from .models import Archive, ArchiveFailure, FailureKind
from .path_utils import is_unsafe_member, split_segments, top_level_segment

ARCHIVE_SUFFIX = ".zip"
DISABLED_PREFIX = "_"
DEFAULT_WORKERS = 4

# Raised while opening or reading members: encrypted entries give RuntimeError,
# damaged compressed streams zlib.error.
ZIP_READ_ERRORS = (
    zipfile.BadZipFile,
    zipfile.LargeZipFile,
    NotImplementedError,
    RuntimeError,
    zlib.error,
    OSError,
    EOFError,
)


def discover_archive_files(archive_root: Path, variants: Sequence[str]) -> List[tuple[str, Path]]:
    """Return every enabled archive under ``<archive_root>/<variant>``."""

    files: List[tuple[str, Path]] = []
    for variant in variants:
        variant_dir = archive_root / variant
        if not variant_dir.is_dir():
            continue
        for path in sorted(variant_dir.iterdir()):
            if not path.is_file():
                continue
            if path.suffix.lower() != ARCHIVE_SUFFIX:
                continue
            if path.name.startswith(DISABLED_PREFIX):
                continue
            files.append((variant, path))
    return files


def is_directory_entry(info: zipfile.ZipInfo) -> bool:
    # some tools write directory placeholders with backslashes
    return info.is_dir() or info.filename.endswith("\\")


def is_loose_file(info: zipfile.ZipInfo) -> bool:
    return not is_directory_entry(info) and len(split_segments(info.filename)) < 2


def inspect_archive(path: Path, variant: str) -> Archive:
    """Read an archive's top-level folders and content fingerprint.

    Files lying directly at the archive root belong to no folder. They are
    skipped with a warning, neither claimed nor hashed nor extracted.
    """

    try:
        with zipfile.ZipFile(path) as bundle:
            infos = bundle.infolist()

            folders: set[str] = set()
            members: List[zipfile.ZipInfo] = []
            for info in infos:
                name = info.filename
                if is_unsafe_member(name):
                    raise CorruptArchive(path, f"entry '{name}' points outside the archive")
                if is_loose_file(info):
                    log_warn(f"{variant}/{path.name}: skipping '{name}', it is not inside a top-level folder")
                    continue
                folders.add(top_level_segment(name))
                members.append(info)

            if not folders:
                raise EmptyArchive(path, "archive contains no top-level folder")

            entries = [
                (info.filename, (lambda info=info: bundle.open(info)))
                for info in members
                if not is_directory_entry(info)
            ]
            digest = fingerprint(entries)
    except ZIP_READ_ERRORS as exc:
        raise CorruptArchive(path, str(exc) or type(exc).__name__) from exc

    return Archive(
        source_path=path,
        variant=variant,
        folders=frozenset(folders),
        fingerprint=digest,
    )


def _failure_from(exc: ArchiveError, variant: str) -> ArchiveFailure:
    kind = FailureKind.EMPTY if isinstance(exc, EmptyArchive) else FailureKind.CORRUPT
    return ArchiveFailure(source_path=exc.path, variant=variant, kind=kind, message=exc.reason)


def _inspect_one(source: tuple[str, Path]) -> Archive | ArchiveFailure:
    variant, path = source
    try:
        return inspect_archive(path, variant)
    except (CorruptArchive, EmptyArchive) as exc:
        return _failure_from(exc, variant)


def inspect_archives(
    sources: Iterable[tuple[str, Path]],
    cache: ArchiveCache | None = None,
    workers: int = DEFAULT_WORKERS,
) -> tuple[List[Archive], List[ArchiveFailure]]:
    """Turn (variant, path) pairs into archives, reusing cached metadata.

    Cache misses are inspected in parallel. The call only returns once every
    inspection has finished.
    """

    archives: List[Archive] = []
    failures: List[ArchiveFailure] = []
    pending: List[tuple[str, Path]] = []
    identities: dict[Path, ArchiveIdentity] = {}

    for variant, path in sources:
        if cache is None:
            pending.append((variant, path))
            continue
        try:
            identity = ArchiveIdentity.from_path(path)
        except OSError as exc:
            failures.append(ArchiveFailure(path, variant, FailureKind.CORRUPT, str(exc)))
            log_error(f"{variant}/{path.name} cannot be read: {exc}")
            continue
        identities[path] = identity
        cached = cache.lookup(identity)
        if cached is None:
            pending.append((variant, path))
            continue
        archives.append(
            Archive(
                source_path=path,
                variant=variant,
                folders=cached.folders,
                fingerprint=cached.fingerprint,
            )
        )

    if pending:
        log_info(f"Inspecting {len(pending)} archive(s)...")
        with ThreadPoolExecutor(max_workers=max(workers, 1)) as executor:
            results = list(executor.map(_inspect_one, pending))

        for result in results:
            if isinstance(result, ArchiveFailure):
                log_error(f"{result.label} is unusable: {result.message}")
                failures.append(result)
                continue
            archives.append(result)
            identity = identities.get(result.source_path)
            if cache is not None and identity is not None:
                cache.store(identity, result.folders, result.fingerprint)

    archives.sort(key=lambda item: (item.variant, str(item.source_path)))
    failures.sort(key=lambda item: (item.variant, str(item.source_path)))
    return archives, failures
