from __future__ import annotations

import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path, PurePosixPath
from typing import List, Sequence
from urllib.parse import unquote, urlparse

import requests
import toml

from .archive_inspector import discover_archive_files
from .errors import DownloadFailed
from .file_utils import ensure_directory, remove_file
from .logging_utils import log_download, log_error, log_info

REQUEST_TIMEOUT = 30
CHUNK_SIZE = 8192
CONTENT_DISPOSITION_PATTERN = re.compile(
    r"filename\*?\s*=\s*(?:UTF-8'')?\"?([^\";]+)\"?", re.IGNORECASE
)


@dataclass(slots=True)
class ManifestEntry:
    url: str
    variant: str
    file: str | None = None
    size: int | None = None
    last_modified: str | None = None

    def to_record(self) -> dict:
        record = {"url": self.url, "variant": self.variant}
        if self.file is not None:
            record["file"] = self.file
        if self.size is not None:
            record["size"] = self.size
        if self.last_modified is not None:
            record["last_modified"] = self.last_modified
        return record


@dataclass(slots=True)
class DownloadManifest:
    path: Path
    entries: List[ManifestEntry] = field(default_factory=list)
    last_check: datetime | None = None

    @property
    def variants(self) -> List[str]:
        return sorted({entry.variant for entry in self.entries})

    def is_fresh(self, interval: timedelta, now: datetime) -> bool:
        return self.last_check is not None and now - self.last_check <= interval

    def save(self) -> None:
        document: dict = {}
        if self.last_check is not None:
            document["last_check"] = self.last_check.isoformat()
        document["addon"] = [entry.to_record() for entry in self.entries]
        ensure_directory(self.path.parent)
        self.path.write_text(toml.dumps(document), encoding="utf-8")


def _parse_timestamp(raw: object) -> datetime | None:
    if isinstance(raw, datetime):
        value = raw
    elif isinstance(raw, str):
        try:
            value = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _parse_int(raw: object) -> int | None:
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


def load_manifest(path: Path) -> DownloadManifest:
    if not path.exists():
        return DownloadManifest(path=path)

    raw_text = path.read_text(encoding="utf-8")
    try:
        document = toml.loads(raw_text)
    except toml.TomlDecodeError as exc:
        raise ValueError(f"Invalid TOML in download manifest: {path}") from exc

    entries: List[ManifestEntry] = []
    for raw in document.get("addon", []):
        if "url" not in raw or "variant" not in raw:
            raise ValueError(f"Every [[addon]] in {path} needs 'url' and 'variant'")
        entries.append(
            ManifestEntry(
                url=str(raw["url"]),
                variant=str(raw["variant"]),
                file=str(raw["file"]) if raw.get("file") else None,
                size=_parse_int(raw.get("size")),
                last_modified=str(raw["last_modified"]) if raw.get("last_modified") else None,
            )
        )
    return DownloadManifest(
        path=path,
        entries=entries,
        last_check=_parse_timestamp(document.get("last_check")),
    )


def remote_file_name(response: requests.Response) -> str:
    """Server-side file name: Content-Disposition first, then the final URL."""

    disposition = response.headers.get("Content-Disposition")
    name = ""
    if disposition:
        match = CONTENT_DISPOSITION_PATTERN.search(disposition)
        if match:
            name = unquote(match.group(1).strip())
    if not name:
        name = unquote(PurePosixPath(urlparse(response.url).path).name)
    # never let a header pick a directory
    return PurePosixPath(name.replace("\\", "/")).name


def fetch_archive(entry: ManifestEntry, archive_root: Path) -> Path:
    """Make sure the entry's archive is present and current; returns its path.

    The body is only read when the file name, size or Last-Modified reported
    by the server differ from what the manifest recorded.
    """

    variant_dir = archive_root / entry.variant
    existing_path = variant_dir / entry.file if entry.file else None
    try:
        with requests.get(entry.url, stream=True, timeout=REQUEST_TIMEOUT) as response:
            response.raise_for_status()

            file_name = remote_file_name(response)
            if not file_name:
                raise DownloadFailed(entry.url, "server did not provide a file name")
            file_size = _parse_int(response.headers.get("Content-Length"))
            last_modified = response.headers.get("Last-Modified")
            path = variant_dir / file_name

            if (
                existing_path is not None
                and existing_path.exists()
                and file_name == entry.file
                and file_size == entry.size
                and last_modified == entry.last_modified
            ):
                return path

            log_download(f"Downloading {entry.variant}/{file_name}")
            ensure_directory(variant_dir)
            partial = path.with_name(path.name + ".part")
            try:
                with partial.open("wb") as handle:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            handle.write(chunk)
                partial.replace(path)
            finally:
                remove_file(partial)
            # the previous version goes only once the new one is complete
            if existing_path is not None and existing_path != path:
                remove_file(existing_path)
    except requests.RequestException as exc:
        raise DownloadFailed(entry.url, str(exc)) from exc
    except OSError as exc:
        raise DownloadFailed(entry.url, f"cannot write archive: {exc}") from exc

    entry.file = file_name
    entry.size = file_size
    entry.last_modified = last_modified
    return path


def _fetch_or_fail(job: tuple[ManifestEntry, Path]) -> Path | DownloadFailed:
    entry, archive_root = job
    try:
        return fetch_archive(entry, archive_root)
    except DownloadFailed as exc:
        return exc


def prune_archives(archive_root: Path, variants: Sequence[str], keep: set[Path]) -> List[Path]:
    removed: List[Path] = []
    for variant, path in discover_archive_files(archive_root, variants):
        if path in keep:
            continue
        log_download(f"Deleting {variant}/{path.name}")
        remove_file(path)
        removed.append(path)
    return removed


def refresh_archives(
    archive_root: Path,
    manifest_path: Path,
    interval_minutes: float,
    workers: int = 4,
    now: datetime | None = None,
) -> bool:
    """Bring the archive directory up to date with the download manifest.

    Returns False when the manifest is missing, empty, or was checked less
    than ``interval_minutes`` ago.
    """

    manifest = load_manifest(manifest_path)
    if not manifest.entries:
        return False

    now = now or datetime.now(timezone.utc)
    if manifest.is_fresh(timedelta(minutes=interval_minutes), now):
        return False

    log_info("Checking for updates...")
    previous = {
        id(entry): archive_root / entry.variant / entry.file
        for entry in manifest.entries
        if entry.file
    }
    jobs = [(entry, archive_root) for entry in manifest.entries]
    with ThreadPoolExecutor(max_workers=max(workers, 1)) as executor:
        results = list(executor.map(_fetch_or_fail, jobs))

    keep: set[Path] = set()
    for entry, result in zip(manifest.entries, results):
        if isinstance(result, DownloadFailed):
            log_error(f"Download failed for {result.url}: {result.reason}")
            if id(entry) in previous:
                keep.add(previous[id(entry)])
            continue
        keep.add(result)

    prune_archives(archive_root, manifest.variants, keep)

    manifest.last_check = now
    manifest.save()
    return True
