from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import requests
import toml
from requests.structures import CaseInsensitiveDict

from addonsync import downloader
from addonsync.downloader import ManifestEntry, load_manifest, refresh_archives

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class FakeResponse:
    def __init__(self, url, body=b"", headers=None, status=200):
        self.url = url
        self.body = body
        self.status = status
        self.headers = CaseInsensitiveDict(headers or {})
        self.body_read = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def iter_content(self, chunk_size=1):
        self.body_read = True
        for start in range(0, len(self.body), chunk_size):
            yield self.body[start:start + chunk_size]


@pytest.fixture
def serve(monkeypatch):
    responses = {}
    calls = []

    def fake_get(url, stream=False, timeout=None):
        calls.append(url)
        response = responses[url]
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(downloader.requests, "get", fake_get)
    return responses, calls


def _manifest(path: Path, entries, last_check=None) -> Path:
    document = {"addon": entries}
    if last_check is not None:
        document["last_check"] = last_check.isoformat()
    path.write_text(toml.dumps(document), encoding="utf-8")
    return path


def test_downloads_new_archive_and_records_metadata(serve, archive_root):
    responses, _ = serve
    responses["https://example.com/foo"] = FakeResponse(
        "https://example.com/files/Foo-1.0.zip",
        body=b"zipdata",
        headers={"Content-Length": "7", "Last-Modified": "Sat, 17 Oct 2026 10:00:00 GMT"},
    )
    manifest_path = _manifest(archive_root / "downloads.toml", [{"url": "https://example.com/foo", "variant": "_retail_"}])

    assert refresh_archives(archive_root, manifest_path, interval_minutes=10, now=NOW)

    assert (archive_root / "_retail_" / "Foo-1.0.zip").read_bytes() == b"zipdata"
    manifest = load_manifest(manifest_path)
    assert manifest.last_check == NOW
    assert manifest.entries == [
        ManifestEntry(
            url="https://example.com/foo",
            variant="_retail_",
            file="Foo-1.0.zip",
            size=7,
            last_modified="Sat, 17 Oct 2026 10:00:00 GMT",
        )
    ]


def test_unchanged_archive_is_not_downloaded_again(serve, archive_root):
    responses, _ = serve
    (archive_root / "_retail_").mkdir()
    (archive_root / "_retail_" / "Foo.zip").write_bytes(b"zipdata")
    response = FakeResponse(
        "https://example.com/foo",
        body=b"zipdata",
        headers={
            "Content-Disposition": 'attachment; filename="Foo.zip"',
            "Content-Length": "7",
            "Last-Modified": "yesterday",
        },
    )
    responses["https://example.com/foo"] = response
    manifest_path = _manifest(
        archive_root / "downloads.toml",
        [{"url": "https://example.com/foo", "variant": "_retail_", "file": "Foo.zip", "size": 7, "last_modified": "yesterday"}],
    )

    refresh_archives(archive_root, manifest_path, interval_minutes=10, now=NOW)
    assert not response.body_read


def test_new_version_replaces_old_file_and_prunes_extras(serve, archive_root, capsys):
    responses, _ = serve
    variant_dir = archive_root / "_retail_"
    variant_dir.mkdir()
    (variant_dir / "Foo-1.0.zip").write_bytes(b"old")
    (variant_dir / "Stray.zip").write_bytes(b"stray")
    (variant_dir / "_Pinned.zip").write_bytes(b"pinned")
    responses["https://example.com/foo"] = FakeResponse(
        "https://example.com/foo",
        body=b"new",
        headers={"Content-Disposition": "attachment; filename=Foo-1.1.zip"},
    )
    manifest_path = _manifest(
        archive_root / "downloads.toml",
        [{"url": "https://example.com/foo", "variant": "_retail_", "file": "Foo-1.0.zip"}],
    )

    refresh_archives(archive_root, manifest_path, interval_minutes=10, now=NOW)

    assert sorted(path.name for path in variant_dir.iterdir()) == ["Foo-1.1.zip", "_Pinned.zip"]
    output = capsys.readouterr().out
    assert "[download] Downloading _retail_/Foo-1.1.zip" in output
    assert "[download] Deleting _retail_/Stray.zip" in output


def test_failed_download_keeps_previous_archive(serve, archive_root, capsys):
    responses, _ = serve
    variant_dir = archive_root / "_retail_"
    variant_dir.mkdir()
    (variant_dir / "Foo.zip").write_bytes(b"old")
    responses["https://example.com/foo"] = requests.ConnectionError("offline")
    responses["https://example.com/bar"] = FakeResponse("https://example.com/Bar.zip", status=404)
    manifest_path = _manifest(
        archive_root / "downloads.toml",
        [
            {"url": "https://example.com/foo", "variant": "_retail_", "file": "Foo.zip"},
            {"url": "https://example.com/bar", "variant": "_retail_"},
        ],
    )

    assert refresh_archives(archive_root, manifest_path, interval_minutes=10, now=NOW)

    assert (variant_dir / "Foo.zip").read_bytes() == b"old"
    output = capsys.readouterr().out
    assert "[error] Download failed for https://example.com/foo" in output
    assert "[error] Download failed for https://example.com/bar" in output


class BrokenStream(FakeResponse):
    def iter_content(self, chunk_size=1):
        self.body_read = True
        yield self.body[:chunk_size]
        raise requests.exceptions.ChunkedEncodingError("connection reset")


def test_interrupted_download_keeps_previous_archive(serve, archive_root, capsys):
    responses, _ = serve
    variant_dir = archive_root / "_retail_"
    variant_dir.mkdir()
    (variant_dir / "Foo-1.0.zip").write_bytes(b"old")
    responses["https://example.com/foo"] = BrokenStream(
        "https://example.com/foo",
        body=b"partial body",
        headers={"Content-Disposition": "attachment; filename=Foo-1.1.zip"},
    )
    manifest_path = _manifest(
        archive_root / "downloads.toml",
        [{"url": "https://example.com/foo", "variant": "_retail_", "file": "Foo-1.0.zip"}],
    )

    assert refresh_archives(archive_root, manifest_path, interval_minutes=10, now=NOW)

    assert sorted(path.name for path in variant_dir.iterdir()) == ["Foo-1.0.zip"]
    assert (variant_dir / "Foo-1.0.zip").read_bytes() == b"old"
    assert load_manifest(manifest_path).entries[0].file == "Foo-1.0.zip"
    assert "[error] Download failed for https://example.com/foo: connection reset" in capsys.readouterr().out


def test_recent_check_is_skipped(serve, archive_root):
    _, calls = serve
    manifest_path = _manifest(
        archive_root / "downloads.toml",
        [{"url": "https://example.com/foo", "variant": "_retail_"}],
        last_check=NOW - timedelta(minutes=5),
    )
    assert not refresh_archives(archive_root, manifest_path, interval_minutes=10, now=NOW)
    assert calls == []


def test_missing_manifest_is_skipped(serve, archive_root):
    assert not refresh_archives(archive_root, archive_root / "downloads.toml", interval_minutes=10, now=NOW)


def test_manifest_entries_need_url_and_variant(archive_root):
    manifest_path = _manifest(archive_root / "downloads.toml", [{"url": "https://example.com/foo"}])
    with pytest.raises(ValueError):
        load_manifest(manifest_path)


def test_remote_file_name_never_escapes():
    response = FakeResponse(
        "https://example.com/x",
        headers={"Content-Disposition": 'attachment; filename="..\\..\\evil.zip"'},
    )
    assert downloader.remote_file_name(response) == "evil.zip"
