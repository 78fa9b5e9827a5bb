"""Shared fixtures: real archives and installation directories under tmp_path."""
from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Callable, Dict

import pytest

ZipFactory = Callable[..., Path]


def write_zip(path: Path, files: Dict[str, bytes], directories: tuple[str, ...] = ()) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as bundle:
        for directory in directories:
            bundle.writestr(zipfile.ZipInfo(directory.rstrip("/") + "/"), b"")
        for name, content in files.items():
            bundle.writestr(name, content)
    return path


def mark_encrypted(path: Path) -> Path:
    """Set the encryption flag on every entry without encrypting anything."""

    data = bytearray(path.read_bytes())
    for signature, flag_offset in ((b"PK\x03\x04", 6), (b"PK\x01\x02", 8)):
        start = data.find(signature)
        while start != -1:
            data[start + flag_offset] |= 0x1
            start = data.find(signature, start + 4)
    path.write_bytes(bytes(data))
    return path


def scramble_member(path: Path, member: str) -> Path:
    """Overwrite one member's deflate stream with an invalid block header."""

    with zipfile.ZipFile(path) as bundle:
        info = bundle.getinfo(member)
    data = bytearray(path.read_bytes())
    header = info.header_offset
    name_length = int.from_bytes(data[header + 26:header + 28], "little")
    extra_length = int.from_bytes(data[header + 28:header + 30], "little")
    start = header + 30 + name_length + extra_length
    data[start:start + info.compress_size] = b"\xff" * info.compress_size
    path.write_bytes(bytes(data))
    return path


def write_tree(root: Path, files: Dict[str, bytes]) -> None:
    for name, content in files.items():
        target = root / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)


@pytest.fixture
def archive_root(tmp_path: Path) -> Path:
    root = tmp_path / "archives"
    root.mkdir()
    return root


@pytest.fixture
def install_root(tmp_path: Path) -> Path:
    return tmp_path / "game" / "_retail_" / "Interface" / "AddOns"


@pytest.fixture
def make_zip(archive_root: Path) -> ZipFactory:
    def factory(name: str, files: Dict[str, bytes], variant: str = "_retail_", directories: tuple[str, ...] = ()) -> Path:
        return write_zip(archive_root / variant / name, files, directories)

    return factory
