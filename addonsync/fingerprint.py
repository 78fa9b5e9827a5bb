from __future__ import annotations

import hashlib
import io
from typing import BinaryIO, Callable, Iterable, Mapping, Protocol, Tuple

from .path_utils import normalize_path, sort_key

DEFAULT_CHUNK_SIZE = 4096


class Hasher(Protocol):
    def update(self, data: bytes, /) -> None: ...

    def hexdigest(self) -> str: ...


HasherFactory = Callable[[], Hasher]
Opener = Callable[[], BinaryIO]
FingerprintEntry = Tuple[str, Opener]


def fingerprint(
    entries: Iterable[FingerprintEntry],
    hasher_factory: HasherFactory = hashlib.sha1,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str:
    """Digest a set of files as (relative path, content) pairs.

    Paths are normalized to the canonical separator and sorted
    case-insensitively, so neither the source's iteration order nor its
    separator convention changes the result. Each path is hashed lower-cased
    as UTF-8, followed by the file's bytes. Streams are opened one at a time
    and closed once consumed.
    """

    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    normalized = [(normalize_path(path), opener) for path, opener in entries]
    normalized.sort(key=lambda item: sort_key(item[0]))

    hasher = hasher_factory()
    for path, opener in normalized:
        hasher.update(path.lower().encode("utf-8"))
        with opener() as stream:
            while True:
                chunk = stream.read(chunk_size)
                if not chunk:
                    break
                hasher.update(chunk)
    return hasher.hexdigest().lower()


def fingerprint_bytes(
    files: Mapping[str, bytes],
    hasher_factory: HasherFactory = hashlib.sha1,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str:
    entries = [
        (path, (lambda content=content: io.BytesIO(content)))
        for path, content in files.items()
    ]
    return fingerprint(entries, hasher_factory=hasher_factory, chunk_size=chunk_size)
