"""Content-addressed chunk store.

A chunk's identifier is the SHA-256 of its payload. Unchanged payloads keep
their digest across builds and changed payloads get a new one, so clients may
cache assets forever without any invalidation protocol.
"""

from __future__ import annotations

import hashlib
import logging
import re
import threading
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from docpress.models import Chunk
from docpress.utils.files import atomic_write_bytes, compute_sha256

LOGGER = logging.getLogger(__name__)

ASSETS_DIR = "assets"
_NAME_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]+")


def compute_digest(payload: bytes) -> str:
    """Return the 64 character hex SHA-256 of ``payload``."""
    return hashlib.sha256(payload).hexdigest()


def asset_stem(name: str) -> str:
    """Make a file-name-safe stem, e.g. ``/components/props`` -> ``components_props``."""
    stem = _NAME_UNSAFE.sub("_", name.strip("/")).strip("_.")
    return stem or "index"


class ChunkStore:
    """In-memory store of chunks for one build, with reference counting.

    ``store`` may be called concurrently from worker threads: the
    digest-to-chunk mapping is only touched under ``self._lock``.
    """

    def __init__(self, *, hash_length: int = 8) -> None:
        self.hash_length = hash_length
        self._chunks: Dict[str, Chunk] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._chunks)

    def __contains__(self, digest: object) -> bool:
        return digest in self._chunks

    def store(self, payload: bytes, *, name: str = "chunk", referrer: Optional[str] = None) -> str:
        """Store ``payload`` once and return its digest.

        Storing identical bytes again returns the same digest and keeps the
        first entry (and its name).
        """
        if not isinstance(payload, (bytes, bytearray, memoryview)):
            raise TypeError(f"payload must be bytes, got {type(payload).__name__}")
        payload = bytes(payload)
        digest = compute_digest(payload)
        with self._lock:
            chunk = self._chunks.get(digest)
            if chunk is None:
                chunk = Chunk(digest=digest, name=asset_stem(name), payload=payload)
                self._chunks[digest] = chunk
                LOGGER.debug("Stored chunk %s (%d bytes)", self.file_name(digest), chunk.size)
            if referrer is not None:
                chunk.referenced_by.add(referrer)
        return digest

    def get(self, digest: str) -> Chunk:
        try:
            return self._chunks[digest]
        except KeyError:
            raise KeyError(f"Unknown chunk digest {digest}") from None

    def retain(self, digest: str, referrer: str) -> None:
        with self._lock:
            self.get(digest).referenced_by.add(referrer)

    def release(self, digest: str, referrer: str) -> None:
        with self._lock:
            self.get(digest).referenced_by.discard(referrer)

    def ref_count(self, digest: str) -> int:
        return len(self.get(digest).referenced_by)

    def digests(self) -> List[str]:
        return sorted(self._chunks)

    def chunks(self) -> List[Chunk]:
        return [self._chunks[digest] for digest in self.digests()]

    def collect(self) -> List[str]:
        """Drop every chunk nothing references and return the dropped digests."""
        with self._lock:
            dead = sorted(d for d, chunk in self._chunks.items() if not chunk.referenced_by)
            for digest in dead:
                del self._chunks[digest]
        if dead:
            LOGGER.info("Collected %d unreferenced chunks", len(dead))
        return dead

    def file_name(self, digest: str) -> str:
        chunk = self.get(digest)
        return f"{chunk.name}.{digest[: self.hash_length]}.json"

    def asset_path(self, digest: str) -> str:
        return f"{ASSETS_DIR}/{self.file_name(digest)}"

    def write(self, out_dir: Path) -> Tuple[int, int]:
        """Write all chunks under ``out_dir/assets``.

        Returns ``(written, reused)``. A file that already holds the chunk's
        bytes is left alone; a damaged one is replaced.
        """
        assets = Path(out_dir) / ASSETS_DIR
        assets.mkdir(parents=True, exist_ok=True)
        written = reused = 0
        for chunk in self.chunks():
            target = assets / self.file_name(chunk.digest)
            if target.is_file() and compute_sha256(target) == chunk.digest:
                reused += 1
                continue
            atomic_write_bytes(target, chunk.payload)
            written += 1
        return written, reused
