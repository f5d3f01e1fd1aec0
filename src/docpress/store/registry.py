"""SQLite registry of chunks emitted by past builds."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Sequence, Tuple

from docpress.models import Chunk


class BuildRegistry:
    """Remembers which digests each build retained.

    This is what lets an incremental rebuild delete assets that the previous
    build emitted and the current one no longer references.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._conn = sqlite3.connect(self.db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "BuildRegistry":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS builds (
                    id INTEGER PRIMARY KEY,
                    index_digest TEXT,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS chunks (
                    digest TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    file_name TEXT NOT NULL,
                    size INTEGER NOT NULL,
                    first_build INTEGER NOT NULL,
                    last_build INTEGER NOT NULL,
                    FOREIGN KEY(first_build) REFERENCES builds(id),
                    FOREIGN KEY(last_build) REFERENCES builds(id)
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_chunks_last_build
                    ON chunks(last_build)
                """
            )

    def latest_build(self) -> dict | None:
        row = self._conn.execute(
            "SELECT id, index_digest, created_at FROM builds ORDER BY id DESC LIMIT 1"
        ).fetchone()
        return dict(row) if row else None

    def record_build(
        self, chunks: Sequence[Tuple[Chunk, str]], index_digest: str = ""
    ) -> Tuple[int, List[str]]:
        """Register the chunks retained by a new build.

        ``chunks`` pairs each chunk with its asset file name. Returns the new
        build id and the file names that the previous build retained but this
        one does not.
        """
        with self.transaction() as conn:
            previous = self.latest_build()
            # Read before the upserts, which may rename a reused digest's file.
            retained: List[str] = []
            if previous is not None:
                rows = conn.execute(
                    "SELECT file_name FROM chunks WHERE last_build = ? ORDER BY file_name",
                    (previous["id"],),
                ).fetchall()
                retained = [row["file_name"] for row in rows]
            build_id = conn.execute(
                "INSERT INTO builds(index_digest) VALUES (?)", (index_digest,)
            ).lastrowid
            for chunk, file_name in chunks:
                conn.execute(
                    """
                    INSERT INTO chunks(digest, name, file_name, size, first_build, last_build)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(digest) DO UPDATE SET
                        last_build = excluded.last_build,
                        file_name = excluded.file_name
                    """,
                    (chunk.digest, chunk.name, file_name, chunk.size, build_id, build_id),
                )
            current = {file_name for _, file_name in chunks}
            expired = [name for name in retained if name not in current]
        return build_id, expired

    def get_stats(self) -> dict:
        builds = self._conn.execute("SELECT COUNT(*) FROM builds").fetchone()[0]
        chunks = self._conn.execute("SELECT COUNT(*), COALESCE(SUM(size), 0) FROM chunks").fetchone()
        return {"build_count": builds, "chunk_count": chunks[0], "total_size_bytes": chunks[1]}
