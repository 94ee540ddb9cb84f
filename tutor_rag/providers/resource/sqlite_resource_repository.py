"""SQLite-backed Resource repository.

Keeps the canonical chunk text in ``data/resources.db`` and answers the
lexical fallback.  Uses ``aiosqlite`` for async I/O and WAL journaling so
a running query does not block an ingestion write.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import aiosqlite
import structlog

from tutor_rag.interfaces.resource_repository import IResourceRepository
from tutor_rag.models.rag import ChunkMetadata, ChunkType, Resource
from tutor_rag.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/resources.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS resources (
    id            TEXT    PRIMARY KEY,
    content       TEXT    NOT NULL,
    source        TEXT    NOT NULL,
    chunk_index   INTEGER NOT NULL,
    chunk_type    TEXT    NOT NULL,
    problem_label TEXT,
    created_at    TEXT    NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_resources_source ON resources(source);",
    "CREATE INDEX IF NOT EXISTS idx_resources_source_chunk ON resources(source, chunk_index);",
]

_INSERT_SQL = """\
INSERT OR REPLACE INTO resources
    (id, content, source, chunk_index, chunk_type, problem_label, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?);
"""

_SELECT_COLUMNS = "id, content, source, chunk_index, chunk_type, problem_label, created_at"


class SQLiteResourceRepository(IResourceRepository):
    """Resource persistence and ``LIKE``-based lexical search."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the resources table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute("PRAGMA journal_mode=WAL;")
                await db.execute(_CREATE_TABLE_SQL)
                for idx_sql in _CREATE_INDICES_SQL:
                    await db.execute(idx_sql)
                await db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Cannot initialise resource database {self._db_path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("resource_db_initialized", path=str(self._db_path))

    async def add_resources(self, resources: list[Resource]) -> int:
        if not resources:
            return 0
        rows = [
            (
                r.id,
                r.content,
                r.source,
                r.chunk_index,
                r.metadata.chunk_type.value,
                r.metadata.problem_label,
                r.created_at.isoformat(),
            )
            for r in resources
        ]
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.executemany(_INSERT_SQL, rows)
                await db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Resource insert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return len(rows)

    async def delete_by_sources(self, sources: list[str]) -> int:
        if not sources:
            return 0
        placeholders = ",".join("?" for _ in sources)
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(
                    f"DELETE FROM resources WHERE source IN ({placeholders})",
                    tuple(sources),
                )
                await db.commit()
                deleted = cursor.rowcount
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Resource delete failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("resources_deleted", sources=sources, deleted_count=deleted)
        return deleted

    async def count(self, sources: list[str] | None = None) -> int:
        sql = "SELECT COUNT(*) FROM resources"
        params: tuple = ()
        if sources is not None:
            if not sources:
                return 0
            sql += f" WHERE source IN ({','.join('?' for _ in sources)})"
            params = tuple(sources)
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(sql, params)
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Resource count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return int(row[0]) if row else 0

    async def lexical_search(
        self,
        tokens: list[str],
        limit: int,
        sources: list[str] | None = None,
    ) -> list[Resource]:
        """Case-insensitive substring match on any token.

        ``%``, ``_`` and ``\\`` inside tokens are escaped so every token
        matches literally.
        """
        if not tokens or limit <= 0:
            return []
        if sources is not None and not sources:
            return []

        where = " OR ".join("content LIKE ? ESCAPE '\\'" for _ in tokens)
        params: list[object] = [f"%{_escape_like(t)}%" for t in tokens]
        sql = f"SELECT {_SELECT_COLUMNS} FROM resources WHERE ({where})"
        if sources is not None:
            sql += f" AND source IN ({','.join('?' for _ in sources)})"
            params.extend(sources)
        sql += " ORDER BY source, chunk_index LIMIT ?"
        params.append(limit)

        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(sql, tuple(params))
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(
                message=f"Lexical search failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return [_row_to_resource(row) for row in rows]

    def get_provider_name(self) -> str:
        return "sqlite_resources"


def _escape_like(token: str) -> str:
    return token.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_resource(row: aiosqlite.Row) -> Resource:
    return Resource(
        id=row["id"],
        content=row["content"],
        source=row["source"],
        chunk_index=row["chunk_index"],
        metadata=ChunkMetadata(
            chunk_type=ChunkType(row["chunk_type"]),
            problem_label=row["problem_label"],
        ),
        created_at=datetime.fromisoformat(row["created_at"]),
    )
