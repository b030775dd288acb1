from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Sequence
from typing import Any
from urllib.parse import urlsplit

import asyncpg

from server.models.ragweld_config_model import (
    ChunkMatch,
    Corpus,
    CorpusSnapshot,
    EvalDatasetItem,
    EvalRun,
    EvalRunMeta,
    Entity,
    GraphStats,
    Relationship,
)

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Shared asyncpg pool caching (process-wide)
#
# Request handlers create PostgresClient instances per request. Creating a new
# asyncpg pool per instance is expensive (connect handshake + schema init), so
# we keep one pool per DSN and reuse it across all PostgresClient instances.
# -----------------------------------------------------------------------------
_POOLS_BY_DSN: dict[str, asyncpg.Pool] = {}
_POOL_LOCKS_BY_DSN: dict[str, asyncio.Lock] = {}

_LOCAL_HOSTS = {"localhost", "127.0.0.1", "::1"}

# Public demo corpora. Inserted on schema bootstrap so a fresh database lists
# them before the first indexing pass.
DEMO_CORPORA: tuple[dict[str, str], ...] = (
    {
        "corpus_id": "faxbot",
        "name": "Faxbot (Repo)",
        "path": "https://github.com/dmontgomery40/faxbot",
        "slug": "faxbot",
        "branch": "main",
        "description": "Faxbot source repository",
    },
    {
        "corpus_id": "faxbot_docs",
        "name": "Faxbot (Docs)",
        "path": "https://github.com/dmontgomery40/faxbot/tree/main/docs",
        "slug": "faxbot-docs",
        "branch": "main",
        "description": "Faxbot documentation set",
    },
)


class StoreNotConfiguredError(RuntimeError):
    """Raised when no database connection string is available."""


class CorpusNotFoundError(KeyError):
    """Raised when a corpus-scoped operation names a corpus that does not exist."""

    def __init__(self, corpus_id: str):
        super().__init__(corpus_id)
        self.corpus_id = corpus_id


def _coerce_jsonb_dict(value: Any) -> dict[str, Any]:
    """Coerce asyncpg JSON/JSONB values to a dict (robust across codecs)."""
    if value is None:
        return {}
    if isinstance(value, dict):
        return dict(value)
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return {}
        return dict(parsed) if isinstance(parsed, dict) else {}
    return {}


def _coerce_jsonb_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return list(value)
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return []
        return list(parsed) if isinstance(parsed, list) else []
    return []


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _ssl_mode_for(dsn: str) -> str | None:
    """Require TLS for anything that is not a local database."""
    if "sslmode=" in dsn:
        return None
    try:
        host = urlsplit(dsn).hostname
    except ValueError:
        return None
    if host is None or host in _LOCAL_HOSTS:
        return None
    return "require"


def _corpus_row_to_dict(r: asyncpg.Record) -> dict[str, Any]:
    return {
        "corpus_id": str(r["corpus_id"]),
        "name": str(r["name"]),
        "path": str(r["path"] or ""),
        "slug": str(r["slug"]) if r["slug"] is not None else None,
        "branch": str(r["branch"]) if r["branch"] is not None else None,
        "description": str(r["description"]) if r["description"] is not None else None,
        "meta": _coerce_jsonb_dict(r["meta"]),
        "created_at": r["created_at"],
        "last_indexed": r["last_indexed"],
    }


def _entity_from_row(r: asyncpg.Record) -> Entity:
    return Entity(
        entity_id=str(r["entity_id"]),
        name=str(r["name"]),
        entity_type=str(r["entity_type"]),
        file_path=str(r["file_path"]) if r["file_path"] is not None else None,
        description=str(r["description"]) if r["description"] is not None else None,
        properties=_coerce_jsonb_dict(r["properties"]),
    )


def _relationship_from_row(r: asyncpg.Record) -> Relationship:
    return Relationship(
        source_id=str(r["source_id"]),
        target_id=str(r["target_id"]),
        relation_type=str(r["relation_type"]),
        weight=float(r["weight"] if r["weight"] is not None else 1.0),
        properties=_coerce_jsonb_dict(r["properties"]),
    )


def _dataset_item_from_row(r: asyncpg.Record) -> EvalDatasetItem:
    return EvalDatasetItem(
        entry_id=str(r["entry_id"]),
        question=str(r["question"]),
        expected_paths=[str(p) for p in _coerce_jsonb_list(r["expected_paths"])],
        expected_answer=str(r["expected_answer"]) if r["expected_answer"] is not None else None,
        tags=[str(t) for t in _coerce_jsonb_list(r["tags"])],
        created_at=r["created_at"],
    )


_CORPUS_COLUMNS = "corpus_id, name, path, slug, branch, description, meta, created_at, last_indexed"
_ENTITY_COLUMNS = "entity_id, name, entity_type, file_path, description, properties"
_EDGE_COLUMNS = "source_id, target_id, relation_type, weight, properties"


class PostgresClient:
    """Postgres corpus store (chunks + FTS, lightweight graph, eval data).

    Corpus separation is by the `corpus_id` partition key on every table.
    The chunk search vector is a generated column, so it always reflects
    `content` and is never written by this client.
    """

    def __init__(self, connection_string: str, *, max_pool_size: int = 5):
        self.connection_string = connection_string
        self.max_pool_size = int(max_pool_size)
        self._pool: asyncpg.Pool | None = None
        self._resolved_dsn: str | None = None

    # ---------------------------------------------------------------------
    # Connection + schema
    # ---------------------------------------------------------------------

    async def connect(self) -> None:
        if self._pool is not None:
            return

        dsn = self._resolve_dsn(self.connection_string)
        if not dsn:
            raise StoreNotConfiguredError(
                "DB not configured: set DATABASE_URL (or NETLIFY_DATABASE_URL / POSTGRES_DSN)"
            )
        self._resolved_dsn = dsn

        # Fast path: pool already exists for this DSN (no locking needed).
        existing = _POOLS_BY_DSN.get(dsn)
        if existing is not None:
            self._pool = existing
            return

        # Lazily create a lock per DSN (locks bind to the running loop).
        lock = _POOL_LOCKS_BY_DSN.get(dsn)
        if lock is None:
            lock = asyncio.Lock()
            _POOL_LOCKS_BY_DSN[dsn] = lock

        async with lock:
            pool = _POOLS_BY_DSN.get(dsn)
            if pool is None:
                pool = await asyncpg.create_pool(
                    dsn=dsn,
                    min_size=1,
                    max_size=self.max_pool_size,
                    ssl=_ssl_mode_for(dsn),
                )
                try:
                    async with pool.acquire() as conn:
                        await self._ensure_schema(conn)
                except Exception:
                    # Ensure we don't leave a half-initialized pool around.
                    await pool.close()
                    raise
                _POOLS_BY_DSN[dsn] = pool
                logger.info("postgres pool ready (max_size=%d)", self.max_pool_size)

            self._pool = pool

    async def disconnect(self) -> None:
        # Pools are shared per DSN; per-instance disconnect only drops the reference.
        self._pool = None
        self._resolved_dsn = None

    @classmethod
    async def close_shared_pools(cls) -> None:
        """Close all shared pools. Intended for tests and shutdown hooks."""
        for dsn, pool in list(_POOLS_BY_DSN.items()):
            try:
                await pool.close()
            except Exception:
                logger.warning("failed to close postgres pool", exc_info=True)
            _POOLS_BY_DSN.pop(dsn, None)
        _POOL_LOCKS_BY_DSN.clear()

    @staticmethod
    def _resolve_dsn(connection_string: str) -> str:
        """Resolve a connection string, preferring env vars when available."""
        env_dsn = os.getenv("POSTGRES_DSN")
        if env_dsn:
            return env_dsn

        host = os.getenv("POSTGRES_HOST")
        if host:
            port = int(os.getenv("POSTGRES_PORT", "5432"))
            db = os.getenv("POSTGRES_DB", "ragweld")
            user = os.getenv("POSTGRES_USER", "postgres")
            password = os.getenv("POSTGRES_PASSWORD", "postgres")
            return f"postgresql://{user}:{password}@{host}:{port}/{db}"

        return (connection_string or "").strip()

    async def ensure_schema(self) -> None:
        """Run schema bootstrap on an already-connected client (idempotent)."""
        await self._require_pool()
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            await self._ensure_schema(conn)

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS corpora (
              corpus_id TEXT PRIMARY KEY,
              name TEXT NOT NULL,
              path TEXT NOT NULL DEFAULT '',
              slug TEXT,
              branch TEXT,
              description TEXT,
              meta JSONB NOT NULL DEFAULT '{}'::jsonb,
              created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
              last_indexed TIMESTAMPTZ
            );
            """
        )

        # Chunk store. `seq` records insertion order for stable tie-breaking.
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS chunks (
              corpus_id TEXT NOT NULL REFERENCES corpora(corpus_id) ON DELETE CASCADE,
              chunk_id TEXT NOT NULL,
              seq BIGSERIAL,
              file_path TEXT NOT NULL,
              start_line INT NOT NULL DEFAULT 0,
              end_line INT NOT NULL DEFAULT 0,
              language TEXT,
              content TEXT NOT NULL,
              content_tsv tsvector GENERATED ALWAYS AS (to_tsvector('english', coalesce(content, ''))) STORED,
              PRIMARY KEY (corpus_id, chunk_id)
            );
            """
        )
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_chunks_tsv ON chunks USING GIN (content_tsv);")
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_chunks_corpus_path ON chunks (corpus_id, file_path);")

        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS graph_entities (
              corpus_id TEXT NOT NULL REFERENCES corpora(corpus_id) ON DELETE CASCADE,
              entity_id TEXT NOT NULL,
              name TEXT NOT NULL,
              entity_type TEXT NOT NULL,
              file_path TEXT,
              description TEXT,
              properties JSONB NOT NULL DEFAULT '{}'::jsonb,
              PRIMARY KEY (corpus_id, entity_id)
            );
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_graph_entities_name ON graph_entities (corpus_id, name);"
        )

        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS graph_edges (
              corpus_id TEXT NOT NULL REFERENCES corpora(corpus_id) ON DELETE CASCADE,
              source_id TEXT NOT NULL,
              target_id TEXT NOT NULL,
              relation_type TEXT NOT NULL,
              weight REAL NOT NULL DEFAULT 1.0,
              properties JSONB NOT NULL DEFAULT '{}'::jsonb,
              PRIMARY KEY (corpus_id, source_id, target_id, relation_type)
            );
            """
        )
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_graph_edges_source ON graph_edges (corpus_id, source_id);")
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_graph_edges_target ON graph_edges (corpus_id, target_id);")

        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS eval_dataset (
              corpus_id TEXT NOT NULL REFERENCES corpora(corpus_id) ON DELETE CASCADE,
              entry_id TEXT NOT NULL,
              question TEXT NOT NULL,
              expected_paths JSONB NOT NULL DEFAULT '[]'::jsonb,
              expected_answer TEXT,
              tags JSONB NOT NULL DEFAULT '[]'::jsonb,
              created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
              PRIMARY KEY (corpus_id, entry_id)
            );
            """
        )

        # Eval runs: denormalized headline columns for listing + full JSON blob.
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS eval_runs (
              run_id TEXT PRIMARY KEY,
              corpus_id TEXT NOT NULL,
              dataset_id TEXT NOT NULL,
              top1_accuracy DOUBLE PRECISION NOT NULL DEFAULT 0,
              topk_accuracy DOUBLE PRECISION NOT NULL DEFAULT 0,
              mrr DOUBLE PRECISION,
              total INT NOT NULL DEFAULT 0,
              duration_secs DOUBLE PRECISION NOT NULL DEFAULT 0,
              completed_at TIMESTAMPTZ NOT NULL,
              run_json JSONB NOT NULL,
              updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
            );
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_eval_runs_corpus ON eval_runs (corpus_id, completed_at DESC);"
        )

        for row in DEMO_CORPORA:
            await conn.execute(
                """
                INSERT INTO corpora (corpus_id, name, path, slug, branch, description)
                VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (corpus_id) DO NOTHING;
                """,
                row["corpus_id"],
                row["name"],
                row["path"],
                row["slug"],
                row["branch"],
                row["description"],
            )

    async def ping(self) -> None:
        await self._require_pool()
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            await conn.fetchval("SELECT 1;")

    # ---------------------------------------------------------------------
    # Corpus management
    # ---------------------------------------------------------------------

    async def list_corpora(self) -> list[dict[str, Any]]:
        await self._require_pool()
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(f"SELECT {_CORPUS_COLUMNS} FROM corpora ORDER BY corpus_id ASC;")
        return [_corpus_row_to_dict(r) for r in rows]

    async def get_corpus(self, corpus_id: str) -> dict[str, Any] | None:
        await self._require_pool()
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(f"SELECT {_CORPUS_COLUMNS} FROM corpora WHERE corpus_id = $1;", corpus_id)
        if not row:
            return None
        return _corpus_row_to_dict(row)

    async def require_corpus(self, corpus_id: str) -> dict[str, Any]:
        corpus = await self.get_corpus(corpus_id)
        if corpus is None:
            raise CorpusNotFoundError(corpus_id)
        return corpus

    async def delete_corpus(self, corpus_id: str) -> bool:
        await self._require_pool()
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            result = await conn.execute("DELETE FROM corpora WHERE corpus_id = $1;", corpus_id)
        return int(result.split()[-1]) > 0

    async def _upsert_corpus_row(self, conn: asyncpg.Connection, corpus: Corpus) -> None:
        await conn.execute(
            """
            INSERT INTO corpora (corpus_id, name, path, slug, branch, description, meta)
            VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb)
            ON CONFLICT (corpus_id) DO UPDATE SET
              name = EXCLUDED.name,
              path = CASE WHEN EXCLUDED.path = '' THEN corpora.path ELSE EXCLUDED.path END,
              slug = COALESCE(EXCLUDED.slug, corpora.slug),
              branch = COALESCE(EXCLUDED.branch, corpora.branch),
              description = COALESCE(EXCLUDED.description, corpora.description),
              meta = corpora.meta || EXCLUDED.meta;
            """,
            corpus.corpus_id,
            corpus.name,
            corpus.path,
            corpus.slug,
            corpus.branch,
            corpus.description,
            json.dumps(corpus.meta),
        )

    async def reindex_corpus(self, snapshot: CorpusSnapshot) -> dict[str, int]:
        """Atomically replace every chunk, entity and edge of one corpus.

        Other corpora are untouched. Any failure rolls back the whole
        transaction, so readers never observe a partially indexed corpus.
        """
        corpus_id = snapshot.corpus.corpus_id
        await self._require_pool()
        assert self._pool is not None

        chunk_rows = [
            (corpus_id, c.chunk_id, c.file_path, c.start_line, c.end_line, c.language, c.content)
            for c in snapshot.chunks
        ]
        entity_rows = [
            (
                corpus_id,
                e.entity_id,
                e.name,
                e.entity_type,
                e.file_path,
                e.description,
                json.dumps(e.properties),
            )
            for e in snapshot.entities
        ]
        edge_rows = [
            (
                corpus_id,
                r.source_id,
                r.target_id,
                r.relation_type,
                float(r.weight),
                json.dumps(r.properties),
            )
            for r in snapshot.relationships
        ]

        async with self._pool.acquire() as conn:
            async with conn.transaction():
                await self._upsert_corpus_row(conn, snapshot.corpus)
                await conn.execute("DELETE FROM graph_edges WHERE corpus_id = $1;", corpus_id)
                await conn.execute("DELETE FROM graph_entities WHERE corpus_id = $1;", corpus_id)
                await conn.execute("DELETE FROM chunks WHERE corpus_id = $1;", corpus_id)
                if chunk_rows:
                    await conn.executemany(
                        """
                        INSERT INTO chunks (corpus_id, chunk_id, file_path, start_line, end_line, language, content)
                        VALUES ($1, $2, $3, $4, $5, $6, $7);
                        """,
                        chunk_rows,
                    )
                if entity_rows:
                    await conn.executemany(
                        """
                        INSERT INTO graph_entities (corpus_id, entity_id, name, entity_type, file_path, description, properties)
                        VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb);
                        """,
                        entity_rows,
                    )
                if edge_rows:
                    await conn.executemany(
                        """
                        INSERT INTO graph_edges (corpus_id, source_id, target_id, relation_type, weight, properties)
                        VALUES ($1, $2, $3, $4, $5, $6::jsonb);
                        """,
                        edge_rows,
                    )
                await conn.execute("UPDATE corpora SET last_indexed = now() WHERE corpus_id = $1;", corpus_id)

        logger.info(
            "reindexed corpus=%s chunks=%d entities=%d edges=%d",
            corpus_id,
            len(chunk_rows),
            len(entity_rows),
            len(edge_rows),
        )
        return {"chunks": len(chunk_rows), "entities": len(entity_rows), "relationships": len(edge_rows)}

    # ---------------------------------------------------------------------
    # Chunks + FTS
    # ---------------------------------------------------------------------

    async def fts_search(
        self,
        corpus_id: str,
        query: str,
        top_k: int,
        *,
        ts_config: str = "english",
    ) -> list[ChunkMatch]:
        if not query.strip() or top_k <= 0:
            return []
        await self._require_pool()
        assert self._pool is not None

        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT chunk_id, content, file_path, start_line, end_line, language,
                       ts_rank_cd(content_tsv, plainto_tsquery($4::regconfig, $1))::float8 AS score
                FROM chunks
                WHERE corpus_id = $2 AND content_tsv @@ plainto_tsquery($4::regconfig, $1)
                ORDER BY score DESC, seq ASC
                LIMIT $3;
                """,
                query,
                corpus_id,
                int(top_k),
                ts_config,
            )

        return [
            ChunkMatch(
                chunk_id=str(r["chunk_id"]),
                content=str(r["content"]),
                file_path=str(r["file_path"]),
                start_line=int(r["start_line"]),
                end_line=int(r["end_line"]),
                language=str(r["language"]) if r["language"] is not None else None,
                score=float(r["score"] or 0.0),
                source="sparse",
                metadata={"corpus_id": corpus_id},
            )
            for r in rows
        ]

    async def list_file_paths(self, corpus_id: str, limit: int | None = None) -> list[str]:
        """Distinct chunk file paths for a corpus, sorted."""
        await self._require_pool()
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            if limit is None:
                rows = await conn.fetch(
                    "SELECT DISTINCT file_path FROM chunks WHERE corpus_id = $1 ORDER BY file_path ASC;",
                    corpus_id,
                )
            else:
                rows = await conn.fetch(
                    "SELECT DISTINCT file_path FROM chunks WHERE corpus_id = $1 ORDER BY file_path ASC LIMIT $2;",
                    corpus_id,
                    int(limit),
                )
        return [str(r["file_path"]) for r in rows]

    # ---------------------------------------------------------------------
    # Graph
    # ---------------------------------------------------------------------

    async def get_entity(self, corpus_id: str, entity_id: str) -> Entity | None:
        await self._require_pool()
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_ENTITY_COLUMNS} FROM graph_entities WHERE corpus_id = $1 AND entity_id = $2;",
                corpus_id,
                entity_id,
            )
        return _entity_from_row(row) if row else None

    async def get_entities(self, corpus_id: str, entity_ids: Sequence[str]) -> list[Entity]:
        """Entities for the given ids, in the order the ids were given."""
        if not entity_ids:
            return []
        await self._require_pool()
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_ENTITY_COLUMNS} FROM graph_entities WHERE corpus_id = $1 AND entity_id = ANY($2::text[]);",
                corpus_id,
                list(entity_ids),
            )
        by_id = {str(r["entity_id"]): _entity_from_row(r) for r in rows}
        return [by_id[eid] for eid in entity_ids if eid in by_id]

    async def list_entities_with_degree(
        self,
        corpus_id: str,
        query: str | None,
        limit: int,
    ) -> list[tuple[Entity, int]]:
        """Entities with their undirected degree, highest degree first."""
        await self._require_pool()
        assert self._pool is not None
        pattern = f"%{_escape_like(query.strip())}%" if query and query.strip() else None
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                WITH ends AS (
                  SELECT source_id AS node_id FROM graph_edges WHERE corpus_id = $1
                  UNION ALL
                  SELECT target_id AS node_id FROM graph_edges WHERE corpus_id = $1
                ), deg AS (
                  SELECT node_id, count(*)::int AS degree FROM ends GROUP BY node_id
                )
                SELECT {", ".join("e." + c.strip() for c in _ENTITY_COLUMNS.split(","))},
                       COALESCE(d.degree, 0)::int AS degree
                FROM graph_entities e
                LEFT JOIN deg d ON d.node_id = e.entity_id
                WHERE e.corpus_id = $1
                  AND ($2::text IS NULL OR e.name ILIKE $2 ESCAPE '\\' OR e.file_path ILIKE $2 ESCAPE '\\')
                ORDER BY degree DESC, e.name ASC, e.entity_id ASC
                LIMIT $3;
                """,
                corpus_id,
                pattern,
                int(limit),
            )
        return [(_entity_from_row(r), int(r["degree"])) for r in rows]

    async def edges_touching(self, corpus_id: str, entity_ids: Sequence[str]) -> list[Relationship]:
        """Edges with either endpoint in `entity_ids`."""
        if not entity_ids:
            return []
        await self._require_pool()
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_EDGE_COLUMNS}
                FROM graph_edges
                WHERE corpus_id = $1
                  AND (source_id = ANY($2::text[]) OR target_id = ANY($2::text[]))
                ORDER BY source_id, target_id, relation_type;
                """,
                corpus_id,
                list(entity_ids),
            )
        return [_relationship_from_row(r) for r in rows]

    async def edges_among(self, corpus_id: str, entity_ids: Sequence[str], limit: int) -> list[Relationship]:
        """Edges with both endpoints in `entity_ids`."""
        if not entity_ids or limit <= 0:
            return []
        await self._require_pool()
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_EDGE_COLUMNS}
                FROM graph_edges
                WHERE corpus_id = $1
                  AND source_id = ANY($2::text[])
                  AND target_id = ANY($2::text[])
                ORDER BY source_id, target_id, relation_type
                LIMIT $3;
                """,
                corpus_id,
                list(entity_ids),
                int(limit),
            )
        return [_relationship_from_row(r) for r in rows]

    async def graph_stats(self, corpus_id: str) -> GraphStats:
        await self._require_pool()
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            entity_rows = await conn.fetch(
                """
                SELECT entity_type, count(*)::int AS n
                FROM graph_entities WHERE corpus_id = $1
                GROUP BY entity_type ORDER BY entity_type;
                """,
                corpus_id,
            )
            edge_rows = await conn.fetch(
                """
                SELECT relation_type, count(*)::int AS n
                FROM graph_edges WHERE corpus_id = $1
                GROUP BY relation_type ORDER BY relation_type;
                """,
                corpus_id,
            )
        entity_breakdown = {str(r["entity_type"]): int(r["n"]) for r in entity_rows}
        relationship_breakdown = {str(r["relation_type"]): int(r["n"]) for r in edge_rows}
        return GraphStats(
            corpus_id=corpus_id,
            total_entities=sum(entity_breakdown.values()),
            total_relationships=sum(relationship_breakdown.values()),
            total_communities=0,
            entity_breakdown=entity_breakdown,
            relationship_breakdown=relationship_breakdown,
        )

    # ---------------------------------------------------------------------
    # Eval dataset
    # ---------------------------------------------------------------------

    async def list_dataset(self, corpus_id: str) -> list[EvalDatasetItem]:
        await self._require_pool()
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT entry_id, question, expected_paths, expected_answer, tags, created_at
                FROM eval_dataset WHERE corpus_id = $1
                ORDER BY created_at ASC, entry_id ASC;
                """,
                corpus_id,
            )
        return [_dataset_item_from_row(r) for r in rows]

    async def insert_dataset_entries(self, corpus_id: str, entries: Sequence[EvalDatasetItem]) -> int:
        """Insert entries, skipping ids that already exist. Returns rows inserted."""
        if not entries:
            return 0
        await self._require_pool()
        assert self._pool is not None
        inserted = 0
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                for e in entries:
                    result = await conn.execute(
                        """
                        INSERT INTO eval_dataset (corpus_id, entry_id, question, expected_paths, expected_answer, tags, created_at)
                        VALUES ($1, $2, $3, $4::jsonb, $5, $6::jsonb, $7)
                        ON CONFLICT (corpus_id, entry_id) DO NOTHING;
                        """,
                        corpus_id,
                        e.entry_id,
                        e.question,
                        json.dumps(e.expected_paths),
                        e.expected_answer,
                        json.dumps(e.tags),
                        e.created_at,
                    )
                    inserted += int(result.split()[-1])
        return inserted

    async def update_dataset_entry(self, corpus_id: str, entry: EvalDatasetItem) -> bool:
        await self._require_pool()
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE eval_dataset
                SET question = $3, expected_paths = $4::jsonb, expected_answer = $5, tags = $6::jsonb
                WHERE corpus_id = $1 AND entry_id = $2;
                """,
                corpus_id,
                entry.entry_id,
                entry.question,
                json.dumps(entry.expected_paths),
                entry.expected_answer,
                json.dumps(entry.tags),
            )
        return int(result.split()[-1]) > 0

    async def delete_dataset_entry(self, corpus_id: str, entry_id: str) -> bool:
        await self._require_pool()
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM eval_dataset WHERE corpus_id = $1 AND entry_id = $2;",
                corpus_id,
                entry_id,
            )
        return int(result.split()[-1]) > 0

    # ---------------------------------------------------------------------
    # Eval runs
    # ---------------------------------------------------------------------

    async def upsert_eval_run(self, run: EvalRun) -> None:
        await self._require_pool()
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO eval_runs (run_id, corpus_id, dataset_id, top1_accuracy, topk_accuracy, mrr,
                                       total, duration_secs, completed_at, run_json)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10::jsonb)
                ON CONFLICT (run_id) DO UPDATE SET
                  corpus_id = EXCLUDED.corpus_id,
                  dataset_id = EXCLUDED.dataset_id,
                  top1_accuracy = EXCLUDED.top1_accuracy,
                  topk_accuracy = EXCLUDED.topk_accuracy,
                  mrr = EXCLUDED.mrr,
                  total = EXCLUDED.total,
                  duration_secs = EXCLUDED.duration_secs,
                  completed_at = EXCLUDED.completed_at,
                  run_json = EXCLUDED.run_json,
                  updated_at = now();
                """,
                run.run_id,
                run.corpus_id,
                run.dataset_id,
                float(run.top1_accuracy),
                float(run.topk_accuracy),
                float(run.metrics.mrr),
                int(run.total),
                float(run.duration_secs),
                run.completed_at,
                run.model_dump_json(),
            )

    async def get_eval_run(self, run_id: str) -> EvalRun | None:
        await self._require_pool()
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            raw = await conn.fetchval("SELECT run_json FROM eval_runs WHERE run_id = $1;", run_id)
        if raw is None:
            return None
        return EvalRun.model_validate(_coerce_jsonb_dict(raw))

    async def latest_eval_run(self, corpus_id: str) -> EvalRun | None:
        await self._require_pool()
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            raw = await conn.fetchval(
                """
                SELECT run_json FROM eval_runs
                WHERE corpus_id = $1
                ORDER BY completed_at DESC, run_id DESC
                LIMIT 1;
                """,
                corpus_id,
            )
        if raw is None:
            return None
        return EvalRun.model_validate(_coerce_jsonb_dict(raw))

    async def list_eval_runs(self, corpus_id: str, limit: int = 50) -> list[EvalRunMeta]:
        await self._require_pool()
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT run_id, top1_accuracy, topk_accuracy, mrr, total, duration_secs, completed_at
                FROM eval_runs
                WHERE corpus_id = $1
                ORDER BY completed_at DESC, run_id DESC
                LIMIT $2;
                """,
                corpus_id,
                int(limit),
            )
        return [
            EvalRunMeta(
                run_id=str(r["run_id"]),
                top1_accuracy=float(r["top1_accuracy"]),
                topk_accuracy=float(r["topk_accuracy"]),
                mrr=float(r["mrr"]) if r["mrr"] is not None else None,
                total=int(r["total"]),
                duration_secs=float(r["duration_secs"]),
                completed_at=r["completed_at"],
            )
            for r in rows
        ]

    async def _require_pool(self) -> None:
        if self._pool is None:
            await self.connect()
