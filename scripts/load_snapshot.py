#!/usr/bin/env python3
"""Load an indexing-job snapshot (JSON) into the corpus store.

Duplicate edges in the file are folded with the snapshot edge merge policy
before the corpus is atomically re-indexed.
"""

import argparse
import asyncio
import json
import os
from pathlib import Path

from server.db.postgres import PostgresClient
from server.indexing.snapshot import SnapshotBuilder
from server.models.ragweld_config_model import Chunk, Corpus, CorpusSnapshot, Entity, Relationship


def build_snapshot(raw: dict) -> CorpusSnapshot:
    builder = SnapshotBuilder(Corpus.model_validate(raw["corpus"]))
    for item in raw.get("chunks") or []:
        builder.add_chunk(Chunk.model_validate(item))
    for item in raw.get("entities") or []:
        builder.add_entity(Entity.model_validate(item))
    for item in raw.get("relationships") or []:
        builder.add_edge(Relationship.model_validate(item))
    return builder.build()


async def load_snapshot(dsn: str, path: Path, *, dry_run: bool = False) -> dict:
    snapshot = build_snapshot(json.loads(path.read_text(encoding="utf-8")))
    counts = {
        "chunks": len(snapshot.chunks),
        "entities": len(snapshot.entities),
        "relationships": len(snapshot.relationships),
    }
    if dry_run:
        return {"corpus_id": snapshot.corpus.corpus_id, "dry_run": True, **counts}

    pg = PostgresClient(dsn)
    try:
        await pg.connect()
        written = await pg.reindex_corpus(snapshot)
    finally:
        await PostgresClient.close_shared_pools()
    return {"corpus_id": snapshot.corpus.corpus_id, "dry_run": False, **written}


def main():
    parser = argparse.ArgumentParser(description="Re-index one corpus from a snapshot JSON file")
    parser.add_argument("snapshot", type=Path, help="Snapshot JSON ({corpus, chunks, entities, relationships})")
    parser.add_argument(
        "--dsn",
        default=os.getenv("RAGWELD_DATABASE_URL") or os.getenv("DATABASE_URL") or "",
        help="Postgres connection string",
    )
    parser.add_argument("--dry-run", action="store_true", help="Validate and merge without writing")
    args = parser.parse_args()

    result = asyncio.run(load_snapshot(args.dsn, args.snapshot, dry_run=args.dry_run))
    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
