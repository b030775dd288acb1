from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from server.models.ragweld_config_model import Chunk, Corpus, CorpusSnapshot, Entity, Relationship

# Per-edge provenance lists are bounded so hub edges stay small.
MAX_PROVENANCE_ITEMS = 25
_PROVENANCE_KEYS = ("chunk_ids", "file_paths")


class EdgeMergePolicy(str, Enum):
    """How a duplicate (source, target, relation_type) edge is folded into the first one."""

    ADDITIVE = "additive"
    FIRST_WINS = "first_wins"


DEFAULT_EDGE_MERGE_POLICIES: dict[str, EdgeMergePolicy] = {
    "related_to": EdgeMergePolicy.ADDITIVE,
    "references": EdgeMergePolicy.ADDITIVE,
}


def _merge_capped(a: Any, b: Any, cap: int) -> list[str] | None:
    left = [str(x) for x in a] if isinstance(a, list) else []
    right = [str(x) for x in b] if isinstance(b, list) else []
    if not left and not right:
        return None
    return list(dict.fromkeys(left + right))[:cap]


class EdgeAccumulator:
    """Aggregate the edges of one corpus, merging duplicates by relation policy.

    Relations missing from ``policies`` use ``default_policy`` (first wins).
    Additive merges sum weights and set-merge ``chunk_ids``/``file_paths``.
    """

    def __init__(
        self,
        policies: Mapping[str, EdgeMergePolicy] | None = None,
        *,
        default_policy: EdgeMergePolicy = EdgeMergePolicy.FIRST_WINS,
    ):
        self.policies = dict(DEFAULT_EDGE_MERGE_POLICIES if policies is None else policies)
        self.default_policy = default_policy
        self._edges: dict[tuple[str, str, str], Relationship] = {}

    def policy_for(self, relation_type: str) -> EdgeMergePolicy:
        return self.policies.get(relation_type, self.default_policy)

    def add(self, edge: Relationship) -> None:
        key = (edge.source_id, edge.target_id, edge.relation_type)
        existing = self._edges.get(key)
        if existing is None:
            self._edges[key] = edge.model_copy(deep=True)
            return
        if self.policy_for(edge.relation_type) is not EdgeMergePolicy.ADDITIVE:
            return

        existing.weight = float(existing.weight) + float(edge.weight)
        for name in _PROVENANCE_KEYS:
            merged = _merge_capped(existing.properties.get(name), edge.properties.get(name), MAX_PROVENANCE_ITEMS)
            if merged is not None:
                existing.properties[name] = merged

    def extend(self, edges: Iterable[Relationship]) -> None:
        for edge in edges:
            self.add(edge)

    def edges(self) -> list[Relationship]:
        return list(self._edges.values())

    def __len__(self) -> int:
        return len(self._edges)


class SnapshotBuilder:
    """Collect the chunks, entities and edges of one corpus into a re-index snapshot."""

    def __init__(self, corpus: Corpus, *, edge_policies: Mapping[str, EdgeMergePolicy] | None = None):
        self.corpus = corpus
        self._chunks: dict[str, Chunk] = {}
        self._entities: dict[str, Entity] = {}
        self._edges = EdgeAccumulator(edge_policies)

    def add_chunk(self, chunk: Chunk) -> None:
        self._chunks.setdefault(chunk.chunk_id, chunk)

    def add_entity(self, entity: Entity) -> None:
        self._entities.setdefault(entity.entity_id, entity)

    def add_edge(self, edge: Relationship) -> None:
        self._edges.add(edge)

    def build(self) -> CorpusSnapshot:
        # Drop edges whose endpoints were never registered as entities.
        edges = [e for e in self._edges.edges() if e.source_id in self._entities and e.target_id in self._entities]
        return CorpusSnapshot(
            corpus=self.corpus,
            chunks=list(self._chunks.values()),
            entities=list(self._entities.values()),
            relationships=edges,
        )
