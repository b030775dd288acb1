"""Tests for degree ranking and bounded neighbor walks."""

from __future__ import annotations

import pytest

from server.models.ragweld_config_model import Corpus, CorpusSnapshot, Entity, Relationship
from server.retrieval.graph import GraphTraversal, rank_by_degree
from tests.fakes import FakeCorpusStore, build_demo_snapshot


def _entity(eid: str, name: str | None = None) -> Entity:
    return Entity(entity_id=eid, name=name or eid, entity_type="concept")


def _edge(a: str, b: str, rel: str = "related_to") -> Relationship:
    return Relationship(source_id=a, target_id=b, relation_type=rel)


def _store_with(entities: list[Entity], edges: list[Relationship], corpus_id: str = "c") -> FakeCorpusStore:
    store = FakeCorpusStore()
    store.load(
        CorpusSnapshot(
            corpus=Corpus(corpus_id=corpus_id, name=corpus_id),
            entities=entities,
            relationships=edges,
        )
    )
    return store


def test_rank_by_degree_orders_by_degree_then_name_then_id() -> None:
    scored = [
        (_entity("3", "beta"), 2),
        (_entity("2", "alpha"), 2),
        (_entity("1", "alpha"), 2),
        (_entity("4", "zeta"), 5),
    ]
    ranked = rank_by_degree(scored, limit=10)
    assert [e.entity_id for e in ranked] == ["4", "1", "2", "3"]
    assert ranked[0].properties["degree"] == 5


def test_rank_by_degree_respects_limit() -> None:
    scored = [(_entity(str(i)), i) for i in range(5)]
    assert len(rank_by_degree(scored, limit=2)) == 2


@pytest.mark.asyncio
async def test_ranked_entities_counts_both_edge_ends() -> None:
    store = FakeCorpusStore()
    store.load(build_demo_snapshot("faxbot"))

    ranked = await GraphTraversal(store).ranked_entities("faxbot")

    assert ranked[0].entity_id == "module:main"
    degrees = {e.entity_id: e.properties["degree"] for e in ranked}
    assert degrees["module:phaxio"] == 2
    assert degrees["concept:orphan"] == 0


@pytest.mark.asyncio
async def test_neighbors_of_unknown_entity_is_none() -> None:
    store = _store_with([_entity("a")], [])
    assert await GraphTraversal(store).neighbors("c", "missing") is None


@pytest.mark.asyncio
async def test_neighbors_of_isolated_entity_is_just_the_seed() -> None:
    store = _store_with([_entity("a"), _entity("b")], [])
    result = await GraphTraversal(store).neighbors("c", "a")
    assert result is not None
    assert [e.entity_id for e in result.entities] == ["a"]
    assert result.relationships == []


@pytest.mark.asyncio
async def test_neighbors_walk_is_undirected_and_bounded_by_hops() -> None:
    # a -> b <- c -> d : undirected chain a-b-c-d
    store = _store_with(
        [_entity(x) for x in "abcd"],
        [_edge("a", "b"), _edge("c", "b"), _edge("c", "d")],
    )
    traversal = GraphTraversal(store)

    one = await traversal.neighbors("c", "a", max_hops=1)
    two = await traversal.neighbors("c", "a", max_hops=2)
    three = await traversal.neighbors("c", "a", max_hops=3)

    assert one is not None and two is not None and three is not None
    assert {e.entity_id for e in one.entities} == {"a", "b"}
    assert {e.entity_id for e in two.entities} == {"a", "b", "c"}
    assert {e.entity_id for e in three.entities} == {"a", "b", "c", "d"}


@pytest.mark.asyncio
async def test_neighbors_relationships_only_connect_returned_entities() -> None:
    store = _store_with(
        [_entity(x) for x in "abcd"],
        [_edge("a", "b"), _edge("b", "c"), _edge("c", "d")],
    )
    result = await GraphTraversal(store).neighbors("c", "a", max_hops=1)
    assert result is not None
    ids = {e.entity_id for e in result.entities}
    for rel in result.relationships:
        assert rel.source_id in ids
        assert rel.target_id in ids
    assert len(result.relationships) == 1


@pytest.mark.asyncio
async def test_neighbors_terminates_on_cycles() -> None:
    store = _store_with(
        [_entity(x) for x in "abc"],
        [_edge("a", "b"), _edge("b", "c"), _edge("c", "a"), _edge("a", "a")],
    )
    result = await GraphTraversal(store).neighbors("c", "a", max_hops=5)
    assert result is not None
    ids = [e.entity_id for e in result.entities]
    assert sorted(ids) == ["a", "b", "c"]
    assert len(ids) == len(set(ids))


@pytest.mark.asyncio
async def test_neighbors_hops_are_clamped() -> None:
    store = _store_with(
        [_entity(x) for x in "abcdefg"],
        [_edge(a, b) for a, b in zip("abcdef", "bcdefg")],
    )
    result = await GraphTraversal(store).neighbors("c", "a", max_hops=99)
    assert result is not None
    # Clamped to 5 hops: a..f reachable, g is six hops away.
    assert {e.entity_id for e in result.entities} == set("abcdef")


@pytest.mark.asyncio
async def test_stats_counts_by_type() -> None:
    store = FakeCorpusStore()
    store.load(build_demo_snapshot("faxbot"))
    stats = await GraphTraversal(store).stats("faxbot")
    assert stats.total_entities == 5
    assert stats.total_relationships == 3
    assert stats.entity_breakdown == {"module": 3, "concept": 2}
    assert stats.relationship_breakdown == {"imports": 2, "references": 1}
