from server.retrieval.graph import GraphTraversal
from server.retrieval.sparse import SparseRetriever

__all__ = [
    "SparseRetriever",
    "GraphTraversal",
]
