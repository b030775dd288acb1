from server.indexing.snapshot import EdgeAccumulator, EdgeMergePolicy, SnapshotBuilder

__all__ = ["EdgeAccumulator", "EdgeMergePolicy", "SnapshotBuilder"]
