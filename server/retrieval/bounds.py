"""Hard request bounds shared by the search and graph engines."""

from __future__ import annotations

from typing import Any

SEARCH_TOP_K_MIN = 1
SEARCH_TOP_K_MAX = 50
SEARCH_TOP_K_DEFAULT = 10

ENTITY_LIMIT_MIN = 1
ENTITY_LIMIT_MAX = 500
ENTITY_LIMIT_DEFAULT = 50

NEIGHBOR_HOPS_MIN = 1
NEIGHBOR_HOPS_MAX = 5
NEIGHBOR_HOPS_DEFAULT = 2

NEIGHBOR_LIMIT_MIN = 10
NEIGHBOR_LIMIT_MAX = 2000
NEIGHBOR_LIMIT_DEFAULT = 200

# Upper bound on entities returned by a neighbor walk, independent of `limit`.
NEIGHBOR_ENTITY_CAP = 500


def clamp_int(value: Any, lo: int, hi: int, default: int) -> int:
    """Coerce `value` to an int inside [lo, hi]; unparseable values use `default`."""
    try:
        n = int(value)
    except (TypeError, ValueError):
        n = default
    return max(lo, min(hi, n))
