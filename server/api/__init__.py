from server.api import chat, config, corpora, dataset, eval, graph, health, index, mcp, prompts, search

__all__ = [
    "chat",
    "config",
    "corpora",
    "dataset",
    "eval",
    "graph",
    "health",
    "index",
    "mcp",
    "prompts",
    "search",
]
