from server.db.postgres import CorpusNotFoundError, PostgresClient, StoreNotConfiguredError

__all__ = ["CorpusNotFoundError", "PostgresClient", "StoreNotConfiguredError"]
