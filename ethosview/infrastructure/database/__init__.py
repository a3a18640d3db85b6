from .postgres_client import (
    DatabaseClient,
    build_database_url,
    close_database,
    get_database_client,
    init_database,
)

__all__ = [
    "DatabaseClient",
    "build_database_url",
    "close_database",
    "get_database_client",
    "init_database",
]
