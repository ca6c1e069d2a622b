"""
Database connectors.

Usage:
    from packsql.connectors import PostgresConnector, ConnectorSqlExecutor

    connector = PostgresConnector.from_url(str(settings.database.url))
    executor = ConnectorSqlExecutor(connector)
"""

from packsql.connectors.base import (
    BaseConnector,
    ConnectionError,
    ConnectorError,
    QueryError,
    SchemaError,
)
from packsql.connectors.executor import ConnectorSqlExecutor
from packsql.connectors.postgres import PostgresConnector, assemble_schema

__all__ = [
    "BaseConnector",
    "ConnectionError",
    "ConnectorError",
    "ConnectorSqlExecutor",
    "PostgresConnector",
    "QueryError",
    "SchemaError",
    "assemble_schema",
]
