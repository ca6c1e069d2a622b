"""
Base Database Connector

Abstract async interface used both as the schema provider (full snapshot
introspection) and as the statement executor.

All connectors must implement:
- connect(): Establish connection with connection pooling
- execute(): Run a query with an optional timeout
- get_schema(): Return a full Schema snapshot
- close(): Clean up connections and pools
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from packsql.models.schema import Schema
from packsql.models.sql import QueryResult

logger = logging.getLogger(__name__)


class ConnectorError(Exception):
    """Base exception for connector errors."""

    pass


class ConnectionError(ConnectorError):
    """Error establishing or managing database connection."""

    pass


class QueryError(ConnectorError):
    """Error executing database query."""

    pass


class SchemaError(ConnectorError):
    """Error introspecting database schema."""

    pass


class BaseConnector(ABC):
    """
    Abstract base class for database connectors.

    Usage:
        async with PostgresConnector(host="localhost", ...) as connector:
            schema = await connector.get_schema("public")
            result = await connector.execute("SELECT * FROM orders")
    """

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        pool_size: int = 5,
        timeout: int = 30,
        **kwargs: Any,
    ):
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.pool_size = pool_size
        self.timeout = timeout
        self.kwargs = kwargs

        self._pool = None
        self._connected = False

        logger.info(f"Initialized {self.__class__.__name__} for {user}@{host}:{port}/{database}")

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish database connection and create connection pool.

        Raises:
            ConnectionError: If connection fails
        """
        pass

    @abstractmethod
    async def execute(self, query: str, timeout: int | None = None) -> QueryResult:
        """
        Execute a SQL query.

        Raises:
            QueryError: If query execution fails
            ConnectionError: If not connected
        """
        pass

    @abstractmethod
    async def get_schema(self, schema_name: str | None = None) -> Schema:
        """
        Introspect tables, columns, primary keys and foreign keys in both directions.

        Raises:
            SchemaError: If schema introspection fails
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close database connection and clean up pool. Safe to call twice."""
        pass

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    def __repr__(self) -> str:
        status = "connected" if self._connected else "disconnected"
        return f"<{self.__class__.__name__} {self.user}@{self.host}:{self.port}/{self.database} ({status})>"
