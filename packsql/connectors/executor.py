"""
Connector-backed SQL executor for the synthesis loop.

Separates database-side rejections (refined by the loop) from connectivity
problems (propagated immediately).
"""

import logging

from packsql.connectors.base import BaseConnector, ConnectionError, QueryError
from packsql.models.errors import ExecutionFailure, TransportFailure
from packsql.models.sql import QueryResult

logger = logging.getLogger(__name__)


class ConnectorSqlExecutor:
    """Execute validated SQL through a connector."""

    def __init__(self, connector: BaseConnector, timeout: int | None = None):
        self.connector = connector
        self.timeout = timeout

    async def execute(self, sql: str) -> QueryResult:
        try:
            return await self.connector.execute(sql, timeout=self.timeout)
        except QueryError as e:
            raise ExecutionFailure(str(e), context={"sql": sql[:200]}) from e
        except ConnectionError as e:
            raise TransportFailure("executor", str(e)) from e
