"""
Tests for ConnectorSqlExecutor.

Covers the split between refinable execution errors and transport errors.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from packsql.connectors.base import ConnectionError, QueryError
from packsql.connectors.executor import ConnectorSqlExecutor
from packsql.models.errors import ExecutionFailure, TransportFailure
from packsql.models.sql import QueryResult


@pytest.fixture
def connector():
    mock = Mock()
    mock.execute = AsyncMock(
        return_value=QueryResult(columns=["n"], rows=[{"n": 3}], row_count=1)
    )
    return mock


class TestConnectorSqlExecutor:
    """Test ConnectorSqlExecutor."""

    @pytest.mark.asyncio
    async def test_passes_timeout(self, connector):
        """Test the configured timeout reaches the connector."""
        executor = ConnectorSqlExecutor(connector, timeout=12)

        result = await executor.execute("SELECT COUNT(*) AS n FROM Orders")

        assert result.rows == [{"n": 3}]
        connector.execute.assert_awaited_once_with(
            "SELECT COUNT(*) AS n FROM Orders", timeout=12
        )

    @pytest.mark.asyncio
    async def test_query_error_is_recoverable(self, connector):
        """Test database rejections become ExecutionFailure."""
        connector.execute.side_effect = QueryError('column "foo" does not exist')

        with pytest.raises(ExecutionFailure) as exc_info:
            await ConnectorSqlExecutor(connector).execute("SELECT foo FROM Orders")

        assert exc_info.value.recoverable is True
        assert 'column "foo" does not exist' in exc_info.value.message
        assert exc_info.value.context["sql"] == "SELECT foo FROM Orders"

    @pytest.mark.asyncio
    async def test_connection_error_is_transport(self, connector):
        """Test connectivity failures become TransportFailure."""
        connector.execute.side_effect = ConnectionError("Not connected to database.")

        with pytest.raises(TransportFailure) as exc_info:
            await ConnectorSqlExecutor(connector).execute("SELECT 1")

        assert exc_info.value.recoverable is False
        assert exc_info.value.component == "executor"
