"""
FastAPI Application

Main FastAPI application for PackSQL with:
- Lifespan management for the connector, schema snapshot and synthesis runner
- CORS middleware for frontend integration
- Exception handlers mapping the error taxonomy to HTTP responses
- Health, slicing, validation and query endpoints

Usage:
    uvicorn packsql.api.main:app --reload --port 8000
"""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from packsql import __version__
from packsql.api.routes import health, query, schema, sql
from packsql.config import Settings, get_settings
from packsql.connectors.executor import ConnectorSqlExecutor
from packsql.connectors.postgres import PostgresConnector
from packsql.healing.runner import SelfHealingSqlRunner
from packsql.llm.factory import LLMProviderFactory
from packsql.llm.sql_client import LLMSqlClient
from packsql.models.errors import (
    PackNotFound,
    PackSQLError,
    SynthesisExhausted,
    TransportFailure,
)
from packsql.pipeline.service import QueryService
from packsql.slicing.cache import InMemoryPackCache
from packsql.sql.prompts import PromptBuilder
from packsql.sql.validator import SqlValidator

logger = logging.getLogger(__name__)

# Global state shared by the routes; "schema" is the database snapshot taken
# at startup, used for slices activated from a file
app_state: dict[str, Any] = {
    "cache": InMemoryPackCache(),
    "schema": None,
    "connector": None,
    "runner": None,
}


def build_runner(config: Settings, connector: PostgresConnector) -> SelfHealingSqlRunner:
    """Wire the LLM client, executor and validator into a synthesis runner."""
    provider = LLMProviderFactory.create_default_provider(config.llm)
    llm = LLMSqlClient(provider, PromptBuilder(dialect=config.healing.dialect))
    return SelfHealingSqlRunner(
        llm=llm,
        executor=ConnectorSqlExecutor(connector, timeout=config.database.pool_timeout),
        validator=SqlValidator(),
        max_error_chars=config.healing.max_error_chars,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Lifespan context manager for startup and shutdown.

    Initializes:
    - Database connector (PostgreSQL) and its schema snapshot
    - Self-healing runner (when an LLM key is configured)
    """
    config = get_settings()
    logger.info("Starting PackSQL API server...")

    try:
        logger.info("Initializing database connector...")
        if config.database.url:
            connector = PostgresConnector.from_url(
                str(config.database.url),
                pool_size=config.database.pool_size,
                timeout=config.database.pool_timeout,
            )
            await connector.connect()
            app_state["connector"] = connector
            app_state["schema"] = await connector.get_schema(config.database.schema_name)
        else:
            logger.warning("DATABASE_URL not set; target database connector not initialized.")
            app_state["connector"] = None

        logger.info("Initializing synthesis runner...")
        if app_state["connector"] is not None and config.llm.api_key_for():
            app_state["runner"] = build_runner(config, app_state["connector"])
        else:
            logger.warning("Synthesis runner not initialized; database or LLM key is missing.")
            app_state["runner"] = None

        logger.info("PackSQL API server started successfully")

        yield

    finally:
        logger.info("Shutting down PackSQL API server...")

        if app_state["connector"]:
            try:
                await app_state["connector"].close()
                logger.info("Database connector closed")
            except Exception as e:
                logger.error(f"Error closing connector: {e}")
            app_state["connector"] = None

        app_state["runner"] = None
        logger.info("PackSQL API server shut down complete")


app = FastAPI(
    title="PackSQL API",
    description="Schema slicing and self-healing text-to-SQL",
    version=__version__,
    lifespan=lifespan,
)

cors_origins_env = os.getenv("CORS_ORIGINS", "")
cors_origins = (
    [origin.strip() for origin in cors_origins_env.split(",") if origin.strip()]
    if cors_origins_env
    else ["http://localhost:3000"]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PackNotFound)
async def pack_not_found_handler(request: Request, exc: PackNotFound) -> JSONResponse:
    """No active slice, or an unknown category."""
    logger.warning(f"Pack lookup failed: {exc.message}", extra=exc.context)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "error": "pack_not_found",
            "message": exc.message,
            "category_id": exc.context.get("category_id"),
        },
    )


@app.exception_handler(SynthesisExhausted)
async def synthesis_exhausted_handler(request: Request, exc: SynthesisExhausted) -> JSONResponse:
    """Refinement budget exhausted; report the last stage, SQL and error."""
    logger.error(
        f"Synthesis exhausted at {exc.stage}",
        extra={"stage": exc.stage, "attempts": exc.attempts},
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "synthesis_exhausted",
            "message": exc.message,
            "stage": exc.stage,
            "last_sql": exc.last_sql,
            "last_error": exc.last_error,
            "attempts": exc.attempts,
            "kind": exc.kind.value if exc.kind else None,
        },
    )


@app.exception_handler(TransportFailure)
async def transport_failure_handler(request: Request, exc: TransportFailure) -> JSONResponse:
    """LLM or database unreachable."""
    logger.error(f"Transport failure: {exc}", extra={"component": exc.component})
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error": "transport_failure",
            "message": exc.message,
            "component": exc.component,
        },
    )


@app.exception_handler(PackSQLError)
async def packsql_error_handler(request: Request, exc: PackSQLError) -> JSONResponse:
    """Handle any other error from the core with its context."""
    logger.error(
        f"PackSQL error: {exc}",
        extra={"component": exc.component, "recoverable": exc.recoverable},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "packsql_error", **exc.to_dict()},
    )


app.include_router(health.router, prefix="/api/v1", tags=["health"])
app.include_router(schema.router, prefix="/api/v1", tags=["schema"])
app.include_router(sql.router, prefix="/api/v1", tags=["sql"])
app.include_router(query.router, prefix="/api/v1", tags=["query"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "name": "PackSQL API",
        "version": __version__,
        "description": "Schema slicing and self-healing text-to-SQL",
        "docs": "/docs",
    }


def get_query_service() -> QueryService:
    """Build a query service over the current cache, schema and runner."""
    active = app_state["cache"].snapshot()
    if active is None:
        raise PackNotFound("No active slice. Slice a schema first.")
    if active.schema is None and app_state["schema"] is None:
        raise PackNotFound("The active slice has no schema snapshot. Slice a schema first.")
    if app_state["runner"] is None:
        raise TransportFailure("api", "Synthesis runner not initialized")
    return QueryService(
        cache=app_state["cache"],
        schema=app_state["schema"],
        runner=app_state["runner"],
        settings=get_settings().healing,
    )
