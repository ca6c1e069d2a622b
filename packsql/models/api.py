"""
API Request/Response Models

Pydantic models for FastAPI endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str = Field(..., description="Service status: 'healthy' or 'unhealthy'")
    version: str = Field(..., description="API version")
    timestamp: str = Field(..., description="Check timestamp (ISO format)")


class ReadinessResponse(BaseModel):
    """Response model for readiness check endpoint."""

    status: str = Field(..., description="'ready' or 'not_ready'")
    version: str = Field(..., description="API version")
    timestamp: str = Field(..., description="Check timestamp (ISO format)")
    checks: dict[str, bool] = Field(..., description="Status of individual components")


class ValidateSqlRequest(BaseModel):
    """Request model for SQL validation."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "sql": "SELECT OrderId FROM Orders",
                "allowedTables": ["Orders", "OrderLines"],
            }
        },
    )

    sql: str = Field(..., description="Candidate SQL statement")
    allowed_tables: list[str] = Field(
        default_factory=list, description="Tables the statement may reference"
    )


class QueryRequest(BaseModel):
    """Request model for the question endpoint."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "question": "How many orders shipped last month?",
                "categoryId": "sales_shipping",
            }
        },
    )

    question: str = Field(..., min_length=1, description="Natural language question")
    category_id: str | None = Field(None, description="Force a specific pack")
