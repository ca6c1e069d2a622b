"""
SQL Validation Routes
"""

from fastapi import APIRouter

from packsql.models.api import ValidateSqlRequest
from packsql.models.sql import ValidationResult
from packsql.sql.validator import SqlValidator

router = APIRouter()

validator = SqlValidator()


@router.post("/sql/validate", response_model=ValidationResult)
async def validate_sql(request: ValidateSqlRequest) -> ValidationResult:
    """Run the safety checks against a candidate statement."""
    return validator.validate(request.sql, request.allowed_tables)
