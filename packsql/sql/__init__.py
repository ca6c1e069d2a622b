"""SQL validation, extraction and prompt building."""

from packsql.sql.normalize import extract_sql, normalize_sql
from packsql.sql.prompts import PromptBuilder
from packsql.sql.validator import SqlValidator, referenced_tables, validate

__all__ = [
    "PromptBuilder",
    "SqlValidator",
    "extract_sql",
    "normalize_sql",
    "referenced_tables",
    "validate",
]
