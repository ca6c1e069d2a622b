"""
SQL Safety Validator

Rule-based checks applied to every candidate statement before it reaches
the database. No LLM calls and no database access: the same input always
yields the same ValidationResult, and malformed input yields a failed
result rather than an exception.

Checks, in order (first failure wins):
1. Statement starts with SELECT
2. No DML/DDL keywords anywhere
3. Exactly one statement
4. No *Id column compared to a string literal
5. Every FROM/JOIN table is in the allow-list (when one is given)
6. A FROM clause is present
"""

import logging
import re
from collections.abc import Iterable

import sqlparse
from sqlparse import tokens as T
from sqlparse.sql import Comment, Identifier, IdentifierList, Parenthesis, Token, TokenList

from packsql.models.sql import SqlErrorKind, ValidationResult

logger = logging.getLogger(__name__)

SELECT_START = re.compile(r"^\s*SELECT\b", re.IGNORECASE)
FORBIDDEN_KEYWORDS = re.compile(
    r"\b(INSERT|UPDATE|DELETE|MERGE|TRUNCATE|CREATE|ALTER|DROP|EXEC|EXECUTE)\b",
    re.IGNORECASE,
)
TRAILING_STATEMENT = re.compile(r";\s*\S")
ID_COLUMN = r"[A-Za-z_][A-Za-z0-9_]*(?:Id|ID|_id)"
ID_VS_STRING = re.compile(
    rf"\b{ID_COLUMN}[\]\"]?\s*=\s*N?'[^']*'|N?'[^']*'\s*=\s*[\[\"]?(?:\w+[\]\"]?\.[\[\"]?)?{ID_COLUMN}\b"
)
HAS_FROM = re.compile(r"\bFROM\b", re.IGNORECASE)

NAME_PART = re.compile(r'(?:\[[^\]]+\]|"[^"]+"|`[^`]+`|[A-Za-z_][A-Za-z0-9_$#@]*)')
# Keywords that may sit between FROM and the table name
TABLE_PREFIX_KEYWORDS = {"LATERAL", "ONLY"}


def normalize_reference(reference: str) -> str:
    """
    Reduce a FROM/JOIN target to its bare table name.

    Examples:
        >>> normalize_reference("[dbo].[Order Details]")
        'Order Details'
        >>> normalize_reference('"public"."orders"')
        'orders'
    """
    parts = NAME_PART.findall(reference)
    last = parts[-1] if parts else reference
    return last.strip().strip('[]"`').strip()


def _is_subquery(token: Token) -> bool:
    return isinstance(token, Parenthesis) and any(
        t.ttype is T.DML and t.normalized == "SELECT" for t in token.tokens
    )


def _opens_table_list(token: Token) -> bool:
    return token.is_keyword and (token.normalized == "FROM" or token.normalized.endswith("JOIN"))


def _is_noise(token: Token) -> bool:
    return token.is_whitespace or isinstance(token, Comment) or token.ttype in T.Comment


def _add_table(tables: list[str], name: str | None) -> None:
    bare = normalize_reference(name or "")
    if bare and bare not in tables:
        tables.append(bare)


def _collect_targets(token: Token, tables: list[str]) -> None:
    """Record the table(s) named by the token that follows FROM or JOIN."""
    if isinstance(token, IdentifierList):
        for item in token.get_identifiers():
            _collect_targets(item, tables)
    elif _is_subquery(token):
        _collect_tables(token, tables, query_level=True)
    elif isinstance(token, Identifier):
        subqueries = [t for t in token.tokens if _is_subquery(t)]
        for subquery in subqueries:
            _collect_tables(subquery, tables, query_level=True)
        if not subqueries:
            _add_table(tables, token.get_real_name())
    elif token.is_group:
        # Table-valued function call; only nested subqueries name tables
        _collect_tables(token, tables, query_level=False)
    elif token.ttype in T.Name or token.ttype in T.Keyword or token.ttype in T.String.Symbol:
        _add_table(tables, token.value)


def _collect_tables(group: TokenList, tables: list[str], query_level: bool) -> None:
    """
    Walk a parsed token group for table references.

    FROM/JOIN only count at query level (a statement or a subquery), so
    `EXTRACT(YEAR FROM col)` and friends never name a table.
    """
    expecting = False
    for token in group.tokens:
        if _is_noise(token):
            continue
        if expecting:
            if token.is_keyword and token.normalized in TABLE_PREFIX_KEYWORDS:
                continue
            expecting = False
            if not _opens_table_list(token):
                _collect_targets(token, tables)
                continue
        if query_level and _opens_table_list(token):
            expecting = True
        elif token.is_group:
            _collect_tables(token, tables, query_level=_is_subquery(token))


def referenced_tables(sql: str) -> list[str]:
    """Bare names of the tables a statement reads, in order of appearance."""
    tables: list[str] = []
    for statement in sqlparse.parse(sql):
        _collect_tables(statement, tables, query_level=True)
    return tables


def validate(sql: str | None, allowed_tables: Iterable[str] | None = None) -> ValidationResult:
    """
    Validate a candidate SQL statement.

    Args:
        sql: Candidate statement
        allowed_tables: Tables the statement may read; empty or None disables the check

    Returns:
        ValidationResult (valid exactly when kind is None)
    """
    if sql is None or not sql.strip():
        return ValidationResult.fail(SqlErrorKind.SYNTAX_SUSPICIOUS, "Empty SQL.")

    if not SELECT_START.search(sql):
        return ValidationResult.fail(
            SqlErrorKind.DISALLOWED_DML, "Only a single SELECT statement is allowed."
        )

    if FORBIDDEN_KEYWORDS.search(sql):
        return ValidationResult.fail(
            SqlErrorKind.DISALLOWED_DML, "DML/DDL keywords are not allowed."
        )

    if TRAILING_STATEMENT.search(sql):
        return ValidationResult.fail(
            SqlErrorKind.MULTIPLE_STATEMENTS, "Multiple statements are not allowed."
        )

    if ID_VS_STRING.search(sql):
        return ValidationResult.fail(
            SqlErrorKind.ID_VS_STRING_COMPARE,
            "String literal compared to an Id column. "
            "Join to the lookup table and filter by its TEXT column.",
        )

    allowed = [t for t in (allowed_tables or []) if t and t.strip()]
    if allowed:
        allowed_keys = {normalize_reference(t).lower() for t in allowed}
        for table in referenced_tables(sql):
            if table.lower() not in allowed_keys:
                return ValidationResult.fail(
                    SqlErrorKind.DISALLOWED_TABLE,
                    f"Table '{table}' is not allowed. Allowed: {', '.join(allowed)}",
                )

    if not HAS_FROM.search(sql):
        return ValidationResult.fail(
            SqlErrorKind.SYNTAX_SUSPICIOUS, "Query seems to be missing a FROM clause."
        )

    return ValidationResult.ok()


class SqlValidator:
    """
    Object wrapper around `validate` for injection into the synthesis loop.

    Usage:
        validator = SqlValidator()
        result = validator.validate("SELECT * FROM Orders", ["Orders"])
        ok, error = validator.try_validate("DROP TABLE Orders", ["Orders"])
    """

    def validate(self, sql: str | None, allowed_tables: Iterable[str] | None = None) -> ValidationResult:
        result = validate(sql, allowed_tables)
        if not result.valid:
            logger.debug(
                f"SQL rejected: {result.describe()}",
                extra={"kind": result.kind.value},
            )
        return result

    def try_validate(
        self, sql: str | None, allowed_tables: Iterable[str] | None = None
    ) -> tuple[bool, str | None]:
        """Return `(True, None)` or `(False, "<Kind>: <message>")`."""
        result = self.validate(sql, allowed_tables)
        if result.valid:
            return True, None
        return False, result.describe()
