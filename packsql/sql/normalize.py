"""
SQL extraction and dialect normalization for LLM output.

LLMs wrap SQL in markdown, add commentary and sometimes emit a second
statement. `extract_sql` pulls out the first statement; `normalize_sql`
applies small, mechanical dialect fixes (row limits and identifier
quoting). Anything beyond that is left to the validator and the
refinement loop.
"""

import re

import sqlparse
from sqlparse import tokens as T

FENCED_BLOCK = re.compile(r"```(?:sql)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
OPEN_FENCE = re.compile(r"```(?:sql)?\s*([\s\S]+)$", re.IGNORECASE)
STATEMENT_START = re.compile(r"(?:^|[\r\n])\s*(SELECT|WITH)\b", re.IGNORECASE)
ANY_SELECT = re.compile(r"\bSELECT\b", re.IGNORECASE)

LIMIT_CLAUSE = re.compile(r"\s*\bLIMIT\s+(\d+)\b", re.IGNORECASE)
TOP_CLAUSE = re.compile(r"^(\s*SELECT\s+(?:DISTINCT\s+)?)TOP\s*\(?\s*(\d+)\s*\)?\s+", re.IGNORECASE)
FIRST_SELECT = re.compile(r"^(\s*SELECT\s+(?:DISTINCT\s+)?)", re.IGNORECASE)
BACKTICK_IDENTIFIER = re.compile(r"`([^`]+)`")
DOUBLE_QUOTED_IDENTIFIER = re.compile(r'"([^"]+)"')
BRACKET_IDENTIFIER = re.compile(r"\[([A-Za-z_][^\]]*)\]")
TABLE_AFTER_KEYWORD = re.compile(r"(\b(?:FROM|JOIN)\s+)([A-Za-z_]\w*)\b", re.IGNORECASE)
LITERAL_PLACEHOLDER = re.compile(r"\x00(\d+)\x00")

RESERVED_TABLE_NAMES = frozenset(
    {"USER", "ORDER", "GROUP", "KEY", "ROLE", "VALUE", "VALUES", "TABLE", "INDEX"}
)


def _first_statement(text: str) -> str:
    text = sqlparse.format(text, strip_comments=True).strip()
    for statement in sqlparse.split(text):
        statement = statement.strip().rstrip(";").strip()
        if statement:
            return statement
    return ""


def extract_sql(content: str | None) -> str:
    """
    Extract the first SQL statement from LLM output.

    Returns the cleaned text unchanged when no SELECT can be located so the
    validator can report what is wrong with it. Returns "" for empty input.
    """
    if not content or not content.strip():
        return ""

    text = content
    blocks = [b.strip() for b in FENCED_BLOCK.findall(content) if b.strip()]
    if blocks:
        text = next((b for b in blocks if ANY_SELECT.search(b)), blocks[0])
    else:
        open_fence = OPEN_FENCE.search(content)
        if open_fence:
            text = open_fence.group(1)
    text = text.replace("```", "").strip()

    start = STATEMENT_START.search(text) or ANY_SELECT.search(text)
    if start is None:
        return text
    return _first_statement(text[start.start():])


def _mask_literals(sql: str) -> tuple[str, list[str]]:
    """Swap single-quoted literals for placeholders so rewrites leave them alone."""
    literals: list[str] = []
    parts: list[str] = []
    for statement in sqlparse.parse(sql):
        for token in statement.flatten():
            if token.ttype in T.String.Single:
                parts.append(f"\x00{len(literals)}\x00")
                literals.append(token.value)
            else:
                parts.append(token.value)
    return "".join(parts), literals


def _unmask_literals(text: str, literals: list[str]) -> str:
    return LITERAL_PLACEHOLDER.sub(lambda m: literals[int(m.group(1))], text)


def _bracket_reserved(match: re.Match) -> str:
    name = match.group(2)
    if name.upper() in RESERVED_TABLE_NAMES:
        return f"{match.group(1)}[{name}]"
    return match.group(0)


def _quote_reserved(match: re.Match) -> str:
    name = match.group(2)
    if name.upper() in RESERVED_TABLE_NAMES:
        return f'{match.group(1)}"{name}"'
    return match.group(0)


def to_sqlserver(sql: str) -> str:
    """LIMIT n -> TOP n, quoted identifiers -> brackets, reserved table names bracketed."""
    text, literals = _mask_literals(sql.strip())
    text = BACKTICK_IDENTIFIER.sub(r"[\1]", text)
    text = DOUBLE_QUOTED_IDENTIFIER.sub(r"[\1]", text)

    limit = LIMIT_CLAUSE.search(text)
    if limit and not TOP_CLAUSE.search(text):
        text = LIMIT_CLAUSE.sub("", text, count=1).strip()
        text = FIRST_SELECT.sub(rf"\g<1>TOP {limit.group(1)} ", text, count=1)

    return _unmask_literals(TABLE_AFTER_KEYWORD.sub(_bracket_reserved, text), literals)


def to_postgresql(sql: str) -> str:
    """TOP n -> LIMIT n, backticks/brackets -> double quotes, reserved table names quoted."""
    text, literals = _mask_literals(sql.strip())
    text = BACKTICK_IDENTIFIER.sub(r'"\1"', text)
    text = BRACKET_IDENTIFIER.sub(r'"\1"', text)

    top = TOP_CLAUSE.search(text)
    if top and not LIMIT_CLAUSE.search(text):
        text = TOP_CLAUSE.sub(r"\g<1>", text, count=1).rstrip()
        text = f"{text} LIMIT {top.group(2)}"

    return _unmask_literals(TABLE_AFTER_KEYWORD.sub(_quote_reserved, text), literals)


def normalize_sql(sql: str, dialect: str = "postgresql") -> str:
    """Apply dialect normalization; unknown dialects pass through stripped."""
    if not sql:
        return ""
    if dialect == "sqlserver":
        return to_sqlserver(sql)
    if dialect == "postgresql":
        return to_postgresql(sql)
    return sql.strip()
