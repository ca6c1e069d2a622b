"""
Prompt Builder

Turns a pack, the schema snapshot and a question into the prompt sent to
the LLM, and builds the refinement prompt used after a failure. Prompt
text lives in Jinja2 templates under `packsql/prompts/templates`.
"""

import re
from collections.abc import Iterable
from typing import NamedTuple

from packsql.models.pack import Pack
from packsql.models.schema import Column, Schema, Table, normalize_table_name
from packsql.prompts.loader import PromptLoader


class Dialect(NamedTuple):
    key: str
    label: str
    limit_rule: str
    quote_rule: str


DIALECTS: dict[str, Dialect] = {
    "postgresql": Dialect(
        key="postgresql",
        label="PostgreSQL",
        limit_rule="Use LIMIT N (not TOP) to restrict rows.",
        quote_rule='wrap it in "double quotes"',
    ),
    "sqlserver": Dialect(
        key="sqlserver",
        label="Microsoft SQL Server (T-SQL)",
        limit_rule="Use TOP N (not LIMIT) to restrict rows.",
        quote_rule="wrap it in [brackets]",
    ),
}


def get_dialect(name: str) -> Dialect:
    try:
        return DIALECTS[name]
    except KeyError as exc:
        raise ValueError(f"Unsupported SQL dialect: {name}") from exc


def inline_text(value: str | None) -> str:
    """Collapse whitespace and swap double quotes so text fits on one line."""
    if not value:
        return ""
    return re.sub(r"\s+", " ", value).strip().replace('"', "'")


def column_signature(column: Column) -> str:
    """
    Render a column as `name:type`, with `?` for nullable columns.

    Examples:
        >>> column_signature(Column(name="ShipVia", data_type="int", is_nullable=True))
        'ShipVia:int?'
    """
    null_part = "?" if column.is_nullable else ""
    return f"{column.name}:{column.data_type}{null_part}".rstrip(":")


def _unique(names: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for name in names:
        if name and name not in seen:
            seen.add(name)
            result.append(name)
    return result


class PromptBuilder:
    """
    Build pack-scoped generation prompts and refinement prompts.

    Usage:
        builder = PromptBuilder()
        prompt = builder.build_for_pack(question, pack, schema, adjacent_packs=adjacent)
        allowed = builder.allowed_tables(pack, adjacent)
    """

    def __init__(self, loader: PromptLoader | None = None, dialect: str = "postgresql"):
        self.loader = loader or PromptLoader()
        self.loader.register_filters(inline=inline_text, signature=column_signature)
        self.dialect = get_dialect(dialect)

    def system_prompt(self, refine: bool = False) -> str:
        template = "system_refine.md" if refine else "system_generate.md"
        return self.loader.render(template, dialect=self.dialect)

    def allowed_tables(self, pack: Pack, adjacent_packs: Iterable[Pack] | None = None) -> list[str]:
        """Tables a statement for this pack may read."""
        names = [*pack.tables_core, *pack.tables_satellite]
        for other in adjacent_packs or []:
            names.extend(other.tables_core)
        for view in pack.allowed_ref_views or []:
            names.append(view.source_table)
        return _unique(names)

    def build_for_pack(
        self,
        question: str,
        pack: Pack,
        schema: Schema,
        adjacent_packs: list[Pack] | None = None,
    ) -> str:
        adjacent = adjacent_packs or []
        index = schema.table_index()
        resolver = schema.resolver()

        def tables_for(names: Iterable[str]) -> list[Table]:
            resolved = (resolver.resolve(n) for n in _unique(names))
            return [index[name] for name in _unique(r for r in resolved if r)]

        own = tables_for(pack.tables)
        own_names = {normalize_table_name(t.name) for t in own}
        adjacent_tables = [
            t
            for t in tables_for(name for other in adjacent for name in other.tables_core)
            if normalize_table_name(t.name) not in own_names
        ]
        lookups = tables_for(view.source_table for view in pack.allowed_ref_views or [])

        return self.loader.render(
            "sql_pack.md",
            question=question,
            pack=pack,
            dialect=self.dialect,
            tables=own,
            adjacent=adjacent,
            adjacent_tables=adjacent_tables,
            lookups=lookups,
        )

    def build_refine_prompt(
        self,
        question: str,
        previous_sql: str,
        error_message: str,
        allowed_tables: Iterable[str],
        guardrails: str | None = None,
    ) -> str:
        return self.loader.render(
            "sql_refine.md",
            question=question,
            previous_sql=previous_sql,
            error_message=error_message,
            allowed_tables=list(allowed_tables),
            guardrails=(guardrails or "").strip(),
            dialect=self.dialect,
        )
