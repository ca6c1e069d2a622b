"""
Policy Slicer

Partitions a schema into department packs using ordered prefix policies.
Each table belongs to the first policy whose include prefixes match it and
whose exclude prefixes do not. Packs also advertise the lookup tables the
department leans on (candidate references) and compact code/name views of
the most used ones.

Usage:
    options = SliceOptions(
        policies=[
            DepartmentPolicy(dept_id="hr", name="Human Resources", include_prefixes=["hr"]),
            DepartmentPolicy(dept_id="fin", name="Finance", include_prefixes=["fi", "ac"]),
        ]
    )
    packs = partition_by_policy(schema, options)
"""

import logging
import re

from pydantic import BaseModel, Field, field_validator

from packsql.config import SlicingSettings
from packsql.models.errors import PartitionEmpty
from packsql.models.pack import BridgeRef, CandidateRef, FkEdge, Pack, RefView, SliceResult
from packsql.models.schema import (
    ForeignKey,
    Schema,
    Table,
    TableNameResolver,
    normalize_table_name,
)

logger = logging.getLogger(__name__)

DEFAULT_REF_PREFIXES = ("cd", "df", "bs")
DEFAULT_CODE_COLUMN = "Code"
DEFAULT_NAME_COLUMN = "Name"

# Prioritized: the first pattern that matches any column wins
CODE_COLUMN_PATTERNS = (
    re.compile(r"^code$", re.IGNORECASE),
    re.compile(r"^(kod|kodu)$", re.IGNORECASE),
    re.compile(r"^[A-Za-z0-9]+code$", re.IGNORECASE),
    re.compile(r"\b(Code|Kod|Kodu|[A-Za-z0-9]+Code)\b", re.IGNORECASE),
)
NAME_COLUMN_PATTERNS = (
    re.compile(r"^name$", re.IGNORECASE),
    re.compile(r"^(ad|adi|adı)$", re.IGNORECASE),
    re.compile(r"^(title|shortname|longname)$", re.IGNORECASE),
    re.compile(r"^(description|açıklama|aciklama)$", re.IGNORECASE),
    re.compile(r"\b(Name|Ad[ıi]?|A[çc]ıklama|Description|Title|ShortName|LongName)\b", re.IGNORECASE),
)


class DepartmentPolicy(BaseModel):
    """Prefix rule assigning tables to one department."""

    dept_id: str = Field(..., min_length=1, description="Department id, used as category id")
    name: str = Field(..., min_length=1, description="Department display name")
    include_prefixes: list[str] = Field(default_factory=list, description="Table prefixes to take")
    exclude_prefixes: list[str] = Field(default_factory=list, description="Prefixes to skip")

    @field_validator("include_prefixes", "exclude_prefixes", mode="before")
    @classmethod
    def drop_blank_prefixes(cls, v):
        if v is None:
            return []
        return [p for p in v if isinstance(p, str) and p.strip()]

    def matches(self, table_name: str) -> bool:
        lowered = table_name.lower()
        if not any(lowered.startswith(p.lower()) for p in self.include_prefixes):
            return False
        return not any(lowered.startswith(p.lower()) for p in self.exclude_prefixes)


class SliceOptions(BaseModel):
    """Inputs of a policy slicing run."""

    policies: list[DepartmentPolicy] = Field(default_factory=list, description="Ordered policies")
    max_candidate_refs: int = Field(default=20, ge=0, description="Candidate refs kept per pack")
    ref_target_prefixes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_REF_PREFIXES),
        description="Prefixes that mark lookup tables",
    )
    max_ref_views: int = Field(default=10, ge=0, description="Reference views built per pack")

    @field_validator("policies")
    @classmethod
    def unique_dept_ids(cls, v: list[DepartmentPolicy]) -> list[DepartmentPolicy]:
        seen: set[str] = set()
        for policy in v:
            if policy.dept_id in seen:
                raise ValueError(f"Duplicate dept_id '{policy.dept_id}' in policies")
            seen.add(policy.dept_id)
        return v

    @field_validator("ref_target_prefixes", mode="before")
    @classmethod
    def default_when_empty(cls, v):
        if not v:
            return list(DEFAULT_REF_PREFIXES)
        return v

    @classmethod
    def from_settings(
        cls, policies: list[DepartmentPolicy], settings: SlicingSettings
    ) -> "SliceOptions":
        return cls(
            policies=policies,
            max_candidate_refs=settings.max_candidate_refs,
            ref_target_prefixes=settings.ref_target_prefixes,
            max_ref_views=settings.max_ref_views,
        )


def shorten_lookup_name(table: str, prefixes: list[str] | tuple[str, ...] = DEFAULT_REF_PREFIXES) -> str:
    """
    Drop a lookup prefix from a table name.

    Examples:
        >>> shorten_lookup_name("cdCountry")
        'Country'
    """
    for prefix in prefixes:
        if table.lower().startswith(prefix.lower()) and len(table) > len(prefix):
            return table[len(prefix):]
    return table


def resolve_code_name_columns(table: Table | None) -> tuple[str, str]:
    """Pick the code and name columns of a lookup table."""
    if table is None:
        return DEFAULT_CODE_COLUMN, DEFAULT_NAME_COLUMN

    columns = [c.name for c in table.columns if c.name and c.name.strip()]
    if not columns:
        return DEFAULT_CODE_COLUMN, DEFAULT_NAME_COLUMN

    code = _first_match(columns, CODE_COLUMN_PATTERNS)
    name = _first_match([c for c in columns if c != code], NAME_COLUMN_PATTERNS)

    if code is None and name is None:
        return columns[0], columns[1] if len(columns) > 1 else columns[0]
    if code is None:
        code = DEFAULT_CODE_COLUMN
    if name is None:
        name = DEFAULT_NAME_COLUMN
    return code, name


def _first_match(columns: list[str], patterns: tuple[re.Pattern, ...]) -> str | None:
    for pattern in patterns:
        for column in columns:
            if pattern.search(column):
                return column
    return None


def _edge_for(source: str, fk: ForeignKey, target: str) -> FkEdge:
    if fk.from_column and fk.to_column:
        return FkEdge(source=f"{source}.{fk.from_column}", target=f"{target}.{fk.to_column}")
    return FkEdge(source=source, target=target)


class PolicySlicer:
    """
    Department partitioner.

    Stateless apart from its options; `partition` is deterministic for an
    unchanged schema and policy list.
    """

    def __init__(self, options: SliceOptions):
        self.options = options

    def slice(self, schema: Schema) -> SliceResult:
        """Partition a schema and wrap the packs in a SliceResult."""
        return SliceResult(
            schema_name=schema.schema_name,
            strategy="policy",
            packs=self.partition(schema),
        )

    def partition(self, schema: Schema) -> list[Pack]:
        tables = schema.table_index()
        resolver = schema.resolver()
        department_of = self.build_department_map(schema)

        packs: list[Pack] = []
        for policy in self.options.policies:
            core = sorted(
                (name for name, dept in department_of.items() if dept == policy.dept_id),
                key=lambda name: (name.lower(), name),
            )
            if not core:
                error = PartitionEmpty(policy.dept_id)
                logger.info(error.message, extra=error.context)
                continue
            packs.append(self._build_pack(policy, core, tables, resolver, department_of))

        logger.info(
            f"Policy slicing produced {len(packs)} packs from {len(self.options.policies)} policies",
            extra={
                "schema": schema.schema_name,
                "policies": len(self.options.policies),
                "packs": len(packs),
                "assigned_tables": len(department_of),
            },
        )
        return packs

    def build_department_map(self, schema: Schema) -> dict[str, str]:
        """Map each table name to the dept_id of the first matching policy."""
        mapping: dict[str, str] = {}
        for table in schema.tables:
            name = normalize_table_name(table.name)
            if not name or name in mapping:
                continue
            for policy in self.options.policies:
                if policy.matches(name):
                    mapping[name] = policy.dept_id
                    break
        return mapping

    def _build_pack(
        self,
        policy: DepartmentPolicy,
        core: list[str],
        tables: dict[str, Table],
        resolver: TableNameResolver,
        department_of: dict[str, str],
    ) -> Pack:
        core_set = set(core)
        prefixes = [p.lower() for p in self.options.ref_target_prefixes]

        edges: list[FkEdge] = []
        seen_edges: set[tuple[str, str]] = set()
        ref_sources: dict[str, list[str]] = {}
        bridge_sources: dict[str, list[str]] = {}

        for source in core:
            table = tables[source]
            for fk in table.foreign_keys:
                target = resolver.resolve(fk.to_table) or normalize_table_name(fk.to_table)
                if not target:
                    continue

                if target in core_set:
                    if target == source:
                        continue
                    edge = _edge_for(source, fk, target)
                    if (edge.source, edge.target) not in seen_edges:
                        seen_edges.add((edge.source, edge.target))
                        edges.append(edge)
                    continue

                if any(target.lower().startswith(p) for p in prefixes):
                    via = ref_sources.setdefault(target, [])
                    if source not in via:
                        via.append(source)

                other_dept = department_of.get(target)
                if other_dept is not None and other_dept != policy.dept_id:
                    via = bridge_sources.setdefault(other_dept, [])
                    if source not in via:
                        via.append(source)

        candidates = self._rank_candidates(ref_sources)
        ref_views = [
            RefView(
                name=f"{policy.dept_id}_ref_{shorten_lookup_name(c.target_table, self.options.ref_target_prefixes)}",
                source_table=c.target_table,
                columns=list(resolve_code_name_columns(tables.get(c.target_table))),
            )
            for c in candidates[: self.options.max_ref_views]
        ]

        bridges = [
            BridgeRef(
                to_category=other.dept_id,
                via_tables=sorted(
                    (t for t in bridge_sources[other.dept_id] if t in core_set),
                    key=lambda name: (name.lower(), name),
                ),
            )
            for other in self.options.policies
            if other.dept_id in bridge_sources
        ]
        bridges = [bridge for bridge in bridges if bridge.via_tables]

        return Pack(
            category_id=policy.dept_id,
            name=policy.name,
            tables_core=core,
            tables_satellite=[],
            fk_edges=edges,
            bridge_refs=bridges,
            candidate_refs=candidates,
            allowed_ref_views=ref_views,
            summary=f"{policy.name} department tables: {', '.join(core)}.",
            grain="Department tables; lookup data is reached through the allowed reference views.",
        )

    def _rank_candidates(
        self,
        ref_sources: dict[str, list[str]],
    ) -> list[CandidateRef]:
        ranked = sorted(
            ref_sources.items(),
            key=lambda item: (-len(item[1]), item[0].lower(), item[0]),
        )
        candidates = []
        for target, via in ranked[: self.options.max_candidate_refs]:
            shown = ", ".join(via[:3]) + ("..." if len(via) > 3 else "")
            candidates.append(
                CandidateRef(
                    target_table=target,
                    reason=f"Referenced by {shown}",
                    score=len(via),
                )
            )
        return candidates


def partition_by_policy(schema: Schema, options: SliceOptions) -> list[Pack]:
    """Partition a schema into department packs."""
    return PolicySlicer(options).partition(schema)
