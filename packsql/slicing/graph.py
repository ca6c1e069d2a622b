"""
Graph Slicer

Partitions a schema into packs by foreign-key connectivity. Tables joined
by any chain of foreign keys end up in the same pack; packs are then
labelled by domain naming rules and, optionally, merged by label.

Usage:
    packs = partition_by_graph(schema)

    slicer = GraphSlicer(namer=load_naming_rules("rules.yaml"), merge_same_label=False)
    result = slicer.slice(schema)
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

import networkx as nx

from packsql.config import SlicingSettings
from packsql.models.errors import SchemaInconsistency
from packsql.models.pack import BridgeRef, FkEdge, Pack, SliceResult
from packsql.models.schema import Schema, normalize_table_name
from packsql.slicing.naming import DomainNamer, load_naming_rules, slugify

logger = logging.getLogger(__name__)


def _ci_sorted(values: Iterable[str]) -> list[str]:
    return sorted(values, key=lambda v: (v.lower(), v))


def _endpoint(table: str, column: str | None) -> str:
    return f"{table}.{column}" if column else table


@dataclass
class _Group:
    label: str
    category_id: str
    tables: set[str] = field(default_factory=set)


class GraphSlicer:
    """
    Connectivity-based partitioner.

    Builds a directed multigraph of foreign keys (outbound and inbound views
    both contribute), takes its weakly connected components and turns each
    labelled group into a Pack.
    """

    def __init__(
        self,
        namer: DomainNamer | None = None,
        merge_same_label: bool = True,
    ):
        self.namer = namer or DomainNamer.default()
        self.merge_same_label = merge_same_label

    @classmethod
    def from_settings(cls, settings: SlicingSettings, namer: DomainNamer | None = None):
        if namer is None and settings.naming_rules_path:
            namer = load_naming_rules(settings.naming_rules_path)
        return cls(namer=namer, merge_same_label=settings.merge_same_label)

    def slice(self, schema: Schema) -> SliceResult:
        """Partition a schema and wrap the packs in a SliceResult."""
        packs = self.partition(schema)
        return SliceResult(schema_name=schema.schema_name, strategy="graph", packs=packs)

    def partition(self, schema: Schema) -> list[Pack]:
        """Partition a schema into packs."""
        graph = self.build_graph(schema)
        groups = self._group_components(graph)

        table_to_category: dict[str, str] = {}
        for group in groups:
            for table in group.tables:
                table_to_category[table] = group.category_id

        packs = [self._build_pack(graph, group, table_to_category) for group in groups]
        logger.info(
            f"Graph slicing produced {len(packs)} packs from {graph.number_of_nodes()} tables",
            extra={
                "schema": schema.schema_name,
                "tables": graph.number_of_nodes(),
                "fk_edges": graph.number_of_edges(),
                "packs": len(packs),
            },
        )
        return packs

    def build_graph(self, schema: Schema) -> nx.MultiDiGraph:
        """
        Build the foreign-key graph.

        Nodes are table names exactly as spelled, so tables differing only by
        case stay apart; references fall back to a case-insensitive match.
        Each edge is keyed by its `(from, to)` endpoint labels so duplicate
        constraints reported from both directions collapse into one edge.
        """
        graph = nx.MultiDiGraph()
        resolver = schema.resolver()
        for table in schema.tables:
            name = normalize_table_name(table.name)
            if name:
                graph.add_node(name)

        def resolve(name: str) -> str | None:
            return resolver.resolve(name)

        def add_edge(
            source: str,
            target_name: str,
            source_column: str | None,
            target_column: str | None,
        ) -> None:
            target = resolve(target_name)
            if target is None:
                error = SchemaInconsistency(source, target_name)
                logger.warning(error.message, extra=error.context)
                return
            if target == source:
                logger.debug(f"Skipping self reference on {source}")
                return
            source_label = _endpoint(source, source_column)
            target_label = _endpoint(target, target_column)
            graph.add_edge(source, target, key=(source_label, target_label))

        for table in schema.tables:
            owner = resolve(table.name)
            if owner is None:
                continue
            for fk in table.foreign_keys:
                add_edge(owner, fk.to_table, fk.from_column, fk.to_column)
            for ref in table.referenced_by:
                source = resolve(ref.from_table)
                if source is None:
                    error = SchemaInconsistency(ref.from_table, owner)
                    logger.warning(error.message, extra=error.context)
                    continue
                from_column = ref.from_columns[0] if ref.from_columns else None
                to_column = ref.to_columns[0] if ref.to_columns else None
                if source == owner:
                    continue
                graph.add_edge(
                    source,
                    owner,
                    key=(_endpoint(source, from_column), _endpoint(owner, to_column)),
                )

        return graph

    def _group_components(self, graph: nx.MultiDiGraph) -> list[_Group]:
        groups: list[_Group] = []
        by_label: dict[str, _Group] = {}
        used_ids: set[str] = set()

        for component in nx.weakly_connected_components(graph):
            label = self.namer.label_for(_ci_sorted(component))
            key = label.lower()

            if self.merge_same_label and key in by_label:
                by_label[key].tables.update(component)
                continue

            category_id = slugify(label)
            if category_id in used_ids:
                suffix = 2
                while f"{category_id}_{suffix}" in used_ids:
                    suffix += 1
                category_id = f"{category_id}_{suffix}"
            used_ids.add(category_id)

            group = _Group(label=label, category_id=category_id, tables=set(component))
            groups.append(group)
            by_label.setdefault(key, group)

        return groups

    def _build_pack(
        self,
        graph: nx.MultiDiGraph,
        group: _Group,
        table_to_category: dict[str, str],
    ) -> Pack:
        ordered = _ci_sorted(group.tables)
        core = [t for t in ordered if not self.namer.is_satellite(t)]
        satellite = [t for t in ordered if self.namer.is_satellite(t)]

        edges: list[FkEdge] = []
        seen_edges: set[tuple[str, str]] = set()
        external: dict[str, set[str]] = {}

        for source, target, key in graph.edges(ordered, keys=True):
            if target in group.tables:
                if key not in seen_edges and key[0] != key[1]:
                    seen_edges.add(key)
                    edges.append(FkEdge(source=key[0], target=key[1]))
                continue
            target_category = table_to_category.get(target)
            if target_category is None or target_category == group.category_id:
                continue
            external.setdefault(target_category, set()).add(source)

        bridges = [
            BridgeRef(
                to_category=category,
                via_tables=_ci_sorted(t for t in via if t in group.tables),
            )
            for category, via in sorted(external.items())
        ]
        bridges = [bridge for bridge in bridges if bridge.via_tables]

        return Pack(
            category_id=group.category_id,
            name=group.label,
            tables_core=core,
            tables_satellite=satellite,
            fk_edges=edges,
            bridge_refs=bridges,
            summary=(
                f"Tables related to {group.label}: {', '.join(ordered)}. "
                "Foreign keys are kept inside the pack; links to other packs are listed as bridges."
            ),
            grain=(
                "Core tables hold transactions and facts; "
                "satellite tables are lookup or reference data."
            ),
        )


def partition_by_graph(
    schema: Schema,
    namer: DomainNamer | None = None,
    settings: SlicingSettings | None = None,
) -> list[Pack]:
    """Partition a schema by foreign-key connectivity."""
    if settings is not None:
        return GraphSlicer.from_settings(settings, namer=namer).partition(schema)
    return GraphSlicer(namer=namer).partition(schema)


def ensure_consistent(schema: Schema) -> None:
    """
    Raise SchemaInconsistency for the first foreign key whose target table
    is missing from the snapshot.

    The partitioners only log dangling references; call this first when a
    snapshot must be complete.
    """
    known = schema.resolver()
    for table in schema.tables:
        for fk in table.foreign_keys:
            if fk.to_table not in known:
                raise SchemaInconsistency(table.name, fk.to_table)
        for ref in table.referenced_by:
            if ref.from_table not in known:
                raise SchemaInconsistency(ref.from_table, table.name)
