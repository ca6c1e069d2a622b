"""
Partition Models

A pack is one group of tables produced by a partitioner. Packs serialize
with camelCase keys so the persisted slice document matches what the API
returns.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _PackModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class FkEdge(_PackModel):
    """Directed join edge inside a pack (`Table.Column` or bare table names)."""

    source: str = Field(..., alias="from", description="Referencing endpoint")
    target: str = Field(..., alias="to", description="Referenced endpoint")

    @property
    def source_table(self) -> str:
        return self.source.split(".")[0]

    @property
    def target_table(self) -> str:
        return self.target.split(".")[0]


class BridgeRef(_PackModel):
    """Cross-pack link: tables of this pack that reference another pack."""

    to_category: str = Field(..., description="Target pack category id")
    via_tables: list[str] = Field(default_factory=list, description="Local tables holding the FK")


class CandidateRef(_PackModel):
    """Lookup table frequently referenced from a department pack."""

    target_table: str = Field(..., description="Referenced lookup table")
    reason: str = Field(..., description="Human readable reason")
    score: int = Field(..., ge=0, description="Number of distinct referencing tables")


class RefView(_PackModel):
    """Minimal code/name projection of a lookup table exposed to a pack."""

    name: str = Field(..., description="View name, e.g. hr_ref_Country")
    source_table: str = Field(..., description="Underlying lookup table")
    columns: list[str] = Field(default_factory=list, description="[code column, name column]")


class Pack(_PackModel):
    """A cohesive group of tables."""

    category_id: str = Field(..., description="Stable slug identifier")
    name: str = Field(..., description="Human readable label")
    tables_core: list[str] = Field(default_factory=list, description="Primary tables")
    tables_satellite: list[str] = Field(default_factory=list, description="Lookup-like tables")
    fk_edges: list[FkEdge] = Field(default_factory=list, description="Internal join edges")
    bridge_refs: list[BridgeRef] = Field(default_factory=list, description="Cross-pack links")
    candidate_refs: list[CandidateRef] | None = Field(None, description="Policy mode only")
    allowed_ref_views: list[RefView] | None = Field(None, description="Policy mode only")
    summary: str = Field(default="", description="Short text summary")
    grain: str = Field(default="", description="Data grain description")

    @property
    def tables(self) -> list[str]:
        """Core followed by satellite tables."""
        return [*self.tables_core, *self.tables_satellite]

    def has_table(self, name: str) -> bool:
        wanted = name.lower()
        return any(t.lower() == wanted for t in self.tables)


class SliceResult(_PackModel):
    """Output of one slicing run."""

    schema_name: str = Field(..., description="Schema the packs were computed from")
    strategy: Literal["graph", "policy"] = Field(default="graph", description="Partitioner used")
    packs: list[Pack] = Field(default_factory=list, description="Partitions")

    def get_pack(self, category_id: str) -> Pack | None:
        for pack in self.packs:
            if pack.category_id == category_id:
                return pack
        return None

    def to_document(self) -> dict:
        """Serialize to the persisted camelCase document."""
        return self.model_dump(by_alias=True, exclude_none=True)
