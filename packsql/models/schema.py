"""
Schema Snapshot Models

Immutable description of a relational schema as handed over by a schema
provider. Table names are kept as the provider spells them; lookups are
case-insensitive only when no exact spelling matches.
"""

from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def normalize_table_name(name: str | None) -> str:
    """
    Strip brackets, quotes and a schema qualifier from a table name.

    Examples:
        >>> normalize_table_name("dbo.[Orders]")
        'Orders'
        >>> normalize_table_name('"public"."orders"')
        'orders'
    """
    if not name:
        return ""
    bare = name.strip().split(".")[-1]
    return bare.strip().strip('[]"`').strip()


class _SchemaModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Column(_SchemaModel):
    """Column metadata."""

    name: str = Field(..., description="Column name")
    data_type: str = Field(default="", description="Database data type")
    is_nullable: bool = Field(default=True, description="Whether NULL is allowed")
    description: str | None = Field(None, description="Column comment")


class ForeignKey(_SchemaModel):
    """Outbound foreign key from the owning table."""

    constraint_name: str = Field(default="", description="Constraint name")
    from_table: str = Field(..., description="Referencing table")
    from_columns: list[str] = Field(default_factory=list, description="Referencing columns")
    to_table: str = Field(..., description="Referenced table")
    to_columns: list[str] = Field(default_factory=list, description="Referenced columns")

    @property
    def from_column(self) -> str | None:
        """First referencing column, if the provider exposed one."""
        return self.from_columns[0] if self.from_columns else None

    @property
    def to_column(self) -> str | None:
        """First referenced column, if the provider exposed one."""
        return self.to_columns[0] if self.to_columns else None


class ReferencedBy(_SchemaModel):
    """Inbound foreign key pointing at the owning table."""

    constraint_name: str = Field(default="", description="Constraint name")
    from_table: str = Field(..., description="Referencing table")
    from_columns: list[str] = Field(default_factory=list, description="Referencing columns")
    to_columns: list[str] = Field(default_factory=list, description="Referenced columns")


class Table(_SchemaModel):
    """Table metadata with its outbound and inbound references."""

    name: str = Field(..., description="Table name")
    description: str | None = Field(None, description="Table comment")
    primary_key: list[str] = Field(default_factory=list, description="Primary key columns")
    columns: list[Column] = Field(default_factory=list, description="Columns in ordinal order")
    foreign_keys: list[ForeignKey] = Field(default_factory=list, description="Outbound FKs")
    referenced_by: list[ReferencedBy] = Field(
        default_factory=list, description="Inbound references"
    )

    def column(self, name: str) -> Column | None:
        """Find a column by name (case-insensitive)."""
        wanted = name.lower()
        for column in self.columns:
            if column.name.lower() == wanted:
                return column
        return None


class Schema(_SchemaModel):
    """Full schema snapshot."""

    schema_name: str = Field(default="dbo", description="Schema name")
    tables: list[Table] = Field(default_factory=list, description="Tables in the schema")

    def table_index(self) -> dict[str, Table]:
        """Map of normalized table name to table. Names differing only by case stay distinct."""
        index: dict[str, Table] = {}
        for table in self.tables:
            key = normalize_table_name(table.name)
            if key and key not in index:
                index[key] = table
        return index

    def resolver(self) -> "TableNameResolver":
        return TableNameResolver(table.name for table in self.tables)

    def find_table(self, name: str) -> Table | None:
        """Find a table by name, ignoring brackets and schema qualifier.

        An exact spelling wins; otherwise the first table matching without
        regard to case is returned.
        """
        resolved = self.resolver().resolve(name)
        return self.table_index().get(resolved) if resolved else None


class TableNameResolver:
    """
    Resolves table references against a set of known names.

    Exact spelling first, then a case-insensitive match on the first name
    seen with that spelling folded.
    """

    def __init__(self, names: Iterable[str]):
        self.names: set[str] = set()
        self._folded: dict[str, str] = {}
        for name in names:
            bare = normalize_table_name(name)
            if not bare:
                continue
            self.names.add(bare)
            self._folded.setdefault(bare.lower(), bare)

    def resolve(self, name: str | None) -> str | None:
        bare = normalize_table_name(name)
        if not bare:
            return None
        if bare in self.names:
            return bare
        return self._folded.get(bare.lower())

    def __contains__(self, name: str) -> bool:
        return self.resolve(name) is not None
