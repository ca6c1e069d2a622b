"""
Unit tests for schema, pack and SQL models.
"""

import pytest
from pydantic import ValidationError

from packsql.models import (
    FkEdge,
    Pack,
    PackNotFound,
    RefView,
    Schema,
    SliceResult,
    SqlErrorKind,
    SynthesisExhausted,
    Table,
    TableNameResolver,
    TransportFailure,
    ValidationFailure,
    ValidationResult,
    normalize_table_name,
)


class TestNormalizeTableName:
    """Test table name normalization."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Orders", "Orders"),
            ("dbo.Orders", "Orders"),
            ("[dbo].[Order Details]", "Order Details"),
            ('"public"."orders"', "orders"),
            ("  `Users`  ", "Users"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_table_name(raw) == expected


class TestTableNameResolver:
    """Test reference resolution against known table names."""

    def test_exact_spelling_first(self):
        resolver = TableNameResolver(["Orders", "orders", "[dbo].[Customers]"])

        assert resolver.resolve("orders") == "orders"
        assert resolver.resolve('"public"."Orders"') == "Orders"

    def test_case_insensitive_fallback(self):
        resolver = TableNameResolver(["Orders", "orders", "[dbo].[Customers]"])

        assert resolver.resolve("ORDERS") == "Orders"
        assert resolver.resolve("dbo.customers") == "Customers"
        assert "CUSTOMERS" in resolver

    def test_unknown_and_blank(self):
        resolver = TableNameResolver(["Orders", ""])

        assert resolver.resolve("Missing") is None
        assert resolver.resolve("") is None
        assert resolver.names == {"Orders"}


class TestSchema:
    """Test schema snapshot lookups."""

    def test_find_table_is_case_insensitive(self, shop_schema):
        assert shop_schema.find_table("orders").name == "Orders"
        assert shop_schema.find_table("[dbo].[ORDERITEMS]").name == "OrderItems"
        assert shop_schema.find_table("Missing") is None

    def test_names_differing_by_case_stay_distinct(self):
        schema = Schema(tables=[Table(name="Orders"), Table(name="orders", description="lower")])

        assert set(schema.table_index()) == {"Orders", "orders"}
        assert schema.find_table("orders").description == "lower"
        assert schema.find_table("Orders").description is None
        assert schema.find_table("ORDERS").name == "Orders"

    def test_parses_camel_case_document(self):
        schema = Schema.model_validate(
            {
                "schemaName": "dbo",
                "tables": [
                    {
                        "name": "Orders",
                        "columns": [{"name": "OrderId", "dataType": "int", "isNullable": False}],
                        "foreignKeys": [
                            {
                                "fromTable": "Orders",
                                "fromColumns": ["CustomerId"],
                                "toTable": "Customers",
                                "toColumns": ["CustomerId"],
                            }
                        ],
                    }
                ],
            }
        )

        table = schema.tables[0]
        assert table.columns[0].data_type == "int"
        assert table.foreign_keys[0].from_column == "CustomerId"
        assert table.foreign_keys[0].to_column == "CustomerId"

    def test_schema_is_frozen(self, shop_schema):
        with pytest.raises(ValidationError):
            shop_schema.schema_name = "other"


class TestPackSerialization:
    """Test the persisted slice document shape."""

    def test_document_uses_camel_case_and_edge_aliases(self):
        result = SliceResult(
            schema_name="dbo",
            packs=[
                Pack(
                    category_id="sales_shipping",
                    name="Sales & Shipping",
                    tables_core=["Orders"],
                    fk_edges=[FkEdge(source="Orders.ShipperId", target="Shippers.ShipperId")],
                )
            ],
        )

        document = result.to_document()
        pack = document["packs"][0]

        assert document["schemaName"] == "dbo"
        assert pack["categoryId"] == "sales_shipping"
        assert pack["tablesCore"] == ["Orders"]
        assert pack["fkEdges"] == [{"from": "Orders.ShipperId", "to": "Shippers.ShipperId"}]
        # Policy-only fields are omitted for graph packs
        assert "allowedRefViews" not in pack
        assert "candidateRefs" not in pack

    def test_document_round_trips(self):
        result = SliceResult(
            schema_name="erp",
            strategy="policy",
            packs=[
                Pack(
                    category_id="hr",
                    name="Human Resources",
                    tables_core=["hrEmployee"],
                    allowed_ref_views=[
                        RefView(name="hr_ref_Country", source_table="cdCountry", columns=["Code", "Name"])
                    ],
                )
            ],
        )

        restored = SliceResult.model_validate(result.to_document())

        assert restored == result

    def test_edge_tables(self):
        edge = FkEdge(source="Orders.ShipperId", target="Shippers")

        assert edge.source_table == "Orders"
        assert edge.target_table == "Shippers"

    def test_pack_tables_and_lookup(self):
        pack = Pack(category_id="x", name="X", tables_core=["Orders"], tables_satellite=["Shippers"])

        assert pack.tables == ["Orders", "Shippers"]
        assert pack.has_table("shippers")
        assert not pack.has_table("Users")

    def test_get_pack(self):
        result = SliceResult(schema_name="dbo", packs=[Pack(category_id="a", name="A")])

        assert result.get_pack("a").name == "A"
        assert result.get_pack("b") is None


class TestValidationResult:
    """Test the valid/kind invariant."""

    def test_ok(self):
        result = ValidationResult.ok()

        assert result.valid
        assert result.kind is None
        assert result.describe() == ""

    def test_fail(self):
        result = ValidationResult.fail(SqlErrorKind.DISALLOWED_DML, "nope")

        assert not result.valid
        assert result.describe() == "DisallowedDml: nope"

    def test_valid_with_kind_rejected(self):
        with pytest.raises(ValidationError):
            ValidationResult(valid=True, kind=SqlErrorKind.DISALLOWED_DML)

    def test_invalid_without_kind_rejected(self):
        with pytest.raises(ValidationError):
            ValidationResult(valid=False)


class TestErrors:
    """Test the error taxonomy."""

    def test_validation_failure_is_recoverable(self):
        error = ValidationFailure(
            ValidationResult.fail(SqlErrorKind.MULTIPLE_STATEMENTS, "Multiple statements are not allowed.")
        )

        assert error.recoverable
        assert error.to_dict()["context"] == {"kind": "MultipleStatements"}

    def test_transport_failure_is_not_recoverable(self):
        error = TransportFailure("llm", "connection refused")

        assert not error.recoverable
        assert error.to_dict()["type"] == "TransportFailure"
        assert str(error) == "[llm] connection refused"

    def test_synthesis_exhausted_message(self):
        error = SynthesisExhausted(
            stage="execution",
            last_sql="SELECT 1 FROM Orders",
            last_error="relation does not exist",
            attempts=3,
        )

        assert error.message == (
            "Self-heal exhausted. Stage: execution\n"
            "Last SQL:\nSELECT 1 FROM Orders\n"
            "Last error:\nrelation does not exist"
        )
        assert error.context["attempts"] == 3

    def test_pack_not_found_context(self):
        error = PackNotFound("Unknown category 'x'", category_id="x")

        assert error.context == {"category_id": "x"}
