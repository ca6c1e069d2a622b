"""
Unit tests for the policy-based department slicer.
"""

import logging

import pytest
from pydantic import ValidationError

from packsql.config import SlicingSettings
from packsql.models.schema import Column, ForeignKey, Schema, Table
from packsql.slicing.policy import (
    DepartmentPolicy,
    PolicySlicer,
    SliceOptions,
    partition_by_policy,
    resolve_code_name_columns,
    shorten_lookup_name,
)


@pytest.fixture
def policies():
    return [
        DepartmentPolicy(
            dept_id="hr",
            name="Human Resources",
            include_prefixes=["hr"],
            exclude_prefixes=["hrTmp"],
        ),
        DepartmentPolicy(dept_id="fi", name="Finance", include_prefixes=["fi"]),
        DepartmentPolicy(dept_id="mk", name="Marketing", include_prefixes=["mk"]),
    ]


def _by_id(packs):
    return {pack.category_id: pack for pack in packs}


class TestDepartmentPolicy:
    """Test prefix matching."""

    def test_include_and_exclude(self):
        policy = DepartmentPolicy(
            dept_id="hr", name="HR", include_prefixes=["hr"], exclude_prefixes=["hrTmp"]
        )

        assert policy.matches("hrEmployee")
        assert policy.matches("HREMPLOYEE")
        assert not policy.matches("hrTmpImport")
        assert not policy.matches("fiPayroll")

    def test_blank_prefixes_are_dropped(self):
        policy = DepartmentPolicy(dept_id="x", name="X", include_prefixes=["", "  ", "x"])

        assert policy.include_prefixes == ["x"]

    def test_dept_id_required(self):
        with pytest.raises(ValidationError):
            DepartmentPolicy(dept_id="", name="Nameless")


class TestPartitionByPolicy:
    """Test department packs."""

    def test_core_tables_by_policy(self, department_schema, policies):
        packs = _by_id(partition_by_policy(department_schema, SliceOptions(policies=policies)))

        assert packs["hr"].tables_core == ["hrContract", "hrEmployee"]
        assert packs["fi"].tables_core == ["fiPayroll"]
        assert packs["hr"].tables_satellite == []

    def test_excluded_and_lookup_tables_are_unassigned(self, department_schema, policies):
        packs = partition_by_policy(department_schema, SliceOptions(policies=policies))

        placed = {t for pack in packs for t in pack.tables_core}
        assert "hrTmpImport" not in placed
        assert "cdCountry" not in placed

    def test_empty_policy_is_skipped(self, department_schema, policies, caplog):
        with caplog.at_level(logging.INFO):
            packs = partition_by_policy(department_schema, SliceOptions(policies=policies))

        assert "mk" not in _by_id(packs)
        assert "Policy 'mk' matched no tables" in caplog.text

    def test_packs_follow_policy_order(self, department_schema, policies):
        packs = partition_by_policy(department_schema, SliceOptions(policies=policies))

        assert [p.category_id for p in packs] == ["hr", "fi"]

    def test_internal_edges_only(self, department_schema, policies):
        packs = _by_id(partition_by_policy(department_schema, SliceOptions(policies=policies)))

        edges = [(e.source, e.target) for e in packs["hr"].fk_edges]
        assert edges == [("hrContract.EmployeeId", "hrEmployee.EmployeeId")]
        assert packs["fi"].fk_edges == []

    def test_candidate_refs_ranked_by_usage(self, department_schema, policies):
        hr = _by_id(partition_by_policy(department_schema, SliceOptions(policies=policies)))["hr"]

        assert [(c.target_table, c.score) for c in hr.candidate_refs] == [
            ("cdCountry", 2),
            ("cdCurrency", 1),
        ]
        assert hr.candidate_refs[0].reason == "Referenced by hrContract, hrEmployee"

    def test_ref_views(self, department_schema, policies):
        packs = _by_id(partition_by_policy(department_schema, SliceOptions(policies=policies)))

        hr_views = {v.name: v for v in packs["hr"].allowed_ref_views}
        assert hr_views["hr_ref_Country"].source_table == "cdCountry"
        assert hr_views["hr_ref_Country"].columns == ["Code", "Name"]
        assert hr_views["hr_ref_Currency"].columns == ["IsoCode", "Description"]

        fi_views = packs["fi"].allowed_ref_views
        assert [v.name for v in fi_views] == ["fi_ref_Currency"]

    def test_bridges_to_other_departments(self, department_schema, policies):
        packs = _by_id(partition_by_policy(department_schema, SliceOptions(policies=policies)))

        bridges = packs["fi"].bridge_refs
        assert [(b.to_category, b.via_tables) for b in bridges] == [("hr", ["fiPayroll"])]
        assert packs["hr"].bridge_refs == []

    def test_limits(self, department_schema, policies):
        options = SliceOptions(policies=policies, max_candidate_refs=1, max_ref_views=0)

        hr = _by_id(partition_by_policy(department_schema, options))["hr"]

        assert [c.target_table for c in hr.candidate_refs] == ["cdCountry"]
        assert hr.allowed_ref_views == []

    def test_first_policy_wins(self, department_schema):
        options = SliceOptions(
            policies=[
                DepartmentPolicy(dept_id="all", name="Everything", include_prefixes=["hr", "fi"]),
                DepartmentPolicy(dept_id="hr", name="HR", include_prefixes=["hr"]),
            ]
        )

        packs = partition_by_policy(department_schema, options)

        assert [p.category_id for p in packs] == ["all"]
        assert "hrTmpImport" in packs[0].tables_core

    def test_deterministic(self, department_schema, policies):
        options = SliceOptions(policies=policies)

        assert partition_by_policy(department_schema, options) == partition_by_policy(
            department_schema, options
        )

    def test_no_policies(self, department_schema):
        assert partition_by_policy(department_schema, SliceOptions()) == []

    def test_slice_result_strategy(self, department_schema, policies):
        result = PolicySlicer(SliceOptions(policies=policies)).slice(department_schema)

        assert result.strategy == "policy"
        assert result.schema_name == "erp"

    def test_column_less_fk_edges_use_table_names(self):
        schema = Schema(
            tables=[
                Table(
                    name="hrA",
                    foreign_keys=[ForeignKey(from_table="hrA", to_table="hrB")],
                ),
                Table(name="hrB"),
            ]
        )
        options = SliceOptions(policies=[DepartmentPolicy(dept_id="hr", name="HR", include_prefixes=["hr"])])

        pack = partition_by_policy(schema, options)[0]

        assert [(e.source, e.target) for e in pack.fk_edges] == [("hrA", "hrB")]

    def test_tables_differing_only_by_case_are_both_kept(self):
        schema = Schema(
            tables=[
                Table(name="fiLedger"),
                Table(
                    name="FILEDGER",
                    foreign_keys=[
                        ForeignKey(
                            from_table="FILEDGER",
                            from_columns=["LedgerId"],
                            to_table="fiLedger",
                            to_columns=["LedgerId"],
                        )
                    ],
                ),
            ]
        )
        options = SliceOptions(policies=[DepartmentPolicy(dept_id="fi", name="Finance", include_prefixes=["fi"])])

        pack = partition_by_policy(schema, options)[0]

        assert pack.tables_core == ["FILEDGER", "fiLedger"]
        assert [(e.source, e.target) for e in pack.fk_edges] == [
            ("FILEDGER.LedgerId", "fiLedger.LedgerId")
        ]


class TestSliceOptions:
    """Test option defaults."""

    def test_empty_prefixes_fall_back_to_defaults(self):
        assert SliceOptions(ref_target_prefixes=[]).ref_target_prefixes == ["cd", "df", "bs"]

    def test_from_settings(self, policies):
        settings = SlicingSettings(ref_target_prefixes=["lk"], max_candidate_refs=5, max_ref_views=2)

        options = SliceOptions.from_settings(policies, settings)

        assert options.ref_target_prefixes == ["lk"]
        assert options.max_candidate_refs == 5
        assert options.max_ref_views == 2
        assert len(options.policies) == 3

    def test_duplicate_dept_ids_rejected(self):
        """Two policies sharing a dept_id would emit packs that share tables."""
        with pytest.raises(ValidationError, match="Duplicate dept_id 'fin'"):
            SliceOptions(
                policies=[
                    DepartmentPolicy(dept_id="fin", name="Finance", include_prefixes=["fi"]),
                    DepartmentPolicy(dept_id="fin", name="Accounting", include_prefixes=["ac"]),
                ]
            )

    def test_distinct_dept_ids_partition_disjointly(self):
        schema = Schema(tables=[Table(name="fiLedger"), Table(name="acAccount")])
        options = SliceOptions(
            policies=[
                DepartmentPolicy(dept_id="fin", name="Finance", include_prefixes=["fi"]),
                DepartmentPolicy(dept_id="acc", name="Accounting", include_prefixes=["ac"]),
            ]
        )

        packs = partition_by_policy(schema, options)

        assert [(p.category_id, p.tables_core) for p in packs] == [
            ("fin", ["fiLedger"]),
            ("acc", ["acAccount"]),
        ]


class TestLookupHelpers:
    """Test lookup name and column resolution."""

    @pytest.mark.parametrize(
        "table,expected",
        [("cdCountry", "Country"), ("dfStatus", "Status"), ("bsUnit", "Unit"), ("Orders", "Orders"), ("cd", "cd")],
    )
    def test_shorten_lookup_name(self, table, expected):
        assert shorten_lookup_name(table) == expected

    def test_missing_table_defaults(self):
        assert resolve_code_name_columns(None) == ("Code", "Name")

    def test_no_columns_defaults(self):
        assert resolve_code_name_columns(Table(name="cdEmpty")) == ("Code", "Name")

    def test_code_and_name_columns(self):
        table = Table(name="cdStatus", columns=[Column(name="Id"), Column(name="Code"), Column(name="Title")])

        assert resolve_code_name_columns(table) == ("Code", "Title")

    def test_suffix_code_column(self):
        table = Table(name="cdCity", columns=[Column(name="CityCode"), Column(name="ShortName")])

        assert resolve_code_name_columns(table) == ("CityCode", "ShortName")

    def test_neither_found_uses_first_columns(self):
        table = Table(name="cdOdd", columns=[Column(name="Alpha"), Column(name="Beta")])

        assert resolve_code_name_columns(table) == ("Alpha", "Beta")

    def test_single_unknown_column(self):
        table = Table(name="cdOdd", columns=[Column(name="Alpha")])

        assert resolve_code_name_columns(table) == ("Alpha", "Alpha")

    def test_only_code_found(self):
        table = Table(name="cdOdd", columns=[Column(name="Code"), Column(name="Value")])

        assert resolve_code_name_columns(table) == ("Code", "Name")
