"""
Pytest configuration and shared fixtures.

This module provides fixtures and configuration used across all tests.
"""

import logging

import pytest

from packsql.models.schema import Column, ForeignKey, ReferencedBy, Schema, Table

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests (requires API keys and external services)",
    )


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (may require external services)"
    )
    config.addinivalue_line("markers", "slow: mark test as slow (takes more than 1 second)")
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless explicitly enabled."""
    if config.getoption("--run-integration"):
        return
    skip_integration = pytest.mark.skip(
        reason="Integration tests disabled (use --run-integration to enable)."
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def configure_test_logging(caplog):
    """
    Configure logging for tests.

    Sets up log capture and configures log levels.
    This fixture runs automatically for all tests.
    """
    caplog.set_level(logging.DEBUG)
    yield


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Keep a developer .env out of the tests and reset the settings cache."""
    from packsql.config import clear_settings_cache

    monkeypatch.setenv("PACKSQL_ENV_SOURCE", "environment")
    for name in (
        "DATABASE_URL",
        "LLM_OPENAI_API_KEY",
        "LLM_ANTHROPIC_API_KEY",
        "LLM_DEFAULT_PROVIDER",
        "SLICING_POLICIES_PATH",
        "SLICING_NAMING_RULES_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


# ============================================================================
# Schema Fixtures
# ============================================================================


def fk(from_table, from_column, to_table, to_column, name=None):
    """Build an outbound foreign key."""
    return ForeignKey(
        constraint_name=name or f"FK_{from_table}_{to_table}",
        from_table=from_table,
        from_columns=[from_column],
        to_table=to_table,
        to_columns=[to_column],
    )


def columns(*specs):
    """Build columns from `name` or `name:type` strings."""
    result = []
    for entry in specs:
        name, _, data_type = entry.partition(":")
        result.append(Column(name=name, data_type=data_type or "int", is_nullable=False))
    return result


@pytest.fixture
def shop_schema():
    """
    Small shop schema.

    Orders, OrderItems, Products, Categories, Shippers and Customers are one
    FK-connected group; Users/UserRoles are a second group; ErrorLog is an
    isolated table.
    """
    return Schema(
        schema_name="dbo",
        tables=[
            Table(
                name="Orders",
                columns=columns("OrderId", "CustomerId", "ShipperId", "OrderDate:datetime"),
                foreign_keys=[
                    fk("Orders", "CustomerId", "Customers", "CustomerId"),
                    fk("Orders", "ShipperId", "Shippers", "ShipperId"),
                ],
                referenced_by=[
                    ReferencedBy(
                        constraint_name="FK_OrderItems_Orders",
                        from_table="OrderItems",
                        from_columns=["OrderId"],
                        to_columns=["OrderId"],
                    )
                ],
            ),
            Table(
                name="OrderItems",
                columns=columns("OrderItemId", "OrderId", "ProductId", "Quantity"),
                foreign_keys=[
                    fk("OrderItems", "OrderId", "Orders", "OrderId"),
                    fk("OrderItems", "ProductId", "Products", "ProductId"),
                ],
            ),
            Table(
                name="Products",
                columns=columns("ProductId", "CategoryId", "ProductName:nvarchar"),
                foreign_keys=[fk("Products", "CategoryId", "Categories", "CategoryId")],
            ),
            Table(name="Categories", columns=columns("CategoryId", "CategoryName:nvarchar")),
            Table(name="Shippers", columns=columns("ShipperId", "CompanyName:nvarchar")),
            Table(name="Customers", columns=columns("CustomerId", "Email:nvarchar")),
            Table(
                name="UserRoles",
                columns=columns("UserRoleId", "UserId", "RoleName:nvarchar"),
                foreign_keys=[fk("UserRoles", "UserId", "Users", "UserId")],
            ),
            Table(name="Users", columns=columns("UserId", "UserName:nvarchar")),
            Table(name="ErrorLog", columns=columns("ErrorLogId", "Message:nvarchar")),
        ],
    )


@pytest.fixture
def department_schema():
    """
    Department-prefixed schema with cd* lookup tables.

    hr and fi tables reference cdCountry/cdCurrency; fiPayroll references
    hrEmployee across departments.
    """
    return Schema(
        schema_name="erp",
        tables=[
            Table(
                name="hrEmployee",
                columns=columns("EmployeeId", "CountryId", "FullName:nvarchar"),
                foreign_keys=[fk("hrEmployee", "CountryId", "cdCountry", "CountryId")],
            ),
            Table(
                name="hrContract",
                columns=columns("ContractId", "EmployeeId", "CurrencyId", "CountryId"),
                foreign_keys=[
                    fk("hrContract", "EmployeeId", "hrEmployee", "EmployeeId"),
                    fk("hrContract", "CurrencyId", "cdCurrency", "CurrencyId"),
                    fk("hrContract", "CountryId", "cdCountry", "CountryId"),
                ],
            ),
            Table(name="hrTmpImport", columns=columns("RowId")),
            Table(
                name="fiPayroll",
                columns=columns("PayrollId", "EmployeeId", "CurrencyId"),
                foreign_keys=[
                    fk("fiPayroll", "EmployeeId", "hrEmployee", "EmployeeId"),
                    fk("fiPayroll", "CurrencyId", "cdCurrency", "CurrencyId"),
                ],
            ),
            Table(
                name="cdCountry",
                columns=columns("CountryId", "Code:char", "Name:nvarchar"),
            ),
            Table(
                name="cdCurrency",
                columns=columns("CurrencyId", "IsoCode:char", "Description:nvarchar"),
            ),
        ],
    )
