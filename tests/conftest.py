"""
Shared fixtures for schema_sync tests
"""

import pytest

from schema_sync.models.schema import (
    Column, Constraint, ConstraintType, Index, Schema, Table
)


# ============================================================================
# Schema builders
# ============================================================================

def make_users_table() -> Table:
    table = Table(name="users")
    table.add_column(Column(name="id", data_type="INT", is_nullable=False, extra="AUTO_INCREMENT", position=1))
    table.add_column(Column(name="email", data_type="VARCHAR(255)", is_nullable=True, position=2))
    table.add_column(Column(name="created_at", data_type="TIMESTAMP", is_nullable=False,
                            default_value="CURRENT_TIMESTAMP", position=3))
    table.add_index(Index(name="PRIMARY", table_name="users", columns=["id"], is_unique=True, is_primary=True))
    table.add_index(Index(name="idx_email", table_name="users", columns=["email"], is_unique=True))
    return table


def make_orders_table() -> Table:
    table = Table(name="orders")
    table.add_column(Column(name="id", data_type="BIGINT", is_nullable=False, extra="AUTO_INCREMENT", position=1))
    table.add_column(Column(name="user_id", data_type="INT", is_nullable=False, position=2))
    table.add_column(Column(name="total", data_type="DECIMAL(10,2)", is_nullable=False,
                            default_value="0.00", position=3))
    table.add_index(Index(name="PRIMARY", table_name="orders", columns=["id"], is_unique=True, is_primary=True))
    table.add_index(Index(name="idx_user_id", table_name="orders", columns=["user_id"]))
    table.add_constraint(Constraint(
        name="fk_user_id",
        table_name="orders",
        constraint_type=ConstraintType.FOREIGN_KEY,
        columns=["user_id"],
        referenced_table="users",
        referenced_columns=["id"],
        on_update="CASCADE",
        on_delete="RESTRICT",
    ))
    return table


def make_schema(name: str = "app") -> Schema:
    schema = Schema(name=name)
    schema.add_table(make_users_table())
    schema.add_table(make_orders_table())
    return schema


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def users_table() -> Table:
    return make_users_table()


@pytest.fixture
def orders_table() -> Table:
    return make_orders_table()


@pytest.fixture
def source_schema() -> Schema:
    """Schema with users and orders"""
    return make_schema("source_db")


@pytest.fixture
def target_schema() -> Schema:
    """Identical copy of the source schema"""
    return make_schema("target_db")
