"""
Unit tests for MigrationPlanner
"""

import pytest

from schema_sync.core.errors import AppError, ErrorType
from schema_sync.models.migration import MigrationPlan, MigrationStatement, StatementType
from schema_sync.models.schema import (
    Column, ColumnDiff, Constraint, ConstraintType, Index, SchemaDiff, Table, TableDiff
)
from schema_sync.services.comparison_engine import SchemaComparisonEngine
from schema_sync.services.generators.migration_planner import MigrationPlanner

from .conftest import make_orders_table, make_schema


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def planner() -> MigrationPlanner:
    return MigrationPlanner()


@pytest.fixture
def mixed_diff() -> SchemaDiff:
    """A diff touching every statement type"""
    legacy = Table(name="legacy").add_column(Column(name="id", data_type="INT"))
    audit = Table(name="audit").add_column(Column(name="id", data_type="INT", is_nullable=False))

    orders = make_orders_table()
    fk = orders.constraints["fk_user_id"]

    return SchemaDiff(
        added_tables=[audit],
        removed_tables=[legacy],
        modified_tables=[
            TableDiff(
                table_name="users",
                added_columns=[Column(name="phone", data_type="VARCHAR(20)")],
                removed_columns=[Column(name="fax", data_type="VARCHAR(20)")],
                modified_columns=[ColumnDiff(
                    column_name="email",
                    old_column=Column(name="email", data_type="VARCHAR(100)"),
                    new_column=Column(name="email", data_type="VARCHAR(255)"),
                )],
            ),
            TableDiff(table_name="orders", removed_constraints=[fk], added_constraints=[fk]),
        ],
        added_indexes=[Index(name="idx_phone", table_name="users", columns=["phone"])],
        removed_indexes=[Index(name="idx_fax", table_name="users", columns=["fax"])],
    )


# ============================================================================
# Planning Tests
# ============================================================================

class TestPlan:
    """MigrationPlanner.plan"""

    def test_empty_diff_gives_empty_plan(self, planner):
        plan = planner.plan(SchemaDiff())

        assert plan.is_empty()
        assert plan.warnings == []

    def test_none_diff_is_validation_error(self, planner):
        with pytest.raises(AppError) as exc_info:
            planner.plan(None)
        assert exc_info.value.error_type == ErrorType.VALIDATION

    def test_statements_follow_execution_order(self, planner, mixed_diff):
        plan = planner.plan(mixed_diff)

        orders = [stmt.execution_order for stmt in plan.statements]
        assert orders == sorted(orders)
        assert [stmt.statement_type for stmt in plan.statements] == [
            StatementType.DROP_CONSTRAINT,
            StatementType.DROP_INDEX,
            StatementType.DROP_COLUMN,
            StatementType.DROP_TABLE,
            StatementType.CREATE_TABLE,
            StatementType.ADD_COLUMN,
            StatementType.MODIFY_COLUMN,
            StatementType.CREATE_INDEX,
            StatementType.ADD_CONSTRAINT,
        ]

    def test_foreign_key_dropped_before_and_added_after(self, planner, mixed_diff):
        plan = planner.plan(mixed_diff)

        assert plan.statements[0].sql == "ALTER TABLE `orders` DROP FOREIGN KEY `fk_user_id`"
        assert plan.statements[-1].sql.startswith("ALTER TABLE `orders` ADD CONSTRAINT `fk_user_id`")

    def test_same_type_statements_sorted_by_table(self, planner):
        diff = SchemaDiff(added_tables=[
            Table(name="zeta").add_column(Column(name="id", data_type="INT")),
            Table(name="alpha").add_column(Column(name="id", data_type="INT")),
        ])

        plan = planner.plan(diff)

        assert [stmt.table_name for stmt in plan.statements] == ["alpha", "zeta"]

    def test_same_table_keeps_diff_order(self, planner):
        diff = SchemaDiff(modified_tables=[TableDiff(
            table_name="users",
            added_columns=[
                Column(name="b", data_type="INT"),
                Column(name="a", data_type="INT"),
            ],
        )])

        plan = planner.plan(diff)

        assert [stmt.sql for stmt in plan.statements] == [
            "ALTER TABLE `users` ADD COLUMN `b` INT NULL",
            "ALTER TABLE `users` ADD COLUMN `a` INT NULL",
        ]

    def test_summary_matches_statements(self, planner, mixed_diff):
        summary = planner.plan(mixed_diff).summary

        assert summary.total_statements == 9
        assert summary.destructive_count == 4
        assert summary.tables_added == 1
        assert summary.tables_removed == 1
        assert summary.tables_modified == 1
        assert summary.constraints_added == 1
        assert summary.constraints_removed == 1

    def test_dependencies(self, planner, mixed_diff):
        plan = planner.plan(mixed_diff)

        add_fk = plan.get_statements_by_type(StatementType.ADD_CONSTRAINT)[0]
        add_column = plan.get_statements_by_type(StatementType.ADD_COLUMN)[0]
        create_index = plan.get_statements_by_type(StatementType.CREATE_INDEX)[0]

        assert add_fk.dependencies == ["orders", "users"]
        assert add_column.dependencies == ["users"]
        assert create_index.dependencies == ["users"]

    def test_generate_sql(self, planner):
        diff = SchemaDiff(removed_tables=[Table(name="legacy").add_column(Column(name="id", data_type="INT"))])

        assert planner.generate_sql(diff) == ["DROP TABLE `legacy`"]


# ============================================================================
# Warning Tests
# ============================================================================

class TestWarnings:
    """Warnings attached while planning"""

    def test_destructive_plan_warnings(self, planner, mixed_diff):
        warnings = planner.plan(mixed_diff).warnings

        assert "Dropping table 'legacy' will permanently delete all data in the table" in warnings
        assert "Dropping column 'users.fax' will permanently delete all data in the column" in warnings
        assert "Dropping index 'idx_fax' on table 'users' may degrade query performance" in warnings
        assert "This migration contains destructive operations that may result in data loss" in warnings
        assert "Please ensure you have a backup before proceeding" in warnings

    def test_additive_plan_has_no_backup_warning(self, planner):
        diff = SchemaDiff(added_indexes=[Index(name="idx_a", table_name="t", columns=["a"])])

        plan = planner.plan(diff)

        assert not plan.has_destructive_operations()
        assert plan.warnings == []

    def test_not_null_column_without_default(self, planner):
        diff = SchemaDiff(modified_tables=[TableDiff(
            table_name="users",
            added_columns=[Column(name="code", data_type="INT", is_nullable=False)],
        )])

        warnings = planner.plan(diff).warnings

        assert any("NOT NULL column 'users.code' without default" in w for w in warnings)

    def test_modified_column_warnings(self, planner):
        diff = SchemaDiff(modified_tables=[TableDiff(
            table_name="users",
            modified_columns=[ColumnDiff(
                column_name="age",
                old_column=Column(name="age", data_type="INT", is_nullable=True),
                new_column=Column(name="age", data_type="SMALLINT", is_nullable=False, default_value="0"),
            )],
        )])

        warnings = planner.plan(diff).warnings

        assert len(warnings) == 3
        assert any("from INT to SMALLINT" in w for w in warnings)
        assert any("from nullable to NOT NULL" in w for w in warnings)
        assert any("Default value change" in w for w in warnings)

    def test_primary_key_changes_are_not_planned(self, planner):
        old_pk = Index(name="PRIMARY", table_name="users", columns=["id"], is_unique=True, is_primary=True)
        new_pk = Index(name="PRIMARY", table_name="users", columns=["id", "email"], is_unique=True, is_primary=True)

        plan = planner.plan(SchemaDiff(added_indexes=[new_pk], removed_indexes=[old_pk]))

        assert plan.is_empty()
        assert plan.warnings == [
            "Primary key change on table 'users' is not applied automatically, review it manually"
        ]


# ============================================================================
# Validation Tests
# ============================================================================

class TestValidate:
    """MigrationPlanner.validate"""

    def test_valid_plan(self, planner, mixed_diff):
        planner.validate(planner.plan(mixed_diff))

    def test_none_plan(self, planner):
        with pytest.raises(AppError):
            planner.validate(None)

    def test_empty_plan(self, planner):
        with pytest.raises(AppError) as exc_info:
            planner.validate(MigrationPlan())
        assert exc_info.value.error_type == ErrorType.VALIDATION

    def test_statement_with_empty_sql(self, planner):
        plan = MigrationPlan()
        plan.statements.append(MigrationStatement(
            sql="", statement_type=StatementType.DROP_TABLE, description="Drop table t", table_name="t"
        ))

        with pytest.raises(AppError) as exc_info:
            planner.validate(plan)
        assert exc_info.value.context["statement_index"] == 0

    def test_generator_failure_becomes_validation_error(self, planner):
        bad_fk = Constraint.model_construct(
            name="fk_bad",
            table_name="orders",
            constraint_type=ConstraintType.FOREIGN_KEY,
            columns=["user_id"],
            referenced_table="users",
            referenced_columns=[],
            on_update=None,
            on_delete=None,
            check_expression=None,
        )

        with pytest.raises(AppError) as exc_info:
            planner.plan(SchemaDiff(modified_tables=[TableDiff(table_name="orders", added_constraints=[bad_fk])]))
        assert exc_info.value.error_type == ErrorType.VALIDATION


# ============================================================================
# End to end with the comparison engine
# ============================================================================

class TestCompareThenPlan:
    """Diff real schemas and plan the result"""

    def test_added_table_plans_create(self, planner, source_schema, target_schema):
        source_schema.add_table(
            Table(name="audit").add_column(Column(name="id", data_type="INT", is_nullable=False))
        )

        diff = SchemaComparisonEngine().compare(source_schema, target_schema)
        sql = planner.generate_sql(diff)

        assert sql == ["CREATE TABLE `audit` (`id` INT NOT NULL)"]

    def test_added_table_keeps_indexes_and_constraints(self, planner, source_schema, target_schema):
        del target_schema.tables["orders"]

        plan = planner.plan(SchemaComparisonEngine().compare(source_schema, target_schema))
        sql = [stmt.sql for stmt in plan.statements]

        assert [stmt.statement_type for stmt in plan.statements] == [
            StatementType.CREATE_TABLE,
            StatementType.CREATE_INDEX,
            StatementType.ADD_CONSTRAINT,
        ]
        assert sql[0].startswith("CREATE TABLE `orders`")
        assert "idx_user_id" not in sql[0]
        assert sql[1] == "CREATE INDEX `idx_user_id` ON `orders` (`user_id`)"
        assert sql[2] == (
            "ALTER TABLE `orders` ADD CONSTRAINT `fk_user_id` FOREIGN KEY (`user_id`) "
            "REFERENCES `users` (`id`) ON UPDATE CASCADE ON DELETE RESTRICT"
        )
        assert plan.statements[2].dependencies == ["orders", "users"]

    def test_added_table_unique_key_stays_inline(self, planner, source_schema, target_schema):
        users = source_schema.tables["users"]
        users.add_constraint(Constraint(
            name="idx_email", table_name="users", constraint_type=ConstraintType.UNIQUE, columns=["email"]
        ))
        users.add_constraint(Constraint(
            name="chk_email", table_name="users", constraint_type=ConstraintType.CHECK,
            columns=["email"], check_expression="email LIKE '%@%'",
        ))
        del target_schema.tables["users"]

        plan = planner.plan(SchemaComparisonEngine().compare(source_schema, target_schema))
        sql = [stmt.sql for stmt in plan.statements]

        assert "UNIQUE KEY `idx_email` (`email`)" in sql[0]
        assert sql[1:] == ["ALTER TABLE `users` ADD CONSTRAINT `chk_email` CHECK (email LIKE '%@%')"]

    def test_removed_foreign_key_table(self, planner, source_schema, target_schema):
        del source_schema.tables["orders"]

        plan = planner.plan(SchemaComparisonEngine().compare(source_schema, target_schema))

        assert [stmt.sql for stmt in plan.statements] == ["DROP TABLE `orders`"]
        assert plan.has_destructive_operations()

    def test_identical_schemas_plan_nothing(self, planner, source_schema):
        diff = SchemaComparisonEngine().compare(source_schema, make_schema("copy"))

        assert planner.plan(diff).is_empty()
