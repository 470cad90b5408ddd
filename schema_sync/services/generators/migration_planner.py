from typing import List, Optional
import logging

from schema_sync.core.errors import AppError, validation_error
from schema_sync.models.migration import MigrationPlan, MigrationStatement, StatementType
from schema_sync.models.schema import (
    Column, ColumnDiff, Constraint, ConstraintType, Index, SchemaDiff, Table, TableDiff
)
from schema_sync.services.generators.sql_generator import SQLGenerator

logger = logging.getLogger(__name__)


class MigrationPlanner:
    """Turn a SchemaDiff into an ordered, validated MigrationPlan"""

    def __init__(self, sql_generator: Optional[SQLGenerator] = None):
        self.sql_generator = sql_generator or SQLGenerator()

    def plan(self, diff: Optional[SchemaDiff]) -> MigrationPlan:
        """Generate migration statements for every diff entry, in execution order"""
        if diff is None:
            raise validation_error("schema diff cannot be nil")

        plan = MigrationPlan()

        for table in diff.removed_tables:
            self._plan_drop_table(plan, table)

        for constraint in diff.removed_constraints:
            self._plan_drop_constraint(plan, constraint)

        for index in diff.removed_indexes:
            self._plan_drop_index(plan, index)

        for table_diff in diff.modified_tables:
            self._plan_table_modifications(plan, table_diff)

        for table in diff.added_tables:
            self._plan_create_table(plan, table)

        for index in diff.added_indexes:
            self._plan_create_index(plan, index)

        for constraint in diff.added_constraints:
            self._plan_add_constraint(plan, constraint)

        # Stable sort keeps diff order within one (type, table) group
        plan.statements.sort(key=lambda stmt: (stmt.execution_order, stmt.table_name or ""))

        if plan.has_destructive_operations():
            plan.add_warning("This migration contains destructive operations that may result in data loss")
            plan.add_warning("Please ensure you have a backup before proceeding")

        logger.info(
            f"Planned migration with {len(plan.statements)} statements "
            f"({plan.summary.destructive_count} destructive, {len(plan.warnings)} warnings)"
        )
        return plan

    def validate(self, plan: Optional[MigrationPlan]) -> None:
        """Raise a validation error if the plan cannot be executed"""
        if plan is None:
            raise validation_error("migration plan cannot be nil")
        plan.check()

    def generate_sql(self, diff: SchemaDiff) -> List[str]:
        """Plan the diff and return only the SQL text"""
        return [stmt.sql for stmt in self.plan(diff).statements]

    def _add(
        self,
        plan: MigrationPlan,
        statement_type: StatementType,
        obj,
        description: str,
        table_name: Optional[str],
        dependencies: Optional[List[str]] = None,
    ) -> MigrationStatement:
        try:
            sql = self.sql_generator.generate_for(statement_type, obj, table_name)
        except AppError as e:
            raise validation_error(f"failed to generate SQL for {description.lower()}: {e.message}", e)

        statement = MigrationStatement(
            sql=sql,
            statement_type=statement_type,
            description=description,
            table_name=table_name,
            dependencies=dependencies or [],
        )
        plan.add_statement(statement)
        return statement

    # Tables

    def _plan_drop_table(self, plan: MigrationPlan, table: Table) -> None:
        self._add(plan, StatementType.DROP_TABLE, table, f"Drop table {table.name}", table.name)
        plan.add_warning(f"Dropping table '{table.name}' will permanently delete all data in the table")

    def _plan_create_table(self, plan: MigrationPlan, table: Table) -> None:
        self._add(plan, StatementType.CREATE_TABLE, table, f"Create table {table.name}", table.name)

        # Primary and unique keys are part of CREATE TABLE
        inline_keys = set()
        for index in table.indexes:
            if index.is_primary or index.is_unique:
                inline_keys.add(index.name)
            else:
                self._plan_create_index(plan, index)

        for constraint in table.constraints.values():
            if constraint.constraint_type == ConstraintType.UNIQUE and constraint.name in inline_keys:
                continue
            self._plan_add_constraint(plan, constraint)

    def _plan_table_modifications(self, plan: MigrationPlan, table_diff: TableDiff) -> None:
        table_name = table_diff.table_name

        for constraint in table_diff.removed_constraints:
            self._plan_drop_constraint(plan, constraint)

        for column in table_diff.removed_columns:
            self._plan_drop_column(plan, table_name, column)

        for column in table_diff.added_columns:
            self._plan_add_column(plan, table_name, column)

        for column_diff in table_diff.modified_columns:
            self._plan_modify_column(plan, table_name, column_diff)

        for constraint in table_diff.added_constraints:
            self._plan_add_constraint(plan, constraint)

    # Columns

    def _plan_drop_column(self, plan: MigrationPlan, table_name: str, column: Column) -> None:
        self._add(
            plan,
            StatementType.DROP_COLUMN,
            column,
            f"Drop column {column.name} from table {table_name}",
            table_name,
            [table_name],
        )
        plan.add_warning(
            f"Dropping column '{table_name}.{column.name}' will permanently delete all data in the column"
        )

    def _plan_add_column(self, plan: MigrationPlan, table_name: str, column: Column) -> None:
        self._add(
            plan,
            StatementType.ADD_COLUMN,
            column,
            f"Add column {column.name} to table {table_name}",
            table_name,
            [table_name],
        )
        if not column.is_nullable and column.default_value is None:
            plan.add_warning(
                f"Adding NOT NULL column '{table_name}.{column.name}' without default value "
                f"may fail if table contains data"
            )

    def _plan_modify_column(self, plan: MigrationPlan, table_name: str, column_diff: ColumnDiff) -> None:
        self._add(
            plan,
            StatementType.MODIFY_COLUMN,
            column_diff,
            f"Modify column {column_diff.column_name} in table {table_name}",
            table_name,
            [table_name],
        )

        old_column = column_diff.old_column
        new_column = column_diff.new_column
        if old_column.data_type != new_column.data_type:
            plan.add_warning(
                f"Changing data type of column '{table_name}.{column_diff.column_name}' from "
                f"{old_column.data_type} to {new_column.data_type} may cause data loss or conversion errors"
            )
        if old_column.is_nullable and not new_column.is_nullable:
            plan.add_warning(
                f"Changing column '{table_name}.{column_diff.column_name}' from nullable to NOT NULL "
                f"may fail if existing data contains NULL values"
            )
        if old_column.default_value != new_column.default_value:
            plan.add_warning(
                f"Default value change for column '{table_name}.{column_diff.column_name}' will only affect new rows"
            )

    # Indexes

    def _plan_drop_index(self, plan: MigrationPlan, index: Index) -> None:
        if index.is_primary:
            plan.add_warning(
                f"Primary key change on table '{index.table_name}' is not applied automatically, review it manually"
            )
            return

        self._add(
            plan,
            StatementType.DROP_INDEX,
            index,
            f"Drop index {index.name} on table {index.table_name}",
            index.table_name,
            [index.table_name],
        )
        plan.add_warning(
            f"Dropping index '{index.name}' on table '{index.table_name}' may degrade query performance"
        )

    def _plan_create_index(self, plan: MigrationPlan, index: Index) -> None:
        if index.is_primary:
            plan.add_warning(
                f"Primary key change on table '{index.table_name}' is not applied automatically, review it manually"
            )
            return

        self._add(
            plan,
            StatementType.CREATE_INDEX,
            index,
            f"Create index {index.name} on table {index.table_name}",
            index.table_name,
            [index.table_name],
        )

    # Constraints

    def _plan_drop_constraint(self, plan: MigrationPlan, constraint: Constraint) -> None:
        kind = constraint.constraint_type.value.lower()
        self._add(
            plan,
            StatementType.DROP_CONSTRAINT,
            constraint,
            f"Drop {kind} constraint {constraint.name} on table {constraint.table_name}",
            constraint.table_name,
        )
        plan.add_warning(
            f"Dropping {kind} constraint '{constraint.name}' on table '{constraint.table_name}' "
            f"removes an integrity rule"
        )

    def _plan_add_constraint(self, plan: MigrationPlan, constraint: Constraint) -> None:
        dependencies = [constraint.table_name]
        if constraint.constraint_type == ConstraintType.FOREIGN_KEY and constraint.referenced_table:
            if constraint.referenced_table not in dependencies:
                dependencies.append(constraint.referenced_table)

        self._add(
            plan,
            StatementType.ADD_CONSTRAINT,
            constraint,
            f"Add {constraint.constraint_type.value.lower()} constraint {constraint.name} "
            f"to table {constraint.table_name}",
            constraint.table_name,
            dependencies,
        )
