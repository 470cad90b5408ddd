"""
MySQL DDL rendering.

Each generate_* method renders exactly one statement from one schema object.
The produced text is consumed verbatim by the script output, backups and
tests, so token order, spacing and back-tick quoting are fixed.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple, Type
import logging

from schema_sync.core.constants import DEFAULT_INDEX_TYPE
from schema_sync.core.errors import validation_error
from schema_sync.models.migration import StatementType
from schema_sync.models.schema import (
    Column, ColumnDiff, Constraint, ConstraintType, Index, Table
)

logger = logging.getLogger(__name__)


def quote_identifier(name: str) -> str:
    return f"`{name}`"


def quote_identifiers(names: List[str]) -> str:
    return ", ".join(quote_identifier(name) for name in names)


class SQLGenerator:
    """Generate DDL statements for schema objects"""

    def __init__(self):
        # StatementType -> (object type, renderer). Every StatementType must be present.
        self._dispatch: Dict[StatementType, Tuple[Type, Callable[[Any, Optional[str]], str]]] = {
            StatementType.CREATE_TABLE: (Table, lambda obj, _: self.generate_create_table(obj)),
            StatementType.DROP_TABLE: (Table, lambda obj, _: self.generate_drop_table(obj)),
            StatementType.ADD_COLUMN: (Column, lambda obj, table: self.generate_add_column(table, obj)),
            StatementType.DROP_COLUMN: (Column, lambda obj, table: self.generate_drop_column(table, obj)),
            StatementType.MODIFY_COLUMN: (ColumnDiff, lambda obj, table: self.generate_modify_column(table, obj)),
            StatementType.CREATE_INDEX: (Index, lambda obj, _: self.generate_create_index(obj)),
            StatementType.DROP_INDEX: (Index, lambda obj, _: self.generate_drop_index(obj)),
            StatementType.ADD_CONSTRAINT: (Constraint, lambda obj, _: self.generate_add_constraint(obj)),
            StatementType.DROP_CONSTRAINT: (Constraint, lambda obj, _: self.generate_drop_constraint(obj)),
        }

    def supported_statement_types(self) -> List[StatementType]:
        return list(self._dispatch)

    def generate_for(self, statement_type: StatementType, obj: Any, table_name: Optional[str] = None) -> str:
        """Render the statement of the given type for obj"""
        entry = self._dispatch.get(statement_type)
        if entry is None:
            raise validation_error(f"unsupported statement type: {statement_type}")

        expected_type, renderer = entry
        if not isinstance(obj, expected_type):
            raise validation_error(
                f"invalid object type for {statement_type.value}: "
                f"expected {expected_type.__name__}, got {type(obj).__name__}"
            )
        return renderer(obj, table_name)

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def generate_create_table(self, table: Optional[Table]) -> str:
        """CREATE TABLE with columns, primary key and unique keys"""
        if table is None:
            raise validation_error("table cannot be nil")
        if not table.name:
            raise validation_error("table name cannot be empty")
        if not table.columns:
            raise validation_error(f"table {table.name} must have at least one column")

        parts = [self.generate_column_definition(column) for column in table.ordered_columns()]

        primary_key = table.get_primary_key()
        if primary_key is not None:
            parts.append(f"PRIMARY KEY ({quote_identifiers(primary_key.columns)})")

        for index in table.indexes:
            if index.is_unique and not index.is_primary:
                parts.append(f"UNIQUE KEY {quote_identifier(index.name)} ({quote_identifiers(index.columns)})")

        return f"CREATE TABLE {quote_identifier(table.name)} ({', '.join(parts)})"

    def generate_drop_table(self, table: Optional[Table]) -> str:
        if table is None:
            raise validation_error("table cannot be nil")
        if not table.name:
            raise validation_error("table name cannot be empty")
        return f"DROP TABLE {quote_identifier(table.name)}"

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def generate_column_definition(self, column: Optional[Column]) -> str:
        """`name` TYPE NOT NULL|NULL [DEFAULT value] [EXTRA]"""
        if column is None:
            raise validation_error("column cannot be nil")
        if not column.name:
            raise validation_error("column name cannot be empty")
        if not column.data_type:
            raise validation_error(f"column {column.name} data type cannot be empty")

        definition = f"{quote_identifier(column.name)} {column.data_type}"
        definition += " NULL" if column.is_nullable else " NOT NULL"

        # Rendered as given: string literals arrive already quoted
        if column.default_value is not None:
            definition += f" DEFAULT {column.default_value}"

        if column.extra:
            definition += f" {column.extra}"

        return definition

    def generate_add_column(self, table_name: Optional[str], column: Optional[Column]) -> str:
        self._require_table_name(table_name)
        return f"ALTER TABLE {quote_identifier(table_name)} ADD COLUMN {self.generate_column_definition(column)}"

    def generate_drop_column(self, table_name: Optional[str], column: Optional[Column]) -> str:
        self._require_table_name(table_name)
        if column is None:
            raise validation_error("column cannot be nil")
        if not column.name:
            raise validation_error("column name cannot be empty")
        return f"ALTER TABLE {quote_identifier(table_name)} DROP COLUMN {quote_identifier(column.name)}"

    def generate_modify_column(self, table_name: Optional[str], column_diff: Optional[ColumnDiff]) -> str:
        """MODIFY COLUMN with the new column's full definition"""
        self._require_table_name(table_name)
        if column_diff is None:
            raise validation_error("column diff cannot be nil")
        if column_diff.new_column is None:
            raise validation_error("new column cannot be nil")
        return (
            f"ALTER TABLE {quote_identifier(table_name)} "
            f"MODIFY COLUMN {self.generate_column_definition(column_diff.new_column)}"
        )

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    def generate_create_index(self, index: Optional[Index]) -> str:
        if index is None:
            raise validation_error("index cannot be nil")
        index.check()

        unique = "UNIQUE " if index.is_unique else ""
        sql = (
            f"CREATE {unique}INDEX {quote_identifier(index.name)} "
            f"ON {quote_identifier(index.table_name)} ({quote_identifiers(index.columns)})"
        )
        if index.index_type and index.index_type.upper() != DEFAULT_INDEX_TYPE:
            sql += f" USING {index.index_type.upper()}"
        return sql

    def generate_drop_index(self, index: Optional[Index]) -> str:
        if index is None:
            raise validation_error("index cannot be nil")
        if not index.name:
            raise validation_error("index name cannot be empty")
        if not index.table_name:
            raise validation_error(f"index {index.name} table name cannot be empty")
        return f"DROP INDEX {quote_identifier(index.name)} ON {quote_identifier(index.table_name)}"

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------

    def generate_add_constraint(self, constraint: Optional[Constraint]) -> str:
        if constraint is None:
            raise validation_error("constraint cannot be nil")
        constraint.check()

        prefix = (
            f"ALTER TABLE {quote_identifier(constraint.table_name)} "
            f"ADD CONSTRAINT {quote_identifier(constraint.name)}"
        )

        if constraint.constraint_type == ConstraintType.FOREIGN_KEY:
            sql = (
                f"{prefix} FOREIGN KEY ({quote_identifiers(constraint.columns)}) "
                f"REFERENCES {quote_identifier(constraint.referenced_table)} "
                f"({quote_identifiers(constraint.referenced_columns)})"
            )
            if constraint.on_update:
                sql += f" ON UPDATE {constraint.on_update}"
            if constraint.on_delete:
                sql += f" ON DELETE {constraint.on_delete}"
            return sql

        if constraint.constraint_type == ConstraintType.UNIQUE:
            return f"{prefix} UNIQUE ({quote_identifiers(constraint.columns)})"

        if constraint.constraint_type == ConstraintType.CHECK:
            return f"{prefix} CHECK ({constraint.check_expression})"

        raise validation_error(f"unsupported constraint type: {constraint.constraint_type}")

    def generate_drop_constraint(self, constraint: Optional[Constraint]) -> str:
        """MySQL drops each constraint kind with its own clause"""
        if constraint is None:
            raise validation_error("constraint cannot be nil")
        if not constraint.name:
            raise validation_error("constraint name cannot be empty")
        if not constraint.table_name:
            raise validation_error(f"constraint {constraint.name} table name cannot be empty")

        drop_clauses = {
            ConstraintType.FOREIGN_KEY: "DROP FOREIGN KEY",
            ConstraintType.UNIQUE: "DROP INDEX",
            ConstraintType.CHECK: "DROP CHECK",
        }
        clause = drop_clauses.get(constraint.constraint_type)
        if clause is None:
            raise validation_error(f"unsupported constraint type: {constraint.constraint_type}")

        return f"ALTER TABLE {quote_identifier(constraint.table_name)} {clause} {quote_identifier(constraint.name)}"

    @staticmethod
    def _require_table_name(table_name: Optional[str]) -> None:
        if not table_name:
            raise validation_error("table name cannot be empty")
