"""
Schema snapshot and schema diff models.

A Schema is built by an extractor for one synchronization run. All models are
plain pydantic models so snapshots and diffs serialise with stable field
names for backup and rollback consumers.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from enum import Enum
import re

from schema_sync.core.constants import (
    DEFAULT_INDEX_TYPE,
    VALID_INDEX_TYPES,
    VALID_MYSQL_DATA_TYPES,
)
from schema_sync.core.errors import validation_error

_BASE_TYPE_PATTERN = re.compile(r"^\s*([a-zA-Z]+)")


def base_data_type(data_type: str) -> str:
    """Base type of a column type string, e.g. 'varchar' for 'VARCHAR(255)'"""
    match = _BASE_TYPE_PATTERN.match(data_type or "")
    return match.group(1).lower() if match else ""


def is_valid_mysql_data_type(data_type: str) -> bool:
    return base_data_type(data_type) in VALID_MYSQL_DATA_TYPES


def is_valid_index_type(index_type: str) -> bool:
    return index_type.upper() in VALID_INDEX_TYPES


class Column(BaseModel):
    """Table column"""
    name: str
    data_type: str
    is_nullable: bool = True
    default_value: Optional[str] = None  # None means no default, "" is an empty default
    extra: str = ""
    position: int = 0

    def check(self) -> None:
        if not self.name:
            raise validation_error("column name cannot be empty")
        if not self.data_type:
            raise validation_error(f"column {self.name} data type cannot be empty")
        if not is_valid_mysql_data_type(self.data_type):
            raise validation_error(f"invalid MySQL data type: {self.data_type}")
        if self.position < 0:
            raise validation_error(f"column {self.name} position must be non-negative")


class Index(BaseModel):
    """Table index. Column order defines the composite key."""
    name: str
    table_name: str
    columns: List[str] = Field(default_factory=list)
    is_unique: bool = False
    is_primary: bool = False
    index_type: str = DEFAULT_INDEX_TYPE

    def check(self) -> None:
        if not self.name:
            raise validation_error("index name cannot be empty")
        if not self.table_name:
            raise validation_error(f"index {self.name} table name cannot be empty")
        if not self.columns:
            raise validation_error(f"index {self.name} must have at least one column")
        if self.index_type and not is_valid_index_type(self.index_type):
            raise validation_error(f"invalid index type: {self.index_type}")


class ConstraintType(str, Enum):
    """Constraint kinds"""
    FOREIGN_KEY = "FOREIGN_KEY"
    UNIQUE = "UNIQUE"
    CHECK = "CHECK"


class Constraint(BaseModel):
    """Table constraint"""
    name: str
    table_name: str
    constraint_type: ConstraintType
    columns: List[str] = Field(default_factory=list)

    # Foreign key
    referenced_table: Optional[str] = None
    referenced_columns: List[str] = Field(default_factory=list)
    on_update: Optional[str] = None
    on_delete: Optional[str] = None

    # Check
    check_expression: Optional[str] = None

    def check(self) -> None:
        if not self.name:
            raise validation_error("constraint name cannot be empty")
        if not self.table_name:
            raise validation_error(f"constraint {self.name} table name cannot be empty")

        if self.constraint_type == ConstraintType.FOREIGN_KEY:
            if not self.referenced_table:
                raise validation_error(f"foreign key constraint {self.name} must have referenced table")
            if not self.referenced_columns:
                raise validation_error(f"foreign key constraint {self.name} must have referenced columns")
            if len(self.columns) != len(self.referenced_columns):
                raise validation_error(
                    f"foreign key constraint {self.name} must have same number of columns and referenced columns"
                )
        elif self.constraint_type == ConstraintType.UNIQUE:
            if not self.columns:
                raise validation_error(f"unique constraint {self.name} must have at least one column")
        elif self.constraint_type == ConstraintType.CHECK:
            if not self.check_expression:
                raise validation_error(f"check constraint {self.name} must have check expression")

        if not self.columns:
            raise validation_error(f"constraint {self.name} must have at least one column")


class Table(BaseModel):
    """Database table"""
    name: str
    columns: Dict[str, Column] = Field(default_factory=dict)
    indexes: List[Index] = Field(default_factory=list)
    constraints: Dict[str, Constraint] = Field(default_factory=dict)

    def get_column(self, name: str) -> Optional[Column]:
        return self.columns.get(name)

    def get_primary_key(self) -> Optional[Index]:
        for index in self.indexes:
            if index.is_primary:
                return index
        return None

    def has_primary_key(self) -> bool:
        return self.get_primary_key() is not None

    def get_index(self, name: str) -> Optional[Index]:
        for index in self.indexes:
            if index.name == name:
                return index
        return None

    def ordered_columns(self) -> List[Column]:
        """Columns by ordinal position, then name"""
        return sorted(self.columns.values(), key=lambda c: (c.position, c.name))

    def add_column(self, column: Column) -> "Table":
        column.check()
        self.columns[column.name] = column
        return self

    def add_index(self, index: Index) -> "Table":
        index.check()
        if index.table_name != self.name:
            raise validation_error(
                f"index {index.name} table name mismatch: expected {self.name}, got {index.table_name}"
            )
        self.indexes.append(index)
        return self

    def add_constraint(self, constraint: Constraint) -> "Table":
        constraint.check()
        if constraint.table_name != self.name:
            raise validation_error(
                f"constraint {constraint.name} table name mismatch: expected {self.name}, got {constraint.table_name}"
            )
        self.constraints[constraint.name] = constraint
        return self

    def check(self) -> None:
        if not self.name:
            raise validation_error("table name cannot be empty")
        if not self.columns:
            raise validation_error(f"table {self.name} must have at least one column")

        for column in self.columns.values():
            column.check()

        for index in self.indexes:
            index.check()
            if index.table_name != self.name:
                raise validation_error(
                    f"index {index.name} table name mismatch: expected {self.name}, got {index.table_name}"
                )
            missing = [c for c in index.columns if c not in self.columns]
            if missing:
                raise validation_error(f"index {index.name} references unknown columns: {', '.join(missing)}")

        for constraint in self.constraints.values():
            constraint.check()
            if constraint.table_name != self.name:
                raise validation_error(
                    f"constraint {constraint.name} table name mismatch: expected {self.name}, got {constraint.table_name}"
                )
            missing = [c for c in constraint.columns if c not in self.columns]
            if missing:
                raise validation_error(
                    f"constraint {constraint.name} references unknown columns: {', '.join(missing)}"
                )


class Schema(BaseModel):
    """Complete database schema snapshot"""
    name: str
    tables: Dict[str, Table] = Field(default_factory=dict)

    def get_table(self, name: str) -> Optional[Table]:
        return self.tables.get(name)

    def add_table(self, table: Table) -> "Schema":
        table.check()
        self.tables[table.name] = table
        return self

    def check(self) -> None:
        if not self.name:
            raise validation_error("schema name cannot be empty")
        for table in self.tables.values():
            table.check()


# ============================================================================
# Diff models
# ============================================================================

class ColumnDiff(BaseModel):
    """A column present on both sides with different definitions"""
    column_name: str
    old_column: Column  # target
    new_column: Column  # source, authoritative for SQL


class TableDiff(BaseModel):
    """Column and constraint deltas of a table present on both sides"""
    table_name: str
    added_columns: List[Column] = Field(default_factory=list)
    removed_columns: List[Column] = Field(default_factory=list)
    modified_columns: List[ColumnDiff] = Field(default_factory=list)
    added_constraints: List[Constraint] = Field(default_factory=list)
    removed_constraints: List[Constraint] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.added_columns
            or self.removed_columns
            or self.modified_columns
            or self.added_constraints
            or self.removed_constraints
        )


class SchemaDiff(BaseModel):
    """Structural differences between a source and a target schema"""
    added_tables: List[Table] = Field(default_factory=list)
    removed_tables: List[Table] = Field(default_factory=list)
    modified_tables: List[TableDiff] = Field(default_factory=list)
    added_indexes: List[Index] = Field(default_factory=list)
    removed_indexes: List[Index] = Field(default_factory=list)
    added_constraints: List[Constraint] = Field(default_factory=list)
    removed_constraints: List[Constraint] = Field(default_factory=list)

    def change_count(self) -> int:
        """Total number of individual changes"""
        count = (
            len(self.added_tables)
            + len(self.removed_tables)
            + len(self.added_indexes)
            + len(self.removed_indexes)
            + len(self.added_constraints)
            + len(self.removed_constraints)
        )
        for table_diff in self.modified_tables:
            count += (
                len(table_diff.added_columns)
                + len(table_diff.removed_columns)
                + len(table_diff.modified_columns)
                + len(table_diff.added_constraints)
                + len(table_diff.removed_constraints)
            )
        return count
