from pydantic import BaseModel, ConfigDict, Field, computed_field
from typing import Optional, List, Set
from datetime import datetime
from enum import Enum

from schema_sync.core.errors import AppError, validation_error
from schema_sync.models.schema import SchemaDiff


class StatementType(str, Enum):
    """Kinds of migration statements"""
    CREATE_TABLE = "CREATE_TABLE"
    DROP_TABLE = "DROP_TABLE"
    ADD_COLUMN = "ADD_COLUMN"
    DROP_COLUMN = "DROP_COLUMN"
    MODIFY_COLUMN = "MODIFY_COLUMN"
    CREATE_INDEX = "CREATE_INDEX"
    DROP_INDEX = "DROP_INDEX"
    ADD_CONSTRAINT = "ADD_CONSTRAINT"
    DROP_CONSTRAINT = "DROP_CONSTRAINT"

    @property
    def execution_order(self) -> int:
        """Lower numbers execute first"""
        return _EXECUTION_ORDER[self]

    @property
    def is_destructive(self) -> bool:
        return self in _DESTRUCTIVE_TYPES


_EXECUTION_ORDER = {
    StatementType.DROP_CONSTRAINT: 1,  # Foreign keys first, they pin columns and tables
    StatementType.DROP_INDEX: 2,
    StatementType.DROP_COLUMN: 3,
    StatementType.DROP_TABLE: 4,
    StatementType.CREATE_TABLE: 5,
    StatementType.ADD_COLUMN: 6,
    StatementType.MODIFY_COLUMN: 7,
    StatementType.CREATE_INDEX: 8,
    StatementType.ADD_CONSTRAINT: 9,  # Both endpoints must exist
}

_DESTRUCTIVE_TYPES = frozenset({
    StatementType.DROP_TABLE,
    StatementType.DROP_COLUMN,
    StatementType.DROP_INDEX,
    StatementType.DROP_CONSTRAINT,
})

_COLUMN_STATEMENT_TYPES = frozenset({
    StatementType.ADD_COLUMN,
    StatementType.DROP_COLUMN,
    StatementType.MODIFY_COLUMN,
})


class MigrationStatement(BaseModel):
    """A single SQL statement in a migration"""
    sql: str
    statement_type: StatementType
    description: str
    table_name: Optional[str] = None
    dependencies: List[str] = Field(default_factory=list)

    @computed_field
    @property
    def is_destructive(self) -> bool:
        return isinstance(self.statement_type, StatementType) and self.statement_type.is_destructive

    @property
    def execution_order(self) -> int:
        return self.statement_type.execution_order

    def check(self) -> None:
        if not self.sql or not self.sql.strip():
            raise validation_error("migration statement SQL cannot be empty")
        if not self.statement_type:
            raise validation_error("migration statement type cannot be empty")
        if not isinstance(self.statement_type, StatementType):
            raise validation_error(f"invalid statement type: {self.statement_type}")
        if not self.description:
            raise validation_error("migration statement description cannot be empty")


class MigrationSummary(BaseModel):
    """High-level counts of a migration plan"""
    total_statements: int = 0
    destructive_count: int = 0
    tables_added: int = 0
    tables_removed: int = 0
    tables_modified: int = 0
    columns_added: int = 0
    columns_removed: int = 0
    columns_modified: int = 0
    indexes_added: int = 0
    indexes_removed: int = 0
    constraints_added: int = 0
    constraints_removed: int = 0


class MigrationPlan(BaseModel):
    """Ordered migration statements plus warnings"""
    statements: List[MigrationStatement] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @computed_field
    @property
    def summary(self) -> MigrationSummary:
        """Counts derived from the current statements"""
        summary = MigrationSummary(total_statements=len(self.statements))
        modified_tables: Set[str] = set()

        for stmt in self.statements:
            if stmt.is_destructive:
                summary.destructive_count += 1

            if stmt.statement_type == StatementType.CREATE_TABLE:
                summary.tables_added += 1
            elif stmt.statement_type == StatementType.DROP_TABLE:
                summary.tables_removed += 1
            elif stmt.statement_type == StatementType.ADD_COLUMN:
                summary.columns_added += 1
            elif stmt.statement_type == StatementType.DROP_COLUMN:
                summary.columns_removed += 1
            elif stmt.statement_type == StatementType.MODIFY_COLUMN:
                summary.columns_modified += 1
            elif stmt.statement_type == StatementType.CREATE_INDEX:
                summary.indexes_added += 1
            elif stmt.statement_type == StatementType.DROP_INDEX:
                summary.indexes_removed += 1
            elif stmt.statement_type == StatementType.ADD_CONSTRAINT:
                summary.constraints_added += 1
            elif stmt.statement_type == StatementType.DROP_CONSTRAINT:
                summary.constraints_removed += 1

            if stmt.statement_type in _COLUMN_STATEMENT_TYPES and stmt.table_name:
                modified_tables.add(stmt.table_name)

        summary.tables_modified = len(modified_tables)
        return summary

    def add_statement(self, statement: MigrationStatement) -> None:
        """Validate and append a statement"""
        try:
            statement.check()
        except AppError as e:
            raise validation_error(f"cannot add invalid statement: {e.message}", e)
        self.statements.append(statement)

    def add_warning(self, warning: str) -> None:
        if warning and warning not in self.warnings:
            self.warnings.append(warning)

    def has_destructive_operations(self) -> bool:
        return any(stmt.is_destructive for stmt in self.statements)

    def get_statements_by_type(self, statement_type: StatementType) -> List[MigrationStatement]:
        return [stmt for stmt in self.statements if stmt.statement_type == statement_type]

    def get_statements_by_table(self, table_name: str) -> List[MigrationStatement]:
        return [stmt for stmt in self.statements if stmt.table_name == table_name]

    def is_empty(self) -> bool:
        return not self.statements

    def check(self) -> None:
        if not self.statements:
            raise validation_error("migration plan must have at least one statement")
        for index, stmt in enumerate(self.statements):
            try:
                stmt.check()
            except AppError as e:
                raise validation_error(f"invalid statement at index {index}: {e.message}", e).with_context(
                    "statement_index", index
                )

    def format_summary(self) -> str:
        """Human readable plan report"""
        summary = self.summary
        lines = [
            "Migration Summary:",
            f"  Total statements: {summary.total_statements}",
            f"  Destructive operations: {summary.destructive_count}",
            f"  Tables: +{summary.tables_added} -{summary.tables_removed} ~{summary.tables_modified}",
            f"  Columns: +{summary.columns_added} -{summary.columns_removed} ~{summary.columns_modified}",
            f"  Indexes: +{summary.indexes_added} -{summary.indexes_removed}",
            f"  Constraints: +{summary.constraints_added} -{summary.constraints_removed}",
        ]
        if self.warnings:
            lines.append("")
            lines.append("Warnings:")
            lines.extend(f"  - {warning}" for warning in self.warnings)
        return "\n".join(lines)

    def format_script(self, title: str = "Schema Migration") -> str:
        """Format SQL script with header and per-statement comments"""
        script = f"""-- {title}
-- Generated by Schema Sync
-- Generated at: {datetime.now().isoformat()}
-- Total statements: {len(self.statements)}
-- Destructive statements: {self.summary.destructive_count}
"""
        for warning in self.warnings:
            script += f"-- WARNING: {warning}\n"

        current_type = None
        for stmt in self.statements:
            # Group by operation type
            if stmt.statement_type != current_type:
                script += f"\n-- {stmt.statement_type.value.replace('_', ' ')}\n"
                current_type = stmt.statement_type
            script += f"-- {stmt.description}\n"
            script += f"{stmt.sql};\n"

        return script


class ExecutionResult(BaseModel):
    """Outcome of one synchronization run"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool = False
    dry_run: bool = False
    schema_diff: Optional[SchemaDiff] = None
    migration_plan: Optional[MigrationPlan] = None
    executed_statements: List[MigrationStatement] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    duration_seconds: float = 0.0
    error: Optional[AppError] = Field(default=None, exclude=True)

    @computed_field
    @property
    def error_message(self) -> Optional[str]:
        if self.error is None:
            return None
        return str(self.error)

    def add_warning(self, warning: str) -> None:
        if warning and warning not in self.warnings:
            self.warnings.append(warning)
