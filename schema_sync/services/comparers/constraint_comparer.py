import logging

from .base_comparer import BaseComparer
from schema_sync.models.schema import Constraint, Table, TableDiff, SchemaDiff

logger = logging.getLogger(__name__)


class ConstraintComparer(BaseComparer):
    """Compare table constraints (foreign key, unique, check)"""

    object_type = "constraint"

    def is_enabled(self) -> bool:
        return self.options.compare_constraints

    def compare_tables(
        self,
        source_table: Table,
        target_table: Table,
        table_diff: TableDiff,
        schema_diff: SchemaDiff
    ) -> None:
        added, removed, common = self.split_by_name(source_table.constraints, target_table.constraints)

        for name in added:
            table_diff.added_constraints.append(source_table.constraints[name])

        for name in removed:
            table_diff.removed_constraints.append(target_table.constraints[name])

        for name in common:
            source_constraint = source_table.constraints[name]
            target_constraint = target_table.constraints[name]
            if not self.constraints_equal(source_constraint, target_constraint):
                logger.debug(f"Constraint {source_table.name}.{name} definition changed")
                table_diff.removed_constraints.append(target_constraint)
                table_diff.added_constraints.append(source_constraint)

    @staticmethod
    def constraints_equal(source: Constraint, target: Constraint) -> bool:
        """Every field of the definition must match"""
        return (
            source.table_name == target.table_name
            and source.constraint_type == target.constraint_type
            and source.columns == target.columns
            and (source.referenced_table or "") == (target.referenced_table or "")
            and source.referenced_columns == target.referenced_columns
            and (source.on_update or "").upper() == (target.on_update or "").upper()
            and (source.on_delete or "").upper() == (target.on_delete or "").upper()
            and (source.check_expression or "") == (target.check_expression or "")
        )
