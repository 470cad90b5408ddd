from typing import Optional
import logging

from .base_comparer import BaseComparer
from schema_sync.models.schema import Column, ColumnDiff, Table, TableDiff, SchemaDiff

logger = logging.getLogger(__name__)


class ColumnComparer(BaseComparer):
    """Compare table columns"""

    object_type = "column"

    def is_enabled(self) -> bool:
        return self.options.compare_columns

    def compare_tables(
        self,
        source_table: Table,
        target_table: Table,
        table_diff: TableDiff,
        schema_diff: SchemaDiff
    ) -> None:
        added, removed, common = self.split_by_name(source_table.columns, target_table.columns)

        for name in added:
            table_diff.added_columns.append(source_table.columns[name])

        for name in removed:
            table_diff.removed_columns.append(target_table.columns[name])

        # Changed columns are modified in place, never dropped and re-added
        for name in common:
            source_column = source_table.columns[name]
            target_column = target_table.columns[name]
            if not self.columns_equal(source_column, target_column):
                logger.debug(f"Column {source_table.name}.{name} changed")
                table_diff.modified_columns.append(ColumnDiff(
                    column_name=name,
                    old_column=target_column,
                    new_column=source_column,
                ))

    def columns_equal(self, source_column: Column, target_column: Column) -> bool:
        """Compare the fields that affect the column definition"""
        if source_column.data_type != target_column.data_type:
            return False
        if source_column.is_nullable != target_column.is_nullable:
            return False
        if source_column.default_value != target_column.default_value:
            return False
        return self._normalize_extra(source_column.extra) == self._normalize_extra(target_column.extra)

    def _normalize_extra(self, extra: Optional[str]) -> str:
        extra = (extra or "").strip()
        if self.options.ignore_auto_increment:
            extra = " ".join(part for part in extra.split() if part.upper() != "AUTO_INCREMENT")
        return extra
